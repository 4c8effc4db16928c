"""Cascading filters: option resolution and roster filtering."""

import re
from enum import Enum
from typing import Callable, Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Tuple

from alert_dashboard.models import (
    FilterOptions,
    FilterSelection,
    Option,
    RoleScope,
    RosterSnapshot,
    Student,
)
from alert_dashboard.scope import build_instructor_index, scope_courses, scope_departments


class AlertFilter(str, Enum):
    ALL = 'all'
    EARLY_ALERT = 'early_alert'
    GPA = 'gpa'
    ATTENDANCE = 'attendance'
    YELLOW_GPA = 'yellow_gpa'
    RED_GPA = 'red_gpa'
    YELLOW_ATTENDANCE = 'yellow_attendance'
    RED_ATTENDANCE = 'red_attendance'


# Dimension filter value -> alert_level it admits
DIMENSION_LEVELS = {
    'red': 'critical',
    'yellow': 'warning',
    'good': None,
}

_ALERT_PREDICATES: Dict[AlertFilter, Callable[[Student], bool]] = {
    AlertFilter.ALL: lambda s: True,
    AlertFilter.EARLY_ALERT: lambda s: s.overall_alert in ('critical', 'warning'),
    AlertFilter.GPA: lambda s: s.gpa.alert_level is not None,
    AlertFilter.ATTENDANCE: lambda s: s.attendance.alert_level is not None,
    AlertFilter.YELLOW_GPA: lambda s: s.gpa.alert_level == 'warning',
    AlertFilter.RED_GPA: lambda s: s.gpa.alert_level == 'critical',
    AlertFilter.YELLOW_ATTENDANCE: lambda s: s.attendance.alert_level == 'warning',
    AlertFilter.RED_ATTENDANCE: lambda s: s.attendance.alert_level == 'critical',
}

_PROGRAM_PREFIX = re.compile(r'^([A-Za-z]+)')


def program_of(course_id: str) -> str:
    """Program code of a course: its leading letters ('CS101' -> 'CS')."""
    match = _PROGRAM_PREFIX.match(course_id)
    return match.group(1).upper() if match else course_id[:2]


def parse_alert_filter(value: Optional[str]) -> AlertFilter:
    """Unrecognized values fall back to ALL."""
    try:
        return AlertFilter((value or '').strip().lower())
    except ValueError:
        return AlertFilter.ALL


def parse_multi(values: Optional[Iterable[str]]) -> FrozenSet[str]:
    """Flatten repeated and comma-joined query values into a set."""
    result = set()
    for value in values or ():
        if value is None:
            continue
        for part in str(value).split(','):
            part = part.strip()
            if part:
                result.add(part)
    return frozenset(result)


def parse_dimension_filters(values: Optional[Iterable[str]]) -> FrozenSet[str]:
    """Keep only red/yellow/good; anything else (including 'all') is dropped."""
    return frozenset(v.lower() for v in parse_multi(values) if v.lower() in DIMENSION_LEVELS)


def build_selection(
    departments: Optional[Iterable[str]] = None,
    programs: Optional[Iterable[str]] = None,
    courses: Optional[Iterable[str]] = None,
    instructors: Optional[Iterable[str]] = None,
    gpa_filters: Optional[Iterable[str]] = None,
    attendance_filters: Optional[Iterable[str]] = None,
    alert_filter: Optional[str] = None
) -> FilterSelection:
    """Build a FilterSelection from raw request values."""
    return FilterSelection(
        department_ids=parse_multi(departments),
        programs=frozenset(p.upper() for p in parse_multi(programs)),
        course_ids=parse_multi(courses),
        instructor_ids=parse_multi(instructors),
        gpa_filters=parse_dimension_filters(gpa_filters),
        attendance_filters=parse_dimension_filters(attendance_filters),
        alert_filter=parse_alert_filter(alert_filter).value,
    )


def _dimension_allows(filters: FrozenSet[str], level: Optional[str]) -> bool:
    if not filters:
        return True
    return any(DIMENSION_LEVELS.get(f, 'unknown') == level for f in filters)


def apply_filters(
    students: Sequence[Student],
    selection: FilterSelection,
    instructor_index: Optional[Mapping[str, FrozenSet[str]]] = None
) -> List[Student]:
    """
    Filter an already scoped roster by the selection.

    Values within one dimension are OR-ed; dimensions are AND-ed. Ids that
    are not in the roster simply match nothing.

    Args:
        students: Scoped students
        selection: Filter selection
        instructor_index: teacher id -> owned course ids (build_instructor_index), needed for an
            instructor selection (without it, instructor filters match nothing)

    Returns:
        Matching students in their original order
    """
    instructor_courses: Optional[FrozenSet[str]] = None
    if selection.instructor_ids:
        index = instructor_index or {}
        taught = set()
        for instructor_id in selection.instructor_ids:
            taught.update(index.get(instructor_id, ()))
        instructor_courses = frozenset(taught)

    alert_predicate = _ALERT_PREDICATES[parse_alert_filter(selection.alert_filter)]

    result = []
    for s in students:
        if selection.department_ids and s.department_id not in selection.department_ids:
            continue
        if selection.programs and program_of(s.course_id) not in selection.programs:
            continue
        if selection.course_ids and s.course_id not in selection.course_ids:
            continue
        if instructor_courses is not None and s.course_id not in instructor_courses:
            continue
        if not _dimension_allows(selection.gpa_filters, s.gpa.alert_level):
            continue
        if not _dimension_allows(selection.attendance_filters, s.attendance.alert_level):
            continue
        if not alert_predicate(s):
            continue
        result.append(s)
    return result


def resolve_options(
    scope: Optional[RoleScope],
    snapshot: RosterSnapshot,
    selection: FilterSelection
) -> FilterOptions:
    """
    Compute the selectable values at each cascade level.

    Department narrows programs, program narrows courses, course narrows
    instructors. Every list is sorted by label.
    """
    courses = scope_courses(scope, snapshot.courses, snapshot.departments)
    departments = scope_departments(scope, snapshot.departments, snapshot.courses)

    after_dept = [
        c for c in courses
        if not selection.department_ids or c.department_id in selection.department_ids
    ]
    programs = sorted({program_of(c.id) for c in after_dept})

    after_program = [
        c for c in after_dept
        if not selection.programs or program_of(c.id) in selection.programs
    ]
    after_course = [
        c for c in after_program
        if not selection.course_ids or c.id in selection.course_ids
    ]
    cascaded_ids = {c.id for c in after_course}

    index = build_instructor_index(snapshot.users)
    instructors = []
    for u in snapshot.users:
        if u.role != 'teacher':
            continue
        if cascaded_ids.intersection(index.get(u.id, ())):
            instructors.append(Option(value=u.id, label=u.name or u.id))

    return FilterOptions(
        departments=sorted(
            (Option(value=d.id, label=d.name) for d in departments),
            key=lambda o: (o.label, o.value)
        ),
        programs=[Option(value=p, label=p) for p in programs],
        courses=sorted(
            (Option(value=c.id, label=f"{c.id} - {c.name}") for c in after_program),
            key=lambda o: (o.label, o.value)
        ),
        instructors=sorted(instructors, key=lambda o: (o.label, o.value)),
    )


_CASCADE = (
    ('department_ids', 'departments', 'with_departments'),
    ('programs', 'programs', 'with_programs'),
    ('course_ids', 'courses', 'with_courses'),
    ('instructor_ids', 'instructors', 'with_instructors'),
)


def resolve_selection(
    scope: Optional[RoleScope],
    snapshot: RosterSnapshot,
    selection: FilterSelection
) -> Tuple[FilterSelection, FilterOptions]:
    """
    Drop child selections that are stale against their parents.

    A value is dropped when an ancestor level is selected and the value is no
    longer among the options that ancestor allows; dropping it clears every
    level below. Values with no selected ancestor are kept even when unknown,
    so a tampered id still yields zero matches rather than widening the view.

    Returns:
        Tuple of (pruned selection, options resolved for it)
    """
    options = resolve_options(scope, snapshot, selection)
    for depth, (attr, options_attr, replace) in enumerate(_CASCADE):
        if depth == 0:
            continue
        has_parent = any(getattr(selection, a) for a, _, _ in _CASCADE[:depth])
        current = getattr(selection, attr)
        if not has_parent or not current:
            continue
        valid = {o.value for o in getattr(options, options_attr)}
        kept = current & valid
        if kept != current:
            selection = getattr(selection, replace)(kept)
            options = resolve_options(scope, snapshot, selection)
    return selection, options
