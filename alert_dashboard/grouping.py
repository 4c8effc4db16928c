"""Nested grouping and pagination of filtered rosters."""

import math
from enum import Enum
from typing import Callable, Dict, Iterable, List, Mapping, NamedTuple, Optional, Sequence

from alert_dashboard.aggregation import aggregate
from alert_dashboard.filters import program_of
from alert_dashboard.models import Course, Department, GroupNode, Page, Student


DEFAULT_PAGE_SIZE = 30
UNASSIGNED_INSTRUCTOR_ID = '__UNASSIGNED__'
UNASSIGNED_INSTRUCTOR_LABEL = 'Unassigned'


class RoleShape(str, Enum):
    BY_COURSE = 'by_course'
    DEPARTMENT_PROGRAM_COURSE = 'department_program_course'
    PROGRAM_INSTRUCTOR_COURSE = 'program_instructor_course'


_ROLE_SHAPES = {
    'dean': RoleShape.DEPARTMENT_PROGRAM_COURSE,
    'hod': RoleShape.PROGRAM_INSTRUCTOR_COURSE,
    'teacher': RoleShape.BY_COURSE,
}


class _Level(NamedTuple):
    name: str
    token: str
    key: Callable[[Student], str]
    label: Callable[[str], str]


def shape_for_role(role: Optional[str]) -> RoleShape:
    return _ROLE_SHAPES.get(role or '', RoleShape.BY_COURSE)


def _section_id(parent: Optional[str], token: str, key: str) -> str:
    return f"{parent}-{token}-{key}" if parent else f"{token}-{key}"


def _build(
    students: Sequence[Student],
    levels: Sequence[_Level],
    parent_section: Optional[str],
    expanded: frozenset
) -> List[GroupNode]:
    level = levels[0]
    buckets: Dict[str, List[Student]] = {}
    for s in students:
        buckets.setdefault(level.key(s), []).append(s)

    nodes = []
    for key, members in buckets.items():
        section_id = _section_id(parent_section, level.token, key)
        node = GroupNode(
            key=key,
            label=level.label(key),
            level=level.name,
            section_id=section_id,
            counts=aggregate(members),
            expanded=section_id in expanded,
        )
        if len(levels) > 1:
            node.children = _build(members, levels[1:], section_id, expanded)
        else:
            node.students = list(members)
        nodes.append(node)

    nodes.sort(key=lambda n: (n.label, n.key))
    return nodes


def group_hierarchy(
    students: Sequence[Student],
    shape: RoleShape,
    departments: Iterable[Department] = (),
    courses: Iterable[Course] = (),
    course_instructors: Optional[Mapping[str, str]] = None,
    instructor_names: Optional[Mapping[str, str]] = None,
    expanded_ids: Iterable[str] = ()
) -> List[GroupNode]:
    """
    Organize students into the nested view for a role.

    Args:
        students: Scoped and filtered students
        shape: BY_COURSE (teacher), DEPARTMENT_PROGRAM_COURSE (dean) or
            PROGRAM_INSTRUCTOR_COURSE (hod)
        departments: Used for department labels
        courses: Used for course labels
        course_instructors: course id -> teacher id, for the hod shape
        instructor_names: teacher id -> display name
        expanded_ids: Section ids the client has open; echoed back on the
            matching nodes and otherwise not interpreted

    Returns:
        Top-level GroupNodes; siblings are sorted by label at every level
    """
    department_names = {d.id: d.name for d in departments}
    course_names = {c.id: c.name for c in courses}
    course_instructors = course_instructors or {}
    instructor_names = instructor_names or {}

    def course_label(course_id: str) -> str:
        name = course_names.get(course_id)
        return f"{course_id} - {name}" if name else course_id

    def instructor_label(instructor_id: str) -> str:
        if instructor_id == UNASSIGNED_INSTRUCTOR_ID:
            return UNASSIGNED_INSTRUCTOR_LABEL
        return instructor_names.get(instructor_id, instructor_id)

    department = _Level('department', 'dept', lambda s: s.department_id,
                        lambda key: department_names.get(key, key))
    program = _Level('program', 'prog', lambda s: program_of(s.course_id), lambda key: key)
    instructor = _Level('instructor', 'inst',
                        lambda s: course_instructors.get(s.course_id, UNASSIGNED_INSTRUCTOR_ID),
                        instructor_label)
    course = _Level('course', 'course', lambda s: s.course_id, course_label)

    if shape == RoleShape.DEPARTMENT_PROGRAM_COURSE:
        levels = [department, program, course]
    elif shape == RoleShape.PROGRAM_INSTRUCTOR_COURSE:
        levels = [program, instructor, course]
    else:
        levels = [course]

    if not students:
        return []
    return _build(students, levels, None, frozenset(expanded_ids))


def paginate(items: Sequence, page: int = 1, page_size: int = DEFAULT_PAGE_SIZE) -> Page:
    """
    Slice one page out of a flat list.

    The page is clamped to at least 1; a page past the end yields an empty
    slice rather than an error.
    """
    page = max(1, page)
    page_size = max(1, page_size)
    total = len(items)
    total_pages = max(1, math.ceil(total / page_size))
    start = (page - 1) * page_size
    return Page(
        items=list(items[start:start + page_size]),
        total=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages,
    )
