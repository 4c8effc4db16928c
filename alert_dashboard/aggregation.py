"""Alert counting over arbitrary student subsets."""

from typing import Callable, Dict, List, Mapping, Optional, Protocol, Sequence

from alert_dashboard.filters import program_of
from alert_dashboard.models import AlertCounts, Department, GroupStats, StatusCount, Student, User
from alert_dashboard.scope import build_course_instructor_map


INTERVENTION_STATUS_ORDER = ['not_started', 'initiated', 'in-progress', 'referred', 'resolved']


class LatestStatusLookup(Protocol):
    def latest_status(self, student_id: str) -> Optional[str]: ...


def aggregate(students: Sequence[Student]) -> AlertCounts:
    """
    Count alerts in a single pass.

    A student adds to at most one of yellow/red per dimension but may add to
    both dimensions. ``healthy`` is derived from overall_alert, so a student
    with both alerts is only subtracted once.
    """
    total = yellow_gpa = red_gpa = yellow_att = red_att = critical = warning = 0
    for s in students:
        total += 1
        if s.gpa.alert_level == 'critical':
            red_gpa += 1
        elif s.gpa.alert_level == 'warning':
            yellow_gpa += 1
        if s.attendance.alert_level == 'critical':
            red_att += 1
        elif s.attendance.alert_level == 'warning':
            yellow_att += 1
        if s.overall_alert == 'critical':
            critical += 1
        elif s.overall_alert == 'warning':
            warning += 1

    return AlertCounts(
        total=total,
        yellow_gpa=yellow_gpa,
        red_gpa=red_gpa,
        yellow_attendance=yellow_att,
        red_attendance=red_att,
        critical=critical,
        warning=warning,
        early_alert_count=critical + warning,
        healthy=total - (critical + warning),
    )


def aggregate_by(
    students: Sequence[Student],
    key_fn: Callable[[Student], Optional[str]],
    labels: Optional[Mapping[str, str]] = None
) -> List[GroupStats]:
    """
    Group students by ``key_fn`` and aggregate each group.

    Args:
        students: Students to group
        key_fn: Returns the group key for a student, or None to leave it out
        labels: Optional key -> display label; its keys are always present
            in the output, with zero counts when no student falls in them

    Returns:
        GroupStats sorted by label, then key
    """
    labels = labels or {}
    groups: Dict[str, List[Student]] = {key: [] for key in labels}
    for s in students:
        key = key_fn(s)
        if key is None:
            continue
        groups.setdefault(key, []).append(s)

    stats = [
        GroupStats(key=key, label=labels.get(key, key), counts=aggregate(members))
        for key, members in groups.items()
    ]
    stats.sort(key=lambda g: (g.label, g.key))
    return stats


def department_stats(students: Sequence[Student], departments: Sequence[Department]) -> List[GroupStats]:
    """Per-department counts; every listed department appears, even when empty."""
    labels = {d.id: d.name for d in departments}
    return aggregate_by(students, lambda s: s.department_id, labels)


def program_stats(students: Sequence[Student]) -> List[GroupStats]:
    return aggregate_by(students, lambda s: program_of(s.course_id))


def instructor_stats(students: Sequence[Student], instructors: Sequence[User]) -> List[GroupStats]:
    """
    Per-instructor counts.

    Every teacher in ``instructors`` who owns a course appears; students in
    courses without a teacher are left out.
    """
    course_instructors = build_course_instructor_map(instructors)
    owners = set(course_instructors.values())
    labels = {u.id: u.name or u.id for u in instructors if u.id in owners}
    return aggregate_by(students, lambda s: course_instructors.get(s.course_id), labels)


def intervention_status_breakdown(
    students: Sequence[Student],
    repository: LatestStatusLookup
) -> List[StatusCount]:
    """
    Latest intervention status among alerted students.

    Students in good standing are not counted. A student with no recorded
    intervention counts as 'not_started'.
    """
    counts: Dict[str, int] = {status: 0 for status in INTERVENTION_STATUS_ORDER}
    for s in students:
        if s.overall_alert == 'none':
            continue
        status = repository.latest_status(s.id) or 'not_started'
        counts[status] = counts.get(status, 0) + 1

    known = [StatusCount(status=st, count=counts[st]) for st in INTERVENTION_STATUS_ORDER]
    extra = sorted(st for st in counts if st not in INTERVENTION_STATUS_ORDER)
    return known + [StatusCount(status=st, count=counts[st]) for st in extra]
