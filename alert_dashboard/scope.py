"""Role scoping: what each viewer is allowed to see."""

from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Set

from alert_dashboard.models import (
    Course,
    DeanScope,
    Department,
    HodScope,
    RoleScope,
    Student,
    TeacherScope,
    User,
)


ROLE_LABELS = {
    'dean': 'Dean',
    'hod': 'Head of Department',
    'teacher': 'Teacher',
}

DASHBOARD_HEADERS = {
    'dean': 'Faculty Overview - Dean Dashboard',
    'hod': 'Department Overview - HoD Dashboard',
    'teacher': 'Course Dashboard',
}


def role_scope_for(user: Optional[User]) -> Optional[RoleScope]:
    """
    Build the scope for a viewer.

    Returns None for a missing user or an unknown role; every scope function
    treats None as "sees nothing".
    """
    if user is None:
        return None
    if user.role == 'dean':
        return DeanScope(faculty_id=user.faculty_id or None)
    if user.role == 'hod':
        return HodScope(department_ids=frozenset(user.department_ids or ()))
    if user.role == 'teacher':
        return TeacherScope(course_ids=frozenset(user.course_ids or ()))
    return None


def _faculty_matches(scope: DeanScope, faculty_id: Optional[str]) -> bool:
    return scope.faculty_id is None or faculty_id == scope.faculty_id


def scope_students(scope: Optional[RoleScope], students: Sequence[Student]) -> List[Student]:
    """Filter students down to the scope, keeping their original order."""
    if isinstance(scope, DeanScope):
        return [s for s in students if _faculty_matches(scope, s.faculty_id)]
    if isinstance(scope, HodScope):
        if not scope.department_ids:
            return []
        return [s for s in students if s.department_id in scope.department_ids]
    if isinstance(scope, TeacherScope):
        if not scope.course_ids:
            return []
        return [s for s in students if s.course_id in scope.course_ids]
    return []


def scope_courses(
    scope: Optional[RoleScope],
    courses: Sequence[Course],
    departments: Iterable[Department] = ()
) -> List[Course]:
    """
    Courses visible to the scope.

    A dean's courses are those whose department belongs to the dean's
    faculty; a course whose department is not listed falls back to its own
    faculty_id.
    """
    if isinstance(scope, DeanScope):
        faculty_of = {d.id: d.faculty_id for d in departments}
        return [
            c for c in courses
            if _faculty_matches(scope, faculty_of.get(c.department_id, c.faculty_id))
        ]
    if isinstance(scope, HodScope):
        if not scope.department_ids:
            return []
        return [c for c in courses if c.department_id in scope.department_ids]
    if isinstance(scope, TeacherScope):
        if not scope.course_ids:
            return []
        return [c for c in courses if c.id in scope.course_ids]
    return []


def scope_departments(
    scope: Optional[RoleScope],
    departments: Sequence[Department],
    courses: Iterable[Course] = ()
) -> List[Department]:
    """
    Departments visible to the scope.

    A teacher sees the departments owning their courses, which is why the
    course list is needed.
    """
    if isinstance(scope, DeanScope):
        return [d for d in departments if _faculty_matches(scope, d.faculty_id)]
    if isinstance(scope, HodScope):
        if not scope.department_ids:
            return []
        return [d for d in departments if d.id in scope.department_ids]
    if isinstance(scope, TeacherScope):
        if not scope.course_ids:
            return []
        owning = {c.department_id for c in courses if c.id in scope.course_ids}
        return [d for d in departments if d.id in owning]
    return []


def build_course_instructor_map(users: Sequence[User]) -> Dict[str, str]:
    """
    Map each course id to the teacher who owns it.

    A course listed by several teachers belongs to the one listed last. This
    is the only ownership rule; build_instructor_index is derived from it.
    """
    mapping: Dict[str, str] = {}
    for u in users:
        if u.role != 'teacher':
            continue
        for course_id in u.course_ids or ():
            mapping[course_id] = u.id
    return mapping


def build_instructor_index(users: Sequence[User]) -> Dict[str, FrozenSet[str]]:
    """Map each teacher id to the course ids they own (possibly none)."""
    owned: Dict[str, Set[str]] = {u.id: set() for u in users if u.role == 'teacher'}
    for course_id, teacher_id in build_course_instructor_map(users).items():
        owned[teacher_id].add(course_id)
    return {teacher_id: frozenset(ids) for teacher_id, ids in owned.items()}


def scope_instructors(
    scope: Optional[RoleScope],
    users: Sequence[User],
    courses: Sequence[Course],
    departments: Iterable[Department] = ()
) -> List[User]:
    """Teachers who own at least one course inside the scope."""
    visible = {c.id for c in scope_courses(scope, courses, departments)}
    if not visible:
        return []
    index = build_instructor_index(users)
    return [
        u for u in users
        if u.role == 'teacher' and visible.intersection(index.get(u.id, ()))
    ]
