"""
Tests for cascading filters.
"""

from alert_dashboard.filters import (
    AlertFilter,
    apply_filters,
    build_selection,
    parse_alert_filter,
    parse_dimension_filters,
    parse_multi,
    program_of,
    resolve_options,
    resolve_selection,
)
from alert_dashboard.models import FilterSelection
from alert_dashboard.scope import (
    build_course_instructor_map,
    build_instructor_index,
    role_scope_for,
    scope_students,
)


def ids(students):
    return [s.id for s in students]


def values(options):
    return [o.value for o in options]


def test_program_of():
    """Test program code extraction from course ids."""
    assert program_of('CS101') == 'CS'
    assert program_of('mech105') == 'MECH'
    assert program_of('101A') == '10'


def test_parse_multi_splits_commas():
    """Test repeated and comma-joined values are flattened."""
    assert parse_multi(['A,B', ' C ', '', None]) == frozenset({'A', 'B', 'C'})
    assert parse_multi(None) == frozenset()


def test_parse_dimension_filters_drops_unknown_values():
    """Test 'all' and unknown values are dropped."""
    assert parse_dimension_filters(['red,all', 'bogus', 'Yellow']) == frozenset({'red', 'yellow'})


def test_parse_alert_filter_falls_back_to_all():
    """Test unrecognized alert shorthands mean no filter."""
    assert parse_alert_filter('red_gpa') == AlertFilter.RED_GPA
    assert parse_alert_filter('bogus') == AlertFilter.ALL
    assert parse_alert_filter(None) == AlertFilter.ALL


def test_build_selection_uppercases_programs():
    """Test program values are normalized to upper case."""
    selection = build_selection(programs=['cs'], gpa_filters=['all'], alert_filter='nope')
    assert selection.programs == frozenset({'CS'})
    assert selection.gpa_filters == frozenset()
    assert selection.alert_filter == 'all'
    assert selection.has_active_filter()


def test_has_active_filter():
    """Test every selected level, dimension and alert shorthand counts as a filter."""
    assert not FilterSelection().has_active_filter()
    assert not build_selection(gpa_filters=['all'], alert_filter='bogus').has_active_filter()
    assert FilterSelection(alert_filter='red_gpa').has_active_filter()
    assert FilterSelection(attendance_filters=frozenset({'red'})).has_active_filter()
    assert FilterSelection(instructor_ids=frozenset({'teacher_a'})).has_active_filter()


def test_with_methods_clear_descendants():
    """Test changing a level clears every level below it."""
    selection = FilterSelection(
        department_ids=frozenset({'DEPT_CS'}),
        programs=frozenset({'CS'}),
        course_ids=frozenset({'CS101'}),
        instructor_ids=frozenset({'teacher_a'}),
        gpa_filters=frozenset({'red'}),
    )
    changed = selection.with_departments({'DEPT_EE'})
    assert changed.department_ids == frozenset({'DEPT_EE'})
    assert changed.programs == frozenset()
    assert changed.course_ids == frozenset()
    assert changed.instructor_ids == frozenset()
    assert changed.gpa_filters == frozenset({'red'})

    changed = selection.with_courses({'CS102'})
    assert changed.programs == frozenset({'CS'})
    assert changed.instructor_ids == frozenset()
    assert selection.course_ids == frozenset({'CS101'})


def test_instructor_maps(snapshot):
    """Test instructor index and course owner map."""
    index = build_instructor_index(snapshot.users)
    assert index['teacher_a'] == frozenset({'CS101', 'SE101'})
    assert index['teacher_none'] == frozenset()
    assert 'hod_cs' not in index

    owners = build_course_instructor_map(snapshot.users)
    assert owners['CS101'] == 'teacher_a'
    assert 'CS102' not in owners

def co_taught_users(snapshot, users):
    """Roster users plus teacher_d, listed after teacher_a and also teaching CS101."""
    second = users['teacher_b'].model_copy(
        update={'id': 'teacher_d', 'name': 'Dawood Raza', 'course_ids': ['CS101']}
    )
    return list(snapshot.users) + [second]


def test_course_instructor_map_last_teacher_wins(snapshot, users):
    """Test a course listed by two teachers belongs to the later one."""
    owners = build_course_instructor_map(co_taught_users(snapshot, users))
    assert owners['CS101'] == 'teacher_d'
    assert owners['SE101'] == 'teacher_a'


def test_instructor_index_agrees_with_owner_map(snapshot, users):
    """Test a co-taught course is indexed only under its owner."""
    roster_users = co_taught_users(snapshot, users)
    index = build_instructor_index(roster_users)
    assert index['teacher_a'] == frozenset({'SE101'})
    assert index['teacher_d'] == frozenset({'CS101'})

    owners = build_course_instructor_map(roster_users)
    for teacher_id, course_ids in index.items():
        assert all(owners[c] == teacher_id for c in course_ids)


def test_instructor_filter_co_taught_course(snapshot, users):
    """Test the instructor filter follows course ownership for a co-taught course."""
    index = build_instructor_index(co_taught_users(snapshot, users))
    by_alice = FilterSelection(instructor_ids=frozenset({'teacher_a'}))
    by_dawood = FilterSelection(instructor_ids=frozenset({'teacher_d'}))
    assert ids(apply_filters(snapshot.students, by_alice, index)) == ['S4']
    assert ids(apply_filters(snapshot.students, by_dawood, index)) == ['S1', 'S2']


def test_resolve_options_co_taught_course(snapshot, users):
    """Test instructor options for a co-taught course list only its owner."""
    co_taught = snapshot.model_copy(update={'users': co_taught_users(snapshot, users)})
    scope = role_scope_for(users['dean_all'])
    options = resolve_options(scope, co_taught, FilterSelection(course_ids=frozenset({'CS101'})))
    assert values(options.instructors) == ['teacher_d']


def test_department_filter(snapshot):
    """Test department values are OR-ed."""
    selection = FilterSelection(department_ids=frozenset({'DEPT_CS', 'DEPT_EE'}))
    assert ids(apply_filters(snapshot.students, selection)) == ['S1', 'S2', 'S3', 'S4', 'S5']


def test_program_filter(snapshot):
    """Test program filter matches on course prefix."""
    selection = FilterSelection(programs=frozenset({'SE'}))
    assert ids(apply_filters(snapshot.students, selection)) == ['S4']


def test_instructor_filter(snapshot):
    """Test instructor filter matches the instructor's courses."""
    selection = FilterSelection(instructor_ids=frozenset({'teacher_a'}))
    index = build_instructor_index(snapshot.users)
    assert ids(apply_filters(snapshot.students, selection, index)) == ['S1', 'S2', 'S4']


def test_instructor_filter_without_index_matches_nothing(snapshot):
    """Test an instructor selection cannot be resolved without an index."""
    selection = FilterSelection(instructor_ids=frozenset({'teacher_a'}))
    assert apply_filters(snapshot.students, selection) == []


def test_stale_ids_match_nothing(snapshot):
    """Test ids that are not in the roster never widen the result."""
    assert apply_filters(snapshot.students, FilterSelection(department_ids=frozenset({'DEPT_XX'}))) == []
    assert apply_filters(snapshot.students, FilterSelection(course_ids=frozenset({'ZZ999'}))) == []


def test_dimension_filters(snapshot):
    """Test GPA and attendance level filters."""
    students = snapshot.students
    assert ids(apply_filters(students, FilterSelection(gpa_filters=frozenset({'red'})))) == ['S4']
    assert ids(apply_filters(students, FilterSelection(gpa_filters=frozenset({'yellow', 'good'})))) == [
        'S1', 'S2', 'S3', 'S5', 'S6'
    ]
    assert ids(apply_filters(students, FilterSelection(attendance_filters=frozenset({'good'})))) == [
        'S2', 'S4', 'S6'
    ]


def test_dimensions_are_and_ed(snapshot):
    """Test filters on different dimensions must all match."""
    selection = FilterSelection(
        attendance_filters=frozenset({'red'}),
        gpa_filters=frozenset({'yellow'}),
    )
    assert ids(apply_filters(snapshot.students, selection)) == ['S1']

    selection = selection.with_departments({'DEPT_EE'})
    assert apply_filters(snapshot.students, selection) == []


def test_alert_filter(snapshot):
    """Test the alert shorthand filters."""
    students = snapshot.students

    def alerted(value):
        return ids(apply_filters(students, build_selection(alert_filter=value)))

    assert alerted('red_gpa') == ['S4']
    assert alerted('early_alert') == ['S1', 'S3', 'S4', 'S5']
    assert alerted('attendance') == ['S1', 'S3', 'S5']
    assert alerted('bogus') == ['S1', 'S2', 'S3', 'S4', 'S5', 'S6']
    assert alerted('yellow_attendance') == ['S3', 'S5']


def test_filtered_set_stays_within_input(snapshot):
    """Test the filtered result is always a subset of the input."""
    subset = snapshot.students[:3]
    selection = FilterSelection(department_ids=frozenset({'DEPT_CS', 'DEPT_EE', 'DEPT_BBA'}))
    assert ids(apply_filters(subset, selection)) == ['S1', 'S2', 'S3']


def test_resolve_options_for_hod(snapshot, users):
    """Test options are limited to the HoD's departments."""
    scope = role_scope_for(users['hod_cs'])
    options = resolve_options(scope, snapshot, FilterSelection())
    assert values(options.departments) == ['DEPT_CS']
    assert values(options.programs) == ['CS', 'SE']
    assert values(options.courses) == ['CS101', 'CS102', 'SE101']
    assert [o.label for o in options.courses][0] == 'CS101 - Introduction to Programming'
    assert values(options.instructors) == ['teacher_a']


def test_resolve_options_cascade(snapshot, users):
    """Test each selected level narrows the levels below it."""
    scope = role_scope_for(users['dean_all'])
    options = resolve_options(scope, snapshot, FilterSelection(department_ids=frozenset({'DEPT_EE'})))
    assert values(options.departments) == ['DEPT_BBA', 'DEPT_CS', 'DEPT_EE', 'DEPT_ME']
    assert values(options.programs) == ['EE']
    assert values(options.courses) == ['EE101']
    assert values(options.instructors) == ['teacher_b']

    options = resolve_options(scope, snapshot, FilterSelection(programs=frozenset({'CS'})))
    assert values(options.courses) == ['CS101', 'CS102']
    assert values(options.instructors) == ['teacher_a']


def test_resolve_options_sorted_by_label(snapshot, users):
    """Test instructor options are ordered by name."""
    scope = role_scope_for(users['dean_all'])
    options = resolve_options(scope, snapshot, FilterSelection())
    assert [o.label for o in options.instructors] == ['Alice Khan', 'Bilal Ahmed', 'Zara Malik']


def test_resolve_selection_prunes_stale_children(snapshot, users):
    """Test a program outside the selected department is dropped along with its descendants."""
    scope = role_scope_for(users['dean_all'])
    selection = FilterSelection(
        department_ids=frozenset({'DEPT_EE'}),
        programs=frozenset({'CS'}),
        course_ids=frozenset({'CS101'}),
    )
    pruned, options = resolve_selection(scope, snapshot, selection)
    assert pruned.department_ids == frozenset({'DEPT_EE'})
    assert pruned.programs == frozenset()
    assert pruned.course_ids == frozenset()
    assert values(options.courses) == ['EE101']


def test_resolve_selection_keeps_valid_children(snapshot, users):
    """Test children consistent with their parents survive."""
    scope = role_scope_for(users['dean_all'])
    selection = FilterSelection(
        department_ids=frozenset({'DEPT_CS'}),
        programs=frozenset({'CS'}),
        course_ids=frozenset({'CS101'}),
    )
    pruned, _ = resolve_selection(scope, snapshot, selection)
    assert pruned == selection


def test_resolve_selection_keeps_unknown_root_values(snapshot, users):
    """Test an unknown department is kept so it still matches nothing."""
    scope = role_scope_for(users['hod_cs'])
    selection = FilterSelection(department_ids=frozenset({'DEPT_EE'}))
    pruned, _ = resolve_selection(scope, snapshot, selection)
    assert pruned.department_ids == frozenset({'DEPT_EE'})
    assert apply_filters(scope_students(scope, snapshot.students), pruned) == []
