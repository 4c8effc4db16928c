"""Shared roster fixtures."""

import pytest

from alert_dashboard.parsers import load_snapshot


CLASSES_HELD = 20


def make_student(student_id, course_id, department_id, attended, change, name=None):
    """Raw snapshot row; alert levels are left for the loader to derive."""
    pct = attended / CLASSES_HELD * 100
    return {
        'sap_id': student_id,
        'name': name or f"Student {student_id}",
        'course_id': course_id,
        'department_id': department_id,
        'attendance': {
            'total_classes_held': CLASSES_HELD,
            'classes_attended': attended,
            'attendance_percentage': round(pct),
            'class_average_attendance': 60.0,
            'deviation_from_class_avg': round(pct - 60.0, 1),
            'alert_level': None,
        },
        'gpa': {
            'current': round(3.0 + change, 2),
            'previous': 3.0,
            'change': change,
            'trend': 'up' if change > 0.1 else 'down' if change < -0.1 else 'stable',
            'class_average_gpa_current': 3.0,
            'class_average_gpa_previous': 3.1,
            'history': [
                {'semester': 'Fall 2024', 'gpa': 3.0, 'credit_hours': 15},
                {'semester': 'Spring 2025', 'gpa': round(3.0 + change, 2), 'credit_hours': 15},
            ],
            'alert_level': None,
        },
        'overall_alert': 'none',
    }


@pytest.fixture
def raw_roster():
    """
    Six students across three departments:

    S1 CS101 15% att, -0.9 GPA  -> att critical, gpa warning, overall critical
    S2 CS101 90% att, +0.2 GPA  -> none
    S3 CS102 35% att, -0.6 GPA  -> att warning, gpa warning, overall warning
    S4 SE101 80% att, -1.2 GPA  -> gpa critical, overall critical
    S5 EE101 40% att,  0.0 GPA  -> att warning, overall warning
    S6 BBA101 100% att, +0.5 GPA -> none
    """
    return {
        'metadata': {},
        'faculties': [
            {'id': 'FAC_ENG', 'name': 'Engineering'},
            {'id': 'FAC_MGT', 'name': 'Management'},
        ],
        'departments': [
            {'id': 'DEPT_CS', 'name': 'Computer Science', 'faculty_id': 'FAC_ENG'},
            {'id': 'DEPT_EE', 'name': 'Electrical Engineering', 'faculty_id': 'FAC_ENG'},
            {'id': 'DEPT_ME', 'name': 'Mechanical Engineering', 'faculty_id': 'FAC_ENG'},
            {'id': 'DEPT_BBA', 'name': 'Business Administration', 'faculty_id': 'FAC_MGT'},
        ],
        'courses': [
            {'id': 'CS101', 'name': 'Introduction to Programming', 'department_id': 'DEPT_CS',
             'faculty_id': 'FAC_ENG', 'total_classes_held': 20, 'credit_hours': 3, 'semester': 'Spring 2025'},
            {'id': 'CS102', 'name': 'Data Structures', 'department_id': 'DEPT_CS',
             'faculty_id': 'FAC_ENG', 'total_classes_held': 20, 'credit_hours': 3, 'semester': 'Spring 2025'},
            {'id': 'SE101', 'name': 'Software Engineering I', 'department_id': 'DEPT_CS',
             'faculty_id': 'FAC_ENG', 'total_classes_held': 20, 'credit_hours': 3, 'semester': 'Spring 2025'},
            {'id': 'EE101', 'name': 'Circuit Analysis', 'department_id': 'DEPT_EE',
             'faculty_id': 'FAC_ENG', 'total_classes_held': 20, 'credit_hours': 3, 'semester': 'Spring 2025'},
            {'id': 'BBA101', 'name': 'Principles of Management', 'department_id': 'DEPT_BBA',
             'faculty_id': 'FAC_MGT', 'total_classes_held': 20, 'credit_hours': 3, 'semester': 'Spring 2025'},
        ],
        'users': [
            {'id': 'dean_all', 'name': 'Dean Rehman', 'role': 'dean', 'faculty_id': None},
            {'id': 'dean_eng', 'name': 'Dean Qureshi', 'role': 'dean', 'faculty_id': 'FAC_ENG'},
            {'id': 'hod_cs', 'name': 'Dr. Hassan', 'role': 'hod', 'department_ids': ['DEPT_CS']},
            {'id': 'hod_none', 'name': 'Dr. Nobody', 'role': 'hod', 'department_ids': []},
            {'id': 'teacher_a', 'name': 'Alice Khan', 'role': 'teacher',
             'department_id': 'DEPT_CS', 'course_ids': ['CS101', 'SE101']},
            {'id': 'teacher_b', 'name': 'Bilal Ahmed', 'role': 'teacher',
             'department_id': 'DEPT_EE', 'course_ids': ['EE101']},
            {'id': 'teacher_c', 'name': 'Zara Malik', 'role': 'teacher',
             'department_id': 'DEPT_BBA', 'course_ids': ['BBA101']},
            {'id': 'teacher_none', 'name': 'New Hire', 'role': 'teacher', 'course_ids': None},
            {'id': 'registrar', 'name': 'Registrar', 'role': 'registrar'},
        ],
        'students': [
            make_student('S1', 'CS101', 'DEPT_CS', attended=3, change=-0.9),
            make_student('S2', 'CS101', 'DEPT_CS', attended=18, change=0.2),
            make_student('S3', 'CS102', 'DEPT_CS', attended=7, change=-0.6),
            make_student('S4', 'SE101', 'DEPT_CS', attended=16, change=-1.2),
            make_student('S5', 'EE101', 'DEPT_EE', attended=8, change=0.0),
            make_student('S6', 'BBA101', 'DEPT_BBA', attended=20, change=0.5),
        ],
        'student_actions': [
            {'id': 'act-seed-1', 'student_sap_id': 'S1', 'action_type': 'sent_email',
             'result': 'escalated', 'performed_at': '2025-03-01T09:00:00Z'},
        ],
    }


@pytest.fixture
def snapshot(raw_roster):
    return load_snapshot(raw_roster)


@pytest.fixture
def users(snapshot):
    return {u.id: u for u in snapshot.users}


@pytest.fixture
def students(snapshot):
    return {s.id: s for s in snapshot.students}
