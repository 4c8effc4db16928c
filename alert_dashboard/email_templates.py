"""Outreach email drafts for students on early alert."""

import os
from typing import Dict, Optional

from alert_dashboard.models import Student


def get_advisor_info() -> Dict[str, str]:
    """Get advisor name and email from environment or defaults."""
    return {
        'name': os.getenv('ADVISOR_NAME', 'Academic Advisor'),
        'email': os.getenv('ADVISOR_EMAIL', 'advisor@example.com')
    }


def generate_email_draft(student: Student, course_name: Optional[str] = None) -> Dict[str, str]:
    """Generate an email draft tailored to which of the student's alerts are raised."""
    advisor = get_advisor_info()
    course = f"{student.course_id} ({course_name})" if course_name else student.course_id
    attendance_str = f"{student.attendance.percentage:.1f}"
    gpa_str = f"{student.gpa.current:.2f}"
    drop_str = f"{max(0.0, -student.gpa.change):.2f}"

    has_attendance = student.attendance.alert_level is not None
    has_gpa = student.gpa.alert_level is not None
    if has_attendance and has_gpa:
        return _combined_alert_email(student.name, course, attendance_str, gpa_str, drop_str, advisor)
    if has_attendance:
        return _attendance_alert_email(student.name, course, attendance_str, advisor)
    if has_gpa:
        return _gpa_alert_email(student.name, course, gpa_str, drop_str, advisor)
    return _good_standing_email(student.name, course, attendance_str, gpa_str, advisor)


def _good_standing_email(student_name: str, course: str, attendance_pct: str, gpa: str, advisor: Dict[str, str]) -> Dict[str, str]:
    subject = f"Keep Up the Good Work, {student_name}"
    body = f"""Hi {student_name},

You are in good standing in {course}, with {attendance_pct}% attendance and a current GPA of {gpa}.

Keep going at this pace. If you would like advice on study planning or enrichment opportunities, just reply to this email.

{advisor['name']}
{advisor['email']}"""
    return {'subject': subject, 'body': body}


def _attendance_alert_email(student_name: str, course: str, attendance_pct: str, advisor: Dict[str, str]) -> Dict[str, str]:
    subject = f"Your Attendance in {course}, {student_name}"
    body = f"""Hi {student_name},

Your attendance in {course} is currently {attendance_pct}%, which is below the level we expect.

Regular attendance makes a real difference to your results. If something is making it hard to attend, please contact your instructor or the Student Success Office so we can help.

{advisor['name']}
{advisor['email']}"""
    return {'subject': subject, 'body': body}


def _gpa_alert_email(student_name: str, course: str, gpa: str, drop: str, advisor: Dict[str, str]) -> Dict[str, str]:
    subject = f"Support With Your Academic Progress, {student_name}"
    body = f"""Hi {student_name},

Your GPA has dropped by {drop} points this semester and is now {gpa}.

I recommend meeting with your instructor for {course} or the Student Success team to review study techniques, tutoring options and other resources available to you.

{advisor['name']}
{advisor['email']}"""
    return {'subject': subject, 'body': body}


def _combined_alert_email(student_name: str, course: str, attendance_pct: str, gpa: str, drop: str, advisor: Dict[str, str]) -> Dict[str, str]:
    subject = f"Let's Work Together to Get You Back on Track, {student_name}"
    body = f"""Hi {student_name},

I'm reaching out about your progress in {course}. Your attendance is {attendance_pct}% and your GPA has dropped by {drop} points to {gpa}.

Please contact the Student Success Office or your instructor as soon as possible to put together a recovery plan. Tutoring, time management support and wellbeing services are all available to you.

You're not alone in this, and we're here to help.

{advisor['name']}
{advisor['email']}"""
    return {'subject': subject, 'body': body}
