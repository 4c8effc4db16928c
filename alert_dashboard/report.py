"""Per-student alert report comparing a student against their class."""

from typing import Optional

from alert_dashboard.models import AlertReport, AttendanceComparison, GpaComparison, Student
from alert_dashboard.thresholds import DEFAULT_POLICY, ThresholdPolicy, attendance_percentage


def _format_drop(value: float) -> str:
    return f"{value:.1f}"


def gpa_alert_reason(student: Student, policy: ThresholdPolicy = DEFAULT_POLICY) -> Optional[str]:
    """Name the GPA-drop cutoff the student crossed, if any."""
    if student.gpa.alert_level == 'critical':
        return f"GPA drop >= {_format_drop(policy.gpa_critical_drop)}"
    if student.gpa.alert_level == 'warning':
        return f"GPA drop >= {_format_drop(policy.gpa_warning_drop)}"
    return None


def generate_alert_report(student: Student, policy: Optional[ThresholdPolicy] = None) -> AlertReport:
    """
    Build the attendance and GPA comparison shown on a student's page.

    Attendance status is 'above_average' unless the student is below the class
    average, in which case it is 'critical' at or under the critical cutoff and
    'below_average' otherwise.
    """
    policy = policy or DEFAULT_POLICY
    att = student.attendance
    gpa = student.gpa

    status = 'above_average'
    if att.deviation < 0:
        if attendance_percentage(student) <= policy.attendance_critical:
            status = 'critical'
        else:
            status = 'below_average'

    return AlertReport(
        student_id=student.id,
        attendance_comparison=AttendanceComparison(
            student_percentage=att.percentage,
            class_average=att.class_average,
            deviation=att.deviation,
            total_classes=att.total_classes_held,
            attended=att.classes_attended,
            total_students=att.total_students_in_class or 0,
            status=status,
        ),
        gpa_comparison=GpaComparison(
            current=gpa.current,
            previous=gpa.previous,
            change=gpa.change,
            trend=gpa.trend,
            class_average_current=gpa.class_average_current,
            class_average_previous=gpa.class_average_previous,
            history=gpa.history,
            alert_triggered=gpa.alert_level is not None,
            alert_reason=gpa_alert_reason(student, policy),
        ),
    )
