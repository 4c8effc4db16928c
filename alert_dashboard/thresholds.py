"""Alert thresholds: attendance and GPA-drop rules."""

from typing import Dict, NamedTuple, Optional

from alert_dashboard.models import Student


class ThresholdPolicy(NamedTuple):
    """
    Cutoffs used to derive alert levels.

    Attendance cutoffs are upper bounds on the attendance percentage; GPA
    cutoffs are lower bounds on the size of a GPA drop.
    """
    attendance_critical: float = 20.0
    attendance_warning: float = 40.0
    gpa_critical_drop: float = 1.0
    gpa_warning_drop: float = 0.5


DEFAULT_POLICY = ThresholdPolicy()


class AlertEvaluation(NamedTuple):
    attendance_alert: Optional[str]
    gpa_alert: Optional[str]
    overall_alert: str


def validate_policy(policy: ThresholdPolicy) -> ThresholdPolicy:
    """
    Reject policies whose critical cutoff is less severe than the warning one.

    Raises:
        ValueError: If the cutoffs are inverted.
    """
    if policy.attendance_critical > policy.attendance_warning:
        raise ValueError(
            f"attendance_critical ({policy.attendance_critical}) must not exceed "
            f"attendance_warning ({policy.attendance_warning})"
        )
    if policy.gpa_critical_drop < policy.gpa_warning_drop:
        raise ValueError(
            f"gpa_critical_drop ({policy.gpa_critical_drop}) must not be below "
            f"gpa_warning_drop ({policy.gpa_warning_drop})"
        )
    return policy


def parse_thresholds(thresholds_str: Optional[str]) -> ThresholdPolicy:
    """
    Build a policy from a 'key:value,key:value' string.

    Args:
        thresholds_str: e.g. 'attendance_critical:20,gpa_warning_drop:0.5'.
            Keys that are not set keep their default value.

    Returns:
        A validated ThresholdPolicy

    Raises:
        ValueError: On an unknown key, a non-numeric value or inverted cutoffs.
    """
    values: Dict[str, float] = {}
    if thresholds_str:
        for item in thresholds_str.split(','):
            if not item.strip():
                continue
            key, _, value = item.partition(':')
            key = key.strip()
            if key not in ThresholdPolicy._fields:
                raise ValueError(f"Unknown threshold '{key}'")
            values[key] = float(value.strip())
    return validate_policy(ThresholdPolicy(**values))


def attendance_alert(percentage: float, policy: ThresholdPolicy = DEFAULT_POLICY) -> Optional[str]:
    """Critical at or below the critical cutoff, warning at or below the warning cutoff."""
    if percentage <= policy.attendance_critical:
        return 'critical'
    elif percentage <= policy.attendance_warning:
        return 'warning'
    return None


def gpa_alert(change: float, policy: ThresholdPolicy = DEFAULT_POLICY) -> Optional[str]:
    """Only decreases count; a GPA increase never raises an alert."""
    drop = max(0.0, -change)
    if drop >= policy.gpa_critical_drop:
        return 'critical'
    elif drop >= policy.gpa_warning_drop:
        return 'warning'
    return None


def overall_alert(attendance_level: Optional[str], gpa_level: Optional[str]) -> str:
    """Worst of the two dimension alerts."""
    if attendance_level == 'critical' or gpa_level == 'critical':
        return 'critical'
    if attendance_level == 'warning' or gpa_level == 'warning':
        return 'warning'
    return 'none'


def evaluate(
    attendance_percentage: float,
    deviation_from_avg: float,
    gpa_change: float,
    policy: Optional[ThresholdPolicy] = None
) -> AlertEvaluation:
    """
    Derive attendance, GPA and overall alert levels for one student.

    Args:
        attendance_percentage: Unrounded attendance percentage (0-100)
        deviation_from_avg: Deviation from the class average; reported, not thresholded
        gpa_change: Current GPA minus previous GPA
        policy: Threshold cutoffs, DEFAULT_POLICY when omitted

    Returns:
        AlertEvaluation with the three levels
    """
    policy = policy or DEFAULT_POLICY
    att = attendance_alert(attendance_percentage, policy)
    gpa = gpa_alert(gpa_change, policy)
    return AlertEvaluation(att, gpa, overall_alert(att, gpa))


def attendance_percentage(student: Student) -> float:
    """Unrounded percentage from the class counts, or the stored value when no classes were held."""
    att = student.attendance
    if att.total_classes_held > 0:
        return att.classes_attended / att.total_classes_held * 100.0
    return att.percentage


def apply_alerts(student: Student, policy: Optional[ThresholdPolicy] = None) -> Student:
    """Return a copy of the student with alert levels recomputed from the raw figures."""
    result = evaluate(
        attendance_percentage(student),
        student.attendance.deviation,
        student.gpa.change,
        policy
    )
    return student.model_copy(update={
        'attendance': student.attendance.model_copy(update={'alert_level': result.attendance_alert}),
        'gpa': student.gpa.model_copy(update={'alert_level': result.gpa_alert}),
        'overall_alert': result.overall_alert,
    })
