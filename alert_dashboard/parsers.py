"""Roster snapshot loading and spreadsheet import."""

import json
import re
from io import BytesIO
from typing import Dict, List, Mapping, Optional, Sequence, Union

import numpy as np
import pandas as pd
from pydantic import ValidationError

from alert_dashboard.models import Course, RosterSnapshot, Student
from alert_dashboard.thresholds import ThresholdPolicy, apply_alerts


class SnapshotError(ValueError):
    """The roster snapshot could not be parsed into the expected shape."""


# --- Snapshot (JSON) ---

def load_snapshot(
    raw: Union[str, bytes, Mapping],
    policy: Optional[ThresholdPolicy] = None
) -> RosterSnapshot:
    """
    Parse a roster snapshot and recompute every student's alert levels.

    Students and courses without a faculty_id inherit the one of their department.

    Args:
        raw: JSON text/bytes or an already decoded mapping
        policy: Threshold cutoffs used for the alert levels

    Returns:
        RosterSnapshot with derived fields filled in

    Raises:
        SnapshotError: If the input is not valid JSON or does not match the snapshot shape
    """
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise SnapshotError(f"Roster snapshot is not valid JSON: {e}") from e

    if not isinstance(raw, Mapping):
        raise SnapshotError("Roster snapshot must be a JSON object")

    try:
        snapshot = RosterSnapshot.model_validate(raw)
    except ValidationError as e:
        raise SnapshotError(f"Roster snapshot has an invalid shape: {e}") from e

    faculty_by_department = {d.id: d.faculty_id for d in snapshot.departments}
    courses = [
        c.model_copy(update={'faculty_id': faculty_by_department[c.department_id]})
        if c.faculty_id is None and faculty_by_department.get(c.department_id) else c
        for c in snapshot.courses
    ]
    students = []
    for s in snapshot.students:
        if s.faculty_id is None and faculty_by_department.get(s.department_id):
            s = s.model_copy(update={'faculty_id': faculty_by_department[s.department_id]})
        students.append(apply_alerts(s, policy))

    return snapshot.model_copy(update={'courses': courses, 'students': students})


def load_snapshot_file(path: str, policy: Optional[ThresholdPolicy] = None) -> RosterSnapshot:
    """Read and parse the snapshot at ``path``."""
    try:
        with open(path, 'r', encoding='utf-8') as f:
            raw = f.read()
    except OSError as e:
        raise SnapshotError(f"Could not read roster snapshot {path}: {e}") from e
    return load_snapshot(raw, policy)


# --- Spreadsheet import ---

ROSTER_COLUMNS = {
    "Student ID": ["student id", "studentid", "student#", "student number", "sap id", "sapid", "id"],
    "Student Name": ["student name", "studentname", "name", "student"],
    "Email": ["email", "e-mail", "student email"],
    "Course": ["course", "course id", "courseid", "course code"],
    "Department": ["department", "department id", "dept", "dept id"],
    "Classes Held": ["classes held", "total classes held", "total classes", "sessions held"],
    "Classes Attended": ["classes attended", "attended", "sessions attended"],
    "Attendance %": ["attendance", "attendance percent", "attendance %", "attendance pct"],
    "Class Average Attendance": ["class average attendance", "class avg attendance", "average attendance"],
    "Current GPA": ["current gpa", "gpa", "gpa current"],
    "Previous GPA": ["previous gpa", "prev gpa", "gpa previous", "last gpa"],
}

REQUIRED_COLUMNS = ["Student ID", "Student Name", "Course"]


def normalize_col_name(col_name) -> str:
    """Lowercase, trim, drop dots/commas/%/underscores and collapse whitespace."""
    if pd.isna(col_name):
        return ""
    normalized = str(col_name).strip().lower()
    normalized = re.sub(r'[.,%_]', ' ', normalized)
    normalized = re.sub(r'\s+', ' ', normalized)
    return normalized.strip()


def normalize_roster_columns(df: pd.DataFrame) -> pd.DataFrame:
    """
    Rename header variations to the canonical roster column names.

    Args:
        df: Raw sheet as read by pandas

    Returns:
        Copy of the DataFrame with canonical column names

    Raises:
        ValueError: If a required column is missing after renaming
    """
    df = df.copy()
    variations = {
        normalize_col_name(v): target
        for target, names in ROSTER_COLUMNS.items()
        for v in names + [target]
    }

    rename = {}
    for col in df.columns:
        target = variations.get(normalize_col_name(col))
        if target and target not in rename.values():
            rename[col] = target
    df = df.rename(columns=rename)

    if df.columns.duplicated().any():
        print(f"WARNING: Found duplicate roster columns: {df.columns[df.columns.duplicated()].tolist()}")
        df = df.loc[:, ~df.columns.duplicated(keep='first')]

    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Roster sheet is missing required columns: {', '.join(missing)}")
    return df


def normalize_pct(x) -> float:
    """
    Normalize percentage values.
    Handles both 0-1 decimals (e.g., 0.88) and 0-100 percentages (e.g., 88).

    Args:
        x: Value that might be in 0-1 range or 0-100 range

    Returns:
        Percentage in 0-100 range
    """
    if x is None or pd.isna(x):
        return 0.0

    try:
        if isinstance(x, str):
            val_str = x.strip().replace('%', '').strip()
            if not val_str:
                return 0.0
            val = float(val_str)
        else:
            val = float(x)

        if np.isnan(val) or np.isinf(val):
            return 0.0

        # <= 1 is a fraction, anything larger is already a percentage
        if val <= 1.0:
            return val * 100.0
        return val
    except (ValueError, TypeError):
        return 0.0


def to_number(value) -> float:
    """Coerce a cell to float; blanks, NaN and Infinity become 0.0."""
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return 0.0
    try:
        val = float(str(value).strip()) if isinstance(value, str) else float(value)
    except (ValueError, TypeError):
        return 0.0
    if np.isnan(val) or np.isinf(val):
        return 0.0
    return val


def load_roster_sheet(file_bytes: bytes, filename: str = "roster.xlsx") -> pd.DataFrame:
    """
    Read an uploaded roster sheet (.xlsx, .xls or .csv) into a normalized DataFrame.

    Raises:
        ValueError: If the file cannot be read or lacks required columns
    """
    name = filename.lower()
    try:
        if name.endswith('.csv'):
            df = pd.read_csv(BytesIO(file_bytes), dtype=str)
        else:
            df = pd.read_excel(BytesIO(file_bytes), dtype=str, engine='openpyxl' if name.endswith('.xlsx') else None)
    except Exception as e:
        raise ValueError(f"Could not read roster sheet: {e}") from e

    df = df.dropna(how='all')
    return normalize_roster_columns(df)


def _trend(change: float) -> str:
    if change > 0.1:
        return 'up'
    if change < -0.1:
        return 'down'
    return 'stable'


def rows_to_students(
    df: pd.DataFrame,
    courses: Sequence[Course] = (),
    policy: Optional[ThresholdPolicy] = None
) -> List[Student]:
    """
    Build students from a normalized roster sheet.

    Summary rows ("Total", "Summary") and rows without an id are dropped.
    Department, faculty and classes held come from the known course when the
    sheet does not provide them. Class averages are computed per course when
    the sheet has no class-average column.

    Args:
        df: Output of normalize_roster_columns
        courses: Known courses for filling in department/faculty
        policy: Threshold cutoffs

    Returns:
        Students with alert levels evaluated
    """
    df = df.copy()
    df["Student ID"] = df["Student ID"].astype(str).str.strip()
    names = df["Student Name"].astype(str)
    mask = (
        df["Student ID"].ne("") & df["Student ID"].ne("nan")
        & ~names.str.contains("Total", case=False, na=False)
        & ~names.str.contains("Summary", case=False, na=False)
    )
    df = df[mask].copy()
    if df.empty:
        return []

    course_map: Dict[str, Course] = {c.id: c for c in courses}
    df["Course"] = df["Course"].astype(str).str.strip()

    if "Classes Attended" in df.columns:
        held_default = df["Course"].map(lambda cid: course_map[cid].total_classes_held if cid in course_map else 0)
        df["_held"] = df["Classes Held"].map(to_number) if "Classes Held" in df.columns else held_default
        df["_held"] = df["_held"].where(df["_held"] > 0, held_default)
        df["_attended"] = df["Classes Attended"].map(to_number)
    else:
        # Without counts the sheet's percentage is the only attendance figure
        df["_held"] = 0.0
        df["_attended"] = 0.0

    if "Attendance %" in df.columns:
        df["_pct"] = df["Attendance %"].map(normalize_pct)
    else:
        held = df["_held"].replace(0, np.nan)
        df["_pct"] = (df["_attended"] / held * 100.0).fillna(0.0)

    if "Class Average Attendance" in df.columns:
        df["_class_avg"] = df["Class Average Attendance"].map(normalize_pct)
    else:
        df["_class_avg"] = df.groupby("Course")["_pct"].transform("mean")

    df["_gpa_current"] = df["Current GPA"].map(to_number) if "Current GPA" in df.columns else 0.0
    df["_gpa_previous"] = df["Previous GPA"].map(to_number) if "Previous GPA" in df.columns else df["_gpa_current"]
    df["_gpa_avg_current"] = df.groupby("Course")["_gpa_current"].transform("mean")
    df["_gpa_avg_previous"] = df.groupby("Course")["_gpa_previous"].transform("mean")

    students = []
    for _, row in df.iterrows():
        course_id = row["Course"]
        course = course_map.get(course_id)
        department_id = str(row.get("Department", "") or "").strip()
        if not department_id or department_id == "nan":
            department_id = course.department_id if course else "Unknown"
        email = row.get("Email")
        change = round(row["_gpa_current"] - row["_gpa_previous"], 2)

        student = Student(
            id=row["Student ID"],
            name=str(row["Student Name"]).strip() or "Unknown",
            email=str(email).strip() if email is not None and not pd.isna(email) else None,
            course_id=course_id,
            department_id=department_id,
            faculty_id=course.faculty_id if course else None,
            attendance={
                'total_classes_held': int(row["_held"]),
                'classes_attended': int(row["_attended"]),
                'percentage': round(float(row["_pct"]), 2),
                'class_average': round(float(row["_class_avg"]), 1),
                'deviation': round(float(row["_pct"] - row["_class_avg"]), 1),
            },
            gpa={
                'current': round(float(row["_gpa_current"]), 2),
                'previous': round(float(row["_gpa_previous"]), 2),
                'change': change,
                'trend': _trend(change),
                'class_average_current': round(float(row["_gpa_avg_current"]), 2),
                'class_average_previous': round(float(row["_gpa_avg_previous"]), 2),
            },
        )
        students.append(apply_alerts(student, policy))

    return students
