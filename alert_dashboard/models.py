"""Data models for the Early Alert Dashboard."""

from typing import Any, Dict, FrozenSet, List, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


AlertLevel = Optional[Literal["critical", "warning"]]
OverallAlert = Literal["critical", "warning", "none"]


class GpaHistoryEntry(BaseModel):
    """One semester in a student's GPA history."""
    semester: str
    gpa: float
    credit_hours: float = 0


class Attendance(BaseModel):
    """Attendance figures for a student in their course."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    total_classes_held: int = 0
    classes_attended: int = 0
    percentage: float = Field(
        default=0.0,
        validation_alias=AliasChoices("percentage", "attendance_percentage"),
    )
    class_average: float = Field(
        default=0.0,
        validation_alias=AliasChoices("class_average", "class_average_attendance"),
    )
    deviation: float = Field(
        default=0.0,
        validation_alias=AliasChoices("deviation", "deviation_from_class_avg"),
    )
    total_students_in_class: Optional[int] = None
    alert_level: AlertLevel = None


class Gpa(BaseModel):
    """Current and previous GPA with the class averages they compare against."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    current: float = 0.0
    previous: float = 0.0
    change: float = 0.0
    trend: Literal["up", "down", "stable"] = "stable"
    class_average_current: float = Field(
        default=0.0,
        validation_alias=AliasChoices("class_average_current", "class_average_gpa_current"),
    )
    class_average_previous: float = Field(
        default=0.0,
        validation_alias=AliasChoices("class_average_previous", "class_average_gpa_previous"),
    )
    total_students_in_class: Optional[int] = None
    history: List[GpaHistoryEntry] = Field(default_factory=list)
    alert_level: AlertLevel = None


class Student(BaseModel):
    """A student row as loaded from the roster snapshot."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str = Field(..., validation_alias=AliasChoices("id", "sap_id"))
    name: str
    email: Optional[str] = None
    course_id: str
    department_id: str
    faculty_id: Optional[str] = None
    attendance: Attendance = Field(default_factory=Attendance)
    gpa: Gpa = Field(default_factory=Gpa)
    overall_alert: OverallAlert = "none"


class Course(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    department_id: str
    faculty_id: Optional[str] = None
    total_classes_held: int = 0
    credit_hours: float = 0
    semester: Optional[str] = None


class Department(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    faculty_id: Optional[str] = None


class Faculty(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str


class User(BaseModel):
    """A dashboard viewer. Role is kept as a plain string so unknown roles still load."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    sap_id: Optional[str] = None
    name: str = ""
    email: Optional[str] = None
    role: str
    faculty_id: Optional[str] = None
    department_id: Optional[str] = None
    department_ids: Optional[List[str]] = None
    course_ids: Optional[List[str]] = None


class RosterSnapshot(BaseModel):
    """Everything the dashboard reads for one request."""
    model_config = ConfigDict(frozen=True)

    metadata: Dict[str, Any] = Field(default_factory=dict)
    faculties: List[Faculty] = Field(default_factory=list)
    departments: List[Department] = Field(default_factory=list)
    courses: List[Course] = Field(default_factory=list)
    users: List[User] = Field(default_factory=list)
    students: List[Student] = Field(default_factory=list)
    student_actions: List["StudentAction"] = Field(default_factory=list)


# --- Role scopes ---

class DeanScope(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["dean"] = "dean"
    faculty_id: Optional[str] = None


class HodScope(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["hod"] = "hod"
    department_ids: FrozenSet[str] = frozenset()


class TeacherScope(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["teacher"] = "teacher"
    course_ids: FrozenSet[str] = frozenset()


RoleScope = Union[DeanScope, HodScope, TeacherScope]


# --- Filtering ---

class FilterSelection(BaseModel):
    """
    Immutable set of cascading filter selections.

    Each ``with_*`` method replaces one level of the cascade and clears every
    level below it, so a child selection never outlives a change to its parent.
    """
    model_config = ConfigDict(frozen=True)

    department_ids: FrozenSet[str] = frozenset()
    programs: FrozenSet[str] = frozenset()
    course_ids: FrozenSet[str] = frozenset()
    instructor_ids: FrozenSet[str] = frozenset()
    gpa_filters: FrozenSet[str] = frozenset()
    attendance_filters: FrozenSet[str] = frozenset()
    alert_filter: str = "all"

    def with_departments(self, department_ids) -> "FilterSelection":
        return self.model_copy(update={
            "department_ids": frozenset(department_ids),
            "programs": frozenset(),
            "course_ids": frozenset(),
            "instructor_ids": frozenset(),
        })

    def with_programs(self, programs) -> "FilterSelection":
        return self.model_copy(update={
            "programs": frozenset(programs),
            "course_ids": frozenset(),
            "instructor_ids": frozenset(),
        })

    def with_courses(self, course_ids) -> "FilterSelection":
        return self.model_copy(update={
            "course_ids": frozenset(course_ids),
            "instructor_ids": frozenset(),
        })

    def with_instructors(self, instructor_ids) -> "FilterSelection":
        return self.model_copy(update={"instructor_ids": frozenset(instructor_ids)})

    def has_active_filter(self) -> bool:
        """True when any level, dimension filter or alert shorthand narrows the roster."""
        return bool(
            self.department_ids or self.programs or self.course_ids
            or self.instructor_ids or self.gpa_filters or self.attendance_filters
            or self.alert_filter != "all"
        )


class Option(BaseModel):
    """A selectable value in a filter dropdown."""
    value: str
    label: str


class FilterOptions(BaseModel):
    departments: List[Option] = Field(default_factory=list)
    programs: List[Option] = Field(default_factory=list)
    courses: List[Option] = Field(default_factory=list)
    instructors: List[Option] = Field(default_factory=list)


# --- Aggregation, grouping and pagination results ---

class AlertCounts(BaseModel):
    """Alert counts over a set of students."""
    total: int = 0
    yellow_gpa: int = 0
    red_gpa: int = 0
    yellow_attendance: int = 0
    red_attendance: int = 0
    critical: int = 0
    warning: int = 0
    early_alert_count: int = 0
    healthy: int = 0


class GroupStats(BaseModel):
    key: str
    label: str
    counts: AlertCounts


class GroupNode(BaseModel):
    """One section of the nested student view."""
    key: str
    label: str
    level: str
    section_id: str
    counts: AlertCounts
    expanded: bool = False
    children: List["GroupNode"] = Field(default_factory=list)
    students: List[Student] = Field(default_factory=list)


class Page(BaseModel):
    items: List[Any]
    total: int
    page: int
    page_size: int
    total_pages: int


# --- Interventions ---

class InterventionRecord(BaseModel):
    """An outreach action taken for a student."""
    id: str
    student_id: str = Field(..., validation_alias=AliasChoices("student_id", "student_sap_id"))
    date: str
    outreach_mode: str
    remarks: str = ""
    status: str
    performed_at: str


class InterventionCreate(BaseModel):
    """Request body for recording an intervention."""
    date: str = Field(..., description="Date of the outreach, YYYY-MM-DD.")
    outreach_mode: Literal["email", "phone-call", "meeting"]
    remarks: str = ""
    status: Literal["initiated", "in-progress", "referred", "resolved"]


class StatusCount(BaseModel):
    status: str
    count: int


StudentActionType = Literal["sent_email", "made_call", "referred_to_wellbeing", "inperson_meeting"]
StudentActionResult = Literal["escalated", "improved"]


class StudentAction(BaseModel):
    """A quick follow-up logged from the student list."""
    id: str
    student_id: str = Field(..., validation_alias=AliasChoices("student_id", "student_sap_id"))
    action_type: StudentActionType
    result: StudentActionResult
    performed_at: str
    note: Optional[str] = None


class StudentActionView(StudentAction):
    action_label: str
    result_label: str


class StudentActionCreate(BaseModel):
    """Request body for logging a quick action."""
    action_type: StudentActionType
    result: StudentActionResult = "improved"
    note: Optional[str] = None


# --- Reports and drafts ---

class AttendanceComparison(BaseModel):
    student_percentage: float
    class_average: float
    deviation: float
    total_classes: int
    attended: int
    total_students: int
    status: Literal["above_average", "below_average", "critical"]


class GpaComparison(BaseModel):
    current: float
    previous: float
    change: float
    trend: str
    class_average_current: float
    class_average_previous: float
    history: List[GpaHistoryEntry]
    alert_triggered: bool
    alert_reason: Optional[str] = None


class AlertReport(BaseModel):
    student_id: str
    attendance_comparison: AttendanceComparison
    gpa_comparison: GpaComparison


class EmailDraftResponse(BaseModel):
    """Email draft response."""
    subject: str
    body: str


# --- API responses ---

class OverviewResponse(BaseModel):
    counts: AlertCounts
    selection: FilterSelection


class FilterOptionsResponse(BaseModel):
    options: FilterOptions
    selection: FilterSelection
    has_active_filter: bool = False


class StudentDetailResponse(BaseModel):
    student: Student
    report: AlertReport
    latest_intervention_status: Optional[str] = None
    latest_action_result: Optional[str] = None


class ViewerResponse(BaseModel):
    """Who is looking at the dashboard and how it is titled for them."""
    id: str
    name: str
    role: str
    role_label: str
    dashboard_header: str


class UploadResponse(BaseModel):
    """Response from file upload endpoint."""
    success: bool
    message: str
    results: List[Student]
    summary: AlertCounts


RosterSnapshot.model_rebuild()
