"""FastAPI main application for the Early Alert Dashboard."""

import csv
import os
import traceback
from io import StringIO
from typing import List, NamedTuple, Optional

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, File, Header, HTTPException, Query, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from alert_dashboard.aggregation import (
    aggregate,
    department_stats,
    instructor_stats,
    intervention_status_breakdown,
    program_stats,
)
from alert_dashboard.email_templates import generate_email_draft
from alert_dashboard.filters import apply_filters, build_selection, resolve_selection
from alert_dashboard.grouping import group_hierarchy, paginate, shape_for_role
from alert_dashboard.interventions import InterventionRepository, JsonFileInterventionRepository
from alert_dashboard.json_store import StoreError
from alert_dashboard.models import (
    EmailDraftResponse,
    FilterOptions,
    FilterOptionsResponse,
    FilterSelection,
    GroupNode,
    GroupStats,
    InterventionCreate,
    InterventionRecord,
    OverviewResponse,
    Page,
    RoleScope,
    RosterSnapshot,
    StatusCount,
    Student,
    StudentActionCreate,
    StudentActionView,
    StudentDetailResponse,
    UploadResponse,
    User,
    ViewerResponse,
)
from alert_dashboard.parsers import SnapshotError, load_roster_sheet, load_snapshot_file, rows_to_students
from alert_dashboard.report import generate_alert_report
from alert_dashboard.scope import (
    DASHBOARD_HEADERS,
    ROLE_LABELS,
    build_course_instructor_map,
    build_instructor_index,
    role_scope_for,
    scope_departments,
    scope_instructors,
    scope_students,
)
from alert_dashboard.student_actions import (
    JsonFileStudentActionRepository,
    StudentActionRepository,
    action_result_label,
    action_type_label,
    can_record_action,
)
from alert_dashboard.thresholds import parse_thresholds

# Load environment variables
load_dotenv()

app = FastAPI(title="Early Alert Dashboard", version="1.0.0")

# CORS configuration
allow_origins = os.getenv('ALLOW_ORIGINS', '*').split(',')
app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler_json(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions and return JSON."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail}
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler_json(request: Request, exc: RequestValidationError):
    """Handle validation errors and return JSON."""
    return JSONResponse(
        status_code=422,
        content={"detail": exc.errors(), "body": exc.body}
    )


@app.exception_handler(SnapshotError)
async def snapshot_exception_handler_json(request: Request, exc: SnapshotError):
    """A broken roster snapshot is a server-side failure, not an empty dashboard."""
    print(f"ERROR: {exc}")
    return JSONResponse(
        status_code=500,
        content={"detail": f"Roster snapshot is invalid: {exc}", "type": type(exc).__name__}
    )


@app.exception_handler(StoreError)
async def store_exception_handler_json(request: Request, exc: StoreError):
    """Appending to an unreadable record store is refused."""
    print(f"ERROR: {exc}")
    return JSONResponse(
        status_code=500,
        content={"detail": f"Record store is unreadable: {exc}", "type": type(exc).__name__}
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle all unhandled exceptions and return JSON."""
    error_detail = str(exc)
    if os.getenv('DEBUG', 'False').lower() == 'true':
        error_detail = f"{str(exc)}\n\n{traceback.format_exc()}"

    return JSONResponse(
        status_code=500,
        content={
            "detail": f"Internal server error: {error_detail}",
            "type": type(exc).__name__
        }
    )


# Configuration
ROSTER_PATH = os.getenv('ROSTER_PATH', 'data/data.json')
INTERVENTION_STORE_PATH = os.getenv('INTERVENTION_STORE_PATH', '.data/intervention-store.json')
STUDENT_ACTION_STORE_PATH = os.getenv('STUDENT_ACTION_STORE_PATH', '.data/student-actions-store.json')
ALERT_POLICY = parse_thresholds(os.getenv('ALERT_THRESHOLDS', ''))
DEFAULT_PAGE_SIZE = int(os.getenv('DEFAULT_PAGE_SIZE', '30'))

MAX_UPLOAD_SIZE_MB = int(os.getenv('MAX_UPLOAD_SIZE_MB', '10'))
MAX_UPLOAD_SIZE = MAX_UPLOAD_SIZE_MB * 1024 * 1024


# --- Dependencies ---

def get_snapshot() -> RosterSnapshot:
    """Load the roster fresh on every request."""
    return load_snapshot_file(ROSTER_PATH, ALERT_POLICY)


def get_intervention_repository() -> InterventionRepository:
    return JsonFileInterventionRepository(INTERVENTION_STORE_PATH)


def get_student_action_repository(
    snapshot: RosterSnapshot = Depends(get_snapshot)
) -> StudentActionRepository:
    """Stored quick actions, merged with the seed actions shipped in the snapshot."""
    return JsonFileStudentActionRepository(STUDENT_ACTION_STORE_PATH, seed=snapshot.student_actions)


def get_viewer(
    x_user_id: Optional[str] = Header(default=None),
    snapshot: RosterSnapshot = Depends(get_snapshot)
) -> User:
    """Resolve the viewer named by the X-User-Id header."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    for user in snapshot.users:
        if user.id == x_user_id:
            return user
    raise HTTPException(status_code=401, detail=f"Unknown user '{x_user_id}'")


def get_selection(
    department: List[str] = Query(default=[]),
    program: List[str] = Query(default=[]),
    course: List[str] = Query(default=[]),
    instructor: List[str] = Query(default=[]),
    gpa_filter: List[str] = Query(default=[]),
    attendance_filter: List[str] = Query(default=[]),
    selected_alert: Optional[str] = Query(default=None)
) -> FilterSelection:
    return build_selection(
        departments=department,
        programs=program,
        courses=course,
        instructors=instructor,
        gpa_filters=gpa_filter,
        attendance_filters=attendance_filter,
        alert_filter=selected_alert,
    )


class DashboardView(NamedTuple):
    viewer: User
    snapshot: RosterSnapshot
    scope: Optional[RoleScope]
    scoped: List[Student]
    selection: FilterSelection
    options: FilterOptions
    students: List[Student]


def get_view(
    viewer: User = Depends(get_viewer),
    snapshot: RosterSnapshot = Depends(get_snapshot),
    selection: FilterSelection = Depends(get_selection)
) -> DashboardView:
    """Scope the roster to the viewer, prune stale child selections and filter."""
    scope = role_scope_for(viewer)
    scoped = scope_students(scope, snapshot.students)
    selection, options = resolve_selection(scope, snapshot, selection)
    filtered = apply_filters(scoped, selection, build_instructor_index(snapshot.users))
    return DashboardView(viewer, snapshot, scope, scoped, selection, options, filtered)


def find_scoped_student(student_id: str, view: DashboardView) -> Student:
    for student in view.scoped:
        if student.id == student_id:
            return student
    raise HTTPException(status_code=404, detail=f"Student '{student_id}' not found")


# --- Endpoints ---

@app.get("/health")
async def health_check():
    """Health check endpoint to test server connectivity."""
    return JSONResponse(content={"status": "ok", "message": "Server is running"})


@app.get("/api/me", response_model=ViewerResponse)
def get_me(viewer: User = Depends(get_viewer)):
    """The viewer with the role label and dashboard header shown above the overview."""
    return ViewerResponse(
        id=viewer.id,
        name=viewer.name or viewer.id,
        role=viewer.role,
        role_label=ROLE_LABELS.get(viewer.role, viewer.role),
        dashboard_header=DASHBOARD_HEADERS.get(viewer.role, "Dashboard"),
    )


@app.get("/api/overview", response_model=OverviewResponse)
def get_overview(view: DashboardView = Depends(get_view)):
    """Alert counts for the viewer's filtered roster."""
    return OverviewResponse(counts=aggregate(view.students), selection=view.selection)


@app.get("/api/filters", response_model=FilterOptionsResponse)
def get_filter_options(view: DashboardView = Depends(get_view)):
    return FilterOptionsResponse(
        options=view.options,
        selection=view.selection,
        has_active_filter=view.selection.has_active_filter(),
    )


@app.get("/api/students", response_model=Page)
def list_students(
    page: int = Query(default=1),
    page_size: Optional[int] = Query(default=None),
    view: DashboardView = Depends(get_view)
):
    """Table view: the filtered roster, one page at a time."""
    return paginate(view.students, page, page_size or DEFAULT_PAGE_SIZE)


@app.get("/api/students/tree", response_model=List[GroupNode])
def student_tree(
    expanded: List[str] = Query(default=[]),
    view: DashboardView = Depends(get_view)
):
    """Nested view shaped by the viewer's role."""
    snapshot = view.snapshot
    expanded_ids = [part for value in expanded for part in value.split(',') if part]
    return group_hierarchy(
        view.students,
        shape_for_role(view.viewer.role),
        departments=snapshot.departments,
        courses=snapshot.courses,
        course_instructors=build_course_instructor_map(snapshot.users),
        instructor_names={u.id: u.name or u.id for u in snapshot.users if u.role == 'teacher'},
        expanded_ids=expanded_ids,
    )


@app.get("/api/stats/departments", response_model=List[GroupStats])
def get_department_stats(view: DashboardView = Depends(get_view)):
    departments = scope_departments(view.scope, view.snapshot.departments, view.snapshot.courses)
    return department_stats(view.students, departments)


@app.get("/api/stats/programs", response_model=List[GroupStats])
def get_program_stats(view: DashboardView = Depends(get_view)):
    return program_stats(view.students)


@app.get("/api/stats/instructors", response_model=List[GroupStats])
def get_instructor_stats(view: DashboardView = Depends(get_view)):
    snapshot = view.snapshot
    instructors = scope_instructors(view.scope, snapshot.users, snapshot.courses, snapshot.departments)
    if view.selection.instructor_ids:
        instructors = [u for u in instructors if u.id in view.selection.instructor_ids]
    return instructor_stats(view.students, instructors)


@app.get("/api/interventions/summary", response_model=List[StatusCount])
def get_intervention_summary(
    view: DashboardView = Depends(get_view),
    repository: InterventionRepository = Depends(get_intervention_repository)
):
    """Latest intervention status across alerted students in view."""
    return intervention_status_breakdown(view.students, repository)


@app.get("/api/students/{student_id}", response_model=StudentDetailResponse)
def get_student(
    student_id: str,
    view: DashboardView = Depends(get_view),
    repository: InterventionRepository = Depends(get_intervention_repository),
    actions: StudentActionRepository = Depends(get_student_action_repository)
):
    student = find_scoped_student(student_id, view)
    return StudentDetailResponse(
        student=student,
        report=generate_alert_report(student, ALERT_POLICY),
        latest_intervention_status=repository.latest_status(student.id),
        latest_action_result=actions.latest_result(student.id),
    )


@app.get("/api/students/{student_id}/interventions", response_model=List[InterventionRecord])
def list_interventions(
    student_id: str,
    view: DashboardView = Depends(get_view),
    repository: InterventionRepository = Depends(get_intervention_repository)
):
    student = find_scoped_student(student_id, view)
    return repository.history(student.id)


@app.post("/api/students/{student_id}/interventions", response_model=InterventionRecord, status_code=201)
def record_intervention(
    student_id: str,
    body: InterventionCreate,
    view: DashboardView = Depends(get_view),
    repository: InterventionRepository = Depends(get_intervention_repository)
):
    student = find_scoped_student(student_id, view)
    record = repository.append(student.id, body)
    print(f"Recorded intervention {record.id} ({record.status}) for student {student.id}")
    return record


@app.get("/api/students/{student_id}/actions", response_model=List[StudentActionView])
def list_student_actions(
    student_id: str,
    view: DashboardView = Depends(get_view),
    repository: StudentActionRepository = Depends(get_student_action_repository)
):
    """Quick actions logged for a student, newest first."""
    student = find_scoped_student(student_id, view)
    return [
        StudentActionView(
            **action.model_dump(),
            action_label=action_type_label(action.action_type),
            result_label=action_result_label(action.result),
        )
        for action in repository.history(student.id)
    ]


@app.post("/api/students/{student_id}/actions", response_model=StudentActionView, status_code=201)
def record_student_action(
    student_id: str,
    body: StudentActionCreate,
    view: DashboardView = Depends(get_view),
    repository: StudentActionRepository = Depends(get_student_action_repository)
):
    """Log a quick action for a student with a yellow or red alert."""
    student = find_scoped_student(student_id, view)
    if not can_record_action(student):
        raise HTTPException(
            status_code=409,
            detail=f"Student {student.id} has no attendance or GPA alert"
        )
    action = repository.record(student.id, body)
    print(f"Recorded {action.action_type} for student {student.id} ({action.result})")
    return StudentActionView(
        **action.model_dump(),
        action_label=action_type_label(action.action_type),
        result_label=action_result_label(action.result),
    )


@app.get("/api/students/{student_id}/email-draft", response_model=EmailDraftResponse)
def get_email_draft(student_id: str, view: DashboardView = Depends(get_view)):
    """Generate an outreach email draft for a student."""
    student = find_scoped_student(student_id, view)
    course_names = {c.id: c.name for c in view.snapshot.courses}
    return EmailDraftResponse(**generate_email_draft(student, course_names.get(student.course_id)))


@app.post("/upload", response_model=UploadResponse)
async def upload_file(
    file: UploadFile = File(...),
    snapshot: RosterSnapshot = Depends(get_snapshot)
):
    """Evaluate alerts for an uploaded roster sheet."""
    file_bytes = await file.read()
    if len(file_bytes) > MAX_UPLOAD_SIZE:
        raise HTTPException(
            status_code=413,
            detail=f"File too large. Maximum size: {MAX_UPLOAD_SIZE_MB}MB"
        )

    filename = file.filename or ""
    if not filename.lower().endswith((".xlsx", ".xls", ".csv")):
        raise HTTPException(
            status_code=400,
            detail="Invalid file type. Please upload an Excel or CSV file (.xlsx, .xls or .csv)"
        )

    try:
        df = load_roster_sheet(file_bytes, filename)
        students = rows_to_students(df, snapshot.courses, ALERT_POLICY)
    except ValueError as e:
        print(f"ERROR: Could not import roster sheet {filename}: {e}")
        raise HTTPException(status_code=400, detail=str(e))

    if not students:
        raise HTTPException(status_code=400, detail="No student records found in the uploaded file.")

    summary = aggregate(students)
    print(
        f"Results: {summary.total} students ("
        f"{summary.critical} critical, {summary.warning} warning, {summary.healthy} healthy)"
    )

    return UploadResponse(
        success=True,
        message=f"Successfully processed {len(students)} students",
        results=students,
        summary=summary
    )


@app.get("/download.csv")
def download_csv(view: DashboardView = Depends(get_view)):
    """Download the viewer's filtered roster as CSV."""
    output = StringIO()
    writer = csv.writer(output)

    writer.writerow([
        'Student ID',
        'Student Name',
        'Department',
        'Course',
        'Attendance %',
        'Attendance Alert',
        'Current GPA',
        'GPA Change',
        'GPA Alert',
        'Overall Alert'
    ])

    for s in view.students:
        writer.writerow([
            s.id,
            s.name,
            s.department_id,
            s.course_id,
            f"{s.attendance.percentage:.2f}",
            s.attendance.alert_level or '',
            f"{s.gpa.current:.2f}",
            f"{s.gpa.change:.2f}",
            s.gpa.alert_level or '',
            s.overall_alert
        ])

    output.seek(0)

    return StreamingResponse(
        iter([output.getvalue()]),
        media_type="text/csv",
        headers={
            "Content-Disposition": "attachment; filename=early_alert_students.csv"
        }
    )
