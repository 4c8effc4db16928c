"""Quick student actions: one-click follow-ups logged from the student list."""

import time
import uuid
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Protocol, Union

from alert_dashboard.interventions import newest_first
from alert_dashboard.json_store import JsonListStore
from alert_dashboard.models import Student, StudentAction, StudentActionCreate


ACTION_LABELS = {
    'sent_email': 'Email',
    'made_call': 'Phone Call',
    'inperson_meeting': 'Meeting',
    'referred_to_wellbeing': 'Referred - WC',
}

RESULT_LABELS = {
    'escalated': 'Escalated',
    'improved': 'Improved',
}


class StudentActionRepository(Protocol):
    def history(self, student_id: str) -> List[StudentAction]: ...

    def latest_result(self, student_id: str) -> Optional[str]: ...

    def record(self, student_id: str, action: Union[StudentActionCreate, Dict]) -> StudentAction: ...


def action_type_label(action_type: str) -> str:
    return ACTION_LABELS.get(action_type, action_type)


def action_result_label(result: str) -> str:
    return RESULT_LABELS.get(result, result)


def can_record_action(student: Student) -> bool:
    """Actions are offered only for students with a yellow or red alert on either dimension."""
    return student.attendance.alert_level is not None or student.gpa.alert_level is not None


def new_action(student_id: str, data: Union[StudentActionCreate, Dict]) -> StudentAction:
    """Stamp a quick action with an id and the current time."""
    if not isinstance(data, StudentActionCreate):
        data = StudentActionCreate.model_validate(data)
    return StudentAction(
        id=f"act-{int(time.time() * 1000)}-{uuid.uuid4().hex[:7]}",
        student_id=student_id,
        action_type=data.action_type,
        result=data.result,
        performed_at=datetime.now(timezone.utc).isoformat(),
        note=data.note,
    )


class _MergedHistory:
    """Seed actions come first, so a stored action wins a timestamp tie."""

    def __init__(self, seed: Iterable[StudentAction] = ()):
        self._seed: List[StudentAction] = list(seed)

    def _stored(self) -> List[StudentAction]:
        raise NotImplementedError

    def history(self, student_id: str) -> List[StudentAction]:
        merged = self._seed + self._stored()
        return newest_first([a for a in merged if a.student_id == student_id])

    def latest_result(self, student_id: str) -> Optional[str]:
        actions = self.history(student_id)
        return actions[0].result if actions else None


class InMemoryStudentActionRepository(_MergedHistory):
    def __init__(self, seed: Iterable[StudentAction] = ()):
        super().__init__(seed)
        self._actions: List[StudentAction] = []

    def _stored(self) -> List[StudentAction]:
        return self._actions

    def record(self, student_id: str, action: Union[StudentActionCreate, Dict]) -> StudentAction:
        stored = new_action(student_id, action)
        self._actions.append(stored)
        return stored


class JsonFileStudentActionRepository(_MergedHistory):
    """
    Quick actions persisted as a JSON array, merged with optional seed actions.

    Seed actions are never written back to the file.
    """

    def __init__(self, path: str, seed: Iterable[StudentAction] = ()):
        super().__init__(seed)
        self.path = path
        self._store = JsonListStore(path, "student action store")

    def _stored(self) -> List[StudentAction]:
        return self._store.load(StudentAction)

    def record(self, student_id: str, action: Union[StudentActionCreate, Dict]) -> StudentAction:
        stored = new_action(student_id, action)
        self._store.append(stored.model_dump())
        return stored
