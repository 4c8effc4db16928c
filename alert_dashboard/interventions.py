"""Intervention log: outreach records kept per student."""

import time
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional, Protocol, TypeVar, Union

from alert_dashboard.json_store import JsonListStore
from alert_dashboard.models import InterventionCreate, InterventionRecord


# Anything with an ISO performed_at timestamp
R = TypeVar('R')


class InterventionRepository(Protocol):
    """What the dashboard needs from an intervention store."""

    def latest_status(self, student_id: str) -> Optional[str]: ...

    def history(self, student_id: str) -> List[InterventionRecord]: ...

    def append(self, student_id: str, record: Union[InterventionCreate, Dict]) -> InterventionRecord: ...


def _performed_at_key(record) -> datetime:
    try:
        parsed = datetime.fromisoformat(record.performed_at.replace('Z', '+00:00'))
    except ValueError:
        return datetime.min.replace(tzinfo=timezone.utc)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def new_record(student_id: str, data: Union[InterventionCreate, Dict]) -> InterventionRecord:
    """Stamp a submitted intervention with an id and the current time."""
    if not isinstance(data, InterventionCreate):
        data = InterventionCreate.model_validate(data)
    return InterventionRecord(
        id=f"int-{int(time.time() * 1000)}-{uuid.uuid4().hex[:7]}",
        student_id=student_id,
        date=data.date,
        outreach_mode=data.outreach_mode,
        remarks=data.remarks,
        status=data.status,
        performed_at=datetime.now(timezone.utc).isoformat(),
    )


def newest_first(records: List[R]) -> List[R]:
    # Equal timestamps: the later append comes first
    ordered = sorted(enumerate(records), key=lambda pair: (_performed_at_key(pair[1]), pair[0]))
    return [record for _, record in reversed(ordered)]


class InMemoryInterventionRepository:
    """Intervention log held in a list; used by tests and as the default store."""

    def __init__(self, records: Optional[List[InterventionRecord]] = None):
        self._records: List[InterventionRecord] = list(records or [])

    def history(self, student_id: str) -> List[InterventionRecord]:
        return newest_first([r for r in self._records if r.student_id == student_id])

    def latest_status(self, student_id: str) -> Optional[str]:
        records = self.history(student_id)
        return records[0].status if records else None

    def append(self, student_id: str, record: Union[InterventionCreate, Dict]) -> InterventionRecord:
        stored = new_record(student_id, record)
        self._records.append(stored)
        return stored


class JsonFileInterventionRepository:
    """
    Intervention log persisted as a JSON array on disk.

    The file is re-read on every call. A missing or unreadable file reads as
    an empty log, but appending to an unreadable file raises StoreError
    instead of replacing it.
    """

    def __init__(self, path: str):
        self.path = path
        self._store = JsonListStore(path, "intervention store")

    def history(self, student_id: str) -> List[InterventionRecord]:
        records = self._store.load(InterventionRecord)
        return newest_first([r for r in records if r.student_id == student_id])

    def latest_status(self, student_id: str) -> Optional[str]:
        records = self.history(student_id)
        return records[0].status if records else None

    def append(self, student_id: str, record: Union[InterventionCreate, Dict]) -> InterventionRecord:
        stored = new_record(student_id, record)
        self._store.append(stored.model_dump())
        return stored
