# app/rotation/store.py
from __future__ import annotations

import copy
import logging
import threading
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ContextManager, Iterator, Optional, Protocol

from app.rotation import repository
from app.rotation.errors import TontineNotFound
from app.rotation.model import TONTINE_ACTIVE, Tontine
from app.rotation.schedule import utcnow
from db import get_conn
from services.observability import get_request_id

logger = logging.getLogger("dourou.store")

ACTIVITY_KINDS = (
    "member_join",
    "member_leave",
    "roster_reorder",
    "tour_start",
    "tour_complete",
    "payment",
    "payment_confirmed",
    "payment_late",
    "tontine_complete",
)


@dataclass
class ActivityEvent:
    kind: str
    message: str
    metadata: dict[str, Any] = field(default_factory=dict)
    request_id: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)

    def as_dict(self, tontine_id: str) -> dict[str, Any]:
        return {
            "tontine_id": tontine_id,
            "kind": self.kind,
            "message": self.message,
            "metadata": self.metadata,
            "request_id": self.request_id,
            "created_at": self.created_at,
        }


class TontineSession:
    """
    Exclusive, transactional view of one tontine. Mutate `tontine` freely; the
    store persists it together with the recorded activity only if the block
    exits cleanly.
    """

    def __init__(self, tontine: Tontine):
        self.tontine = tontine
        self.events: list[ActivityEvent] = []

    def record(self, kind: str, message: str, **metadata: Any) -> ActivityEvent:
        if kind not in ACTIVITY_KINDS:
            raise ValueError(f"unknown activity kind: {kind}")
        event = ActivityEvent(kind=kind, message=message, metadata=metadata, request_id=get_request_id())
        self.events.append(event)
        return event


class TontineStore(Protocol):
    def create(self, tontine: Tontine) -> Tontine: ...

    def get(self, tontine_id: str) -> Optional[Tontine]: ...

    def session(self, tontine_id: str) -> ContextManager[TontineSession]: ...

    def list_activity(self, tontine_id: str, *, limit: int = 50) -> list[dict[str, Any]]: ...

    def active_tontine_ids(self) -> list[str]: ...

    def tontine_id_for_invitation(self, code: str) -> Optional[str]: ...


# ==========================================================
# In-memory
# ==========================================================

class InMemoryTontineStore:
    """
    Process-local store. Sessions work on a deep copy that replaces the stored
    tontine on success, so a failed operation leaves no partial state behind.
    """

    def __init__(self) -> None:
        self._tontines: dict[str, Tontine] = {}
        self._activity: dict[str, list[dict[str, Any]]] = defaultdict(list)
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def _lock_for(self, tontine_id: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(tontine_id, threading.Lock())

    def create(self, tontine: Tontine) -> Tontine:
        with self._lock_for(tontine.id):
            if tontine.id in self._tontines:
                raise ValueError(f"tontine {tontine.id} already exists")
            self._tontines[tontine.id] = copy.deepcopy(tontine)
        return copy.deepcopy(tontine)

    def get(self, tontine_id: str) -> Optional[Tontine]:
        stored = self._tontines.get(tontine_id)
        return copy.deepcopy(stored) if stored is not None else None

    @contextmanager
    def session(self, tontine_id: str) -> Iterator[TontineSession]:
        with self._lock_for(tontine_id):
            stored = self._tontines.get(tontine_id)
            if stored is None:
                raise TontineNotFound(f"tontine {tontine_id} not found")
            session = TontineSession(copy.deepcopy(stored))
            yield session
            self._tontines[tontine_id] = session.tontine
            self._activity[tontine_id].extend(e.as_dict(tontine_id) for e in session.events)

    def list_activity(self, tontine_id: str, *, limit: int = 50) -> list[dict[str, Any]]:
        items = list(reversed(self._activity.get(tontine_id, [])))
        return items[:limit]

    def active_tontine_ids(self) -> list[str]:
        return [t.id for t in self._tontines.values() if t.status == TONTINE_ACTIVE]

    def tontine_id_for_invitation(self, code: str) -> Optional[str]:
        for t in list(self._tontines.values()):
            if t.invitation_by_code(code) is not None:
                return t.id
        return None


# ==========================================================
# Postgres
# ==========================================================

class PostgresTontineStore:
    """
    Each session is one database transaction holding a row lock on the
    tontine, which serializes writers per tontine.
    """

    def create(self, tontine: Tontine) -> Tontine:
        with get_conn() as conn:
            repository.insert_tontine(conn, tontine)
        return tontine

    def get(self, tontine_id: str) -> Optional[Tontine]:
        with get_conn() as conn:
            return repository.load_tontine(conn, tontine_id)

    @contextmanager
    def session(self, tontine_id: str) -> Iterator[TontineSession]:
        with get_conn() as conn:
            tontine = repository.load_tontine(conn, tontine_id, for_update=True)
            if tontine is None:
                raise TontineNotFound(f"tontine {tontine_id} not found")
            session = TontineSession(tontine)
            yield session
            repository.save_tontine(conn, session.tontine)
            for event in session.events:
                repository.insert_activity(
                    conn,
                    tontine_id=tontine_id,
                    kind=event.kind,
                    message=event.message,
                    metadata=event.metadata,
                    request_id=event.request_id,
                )
        logger.debug("tontine_session_committed tontine_id=%s events=%s", tontine_id, len(session.events))

    def list_activity(self, tontine_id: str, *, limit: int = 50) -> list[dict[str, Any]]:
        with get_conn() as conn:
            return repository.list_activity(conn, tontine_id, limit=limit)

    def active_tontine_ids(self) -> list[str]:
        with get_conn() as conn:
            return repository.list_active_tontine_ids(conn)

    def tontine_id_for_invitation(self, code: str) -> Optional[str]:
        with get_conn() as conn:
            return repository.find_tontine_id_by_invitation_code(conn, code)


def build_store(backend: str) -> TontineStore:
    if backend == "postgres":
        return PostgresTontineStore()
    if backend == "memory":
        return InMemoryTontineStore()
    raise ValueError(f"unknown store backend: {backend!r}")
