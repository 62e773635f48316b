"""Session persistence for the conversation orchestrator.

The orchestrator depends on a SessionStore; it never assumes a storage
engine. ``save`` is durable before it returns, so a reply is only sent after
the session state that produced it has been stored.

Two stores are provided:
- SqlSessionStore: SQLAlchemy, full Session as a JSON snapshot plus
  indexed columns for lookups and idle sweeps
- InMemorySessionStore: process-local, used by tests and the CLI chat
"""

import json
import logging
import threading
from datetime import datetime
from typing import Any, Callable, Optional, Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session as DbSession

from src.db.models import (
    AutomationSession,
    SessionAuditEvent,
    generate_uuid,
    utc_now_iso,
)
from src.orchestrator.models.session import Session

logger = logging.getLogger(__name__)


class SessionStore(Protocol):
    """Persistence operations the orchestrator needs."""

    def load(self, session_id: str) -> Optional[Session]:
        ...

    def save(self, session: Session) -> None:
        ...

    def append_audit_event(self, session_id: str, event: dict[str, Any]) -> None:
        ...

    def list_audit_events(self, session_id: str) -> list[dict[str, Any]]:
        ...

    def archive(self, session_id: str) -> None:
        ...

    def list_idle(self, older_than: datetime) -> list[str]:
        ...


class InMemorySessionStore:
    """Process-local SessionStore.

    Sessions are stored as JSON so callers never share mutable state with
    the store.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._sessions: dict[str, str] = {}
        self._events: dict[str, list[dict[str, Any]]] = {}

    def load(self, session_id: str) -> Optional[Session]:
        with self._lock:
            raw = self._sessions.get(session_id)
        return Session.model_validate_json(raw) if raw else None

    def save(self, session: Session) -> None:
        raw = session.model_dump_json()
        with self._lock:
            self._sessions[session.session_id] = raw

    def append_audit_event(self, session_id: str, event: dict[str, Any]) -> None:
        with self._lock:
            events = self._events.setdefault(session_id, [])
            events.append({**event, "sequence": len(events) + 1})

    def list_audit_events(self, session_id: str) -> list[dict[str, Any]]:
        with self._lock:
            return [dict(e) for e in self._events.get(session_id, [])]

    def archive(self, session_id: str) -> None:
        session = self.load(session_id)
        if session is None or session.archived:
            return
        session.archived = True
        self.save(session)

    def list_idle(self, older_than: datetime) -> list[str]:
        with self._lock:
            snapshots = list(self._sessions.values())
        idle = []
        for raw in snapshots:
            session = Session.model_validate_json(raw)
            if not session.archived and session.updated_at < older_than:
                idle.append(session.session_id)
        return idle


class SqlSessionStore:
    """SessionStore on the automation_sessions and session_audit_events tables.

    Attributes:
        session_factory: Callable returning a new SQLAlchemy Session.
    """

    def __init__(self, session_factory: Callable[[], DbSession]) -> None:
        self.session_factory = session_factory

    def load(self, session_id: str) -> Optional[Session]:
        """Load a session snapshot, or None if unknown."""
        with self.session_factory() as db:
            row = db.get(AutomationSession, session_id)
            if row is None:
                return None
            return Session.model_validate_json(row.snapshot)

    def save(self, session: Session) -> None:
        """Insert or update the session snapshot and commit."""
        with self.session_factory() as db:
            row = db.get(AutomationSession, session.session_id)
            if row is None:
                row = AutomationSession(
                    id=session.session_id,
                    created_at=session.created_at.isoformat(),
                )
                db.add(row)
            row.tenant_id = session.tenant_id
            row.phase = session.phase.value
            row.snapshot = session.model_dump_json()
            row.is_active = not session.archived
            row.updated_at = session.updated_at.isoformat()
            db.commit()

    def append_audit_event(self, session_id: str, event: dict[str, Any]) -> None:
        """Append an audit event with the next per-session sequence number."""
        with self.session_factory() as db:
            # SELECT+INSERT is safe here: all writes for one session are
            # serialized by the orchestrator's per-session lock.
            max_seq = db.execute(
                select(SessionAuditEvent.sequence)
                .where(SessionAuditEvent.session_id == session_id)
                .order_by(SessionAuditEvent.sequence.desc())
                .limit(1)
            ).scalar_one_or_none()
            details = event.get("details")
            db.add(
                SessionAuditEvent(
                    id=generate_uuid(),
                    session_id=session_id,
                    sequence=(max_seq or 0) + 1,
                    timestamp=event.get("timestamp") or utc_now_iso(),
                    level=event.get("level", "INFO"),
                    event_type=event.get("event_type", "message"),
                    message=event.get("message", ""),
                    details=json.dumps(details) if details is not None else None,
                )
            )
            db.commit()

    def list_audit_events(self, session_id: str) -> list[dict[str, Any]]:
        """Return a session's audit events in sequence order."""
        with self.session_factory() as db:
            rows = db.execute(
                select(SessionAuditEvent)
                .where(SessionAuditEvent.session_id == session_id)
                .order_by(SessionAuditEvent.sequence)
            ).scalars()
            return [
                {
                    "sequence": row.sequence,
                    "timestamp": row.timestamp,
                    "level": row.level,
                    "event_type": row.event_type,
                    "message": row.message,
                    "details": json.loads(row.details) if row.details else None,
                }
                for row in rows
            ]

    def archive(self, session_id: str) -> None:
        """Mark a session archived. Rows are never deleted."""
        session = self.load(session_id)
        if session is None or session.archived:
            return
        session.archived = True
        self.save(session)
        logger.info("Archived session %s", session_id)

    def list_idle(self, older_than: datetime) -> list[str]:
        """Return active session ids not updated since ``older_than``."""
        with self.session_factory() as db:
            rows = db.execute(
                select(AutomationSession.id).where(
                    AutomationSession.is_active == True,  # noqa: E712
                    AutomationSession.updated_at < older_than.isoformat(),
                )
            ).scalars()
            return list(rows)
