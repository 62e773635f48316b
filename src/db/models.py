"""SQLAlchemy ORM models for the AutoFlow state database.

This module defines the tables behind session persistence, the per-session
audit trail, and the namespace slot pool. Uses SQLAlchemy 2.0 style with
Mapped and mapped_column.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Optional
from uuid import uuid4

from sqlalchemy import (
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    mapped_column,
    relationship,
)


def generate_uuid() -> str:
    """Generate a UUID4 string for primary keys."""
    return str(uuid4())


def utc_now_iso() -> str:
    """Generate current UTC timestamp in ISO8601 format."""
    return datetime.now(UTC).isoformat()


class LogLevel(str, Enum):
    """Severity levels for audit events."""

    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class EventType(str, Enum):
    """Categories of events recorded in the session audit trail."""

    message = "message"
    phase_change = "phase_change"
    auto_fix = "auto_fix"
    deployment_step = "deployment_step"
    rollback = "rollback"
    error = "error"


# SQLAlchemy Base


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# Models


class AutomationSession(Base):
    """Persistent conversation session.

    The full Session model is stored as a JSON snapshot; the indexed columns
    duplicate the fields used for lookups and idle sweeps.

    Attributes:
        id: Session id (same as the caller-provided session_id).
        tenant_id: Tenant the session deploys for.
        phase: Current conversation phase.
        snapshot: JSON-encoded Session model.
        is_active: False once archived.
        created_at: ISO8601 creation timestamp.
        updated_at: ISO8601 last-update timestamp.
    """

    __tablename__ = "automation_sessions"
    __table_args__ = (
        Index("ix_autosess_active_updated", "is_active", "updated_at"),
        Index("ix_autosess_tenant", "tenant_id"),
    )

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String(128), nullable=False)
    phase: Mapped[str] = mapped_column(String(20), nullable=False)
    snapshot: Mapped[str] = mapped_column(Text, nullable=False)
    is_active: Mapped[bool] = mapped_column(nullable=False, default=True)
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )
    updated_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    audit_events: Mapped[list["SessionAuditEvent"]] = relationship(
        "SessionAuditEvent",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="SessionAuditEvent.sequence",
    )

    def __repr__(self) -> str:
        return f"<AutomationSession(id={self.id!r}, phase={self.phase!r})>"


class SessionAuditEvent(Base):
    """Audit trail entry for one session.

    Attributes:
        id: UUID primary key.
        session_id: FK to AutomationSession.
        sequence: Ordering within the session (monotonically increasing).
        timestamp: ISO8601 timestamp of the event.
        level: Severity (INFO, WARNING, ERROR).
        event_type: Category of event.
        message: Human-readable description.
        details: Redacted JSON blob with structured event data.
    """

    __tablename__ = "session_audit_events"
    __table_args__ = (
        UniqueConstraint("session_id", "sequence", name="uq_auditevt_session_seq"),
        Index("ix_auditevt_session_seq", "session_id", "sequence"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    session_id: Mapped[str] = mapped_column(
        String(128),
        ForeignKey("automation_sessions.id", ondelete="CASCADE"),
        nullable=False,
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    timestamp: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )
    level: Mapped[str] = mapped_column(String(10), nullable=False)
    event_type: Mapped[str] = mapped_column(String(30), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    details: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    session: Mapped["AutomationSession"] = relationship(
        "AutomationSession", back_populates="audit_events"
    )

    def __repr__(self) -> str:
        return (
            f"<SessionAuditEvent(session_id={self.session_id!r}, "
            f"seq={self.sequence}, type={self.event_type!r})>"
        )


class NamespaceSlot(Base):
    """One (bucket, slot) pair in the shared engine's namespace pool.

    Rows are seeded once for the configured pool size. A slot is claimed by
    a compare-and-set update on ``status``.

    Attributes:
        id: Integer primary key.
        bucket_id: 1-based bucket number.
        slot_id: 1-based slot number within the bucket.
        prefix: Artifact name prefix for this slot.
        status: 'available' or 'assigned'.
        tenant_id: Tenant holding the slot, None when available.
        assigned_at: ISO8601 timestamp of the current assignment.
    """

    __tablename__ = "namespace_slots"
    __table_args__ = (
        UniqueConstraint("bucket_id", "slot_id", name="uq_nsslot_bucket_slot"),
        Index("ix_nsslot_status_order", "status", "bucket_id", "slot_id"),
        Index("ix_nsslot_tenant", "tenant_id", unique=True),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    bucket_id: Mapped[int] = mapped_column(Integer, nullable=False)
    slot_id: Mapped[int] = mapped_column(Integer, nullable=False)
    prefix: Mapped[str] = mapped_column(String(32), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="available"
    )
    tenant_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    assigned_at: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<NamespaceSlot(bucket={self.bucket_id}, slot={self.slot_id}, "
            f"status={self.status!r})>"
        )
