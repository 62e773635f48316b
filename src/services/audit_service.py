"""Audit logging service for AutoFlow sessions.

This module provides session-scoped audit events with automatic redaction
of sensitive data (credentials, contact details). Events are written through
the injected SessionStore, so the audit trail lives wherever sessions do.

Usage:
    from src.services.audit_service import AuditService

    audit = AuditService(store)
    audit.log_phase_change(session_id, "understanding", "designing")
    audit.log_auto_fix(session_id, 2, "dead-end", "attached terminal node 'no_op_4'")
"""

from datetime import datetime, timezone
from typing import Any, Protocol

from src.db.models import EventType, LogLevel


# Re-export enums for convenience
__all__ = [
    "AuditService",
    "AuditSink",
    "redact_sensitive",
    "LogLevel",
    "EventType",
    "REDACT_FIELDS",
    "REDACTED",
]


# Redaction configuration

REDACT_FIELDS = {
    # Contact details
    "email",
    "phone",
    "address",
    # Credentials
    "password",
    "secret",
    "api_key",
    "apikey",
    "access_token",
    "refresh_token",
    "authorization",
    "credential",
    "private_key",
}

REDACTED = "[REDACTED]"


def redact_sensitive(
    data: dict | list | str | None, _depth: int = 0
) -> dict | list | str | None:
    """Recursively redact sensitive fields from data structures.

    Scans dictionaries for keys containing known sensitive field names
    and replaces their values with '[REDACTED]'. Handles nested structures.

    Args:
        data: The data structure to redact (dict, list, str, or None)
        _depth: Internal recursion depth counter (prevents infinite loops)

    Returns:
        A copy of the data with sensitive fields redacted.

    Example:
        >>> redact_sensitive({'toEmail': 'a@b.c', 'subject': 'Hi'})
        {'toEmail': '[REDACTED]', 'subject': 'Hi'}
    """
    if _depth > 10:  # Prevent infinite recursion
        return REDACTED
    if data is None:
        return None
    if isinstance(data, str):
        return data
    if isinstance(data, list):
        return [redact_sensitive(item, _depth + 1) for item in data]
    if isinstance(data, dict):
        result = {}
        for key, value in data.items():
            key_lower = str(key).lower().replace("-", "_")
            if any(field in key_lower for field in REDACT_FIELDS):
                result[key] = REDACTED
            else:
                result[key] = redact_sensitive(value, _depth + 1)
        return result
    # For other types (int, float, bool, etc.), return as-is
    return data


def _utc_now_iso() -> str:
    """Generate current UTC timestamp in ISO8601 format."""
    return datetime.now(timezone.utc).isoformat()


class AuditSink(Protocol):
    """Anything that can persist an audit event for a session."""

    def append_audit_event(self, session_id: str, event: dict[str, Any]) -> None:
        ...


class AuditService:
    """Session-scoped audit logging with sensitive data redaction.

    Attributes:
        sink: Destination for events, normally the SessionStore.
    """

    def __init__(self, sink: AuditSink) -> None:
        """Initialize the audit service.

        Args:
            sink: Destination for events.
        """
        self.sink = sink

    def log(
        self,
        session_id: str,
        level: LogLevel,
        event_type: EventType,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Record an audit event.

        Core logging method that all other log methods delegate to.
        Redacts sensitive data in details before it reaches the sink.

        Args:
            session_id: Session the event belongs to.
            level: Severity level (INFO, WARNING, ERROR).
            event_type: Category of event.
            message: Human-readable event description.
            details: Optional structured data (will be redacted).

        Returns:
            The event as handed to the sink.
        """
        event = {
            "timestamp": _utc_now_iso(),
            "level": level.value,
            "event_type": event_type.value,
            "message": message,
            "details": redact_sensitive(details) if details is not None else None,
        }
        self.sink.append_audit_event(session_id, event)
        return event

    # Event-specific methods

    def log_message(self, session_id: str, role: str, sequence: int | None) -> dict[str, Any]:
        """Log receipt of a conversation message (content is not stored)."""
        return self.log(
            session_id,
            LogLevel.INFO,
            EventType.message,
            f"{role} message received",
            {"role": role, "sequence": sequence},
        )

    def log_phase_change(self, session_id: str, old_phase: str, new_phase: str) -> dict[str, Any]:
        """Log a conversation phase transition.

        Args:
            session_id: Session id.
            old_phase: Previous phase value.
            new_phase: New phase value.

        Returns:
            The recorded event.
        """
        return self.log(
            session_id,
            LogLevel.INFO,
            EventType.phase_change,
            f"Phase changed: {old_phase} -> {new_phase}",
            {"old_phase": old_phase, "new_phase": new_phase},
        )

    def log_auto_fix(
        self, session_id: str, graph_version: int, code: str, fix: str
    ) -> dict[str, Any]:
        """Log one validator auto-fix under its issue code."""
        return self.log(
            session_id,
            LogLevel.INFO,
            EventType.auto_fix,
            f"Auto-fix applied ({code}): {fix}",
            {"graph_version": graph_version, "code": code},
        )

    def log_deployment_step(
        self,
        session_id: str,
        step: str,
        outcome: str,
        details: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Log a deployment protocol step.

        Args:
            session_id: Session id.
            step: checkpoint, create, activate or health_check.
            outcome: ok or failed.
            details: Step data such as the health score.

        Returns:
            The recorded event.
        """
        level = LogLevel.INFO if outcome == "ok" else LogLevel.WARNING
        payload = {"step": step, "outcome": outcome}
        payload.update(details or {})
        return self.log(
            session_id,
            level,
            EventType.deployment_step,
            f"Deployment step {step}: {outcome}",
            payload,
        )

    def log_rollback(
        self,
        session_id: str,
        actions: list[str],
        succeeded: bool,
    ) -> dict[str, Any]:
        """Log a rollback attempt with the actions it performed."""
        return self.log(
            session_id,
            LogLevel.INFO if succeeded else LogLevel.ERROR,
            EventType.rollback,
            "Rollback completed" if succeeded else "Rollback failed",
            {"actions": actions, "succeeded": succeeded},
        )

    def log_error(
        self,
        session_id: str,
        code: str,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Log an error that was reported to the user."""
        payload = {"code": code}
        payload.update(details or {})
        return self.log(session_id, LogLevel.ERROR, EventType.error, message, payload)
