"""Tests for audit events and redaction."""

import pytest

from src.services.audit_service import (
    REDACTED,
    AuditService,
    EventType,
    LogLevel,
    redact_sensitive,
)
from src.services.session_store import InMemorySessionStore


@pytest.fixture
def store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def audit(store) -> AuditService:
    return AuditService(store)


# ============================================================================
# Redaction
# ============================================================================


class TestRedactSensitive:
    """Tests for redact_sensitive."""

    def test_redacts_matching_keys(self):
        """Keys containing a sensitive name are replaced."""
        data = {"toEmail": "a@b.c", "X-Api-Key": "k", "subject": "Hi"}
        assert redact_sensitive(data) == {
            "toEmail": REDACTED,
            "X-Api-Key": REDACTED,
            "subject": "Hi",
        }

    def test_nested(self):
        """Nested dicts and lists are walked."""
        data = {"nodes": [{"parameters": {"password": "p", "url": "u"}}]}
        assert redact_sensitive(data) == {
            "nodes": [{"parameters": {"password": REDACTED, "url": "u"}}]
        }

    def test_scalars_pass_through(self):
        """Non-container values are returned as-is."""
        assert redact_sensitive(None) is None
        assert redact_sensitive("text") == "text"
        assert redact_sensitive({"count": 3}) == {"count": 3}

    def test_input_not_mutated(self):
        """Redaction returns a copy."""
        data = {"secret": "s"}
        redact_sensitive(data)
        assert data == {"secret": "s"}


# ============================================================================
# Event methods
# ============================================================================


class TestAuditService:
    """Tests for the event-specific helpers."""

    def test_log_writes_to_sink(self, audit, store):
        """Events reach the sink with level, type and redacted details."""
        audit.log("s1", LogLevel.WARNING, EventType.error, "oops", {"api_key": "k"})
        [event] = store.list_audit_events("s1")
        assert event["level"] == "WARNING"
        assert event["event_type"] == "error"
        assert event["details"] == {"api_key": REDACTED}
        assert event["timestamp"]

    def test_log_message_omits_content(self, audit, store):
        """Message events record the role and sequence, not the text."""
        audit.log_message("s1", "user", 4)
        [event] = store.list_audit_events("s1")
        assert event["details"] == {"role": "user", "sequence": 4}

    def test_phase_change(self, audit, store):
        """Phase events name both phases."""
        audit.log_phase_change("s1", "understanding", "designing")
        [event] = store.list_audit_events("s1")
        assert event["message"] == "Phase changed: understanding -> designing"

    def test_auto_fix(self, audit, store):
        """Each fix is its own event with the graph version and issue code."""
        audit.log_auto_fix("s1", 2, "dead-end", "attached terminal node 'no_op_4'")
        [event] = store.list_audit_events("s1")
        assert event["event_type"] == "auto_fix"
        assert event["message"] == "Auto-fix applied (dead-end): attached terminal node 'no_op_4'"
        assert event["details"] == {"graph_version": 2, "code": "dead-end"}

    def test_deployment_step_levels(self, audit, store):
        """Failed steps are warnings."""
        audit.log_deployment_step("s1", "create", "ok")
        audit.log_deployment_step("s1", "activate", "failed", {"reason": "boom"})
        levels = [e["level"] for e in store.list_audit_events("s1")]
        assert levels == ["INFO", "WARNING"]

    def test_rollback_failure_is_error(self, audit, store):
        """A failed rollback is logged at error level."""
        audit.log_rollback("s1", ["rollback failed: x"], succeeded=False)
        [event] = store.list_audit_events("s1")
        assert event["level"] == "ERROR"
        assert event["message"] == "Rollback failed"

    def test_log_error(self, audit, store):
        """Error events carry the registry code."""
        audit.log_error("s1", "E-2001", "no steps", {"phase": "designing"})
        [event] = store.list_audit_events("s1")
        assert event["details"] == {"code": "E-2001", "phase": "designing"}
