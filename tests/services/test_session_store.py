"""Tests for session persistence (in-memory and SQL)."""

from datetime import datetime, timedelta, timezone

import pytest

from src.orchestrator.models import DeploymentRecord, MessageEntry, Phase, Session
from src.services.session_store import InMemorySessionStore, SqlSessionStore


@pytest.fixture(params=["memory", "sql"])
def store(request):
    """Each test runs against both stores."""
    if request.param == "memory":
        return InMemorySessionStore()
    return SqlSessionStore(request.getfixturevalue("session_factory"))


def _session(session_id: str = "s1", **kwargs) -> Session:
    return Session(session_id=session_id, tenant_id=kwargs.pop("tenant_id", session_id), **kwargs)


# ============================================================================
# Load / save
# ============================================================================


class TestLoadSave:
    """Tests for snapshot persistence."""

    def test_unknown_session(self, store):
        """Loading an unknown id returns None."""
        assert store.load("missing") is None

    def test_round_trip(self, store, schedule_intent, linear_graph):
        """Everything the orchestrator stores comes back intact."""
        session = _session(
            phase=Phase.MONITORING,
            intent=schedule_intent,
            graph=linear_graph,
            deployment=DeploymentRecord(graph_version=1, external_id="wf-1"),
            message_log=[MessageEntry(role="user", text="hi", sequence=1)],
            last_sequence=1,
            last_reply="hello",
            phase_history=[Phase.UNDERSTANDING, Phase.MONITORING],
        )
        store.save(session)

        loaded = store.load("s1")
        assert loaded == session

    def test_save_overwrites(self, store):
        """Saving again replaces the snapshot."""
        session = _session()
        store.save(session)
        session.phase = Phase.DESIGNING
        store.save(session)
        assert store.load("s1").phase == Phase.DESIGNING

    def test_store_does_not_share_state(self, store):
        """Mutating a loaded session does not change the stored one."""
        store.save(_session())
        loaded = store.load("s1")
        loaded.last_reply = "changed"
        assert store.load("s1").last_reply == ""


# ============================================================================
# Audit events
# ============================================================================


class TestAuditEvents:
    """Tests for the append-only audit trail."""

    def test_sequence_numbers(self, store):
        """Events are numbered per session from 1."""
        for i in range(3):
            store.append_audit_event("s1", {"message": f"e{i}", "event_type": "message", "level": "INFO"})
        store.append_audit_event("s2", {"message": "other", "event_type": "error", "level": "ERROR"})

        events = store.list_audit_events("s1")
        assert [e["sequence"] for e in events] == [1, 2, 3]
        assert [e["message"] for e in events] == ["e0", "e1", "e2"]
        assert [e["sequence"] for e in store.list_audit_events("s2")] == [1]

    def test_details_round_trip(self, store):
        """Structured details come back as dicts."""
        store.append_audit_event(
            "s1",
            {"message": "m", "event_type": "auto_fix", "level": "INFO", "details": {"graph_version": 2}},
        )
        assert store.list_audit_events("s1")[0]["details"] == {"graph_version": 2}

    def test_no_events(self, store):
        """An unknown session has an empty trail."""
        assert store.list_audit_events("nobody") == []


# ============================================================================
# Archive and idle sweep
# ============================================================================


class TestArchive:
    """Tests for archiving."""

    def test_archive(self, store):
        """Archived sessions stay loadable."""
        store.save(_session())
        store.archive("s1")
        assert store.load("s1").archived is True

    def test_archive_unknown_is_noop(self, store):
        """Archiving a missing session does nothing."""
        store.archive("missing")
        assert store.load("missing") is None

    def test_list_idle(self, store):
        """Only active sessions older than the cutoff are listed."""
        old = datetime.now(timezone.utc) - timedelta(hours=2)
        stale = _session("stale", updated_at=old)
        archived = _session("archived", updated_at=old, archived=True)
        fresh = _session("fresh")
        for s in (stale, archived, fresh):
            store.save(s)

        cutoff = datetime.now(timezone.utc) - timedelta(hours=1)
        assert store.list_idle(cutoff) == ["stale"]
