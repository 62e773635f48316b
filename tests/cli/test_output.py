"""Tests for CLI output formatters."""

import json

import pytest
from rich.console import Console
from rich.table import Table

from src.cli.config import AutoFlowConfig, EngineConfig
from src.cli.output import (
    format_config,
    format_namespace_stats,
    format_phase,
    format_session_status,
    mask_secret,
    render_reply,
)
from src.orchestrator.models import (
    MessageResult,
    NamespaceStats,
    Phase,
    SessionStatus,
)


def _render(renderable) -> str:
    console = Console(record=True, width=120)
    console.print(renderable)
    return console.export_text()


@pytest.fixture
def status() -> SessionStatus:
    return SessionStatus(
        session_id="s1",
        tenant_id="acme",
        phase=Phase.UNDERSTANDING,
        message_log=[],
        phase_history=[Phase.UNDERSTANDING],
    )


class TestMaskSecret:
    """Tests for mask_secret."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("", "(not set)"),
            ("abcd", "***"),
            ("n8n_api_key_1234", "***1234"),
        ],
    )
    def test_masking(self, value, expected):
        """Only the last four characters of long secrets survive."""
        assert mask_secret(value) == expected


def test_format_phase_uses_color_markup():
    """Phase labels are wrapped in their color."""
    assert format_phase(Phase.FAILED) == "[red]failed[/red]"
    assert format_phase(Phase.MONITORING) == "[green]monitoring[/green]"


def test_render_reply_shows_text():
    """The reply text appears inside the panel."""
    result = MessageResult(phase=Phase.MONITORING, reply="Your automation is live.")
    assert "Your automation is live." in _render(render_reply(result))


class TestSessionStatus:
    """Tests for format_session_status."""

    def test_json(self, status):
        """JSON output round-trips through json.loads."""
        data = json.loads(format_session_status(status, as_json=True))
        assert data["session_id"] == "s1"
        assert data["phase"] == "understanding"

    def test_table(self, status):
        """Table output lists tenant and phase history."""
        table = format_session_status(status)
        assert isinstance(table, Table)
        text = _render(table)
        assert "acme" in text
        assert "understanding" in text
        assert "Deployment" not in text


class TestNamespaceStats:
    """Tests for format_namespace_stats."""

    def test_json(self):
        """JSON output carries every counter."""
        stats = NamespaceStats(total_slots=50, assigned=5, available=45, utilization_percent=10.0)
        data = json.loads(format_namespace_stats(stats, as_json=True))
        assert data == {
            "total_slots": 50,
            "assigned": 5,
            "available": 45,
            "utilization_percent": 10.0,
        }

    def test_table(self):
        """Table output shows the utilisation percentage."""
        stats = NamespaceStats(total_slots=50, assigned=5, available=45, utilization_percent=10.0)
        assert "10.0%" in _render(format_namespace_stats(stats))


def test_format_config_masks_api_key():
    """The engine API key never appears in full."""
    cfg = AutoFlowConfig(engine=EngineConfig(api_key="super-secret-9876"))
    text = format_config(cfg)
    assert "super-secret-9876" not in text
    assert "api_key: ***9876" in text
    assert "[bold]deployment:[/bold]" in text
