"""CLI output formatters for Rich tables and JSON.

Provides human-readable Rich table output (default) and machine-parseable
JSON output (--json flag). All formatting goes through these functions
so the CLI commands stay clean.
"""

import json

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from src.cli.config import AutoFlowConfig
from src.orchestrator.models import MessageResult, NamespaceStats, Phase, SessionStatus

console = Console()

# Phase color map
PHASE_COLORS = {
    Phase.UNDERSTANDING: "cyan",
    Phase.DESIGNING: "blue",
    Phase.VALIDATING: "blue",
    Phase.DEPLOYING: "yellow",
    Phase.MONITORING: "green",
    Phase.COMPLETED: "green",
    Phase.FAILED: "red",
    Phase.ROLLED_BACK: "magenta",
}


def format_phase(phase: Phase) -> str:
    """Return a Rich-markup phase label."""
    color = PHASE_COLORS.get(phase, "white")
    return f"[{color}]{phase.value}[/{color}]"


def render_reply(result: MessageResult) -> Panel:
    """Render an orchestrator reply as a panel titled with the phase."""
    return Panel(
        result.reply,
        title=format_phase(result.phase),
        title_align="left",
        border_style=PHASE_COLORS.get(result.phase, "white"),
    )


def format_session_status(status: SessionStatus, as_json: bool = False) -> str | Table:
    """Format a session status projection as a Rich table or JSON.

    Args:
        status: Session projection to display.
        as_json: If True, return JSON string instead of a Rich table.

    Returns:
        Formatted output.
    """
    if as_json:
        return status.model_dump_json(indent=2)

    table = Table(title=f"Session {status.session_id}", show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Tenant", status.tenant_id)
    table.add_row("Phase", format_phase(status.phase))
    table.add_row("History", " -> ".join(p.value for p in status.phase_history))
    table.add_row("Messages", str(len(status.message_log)))
    if status.intent:
        table.add_row("Intent", status.intent.describe())
    if status.graph:
        table.add_row(
            "Graph",
            f"{status.graph.name} (v{status.graph.version}, {len(status.graph.nodes)} nodes)",
        )
    if status.validation:
        table.add_row(
            "Validation",
            f"{'passed' if status.validation.passed else 'failed'}, "
            f"{len(status.validation.auto_fixes_applied)} auto-fix(es)",
        )
    if status.namespace:
        table.add_row("Namespace", status.namespace.prefix)
    if status.deployment:
        deployment = status.deployment
        table.add_row(
            "Deployment",
            f"{deployment.state.value} (health {deployment.health_score}/100, "
            f"graph v{deployment.graph_version})",
        )
    if status.failure:
        table.add_row(
            "Failure",
            f"[red]{status.failure.code}[/red] in {status.failure.origin_phase.value}: "
            f"{status.failure.message}",
        )
    table.add_row("Archived", "yes" if status.archived else "no")
    return table


def format_namespace_stats(stats: NamespaceStats, as_json: bool = False) -> str | Table:
    """Format namespace pool utilisation."""
    if as_json:
        return json.dumps(stats.model_dump(), indent=2)

    table = Table(title="Namespace pool")
    table.add_column("Total", justify="right")
    table.add_column("Assigned", justify="right", style="yellow")
    table.add_column("Available", justify="right", style="green")
    table.add_column("Utilization", justify="right")
    table.add_row(
        str(stats.total_slots),
        str(stats.assigned),
        str(stats.available),
        f"{stats.utilization_percent:.1f}%",
    )
    return table


def mask_secret(value: str) -> str:
    """Mask all but the last four characters of a secret."""
    if not value:
        return "(not set)"
    return "***" + value[-4:] if len(value) > 4 else "***"


def format_config(cfg: AutoFlowConfig) -> str:
    """Format resolved configuration with secrets masked."""
    data = cfg.model_dump()
    data["engine"]["api_key"] = mask_secret(cfg.engine.api_key)
    lines = []
    for section, values in data.items():
        lines.append(f"[bold]{section}:[/bold]")
        for key, value in values.items():
            lines.append(f"  {key}: {value}")
    return "\n".join(lines)
