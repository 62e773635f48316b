"""AutoFlow CLI - conversational automation builder.

Unified entry point for the API server, the interactive chat and
inspection commands.

Usage:
    autoflow serve                Start the AutoFlow API server
    autoflow chat                 Start conversational REPL
    autoflow status <session>     Show a session
    autoflow namespace stats      Show namespace pool utilisation
    autoflow config show          Show resolved configuration
"""

import asyncio
import logging
import os
from typing import Optional

import typer
from rich.console import Console

from src.cli.config import load_config
from src.cli.output import (
    format_config,
    format_namespace_stats,
    format_session_status,
)
from src.errors import AutoFlowError, AutoFlowErrorInfo, format_error

_log = logging.getLogger(__name__)

app = typer.Typer(
    name="autoflow",
    help="Natural language automation builder",
    no_args_is_help=True,
)
config_app = typer.Typer(help="Configuration management")
namespace_app = typer.Typer(help="Namespace pool inspection")

app.add_typer(config_app, name="config")
app.add_typer(namespace_app, name="namespace")

console = Console()

# --- Global state ---
_standalone: bool = False
_config_path: str | None = None


@app.callback()
def main(
    standalone: bool = typer.Option(
        False, "--standalone", help="Keep sessions in memory instead of the database"
    ),
    config: Optional[str] = typer.Option(
        None, "--config", help="Path to autoflow.yaml config file"
    ),
):
    """AutoFlow CLI - natural language automation builder."""
    global _standalone, _config_path
    _standalone = standalone
    _config_path = config


def _build_stack():
    """Load config and assemble the stack, preparing the database if used."""
    from src.cli.factory import build_stack

    cfg = load_config(config_path=_config_path)
    if not _standalone:
        from src.db.connection import init_db
        from src.utils.paths import ensure_dirs_exist

        ensure_dirs_exist()
        init_db()
    return build_stack(cfg, standalone=_standalone)


# --- Server ---


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address"),
    port: Optional[int] = typer.Option(None, "--port", help="Bind port"),
):
    """Start the AutoFlow API server."""
    import uvicorn

    cfg = load_config(config_path=_config_path)
    final_host = host or cfg.daemon.host
    final_port = port or cfg.daemon.port

    # Propagate config path to API startup so it loads the same config.
    if _config_path:
        os.environ["AUTOFLOW_CONFIG_PATH"] = str(_config_path)

    console.print(f"[bold]Starting AutoFlow API on {final_host}:{final_port}[/bold]")
    uvicorn.run(
        "src.api.main:app",
        host=final_host,
        port=final_port,
        log_level=cfg.daemon.log_level,
    )


# --- Conversation ---


@app.command()
def chat(
    session: Optional[str] = typer.Option(
        None, "--session", help="Resume existing session ID"
    ),
    tenant: Optional[str] = typer.Option(
        None, "--tenant", help="Tenant ID for a new session"
    ),
):
    """Start a conversational REPL."""
    from src.cli.repl import run_repl

    stack = _build_stack()
    asyncio.run(run_repl(stack, session_id=session, tenant_id=tenant))


@app.command()
def status(
    session_id: str = typer.Argument(help="Session ID to inspect"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Show the status of a session."""
    stack = _build_stack()
    try:
        projection = stack.orchestrator.get_status(session_id)
    except AutoFlowError as e:
        console.print(f"[red]{format_error(AutoFlowErrorInfo.from_exception(e))}[/red]")
        raise typer.Exit(1)
    finally:
        asyncio.run(stack.close())
    console.print(format_session_status(projection, as_json=json_output))


# --- Namespace commands ---


@namespace_app.command("stats")
def namespace_stats(
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Show namespace pool utilisation."""
    stack = _build_stack()
    try:
        stats = stack.allocator.stats()
    finally:
        asyncio.run(stack.close())
    console.print(format_namespace_stats(stats, as_json=json_output))


# --- Config commands ---


@config_app.command("show")
def config_show():
    """Display resolved configuration (secrets masked)."""
    try:
        cfg = load_config(config_path=_config_path)
    except FileNotFoundError as e:
        console.print(f"[red]Config file not found:[/red] {e}")
        raise typer.Exit(1)
    except ValueError as e:
        console.print(f"[red]Config validation failed:[/red] {e}")
        raise typer.Exit(1)
    console.print(format_config(cfg))


if __name__ == "__main__":
    app()
