"""Interactive conversational REPL for the AutoFlow orchestrator.

Provides a terminal-based chat interface with Rich rendering of replies,
phase changes and deployment artifacts.
"""

from uuid import uuid4

from rich.console import Console

from src.cli.factory import AutoFlowStack
from src.cli.output import render_reply

console = Console()


async def run_repl(
    stack: AutoFlowStack,
    session_id: str | None = None,
    tenant_id: str | None = None,
) -> None:
    """Run the interactive conversational REPL.

    Args:
        stack: Orchestration stack to talk to.
        session_id: Optional session ID to resume. Creates new if None.
        tenant_id: Tenant for a new session.
    """
    if session_id is None:
        session_id = str(uuid4())
    console.print(f"[dim]Session: {session_id}[/dim]")

    console.print()
    console.print("[bold]AutoFlow[/bold] - Interactive Mode")
    console.print("Describe the automation you want. Ctrl+D to exit.")
    console.print()

    try:
        while True:
            try:
                user_input = console.input("[bold green]> [/bold green]")
            except EOFError:
                # Ctrl+D
                break

            if not user_input.strip():
                continue

            result = await stack.orchestrator.handle_message(
                session_id, user_input, tenant_id=tenant_id
            )
            console.print(render_reply(result))
            deployment = result.artifacts.get("deployment")
            if deployment and deployment.get("webhook_ref"):
                console.print(f"[dim]Webhook: {deployment['webhook_ref']}[/dim]")
            if result.phase.is_terminal:
                break
    except KeyboardInterrupt:
        console.print()
    finally:
        await stack.close()

    console.print("[dim]Goodbye.[/dim]")
