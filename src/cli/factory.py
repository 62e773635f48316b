"""Factory for assembling the orchestration stack from configuration.

The factory keeps the API and CLI from importing concrete backends
directly. Stores default to the SQL database from src.db.connection; the
--standalone CLI chat passes in-memory stores instead.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from src.cli.config import AutoFlowConfig
from src.orchestrator.conversation import ConversationOrchestrator
from src.orchestrator.nl_engine.graph_designer import GraphDesigner
from src.orchestrator.nl_engine.graph_validator import GraphValidator
from src.orchestrator.nl_engine.intent_parser import IntentParser
from src.services.audit_service import AuditService
from src.services.deployment_manager import DeploymentManager
from src.services.engine_client import AutomationEngine, N8nEngineClient
from src.services.namespace_allocator import (
    InMemoryNamespaceStore,
    NamespaceAllocator,
    NamespaceStore,
    SqlNamespaceStore,
)
from src.services.session_store import (
    InMemorySessionStore,
    SessionStore,
    SqlSessionStore,
)
from src.services.text_generation_client import AnthropicTextGenerator, TextGenerator


@dataclass
class AutoFlowStack:
    """Everything a front end needs to drive conversations.

    Attributes:
        orchestrator: The conversation orchestrator.
        allocator: Namespace allocator shared with the orchestrator.
        engine: Automation engine client; closed on shutdown when it
            supports ``close``.
    """

    orchestrator: ConversationOrchestrator
    allocator: NamespaceAllocator
    engine: AutomationEngine

    async def close(self) -> None:
        """Release engine connections."""
        close = getattr(self.engine, "close", None)
        if close is not None:
            await close()


def build_stack(
    config: Optional[AutoFlowConfig] = None,
    *,
    standalone: bool = False,
    engine: Optional[AutomationEngine] = None,
    generator: Optional[TextGenerator] = None,
    session_store: Optional[SessionStore] = None,
    namespace_store: Optional[NamespaceStore] = None,
) -> AutoFlowStack:
    """Create the orchestrator and its collaborators.

    Args:
        config: Loaded config. Defaults are used if None.
        standalone: If True, keep sessions and namespace slots in memory.
        engine: Engine override; defaults to an N8nEngineClient.
        generator: Text generator override; defaults to Anthropic.
        session_store: Session store override.
        namespace_store: Namespace store override.

    Returns:
        An AutoFlowStack.
    """
    config = config or AutoFlowConfig()

    if session_store is None or namespace_store is None:
        if standalone:
            session_store = session_store or InMemorySessionStore()
            namespace_store = namespace_store or InMemoryNamespaceStore()
        else:
            from src.db.connection import SessionLocal

            session_store = session_store or SqlSessionStore(SessionLocal)
            namespace_store = namespace_store or SqlNamespaceStore(SessionLocal)

    engine = engine or N8nEngineClient(
        base_url=config.engine.base_url,
        api_key=config.engine.api_key,
        timeout=config.engine.timeout,
    )
    generator = generator or AnthropicTextGenerator(
        model=config.generation.model,
        max_tokens=config.generation.max_tokens,
    )

    audit = AuditService(session_store)
    allocator = NamespaceAllocator(
        namespace_store,
        buckets=config.namespace.buckets,
        slots_per_bucket=config.namespace.slots_per_bucket,
    )
    orchestrator = ConversationOrchestrator(
        store=session_store,
        intent_parser=IntentParser(generator, timeout=config.generation.timeout),
        designer=GraphDesigner(),
        validator=GraphValidator(auto_fix_budget=config.validation.auto_fix_budget),
        deployer=DeploymentManager(
            engine,
            engine_timeout=config.engine.timeout,
            health_threshold=config.deployment.health_threshold,
            health_retries=config.deployment.health_retries,
            retry_backoff=config.deployment.retry_backoff,
            audit=audit,
        ),
        allocator=allocator,
        audit=audit,
        idle_timeout=timedelta(hours=config.sessions.idle_timeout_hours),
    )
    return AutoFlowStack(orchestrator=orchestrator, allocator=allocator, engine=engine)
