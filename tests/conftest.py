"""Root-level pytest fixtures for all tests.

Provides shared fixtures including:
- Database fixtures (in-memory SQLite)
- Fake automation engine and scripted text generator
- Fully wired orchestration stacks
- Common intents and graphs
"""

import os
from collections.abc import Generator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from src.cli.config import AutoFlowConfig, DeploymentConfig
from src.cli.factory import AutoFlowStack, build_stack
from src.db.models import Base
from src.orchestrator.models import Edge, Graph, Intent, IntentStep, Node
from src.services.session_store import SqlSessionStore
from src.services.namespace_allocator import SqlNamespaceStore
from tests.helpers import FakeEngine, ScriptedGenerator


# ============================================================================
# Skip Conditions
# ============================================================================

requires_anthropic_key = pytest.mark.skipif(
    not os.environ.get("ANTHROPIC_API_KEY"),
    reason="ANTHROPIC_API_KEY not set"
)


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
def session_factory() -> Generator[sessionmaker[Session], None, None]:
    """Create an in-memory SQLite database and return its session factory.

    StaticPool keeps one connection so every session sees the same database.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    engine.dispose()


# ============================================================================
# Collaborator Fixtures
# ============================================================================


@pytest.fixture
def fake_engine() -> FakeEngine:
    """Fresh in-memory automation engine."""
    return FakeEngine()


@pytest.fixture
def generator() -> ScriptedGenerator:
    """Scripted generator with no queued responses."""
    return ScriptedGenerator()


@pytest.fixture
def test_config() -> AutoFlowConfig:
    """Default config with no health-check backoff so retries are instant."""
    return AutoFlowConfig(deployment=DeploymentConfig(retry_backoff=0))


@pytest.fixture
def stack(
    test_config: AutoFlowConfig,
    fake_engine: FakeEngine,
    generator: ScriptedGenerator,
) -> AutoFlowStack:
    """Orchestration stack on in-memory stores and the fake engine."""
    return build_stack(
        test_config,
        standalone=True,
        engine=fake_engine,
        generator=generator,
    )


@pytest.fixture
def sql_stack(
    test_config: AutoFlowConfig,
    fake_engine: FakeEngine,
    generator: ScriptedGenerator,
    session_factory: sessionmaker[Session],
) -> AutoFlowStack:
    """Orchestration stack on SQL stores and the fake engine."""
    return build_stack(
        test_config,
        engine=fake_engine,
        generator=generator,
        session_store=SqlSessionStore(session_factory),
        namespace_store=SqlNamespaceStore(session_factory),
    )


# ============================================================================
# Test Data Fixtures
# ============================================================================


@pytest.fixture
def schedule_intent() -> Intent:
    """Scheduled fetch-then-notify intent."""
    return Intent(
        goal="Email the daily sales report",
        trigger="schedule",
        steps=[
            IntentStep(action="fetch", parameters={"url": "https://api.example.com/report"}),
            IntentStep(action="notify", parameters={"toEmail": "ops@example.com"}),
        ],
    )


@pytest.fixture
def linear_graph() -> Graph:
    """Valid three-node graph: manual trigger -> http request -> no-op."""
    return Graph(
        name="Ping an endpoint",
        nodes=(
            Node(id="manual_trigger_1", kind="manual_trigger", position=(240, 300)),
            Node(
                id="http_request_2",
                kind="http_request",
                parameters={"url": "https://example.com", "method": "GET", "options": {}},
                position=(460, 300),
            ),
            Node(id="no_op_3", kind="no_op", position=(680, 300)),
        ),
        edges=(
            Edge(from_node_id="manual_trigger_1", to_node_id="http_request_2"),
            Edge(from_node_id="http_request_2", to_node_id="no_op_3"),
        ),
    )
