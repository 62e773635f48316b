"""Pytest fixtures for API tests.

Provides a TestClient whose stack dependency is overridden with the
in-memory orchestration stack, so no database file or engine is needed.
"""

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient

from src.api.dependencies import get_stack
from src.api.main import app
from src.cli.factory import AutoFlowStack


@pytest.fixture
def client(stack: AutoFlowStack) -> Generator[TestClient, None, None]:
    """Create a TestClient with the stack dependency overridden.

    The client is not entered as a context manager, so the lifespan (which
    opens the real database and engine) does not run.

    Args:
        stack: In-memory orchestration stack.

    Yields:
        TestClient configured for testing.
    """
    app.dependency_overrides[get_stack] = lambda: stack
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
