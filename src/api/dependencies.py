"""Shared FastAPI dependencies."""

from fastapi import HTTPException, Request

from src.cli.factory import AutoFlowStack


def get_stack(request: Request) -> AutoFlowStack:
    """Return the orchestration stack created at startup.

    Raises:
        HTTPException: 503 if the application has not finished starting.
    """
    stack = getattr(request.app.state, "stack", None)
    if stack is None:
        raise HTTPException(status_code=503, detail="AutoFlow is starting up")
    return stack
