"""FastAPI routes for automation conversations.

Each session is one conversation that turns a request into one deployed
automation. Messages for the same session are serialized by the
orchestrator; different sessions run concurrently.

Endpoints:
    POST /sessions/{id}/messages - Send a user message
    GET  /sessions/{id}          - Session status projection
    GET  /sessions/{id}/audit    - Audit trail, oldest first
"""

import logging

from fastapi import APIRouter, Depends

from src.api.dependencies import get_stack
from src.api.schemas import (
    AuditEventResponse,
    AuditTrailResponse,
    SendMessageRequest,
    SendMessageResponse,
    SessionStatusResponse,
)
from src.cli.factory import AutoFlowStack

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["sessions"])


@router.post("/{session_id}/messages", response_model=SendMessageResponse)
async def send_message(
    session_id: str,
    payload: SendMessageRequest,
    stack: AutoFlowStack = Depends(get_stack),
) -> SendMessageResponse:
    """Send a user message and return the orchestrator's reply.

    The session is created on first use. Errors inside the conversation are
    reported in the reply, not as HTTP errors.

    Args:
        session_id: Conversation id chosen by the client.
        payload: Message text, optional tenant and sequence number.
        stack: Orchestration stack.

    Returns:
        Phase after the message, the reply and any artifacts.
    """
    result = await stack.orchestrator.handle_message(
        session_id,
        payload.text,
        tenant_id=payload.tenant_id,
        sequence=payload.sequence,
    )
    return SendMessageResponse(
        session_id=session_id,
        phase=result.phase,
        reply=result.reply,
        artifacts=result.artifacts,
    )


@router.get("/{session_id}", response_model=SessionStatusResponse)
def get_session(
    session_id: str,
    stack: AutoFlowStack = Depends(get_stack),
) -> SessionStatusResponse:
    """Return the session status projection.

    Raises:
        SessionNotFoundError: Mapped to 404 by the application handler.
    """
    status = stack.orchestrator.get_status(session_id)
    return SessionStatusResponse.model_validate(status.model_dump())


@router.get("/{session_id}/audit", response_model=AuditTrailResponse)
def get_session_audit(
    session_id: str,
    stack: AutoFlowStack = Depends(get_stack),
) -> AuditTrailResponse:
    """Return the session's audit events in order."""
    events = stack.orchestrator.get_audit_trail(session_id)
    return AuditTrailResponse(
        session_id=session_id,
        events=[AuditEventResponse(**event) for event in events],
    )
