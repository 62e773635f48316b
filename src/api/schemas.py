"""Pydantic schemas for API request/response validation.

This module defines the data contracts for the AutoFlow REST API:
sending conversation messages, reading session status and audit trails,
and namespace pool statistics.
"""

from typing import Any

from pydantic import BaseModel, Field

from src.orchestrator.models import (
    DeploymentRecord,
    FailureInfo,
    Graph,
    Intent,
    MessageEntry,
    NamespaceAssignment,
    Phase,
    ValidationResult,
)


# Message schemas


class SendMessageRequest(BaseModel):
    """Request schema for sending a user message to a session."""

    text: str = Field(..., min_length=1, max_length=10000)
    tenant_id: str | None = Field(None, min_length=1, max_length=200)
    sequence: int | None = Field(None, ge=1)


class SendMessageResponse(BaseModel):
    """Response schema for a processed message."""

    session_id: str
    phase: Phase
    reply: str
    artifacts: dict[str, Any] = Field(default_factory=dict)


# Session schemas


class SessionStatusResponse(BaseModel):
    """Response schema for a session status projection."""

    session_id: str
    tenant_id: str
    phase: Phase
    message_log: list[MessageEntry]
    intent: Intent | None = None
    graph: Graph | None = None
    validation: ValidationResult | None = None
    deployment: DeploymentRecord | None = None
    namespace: NamespaceAssignment | None = None
    phase_history: list[Phase]
    failure: FailureInfo | None = None
    archived: bool


class AuditEventResponse(BaseModel):
    """Response schema for one audit event."""

    sequence: int
    timestamp: str
    level: str
    event_type: str
    message: str
    details: dict[str, Any] | None = None


class AuditTrailResponse(BaseModel):
    """Response schema for a session's audit trail."""

    session_id: str
    events: list[AuditEventResponse]


# Namespace schemas


class NamespaceStatsResponse(BaseModel):
    """Response schema for namespace pool utilisation."""

    total_slots: int
    assigned: int
    available: int
    utilization_percent: float


# Error schemas


class ErrorResponse(BaseModel):
    """Error body returned for AutoFlowError exceptions."""

    error_code: str
    message: str
    remediation: str
    details: dict[str, Any] | None = None
