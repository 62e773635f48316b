"""Pydantic models for the orchestration core.

This module exports models for intents, automation graphs, validation
results, deployments, namespace assignments, and conversation sessions.
"""

from src.orchestrator.models.deployment import (
    VALID_DEPLOYMENT_TRANSITIONS,
    Checkpoint,
    DeploymentRecord,
    DeploymentState,
)
from src.orchestrator.models.graph import Edge, Graph, Node
from src.orchestrator.models.intent import (
    Intent,
    IntentConstraints,
    IntentStep,
    TriggerType,
)
from src.orchestrator.models.namespace import (
    NamespaceAssignment,
    NamespaceStats,
    SlotStatus,
    format_prefix,
)
from src.orchestrator.models.session import (
    PHASE_ORDER,
    TERMINAL_PHASES,
    FailureInfo,
    MessageEntry,
    MessageResult,
    Phase,
    Session,
    SessionStatus,
    is_forward_transition,
)
from src.orchestrator.models.validation import (
    Severity,
    ValidationIssue,
    ValidationResult,
)

__all__ = [
    # Intent models
    "Intent",
    "IntentStep",
    "IntentConstraints",
    "TriggerType",
    # Graph models
    "Node",
    "Edge",
    "Graph",
    # Validation models
    "Severity",
    "ValidationIssue",
    "ValidationResult",
    # Deployment models
    "Checkpoint",
    "DeploymentRecord",
    "DeploymentState",
    "VALID_DEPLOYMENT_TRANSITIONS",
    # Namespace models
    "NamespaceAssignment",
    "NamespaceStats",
    "SlotStatus",
    "format_prefix",
    # Session models
    "Phase",
    "PHASE_ORDER",
    "TERMINAL_PHASES",
    "is_forward_transition",
    "MessageEntry",
    "FailureInfo",
    "Session",
    "SessionStatus",
    "MessageResult",
]
