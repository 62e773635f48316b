"""Orchestration core for AutoFlow.

Turns a natural-language request into a deployed automation through a
phased conversation: understanding, designing, validating, deploying and
monitoring.

Main Entry Points:
    ConversationOrchestrator (src.orchestrator.conversation): the phase
        state machine. Imported from its module directly; this package
        only re-exports models so services can depend on them freely.

Supporting Models:
    Intent: Structured request extracted from user text.
    Graph: Automation graph of nodes and edges.
    Session: Conversation state owned by the orchestrator.
"""

from src.orchestrator.models import (
    DeploymentRecord,
    DeploymentState,
    Edge,
    Graph,
    Intent,
    IntentConstraints,
    IntentStep,
    MessageResult,
    NamespaceAssignment,
    Node,
    Phase,
    Session,
    SessionStatus,
    ValidationIssue,
    ValidationResult,
)

__all__ = [
    # Intent models
    "Intent",
    "IntentStep",
    "IntentConstraints",
    # Graph models
    "Node",
    "Edge",
    "Graph",
    "ValidationIssue",
    "ValidationResult",
    # Deployment
    "DeploymentRecord",
    "DeploymentState",
    "NamespaceAssignment",
    # Sessions
    "Phase",
    "Session",
    "SessionStatus",
    "MessageResult",
]
