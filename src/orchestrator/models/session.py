"""Conversation session models.

A Session is the orchestrator's unit of state: one conversation that turns
a request into one deployed automation. Its ``phase`` only moves forward
through PHASE_ORDER or jumps to an absorbing terminal phase.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from src.orchestrator.models.deployment import DeploymentRecord
from src.orchestrator.models.graph import Graph
from src.orchestrator.models.intent import Intent
from src.orchestrator.models.namespace import NamespaceAssignment
from src.orchestrator.models.validation import ValidationResult


class Phase(str, Enum):
    """Conversation phases."""

    UNDERSTANDING = "understanding"
    DESIGNING = "designing"
    VALIDATING = "validating"
    DEPLOYING = "deploying"
    MONITORING = "monitoring"
    COMPLETED = "completed"
    FAILED = "failed"
    ROLLED_BACK = "rolled_back"

    @property
    def is_terminal(self) -> bool:
        """Whether the phase is absorbing."""
        return self in TERMINAL_PHASES


PHASE_ORDER: tuple[Phase, ...] = (
    Phase.UNDERSTANDING,
    Phase.DESIGNING,
    Phase.VALIDATING,
    Phase.DEPLOYING,
    Phase.MONITORING,
    Phase.COMPLETED,
)

TERMINAL_PHASES = frozenset({Phase.COMPLETED, Phase.FAILED, Phase.ROLLED_BACK})


def is_forward_transition(current: Phase, target: Phase) -> bool:
    """Return True if moving from ``current`` to ``target`` is allowed.

    Allowed moves are: staying put, advancing along PHASE_ORDER, jumping to
    failed from any non-terminal phase, and jumping to rolled_back from
    deploying or monitoring.
    """
    if current.is_terminal:
        return current == target
    if target == current:
        return True
    if target == Phase.FAILED:
        return True
    if target == Phase.ROLLED_BACK:
        return current in (Phase.DEPLOYING, Phase.MONITORING)
    return PHASE_ORDER.index(target) > PHASE_ORDER.index(current)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MessageEntry(BaseModel):
    """One entry in the session message log."""

    role: str
    text: str
    timestamp: datetime = Field(default_factory=_utc_now)
    sequence: Optional[int] = None
    informational: bool = False


class FailureInfo(BaseModel):
    """Why a session ended in the failed phase."""

    origin_phase: Phase
    code: str
    message: str


class Session(BaseModel):
    """Full conversation state, owned by the orchestrator.

    Attributes:
        session_id: Caller-provided conversation id
        tenant_id: Tenant the session deploys for
        phase: Current phase
        message_log: Ordered user/assistant messages
        intent: Latest extracted intent
        graph: Latest designed (or auto-fixed) graph
        validation: Latest validation result
        deployment: Latest deployment record
        namespace: Cached namespace assignment
        last_sequence: Highest user message sequence processed
        last_reply: Reply for last_sequence, returned on replay
        last_artifacts: Artifacts for last_sequence, returned on replay
        phase_history: Every phase entered, in order
        failure: Failure details once the phase is failed
        archived: True once moved out of the live set
    """

    model_config = ConfigDict(validate_assignment=False)

    session_id: str
    tenant_id: str
    phase: Phase = Phase.UNDERSTANDING
    message_log: list[MessageEntry] = Field(default_factory=list)
    intent: Optional[Intent] = None
    graph: Optional[Graph] = None
    validation: Optional[ValidationResult] = None
    deployment: Optional[DeploymentRecord] = None
    namespace: Optional[NamespaceAssignment] = None
    last_sequence: int = 0
    last_reply: str = ""
    last_artifacts: dict[str, Any] = Field(default_factory=dict)
    phase_history: list[Phase] = Field(
        default_factory=lambda: [Phase.UNDERSTANDING]
    )
    failure: Optional[FailureInfo] = None
    archived: bool = False
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)

    def touch(self) -> None:
        """Bump updated_at to now."""
        self.updated_at = _utc_now()


class SessionStatus(BaseModel):
    """Read-only projection of a session returned by get_status."""

    model_config = ConfigDict(frozen=True)

    session_id: str
    tenant_id: str
    phase: Phase
    message_log: list[MessageEntry]
    intent: Optional[Intent] = None
    graph: Optional[Graph] = None
    validation: Optional[ValidationResult] = None
    deployment: Optional[DeploymentRecord] = None
    namespace: Optional[NamespaceAssignment] = None
    phase_history: list[Phase] = Field(default_factory=list)
    failure: Optional[FailureInfo] = None
    archived: bool = False


class MessageResult(BaseModel):
    """Return value of handle_message.

    ``reply`` is shown to the user and never contains engine identifiers;
    those travel in ``artifacts``.
    """

    phase: Phase
    reply: str
    artifacts: dict[str, Any] = Field(default_factory=dict)
