"""Deployment record models.

A DeploymentRecord tracks one attempt to put a validated graph live on the
automation engine, from checkpoint through health check. The Deployment
Manager is the only writer.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class DeploymentState(str, Enum):
    """Lifecycle of a deployment attempt."""

    PENDING = "pending"
    ACTIVE = "active"
    MONITORING = "monitoring"
    DEGRADED = "degraded"
    ROLLED_BACK = "rolled_back"
    FAILED = "failed"


# Allowed transitions; anything else is a programming error.
VALID_DEPLOYMENT_TRANSITIONS: dict[DeploymentState, frozenset[DeploymentState]] = {
    DeploymentState.PENDING: frozenset(
        {DeploymentState.ACTIVE, DeploymentState.FAILED}
    ),
    DeploymentState.ACTIVE: frozenset(
        {
            DeploymentState.MONITORING,
            DeploymentState.ROLLED_BACK,
            DeploymentState.FAILED,
        }
    ),
    DeploymentState.MONITORING: frozenset(
        {
            DeploymentState.DEGRADED,
            DeploymentState.ROLLED_BACK,
            DeploymentState.FAILED,
        }
    ),
    DeploymentState.DEGRADED: frozenset(
        {
            DeploymentState.MONITORING,
            DeploymentState.ROLLED_BACK,
            DeploymentState.FAILED,
        }
    ),
    DeploymentState.ROLLED_BACK: frozenset(),
    DeploymentState.FAILED: frozenset(),
}


class Checkpoint(BaseModel):
    """Engine state captured before any mutating deployment call.

    Attributes:
        prior_external_id: Artifact the session had deployed before, if any
        prior_active: Whether that artifact was active at checkpoint time
    """

    model_config = ConfigDict(frozen=True)

    prior_external_id: Optional[str] = None
    prior_active: bool = False


class DeploymentRecord(BaseModel):
    """One deployment attempt.

    Attributes:
        graph_version: Version of the graph that was submitted
        artifact_name: Name the artifact was created under
        external_id: Engine id of the created artifact, once created
        checkpoint: Prior state for rollback, None before checkpointing
        state: Current lifecycle state
        health_score: 0-100 score from the last health check
        deductions: Rubric deductions from the last health check
        webhook_ref: Webhook path for webhook-triggered graphs
        failed_step: Step that failed (create, activate, health_check)
        error: Failure description without engine identifiers
        rollback_actions: Rollback steps performed, in order
    """

    model_config = ConfigDict(from_attributes=True)

    graph_version: int
    artifact_name: str = ""
    external_id: Optional[str] = None
    checkpoint: Optional[Checkpoint] = None
    state: DeploymentState = DeploymentState.PENDING
    health_score: int = Field(default=0, ge=0, le=100)
    deductions: list[str] = Field(default_factory=list)
    webhook_ref: Optional[str] = None
    failed_step: Optional[str] = None
    error: Optional[str] = None
    rollback_actions: list[str] = Field(default_factory=list)
