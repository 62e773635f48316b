"""Deployment manager: checkpoint, create, activate, health check, rollback.

Protocol for one deployment attempt:

1. Checkpoint the session's prior artifact and whether it was active.
   Captured before any mutating call.
2. Create the artifact, named with the tenant's namespace prefix. A failure
   here changed nothing, so the record goes straight to failed.
3. Activate: deactivate the prior artifact if it was active, then activate
   the new one. A failure rolls back to the checkpoint, then fails.
4. Health check: re-fetch (retried) and exercise the artifact, scoring
   structure 40, activation 30, exercise/equivalence 30. Below the threshold
   the attempt is rolled back.
5. Success leaves the record in monitoring.

Only the health-check read is retried. Create and activate are never retried
because a repeated create can leave a duplicate artifact behind. Every engine
call is bounded by ``engine_timeout``; a timeout fails the step like any other
error. A rollback that fails raises RollbackFailure, never the original error.
"""

import asyncio
import logging
from typing import Any, Awaitable, Optional, TypeVar

from src.errors import ConcurrencyViolation, DeploymentFailure, RollbackFailure
from src.orchestrator.models.deployment import (
    VALID_DEPLOYMENT_TRANSITIONS,
    Checkpoint,
    DeploymentRecord,
    DeploymentState,
)
from src.orchestrator.models.graph import Graph
from src.orchestrator.models.namespace import NamespaceAssignment
from src.services.audit_service import AuditService
from src.services.engine_client import (
    AutomationEngine,
    EngineError,
    EngineTimeout,
    ExerciseNotSupported,
)
from src.services.engine_payload_builder import (
    build_engine_payload,
    node_names,
    structural_signature,
    webhook_path,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Health rubric weights
STRUCTURE_POINTS = 40
ACTIVATION_POINTS = 30
EXERCISE_POINTS = 30

DEFAULT_ENGINE_TIMEOUT = 30.0
DEFAULT_HEALTH_THRESHOLD = 60
DEFAULT_HEALTH_RETRIES = 2
DEFAULT_RETRY_BACKOFF = 1.0

HEALTH_CHECK_SAMPLE: dict[str, Any] = {"autoflow_health_check": True}

_ACTIVE_STATES = (
    DeploymentState.ACTIVE,
    DeploymentState.MONITORING,
    DeploymentState.DEGRADED,
)


def _transition(record: DeploymentRecord, target: DeploymentState) -> None:
    if target not in VALID_DEPLOYMENT_TRANSITIONS[record.state]:
        raise ConcurrencyViolation(
            f"deployment cannot move from {record.state.value} to {target.value}"
        )
    record.state = target


class DeploymentManager:
    """Runs the deployment protocol against an AutomationEngine.

    Attributes:
        engine: Engine client.
        engine_timeout: Seconds allowed per engine call.
        health_threshold: Minimum passing health score.
        health_retries: Retries for the health-check read.
        retry_backoff: Linear backoff unit in seconds (attempt n waits n units).
        audit: Optional audit trail for step events.
    """

    def __init__(
        self,
        engine: AutomationEngine,
        *,
        engine_timeout: float = DEFAULT_ENGINE_TIMEOUT,
        health_threshold: int = DEFAULT_HEALTH_THRESHOLD,
        health_retries: int = DEFAULT_HEALTH_RETRIES,
        retry_backoff: float = DEFAULT_RETRY_BACKOFF,
        audit: Optional[AuditService] = None,
    ) -> None:
        self.engine = engine
        self.engine_timeout = engine_timeout
        self.health_threshold = health_threshold
        self.health_retries = health_retries
        self.retry_backoff = retry_backoff
        self.audit = audit

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def deploy(
        self,
        graph: Graph,
        namespace: NamespaceAssignment,
        *,
        prior: Optional[DeploymentRecord] = None,
        session_id: str = "",
    ) -> DeploymentRecord:
        """Deploy a validated graph.

        Args:
            graph: Graph that passed validation.
            namespace: Tenant namespace; its prefix names the artifact.
            prior: The session's previous deployment, if any.
            session_id: Session id for audit events.

        Returns:
            DeploymentRecord in state monitoring.

        Raises:
            DeploymentFailure: create, activate or health check failed. The
                attached record is failed (create/activate) or rolled_back
                (health check).
            RollbackFailure: A rollback was needed and did not complete.
        """
        record = DeploymentRecord(
            graph_version=graph.version,
            artifact_name=f"{namespace.prefix} {graph.name}",
        )
        payload = build_engine_payload(graph, record.artifact_name)

        # 1. Checkpoint
        record.checkpoint = await self._checkpoint(prior)
        self._audit(session_id, "checkpoint", "ok", {"has_prior": bool(prior)})

        # 2. Create
        try:
            record.external_id = await self._call(
                "create", self.engine.create_artifact(payload, record.artifact_name)
            )
        except EngineError as e:
            _transition(record, DeploymentState.FAILED)
            record.failed_step = "create"
            record.error = e.reason
            self._audit(session_id, "create", "failed", {"reason": e.reason})
            logger.warning("Create failed for '%s': %s", record.artifact_name, e)
            raise DeploymentFailure(
                e.reason,
                step="create",
                code=_step_code(e, "E-3001"),
                context={"timeout": self.engine_timeout},
                record=record,
            ) from e
        self._audit(session_id, "create", "ok")

        # 3. Activate
        try:
            if record.checkpoint.prior_active and record.checkpoint.prior_external_id:
                await self._call(
                    "deactivate", self.engine.deactivate(record.checkpoint.prior_external_id)
                )
            await self._call("activate", self.engine.activate(record.external_id))
        except EngineError as e:
            record.failed_step = "activate"
            record.error = e.reason
            self._audit(session_id, "activate", "failed", {"reason": e.reason})
            logger.warning("Activate failed for '%s': %s", record.artifact_name, e)
            failure = DeploymentFailure(
                e.reason,
                step="activate",
                code=_step_code(e, "E-3002"),
                context={"timeout": self.engine_timeout},
                record=record,
            )
            await self._rollback_or_escalate(record, failure, session_id)
            _transition(record, DeploymentState.FAILED)
            raise failure from e
        _transition(record, DeploymentState.ACTIVE)
        self._audit(session_id, "activate", "ok")

        # 4. Health check
        score, deductions = await self._score(record.external_id, payload)
        record.health_score = score
        record.deductions = deductions
        self._audit(
            session_id, "health_check", "ok" if score >= self.health_threshold else "failed",
            {"score": score, "deductions": deductions},
        )
        if score < self.health_threshold:
            logger.warning(
                "Health check scored %d (< %d) for '%s': %s",
                score,
                self.health_threshold,
                record.artifact_name,
                "; ".join(deductions),
            )
            record.failed_step = "health_check"
            record.error = "; ".join(deductions)
            failure = DeploymentFailure(
                f"health score {score} below {self.health_threshold}",
                step="health_check",
                code="E-3003",
                context={"score": score},
                record=record,
            )
            await self._rollback_or_escalate(record, failure, session_id)
            _transition(record, DeploymentState.ROLLED_BACK)
            raise failure

        # 5. Success
        _transition(record, DeploymentState.MONITORING)
        record.webhook_ref = webhook_path(graph)
        logger.info(
            "Deployed '%s' (graph v%d) with health score %d",
            record.artifact_name,
            graph.version,
            score,
        )
        return record

    async def check_health(self, record: DeploymentRecord, graph: Graph) -> DeploymentRecord:
        """Re-score a live deployment without changing the engine.

        A low score marks the record degraded; a passing score returns a
        degraded record to monitoring.

        Args:
            record: Deployment in monitoring or degraded.
            graph: The graph that was deployed.

        Returns:
            The updated record.
        """
        if record.external_id is None or record.state not in (
            DeploymentState.MONITORING,
            DeploymentState.DEGRADED,
        ):
            return record
        payload = build_engine_payload(graph, record.artifact_name)
        score, deductions = await self._score(record.external_id, payload)
        record.health_score = score
        record.deductions = deductions
        if score < self.health_threshold and record.state == DeploymentState.MONITORING:
            _transition(record, DeploymentState.DEGRADED)
        elif score >= self.health_threshold and record.state == DeploymentState.DEGRADED:
            _transition(record, DeploymentState.MONITORING)
        return record

    async def teardown(self, record: DeploymentRecord, session_id: str = "") -> DeploymentRecord:
        """Take a live deployment down through the rollback path.

        Args:
            record: Deployment in active, monitoring or degraded.
            session_id: Session id for audit events.

        Returns:
            The record in state rolled_back.

        Raises:
            RollbackFailure: If restoring the checkpoint failed.
        """
        await self._rollback_or_escalate(record, None, session_id)
        _transition(record, DeploymentState.ROLLED_BACK)
        logger.info("Tore down '%s'", record.artifact_name)
        return record

    async def rollback(self, record: DeploymentRecord) -> list[str]:
        """Restore the engine to the record's checkpoint.

        Deactivates the new artifact, reactivates the prior one when the
        checkpoint says it was active, then verifies both.

        Args:
            record: Deployment to roll back.

        Returns:
            Rollback actions performed, in order.

        Raises:
            EngineError: If any rollback call or the verification fails.
        """
        checkpoint = record.checkpoint or Checkpoint()
        actions: list[str] = []

        if record.external_id:
            try:
                await self._call("deactivate", self.engine.deactivate(record.external_id))
                actions.append("deactivated new artifact")
            except EngineError as e:
                if e.status_code != 404:
                    raise
                actions.append("new artifact already gone")

        if checkpoint.prior_active and checkpoint.prior_external_id:
            await self._call("activate", self.engine.activate(checkpoint.prior_external_id))
            actions.append("reactivated prior artifact")

        # Verify
        if record.external_id:
            current = await self._fetch(record.external_id)
            if current is not None and current.get("active"):
                raise EngineError("rollback", "new artifact is still active")
        if checkpoint.prior_active and checkpoint.prior_external_id:
            prior = await self._fetch(checkpoint.prior_external_id)
            if prior is None or not prior.get("active"):
                raise EngineError("rollback", "prior artifact is not active again")
        actions.append("verified checkpoint state")
        return actions

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _call(self, operation: str, awaitable: Awaitable[T]) -> T:
        """Await an engine call under the engine timeout.

        Anything the engine raises comes out as an EngineError, so every
        failure after the checkpoint reaches the rollback path.
        """
        try:
            return await asyncio.wait_for(awaitable, timeout=self.engine_timeout)
        except asyncio.TimeoutError as e:
            raise EngineTimeout(operation, self.engine_timeout) from e
        except EngineError:
            raise
        except Exception as e:
            logger.error("Engine %s raised %s: %s", operation, type(e).__name__, e)
            raise EngineError(operation, f"unexpected {type(e).__name__}") from e

    async def _fetch(self, external_id: str) -> Optional[dict[str, Any]]:
        artifact = await self._call("fetch", self.engine.fetch_artifact(external_id))
        if artifact is not None and not isinstance(artifact, dict):
            raise EngineError("fetch", "malformed engine response")
        return artifact

    async def _checkpoint(self, prior: Optional[DeploymentRecord]) -> Checkpoint:
        if prior is None or not prior.external_id:
            return Checkpoint()
        if prior.state not in _ACTIVE_STATES:
            return Checkpoint(prior_external_id=prior.external_id, prior_active=False)
        try:
            artifact = await self._fetch(prior.external_id)
        except EngineError as e:
            logger.warning("Checkpoint fetch failed, using recorded state: %s", e)
            return Checkpoint(prior_external_id=prior.external_id, prior_active=True)
        return Checkpoint(
            prior_external_id=prior.external_id,
            prior_active=bool(artifact and artifact.get("active")),
        )

    async def _fetch_with_retry(self, external_id: str) -> Optional[dict[str, Any]]:
        """Fetch an artifact, retrying engine errors with linear backoff.

        Raises:
            EngineError: If every attempt failed.
        """
        last_error: Optional[EngineError] = None
        for attempt in range(self.health_retries + 1):
            try:
                return await self._fetch(external_id)
            except EngineError as e:
                last_error = e
                if attempt < self.health_retries:
                    delay = self.retry_backoff * (attempt + 1)
                    logger.info(
                        "Health fetch failed (attempt %d/%d), retrying in %.1fs: %s",
                        attempt + 1,
                        self.health_retries + 1,
                        delay,
                        e,
                    )
                    await asyncio.sleep(delay)
        raise last_error or EngineError("fetch", "no attempt was made")

    async def _score(
        self,
        external_id: str,
        submitted: dict[str, Any],
    ) -> tuple[int, list[str]]:
        """Score a deployed artifact on the health rubric.

        Returns:
            (score 0-100, deductions in rubric order)
        """
        deductions: list[str] = []
        try:
            fetched = await self._fetch_with_retry(external_id)
        except EngineError as e:
            logger.warning("Health fetch failed after retries: %s", e)
            fetched = None
            deductions.append(f"artifact could not be read ({e.reason}) -{STRUCTURE_POINTS}")
        else:
            if fetched is None:
                deductions.append(f"artifact not found -{STRUCTURE_POINTS}")

        score = 0
        if fetched is not None:
            if node_names(fetched) == node_names(submitted):
                score += STRUCTURE_POINTS
            else:
                deductions.append(f"structure differs from submission -{STRUCTURE_POINTS}")

        if fetched is not None and fetched.get("active") is True:
            score += ACTIVATION_POINTS
        else:
            deductions.append(f"activation not confirmed -{ACTIVATION_POINTS}")

        if fetched is None:
            deductions.append(f"exercise skipped -{EXERCISE_POINTS}")
            return score, deductions

        try:
            await self._call("exercise", self.engine.exercise(external_id, HEALTH_CHECK_SAMPLE))
            score += EXERCISE_POINTS
        except ExerciseNotSupported:
            if structural_signature(fetched) == structural_signature(submitted):
                score += EXERCISE_POINTS
            else:
                deductions.append(f"not structurally equivalent -{EXERCISE_POINTS}")
        except EngineError as e:
            deductions.append(f"synthetic exercise failed ({e.reason}) -{EXERCISE_POINTS}")
        return score, deductions

    async def _rollback_or_escalate(
        self,
        record: DeploymentRecord,
        cause: Optional[DeploymentFailure],
        session_id: str,
    ) -> None:
        try:
            actions = await self.rollback(record)
        except EngineError as e:
            logger.error(
                "Rollback failed for '%s' after %s: %s",
                record.artifact_name,
                cause.step if cause else "teardown",
                e,
            )
            record.rollback_actions.append(f"rollback failed: {e.reason}")
            if record.state != DeploymentState.FAILED:
                _transition(record, DeploymentState.FAILED)
            if self.audit and session_id:
                self.audit.log_rollback(session_id, record.rollback_actions, succeeded=False)
            raise RollbackFailure(e.reason, cause=cause, record=record) from e
        record.rollback_actions.extend(actions)
        if self.audit and session_id:
            self.audit.log_rollback(session_id, actions, succeeded=True)

    def _audit(
        self,
        session_id: str,
        step: str,
        outcome: str,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        if self.audit and session_id:
            self.audit.log_deployment_step(session_id, step, outcome, details)


def _step_code(error: EngineError, default: str) -> str:
    return "E-3004" if isinstance(error, EngineTimeout) else default
