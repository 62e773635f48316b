"""Conversation orchestrator: the phase state machine for one request.

A session moves through

    understanding -> designing -> validating -> deploying -> monitoring -> completed

and can jump to the absorbing ``failed`` phase from any non-terminal phase,
or to ``rolled_back`` from deploying/monitoring once a rollback completed.
Phases never move backwards.

Routing is by phase, not by message content. In ``understanding`` free text
is sent to intent extraction, and only an explicit confirmation starts the
build. A confirmed build chains design, validation and deployment in one
turn and stops at the first error. Extraction, design and validation errors
keep the current phase so the user can rephrase; everything else ends the
session.

This module is the only place where errors become user-facing replies.
Replies never carry engine ids; those go in ``artifacts``.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Optional

from src.errors import (
    AutoFlowError,
    AutoFlowErrorInfo,
    ConcurrencyViolation,
    DeploymentFailure,
    RollbackFailure,
    SessionNotFoundError,
    ValidationFailure,
    format_error,
    group_issue_messages,
)
from src.orchestrator.models.deployment import DeploymentRecord, DeploymentState
from src.orchestrator.models.intent import Intent
from src.orchestrator.models.session import (
    FailureInfo,
    MessageEntry,
    MessageResult,
    Phase,
    Session,
    SessionStatus,
    is_forward_transition,
)
from src.orchestrator.nl_engine.graph_designer import GraphDesigner
from src.orchestrator.nl_engine.graph_validator import GraphValidator
from src.orchestrator.nl_engine.intent_parser import IntentParser
from src.orchestrator.routing import MessageKind, classify_message
from src.services.audit_service import AuditService
from src.services.deployment_manager import DeploymentManager
from src.services.namespace_allocator import NamespaceAllocator
from src.services.session_manager import SessionManager, SessionRuntime
from src.services.session_store import SessionStore

logger = logging.getLogger(__name__)

DEFAULT_IDLE_TIMEOUT = timedelta(hours=24)

Handler = Callable[[Session, SessionRuntime, str], Awaitable[MessageResult]]


class ConversationOrchestrator:
    """Routes user messages through the automation build phases.

    Attributes:
        store: Session persistence.
        intent_parser: Free text to Intent.
        designer: Intent to Graph.
        validator: Graph checks and auto-fixes.
        deployer: Deployment protocol.
        allocator: Tenant namespace pool.
        sessions: Per-session locks and deployment queues.
        audit: Audit trail, written through the store.
        idle_timeout: Inactivity after which sessions are archived.
    """

    def __init__(
        self,
        *,
        store: SessionStore,
        intent_parser: IntentParser,
        designer: GraphDesigner,
        validator: GraphValidator,
        deployer: DeploymentManager,
        allocator: NamespaceAllocator,
        sessions: Optional[SessionManager] = None,
        audit: Optional[AuditService] = None,
        idle_timeout: timedelta = DEFAULT_IDLE_TIMEOUT,
    ) -> None:
        self.store = store
        self.intent_parser = intent_parser
        self.designer = designer
        self.validator = validator
        self.deployer = deployer
        self.allocator = allocator
        self.sessions = sessions or SessionManager()
        self.audit = audit or AuditService(store)
        self.idle_timeout = idle_timeout
        self._handlers: dict[Phase, Handler] = {
            Phase.UNDERSTANDING: self._on_understanding,
            Phase.DESIGNING: self._on_designing_or_validating,
            Phase.VALIDATING: self._on_designing_or_validating,
            Phase.DEPLOYING: self._on_deploying,
            Phase.MONITORING: self._on_monitoring,
            Phase.COMPLETED: self._on_closed,
            Phase.FAILED: self._on_closed,
            Phase.ROLLED_BACK: self._on_closed,
        }

    # ------------------------------------------------------------------
    # Public surface
    # ------------------------------------------------------------------

    async def handle_message(
        self,
        session_id: str,
        text: str,
        *,
        tenant_id: Optional[str] = None,
        sequence: Optional[int] = None,
    ) -> MessageResult:
        """Process one user message.

        Args:
            session_id: Conversation id; the session is created on first use.
            text: User message.
            tenant_id: Tenant for a new session. Defaults to session_id.
                Ignored for existing sessions.
            sequence: Client message sequence number. A value at or below
                the last processed one is a replay and has no side effects.

        Returns:
            MessageResult with the new phase, a reply and artifacts.
        """
        runtime = self.sessions.get_or_create(session_id)
        if runtime.deploying:
            return self._queue_during_deployment(runtime, text, sequence)

        async with runtime.lock:
            session = self.store.load(session_id)
            if session is None:
                session = Session(session_id=session_id, tenant_id=tenant_id or session_id)
                self.store.save(session)
                logger.info("Created session %s for tenant %s", session_id, session.tenant_id)

            if sequence is not None and sequence <= session.last_sequence:
                return self._replay(session, sequence)

            session.last_sequence = sequence if sequence is not None else session.last_sequence + 1
            session.message_log.append(
                MessageEntry(role="user", text=text, sequence=session.last_sequence)
            )
            self.audit.log_message(session_id, "user", session.last_sequence)

            result = await self._dispatch(session, runtime, text)

            session.message_log.append(MessageEntry(role="assistant", text=result.reply))
            session.last_reply = result.reply
            session.last_artifacts = result.artifacts
            if session.phase.is_terminal:
                session.archived = True
            session.touch()
            self.store.save(session)

        if session.archived:
            self.sessions.remove(session_id)
        return result

    def get_status(self, session_id: str) -> SessionStatus:
        """Return a read-only projection of a session.

        Raises:
            SessionNotFoundError: If the session does not exist.
        """
        session = self.store.load(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return SessionStatus.model_validate(
            session.model_dump(
                include={
                    "session_id",
                    "tenant_id",
                    "phase",
                    "message_log",
                    "intent",
                    "graph",
                    "validation",
                    "deployment",
                    "namespace",
                    "phase_history",
                    "failure",
                    "archived",
                }
            )
        )

    def get_audit_trail(self, session_id: str) -> list[dict[str, Any]]:
        """Return a session's audit events, oldest first."""
        if self.store.load(session_id) is None:
            raise SessionNotFoundError(session_id)
        return self.store.list_audit_events(session_id)

    def archive_idle_sessions(self, now: Optional[datetime] = None) -> list[str]:
        """Archive sessions idle for longer than ``idle_timeout``.

        Sessions with a message in progress are skipped.

        Returns:
            Ids of the sessions archived by this call.
        """
        cutoff = (now or datetime.now(timezone.utc)) - self.idle_timeout
        archived = []
        for session_id in self.store.list_idle(cutoff):
            runtime = self.sessions.get(session_id)
            if runtime is not None and (runtime.lock.locked() or runtime.deploying):
                continue
            self.store.archive(session_id)
            self.sessions.remove(session_id)
            archived.append(session_id)
        if archived:
            logger.info("Archived %d idle session(s)", len(archived))
        return archived

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def _dispatch(
        self, session: Session, runtime: SessionRuntime, text: str
    ) -> MessageResult:
        if session.archived:
            return self._closed_reply(session)
        try:
            handler = self._handlers.get(session.phase)
            if handler is None:
                raise ConcurrencyViolation(f"no handler for phase {session.phase!r}")
            return await handler(session, runtime, text)
        except AutoFlowError as e:
            return self._handle_error(session, e)

    def _advance(self, session: Session, target: Phase) -> None:
        current = session.phase
        if not is_forward_transition(current, target):
            raise ConcurrencyViolation(
                f"phase cannot move from {current.value} to {target.value}"
            )
        if current == target:
            return
        session.phase = target
        session.phase_history.append(target)
        self.audit.log_phase_change(session.session_id, current.value, target.value)
        logger.info(
            "Session %s phase: %s -> %s", session.session_id, current.value, target.value
        )

    def _handle_error(self, session: Session, error: AutoFlowError) -> MessageResult:
        info = AutoFlowErrorInfo.from_exception(error)
        artifacts: dict[str, Any] = {"error": {"code": info.code, "title": info.title}}

        if isinstance(error, ValidationFailure):
            artifacts["validation"] = error.result.model_dump(mode="json")
            issues = [i.message for i in error.result.fatal_issues]
            info.message = (
                f"The design has {len(issues)} blocking problem(s): "
                f"{group_issue_messages(issues)}"
            )

        if isinstance(error, ConcurrencyViolation):
            logger.critical("Session %s: %s", session.session_id, error.message)
        else:
            logger.warning(
                "Session %s: %s in phase %s: %s",
                session.session_id,
                info.code,
                session.phase.value,
                error.message,
            )
        self.audit.log_error(
            session.session_id, info.code, error.message, {"phase": session.phase.value}
        )

        record = getattr(error, "record", None)
        if isinstance(record, DeploymentRecord):
            session.deployment = record
            artifacts["deployment"] = _deployment_artifact(record, session)

        if info.recoverable:
            return MessageResult(phase=session.phase, reply=format_error(info), artifacts=artifacts)

        origin = session.phase
        rolled_back = (
            isinstance(error, DeploymentFailure)
            and not isinstance(error, RollbackFailure)
            and isinstance(record, DeploymentRecord)
            and record.state == DeploymentState.ROLLED_BACK
            and origin in (Phase.DEPLOYING, Phase.MONITORING)
        )
        session.failure = FailureInfo(origin_phase=origin, code=info.code, message=error.message)
        if not session.phase.is_terminal:
            self._advance(session, Phase.ROLLED_BACK if rolled_back else Phase.FAILED)
        return MessageResult(phase=session.phase, reply=format_error(info), artifacts=artifacts)

    def _replay(self, session: Session, sequence: int) -> MessageResult:
        logger.info(
            "Replay of message %d for session %s (last %d)",
            sequence,
            session.session_id,
            session.last_sequence,
        )
        if sequence == session.last_sequence:
            return MessageResult(
                phase=session.phase,
                reply=session.last_reply,
                artifacts=dict(session.last_artifacts),
            )
        return MessageResult(
            phase=session.phase,
            reply="That message was already processed.",
            artifacts={"replayed": True},
        )

    def _queue_during_deployment(
        self, runtime: SessionRuntime, text: str, sequence: Optional[int]
    ) -> MessageResult:
        runtime.queue(text, sequence)
        logger.info("Queued message for session %s during deployment", runtime.session_id)
        session = self.store.load(runtime.session_id)
        phase = session.phase if session is not None else Phase.DEPLOYING
        if classify_message(text) == MessageKind.CANCEL:
            reply = (
                "A deployment is in progress and can't be cancelled midway. "
                "Once it finishes you can ask me to tear it down."
            )
        else:
            reply = "A deployment is in progress. I've noted your message and will keep it with this session."
        return MessageResult(phase=phase, reply=reply, artifacts={"queued": True})

    def _drain_queue(self, session: Session, runtime: SessionRuntime) -> None:
        for queued in runtime.drain():
            if queued.sequence is not None and queued.sequence <= session.last_sequence:
                continue
            session.last_sequence = (
                queued.sequence if queued.sequence is not None else session.last_sequence + 1
            )
            session.message_log.append(
                MessageEntry(
                    role="user",
                    text=queued.text,
                    timestamp=queued.received_at,
                    sequence=session.last_sequence,
                    informational=True,
                )
            )

    # ------------------------------------------------------------------
    # Phase handlers
    # ------------------------------------------------------------------

    async def _on_understanding(
        self, session: Session, runtime: SessionRuntime, text: str
    ) -> MessageResult:
        kind = classify_message(text)
        if kind == MessageKind.CANCEL:
            return self._cancel(session)
        if kind == MessageKind.CONFIRM:
            if session.intent is None:
                return MessageResult(
                    phase=session.phase,
                    reply="Tell me what you'd like to automate first.",
                )
            self._advance(session, Phase.DESIGNING)
            return await self._build(session, runtime)

        intent = await self._extract(session, text)
        return MessageResult(
            phase=session.phase,
            reply=(
                f"Here's what I understood: {intent.describe()}. "
                'Reply "yes, build it" to design and deploy it, or tell me what to change.'
            ),
            artifacts={"intent": intent.model_dump(mode="json")},
        )

    async def _on_designing_or_validating(
        self, session: Session, runtime: SessionRuntime, text: str
    ) -> MessageResult:
        kind = classify_message(text)
        if kind == MessageKind.CANCEL:
            return self._cancel(session)
        redesign = kind != MessageKind.CONFIRM
        if redesign:
            await self._extract(session, text)
        return await self._build(session, runtime, redesign=redesign)

    async def _on_deploying(
        self, session: Session, runtime: SessionRuntime, text: str
    ) -> MessageResult:
        # Only reachable when a previous process stopped mid-deployment.
        if classify_message(text) == MessageKind.CONFIRM:
            return await self._build(session, runtime)
        return MessageResult(
            phase=session.phase,
            reply='The last deployment did not finish. Reply "retry" to deploy again.',
        )

    async def _on_monitoring(
        self, session: Session, runtime: SessionRuntime, text: str
    ) -> MessageResult:
        kind = classify_message(text)
        record = session.deployment
        if record is None or session.graph is None:
            raise ConcurrencyViolation("monitoring phase without a deployment")

        if kind == MessageKind.TEARDOWN:
            runtime.deploying = True
            try:
                await self.deployer.teardown(record, session.session_id)
            finally:
                runtime.deploying = False
                self._drain_queue(session, runtime)
            self._advance(session, Phase.ROLLED_BACK)
            return MessageResult(
                phase=session.phase,
                reply="Your automation was switched off and the previous state restored.",
                artifacts={"deployment": _deployment_artifact(record, session)},
            )

        if kind == MessageKind.DONE:
            self._advance(session, Phase.COMPLETED)
            return MessageResult(
                phase=session.phase,
                reply="All set. Your automation keeps running. This session is now closed.",
                artifacts={"deployment": _deployment_artifact(record, session)},
            )

        if kind == MessageKind.STATUS:
            await self.deployer.check_health(record, session.graph)

        return MessageResult(
            phase=session.phase,
            reply=_status_reply(record),
            artifacts={"deployment": _deployment_artifact(record, session)},
        )

    async def _on_closed(
        self, session: Session, runtime: SessionRuntime, text: str
    ) -> MessageResult:
        return self._closed_reply(session)

    def _closed_reply(self, session: Session) -> MessageResult:
        # Idle sessions are archived without leaving their phase.
        state = session.phase.value.replace("_", " ") if session.phase.is_terminal else "archived"
        info = AutoFlowErrorInfo.from_code("E-4002", phase=state)
        return MessageResult(
            phase=session.phase,
            reply=format_error(info),
            artifacts={"error": {"code": info.code, "title": info.title}},
        )

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _extract(self, session: Session, text: str) -> Intent:
        history = [
            m.text for m in session.message_log[:-1] if m.role == "user" and not m.informational
        ]
        intent = await self.intent_parser.parse(text, history=history)
        version = session.intent.version + 1 if session.intent else 1
        session.intent = intent.model_copy(update={"version": version})
        return session.intent

    async def _build(
        self, session: Session, runtime: SessionRuntime, *, redesign: bool = False
    ) -> MessageResult:
        """Run design, validation and deployment from the current phase.

        Args:
            session: Session in designing, validating or deploying.
            runtime: The session's runtime state.
            redesign: Rebuild the graph from the intent even when the
                session is already past designing.
        """
        if session.intent is None:
            raise ConcurrencyViolation(f"{session.phase.value} phase without an intent")
        artifacts: dict[str, Any] = {}

        needs_design = session.phase == Phase.DESIGNING or (
            session.phase == Phase.VALIDATING and (redesign or session.graph is None)
        )
        if needs_design:
            session.graph = self.designer.design(session.intent)
            session.validation = None
            if session.phase == Phase.DESIGNING:
                self._advance(session, Phase.VALIDATING)
        if session.graph is None:
            raise ConcurrencyViolation(f"{session.phase.value} phase without a graph")
        artifacts["graph"] = session.graph.model_dump(mode="json")

        if session.phase == Phase.VALIDATING:
            result = self.validator.validate(session.graph)
            session.validation = result
            if result.graph is not None:
                session.graph = result.graph
            for code, fix in zip(result.auto_fixes_applied, result.fix_descriptions):
                self.audit.log_auto_fix(session.session_id, session.graph.version, code, fix)
            artifacts["graph"] = session.graph.model_dump(mode="json")
            artifacts["validation"] = result.model_dump(mode="json")
            if not result.passed:
                raise ValidationFailure(result)
            self._advance(session, Phase.DEPLOYING)

        if session.phase == Phase.DEPLOYING:
            record = await self._deploy(session, runtime)
            self._advance(session, Phase.MONITORING)
            artifacts["deployment"] = _deployment_artifact(record, session)
            return MessageResult(
                phase=session.phase,
                reply=(
                    f"Your automation \"{session.graph.name}\" is live with "
                    f"{len(session.graph.nodes)} steps (health score {record.health_score}/100). "
                    'Say "status" to check on it, "teardown" to remove it, or "done" to finish.'
                ),
                artifacts=artifacts,
            )

        raise ConcurrencyViolation(f"build ended in phase {session.phase.value}")

    async def _deploy(self, session: Session, runtime: SessionRuntime) -> DeploymentRecord:
        if session.graph is None:
            raise ConcurrencyViolation("deploying phase without a graph")
        if session.namespace is None:
            session.namespace = self.allocator.assign(session.tenant_id)
        # Persist the deploying phase before the first engine call.
        session.touch()
        self.store.save(session)

        runtime.deploying = True
        try:
            record = await self.deployer.deploy(
                session.graph,
                session.namespace,
                prior=session.deployment,
                session_id=session.session_id,
            )
        finally:
            runtime.deploying = False
            self._drain_queue(session, runtime)
        session.deployment = record
        return record

    def _cancel(self, session: Session) -> MessageResult:
        info = AutoFlowErrorInfo.from_code("E-4003")
        origin = session.phase
        session.failure = FailureInfo(origin_phase=origin, code=info.code, message="cancelled by user")
        self._advance(session, Phase.FAILED)
        self.audit.log_error(session.session_id, info.code, "cancelled by user", {"phase": origin.value})
        return MessageResult(
            phase=session.phase,
            reply="Cancelled. Nothing was deployed.",
            artifacts={"error": {"code": info.code, "title": info.title}},
        )


def _deployment_artifact(record: DeploymentRecord, session: Session) -> dict[str, Any]:
    return {
        "state": record.state.value,
        "external_id": record.external_id,
        "webhook_ref": record.webhook_ref,
        "health_score": record.health_score,
        "deductions": list(record.deductions),
        "graph_version": record.graph_version,
        "failed_step": record.failed_step,
        "error": record.error,
        "rollback_actions": list(record.rollback_actions),
        "namespace": session.namespace.prefix if session.namespace else None,
    }


def _status_reply(record: DeploymentRecord) -> str:
    if record.state == DeploymentState.DEGRADED:
        problems = "; ".join(record.deductions) or "unknown problems"
        return (
            f"Your automation is running but degraded (health score {record.health_score}/100): "
            f"{problems}. Say \"teardown\" to remove it."
        )
    return f"Your automation is running (health score {record.health_score}/100)."
