"""Per-session runtime state for the conversation orchestrator.

Each session gets its own asyncio.Lock so two messages for the same session
never run their phase handlers concurrently, while different sessions run
fully in parallel. There is no global lock.

While a deployment is in flight the session's lock stays held. Messages that
arrive in that window are not blocked on the lock: they are queued here as
informational and folded into the message log once the deployment finishes.

Example:
    mgr = SessionManager()
    runtime = mgr.get_or_create("conv-123")
    async with runtime.lock:
        ...
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass
class QueuedMessage:
    """A message received while a deployment was in flight."""

    text: str
    sequence: Optional[int]
    received_at: datetime


class SessionRuntime:
    """Process-local runtime state for one session.

    Attributes:
        session_id: Conversation identifier.
        lock: Serializes message handling for this session.
        deploying: True while the deployment protocol runs.
        pending: Informational messages queued during deployment.
    """

    def __init__(self, session_id: str) -> None:
        """Initialize runtime state.

        Args:
            session_id: Conversation identifier.
        """
        self.session_id = session_id
        self.lock = asyncio.Lock()
        self.deploying = False
        self.pending: list[QueuedMessage] = []

    def queue(self, text: str, sequence: Optional[int]) -> QueuedMessage:
        """Queue an informational message."""
        message = QueuedMessage(
            text=text,
            sequence=sequence,
            received_at=datetime.now(timezone.utc),
        )
        self.pending.append(message)
        return message

    def drain(self) -> list[QueuedMessage]:
        """Return and clear queued messages, oldest first."""
        drained, self.pending = self.pending, []
        return drained


class SessionManager:
    """Tracks runtime state for live sessions.

    Thread-safe for single-process usage (FastAPI's async loop).
    Not designed for multi-process deployment.

    Attributes:
        _runtimes: Dict of session_id -> SessionRuntime.
    """

    def __init__(self) -> None:
        """Initialize with no tracked sessions."""
        self._runtimes: dict[str, SessionRuntime] = {}

    def get(self, session_id: str) -> Optional[SessionRuntime]:
        """Get runtime state without auto-creating."""
        return self._runtimes.get(session_id)

    def get_or_create(self, session_id: str) -> SessionRuntime:
        """Get runtime state, creating it on first use.

        Args:
            session_id: Conversation identifier.

        Returns:
            The SessionRuntime for this session.
        """
        if session_id not in self._runtimes:
            self._runtimes[session_id] = SessionRuntime(session_id)
            logger.debug("Created runtime for session %s", session_id)
        return self._runtimes[session_id]

    def remove(self, session_id: str) -> None:
        """Stop tracking a session. Idempotent.

        A runtime whose lock is held is kept; removing it would let a new
        message create a second lock for the same session.
        """
        runtime = self._runtimes.get(session_id)
        if runtime is None or runtime.lock.locked():
            return
        del self._runtimes[session_id]
        logger.debug("Removed runtime for session %s", session_id)
