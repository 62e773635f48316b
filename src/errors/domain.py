"""Typed domain exceptions for the orchestration core.

Each exception carries an E-XXXX registry code plus the context needed to
render the registry message template. Components raise these; only the
conversation orchestrator turns them into user-facing replies, and the API
layer maps them to HTTP status codes.

Usage:
    # In a component
    raise DesignError("no steps to execute", constraint="steps", code="E-2001",
                      context={"trigger": "webhook"})

    # In the orchestrator
    try:
        graph = designer.design(intent)
    except DesignError as e:
        reply = format_error(AutoFlowErrorInfo.from_exception(e))
"""

from typing import Any


class AutoFlowError(Exception):
    """Base exception for all orchestration errors.

    Attributes:
        code: Registry code in E-XXXX format.
        context: Values substituted into the registry message template.
    """

    default_code = "E-4001"

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.context = dict(context or {})


class ExtractionError(AutoFlowError):
    """Intent could not be extracted from the user's text. Recoverable."""

    default_code = "E-1001"

    def __init__(
        self,
        message: str,
        *,
        original_text: str = "",
        code: str | None = None,
    ) -> None:
        super().__init__(message, code=code, context={"reason": message})
        self.original_text = original_text


class DesignError(AutoFlowError):
    """The designer could not satisfy an intent constraint. Recoverable."""

    default_code = "E-2004"

    def __init__(
        self,
        message: str,
        *,
        constraint: str,
        code: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code=code, context=context)
        self.constraint = constraint


class ValidationFailure(AutoFlowError):
    """The validator reported at least one fatal issue. Recoverable.

    Attributes:
        result: The full ValidationResult, all issues included.
    """

    default_code = "E-2101"

    def __init__(self, result: Any) -> None:
        fatal = [i for i in result.issues if i.severity == "fatal"]
        summary = "; ".join(i.message for i in fatal[:5])
        super().__init__(
            f"{len(fatal)} fatal validation issue(s)",
            context={"fatal_count": len(fatal), "summary": summary},
        )
        self.result = result


class DeploymentFailure(AutoFlowError):
    """A deployment step failed. Moves the session to failed or rolled_back.

    Attributes:
        step: Deployment step that failed (create, activate, health_check).
        record: DeploymentRecord as it stood when the failure was reported.
    """

    default_code = "E-3001"

    def __init__(
        self,
        message: str,
        *,
        step: str,
        code: str | None = None,
        context: dict[str, Any] | None = None,
        record: Any = None,
    ) -> None:
        merged = {"reason": message, "step": step}
        merged.update(context or {})
        super().__init__(message, code=code, context=merged)
        self.step = step
        self.record = record


class RollbackFailure(AutoFlowError):
    """Restoring a checkpoint failed. Escalated separately from its cause.

    Attributes:
        cause: The failure that triggered the rollback attempt, if any.
        record: DeploymentRecord at the time of the failed rollback.
    """

    default_code = "E-3100"

    def __init__(
        self,
        message: str,
        *,
        cause: Exception | None = None,
        record: Any = None,
    ) -> None:
        super().__init__(message, context={"reason": message})
        self.cause = cause
        self.record = record


class CapacityError(AutoFlowError):
    """Every namespace slot is assigned. Maps to HTTP 503."""

    default_code = "E-5001"

    def __init__(self, tenant_id: str, total_slots: int) -> None:
        super().__init__(
            f"No namespace slot available for tenant '{tenant_id}'",
            context={"total_slots": total_slots},
        )
        self.tenant_id = tenant_id
        self.total_slots = total_slots


class ConcurrencyViolation(AutoFlowError):
    """Session message ordering was violated internally. Fatal."""

    default_code = "E-4001"

    def __init__(self, message: str) -> None:
        super().__init__(message, context={"details": message})


class SessionNotFoundError(AutoFlowError):
    """Session was not found. Maps to HTTP 404."""

    default_code = "E-4004"

    def __init__(self, session_id: str) -> None:
        super().__init__(
            f"Session '{session_id}' not found",
            context={"session_id": session_id},
        )
        self.session_id = session_id
