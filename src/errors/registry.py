"""Error code registry with E-XXXX format codes.

This module defines the error code system for AutoFlow, organizing errors
into categories:
- E-1xxx: Intent extraction errors
- E-2xxx: Design and validation errors
- E-3xxx: Automation engine and deployment errors
- E-4xxx: System/internal errors
- E-5xxx: Namespace capacity errors

Each error includes a code, title, message template, and remediation steps.
"""

from dataclasses import dataclass
from enum import Enum


class ErrorCategory(str, Enum):
    """Categories for error codes."""

    EXTRACTION = "extraction"  # E-1xxx: Intent extraction errors
    DESIGN = "design"  # E-2xxx: Design and validation errors
    ENGINE = "engine"  # E-3xxx: Automation engine errors
    SYSTEM = "system"  # E-4xxx: System/internal errors
    CAPACITY = "capacity"  # E-5xxx: Namespace capacity errors


@dataclass
class ErrorCode:
    """Definition of an error code with metadata.

    Attributes:
        code: Error code in E-XXXX format.
        category: Error category for grouping.
        title: Short title for display.
        message_template: Message with {placeholders} for context.
        remediation: Action user should take to resolve.
        is_retryable: Whether the operation can be retried without user action.
        recoverable: Whether the conversation stays in its current phase
            (True) or moves to the failed phase (False).
    """

    code: str  # E-XXXX format
    category: ErrorCategory
    title: str  # Short title for display
    message_template: str  # Message with {placeholders}
    remediation: str  # Action user should take
    is_retryable: bool = False  # Can be retried without user action
    recoverable: bool = True  # Session keeps its phase


# Error registry - all defined error codes
ERROR_REGISTRY: dict[str, ErrorCode] = {
    # Extraction errors (E-1xxx)
    "E-1001": ErrorCode(
        code="E-1001",
        category=ErrorCategory.EXTRACTION,
        title="Request Not Understood",
        message_template="I couldn't work out an automation from that request: {reason}",
        remediation="Describe what should start the automation and what it should do, then try again.",
    ),
    "E-1002": ErrorCode(
        code="E-1002",
        category=ErrorCategory.EXTRACTION,
        title="Malformed Extraction Output",
        message_template="The request was understood only partially: {reason}",
        remediation="Rephrase the request with one step per sentence and try again.",
        is_retryable=True,
    ),
    "E-1003": ErrorCode(
        code="E-1003",
        category=ErrorCategory.EXTRACTION,
        title="Text Generation Unavailable",
        message_template="The language service did not answer in time.",
        remediation="Send the message again in a moment.",
        is_retryable=True,
    ),
    # Design and validation errors (E-2xxx)
    "E-2001": ErrorCode(
        code="E-2001",
        category=ErrorCategory.DESIGN,
        title="No Steps To Execute",
        message_template="The automation has a {trigger} trigger but no steps to execute.",
        remediation="Tell me at least one thing the automation should do when it runs.",
    ),
    "E-2002": ErrorCode(
        code="E-2002",
        category=ErrorCategory.DESIGN,
        title="Too Many Nodes",
        message_template="The design needs {node_count} nodes but max_nodes is {max_nodes}.",
        remediation="Remove some steps or raise the node limit.",
    ),
    "E-2003": ErrorCode(
        code="E-2003",
        category=ErrorCategory.DESIGN,
        title="Integration Not Allowed",
        message_template="Step '{action}' uses integration '{integration}', which is not in the allowed list.",
        remediation="Allow the integration or choose a different step.",
    ),
    "E-2004": ErrorCode(
        code="E-2004",
        category=ErrorCategory.DESIGN,
        title="Unknown Step",
        message_template="I don't know how to perform the step '{action}'.",
        remediation="Describe the step using a supported action such as fetch, transform, filter or notify.",
    ),
    "E-2101": ErrorCode(
        code="E-2101",
        category=ErrorCategory.DESIGN,
        title="Validation Failed",
        message_template="The design has {fatal_count} blocking problem(s): {summary}",
        remediation="Adjust the request so the listed problems go away, then confirm again.",
    ),
    # Engine and deployment errors (E-3xxx)
    "E-3001": ErrorCode(
        code="E-3001",
        category=ErrorCategory.ENGINE,
        title="Create Failed",
        message_template="The automation engine rejected the new automation.",
        remediation="Start a new session and try again. Contact support if the issue persists.",
        recoverable=False,
    ),
    "E-3002": ErrorCode(
        code="E-3002",
        category=ErrorCategory.ENGINE,
        title="Activation Failed",
        message_template="The automation was created but could not be switched on.",
        remediation="The previous state was restored. Start a new session to try again.",
        recoverable=False,
    ),
    "E-3003": ErrorCode(
        code="E-3003",
        category=ErrorCategory.ENGINE,
        title="Health Check Failed",
        message_template="The deployed automation scored {score}/100 on its health check and was rolled back.",
        remediation="Review the reported deductions and start a new session with an adjusted request.",
        recoverable=False,
    ),
    "E-3004": ErrorCode(
        code="E-3004",
        category=ErrorCategory.ENGINE,
        title="Engine Timeout",
        message_template="The automation engine did not answer within {timeout} seconds during {step}.",
        remediation="Wait a few minutes and start a new session.",
        is_retryable=True,
        recoverable=False,
    ),
    "E-3100": ErrorCode(
        code="E-3100",
        category=ErrorCategory.ENGINE,
        title="Rollback Failed",
        message_template="A deployment problem occurred and restoring the previous state also failed.",
        remediation="An operator needs to inspect this session. Contact support with the session id.",
        recoverable=False,
    ),
    # System errors (E-4xxx)
    "E-4001": ErrorCode(
        code="E-4001",
        category=ErrorCategory.SYSTEM,
        title="Concurrency Violation",
        message_template="The session entered an inconsistent state: {details}",
        remediation="This is a system error. Start a new session and contact support.",
        recoverable=False,
    ),
    "E-4002": ErrorCode(
        code="E-4002",
        category=ErrorCategory.SYSTEM,
        title="Session Closed",
        message_template="This session is {phase} and no longer accepts requests.",
        remediation="Start a new session to build another automation.",
    ),
    "E-4003": ErrorCode(
        code="E-4003",
        category=ErrorCategory.SYSTEM,
        title="Cancelled",
        message_template="The request was cancelled before anything was deployed.",
        remediation="Start a new session whenever you are ready.",
        recoverable=False,
    ),
    "E-4004": ErrorCode(
        code="E-4004",
        category=ErrorCategory.SYSTEM,
        title="Session Not Found",
        message_template="Session '{session_id}' was not found.",
        remediation="Check the session id or start a new session.",
    ),
    # Capacity errors (E-5xxx)
    "E-5001": ErrorCode(
        code="E-5001",
        category=ErrorCategory.CAPACITY,
        title="Namespace Capacity Exhausted",
        message_template="All {total_slots} workspace slots are in use.",
        remediation="Ask an operator to release an unused workspace or enlarge the pool.",
        recoverable=False,
    ),
}


def get_error(code: str) -> ErrorCode | None:
    """Get error definition by code.

    Args:
        code: Error code in E-XXXX format.

    Returns:
        ErrorCode if found, None otherwise.
    """
    return ERROR_REGISTRY.get(code)


def get_errors_by_category(category: ErrorCategory) -> list[ErrorCode]:
    """Get all errors in a category.

    Args:
        category: The error category to filter by.

    Returns:
        List of ErrorCode objects in the specified category.
    """
    return [e for e in ERROR_REGISTRY.values() if e.category == category]
