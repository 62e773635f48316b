"""Error formatting utilities.

This module provides:
- AutoFlowErrorInfo, the user-facing rendering of a registry error
- Error formatting for conversation replies
- Grouping of repeated issues so replies stay short
"""

from dataclasses import dataclass, field

from src.errors.domain import AutoFlowError
from src.errors.registry import get_error


@dataclass
class AutoFlowErrorInfo:
    """User-facing error with code, message, and remediation.

    Attributes:
        code: Error code in E-XXXX format.
        title: Short title for display.
        message: Human-readable error message.
        remediation: Action user should take to resolve.
        is_retryable: Whether the operation can be retried without user action.
        recoverable: Whether the session keeps its current phase.
        details: Additional context dictionary.
    """

    code: str
    title: str
    message: str
    remediation: str
    is_retryable: bool = False
    recoverable: bool = True
    details: dict = field(default_factory=dict)

    def __str__(self) -> str:
        """Return string representation of the error."""
        return f"{self.code}: {self.message}"

    @classmethod
    def from_code(cls, code: str, **kwargs: object) -> "AutoFlowErrorInfo":
        """Create error info from registry code with context substitution.

        Args:
            code: Error code in E-XXXX format.
            **kwargs: Context values for message template substitution.
                A dict under 'details' is stored rather than substituted.

        Returns:
            AutoFlowErrorInfo instance with formatted message.
        """
        details: dict = {}
        if isinstance(kwargs.get("details"), dict):
            details = kwargs.pop("details")

        error_def = get_error(code)
        if not error_def:
            return cls(
                code=code,
                title="Unknown Error",
                message=f"Unknown error: {code}",
                remediation="Contact support.",
                recoverable=False,
                details=details,
            )

        message = error_def.message_template
        try:
            message = message.format(**kwargs)
        except (KeyError, IndexError):
            # Keep template if some placeholders are missing
            pass

        return cls(
            code=error_def.code,
            title=error_def.title,
            message=message,
            remediation=error_def.remediation,
            is_retryable=error_def.is_retryable,
            recoverable=error_def.recoverable,
            details=details,
        )

    @classmethod
    def from_exception(cls, error: AutoFlowError) -> "AutoFlowErrorInfo":
        """Render a domain exception through the registry."""
        return cls.from_code(error.code, **error.context)


def format_error(error: AutoFlowErrorInfo, include_remediation: bool = True) -> str:
    """Format error for display to user.

    Args:
        error: The AutoFlowErrorInfo to format.
        include_remediation: Whether to include remediation steps.

    Returns:
        Multi-line formatted string suitable for a conversation reply.
    """
    lines = [f"{error.code}: {error.message}"]
    if include_remediation:
        lines.append(f"  Action: {error.remediation}")
    return "\n".join(lines)


def group_issue_messages(messages: list[str], limit: int = 5) -> str:
    """Collapse repeated messages into one line each with a count.

    Example:
        ["a", "a", "b"] -> "a (x2); b"

    Args:
        messages: Messages in report order.
        limit: Maximum number of distinct messages to include.

    Returns:
        Semicolon-separated summary preserving first-seen order.
    """
    counts: dict[str, int] = {}
    for message in messages:
        counts[message] = counts.get(message, 0) + 1

    parts = []
    for message, count in list(counts.items())[:limit]:
        parts.append(message if count == 1 else f"{message} (x{count})")
    remaining = len(counts) - limit
    if remaining > 0:
        parts.append(f"and {remaining} more")
    return "; ".join(parts)
