"""Error handling framework for AutoFlow.

This package provides:
- Error code registry with E-XXXX format codes
- Typed domain exceptions raised by the orchestration components
- Error formatting utilities for conversation replies

Error categories:
- E-1xxx: Intent extraction errors
- E-2xxx: Design and validation errors
- E-3xxx: Automation engine and deployment errors
- E-4xxx: System/internal errors
- E-5xxx: Namespace capacity errors
"""

from src.errors.registry import (
    ErrorCategory,
    ErrorCode,
    ERROR_REGISTRY,
    get_error,
    get_errors_by_category,
)
from src.errors.domain import (
    AutoFlowError,
    CapacityError,
    ConcurrencyViolation,
    DeploymentFailure,
    DesignError,
    ExtractionError,
    RollbackFailure,
    SessionNotFoundError,
    ValidationFailure,
)
from src.errors.formatter import (
    AutoFlowErrorInfo,
    format_error,
    group_issue_messages,
)

__all__ = [
    # Registry
    "ErrorCode",
    "ErrorCategory",
    "ERROR_REGISTRY",
    "get_error",
    "get_errors_by_category",
    # Domain exceptions
    "AutoFlowError",
    "ExtractionError",
    "DesignError",
    "ValidationFailure",
    "DeploymentFailure",
    "RollbackFailure",
    "CapacityError",
    "ConcurrencyViolation",
    "SessionNotFoundError",
    # Formatter
    "AutoFlowErrorInfo",
    "format_error",
    "group_issue_messages",
]
