"""Tests for error formatting and domain exception rendering."""

from src.errors import (
    AutoFlowErrorInfo,
    CapacityError,
    DeploymentFailure,
    DesignError,
    ExtractionError,
    RollbackFailure,
    SessionNotFoundError,
    ValidationFailure,
    format_error,
    group_issue_messages,
)
from src.orchestrator.models import ValidationIssue, ValidationResult


# ============================================================================
# AutoFlowErrorInfo
# ============================================================================


class TestErrorInfo:
    """Tests for registry-backed error info."""

    def test_from_code_substitutes_context(self):
        """Placeholders are filled from keyword context."""
        info = AutoFlowErrorInfo.from_code("E-2001", trigger="webhook")
        assert info.message == "The automation has a webhook trigger but no steps to execute."
        assert info.recoverable is True

    def test_from_code_keeps_template_on_missing_context(self):
        """Missing placeholders leave the template untouched."""
        info = AutoFlowErrorInfo.from_code("E-2002")
        assert "{node_count}" in info.message

    def test_unknown_code(self):
        """Unknown codes produce a non-recoverable placeholder."""
        info = AutoFlowErrorInfo.from_code("E-9999")
        assert info.title == "Unknown Error"
        assert info.recoverable is False

    def test_details_are_stored_not_substituted(self):
        """The details kwarg is kept on the info."""
        info = AutoFlowErrorInfo.from_code("E-4004", session_id="s1", details={"k": 1})
        assert info.details == {"k": 1}
        assert "s1" in info.message

    def test_string_details_are_substituted(self):
        """A plain-string details value fills the template."""
        info = AutoFlowErrorInfo.from_code("E-4001", details="phase went backwards")
        assert info.message.endswith("phase went backwards")
        assert info.details == {}

    def test_str(self):
        """String form is code plus message."""
        info = AutoFlowErrorInfo.from_code("E-4004", session_id="abc")
        assert str(info) == "E-4004: Session 'abc' was not found."


# ============================================================================
# Domain exceptions
# ============================================================================


class TestDomainExceptions:
    """Tests for exception defaults and rendering through the registry."""

    def test_extraction_error_defaults(self):
        """ExtractionError defaults to E-1001 with the reason in context."""
        error = ExtractionError("too vague", original_text="do stuff")
        info = AutoFlowErrorInfo.from_exception(error)
        assert info.code == "E-1001"
        assert "too vague" in info.message
        assert error.original_text == "do stuff"

    def test_design_error_keeps_constraint(self):
        """DesignError names the unmet constraint."""
        error = DesignError(
            "no steps to execute", constraint="steps", code="E-2001",
            context={"trigger": "webhook"},
        )
        assert error.constraint == "steps"
        assert AutoFlowErrorInfo.from_exception(error).recoverable is True

    def test_deployment_failure_context(self):
        """DeploymentFailure keeps the engine reason in context, out of the message."""
        error = DeploymentFailure("Workflow wf-1 has no trigger", step="activate", code="E-3002")
        assert error.context["step"] == "activate"
        assert error.context["reason"] == "Workflow wf-1 has no trigger"
        info = AutoFlowErrorInfo.from_exception(error)
        assert info.message == "The automation was created but could not be switched on."
        assert "wf-1" not in info.message
        assert info.recoverable is False

    def test_rollback_failure_is_distinct(self):
        """RollbackFailure is not a DeploymentFailure."""
        cause = DeploymentFailure("boom", step="activate")
        error = RollbackFailure("deactivate failed", cause=cause)
        assert not isinstance(error, DeploymentFailure)
        assert error.cause is cause
        assert error.code == "E-3100"

    def test_capacity_error(self):
        """CapacityError reports the pool size."""
        error = CapacityError("tenant-51", 50)
        info = AutoFlowErrorInfo.from_exception(error)
        assert info.message == "All 50 workspace slots are in use."

    def test_session_not_found(self):
        """SessionNotFoundError keeps the session id."""
        error = SessionNotFoundError("s-404")
        assert error.session_id == "s-404"
        assert error.code == "E-4004"

    def test_validation_failure_summarizes_fatal_issues(self):
        """ValidationFailure counts only fatal issues."""
        result = ValidationResult(
            passed=False,
            issues=(
                ValidationIssue(severity="fatal", code="dangling-edge", message="bad edge"),
                ValidationIssue(severity="fixable", code="dead-end", message="dead end", fixed=True),
            ),
        )
        error = ValidationFailure(result)
        assert error.context["fatal_count"] == 1
        assert error.context["summary"] == "bad edge"
        assert error.result is result


# ============================================================================
# Formatting
# ============================================================================


def test_format_error_with_remediation():
    """Formatted errors include an Action line."""
    info = AutoFlowErrorInfo.from_code("E-4003")
    text = format_error(info)
    lines = text.split("\n")
    assert lines[0].startswith("E-4003: ")
    assert lines[1].startswith("  Action: ")


def test_format_error_without_remediation():
    """Remediation can be left out."""
    info = AutoFlowErrorInfo.from_code("E-4003")
    assert "\n" not in format_error(info, include_remediation=False)


def test_group_issue_messages_counts_duplicates():
    """Repeated messages collapse with a count, first-seen order kept."""
    assert group_issue_messages(["a", "a", "b"]) == "a (x2); b"


def test_group_issue_messages_limit():
    """Messages past the limit are summarized."""
    grouped = group_issue_messages(["a", "b", "c"], limit=2)
    assert grouped == "a; b; and 1 more"
