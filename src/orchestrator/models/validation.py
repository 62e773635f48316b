"""Validation result models for automation graphs."""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from src.orchestrator.models.graph import Graph

Severity = Literal["fatal", "fixable"]


class ValidationIssue(BaseModel):
    """A single problem found in a graph.

    Attributes:
        severity: fatal blocks deployment; fixable can be auto-repaired
        code: Stable kebab-case issue code (e.g. "dangling-edge")
        message: Human-readable description
        node_id: Node the issue refers to, when there is one
        fixed: True when an auto-fix resolved this issue
    """

    model_config = ConfigDict(frozen=True)

    severity: Severity
    code: str
    message: str
    node_id: Optional[str] = None
    fixed: bool = False


class ValidationResult(BaseModel):
    """Outcome of one validation pass.

    ``passed`` is True if and only if no fatal issue was reported. Issues are
    kept in the order the checks emitted them, across all checks.

    Attributes:
        passed: Whether the graph may be deployed
        issues: Every issue found, fatal and fixable
        auto_fixes_applied: Issue codes of the fixes applied, in order
        fix_descriptions: What each applied fix changed, parallel to
            auto_fixes_applied
        graph: The graph after auto-fixes
    """

    model_config = ConfigDict(frozen=True)

    passed: bool
    issues: tuple[ValidationIssue, ...] = ()
    auto_fixes_applied: tuple[str, ...] = ()
    fix_descriptions: tuple[str, ...] = ()
    graph: Optional[Graph] = Field(default=None, exclude=True)

    @property
    def fatal_issues(self) -> list[ValidationIssue]:
        """Return only the fatal issues."""
        return [i for i in self.issues if i.severity == "fatal"]

    @property
    def fixable_issues(self) -> list[ValidationIssue]:
        """Return only the fixable issues."""
        return [i for i in self.issues if i.severity == "fixable"]
