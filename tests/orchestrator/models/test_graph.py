"""Tests for intent, graph, deployment and namespace models."""

import pytest
from pydantic import ValidationError

from src.orchestrator.models import (
    VALID_DEPLOYMENT_TRANSITIONS,
    DeploymentRecord,
    DeploymentState,
    Edge,
    Intent,
    IntentConstraints,
    IntentStep,
    Node,
    ValidationIssue,
    ValidationResult,
    format_prefix,
)


# ============================================================================
# Intent
# ============================================================================


class TestIntent:
    """Tests for the Intent model."""

    def test_describe_lists_steps_in_order(self, schedule_intent):
        """describe names the trigger and chains the steps."""
        assert schedule_intent.describe() == (
            "Email the daily sales report (trigger: schedule; steps: fetch, then notify)"
        )

    def test_describe_without_steps(self):
        """An intent with no steps says so."""
        intent = Intent(goal="Catch webhooks", trigger="webhook")
        assert intent.describe().endswith("steps: nothing yet)")

    def test_rejects_unknown_trigger(self):
        """Only the four trigger types are accepted."""
        with pytest.raises(ValidationError):
            Intent(goal="x", trigger="cron")

    def test_is_frozen(self, schedule_intent):
        """Intents are replaced, never edited."""
        with pytest.raises(ValidationError):
            schedule_intent.goal = "changed"

    def test_constraints_default_to_unrestricted(self):
        """No node limit and no integration whitelist by default."""
        constraints = IntentConstraints()
        assert constraints.max_nodes is None
        assert constraints.allowed_integrations is None

    def test_step_action_required(self):
        """A step needs a non-empty action."""
        with pytest.raises(ValidationError):
            IntentStep(action="")


# ============================================================================
# Graph
# ============================================================================


class TestGraph:
    """Tests for the immutable Graph model."""

    def test_lookup_helpers(self, linear_graph):
        """node, outgoing and incoming resolve by id."""
        assert linear_graph.node("http_request_2").kind == "http_request"
        assert linear_graph.node("missing") is None
        assert [e.to_node_id for e in linear_graph.outgoing("manual_trigger_1")] == ["http_request_2"]
        assert [e.from_node_id for e in linear_graph.incoming("no_op_3")] == ["http_request_2"]
        assert linear_graph.node_ids() == {"manual_trigger_1", "http_request_2", "no_op_3"}

    def test_derive_bumps_version_and_leaves_original(self, linear_graph):
        """derive returns a new graph with version + 1."""
        extra = Node(id="no_op_4", kind="no_op")
        derived = linear_graph.derive(nodes=[*linear_graph.nodes, extra])
        assert derived.version == linear_graph.version + 1
        assert len(derived.nodes) == 4
        assert len(linear_graph.nodes) == 3
        assert derived.edges == linear_graph.edges

    def test_is_frozen(self, linear_graph):
        """Graphs cannot be edited in place."""
        with pytest.raises(ValidationError):
            linear_graph.name = "other"

    def test_edge_condition_optional(self):
        """Edges carry an optional branch label."""
        assert Edge(from_node_id="a", to_node_id="b").condition is None
        assert Edge(from_node_id="a", to_node_id="b", condition="true").condition == "true"


# ============================================================================
# Validation results
# ============================================================================


def test_validation_result_partitions_issues(linear_graph):
    """fatal_issues and fixable_issues split by severity; graph is not dumped."""
    result = ValidationResult(
        passed=False,
        issues=(
            ValidationIssue(severity="fatal", code="cycle-detected", message="cycle"),
            ValidationIssue(severity="fixable", code="dead-end", message="dead end"),
        ),
        graph=linear_graph,
    )
    assert [i.code for i in result.fatal_issues] == ["cycle-detected"]
    assert [i.code for i in result.fixable_issues] == ["dead-end"]
    assert "graph" not in result.model_dump()


# ============================================================================
# Deployment records
# ============================================================================


class TestDeploymentRecord:
    """Tests for deployment state bookkeeping."""

    def test_defaults(self):
        """New records are pending with no score."""
        record = DeploymentRecord(graph_version=1)
        assert record.state == DeploymentState.PENDING
        assert record.health_score == 0
        assert record.external_id is None

    def test_terminal_states_have_no_exits(self):
        """rolled_back and failed are final."""
        assert VALID_DEPLOYMENT_TRANSITIONS[DeploymentState.ROLLED_BACK] == frozenset()
        assert VALID_DEPLOYMENT_TRANSITIONS[DeploymentState.FAILED] == frozenset()

    def test_pending_cannot_roll_back(self):
        """Nothing to roll back before activation."""
        assert DeploymentState.ROLLED_BACK not in VALID_DEPLOYMENT_TRANSITIONS[DeploymentState.PENDING]

    def test_health_score_bounds(self):
        """Scores outside 0-100 are rejected."""
        with pytest.raises(ValidationError):
            DeploymentRecord(graph_version=1, health_score=101)


# ============================================================================
# Namespace
# ============================================================================


@pytest.mark.parametrize(
    "bucket,slot,expected",
    [(1, 1, "FOLDER-P01-U1"), (3, 2, "FOLDER-P03-U2"), (10, 5, "FOLDER-P10-U5")],
)
def test_format_prefix(bucket, slot, expected):
    """Prefixes zero-pad the bucket number."""
    assert format_prefix(bucket, slot) == expected
