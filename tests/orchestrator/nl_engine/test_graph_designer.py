"""Tests for GraphDesigner: template selection, composition and constraints."""

import pytest

from src.errors import DesignError
from src.orchestrator.models import Intent, IntentConstraints, IntentStep
from src.orchestrator.nl_engine.graph_designer import GraphDesigner
from src.orchestrator.nl_engine.graph_validator import GraphValidator


@pytest.fixture
def designer() -> GraphDesigner:
    return GraphDesigner()


# ============================================================================
# Composition
# ============================================================================


class TestLinearComposition:
    """Tests for intents that no template matches."""

    def test_schedule_fetch_notify(self, designer, schedule_intent):
        """Schedule + fetch + notify becomes a three-node chain."""
        graph = designer.design(schedule_intent)
        assert [n.id for n in graph.nodes] == [
            "schedule_trigger_1",
            "http_request_2",
            "email_send_3",
        ]
        assert [(e.from_node_id, e.to_node_id) for e in graph.edges] == [
            ("schedule_trigger_1", "http_request_2"),
            ("http_request_2", "email_send_3"),
        ]
        assert graph.template_id is None
        assert graph.version == 1
        assert graph.name == "Email the daily sales report"

    def test_step_parameters_override_defaults(self, designer, schedule_intent):
        """Explicit step values win; defaults fill the rest."""
        graph = designer.design(schedule_intent)
        http = graph.node("http_request_2")
        assert http.parameters["url"] == "https://api.example.com/report"
        assert http.parameters["method"] == "GET"
        email = graph.node("email_send_3")
        assert email.parameters["toEmail"] == "ops@example.com"
        assert "subject" in email.parameters

    def test_layout_left_to_right(self, designer, schedule_intent):
        """Nodes advance one column per step on the main row."""
        graph = designer.design(schedule_intent)
        xs = [n.position[0] for n in graph.nodes]
        ys = {n.position[1] for n in graph.nodes}
        assert xs == sorted(xs)
        assert len(ys) == 1

    def test_long_chains_wrap(self, designer):
        """Nodes past the canvas width move to a new row."""
        intent = Intent(
            goal="Many steps",
            trigger="manual",
            steps=[IntentStep(action="transform") for _ in range(8)],
        )
        graph = designer.design(intent)
        assert max(n.position[0] for n in graph.nodes) <= 1200
        assert len({n.position[1] for n in graph.nodes}) > 1

    def test_designed_graph_passes_validation(self, designer, schedule_intent):
        """The scheduled scenario validates cleanly with zero issues."""
        result = GraphValidator().validate(designer.design(schedule_intent))
        assert result.passed
        assert result.issues == ()


# ============================================================================
# Templates
# ============================================================================


class TestTemplates:
    """Tests for template-produced graphs."""

    def test_webhook_gets_path_and_responder(self, designer):
        """A webhook flow gets a slug path and a response node."""
        intent = Intent(
            goal="Store incoming Orders!",
            trigger="webhook",
            steps=[IntentStep(action="transform")],
        )
        graph = designer.design(intent)
        assert graph.template_id == "webhook-response"
        trigger = graph.node("webhook_trigger_1")
        assert trigger.parameters["path"] == "store-incoming-orders"
        assert trigger.parameters["responseMode"] == "responseNode"
        assert graph.nodes[-1].id == "respond_to_webhook_3"

    def test_webhook_path_falls_back_when_goal_has_no_letters(self, designer):
        """A goal with nothing to slugify gets a generic path."""
        intent = Intent(
            goal="!!!",
            trigger="webhook",
            steps=[IntentStep(action="transform")],
        )
        graph = designer.design(intent)
        assert graph.node("webhook_trigger_1").parameters["path"] == "automation"

    def test_conditional_branch_graph(self, designer):
        """filter + notify gives true/false edges out of the if node."""
        intent = Intent(
            goal="Alert on failures",
            trigger="schedule",
            steps=[
                IntentStep(action="fetch"),
                IntentStep(action="filter"),
                IntentStep(action="notify"),
            ],
        )
        graph = designer.design(intent)
        assert graph.template_id == "conditional-terminal"
        branches = {e.condition: e.to_node_id for e in graph.outgoing("if_condition_3")}
        assert branches == {"true": "email_send_4", "false": "no_op_5"}
        assert GraphValidator().validate(graph).passed


# ============================================================================
# Determinism
# ============================================================================


@pytest.mark.parametrize(
    "trigger,actions",
    [
        ("schedule", ["fetch", "notify"]),
        ("webhook", ["transform"]),
        ("manual", ["fetch", "filter", "notify"]),
        ("event", ["script", "delay", "store"]),
    ],
)
def test_design_is_deterministic(trigger, actions):
    """Identical intents give byte-identical graphs across designer instances."""
    intent = Intent(
        goal="Deterministic",
        trigger=trigger,
        steps=[IntentStep(action=a, parameters={"n": i}) for i, a in enumerate(actions)],
    )
    first = GraphDesigner().design(intent)
    second = GraphDesigner().design(intent.model_copy(deep=True))
    assert first.model_dump_json() == second.model_dump_json()


# ============================================================================
# Constraint errors
# ============================================================================


class TestDesignErrors:
    """Tests for unmet constraints."""

    def test_webhook_without_steps(self, designer):
        """No steps is a DesignError and no graph is produced."""
        with pytest.raises(DesignError) as exc_info:
            designer.design(Intent(goal="Catch hooks", trigger="webhook", steps=[]))
        assert exc_info.value.code == "E-2001"
        assert exc_info.value.constraint == "steps"
        assert exc_info.value.message == "no steps to execute"

    def test_unknown_action(self, designer):
        """Unknown actions name the action."""
        intent = Intent(goal="x", trigger="manual", steps=[IntentStep(action="teleport")])
        with pytest.raises(DesignError) as exc_info:
            designer.design(intent)
        assert exc_info.value.code == "E-2004"
        assert exc_info.value.context["action"] == "teleport"

    def test_integration_not_allowed(self, designer, schedule_intent):
        """A step outside the whitelist is rejected."""
        intent = schedule_intent.model_copy(
            update={"constraints": IntentConstraints(allowed_integrations=["HTTP"])}
        )
        with pytest.raises(DesignError) as exc_info:
            designer.design(intent)
        assert exc_info.value.code == "E-2003"
        assert exc_info.value.context == {"action": "notify", "integration": "email"}

    def test_max_nodes_counts_trigger(self, designer, schedule_intent):
        """Three nodes do not fit in a limit of two."""
        intent = schedule_intent.model_copy(
            update={"constraints": IntentConstraints(max_nodes=2)}
        )
        with pytest.raises(DesignError) as exc_info:
            designer.design(intent)
        assert exc_info.value.constraint == "max_nodes"
        assert exc_info.value.context == {"node_count": 3, "max_nodes": 2}

    def test_max_nodes_exact_fit(self, designer, schedule_intent):
        """A graph exactly at the limit is accepted."""
        intent = schedule_intent.model_copy(
            update={"constraints": IntentConstraints(max_nodes=3)}
        )
        assert len(designer.design(intent).nodes) == 3
