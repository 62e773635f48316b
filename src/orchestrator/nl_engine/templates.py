"""Ordered template library for the graph designer.

Templates are tried in declaration order and the first match wins; there is
no scoring. A template turns an intent plus its resolved step kinds into a
Blueprint: node kinds with step parameters, and edges by node index. The
designer assigns ids, defaults and layout afterwards, so templates never
decide node ids.

Bump TEMPLATE_LIBRARY_VERSION whenever a template is added, removed,
reordered or changes its output. Designer output is a pure function of the
intent and this version.
"""

from dataclasses import dataclass
from typing import Any, Callable, Optional

from src.orchestrator.models.intent import Intent
from src.orchestrator.nl_engine.node_catalog import (
    DEFAULT_TERMINAL_KIND,
    TRIGGER_KINDS,
    is_terminal,
)

TEMPLATE_LIBRARY_VERSION = "2026.10.1"


@dataclass(frozen=True)
class NodeBlueprint:
    """A node to be created, before ids and defaults are assigned.

    Attributes:
        kind: Catalog kind.
        parameters: Explicit parameters; kind defaults fill the rest.
        lane: Vertical lane for layout (0 main row, -1 above, 1 below).
    """

    kind: str
    parameters: tuple[tuple[str, Any], ...] = ()
    lane: int = 0


@dataclass(frozen=True)
class EdgeBlueprint:
    """Edge between two blueprint nodes, by index."""

    source: int
    target: int
    condition: Optional[str] = None


@dataclass(frozen=True)
class Blueprint:
    """Node and edge layout produced by a template or by composition."""

    nodes: tuple[NodeBlueprint, ...]
    edges: tuple[EdgeBlueprint, ...]


@dataclass(frozen=True)
class GraphTemplate:
    """A named template.

    Attributes:
        template_id: Stable identifier recorded on the Graph.
        description: What the template builds.
        matches: Predicate over (intent, resolved step kinds).
        build: Builder over (intent, resolved step kinds).
    """

    template_id: str
    description: str
    matches: Callable[[Intent, list[str]], bool]
    build: Callable[[Intent, list[str]], Blueprint]


def _step_nodes(intent: Intent, kinds: list[str]) -> list[NodeBlueprint]:
    return [
        NodeBlueprint(kind=kind, parameters=tuple(sorted(step.parameters.items())))
        for step, kind in zip(intent.steps, kinds)
    ]


def compose_linear(intent: Intent, kinds: list[str]) -> Blueprint:
    """Trigger node followed by one node per step, chained in order.

    Args:
        intent: Intent being designed.
        kinds: Resolved catalog kind for each step.

    Returns:
        Linear blueprint with len(kinds) + 1 nodes.
    """
    nodes = [NodeBlueprint(kind=TRIGGER_KINDS[intent.trigger])]
    nodes.extend(_step_nodes(intent, kinds))
    edges = [EdgeBlueprint(source=i, target=i + 1) for i in range(len(nodes) - 1)]
    return Blueprint(nodes=tuple(nodes), edges=tuple(edges))


# ============================================================================
# Conditional notify: ... -> if -> (true) terminal step / (false) no-op
# ============================================================================


def _matches_conditional_terminal(intent: Intent, kinds: list[str]) -> bool:
    return (
        len(kinds) >= 2
        and kinds[-2] == "if_condition"
        and is_terminal(kinds[-1])
    )


def _build_conditional_terminal(intent: Intent, kinds: list[str]) -> Blueprint:
    linear = compose_linear(intent, kinds)
    nodes = list(linear.nodes)
    if_index = len(nodes) - 2
    action_index = len(nodes) - 1

    nodes[action_index] = NodeBlueprint(
        kind=nodes[action_index].kind,
        parameters=nodes[action_index].parameters,
        lane=-1,
    )
    nodes.append(NodeBlueprint(kind=DEFAULT_TERMINAL_KIND, lane=1))
    skip_index = len(nodes) - 1

    edges = [e for e in linear.edges if e.source != if_index]
    edges.append(EdgeBlueprint(source=if_index, target=action_index, condition="true"))
    edges.append(EdgeBlueprint(source=if_index, target=skip_index, condition="false"))
    return Blueprint(nodes=tuple(nodes), edges=tuple(edges))


# ============================================================================
# Webhook with response: webhook -> steps -> respond_to_webhook
# ============================================================================


def _matches_webhook_response(intent: Intent, kinds: list[str]) -> bool:
    return intent.trigger == "webhook" and "respond_to_webhook" not in kinds


def _build_webhook_response(intent: Intent, kinds: list[str]) -> Blueprint:
    linear = compose_linear(intent, kinds)
    trigger = NodeBlueprint(
        kind=linear.nodes[0].kind,
        parameters=(("responseMode", "responseNode"),),
    )
    nodes = [trigger, *linear.nodes[1:], NodeBlueprint(kind="respond_to_webhook")]
    edges = [*linear.edges, EdgeBlueprint(source=len(nodes) - 2, target=len(nodes) - 1)]
    return Blueprint(nodes=tuple(nodes), edges=tuple(edges))


TEMPLATES: tuple[GraphTemplate, ...] = (
    GraphTemplate(
        template_id="conditional-terminal",
        description="Branch on a condition; run the final step only when it holds",
        matches=_matches_conditional_terminal,
        build=_build_conditional_terminal,
    ),
    GraphTemplate(
        template_id="webhook-response",
        description="Webhook-triggered flow that answers the caller when done",
        matches=_matches_webhook_response,
        build=_build_webhook_response,
    ),
)


def match_template(
    intent: Intent,
    kinds: list[str],
    templates: tuple[GraphTemplate, ...] = TEMPLATES,
) -> Optional[GraphTemplate]:
    """Return the first template matching the intent, or None.

    Args:
        intent: Intent being designed.
        kinds: Resolved catalog kind for each step.
        templates: Ordered library to search.

    Returns:
        First matching GraphTemplate in declaration order, or None.
    """
    for template in templates:
        if template.matches(intent, kinds):
            return template
    return None
