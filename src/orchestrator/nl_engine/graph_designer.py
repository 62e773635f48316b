"""Graph designer: turns an Intent into an automation Graph.

Design is a pure function of the intent and TEMPLATE_LIBRARY_VERSION:
1. Reject intents with no steps, unknown actions, or disallowed integrations.
2. Try the ordered template library; the first match wins.
3. Otherwise compose directly: trigger node, one node per step, linear edges.
4. Assign node ids from kind and ordinal, fill kind defaults, lay out.
5. Enforce max_nodes on the finished graph.
"""

import logging
import re

from src.errors import DesignError
from src.orchestrator.models.graph import Edge, Graph, Node
from src.orchestrator.models.intent import Intent
from src.orchestrator.nl_engine.node_catalog import (
    default_parameters,
    get_spec,
    resolve_action,
)
from src.orchestrator.nl_engine.templates import (
    TEMPLATE_LIBRARY_VERSION,
    TEMPLATES,
    Blueprint,
    GraphTemplate,
    compose_linear,
    match_template,
)

logger = logging.getLogger(__name__)

# Canvas layout
_ORIGIN_X = 240
_ORIGIN_Y = 300
_COLUMN_WIDTH = 220
_MAX_X = 1200
_ROW_HEIGHT = 300
_LANE_OFFSET = 150
_COLUMNS_PER_ROW = (_MAX_X - _ORIGIN_X) // _COLUMN_WIDTH + 1


class GraphDesigner:
    """Builds graphs from intents using an ordered template library.

    Attributes:
        templates: Ordered template library; first match wins.
        library_version: Version tag of the template library.
    """

    def __init__(
        self,
        templates: tuple[GraphTemplate, ...] = TEMPLATES,
        library_version: str = TEMPLATE_LIBRARY_VERSION,
    ) -> None:
        self.templates = templates
        self.library_version = library_version

    def design(self, intent: Intent) -> Graph:
        """Design a graph for the intent.

        Args:
            intent: Extracted intent.

        Returns:
            New Graph, version 1.

        Raises:
            DesignError: If a constraint cannot be satisfied. The error's
                ``constraint`` names which one.
        """
        if not intent.steps:
            raise DesignError(
                "no steps to execute",
                constraint="steps",
                code="E-2001",
                context={"trigger": intent.trigger},
            )

        kinds = self._resolve_kinds(intent)
        self._check_integrations(intent, kinds)

        template = match_template(intent, kinds, self.templates)
        if template is not None:
            blueprint = template.build(intent, kinds)
            template_id = template.template_id
        else:
            blueprint = compose_linear(intent, kinds)
            template_id = None

        max_nodes = intent.constraints.max_nodes
        if max_nodes is not None and len(blueprint.nodes) > max_nodes:
            raise DesignError(
                "max_nodes exceeded",
                constraint="max_nodes",
                code="E-2002",
                context={"node_count": len(blueprint.nodes), "max_nodes": max_nodes},
            )

        graph = self._materialize(intent, blueprint, template_id)
        logger.info(
            "Designed graph '%s' with %d nodes (template=%s, library=%s)",
            graph.name,
            len(graph.nodes),
            template_id or "linear",
            self.library_version,
        )
        return graph

    def _resolve_kinds(self, intent: Intent) -> list[str]:
        kinds = []
        for step in intent.steps:
            kind = resolve_action(step.action)
            if kind is None:
                raise DesignError(
                    f"unknown step action '{step.action}'",
                    constraint="steps",
                    code="E-2004",
                    context={"action": step.action},
                )
            kinds.append(kind)
        return kinds

    def _check_integrations(self, intent: Intent, kinds: list[str]) -> None:
        allowed = intent.constraints.allowed_integrations
        if allowed is None:
            return
        allowed_set = {a.lower() for a in allowed}
        for step, kind in zip(intent.steps, kinds):
            spec = get_spec(kind)
            if spec and spec.integration and spec.integration not in allowed_set:
                raise DesignError(
                    f"integration not allowed: {spec.integration}",
                    constraint="allowed_integrations",
                    code="E-2003",
                    context={"action": step.action, "integration": spec.integration},
                )

    def _materialize(
        self,
        intent: Intent,
        blueprint: Blueprint,
        template_id: str | None,
    ) -> Graph:
        ids = [f"{bp.kind}_{ordinal}" for ordinal, bp in enumerate(blueprint.nodes, 1)]
        positions = _layout(blueprint)

        nodes = []
        for node_id, bp, position in zip(ids, blueprint.nodes, positions):
            parameters = default_parameters(bp.kind)
            parameters.update(dict(bp.parameters))
            if bp.kind == "webhook_trigger" and not parameters.get("path"):
                parameters["path"] = _slugify(intent.goal)
            nodes.append(
                Node(id=node_id, kind=bp.kind, parameters=parameters, position=position)
            )

        edges = [
            Edge(
                from_node_id=ids[e.source],
                to_node_id=ids[e.target],
                condition=e.condition,
            )
            for e in blueprint.edges
        ]
        return Graph(
            name=intent.goal[:60],
            nodes=tuple(nodes),
            edges=tuple(edges),
            version=1,
            template_id=template_id,
        )


def _layout(blueprint: Blueprint) -> list[tuple[int, int]]:
    """Place nodes left to right, wrapping rows past the canvas width.

    Consecutive off-lane nodes (branch targets) share a column.
    """
    positions = []
    column = -1
    previous_lane = 0
    for bp in blueprint.nodes:
        if not (bp.lane != 0 and previous_lane != 0):
            column += 1
        previous_lane = bp.lane
        row, col_in_row = divmod(column, _COLUMNS_PER_ROW)
        x = _ORIGIN_X + col_in_row * _COLUMN_WIDTH
        y = _ORIGIN_Y + row * _ROW_HEIGHT + bp.lane * _LANE_OFFSET
        positions.append((x, y))
    return positions


def _slugify(text: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")
    return slug[:40] or "automation"
