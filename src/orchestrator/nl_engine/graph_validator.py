"""Graph validator with ordered checks and budgeted auto-fixes.

Checks run in a fixed order; each may report fatal or fixable issues and
apply fixes before the next check runs:

1. Structural: entry node, node id uniqueness, edge integrity, reachability.
2. Node-level: required parameters present and typed, optional defaults.
3. Connectivity: dead ends get a default terminal node; cycles are fatal.
4. External compatibility: node kinds against the cached supported set.

Every issue from every check is returned. Fixes are logged one by one.
Needing more fixes than the budget allows is itself fatal.
"""

import logging
from typing import Optional

from src.orchestrator.models.graph import Edge, Graph, Node
from src.orchestrator.models.validation import ValidationIssue, ValidationResult
from src.orchestrator.nl_engine.node_catalog import (
    DEFAULT_TERMINAL_KIND,
    default_parameters,
    get_spec,
    is_optional,
    is_terminal,
    is_trigger,
    supported_kinds,
)

logger = logging.getLogger(__name__)

DEFAULT_AUTO_FIX_BUDGET = 5


class _Pass:
    """Mutable working state for one validation pass."""

    def __init__(self, graph: Graph, budget: int) -> None:
        self.nodes: list[Node] = list(graph.nodes)
        self.edges: list[Edge] = list(graph.edges)
        self.issues: list[ValidationIssue] = []
        self.fixes: list[tuple[str, str]] = []
        self.budget = budget
        self.budget_exceeded = False

    def node_ids(self) -> set[str]:
        return {n.id for n in self.nodes}

    def valid_edges(self) -> list[Edge]:
        ids = self.node_ids()
        return [e for e in self.edges if e.from_node_id in ids and e.to_node_id in ids]

    def fatal(self, code: str, message: str, node_id: Optional[str] = None) -> None:
        self.issues.append(
            ValidationIssue(severity="fatal", code=code, message=message, node_id=node_id)
        )

    def try_fix(self, code: str, message: str, node_id: Optional[str], fix: str) -> bool:
        """Record a fixable issue and reserve budget for its fix.

        Returns:
            True if the caller should apply the fix.
        """
        if len(self.fixes) >= self.budget:
            self.issues.append(
                ValidationIssue(
                    severity="fixable", code=code, message=message, node_id=node_id
                )
            )
            if not self.budget_exceeded:
                self.budget_exceeded = True
                self.fatal(
                    "auto-fix-budget-exceeded",
                    f"More than {self.budget} automatic fixes were needed",
                )
            return False

        self.issues.append(
            ValidationIssue(
                severity="fixable", code=code, message=message, node_id=node_id, fixed=True
            )
        )
        self.fixes.append((code, fix))
        logger.info("Auto-fix applied (%s): %s", code, fix)
        return True


class GraphValidator:
    """Validates graphs before deployment.

    Attributes:
        auto_fix_budget: Maximum fixes applied in one pass.
        supported: Node kinds the engine is known to support.
    """

    def __init__(
        self,
        auto_fix_budget: int = DEFAULT_AUTO_FIX_BUDGET,
        supported: Optional[frozenset[str]] = None,
    ) -> None:
        self.auto_fix_budget = auto_fix_budget
        self.supported = supported if supported is not None else supported_kinds()

    def validate(self, graph: Graph) -> ValidationResult:
        """Run all checks and return every issue found.

        Args:
            graph: Graph to validate. Never mutated.

        Returns:
            ValidationResult. ``graph`` on the result is the input graph when
            no fix was applied, otherwise a derived graph with a new version.
        """
        state = _Pass(graph, self.auto_fix_budget)

        self._check_structure(state)
        self._check_nodes(state)
        self._check_connectivity(state)
        self._check_compatibility(state)

        result_graph = graph
        if state.fixes:
            result_graph = graph.derive(nodes=state.nodes, edges=state.edges)

        passed = not any(i.severity == "fatal" for i in state.issues)
        logger.info(
            "Validated graph '%s' v%d: passed=%s issues=%d fixes=%d",
            graph.name,
            graph.version,
            passed,
            len(state.issues),
            len(state.fixes),
        )
        return ValidationResult(
            passed=passed,
            issues=tuple(state.issues),
            auto_fixes_applied=tuple(code for code, _ in state.fixes),
            fix_descriptions=tuple(fix for _, fix in state.fixes),
            graph=result_graph,
        )

    # ------------------------------------------------------------------
    # 1. Structural
    # ------------------------------------------------------------------

    def _check_structure(self, state: _Pass) -> None:
        seen: set[str] = set()
        for node in state.nodes:
            if node.id in seen:
                state.fatal(
                    "duplicate-node-id", f"Node id '{node.id}' is used more than once", node.id
                )
            seen.add(node.id)

        entries = [n for n in state.nodes if is_trigger(n.kind)]
        if not entries:
            state.fatal("missing-entry", "The graph has no trigger node")
        elif len(entries) > 1:
            for extra in entries[1:]:
                state.fatal(
                    "multiple-entries",
                    f"Node '{extra.id}' is a second trigger; only one is allowed",
                    extra.id,
                )

        ids = state.node_ids()
        for edge in state.edges:
            missing = [
                ref for ref in (edge.from_node_id, edge.to_node_id) if ref not in ids
            ]
            if missing:
                state.fatal(
                    "dangling-edge",
                    f"Edge {edge.from_node_id} -> {edge.to_node_id} references "
                    f"missing node '{missing[0]}'",
                    edge.from_node_id if edge.from_node_id in ids else None,
                )

        if len(entries) != 1:
            # Reachability is undefined without a single entry.
            return

        reachable = _reachable_from(entries[0].id, state.valid_edges())
        for node in list(state.nodes):
            if node.id in reachable:
                continue
            message = f"Node '{node.id}' cannot be reached from the trigger"
            if not is_optional(node.kind):
                state.fatal("unreachable-node", message, node.id)
                continue
            if state.try_fix(
                "unreachable-node", message, node.id, f"removed unreachable node '{node.id}'"
            ):
                state.nodes = [n for n in state.nodes if n.id != node.id]
                state.edges = [
                    e
                    for e in state.edges
                    if node.id not in (e.from_node_id, e.to_node_id)
                ]

    # ------------------------------------------------------------------
    # 2. Node-level
    # ------------------------------------------------------------------

    def _check_nodes(self, state: _Pass) -> None:
        for index, node in enumerate(list(state.nodes)):
            spec = get_spec(node.kind)
            if spec is None:
                # Reported by the compatibility check.
                continue

            for name, expected in spec.required_params.items():
                value = node.parameters.get(name)
                if value is None or (isinstance(value, str) and not value.strip()):
                    state.fatal(
                        "missing-required-parameter",
                        f"Node '{node.id}' is missing required parameter '{name}'",
                        node.id,
                    )
                elif not isinstance(value, expected):
                    state.fatal(
                        "invalid-parameter-type",
                        f"Parameter '{name}' on node '{node.id}' should be "
                        f"{' or '.join(t.__name__ for t in expected)}, "
                        f"got {type(value).__name__}",
                        node.id,
                    )

            missing_optional = [p for p in spec.optional_params if p not in node.parameters]
            if not missing_optional:
                continue
            message = (
                f"Node '{node.id}' is missing optional parameter(s) "
                f"{', '.join(missing_optional)}"
            )
            if state.try_fix(
                "missing-optional-parameter",
                message,
                node.id,
                f"filled defaults for {', '.join(missing_optional)} on '{node.id}'",
            ):
                defaults = default_parameters(node.kind)
                parameters = dict(node.parameters)
                for name in missing_optional:
                    parameters[name] = defaults[name]
                state.nodes[index] = node.model_copy(update={"parameters": parameters})

    # ------------------------------------------------------------------
    # 3. Connectivity
    # ------------------------------------------------------------------

    def _check_connectivity(self, state: _Pass) -> None:
        edges = state.valid_edges()
        cycle_node = _find_cycle([n.id for n in state.nodes], edges)
        if cycle_node is not None:
            state.fatal(
                "cycle-detected",
                f"The graph contains a cycle through node '{cycle_node}'",
                cycle_node,
            )

        with_outgoing = {e.from_node_id for e in edges}
        for node in list(state.nodes):
            if node.id in with_outgoing or is_terminal(node.kind):
                continue
            if get_spec(node.kind) is None:
                continue
            terminal_id = _fresh_id(DEFAULT_TERMINAL_KIND, state.node_ids(), len(state.nodes) + 1)
            if state.try_fix(
                "dead-end",
                f"Node '{node.id}' has no outgoing connection",
                node.id,
                f"attached terminal node '{terminal_id}' after '{node.id}'",
            ):
                x, y = node.position
                state.nodes.append(
                    Node(
                        id=terminal_id,
                        kind=DEFAULT_TERMINAL_KIND,
                        parameters=default_parameters(DEFAULT_TERMINAL_KIND),
                        position=(x + 220, y),
                    )
                )
                state.edges.append(Edge(from_node_id=node.id, to_node_id=terminal_id))

    # ------------------------------------------------------------------
    # 4. External compatibility
    # ------------------------------------------------------------------

    def _check_compatibility(self, state: _Pass) -> None:
        for node in state.nodes:
            if node.kind in self.supported:
                continue
            spec = get_spec(node.kind)
            if spec is not None and spec.requires_oauth:
                state.fatal(
                    "blocked-node-kind",
                    f"Node '{node.id}' uses '{node.kind}', which needs a personal "
                    "account connection and cannot run on the shared engine",
                    node.id,
                )
            else:
                state.fatal(
                    "unsupported-node-kind",
                    f"Node '{node.id}' uses unsupported kind '{node.kind}'",
                    node.id,
                )


def _reachable_from(entry_id: str, edges: list[Edge]) -> set[str]:
    adjacency: dict[str, list[str]] = {}
    for edge in edges:
        adjacency.setdefault(edge.from_node_id, []).append(edge.to_node_id)

    seen = {entry_id}
    frontier = [entry_id]
    while frontier:
        current = frontier.pop()
        for target in adjacency.get(current, []):
            if target not in seen:
                seen.add(target)
                frontier.append(target)
    return seen


def _find_cycle(node_ids: list[str], edges: list[Edge]) -> Optional[str]:
    """Return a node on a cycle, or None if the graph is acyclic."""
    adjacency: dict[str, list[str]] = {node_id: [] for node_id in node_ids}
    for edge in edges:
        adjacency.setdefault(edge.from_node_id, []).append(edge.to_node_id)

    white, grey, black = 0, 1, 2
    color = {node_id: white for node_id in adjacency}

    for root in node_ids:
        if color[root] != white:
            continue
        stack: list[tuple[str, int]] = [(root, 0)]
        color[root] = grey
        while stack:
            current, child_index = stack[-1]
            children = adjacency.get(current, [])
            if child_index < len(children):
                stack[-1] = (current, child_index + 1)
                child = children[child_index]
                if color.get(child, white) == grey:
                    return child
                if color.get(child, white) == white:
                    color[child] = grey
                    stack.append((child, 0))
            else:
                color[current] = black
                stack.pop()
    return None


def _fresh_id(kind: str, taken: set[str], ordinal: int) -> str:
    candidate = f"{kind}_{ordinal}"
    while candidate in taken:
        ordinal += 1
        candidate = f"{kind}_{ordinal}"
    return candidate
