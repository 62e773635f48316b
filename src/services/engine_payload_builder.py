"""Translate automation graphs to and from the engine's representation.

The engine stores an artifact as a list of named nodes plus a connections
map keyed by source node name. Conditional nodes expose one output per
branch: output 0 carries "true", output 1 carries "false".

This module also reduces an engine representation to a structural
signature, which the deployment health check compares against what was
submitted.
"""

from typing import Any

from src.orchestrator.models.graph import Graph
from src.orchestrator.nl_engine.node_catalog import get_spec

# Output index per branch label for conditional nodes
BRANCH_OUTPUTS: dict[str, int] = {"true": 0, "false": 1}


def build_engine_payload(graph: Graph, name: str) -> dict[str, Any]:
    """Build the engine representation of a graph.

    Args:
        graph: Validated graph.
        name: Artifact name, already carrying the namespace prefix.

    Returns:
        Dict with name, nodes, connections and settings.

    Raises:
        ValueError: If a node kind is not in the catalog.
    """
    nodes = []
    for node in graph.nodes:
        spec = get_spec(node.kind)
        if spec is None:
            raise ValueError(f"Node kind '{node.kind}' has no engine mapping")
        nodes.append(
            {
                "id": node.id,
                "name": node.id,
                "type": spec.engine_type,
                "typeVersion": spec.type_version,
                "position": [node.position[0], node.position[1]],
                "parameters": dict(node.parameters),
            }
        )

    connections: dict[str, dict[str, list[list[dict[str, Any]]]]] = {}
    for edge in graph.edges:
        outputs = connections.setdefault(edge.from_node_id, {"main": []})["main"]
        index = BRANCH_OUTPUTS.get(edge.condition or "", 0)
        while len(outputs) <= index:
            outputs.append([])
        outputs[index].append({"node": edge.to_node_id, "type": "main", "index": 0})

    return {
        "name": name,
        "nodes": nodes,
        "connections": connections,
        "settings": {"executionOrder": "v1"},
    }


def structural_signature(payload: dict[str, Any]) -> tuple[frozenset, frozenset]:
    """Reduce an engine representation to comparable structure.

    Positions, ids and engine-added metadata are ignored; node names, types
    and parameters plus every connection are kept.

    Args:
        payload: Engine representation, as built or as fetched.

    Returns:
        (node set, connection set) where nodes are (name, type, params)
        and connections are (source, output index, target).
    """
    nodes = frozenset(
        (n.get("name"), n.get("type"), _freeze(n.get("parameters", {})))
        for n in _node_list(payload)
    )
    connections = set()
    raw = payload.get("connections")
    for source, by_type in (raw.items() if isinstance(raw, dict) else ()):
        if not isinstance(by_type, dict):
            continue
        for output_index, targets in enumerate(by_type.get("main") or []):
            if not isinstance(targets, list):
                continue
            for target in targets:
                if isinstance(target, dict):
                    connections.add((source, output_index, target.get("node")))
    return nodes, frozenset(connections)


def node_names(payload: dict[str, Any]) -> set[str]:
    """Return the node names in an engine representation."""
    return {n.get("name") for n in _node_list(payload)}


def webhook_path(graph: Graph) -> str | None:
    """Return the webhook path of a webhook-triggered graph, else None."""
    for node in graph.nodes:
        if node.kind == "webhook_trigger":
            path = node.parameters.get("path")
            return str(path) if path else None
    return None


def _node_list(payload: dict[str, Any]) -> list[dict[str, Any]]:
    # Fetched representations are untrusted; odd shapes count as no nodes.
    nodes = payload.get("nodes")
    if not isinstance(nodes, list):
        return []
    return [n for n in nodes if isinstance(n, dict)]


def _freeze(value: Any) -> Any:
    if isinstance(value, dict):
        return tuple(sorted((k, _freeze(v)) for k, v in value.items()))
    if isinstance(value, list):
        return tuple(_freeze(v) for v in value)
    return value
