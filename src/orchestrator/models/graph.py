"""Automation graph models.

A Graph is an immutable directed graph of nodes connected by edges. Once a
graph is produced it is never edited in place: every change, including
validator auto-fixes, produces a new Graph with a bumped version.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class Node(BaseModel):
    """One executable step in the automation graph.

    Attributes:
        id: Unique node id, derived from kind and ordinal
        kind: Node kind from the node catalog
        parameters: Kind-specific parameters
        position: Canvas coordinates (x, y)
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    kind: str = Field(..., min_length=1)
    parameters: dict[str, Any] = Field(default_factory=dict)
    position: tuple[int, int] = (0, 0)


class Edge(BaseModel):
    """Directed connection between two nodes.

    Attributes:
        from_node_id: Source node id
        to_node_id: Target node id
        condition: Branch label for conditional nodes (e.g. "true")
    """

    model_config = ConfigDict(frozen=True)

    from_node_id: str
    to_node_id: str
    condition: Optional[str] = None


class Graph(BaseModel):
    """Immutable automation graph.

    Attributes:
        name: Human-readable graph name
        nodes: Nodes in layout order
        edges: Directed edges
        version: Incremented on every derived copy
        template_id: Template that produced the graph, None for composition
    """

    model_config = ConfigDict(frozen=True)

    name: str = "automation"
    nodes: tuple[Node, ...] = ()
    edges: tuple[Edge, ...] = ()
    version: int = Field(default=1, ge=1)
    template_id: Optional[str] = None

    def node(self, node_id: str) -> Optional[Node]:
        """Return the node with the given id, or None."""
        for candidate in self.nodes:
            if candidate.id == node_id:
                return candidate
        return None

    def node_ids(self) -> set[str]:
        """Return the set of node ids."""
        return {n.id for n in self.nodes}

    def outgoing(self, node_id: str) -> list[Edge]:
        """Return edges leaving the given node, in declaration order."""
        return [e for e in self.edges if e.from_node_id == node_id]

    def incoming(self, node_id: str) -> list[Edge]:
        """Return edges entering the given node, in declaration order."""
        return [e for e in self.edges if e.to_node_id == node_id]

    def derive(
        self,
        *,
        nodes: Optional[list[Node]] = None,
        edges: Optional[list[Edge]] = None,
    ) -> "Graph":
        """Return a new graph with replaced nodes/edges and a bumped version."""
        return self.model_copy(
            update={
                "nodes": tuple(nodes) if nodes is not None else self.nodes,
                "edges": tuple(edges) if edges is not None else self.edges,
                "version": self.version + 1,
            }
        )
