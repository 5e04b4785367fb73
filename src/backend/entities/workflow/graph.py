"""Adjacency index over a submitted workflow graph."""

from __future__ import annotations

from dataclasses import dataclass, field

from models import NodeKind, WorkflowGraph, WorkflowNode


@dataclass(frozen=True)
class GraphIndex:
    """Lookup tables derived once from a ``WorkflowGraph``.

    Attributes:
        nodes_by_id: Node id → node.
        outgoing: Node id → target ids, in edge submission order.
        in_degree: Node id → number of incoming edges.
        start: Node where traversal begins, or ``None`` for an empty graph.
    """

    nodes_by_id: dict[str, WorkflowNode] = field(default_factory=dict)
    outgoing: dict[str, list[str]] = field(default_factory=dict)
    in_degree: dict[str, int] = field(default_factory=dict)
    start: WorkflowNode | None = None

    def successors(self, node_id: str) -> list[str]:
        return self.outgoing.get(node_id, [])


def select_start_node(
    graph: WorkflowGraph,
    in_degree: dict[str, int],
) -> WorkflowNode | None:
    """Pick the node traversal starts from.

    Preference order: the first Start node, then the first node with no
    incoming edges, then simply the first node.
    """
    if not graph.nodes:
        return None
    for node in graph.nodes:
        if node.kind is NodeKind.START:
            return node
    for node in graph.nodes:
        if in_degree.get(node.id, 0) == 0:
            return node
    return graph.nodes[0]


def build_graph_index(graph: WorkflowGraph) -> GraphIndex:
    """Index *graph* for traversal.

    Edges may reference ids that are not nodes. They are still recorded;
    the engine treats an unknown target as a dead end.
    """
    nodes_by_id = {node.id: node for node in graph.nodes}
    outgoing: dict[str, list[str]] = {node.id: [] for node in graph.nodes}
    in_degree: dict[str, int] = {node.id: 0 for node in graph.nodes}

    for edge in graph.edges:
        outgoing.setdefault(edge.source, []).append(edge.target)
        in_degree[edge.target] = in_degree.get(edge.target, 0) + 1

    return GraphIndex(
        nodes_by_id=nodes_by_id,
        outgoing=outgoing,
        in_degree=in_degree,
        start=select_start_node(graph, in_degree),
    )
