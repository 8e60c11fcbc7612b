import logging
from collections import deque
from dataclasses import dataclass, field
from typing import List, Optional

from archgraph.exceptions import CycleError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SortResult:
    """Outcome of ordering one definition's nodes"""
    ok: bool
    order: List[str] = field(default_factory=list)
    error: Optional[str] = None
    cycle_nodes: List[str] = field(default_factory=list)

    def raise_for_cycle(self):
        """Raise CycleError if the sort failed"""
        if not self.ok:
            raise CycleError(self.error, cycle_nodes=self.cycle_nodes)


def topological_sort(nodes, edges) -> SortResult:
    """
    Order nodes with Kahn's algorithm.

    Edges whose source or target is not among the nodes are ignored. Nodes
    that become ready at the same time leave the queue in the order the
    caller listed them, so the same graph always sorts the same way.

    Args:
        nodes: Sequence of NodeRecord
        edges: Sequence of EdgeRecord

    Returns:
        SortResult with the order, or with the nodes that could not be ordered
    """
    node_ids = [node.id for node in nodes]
    known = set(node_ids)
    in_degree = {node_id: 0 for node_id in node_ids}
    adjacency = {node_id: [] for node_id in node_ids}

    for edge in edges:
        if edge.source not in known or edge.target not in known:
            continue
        adjacency[edge.source].append(edge.target)
        in_degree[edge.target] += 1

    queue = deque([node_id for node_id in node_ids if in_degree[node_id] == 0])
    order = []

    while queue:
        node_id = queue.popleft()
        order.append(node_id)

        for neighbor in adjacency[node_id]:
            in_degree[neighbor] -= 1
            if in_degree[neighbor] == 0:
                queue.append(neighbor)

    if len(order) != len(node_ids):
        ordered = set(order)
        cycle_nodes = [node_id for node_id in node_ids if node_id not in ordered]
        labels = {node.id: node.display_label for node in nodes}
        error_msg = f"Cannot execute: cycle detected between nodes: {' -> '.join(labels[n] for n in cycle_nodes)}"
        logger.warning(error_msg)
        return SortResult(ok=False, error=error_msg, cycle_nodes=cycle_nodes)

    return SortResult(ok=True, order=order)


def unconnected_group_starts(order, edges):
    """
    Indices in order where a node has no path, ignoring edge direction, to
    the node listed just before it.

    Kahn's algorithm interleaves unrelated groups arbitrarily; these indices
    mark where such a group begins.
    """
    neighbors = {node_id: set() for node_id in order}
    for edge in edges:
        if edge.source in neighbors and edge.target in neighbors:
            neighbors[edge.source].add(edge.target)
            neighbors[edge.target].add(edge.source)

    component = {}
    for start in order:
        if start in component:
            continue
        component[start] = start
        queue = deque([start])
        while queue:
            current = queue.popleft()
            for neighbor in neighbors[current]:
                if neighbor not in component:
                    component[neighbor] = start
                    queue.append(neighbor)

    return [
        index for index in range(1, len(order))
        if component[order[index]] != component[order[index - 1]]
    ]
