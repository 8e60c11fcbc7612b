import logging

from archgraph.core_utils import sanitize_identifier

logger = logging.getLogger(__name__)


def resolve_input_names(target_node_id, nodes, edges):
    """
    Name each incoming edge of a node after its source node's label.

    Duplicate names are numbered in edge-list order: the first edge keeps the
    bare name, the second becomes name2, the third name3 and so on.

    Returns:
        Dict keyed by the edge's source handle, or by the source node id when
        the edge has no handle
    """
    nodes_by_id = {node.id: node for node in nodes}
    name_map = {}
    label_counts = {}

    for edge in edges:
        if edge.target != target_node_id:
            continue
        source_node = nodes_by_id.get(edge.source)
        if source_node is None:
            continue

        raw_label = source_node.label
        if raw_label is None:
            raw_label = 'input'
        base_name = sanitize_identifier(raw_label)

        count = label_counts.get(base_name, 0) + 1
        label_counts[base_name] = count

        resolved_name = base_name if count == 1 else f"{base_name}{count}"
        name_map[edge.source_key] = resolved_name

    logger.debug(f"Resolved input names for {target_node_id}: {name_map}")
    return name_map
