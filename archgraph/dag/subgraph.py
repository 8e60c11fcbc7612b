"""
GraphReference evaluation.

A GraphReference node runs another definition as a nested graph. The nested
run gets its own order, edge values and sandbox state; only the depth is
threaded through, and it is bounded by the engine config.

Value routing:
    - inbound edges are named by the usual input resolver and handed to the
      nested graph as external inputs, matched by Input node label
    - an inbound edge whose target handle is input-<inputNodeId> feeds that
      Input node of the referenced definition directly
    - the nested graph's Output nodes become this node's outputs, keyed by
      label; output-<outputNodeId> source handles alias those labels
"""

import logging

from archgraph.dag.graph_elements import NodeKind
from archgraph.dag.node_implementations import (
    NodeEvaluator, NodeEvaluation, output_label, register_evaluator
)
from archgraph.exceptions import MissingDefinitionError, RecursionDepthExceededError

logger = logging.getLogger(__name__)

INPUT_HANDLE_PREFIX = 'input-'
OUTPUT_HANDLE_PREFIX = 'output-'


def lookup_definition(lookup, definition_id):
    """Resolve a definition id through a registry or a plain mapping"""
    if definition_id is None or lookup is None:
        return None
    return lookup.get(definition_id)


class GraphReferenceNodeEvaluator(NodeEvaluator):
    """Evaluates a referenced definition as a nested graph"""

    def compute(self, input_values):
        definition_id = self.node.definition_id
        definition = lookup_definition(self.context.lookup, definition_id)
        if definition is None:
            label = self.node.label if self.node.label is not None else definition_id
            raise MissingDefinitionError(f"Missing definition: {label}", node_id=self.node.id)

        max_depth = self.context.config.max_recursion_depth
        nested_depth = self.context.depth + 1
        if nested_depth > max_depth:
            raise RecursionDepthExceededError(
                f"Maximum recursion depth exceeded ({max_depth})",
                max_depth=max_depth, node_id=self.node.id
            )

        external_inputs = self.map_external_inputs(definition, input_values)
        logger.debug(f"Node {self.name}: entering {definition.name} at depth {nested_depth}")

        # Deferred: compute_graph imports this module's registration
        from archgraph.dag.compute_graph import ComputeGraph

        nested = ComputeGraph(
            definition,
            self.context.lookup,
            self.context.config,
            depth=nested_depth,
            external_inputs=external_inputs,
            metrics=self.context.metrics,
        )
        result = nested.run()

        if result.failure is not None:
            # Same error class as the root cause, nested session's message
            error = result.failure.with_message(result.error)
            error.node_id = self.node.id
            raise error

        return NodeEvaluation(
            output_values=dict(result.outputs),
            port_aliases=self.output_port_aliases(definition),
        )

    def map_external_inputs(self, definition, input_values):
        external_inputs = dict(input_values)
        for handle, value in self.context.handle_inputs.items():
            if not handle or not handle.startswith(INPUT_HANDLE_PREFIX):
                continue
            input_node = definition.get_node(handle[len(INPUT_HANDLE_PREFIX):])
            if input_node is None or input_node.kind != NodeKind.INPUT:
                logger.warning(f"Node {self.name}: handle {handle} matches no input of {definition.name}")
                continue
            external_inputs[output_label(input_node)] = value
        return external_inputs

    @staticmethod
    def output_port_aliases(definition):
        return {
            f"{OUTPUT_HANDLE_PREFIX}{node.id}": output_label(node)
            for node in definition.nodes_of_kind(NodeKind.OUTPUT)
        }


register_evaluator(NodeKind.GRAPH_REFERENCE, GraphReferenceNodeEvaluator)
