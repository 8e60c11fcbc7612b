import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from archgraph.dag.graph_elements import NodeKind, NodeResult
from archgraph.dag.input_resolver import resolve_input_names
from archgraph.dag.node_implementations import (
    EvaluationContext, NodeEvaluation, evaluate_node, output_label
)
from archgraph.dag.topological_sort import topological_sort, SortResult
# Registers the GraphReference evaluator
import archgraph.dag.subgraph  # noqa: F401
from archgraph.engine_config import EngineConfig
from archgraph.exceptions import CycleError, GraphExecutionError
from archgraph.metrics import metrics as default_metrics, time_block

logger = logging.getLogger(__name__)


@dataclass
class DefinitionExecutionResult:
    """Outcome of running a definition start to finish"""
    outputs: Dict[str, Any] = field(default_factory=dict)
    node_results: Dict[str, NodeResult] = field(default_factory=dict)
    execution_order: List[str] = field(default_factory=list)
    error: Optional[str] = None
    failure: Optional[GraphExecutionError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def node_kind_name(node) -> str:
    return node.kind.value if isinstance(node.kind, NodeKind) else str(node.kind)


class ComputeGraph:
    """
    Executes one definition.

    The graph owns nothing but its own run: edge values and node results are
    created per run() or handed in by the execution controller, which drives
    the same steps one node at a time.
    """

    def __init__(self, definition, lookup, config: EngineConfig = None, depth: int = 0,
                 external_inputs: Dict[str, Any] = None, metrics=None):
        self.definition = definition
        self.lookup = lookup
        self.config = config or EngineConfig()
        self.depth = depth
        self.external_inputs = dict(external_inputs or {})
        self.metrics = metrics or default_metrics
        self.name = definition.name

    def topological_sort(self) -> SortResult:
        sort_result = topological_sort(self.definition.nodes, self.definition.edges)
        if not sort_result.ok:
            self.metrics.sort_failures.inc()
        return sort_result

    def gather_inputs(self, node, edge_values: Dict[str, Any]):
        """
        Collect a node's named input values.

        Returns:
            Tuple of (input values by resolved name, input values by target handle)
        """
        incoming_edges = self.definition.incoming_edges(node.id)
        name_map = resolve_input_names(node.id, self.definition.nodes, self.definition.edges)

        input_values = {}
        handle_inputs = {}
        for edge in incoming_edges:
            value = edge_values.get(edge.value_key)
            name = name_map.get(edge.source_key)
            if name:
                input_values[name] = value
            if edge.target_handle:
                handle_inputs[edge.target_handle] = value

        # Input nodes receive values handed down by a parent graph
        if node.kind == NodeKind.INPUT:
            label = output_label(node)
            if label in self.external_inputs:
                input_values[label] = self.external_inputs[label]

        # Test values fill whatever no edge supplied
        for key, value in node.test_values.items():
            if input_values.get(key) is None:
                input_values[key] = value

        return input_values, handle_inputs

    def execute_node(self, node_id: str, edge_values: Dict[str, Any], result: NodeResult) -> NodeEvaluation:
        """
        Evaluate one node, record it in result and publish its outputs into
        edge_values.
        """
        node = self.definition.get_node(node_id)
        kind = node_kind_name(node)

        input_values, handle_inputs = self.gather_inputs(node, edge_values)
        result.mark_executing(input_values)

        context = EvaluationContext(
            lookup=self.lookup,
            config=self.config,
            depth=self.depth,
            handle_inputs=handle_inputs,
            metrics=self.metrics,
        )
        with time_block(self.metrics.node_execution_duration, {'node_kind': kind}):
            evaluation = evaluate_node(node, input_values, context)

        if not evaluation.ok:
            result.mark_error(evaluation.error_message, evaluation.output_values)
            self.metrics.node_executions.labels(node_kind=kind, status='error').inc()
            self.metrics.node_errors.labels(node_kind=kind, error_type=type(evaluation.error).__name__).inc()
            return evaluation

        result.mark_completed(evaluation.output_values)
        self.metrics.node_executions.labels(node_kind=kind, status='completed').inc()
        self.publish_outputs(node_id, evaluation, edge_values)
        return evaluation

    def publish_outputs(self, node_id: str, evaluation: NodeEvaluation, edge_values: Dict[str, Any]):
        outputs = evaluation.output_values
        if not outputs:
            return

        handles = [e.source_handle for e in self.definition.outgoing_edges(node_id) if e.source_handle]

        if len(outputs) == 1:
            value = next(iter(outputs.values()))
            edge_values[node_id] = value
            for handle in handles:
                edge_values[f"{node_id}:{handle}"] = value
            return

        for port, value in outputs.items():
            edge_values[f"{node_id}:{port}"] = value
            # The bare node id carries the last output
            edge_values[node_id] = value

        last_value = edge_values[node_id]
        for handle in handles:
            port = evaluation.port_aliases.get(handle, handle)
            edge_values[f"{node_id}:{handle}"] = outputs[port] if port in outputs else last_value

    def format_node_error(self, node_id: str, error_message: str) -> str:
        node = self.definition.get_node(node_id)
        label = node.display_label if node is not None else node_id
        return f'Error in node "{label}": {error_message}'

    def collect_outputs(self, order, node_results: Dict[str, NodeResult]) -> Dict[str, Any]:
        """Values of the Output nodes, keyed by label"""
        outputs = {}
        for node_id in order:
            node = self.definition.get_node(node_id)
            if node is None or node.kind != NodeKind.OUTPUT:
                continue
            node_result = node_results.get(node_id)
            if node_result is not None:
                outputs[output_label(node)] = next(iter(node_result.output_values.values()), None)
        return outputs

    def run(self) -> DefinitionExecutionResult:
        """Execute every node in order, stopping at the first failure"""
        sort_result = self.topological_sort()
        if not sort_result.ok:
            return DefinitionExecutionResult(
                error=sort_result.error,
                failure=CycleError(sort_result.error, cycle_nodes=sort_result.cycle_nodes),
            )

        order = sort_result.order
        node_results = {node_id: NodeResult() for node_id in order}
        edge_values = {}

        for node_id in order:
            evaluation = self.execute_node(node_id, edge_values, node_results[node_id])
            if not evaluation.ok:
                error_msg = self.format_node_error(node_id, evaluation.error_message)
                logger.error(f"Graph {self.name} (depth {self.depth}): {error_msg}")
                return DefinitionExecutionResult(
                    node_results=node_results,
                    execution_order=order,
                    error=error_msg,
                    failure=evaluation.error,
                )

        logger.debug(f"Graph {self.name} (depth {self.depth}) completed {len(order)} nodes")
        return DefinitionExecutionResult(
            outputs=self.collect_outputs(order, node_results),
            node_results=node_results,
            execution_order=order,
        )

    def __repr__(self):
        return f"ComputeGraph(name={self.name}, depth={self.depth})"
