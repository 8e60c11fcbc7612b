import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from archgraph.calculator import CalculatorFactory
from archgraph.core_utils import sanitize_identifier
from archgraph.dag.graph_elements import NodeKind, DEFAULT_LABELS
from archgraph.engine_config import EngineConfig
from archgraph.exceptions import GraphExecutionError, UnknownNodeKindError

logger = logging.getLogger(__name__)


@dataclass
class NodeEvaluation:
    """What evaluating one node produced"""
    output_values: Dict[str, Any] = field(default_factory=dict)
    error: Optional[GraphExecutionError] = None
    # Source handle -> output port, for handles that do not name a port
    port_aliases: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def error_message(self) -> Optional[str]:
        return self.error.message if self.error is not None else None


@dataclass
class EvaluationContext:
    """Everything a node evaluator may consult besides its named inputs"""
    lookup: Any
    config: EngineConfig = field(default_factory=EngineConfig)
    depth: int = 0
    # Target handle -> value, for inbound edges that carry one
    handle_inputs: Dict[str, Any] = field(default_factory=dict)
    metrics: Any = None


def output_label(node) -> str:
    """Sanitized label a node publishes its value under"""
    label = node.label
    if label is None:
        label = DEFAULT_LABELS.get(node.kind, 'output')
    return sanitize_identifier(label)


class NodeEvaluator:
    """Base class for per-kind node evaluation"""

    def __init__(self, node, context: EvaluationContext):
        self.node = node
        self.context = context
        self.name = node.id

    def compute(self, input_values: Dict[str, Any]) -> NodeEvaluation:
        raise NotImplementedError

    def __repr__(self):
        return f"{self.__class__.__name__}(name={self.name})"


class InputNodeEvaluator(NodeEvaluator):
    """Emits the value injected by a parent graph, else the node's test value"""

    def compute(self, input_values):
        label = output_label(self.node)
        test_values = self.node.test_values

        value = input_values.get(label)
        if value is None:
            value = test_values.get(label)
        if value is None:
            value = test_values.get('value')

        return NodeEvaluation(output_values={label: value})


class OutputNodeEvaluator(NodeEvaluator):
    """Passes through the first value it received"""

    def compute(self, input_values):
        label = output_label(self.node)
        value = next(iter(input_values.values()), None)
        return NodeEvaluation(output_values={label: value})


def coerce_number(raw):
    if isinstance(raw, bool):
        return int(raw)
    if isinstance(raw, (int, float)):
        if isinstance(raw, float) and math.isnan(raw):
            return 0
        return int(raw) if isinstance(raw, float) and raw.is_integer() else raw
    if raw is None:
        return 0

    text = str(raw).strip()
    if not text:
        return 0
    # Digit separators and non-ASCII digits are not numeric literals here
    if '_' in text or not text.isascii():
        return 0

    lowered = text.lower()
    for prefix, base in (('0x', 16), ('0o', 8), ('0b', 2)):
        if lowered.startswith(prefix):
            try:
                return int(text[2:], base)
            except ValueError:
                return 0

    if lowered in ('infinity', '+infinity'):
        return math.inf
    if lowered == '-infinity':
        return -math.inf
    if lowered in ('inf', '+inf', '-inf', 'nan', '+nan', '-nan'):
        return 0

    try:
        number = float(text)
    except ValueError:
        return 0

    if number.is_integer():
        return int(number)
    return number


def coerce_boolean(raw) -> bool:
    if isinstance(raw, bool):
        return raw
    if raw is None:
        return False
    text = str(raw)
    return text.lower() == 'true' or text == '1'


class ConstantNodeEvaluator(NodeEvaluator):
    """Emits its stored value coerced to the declared value type"""

    def compute(self, input_values):
        label = output_label(self.node)
        raw = self.node.value
        value_type = self.node.value_type

        if value_type == 'number':
            value = coerce_number(raw)
        elif value_type == 'boolean':
            value = coerce_boolean(raw)
        else:
            value = raw

        return NodeEvaluation(output_values={label: value})


class FunctionNodeEvaluator(NodeEvaluator):
    """Runs the node's calculator over its named inputs"""

    def compute(self, input_values):
        calculator = CalculatorFactory.create(self.node.id, {
            'script': self.node.script,
            'label': output_label(self.node),
            'output_ports': list(self.node.output_ports),
            'max_accesses': self.context.config.max_accesses,
            'max_iterations': self.context.config.max_loop_iterations,
        })
        output_values = calculator.calculate(dict(input_values))
        return NodeEvaluation(output_values=dict(output_values))


_EVALUATORS = {
    NodeKind.INPUT: InputNodeEvaluator,
    NodeKind.OUTPUT: OutputNodeEvaluator,
    NodeKind.CONSTANT: ConstantNodeEvaluator,
    NodeKind.FUNCTION: FunctionNodeEvaluator,
}


def register_evaluator(kind: NodeKind, evaluator_class):
    """Register the evaluator class for a node kind"""
    _EVALUATORS[kind] = evaluator_class


def evaluate_node(node, input_values: Dict[str, Any], context: EvaluationContext) -> NodeEvaluation:
    """
    Evaluate one node.

    Failures are returned as the evaluation's error, never raised.
    """
    evaluator_class = _EVALUATORS.get(node.kind)
    if evaluator_class is None:
        kind = node.kind.value if isinstance(node.kind, NodeKind) else node.kind
        error = UnknownNodeKindError(f"Unknown node type: {kind}", node_id=node.id)
        logger.error(f"Error in node {node.id}: {error}")
        return NodeEvaluation(error=error)

    evaluator = evaluator_class(node, context)
    try:
        return evaluator.compute(input_values)
    except GraphExecutionError as e:
        if e.node_id is None:
            e.node_id = node.id
        logger.error(f"Error in node {node.id}: {e}")
        return NodeEvaluation(error=e)
    except Exception as e:
        logger.error(f"Unexpected error in node {node.id}: {type(e).__name__}: {e}")
        return NodeEvaluation(error=GraphExecutionError(str(e), node_id=node.id))
