"""Per-kind node evaluation."""

import math

import pytest

from archgraph.calculator import CalculatorFactory, PassthruCalculator, ScriptCalculator
from archgraph.dag.graph_elements import NodeKind, NodeRecord
from archgraph.dag.node_implementations import EvaluationContext, coerce_number, evaluate_node
from archgraph.exceptions import (
    MissingDefinitionError, RecursionDepthExceededError, ScriptRuntimeError, UnknownNodeKindError
)

from .conftest import increment_definition, make_node


@pytest.fixture
def context():
    return EvaluationContext(lookup={})


# ---------------------------------------------------------------------------
# Input and Output
# ---------------------------------------------------------------------------


def test_input_prefers_injected_value(context):
    node = make_node('i', NodeKind.INPUT, label='a', testValues={'a': 1, 'value': 2})

    assert evaluate_node(node, {'a': 9}, context).output_values == {'a': 9}


def test_input_falls_back_to_test_value_then_value_key(context):
    labelled = make_node('i', NodeKind.INPUT, label='a', testValues={'a': 1, 'value': 2})
    generic = make_node('j', NodeKind.INPUT, label='a', testValues={'value': 2})
    empty = make_node('k', NodeKind.INPUT, label='a')

    assert evaluate_node(labelled, {}, context).output_values == {'a': 1}
    assert evaluate_node(generic, {}, context).output_values == {'a': 2}
    assert evaluate_node(empty, {}, context).output_values == {'a': None}


def test_input_label_is_sanitized(context):
    node = make_node('i', NodeKind.INPUT, label='my input')

    assert evaluate_node(node, {'my_input': 3}, context).output_values == {'my_input': 3}


def test_output_passes_first_value(context):
    node = make_node('o', NodeKind.OUTPUT, label='b')

    assert evaluate_node(node, {'x': 1, 'y': 2}, context).output_values == {'b': 1}
    assert evaluate_node(node, {}, context).output_values == {'b': None}


def test_unlabeled_output_uses_default_label(context):
    node = make_node('o', NodeKind.OUTPUT)

    assert evaluate_node(node, {'x': 1}, context).output_values == {'output': 1}


# ---------------------------------------------------------------------------
# Constant
# ---------------------------------------------------------------------------


@pytest.mark.parametrize('raw, expected', [
    ('42', 42),
    ('4.5', 4.5),
    (' 7 ', 7),
    ('1e3', 1000),
    ('0x1F', 31),
    ('', 0),
    ('abc', 0),
    (None, 0),
    (12, 12),
    ('1_000', 0),
    ('0x1_0', 0),
    ('\uff11\uff12', 0),
    ('\u0663', 0),
])
def test_number_coercion(raw, expected):
    value = coerce_number(raw)
    assert value == expected
    assert type(value) is type(expected)


def test_number_coercion_infinity():
    assert coerce_number('Infinity') == math.inf
    assert coerce_number('nan') == 0


@pytest.mark.parametrize('raw, expected', [
    ('true', True),
    ('TRUE', True),
    ('1', True),
    ('false', False),
    ('yes', False),
    ('0', False),
])
def test_boolean_constant(context, raw, expected):
    node = make_node('c', NodeKind.CONSTANT, label='flag', value=raw, valueType='boolean')

    assert evaluate_node(node, {}, context).output_values == {'flag': expected}


def test_string_constant_passes_through(context):
    node = make_node('c', NodeKind.CONSTANT, label='name', value='42')

    assert evaluate_node(node, {}, context).output_values == {'name': '42'}


def test_number_constant(context):
    node = make_node('c', NodeKind.CONSTANT, label='n', value='0x10', valueType='number')

    assert evaluate_node(node, {}, context).output_values == {'n': 16}


# ---------------------------------------------------------------------------
# Function
# ---------------------------------------------------------------------------


def test_function_runs_script(context):
    node = make_node('f', NodeKind.FUNCTION, label='f', script='node.out = node.a * 2')

    evaluation = evaluate_node(node, {'a': 4}, context)

    assert evaluation.ok
    assert evaluation.output_values == {'out': 8}


def test_blank_function_passes_first_input(context):
    node = make_node('f', NodeKind.FUNCTION, label='copy', script='   ')

    assert evaluate_node(node, {'a': 4, 'b': 5}, context).output_values == {'copy': 4}


def test_function_failure_is_captured(context):
    node = make_node('f', NodeKind.FUNCTION, label='f', script='node.out = node.a + "x"')

    evaluation = evaluate_node(node, {'a': 1}, context)

    assert not evaluation.ok
    assert isinstance(evaluation.error, ScriptRuntimeError)
    assert evaluation.error.node_id == 'f'
    assert evaluation.output_values == {}
    assert 'TypeError' in evaluation.error_message


def test_calculator_factory_chooses_by_script():
    assert isinstance(CalculatorFactory.create('f', {'script': ''}), PassthruCalculator)
    assert isinstance(CalculatorFactory.create('f', {'script': 'node.x = 1'}), ScriptCalculator)
    with pytest.raises(ValueError):
        CalculatorFactory.create('f', {'calculator': 'NoSuchCalculator'})


def test_script_calculator_details():
    calculator = ScriptCalculator('f', {'script': 'node.x = node.a'})
    calculator.calculate({'a': 1})

    details = calculator.details()
    assert details['calculation_count'] == 1
    assert details['last_access_count'] == 2
    assert details['type'] == 'ScriptCalculator'


# ---------------------------------------------------------------------------
# GraphReference and unknown kinds
# ---------------------------------------------------------------------------


def test_missing_definition(context):
    node = make_node('r', NodeKind.GRAPH_REFERENCE, label='Helper', definitionId='nope')

    evaluation = evaluate_node(node, {}, context)

    assert isinstance(evaluation.error, MissingDefinitionError)
    assert evaluation.error_message == 'Missing definition: Helper'


def test_depth_bound_is_checked_before_nesting():
    node = make_node('r', NodeKind.GRAPH_REFERENCE, label='Helper', definitionId='sub')
    context = EvaluationContext(lookup={'sub': increment_definition('sub')}, depth=50)

    evaluation = evaluate_node(node, {}, context)

    assert isinstance(evaluation.error, RecursionDepthExceededError)
    assert evaluation.error_message == 'Maximum recursion depth exceeded (50)'


def test_unknown_kind(context):
    node = NodeRecord.from_dict({'id': 'x', 'type': 'mysteryNode', 'data': {}})

    evaluation = evaluate_node(node, {}, context)

    assert isinstance(evaluation.error, UnknownNodeKindError)
    assert evaluation.error_message == 'Unknown node type: mysteryNode'
