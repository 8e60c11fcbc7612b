"""Naming of node inputs after their source labels."""

from archgraph.core_utils import FALLBACK_IDENTIFIER, sanitize_identifier
from archgraph.dag.graph_elements import NodeKind
from archgraph.dag.input_resolver import resolve_input_names

from .conftest import make_edge, make_node


# ---------------------------------------------------------------------------
# sanitize_identifier
# ---------------------------------------------------------------------------


def test_sanitize_replaces_invalid_characters():
    assert sanitize_identifier('a b!c') == 'a_b_c'


def test_sanitize_prefixes_leading_digit():
    assert sanitize_identifier('2x') == '_2x'


def test_sanitize_empty_falls_back():
    assert sanitize_identifier('') == FALLBACK_IDENTIFIER == '_input'


def test_sanitize_keeps_dollar_and_underscore():
    assert sanitize_identifier('$total_1') == '$total_1'


def test_sanitize_replaces_non_ascii():
    assert sanitize_identifier('größe') == 'gr__e'


# ---------------------------------------------------------------------------
# resolve_input_names
# ---------------------------------------------------------------------------


def test_names_follow_source_labels():
    nodes = [
        make_node('n1', NodeKind.INPUT, label='price'),
        make_node('n2', NodeKind.CONSTANT, label='tax rate'),
        make_node('f', NodeKind.FUNCTION, label='f'),
    ]
    edges = [make_edge('n1', 'f'), make_edge('n2', 'f')]

    assert resolve_input_names('f', nodes, edges) == {'n1': 'price', 'n2': 'tax_rate'}


def test_duplicate_names_are_numbered_in_edge_order():
    nodes = [
        make_node('first', NodeKind.INPUT, label='x'),
        make_node('second', NodeKind.INPUT, label='x'),
        make_node('third', NodeKind.INPUT, label='x!'),
        make_node('f', NodeKind.FUNCTION, label='f'),
    ]
    edges = [make_edge('second', 'f'), make_edge('first', 'f'), make_edge('third', 'f')]

    names = resolve_input_names('f', nodes, edges)

    assert names == {'second': 'x', 'first': 'x2', 'third': 'x_'}


def test_labels_sanitizing_to_same_name_collide():
    nodes = [
        make_node('a', NodeKind.INPUT, label='x'),
        make_node('b', NodeKind.INPUT, label='x'),
        make_node('f', NodeKind.FUNCTION),
    ]
    edges = [make_edge('a', 'f'), make_edge('b', 'f')]

    assert sorted(resolve_input_names('f', nodes, edges).values()) == ['x', 'x2']


def test_numbered_name_can_shadow_a_later_label():
    nodes = [
        make_node('a', NodeKind.INPUT, label='x'),
        make_node('b', NodeKind.INPUT, label='x2'),
        make_node('c', NodeKind.INPUT, label='x'),
        make_node('f', NodeKind.FUNCTION),
    ]
    edges = [make_edge('a', 'f'), make_edge('b', 'f'), make_edge('c', 'f')]

    assert resolve_input_names('f', nodes, edges) == {'a': 'x', 'b': 'x2', 'c': 'x2'}


def test_unlabeled_source_is_named_input():
    nodes = [make_node('a', NodeKind.FUNCTION), make_node('f', NodeKind.FUNCTION)]

    assert resolve_input_names('f', nodes, [make_edge('a', 'f')]) == {'a': 'input'}


def test_keyed_by_source_handle_when_present():
    nodes = [make_node('ref', NodeKind.GRAPH_REFERENCE, label='sub'), make_node('f', NodeKind.FUNCTION)]
    edges = [make_edge('ref', 'f', source_handle='output-o1')]

    assert resolve_input_names('f', nodes, edges) == {'output-o1': 'sub'}


def test_edges_to_other_targets_and_missing_sources_are_skipped():
    nodes = [make_node('a', NodeKind.INPUT, label='a'), make_node('f', NodeKind.FUNCTION)]
    edges = [make_edge('ghost', 'f'), make_edge('a', 'other'), make_edge('a', 'f')]

    assert resolve_input_names('f', nodes, edges) == {'a': 'a'}
