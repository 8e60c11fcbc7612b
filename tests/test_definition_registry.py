"""Definitions, the active selection and change notification."""

import json

import pytest

from archgraph.dag.definition_registry import ChangeKind, DefinitionChange, DefinitionRegistry
from archgraph.dag.graph_elements import NodeKind, NodeRecord

from .conftest import increment_definition, make_definition, make_edge, make_node


@pytest.fixture
def changes():
    return []


@pytest.fixture
def registry(changes):
    registry = DefinitionRegistry([increment_definition()])
    registry.subscribe(changes.append)
    return registry


def test_first_definition_is_active():
    registry = DefinitionRegistry([increment_definition('one'), increment_definition('two')])

    assert registry.active_definition_id == 'one'
    assert registry.active_definition.id == 'one'
    assert 'two' in registry
    assert 'three' not in registry


def test_empty_registry_has_no_active_definition():
    registry = DefinitionRegistry()

    assert registry.active_definition is None
    assert registry.list_definitions() == []


def test_add_definition_names_untitled_definitions():
    registry = DefinitionRegistry()

    first = registry.add_definition()
    second = registry.add_definition()
    named = registry.add_definition('Pricing')

    assert first.name == 'Untitled Node'
    assert second.name == 'Untitled Node 2'
    assert named.name == 'Pricing'
    assert registry.active_definition_id == named.id


def test_add_definition_notifies(registry, changes):
    added = registry.add_definition('Other')

    assert changes == [
        DefinitionChange(ChangeKind.DEFINITION_ADDED, added.id),
        DefinitionChange(ChangeKind.ACTIVE_CHANGED, added.id),
    ]


def test_add_duplicate_definition_is_rejected(registry):
    with pytest.raises(ValueError):
        registry.add_definition(definition=increment_definition())


def test_remove_active_definition_selects_another(registry, changes):
    other = registry.add_definition('Other')
    changes.clear()

    assert registry.remove_definition(other.id) is True

    assert registry.active_definition_id == 'increment'
    assert changes == [
        DefinitionChange(ChangeKind.DEFINITION_REMOVED, other.id),
        DefinitionChange(ChangeKind.ACTIVE_CHANGED, 'increment'),
    ]


def test_remove_last_definition_leaves_none_active(registry):
    registry.remove_definition('increment')

    assert registry.active_definition is None


def test_remove_unknown_definition(registry, changes):
    assert registry.remove_definition('missing') is False
    assert changes == []


def test_rename_keeps_structure(registry, changes):
    before = registry.get('increment')

    renamed = registry.rename_definition('increment', 'Add one')

    assert renamed.name == 'Add one'
    assert renamed.nodes == before.nodes
    assert changes == [DefinitionChange(ChangeKind.DEFINITION_RENAMED, 'increment')]


def test_set_active_definition(registry, changes):
    other = registry.add_definition('Other')
    changes.clear()

    registry.set_active_definition('increment')
    registry.set_active_definition('increment')

    assert changes == [DefinitionChange(ChangeKind.ACTIVE_CHANGED, 'increment')]
    with pytest.raises(KeyError):
        registry.set_active_definition('missing')
    assert other.id in registry


def test_get_input_output_nodes(registry):
    nodes = registry.get_input_output_nodes('increment')

    assert [n.id for n in nodes['inputs']] == ['in-a']
    assert [n.id for n in nodes['outputs']] == ['out-b']
    assert registry.get_input_output_nodes('missing') == {'inputs': [], 'outputs': []}


# ---------------------------------------------------------------------------
# Structural edits
# ---------------------------------------------------------------------------


def test_edits_replace_the_definition(registry, changes):
    before = registry.get('increment')

    registry.add_node(NodeRecord(id='c', kind=NodeKind.CONSTANT, data={'value': '2'}))

    after = registry.get('increment')
    assert after is not before
    assert len(before.nodes) == 3
    assert after.get_node('c').value == '2'
    assert changes == [DefinitionChange(ChangeKind.STRUCTURE_CHANGED, 'increment')]


def test_update_node_data_merges(registry):
    registry.update_node_data('fn', {'script': 'node.out = 1'})

    node = registry.get('increment').get_node('fn')
    assert node.script == 'node.out = 1'
    assert node.label == 'inc'


def test_update_unknown_node(registry):
    with pytest.raises(KeyError):
        registry.update_node_data('missing', {'label': 'x'})


def test_connect_ignores_duplicates(registry, changes):
    registry.connect('in-a', 'out-b')
    registry.connect('in-a', 'out-b')

    edges = [e for e in registry.get('increment').edges if e.id == 'edge__in-a-out-b']
    assert len(edges) == 1
    assert len(changes) == 1


def test_remove_and_update_edge(registry):
    registry.update_edge('fn-out-b', target_handle='value')
    assert registry.get('increment').incoming_edges('out-b')[0].target_handle == 'value'

    registry.remove_edge('fn-out-b')
    assert registry.get('increment').incoming_edges('out-b') == []

    with pytest.raises(KeyError):
        registry.update_edge('fn-out-b', target_handle='value')


def test_remove_node_drops_its_edges(registry):
    registry.remove_node('fn')

    definition = registry.get('increment')
    assert definition.get_node('fn') is None
    assert definition.edges == ()


def test_remove_input_drops_handle_edges_on_instances(registry, changes):
    parent = make_definition('parent', nodes=[
        make_node('x', NodeKind.INPUT, label='x'),
        make_node('ref', NodeKind.GRAPH_REFERENCE, definitionId='increment'),
        make_node('y', NodeKind.OUTPUT, label='y'),
    ], edges=[
        make_edge('x', 'ref', target_handle='input-in-a'),
        make_edge('ref', 'y', source_handle='output-out-b'),
    ])
    registry.add_definition(definition=parent)
    changes.clear()

    registry.remove_node('in-a', definition_id='increment')

    assert [e.source_handle for e in registry.get('parent').edges] == ['output-out-b']
    assert changes == [
        DefinitionChange(ChangeKind.STRUCTURE_CHANGED, 'increment'),
        DefinitionChange(ChangeKind.STRUCTURE_CHANGED, 'parent'),
    ]


def test_edit_without_active_definition():
    with pytest.raises(KeyError):
        DefinitionRegistry().add_node(NodeRecord(id='n', kind=NodeKind.INPUT))


# ---------------------------------------------------------------------------
# Listeners and loading
# ---------------------------------------------------------------------------


def test_unsubscribe(registry, changes):
    seen = []
    unsubscribe = registry.subscribe(seen.append)
    unsubscribe()

    registry.add_definition('Other')

    assert seen == []
    assert len(changes) == 2


def test_failing_listener_does_not_stop_others(registry, changes):
    def broken(change):
        raise RuntimeError('boom')

    registry.subscribe(broken)
    registry.rename_definition('increment', 'x')

    assert changes == [DefinitionChange(ChangeKind.DEFINITION_RENAMED, 'increment')]


def test_listener_may_call_back_into_registry(registry):
    names = []
    registry.subscribe(lambda change: names.append(registry.get('increment').name))

    registry.rename_definition('increment', 'Renamed')

    assert names == ['Renamed']


def test_load_folder(tmp_path):
    (tmp_path / 'b.json').write_text(json.dumps(increment_definition('b').to_dict()))
    (tmp_path / 'a.json').write_text(json.dumps(increment_definition('a').to_dict()))
    (tmp_path / 'broken.json').write_text('{not json')
    (tmp_path / 'notes.txt').write_text('ignored')

    registry = DefinitionRegistry()
    loaded = registry.load_folder(str(tmp_path))

    assert [d.id for d in loaded] == ['a', 'b']
    assert registry.active_definition_id == 'a'
    assert registry.get('a').get_node('fn').script == 'node.out = node.a + 1'


def test_load_missing_folder(tmp_path):
    assert DefinitionRegistry().load_folder(str(tmp_path / 'missing')) == []
