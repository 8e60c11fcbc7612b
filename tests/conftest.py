"""Shared builders and fixtures for the ArchGraph tests."""

import pytest
from prometheus_client import CollectorRegistry

from archgraph.dag.graph_elements import EdgeRecord, GraphDefinition, NodeKind, NodeRecord
from archgraph.engine_config import EngineConfig
from archgraph.metrics import ArchGraphMetrics


def make_node(node_id, kind, **data):
    return NodeRecord(id=node_id, kind=kind, data=data)


def make_edge(source, target, source_handle=None, target_handle=None, edge_id=None):
    return EdgeRecord(
        source=source,
        target=target,
        source_handle=source_handle,
        target_handle=target_handle,
        id=edge_id or f"{source}-{target}",
    )


def make_definition(definition_id, nodes, edges=(), name=None):
    return GraphDefinition(id=definition_id, name=name or definition_id, nodes=nodes, edges=edges)


def increment_definition(definition_id='increment', test_value=5):
    """Input a -> Function (out = a + 1) -> Output b"""
    return make_definition(
        definition_id,
        nodes=[
            make_node('in-a', NodeKind.INPUT, label='a', testValues={'a': test_value}),
            make_node('fn', NodeKind.FUNCTION, label='inc', script='node.out = node.a + 1'),
            make_node('out-b', NodeKind.OUTPUT, label='b'),
        ],
        edges=[make_edge('in-a', 'fn'), make_edge('fn', 'out-b')],
        name='Increment',
    )


def cycle_definition(definition_id='cycle'):
    """A -> B -> A"""
    return make_definition(
        definition_id,
        nodes=[
            make_node('a', NodeKind.FUNCTION, label='A'),
            make_node('b', NodeKind.FUNCTION, label='B'),
        ],
        edges=[make_edge('a', 'b'), make_edge('b', 'a')],
        name='Cycle',
    )


@pytest.fixture
def fresh_metrics():
    """Metrics bound to a private registry"""
    return ArchGraphMetrics(registry=CollectorRegistry())


@pytest.fixture
def engine_config():
    return EngineConfig()
