# archgraph/dag/__init__.py
"""
DAG module for graph definition execution.

Includes:
- Data model: GraphDefinition, NodeRecord, EdgeRecord, NodeResult
- Ordering and input naming: topological_sort, resolve_input_names
- ComputeGraph: runs one definition, nesting for GraphReference nodes
- ExecutionController: run/step/pause/reset over the active definition
- DefinitionRegistry: the definitions and which one is active
"""

from archgraph.dag.graph_elements import (
    NodeKind, NodeStatus, NodeRecord, EdgeRecord, GraphDefinition, NodeResult
)
from archgraph.dag.topological_sort import topological_sort, SortResult, unconnected_group_starts
from archgraph.dag.input_resolver import resolve_input_names
from archgraph.dag.node_implementations import (
    NodeEvaluation, EvaluationContext, NodeEvaluator,
    InputNodeEvaluator, OutputNodeEvaluator, ConstantNodeEvaluator, FunctionNodeEvaluator,
    evaluate_node
)
from archgraph.dag.subgraph import GraphReferenceNodeEvaluator
from archgraph.dag.compute_graph import ComputeGraph, DefinitionExecutionResult
from archgraph.dag.scheduler import Scheduler, TimerScheduler, ManualScheduler
from archgraph.dag.definition_registry import DefinitionRegistry, DefinitionChange, ChangeKind
from archgraph.dag.execution_controller import (
    ExecutionController, ExecutionState, ExecutionSession, ExecutionSnapshot
)

__all__ = [
    # Data model
    'NodeKind',
    'NodeStatus',
    'NodeRecord',
    'EdgeRecord',
    'GraphDefinition',
    'NodeResult',

    # Ordering and naming
    'topological_sort',
    'SortResult',
    'unconnected_group_starts',
    'resolve_input_names',

    # Node evaluation
    'NodeEvaluation',
    'EvaluationContext',
    'NodeEvaluator',
    'InputNodeEvaluator',
    'OutputNodeEvaluator',
    'ConstantNodeEvaluator',
    'FunctionNodeEvaluator',
    'GraphReferenceNodeEvaluator',
    'evaluate_node',

    # Execution
    'ComputeGraph',
    'DefinitionExecutionResult',
    'Scheduler',
    'TimerScheduler',
    'ManualScheduler',
    'ExecutionController',
    'ExecutionState',
    'ExecutionSession',
    'ExecutionSnapshot',

    # Definitions
    'DefinitionRegistry',
    'DefinitionChange',
    'ChangeKind',
]
