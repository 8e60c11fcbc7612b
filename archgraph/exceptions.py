# archgraph/exceptions.py
"""
Error taxonomy for graph execution.

Node-level errors are captured as values in the node's result and end the
session; none of them is retried.
"""

import copy


class GraphExecutionError(Exception):
    """Base exception for graph execution errors."""

    def __init__(self, message: str, node_id: str = None):
        super().__init__(message)
        self.node_id = node_id

    @property
    def message(self) -> str:
        return self.args[0] if self.args else ''

    def with_message(self, message: str) -> 'GraphExecutionError':
        """Return a copy of this error, same class, carrying a new message."""
        clone = copy.copy(self)
        clone.args = (message,)
        return clone


class CycleError(GraphExecutionError):
    """The graph cannot be ordered; raised before any node executes."""

    def __init__(self, message: str, cycle_nodes=None, node_id: str = None):
        super().__init__(message, node_id)
        self.cycle_nodes = list(cycle_nodes or [])


class MissingDefinitionError(GraphExecutionError):
    """A GraphReference node points at an unknown definition id."""
    pass


class RecursionDepthExceededError(GraphExecutionError):
    """Nested GraphReference expansion went deeper than allowed."""

    def __init__(self, message: str, max_depth: int = None, node_id: str = None):
        super().__init__(message, node_id)
        self.max_depth = max_depth


class ScriptRuntimeError(GraphExecutionError):
    """A Function node's script failed or was rejected."""
    pass


class ExecutionLimitExceededError(ScriptRuntimeError):
    """The sandbox access guard or loop budget tripped."""

    def __init__(self, message: str = 'Execution limit exceeded: possible infinite loop',
                 limit: int = None, node_id: str = None):
        super().__init__(message, node_id)
        self.limit = limit


class UnknownNodeKindError(GraphExecutionError):
    """The node kind is not one the engine can evaluate."""
    pass
