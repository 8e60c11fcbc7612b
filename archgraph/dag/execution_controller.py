import copy
import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

from archgraph.dag.compute_graph import ComputeGraph
from archgraph.dag.definition_registry import ChangeKind, DefinitionChange
from archgraph.dag.graph_elements import GraphDefinition, NodeResult, NodeStatus
from archgraph.dag.scheduler import Scheduler, TimerScheduler
from archgraph.dag.topological_sort import unconnected_group_starts
from archgraph.engine_config import EngineConfig
from archgraph.metrics import metrics as default_metrics

logger = logging.getLogger(__name__)


class ExecutionState(Enum):
    IDLE = 'idle'
    RUNNING = 'running'
    PAUSED = 'paused'
    STEPPING = 'stepping'
    COMPLETED = 'completed'
    ERROR = 'error'


ACTIVE_STATES = (ExecutionState.RUNNING, ExecutionState.PAUSED, ExecutionState.STEPPING)
FINISHED_STATES = (ExecutionState.COMPLETED, ExecutionState.ERROR)


@dataclass
class ExecutionSession:
    """State of one run of the active definition; replaced as a whole on reset"""
    state: ExecutionState = ExecutionState.IDLE
    definition: Optional[GraphDefinition] = None
    graph: Optional[ComputeGraph] = None
    order: List[str] = field(default_factory=list)
    current_step_index: int = -1
    node_results: Dict[str, NodeResult] = field(default_factory=dict)
    edge_values: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None
    generation: int = 0
    group_starts: List[int] = field(default_factory=list)

    @property
    def has_next(self) -> bool:
        return self.current_step_index + 1 < len(self.order)


@dataclass(frozen=True)
class ExecutionSnapshot:
    """Read-only copy of a session for display"""
    state: ExecutionState
    execution_order: Tuple[str, ...] = ()
    current_step_index: int = -1
    node_results: Mapping[str, NodeResult] = field(default_factory=lambda: MappingProxyType({}))
    error: Optional[str] = None
    definition_id: Optional[str] = None
    generation: int = 0
    unconnected_group_starts: Tuple[int, ...] = ()

    @classmethod
    def of(cls, session: ExecutionSession) -> 'ExecutionSnapshot':
        return cls(
            state=session.state,
            execution_order=tuple(session.order),
            current_step_index=session.current_step_index,
            node_results=MappingProxyType(copy.deepcopy(session.node_results)),
            error=session.error,
            definition_id=session.definition.id if session.definition is not None else None,
            generation=session.generation,
            unconnected_group_starts=tuple(session.group_starts),
        )

    @property
    def completed_count(self) -> int:
        return sum(1 for r in self.node_results.values() if r.status == NodeStatus.COMPLETED)

    @property
    def can_run(self) -> bool:
        return self.state != ExecutionState.RUNNING

    @property
    def can_step(self) -> bool:
        return True

    @property
    def can_pause(self) -> bool:
        return self.state == ExecutionState.RUNNING

    @property
    def can_reset(self) -> bool:
        return self.state != ExecutionState.IDLE

    def summary(self) -> str:
        """Header text for the execution panel"""
        total = len(self.execution_order)
        if self.state == ExecutionState.RUNNING:
            return f"Running... ({self.completed_count}/{total})"
        if self.state in (ExecutionState.PAUSED, ExecutionState.STEPPING):
            return f"Paused at node {self.current_step_index + 1}/{total}"
        if self.state == ExecutionState.COMPLETED:
            return f"Completed ({total}/{total})"
        if self.state == ExecutionState.ERROR:
            return f"Error ({self.completed_count}/{total})"
        return ''

    def to_dict(self) -> Dict[str, Any]:
        return {
            'state': self.state.value,
            'executionOrder': list(self.execution_order),
            'currentStepIndex': self.current_step_index,
            'nodeResults': {node_id: r.details() for node_id, r in self.node_results.items()},
            'error': self.error,
            'definitionId': self.definition_id,
            'generation': self.generation,
            'summary': self.summary(),
            'completedCount': self.completed_count,
            'unconnectedGroupStarts': list(self.unconnected_group_starts),
            'toolbar': {
                'canRun': self.can_run,
                'canStep': self.can_step,
                'canPause': self.can_pause,
                'canReset': self.can_reset,
            },
        }


class ExecutionController:
    """
    Runs, steps, pauses and resets execution of the registry's active
    definition.

    One session at a time. Auto-advance executes one node per scheduler tick;
    every tick carries the timer token current when it was scheduled and does
    nothing once the token has moved on. All state changes happen under one
    re-entrant lock.
    """

    def __init__(self, registry, config: EngineConfig = None, scheduler: Scheduler = None,
                 metrics=None):
        self.registry = registry
        self.config = config or EngineConfig()
        self.scheduler = scheduler or TimerScheduler()
        self.metrics = metrics or default_metrics
        self._lock = threading.RLock()
        self._generation = 0
        self._session = ExecutionSession()
        self._timer = None
        self._timer_token = 0
        self._unsubscribe = registry.subscribe(self._on_definition_change)

    @property
    def state(self) -> ExecutionState:
        with self._lock:
            return self._session.state

    @property
    def generation(self) -> int:
        with self._lock:
            return self._session.generation

    def snapshot(self) -> ExecutionSnapshot:
        with self._lock:
            return ExecutionSnapshot.of(self._session)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def run(self) -> ExecutionSnapshot:
        with self._lock:
            state = self._session.state
            if state == ExecutionState.RUNNING:
                return self.snapshot()

            if state in FINISHED_STATES:
                self._reset_session()

            if self._session.state == ExecutionState.IDLE:
                if not self._start_session():
                    return self.snapshot()

            self._transition(ExecutionState.RUNNING)
            self._schedule_advance()
            return self.snapshot()

    def step(self) -> ExecutionSnapshot:
        with self._lock:
            state = self._session.state
            if state in FINISHED_STATES:
                self._reset_session()

            if self._session.state == ExecutionState.IDLE:
                if not self._start_session():
                    return self.snapshot()

            if self._session.state == ExecutionState.RUNNING:
                self._cancel_timer()

            self._transition(ExecutionState.STEPPING)
            self._execute_next()
            return self.snapshot()

    def pause(self) -> ExecutionSnapshot:
        with self._lock:
            if self._session.state == ExecutionState.RUNNING:
                self._cancel_timer()
                self._transition(ExecutionState.PAUSED)
            return self.snapshot()

    def reset(self) -> ExecutionSnapshot:
        with self._lock:
            if self._session.state != ExecutionState.IDLE:
                self._reset_session()
            return self.snapshot()

    def shutdown(self):
        """Stop listening to the registry and drop any pending tick"""
        with self._lock:
            self._cancel_timer()
        self._unsubscribe()
        self.scheduler.shutdown()

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    def _start_session(self) -> bool:
        """Replace the idle session with a fresh one; False if it went straight to error"""
        self._generation += 1
        definition = self.registry.active_definition
        session = ExecutionSession(definition=definition, generation=self._generation)
        self._session = session

        if definition is None:
            return self._fail_session("No active definition")
        if not definition.nodes:
            return self._fail_session("Cannot execute: graph has no nodes")

        graph = ComputeGraph(definition, self.registry, self.config, metrics=self.metrics)
        sort_result = graph.topological_sort()
        if not sort_result.ok:
            return self._fail_session(sort_result.error)

        session.graph = graph
        session.order = list(sort_result.order)
        session.node_results = {node_id: NodeResult() for node_id in session.order}
        session.group_starts = unconnected_group_starts(session.order, definition.valid_edges())

        self.metrics.sessions_started.labels(definition_id=definition.id).inc()
        logger.info(f"Session {session.generation} started for {definition.name} "
                    f"with {len(session.order)} nodes")
        return True

    def _fail_session(self, message: str) -> bool:
        logger.error(f"Session {self._session.generation}: {message}")
        self._session.error = message
        self._transition(ExecutionState.ERROR)
        return False

    def _reset_session(self):
        self._cancel_timer()
        previous = self._session.state
        self._generation += 1
        self._session = ExecutionSession(generation=self._generation)
        self._record_transition(previous, ExecutionState.IDLE)
        logger.info(f"Execution reset (generation {self._generation})")

    def _transition(self, new_state: ExecutionState):
        previous = self._session.state
        if previous == new_state:
            return
        self._session.state = new_state
        self._record_transition(previous, new_state)

    def _record_transition(self, previous: ExecutionState, new_state: ExecutionState):
        self.metrics.state_transitions.labels(from_state=previous.value, to_state=new_state.value).inc()
        if previous not in ACTIVE_STATES and new_state in ACTIVE_STATES:
            self.metrics.active_sessions.inc()
        elif previous in ACTIVE_STATES and new_state not in ACTIVE_STATES:
            self.metrics.active_sessions.dec()
        logger.debug(f"Execution state {previous.value} -> {new_state.value}")

    # ------------------------------------------------------------------
    # Advancing
    # ------------------------------------------------------------------

    def _execute_next(self):
        """Execute the next node of the session in the current thread"""
        session = self._session

        # The session only runs against the nodes and edges it was ordered for
        current = self.registry.get(session.definition.id)
        pinned = session.definition
        if current is None or (current.nodes, current.edges) != (pinned.nodes, pinned.edges):
            logger.info(f"Definition {session.definition.id} changed under session "
                        f"{session.generation}, resetting")
            self._reset_session()
            return

        if not session.has_next:
            self._transition(ExecutionState.COMPLETED)
            return

        index = session.current_step_index + 1
        node_id = session.order[index]
        session.current_step_index = index

        try:
            evaluation = session.graph.execute_node(node_id, session.edge_values, session.node_results[node_id])
        except Exception as e:
            logger.error(f"Session {session.generation}: failed to execute node {node_id}: {e}")
            session.error = session.graph.format_node_error(node_id, str(e))
            self._transition(ExecutionState.ERROR)
            return

        if not evaluation.ok:
            session.error = session.graph.format_node_error(node_id, evaluation.error_message)
            logger.error(f"Session {session.generation}: {session.error}")
            self._transition(ExecutionState.ERROR)
            return

        if not session.has_next:
            self._transition(ExecutionState.COMPLETED)
            logger.info(f"Session {session.generation} completed")

    def _schedule_advance(self):
        self._cancel_timer()
        token = self._timer_token
        self._timer = self.scheduler.schedule(
            self.config.step_delay_seconds,
            lambda: self._on_timer(token)
        )

    def _cancel_timer(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._timer_token += 1

    def _on_timer(self, token: int):
        with self._lock:
            if token != self._timer_token or self._session.state != ExecutionState.RUNNING:
                logger.debug(f"Ignoring stale timer tick {token}")
                return

            self._timer = None
            self._execute_next()
            if self._session.state == ExecutionState.RUNNING:
                self._schedule_advance()

    # ------------------------------------------------------------------
    # Registry changes
    # ------------------------------------------------------------------

    def _on_definition_change(self, change: DefinitionChange):
        with self._lock:
            session = self._session
            if session.state == ExecutionState.IDLE:
                return

            if change.kind == ChangeKind.ACTIVE_CHANGED:
                logger.info(f"Active definition switched to {change.definition_id}, resetting")
                self._reset_session()
            elif change.kind in (ChangeKind.STRUCTURE_CHANGED, ChangeKind.DEFINITION_REMOVED) \
                    and session.definition is not None \
                    and change.definition_id == session.definition.id:
                logger.info(f"Definition {change.definition_id} changed, resetting")
                self._reset_session()
