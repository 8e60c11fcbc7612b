import logging
from dataclasses import dataclass

from archgraph.sandbox.node_binding import MAX_BINDING_ACCESSES
from archgraph.sandbox.script_interpreter import MAX_LOOP_ITERATIONS

logger = logging.getLogger(__name__)

DEFAULT_STEP_DELAY_MS = 400
DEFAULT_MAX_RECURSION_DEPTH = 50
DEFAULT_DEFINITIONS_FOLDER = './config/definitions'


@dataclass(frozen=True)
class EngineConfig:
    """Tunables of the execution engine"""
    step_delay_ms: int = DEFAULT_STEP_DELAY_MS
    max_recursion_depth: int = DEFAULT_MAX_RECURSION_DEPTH
    max_accesses: int = MAX_BINDING_ACCESSES
    max_loop_iterations: int = MAX_LOOP_ITERATIONS
    definitions_folder: str = DEFAULT_DEFINITIONS_FOLDER

    @property
    def step_delay_seconds(self) -> float:
        return self.step_delay_ms / 1000.0

    @classmethod
    def from_properties(cls, props) -> 'EngineConfig':
        config = cls(
            step_delay_ms=props.get_int('execution.step_delay_ms', DEFAULT_STEP_DELAY_MS),
            max_recursion_depth=props.get_int('execution.max_recursion_depth', DEFAULT_MAX_RECURSION_DEPTH),
            max_accesses=props.get_int('sandbox.max_accesses', MAX_BINDING_ACCESSES),
            max_loop_iterations=props.get_int('sandbox.max_loop_iterations', MAX_LOOP_ITERATIONS),
            definitions_folder=props.get('definitions.folder', DEFAULT_DEFINITIONS_FOLDER),
        )
        logger.info(f"Engine config: {config}")
        return config
