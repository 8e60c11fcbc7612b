import logging

from archgraph.calculator.core_calculator import DataCalculator, CalculatorFactory
from archgraph.exceptions import ScriptRuntimeError
from archgraph.sandbox.node_binding import AccessCounter, MAX_BINDING_ACCESSES, NodeBinding
from archgraph.sandbox.script_interpreter import ScriptInterpreter, MAX_LOOP_ITERATIONS

logger = logging.getLogger(__name__)


class ScriptCalculator(DataCalculator):
    """Runs a Function node's script in the sandbox and returns what it wrote"""

    def __init__(self, name, config):
        super().__init__(name, config)
        self.script = config.get('script') or ''
        self.max_accesses = config.get('max_accesses', MAX_BINDING_ACCESSES)
        self.max_iterations = config.get('max_iterations', MAX_LOOP_ITERATIONS)
        self._last_access_count = 0

    def calculate(self, data):
        self._record_calculation()

        # Fresh counter and binding per evaluation
        binding = NodeBinding(data, AccessCounter(self.max_accesses))
        interpreter = ScriptInterpreter(binding, max_iterations=self.max_iterations)
        try:
            return interpreter.run(self.script)
        except ScriptRuntimeError as e:
            logger.error(f"Script of node {self.name} failed: {e}")
            raise
        finally:
            self._last_access_count = binding.access_count

    def details(self):
        details = super().details()
        details['last_access_count'] = self._last_access_count
        return details


CalculatorFactory.register_builtin('ScriptCalculator', ScriptCalculator)
