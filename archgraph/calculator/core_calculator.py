import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, Any, Protocol, Type

logger = logging.getLogger(__name__)


class DataCalculatorLike(Protocol):
    def __init__(self, name, config: Dict[str, Any]):
        ...

    def calculate(self, data: Any) -> Any:
        ...

    def details(self) -> Dict[str, Any]:
        ...


class DataCalculator(ABC):
    """Abstract base class for the logic behind a Function node"""

    def __init__(self, name, config: Dict[str, Any]):
        self.name = name
        self.config = config
        self._calculation_count = 0
        self._last_calculation = None

    @abstractmethod
    def calculate(self, data):
        """Calculate from the node's named inputs and return its outputs"""
        pass

    def _record_calculation(self):
        self._calculation_count += 1
        self._last_calculation = datetime.now().isoformat()

    def details(self) -> Dict[str, Any]:
        """Return details in JSON format"""
        return {
            'name': self.name,
            'type': self.__class__.__name__,
            'calculation_count': self._calculation_count,
            'last_calculation': self._last_calculation
        }


class PassthruCalculator(DataCalculator):
    """Passes the first available input through under the configured label"""

    def calculate(self, data):
        self._record_calculation()
        label = self.config.get('label', 'output')
        first_input = next(iter(data.values()), None)
        return {label: first_input}


class CalculatorFactory:
    """
    Factory for the calculator behind a Function node.

    A node with script text gets a ScriptCalculator; a node without one gets
    a PassthruCalculator.

    Configuration Examples:

    1. Scripted node:
       {"script": "node.out = node.a + 1", "label": "f"}

    2. Empty node:
       {"script": "", "label": "f"}
    """

    _builtin_calculators: Dict[str, Type[DataCalculator]] = {}

    @classmethod
    def register_builtin(cls, name: str, calculator_class: Type[DataCalculator]):
        """Register a built-in calculator class."""
        cls._builtin_calculators[name] = calculator_class

    @classmethod
    def create(cls, name: str, config: Dict[str, Any]) -> DataCalculatorLike:
        """
        Create a calculator instance based on configuration.

        Args:
            name: Name for this calculator instance, usually the node id
            config: Calculator configuration; 'calculator' selects a
                    registered type explicitly, otherwise the presence of
                    non-blank 'script' text decides

        Returns:
            Calculator instance implementing DataCalculatorLike
        """
        calculator_type = config.get('calculator')
        if calculator_type is None:
            script = config.get('script') or ''
            calculator_type = 'ScriptCalculator' if script.strip() else 'PassthruCalculator'

        if calculator_type not in cls._builtin_calculators:
            available = ', '.join(sorted(cls._builtin_calculators))
            raise ValueError(
                f"Unknown calculator type: {calculator_type}. "
                f"Available: {available}"
            )

        calculator_class = cls._builtin_calculators[calculator_type]
        logger.debug(f"Creating {calculator_type} '{name}'")
        return calculator_class(name, config)

    @classmethod
    def get_available_calculators(cls) -> Dict[str, str]:
        """Get list of available calculator types."""
        return {name: calc.__doc__ or '' for name, calc in cls._builtin_calculators.items()}


CalculatorFactory.register_builtin('PassthruCalculator', PassthruCalculator)
