# archgraph/calculator/__init__.py
"""Calculators backing Function nodes."""

from archgraph.calculator.core_calculator import (
    DataCalculator, DataCalculatorLike, PassthruCalculator, CalculatorFactory
)
from archgraph.calculator.script_calculator import ScriptCalculator

__all__ = [
    'DataCalculator',
    'DataCalculatorLike',
    'PassthruCalculator',
    'CalculatorFactory',
    'ScriptCalculator',
]
