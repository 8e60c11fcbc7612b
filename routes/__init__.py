"""
Routes Module - Contains all application route handlers
========================================================
"""
from .execution_routes import ExecutionRoutes
from .definition_routes import DefinitionRoutes
from .metrics_routes import MetricsRoutes

__all__ = [
    'ExecutionRoutes',
    'DefinitionRoutes',
    'MetricsRoutes'
]
