# archgraph/__init__.py
"""
ArchGraph Execution Engine - Core Module

Executes graphs of Input, Output, Constant, Function and GraphReference
nodes with a resumable run/step/pause/reset controller.
"""

__version__ = '1.0.0'
