# archgraph/sandbox/__init__.py
"""
Sandbox for Function node scripts: a counted read/write binding and a
restricted interpreter that walks scripts against it.
"""

from archgraph.sandbox.node_binding import AccessCounter, NodeBinding, MAX_BINDING_ACCESSES
from archgraph.sandbox.script_interpreter import (
    ScriptInterpreter, compile_script, run_script, MAX_LOOP_ITERATIONS
)

__all__ = [
    'AccessCounter',
    'NodeBinding',
    'MAX_BINDING_ACCESSES',
    'ScriptInterpreter',
    'compile_script',
    'run_script',
    'MAX_LOOP_ITERATIONS',
]
