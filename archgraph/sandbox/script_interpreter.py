# archgraph/sandbox/script_interpreter.py

"""
Restricted interpreter for Function node scripts.

Scripts are parsed with the ast module and walked node by node; nothing is
handed to exec or eval. Only the constructs listed in ALLOWED_SYNTAX are
accepted, and the only way to reach data outside the script's own locals is
the ``node`` binding:

    node.total = node.a + node.b
    if node.total > 10:
        node.label = "big"

Reads of ``node.<name>`` and ``node["<name>"]`` and writes to them go
through NodeBinding, which enforces the access ceiling. Loops are also
charged against an iteration budget so that loops which never touch ``node``
still terminate.
"""

import ast
import logging
import operator as op
from typing import Any, Dict, Optional

from archgraph.exceptions import ExecutionLimitExceededError, ScriptRuntimeError
from archgraph.sandbox.node_binding import AccessCounter, MAX_BINDING_ACCESSES, NodeBinding

logger = logging.getLogger(__name__)

BINDING_NAME = 'node'

MAX_LOOP_ITERATIONS = 1_000_000

BINARY_OPERATORS = {
    ast.Add: op.add,
    ast.Sub: op.sub,
    ast.Mult: op.mul,
    ast.Div: op.truediv,
    ast.FloorDiv: op.floordiv,
    ast.Mod: op.mod,
    ast.Pow: op.pow,
}

UNARY_OPERATORS = {
    ast.UAdd: op.pos,
    ast.USub: op.neg,
    ast.Not: op.not_,
}

COMPARE_OPERATORS = {
    ast.Eq: op.eq,
    ast.NotEq: op.ne,
    ast.Lt: op.lt,
    ast.LtE: op.le,
    ast.Gt: op.gt,
    ast.GtE: op.ge,
    ast.In: lambda a, b: a in b,
    ast.NotIn: lambda a, b: a not in b,
    ast.Is: op.is_,
    ast.IsNot: op.is_not,
}

SAFE_BUILTINS = {
    'abs': abs,
    'all': all,
    'any': any,
    'bool': bool,
    'dict': dict,
    'float': float,
    'int': int,
    'len': len,
    'list': list,
    'max': max,
    'min': min,
    'range': range,
    'round': round,
    'sorted': sorted,
    'str': str,
    'sum': sum,
    'tuple': tuple,
}

SAFE_METHODS = {
    str: {'upper', 'lower', 'strip', 'lstrip', 'rstrip', 'split', 'join', 'replace',
          'startswith', 'endswith', 'find', 'count', 'title', 'capitalize'},
    list: {'append', 'extend', 'insert', 'pop', 'index', 'count', 'reverse', 'sort', 'copy'},
    dict: {'get', 'keys', 'values', 'items', 'copy', 'update', 'pop', 'setdefault'},
    tuple: {'index', 'count'},
}

# Spellings scripts written for the browser editor use
LITERAL_ALIASES = {
    'true': True,
    'false': False,
    'null': None,
    'undefined': None,
}

ALLOWED_SYNTAX = (
    ast.Module, ast.Expr, ast.Assign, ast.AugAssign, ast.If, ast.While, ast.For,
    ast.Break, ast.Continue, ast.Pass,
    ast.Constant, ast.Name, ast.Attribute, ast.Subscript, ast.Slice,
    ast.BinOp, ast.UnaryOp, ast.BoolOp, ast.Compare, ast.IfExp, ast.Call, ast.keyword,
    ast.List, ast.Tuple, ast.Dict, ast.JoinedStr, ast.FormattedValue,
    ast.Load, ast.Store, ast.And, ast.Or,
) + tuple(BINARY_OPERATORS) + tuple(UNARY_OPERATORS) + tuple(COMPARE_OPERATORS)


class _LoopControl(Exception):
    pass


class _BreakLoop(_LoopControl):
    pass


class _ContinueLoop(_LoopControl):
    pass


def compile_script(script_text: str) -> ast.Module:
    """
    Parse a script and reject anything outside the allowed subset.

    Raises:
        ScriptRuntimeError: on a syntax error or a disallowed construct
    """
    try:
        tree = ast.parse(script_text, mode='exec')
    except SyntaxError as e:
        raise ScriptRuntimeError(f"Syntax error in script: {e.msg} (line {e.lineno})") from e
    except (RecursionError, MemoryError) as e:
        raise ScriptRuntimeError("Script is nested too deeply to parse") from e
    except ValueError as e:
        raise ScriptRuntimeError(f"Invalid script text: {e}") from e

    for child in ast.walk(tree):
        if not isinstance(child, ALLOWED_SYNTAX):
            raise ScriptRuntimeError(f"'{type(child).__name__}' is not allowed in node scripts")
        if isinstance(child, ast.Name) and child.id.startswith('__'):
            raise ScriptRuntimeError(f"Name '{child.id}' is not allowed in node scripts")
        if isinstance(child, ast.Attribute) and child.attr.startswith('_'):
            raise ScriptRuntimeError(f"Attribute '{child.attr}' is not allowed in node scripts")

    return tree


class ScriptInterpreter:
    """Walks a compiled script against one NodeBinding"""

    def __init__(self, binding: NodeBinding, max_iterations: int = MAX_LOOP_ITERATIONS):
        self.binding = binding
        self.max_iterations = max_iterations
        self.locals: Dict[str, Any] = {}
        self._iterations = 0

    def run(self, script_text: str) -> Dict[str, Any]:
        """
        Execute script text and return the outputs it wrote.

        Raises:
            ScriptRuntimeError: if the script is rejected or fails
            ExecutionLimitExceededError: if a runaway guard trips
        """
        tree = compile_script(script_text)
        try:
            self._exec_block(tree.body)
        except ScriptRuntimeError:
            raise
        except _BreakLoop:
            raise ScriptRuntimeError("'break' outside loop")
        except _ContinueLoop:
            raise ScriptRuntimeError("'continue' not properly in loop")
        except RecursionError as e:
            raise ScriptRuntimeError('Script is nested too deeply') from e
        except Exception as e:
            raise ScriptRuntimeError(f"{type(e).__name__}: {e}") from e
        return self.binding.outputs

    # Statements

    def _exec_block(self, statements):
        for statement in statements:
            handler = getattr(self, f"_exec_{type(statement).__name__}")
            handler(statement)

    def _exec_Expr(self, statement: ast.Expr):
        self._eval(statement.value)

    def _exec_Pass(self, statement: ast.Pass):
        pass

    def _exec_Break(self, statement: ast.Break):
        raise _BreakLoop()

    def _exec_Continue(self, statement: ast.Continue):
        raise _ContinueLoop()

    def _exec_Assign(self, statement: ast.Assign):
        value = self._eval(statement.value)
        for target in statement.targets:
            self._assign(target, value)

    def _exec_AugAssign(self, statement: ast.AugAssign):
        current = self._eval(self._as_load(statement.target))
        value = BINARY_OPERATORS[type(statement.op)](current, self._eval(statement.value))
        self._assign(statement.target, value)

    def _exec_If(self, statement: ast.If):
        if self._eval(statement.test):
            self._exec_block(statement.body)
        else:
            self._exec_block(statement.orelse)

    def _exec_While(self, statement: ast.While):
        while self._eval(statement.test):
            self._count_iteration()
            try:
                self._exec_block(statement.body)
            except _BreakLoop:
                return
            except _ContinueLoop:
                continue
        self._exec_block(statement.orelse)

    def _exec_For(self, statement: ast.For):
        for item in self._eval(statement.iter):
            self._count_iteration()
            self._assign(statement.target, item)
            try:
                self._exec_block(statement.body)
            except _BreakLoop:
                return
            except _ContinueLoop:
                continue
        self._exec_block(statement.orelse)

    def _count_iteration(self):
        self._iterations += 1
        if self._iterations > self.max_iterations:
            logger.warning(f"Loop budget of {self.max_iterations} iterations exceeded")
            raise ExecutionLimitExceededError(limit=self.max_iterations)

    def _assign(self, target, value):
        if isinstance(target, ast.Name):
            if target.id == BINDING_NAME or target.id in LITERAL_ALIASES or target.id in SAFE_BUILTINS:
                raise ScriptRuntimeError(f"Cannot assign to '{target.id}'")
            self.locals[target.id] = value
        elif isinstance(target, ast.Attribute):
            self._require_binding(target.value)
            self.binding.set(target.attr, value)
        elif isinstance(target, ast.Subscript):
            key = self._eval(target.slice)
            if self._is_binding(target.value):
                self.binding.set(self._binding_key(key), value)
            else:
                container = self._eval(target.value)
                if not isinstance(container, (list, dict)):
                    raise ScriptRuntimeError(f"Cannot assign items of {type(container).__name__}")
                container[key] = value
        elif isinstance(target, (ast.Tuple, ast.List)):
            values = list(value)
            if len(values) != len(target.elts):
                raise ScriptRuntimeError(
                    f"Cannot unpack {len(values)} values into {len(target.elts)} names")
            for element, element_value in zip(target.elts, values):
                self._assign(element, element_value)
        else:
            raise ScriptRuntimeError(f"Cannot assign to {type(target).__name__}")

    @staticmethod
    def _as_load(target):
        if isinstance(target, ast.Name):
            return ast.Name(id=target.id, ctx=ast.Load())
        if isinstance(target, ast.Attribute):
            return ast.Attribute(value=target.value, attr=target.attr, ctx=ast.Load())
        if isinstance(target, ast.Subscript):
            return ast.Subscript(value=target.value, slice=target.slice, ctx=ast.Load())
        raise ScriptRuntimeError(f"Cannot update {type(target).__name__} in place")

    # Expressions

    def _eval(self, expression) -> Any:
        handler = getattr(self, f"_eval_{type(expression).__name__}", None)
        if handler is None:
            raise ScriptRuntimeError(f"'{type(expression).__name__}' is not allowed here")
        return handler(expression)

    def _eval_Constant(self, expression: ast.Constant):
        return expression.value

    def _eval_Name(self, expression: ast.Name):
        name = expression.id
        if name == BINDING_NAME:
            raise ScriptRuntimeError("'node' can only be used as node.<name> or node[\"<name>\"]")
        if name in self.locals:
            return self.locals[name]
        if name in LITERAL_ALIASES:
            return LITERAL_ALIASES[name]
        raise ScriptRuntimeError(f"name '{name}' is not defined")

    def _eval_Attribute(self, expression: ast.Attribute):
        self._require_binding(expression.value)
        return self.binding.get(expression.attr)

    def _eval_Subscript(self, expression: ast.Subscript):
        key = self._eval(expression.slice)
        if self._is_binding(expression.value):
            return self.binding.get(self._binding_key(key))
        return self._eval(expression.value)[key]

    def _eval_Slice(self, expression: ast.Slice):
        lower = self._eval(expression.lower) if expression.lower else None
        upper = self._eval(expression.upper) if expression.upper else None
        step = self._eval(expression.step) if expression.step else None
        return slice(lower, upper, step)

    def _eval_BinOp(self, expression: ast.BinOp):
        left = self._eval(expression.left)
        right = self._eval(expression.right)
        return BINARY_OPERATORS[type(expression.op)](left, right)

    def _eval_UnaryOp(self, expression: ast.UnaryOp):
        return UNARY_OPERATORS[type(expression.op)](self._eval(expression.operand))

    def _eval_BoolOp(self, expression: ast.BoolOp):
        is_and = isinstance(expression.op, ast.And)
        result = None
        for value in expression.values:
            result = self._eval(value)
            if is_and and not result:
                return result
            if not is_and and result:
                return result
        return result

    def _eval_Compare(self, expression: ast.Compare):
        left = self._eval(expression.left)
        for operator, comparator in zip(expression.ops, expression.comparators):
            right = self._eval(comparator)
            if not COMPARE_OPERATORS[type(operator)](left, right):
                return False
            left = right
        return True

    def _eval_IfExp(self, expression: ast.IfExp):
        if self._eval(expression.test):
            return self._eval(expression.body)
        return self._eval(expression.orelse)

    def _eval_List(self, expression: ast.List):
        return [self._eval(element) for element in expression.elts]

    def _eval_Tuple(self, expression: ast.Tuple):
        return tuple(self._eval(element) for element in expression.elts)

    def _eval_Dict(self, expression: ast.Dict):
        if any(key is None for key in expression.keys):
            raise ScriptRuntimeError("Dictionary unpacking is not allowed in node scripts")
        return {self._eval(key): self._eval(value)
                for key, value in zip(expression.keys, expression.values)}

    def _eval_JoinedStr(self, expression: ast.JoinedStr):
        return ''.join(str(self._eval(value)) for value in expression.values)

    def _eval_FormattedValue(self, expression: ast.FormattedValue):
        value = self._eval(expression.value)
        if expression.conversion == ord('r'):
            value = repr(value)
        elif expression.conversion == ord('s'):
            value = str(value)
        spec = self._eval(expression.format_spec) if expression.format_spec else ''
        return format(value, spec)

    def _eval_Call(self, expression: ast.Call):
        args = [self._eval(arg) for arg in expression.args]
        kwargs = {keyword.arg: self._eval(keyword.value) for keyword in expression.keywords}
        if None in kwargs:
            raise ScriptRuntimeError("Keyword unpacking is not allowed in node scripts")

        func = expression.func
        if isinstance(func, ast.Name):
            if func.id not in SAFE_BUILTINS:
                raise ScriptRuntimeError(f"Function '{func.id}' is not available in node scripts")
            return SAFE_BUILTINS[func.id](*args, **kwargs)

        if isinstance(func, ast.Attribute):
            if self._is_binding(func.value):
                raise ScriptRuntimeError(f"node.{func.attr} cannot be called")
            target = self._eval(func.value)
            if func.attr not in self._allowed_methods(target):
                raise ScriptRuntimeError(
                    f"Method '{func.attr}' of {type(target).__name__} is not available in node scripts")
            return getattr(target, func.attr)(*args, **kwargs)

        raise ScriptRuntimeError('Only named functions and methods can be called')

    # Helpers

    @staticmethod
    def _allowed_methods(target):
        for value_type, methods in SAFE_METHODS.items():
            if isinstance(target, value_type):
                return methods
        return set()

    @staticmethod
    def _is_binding(expression) -> bool:
        return isinstance(expression, ast.Name) and expression.id == BINDING_NAME

    def _require_binding(self, expression):
        if not self._is_binding(expression):
            raise ScriptRuntimeError("Only node.<name> attributes can be read or written")

    @staticmethod
    def _binding_key(key) -> str:
        if not isinstance(key, str):
            raise ScriptRuntimeError(f"node[...] keys must be strings, got {type(key).__name__}")
        return key


def run_script(script_text: str, inputs: Dict[str, Any], max_accesses: Optional[int] = None,
               max_iterations: int = MAX_LOOP_ITERATIONS) -> Dict[str, Any]:
    """Run a script against fresh bindings over inputs and return its outputs"""
    counter = AccessCounter(max_accesses if max_accesses is not None else MAX_BINDING_ACCESSES)
    binding = NodeBinding(inputs, counter)
    return ScriptInterpreter(binding, max_iterations=max_iterations).run(script_text)
