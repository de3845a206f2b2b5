"""Interpreter for compiled rover routines.

Walks the AST produced by ``rover_backend.compiler``. The only side effects a
routine can have go through the rover API bridge, the context/memory
accessors and the pure ``$`` library below.
"""
import operator

from rover_backend.accessor import UNDEFINED, DynamicObject, check_arguments, unwrap
from rover_backend.errors import RoutineTimeout, RuntimeFault


class _QuitSignal(Exception):
    """Unwinds the routine on Quit/Return."""


# -----------------------------
# $ runtime library
# -----------------------------

def lib_piece(string, delim, index=1):
    """$Piece(str, delim, n): n-th (1-based) delimited piece, or ""."""
    if string is UNDEFINED or string == '':
        return ''
    parts = str(string).split(str(delim))
    if not isinstance(index, int) or index < 1 or index > len(parts):
        return ''
    return parts[index - 1]


def lib_length(string):
    """$Length(str)"""
    return len(str(string)) if string else 0


def lib_get(value, default=''):
    """$Get(val, default): default when val is undefined or empty."""
    if value is UNDEFINED or value is None or value == '':
        return default
    return value


LIBRARY = {
    'Piece': lib_piece,
    'Length': lib_length,
    'Get': lib_get,
}

ARITHMETIC = {
    '+': operator.add,
    '-': operator.sub,
    '*': operator.mul,
    '/': operator.truediv,
    '<': operator.lt,
    '>': operator.gt,
    '<=': operator.le,
    '>=': operator.ge,
}


def _is_number(value):
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class Interpreter:
    """Executes one routine invocation against a context and the rover API."""

    def __init__(self, program, context, rover_api, memory=None, step_limit=10000):
        self.program = program
        self.context = context
        self.rover_api = rover_api
        self.step_limit = step_limit
        self.steps = 0
        self.locals = {program.context_name: context}
        if memory is not None:
            self.locals.setdefault('memory', memory)

    def run(self):
        try:
            self._exec_block(self.program.body)
        except _QuitSignal:
            pass

    def _count(self):
        self.steps += 1
        if self.step_limit and self.steps > self.step_limit:
            raise RoutineTimeout(f"Routine exceeded {self.step_limit} operations in one tick")

    # -- statements --

    def _exec_block(self, body):
        for node in body:
            self._exec(node)

    def _exec(self, node):
        self._count()
        getattr(self, f"_exec_{type(node).__name__}")(node)

    def _exec_Assign(self, node):
        self.locals[node.name] = self._eval(node.value)

    def _exec_Do(self, node):
        # Every call completes before the next statement starts
        self._eval(node.call)

    def _exec_Write(self, node):
        self.rover_api.call('Write', [self._eval(arg) for arg in node.args])

    def _exec_IfChain(self, node):
        for cond, body in node.branches:
            if self._truthy(self._eval(cond)):
                self._exec_block(body)
                return
        if node.else_body is not None:
            self._exec_block(node.else_body)

    def _exec_ForLoop(self, node):
        start = self._eval(node.start)
        step = self._eval(node.step)
        end = self._eval(node.end)
        for label, value in (('start', start), ('step', step), ('end', end)):
            if not _is_number(value):
                raise RuntimeFault(f"For loop {label} must be a number, got {value!r}")
        if step <= 0:
            raise RuntimeFault(f"For loop step must be positive, got {step!r}")
        self.locals[node.var] = start
        while self._binary('<=', self.locals[node.var], end):
            self._count()
            self._exec_block(node.body)
            self.locals[node.var] = self._binary('+', self.locals[node.var], step)

    def _exec_WhileLoop(self, node):
        while self._truthy(self._eval(node.cond)):
            self._count()
            self._exec_block(node.body)

    def _exec_Quit(self, node):
        raise _QuitSignal()

    # -- expressions --

    def _eval(self, node):
        result = getattr(self, f"_eval_{type(node).__name__}")(node)
        return UNDEFINED if result is None else result

    def _eval_Literal(self, node):
        return node.value

    def _eval_Name(self, node):
        try:
            return self.locals[node.name]
        except KeyError:
            raise RuntimeFault(f"Undefined variable {node.name!r}") from None

    def _eval_MappingLiteral(self, node):
        return DynamicObject({key: unwrap(self._eval(value)) for key, value in node.items})

    def _eval_BinaryOp(self, node):
        # Walk the left spine iteratively; long operator chains stay shallow
        chain = []
        while type(node).__name__ == 'BinaryOp':
            chain.append(node)
            node = node.left
        value = self._eval(node)
        for link in reversed(chain):
            value = self._binary(link.op, value, self._eval(link.right))
        return value

    def _eval_UnaryOp(self, node):
        value = self._eval(node.operand)
        if node.op == '!':
            return not self._truthy(value)
        if not _is_number(value):
            raise RuntimeFault(f"Cannot negate {value!r}")
        return -value

    def _eval_Call(self, node):
        args = [self._eval(arg) for arg in node.args]
        if self.rover_api.has_primitive(node.name):
            return self.rover_api.call(node.name, args)
        if not isinstance(self.context, DynamicObject):
            raise RuntimeFault(f"No context to call {node.name!r} on")
        return self.context.call_method(node.name, args)

    def _eval_MethodCall(self, node):
        target = self._eval(node.target)
        args = [self._eval(arg) for arg in node.args]
        if not isinstance(target, DynamicObject):
            raise RuntimeFault(f"Cannot call {node.method!r} on {target!r}")
        return target.call_method(node.method, args)

    def _eval_LibCall(self, node):
        args = [self._eval(arg) for arg in node.args]
        fn = LIBRARY[node.name]
        check_arguments(f"${node.name}", fn, args)
        return fn(*args)

    # -- helpers --

    @staticmethod
    def _truthy(value):
        return bool(value)

    @staticmethod
    def _binary(op, left, right):
        if op == '==':
            return left == right
        if op == '!=':
            return left != right
        try:
            return ARITHMETIC[op](left, right)
        except (TypeError, ZeroDivisionError) as e:
            raise RuntimeFault(f"Cannot apply {op!r} to {left!r} and {right!r}: {e}") from e


class CompiledRoutine:
    """Executable entry point taking ``(context, rover_api)``; returns nothing."""

    def __init__(self, program):
        self.program = program

    @property
    def context_name(self):
        return self.program.context_name

    def __call__(self, context, rover_api, memory=None, step_limit=10000):
        Interpreter(self.program, context, rover_api, memory=memory, step_limit=step_limit).run()

    def outline(self):
        """Plain-data AST outline (for the compile endpoint and debugging)."""
        from rover_backend.compiler import describe
        return {
            'context_name': self.program.context_name,
            'method_name': self.program.method_name,
            'body': describe(self.program.body),
        }
