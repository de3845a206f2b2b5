"""Parser / code generator for the rover control language.

Recursive descent over the validated token list, one rule per command. The
output is an AST (``Program``) wrapped in a ``CompiledRoutine``; the routine is
run by ``rover_backend.interpreter`` which only ever calls the whitelisted
rover primitives, accessor methods and library functions.

Desugaring:
  For v=a:s:b {..}       -> ForLoop (inclusive upper bound, step s, default 1)
  If/ElseIf/Else         -> one IfChain with ordered branches
  Set x = e              -> Assign (declaration)
  = inside conditions    -> equality
  Do Name(args)          -> awaited Call on the bridge or context
  Write e                -> Write (bridge output primitive)
  Quit / Return          -> Quit (routine-level exit)
  X.%Get("k")            -> MethodCall(X, "_Get", ...)
  _                      -> BinaryOp('+')
"""
from dataclasses import dataclass, field, fields, is_dataclass
from typing import Any, List, Optional, Tuple

from rover_backend.accessor import DynamicObject
from rover_backend.errors import GenerationError
from rover_backend.interpreter import LIBRARY, CompiledRoutine
from rover_backend.lexer import (
    BLOCK_END, BLOCK_START, COLON, COMMA, COMMAND, EOF, FUNCTION, IDENTIFIER,
    NEWLINE, NUMBER, OPERATOR, PAREN_END, PAREN_START, STRING, Token, tokenize,
)
from rover_backend.validator import is_class_method, validate
from rover_backend.world import RoverApi

# Primitives of the rover API bridge
BRIDGE_PRIMITIVES = RoverApi.PRIMITIVES
# Bare calls resolved against the routine's context
CONTEXT_CALLS = ('Set',) + tuple(DynamicObject.METHODS)
# Methods callable on a value with dotted syntax
METHOD_NAMES = frozenset(BRIDGE_PRIMITIVES + CONTEXT_CALLS)
# $Name runtime library
LIBRARY_FUNCTIONS = tuple(LIBRARY)

COMPARISON_OPS = ('==', '!=', '<', '>', '<=', '>=')
STATEMENT_END = (NEWLINE, BLOCK_END, EOF, COMMAND)
# Deepest nesting of blocks, groups, calls and unary operators
MAX_NESTING = 64


# -----------------------------
# AST
# -----------------------------

class Node:
    """Base class for AST nodes."""


class Expr(Node):
    """Base class for expressions."""


@dataclass
class Literal(Expr):
    value: Any


@dataclass
class Name(Expr):
    name: str
    tok: Optional[Token] = field(default=None, compare=False, repr=False)


@dataclass
class MappingLiteral(Expr):
    items: List[Tuple[str, Expr]]


@dataclass
class BinaryOp(Expr):
    op: str
    left: Expr
    right: Expr


@dataclass
class UnaryOp(Expr):
    op: str
    operand: Expr


@dataclass
class Call(Expr):
    """Bare call: a bridge primitive or a context method."""
    name: str
    args: List[Expr]
    tok: Optional[Token] = field(default=None, compare=False, repr=False)


@dataclass
class MethodCall(Expr):
    target: Expr
    method: str
    args: List[Expr]
    tok: Optional[Token] = field(default=None, compare=False, repr=False)


@dataclass
class LibCall(Expr):
    name: str
    args: List[Expr]


@dataclass
class Assign(Node):
    name: str
    value: Expr


@dataclass
class Do(Node):
    call: Expr


@dataclass
class Write(Node):
    args: List[Expr]


@dataclass
class IfChain(Node):
    branches: List[Tuple[Expr, List[Node]]]
    else_body: Optional[List[Node]] = None


@dataclass
class ForLoop(Node):
    var: str
    start: Expr
    step: Expr
    end: Expr
    body: List[Node]


@dataclass
class WhileLoop(Node):
    cond: Expr
    body: List[Node]


@dataclass
class Quit(Node):
    pass


@dataclass
class Program(Node):
    body: List[Node]
    context_name: str = 'context'
    method_name: Optional[str] = None
    source_tokens: int = field(default=0, compare=False)


def describe(node):
    """Plain-data outline of an AST (tokens omitted)."""
    if isinstance(node, list):
        return [describe(n) for n in node]
    if isinstance(node, tuple):
        return [describe(n) for n in node]
    if isinstance(node, BinaryOp) and isinstance(node.left, BinaryOp):
        # Left-leaning operator chains flatten to one level
        ops, operands = [], []
        while isinstance(node, BinaryOp):
            ops.append(node.op)
            operands.append(node.right)
            node = node.left
        operands.append(node)
        return {
            'type': 'BinaryChain',
            'ops': ops[::-1],
            'operands': [describe(n) for n in reversed(operands)],
        }
    if is_dataclass(node) and not isinstance(node, Token):
        out = {'type': type(node).__name__}
        for f in fields(node):
            value = getattr(node, f.name)
            if isinstance(value, Token) or f.name == 'source_tokens':
                continue
            out[f.name] = describe(value)
        return out
    return node


# -----------------------------
# Parser
# -----------------------------

class Parser:
    """Token list -> Program. Assumes the validator already accepted the tokens."""

    def __init__(self, tokens):
        self.toks = list(tokens)
        if not self.toks or self.toks[-1].kind != EOF:
            last = self.toks[-1].index + 1 if self.toks else 0
            self.toks.append(Token(EOF, '', '', last))
        self.i = 0
        self.depth = 0

    # -- token helpers --

    def _cur(self):
        return self.toks[self.i]

    def _peek(self, n=1):
        j = min(self.i + n, len(self.toks) - 1)
        return self.toks[j]

    def _check(self, kind, value=None):
        tok = self._cur()
        return tok.kind == kind and (value is None or tok.value == value)

    def _eat(self, kind, what, value=None):
        if not self._check(kind, value):
            self._err(f"expected {what}")
        tok = self._cur()
        self.i += 1
        return tok

    def _err(self, reason, tok=None):
        raise GenerationError(tok or self._cur(), reason)

    def _enter(self):
        self.depth += 1
        if self.depth > MAX_NESTING:
            self._err(f"nesting deeper than {MAX_NESTING} levels")

    def _skip_newlines(self):
        while self._check(NEWLINE):
            self.i += 1

    # -- program structure --

    def parse(self):
        if is_class_method(self.toks):
            program = self._class_method()
        else:
            program = Program(self._statements(EOF))
        self._eat(EOF, "end of input")
        program.source_tokens = len(self.toks)
        return program

    def _class_method(self):
        self.i += 1  # 'ClassMethod'
        name_tok = self._cur()
        method_name = name_tok.text if name_tok.kind in (IDENTIFIER, COMMAND) else None
        context_name = 'context'
        while not self._check(PAREN_START) and not self._check(BLOCK_START) and not self._check(EOF):
            self.i += 1
        if self._check(PAREN_START):
            self.i += 1
            if self._cur().kind in (IDENTIFIER, COMMAND):
                context_name = self._cur().text
            # Signature details ('As Type', extra params) are discarded
            while not self._check(PAREN_END) and not self._check(EOF):
                self.i += 1
            self._eat(PAREN_END, "')' closing ClassMethod signature")
        while not self._check(BLOCK_START) and not self._check(EOF):
            self.i += 1
        body = self._block()
        self._skip_newlines()
        return Program(body, context_name=context_name, method_name=method_name)

    def _statements(self, end_kind):
        stmts = []
        while True:
            self._skip_newlines()
            if self._check(end_kind) or self._check(EOF):
                return stmts
            stmts.extend(self._statement())

    def _block(self):
        self._eat(BLOCK_START, "'{'")
        self._enter()
        body = self._statements(BLOCK_END)
        self.depth -= 1
        self._eat(BLOCK_END, "'}'")
        return body

    def _starts_statement(self, tok):
        # Abbreviated commands (i, e, f, ...) in argument position are names
        if tok.kind == COMMAND:
            return tok.text.lower() == tok.value
        return tok.kind in STATEMENT_END

    def _end_statement(self):
        if self._cur().kind not in STATEMENT_END:
            self._err(f"unexpected {self._cur().text!r} after statement")

    # -- statements --

    def _statement(self):
        """Parse one command; returns a list since Set/Do accept comma lists."""
        tok = self._cur()
        if tok.kind == IDENTIFIER and self._peek().is_op('='):
            return self._assignments()
        if tok.kind != COMMAND:
            self._err(f"unknown command {tok.text!r}")
        handler = getattr(self, f"_cmd_{tok.value}", None)
        if handler is None:
            self._err(f"{tok.text!r} is not valid here")
        self.i += 1
        return handler(tok)

    def _cmd_set(self, tok):
        return self._assignments()

    def _assignments(self):
        out = []
        while True:
            target = self._cur()
            if target.kind not in (IDENTIFIER, COMMAND) or target.text.startswith('%'):
                self._err("Set target must be a variable name")
            self.i += 1
            if self._peek(0).is_op('.'):
                self._err("Set target must be a variable name; use %Set for properties")
            self._eat(OPERATOR, "'=' in Set", '=')
            out.append(Assign(target.text, self._expression()))
            if not self._check(COMMA):
                break
            self.i += 1
        self._end_statement()
        return out

    def _cmd_do(self, tok):
        out = []
        while True:
            expr = self._expression()
            if isinstance(expr, Name):
                expr = self._bare_call(expr.tok, [])
            if not isinstance(expr, (Call, MethodCall)):
                self._err("Do requires a call", tok)
            out.append(Do(expr))
            if not self._check(COMMA):
                break
            self.i += 1
        self._end_statement()
        return out

    def _cmd_write(self, tok):
        args = []
        if not self._starts_statement(self._cur()):
            args.append(self._expression())
            while self._check(COMMA):
                self.i += 1
                args.append(self._expression())
        self._end_statement()
        return [Write(args)]

    def _cmd_if(self, tok):
        branches = [(self._expression(allow_eq=True), self._block())]
        else_body = None
        while True:
            j = self.i
            while self.toks[j].kind == NEWLINE:
                j += 1
            nxt = self.toks[j]
            if nxt.kind != COMMAND or nxt.value not in ('elseif', 'else'):
                break
            self.i = j + 1
            if nxt.value == 'elseif':
                branches.append((self._expression(allow_eq=True), self._block()))
            else:
                else_body = self._block()
                break
        return [IfChain(branches, else_body)]

    def _cmd_elseif(self, tok):
        self._err("ElseIf without a preceding If", tok)

    def _cmd_else(self, tok):
        self._err("Else without a preceding If", tok)

    def _cmd_for(self, tok):
        var = self._cur()
        if var.kind not in (IDENTIFIER, COMMAND) or var.text.startswith('%'):
            self._err("For requires a loop variable")
        self.i += 1
        self._eat(OPERATOR, "'=' after For variable", '=')
        start = self._expression()
        self._eat(COLON, "':' in For range")
        second = self._expression()
        if self._check(COLON):
            self.i += 1
            step, end = second, self._expression()
        else:
            step, end = Literal(1), second
        body = self._block()
        return [ForLoop(var.text, start, step, end, body)]

    def _cmd_while(self, tok):
        cond = self._expression(allow_eq=True)
        return [WhileLoop(cond, self._block())]

    def _cmd_quit(self, tok):
        self._end_statement()
        return [Quit()]

    _cmd_return = _cmd_quit

    # -- expressions --

    def _expression(self, allow_eq=False):
        self._enter()
        left = self._additive(allow_eq)
        while True:
            tok = self._cur()
            if tok.is_op(*COMPARISON_OPS):
                op = tok.value
            elif tok.is_op('=') and allow_eq:
                op = '=='
            else:
                break
            self.i += 1
            left = BinaryOp(op, left, self._additive(allow_eq))
        self.depth -= 1
        return left

    def _additive(self, allow_eq):
        left = self._multiplicative(allow_eq)
        while self._cur().is_op('+', '-'):
            op = self._cur().value
            self.i += 1
            left = BinaryOp(op, left, self._multiplicative(allow_eq))
        return left

    def _multiplicative(self, allow_eq):
        left = self._unary(allow_eq)
        while self._cur().is_op('*', '/'):
            op = self._cur().value
            self.i += 1
            left = BinaryOp(op, left, self._unary(allow_eq))
        return left

    def _unary(self, allow_eq):
        ops = []
        while self._cur().is_op('-', '!'):
            ops.append(self._cur().value)
            self.i += 1
            self._enter()
        expr = self._postfix(allow_eq)
        for op in reversed(ops):
            expr = UnaryOp(op, expr)
        self.depth -= len(ops)
        return expr

    def _postfix(self, allow_eq):
        expr = self._primary(allow_eq)
        links = 0
        while self._cur().is_op('.'):
            self.i += 1
            links += 1
            self._enter()
            member = self._cur()
            if member.kind not in (IDENTIFIER, COMMAND):
                self._err("expected a method name after '.'")
            self.i += 1
            method = '_' + member.text[1:] if member.text.startswith('%') else member.text
            if not self._check(PAREN_START):
                self._err(f"property access {member.text!r} must be a call", member)
            if method not in METHOD_NAMES:
                self._err(f"unknown method {member.text!r}", member)
            expr = MethodCall(expr, method, self._args(), member)
        self.depth -= links
        return expr

    def _primary(self, allow_eq):
        tok = self._cur()
        if tok.kind == NUMBER:
            self.i += 1
            return Literal(self._number(tok))
        if tok.kind == STRING:
            self.i += 1
            return Literal(tok.value)
        if tok.kind == FUNCTION:
            self.i += 1
            if tok.value not in LIBRARY_FUNCTIONS:
                self._err(f"unknown function {tok.text!r}", tok)
            return LibCall(tok.value, self._args())
        if tok.kind in (IDENTIFIER, COMMAND):
            self.i += 1
            if self._check(PAREN_START):
                return self._bare_call(tok, self._args())
            if tok.text.startswith('%'):
                self._err(f"{tok.text!r} must be called on an object", tok)
            return Name(tok.text, tok)
        if tok.kind == PAREN_START:
            self.i += 1
            inner = self._expression(allow_eq=True)
            self._eat(PAREN_END, "')'")
            return inner
        if tok.kind == BLOCK_START:
            return self._mapping()
        self._err(f"unexpected {tok.text or tok.kind.lower()!r} in expression")

    def _bare_call(self, tok, args):
        name = '_' + tok.text[1:] if tok.text.startswith('%') else tok.text
        if name not in BRIDGE_PRIMITIVES and name not in CONTEXT_CALLS:
            self._err(f"unknown command {tok.text!r}; allowed calls are "
                      f"{', '.join(BRIDGE_PRIMITIVES + ('Set',))}", tok)
        return Call(name, args, tok)

    def _args(self):
        self._eat(PAREN_START, "'('")
        args = []
        if not self._check(PAREN_END):
            args.append(self._expression(allow_eq=True))
            while self._check(COMMA):
                self.i += 1
                args.append(self._expression(allow_eq=True))
        self._eat(PAREN_END, "')'")
        return args

    def _mapping(self):
        self._eat(BLOCK_START, "'{'")
        items = []
        self._skip_newlines()
        while not self._check(BLOCK_END):
            key = self._cur()
            if key.kind not in (STRING, IDENTIFIER, COMMAND):
                self._err("mapping keys must be strings")
            self.i += 1
            self._eat(COLON, "':' after mapping key")
            items.append((key.value if key.kind == STRING else key.text, self._expression()))
            self._skip_newlines()
            if self._check(COMMA):
                self.i += 1
                self._skip_newlines()
            elif not self._check(BLOCK_END):
                self._err("expected ',' or '}' in mapping literal")
        self._eat(BLOCK_END, "'}'")
        return MappingLiteral(items)

    def _number(self, tok):
        try:
            return float(tok.value) if '.' in tok.value else int(tok.value)
        except ValueError:
            self._err(f"malformed number {tok.value!r}", tok)


def generate(tokens):
    """Compile a validated token list into a CompiledRoutine (all or nothing)."""
    return CompiledRoutine(Parser(tokens).parse())


def compile_source(source):
    """Lex, validate and generate in one step."""
    tokens = tokenize(source)
    validate(tokens)
    return generate(tokens)
