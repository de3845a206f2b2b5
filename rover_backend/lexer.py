"""Lexer for the rover control language.

Turns DSL source text into an ordered token list. Keywords are matched
case-insensitively and abbreviations are folded to their canonical command,
while ``Token.text`` keeps the original spelling for when a command word is
used as a plain name (``For i=1:1:5``).
"""
import logging
from dataclasses import dataclass

from rover_backend.errors import LexicalAnomaly

logger = logging.getLogger(__name__)

# Token kinds
COMMAND = 'COMMAND'
FUNCTION = 'FUNCTION'
STRING = 'STRING'
NUMBER = 'NUMBER'
OPERATOR = 'OPERATOR'
IDENTIFIER = 'IDENTIFIER'
BLOCK_START = 'BLOCK_START'
BLOCK_END = 'BLOCK_END'
PAREN_START = 'PAREN_START'
PAREN_END = 'PAREN_END'
COMMA = 'COMMA'
COLON = 'COLON'
NEWLINE = 'NEWLINE'
EOF = 'EOF'

# Spelling (lowercase) -> canonical command
KEYWORDS = {
    'set': 'set', 's': 'set',
    'do': 'do', 'd': 'do',
    'write': 'write', 'w': 'write',
    'if': 'if', 'i': 'if',
    'else': 'else', 'e': 'else',
    'elseif': 'elseif', 'ei': 'elseif',
    'for': 'for', 'f': 'for',
    'while': 'while',
    'quit': 'quit', 'q': 'quit',
    'return': 'return',
}

SINGLE = {
    '{': BLOCK_START, '}': BLOCK_END,
    '(': PAREN_START, ')': PAREN_END,
    ',': COMMA, ':': COLON,
}

# Two-character operators are tried before their one-character prefixes
DOUBLE_OPERATORS = ('==', '<=', '>=', '!=')
SINGLE_OPERATORS = ('=', '<', '>', '!', '.', '+', '-', '*', '/')


@dataclass
class Token:
    kind: str
    value: str
    text: str = ''
    index: int = 0
    line: int = 1
    col: int = 1

    def is_op(self, *values):
        return self.kind == OPERATOR and (not values or self.value in values)

    def to_dict(self):
        return {'kind': self.kind, 'value': self.value, 'index': self.index,
                'line': self.line, 'col': self.col}


class Lexer:
    """Single left-to-right pass over the source, no backtracking."""

    def __init__(self, source):
        self.s = source or ''
        self.i = 0
        self.line = 1
        self.col = 1
        self.tokens = []
        self.anomalies = []

    def _peek(self, n=0):
        j = self.i + n
        return self.s[j] if j < len(self.s) else ''

    def _adv(self, n=1):
        for _ in range(n):
            ch = self._peek()
            self.i += 1
            if ch == '\n':
                self.line += 1
                self.col = 1
            else:
                self.col += 1

    def _emit(self, kind, value, text, line, col):
        self.tokens.append(Token(kind, value, text, len(self.tokens), line, col))

    def tokenize(self):
        while self.i < len(self.s):
            ch = self._peek()
            line, col = self.line, self.col
            if ch == '\n':
                self._emit(NEWLINE, '\n', '\n', line, col)
                self._adv()
            elif ch in ' \t\r\f\v':
                self._adv()
            elif (ch == '/' and self._peek(1) == '/') or ch == '#':
                self._skip_comment()
            elif ch == '"':
                self._read_string(line, col)
            elif ch.isdigit():
                self._read_number(line, col)
            elif ch in SINGLE:
                self._emit(SINGLE[ch], ch, ch, line, col)
                self._adv()
            elif ch == '_':
                # Concatenation is the host '+' operator
                self._emit(OPERATOR, '+', ch, line, col)
                self._adv()
            elif ch + self._peek(1) in DOUBLE_OPERATORS:
                op = ch + self._peek(1)
                self._emit(OPERATOR, op, op, line, col)
                self._adv(2)
            elif ch in SINGLE_OPERATORS:
                self._emit(OPERATOR, ch, ch, line, col)
                self._adv()
            elif ch.isalpha() or (ch in '%$' and self._peek(1).isalpha()):
                self._read_word(line, col)
            else:
                anomaly = LexicalAnomaly(ch, self.i, line, col)
                self.anomalies.append(anomaly)
                logger.debug("Skipping unrecognized character %r at %s:%s", ch, line, col)
                self._adv()
        self._emit(EOF, '', '', self.line, self.col)
        return self.tokens

    def _skip_comment(self):
        while self.i < len(self.s) and self._peek() != '\n':
            self._adv()

    def _read_string(self, line, col):
        begin = self.i
        self._adv()  # opening quote
        chars = []
        while self.i < len(self.s):
            ch = self._peek()
            if ch == '\\' and self._peek(1) == '"':
                chars.append('"')
                self._adv(2)
                continue
            if ch == '"':
                break
            chars.append(ch)
            self._adv()
        self._adv()  # closing quote (no-op at end of input)
        self._emit(STRING, ''.join(chars), self.s[begin:self.i], line, col)

    def _read_number(self, line, col):
        start = self.i
        while self.i < len(self.s) and (self._peek().isdigit() or self._peek() == '.'):
            self._adv()
        text = self.s[start:self.i]
        self._emit(NUMBER, text, text, line, col)

    def _read_word(self, line, col):
        start = self.i
        self._adv()  # first char may be '%' or '$'
        while self.i < len(self.s) and self._peek().isalnum():
            self._adv()
        text = self.s[start:self.i]
        if text[0] == '$':
            self._emit(FUNCTION, text[1:], text, line, col)
            return
        command = KEYWORDS.get(text.lower())
        if command and text[0] != '%':
            self._emit(COMMAND, command, text, line, col)
        else:
            self._emit(IDENTIFIER, text, text, line, col)


def tokenize(source):
    """Tokenize DSL source into a list of tokens ending with EOF."""
    return Lexer(source).tokenize()
