"""Structural validation of token streams before code generation."""
from rover_backend.errors import StructuralError
from rover_backend.lexer import (
    BLOCK_END, BLOCK_START, COLON, COMMA, COMMAND, EOF, IDENTIFIER, NEWLINE,
    NUMBER, OPERATOR, PAREN_END, PAREN_START,
)

# Commands that may open a block
BLOCK_COMMANDS = {'if', 'elseif', 'else', 'for', 'while'}

# Tokens after which a '{' opens a mapping literal rather than a block
LITERAL_PRECEDERS = {OPERATOR, COMMA, PAREN_START, COLON}


def is_class_method(tokens):
    """True when the token stream starts with a ``ClassMethod`` wrapper."""
    return bool(tokens) and tokens[0].kind == IDENTIFIER and tokens[0].value.lower() == 'classmethod'


class Validator:
    """Rejects unbalanced blocks/parens and unknown leading statement tokens."""

    def __init__(self, tokens):
        self.tokens = tokens

    def _fail(self, index, reason):
        raise StructuralError(index, reason)

    def validate(self):
        tokens = self.tokens
        # Each entry: [opener index, is_block, owning command or None]
        braces = []
        paren_depth = 0
        paren_open = None
        statement_start = True
        current_command = None
        last_closed = None  # command of the block closed just before this token
        skip_signature = is_class_method(tokens)

        for idx, tok in enumerate(tokens):
            if skip_signature:
                # Signature tokens up to the wrapper's opening brace are not statements
                if tok.kind == BLOCK_START:
                    braces.append([idx, True, 'classmethod'])
                    skip_signature = False
                    statement_start = True
                elif tok.kind == EOF:
                    self._fail(idx, "ClassMethod wrapper has no body")
                continue

            if statement_start and tok.kind not in (NEWLINE, EOF, BLOCK_END):
                self._check_leading(idx, tok, last_closed)
                current_command = tok.value if tok.kind == COMMAND else None
                statement_start = False
                last_closed = None
                if current_command == 'for':
                    self._check_for_step(idx)

            if tok.kind == NEWLINE:
                if braces and not braces[-1][1]:
                    continue  # inside a mapping literal
                if paren_depth:
                    self._fail(paren_open, "Unclosed '(' at end of statement")
                statement_start = True
                continue

            if tok.kind == PAREN_START:
                if paren_depth == 0:
                    paren_open = idx
                paren_depth += 1
            elif tok.kind == PAREN_END:
                if paren_depth == 0:
                    self._fail(idx, "Unexpected ')'")
                paren_depth -= 1
            elif tok.kind == BLOCK_START:
                prev = tokens[idx - 1] if idx else None
                if prev is not None and prev.kind in LITERAL_PRECEDERS:
                    braces.append([idx, False, None])
                    continue
                if paren_depth:
                    self._fail(paren_open, "Unclosed '(' before block")
                if current_command not in BLOCK_COMMANDS:
                    self._fail(idx, "Block '{' without If, ElseIf, Else, For or While")
                braces.append([idx, True, current_command])
                statement_start = True
            elif tok.kind == BLOCK_END:
                if not braces:
                    self._fail(idx, "Unmatched '}'")
                _, is_block, command = braces.pop()
                if is_block:
                    if paren_depth:
                        self._fail(paren_open, "Unclosed '(' at end of block")
                    statement_start = True
                    last_closed = command
                    current_command = None
            elif tok.kind == EOF:
                if paren_depth:
                    self._fail(paren_open, "Unclosed '('")
                if braces:
                    self._fail(braces[-1][0], f"Unbalanced braces. Net count: {len(braces)}")
        return True

    def _check_leading(self, idx, tok, last_closed):
        if tok.kind == COMMAND:
            if tok.value in ('else', 'elseif') and last_closed not in ('if', 'elseif'):
                self._fail(idx, f"'{tok.text}' without a preceding If block")
            return
        if tok.kind == IDENTIFIER:
            nxt = self.tokens[idx + 1] if idx + 1 < len(self.tokens) else None
            if nxt is not None and nxt.is_op('='):
                return  # bare assignment form
            self._fail(idx, f"Unknown command '{tok.text}'")
        if tok.kind == OPERATOR:
            self._fail(idx, f"Statement begins with dangling operator '{tok.text}'")
        self._fail(idx, f"Unexpected {tok.kind.lower()} '{tok.text}' at start of statement")

    def _check_for_step(self, idx):
        """Reject literal zero or negative steps in ``For v=start:step:end``."""
        tokens = self.tokens
        colons = []
        j = idx + 1
        while j < len(tokens) and tokens[j].kind not in (BLOCK_START, NEWLINE, EOF):
            if tokens[j].kind == COLON:
                colons.append(j)
            j += 1
        if len(colons) != 2:
            return
        step = tokens[colons[0] + 1:colons[1]]
        if len(step) == 2 and step[0].is_op('-') and step[1].kind == NUMBER:
            self._fail(colons[0] + 1, "For loop step must be positive")
        if len(step) == 1 and step[0].kind == NUMBER and _is_zero(step[0].value):
            self._fail(colons[0] + 1, "For loop step must be positive")


def _is_zero(text):
    try:
        return float(text) == 0
    except ValueError:
        return False


def validate(tokens):
    """Validate a token list; returns True or raises StructuralError."""
    return Validator(tokens).validate()
