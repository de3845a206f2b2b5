"""Error taxonomy for script compilation and mission execution."""


class RoverError(Exception):
    """Base class for all rover backend errors."""


class ScriptError(RoverError):
    """Script facade misuse (empty script, missing mission)."""


class StructuralError(RoverError):
    """Raised by the validator for malformed token streams."""

    def __init__(self, index, reason):
        super().__init__(f"Syntax Error at token {index}: {reason}")
        self.index = index
        self.reason = reason

    def to_dict(self):
        return {'error': str(self), 'index': self.index, 'reason': self.reason}


class GenerationError(RoverError):
    """Raised by the compiler; generation is aborted and nothing is returned."""

    def __init__(self, token, reason):
        index = token.index if token is not None else None
        where = f" at token {index} ({token.text!r})" if token is not None else ""
        super().__init__(f"Generation Error{where}: {reason}")
        self.token = token
        self.index = index
        self.reason = reason

    def to_dict(self):
        return {'error': str(self), 'index': self.index, 'reason': self.reason}


class RuntimeFault(RoverError):
    """A bridge, accessor or interpreter failure during a tick."""


class RoutineTimeout(RuntimeFault):
    """The routine exceeded its per-invocation operation budget."""


class MapDataError(RoverError):
    """Invalid world map or mission data."""


class LexicalAnomaly:
    """Record of a character the lexer skipped. Never raised."""

    __slots__ = ('char', 'pos', 'line', 'col')

    def __init__(self, char, pos, line, col):
        self.char = char
        self.pos = pos
        self.line = line
        self.col = col

    def __repr__(self):
        return f"LexicalAnomaly({self.char!r} at {self.line}:{self.col})"

    def to_dict(self):
        return {'char': self.char, 'pos': self.pos, 'line': self.line, 'col': self.col}
