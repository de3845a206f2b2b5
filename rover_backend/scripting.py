"""Scripting system for rover control programs."""
import logging

from rover_backend.compiler import generate
from rover_backend.errors import ScriptError
from rover_backend.lexer import Lexer
from rover_backend.session import MissionSession
from rover_backend.validator import validate

logger = logging.getLogger(__name__)


class ScriptExecutor:
    """Validates, compiles and executes rover scripts."""

    def __init__(self, session_id=None, settings=None):
        """Initialize script executor."""
        self.session_id = session_id
        self.settings = settings
        self.anomalies = []

    def _tokens(self, script):
        if not script or not script.strip():
            raise ScriptError("Empty script")
        lexer = Lexer(script)
        tokens = lexer.tokenize()
        self.anomalies = lexer.anomalies
        return tokens

    def validate(self, script):
        """Validate script syntax."""
        validate(self._tokens(script))
        return True

    def compile(self, script):
        """Compile a script into a routine."""
        tokens = self._tokens(script)
        validate(tokens)
        routine = generate(tokens)
        logger.debug("Compiled script for session %s (%s tokens)", self.session_id, len(tokens))
        return routine

    def execute(self, script, world_map, objectives=None, max_ticks=None):
        """Compile and run a script on a fresh mission session."""
        session = MissionSession(world_map, self.settings, mission_id=self.session_id,
                                 objectives=objectives)
        session.routine = self.compile(script)
        result = session.run(max_ticks=max_ticks)
        result.objective_met = session.objective_met()
        return result
