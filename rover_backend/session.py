"""Mission session: owns the world, the compiled routine and the active run."""
import logging

from rover_backend.compiler import compile_source
from rover_backend.config import SimulationSettings
from rover_backend.errors import ScriptError
from rover_backend.replay import ReplayPlayer
from rover_backend.runner import TickRunner
from rover_backend.scheduler import TaskScheduler
from rover_backend.world import World, WorldMap

logger = logging.getLogger(__name__)


class MissionSession:
    """Lifecycle: create -> compile -> run/start/replay -> stop -> reset.

    One session per running mission; nothing here is process-global.
    """

    def __init__(self, world_map, settings=None, mission_id=None, objectives=None):
        self.settings = settings or SimulationSettings()
        if not isinstance(world_map, WorldMap):
            world_map = WorldMap.from_dict(world_map, self.settings)
        self.world_map = world_map
        self.mission_id = mission_id
        self.objectives = objectives or {}
        self.scheduler = TaskScheduler()
        self.world = World(self.world_map, self.settings)
        self.routine = None
        self.runner = None
        self.player = None

    def compile(self, source):
        """Compile DSL source; raises StructuralError/GenerationError on bad input."""
        if not source or not source.strip():
            raise ScriptError("Empty script")
        self.routine = compile_source(source)
        return self.routine

    def _new_runner(self, max_ticks=None, on_snapshot=None):
        if self.routine is None:
            raise ScriptError("No routine compiled for this session")
        if self.runner is not None:
            self.runner.stop()
        self.runner = TickRunner(self.routine, self.world, self.settings,
                                 on_snapshot=on_snapshot, max_ticks=max_ticks)
        return self.runner

    def run(self, max_ticks=None, on_snapshot=None):
        """Run the compiled routine to completion; returns a RunResult."""
        result = self._new_runner(max_ticks, on_snapshot).run()
        if result.fault:
            logger.warning("Mission %s faulted: %s", self.mission_id, result.fault)
        return result

    def start(self, max_ticks=None, on_snapshot=None):
        """Tick on the session scheduler; advance it to make progress."""
        runner = self._new_runner(max_ticks, on_snapshot)
        runner.start(self.scheduler)
        return runner

    def replay(self, frames, on_snapshot=None):
        """Start replaying recorded frames on the session scheduler."""
        if self.player is not None:
            self.player.stop()
        self.player = ReplayPlayer(frames, self.world_map, scheduler=self.scheduler,
                                   settings=self.settings, on_snapshot=on_snapshot)
        self.player.start()
        return self.player

    def stop(self):
        """Idempotent; nothing scheduled fires after this."""
        if self.runner is not None:
            self.runner.stop()
        if self.player is not None:
            self.player.stop()
        self.scheduler.cancel_all()

    def reset(self):
        """Fresh world from the same map, keeping the compiled routine."""
        self.stop()
        self.world = World(self.world_map, self.settings)
        self.runner = None
        self.player = None

    @property
    def latest_snapshot(self):
        for source in (self.player, self.runner):
            if source is not None and source.latest_snapshot is not None:
                return dict(source.latest_snapshot)
        return self.world.snapshot()

    def objective_met(self):
        """True when the mission objectives are satisfied by the current world."""
        min_minerals = self.objectives.get('minMinerals')
        if min_minerals is None:
            return None
        return self.world.minerals_collected() >= min_minerals
