"""Tick runner: drives a compiled routine against the world."""
import logging

from rover_backend.accessor import DynamicObject
from rover_backend.config import SimulationSettings
from rover_backend.world import RoverApi, sensor_reading

logger = logging.getLogger(__name__)


class MissionContext(DynamicObject):
    """The ``context`` a routine receives.

    Data: ``rover`` (pose, resources, fresh sensors), ``memory`` (persists
    across ticks) and ``output`` (deferred action). Rover primitives and
    ``Set`` are exposed as methods.
    """

    def __init__(self, rover_api, memory):
        super().__init__({
            'rover': {},
            'memory': memory,
            'output': {'action': 'WAIT', 'param': ''},
        })
        self._api = rover_api

    def call_method(self, name, args):
        if self._api.has_primitive(name):
            return self._api.call(name, args)
        if name == 'Set':
            name = '_Set'
        return super().call_method(name, args)


class RunResult:
    """Outcome of a run: final state, published snapshots and any fault."""

    def __init__(self, runner):
        world = runner.world
        self.status = world.status
        self.ticks = runner.ticks
        self.snapshots = list(runner.snapshots)
        self.final = world.snapshot()
        self.fault = runner.fault
        self.stopped_reason = runner.stopped_reason
        self.output = list(world.output)
        self.timeline = list(world.timeline)
        self.minerals_collected = world.minerals_collected()
        self.objective_met = None

    def to_dict(self):
        return {
            'status': self.status,
            'ticks': self.ticks,
            'final': self.final,
            'fault': self.fault,
            'stopped_reason': self.stopped_reason,
            'minerals_collected': self.minerals_collected,
            'objective_met': self.objective_met,
            'output': self.output,
            'snapshots': self.snapshots,
            'timeline': [frame.to_dict() for frame in self.timeline],
        }


class TickRunner:
    """Invokes the routine once per tick and publishes a snapshot after each.

    Stops when the rover leaves RUNNING, on ``stop()``, or after
    ``max_ticks``. A failing tick faults the rover and halts the loop; the
    exception never leaves the runner.
    """

    def __init__(self, routine, world, settings=None, on_snapshot=None, max_ticks=None):
        self.routine = routine
        self.world = world
        self.settings = settings or world.settings or SimulationSettings()
        self.max_ticks = max_ticks if max_ticks is not None else self.settings.max_ticks
        self.api = RoverApi(world)
        self.memory = {}
        self.memory_accessor = DynamicObject(self.memory)
        self.context = MissionContext(self.api, self.memory)

        self.ticks = 0
        self.snapshots = []
        self.latest_snapshot = None
        self.fault = None
        self.stopped = False
        self._listeners = [on_snapshot] if on_snapshot else []
        self._scheduler = None
        self._pending = None

    @property
    def running(self):
        return (not self.stopped and self.world.rover.running
                and (not self.max_ticks or self.ticks < self.max_ticks))

    @property
    def stopped_reason(self):
        if self.fault is not None:
            return 'fault'
        if not self.world.rover.running:
            return 'terminal'
        if self.stopped:
            return 'stopped'
        if self.max_ticks and self.ticks >= self.max_ticks:
            return 'max_ticks'
        return None

    def _refresh_context(self):
        rover = self.world.rover
        data = rover.snapshot()
        data['sensors'] = sensor_reading(self.world.map, rover.x, rover.z, rover.direction)
        self.context.set('rover', data)
        if not isinstance(self.context.data.get('memory'), dict):
            self.context.set('memory', self.memory)

    def _apply_output(self):
        """Carry out an action the routine left in ``context.output``."""
        output = self.context.get('output')
        if not isinstance(output, DynamicObject):
            return
        action = str(output.get('action')).upper()
        if action == 'MOVE':
            self.api.Move()
        elif action == 'TURN':
            self.api.Turn(output.get('param'))
        output.set('action', 'WAIT')

    def _publish(self):
        snapshot = self.world.snapshot()
        self.latest_snapshot = dict(snapshot)
        self.snapshots.append(snapshot)
        for listener in self._listeners:
            listener(dict(snapshot))
        return snapshot

    def tick(self):
        """Run one routine invocation; returns the published snapshot."""
        if not self.running:
            return None
        self._refresh_context()
        try:
            self.routine(self.context, self.api, memory=self.memory_accessor,
                         step_limit=self.settings.routine_step_limit)
            self._apply_output()
        except Exception as e:
            self.fault = f"{type(e).__name__}: {e}"
            self.world.fault(self.fault)
        self.ticks += 1
        return self._publish()

    def run(self):
        """Tick until the loop stops; returns a RunResult."""
        while self.running:
            self.tick()
        logger.info("Run finished after %s ticks: %s", self.ticks, self.world.status)
        return RunResult(self)

    def start(self, scheduler):
        """Tick on the scheduler every ``tick_interval`` seconds."""
        self._scheduler = scheduler
        self._pending = scheduler.call_later(0, self._scheduled_tick)

    def _scheduled_tick(self):
        self._pending = None
        self.tick()
        if self.running:
            self._pending = self._scheduler.call_later(self.settings.tick_interval, self._scheduled_tick)

    def stop(self):
        """Idempotent; cancels the pending scheduled tick."""
        self.stopped = True
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
