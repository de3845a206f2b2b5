"""Timeline replay: re-presents a recorded run without re-deriving physics."""
import logging

from rover_backend.config import SimulationSettings
from rover_backend.scheduler import TaskScheduler
from rover_backend.world import COLLECT, COLLISION, SNAPSHOT_FIELDS, TimelineFrame, WorldMap

logger = logging.getLogger(__name__)


class Presentation:
    """What a renderer would show: rover pose, visible minerals, damage flash.

    Updated only by the replay player; renderers read it.
    """

    def __init__(self, world_map):
        x, z = world_map.rover_start
        self.rover = {'x': x, 'z': z, 'direction': 'north'}
        self.visible_minerals = [(m.x, m.z) for m in world_map.minerals if not m.collected]
        self.damage_flash = False
        self.flash_count = 0

    def move_rover(self, x, z, direction):
        self.rover = {'x': x, 'z': z, 'direction': direction}

    def hide_mineral(self, x, z):
        if (x, z) in self.visible_minerals:
            self.visible_minerals.remove((x, z))
            return True
        return False

    def flash_damage(self):
        self.damage_flash = True
        self.flash_count += 1

    def clear_damage_flash(self):
        self.damage_flash = False

    def to_dict(self):
        return {
            'rover': dict(self.rover),
            'visible_minerals': [{'x': x, 'z': z} for x, z in self.visible_minerals],
            'damage_flash': self.damage_flash,
        }


class ReplayPlayer:
    """Plays frames one per ``replay_frame_interval`` on a scheduler.

    Frames are trusted verbatim; each published snapshot is the frame's
    rover state in the tick runner's snapshot shape.
    ``world_map`` may be a raw map dict; it is read without grid checks.
    """

    def __init__(self, frames, world_map, scheduler=None, settings=None,
                 presentation=None, on_snapshot=None):
        self.frames = tuple(f if isinstance(f, TimelineFrame) else TimelineFrame.from_dict(f)
                            for f in frames)
        self.scheduler = scheduler
        self.settings = settings or SimulationSettings()
        if isinstance(world_map, dict):
            world_map = WorldMap.from_dict(world_map, self.settings, strict=False)
        self.world_map = world_map
        self.presentation = presentation or Presentation(world_map)
        self.index = 0
        self.snapshots = []
        self.latest_snapshot = None
        self.stopped = False
        self._listeners = [on_snapshot] if on_snapshot else []
        self._frame_task = None
        self._flash_task = None

    @property
    def finished(self):
        return self.index >= len(self.frames)

    def start(self):
        if self.scheduler is None:
            self.scheduler = TaskScheduler()
        self._frame_task = self.scheduler.call_later(0, self._play_next)

    def play_all(self):
        """Play every frame on a private scheduler; returns the snapshots."""
        self.scheduler = TaskScheduler()
        self.start()
        self.scheduler.run_until_idle()
        return list(self.snapshots)

    def _play_next(self):
        self._frame_task = None
        if self.stopped or self.finished:
            return
        frame = self.frames[self.index]
        self.index += 1
        self._apply(frame)
        if not self.finished:
            self._frame_task = self.scheduler.call_later(
                self.settings.replay_frame_interval, self._play_next)

    def _apply(self, frame):
        state = frame.state
        self.presentation.move_rover(state['x'], state['z'], state['direction'])
        if frame.event == COLLECT:
            self.presentation.hide_mineral(state['x'], state['z'])
        elif frame.event == COLLISION:
            self._flash()
        snapshot = {name: state[name] for name in SNAPSHOT_FIELDS}
        self.latest_snapshot = dict(snapshot)
        self.snapshots.append(snapshot)
        for listener in self._listeners:
            listener(dict(snapshot))

    def _flash(self):
        if self._flash_task is not None:
            self._flash_task.cancel()
        self.presentation.flash_damage()
        self._flash_task = self.scheduler.call_later(
            self.settings.damage_flash_duration, self._end_flash)

    def _end_flash(self):
        self._flash_task = None
        self.presentation.clear_damage_flash()

    def stop(self):
        """Idempotent; cancels the pending frame and any flash revert."""
        if self.stopped:
            return
        self.stopped = True
        for task in (self._frame_task, self._flash_task):
            if task is not None:
                task.cancel()
        self._frame_task = self._flash_task = None
        self.presentation.clear_damage_flash()
        logger.debug("Replay stopped at frame %s/%s", self.index, len(self.frames))
