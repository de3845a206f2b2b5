"""Grid world, rover state machine and the rover API bridge."""
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Set, Tuple

from rover_backend.accessor import UNDEFINED, DynamicObject, check_arguments
from rover_backend.config import SimulationSettings
from rover_backend.errors import MapDataError, RuntimeFault

logger = logging.getLogger(__name__)

# Rover status
RUNNING = 'RUNNING'
FAULT = 'FAULT'
HULL_BREACH = 'HULL_BREACH'
FUEL_DEPLETED = 'FUEL_DEPLETED'
STATUSES = (RUNNING, FAULT, HULL_BREACH, FUEL_DEPLETED)

# Timeline events
START = 'START'
MOVE = 'MOVE'
TURN = 'TURN'
COLLECT = 'COLLECT'
COLLISION = 'COLLISION'
SCAN = 'SCAN'
EVENTS = (START, MOVE, TURN, COLLECT, COLLISION, SCAN)

# Sensor readings
EMPTY = 'EMPTY'
OBSTACLE = 'OBSTACLE'
MINERAL = 'MINERAL'
BOUNDARY = 'BOUNDARY'
SENSORS = ('front', 'far', 'left', 'right')

# Compass order, clockwise
DIRECTIONS = ('north', 'east', 'south', 'west')
OFFSETS = {
    'north': (0, -1),
    'east': (1, 0),
    'south': (0, 1),
    'west': (-1, 0),
}

SNAPSHOT_FIELDS = ('x', 'z', 'direction', 'fuel', 'health', 'score', 'steps', 'status')


def _coord(entry, what):
    try:
        return int(entry['x']), int(entry['z'])
    except (KeyError, TypeError, ValueError) as e:
        raise MapDataError(f"{what} needs integer 'x' and 'z': {entry!r}") from e


@dataclass
class Mineral:
    x: int
    z: int
    value: int
    collected: bool = False

    def to_dict(self):
        return {'x': self.x, 'z': self.z, 'value': self.value, 'collected': self.collected}


@dataclass
class WorldMap:
    grid_size: int
    obstacles: Set[Tuple[int, int]] = field(default_factory=set)
    minerals: List[Mineral] = field(default_factory=list)
    rover_start: Tuple[int, int] = (0, 0)
    base_station: Optional[Tuple[int, int]] = None

    @classmethod
    def from_dict(cls, data, settings=None, strict=True):
        """Build a map from the external ``{gridSize, obstacles, ...}`` shape.

        ``strict=False`` keeps coordinates outside the grid (replay maps are
        presented as recorded, never simulated).
        """
        settings = settings or SimulationSettings()
        if not isinstance(data, dict):
            raise MapDataError("Map data must be an object")
        grid_size = data.get('gridSize', settings.default_grid_size)
        if isinstance(grid_size, bool) or not isinstance(grid_size, int) or grid_size <= 0:
            raise MapDataError(f"gridSize must be a positive integer, got {grid_size!r}")

        world_map = cls(grid_size=grid_size)
        for obs in data.get('obstacles') or []:
            world_map.obstacles.add(_coord(obs, 'Obstacle'))
        for entry in data.get('minerals') or []:
            x, z = _coord(entry, 'Mineral')
            value = entry.get('value', settings.default_mineral_value)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise MapDataError(f"Mineral at {(x, z)} needs a numeric value, got {value!r}")
            world_map.minerals.append(Mineral(x, z, value, bool(entry.get('collected', False))))
        world_map.rover_start = _coord(data.get('roverStart') or {'x': 0, 'z': 0}, 'roverStart')
        if data.get('baseStation'):
            world_map.base_station = _coord(data['baseStation'], 'baseStation')
        if not strict:
            return world_map

        cells = [('roverStart', world_map.rover_start)]
        cells += [('obstacle', c) for c in world_map.obstacles]
        cells += [('mineral', (m.x, m.z)) for m in world_map.minerals]
        if world_map.base_station:
            cells.append(('baseStation', world_map.base_station))
        for what, cell in cells:
            if not world_map.in_bounds(*cell):
                raise MapDataError(f"{what} at {cell} is outside the {grid_size}x{grid_size} grid")
        if world_map.rover_start in world_map.obstacles:
            raise MapDataError(f"roverStart {world_map.rover_start} is on an obstacle")
        return world_map

    def to_dict(self):
        data = {
            'gridSize': self.grid_size,
            'obstacles': [{'x': x, 'z': z} for x, z in sorted(self.obstacles)],
            'minerals': [m.to_dict() for m in self.minerals],
            'roverStart': {'x': self.rover_start[0], 'z': self.rover_start[1]},
        }
        if self.base_station:
            data['baseStation'] = {'x': self.base_station[0], 'z': self.base_station[1]}
        return data

    def copy(self):
        return WorldMap(
            grid_size=self.grid_size,
            obstacles=set(self.obstacles),
            minerals=[Mineral(m.x, m.z, m.value, m.collected) for m in self.minerals],
            rover_start=self.rover_start,
            base_station=self.base_station,
        )

    def in_bounds(self, x, z):
        return 0 <= x < self.grid_size and 0 <= z < self.grid_size

    def mineral_at(self, x, z):
        """Uncollected mineral at a cell, or None."""
        for mineral in self.minerals:
            if not mineral.collected and mineral.x == x and mineral.z == z:
                return mineral
        return None

    def cell(self, x, z):
        """Semantic content of a cell as a sensor reading."""
        if not self.in_bounds(x, z):
            return BOUNDARY
        if (x, z) in self.obstacles:
            return OBSTACLE
        if self.mineral_at(x, z) is not None:
            return MINERAL
        return EMPTY


@dataclass
class RoverState:
    x: int
    z: int
    direction: str = 'north'
    fuel: float = 100
    health: float = 100
    score: float = 0
    steps: int = 0
    status: str = RUNNING

    @property
    def running(self):
        return self.status == RUNNING

    def snapshot(self):
        return {name: getattr(self, name) for name in SNAPSHOT_FIELDS}


@dataclass(frozen=True)
class TimelineFrame:
    rover_state: Tuple[Tuple[str, object], ...]
    event: str

    @classmethod
    def capture(cls, state, event):
        return cls(tuple(state.snapshot().items()), event)

    @classmethod
    def from_dict(cls, data):
        """Parse the external ``{roverState, event}`` shape."""
        if not isinstance(data, dict):
            raise MapDataError(f"Timeline frame must be an object: {data!r}")
        event = data.get('event')
        if event not in EVENTS:
            raise MapDataError(f"Unknown timeline event {event!r}")
        state = data.get('roverState')
        if not isinstance(state, dict):
            raise MapDataError("Timeline frame needs a roverState object")
        defaults = RoverState(0, 0).snapshot()
        merged = {name: state.get(name, defaults[name]) for name in SNAPSHOT_FIELDS}
        return cls(tuple(merged.items()), event)

    @property
    def state(self):
        return dict(self.rover_state)

    def to_dict(self):
        return {'roverState': self.state, 'event': self.event}


def sensor_reading(world_map, x, z, direction):
    """Fresh front/far/left/right reading for a pose."""
    dx, dz = OFFSETS[direction]
    idx = DIRECTIONS.index(direction)
    lx, lz = OFFSETS[DIRECTIONS[(idx - 1) % 4]]
    rx, rz = OFFSETS[DIRECTIONS[(idx + 1) % 4]]
    return {
        'front': world_map.cell(x + dx, z + dz),
        'far': world_map.cell(x + 2 * dx, z + 2 * dz),
        'left': world_map.cell(x + lx, z + lz),
        'right': world_map.cell(x + rx, z + rz),
    }


class World:
    """Owns the map and rover state; the only place state is mutated.

    Every transition records a timeline frame. Once the rover leaves
    RUNNING, all transitions are no-ops.
    """

    def __init__(self, world_map, settings=None):
        self.settings = settings or SimulationSettings()
        self.map = world_map.copy()
        x, z = self.map.rover_start
        self.rover = RoverState(
            x=x, z=z,
            fuel=self.settings.initial_fuel,
            health=self.settings.initial_health,
        )
        self._check_resources()
        self.timeline = [TimelineFrame.capture(self.rover, START)]
        self.output = []

    @property
    def status(self):
        return self.rover.status

    def snapshot(self):
        return self.rover.snapshot()

    def minerals_collected(self):
        return sum(1 for m in self.map.minerals if m.collected)

    def _record(self, event):
        self.timeline.append(TimelineFrame.capture(self.rover, event))

    def _check_resources(self):
        # Tie-break: hull breach wins when both hit zero in one transition
        if self.rover.health <= 0:
            self.rover.health = max(self.rover.health, 0)
            self.rover.status = HULL_BREACH
        elif self.rover.fuel <= 0:
            self.rover.fuel = max(self.rover.fuel, 0)
            self.rover.status = FUEL_DEPLETED

    def fault(self, reason):
        """Mark the run as faulted (routine failure). No-op once terminal."""
        if self.rover.running:
            self.rover.status = FAULT
            logger.warning("Rover faulted: %s", reason)

    def move(self):
        """Move one cell forward. Returns True if the rover moved."""
        rover = self.rover
        if not rover.running:
            return False
        dx, dz = OFFSETS[rover.direction]
        nx, nz = rover.x + dx, rover.z + dz
        if not self.map.in_bounds(nx, nz) or (nx, nz) in self.map.obstacles:
            rover.health -= self.settings.collision_damage
            self._check_resources()
            self._record(COLLISION)
            logger.debug("Collision at (%s, %s), health %s", nx, nz, rover.health)
            return False

        mineral = self.map.mineral_at(nx, nz)
        fuel = rover.fuel - self.settings.fuel_per_move
        score = rover.score + (mineral.value if mineral is not None else 0)

        rover.x, rover.z = nx, nz
        rover.steps += 1
        rover.fuel = fuel
        rover.score = score
        event = MOVE
        if mineral is not None:
            mineral.collected = True
            event = COLLECT
        self._check_resources()
        self._record(event)
        return True

    def turn(self, direction):
        """Face a cardinal direction, or rotate with 'left'/'right'."""
        rover = self.rover
        if not rover.running:
            return rover.direction
        literal = str(direction).lower()
        if literal in OFFSETS:
            rover.direction = literal
        elif literal in ('left', 'right'):
            idx = DIRECTIONS.index(rover.direction)
            rover.direction = DIRECTIONS[(idx + (1 if literal == 'right' else -1)) % 4]
        else:
            raise RuntimeFault(f"Unknown direction {direction!r}")
        self._record(TURN)
        return rover.direction

    def scan(self, sensor=None):
        """Fresh sensor reading; a single sensor's value when one is named."""
        rover = self.rover
        if sensor is not None and sensor is not UNDEFINED and str(sensor).lower() not in SENSORS:
            raise RuntimeFault(f"Unknown sensor {sensor!r}")
        reading = sensor_reading(self.map, rover.x, rover.z, rover.direction)
        if rover.running:
            self._record(SCAN)
        if sensor is None or sensor is UNDEFINED:
            return reading
        return reading[str(sensor).lower()]

    def write(self, text):
        self.output.append(text)
        logger.info("Rover output: %s", text)


def format_value(value):
    """Render a script value for Write output."""
    if isinstance(value, DynamicObject):
        return value.to_text()
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class RoverApi:
    """Whitelisted primitives a compiled routine may invoke.

    This is the only path from a script to the world.
    """

    PRIMITIVES = ('Move', 'Turn', 'Scan', 'Write')

    def __init__(self, world):
        self._world = world

    def has_primitive(self, name):
        return name in self.PRIMITIVES

    def call(self, name, args):
        if name not in self.PRIMITIVES:
            raise RuntimeFault(f"{name!r} is not a rover primitive")
        primitive = getattr(self, name)
        check_arguments(name, primitive, args)
        return primitive(*args)

    def Move(self):
        return self._world.move()

    def Turn(self, direction):
        return self._world.turn(direction)

    def Scan(self, sensor=None):
        reading = self._world.scan(sensor)
        if isinstance(reading, dict):
            return DynamicObject(reading)
        return reading

    def Write(self, *args):
        self._world.write(' '.join(format_value(arg) for arg in args))
