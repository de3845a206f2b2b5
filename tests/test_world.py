import pytest

from rover_backend.accessor import DynamicObject
from rover_backend.config import SimulationSettings
from rover_backend.errors import MapDataError, RuntimeFault
from rover_backend.world import (
    BOUNDARY, COLLECT, COLLISION, EMPTY, FUEL_DEPLETED, HULL_BREACH, MINERAL, MOVE,
    RUNNING, SCAN, START, TURN, RoverApi, TimelineFrame, World, WorldMap,
)

from tests.conftest import make_world


def events(world):
    return [frame.event for frame in world.timeline]


def test_initial_state(open_map):
    world = make_world(open_map)
    assert world.snapshot() == {
        'x': 5, 'z': 5, 'direction': 'north', 'fuel': 100, 'health': 100,
        'score': 0, 'steps': 0, 'status': RUNNING,
    }
    assert events(world) == [START]


def test_move_spends_fuel(open_map):
    world = make_world(open_map)
    assert world.move() is True
    assert (world.rover.x, world.rover.z) == (5, 4)
    assert world.rover.fuel == 99
    assert world.rover.steps == 1
    assert events(world) == [START, MOVE]


def test_boundary_collision_costs_health():
    world = make_world({'gridSize': 3, 'roverStart': {'x': 0, 'z': 0}})
    assert world.move() is False
    assert (world.rover.x, world.rover.z) == (0, 0)
    assert world.rover.health == 90
    assert world.rover.fuel == 100
    assert world.rover.steps == 0
    assert events(world) == [START, COLLISION]


def test_obstacle_collision():
    world = make_world({'gridSize': 3, 'roverStart': {'x': 1, 'z': 2},
                        'obstacles': [{'x': 1, 'z': 1}]})
    world.move()
    assert world.rover.z == 2
    assert world.rover.health == 90


def test_collected_mineral_scans_empty():
    world = make_world({'gridSize': 3, 'roverStart': {'x': 0, 'z': 1},
                        'minerals': [{'x': 0, 'z': 0}]})
    assert world.scan('front') == MINERAL
    world.move()
    assert world.rover.score == 50
    assert world.map.minerals[0].collected
    assert events(world)[-1] == COLLECT

    world.turn('south')
    world.move()
    world.turn('north')
    assert world.scan('front') == EMPTY
    assert world.map.cell(0, 0) == EMPTY


def test_mineral_value_from_map():
    world = make_world({'gridSize': 3, 'roverStart': {'x': 0, 'z': 1},
                        'minerals': [{'x': 0, 'z': 0, 'value': 120}]})
    world.move()
    assert world.rover.score == 120


def test_halts_exactly_at_zero_fuel(open_map):
    world = make_world(open_map, initial_fuel=2)
    world.move()
    world.move()
    assert world.status == FUEL_DEPLETED
    assert world.rover.fuel == 0
    timeline = len(world.timeline)
    assert world.move() is False
    assert len(world.timeline) == timeline


def test_halts_exactly_at_zero_health():
    world = make_world({'gridSize': 2, 'roverStart': {'x': 0, 'z': 0}}, initial_health=20)
    world.move()
    world.move()
    assert world.status == HULL_BREACH
    assert world.rover.health == 0


def test_hull_breach_wins_tie(open_map):
    world = make_world(open_map, initial_fuel=0, initial_health=0)
    assert world.status == HULL_BREACH
    assert make_world(open_map, initial_fuel=0).status == FUEL_DEPLETED


def test_terminal_state_ignores_transitions(open_map):
    world = make_world(open_map, initial_fuel=1)
    world.move()
    before = world.snapshot()
    world.turn('east')
    world.scan()
    world.fault('late')
    assert world.snapshot() == before


def test_turn():
    world = make_world({'gridSize': 3})
    assert world.turn('left') == 'west'
    assert world.turn('right') == 'north'
    assert world.turn('SOUTH') == 'south'
    assert events(world) == [START, TURN, TURN, TURN]
    with pytest.raises(RuntimeFault):
        world.turn('up')


def test_scan_records_event_and_returns_all_sensors():
    world = make_world({'gridSize': 3, 'roverStart': {'x': 0, 'z': 0}})
    reading = world.scan()
    assert reading == {'front': BOUNDARY, 'far': BOUNDARY, 'left': BOUNDARY, 'right': EMPTY}
    assert events(world) == [START, SCAN]
    with pytest.raises(RuntimeFault):
        world.scan('up')


@pytest.mark.parametrize('data', [
    {'gridSize': 0},
    {'gridSize': 'big'},
    {'gridSize': 5, 'obstacles': [{'x': 5, 'z': 0}]},
    {'gridSize': 5, 'minerals': [{'x': 0, 'z': -1}]},
    {'gridSize': 5, 'minerals': [{'x': 0, 'z': 0, 'value': None}]},
    {'gridSize': 5, 'minerals': [{'x': 0, 'z': 0, 'value': 'lots'}]},
    {'gridSize': 5, 'minerals': [{'x': 0, 'z': 0, 'value': True}]},
    {'gridSize': 5, 'obstacles': [{'x': 0}]},
    {'gridSize': 5, 'roverStart': {'x': 1, 'z': 1}, 'obstacles': [{'x': 1, 'z': 1}]},
    [],
])
def test_invalid_maps(data):
    with pytest.raises(MapDataError):
        WorldMap.from_dict(data)


def test_map_defaults_and_round_trip_shape():
    world_map = WorldMap.from_dict({'minerals': [{'x': 1, 'z': 1}]})
    assert world_map.grid_size == SimulationSettings().default_grid_size
    assert world_map.minerals[0].value == 50
    assert world_map.to_dict()['minerals'] == [{'x': 1, 'z': 1, 'value': 50, 'collected': False}]


def test_world_does_not_mutate_its_map():
    world_map = WorldMap.from_dict({'gridSize': 3, 'roverStart': {'x': 0, 'z': 1},
                                    'minerals': [{'x': 0, 'z': 0}]})
    World(world_map).move()
    assert not world_map.minerals[0].collected


def test_timeline_frame_parsing():
    frame = TimelineFrame.from_dict({'roverState': {'x': 1, 'z': 2, 'fuel': 9}, 'event': 'MOVE'})
    assert frame.state['fuel'] == 9
    assert frame.state['status'] == RUNNING
    assert frame.to_dict()['event'] == 'MOVE'
    with pytest.raises(MapDataError):
        TimelineFrame.from_dict({'roverState': {}, 'event': 'TELEPORT'})
    with pytest.raises(MapDataError):
        TimelineFrame.from_dict({'event': 'MOVE'})


def test_rover_api_whitelist(open_map):
    world = make_world(open_map)
    api = RoverApi(world)
    assert isinstance(api.call('Scan', []), DynamicObject)
    api.call('Write', ['hello', 2.0, True])
    assert world.output == ['hello 2 true']
    with pytest.raises(RuntimeFault):
        api.call('Teleport', [])
    with pytest.raises(RuntimeFault):
        api.call('Move', [1])


def test_failed_move_leaves_world_untouched():
    world = make_world({'gridSize': 3, 'roverStart': {'x': 0, 'z': 1},
                        'minerals': [{'x': 0, 'z': 0}]})
    world.map.minerals[0].value = None
    before = world.snapshot()
    with pytest.raises(TypeError):
        RoverApi(world).call('Move', [])
    assert world.snapshot() == before
    assert not world.map.minerals[0].collected
    assert events(world) == [START]


def test_lenient_map_keeps_off_grid_cells():
    data = {'gridSize': 10, 'minerals': [{'x': 0, 'z': -1}], 'roverStart': {'x': 0, 'z': 0}}
    with pytest.raises(MapDataError):
        WorldMap.from_dict(data)
    world_map = WorldMap.from_dict(data, strict=False)
    assert [(m.x, m.z) for m in world_map.minerals] == [(0, -1)]
    with pytest.raises(MapDataError):
        WorldMap.from_dict({'gridSize': 10, 'minerals': [{'x': 0, 'z': 0, 'value': None}]}, strict=False)
