import pytest

from rover_backend.app import create_app
from rover_backend.config import SimulationSettings
from rover_backend.models import db
from rover_backend.runner import TickRunner
from rover_backend.compiler import compile_source
from rover_backend.world import World, WorldMap


@pytest.fixture
def app():
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def open_map():
    """10x10 map, rover in the middle, nothing else."""
    return {'gridSize': 10, 'roverStart': {'x': 5, 'z': 5}}


def make_world(map_data, **overrides):
    settings = SimulationSettings(**overrides)
    return World(WorldMap.from_dict(map_data, settings), settings)


def run_ticks(source, map_data, ticks=1, **overrides):
    """Compile ``source`` and run it for at most ``ticks`` ticks."""
    world = make_world(map_data, **overrides)
    runner = TickRunner(compile_source(source), world, max_ticks=ticks)
    runner.run()
    return runner
