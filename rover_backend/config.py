"""Configuration settings for the Flask application."""
import os
from dotenv import load_dotenv

load_dotenv()

class Config:
    """Base configuration."""
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        os.environ.get('SQLALCHEMY_DATABASE_URI') or \
        'sqlite:///rover_missions.db'  # Use SQLite for development

    # Mission data directory (None = bundled rover_backend/mission_data)
    MISSION_DATA_DIR = os.environ.get('MISSION_DATA_DIR')

    # Rover resources
    INITIAL_FUEL = 100
    INITIAL_HEALTH = 100
    FUEL_PER_MOVE = 1  # fuel consumed by each successful move
    COLLISION_DAMAGE = 10  # health lost when a move is denied
    DEFAULT_MINERAL_VALUE = 50  # score for a mineral without an explicit value
    DEFAULT_GRID_SIZE = 25

    # Time system: scheduler time is in seconds
    TICK_INTERVAL = 0.5  # seconds between routine invocations
    REPLAY_FRAME_INTERVAL = 0.25  # seconds between replayed frames
    DAMAGE_FLASH_DURATION = 0.3  # seconds before a collision flash reverts

    # Execution limits
    MAX_TICKS = 500  # server-side runs stop after this many ticks
    ROUTINE_STEP_LIMIT = 10000  # interpreter operations per routine invocation

class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True

class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False

class TestingConfig(Config):
    """Testing configuration."""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    MAX_TICKS = 50

config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}


class SimulationSettings:
    """Simulation constants lifted out of a config object.

    The core (world, runner, replay) reads these instead of Flask's config so
    it can run outside an application context.
    """

    FIELDS = (
        'INITIAL_FUEL', 'INITIAL_HEALTH', 'FUEL_PER_MOVE', 'COLLISION_DAMAGE',
        'DEFAULT_MINERAL_VALUE', 'DEFAULT_GRID_SIZE', 'TICK_INTERVAL',
        'REPLAY_FRAME_INTERVAL', 'DAMAGE_FLASH_DURATION', 'MAX_TICKS',
        'ROUTINE_STEP_LIMIT',
    )

    def __init__(self, **overrides):
        for name in self.FIELDS:
            setattr(self, name.lower(), getattr(Config, name))
        for key, value in overrides.items():
            if key.upper() not in self.FIELDS:
                raise TypeError(f"Unknown simulation setting: {key}")
            setattr(self, key.lower(), value)

    @classmethod
    def from_config(cls, app_config):
        """Build settings from a Flask config mapping or a Config class."""
        overrides = {}
        for name in cls.FIELDS:
            if hasattr(app_config, 'get'):
                value = app_config.get(name)
            else:
                value = getattr(app_config, name, None)
            if value is not None:
                overrides[name] = value
        return cls(**overrides)
