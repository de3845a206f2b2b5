"""API blueprints for the rover mission backend."""
from rover_backend.api.missions import missions_bp
from rover_backend.api.runs import runs_bp
from rover_backend.api.scripts import scripts_bp
from rover_backend.api.watch import watch_bp

__all__ = ['missions_bp', 'runs_bp', 'scripts_bp', 'watch_bp']
