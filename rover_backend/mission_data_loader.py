"""Mission data loader for the bundled mission catalogue."""
import json
from pathlib import Path

from rover_backend.errors import MapDataError
from rover_backend.world import WorldMap

MODES = ('SIMULATION', 'DEPLOY')


class MissionDataLoader:
    """Loads and caches mission data from JSON files."""

    def __init__(self, data_dir=None):
        """Initialize the data loader."""
        if data_dir is None:
            self.data_dir = Path(__file__).parent / 'mission_data'
        else:
            self.data_dir = Path(data_dir)

        self._missions = None

    def load_missions(self):
        """Load the mission catalogue."""
        if self._missions is None:
            file_path = self.data_dir / 'missions.json'
            if file_path.exists():
                with open(file_path, 'r') as f:
                    data = json.load(f)
                    self._missions = list(data.get('missions', []))
            else:
                self._missions = []
        return self._missions

    def get_mission_by_id(self, mission_id):
        """Get mission data by ID."""
        for mission in self.load_missions():
            if mission['id'] == mission_id:
                return mission
        return None

    def list_missions(self):
        """Mission summaries (no maps)."""
        return [
            {
                'id': m['id'],
                'name': m.get('name', m['id']),
                'briefing': m.get('briefing', ''),
                'objectives': m.get('objectives', {}),
                'modes': sorted(m.get('maps', {})),
            }
            for m in self.load_missions()
        ]

    def get_map_data(self, mission_id, mode='SIMULATION'):
        """Raw map data for a mission; unknown modes fall back to SIMULATION."""
        mission = self.get_mission_by_id(mission_id)
        if mission is None:
            return None
        mode = 'DEPLOY' if str(mode).upper() == 'DEPLOY' else 'SIMULATION'
        maps = mission.get('maps', {})
        return maps.get(mode) or maps.get('SIMULATION')

    def get_world_map(self, mission_id, mode='SIMULATION', settings=None):
        """Parsed WorldMap for a mission."""
        data = self.get_map_data(mission_id, mode)
        if data is None:
            raise MapDataError(f"Unknown mission {mission_id!r}")
        return WorldMap.from_dict(data, settings)

    def validate_data(self):
        """Validate loaded data structure."""
        errors = []

        missions = self.load_missions()
        if not missions:
            errors.append("No missions loaded")

        mission_ids = [m.get('id') for m in missions]
        if len(mission_ids) != len(set(mission_ids)):
            errors.append("Duplicate mission IDs found")

        for mission in missions:
            maps = mission.get('maps', {})
            if 'SIMULATION' not in maps:
                errors.append(f"Mission {mission.get('id')} has no SIMULATION map")
            for mode, data in maps.items():
                if mode not in MODES:
                    errors.append(f"Mission {mission.get('id')} has unknown mode {mode}")
                    continue
                try:
                    WorldMap.from_dict(data)
                except MapDataError as e:
                    errors.append(f"Mission {mission.get('id')} {mode}: {e}")

        return errors

# Global instance
_mission_data_loader = None

def get_mission_data_loader(data_dir=None):
    """Get or create the global mission data loader instance."""
    global _mission_data_loader
    if _mission_data_loader is None:
        _mission_data_loader = MissionDataLoader(data_dir)
    return _mission_data_loader
