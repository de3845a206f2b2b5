import json

import pytest

from rover_backend.errors import MapDataError
from rover_backend.mission_data_loader import MissionDataLoader


def test_bundled_missions_are_valid():
    loader = MissionDataLoader()
    assert loader.validate_data() == []
    mission = loader.get_mission_by_id('M1')
    assert mission['name'] == 'First Cut'
    assert mission['objectives'] == {'minMinerals': 5}


def test_map_by_mode():
    loader = MissionDataLoader()
    assert loader.get_map_data('M1', 'deploy')['gridSize'] == 25
    assert loader.get_map_data('M1', 'SIMULATION')['gridSize'] == 10
    # missions without a DEPLOY map fall back to SIMULATION
    assert loader.get_map_data('M2', 'DEPLOY') == loader.get_map_data('M2', 'SIMULATION')
    assert loader.get_map_data('M9') is None
    with pytest.raises(MapDataError):
        loader.get_world_map('M9')


def test_list_missions():
    summaries = MissionDataLoader().list_missions()
    assert summaries[0]['id'] == 'M1'
    assert summaries[0]['modes'] == ['DEPLOY', 'SIMULATION']
    assert 'maps' not in summaries[0]


def test_validate_reports_bad_data(tmp_path):
    bad = {'missions': [
        {'id': 'X', 'maps': {'SIMULATION': {'gridSize': 2, 'obstacles': [{'x': 4, 'z': 0}]}}},
        {'id': 'X', 'maps': {'ORBIT': {}}},
    ]}
    (tmp_path / 'missions.json').write_text(json.dumps(bad))
    errors = MissionDataLoader(tmp_path).validate_data()
    assert "Duplicate mission IDs found" in errors
    assert any('outside' in e for e in errors)
    assert any('unknown mode ORBIT' in e for e in errors)
    assert any('no SIMULATION map' in e for e in errors)


def test_missing_file(tmp_path):
    loader = MissionDataLoader(tmp_path)
    assert loader.load_missions() == []
    assert loader.validate_data() == ["No missions loaded"]
