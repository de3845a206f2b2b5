"""Mission catalogue API endpoints."""
from flask import Blueprint, jsonify
from rover_backend.mission_data_loader import get_mission_data_loader, MODES

missions_bp = Blueprint('missions', __name__)

@missions_bp.route('', methods=['GET'])
def list_missions():
    """List available missions."""
    return jsonify({'missions': get_mission_data_loader().list_missions()})

@missions_bp.route('/<mission_id>', methods=['GET'])
def get_mission(mission_id):
    """Mission details without maps."""
    loader = get_mission_data_loader()
    for mission in loader.list_missions():
        if mission['id'] == mission_id:
            return jsonify({'mission': mission})
    return jsonify({'error': f'Unknown mission {mission_id}'}), 404

@missions_bp.route('/<mission_id>/map/<mode>', methods=['GET'])
def get_mission_map(mission_id, mode):
    """World map for a mission in SIMULATION or DEPLOY mode."""
    mode = mode.upper()
    if mode not in MODES:
        return jsonify({'error': f'Unknown mode {mode}'}), 400

    map_data = get_mission_data_loader().get_map_data(mission_id, mode)
    if map_data is None:
        return jsonify({'error': f'Unknown mission {mission_id}'}), 404

    return jsonify({'mission_id': mission_id, 'mode': mode, 'map': map_data})
