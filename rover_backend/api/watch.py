"""Watch mode API endpoints."""
from flask import Blueprint, request, jsonify, current_app
from rover_backend.config import SimulationSettings
from rover_backend.errors import MapDataError
from rover_backend.mission_data_loader import get_mission_data_loader
from rover_backend.models import db, MissionRun, TimelineFrameRecord
from rover_backend.replay import ReplayPlayer
from rover_backend.world import WorldMap

watch_bp = Blueprint('watch', __name__)

def _run_map_data(run):
    return get_mission_data_loader().get_map_data(run.mission_id, run.mode)

@watch_bp.route('/start', methods=['POST'])
def start_watch_mode():
    """Start watch mode with a recorded timeline."""
    data = request.get_json(silent=True)

    if not data or not data.get('run_id'):
        return jsonify({'error': 'Missing run_id'}), 400

    run_id = data['run_id']
    run = db.get_or_404(MissionRun, run_id)

    # Get timeline
    frames = TimelineFrameRecord.query.filter_by(run_id=run_id).order_by(TimelineFrameRecord.frame_index).all()

    return jsonify({
        'run': run.to_dict(),
        'map': _run_map_data(run),
        'timeline': [frame.to_dict() for frame in frames]
    })

@watch_bp.route('/replay', methods=['POST'])
def replay_timeline():
    """Replay frames (inline or from a stored run) and return the snapshots."""
    data = request.get_json(silent=True)

    if not data:
        return jsonify({'error': 'Missing frames or run_id'}), 400

    settings = SimulationSettings.from_config(current_app.config)
    try:
        if data.get('run_id'):
            run = db.get_or_404(MissionRun, data['run_id'])
            frames = run.timeline()
            map_data = _run_map_data(run)
        elif 'frames' in data:
            frames = data['frames']
            map_data = data.get('map')
            if not isinstance(frames, list):
                return jsonify({'error': 'frames must be a list'}), 400
        else:
            return jsonify({'error': 'Missing frames or run_id'}), 400

        if map_data is None:
            return jsonify({'error': 'Missing map'}), 400
        world_map = WorldMap.from_dict(map_data, settings, strict=False)
        player = ReplayPlayer(frames, world_map, settings=settings)
        snapshots = player.play_all()
    except MapDataError as e:
        return jsonify({'error': str(e)}), 400

    return jsonify({
        'snapshots': snapshots,
        'final': snapshots[-1] if snapshots else None,
        'presentation': player.presentation.to_dict()
    })
