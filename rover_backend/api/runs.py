"""Mission run API endpoints."""
from datetime import datetime
from flask import Blueprint, request, jsonify, current_app
from rover_backend.config import SimulationSettings
from rover_backend.errors import GenerationError, MapDataError, ScriptError, StructuralError
from rover_backend.mission_data_loader import get_mission_data_loader
from rover_backend.models import db, MissionRun
from rover_backend.scripting import ScriptExecutor

runs_bp = Blueprint('runs', __name__)

@runs_bp.route('', methods=['POST'])
def create_run():
    """Run a script against a mission map and store the result."""
    data = request.get_json(silent=True)

    if not data or not data.get('script'):
        return jsonify({'error': 'Missing script'}), 400
    if not data.get('mission_id'):
        return jsonify({'error': 'Missing mission_id'}), 400

    mission_id = data['mission_id']
    mode = str(data.get('mode', 'SIMULATION')).upper()
    loader = get_mission_data_loader()
    mission = loader.get_mission_by_id(mission_id)
    if mission is None:
        return jsonify({'error': f'Unknown mission {mission_id}'}), 404

    settings = SimulationSettings.from_config(current_app.config)
    started_at = datetime.utcnow()
    try:
        world_map = loader.get_world_map(mission_id, mode, settings)
        executor = ScriptExecutor(mission_id, settings)
        result = executor.execute(data['script'], world_map, objectives=mission.get('objectives'))
    except (StructuralError, GenerationError) as e:
        current_app.logger.warning(f"Run rejected for mission {mission_id}: {e}")
        return jsonify(e.to_dict()), 400
    except (ScriptError, MapDataError) as e:
        return jsonify({'error': str(e)}), 400

    run = MissionRun(
        mission_id=mission_id,
        mode=mode,
        username=data.get('username'),
        source=data['script'],
        status=result.status,
        final_state=result.final,
        fault=result.fault,
        score=result.final['score'],
        ticks=result.ticks,
        objective_met=result.objective_met,
        output=result.output,
        started_at=started_at,
        completed_at=datetime.utcnow()
    )
    run.record_timeline(result.timeline)

    try:
        db.session.add(run)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to store run: {e}")
        return jsonify({'error': 'Failed to store run'}), 500

    return jsonify({
        'run': run.to_dict(),
        'result': {
            'stopped_reason': result.stopped_reason,
            'minerals_collected': result.minerals_collected,
            'snapshots': result.snapshots
        }
    }), 201

@runs_bp.route('/<int:run_id>', methods=['GET'])
def get_run(run_id):
    """Get a stored run."""
    run = db.get_or_404(MissionRun, run_id)
    return jsonify({'run': run.to_dict()})

@runs_bp.route('', methods=['GET'])
def list_runs():
    """Recent runs, optionally filtered by mission."""
    query = MissionRun.query
    mission_id = request.args.get('mission_id')
    if mission_id:
        query = query.filter_by(mission_id=mission_id)
    limit = request.args.get('limit', 20, type=int)
    runs = query.order_by(MissionRun.started_at.desc()).limit(limit).all()
    return jsonify({'runs': [run.to_dict() for run in runs]})
