"""Scripting API endpoints."""
from flask import Blueprint, request, jsonify, current_app
from rover_backend.errors import GenerationError, ScriptError, StructuralError
from rover_backend.scripting import ScriptExecutor

scripts_bp = Blueprint('scripts', __name__)

@scripts_bp.route('/validate', methods=['POST'])
def validate_script():
    """Validate script syntax."""
    data = request.get_json(silent=True)

    if not data or not data.get('script'):
        return jsonify({'error': 'Missing script'}), 400

    executor = ScriptExecutor(None)  # No mission needed for validation
    try:
        executor.validate(data['script'])
    except StructuralError as e:
        return jsonify({
            'valid': False,
            'error': str(e),
            'index': e.index
        }), 400
    except ScriptError as e:
        return jsonify({'valid': False, 'error': str(e)}), 400

    return jsonify({
        'valid': True,
        'anomalies': [a.to_dict() for a in executor.anomalies]
    })

@scripts_bp.route('/compile', methods=['POST'])
def compile_script():
    """Compile a script and return the outline of the routine."""
    data = request.get_json(silent=True)

    if not data or not data.get('script'):
        return jsonify({'error': 'Missing script'}), 400

    try:
        routine = ScriptExecutor(None).compile(data['script'])
    except (StructuralError, GenerationError) as e:
        current_app.logger.warning(f"Compilation failed: {e}")
        return jsonify(e.to_dict()), 400
    except ScriptError as e:
        return jsonify({'error': str(e)}), 400

    return jsonify({'success': True, 'routine': routine.outline()})
