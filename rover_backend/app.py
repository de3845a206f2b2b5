"""Flask application entry point."""
from flask import Flask
from flask_cors import CORS
from flask_migrate import Migrate
import os

from rover_backend.config import config
from rover_backend.models import db
from rover_backend.mission_data_loader import get_mission_data_loader

def create_app(config_name=None):
    """Create and configure Flask application."""
    app = Flask(__name__)

    # Load configuration
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'development')
    app.config.from_object(config.get(config_name, config['default']))

    # Initialize extensions
    db.init_app(app)
    CORS(app)
    Migrate(app, db)

    # Initialize mission data loader
    with app.app_context():
        data_loader = get_mission_data_loader(app.config.get('MISSION_DATA_DIR'))
        errors = data_loader.validate_data()
        if errors:
            app.logger.warning(f"Mission data validation warnings: {errors}")

    # Register blueprints
    from rover_backend.api import missions_bp, runs_bp, scripts_bp, watch_bp
    app.register_blueprint(missions_bp, url_prefix='/api/missions')
    app.register_blueprint(scripts_bp, url_prefix='/api/scripts')
    app.register_blueprint(runs_bp, url_prefix='/api/runs')
    app.register_blueprint(watch_bp, url_prefix='/api/watch')

    # Error handlers
    @app.errorhandler(404)
    def not_found(error):
        return {'error': 'Not found'}, 404

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        return {'error': 'Internal server error'}, 500

    return app

if __name__ == '__main__':
    app = create_app()
    port = int(os.environ.get('PORT', 5001))
    app.run(debug=True, host='0.0.0.0', port=port)
