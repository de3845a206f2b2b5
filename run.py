#!/usr/bin/env python3
"""Run script for the rover mission server."""
import os
import sys

# Add package root to path
sys.path.insert(0, os.path.dirname(__file__))

from rover_backend.app import create_app

if __name__ == '__main__':
    app = create_app('development')

    # Initialize database
    with app.app_context():
        from rover_backend.models import db
        db.create_all()
        print("Database initialized.")

    port = int(os.environ.get('PORT', 5001))
    print("Starting rover mission server...")
    print(f"API available at http://localhost:{port}/api/missions")
    app.run(debug=True, host='0.0.0.0', port=port)
