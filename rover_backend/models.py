"""Database models for mission runs."""
from datetime import datetime
from flask_sqlalchemy import SQLAlchemy

from rover_backend.world import TimelineFrame

db = SQLAlchemy()

class MissionRun(db.Model):
    """A script executed against a mission map."""
    __tablename__ = 'mission_runs'

    id = db.Column(db.Integer, primary_key=True)
    mission_id = db.Column(db.String(32), nullable=False, index=True)
    mode = db.Column(db.String(20), nullable=False, default='SIMULATION')
    username = db.Column(db.String(80), nullable=True)  # Guest runs allowed
    source = db.Column(db.Text, nullable=False)
    status = db.Column(db.String(20), nullable=False)  # RUNNING, FAULT, HULL_BREACH, FUEL_DEPLETED
    final_state = db.Column(db.JSON, default=dict)  # Final rover snapshot
    fault = db.Column(db.Text, nullable=True)
    score = db.Column(db.Float, nullable=False, default=0, index=True)
    ticks = db.Column(db.Integer, nullable=False, default=0)
    objective_met = db.Column(db.Boolean, nullable=True)
    output = db.Column(db.JSON, default=list)  # Write lines
    started_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    completed_at = db.Column(db.DateTime, nullable=True)

    # Relationships
    frames = db.relationship('TimelineFrameRecord', backref='run', lazy=True, cascade='all, delete-orphan', order_by='TimelineFrameRecord.frame_index')

    def record_timeline(self, timeline):
        """Attach timeline frames in order."""
        for index, frame in enumerate(timeline):
            self.frames.append(TimelineFrameRecord(
                frame_index=index,
                event=frame.event,
                rover_state=frame.state
            ))

    def timeline(self):
        return [record.to_frame() for record in self.frames]

    def to_dict(self):
        """Convert to dictionary."""
        return {
            'id': self.id,
            'mission_id': self.mission_id,
            'mode': self.mode,
            'username': self.username,
            'status': self.status,
            'final_state': self.final_state,
            'fault': self.fault,
            'score': self.score,
            'ticks': self.ticks,
            'objective_met': self.objective_met,
            'output': self.output,
            'started_at': self.started_at.isoformat(),
            'completed_at': self.completed_at.isoformat() if self.completed_at else None
        }

class TimelineFrameRecord(db.Model):
    """One recorded timeline frame of a run."""
    __tablename__ = 'timeline_frames'

    id = db.Column(db.Integer, primary_key=True)
    run_id = db.Column(db.Integer, db.ForeignKey('mission_runs.id'), nullable=False, index=True)
    frame_index = db.Column(db.Integer, nullable=False, index=True)
    event = db.Column(db.String(20), nullable=False)  # START, MOVE, TURN, COLLECT, COLLISION, SCAN
    rover_state = db.Column(db.JSON, nullable=False)

    def to_frame(self):
        return TimelineFrame.from_dict({'roverState': self.rover_state, 'event': self.event})

    def to_dict(self):
        """Convert to dictionary."""
        return {
            'roverState': self.rover_state,
            'event': self.event
        }
