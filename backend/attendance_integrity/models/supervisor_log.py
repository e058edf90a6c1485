"""Supervisor spot-check log."""
from datetime import datetime
from attendance_integrity import db
from attendance_integrity.models.base import BaseModel

class SupervisorLog(BaseModel):
    """A single supervisor check on a running session."""

    __tablename__ = 'supervisor_logs'

    supervisor_id = db.Column(db.String(64), nullable=False)
    course_schedule_id = db.Column(db.Integer, db.ForeignKey('course_schedules.id'), nullable=False, index=True)
    status = db.Column(db.String(30), nullable=False)  # ongoing, online, absent, cancelled...
    comments = db.Column(db.Text, nullable=True)

    # Online session details
    is_online = db.Column(db.Boolean, default=False, nullable=False)
    platform = db.Column(db.String(50), nullable=True)
    connection_quality = db.Column(db.String(20), nullable=True)
    student_count_online = db.Column(db.Integer, nullable=True)
    technical_issues = db.Column(db.Text, nullable=True)

    check_in_time = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
