"""Virtual session model."""
from attendance_integrity import db
from attendance_integrity.models.base import BaseModel

class VirtualSession(BaseModel):
    """Online delivery of a scheduled session."""

    __tablename__ = 'virtual_sessions'

    lecturer_id = db.Column(db.Integer, db.ForeignKey('lecturers.id'), nullable=False)
    course_schedule_id = db.Column(db.Integer, db.ForeignKey('course_schedules.id'), nullable=False, index=True)
    meeting_link = db.Column(db.String(500), nullable=True)
    platform = db.Column(db.String(50), nullable=True)
    actual_participants = db.Column(db.Integer, nullable=True)
    session_notes = db.Column(db.Text, nullable=True)
