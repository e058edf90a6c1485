"""Lecturer model."""
from attendance_integrity import db
from attendance_integrity.models.base import BaseModel

class Lecturer(BaseModel):
    """Maps an authenticated user id onto a lecturer."""

    __tablename__ = 'lecturers'

    user_id = db.Column(db.String(64), nullable=False, unique=True, index=True)
    employee_id = db.Column(db.String(50), nullable=True, unique=True)
    name = db.Column(db.String(255), nullable=False)
    department = db.Column(db.String(255), nullable=True)

    schedules = db.relationship('CourseSchedule', backref='lecturer', lazy='dynamic')
