"""Attendance model with verification details."""
from attendance_integrity import db
from attendance_integrity.models.base import BaseModel

class AttendanceRecord(BaseModel):
    """One lecturer-submitted attendance sheet for a session."""

    __tablename__ = 'attendance_records'

    lecturer_id = db.Column(db.Integer, db.ForeignKey('lecturers.id'), nullable=False)
    course_schedule_id = db.Column(db.Integer, db.ForeignKey('course_schedules.id'), nullable=False)
    timestamp = db.Column(db.DateTime, nullable=False)  # client event time, naive UTC

    # Verification details
    method = db.Column(db.String(20), nullable=False)  # onsite, virtual
    gps_latitude = db.Column(db.Float, nullable=True)
    gps_longitude = db.Column(db.Float, nullable=True)
    location_verified = db.Column(db.Boolean, default=False, nullable=False)

    # [{studentId, isPresent}, ...]; NULL for virtual sessions
    student_attendance_data = db.Column(db.JSON, nullable=True)
    remarks = db.Column(db.Text, nullable=True)

    # Supervisor spot-check verdict
    supervisor_verified = db.Column(db.Boolean, nullable=True)
    supervisor_comment = db.Column(db.Text, nullable=True)

    schedule = db.relationship('CourseSchedule', backref=db.backref('attendance_records', lazy='dynamic'))

    __table_args__ = (
        db.Index('ix_attendance_schedule_lecturer_ts', 'course_schedule_id', 'lecturer_id', 'timestamp'),
    )

    def __repr__(self):
        return f'<AttendanceRecord {self.course_schedule_id}-{self.lecturer_id}>'
