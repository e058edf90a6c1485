"""Course schedule model for class timetables."""
from attendance_integrity import db
from attendance_integrity.models.base import BaseModel
import enum

class WeekDay(enum.Enum):
    """Days of the week."""
    SUNDAY = 0
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6

class SessionType(enum.Enum):
    LECTURE = "LECTURE"
    VIRTUAL = "VIRTUAL"
    HYBRID = "HYBRID"

class CourseSchedule(BaseModel):
    """Recurring weekly session of a course for one class group."""

    __tablename__ = 'course_schedules'

    # Academic Info
    course_id = db.Column(db.Integer, nullable=False, index=True)
    class_group_id = db.Column(db.Integer, nullable=False, index=True)

    # Relations
    lecturer_id = db.Column(db.Integer, db.ForeignKey('lecturers.id'), nullable=False, index=True)
    classroom_id = db.Column(db.Integer, db.ForeignKey('classrooms.id'), nullable=True)  # NULL = virtual

    # Time Info
    day_of_week = db.Column(db.Integer, nullable=False, index=True)  # 0 = Sunday
    start_time = db.Column(db.Time, nullable=False)
    end_time = db.Column(db.Time, nullable=False)

    session_type = db.Column(db.Enum(SessionType), nullable=False, default=SessionType.LECTURE)
    meeting_link = db.Column(db.String(500), nullable=True)

    # Relationships
    classroom = db.relationship('Classroom', backref=db.backref('schedules', lazy='dynamic'))

    @property
    def is_virtual(self) -> bool:
        return self.classroom_id is None

    def to_dict(self):
        """Convert to dictionary."""
        return {
            'id': self.id,
            'course_id': self.course_id,
            'class_group_id': self.class_group_id,
            'lecturer_id': self.lecturer_id,
            'classroom_id': self.classroom_id,
            'day_of_week': self.day_of_week,
            'day': WeekDay(self.day_of_week).name if self.day_of_week is not None else None,
            'start_time': self.start_time.strftime('%H:%M') if self.start_time else None,
            'end_time': self.end_time.strftime('%H:%M') if self.end_time else None,
            'session_type': self.session_type.value if self.session_type else None,
            'meeting_link': self.meeting_link,
            'is_virtual': self.is_virtual
        }
