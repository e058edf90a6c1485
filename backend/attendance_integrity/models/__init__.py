"""Models package with all models."""
from .base import BaseModel
from .building import Building, Classroom
from .lecturer import Lecturer
from .schedule import CourseSchedule, SessionType, WeekDay
from .attendance import AttendanceRecord
from .supervisor_log import SupervisorLog
from .virtual_session import VirtualSession
from .audit_log import AuditLogEntry, AuditChainAnchor

__all__ = [
    'BaseModel', 'Building', 'Classroom', 'Lecturer',
    'CourseSchedule', 'SessionType', 'WeekDay',
    'AttendanceRecord', 'SupervisorLog', 'VirtualSession',
    'AuditLogEntry', 'AuditChainAnchor'
]
