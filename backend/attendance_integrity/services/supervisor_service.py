"""Supervisor spot-check service."""
from datetime import date, datetime, time, timedelta
from typing import Dict, Optional, Tuple

from attendance_integrity.models.attendance import AttendanceRecord
from attendance_integrity.models.schedule import CourseSchedule
from attendance_integrity.models.supervisor_log import SupervisorLog
from attendance_integrity.utils.exceptions import NotFoundError, ValidationError
from attendance_integrity.utils.permissions import Capability, CallerIdentity
from attendance_integrity.utils.validators import Validator

# Statuses confirming the session is actually taking place
VERIFIED_STATUSES = ('ongoing', 'online')

def _day_bounds(day: date) -> Tuple[datetime, datetime]:
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)

class SupervisorService:
    """Records supervisor checks and stamps the day's attendance verdict."""

    def __init__(self, session, ledger, logger=None):
        self.session = session
        self.ledger = ledger
        self.logger = logger

    def record_check(self, caller: CallerIdentity, payload: Dict) -> Tuple[SupervisorLog, Optional[AttendanceRecord]]:
        caller.require(Capability.VERIFY_ATTENDANCE)
        payload = payload or {}

        validation = Validator.validate_required_fields(payload, ['scheduleId', 'status'])
        if not validation['is_valid']:
            raise ValidationError("Missing required fields", validation['errors'])

        schedule_id = Validator.parse_int(payload['scheduleId'], 'scheduleId')
        status = str(payload['status']).strip().lower()
        if len(status) > 30:
            raise ValidationError("status must be at most 30 characters")

        student_count = payload.get('studentCountOnline')
        if student_count not in (None, ''):
            student_count = Validator.parse_int(student_count, 'studentCountOnline')
            if student_count < 0:
                raise ValidationError("studentCountOnline cannot be negative")
        else:
            student_count = None

        schedule = self.session.get(CourseSchedule, schedule_id)
        if schedule is None:
            raise NotFoundError("Schedule not found")

        now = datetime.utcnow()
        log = SupervisorLog(
            supervisor_id=caller.user_id,
            course_schedule_id=schedule.id,
            status=status,
            comments=payload.get('comments'),
            is_online=bool(payload.get('isOnline', False)),
            platform=payload.get('platform'),
            connection_quality=payload.get('connectionQuality'),
            student_count_online=student_count,
            technical_issues=payload.get('technicalIssues'),
            check_in_time=now
        )

        with self.ledger.transaction():
            self.session.add(log)

            start, end = _day_bounds(now.date())
            record = self.session.query(AttendanceRecord).filter(
                AttendanceRecord.course_schedule_id == schedule.id,
                AttendanceRecord.timestamp >= start,
                AttendanceRecord.timestamp < end
            ).order_by(AttendanceRecord.timestamp.desc(), AttendanceRecord.id.desc()).first()

            if record is not None:
                record.supervisor_verified = status in VERIFIED_STATUSES
                record.supervisor_comment = payload.get('comments')

            self.session.flush()
            self.ledger.stage(
                'ATTENDANCE_VERIFIED',
                target_type='CourseSchedule',
                target_id=schedule.id,
                metadata={
                    'supervisor_log_id': log.id,
                    'status': status,
                    'attendance_record_id': record.id if record else None,
                    'supervisor_verified': record.supervisor_verified if record else None
                },
                **caller.audit_context()
            )

        if self.logger:
            self.logger.info(f"Supervisor {caller.user_id} checked schedule {schedule.id}: {status}")
        return log, record

    def latest_for_day(self, schedule_id: int, day: Optional[date] = None) -> Optional[SupervisorLog]:
        """Most recent check of the schedule on ``day`` (today by default)."""
        start, end = _day_bounds(day or datetime.utcnow().date())
        return self.session.query(SupervisorLog).filter(
            SupervisorLog.course_schedule_id == schedule_id,
            SupervisorLog.check_in_time >= start,
            SupervisorLog.check_in_time < end
        ).order_by(SupervisorLog.check_in_time.desc(), SupervisorLog.id.desc()).first()
