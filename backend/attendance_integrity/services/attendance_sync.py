"""Attendance sync engine.

Accepts attendance sheets submitted live or replayed from a device's offline
queue. A replayed sheet for the same schedule and lecturer within the dedup
window resolves to the record already stored instead of creating a second one.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from attendance_integrity.models.attendance import AttendanceRecord
from attendance_integrity.models.lecturer import Lecturer
from attendance_integrity.models.schedule import CourseSchedule
from attendance_integrity.services.geo_service import GeofenceValidator
from attendance_integrity.utils.exceptions import (
    AttendanceCoreError, AuthorizationError, NotFoundError, TransientError, ValidationError
)
from attendance_integrity.utils.permissions import Capability, CallerIdentity
from attendance_integrity.utils.validators import Validator

METHOD_ONSITE = 'onsite'
METHOD_VIRTUAL = 'virtual'

@dataclass(frozen=True)
class PresenceMark:
    student_id: Any
    is_present: bool

    def to_dict(self) -> Dict:
        return {'studentId': self.student_id, 'isPresent': self.is_present}

@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float

@dataclass(frozen=True)
class AttendanceSubmission:
    """A validated attendance payload."""
    session_id: int
    marks: List[PresenceMark]
    timestamp: datetime
    location: Optional[Location] = None
    notes: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Dict) -> 'AttendanceSubmission':
        if not isinstance(payload, dict):
            raise ValidationError("Attendance payload must be an object")

        validation = Validator.validate_required_fields(payload, ['sessionId', 'timestamp', 'attendanceRecords'])
        if not validation['is_valid']:
            raise ValidationError("Missing required fields", validation['errors'])

        errors = []
        session_id = None
        try:
            session_id = Validator.parse_int(payload['sessionId'], 'sessionId')
        except ValidationError as e:
            errors.append(e.message)

        timestamp = None
        try:
            timestamp = Validator.parse_timestamp(payload['timestamp'])
        except ValidationError as e:
            errors.append(e.message)

        marks = []
        records = payload['attendanceRecords']
        if not isinstance(records, list):
            errors.append("attendanceRecords must be a list")
        else:
            for index, item in enumerate(records):
                if not isinstance(item, dict) or item.get('studentId') in (None, ''):
                    errors.append(f"attendanceRecords[{index}].studentId is required")
                    continue
                if not isinstance(item.get('isPresent'), bool):
                    errors.append(f"attendanceRecords[{index}].isPresent must be a boolean")
                    continue
                marks.append(PresenceMark(item['studentId'], item['isPresent']))

        location = None
        raw_location = payload.get('location')
        if raw_location is not None:
            if not isinstance(raw_location, dict):
                errors.append("location must be an object with latitude and longitude")
            else:
                check = Validator.validate_coordinates(raw_location.get('latitude'), raw_location.get('longitude'))
                if check['is_valid']:
                    location = Location(float(raw_location['latitude']), float(raw_location['longitude']))
                else:
                    errors.extend(check['errors'])

        notes = payload.get('notes')
        if notes is not None and not isinstance(notes, str):
            errors.append("notes must be a string")

        if errors:
            raise ValidationError("Invalid attendance submission", errors)

        return cls(
            session_id=session_id,
            marks=marks,
            timestamp=timestamp,
            location=location,
            notes=notes or None
        )

@dataclass(frozen=True)
class SubmissionResult:
    record_id: int
    created: bool
    method: Optional[str] = None
    location_verified: Optional[bool] = None

    def to_dict(self) -> Dict:
        return {
            'record_id': self.record_id,
            'created': self.created,
            'method': self.method,
            'location_verified': self.location_verified
        }

@dataclass(frozen=True)
class BatchItemOutcome:
    """Result for one replayed queue item."""
    index: int
    status: str  # created, duplicate, rejected
    client_id: Any = None
    record_id: Optional[int] = None
    error: Optional[str] = None
    message: Optional[str] = None

    def to_dict(self) -> Dict:
        result = {'index': self.index, 'status': self.status, 'client_id': self.client_id}
        if self.record_id is not None:
            result['record_id'] = self.record_id
        if self.error:
            result['error'] = self.error
            result['message'] = self.message
        return result

class AttendanceSyncEngine:
    """Idempotent attendance acceptance."""

    def __init__(self, session, locks, ledger, geofence: GeofenceValidator,
                 dedup_window_seconds: int = 300, logger=None):
        self.session = session
        self.locks = locks
        self.ledger = ledger
        self.geofence = geofence
        self.dedup_window = timedelta(seconds=dedup_window_seconds)
        self.logger = logger

    def _lecturer_for(self, caller: CallerIdentity) -> Optional[Lecturer]:
        return self.session.query(Lecturer).filter_by(user_id=str(caller.user_id)).first()

    def _find_duplicate(self, schedule_id: int, lecturer_id: int, timestamp: datetime) -> Optional[AttendanceRecord]:
        return self.session.query(AttendanceRecord).filter(
            AttendanceRecord.course_schedule_id == schedule_id,
            AttendanceRecord.lecturer_id == lecturer_id,
            AttendanceRecord.timestamp >= timestamp - self.dedup_window,
            AttendanceRecord.timestamp <= timestamp + self.dedup_window
        ).order_by(AttendanceRecord.id).first()

    def submit(self, caller: CallerIdentity, payload: Dict) -> SubmissionResult:
        """Accept one attendance sheet, returning the existing record on replay."""
        caller.require(Capability.SUBMIT_ATTENDANCE)
        submission = AttendanceSubmission.from_payload(payload)

        schedule = self.session.get(CourseSchedule, submission.session_id)
        if schedule is None:
            raise NotFoundError("Schedule not found")

        lecturer = self._lecturer_for(caller)
        if lecturer is None:
            raise AuthorizationError("Only lecturers can submit attendance")
        if lecturer.id != schedule.lecturer_id:
            raise AuthorizationError("You are not the lecturer of this schedule")

        geofence_result = None
        with self.locks.hold(f'attendance:{schedule.id}:{lecturer.id}'):
            existing = self._find_duplicate(schedule.id, lecturer.id, submission.timestamp)
            if existing is not None:
                if self.logger:
                    self.logger.info(
                        f"Duplicate attendance for schedule {schedule.id} resolved to record {existing.id}"
                    )
                return SubmissionResult(
                    record_id=existing.id,
                    created=False,
                    method=existing.method,
                    location_verified=existing.location_verified
                )

            record = AttendanceRecord(
                lecturer_id=lecturer.id,
                course_schedule_id=schedule.id,
                timestamp=submission.timestamp,
                remarks=submission.notes,
                location_verified=False
            )

            if schedule.is_virtual:
                record.method = METHOD_VIRTUAL
                record.student_attendance_data = None
            else:
                record.method = METHOD_ONSITE
                record.student_attendance_data = [mark.to_dict() for mark in submission.marks]
                if submission.location is not None:
                    record.gps_latitude = submission.location.latitude
                    record.gps_longitude = submission.location.longitude
                    geofence_result = self.geofence.verify(
                        submission.location.latitude,
                        submission.location.longitude,
                        schedule.classroom.building if schedule.classroom else None
                    )
                    record.location_verified = geofence_result.is_inside

            with self.ledger.transaction():
                self.session.add(record)
                self.session.flush()
                self.ledger.stage(
                    'ATTENDANCE_RECORDED',
                    target_type='AttendanceRecord',
                    target_id=record.id,
                    metadata={
                        'schedule_id': schedule.id,
                        'method': record.method,
                        'location_verified': record.location_verified,
                        'distance': geofence_result.distance if geofence_result else None,
                        'present_count': sum(1 for mark in submission.marks if mark.is_present)
                        if record.method == METHOD_ONSITE else None,
                        'client_timestamp': submission.timestamp.isoformat()
                    },
                    **caller.audit_context()
                )

        if self.logger:
            self.logger.info(
                f"Attendance record {record.id} ({record.method}) created for schedule {schedule.id}"
            )

        return SubmissionResult(
            record_id=record.id,
            created=True,
            method=record.method,
            location_verified=record.location_verified
        )

    def submit_batch(self, caller: CallerIdentity, items) -> List[BatchItemOutcome]:
        """Replay a queue of submissions; transient failures abort the batch."""
        if not isinstance(items, list):
            raise ValidationError("submissions must be a list")

        outcomes = []
        for index, item in enumerate(items):
            client_id = item.get('id') if isinstance(item, dict) else None
            try:
                result = self.submit(caller, item)
            except TransientError:
                raise
            except AttendanceCoreError as e:
                self.session.rollback()
                outcomes.append(BatchItemOutcome(
                    index=index,
                    status='rejected',
                    client_id=client_id,
                    error=type(e).__name__,
                    message=e.message
                ))
                continue

            outcomes.append(BatchItemOutcome(
                index=index,
                status='created' if result.created else 'duplicate',
                client_id=client_id,
                record_id=result.record_id
            ))

        return outcomes
