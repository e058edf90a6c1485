"""Schedule creation and adjustment service."""
from dataclasses import replace
from typing import Dict, Optional

from attendance_integrity.models.building import Classroom
from attendance_integrity.models.lecturer import Lecturer
from attendance_integrity.models.schedule import CourseSchedule, SessionType
from attendance_integrity.services.conflict_detector import ConflictDetector, ScheduleSlot
from attendance_integrity.utils.exceptions import ConflictError, NotFoundError, ValidationError
from attendance_integrity.utils.permissions import Capability, CallerIdentity
from attendance_integrity.utils.validators import Validator

class ScheduleService:
    """Creates schedules without double-booking any resource."""

    REQUIRED_FIELDS = ['courseId', 'classGroupId', 'lecturerId', 'dayOfWeek', 'startTime', 'endTime']

    def __init__(self, session, locks, ledger, detector: ConflictDetector,
                 supported_platforms=None, logger=None):
        self.session = session
        self.locks = locks
        self.ledger = ledger
        self.detector = detector
        self.supported_platforms = list(supported_platforms or [])
        self.logger = logger

    def _parse_payload(self, payload: Dict) -> Dict:
        validation = Validator.validate_required_fields(payload, self.REQUIRED_FIELDS)
        errors = list(validation['errors'])
        if errors:
            raise ValidationError("Missing required fields", errors)

        day_check = Validator.validate_day_of_week(payload['dayOfWeek'])
        if not day_check['is_valid']:
            raise ValidationError("Invalid day of week", day_check['errors'])

        start_time = Validator.parse_time(payload['startTime'], 'startTime')
        end_time = Validator.parse_time(payload['endTime'], 'endTime')
        if start_time >= end_time:
            raise ValidationError("startTime must be before endTime")

        session_type_value = str(payload.get('sessionType') or SessionType.LECTURE.value).upper()
        try:
            session_type = SessionType(session_type_value)
        except ValueError:
            raise ValidationError(
                "sessionType must be one of " + ", ".join(t.value for t in SessionType)
            )

        classroom_id = payload.get('classroomId')
        meeting_link = payload.get('meetingLink') or None
        if meeting_link:
            self._check_meeting_link(meeting_link)

        return {
            'course_id': Validator.parse_int(payload['courseId'], 'courseId'),
            'class_group_id': Validator.parse_int(payload['classGroupId'], 'classGroupId'),
            'lecturer_id': Validator.parse_int(payload['lecturerId'], 'lecturerId'),
            'classroom_id': Validator.parse_int(classroom_id, 'classroomId') if classroom_id not in (None, '') else None,
            'day_of_week': Validator.parse_int(payload['dayOfWeek'], 'dayOfWeek'),
            'start_time': start_time,
            'end_time': end_time,
            'session_type': session_type,
            'meeting_link': meeting_link
        }

    def _check_meeting_link(self, link: str) -> None:
        check = Validator.validate_meeting_link(link, self.supported_platforms)
        if not check['is_valid']:
            raise ValidationError(check['errors'][0], check['errors'])

    def get_schedule(self, schedule_id: int) -> CourseSchedule:
        schedule = self.session.get(CourseSchedule, schedule_id)
        if schedule is None:
            raise NotFoundError("Schedule not found")
        return schedule

    def create_schedule(self, caller: CallerIdentity, payload: Dict) -> CourseSchedule:
        """Validate, conflict-check and persist a new schedule."""
        caller.require(Capability.CREATE_SCHEDULE)
        fields = self._parse_payload(payload or {})

        if self.session.get(Lecturer, fields['lecturer_id']) is None:
            raise NotFoundError("Lecturer not found")
        if fields['classroom_id'] is not None and self.session.get(Classroom, fields['classroom_id']) is None:
            raise NotFoundError("Classroom not found")

        slot = ScheduleSlot(
            day_of_week=fields['day_of_week'],
            start_time=fields['start_time'],
            end_time=fields['end_time'],
            lecturer_id=fields['lecturer_id'],
            class_group_id=fields['class_group_id'],
            classroom_id=fields['classroom_id']
        )

        with self.locks.hold(*slot.lock_keys()):
            conflict = self.detector.find_conflict(slot)
            if conflict:
                raise ConflictError(conflict)

            with self.ledger.transaction():
                schedule = CourseSchedule(**fields)
                self.session.add(schedule)
                self.session.flush()

                # A writer outside this process may have committed meanwhile
                conflict = self.detector.find_conflict(slot, exclude_schedule_id=schedule.id)
                if conflict:
                    raise ConflictError(conflict)

                self.ledger.stage(
                    'SCHEDULE_CREATED',
                    target_type='CourseSchedule',
                    target_id=schedule.id,
                    metadata=schedule.to_dict(),
                    **caller.audit_context()
                )

        if self.logger:
            self.logger.info(f"Schedule {schedule.id} created by {caller.user_id}")
        return schedule

    def update_meeting_link(self, caller: CallerIdentity, schedule_id: int, link: Optional[str]) -> CourseSchedule:
        """Set or clear the meeting link of a schedule."""
        caller.require(Capability.UPDATE_SCHEDULE)
        link = (link or '').strip() or None
        if link:
            self._check_meeting_link(link)

        schedule = self.get_schedule(schedule_id)
        previous = schedule.meeting_link

        with self.ledger.transaction():
            schedule.meeting_link = link
            self.ledger.stage(
                'SCHEDULE_UPDATED',
                target_type='CourseSchedule',
                target_id=schedule.id,
                metadata={'field': 'meeting_link', 'old': previous, 'new': link},
                **caller.audit_context()
            )
        return schedule

    def change_classroom(self, caller: CallerIdentity, schedule_id: int, classroom_id: Optional[int]) -> CourseSchedule:
        """Move a schedule to another room (or make it virtual with None)."""
        caller.require(Capability.UPDATE_SCHEDULE)
        if classroom_id in (None, ''):
            classroom_id = None
        else:
            classroom_id = Validator.parse_int(classroom_id, 'classroomId')
            if self.session.get(Classroom, classroom_id) is None:
                raise NotFoundError("Classroom not found")

        schedule = self.get_schedule(schedule_id)
        previous = schedule.classroom_id

        keys = []
        if classroom_id is not None:
            keys.append(f'room:{classroom_id}:{schedule.day_of_week}')

        with self.locks.hold(*keys):
            if classroom_id is not None:
                slot = replace(ScheduleSlot.of(schedule), classroom_id=classroom_id)
                conflict = self.detector.find_conflict(
                    slot,
                    exclude_schedule_id=schedule.id,
                    dimensions=('classroom',)
                )
                if conflict:
                    raise ConflictError(conflict)

            with self.ledger.transaction():
                schedule.classroom_id = classroom_id
                self.ledger.stage(
                    'SCHEDULE_UPDATED',
                    target_type='CourseSchedule',
                    target_id=schedule.id,
                    metadata={'field': 'classroom_id', 'old': previous, 'new': classroom_id},
                    **caller.audit_context()
                )
        return schedule
