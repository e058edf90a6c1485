"""Scheduling conflict detection."""
from dataclasses import dataclass
from datetime import time
from typing import Dict, Iterable, Optional

from attendance_integrity.models.schedule import CourseSchedule

DIMENSION_LABELS = {
    'lecturer': 'lecturer',
    'class_group': 'class group',
    'classroom': 'classroom'
}

def overlaps(start1: time, end1: time, start2: time, end2: time) -> bool:
    """Half-open interval overlap: [start1, end1) against [start2, end2)."""
    return start1 < end2 and start2 < end1

@dataclass(frozen=True)
class ScheduleSlot:
    """A candidate booking."""
    day_of_week: int
    start_time: time
    end_time: time
    lecturer_id: int
    class_group_id: int
    classroom_id: Optional[int] = None

    @classmethod
    def of(cls, schedule: CourseSchedule) -> 'ScheduleSlot':
        return cls(
            day_of_week=schedule.day_of_week,
            start_time=schedule.start_time,
            end_time=schedule.end_time,
            lecturer_id=schedule.lecturer_id,
            class_group_id=schedule.class_group_id,
            classroom_id=schedule.classroom_id
        )

    def lock_keys(self):
        """Resource lock names covering every booked resource."""
        keys = [
            f'lecturer:{self.lecturer_id}:{self.day_of_week}',
            f'group:{self.class_group_id}:{self.day_of_week}'
        ]
        if self.classroom_id is not None:
            keys.append(f'room:{self.classroom_id}:{self.day_of_week}')
        return keys

@dataclass(frozen=True)
class ScheduleConflict:
    """The first resource found double-booked."""
    dimension: str
    schedule_id: int

    @property
    def label(self) -> str:
        return DIMENSION_LABELS.get(self.dimension, self.dimension)

    def to_dict(self) -> Dict:
        return {
            'dimension': self.dimension,
            'conflicting_schedule_id': self.schedule_id
        }

class ConflictDetector:
    """Checks a slot against existing schedules of the same day."""

    DIMENSIONS = ('lecturer', 'class_group', 'classroom')

    def __init__(self, session, logger=None):
        self.session = session
        self.logger = logger

    def _column_for(self, dimension: str, slot: ScheduleSlot):
        if dimension == 'lecturer':
            return CourseSchedule.lecturer_id, slot.lecturer_id
        if dimension == 'class_group':
            return CourseSchedule.class_group_id, slot.class_group_id
        if dimension == 'classroom':
            return CourseSchedule.classroom_id, slot.classroom_id
        raise ValueError(f"Unknown conflict dimension: {dimension}")

    def find_conflict(
        self,
        slot: ScheduleSlot,
        exclude_schedule_id: Optional[int] = None,
        dimensions: Iterable[str] = DIMENSIONS
    ) -> Optional[ScheduleConflict]:
        """Return the first conflicting dimension, or None."""
        for dimension in dimensions:
            column, value = self._column_for(dimension, slot)
            if value is None:
                continue

            query = self.session.query(CourseSchedule).filter(
                CourseSchedule.day_of_week == slot.day_of_week,
                column == value
            )
            if exclude_schedule_id is not None:
                query = query.filter(CourseSchedule.id != exclude_schedule_id)

            for existing in query.order_by(CourseSchedule.id).all():
                if overlaps(slot.start_time, slot.end_time, existing.start_time, existing.end_time):
                    if self.logger:
                        self.logger.info(
                            f"Schedule conflict on {dimension} {value} "
                            f"with schedule {existing.id} (day {slot.day_of_week})"
                        )
                    return ScheduleConflict(dimension, existing.id)

        return None
