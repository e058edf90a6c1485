"""Duplicate schedule reconciliation."""
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from attendance_integrity.models.attendance import AttendanceRecord
from attendance_integrity.models.schedule import CourseSchedule
from attendance_integrity.models.supervisor_log import SupervisorLog
from attendance_integrity.models.virtual_session import VirtualSession
from attendance_integrity.utils.exceptions import TransientError
from attendance_integrity.utils.permissions import Capability, CallerIdentity

DEPENDENT_MODELS = (AttendanceRecord, SupervisorLog, VirtualSession)

def natural_key(schedule: CourseSchedule):
    """Schedules sharing this key are the same session entered twice."""
    return (schedule.course_id, schedule.class_group_id, schedule.day_of_week, schedule.start_time)

@dataclass
class MergeOutcome:
    duplicate_id: int
    kept_id: int
    moved: Dict[str, int] = field(default_factory=dict)
    error: Optional[str] = None
    dry_run: bool = False

    @property
    def merged(self) -> bool:
        return not self.dry_run and self.error is None

    def to_dict(self) -> Dict:
        return {
            'duplicate_id': self.duplicate_id,
            'kept_id': self.kept_id,
            'moved': self.moved,
            'merged': self.merged,
            'error': self.error
        }

@dataclass
class ReconciliationReport:
    scanned: int = 0
    dry_run: bool = False
    merges: List[MergeOutcome] = field(default_factory=list)

    @property
    def merged_count(self) -> int:
        return sum(1 for merge in self.merges if merge.merged)

    @property
    def failed_count(self) -> int:
        return sum(1 for merge in self.merges if merge.error)

    def to_dict(self) -> Dict:
        return {
            'scanned': self.scanned,
            'dry_run': self.dry_run,
            'duplicates': len(self.merges),
            'merged_count': self.merged_count,
            'failed_count': self.failed_count,
            'merges': [merge.to_dict() for merge in self.merges]
        }

class ScheduleReconciler:
    """Merges duplicate schedules into the oldest row with the same key."""

    def __init__(self, session, ledger, logger=None):
        self.session = session
        self.ledger = ledger
        self.logger = logger

    def find_duplicates(self):
        """All schedules plus (duplicate, kept) pairs, both in id order."""
        seen = {}
        schedules = self.session.query(CourseSchedule).order_by(CourseSchedule.id).all()
        pairs = []
        for schedule in schedules:
            key = natural_key(schedule)
            if key in seen:
                pairs.append((schedule, seen[key]))
            else:
                seen[key] = schedule
        return schedules, pairs

    def merge(self, duplicate: CourseSchedule, kept: CourseSchedule,
              caller: Optional[CallerIdentity] = None) -> MergeOutcome:
        """Re-point dependents of ``duplicate`` onto ``kept`` and delete it, atomically."""
        caller = caller or CallerIdentity.system()
        outcome = MergeOutcome(duplicate_id=duplicate.id, kept_id=kept.id)
        try:
            with self.ledger.transaction():
                for model in DEPENDENT_MODELS:
                    moved = self.session.query(model).filter(
                        model.course_schedule_id == duplicate.id
                    ).update({model.course_schedule_id: kept.id}, synchronize_session=False)
                    outcome.moved[model.__tablename__] = moved

                remaining = sum(
                    self.session.query(model).filter(model.course_schedule_id == duplicate.id).count()
                    for model in DEPENDENT_MODELS
                )
                if remaining:
                    raise RuntimeError(f"{remaining} dependent rows still reference schedule {duplicate.id}")

                self.session.query(CourseSchedule).filter(
                    CourseSchedule.id == duplicate.id
                ).delete(synchronize_session=False)

                self.ledger.stage(
                    'SCHEDULE_MERGED',
                    target_type='CourseSchedule',
                    target_id=outcome.kept_id,
                    metadata={'duplicate_id': outcome.duplicate_id, 'moved': outcome.moved},
                    **caller.audit_context()
                )
        except (SQLAlchemyError, RuntimeError, TransientError) as e:
            outcome.error = str(e)
            if self.logger:
                self.logger.error(f"Failed to merge schedule {outcome.duplicate_id} into {outcome.kept_id}: {e}")
        return outcome

    def run(self, dry_run: bool = False, caller: Optional[CallerIdentity] = None) -> ReconciliationReport:
        """Find and merge every duplicate schedule."""
        caller = caller or CallerIdentity.system()
        caller.require(Capability.RECONCILE_SCHEDULES)

        schedules, pairs = self.find_duplicates()
        report = ReconciliationReport(scanned=len(schedules), dry_run=dry_run)

        # Copy ids first; rollbacks expire loaded instances
        pair_ids = [(duplicate.id, kept.id) for duplicate, kept in pairs]

        for duplicate_id, kept_id in pair_ids:
            if dry_run:
                report.merges.append(MergeOutcome(duplicate_id=duplicate_id, kept_id=kept_id, dry_run=True))
                continue

            duplicate = self.session.get(CourseSchedule, duplicate_id)
            kept = self.session.get(CourseSchedule, kept_id)
            if duplicate is None or kept is None:
                continue

            outcome = self.merge(duplicate, kept, caller=caller)
            report.merges.append(outcome)
            if outcome.merged and self.logger:
                self.logger.info(f"Merged duplicate schedule {duplicate_id} into {kept_id}")

        return report
