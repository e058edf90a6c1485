"""Service container wiring."""
from dataclasses import dataclass

from flask import current_app

from attendance_integrity.services.attendance_sync import AttendanceSyncEngine
from attendance_integrity.services.audit_ledger import AuditLedger
from attendance_integrity.services.conflict_detector import ConflictDetector
from attendance_integrity.services.geo_service import GeofenceValidator
from attendance_integrity.services.locks import ResourceLockManager
from attendance_integrity.services.schedule_reconciler import ScheduleReconciler
from attendance_integrity.services.schedule_service import ScheduleService
from attendance_integrity.services.supervisor_service import SupervisorService

@dataclass
class ServiceContainer:
    locks: ResourceLockManager
    ledger: AuditLedger
    detector: ConflictDetector
    schedules: ScheduleService
    attendance: AttendanceSyncEngine
    reconciler: ScheduleReconciler
    supervisor: SupervisorService

def build_services(app, session) -> ServiceContainer:
    """Build every service from the app config."""
    config = app.config
    logger = app.logger

    locks = ResourceLockManager.from_config(config, logger=logger)
    ledger = AuditLedger(
        session,
        locks,
        logger=logger,
        max_attempts=config.get('AUDIT_APPEND_MAX_ATTEMPTS', 5),
        retention_min_days=config.get('AUDIT_RETENTION_MIN_DAYS', 30),
        retention_max_days=config.get('AUDIT_RETENTION_MAX_DAYS', 2555),
        export_max_rows=config.get('AUDIT_EXPORT_MAX_ROWS', 10000),
        query_max_limit=config.get('AUDIT_QUERY_MAX_LIMIT', 100)
    )
    detector = ConflictDetector(session, logger=logger)

    return ServiceContainer(
        locks=locks,
        ledger=ledger,
        detector=detector,
        schedules=ScheduleService(
            session, locks, ledger, detector,
            supported_platforms=config.get('SUPPORTED_MEETING_PLATFORMS'),
            logger=logger
        ),
        attendance=AttendanceSyncEngine(
            session, locks, ledger,
            GeofenceValidator(config.get('GEOFENCE_RADIUS_METERS', 100.0)),
            dedup_window_seconds=config.get('ATTENDANCE_DEDUP_WINDOW_SECONDS', 300),
            logger=logger
        ),
        reconciler=ScheduleReconciler(session, ledger, logger=logger),
        supervisor=SupervisorService(session, ledger, logger=logger)
    )

def get_services() -> ServiceContainer:
    """Services of the current app."""
    return current_app.extensions['attendance_services']
