"""Append-only, hash-chained audit ledger."""
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional
import hashlib
import json

import pandas as pd
from sqlalchemy.exc import IntegrityError

from attendance_integrity.models.audit_log import AuditChainAnchor, AuditLogEntry
from attendance_integrity.utils.exceptions import NotFoundError, TransientError, ValidationError
from attendance_integrity.utils.validators import Validator

GENESIS_DIGEST = '0' * 64
CHAIN_LOCK = 'audit:chain'

HIGH_RISK_ACTIONS = {
    'USER_DELETED',
    'ROLE_CHANGED',
    'SYSTEM_CONFIG_CHANGED',
    'BULK_DELETE',
    'SECURITY_SETTING_CHANGED'
}

MEDIUM_RISK_ACTIONS = {
    'ATTENDANCE_MODIFIED',
    'VERIFICATION_OVERRIDDEN',
    'SCHEDULE_DELETED',
    'SCHEDULE_MERGED',
    'USER_CREATED'
}

EXPORT_COLUMNS = [
    'id', 'timestamp', 'user_id', 'action', 'target_type', 'target_id',
    'ip_address', 'user_agent', 'session_id', 'risk_score', 'metadata',
    'integrity_digest'
]

EXPORT_FORMATS = {
    'csv': ('text/csv', 'csv'),
    'jsonl': ('application/x-ndjson', 'jsonl'),
    'json': ('application/x-ndjson', 'jsonl')
}

def calculate_risk_score(action: str, ip_address: Optional[str] = None, at: Optional[datetime] = None) -> float:
    """Score an action from 1 (routine) to 10 (critical)."""
    score = 1

    if action in HIGH_RISK_ACTIONS:
        score += 7
    elif action in MEDIUM_RISK_ACTIONS:
        score += 3
    elif 'DELETE' in action:
        score += 2
    elif 'CREATE' in action or 'UPDATE' in action:
        score += 1

    hour = (at or datetime.utcnow()).hour
    if hour < 6 or hour > 22:
        score += 1

    # Internal network
    if ip_address and ip_address.startswith('10.'):
        score -= 1

    return float(max(1, min(10, score)))

def _pick(data: Mapping, *keys):
    for key in keys:
        value = data.get(key)
        if value not in (None, ''):
            return value
    return None

@dataclass
class AuditFilter:
    """Filters shared by query and export."""
    user_id: Optional[str] = None
    action: Optional[str] = None
    target_type: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    min_risk_score: Optional[float] = None
    max_risk_score: Optional[float] = None

    @classmethod
    def from_mapping(cls, data: Optional[Mapping]) -> 'AuditFilter':
        data = data or {}
        start = _pick(data, 'startDate', 'start_date')
        end = _pick(data, 'endDate', 'end_date')
        user_id = _pick(data, 'userId', 'user_id')

        return cls(
            user_id=str(user_id) if user_id is not None else None,
            action=_pick(data, 'action'),
            target_type=_pick(data, 'targetType', 'target_type'),
            start_date=Validator.parse_timestamp(start, 'startDate') if start else None,
            end_date=Validator.parse_timestamp(end, 'endDate') if end else None,
            min_risk_score=Validator.optional_float(_pick(data, 'minRiskScore', 'min_risk_score'), 'minRiskScore'),
            max_risk_score=Validator.optional_float(_pick(data, 'maxRiskScore', 'max_risk_score'), 'maxRiskScore')
        )

    def apply(self, query):
        if self.user_id:
            query = query.filter(AuditLogEntry.user_id == self.user_id)
        if self.action:
            query = query.filter(AuditLogEntry.action.ilike(f'%{self.action}%'))
        if self.target_type:
            query = query.filter(AuditLogEntry.target_type == self.target_type)
        if self.start_date:
            query = query.filter(AuditLogEntry.timestamp >= self.start_date)
        if self.end_date:
            query = query.filter(AuditLogEntry.timestamp <= self.end_date)
        if self.min_risk_score is not None:
            query = query.filter(AuditLogEntry.risk_score >= self.min_risk_score)
        if self.max_risk_score is not None:
            query = query.filter(AuditLogEntry.risk_score <= self.max_risk_score)
        return query

    def to_dict(self) -> Dict[str, Any]:
        return {
            key: (value.isoformat() if isinstance(value, datetime) else value)
            for key, value in self.__dict__.items()
            if value is not None
        }

@dataclass(frozen=True)
class IntegrityResult:
    entry_id: int
    is_valid: bool
    expected_digest: str
    stored_digest: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'entry_id': self.entry_id,
            'is_valid': self.is_valid,
            'expected_digest': self.expected_digest,
            'stored_digest': self.stored_digest
        }

@dataclass
class ChainReport:
    checked: int = 0
    broken_ids: List[int] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.broken_ids

    def to_dict(self) -> Dict[str, Any]:
        return {
            'checked': self.checked,
            'broken_ids': self.broken_ids,
            'is_valid': self.is_valid
        }

@dataclass(frozen=True)
class ExportResult:
    content: str
    content_type: str
    filename: str
    row_count: int

class AuditLedger:
    """Tamper-evident log of privileged actions.

    Every entry stores SHA-256(canonical content + predecessor digest).
    Entries are never updated; the only deletion is the retention cleanup,
    which removes the oldest contiguous prefix and records an anchor holding
    the digest of the newest removed entry.
    """

    def __init__(self, session, locks, logger=None, max_attempts: int = 5,
                 retention_min_days: int = 30, retention_max_days: int = 2555,
                 export_max_rows: int = 10000, query_max_limit: int = 100):
        self.session = session
        self.locks = locks
        self.logger = logger
        self.max_attempts = max_attempts
        self.retention_min_days = retention_min_days
        self.retention_max_days = retention_max_days
        self.export_max_rows = export_max_rows
        self.query_max_limit = query_max_limit

    # ------------------------------------------------------------------
    # Digest helpers
    # ------------------------------------------------------------------

    @staticmethod
    def canonical_content(entry: AuditLogEntry) -> str:
        """Deterministic serialisation of the hashed fields."""
        payload = {
            'user_id': entry.user_id,
            'action': entry.action,
            'target_type': entry.target_type,
            'target_id': entry.target_id,
            'metadata': entry.details,
            'ip_address': entry.ip_address,
            'user_agent': entry.user_agent,
            'session_id': entry.session_id,
            'risk_score': float(entry.risk_score),
            'timestamp': entry.timestamp.isoformat()
        }
        return json.dumps(payload, sort_keys=True, separators=(',', ':'), default=str)

    @staticmethod
    def compute_digest(content: str, previous_digest: str) -> str:
        return hashlib.sha256((content + previous_digest).encode('utf-8')).hexdigest()

    def _latest_anchor(self, before_entry_id: Optional[int] = None) -> Optional[AuditChainAnchor]:
        query = self.session.query(AuditChainAnchor)
        if before_entry_id is not None:
            query = query.filter(AuditChainAnchor.boundary_entry_id < before_entry_id)
        return query.order_by(AuditChainAnchor.boundary_entry_id.desc(), AuditChainAnchor.id.desc()).first()

    def _head_digest(self) -> str:
        latest = self.session.query(AuditLogEntry).order_by(AuditLogEntry.id.desc()).first()
        if latest is not None:
            return latest.integrity_digest

        anchor = self._latest_anchor()
        return anchor.boundary_digest if anchor else GENESIS_DIGEST

    def _predecessor_digest(self, entry: AuditLogEntry) -> str:
        previous = self.session.query(AuditLogEntry).filter(
            AuditLogEntry.id < entry.id
        ).order_by(AuditLogEntry.id.desc()).first()
        if previous is not None:
            return previous.integrity_digest

        anchor = self._latest_anchor(before_entry_id=entry.id)
        return anchor.boundary_digest if anchor else GENESIS_DIGEST

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @contextmanager
    def _chain_unit(self):
        with self.locks.hold(CHAIN_LOCK):
            try:
                yield
                self.session.commit()
            except Exception:
                self.session.rollback()
                raise

    @contextmanager
    def transaction(self):
        """Commit the caller's changes together with the entries staged in the block.

        The chain lock is held until the commit, so it must be the last lock
        taken. Any failure rolls the whole unit back; a moved chain head
        surfaces as TransientError and leaves nothing behind.
        """
        try:
            with self._chain_unit():
                yield
        except IntegrityError:
            if self.logger:
                self.logger.warning("Audit chain head moved during a unit of work")
            raise TransientError("Audit ledger is busy, retry later")

    def stage(self, action: str, user_id: str, target_type: Optional[str] = None,
              target_id=None, metadata: Optional[Dict] = None,
              ip_address: Optional[str] = None, user_agent: Optional[str] = None,
              session_id: Optional[str] = None,
              timestamp: Optional[datetime] = None) -> AuditLogEntry:
        """Add an entry chained on the current head; only valid inside ``transaction``."""
        occurred_at = timestamp or datetime.utcnow()
        entry = AuditLogEntry(
            user_id=str(user_id),
            action=action,
            target_type=target_type,
            target_id=str(target_id) if target_id is not None else None,
            details=json.loads(json.dumps(metadata, default=str)) if metadata is not None else None,
            ip_address=ip_address,
            user_agent=user_agent,
            session_id=session_id,
            risk_score=calculate_risk_score(action, ip_address, occurred_at),
            timestamp=occurred_at
        )
        entry.previous_digest = self._head_digest()
        entry.integrity_digest = self.compute_digest(
            self.canonical_content(entry), entry.previous_digest
        )
        self.session.add(entry)
        self.session.flush()
        return entry

    def append(self, action: str, user_id: str, **fields) -> AuditLogEntry:
        """Append one entry on its own and commit it, retrying when the head moves."""
        for attempt in range(1, self.max_attempts + 1):
            try:
                with self._chain_unit():
                    entry = self.stage(action, user_id, **fields)
                return entry
            except IntegrityError:
                if self.logger:
                    self.logger.warning(f"Audit chain head moved during append of {action} (attempt {attempt})")

        raise TransientError("Audit ledger is busy, retry later")

    def cleanup(self, retention_days, caller=None) -> int:
        """Delete entries older than the retention horizon; returns the count."""
        days = Validator.validate_retention_days(
            retention_days, self.retention_min_days, self.retention_max_days
        )
        cutoff = datetime.utcnow() - timedelta(days=days)
        context = caller.audit_context() if caller else {'user_id': 'system'}
        deleted = 0

        with self.transaction():
            first_retained = self.session.query(AuditLogEntry).filter(
                AuditLogEntry.timestamp >= cutoff
            ).order_by(AuditLogEntry.id).first()

            boundary_query = self.session.query(AuditLogEntry)
            if first_retained is not None:
                boundary_query = boundary_query.filter(AuditLogEntry.id < first_retained.id)
            boundary = boundary_query.order_by(AuditLogEntry.id.desc()).first()

            if boundary is not None:
                anchor = AuditChainAnchor(
                    boundary_entry_id=boundary.id,
                    boundary_digest=boundary.integrity_digest,
                    retention_days=days,
                    cutoff=cutoff,
                    deleted_count=0
                )
                deleted = self.session.query(AuditLogEntry).filter(
                    AuditLogEntry.id <= boundary.id
                ).delete(synchronize_session=False)
                anchor.deleted_count = deleted
                self.session.add(anchor)
                self.session.flush()

            self.stage(
                'AUDIT_LOGS_CLEANED',
                target_type='AuditLog',
                metadata={
                    'deleted_count': deleted,
                    'retention_days': days,
                    'cutoff': cutoff.isoformat()
                },
                **context
            )

        if self.logger:
            self.logger.info(f"Audit cleanup removed {deleted} entries older than {cutoff.isoformat()}")
        return deleted

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def verify_entry(self, entry_id: int, caller=None) -> IntegrityResult:
        """Recompute one entry's digest against its stored predecessor."""
        entry = self.session.get(AuditLogEntry, entry_id)
        if entry is None:
            raise NotFoundError("Audit log entry not found")

        predecessor = self._predecessor_digest(entry)
        expected = self.compute_digest(self.canonical_content(entry), predecessor)
        is_valid = expected == entry.integrity_digest and entry.previous_digest == predecessor

        result = IntegrityResult(
            entry_id=entry.id,
            is_valid=is_valid,
            expected_digest=expected,
            stored_digest=entry.integrity_digest
        )

        if not is_valid and self.logger:
            self.logger.warning(f"Audit entry {entry.id} failed integrity check")

        context = caller.audit_context() if caller else {'user_id': 'system'}
        self.append(
            'AUDIT_INTEGRITY_CHECKED',
            target_type='AuditLog',
            target_id=entry.id,
            metadata=result.to_dict(),
            **context
        )
        return result

    def verify_chain(self, caller=None) -> ChainReport:
        """Walk every retained entry chaining recomputed digests."""
        report = ChainReport()
        first = self.session.query(AuditLogEntry).order_by(AuditLogEntry.id).first()

        if first is not None:
            expected_previous = self._predecessor_digest(first)
            entries = self.session.query(AuditLogEntry).order_by(AuditLogEntry.id).yield_per(500)
            for entry in entries:
                expected = self.compute_digest(self.canonical_content(entry), expected_previous)
                if expected != entry.integrity_digest or entry.previous_digest != expected_previous:
                    report.broken_ids.append(entry.id)
                report.checked += 1
                expected_previous = expected

        if not report.is_valid and self.logger:
            self.logger.warning(f"Audit chain broken at entries {report.broken_ids}")

        if caller is not None:
            self.append(
                'AUDIT_INTEGRITY_CHECKED',
                target_type='AuditLog',
                metadata={'scope': 'chain', **report.to_dict()},
                **caller.audit_context()
            )
        return report

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def query(self, audit_filter: Optional[AuditFilter] = None, limit: int = 50, offset: int = 0) -> Dict[str, Any]:
        """Filtered entries, newest first."""
        audit_filter = audit_filter or AuditFilter()
        limit = max(1, min(int(limit), self.query_max_limit))
        offset = max(0, int(offset))

        base = audit_filter.apply(self.session.query(AuditLogEntry))
        total = base.count()
        logs = base.order_by(
            AuditLogEntry.timestamp.desc(), AuditLogEntry.id.desc()
        ).offset(offset).limit(limit).all()

        return {
            'logs': [entry.to_dict() for entry in logs],
            'total': total,
            'has_more': offset + len(logs) < total
        }

    def _export_row(self, entry: AuditLogEntry) -> Dict[str, Any]:
        return {
            'id': entry.id,
            'timestamp': entry.timestamp.isoformat(),
            'user_id': entry.user_id,
            'action': entry.action,
            'target_type': entry.target_type,
            'target_id': entry.target_id,
            'ip_address': entry.ip_address,
            'user_agent': entry.user_agent,
            'session_id': entry.session_id,
            'risk_score': entry.risk_score,
            'metadata': entry.details,
            'integrity_digest': entry.integrity_digest
        }

    def export(self, audit_filter: Optional[AuditFilter] = None, fmt: str = 'csv', caller=None) -> ExportResult:
        """Read-only projection of the filtered entries."""
        fmt = (fmt or 'csv').lower()
        if fmt not in EXPORT_FORMATS:
            raise ValidationError(f"Unsupported export format: {fmt}")
        content_type, extension = EXPORT_FORMATS[fmt]

        audit_filter = audit_filter or AuditFilter()
        entries = audit_filter.apply(self.session.query(AuditLogEntry)).order_by(
            AuditLogEntry.timestamp.desc(), AuditLogEntry.id.desc()
        ).limit(self.export_max_rows).all()
        rows = [self._export_row(entry) for entry in entries]

        if extension == 'csv':
            df = pd.DataFrame(rows, columns=EXPORT_COLUMNS)
            df['metadata'] = df['metadata'].map(
                lambda value: json.dumps(value, sort_keys=True) if value is not None else ''
            )
            content = df.to_csv(index=False)
        else:
            content = ''.join(json.dumps(row, default=str) + '\n' for row in rows)

        result = ExportResult(
            content=content,
            content_type=content_type,
            filename=f"audit-logs-{datetime.utcnow().strftime('%Y-%m-%d')}.{extension}",
            row_count=len(rows)
        )

        if caller is not None:
            self.append(
                'AUDIT_LOGS_EXPORTED',
                target_type='AuditLog',
                metadata={
                    'format': extension,
                    'row_count': result.row_count,
                    'filters': audit_filter.to_dict()
                },
                **caller.audit_context()
            )
        return result
