"""Append-only audit ledger models."""
from datetime import datetime
from attendance_integrity import db
from attendance_integrity.models.base import BaseModel

class AuditLogEntry(BaseModel):
    """One hash-chained audit ledger entry. Never updated after insert."""

    __tablename__ = 'audit_log_entries'
    # ids must never be reused once cleanup deletes the tail of the table
    __table_args__ = {'sqlite_autoincrement': True}

    user_id = db.Column(db.String(64), nullable=False, index=True)
    action = db.Column(db.String(100), nullable=False, index=True)
    target_type = db.Column(db.String(50), nullable=True)
    target_id = db.Column(db.String(64), nullable=True)
    details = db.Column('metadata', db.JSON, nullable=True)
    ip_address = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(500), nullable=True)
    session_id = db.Column(db.String(128), nullable=True)
    risk_score = db.Column(db.Float, nullable=False, default=1.0)
    timestamp = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, index=True)

    # Chain
    previous_digest = db.Column(db.String(64), nullable=False, unique=True)
    integrity_digest = db.Column(db.String(64), nullable=False)

    def to_dict(self):
        """Convert to dictionary."""
        return {
            'id': self.id,
            'user_id': self.user_id,
            'action': self.action,
            'target_type': self.target_type,
            'target_id': self.target_id,
            'metadata': self.details,
            'ip_address': self.ip_address,
            'user_agent': self.user_agent,
            'session_id': self.session_id,
            'risk_score': self.risk_score,
            'timestamp': self.timestamp.isoformat() if self.timestamp else None,
            'previous_digest': self.previous_digest,
            'integrity_digest': self.integrity_digest
        }

class AuditChainAnchor(BaseModel):
    """Digest of the newest entry removed by a retention cleanup."""

    __tablename__ = 'audit_chain_anchors'

    boundary_entry_id = db.Column(db.Integer, nullable=False, index=True)
    boundary_digest = db.Column(db.String(64), nullable=False)
    deleted_count = db.Column(db.Integer, nullable=False)
    retention_days = db.Column(db.Integer, nullable=False)
    cutoff = db.Column(db.DateTime, nullable=False)
