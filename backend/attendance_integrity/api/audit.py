# backend/attendance_integrity/api/audit.py
"""Audit ledger API."""
from flask import Blueprint, g, request
from flask_jwt_extended import jwt_required
from attendance_integrity import limiter
from attendance_integrity.services import get_services
from attendance_integrity.services.audit_ledger import AuditFilter
from attendance_integrity.utils.decorators import capability_required
from attendance_integrity.utils.exceptions import ValidationError
from attendance_integrity.utils.helpers import success_response
from attendance_integrity.utils.permissions import Capability
from attendance_integrity.utils.validators import Validator

audit_bp = Blueprint('audit', __name__)

@audit_bp.route('/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    return success_response(message='Audit service is running')

@audit_bp.route('/logs', methods=['GET'])
@jwt_required()
@capability_required(Capability.READ_AUDIT)
def get_logs():
    """Get audit entries with filters, newest first."""
    audit_filter = AuditFilter.from_mapping(request.args)
    limit = Validator.parse_int(request.args.get('limit', 50), 'limit')
    offset = Validator.parse_int(request.args.get('offset', 0), 'offset')

    result = get_services().ledger.query(audit_filter, limit=limit, offset=offset)
    return success_response(data=result)

@audit_bp.route('/integrity/<int:entry_id>', methods=['GET'])
@jwt_required()
@capability_required(Capability.VERIFY_AUDIT)
def verify_entry(entry_id):
    """Recompute one entry's digest."""
    result = get_services().ledger.verify_entry(entry_id, caller=g.caller)

    return success_response(
        data=result.to_dict(),
        message="Integrity verified" if result.is_valid else "Integrity check failed"
    )

@audit_bp.route('/integrity', methods=['GET'])
@jwt_required()
@capability_required(Capability.VERIFY_AUDIT)
def verify_chain():
    """Recompute the whole chain."""
    report = get_services().ledger.verify_chain(caller=g.caller)

    return success_response(
        data=report.to_dict(),
        message="Audit chain intact" if report.is_valid else "Audit chain broken"
    )

@audit_bp.route('/export', methods=['POST'])
@limiter.limit("10 per hour")
@jwt_required()
@capability_required(Capability.EXPORT_AUDIT)
def export_logs():
    """Export filtered entries as CSV or JSON lines."""
    data = request.get_json(silent=True) or {}
    audit_filter = AuditFilter.from_mapping(data.get('filters') or {})
    result = get_services().ledger.export(audit_filter, data.get('format', 'csv'), caller=g.caller)

    return result.content, 200, {
        'Content-Type': result.content_type,
        'Content-Disposition': f'attachment; filename={result.filename}',
        'X-Export-Row-Count': str(result.row_count)
    }

@audit_bp.route('/cleanup', methods=['DELETE'])
@limiter.limit("5 per hour")
@jwt_required()
@capability_required(Capability.CLEANUP_AUDIT)
def cleanup_logs():
    """Delete entries older than the retention horizon."""
    data = request.get_json(silent=True) or {}
    retention_days = data.get('retentionDays')
    if retention_days is None:
        raise ValidationError("retentionDays is required")

    deleted = get_services().ledger.cleanup(retention_days, caller=g.caller)

    return success_response(
        data={'deleted_count': deleted},
        message=f"Deleted {deleted} audit log entries"
    )
