# backend/attendance_integrity/api/attendance.py
"""Attendance sync API for live and offline-queued submissions."""
from flask import Blueprint, g, request
from flask_jwt_extended import jwt_required
from attendance_integrity import limiter
from attendance_integrity.services import get_services
from attendance_integrity.utils.decorators import capability_required
from attendance_integrity.utils.exceptions import ValidationError
from attendance_integrity.utils.helpers import success_response
from attendance_integrity.utils.permissions import Capability

attendance_bp = Blueprint('attendance', __name__)

@attendance_bp.route('/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    return success_response(message='Attendance service is running')

@attendance_bp.route('/sync', methods=['POST'])
@jwt_required()
@capability_required(Capability.SUBMIT_ATTENDANCE)
def sync_attendance():
    """Submit one attendance sheet. Replays resolve to the stored record."""
    data = request.get_json(silent=True)
    result = get_services().attendance.submit(g.caller, data)

    if result.created:
        return success_response(
            data=result.to_dict(),
            message="Attendance recorded successfully"
        ), 201

    return success_response(
        data=result.to_dict(),
        message="Attendance already recorded"
    )

@attendance_bp.route('/sync/batch', methods=['POST'])
@limiter.limit("30 per minute")
@jwt_required()
@capability_required(Capability.SUBMIT_ATTENDANCE)
def sync_attendance_batch():
    """Replay an offline queue in one request."""
    data = request.get_json(silent=True) or {}
    submissions = data.get('submissions') if isinstance(data, dict) else None
    if submissions is None:
        raise ValidationError("submissions is required")

    outcomes = get_services().attendance.submit_batch(g.caller, submissions)

    return success_response(
        data={
            'results': [outcome.to_dict() for outcome in outcomes],
            'created': sum(1 for outcome in outcomes if outcome.status == 'created'),
            'duplicates': sum(1 for outcome in outcomes if outcome.status == 'duplicate'),
            'rejected': sum(1 for outcome in outcomes if outcome.status == 'rejected')
        },
        message="Offline queue processed"
    )
