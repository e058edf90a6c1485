# backend/attendance_integrity/api/supervisor.py
"""Supervisor spot-check API."""
from flask import Blueprint, g, request
from flask_jwt_extended import jwt_required
from attendance_integrity.services import get_services
from attendance_integrity.utils.decorators import capability_required
from attendance_integrity.utils.exceptions import NotFoundError
from attendance_integrity.utils.helpers import success_response
from attendance_integrity.utils.permissions import Capability
from attendance_integrity.utils.validators import Validator

supervisor_bp = Blueprint('supervisor', __name__)

@supervisor_bp.route('/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    return success_response(message='Supervisor service is running')

@supervisor_bp.route('/verify', methods=['POST'])
@jwt_required()
@capability_required(Capability.VERIFY_ATTENDANCE)
def verify_session():
    """Log a supervisor check and stamp today's attendance record."""
    data = request.get_json(silent=True) or {}
    log, record = get_services().supervisor.record_check(g.caller, data)

    return success_response(
        data={
            'log': log.to_dict(),
            'attendance_record_id': record.id if record else None,
            'supervisor_verified': record.supervisor_verified if record else None
        },
        message="Supervisor check recorded"
    ), 201

@supervisor_bp.route('/schedules/<int:schedule_id>/latest', methods=['GET'])
@jwt_required()
@capability_required(Capability.VERIFY_ATTENDANCE)
def latest_check(schedule_id):
    """Most recent supervisor check of the day."""
    day = request.args.get('date')
    parsed_day = Validator.parse_timestamp(day, 'date').date() if day else None

    log = get_services().supervisor.latest_for_day(schedule_id, parsed_day)
    if log is None:
        raise NotFoundError("No supervisor check recorded for this day")

    return success_response(data=log.to_dict())
