# backend/attendance_integrity/api/schedules.py
"""Schedule Management API."""
from flask import Blueprint, g, request
from flask_jwt_extended import jwt_required
from attendance_integrity.services import get_services
from attendance_integrity.utils.decorators import capability_required, caller_required
from attendance_integrity.utils.helpers import success_response
from attendance_integrity.utils.permissions import Capability

schedules_bp = Blueprint('schedules', __name__)

@schedules_bp.route('/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    return success_response(message='Schedules service is running')

@schedules_bp.route('/', methods=['POST'])
@jwt_required()
@capability_required(Capability.CREATE_SCHEDULE)
def create_schedule():
    """Create a schedule after checking lecturer, class group and room availability."""
    data = request.get_json(silent=True) or {}
    schedule = get_services().schedules.create_schedule(g.caller, data)

    return success_response(
        data=schedule.to_dict(),
        message="Schedule created successfully"
    ), 201

@schedules_bp.route('/<int:schedule_id>', methods=['GET'])
@jwt_required()
@caller_required
def get_schedule(schedule_id):
    """Get a single schedule."""
    schedule = get_services().schedules.get_schedule(schedule_id)
    return success_response(data=schedule.to_dict())

@schedules_bp.route('/<int:schedule_id>/link', methods=['PATCH'])
@jwt_required()
@capability_required(Capability.UPDATE_SCHEDULE)
def update_meeting_link(schedule_id):
    """Set or clear the online meeting link."""
    data = request.get_json(silent=True) or {}
    schedule = get_services().schedules.update_meeting_link(
        g.caller, schedule_id, data.get('meetingLink')
    )

    return success_response(
        data=schedule.to_dict(),
        message="Meeting link updated successfully"
    )

@schedules_bp.route('/<int:schedule_id>/classroom', methods=['PATCH'])
@jwt_required()
@capability_required(Capability.UPDATE_SCHEDULE)
def change_classroom(schedule_id):
    """Move the schedule to another classroom."""
    data = request.get_json(silent=True) or {}
    schedule = get_services().schedules.change_classroom(
        g.caller, schedule_id, data.get('classroomId')
    )

    return success_response(
        data=schedule.to_dict(),
        message="Classroom changed successfully"
    )

@schedules_bp.route('/reconcile', methods=['POST'])
@jwt_required()
@capability_required(Capability.RECONCILE_SCHEDULES)
def reconcile_schedules():
    """Merge duplicate schedules."""
    data = request.get_json(silent=True) or {}
    dry_run = bool(data.get('dry_run', data.get('dryRun', False)))
    report = get_services().reconciler.run(dry_run=dry_run, caller=g.caller)

    return success_response(
        data=report.to_dict(),
        message="Dry run completed" if dry_run else "Reconciliation completed"
    )
