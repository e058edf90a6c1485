"""Test supervisor spot checks."""
from datetime import datetime, timedelta

import pytest

from attendance_integrity import db
from attendance_integrity.models import AttendanceRecord, AuditLogEntry, SupervisorLog
from attendance_integrity.utils.exceptions import AuthorizationError, NotFoundError, ValidationError

@pytest.fixture
def todays_record(campus, make_schedule):
    schedule = make_schedule()
    record = AttendanceRecord(
        lecturer_id=campus.lecturer.id,
        course_schedule_id=schedule.id,
        timestamp=datetime.utcnow(),
        method='onsite',
        student_attendance_data=[]
    )
    db.session.add(record)
    db.session.commit()
    return schedule, record

@pytest.mark.parametrize('status,verified', [
    ('ongoing', True),
    ('ONLINE', True),
    ('absent', False),
    ('cancelled', False),
])
def test_check_stamps_todays_record(services, supervisor_caller, todays_record, status, verified):
    schedule, record = todays_record
    log, stamped = services.supervisor.record_check(supervisor_caller, {
        'scheduleId': schedule.id,
        'status': status,
        'comments': 'Checked at 09:15'
    })

    assert log.supervisor_id == 'supervisor-1'
    assert stamped.id == record.id
    assert stamped.supervisor_verified is verified
    assert stamped.supervisor_comment == 'Checked at 09:15'

def test_check_without_todays_record(services, supervisor_caller, campus, make_schedule):
    schedule = make_schedule()
    db.session.add(AttendanceRecord(
        lecturer_id=campus.lecturer.id,
        course_schedule_id=schedule.id,
        timestamp=datetime.utcnow() - timedelta(days=2),
        method='onsite'
    ))
    db.session.commit()

    log, record = services.supervisor.record_check(supervisor_caller, {'scheduleId': schedule.id, 'status': 'ongoing'})

    assert log.id is not None
    assert record is None
    assert AttendanceRecord.query.one().supervisor_verified is None

def test_online_check_details(services, supervisor_caller, make_schedule):
    schedule = make_schedule(classroom_id=None)
    log, _ = services.supervisor.record_check(supervisor_caller, {
        'scheduleId': schedule.id,
        'status': 'online',
        'isOnline': True,
        'platform': 'zoom',
        'connectionQuality': 'good',
        'studentCountOnline': '24',
        'technicalIssues': 'Echo on lecturer microphone'
    })

    assert log.is_online is True
    assert log.student_count_online == 24
    assert log.connection_quality == 'good'

def test_check_is_audited(services, supervisor_caller, todays_record):
    schedule, record = todays_record
    services.supervisor.record_check(supervisor_caller, {'scheduleId': schedule.id, 'status': 'ongoing'})

    entry = AuditLogEntry.query.filter_by(action='ATTENDANCE_VERIFIED').one()
    assert entry.details['attendance_record_id'] == record.id
    assert entry.details['supervisor_verified'] is True

@pytest.mark.parametrize('payload', [
    {'status': 'ongoing'},
    {'scheduleId': 1},
    {'scheduleId': 1, 'status': 'ongoing', 'studentCountOnline': -3},
    {'scheduleId': 1, 'status': 'ongoing', 'studentCountOnline': 'many'},
])
def test_check_validation(services, supervisor_caller, make_schedule, payload):
    make_schedule()
    with pytest.raises(ValidationError):
        services.supervisor.record_check(supervisor_caller, payload)

def test_check_unknown_schedule(services, supervisor_caller, campus):
    with pytest.raises(NotFoundError):
        services.supervisor.record_check(supervisor_caller, {'scheduleId': 77, 'status': 'ongoing'})

def test_lecturer_cannot_verify(services, lecturer_caller, make_schedule):
    schedule = make_schedule()
    with pytest.raises(AuthorizationError):
        services.supervisor.record_check(lecturer_caller, {'scheduleId': schedule.id, 'status': 'ongoing'})

def test_latest_for_day(services, make_schedule):
    schedule = make_schedule()
    now = datetime.utcnow()
    db.session.add_all([
        SupervisorLog(supervisor_id='s1', course_schedule_id=schedule.id, status='ongoing', check_in_time=now - timedelta(minutes=30)),
        SupervisorLog(supervisor_id='s2', course_schedule_id=schedule.id, status='absent', check_in_time=now),
        SupervisorLog(supervisor_id='s3', course_schedule_id=schedule.id, status='ongoing', check_in_time=now - timedelta(days=1))
    ])
    db.session.commit()

    assert services.supervisor.latest_for_day(schedule.id).supervisor_id == 's2'
    assert services.supervisor.latest_for_day(schedule.id, (now - timedelta(days=1)).date()).supervisor_id == 's3'
    assert services.supervisor.latest_for_day(schedule.id, (now - timedelta(days=5)).date()) is None

def test_verify_endpoint(client, todays_record, auth_headers):
    schedule, record = todays_record
    response = client.post(
        '/api/supervisor/verify',
        json={'scheduleId': schedule.id, 'status': 'ongoing'},
        headers=auth_headers('sup-9', 'ONLINE_SUPERVISOR')
    )

    assert response.status_code == 201
    data = response.get_json()['data']
    assert data['attendance_record_id'] == record.id
    assert data['supervisor_verified'] is True
    assert data['log']['status'] == 'ongoing'

def test_latest_endpoint(client, make_schedule, auth_headers):
    schedule = make_schedule()
    headers = auth_headers('sup-1', 'SUPERVISOR')

    assert client.get(f'/api/supervisor/schedules/{schedule.id}/latest', headers=headers).status_code == 404

    client.post('/api/supervisor/verify', json={'scheduleId': schedule.id, 'status': 'late'}, headers=headers)
    response = client.get(f'/api/supervisor/schedules/{schedule.id}/latest', headers=headers)

    assert response.status_code == 200
    assert response.get_json()['data']['status'] == 'late'

def test_verify_endpoint_requires_capability(client, make_schedule, auth_headers):
    schedule = make_schedule()
    response = client.post(
        '/api/supervisor/verify',
        json={'scheduleId': schedule.id, 'status': 'ongoing'},
        headers=auth_headers('rep-1', 'CLASS_REP')
    )
    assert response.status_code == 403
