"""Test duplicate schedule reconciliation."""
from datetime import datetime, time

import pytest
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from attendance_integrity import db
from attendance_integrity.models import (
    AttendanceRecord, AuditLogEntry, CourseSchedule, SupervisorLog, VirtualSession
)
from attendance_integrity.services.schedule_reconciler import natural_key
from attendance_integrity.utils.exceptions import AuthorizationError
from attendance_integrity.utils.permissions import CallerIdentity

def add_dependents(schedule, lecturer_id, count=1):
    for i in range(count):
        db.session.add(AttendanceRecord(
            lecturer_id=lecturer_id,
            course_schedule_id=schedule.id,
            timestamp=datetime(2024, 3, 4, 9, i),
            method='onsite',
            student_attendance_data=[]
        ))
    db.session.add(SupervisorLog(supervisor_id='sup-1', course_schedule_id=schedule.id, status='ongoing'))
    db.session.add(VirtualSession(lecturer_id=lecturer_id, course_schedule_id=schedule.id, platform='zoom'))
    db.session.commit()

@pytest.fixture
def duplicated(campus, make_schedule):
    kept = make_schedule()
    duplicate = make_schedule(end_time=time(10, 30))
    other = make_schedule(course_id=2, class_group_id=2, lecturer_id=campus.other_lecturer.id, classroom_id=None)
    add_dependents(kept, campus.lecturer.id)
    add_dependents(duplicate, campus.lecturer.id, count=2)
    return kept.id, duplicate.id, other.id

def test_natural_key(make_schedule):
    a = make_schedule()
    b = make_schedule(end_time=time(11), classroom_id=None)
    c = make_schedule(start_time=time(9, 30))

    assert natural_key(a) == natural_key(b)
    assert natural_key(a) != natural_key(c)

def test_merge_duplicates(services, duplicated):
    kept_id, duplicate_id, other_id = duplicated
    before = {model: model.query.count() for model in (AttendanceRecord, SupervisorLog, VirtualSession)}

    report = services.reconciler.run()

    assert report.scanned == 3
    assert report.merged_count == 1
    assert report.failed_count == 0
    assert report.merges[0].duplicate_id == duplicate_id
    assert report.merges[0].kept_id == kept_id
    assert report.merges[0].moved == {'attendance_records': 2, 'supervisor_logs': 1, 'virtual_sessions': 1}

    assert db.session.get(CourseSchedule, duplicate_id) is None
    assert {s.id for s in CourseSchedule.query.all()} == {kept_id, other_id}
    for model, count in before.items():
        assert model.query.count() == count
        assert model.query.filter_by(course_schedule_id=duplicate_id).count() == 0
    assert AttendanceRecord.query.filter_by(course_schedule_id=kept_id).count() == 3

    merged = AuditLogEntry.query.filter_by(action='SCHEDULE_MERGED').one()
    assert merged.details['duplicate_id'] == duplicate_id
    assert merged.user_id == 'system'

def test_dry_run_does_not_mutate(services, duplicated):
    kept_id, duplicate_id, _ = duplicated
    report = services.reconciler.run(dry_run=True)

    assert report.dry_run
    assert len(report.merges) == 1
    assert report.merged_count == 0
    assert db.session.get(CourseSchedule, duplicate_id) is not None
    assert AttendanceRecord.query.filter_by(course_schedule_id=duplicate_id).count() == 2
    assert AuditLogEntry.query.filter_by(action='SCHEDULE_MERGED').count() == 0

def test_rerun_is_a_no_op(services, duplicated):
    services.reconciler.run()
    report = services.reconciler.run()

    assert report.scanned == 2
    assert report.merges == []

def test_three_copies_collapse_into_first(services, campus, make_schedule):
    first = make_schedule()
    make_schedule()
    make_schedule()

    report = services.reconciler.run()

    assert report.merged_count == 2
    assert [s.id for s in CourseSchedule.query.all()] == [first.id]

def test_failed_merge_rolls_back(services, duplicated, monkeypatch):
    kept_id, duplicate_id, _ = duplicated

    def broken_commit(self):
        raise SQLAlchemyError('disk I/O error')

    monkeypatch.setattr(Session, 'commit', broken_commit)
    report = services.reconciler.run()
    monkeypatch.undo()

    assert report.failed_count == 1
    assert 'disk I/O error' in report.merges[0].error
    assert db.session.get(CourseSchedule, duplicate_id) is not None
    assert AttendanceRecord.query.filter_by(course_schedule_id=duplicate_id).count() == 2

def test_reconcile_requires_capability(services, duplicated):
    with pytest.raises(AuthorizationError):
        services.reconciler.run(caller=CallerIdentity.from_claims('coord-1', 'COORDINATOR'))

def test_reconcile_endpoint(client, duplicated, auth_headers):
    response = client.post('/api/schedules/reconcile', json={'dry_run': True}, headers=auth_headers())

    assert response.status_code == 200
    data = response.get_json()['data']
    assert data['dry_run'] is True
    assert data['duplicates'] == 1

    response = client.post('/api/schedules/reconcile', json={}, headers=auth_headers())
    assert response.get_json()['data']['merged_count'] == 1
    assert AuditLogEntry.query.filter_by(action='SCHEDULE_MERGED').one().user_id == 'admin-1'

def test_reconcile_endpoint_requires_capability(client, auth_headers):
    response = client.post('/api/schedules/reconcile', json={}, headers=auth_headers('coord-1', 'COORDINATOR'))
    assert response.status_code == 403
