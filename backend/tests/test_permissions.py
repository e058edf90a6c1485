"""Test role to capability resolution."""
import pytest

from attendance_integrity.models import AuditLogEntry
from attendance_integrity.utils.exceptions import AuthorizationError
from attendance_integrity.utils.permissions import (
    Capability, CallerIdentity, Role, capabilities_for, parse_role
)

def test_admin_has_every_capability():
    assert capabilities_for(Role.ADMIN) == frozenset(Capability)

@pytest.mark.parametrize('role,capability,allowed', [
    (Role.COORDINATOR, Capability.CREATE_SCHEDULE, True),
    (Role.COORDINATOR, Capability.UPDATE_SCHEDULE, True),
    (Role.COORDINATOR, Capability.READ_AUDIT, True),
    (Role.COORDINATOR, Capability.EXPORT_AUDIT, False),
    (Role.COORDINATOR, Capability.RECONCILE_SCHEDULES, False),
    (Role.LECTURER, Capability.SUBMIT_ATTENDANCE, True),
    (Role.LECTURER, Capability.CREATE_SCHEDULE, False),
    (Role.SUPERVISOR, Capability.VERIFY_ATTENDANCE, True),
    (Role.ONLINE_SUPERVISOR, Capability.VERIFY_ATTENDANCE, True),
    (Role.SUPERVISOR, Capability.SUBMIT_ATTENDANCE, False),
])
def test_role_capabilities(role, capability, allowed):
    assert (capability in capabilities_for(role)) is allowed

def test_class_rep_has_no_capabilities():
    assert capabilities_for(Role.CLASS_REP) == frozenset()

@pytest.mark.parametrize('value,expected', [
    ('admin', Role.ADMIN),
    ('ONLINE_SUPERVISOR', Role.ONLINE_SUPERVISOR),
    (Role.LECTURER, Role.LECTURER),
    ('janitor', None),
    (None, None),
])
def test_parse_role(value, expected):
    assert parse_role(value) is expected

def test_unknown_role_gets_nothing():
    caller = CallerIdentity.from_claims(42, 'janitor')

    assert caller.user_id == '42'
    assert caller.role is None
    assert caller.capabilities == frozenset()

def test_require_raises():
    caller = CallerIdentity.from_claims('lecturer-1', 'LECTURER')

    caller.require(Capability.SUBMIT_ATTENDANCE)
    with pytest.raises(AuthorizationError) as excinfo:
        caller.require(Capability.CLEANUP_AUDIT)
    assert excinfo.value.details == {'capability': 'CLEANUP_AUDIT'}

def test_system_identity():
    caller = CallerIdentity.system()
    assert caller.user_id == 'system'
    assert caller.can(Capability.RECONCILE_SCHEDULES)

def test_audit_context():
    caller = CallerIdentity.from_claims('u1', 'ADMIN', ip_address='10.0.0.2', user_agent='pytest', session_id='jti-1')
    assert caller.audit_context() == {
        'user_id': 'u1',
        'ip_address': '10.0.0.2',
        'user_agent': 'pytest',
        'session_id': 'jti-1'
    }

def test_request_context_is_recorded(client, make_schedule, auth_headers):
    make_schedule()
    make_schedule()
    headers = auth_headers()
    headers.update({'User-Agent': 'offline-client/2.1', 'X-Forwarded-For': '10.20.30.40, 172.16.0.1'})

    client.post('/api/schedules/reconcile', json={}, headers=headers)

    entry = AuditLogEntry.query.filter_by(action='SCHEDULE_MERGED').one()
    assert entry.ip_address == '10.20.30.40'
    assert entry.user_agent == 'offline-client/2.1'
    assert entry.session_id
