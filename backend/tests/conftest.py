"""Shared fixtures."""
from datetime import time
from types import SimpleNamespace

import pytest
from flask_jwt_extended import create_access_token

from attendance_integrity import create_app, db
from attendance_integrity.models import Building, Classroom, CourseSchedule, Lecturer, SessionType
from attendance_integrity.utils.permissions import CallerIdentity

def _build_app(overrides=None):
    app = create_app('testing', overrides=overrides)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()

@pytest.fixture
def app():
    """Create test app."""
    yield from _build_app()

@pytest.fixture
def file_app(tmp_path):
    """Test app on a file database, for tests that use several threads."""
    yield from _build_app({'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'integrity.db'}"})

@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()

@pytest.fixture
def services(app):
    return app.extensions['attendance_services']

@pytest.fixture
def auth_headers(app):
    """Bearer headers for a user id and role claim."""
    def _headers(user_id='admin-1', role='ADMIN'):
        claims = {'role': role} if role else {}
        token = create_access_token(identity=str(user_id), additional_claims=claims)
        return {'Authorization': f'Bearer {token}'}
    return _headers

def seed_campus():
    building = Building(code='MAIN', name='Main Building', gps_latitude=33.3152, gps_longitude=44.3661)
    db.session.add(building)
    db.session.flush()

    room_a = Classroom(room_code='A101', name='Room A101', building_id=building.id)
    room_b = Classroom(room_code='A102', name='Room A102', building_id=building.id)
    lecturer = Lecturer(user_id='lecturer-1', employee_id='EMP001', name='Dr. Sara Ali')
    other_lecturer = Lecturer(user_id='lecturer-2', employee_id='EMP002', name='Dr. Omar Hassan')
    db.session.add_all([room_a, room_b, lecturer, other_lecturer])
    db.session.commit()

    return SimpleNamespace(
        building=building,
        room_a=room_a,
        room_b=room_b,
        lecturer=lecturer,
        other_lecturer=other_lecturer
    )

@pytest.fixture
def campus(app):
    """A building with two rooms and two lecturers."""
    return seed_campus()

@pytest.fixture
def make_schedule(campus):
    """Insert a schedule directly, skipping conflict detection."""
    def _make(**overrides):
        fields = {
            'course_id': 1,
            'class_group_id': 1,
            'lecturer_id': campus.lecturer.id,
            'classroom_id': campus.room_a.id,
            'day_of_week': 1,
            'start_time': time(9, 0),
            'end_time': time(10, 0),
            'session_type': SessionType.LECTURE
        }
        fields.update(overrides)
        schedule = CourseSchedule(**fields)
        db.session.add(schedule)
        db.session.commit()
        return schedule
    return _make

@pytest.fixture
def admin():
    return CallerIdentity.from_claims('admin-1', 'ADMIN')

@pytest.fixture
def lecturer_caller():
    return CallerIdentity.from_claims('lecturer-1', 'LECTURER')

@pytest.fixture
def supervisor_caller():
    return CallerIdentity.from_claims('supervisor-1', 'SUPERVISOR')
