# File: backend/run.py
"""Application entry point."""
import os
import click
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from attendance_integrity import create_app, db  # noqa: E402

# Create Flask app
app = create_app(os.getenv('FLASK_ENV', 'development'))

@app.cli.command()
def seed_demo():
    """Seed a building, two classrooms and a lecturer for local testing."""
    from attendance_integrity.models import Building, Classroom, Lecturer

    building = Building.query.filter_by(code='MAIN').first()
    if not building:
        building = Building(
            code='MAIN',
            name='Main Building',
            gps_latitude=33.3152,
            gps_longitude=44.3661
        )
        db.session.add(building)
        db.session.flush()

    for room_code in ('A101', 'A102'):
        if not Classroom.query.filter_by(room_code=room_code).first():
            db.session.add(Classroom(room_code=room_code, name=f'Room {room_code}', building_id=building.id))

    if not Lecturer.query.filter_by(user_id='lecturer-1').first():
        db.session.add(Lecturer(user_id='lecturer-1', employee_id='EMP001', name='Demo Lecturer'))

    db.session.commit()
    click.echo('Demo building, classrooms and lecturer created.')

if __name__ == '__main__':
    # Development server
    port = int(os.environ.get('PORT', 5000))
    host = os.environ.get('HOST', '127.0.0.1')
    debug = os.environ.get('FLASK_ENV') == 'development'

    app.run(host=host, port=port, debug=debug)
