"""Building and classroom location metadata."""
from attendance_integrity import db
from attendance_integrity.models.base import BaseModel

class Building(BaseModel):
    """Campus building with its reference GPS point."""

    __tablename__ = 'buildings'

    code = db.Column(db.String(20), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False)
    address = db.Column(db.String(255), nullable=True)

    # Geofence center
    gps_latitude = db.Column(db.Float, nullable=True)
    gps_longitude = db.Column(db.Float, nullable=True)

    classrooms = db.relationship('Classroom', backref='building', lazy='dynamic')

    @property
    def has_coordinates(self) -> bool:
        return self.gps_latitude is not None and self.gps_longitude is not None

class Classroom(BaseModel):
    """Physical room schedules can be booked into."""

    __tablename__ = 'classrooms'

    room_code = db.Column(db.String(50), nullable=False, unique=True)  # A101, B201, etc.
    name = db.Column(db.String(255), nullable=True)
    building_id = db.Column(db.Integer, db.ForeignKey('buildings.id'), nullable=False)
    capacity = db.Column(db.Integer, default=30)
    virtual_link = db.Column(db.String(500), nullable=True)

    def __repr__(self):
        return f'<Classroom {self.room_code}>'
