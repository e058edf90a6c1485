"""Base model class with common functionality."""
from datetime import date, datetime, time
from typing import Dict, Any
import enum
from attendance_integrity import db

class BaseModel(db.Model):
    """Base model class with common fields and methods."""

    __abstract__ = True

    id = db.Column(db.Integer, primary_key=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def to_dict(self, exclude: list = None) -> Dict[str, Any]:
        """Convert instance to dictionary."""
        exclude = exclude or []
        result = {}

        for column in self.__table__.columns:
            key = column.key
            if key not in exclude:
                value = getattr(self, key)
                if isinstance(value, (datetime, date, time)):
                    value = value.isoformat()
                elif isinstance(value, enum.Enum):
                    value = value.value
                result[key] = value

        return result

    def __repr__(self) -> str:
        return f'<{self.__class__.__name__} {self.id}>'
