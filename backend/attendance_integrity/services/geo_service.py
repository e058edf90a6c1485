"""GPS distance and geofence verification service."""
from dataclasses import dataclass
from typing import Dict, Optional
import math

EARTH_RADIUS_METERS = 6371000

@dataclass(frozen=True)
class GeofenceResult:
    """Outcome of a geofence check."""
    is_inside: bool
    distance: Optional[float]
    radius: float

    def to_dict(self) -> Dict:
        return {
            'is_inside': self.is_inside,
            'distance': self.distance,
            'radius': self.radius
        }

class GeoService:
    """Service for GPS and location verification."""

    @staticmethod
    def calculate_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
        """Calculate distance between two GPS points in meters."""
        lat1_rad = math.radians(lat1)
        lat2_rad = math.radians(lat2)
        delta_lat = math.radians(lat2 - lat1)
        delta_lon = math.radians(lon2 - lon1)

        a = (math.sin(delta_lat/2) ** 2 +
             math.cos(lat1_rad) * math.cos(lat2_rad) *
             math.sin(delta_lon/2) ** 2)
        c = 2 * math.atan2(math.sqrt(a), math.sqrt(1-a))

        return EARTH_RADIUS_METERS * c

class GeofenceValidator:
    """Decides whether a submitted position is at the building."""

    def __init__(self, radius_meters: float = 100.0):
        self.radius_meters = float(radius_meters)

    def verify(self, latitude: float, longitude: float, building) -> GeofenceResult:
        """Verify a position against a building's reference point.

        A building without coordinates can never verify a location.
        """
        if building is None or not building.has_coordinates:
            return GeofenceResult(is_inside=False, distance=None, radius=self.radius_meters)

        distance = GeoService.calculate_distance(
            latitude, longitude,
            building.gps_latitude, building.gps_longitude
        )

        return GeofenceResult(
            is_inside=distance <= self.radius_meters,
            distance=distance,
            radius=self.radius_meters
        )
