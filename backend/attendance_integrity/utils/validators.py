"""Validation utilities for the application."""
import math
import re
from datetime import datetime, time, timezone
from typing import Dict, List, Any, Optional
from urllib.parse import urlparse

from attendance_integrity.utils.exceptions import ValidationError

TIME_PATTERN = re.compile(r'^([01]\d|2[0-3]):([0-5]\d)$')

class Validator:
    """Validation helper class."""

    @staticmethod
    def validate_required_fields(data: Dict, required_fields: List[str]) -> Dict[str, Any]:
        """Validate required fields in data."""
        errors = []

        for field in required_fields:
            value = data.get(field)
            if value is None or (isinstance(value, str) and not value.strip()):
                errors.append(f"{field} is required")

        return {
            "is_valid": len(errors) == 0,
            "errors": errors
        }

    @staticmethod
    def validate_time(value: Any) -> bool:
        """Validate a 24h HH:MM string."""
        return isinstance(value, str) and bool(TIME_PATTERN.match(value))

    @staticmethod
    def parse_time(value: Any, field: str) -> time:
        """Parse HH:MM into a time, raising ValidationError."""
        if not Validator.validate_time(value):
            raise ValidationError(f"{field} must be in HH:MM 24-hour format")
        hours, minutes = value.split(':')
        return time(int(hours), int(minutes))

    @staticmethod
    def parse_int(value: Any, field: str) -> int:
        """Coerce ints, whole floats and numeric strings; reject bools and junk."""
        if isinstance(value, bool):
            raise ValidationError(f"{field} must be an integer")
        if isinstance(value, float) and not value.is_integer():
            raise ValidationError(f"{field} must be an integer")
        try:
            return int(value)
        except (TypeError, ValueError, OverflowError):
            raise ValidationError(f"{field} must be an integer")

    @staticmethod
    def validate_day_of_week(value: Any) -> Dict[str, Any]:
        """Validate day of week (0 = Sunday ... 6 = Saturday)."""
        errors = []
        try:
            day = Validator.parse_int(value, 'dayOfWeek')
            if day < 0 or day > 6:
                errors.append("dayOfWeek must be between 0 and 6")
        except ValidationError as e:
            errors.append(e.message)

        return {
            "is_valid": len(errors) == 0,
            "errors": errors
        }

    @staticmethod
    def _is_number(value: Any) -> bool:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return False
        return math.isfinite(value)

    @staticmethod
    def validate_coordinates(latitude: Any, longitude: Any) -> Dict[str, Any]:
        """Validate a decimal-degree coordinate pair."""
        errors = []

        if not Validator._is_number(latitude):
            errors.append("latitude must be a number")
        elif latitude < -90 or latitude > 90:
            errors.append("latitude must be between -90 and 90")

        if not Validator._is_number(longitude):
            errors.append("longitude must be a number")
        elif longitude < -180 or longitude > 180:
            errors.append("longitude must be between -180 and 180")

        return {
            "is_valid": len(errors) == 0,
            "errors": errors
        }

    @staticmethod
    def parse_timestamp(value: Any, field: str = 'timestamp') -> datetime:
        """Parse ISO-8601 into a naive UTC datetime."""
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(f"{field} must be an ISO-8601 string")

        text = value.strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'

        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise ValidationError(f"{field} is not a valid ISO-8601 timestamp")

        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
        return parsed

    @staticmethod
    def validate_meeting_link(link: str, supported_domains: List[str]) -> Dict[str, Any]:
        """Validate meeting link format and platform."""
        errors = []
        parsed = urlparse(link or '')

        if parsed.scheme not in ('http', 'https') or not parsed.hostname:
            errors.append("Invalid meeting link format")
        elif not any(
            parsed.hostname == domain or parsed.hostname.endswith('.' + domain)
            for domain in supported_domains
        ):
            errors.append(
                "Meeting link must be from a supported platform "
                "(Zoom, Google Meet, Teams, WebEx, GoToMeeting)"
            )

        return {
            "is_valid": len(errors) == 0,
            "errors": errors
        }

    @staticmethod
    def validate_retention_days(value: Any, minimum: int, maximum: int) -> int:
        """Check the audit retention horizon bounds."""
        days = Validator.parse_int(value, 'retentionDays')
        if days < minimum or days > maximum:
            raise ValidationError(f"retentionDays must be between {minimum} and {maximum}")
        return days

    @staticmethod
    def optional_float(value: Any, field: str) -> Optional[float]:
        if value is None or value == '':
            return None
        if isinstance(value, bool):
            raise ValidationError(f"{field} must be a number")
        try:
            number = float(value)
        except (TypeError, ValueError):
            raise ValidationError(f"{field} must be a number")
        if not math.isfinite(number):
            raise ValidationError(f"{field} must be a number")
        return number
