from datetime import timedelta

from marshmallow import ValidationError, fields

from utils.security import parse_duration


class Duration(fields.Field):
    """Token lifetime given as seconds (int) or a string like "15m", "1h", "7d"."""

    def _deserialize(self, value, attr, data, **kwargs) -> timedelta:
        try:
            duration = parse_duration(value)
        except ValueError:
            raise ValidationError("Invalid duration. Use seconds or a value like '15m', '1h', '7d'.")
        if duration <= timedelta(0):
            raise ValidationError("Duration must be positive.")
        return duration

    def _serialize(self, value, attr, obj, **kwargs):
        if value is None:
            return None
        return int(value.total_seconds())
