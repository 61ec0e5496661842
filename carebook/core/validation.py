import uuid
from datetime import datetime, timezone
from typing import Any
from .errors import ValidationError

def coerce_uuid(value: Any, field: str) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    if value is None or value == "":
        raise ValidationError(f"{field} must be provided")
    try:
        return uuid.UUID(str(value))
    except (ValueError, TypeError, AttributeError):
        raise ValidationError(f"{field} is not a valid identifier: {value!r}")

def coerce_utc(value: Any, field: str) -> datetime:
    """Accept an aware datetime or ISO-8601 string; naive values are read as UTC."""
    if value is None or value == "":
        raise ValidationError(f"{field} must be provided")
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError:
            raise ValidationError(f"{field} is not an ISO-8601 datetime: {value!r}")
    if not isinstance(value, datetime):
        raise ValidationError(f"{field} must be a datetime")
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
