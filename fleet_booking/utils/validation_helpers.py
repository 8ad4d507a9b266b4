from datetime import datetime, timezone
from fleet_booking.locations import normalize_location


def to_utc_naive(value):
    """Store every timestamp as naive UTC; aware values are converted first."""
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def truncate_to_minute(value: datetime) -> datetime:
    return value.replace(second=0, microsecond=0)


def validate_location(value):
    if value is None:
        return value
    location = normalize_location(value)
    if location is None:
        raise ValueError(f"Unknown academy location: {value}")
    return location.value
