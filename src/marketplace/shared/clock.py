from datetime import UTC, datetime


def ensure_aware(value: datetime | None) -> datetime | None:
    """Treat naive timestamps read back from a store as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value
