"""Timestamp helpers shared by the domain."""

from datetime import UTC


def as_utc(moment):
    """Treat naive datetimes (as some stores return them) as UTC."""
    if moment is None:
        return None
    return moment if moment.tzinfo is not None else moment.replace(tzinfo=UTC)
