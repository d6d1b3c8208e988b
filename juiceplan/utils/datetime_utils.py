"""Datetime utilities for timezone-aware timestamps and production dates.

Usage:
    from juiceplan.utils.datetime_utils import utc_now, parse_production_date

    # For SQLAlchemy Column defaults
    created_at = Column(DateTime, default=utc_now)

    # Production dates arrive as date objects or ISO strings ("2024-01-25")
    production_date = parse_production_date("2024-01-25")
"""

from datetime import date, datetime, timezone
from typing import Optional, Union


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def parse_production_date(value: Union[date, datetime, str, None]) -> Optional[date]:
    """Normalize a production date.

    Args:
        value: A date, a datetime (its date part is used), an ISO date
            string, or None/empty for "not set".

    Returns:
        The date, or None when no date was given.

    Raises:
        ValueError: If a string is not an ISO formatted date
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    value = value.strip()
    if not value:
        return None
    return date.fromisoformat(value[:10])
