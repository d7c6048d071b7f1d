from datetime import date, datetime, timezone


def now_utc() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def utc_naive(value: datetime) -> datetime:
    """Convert to UTC and drop tzinfo for storage in naive DateTime columns."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def fmt_date(value: date | None) -> str:
    """Format dates as DD.MM.YYYY, the layout printed on certificates."""
    if not value:
        return ""
    return f"{value.day:02d}.{value.month:02d}.{value.year:04d}"


def iso_date(value: date | None) -> str | None:
    if not value:
        return None
    return value.isoformat()


def iso_datetime(value: datetime | None) -> str | None:
    if not value:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()
