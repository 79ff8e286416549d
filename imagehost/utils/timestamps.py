"""Timestamp helpers shared by metadata documents and trash keys."""
from datetime import datetime, timezone


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def isoformat_z(value: datetime) -> str:
    """
    Format a datetime the way the browser client does.

    Example: 2026-10-18T09:41:07.512Z
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def key_suffix(value: datetime) -> str:
    """ISO timestamp with ':' and '.' removed, safe to embed in an object key."""
    return isoformat_z(value).replace(":", "").replace(".", "")
