"""
Timezone utilities.

All timestamps are stored in UTC in naive DateTime columns.
"""
from datetime import datetime, timezone


def utc_now() -> datetime:
    """Current UTC time, naive to match the DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
