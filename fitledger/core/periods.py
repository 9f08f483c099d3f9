from datetime import datetime, timedelta
from typing import Optional, Tuple


def month_bounds(at: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """First and last instant of the calendar month containing `at` (default: now, UTC)."""
    at = at or datetime.utcnow()
    start = at.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        next_start = start.replace(year=start.year + 1, month=1)
    else:
        next_start = start.replace(month=start.month + 1)
    return start, next_start - timedelta(microseconds=1)
