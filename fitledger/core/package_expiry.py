import calendar
from datetime import datetime, timedelta
from typing import Optional

from fitledger.core.config import PACKAGE_EXPIRING_SOON_DAYS
from fitledger.models.enums import DurationUnit, PackageStatus


def calculate_expiry_date(start_date: datetime, duration_value: int, duration_unit: DurationUnit) -> datetime:
    """
    Add a duration to a start date. Month arithmetic clamps to the last day
    of the target month, so Jan 31 + 1 month is Feb 28 (or 29).
    """
    if duration_unit == DurationUnit.DAYS:
        return start_date + timedelta(days=duration_value)
    if duration_unit == DurationUnit.WEEKS:
        return start_date + timedelta(weeks=duration_value)

    month_index = start_date.month - 1 + duration_value
    year = start_date.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return start_date.replace(year=year, month=month, day=min(start_date.day, last_day))


def is_package_expired(package, at: Optional[datetime] = None) -> bool:
    if package.expires_at is None:
        return False
    return package.expires_at < (at or datetime.utcnow())


def is_package_expiring_soon(
    package,
    at: Optional[datetime] = None,
    days_ahead: int = PACKAGE_EXPIRING_SOON_DAYS,
    remaining_sessions: Optional[int] = None,
) -> bool:
    """
    True when the package expires within `days_ahead` and still has sessions
    left to use. `remaining_sessions` counts sessions not yet used out of the
    package total; leave it out to judge by the expiry date alone.
    """
    if package.expires_at is None:
        return False
    if remaining_sessions is not None and remaining_sessions <= 0:
        return False
    now = at or datetime.utcnow()
    return now < package.expires_at <= now + timedelta(days=days_ahead)


def get_package_status(package, remaining_sessions: int, at: Optional[datetime] = None) -> PackageStatus:
    if is_package_expired(package, at):
        return PackageStatus.EXPIRED
    if remaining_sessions <= 0:
        return PackageStatus.COMPLETED
    if is_package_expiring_soon(package, at, remaining_sessions=remaining_sessions):
        return PackageStatus.EXPIRING_SOON
    return PackageStatus.ACTIVE
