from datetime import datetime, timezone
from typing import Optional

MONTHS = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]


def period_for(when: Optional[datetime] = None) -> str:
    """Ledger grouping key, e.g. 'March 2025'. Defaults to now."""
    when = when or datetime.now(timezone.utc)
    return f"{MONTHS[when.month - 1]} {when.year}"


def period_sort_key(period: str):
    """(year, month) for ordering; unparseable periods sort first."""
    try:
        month_name, year = period.rsplit(" ", 1)
        return int(year), MONTHS.index(month_name) + 1
    except ValueError:
        return 0, 0


def is_current_period(period: str, now: Optional[datetime] = None) -> bool:
    return period == period_for(now)
