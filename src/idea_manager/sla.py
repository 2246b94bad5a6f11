"""Review SLA labels derived from an idea's age."""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

REVIEW_WINDOW_DAYS = 3
_DAY = timedelta(days=1)


@dataclass(frozen=True)
class SlaStatus:
    label: str
    severity: str  # overdue, due-soon or on-track
    days_elapsed: int


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def sla_status(created_at: datetime, now: datetime | None = None) -> SlaStatus:
    """Classify review urgency for an idea created at ``created_at``.

    Days elapsed are rounded up, so an idea one hour old counts as one day.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    days = math.ceil((_as_utc(now) - _as_utc(created_at)) / _DAY)

    if days > REVIEW_WINDOW_DAYS:
        return SlaStatus("Overdue", "overdue", days)
    if days >= 2:
        return SlaStatus("1 day left", "due-soon", days)
    return SlaStatus(f"{REVIEW_WINDOW_DAYS - days} days left", "on-track", days)


def sla_label(created_at: datetime, now: datetime | None = None) -> str:
    return sla_status(created_at, now).label
