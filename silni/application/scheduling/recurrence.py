# silni/application/scheduling/recurrence.py
# decides whether a reminder rule fires on the current reference day
"""Recurrence evaluation for reminder schedules.

Every "today" and "this hour" is computed in one fixed reference timezone
(``settings.REFERENCE_TIMEZONE``, UTC+3 by default), not the recipient's own
zone. Selection happens in two stages: the caller narrows to active
schedules whose ``notification_hour`` equals the current reference hour,
then :func:`should_fire` decides same-day eligibility per frequency.

Known limitation: a monthly rule anchored on a day that a month does not
have (e.g. the 31st) does not fire in that month.
"""
import logging
from datetime import datetime, timedelta

from silni.infra.clock import as_utc
from silni.infra.config import settings

logger = logging.getLogger(__name__)

FRIDAY = 5  # isoweekday

def reference_now(now: datetime = None, tz=None) -> datetime:
    tz = tz or settings.reference_tz
    if now is None:
        return datetime.now(tz)
    return as_utc(now).astimezone(tz)

def current_hour(now: datetime = None, tz=None) -> int:
    return reference_now(now, tz).hour

def start_of_day(now: datetime = None, tz=None) -> datetime:
    """Midnight of the reference day containing ``now``, as naive UTC for store queries."""
    tz = tz or settings.reference_tz
    midnight = reference_now(now, tz).replace(hour=0, minute=0, second=0, microsecond=0, tzinfo=None)
    if hasattr(tz, "localize"):
        midnight = tz.localize(midnight)
    else:
        midnight = midnight.replace(tzinfo=tz)
    return as_utc(midnight).replace(tzinfo=None)

def days_since(anchor: datetime, now: datetime, tz=None) -> int:
    delta = reference_now(now, tz) - reference_now(anchor, tz)
    return delta // timedelta(days=1)

def should_fire(schedule, now: datetime = None, tz=None) -> bool:
    local = reference_now(now, tz)
    frequency = schedule.frequency

    if frequency == "daily":
        return True

    if frequency == "weekly":
        days = schedule.days_of_week or []
        return local.isoweekday() in {int(d) for d in days}

    if frequency == "friday":
        return local.isoweekday() == FRIDAY

    if frequency == "monthly":
        if schedule.day_of_month:
            return local.day == schedule.day_of_month
        if schedule.created_at is None:
            return False
        return local.day == reference_now(schedule.created_at, tz).day

    if frequency == "custom":
        interval = schedule.interval_days
        if not interval or interval <= 0 or schedule.created_at is None:
            return False
        return days_since(schedule.created_at, local, tz) % interval == 0

    logger.warning(f"Unknown frequency '{frequency}' on schedule {schedule.id}")
    return False
