# silni/infra/clock.py
# timestamps are stored as naive UTC; these helpers keep that convention in one place
from datetime import datetime
import pytz

def utcnow() -> datetime:
    return datetime.now(pytz.utc).replace(tzinfo=None)

def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return pytz.utc.localize(value)
    return value.astimezone(pytz.utc)

def to_naive_utc(value: datetime) -> datetime:
    return as_utc(value).replace(tzinfo=None)
