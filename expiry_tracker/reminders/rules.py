"""Reminder rule evaluation.

Turns an expiry date and a set of day offsets into concrete fire times. The
function is pure: the caller supplies ``now`` and the timezone.
"""
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone as dt_timezone
from typing import Iterable, List, Optional
from zoneinfo import ZoneInfo

from .config import settings


@dataclass(frozen=True)
class ReminderTime:
    offset_days: int
    fire_at: datetime  # UTC-aware


def compute_reminder_times(
    expiry_date: date,
    offsets: Iterable[int],
    now: datetime,
    tz: Optional[ZoneInfo] = None,
    hour: Optional[int] = None,
) -> List[ReminderTime]:
    """Return one ReminderTime per offset whose fire time is still ahead of ``now``.

    Each reminder fires at ``hour``:00 local time, ``offset`` days before the
    expiry date. Offsets are evaluated in the order given and are not
    de-duplicated.
    """
    zone = tz or dt_timezone.utc
    send_hour = settings.SEND_HOUR if hour is None else hour
    if now.tzinfo is None:
        now = now.replace(tzinfo=dt_timezone.utc)

    times: List[ReminderTime] = []
    for offset in offsets:
        local_day = expiry_date - timedelta(days=offset)
        fire_at = datetime.combine(local_day, time(hour=send_hour), tzinfo=zone)
        if fire_at <= now:
            continue
        times.append(ReminderTime(offset_days=offset, fire_at=fire_at.astimezone(dt_timezone.utc)))
    return times
