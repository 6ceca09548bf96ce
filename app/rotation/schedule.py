# app/rotation/schedule.py
from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from dateutil.relativedelta import relativedelta

from app.rotation.model import FREQUENCIES, ROUND_COMPLETED, ROUND_CURRENT, ROUND_UPCOMING
from settings import settings


def add_interval(start: date, frequency: str, periods: int) -> date:
    """
    Date of the `periods`-th deadline after `start`.

    weekly:  start + 7 * periods days.
    monthly: start + periods calendar months, always computed from `start`
             (never chained). When the target month is shorter than start's
             day-of-month the date is clamped to that month's last day, so
             2024-01-31 gives 2024-02-29, 2024-03-31, 2024-04-30.
    """
    if frequency not in FREQUENCIES:
        raise ValueError(f"unsupported frequency: {frequency!r}")
    if periods < 0:
        raise ValueError("periods must be >= 0")

    if frequency == "weekly":
        return start + timedelta(days=7 * periods)
    return start + relativedelta(months=periods)


def derive_round_status(round_number: int, current_round: int | None) -> str:
    # The pointer is unset until launch and moves past the last round once all are paid out.
    if current_round is None:
        return ROUND_UPCOMING
    if round_number < current_round:
        return ROUND_COMPLETED
    if round_number == current_round:
        return ROUND_CURRENT
    return ROUND_UPCOMING


def _zone() -> ZoneInfo:
    return ZoneInfo(settings.TIMEZONE)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def local_today(now: datetime | None = None) -> date:
    now = now or utcnow()
    return now.astimezone(_zone()).date()


def is_past_deadline(deadline: date, today: date | None = None) -> bool:
    return (today or local_today()) > deadline


def days_until(deadline: date, today: date | None = None) -> int:
    return (deadline - (today or local_today())).days
