from datetime import date, datetime, timezone

import pytest

from app.rotation.schedule import add_interval, days_until, derive_round_status, is_past_deadline, local_today


def test_monthly_clamps_to_month_end_from_start():
    start = date(2024, 1, 31)
    assert [add_interval(start, "monthly", n) for n in (1, 2, 3)] == [
        date(2024, 2, 29),
        date(2024, 3, 31),
        date(2024, 4, 30),
    ]


def test_monthly_non_leap_year():
    assert add_interval(date(2023, 1, 31), "monthly", 1) == date(2023, 2, 28)


def test_weekly_is_seven_days():
    assert add_interval(date(2024, 12, 30), "weekly", 1) == date(2025, 1, 6)
    assert add_interval(date(2024, 1, 1), "weekly", 0) == date(2024, 1, 1)


def test_bad_inputs():
    with pytest.raises(ValueError):
        add_interval(date(2024, 1, 1), "daily", 1)
    with pytest.raises(ValueError):
        add_interval(date(2024, 1, 1), "weekly", -1)


@pytest.mark.parametrize(
    "round_number,current,expected",
    [
        (1, None, "upcoming"),
        (1, 2, "completed"),
        (2, 2, "current"),
        (3, 2, "upcoming"),
        (3, 4, "completed"),
    ],
)
def test_derive_round_status(round_number, current, expected):
    assert derive_round_status(round_number, current) == expected


def test_local_today_uses_tunis_time():
    # 23:30 UTC is already the next day in Tunis (UTC+1)
    now = datetime(2024, 3, 10, 23, 30, tzinfo=timezone.utc)
    assert local_today(now) == date(2024, 3, 11)


def test_deadline_helpers():
    deadline = date(2024, 2, 1)
    assert not is_past_deadline(deadline, date(2024, 2, 1))
    assert is_past_deadline(deadline, date(2024, 2, 2))
    assert days_until(deadline, date(2024, 1, 25)) == 7
