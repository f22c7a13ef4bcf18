from datetime import date

import pytest

from core.pacing import get_date_factor


@pytest.mark.parametrize(
    "ref, day, total",
    [
        (date(2024, 2, 29), 29, 29),
        (date(2023, 2, 14), 14, 28),
        (date(2024, 4, 30), 30, 30),
        (date(2024, 12, 1), 1, 31),
    ],
)
def test_date_factor_across_month_lengths(ref, day, total):
    df = get_date_factor(ref)

    assert df.current_day == day
    assert df.total_days == total
    assert df.factor == day / total


def test_last_day_of_month_is_full_factor():
    assert get_date_factor(date(2025, 1, 31)).factor == 1.0


def test_formatted_label():
    df = get_date_factor(date(2025, 3, 7))

    assert df.formatted_date == "07/03/2025"
    assert df.progress_pct == pytest.approx(7 / 31 * 100)


def test_defaults_to_today():
    today = date.today()

    assert get_date_factor().current_day == today.day
