from datetime import date, datetime
from typing import get_args

from core.filters import MODES, AnalyticsFilters, ComplianceMode, Thresholds, normalize_filters


def test_defaults():
    f = normalize_filters({})

    assert f == AnalyticsFilters()
    assert f.threshold == 0.90


def test_gif_mode_and_reference_date():
    f = normalize_filters({"mode": "gif", "reference_date": "2025-02-28"})

    assert f.mode == "GIF"
    assert f.threshold == 0.95
    assert f.reference_date == date(2025, 2, 28)


def test_unknown_values_fall_back():
    f = normalize_filters({"mode": "turbo", "reference_date": "not a date", "thresholds": {"bonus": 7, "gif": "x"}})

    assert f.mode == "BONUS"
    assert f.reference_date is None
    assert f.thresholds == Thresholds()


def test_datetime_is_reduced_to_date():
    f = normalize_filters({"reference_date": datetime(2025, 5, 3, 14, 30)})

    assert f.reference_date == date(2025, 5, 3)


def test_compliance_modes_match_mode_list():
    assert get_args(ComplianceMode) == MODES
    assert normalize_filters({"mode": "GIF"}).mode in get_args(ComplianceMode)
