"""
Test cases for the seasonal baseline: centered moving total, calendar-aware
expected deaths, death variation and the undefined boundary periods.
"""

import numpy as np
import pandas as pd
import pytest

from censoc.baseline import (
    PeriodObservation,
    PeriodVariation,
    SeasonalBaselineEstimator,
    days_in_month,
    is_leap_year,
    period_index,
)
from censoc.config import BaselineParameters


def _sequence(values, start_year=1990, start_month=1, category="Male"):
    obs = []
    for i, value in enumerate(values):
        ordinal = start_year * 12 + start_month - 1 + i
        obs.append(PeriodObservation(ordinal // 12, ordinal % 12 + 1, category, float(value)))
    return obs


def _defined(out):
    return [i for i, p in enumerate(out) if p.moving_total is not None]


def test_leap_year_rule():
    assert is_leap_year(1992)
    assert is_leap_year(2000)
    assert not is_leap_year(1900)
    assert not is_leap_year(1991)


def test_leap_year_override():
    assert is_leap_year(1991, leap_years=(1991,))
    assert not is_leap_year(1992, leap_years=(1991,))


def test_days_in_month():
    assert days_in_month(1992, 2) == 29
    assert days_in_month(1991, 2) == 28
    assert days_in_month(1900, 2) == 28
    assert days_in_month(1991, 1) == 31
    assert days_in_month(1991, 4) == 30
    with pytest.raises(ValueError):
        days_in_month(1991, 13)


def test_period_index():
    assert period_index(1990, 1) == 1990
    assert period_index(1990, 7) == pytest.approx(1990.5)
    assert _sequence([1])[0].period_index == 1990


def test_moving_total_sums_twelve_consecutive_values():
    values = list(range(1, 21))
    out = SeasonalBaselineEstimator().estimate(_sequence(values))

    assert out[5].moving_total == 78  # 1 + ... + 12
    assert out[13].moving_total == 174  # 9 + ... + 20
    for i in _defined(out):
        assert out[i].moving_total == pytest.approx(sum(values[i - 5:i + 7]))


@pytest.mark.parametrize("n, expected", [
    (12, [5]),
    (13, [5, 6]),
    (24, list(range(5, 18))),
])
def test_first_five_and_last_six_periods_are_undefined(n, expected):
    out = SeasonalBaselineEstimator().estimate(_sequence([10.0] * n))
    assert len(out) == n
    assert _defined(out) == expected
    for i in set(range(n)) - set(expected):
        assert out[i].moving_total is None
        assert out[i].expected_count is None
        assert out[i].variation is None


def test_short_sequence_is_all_undefined():
    with pytest.warns(UserWarning):
        out = SeasonalBaselineEstimator().estimate(_sequence([10.0] * 11))
    assert len(out) == 11
    assert _defined(out) == []


def test_february_day_fraction_in_leap_and_common_years():
    estimator = SeasonalBaselineEstimator()
    # index 5 is February 1992 (leap) and February 1991 (common)
    leap = estimator.estimate(_sequence([100.0] * 12, start_year=1991, start_month=9))[5]
    common = estimator.estimate(_sequence([100.0] * 12, start_year=1990, start_month=9))[5]

    assert (leap.year, leap.month) == (1992, 2)
    assert (common.year, common.month) == (1991, 2)
    assert leap.moving_total == common.moving_total == 1200
    assert leap.expected_count == pytest.approx(1200 * 29 / 366)
    assert common.expected_count == pytest.approx(1200 * 28 / 365)
    assert leap.expected_count / leap.moving_total == pytest.approx(0.07923, abs=1e-5)
    assert common.expected_count / common.moving_total == pytest.approx(0.07671, abs=1e-5)


def test_variation_zero_when_count_matches_expectation():
    a, f = 100.0, 28 / 365
    x = 11 * a * f / (1 - f)
    values = [a] * 12
    values[5] = x
    out = SeasonalBaselineEstimator().estimate(_sequence(values, start_year=1990, start_month=9))
    assert out[5].weighted_count == pytest.approx(out[5].expected_count)
    assert out[5].variation == pytest.approx(0.0, abs=1e-9)


def test_variation_hundred_when_count_doubles_expectation():
    a, f = 100.0, 28 / 365
    x = 22 * a * f / (1 - 2 * f)
    values = [a] * 12
    values[5] = x
    out = SeasonalBaselineEstimator().estimate(_sequence(values, start_year=1990, start_month=9))
    assert out[5].weighted_count == pytest.approx(2 * out[5].expected_count)
    assert out[5].variation == pytest.approx(100.0)


def test_zero_window_gives_undefined_variation():
    out = SeasonalBaselineEstimator().estimate(_sequence([0.0] * 12))
    assert out[5].moving_total == 0
    assert out[5].expected_count == 0
    assert out[5].variation is None

    frame = SeasonalBaselineEstimator().estimate_frame(
        pd.DataFrame({"year": [1990] * 12, "month": range(1, 13), "weighted_count": 0.0})
    )
    assert frame["expected_count"].iloc[5] == 0
    assert np.isnan(frame["variation"].iloc[5])
    assert not np.isinf(frame["variation"]).any()


def test_constant_series_end_to_end():
    # September 1989 onwards: indices 5..10 are February..July 1990
    out = SeasonalBaselineEstimator().estimate(_sequence([120.0] * 17, start_year=1989, start_month=9))

    assert _defined(out) == list(range(5, 11))
    for p in out[5:11]:
        days = days_in_month(p.year, p.month)
        assert p.moving_total == 1440
        assert p.expected_count == pytest.approx(1440 * days / 365)
        assert p.variation == pytest.approx((120 / p.expected_count) * 100 - 100)
        if days == 28:
            assert p.variation > 0
        if days == 31:
            assert p.variation < 0
    assert out[5].month == 2


def test_moving_total_tracks_linear_trend():
    values = [100 + 2 * i for i in range(30)]
    out = SeasonalBaselineEstimator().estimate(_sequence(values))
    for i in _defined(out):
        # offsets -5..6 sum to 6, so the window total is 12 * (level + 1)
        assert out[i].moving_total == pytest.approx(12 * (values[i] + 1))


def test_output_preserves_order_and_category():
    seq = _sequence([5.0, 7.0, 9.0] * 6, category=("Female", "85-94"))
    out = SeasonalBaselineEstimator().estimate(seq)
    assert all(isinstance(p, PeriodVariation) for p in out)
    assert [(p.year, p.month, p.weighted_count) for p in out] == [(o.year, o.month, o.weighted_count) for o in seq]
    assert {p.category for p in out} == {("Female", "85-94")}


def test_custom_window():
    estimator = SeasonalBaselineEstimator(BaselineParameters(window_before=1, window_after=1))
    out = estimator.estimate(_sequence([1.0, 2.0, 3.0, 4.0]))
    assert estimator.window == 3
    assert [p.moving_total for p in out] == [None, 6.0, 9.0, None]


def test_legacy_leap_years_change_day_fraction():
    params = BaselineParameters(leap_years=(1991,))
    out = SeasonalBaselineEstimator(params).estimate(_sequence([100.0] * 12, start_year=1990, start_month=9))
    assert out[5].expected_count == pytest.approx(1200 * 29 / 366)


def test_frame_matches_records():
    values = [100 + (i % 12) * 3 for i in range(30)]
    seq = _sequence(values)
    df = pd.DataFrame({
        "year": [o.year for o in seq],
        "month": [o.month for o in seq],
        "weighted_count": values,
    })
    estimator = SeasonalBaselineEstimator()
    frame = estimator.estimate_frame(df)
    records = estimator.estimate(seq)

    assert list(df.columns) == ["year", "month", "weighted_count"]
    for row, rec in zip(frame.itertuples(), records):
        if rec.variation is None:
            assert np.isnan(row.variation)
        else:
            assert row.moving_total == pytest.approx(rec.moving_total)
            assert row.expected_count == pytest.approx(rec.expected_count)
            assert row.variation == pytest.approx(rec.variation)
    assert frame["period_index"].iloc[12] == 1991


def test_frame_requires_columns():
    with pytest.raises(ValueError):
        SeasonalBaselineEstimator().estimate_frame(pd.DataFrame({"year": [1990], "month": [1]}))


def test_categories_are_estimated_independently():
    a = [10.0 + i for i in range(24)]
    b = [500.0 - 3 * i for i in range(24)]
    rows = []
    for seq, sex in ((a, "Male"), (b, "Female")):
        for o in _sequence(seq, category=sex):
            rows.append({"sex": sex, "year": o.year, "month": o.month, "weighted_count": o.weighted_count})
    df = pd.DataFrame(rows).sample(frac=1, random_state=0)

    estimator = SeasonalBaselineEstimator()
    combined = estimator.estimate_by_category(df, ["sex"])

    assert len(combined) == 48
    for seq, sex in ((a, "Male"), (b, "Female")):
        part = combined[combined["sex"] == sex]
        alone = estimator.estimate(_sequence(seq, category=sex))
        assert part["year"].tolist() == [p.year for p in alone]
        assert part["month"].tolist() == [p.month for p in alone]
        expected = [np.nan if p.moving_total is None else p.moving_total for p in alone]
        np.testing.assert_allclose(part["moving_total"].to_numpy(), expected)
