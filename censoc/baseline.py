#!/usr/bin/env python3
"""
Seasonal Baseline for Monthly Death Counts

This module implements the centered moving-sum baseline used to
deseasonalize monthly weighted death counts. For each month the 12-month
total around it (5 months before, the month itself, 6 months after) is
apportioned to the month by its share of calendar days, giving the number of
deaths expected without seasonality. The death variation is the percentage
deviation of the observed count from that expectation.

Periods whose window runs off either end of the series have no baseline:
their moving total, expected count and variation are undefined (None in
record form, NaN in DataFrame form).

Example:
    >>> from censoc.baseline import SeasonalBaselineEstimator, PeriodObservation
    >>> obs = [PeriodObservation(1990 + m // 12, m % 12 + 1, 'Male', 120.0) for m in range(17)]
    >>> out = SeasonalBaselineEstimator().estimate(obs)
    >>> out[5].moving_total
    1440.0
"""

import calendar
import warnings
from dataclasses import dataclass
from typing import Collection, Hashable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from tqdm import tqdm

from censoc.config import BaselineParameters

MONTH_DAYS = (31, 28, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31)

BASELINE_COLUMNS = ['moving_total', 'expected_count', 'variation']


def is_leap_year(year: int, leap_years: Optional[Collection[int]] = None) -> bool:
    """Return whether `year` is a leap year.

    Args:
        year: Calendar year
        leap_years: Explicit leap years overriding the Gregorian rule

    Returns:
        True for a leap year
    """
    if leap_years is not None:
        return int(year) in leap_years
    return calendar.isleap(int(year))


def days_in_month(year: int, month: int, leap_years: Optional[Collection[int]] = None) -> int:
    """Return the number of days in a calendar month (29 for a leap February)."""
    if not 1 <= int(month) <= 12:
        raise ValueError(f"Month must be between 1 and 12, got {month}")
    if int(month) == 2 and is_leap_year(year, leap_years):
        return 29
    return MONTH_DAYS[int(month) - 1]


def period_index(year, month):
    """Continuous time index (year plus fractional month) used for plotting."""
    return year + (month - 1) / 12


@dataclass(frozen=True)
class PeriodObservation:
    """Weighted death count of one category in one calendar month"""
    year: int
    month: int
    category: Hashable
    weighted_count: float

    @property
    def period_index(self) -> float:
        return period_index(self.year, self.month)


@dataclass(frozen=True)
class PeriodVariation(PeriodObservation):
    """Observation augmented with its seasonal baseline (None when undefined)"""
    moving_total: Optional[float] = None
    expected_count: Optional[float] = None
    variation: Optional[float] = None


def _optional(value: float) -> Optional[float]:
    return None if np.isnan(value) else float(value)


class SeasonalBaselineEstimator:
    """Centered moving-sum baseline and death variation for one category at a time.

    The estimator is stateless apart from its parameters. Input sequences must
    hold a single category as consecutive calendar months in chronological
    order; neither condition is checked.
    """

    def __init__(self, params: Optional[BaselineParameters] = None):
        """
        Initialize the estimator

        Args:
            params: Window and leap-year settings. Defaults reproduce the
                5-before / 6-after 12-month window.
        """
        self.params = params if params is not None else BaselineParameters()

    @property
    def window(self) -> int:
        return self.params.window

    def moving_total(self, counts: Sequence[float]) -> np.ndarray:
        """
        Centered moving total of `counts`.

        Each defined entry is the sum of `window_before` preceding values, the
        value itself and `window_after` following values, summed independently
        per window. Entries whose window leaves the sequence are NaN.

        Args:
            counts: Weighted counts in chronological order

        Returns:
            (np.ndarray) of moving totals, same length as `counts`
        """
        values = np.asarray(counts, dtype=float)
        n = len(values)
        totals = np.full(n, np.nan)
        if n < self.window:
            return totals

        windows = np.lib.stride_tricks.sliding_window_view(values, self.window)
        before = self.params.window_before
        totals[before:before + len(windows)] = windows.sum(axis=1)
        return totals

    def day_fractions(self, years: Sequence[int], months: Sequence[int]) -> np.ndarray:
        """Share of its year each calendar month represents (days / 365 or 366)."""
        leap_years = self.params.leap_years
        fractions = [
            days_in_month(year, month, leap_years) / (366 if is_leap_year(year, leap_years) else 365)
            for year, month in zip(years, months)
        ]
        return np.array(fractions, dtype=float)

    def _compute(self, years: Sequence[int], months: Sequence[int],
                 counts: Sequence[float]) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Return moving totals, expected counts and variations (NaN when undefined)."""
        counts = np.asarray(counts, dtype=float)
        if len(counts) < self.window:
            warnings.warn(
                f"Sequence of {len(counts)} periods is shorter than the {self.window}-period "
                "window; no baseline can be computed"
            )

        totals = self.moving_total(counts)
        expected = totals * self.day_fractions(years, months)

        variation = np.full(len(counts), np.nan)
        defined = ~np.isnan(expected) & (expected != 0)
        variation[defined] = counts[defined] / expected[defined] * 100 - 100
        return totals, expected, variation

    def estimate(self, sequence: Sequence[PeriodObservation]) -> List[PeriodVariation]:
        """
        Compute the seasonal baseline for a single-category sequence.

        Args:
            sequence: Observations of one category, consecutive months in
                chronological order

        Returns:
            List of PeriodVariation in the same order as the input
        """
        totals, expected, variation = self._compute(
            [obs.year for obs in sequence],
            [obs.month for obs in sequence],
            [obs.weighted_count for obs in sequence],
        )
        return [
            PeriodVariation(
                year=obs.year,
                month=obs.month,
                category=obs.category,
                weighted_count=obs.weighted_count,
                moving_total=_optional(totals[i]),
                expected_count=_optional(expected[i]),
                variation=_optional(variation[i]),
            )
            for i, obs in enumerate(sequence)
        ]

    def estimate_frame(self, df: pd.DataFrame, value_col: str = 'weighted_count') -> pd.DataFrame:
        """
        Compute the seasonal baseline for a single-category DataFrame.

        Args:
            df: Rows of one category with 'year', 'month' and `value_col`,
                consecutive months in chronological order
            value_col: Column holding the weighted counts

        Returns:
            Copy of `df` with 'moving_total', 'expected_count', 'variation'
            and 'period_index' columns
        """
        for col in ['year', 'month', value_col]:
            if col not in df.columns:
                raise ValueError(f"Missing required column: {col}")

        totals, expected, variation = self._compute(
            df['year'].to_numpy(), df['month'].to_numpy(), df[value_col].to_numpy()
        )
        result = df.copy()
        result['moving_total'] = totals
        result['expected_count'] = expected
        result['variation'] = variation
        result['period_index'] = period_index(result['year'], result['month'])
        return result

    def estimate_by_category(self, df: pd.DataFrame, category_cols: List[str],
                             value_col: str = 'weighted_count',
                             progress: bool = False) -> pd.DataFrame:
        """
        Apply the baseline independently to every category.

        Each category is sorted by (year, month) and processed on its own;
        results are concatenated in category order.

        Args:
            df: Rows of all categories
            category_cols: Columns identifying a category (may be empty)
            value_col: Column holding the weighted counts
            progress: Whether to show a progress bar

        Returns:
            DataFrame with the baseline columns added
        """
        if not category_cols:
            ordered = df.sort_values(['year', 'month'])
            return self.estimate_frame(ordered, value_col).reset_index(drop=True)

        ordered = df.sort_values(list(category_cols) + ['year', 'month'])
        groups = ordered.groupby(list(category_cols), sort=False, observed=True)
        frames = [
            self.estimate_frame(group, value_col)
            for _, group in tqdm(groups, desc="Estimating baselines", disable=not progress)
        ]
        if not frames:
            warnings.warn("No categories to estimate")
            return ordered.assign(**{col: np.nan for col in BASELINE_COLUMNS + ['period_index']})
        return pd.concat(frames, ignore_index=True)
