#!/usr/bin/env python3
"""Death Variation Analysis Module.

This module computes the seasonally adjusted death variation of CenSoc
mortality by stratum (sex, age group, or both) and summarizes its seasonal
pattern. The variation of a month is the percentage by which its weighted
deaths exceed the deaths expected from the centered 12-month moving total
(see baseline.py).

Example:
    >>> from censoc.analysis import compute_death_variation
    >>> variation = compute_death_variation(counts, strata=['sex'])
    >>> print(variation[['year', 'month', 'sex', 'variation']].head())

Constants:
    DEFAULT_STRATA: Stratum columns used by default for Numident.
"""

import argparse
import warnings
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pandas as pd

from censoc.baseline import SeasonalBaselineEstimator
from censoc.config import CensocConfig, BaselineParameters
from censoc.paths import OUTPUT_DIR, FIGURES_DIR, INTERMEDIATE_DIR, paths
from censoc.preprocess import CensocDataProcessor
from censoc.regression import fit_age_at_death_model, regression_table

DEFAULT_STRATA: List[str] = ['sex', 'age_group']

MONTH_ABBR = ['Jan', 'Feb', 'Mar', 'Apr', 'May', 'Jun',
              'Jul', 'Aug', 'Sep', 'Oct', 'Nov', 'Dec']


def compute_death_variation(counts: pd.DataFrame, strata: Sequence[str] = (),
                            params: Optional[BaselineParameters] = None,
                            progress: bool = False) -> pd.DataFrame:
    """Compute moving total, expected deaths and variation for every stratum.

    Each stratum is treated as an independent monthly series. With no strata,
    counts are first summed over all remaining columns so the whole population
    forms a single series.

    Args:
        counts: Weighted death counts with 'year', 'month', 'weighted_count'
            and the stratum columns, one row per stratum-month without gaps.
        strata: Stratum columns.
        params: Baseline window settings.
        progress: Whether to show a progress bar over strata.

    Returns:
        DataFrame with one row per stratum-month and the columns
        'moving_total', 'expected_count', 'variation', 'period_index'.
    """
    strata = list(strata)
    missing = [col for col in strata + ['year', 'month', 'weighted_count'] if col not in counts.columns]
    if missing:
        raise ValueError(f"Missing required columns: {missing}")

    series = (
        counts.groupby(strata + ['year', 'month'], observed=True, as_index=False)['weighted_count'].sum()
    )
    estimator = SeasonalBaselineEstimator(params)
    return estimator.estimate_by_category(series, strata, progress=progress)


def seasonal_profile(variation: pd.DataFrame, strata: Sequence[str] = ()) -> pd.DataFrame:
    """Mean variation by calendar month for each stratum.

    Periods without a defined variation are ignored.

    Returns:
        DataFrame with the stratum columns, 'month', 'mean_variation' and
        'n_periods'.
    """
    strata = list(strata)
    defined = variation.dropna(subset=['variation'])
    return (
        defined.groupby(strata + ['month'], observed=True)['variation']
        .agg(mean_variation='mean', n_periods='size')
        .reset_index()
    )


def summarize_variation(variation: pd.DataFrame, strata: Sequence[str] = ()) -> pd.DataFrame:
    """Seasonal summary of each stratum.

    Reports the number of periods with a defined variation, the calendar
    months with the highest and lowest mean variation, the seasonal amplitude
    (peak minus trough) and the mean absolute variation.

    Returns:
        DataFrame with one row per stratum.
    """
    strata = list(strata)
    defined = variation.dropna(subset=['variation'])
    groups = defined.groupby(strata, observed=True) if strata else [((), defined)]

    rows = []
    for key, group in groups:
        if group.empty:
            continue
        key = key if isinstance(key, tuple) else (key,)
        monthly = group.groupby('month')['variation'].mean()
        peak, trough = int(monthly.idxmax()), int(monthly.idxmin())
        row = dict(zip(strata, key))
        row.update({
            'n_periods': len(group),
            'peak_month': MONTH_ABBR[peak - 1],
            'peak_variation': float(monthly[peak]),
            'trough_month': MONTH_ABBR[trough - 1],
            'trough_variation': float(monthly[trough]),
            'amplitude': float(monthly[peak] - monthly[trough]),
            'mean_abs_variation': float(group['variation'].abs().mean()),
        })
        rows.append(row)

    return pd.DataFrame(rows, columns=strata + [
        'n_periods', 'peak_month', 'peak_variation', 'trough_month', 'trough_variation',
        'amplitude', 'mean_abs_variation',
    ])


def pivot_variation(variation: pd.DataFrame, filters: Optional[Dict[str, object]] = None) -> pd.DataFrame:
    """Year by month table of variation for one stratum.

    Args:
        variation: Output of compute_death_variation.
        filters: Column values selecting the stratum, e.g. {'sex': 'Female'}.

    Returns:
        DataFrame indexed by year with one column per month (1-12). Undefined
        periods are NaN.
    """
    subset = variation
    for col, value in (filters or {}).items():
        subset = subset[subset[col] == value]
    if subset.empty:
        warnings.warn(f"No periods match {filters}")
        return pd.DataFrame(columns=range(1, 13), dtype=float)
    table = subset.pivot_table(index='year', columns='month', values='variation', aggfunc='mean', dropna=False)
    return table.reindex(columns=range(1, 13))


def main(dataset: str = 'numident',
         data_file: Optional[Path] = None,
         strata: Optional[Sequence[str]] = None,
         config: Optional[CensocConfig] = None,
         intermediate_dir: Path = INTERMEDIATE_DIR,
         output_dir: Path = OUTPUT_DIR,
         figures_dir: Path = FIGURES_DIR,
         make_plots: bool = True,
         run_regressions: bool = True) -> Dict[str, pd.DataFrame]:
    """Run the death variation analysis for one CenSoc dataset.

    Loads and cleans the microdata, aggregates weighted deaths by stratum and
    month, computes the death variation per stratum and its seasonal summary,
    and, when covariates are available, fits the weighted age-at-death models.

    Writes to `output_dir`:
        "{dataset}_death_variation.csv"
        "{dataset}_seasonal_summary.csv"
        "{dataset}_age_at_death_regressions.csv" (when models were fitted)

    Args:
        dataset: 'numident' or 'dmf'.
        data_file: Raw CSV file. Defaults to the dataset file in data/.
        strata: Stratum columns. Defaults to sex and age group for Numident
            and age group for DMF (men only).
        config: Analysis configuration.
        intermediate_dir: Directory for aggregated counts.
        output_dir: Directory for result tables.
        figures_dir: Directory for figures.
        make_plots: Whether to create figures.
        run_regressions: Whether to fit the age-at-death models.

    Returns:
        Dictionary of result DataFrames.
    """
    config = config or CensocConfig()
    if strata is None:
        strata = DEFAULT_STRATA if config.dataset(dataset).has_sex else ['age_group']
    strata = list(strata)

    print("=" * 80)
    print(f"CENSOC-{dataset.upper()} DEATH VARIATION ANALYSIS")
    print("=" * 80)

    processor = CensocDataProcessor(dataset, config)
    records = processor.clean(processor.load(data_file))
    counts = processor.aggregate(records, strata)

    intermediate_dir = Path(intermediate_dir)
    intermediate_dir.mkdir(parents=True, exist_ok=True)
    counts.to_csv(intermediate_dir / paths.weighted_deaths(dataset).name, index=False)

    print(f"\nComputing death variation for strata: {', '.join(strata) or 'none'}")
    variation = compute_death_variation(counts, strata, config.baseline, progress=True)
    summary = summarize_variation(variation, strata)

    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    variation.to_csv(output_dir / paths.death_variation(dataset).name, index=False)
    summary.to_csv(output_dir / paths.seasonal_summary(dataset).name, index=False)

    for row in summary.itertuples(index=False):
        label = ', '.join(str(getattr(row, col)) for col in strata) or 'All deaths'
        print(f"  {label}: peak {row.peak_month} ({row.peak_variation:+.1f}%), "
              f"trough {row.trough_month} ({row.trough_variation:+.1f}%)")

    results = {'records': records, 'counts': counts, 'variation': variation, 'summary': summary}

    if run_regressions:
        results.update(_run_regressions(records, dataset, processor.weight_col, config, output_dir))

    if make_plots:
        from censoc.plot import create_variation_plots
        create_variation_plots(results, dataset, strata, config.plot, Path(figures_dir))

    print("\n" + "=" * 80)
    print("ANALYSIS COMPLETE")
    print("=" * 80)
    print(f"Output: {output_dir}")
    return results


def _run_regressions(records: pd.DataFrame, dataset: str, weight_col: str,
                     config: CensocConfig, output_dir: Path) -> Dict[str, object]:
    """Fit the state, income and joint models that the available covariates allow."""
    params = config.regression
    available = []
    if params.state_col in records.columns:
        available.append('state')
    if params.income_col in records.columns:
        available.append('income')
    if not available:
        print("\nNo state or income covariates available: skipping regressions")
        return {}

    print(f"\nFitting weighted age-at-death models on {', '.join(available)}...")
    specifications = [[c] for c in available] + ([available] if len(available) > 1 else [])
    fitted = []
    for covariates in specifications:
        try:
            fitted.append(fit_age_at_death_model(records, covariates, weight_col, params))
        except ValueError as e:
            print(f"  Skipping model on {' + '.join(covariates)}: {e}")

    if not fitted:
        return {}

    table = regression_table(fitted)
    table.to_csv(output_dir / paths.regression_table(dataset).name)
    for result in fitted:
        print(f"  {result.name}: N = {result.nobs:,}, R² = {result.rsquared:.3f}")
    return {'regressions': fitted, 'regression_table': table}


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description='Run CenSoc death variation analysis')
    parser.add_argument('--dataset', choices=['numident', 'dmf'], default='numident', help='CenSoc dataset')
    parser.add_argument('--data_file', type=str, default=None, help='Path to the raw CSV file')
    parser.add_argument('--strata', type=str, default=None, help='Comma-separated stratum columns')
    parser.add_argument('--no_plots', action='store_true', help='Do not create figures')
    args = parser.parse_args()

    strata = [s for s in args.strata.split(',') if s] if args.strata is not None else None
    main(args.dataset, args.data_file, strata, make_plots=not args.no_plots)
