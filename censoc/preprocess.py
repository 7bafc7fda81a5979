#!/usr/bin/env python3
"""
preprocess.py

This script processes raw CenSoc microdata from the `data` folder:

1. CenSoc-Numident (deaths 1988-2005, men and women)
2. CenSoc-DMF (deaths 1975-2005, men only)

cleaning the records and aggregating post-stratification weights into
monthly weighted death counts by stratum, which are written to the
`intermediate` folder and used by the other scripts.
"""

import argparse
import warnings
import numpy as np
import pandas as pd
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from censoc.config import CensocConfig, AgeGroupParameters
from censoc.baseline import period_index
from censoc.paths import RAW_FILES, INTERMEDIATE_DIR, paths

REQUIRED_COLUMNS = ['dyear', 'dmonth', 'death_age']

SEX_LABELS = {1: 'Male', 2: 'Female'}


def assign_age_groups(ages: pd.Series, params: Optional[AgeGroupParameters] = None) -> pd.Series:
    """Bin ages at death into ordered age-group labels (NaN below the first break)."""
    params = params or AgeGroupParameters()
    bins = list(params.breaks) + [np.inf]
    return pd.cut(ages, bins=bins, labels=list(params.labels), right=False)


class CensocDataProcessor:
    """Load, clean and aggregate one CenSoc dataset."""

    def __init__(self, dataset: str = 'numident', config: Optional[CensocConfig] = None):
        """
        Initialize the processor

        Args:
            dataset: 'numident' or 'dmf'
            config: Analysis configuration, defaults to CensocConfig()
        """
        self.config = config or CensocConfig()
        self.params = self.config.dataset(dataset)
        self.dataset = dataset

    @property
    def weight_col(self) -> str:
        return self.params.weight_col

    def load(self, file_path: Optional[Path] = None) -> pd.DataFrame:
        """
        Load raw CenSoc records from CSV.

        Args:
            file_path: Path to the CSV file, defaults to the dataset's file in data/

        Returns:
            DataFrame with lower-cased column names
        """
        file_path = Path(file_path) if file_path is not None else RAW_FILES[self.dataset]
        assert file_path.exists(), f"CenSoc file {file_path} not found"
        print(f"Loading CenSoc-{self.dataset.upper()} data from {file_path}...")

        df = pd.read_csv(file_path, low_memory=False)
        df.columns = [col.lower() for col in df.columns]

        required = REQUIRED_COLUMNS + [self.weight_col] + (['sex'] if self.params.has_sex else [])
        missing = [col for col in required if col not in df.columns]
        assert not missing, f"Required columns missing from {file_path.name}: {missing}"

        print(f"Loaded {len(df):,} records")
        return df

    def clean(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Clean raw records.

        Drops records without a positive weight, outside the high-coverage
        death years or ages, or with an invalid death month. Adds 'sex' labels,
        'age_group' and the 'year' / 'month' aliases of 'dyear' / 'dmonth'.

        Args:
            df: Raw records as returned by `load`

        Returns:
            New DataFrame of cleaned records
        """
        n_raw = len(df)
        weight = pd.to_numeric(df[self.weight_col], errors='coerce')
        death_age = pd.to_numeric(df['death_age'], errors='coerce')

        keep = (
            weight.notna() & (weight > 0)
            & df['dyear'].between(self.params.first_year, self.params.last_year)
            & df['dmonth'].between(1, 12)
            & death_age.between(self.params.min_death_age, self.params.max_death_age)
        )
        clean_df = df.loc[keep].copy()
        clean_df[self.weight_col] = weight[keep]
        clean_df['death_age'] = death_age[keep]
        clean_df['year'] = clean_df['dyear'].astype(int)
        clean_df['month'] = clean_df['dmonth'].astype(int)

        # Sex labels (DMF only covers men)
        if self.params.has_sex:
            clean_df['sex'] = pd.to_numeric(clean_df['sex'], errors='coerce').map(SEX_LABELS)
            n_unknown = clean_df['sex'].isna().sum()
            if n_unknown:
                warnings.warn(f"Dropping {n_unknown} records with unknown sex code")
                clean_df = clean_df[clean_df['sex'].notna()]
        else:
            clean_df['sex'] = 'Male'

        clean_df['age_group'] = assign_age_groups(clean_df['death_age'], self.config.age_groups)

        # Recode IPUMS missing income codes when income is available
        income_col = self.config.regression.income_col
        if income_col in clean_df.columns:
            missing_codes = list(self.config.regression.income_missing_codes)
            clean_df[income_col] = pd.to_numeric(clean_df[income_col], errors='coerce')
            clean_df.loc[clean_df[income_col].isin(missing_codes), income_col] = np.nan

        print(f"Cleaned {self.dataset} data: kept {len(clean_df):,} of {n_raw:,} records "
              f"(deaths {self.params.first_year}-{self.params.last_year}, "
              f"ages {self.params.min_death_age}-{self.params.max_death_age})")
        return clean_df.reset_index(drop=True)

    def aggregate(self, df: pd.DataFrame, by: Sequence[str] = ('sex', 'age_group')) -> pd.DataFrame:
        """
        Aggregate weights into monthly weighted death counts per stratum.

        The calendar is completed so every stratum has one row per month from
        the first to the last observed month, with zero deaths where nothing
        was recorded. The result is therefore a gap-free monthly series per
        stratum, sorted by stratum then date.

        Args:
            df: Cleaned records
            by: Stratum columns (may be empty for the whole population)

        Returns:
            DataFrame with stratum columns, 'year', 'month', 'weighted_count',
            'n_records' and 'period_index'
        """
        by = list(by)
        assert not df.empty, "No records to aggregate"

        grouped = (
            df.groupby(by + ['year', 'month'], observed=True)
            .agg(weighted_count=(self.weight_col, 'sum'), n_records=(self.weight_col, 'size'))
            .reset_index()
        )

        # Complete the calendar between the first and last observed month
        month_ordinals = df['year'].astype(int) * 12 + df['month'].astype(int) - 1
        ordinals = np.arange(month_ordinals.min(), month_ordinals.max() + 1)
        calendar_df = pd.DataFrame({'year': ordinals // 12, 'month': ordinals % 12 + 1})
        if by:
            strata = grouped[by].drop_duplicates()
            full_index = strata.merge(calendar_df, how='cross')
        else:
            full_index = calendar_df

        counts = full_index.merge(grouped, on=by + ['year', 'month'], how='left')
        counts['weighted_count'] = counts['weighted_count'].fillna(0.0)
        counts['n_records'] = counts['n_records'].fillna(0).astype(int)
        counts['period_index'] = period_index(counts['year'], counts['month'])

        counts = counts.sort_values(by + ['year', 'month']).reset_index(drop=True)
        print(f"Aggregated {len(df):,} records into {len(counts):,} stratum-months "
              f"({len(calendar_df)} months per stratum)")
        return counts

    def summarize(self, df: pd.DataFrame) -> Dict[str, pd.DataFrame]:
        """
        Weighted death totals of cleaned records.

        Returns:
            Dictionary of DataFrames keyed 'year', 'month', 'sex' and 'age_group'
        """
        summaries = {}
        for key in ['year', 'month', 'sex', 'age_group']:
            summary = (
                df.groupby(key, observed=True)[self.weight_col]
                .agg(['sum', 'size'])
                .rename(columns={'sum': 'weighted_deaths', 'size': 'n_records'})
                .reset_index()
            )
            summary['share'] = summary['weighted_deaths'] / summary['weighted_deaths'].sum()
            summaries[key] = summary
        return summaries

    def run_all_processing(self, file_path: Optional[Path] = None,
                           by: Sequence[str] = ('sex', 'age_group'),
                           output_dir: Path = INTERMEDIATE_DIR) -> pd.DataFrame:
        """
        Load, clean and aggregate the dataset, writing the weighted counts.

        Writes `{dataset}_weighted_deaths.csv` to `output_dir`.

        Returns:
            Aggregated weighted death counts
        """
        df = self.clean(self.load(file_path))
        counts = self.aggregate(df, by)

        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        out_file = output_dir / paths.weighted_deaths(self.dataset).name
        counts.to_csv(out_file, index=False)
        print(f"Weighted death counts exported to {out_file}")
        return counts


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description='Clean and aggregate CenSoc data')
    parser.add_argument('--dataset', choices=['numident', 'dmf'], default='numident', help='CenSoc dataset')
    parser.add_argument('--data_file', type=str, default=None, help='Path to the raw CSV file')
    parser.add_argument('--strata', type=str, default='sex,age_group', help='Comma-separated stratum columns')
    args = parser.parse_args()

    strata = [s for s in args.strata.split(',') if s]
    CensocDataProcessor(args.dataset).run_all_processing(args.data_file, strata)
