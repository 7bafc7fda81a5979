#!/usr/bin/env python3
"""
Main Execution Script for the CenSoc Mortality Vignettes

This script provides a unified interface for running the analyses of the
CenSoc-Numident and CenSoc-DMF vignettes: weighted death counts, seasonal
death variation by stratum, and weighted age-at-death regressions.
"""

import argparse
from pathlib import Path
from typing import Dict, List, Optional, Union

import matplotlib.pyplot as plt
import pandas as pd

from censoc.analysis import compute_death_variation, summarize_variation, seasonal_profile, pivot_variation
from censoc.config import CensocConfig
from censoc.paths import DATA_DIR, OUTPUT_DIR, FIGURES_DIR, RAW_FILES
from censoc.plot import (plot_weighted_deaths, plot_death_variation, plot_seasonal_profile,
                         plot_variation_heatmap, plot_state_effects)
from censoc.preprocess import CensocDataProcessor
from censoc.regression import fit_age_at_death_model, regression_table

DATASETS = ['numident', 'dmf']


class CensocVignetteAnalysis:
    """Main analysis class that coordinates all components"""

    def __init__(self, dataset: str = 'numident', data_file: Optional[str] = None,
                 output_dir: str = "output", figures_dir: str = "figures",
                 config: Optional[CensocConfig] = None, make_plots: bool = True):
        """
        Initialize the analysis

        Args:
            dataset: 'numident' or 'dmf'
            data_file: Raw CenSoc CSV file, defaults to the dataset file in data/
            output_dir: Directory for output files
            figures_dir: Directory for figures
            config: Analysis configuration
            make_plots: Whether to save figures
        """
        assert dataset in DATASETS, f"Unknown dataset {dataset}"
        self.dataset = dataset
        self.config = config or CensocConfig()
        self.data_file = Path(data_file) if data_file else RAW_FILES[dataset]
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.figures_dir = Path(figures_dir)
        self.figures_dir.mkdir(parents=True, exist_ok=True)
        self.make_plots = make_plots
        self.processor = CensocDataProcessor(dataset, self.config)
        self._records = None

    @property
    def records(self) -> pd.DataFrame:
        """Cleaned records, loaded once per analysis."""
        if self._records is None:
            self._records = self.processor.clean(self.processor.load(self.data_file))
        return self._records

    def default_strata(self) -> List[str]:
        return ['sex', 'age_group'] if self.config.dataset(self.dataset).has_sex else ['age_group']

    def _export_results(self, results: pd.DataFrame, filename: str, index: bool = False):
        """Export results to CSV file"""
        results.to_csv(self.output_dir / filename, index=index)
        print(f"Results exported to {self.output_dir / filename}")

    def _figure_path(self, name: str) -> Path:
        return self.figures_dir / f"{self.dataset}_{name}.pdf"

    def run_deaths_analysis(self, strata: Optional[List[str]] = None) -> Dict[str, pd.DataFrame]:
        """
        Weighted death counts by month and stratum, and overall summaries.

        Saves '{dataset}_weighted_deaths.csv' and one
        '{dataset}_deaths_by_{key}.csv' per summary to the output directory.

        Args:
            strata: Stratum columns

        Returns:
            Dictionary with the monthly counts and the summaries
        """
        print("Running weighted deaths analysis...")
        strata = self.default_strata() if strata is None else strata
        counts = self.processor.aggregate(self.records, strata)
        self._export_results(counts, f"{self.dataset}_weighted_deaths.csv")

        summaries = self.processor.summarize(self.records)
        for key, summary in summaries.items():
            self._export_results(summary, f"{self.dataset}_deaths_by_{key}.csv")

        if self.make_plots:
            plt.close(plot_weighted_deaths(counts, strata, self.config.plot, self._figure_path("weighted_deaths")))

        return {'counts': counts, **summaries}

    def run_variation_analysis(self, strata: Optional[List[str]] = None) -> Dict[str, pd.DataFrame]:
        """
        Seasonal death variation by stratum.

        Saves '{dataset}_death_variation.csv' and
        '{dataset}_seasonal_summary.csv' to the output directory.

        Args:
            strata: Stratum columns

        Returns:
            Dictionary with the variation, seasonal profile and summary
        """
        print("Running death variation analysis...")
        strata = self.default_strata() if strata is None else strata
        counts = self.processor.aggregate(self.records, strata)
        variation = compute_death_variation(counts, strata, self.config.baseline, progress=True)
        profile = seasonal_profile(variation, strata)
        summary = summarize_variation(variation, strata)

        self._export_results(variation, f"{self.dataset}_death_variation.csv")
        self._export_results(summary, f"{self.dataset}_seasonal_summary.csv")

        if self.make_plots:
            plt.close(plot_death_variation(variation, strata, self.config.plot, self._figure_path('death_variation')))
            plt.close(plot_seasonal_profile(profile, strata, self.config.plot, self._figure_path('seasonal_profile')))
            table = pivot_variation(variation).dropna(how='all')
            if not table.empty:
                plt.close(plot_variation_heatmap(table, 'Death Variation (%): all strata (mean)', self.config.plot,
                                                 self._figure_path('heatmap')))

        return {'variation': variation, 'profile': profile, 'summary': summary}

    def run_regression_analysis(self, specifications: Optional[List[List[str]]] = None) -> pd.DataFrame:
        """
        Weighted OLS of age at death on state and income.

        Saves '{dataset}_age_at_death_regressions.csv' to the output directory.

        Args:
            specifications: Covariate lists, one per model

        Returns:
            Side-by-side regression table
        """
        print("Running age-at-death regression analysis...")
        if specifications is None:
            specifications = [['state'], ['income'], ['state', 'income']]

        fitted = []
        for covariates in specifications:
            try:
                fitted.append(fit_age_at_death_model(self.records, covariates,
                                                     self.processor.weight_col, self.config.regression))
            except ValueError as e:
                print(f"Warning: model on {' + '.join(covariates)} not fitted: {e}")

        if not fitted:
            print("No regression model could be fitted")
            return pd.DataFrame()

        table = regression_table(fitted)
        self._export_results(table, f"{self.dataset}_age_at_death_regressions.csv", index=True)

        if self.make_plots:
            for result in fitted:
                if 'C(state)' in result.formula:
                    plt.close(plot_state_effects(result, self.config.plot, self._figure_path('state_effects')))
                    break

        return table

    def run_all_analyses(self, strata: Optional[List[str]] = None) -> Dict[str, Union[pd.DataFrame, Dict[str, pd.DataFrame]]]:
        """Run all analyses helper function."""
        print("Running all analyses...")
        results = {}
        results['deaths'] = self.run_deaths_analysis(strata)
        results['variation'] = self.run_variation_analysis(strata)
        results['regression'] = self.run_regression_analysis()
        print("All analyses completed")
        return results


def main(argv: Optional[List[str]] = None):
    """Main function"""
    parser = argparse.ArgumentParser(description="CenSoc Mortality Vignettes")
    parser.add_argument("--dataset", choices=DATASETS, default='numident', help="CenSoc dataset to analyze")
    parser.add_argument("--data_file", type=str, default=None, help=f"Raw CSV file (default: in {DATA_DIR})")
    parser.add_argument("--analysis", choices=['all', 'deaths', 'variation', 'regression'],
                        default='all', help="Type of analysis to run")
    parser.add_argument("--strata", type=str, default=None, help="Comma-separated stratum columns, e.g. sex,age_group")
    parser.add_argument("--output_dir", type=str, default=str(OUTPUT_DIR), help="Directory for output files")
    parser.add_argument("--figures_dir", type=str, default=str(FIGURES_DIR), help="Directory for figures")
    parser.add_argument("--no_plots", action="store_true", help="Do not create figures")

    args = parser.parse_args(argv)
    strata = [s for s in args.strata.split(',') if s] if args.strata is not None else None

    analysis = CensocVignetteAnalysis(args.dataset, args.data_file, args.output_dir,
                                      args.figures_dir, make_plots=not args.no_plots)

    # Run specified analysis
    if args.analysis == 'all':
        results = analysis.run_all_analyses(strata)
    elif args.analysis == 'deaths':
        results = analysis.run_deaths_analysis(strata)
    elif args.analysis == 'variation':
        results = analysis.run_variation_analysis(strata)
    elif args.analysis == 'regression':
        results = analysis.run_regression_analysis()

    print("Analysis completed successfully!")
    return results


if __name__ == "__main__":
    main()
