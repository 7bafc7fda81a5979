#!/usr/bin/env python3
"""Plotting Utilities for the CenSoc Mortality Vignettes.

This module provides functions to visualize weighted death counts, the
seasonally adjusted death variation and the age-at-death regressions. Plots
are saved to the figures directory in high-resolution PDF format.

Functions:
    plot_weighted_deaths: Monthly weighted deaths by stratum.
    plot_death_variation: Death variation over time by stratum.
    plot_variation_heatmap: Year by month heatmap of the variation.
    plot_seasonal_profile: Mean variation by calendar month.
    plot_state_effects: State coefficients of an age-at-death model.
    create_variation_plots: Create all figures of one analysis run.
"""

from pathlib import Path
from typing import Dict, List, Optional, Sequence

import matplotlib.pyplot as plt
import pandas as pd
import seaborn as sns

from censoc.config import PlotParameters
from censoc.paths import FIGURES_DIR

MONTH_ABBR = ['Jan', 'Feb', 'Mar', 'Apr', 'May', 'Jun',
              'Jul', 'Aug', 'Sep', 'Oct', 'Nov', 'Dec']


def stratum_labels(df: pd.DataFrame, strata: Sequence[str]) -> pd.Series:
    """Readable stratum label per row, e.g. 'Female, 75-84'."""
    if not strata:
        return pd.Series('All deaths', index=df.index)
    return df[list(strata)].astype(str).agg(', '.join, axis=1)


def _finish(fig: plt.Figure, save_path: Optional[Path], params: PlotParameters) -> plt.Figure:
    fig.tight_layout()
    if save_path:
        fig.savefig(save_path, dpi=params.dpi, bbox_inches='tight')
        print(f"Plot saved to {save_path}")
    return fig


def plot_weighted_deaths(counts: pd.DataFrame, strata: Sequence[str] = (),
                         params: Optional[PlotParameters] = None,
                         save_path: Optional[Path] = None) -> plt.Figure:
    """Plot monthly weighted deaths against the continuous period index.

    Args:
        counts: Weighted death counts with 'period_index' and 'weighted_count'
        strata: Stratum columns, one line per stratum
        params: Plot settings
        save_path: Where to save the figure

    Returns:
        Matplotlib figure
    """
    params = params or PlotParameters()
    data = counts.assign(stratum=stratum_labels(counts, strata))

    fig, ax = plt.subplots(figsize=params.figsize)
    sns.lineplot(data=data, x='period_index', y='weighted_count', hue='stratum', ax=ax, linewidth=1)
    ax.set_xlabel('Year of death')
    ax.set_ylabel('Weighted deaths per month')
    ax.set_title('Monthly Weighted Deaths')
    ax.grid(True, alpha=0.3)
    return _finish(fig, save_path, params)


def plot_death_variation(variation: pd.DataFrame, strata: Sequence[str] = (),
                         params: Optional[PlotParameters] = None,
                         save_path: Optional[Path] = None) -> plt.Figure:
    """Plot the death variation over time, one line per stratum.

    Periods with undefined variation (the series ends) are left out.

    Returns:
        Matplotlib figure
    """
    params = params or PlotParameters()
    data = variation.dropna(subset=['variation'])
    data = data.assign(stratum=stratum_labels(data, strata))

    fig, ax = plt.subplots(figsize=params.figsize)
    sns.lineplot(data=data, x='period_index', y='variation', hue='stratum', ax=ax, linewidth=1)
    ax.axhline(0, color='black', linewidth=0.8, linestyle='--')
    ax.set_xlabel('Year of death')
    ax.set_ylabel('Death variation (%)')
    ax.set_title('Seasonal Death Variation Relative to the 12-Month Moving Baseline')
    ax.grid(True, alpha=0.3)
    return _finish(fig, save_path, params)


def plot_variation_heatmap(table: pd.DataFrame, title: str = 'Death Variation (%)',
                           params: Optional[PlotParameters] = None,
                           save_path: Optional[Path] = None) -> plt.Figure:
    """Heatmap of a year by month variation table, centered at zero.

    Args:
        table: Output of analysis.pivot_variation
        title: Plot title
        params: Plot settings
        save_path: Where to save the figure

    Returns:
        Matplotlib figure
    """
    params = params or PlotParameters()
    labeled = table.rename(columns=lambda m: MONTH_ABBR[int(m) - 1])

    fig, ax = plt.subplots(figsize=(10, max(4, 0.35 * len(labeled))))
    sns.heatmap(labeled, cmap=params.cmap, center=0, annot=True, fmt='.0f',
                cbar_kws={'label': 'Variation (%)'}, ax=ax)
    ax.set_xlabel('Month of death')
    ax.set_ylabel('Year of death')
    ax.set_title(title)
    return _finish(fig, save_path, params)


def plot_seasonal_profile(profile: pd.DataFrame, strata: Sequence[str] = (),
                          params: Optional[PlotParameters] = None,
                          save_path: Optional[Path] = None) -> plt.Figure:
    """Plot mean variation by calendar month for each stratum."""
    params = params or PlotParameters()
    data = profile.assign(stratum=stratum_labels(profile, strata))

    fig, ax = plt.subplots(figsize=params.figsize)
    sns.lineplot(data=data, x='month', y='mean_variation', hue='stratum', marker='o', ax=ax)
    ax.axhline(0, color='black', linewidth=0.8, linestyle='--')
    ax.set_xticks(range(1, 13))
    ax.set_xticklabels(MONTH_ABBR)
    ax.set_xlabel('Month of death')
    ax.set_ylabel('Mean death variation (%)')
    ax.set_title('Seasonal Profile of Deaths')
    ax.grid(True, alpha=0.3)
    return _finish(fig, save_path, params)


def plot_state_effects(result, params: Optional[PlotParameters] = None,
                       save_path: Optional[Path] = None) -> plt.Figure:
    """Plot state coefficients with 95% confidence intervals.

    Args:
        result: RegressionResult of a model including 'state'

    Returns:
        Matplotlib figure
    """
    params = params or PlotParameters()
    effects = result.state_effects().sort_values('coef')
    assert not effects.empty, f"Model '{result.name}' has no state effects"

    fig, ax = plt.subplots(figsize=(8, max(4, 0.25 * len(effects))))
    positions = range(len(effects))
    ax.errorbar(effects['coef'], positions,
                xerr=[effects['coef'] - effects['ci_low'], effects['ci_high'] - effects['coef']],
                fmt='o', color='steelblue', ecolor='gray', capsize=2)
    ax.axvline(0, color='black', linewidth=0.8, linestyle='--')
    ax.set_yticks(list(positions))
    ax.set_yticklabels(effects.index.astype(str))
    ax.set_xlabel('Difference in age at death (years)')
    ax.set_title(f'State Effects on Age at Death ({result.name})')
    ax.grid(True, axis='x', alpha=0.3)
    return _finish(fig, save_path, params)


def create_variation_plots(results: Dict[str, object], dataset: str, strata: List[str],
                           params: Optional[PlotParameters] = None,
                           figures_dir: Path = FIGURES_DIR) -> List[Path]:
    """Create all figures of one analysis run.

    Saves the following outputs to the figures directory:
        "{dataset}_weighted_deaths.pdf"
        "{dataset}_death_variation.pdf"
        "{dataset}_seasonal_profile.pdf"
        "{dataset}_heatmap_{stratum}.pdf" (one per stratum)
        "{dataset}_state_effects.pdf" (when a state model was fitted)

    Returns:
        Paths of the saved figures
    """
    from censoc.analysis import pivot_variation, seasonal_profile

    print("Creating variation plots...")
    params = params or PlotParameters()
    figures_dir = Path(figures_dir)
    figures_dir.mkdir(parents=True, exist_ok=True)

    # Set up plotting style
    plt.style.use('default')
    sns.set_palette("husl")

    variation = results['variation']
    saved = []

    def _save(fig: plt.Figure, name: str) -> None:
        path = figures_dir / f"{dataset}_{name}.pdf"
        _finish(fig, path, params)
        plt.close(fig)
        saved.append(path)

    _save(plot_weighted_deaths(results['counts'], strata, params), 'weighted_deaths')
    _save(plot_death_variation(variation, strata, params), 'death_variation')
    _save(plot_seasonal_profile(seasonal_profile(variation, strata), strata, params), 'seasonal_profile')

    if strata:
        for key, _ in variation.groupby(strata, observed=True):
            key = key if isinstance(key, tuple) else (key,)
            filters = dict(zip(strata, key))
            label = ', '.join(str(v) for v in key)
            table = pivot_variation(variation, filters).dropna(how='all')
            if table.empty:
                print(f"  No defined variation for {label}: skipping heatmap")
                continue
            slug = '_'.join(str(v) for v in key).replace('+', 'plus').replace(' ', '')
            _save(plot_variation_heatmap(table, f'Death Variation (%): {label}', params), f'heatmap_{slug}')
    else:
        table = pivot_variation(variation).dropna(how='all')
        if not table.empty:
            _save(plot_variation_heatmap(table, params=params), 'heatmap_all')

    for result in results.get('regressions', []):
        if 'C(state)' in result.formula:
            _save(plot_state_effects(result, params), 'state_effects')
            break

    print(f"Plots saved to {figures_dir}")
    return saved
