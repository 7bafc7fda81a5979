#!/usr/bin/env python3
"""Weighted Age-at-Death Regressions.

This module fits weighted least squares models relating age at death to
state of residence and 1940 wage income, using the CenSoc post-stratification
weights. Birth-year fixed effects are included by default: every cohort is
observed over a different window of ages at death, so comparisons are only
meaningful within cohort.

Example:
    >>> from censoc.regression import fit_age_at_death_model
    >>> result = fit_age_at_death_model(clean_df, covariates=['state', 'income'])
    >>> print(result.coefficients.loc['income', 'coef'])
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import pandas as pd
import statsmodels.formula.api as smf

from censoc.config import RegressionParameters

COVARIATE_TERMS = {
    'state': 'C(state)',
    'income': 'income',
}


@dataclass
class RegressionResult:
    """Summary of one fitted weighted least squares model."""
    name: str
    formula: str
    nobs: int
    rsquared: float
    coefficients: pd.DataFrame

    def coefficient(self, term: str) -> float:
        """Point estimate of a single term."""
        return float(self.coefficients.loc[term, 'coef'])

    def state_effects(self) -> pd.DataFrame:
        """Coefficients of the state dummies, indexed by state."""
        mask = self.coefficients.index.str.startswith('C(state)')
        effects = self.coefficients.loc[mask].copy()
        effects.index = effects.index.str.extract(r'\[T\.(.+)\]', expand=False)
        effects.index.name = 'state'
        return effects


def prepare_regression_data(df: pd.DataFrame, weight_col: str = 'weight',
                            params: Optional[RegressionParameters] = None) -> pd.DataFrame:
    """
    Select and recode the regression variables.

    Income missing codes become NaN and income is divided by `income_scale`.
    Rows without an outcome or a positive weight are dropped.

    Args:
        df: Cleaned CenSoc records
        weight_col: Weight column
        params: Regression settings

    Returns:
        DataFrame with columns 'death_age', 'weight' and whichever of
        'state', 'income', 'byear' are available
    """
    params = params or RegressionParameters()
    assert params.outcome in df.columns, f"Outcome column {params.outcome} not found"
    assert weight_col in df.columns, f"Weight column {weight_col} not found"

    data = pd.DataFrame({
        'death_age': pd.to_numeric(df[params.outcome], errors='coerce'),
        'weight': pd.to_numeric(df[weight_col], errors='coerce'),
    })
    if params.state_col in df.columns:
        data['state'] = df[params.state_col]
    if params.income_col in df.columns:
        income = pd.to_numeric(df[params.income_col], errors='coerce')
        income = income.where(~income.isin(list(params.income_missing_codes)))
        data['income'] = income / params.income_scale
    if 'byear' in df.columns:
        data['byear'] = df['byear']

    data = data.dropna(subset=['death_age', 'weight'])
    return data[data['weight'] > 0].reset_index(drop=True)


def build_formula(covariates: Sequence[str], cohort_fixed_effects: bool = True) -> str:
    """Patsy formula of the age-at-death model."""
    unknown = [c for c in covariates if c not in COVARIATE_TERMS]
    if unknown:
        raise ValueError(f"Unknown covariates: {unknown}. Valid: {list(COVARIATE_TERMS)}")

    terms = [COVARIATE_TERMS[c] for c in covariates]
    if cohort_fixed_effects:
        terms.append('C(byear)')
    return 'death_age ~ ' + (' + '.join(terms) if terms else '1')


def fit_age_at_death_model(df: pd.DataFrame, covariates: Sequence[str] = ('state', 'income'),
                           weight_col: str = 'weight',
                           params: Optional[RegressionParameters] = None,
                           name: Optional[str] = None) -> RegressionResult:
    """
    Fit a weighted OLS model of age at death.

    Args:
        df: Cleaned CenSoc records
        covariates: Any of 'state' and 'income'
        weight_col: Weight column
        params: Regression settings
        name: Label of the model in comparison tables

    Returns:
        RegressionResult with a tidy coefficient table

    Raises:
        ValueError: If a covariate is unknown or unavailable, or too few
            complete observations remain
    """
    params = params or RegressionParameters()
    covariates = list(covariates)
    cohort_fe = params.cohort_fixed_effects and 'byear' in df.columns
    formula = build_formula(covariates, cohort_fe)

    data = prepare_regression_data(df, weight_col, params)
    missing = [c for c in covariates if c not in data.columns]
    if missing:
        raise ValueError(f"Covariates not available in data: {missing}")
    data = data[['death_age', 'weight'] + covariates + (['byear'] if cohort_fe else [])].dropna()

    if len(data) < params.min_observations:
        raise ValueError(
            f"Only {len(data)} complete observations, at least {params.min_observations} required"
        )

    fit = smf.wls(formula, data=data, weights=data['weight']).fit()
    conf_int = fit.conf_int()
    coefficients = pd.DataFrame({
        'coef': fit.params,
        'std_err': fit.bse,
        't': fit.tvalues,
        'p_value': fit.pvalues,
        'ci_low': conf_int[0],
        'ci_high': conf_int[1],
    })
    coefficients.index.name = 'term'

    return RegressionResult(
        name=name or ' + '.join(covariates) or 'intercept',
        formula=formula,
        nobs=int(fit.nobs),
        rsquared=float(fit.rsquared),
        coefficients=coefficients,
    )


def _stars(p_value: float) -> str:
    if p_value < 0.01:
        return '***'
    if p_value < 0.05:
        return '**'
    if p_value < 0.1:
        return '*'
    return ''


def regression_table(results: List[RegressionResult], decimals: int = 3) -> pd.DataFrame:
    """
    Side-by-side comparison of several models.

    Cells read "coef (se)" with significance stars. Birth-year dummies are
    omitted; 'N' and 'R2' rows are appended.

    Args:
        results: Fitted models
        decimals: Rounding of coefficients and standard errors

    Returns:
        DataFrame with one column per model and one row per term
    """
    columns: Dict[str, pd.Series] = {}
    for result in results:
        coefs = result.coefficients.loc[~result.coefficients.index.str.startswith('C(byear)')]
        cells = [
            f"{row.coef:.{decimals}f}{_stars(row.p_value)} ({row.std_err:.{decimals}f})"
            for row in coefs.itertuples()
        ]
        column = pd.Series(cells, index=coefs.index)
        column['N'] = f"{result.nobs:,}"
        column['R2'] = f"{result.rsquared:.{decimals}f}"
        columns[result.name] = column

    table = pd.DataFrame(columns)
    footer = ['N', 'R2']
    body = [term for term in table.index if term not in footer]
    return table.loc[body + footer].fillna('')
