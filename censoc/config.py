#!/usr/bin/env python3
"""Analysis Configuration and Parameter Documentation.

This module centralizes all analysis parameters with their justifications,
sources, and default values using Pydantic for validation and documentation.

Key features:
- Type validation and coercion
- Immutable configuration (frozen=True)
- Rich metadata with sources and interpretation
- Programmatic access to documentation

Parameters are organized by category:
- Dataset: Coverage windows and weight columns for Numident and DMF
- Age groups: Age bands used to stratify deaths
- Baseline: Centered moving-sum window for the seasonal baseline
- Regression: Covariates and coding of the age-at-death models
- Plot: Figure output settings

Usage:
    >>> from censoc.config import CensocConfig
    >>> config = CensocConfig()
    >>> print(config.baseline.window_before)  # 5
    >>> config.numident.describe('first_year')  # Print full documentation
"""

from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Dict, Any, Optional, Tuple


class DocumentedParameters(BaseModel):
    """Base class adding printable parameter documentation."""

    model_config = {'frozen': True, 'extra': 'forbid'}

    def describe(self, param_name: str) -> None:
        """Print comprehensive documentation for a parameter.

        Args:
            param_name: Name of the parameter to describe
        """
        fields = type(self).model_fields
        if param_name not in fields:
            raise ValueError(f"Unknown parameter: {param_name}")

        field_info = fields[param_name]
        value = getattr(self, param_name)
        extra = field_info.json_schema_extra or {}

        print(f"\n{'=' * 70}")
        print(f"Parameter: {param_name}")
        print(f"{'=' * 70}")
        print(f"Value: {value}")
        if 'units' in extra:
            print(f"Units: {extra['units']}")
        print(f"\nDescription:")
        print(f"  {field_info.description}")
        if 'source' in extra:
            print(f"\nSource:")
            print(f"  {extra['source']}")
        if 'interpretation' in extra:
            print(f"\nInterpretation:")
            print(f"  {extra['interpretation']}")
        if 'notes' in extra:
            print(f"\nNotes:")
            print(f"  {extra['notes']}")
        print(f"{'=' * 70}\n")


# ============================================================================
# Dataset Parameters (Coverage Windows)
# ============================================================================

class DatasetParameters(DocumentedParameters):
    """Coverage window and weighting for one CenSoc dataset.

    CenSoc weights are only defined for the high-coverage death years and
    ages, so records outside the window are dropped before aggregation.
    """

    name: str = Field(
        default='numident',
        description="Dataset identifier, either 'numident' or 'dmf'.",
    )

    first_year: int = Field(
        default=1988,
        ge=1960,
        le=2010,
        description="First death year with high mortality coverage and defined weights.",
        json_schema_extra={
            'units': 'calendar year',
            'source': 'CenSoc-Numident documentation (high-coverage period 1988-2005)',
        }
    )

    last_year: int = Field(
        default=2005,
        ge=1960,
        le=2010,
        description="Last death year with high mortality coverage and defined weights.",
        json_schema_extra={
            'units': 'calendar year',
            'source': 'CenSoc-Numident and CenSoc-DMF documentation',
        }
    )

    min_death_age: int = Field(
        default=65,
        ge=0,
        le=120,
        description="Youngest age at death covered by the weights.",
        json_schema_extra={
            'units': 'years',
            'interpretation': 'Deaths below this age are dropped',
        }
    )

    max_death_age: int = Field(
        default=100,
        ge=1,
        le=130,
        description="Oldest age at death covered by the weights.",
        json_schema_extra={
            'units': 'years',
            'interpretation': 'Deaths above this age are dropped',
        }
    )

    weight_col: str = Field(
        default='weight',
        description="Column holding the post-stratification weight of each record.",
        json_schema_extra={
            'source': 'CenSoc weights post-stratify to Human Mortality Database totals',
            'notes': "Use 'ccweight' for the conservative Numident sample.",
        }
    )

    has_sex: bool = Field(
        default=True,
        description="Whether the dataset carries a sex column. CenSoc-DMF is restricted to men.",
    )

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        """Only the two CenSoc datasets are supported."""
        if v not in ('numident', 'dmf'):
            raise ValueError(f"name must be 'numident' or 'dmf', got {v!r}")
        return v

    @model_validator(mode='after')
    def validate_window(self):
        """Ensure the coverage window is not empty."""
        if self.first_year > self.last_year:
            raise ValueError(
                f"first_year ({self.first_year}) must not exceed last_year ({self.last_year})"
            )
        if self.min_death_age >= self.max_death_age:
            raise ValueError(
                f"min_death_age ({self.min_death_age}) must be below max_death_age ({self.max_death_age})"
            )
        return self

    @classmethod
    def numident(cls, **overrides) -> 'DatasetParameters':
        """Default coverage for CenSoc-Numident (deaths 1988-2005, ages 65-100)."""
        values = dict(name='numident', first_year=1988, last_year=2005, has_sex=True)
        values.update(overrides)
        return cls(**values)

    @classmethod
    def dmf(cls, **overrides) -> 'DatasetParameters':
        """Default coverage for CenSoc-DMF (deaths 1975-2005, men aged 65-100)."""
        values = dict(name='dmf', first_year=1975, last_year=2005, has_sex=False)
        values.update(overrides)
        return cls(**values)


# ============================================================================
# Age Groups
# ============================================================================

class AgeGroupParameters(DocumentedParameters):
    """Age bands used to stratify deaths."""

    breaks: Tuple[int, ...] = Field(
        default=(65, 75, 85, 95),
        description="Lower bounds of the age groups. The last group is open-ended (e.g. '95+').",
        json_schema_extra={
            'units': 'years',
            'interpretation': 'Breaks (65, 75, 85, 95) produce 65-74, 75-84, 85-94, 95+',
        }
    )

    @field_validator('breaks')
    @classmethod
    def validate_breaks(cls, v):
        """Breaks must be non-empty and strictly increasing."""
        if len(v) == 0:
            raise ValueError("breaks must not be empty")
        if any(b >= a for b, a in zip(v, v[1:])):
            raise ValueError(f"breaks must be strictly increasing, got {v}")
        return v

    @property
    def labels(self) -> Tuple[str, ...]:
        """Human readable labels, one per age group."""
        bounds = list(self.breaks)
        labels = [f"{low}-{high - 1}" for low, high in zip(bounds, bounds[1:])]
        labels.append(f"{bounds[-1]}+")
        return tuple(labels)


# ============================================================================
# Seasonal Baseline
# ============================================================================

class BaselineParameters(DocumentedParameters):
    """Parameters of the centered moving-sum seasonal baseline."""

    window_before: int = Field(
        default=5,
        ge=0,
        le=24,
        description="Number of periods preceding the target period included in the moving total.",
        json_schema_extra={
            'units': 'months',
            'interpretation': 'With window_after=6 the window spans 12 consecutive months',
        }
    )

    window_after: int = Field(
        default=6,
        ge=0,
        le=24,
        description="Number of periods following the target period included in the moving total.",
        json_schema_extra={
            'units': 'months',
        }
    )

    leap_years: Optional[Tuple[int, ...]] = Field(
        default=None,
        description="Explicit list of years treated as leap years. None applies the Gregorian rule.",
        json_schema_extra={
            'notes': 'Only set this to reproduce legacy outputs built from hardcoded year lists.',
        }
    )

    @property
    def window(self) -> int:
        """Total number of periods in the moving window."""
        return self.window_before + 1 + self.window_after


# ============================================================================
# Regression
# ============================================================================

class RegressionParameters(DocumentedParameters):
    """Parameters of the weighted age-at-death regressions."""

    outcome: str = Field(
        default='death_age',
        description="Outcome column of the regression.",
        json_schema_extra={'units': 'years'}
    )

    state_col: str = Field(
        default='socstate',
        description="Column holding the state covariate (e.g. 'socstate' or census 'statefip').",
    )

    income_col: str = Field(
        default='incwage',
        description="Column holding 1940 census wage income.",
        json_schema_extra={'units': 'USD (1939 dollars)'}
    )

    income_scale: float = Field(
        default=1000.0,
        gt=0.0,
        description="Divisor applied to income so the coefficient reads per $1,000.",
    )

    income_missing_codes: Tuple[int, ...] = Field(
        default=(999998, 999999),
        description="IPUMS codes for missing or not-in-universe income.",
        json_schema_extra={'source': 'IPUMS USA INCWAGE codebook'}
    )

    cohort_fixed_effects: bool = Field(
        default=True,
        description="Include birth-year fixed effects. Needed because each cohort is observed over a different age window.",
    )

    min_observations: int = Field(
        default=30,
        ge=2,
        description="Minimum number of complete rows required to fit a model.",
    )


# ============================================================================
# Plotting
# ============================================================================

class PlotParameters(DocumentedParameters):
    """Figure output settings."""

    dpi: int = Field(default=300, ge=50, le=1200, description="Resolution of saved figures.")

    figsize: Tuple[float, float] = Field(
        default=(12.0, 6.0),
        description="Default figure size in inches (width, height).",
    )

    cmap: str = Field(
        default='RdBu_r',
        description="Diverging colormap for variation heatmaps (red = excess deaths).",
    )


# ============================================================================
# Complete Configuration
# ============================================================================

class CensocConfig(BaseModel):
    """Complete analysis configuration."""

    model_config = {'frozen': True, 'extra': 'forbid'}

    numident: DatasetParameters = Field(
        default_factory=DatasetParameters.numident,
        description="CenSoc-Numident coverage"
    )

    dmf: DatasetParameters = Field(
        default_factory=DatasetParameters.dmf,
        description="CenSoc-DMF coverage"
    )

    age_groups: AgeGroupParameters = Field(
        default_factory=AgeGroupParameters,
        description="Age group breaks"
    )

    baseline: BaselineParameters = Field(
        default_factory=BaselineParameters,
        description="Seasonal baseline window"
    )

    regression: RegressionParameters = Field(
        default_factory=RegressionParameters,
        description="Regression settings"
    )

    plot: PlotParameters = Field(
        default_factory=PlotParameters,
        description="Plot settings"
    )

    def dataset(self, name: str) -> DatasetParameters:
        """Return the coverage parameters of a dataset by name."""
        if name not in ('numident', 'dmf'):
            raise ValueError(f"Unknown dataset: {name!r}")
        return getattr(self, name)

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        """Export all parameters as nested dictionary."""
        return {
            'numident': self.numident.model_dump(),
            'dmf': self.dmf.model_dump(),
            'age_groups': self.age_groups.model_dump(),
            'baseline': self.baseline.model_dump(),
            'regression': self.regression.model_dump(),
            'plot': self.plot.model_dump(),
        }

    def describe_all(self) -> None:
        """Print documentation for all parameters in all categories."""
        for category_name in self.to_dict():
            category = getattr(self, category_name)
            print(f"\n{'#' * 70}")
            print(f"# {category_name.upper().replace('_', ' ')}")
            print(f"{'#' * 70}")
            for param_name in type(category).model_fields.keys():
                category.describe(param_name)


# ============================================================================
# Command-line Interface
# ============================================================================

if __name__ == "__main__":
    config = CensocConfig()

    print("=" * 80)
    print("ANALYSIS PARAMETERS")
    print("=" * 80)

    for category_name, values in config.to_dict().items():
        print(f"\n{category_name.upper().replace('_', ' ')}")
        print("-" * 80)
        for param_name, value in values.items():
            print(f"  {param_name:22s} = {value}")

    print("\n" + "=" * 80)
    print("\nFor detailed documentation, use:")
    print("  >>> from censoc.config import CensocConfig")
    print("  >>> config = CensocConfig()")
    print("  >>> config.baseline.describe('window_before')")
    print("  >>> config.describe_all()  # All parameters")
    print("=" * 80)
