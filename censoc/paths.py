#!/usr/bin/env python3
"""Centralized Path Management for the CenSoc Mortality Vignettes.

This module provides a single source of truth for all file paths used across
the project, so scripts work regardless of the working directory.

Directory Structure:
    project_root/
    ├── censoc/         # Python source code
    ├── data/           # Raw CenSoc CSV files (user provided)
    ├── intermediate/   # Cleaned and aggregated death counts
    ├── output/         # Variation tables and regression results
    └── figures/        # Generated plots

Usage:
    >>> from censoc.paths import OUTPUT_DIR, INTERMEDIATE_DIR
    >>> df.to_csv(OUTPUT_DIR / "results.csv")
"""

from pathlib import Path

# ============================================================================
# Root Directory
# ============================================================================

# Project root is parent of censoc/ directory
PROJECT_ROOT = Path(__file__).parent.parent

# ============================================================================
# Input Data (Raw Data)
# ============================================================================

DATA_DIR = PROJECT_ROOT / "data"
"""Root directory for the raw CenSoc files."""

NUMIDENT_FILE = DATA_DIR / "censoc_numident.csv"
"""CenSoc-Numident linked microdata."""

DMF_FILE = DATA_DIR / "censoc_dmf.csv"
"""CenSoc-DMF linked microdata (men only)."""

RAW_FILES = {'numident': NUMIDENT_FILE, 'dmf': DMF_FILE}

# ============================================================================
# Intermediate and Output Directories
# ============================================================================

INTERMEDIATE_DIR = PROJECT_ROOT / "intermediate"
"""Cleaned records and aggregated weighted death counts."""

OUTPUT_DIR = PROJECT_ROOT / "output"
"""Final analysis outputs (variation tables, regression tables)."""

FIGURES_DIR = PROJECT_ROOT / "figures"
"""Generated plots, charts, and heatmaps."""


def ensure_directories_exist() -> None:
    """Create all output and intermediate directories if they don't exist.

    Does NOT create data/, as it should contain user-provided raw data.
    """
    INTERMEDIATE_DIR.mkdir(parents=True, exist_ok=True)
    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
    FIGURES_DIR.mkdir(parents=True, exist_ok=True)


def validate_data_directories() -> bool:
    """Check that the raw data files are available.

    Returns:
        True if every raw CenSoc file exists, False otherwise.
    """
    all_exist = True
    for name, file_path in RAW_FILES.items():
        if not file_path.exists():
            print(f"Warning: {name} data file not found: {file_path}")
            all_exist = False

    return all_exist


# ============================================================================
# Common File Paths
# ============================================================================

class CommonPaths:
    """Commonly used file paths, computed on access."""

    @staticmethod
    def weighted_deaths(dataset: str) -> Path:
        """Weighted death counts by stratum and month."""
        return INTERMEDIATE_DIR / f"{dataset}_weighted_deaths.csv"

    @staticmethod
    def death_variation(dataset: str) -> Path:
        """Moving total, expected count and variation per stratum and month."""
        return OUTPUT_DIR / f"{dataset}_death_variation.csv"

    @staticmethod
    def seasonal_summary(dataset: str) -> Path:
        """Peak, trough and amplitude of seasonal variation per stratum."""
        return OUTPUT_DIR / f"{dataset}_seasonal_summary.csv"

    @staticmethod
    def regression_table(dataset: str) -> Path:
        """Side-by-side weighted OLS results."""
        return OUTPUT_DIR / f"{dataset}_age_at_death_regressions.csv"


paths = CommonPaths()


if __name__ == "__main__":
    print("=" * 80)
    print("Configured Paths for CenSoc Mortality Vignettes")
    print("=" * 80)
    print(f"\nProject Root: {PROJECT_ROOT}")
    print(f"\n  Raw Data:")
    print(f"    Numident: {NUMIDENT_FILE}")
    print(f"    DMF:      {DMF_FILE}")
    print(f"\n  Intermediate: {INTERMEDIATE_DIR}")
    print(f"  Results:      {OUTPUT_DIR}")
    print(f"  Figures:      {FIGURES_DIR}")

    print(f"\n{'=' * 80}")
    if validate_data_directories():
        print("✓ All raw data files found")
    else:
        print("✗ Some raw data files are missing")
