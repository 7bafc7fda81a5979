import math
import os
import sys

import matplotlib
import numpy as np
import pandas as pd
import pytest

# ensure repository root is on sys.path so the censoc package and main.py can be imported
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

matplotlib.use("Agg")

STATES = ["CA", "NY", "TX"]
INCOMES = [500, 1500, 999999, 2500]


def seasonal_records(month: int, base: int = 20, amplitude: int = 6) -> int:
    """Number of synthetic deaths in a calendar month, peaking in January."""
    return base + round(amplitude * math.cos(2 * math.pi * (month - 1) / 12))


@pytest.fixture
def microdata() -> pd.DataFrame:
    """Synthetic CenSoc-Numident records for deaths 1990-1992.

    Each sex x age group stratum has a January-peaking seasonal pattern that
    repeats exactly every year, every record has weight 1.5, and a handful of
    records fall outside the coverage rules and must be dropped by cleaning.
    """
    rows = []
    for year in range(1990, 1993):
        for month in range(1, 13):
            for sex in (1, 2):
                for age in (70, 80):
                    for k in range(seasonal_records(month)):
                        rows.append({
                            "HISTID": f"{year}{month:02d}{sex}{age}{k}",
                            "byear": year - age - k % 3,
                            "dyear": year,
                            "dmonth": month,
                            "death_age": age + k % 3,
                            "sex": sex,
                            "socstate": STATES[k % len(STATES)],
                            "incwage": INCOMES[k % len(INCOMES)],
                            "weight": 1.5,
                        })

    invalid = [
        {"dyear": 1985, "dmonth": 1, "death_age": 70, "sex": 1, "weight": 1.0},   # before coverage
        {"dyear": 1991, "dmonth": 1, "death_age": 70, "sex": 1, "weight": np.nan},  # no weight
        {"dyear": 1991, "dmonth": 1, "death_age": 60, "sex": 2, "weight": 1.0},   # too young
        {"dyear": 1991, "dmonth": 0, "death_age": 70, "sex": 2, "weight": 1.0},   # invalid month
    ]
    for row in invalid:
        row.update({"HISTID": "x", "byear": row["dyear"] - row["death_age"],
                    "socstate": "CA", "incwage": 1000})
        rows.append(row)

    return pd.DataFrame(rows)


@pytest.fixture
def microdata_csv(tmp_path, microdata):
    path = tmp_path / "censoc_numident.csv"
    microdata.to_csv(path, index=False)
    return path


@pytest.fixture
def dmf_csv(tmp_path, microdata):
    path = tmp_path / "censoc_dmf.csv"
    men = microdata[(microdata["sex"] == 1) & (microdata["dyear"] >= 1990)]
    men.drop(columns=["sex", "socstate", "incwage"]).to_csv(path, index=False)
    return path


@pytest.fixture
def regression_data() -> pd.DataFrame:
    """Records whose age at death follows known state and income effects."""
    rng = np.random.default_rng(42)
    n = 900
    state = np.array(STATES)[rng.integers(0, len(STATES), n)]
    income = rng.uniform(0, 5000, n)
    byear = rng.integers(1905, 1910, n)
    state_effect = pd.Series({"CA": 0.0, "NY": 1.5, "TX": -2.0}).loc[state].to_numpy()
    death_age = 80 + state_effect + 0.8 * income / 1000 + 0.3 * (byear - 1905) + rng.normal(0, 0.5, n)
    return pd.DataFrame({
        "death_age": death_age,
        "socstate": state,
        "incwage": income,
        "byear": byear,
        "weight": rng.uniform(0.5, 2.0, n),
    })
