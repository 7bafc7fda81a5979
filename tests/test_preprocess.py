"""
Test cases for loading, cleaning and aggregating CenSoc microdata into
monthly weighted death counts.
"""

import numpy as np
import pandas as pd
import pytest

from censoc.config import AgeGroupParameters, CensocConfig, DatasetParameters
from censoc.preprocess import CensocDataProcessor, assign_age_groups
from conftest import seasonal_records


def test_assign_age_groups():
    groups = assign_age_groups(pd.Series([65, 74.5, 75, 94, 95, 101]))
    assert groups.astype(str).tolist() == ["65-74", "65-74", "75-84", "85-94", "95+", "95+"]
    assert groups.cat.ordered

    custom = assign_age_groups(pd.Series([60, 70]), AgeGroupParameters(breaks=(65,)))
    assert pd.isna(custom.iloc[0])
    assert custom.iloc[1] == "65+"


def test_load_lowercases_and_checks_columns(microdata_csv, tmp_path):
    df = CensocDataProcessor("numident").load(microdata_csv)
    assert "histid" in df.columns

    bad = tmp_path / "bad.csv"
    pd.DataFrame({"dyear": [1990], "dmonth": [1]}).to_csv(bad, index=False)
    with pytest.raises(AssertionError):
        CensocDataProcessor("numident").load(bad)
    with pytest.raises(AssertionError):
        CensocDataProcessor("numident").load(tmp_path / "missing.csv")


def test_clean_drops_records_outside_coverage(microdata):
    clean = CensocDataProcessor("numident").clean(microdata)

    assert len(clean) == 2880
    assert clean["year"].between(1990, 1992).all()
    assert clean["death_age"].min() >= 65
    assert set(clean["sex"]) == {"Male", "Female"}
    assert set(clean["age_group"].astype(str)) == {"65-74", "75-84"}
    assert clean["incwage"].isna().sum() == (microdata["incwage"] == 999999).sum()
    # input is left untouched
    assert "age_group" not in microdata.columns


def test_clean_respects_configured_window(microdata):
    config = CensocConfig(numident=DatasetParameters.numident(first_year=1991, last_year=1991))
    clean = CensocDataProcessor("numident", config).clean(microdata)
    assert set(clean["year"]) == {1991}


def test_clean_dmf_labels_all_men(dmf_csv):
    processor = CensocDataProcessor("dmf")
    clean = processor.clean(processor.load(dmf_csv))
    assert set(clean["sex"]) == {"Male"}
    assert len(clean) == 1440


def test_aggregate_sums_weights_per_month(microdata):
    processor = CensocDataProcessor("numident")
    counts = processor.aggregate(processor.clean(microdata), ["sex", "age_group"])

    assert len(counts) == 4 * 36
    jan = counts[(counts["sex"] == "Female") & (counts["age_group"] == "75-84")
                 & (counts["year"] == 1991) & (counts["month"] == 1)]
    assert jan["weighted_count"].iloc[0] == pytest.approx(1.5 * seasonal_records(1))
    assert jan["n_records"].iloc[0] == seasonal_records(1)
    assert counts["weighted_count"].sum() == pytest.approx(1.5 * 2880)


def test_aggregate_completes_calendar_with_zeros(microdata):
    processor = CensocDataProcessor("numident")
    clean = processor.clean(microdata)
    # remove every death of men in March 1991
    clean = clean[~((clean["sex"] == "Male") & (clean["year"] == 1991) & (clean["month"] == 3))]
    counts = processor.aggregate(clean, ["sex"])

    men = counts[counts["sex"] == "Male"]
    assert len(men) == 36
    ordinals = (men["year"] * 12 + men["month"]).to_numpy()
    assert (np.diff(ordinals) == 1).all()
    march = men[(men["year"] == 1991) & (men["month"] == 3)]
    assert march["weighted_count"].iloc[0] == 0
    assert march["n_records"].iloc[0] == 0


def test_aggregate_without_strata(microdata):
    processor = CensocDataProcessor("numident")
    counts = processor.aggregate(processor.clean(microdata), [])
    assert len(counts) == 36
    assert counts["period_index"].iloc[0] == 1990
    assert counts["weighted_count"].iloc[0] == pytest.approx(1.5 * 4 * seasonal_records(1))


def test_summarize(microdata):
    processor = CensocDataProcessor("numident")
    summaries = processor.summarize(processor.clean(microdata))
    assert set(summaries) == {"year", "month", "sex", "age_group"}
    assert summaries["sex"]["share"].sum() == pytest.approx(1.0)
    by_year = summaries["year"].set_index("year")["weighted_deaths"]
    assert by_year.loc[1990] == pytest.approx(1.5 * 960)


def test_run_all_processing_writes_counts(microdata_csv, tmp_path):
    counts = CensocDataProcessor("numident").run_all_processing(microdata_csv, ["sex"], tmp_path / "intermediate")
    written = pd.read_csv(tmp_path / "intermediate" / "numident_weighted_deaths.csv")
    assert len(written) == len(counts) == 72
