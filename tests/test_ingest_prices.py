import math

import numpy as np
import pandas as pd
import pytest

from kc_appreciation.ingest_prices import (
    build_growth_table,
    compute_growth,
    cumulative_log_growth,
    filter_to_targets,
    load_price_table,
    load_target_zips,
    melt_prices,
    normalize_zip,
)

from conftest import ABSENT_ZIP, MISSING_START_ZIP, ZERO_END_ZIP, ZIPS, month_ends


def _long(price_wide, target_zips):
    prices = price_wide.copy()
    prices["RegionName"] = normalize_zip(prices["RegionName"])
    return melt_prices(filter_to_targets(prices, target_zips))


def test_normalize_zip_pads_and_strips():
    s = pd.Series([6101, "64111", "64111.0", " 66044 ", np.nan])
    out = normalize_zip(s)
    assert out.iloc[:4].tolist() == ["06101", "64111", "64111", "66044"]
    assert pd.isna(out.iloc[4])


def test_filter_to_targets_keeps_only_msa(price_wide, target_zips):
    prices = price_wide.copy()
    prices["RegionName"] = normalize_zip(prices["RegionName"])
    out = filter_to_targets(prices, target_zips)
    assert "99999" not in set(out["RegionName"])
    assert ABSENT_ZIP not in set(out["RegionName"])
    assert len(out) == len(ZIPS) + 2


def test_melt_prices_long_and_sorted(price_wide, target_zips, months):
    long_df = _long(price_wide, target_zips)
    assert list(long_df.columns) == ["RegionName", "date", "price"]
    assert len(long_df) == (len(ZIPS) + 2) * len(months)
    assert long_df["date"].dtype.kind == "M"
    first = long_df[long_df["RegionName"] == ZIPS[0]]
    assert first["date"].is_monotonic_increasing


def test_melt_prices_rejects_duplicate_zips(price_wide):
    prices = pd.concat([price_wide.head(2), price_wide.head(1)])
    prices["RegionName"] = normalize_zip(prices["RegionName"])
    with pytest.raises(ValueError, match="Duplicate RegionName"):
        melt_prices(prices)


def test_compute_growth_matches_endpoint_logs(price_wide, target_zips, growth_rates):
    growth = compute_growth(_long(price_wide, target_zips), window_months=60)
    row = growth.set_index("RegionName").loc[ZIPS[3]]
    expected = math.log(row["final_price"]) - math.log(row["initial_price"])
    assert math.isclose(row["cum_5yr_log_growth"], expected, rel_tol=1e-12)
    assert math.isclose(row["cum_5yr_log_growth"], growth_rates[ZIPS[3]], rel_tol=1e-9)
    assert math.isclose(row["percent_change"], math.exp(expected) - 1, rel_tol=1e-9)
    assert math.isclose(row["log_initial_price"], math.log(row["initial_price"]), rel_tol=1e-12)


def test_compute_growth_uses_most_recent_sixty_months(price_wide, target_zips):
    growth = compute_growth(_long(price_wide, target_zips), window_months=60)
    assert (growth["start_date"] == pd.Timestamp("2019-01-31")).all()
    assert (growth["end_date"] == pd.Timestamp("2024-01-31")).all()


def test_compute_growth_excludes_bad_endpoints(price_wide, target_zips):
    growth = compute_growth(_long(price_wide, target_zips), window_months=60)
    zips = set(growth["RegionName"])
    assert ZERO_END_ZIP not in zips
    assert MISSING_START_ZIP not in zips
    assert zips == set(ZIPS)
    assert np.isfinite(growth["cum_5yr_log_growth"]).all()


def test_compute_growth_ignores_interior_zero():
    months = month_ends("2019-01", "2024-01")
    prices = [100.0] * len(months)
    prices[30] = 0.0
    prices[-1] = 150.0
    long_df = pd.DataFrame({"RegionName": "64111", "date": months, "price": prices})
    growth = compute_growth(long_df, window_months=60)
    assert math.isclose(growth["cum_5yr_log_growth"].iloc[0], math.log(1.5))


def test_compute_growth_short_history_raises():
    months = month_ends("2022-01", "2024-01")
    long_df = pd.DataFrame({"RegionName": "64111", "date": months, "price": 100.0})
    with pytest.raises(ValueError, match="60-month window"):
        compute_growth(long_df, window_months=60)


def test_cumulative_log_growth_ends_at_growth(price_wide, target_zips):
    long_df = _long(price_wide, target_zips)
    panel = cumulative_log_growth(long_df, window_months=60)
    growth = compute_growth(long_df, window_months=60).set_index("RegionName")
    last = panel.groupby("RegionName")["cum_log_growth"].last()
    assert np.allclose(last.loc[ZIPS], growth.loc[ZIPS, "cum_5yr_log_growth"])
    assert panel.groupby("RegionName").size().eq(61).all()
    first = panel.groupby("RegionName")["cum_log_growth"].first()
    assert np.allclose(first.loc[ZIPS], 0.0)
    zero_end = panel[panel["RegionName"] == ZERO_END_ZIP]
    assert pd.isna(zero_end["log_price"].iloc[-1])


def test_load_target_zips_falls_back_to_first_column(tmp_path):
    path = tmp_path / "zips.csv"
    pd.DataFrame({"zip": ["64111", "6101", "64111"]}).to_csv(path, index=False)
    assert load_target_zips(str(path)) == ["06101", "64111"]


def test_load_price_table_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_price_table(str(tmp_path / "nope.csv"))


def test_load_price_table_requires_region_name(tmp_path):
    path = tmp_path / "prices.csv"
    pd.DataFrame({"Zip": ["64111"], "2024-01-31": [1.0]}).to_csv(path, index=False)
    with pytest.raises(ValueError, match="RegionName"):
        load_price_table(str(path))


def test_build_growth_table_writes_csv(input_files, tmp_path):
    out_path = tmp_path / "processed" / "growth.csv"
    panel_path = tmp_path / "processed" / "panel.csv"
    growth = build_growth_table(
        input_files["price_csv"], input_files["targets_csv"],
        out_path=str(out_path), panel_path=str(panel_path),
    )
    assert out_path.exists() and panel_path.exists()
    written = pd.read_csv(out_path, dtype={"RegionName": str})
    assert written["RegionName"].tolist() == growth["RegionName"].tolist()
    assert {"cum_5yr_log_growth", "log_initial_price", "percent_change"} <= set(written.columns)
    assert written["RegionName"].str.len().eq(5).all()


def test_load_target_zips_headerless_keeps_first_zip(tmp_path):
    path = tmp_path / "zips.csv"
    path.write_text("64111\n64112\n64113\n", encoding="utf-8")
    assert load_target_zips(str(path)) == ["64111", "64112", "64113"]


def test_load_target_zips_region_name_header(tmp_path):
    path = tmp_path / "zips.csv"
    path.write_text("RegionName\n64113\n64111\n", encoding="utf-8")
    assert load_target_zips(str(path)) == ["64111", "64113"]


def test_build_growth_table_no_valid_zips_writes_nothing(price_wide, tmp_path):
    bad = price_wide[price_wide["RegionName"].astype(str).isin([ZERO_END_ZIP, MISSING_START_ZIP])]
    price_csv = tmp_path / "prices.csv"
    targets_csv = tmp_path / "targets.csv"
    bad.to_csv(price_csv, index=False)
    pd.DataFrame({"RegionName": [ZERO_END_ZIP, MISSING_START_ZIP]}).to_csv(targets_csv, index=False)
    out_path = tmp_path / "processed" / "growth.csv"
    panel_path = tmp_path / "processed" / "panel.csv"

    with pytest.raises(RuntimeError, match="no ZIPs"):
        build_growth_table(str(price_csv), str(targets_csv), out_path=str(out_path), panel_path=str(panel_path))
    assert not out_path.exists()
    assert not panel_path.exists()
