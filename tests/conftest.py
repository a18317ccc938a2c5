"""Synthetic Zillow-style inputs for the appreciation study tests."""

import matplotlib

matplotlib.use("Agg")

import numpy as np  # noqa: E402
import pandas as pd  # noqa: E402
import pytest  # noqa: E402

ZIPS = [f"641{i:02d}" for i in range(1, 31)]
ZERO_END_ZIP = "64131"
MISSING_START_ZIP = "64132"
ABSENT_ZIP = "64199"
DISTANCE_ONLY_ZIP = "64150"
POIS = ["Airport (MCI)", "The Plaza", "Power and Light", "The Legands", "Lee's Summit"]


def month_ends(start: str, end: str) -> pd.DatetimeIndex:
    return pd.period_range(start, end, freq="M").to_timestamp(how="end").normalize()


@pytest.fixture
def months():
    # 73 months: the 60-month window runs 2019-01 -> 2024-01
    return month_ends("2018-01", "2024-01")


@pytest.fixture
def growth_rates():
    rng = np.random.default_rng(7)
    return dict(zip(ZIPS, rng.uniform(0.05, 0.50, len(ZIPS))))


@pytest.fixture
def price_wide(months, growth_rates):
    """Wide price table; log growth over the last 60 months equals growth_rates[zip]."""
    cols = [d.strftime("%Y-%m-%d") for d in months]
    k = np.arange(len(months))
    rows = []
    for i, z in enumerate(ZIPS):
        base = 150000 + 5000 * i
        prices = base * np.exp(growth_rates[z] * (k - 12) / 60)
        rows.append([i, i + 1, int(z), "zip", "Kansas City", "MO", "Kansas City, MO-KS", "Jackson County"] + list(prices))

    zero_end = [200000.0] * len(months)
    zero_end[-1] = 0.0
    missing_start = [180000.0] * len(months)
    missing_start[12] = np.nan
    other = [90000.0] * len(months)
    for j, (z, prices) in enumerate(
        [(ZERO_END_ZIP, zero_end), (MISSING_START_ZIP, missing_start), ("99999", other)]
    ):
        rows.append([100 + j, 100 + j, int(z), "zip", "Elsewhere", "MO", "Kansas City, MO-KS", "Clay County"] + prices)

    header = ["RegionID", "SizeRank", "RegionName", "RegionType", "City", "State", "Metro", "CountyName"] + cols
    return pd.DataFrame(rows, columns=header)


@pytest.fixture
def target_zips():
    return ZIPS + [ZERO_END_ZIP, MISSING_START_ZIP, ABSENT_ZIP]


@pytest.fixture
def distance_long():
    rng = np.random.default_rng(11)
    rows = []
    for z in ZIPS + [DISTANCE_ONLY_ZIP]:
        for poi in POIS:
            rows.append({"InputID": int(z), "TargetID": poi, "Distance": float(rng.uniform(1, 40))})
    return pd.DataFrame(rows)


@pytest.fixture
def input_files(tmp_path, price_wide, target_zips, distance_long):
    raw = tmp_path / "raw"
    raw.mkdir()
    price_csv = raw / "prices.csv"
    targets_csv = raw / "targets.csv"
    distance_csv = raw / "distances.csv"
    price_wide.to_csv(price_csv, index=False)
    pd.DataFrame({"RegionName": target_zips}).to_csv(targets_csv, index=False)
    distance_long.to_csv(distance_csv, index=False)
    return {"price_csv": str(price_csv), "targets_csv": str(targets_csv), "distance_csv": str(distance_csv)}


@pytest.fixture
def reg_df():
    """Regression-ready frame with a known distance gradient."""
    rng = np.random.default_rng(3)
    n = 40
    df = pd.DataFrame({
        "RegionName": [f"66{i:03d}" for i in range(n)],
        "dist_plaza": rng.uniform(1, 40, n),
        "dist_pnl": rng.uniform(1, 40, n),
        "dist_lees_summit": rng.uniform(1, 40, n),
        "dist_mci": rng.uniform(1, 40, n),
        "dist_legends": rng.uniform(1, 40, n),
        "log_initial": rng.normal(12.3, 0.3, n),
    })
    df["growth_5yr"] = (
        0.8 - 0.01 * df["dist_plaza"] - 0.03 * (df["log_initial"] - 12.3) + rng.normal(0, 0.01, n)
    )
    df["pct_change"] = np.exp(df["growth_5yr"]) - 1
    df["urban_core"] = (df["dist_plaza"] + df["dist_pnl"]) / 2
    return df
