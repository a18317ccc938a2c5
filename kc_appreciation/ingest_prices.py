"""
Zillow ZIP-level price ingestion: filter to the Kansas City MSA ZIP list,
reshape monthly columns to a long panel, and compute 5-year log appreciation
per ZIP. Output is the growth table consumed by the regression stage.
"""

from __future__ import annotations

import logging
import os
import re
from typing import Optional

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

ID_COLS = [
    "RegionID", "SizeRank", "RegionName", "RegionType", "StateName",
    "State", "City", "Metro", "CountyName",
]

ZIP_PATTERN = re.compile(r"^\d{3,5}$")

GROWTH_EXPORT_COLS = [
    "RegionName", "start_date", "end_date", "initial_price", "final_price",
    "cum_5yr_log_growth", "log_initial_price", "percent_change",
]


def normalize_zip(values: pd.Series) -> pd.Series:
    """Coerce ZIP codes (int, float or str) to 5-digit zero-padded strings."""
    s = values.astype(str).str.strip().str.replace(r"\.0$", "", regex=True)
    return s.str.extract(r"(\d+)", expand=False).str.zfill(5)


def _is_date_column(name) -> bool:
    try:
        pd.Timestamp(str(name))
    except (ValueError, TypeError):
        return False
    return True


def load_price_table(path: str) -> pd.DataFrame:
    """Read the wide Zillow price CSV (one row per ZIP, one column per month)."""
    if not os.path.isfile(path):
        raise FileNotFoundError(f"Price table not found: {path}")
    df = pd.read_csv(path, dtype={"RegionName": str}, low_memory=False)
    if "RegionName" not in df.columns:
        raise ValueError(f"Missing RegionName in {path}")
    df["RegionName"] = normalize_zip(df["RegionName"])
    return df


def load_target_zips(path: str) -> list[str]:
    """
    Read the MSA ZIP list; uses RegionName if present, else the first column.
    A file whose first line is already a ZIP code is read as headerless.
    """
    if not os.path.isfile(path):
        raise FileNotFoundError(f"Target ZIP list not found: {path}")
    raw = pd.read_csv(path, dtype=str, header=None)
    if raw.empty:
        raise ValueError(f"Target ZIP list is empty: {path}")
    if ZIP_PATTERN.match(str(raw.iloc[0, 0]).strip()):
        zips = normalize_zip(raw[0].dropna())
    else:
        df = pd.read_csv(path, dtype=str)
        col = "RegionName" if "RegionName" in df.columns else df.columns[0]
        zips = normalize_zip(df[col].dropna())
    zips = sorted(set(zips.dropna()))
    if not zips:
        raise ValueError(f"Target ZIP list has no ZIP codes: {path}")
    return zips


def filter_to_targets(prices: pd.DataFrame, target_zips: list[str]) -> pd.DataFrame:
    targets = set(target_zips)
    out = prices[prices["RegionName"].isin(targets)].copy()
    missing = targets - set(out["RegionName"])
    if missing:
        logger.warning("%d target ZIPs not in price table: %s", len(missing), sorted(missing))
    logger.info("Kept %d of %d price rows for %d target ZIPs", len(out), len(prices), len(targets))
    return out.reset_index(drop=True)


def melt_prices(prices: pd.DataFrame) -> pd.DataFrame:
    """Wide to long: one row per (RegionName, date) with a numeric price."""
    dupes = prices["RegionName"][prices["RegionName"].duplicated()]
    if not dupes.empty:
        raise ValueError(f"Duplicate RegionName rows in price table: {sorted(set(dupes))}")

    id_cols = [c for c in ID_COLS if c in prices.columns]
    date_cols = [c for c in prices.columns if c not in id_cols and _is_date_column(c)]
    if not date_cols:
        raise ValueError("Price table has no monthly date columns")

    long_df = prices.melt(id_vars=["RegionName"], value_vars=date_cols, var_name="date", value_name="price")
    date_map = {c: pd.Timestamp(str(c)) for c in date_cols}
    long_df["date"] = long_df["date"].map(date_map)
    long_df["price"] = pd.to_numeric(long_df["price"], errors="coerce")
    long_df = long_df.sort_values(["RegionName", "date"]).reset_index(drop=True)
    return long_df[["RegionName", "date", "price"]]


def _window_periods(long_df: pd.DataFrame, window_months: int) -> tuple[pd.Period, pd.Period]:
    periods = long_df["date"].dt.to_period("M")
    end_period = periods.max()
    start_period = end_period - window_months
    if periods.min() > start_period:
        raise ValueError(
            f"Price history starts {periods.min()}, need {start_period} for a {window_months}-month window"
        )
    return start_period, end_period


def compute_growth(long_df: pd.DataFrame, window_months: int = 60) -> pd.DataFrame:
    """
    Per-ZIP log growth between the latest month and the month window_months
    earlier. ZIPs with a missing or non-positive endpoint price are dropped.
    """
    start_period, end_period = _window_periods(long_df, window_months)
    period = long_df["date"].dt.to_period("M")

    start = long_df.loc[period == start_period, ["RegionName", "date", "price"]]
    start = start.rename(columns={"date": "start_date", "price": "initial_price"})
    end = long_df.loc[period == end_period, ["RegionName", "date", "price"]]
    end = end.rename(columns={"date": "end_date", "price": "final_price"})
    growth = start.merge(end, on="RegionName", how="outer")

    valid = (growth["initial_price"] > 0) & (growth["final_price"] > 0)
    excluded = growth.loc[~valid, "RegionName"].tolist()
    if excluded:
        logger.warning("Excluded %d ZIPs with missing or non-positive endpoint price: %s", len(excluded), excluded)
    growth = growth[valid].copy()

    growth["log_initial_price"] = np.log(growth["initial_price"])
    growth["cum_5yr_log_growth"] = np.log(growth["final_price"]) - growth["log_initial_price"]
    growth["percent_change"] = growth["final_price"] / growth["initial_price"] - 1
    growth = growth.sort_values("RegionName").reset_index(drop=True)
    logger.info("Computed %d-month growth for %d ZIPs (%s to %s)", window_months, len(growth), start_period, end_period)
    return growth[GROWTH_EXPORT_COLS]


def cumulative_log_growth(long_df: pd.DataFrame, window_months: int = 60) -> pd.DataFrame:
    """Monthly panel over the growth window with log price and log growth since the window start."""
    start_period, end_period = _window_periods(long_df, window_months)
    period = long_df["date"].dt.to_period("M")
    panel = long_df[(period >= start_period) & (period <= end_period)].copy()
    panel["log_price"] = np.log(panel["price"].where(panel["price"] > 0))
    base = panel.loc[panel["date"].dt.to_period("M") == start_period].set_index("RegionName")["log_price"]
    panel["cum_log_growth"] = panel["log_price"] - panel["RegionName"].map(base)
    return panel.sort_values(["RegionName", "date"]).reset_index(drop=True)


def build_growth_table(
    price_path: str,
    targets_path: str,
    out_path: Optional[str] = None,
    window_months: int = 60,
    panel_path: Optional[str] = None,
) -> pd.DataFrame:
    """
    Load prices and the MSA ZIP list, compute growth, and optionally write the
    growth CSV (and the monthly panel CSV).
    """
    prices = load_price_table(price_path)
    targets = load_target_zips(targets_path)
    long_df = melt_prices(filter_to_targets(prices, targets))
    growth = compute_growth(long_df, window_months=window_months)
    if growth.empty:
        raise RuntimeError("Growth stage produced no ZIPs")

    if out_path:
        os.makedirs(os.path.dirname(out_path) or ".", exist_ok=True)
        growth.to_csv(out_path, index=False, date_format="%Y-%m-%d")
        logger.info("Wrote %s", out_path)
    if panel_path:
        panel = cumulative_log_growth(long_df, window_months=window_months)
        os.makedirs(os.path.dirname(panel_path) or ".", exist_ok=True)
        panel.to_csv(panel_path, index=False, date_format="%Y-%m-%d")
        logger.info("Wrote %s", panel_path)
    return growth
