"""
Shared econometric logic for the Kansas City 5-year appreciation study.
Joins ZIP-level growth with distances to points of interest and fits the
OLS specifications (single-POI, full, urban core, interaction) with diagnostics.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

import numpy as np
import pandas as pd
import statsmodels.api as sm
import statsmodels.formula.api as smf
from scipy.stats import f as f_dist
from sklearn.metrics import mean_absolute_error, mean_squared_error, r2_score
from statsmodels.stats.diagnostic import het_breuschpagan
from statsmodels.stats.outliers_influence import variance_inflation_factor
from statsmodels.stats.stattools import jarque_bera

from .ingest_prices import normalize_zip

logger = logging.getLogger(__name__)

ANALYSIS_READY_SCHEMA = {
    "id_col": "RegionName",
    "target_col": "growth_5yr",
    "control_col": "log_initial",
    "feature_cols": ["dist_plaza", "dist_pnl", "dist_lees_summit", "dist_mci", "dist_legends"],
}

# Distance-matrix TargetID -> regressor name. "The Legands" is how the POI layer spells it.
POI_COLUMNS = {
    "Airport (MCI)": "dist_mci",
    "The Plaza": "dist_plaza",
    "Power and Light": "dist_pnl",
    "The Legands": "dist_legends",
    "Lee's Summit": "dist_lees_summit",
}

GROWTH_COLUMNS = {
    "cum_5yr_log_growth": "growth_5yr",
    "log_initial_price": "log_initial",
    "percent_change": "pct_change",
}

FEATURE_LABELS = {
    "dist_plaza": "Distance to The Plaza",
    "dist_pnl": "Distance to Power and Light",
    "dist_lees_summit": "Distance to Lee's Summit",
    "dist_mci": "Distance to Airport (MCI)",
    "dist_legends": "Distance to The Legends",
    "urban_core": "Distance to Urban Core",
    "log_initial": "Log Initial Price",
    "log_initial:urban_core": "Log Initial Price x Urban Core",
    "Intercept": "Constant",
}

MODEL_SPECS = {
    "plaza": "growth_5yr ~ dist_plaza + log_initial",
    "pnl": "growth_5yr ~ dist_pnl + log_initial",
    "lees_summit": "growth_5yr ~ dist_lees_summit + log_initial",
    "mci": "growth_5yr ~ dist_mci + log_initial",
    "legends": "growth_5yr ~ dist_legends + log_initial",
    "full": (
        "growth_5yr ~ dist_plaza + dist_pnl + dist_lees_summit + dist_mci"
        " + dist_legends + log_initial"
    ),
    "urban_core": "growth_5yr ~ urban_core + log_initial",
    "interaction": "growth_5yr ~ log_initial * urban_core",
}


def sig_stars(p: float) -> str:
    """Map p-value to significance stars."""
    if p < 0.01:
        return "***"
    if p < 0.05:
        return "**"
    if p < 0.10:
        return "*"
    return ""


def load_growth_table(path: str) -> pd.DataFrame:
    if not os.path.isfile(path):
        raise FileNotFoundError(f"Growth table not found: {path}")
    df = pd.read_csv(path, dtype={"RegionName": str})
    missing = [c for c in ["RegionName", *GROWTH_COLUMNS] if c not in df.columns]
    if missing:
        raise ValueError(f"Growth table {path} missing columns: {missing}")
    df["RegionName"] = normalize_zip(df["RegionName"])
    return df


def load_distance_matrix(path: str) -> pd.DataFrame:
    """Read the long (InputID, TargetID, Distance) matrix."""
    if not os.path.isfile(path):
        raise FileNotFoundError(f"Distance matrix not found: {path}")
    df = pd.read_csv(path, dtype={"InputID": str, "TargetID": str})
    missing = [c for c in ["InputID", "TargetID", "Distance"] if c not in df.columns]
    if missing:
        raise ValueError(f"Distance matrix {path} missing columns: {missing}")
    df["InputID"] = normalize_zip(df["InputID"])
    df["Distance"] = pd.to_numeric(df["Distance"], errors="coerce")
    return df


def pivot_distances(distances: pd.DataFrame) -> pd.DataFrame:
    """One row per ZIP (RegionName), one column per POI."""
    dupes = distances.duplicated(subset=["InputID", "TargetID"])
    if dupes.any():
        pairs = distances.loc[dupes, ["InputID", "TargetID"]].drop_duplicates()
        raise ValueError(f"Duplicate distance pairs: {list(pairs.itertuples(index=False, name=None))}")
    wide = distances.pivot(index="InputID", columns="TargetID", values="Distance")
    wide = wide.rename_axis(columns=None).reset_index().rename(columns={"InputID": "RegionName"})
    return wide.sort_values("RegionName").reset_index(drop=True)


def merge_growth_and_distances(dist_wide: pd.DataFrame, growth: pd.DataFrame) -> pd.DataFrame:
    """Full outer join on RegionName, renamed to regression column names."""
    merged = dist_wide.merge(growth, on="RegionName", how="outer")
    merged = merged.sort_values("RegionName").reset_index(drop=True)
    merged = merged.rename(columns={**POI_COLUMNS, **GROWTH_COLUMNS})

    only_dist = set(dist_wide["RegionName"]) - set(growth["RegionName"])
    only_growth = set(growth["RegionName"]) - set(dist_wide["RegionName"])
    if only_dist:
        logger.info("%d ZIPs have distances but no growth", len(only_dist))
    if only_growth:
        logger.warning("%d ZIPs have growth but no distances: %s", len(only_growth), sorted(only_growth))
    return merged


def prepare_analysis_df(merged: pd.DataFrame) -> tuple[pd.DataFrame, list[str]]:
    """
    Drop rows missing growth or initial price and add the urban core composite.
    Returns (reg_df, dropped RegionNames).
    """
    target = ANALYSIS_READY_SCHEMA["target_col"]
    control = ANALYSIS_READY_SCHEMA["control_col"]
    required = [target, control] + ANALYSIS_READY_SCHEMA["feature_cols"]
    missing = [c for c in required if c not in merged.columns]
    if missing:
        raise ValueError(f"Merged data missing columns: {missing}")

    keep = merged[target].notna() & merged[control].notna()
    dropped = merged.loc[~keep, ANALYSIS_READY_SCHEMA["id_col"]].tolist()
    reg_df = merged[keep].copy().reset_index(drop=True)
    reg_df["urban_core"] = (reg_df["dist_plaza"] + reg_df["dist_pnl"]) / 2
    logger.info("Regression sample: %d ZIPs (%d dropped for missing growth/initial price)", len(reg_df), len(dropped))
    return reg_df, dropped


def fit_models(
    reg_df: pd.DataFrame,
    specs: Optional[dict[str, str]] = None,
    cov_type: str = "nonrobust",
) -> dict:
    """Fit each formula by OLS; rows with NaN in a model's variables drop for that model only."""
    specs = specs or MODEL_SPECS
    if reg_df.empty:
        raise RuntimeError("Regression dataset is empty; nothing to fit")
    results = {}
    for name, formula in specs.items():
        results[name] = smf.ols(formula, data=reg_df).fit(cov_type=cov_type)
        logger.info("Fitted %s: N=%d R2=%.4f", name, int(results[name].nobs), results[name].rsquared)
    return results


def _reset_test(res) -> tuple[float, float]:
    """Ramsey RESET with squared and cubed fitted values."""
    y = res.model.endog
    X = res.model.exog
    y_hat = res.fittedvalues.to_numpy()
    X_reset = np.column_stack([X, y_hat ** 2, y_hat ** 3])
    reset_model = sm.OLS(y, X_reset).fit()
    r_unres, r_res = reset_model.rsquared, res.rsquared
    k_unres, k_res = reset_model.df_model, res.df_model
    n = len(y)
    df_denom = n - k_unres - 1
    if df_denom <= 0 or r_unres >= 1 or k_unres <= k_res:
        return np.nan, np.nan
    reset_fstat = ((r_unres - r_res) / (k_unres - k_res)) / ((1 - r_unres) / df_denom)
    reset_pval = 1 - f_dist.cdf(reset_fstat, k_unres - k_res, df_denom)
    return float(reset_fstat), float(reset_pval)


def model_diagnostics(results: dict) -> pd.DataFrame:
    rows = []
    for name, res in results.items():
        bp_lm, bp_pval, _, _ = het_breuschpagan(res.resid, res.model.exog)
        jb_stat, jb_pval, jb_skew, jb_kurtosis = jarque_bera(res.resid)
        reset_fstat, reset_pval = _reset_test(res)
        rows.append({
            "Model": name,
            "N": int(res.nobs),
            "R2": res.rsquared,
            "Adj_R2": res.rsquared_adj,
            "F_pval": res.f_pvalue,
            "BP_LM": bp_lm,
            "BP_pval": bp_pval,
            "JB_stat": jb_stat,
            "JB_pval": jb_pval,
            "JB_skew": jb_skew,
            "JB_kurtosis": jb_kurtosis,
            "RESET_F": reset_fstat,
            "RESET_pval": reset_pval,
        })
    return pd.DataFrame(rows)


def regressor_vif(reg_df: pd.DataFrame, feature_cols: Optional[list[str]] = None) -> pd.DataFrame:
    """VIF of each full-model regressor; the five distances are spatially correlated."""
    feature_cols = feature_cols or ANALYSIS_READY_SCHEMA["feature_cols"] + [ANALYSIS_READY_SCHEMA["control_col"]]
    X_const = sm.add_constant(reg_df[feature_cols].dropna())
    vifs = [variance_inflation_factor(X_const.values, i + 1) for i in range(len(feature_cols))]
    return pd.DataFrame({
        "Feature": feature_cols,
        "Label": [FEATURE_LABELS.get(f, f) for f in feature_cols],
        "VIF": vifs,
    })


def coefficient_table(results: dict) -> pd.DataFrame:
    frames = []
    for name, res in results.items():
        frames.append(pd.DataFrame({
            "Model": name,
            "Term": res.params.index,
            "Label": [FEATURE_LABELS.get(t, t) for t in res.params.index],
            "Coef": res.params.values,
            "SE": res.bse.values,
            "pval": res.pvalues.values,
            "Significance": [sig_stars(p) for p in res.pvalues.values],
        }))
    return pd.concat(frames, ignore_index=True)


def compare_model_fit(results: dict) -> pd.DataFrame:
    """In-sample MAE, RMSE and R-squared per model."""
    perf_data = []
    for name, res in results.items():
        y_true = res.model.endog
        y_pred = res.fittedvalues
        perf_data.append({
            "Model": name,
            "MAE": mean_absolute_error(y_true, y_pred),
            "RMSE": np.sqrt(mean_squared_error(y_true, y_pred)),
            "R-Squared": r2_score(y_true, y_pred),
        })
    return pd.DataFrame(perf_data)


def interpret_effect(
    label: str,
    feature_name: str,
    coef: float,
    sig: str,
    mean_growth: float,
    step: float = 5.0,
    unit: str = "mile",
) -> list[str]:
    """Plain-English interpretation lines for one coefficient."""
    lines = [f"  - {label}  [{sig}]"]
    direction = "higher" if coef > 0 else "lower"
    if feature_name == "log_initial":
        change = abs(coef) * np.log(1.10) * 100
        lines.append(
            f"    A 10% higher initial price is associated with {change:.2f} log points {direction} "
            f"5-year growth (sample mean {mean_growth * 100:.1f} log points)."
        )
    elif ":" in feature_name:
        lines.append(
            f"    The distance gradient shifts by {coef:+.4f} per unit of log initial price: "
            f"the effect of distance is {'stronger' if coef > 0 else 'weaker'} for initially pricier ZIPs."
        )
    else:
        change = abs(coef) * step * 100
        rel_pct = change / (mean_growth * 100) * 100 if mean_growth else np.nan
        lines.append(
            f"    Each additional {step:g} {unit}s is associated with {change:.2f} log points {direction} "
            f"5-year growth, {rel_pct:.1f}% of the sample mean."
        )
    lines.append("")
    return lines


def run_ols_pipeline(
    growth_path: str,
    distance_path: str,
    cov_type: str = "nonrobust",
) -> dict:
    """
    Load growth and distances, build the regression sample, fit every model
    and collect the coefficient, diagnostic and fit tables.
    """
    growth = load_growth_table(growth_path)
    dist_wide = pivot_distances(load_distance_matrix(distance_path))
    merged = merge_growth_and_distances(dist_wide, growth)
    reg_df, dropped = prepare_analysis_df(merged)
    models = fit_models(reg_df, cov_type=cov_type)

    return {
        "models": models,
        "coef_table": coefficient_table(models),
        "diagnostics": model_diagnostics(models),
        "model_fit": compare_model_fit(models),
        "vif": regressor_vif(reg_df),
        "merged_df": merged,
        "reg_df": reg_df,
        "dropped": dropped,
    }
