# Shared logic for the Kansas City 5-year home price appreciation study
from .core_metrics import (
    ANALYSIS_READY_SCHEMA,
    FEATURE_LABELS,
    MODEL_SPECS,
    POI_COLUMNS,
    sig_stars,
    pivot_distances,
    merge_growth_and_distances,
    prepare_analysis_df,
    fit_models,
    run_ols_pipeline,
    interpret_effect,
)
from .ingest_prices import build_growth_table, compute_growth, melt_prices

__all__ = [
    "ANALYSIS_READY_SCHEMA",
    "FEATURE_LABELS",
    "MODEL_SPECS",
    "POI_COLUMNS",
    "sig_stars",
    "pivot_distances",
    "merge_growth_and_distances",
    "prepare_analysis_df",
    "fit_models",
    "run_ols_pipeline",
    "interpret_effect",
    "build_growth_table",
    "compute_growth",
    "melt_prices",
]
