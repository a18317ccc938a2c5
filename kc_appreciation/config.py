"""
Defaults and YAML config loading for the Kansas City appreciation study.
Every key has a default, so the config file only needs the values that differ.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import yaml

BASE_DIR = Path.cwd()

DEFAULT_PATHS = {
    "price_csv": "data/raw/Zip_zhvi_uc_sfrcondo_tier_0.33_0.67_sm_sa_month.csv",
    "target_zips_csv": "data/raw/kc_msa_zips.csv",
    "distance_csv": "data/raw/kc_distance_matrix.csv",
    "growth_csv": "data/processed/kc_growth.csv",
    "panel_csv": "data/processed/kc_growth_panel.csv",
    "output_dir": "output",
}

WINDOW_MONTHS = 60

OUTPUT_NAMES = {
    "histogram_png": "growth_histogram.png",
    "diagnostics_csv": "model_diagnostics.csv",
    "coefficients_csv": "model_coefficients.csv",
    "model_fit_csv": "model_fit.csv",
    "vif_csv": "regressor_vif.csv",
    "interpretation_txt": "interpretation.txt",
}


def _resolve(base_dir: Path, value: str) -> str:
    p = Path(value)
    return str(p if p.is_absolute() else (base_dir / p).resolve())


def default_config(base_dir: Optional[Path] = None) -> dict[str, Any]:
    """Config dict with every default filled in, paths resolved against base_dir."""
    base = Path(base_dir) if base_dir is not None else BASE_DIR
    cfg: dict[str, Any] = {"project": {}, "analysis": {}, "outputs": {}}
    return _finalize(cfg, base)


def _finalize(cfg: dict[str, Any], base_dir: Path) -> dict[str, Any]:
    for section in ("project", "analysis", "outputs"):
        # an empty YAML section loads as None
        cfg[section] = cfg.get(section) or {}
        if not isinstance(cfg[section], dict):
            raise ValueError(f"Config section '{section}' must be a mapping, got {type(cfg[section]).__name__}")

    for key, value in DEFAULT_PATHS.items():
        cfg["project"].setdefault(key, value)
    cfg["analysis"].setdefault("window_months", WINDOW_MONTHS)
    cfg["analysis"].setdefault("cov_type", "nonrobust")
    cfg["analysis"].setdefault("write_panel", True)
    for key, value in OUTPUT_NAMES.items():
        cfg["outputs"].setdefault(key, value)

    window = cfg["analysis"]["window_months"]
    if not isinstance(window, int) or window <= 0:
        raise ValueError(f"analysis.window_months must be a positive integer, got {window!r}")
    if cfg["analysis"]["cov_type"] not in ("nonrobust", "HC0", "HC1", "HC2", "HC3"):
        raise ValueError(f"Unsupported analysis.cov_type: {cfg['analysis']['cov_type']}")

    cfg["paths"] = {key: _resolve(base_dir, cfg["project"][key]) for key in DEFAULT_PATHS}
    cfg["paths"]["base_dir"] = str(base_dir)
    return cfg


def load_config(path: Optional[str] = None) -> dict[str, Any]:
    """
    Load a YAML config. Relative paths resolve against the project root, the
    parent of the folder holding the config file (config/kc_study.yaml ->
    project root); with no path, defaults resolve against the working dir.
    """
    if path is None:
        return default_config()
    cfg_path = Path(path).resolve()
    if not cfg_path.exists():
        raise FileNotFoundError(f"Config not found: {cfg_path}")
    with cfg_path.open("r", encoding="utf-8") as f:
        cfg = yaml.safe_load(f) or {}
    if not isinstance(cfg, dict):
        raise ValueError(f"Config must be a mapping: {cfg_path}")
    return _finalize(cfg, cfg_path.parent.parent)
