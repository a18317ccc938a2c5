"""
Command-line entry point: runs the growth stage, the regression stage, or both,
driven by an optional YAML config.
"""

from __future__ import annotations

import argparse
import logging
import os
from typing import Any, Dict, Optional

import matplotlib
import pandas as pd

from kc_appreciation import config as config_mod
from kc_appreciation.core_metrics import run_ols_pipeline
from kc_appreciation.ingest_prices import build_growth_table
from kc_appreciation.reporting import write_interpretation, write_regression_tables
from kc_appreciation.viz import bin_growth, plot_growth_histogram

logger = logging.getLogger("kc_appreciation")


def _setup_logging() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")


def run_growth(cfg: Dict[str, Any]) -> pd.DataFrame:
    paths = cfg["paths"]
    panel_path = paths["panel_csv"] if cfg["analysis"]["write_panel"] else None
    return build_growth_table(
        paths["price_csv"],
        paths["target_zips_csv"],
        out_path=paths["growth_csv"],
        window_months=cfg["analysis"]["window_months"],
        panel_path=panel_path,
    )


def run_regressions(cfg: Dict[str, Any]) -> dict:
    paths = cfg["paths"]
    outputs = cfg["outputs"]
    out_dir = paths["output_dir"]
    os.makedirs(out_dir, exist_ok=True)

    results = run_ols_pipeline(paths["growth_csv"], paths["distance_csv"], cov_type=cfg["analysis"]["cov_type"])
    models = results["models"]
    write_regression_tables(models, out_dir)

    for key, name in (
        ("diagnostics", "diagnostics_csv"),
        ("coef_table", "coefficients_csv"),
        ("model_fit", "model_fit_csv"),
        ("vif", "vif_csv"),
    ):
        out_path = os.path.join(out_dir, outputs[name])
        results[key].to_csv(out_path, index=False)
        logger.info("Wrote %s", out_path)

    reg_df = results["reg_df"]
    write_interpretation(models, float(reg_df["growth_5yr"].mean()), os.path.join(out_dir, outputs["interpretation_txt"]))

    hist_data = bin_growth(reg_df["pct_change"])
    plot_growth_histogram(hist_data, os.path.join(out_dir, outputs["histogram_png"]))
    results["hist_data"] = hist_data
    return results


def main(argv: Optional[list[str]] = None) -> None:
    _setup_logging()
    matplotlib.use("Agg")
    parser = argparse.ArgumentParser(
        prog="kc-appreciation",
        description="Kansas City MSA 5-year home price appreciation study.",
    )
    sub = parser.add_subparsers(dest="cmd", required=True)
    for name, help_text in (
        ("growth", "Compute 5-year log growth per ZIP and export the growth CSV."),
        ("regress", "Fit distance regressions and render tables and the histogram."),
        ("all", "Run the growth stage, then the regression stage."),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("--config", default=None, help="Path to config YAML (defaults apply when omitted)")

    args = parser.parse_args(argv)
    cfg = config_mod.load_config(args.config)
    if args.cmd in ("growth", "all"):
        run_growth(cfg)
    if args.cmd in ("regress", "all"):
        run_regressions(cfg)


if __name__ == "__main__":
    main()
