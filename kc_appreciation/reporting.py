"""
Regression table and interpretation output. Tables are built with
statsmodels' summary_col and written as standalone HTML pages.
"""

from __future__ import annotations

import html
import logging
import os
from typing import Optional

from statsmodels.iolib.summary2 import summary_col

from .core_metrics import FEATURE_LABELS, coefficient_table, interpret_effect

logger = logging.getLogger(__name__)

DEP_VAR_LABEL = "Log 5-Year Growth"

TABLE_LAYOUT = [
    {
        "filename": "regression_table.html",
        "models": ["plaza", "pnl", "lees_summit", "mci", "legends"],
        "title": "Distance to Points of Interest and 5-Year Home Price Appreciation",
        "digits": 4,
    },
    {
        "filename": "full_model_table.html",
        "models": ["full"],
        "title": "Full Model: All POIs and Initial Price",
        "digits": 3,
    },
    {
        "filename": "urban_core_table.html",
        "models": ["urban_core"],
        "title": "Distance to Urban Core and 5-Year Home Price Appreciation",
        "digits": 3,
    },
    {
        "filename": "interaction_table.html",
        "models": ["interaction"],
        "title": "5-Year Home Price Appreciation: Initial Price x Distance to Urban Core",
        "digits": 3,
    },
]

REGRESSOR_ORDER = [
    "dist_plaza", "dist_pnl", "dist_lees_summit", "dist_mci", "dist_legends",
    "urban_core", "log_initial", "log_initial:urban_core", "Intercept",
]

HTML_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>{title}</title>
</head>
<body>
<h3>{title}</h3>
<p>Dependent variable: {dep_var}</p>
{table}
<p><em>Note:</em> *p&lt;0.1; **p&lt;0.05; ***p&lt;0.01. Standard errors in parentheses.</p>
</body>
</html>
"""


def render_regression_table(
    results: list,
    names: list[str],
    title: str,
    dep_var_label: str = DEP_VAR_LABEL,
    digits: int = 3,
) -> str:
    """Side-by-side coefficient table (stars, SEs, N, R-squared) as an HTML page."""
    if len(results) != len(names):
        raise ValueError("results and names must have the same length")
    present = {t for res in results for t in res.params.index}
    summary = summary_col(
        results,
        float_format=f"%.{digits}f",
        model_names=names,
        stars=True,
        info_dict={"N": lambda res: f"{int(res.nobs)}"},
        regressor_order=[t for t in REGRESSOR_ORDER if t in present],
    )
    return HTML_TEMPLATE.format(
        title=html.escape(title),
        dep_var=html.escape(dep_var_label),
        table=summary.as_html(),
    )


def write_regression_tables(models: dict, out_dir: str, layout: Optional[list[dict]] = None) -> list[str]:
    layout = layout or TABLE_LAYOUT
    os.makedirs(out_dir, exist_ok=True)
    written = []
    for table in layout:
        missing = [m for m in table["models"] if m not in models]
        if missing:
            raise ValueError(f"{table['filename']} needs models that were not fitted: {missing}")
        page = render_regression_table(
            [models[m] for m in table["models"]],
            names=table["models"],
            title=table["title"],
            digits=table["digits"],
        )
        out_path = os.path.join(out_dir, table["filename"])
        with open(out_path, "w", encoding="utf-8") as f:
            f.write(page)
        logger.info("Wrote %s", out_path)
        written.append(out_path)
    return written


def write_interpretation(models: dict, mean_growth: float, path: str, alpha: float = 0.10) -> list[str]:
    """Interpretation lines for every non-constant term with p < alpha."""
    coefs = coefficient_table(models)
    coefs = coefs[(coefs["Term"] != "Intercept") & (coefs["pval"] < alpha)]
    lines = [f"5-year growth: significant effects (p < {alpha:g})", ""]
    for model_name, group in coefs.groupby("Model", sort=False):
        lines.append(f"[{model_name}]")
        for row in group.itertuples(index=False):
            lines.extend(interpret_effect(
                FEATURE_LABELS.get(row.Term, row.Term), row.Term, row.Coef, row.Significance, mean_growth,
            ))
    if len(lines) == 2:
        lines.append("No terms significant at this level.")

    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write("\n".join(lines) + "\n")
    logger.info("Wrote %s", path)
    return lines
