"""
Histogram of 5-year percent change in six fixed growth bins.
"""

from __future__ import annotations

import logging
import os
from typing import Optional, Sequence

import matplotlib.pyplot as plt
import pandas as pd

logger = logging.getLogger(__name__)

GROWTH_BREAKS = [0, 0.162362, 0.310224, 0.393885, 0.479034, 0.596069, 0.728834]
BIN_COLORS = ["#9ecae1", "#79b4d6", "#549dcb", "#357fbd", "#1a59ab", "#003399"]


def bin_growth(pct_change: pd.Series, breaks: Sequence[float] = GROWTH_BREAKS) -> pd.DataFrame:
    """
    Count ZIPs per right-closed bin (lowest edge inclusive). Every bin gets a
    row, empty ones with count 0. Values outside the break range are clamped
    into the first or last bin so counts always sum to the non-missing values.
    """
    breaks = list(breaks)
    if len(breaks) < 2 or any(a >= b for a, b in zip(breaks[:-1], breaks[1:])):
        raise ValueError(f"breaks must be strictly increasing with at least two edges: {breaks}")

    values = pd.to_numeric(pd.Series(pct_change), errors="coerce").dropna()
    outside = (values < breaks[0]) | (values > breaks[-1])
    if outside.any():
        logger.warning(
            "%d percent_change values outside [%g, %g] clamped into the edge bins",
            int(outside.sum()), breaks[0], breaks[-1],
        )
    binned = pd.cut(values.clip(breaks[0], breaks[-1]), bins=breaks, include_lowest=True, right=True)
    counts = binned.value_counts().reindex(binned.cat.categories, fill_value=0)

    hist = pd.DataFrame({
        "growth_bin": [str(c) for c in counts.index],
        "count": counts.to_numpy().astype(int),
        "bin_start": breaks[:-1],
        "bin_end": breaks[1:],
    })
    hist["bin_mid"] = (hist["bin_start"] + hist["bin_end"]) / 2
    hist["bin_label"] = [f"{s * 100:.0f}%–{e * 100:.0f}%" for s, e in zip(hist["bin_start"], hist["bin_end"])]
    return hist


def plot_growth_histogram(
    hist_data: pd.DataFrame,
    path: str,
    colors: Optional[Sequence[str]] = None,
    title: str = "Distribution of 5-Year Home Price Appreciation",
) -> str:
    colors = list(colors or BIN_COLORS)
    if len(colors) != len(hist_data):
        raise ValueError(f"Need {len(hist_data)} colors, got {len(colors)}")

    fig, ax = plt.subplots(figsize=(8, 5))
    widths = hist_data["bin_end"] - hist_data["bin_start"]
    ax.bar(
        hist_data["bin_start"], hist_data["count"], width=widths, align="edge",
        color=colors, edgecolor="black", linewidth=0.8,
    )
    for mid, count, label in zip(hist_data["bin_mid"], hist_data["count"], hist_data["bin_label"]):
        ax.annotate(str(count), (mid, count), xytext=(0, 3), textcoords="offset points",
                    ha="center", va="bottom", fontsize=8)
        ax.annotate(label, (mid, 0), xytext=(0, -6), textcoords="offset points",
                    ha="right", va="top", rotation=45, fontsize=8)

    ax.set_xlim(hist_data["bin_start"].iloc[0], hist_data["bin_end"].iloc[-1])
    ax.set_ylim(0, max(int(hist_data["count"].max()), 1) * 1.12)
    ax.set_xticks([])
    ax.set_title(title, fontweight="bold")
    ax.set_xlabel("Growth Percentage", labelpad=45)
    ax.set_ylabel("Number of ZIP Codes")
    ax.grid(axis="y", alpha=0.3, ls=":")
    for side in ("top", "right"):
        ax.spines[side].set_visible(False)

    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    fig.tight_layout()
    fig.savefig(path, dpi=150, bbox_inches="tight")
    plt.close(fig)
    logger.info("Wrote %s", path)
    return path
