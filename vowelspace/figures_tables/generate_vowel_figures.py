"""Generate the vowel-space figures.

Figure 1: Vowel means and convex hulls by condition, one panel per gender
Figure 2: Distance-from-centroid box plots by condition and gender
Figure 3: By-speaker casual -> polite paired lines (Euclidean distance)
Figure 4: Posterior densities of the condition terms (per fitted model)
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Iterable, Optional

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import arviz as az
import pandas as pd
import seaborn as sns

from vowelspace.analysis.descriptive_statistics import paired_condition_differences
from vowelspace.analysis.utils import get_figures_dir
from vowelspace.figures_tables.hulls import hull_table, vowel_means
from vowelspace.preprocessing.constants import (
    CASUAL,
    CONDITION_COL,
    CONDITION_LEVELS,
    GENDER_COL,
    GENDER_LEVELS,
    POLITE,
    VOWEL_COL,
)

if sys.platform.startswith("win") and hasattr(sys.stdout, "reconfigure"):
    sys.stdout.reconfigure(encoding="utf-8")

plt.rcParams["font.family"] = ["DejaVu Sans", "Arial", "sans-serif"]
plt.rcParams["font.size"] = 10

CONDITION_PALETTE = {CASUAL: "#4C72B0", POLITE: "#DD8452"}
DISTANCE_LABELS = {
    "euclidean_dist": "Euclidean distance from centroid (Hz)",
    "both_dist": "Mean absolute axis distance (Hz)",
    "f1_dist": "F1 distance (Hz)",
    "f2_dist": "F2 distance (Hz)",
}


def _save(fig: plt.Figure, path: Path, verbose: bool) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(path, dpi=300, bbox_inches="tight")
    plt.close(fig)
    if verbose:
        print(f"  [OK] {path.name}")
    return path


def plot_vowel_space(data: pd.DataFrame, output_dir: Path, verbose: bool = True) -> Path:
    """F2 x F1 vowel means with per-condition hulls, axes reversed (vowel chart)."""
    means = vowel_means(data, by=[GENDER_COL, CONDITION_COL])
    hulls = hull_table(means, by=[GENDER_COL, CONDITION_COL])
    genders = [g for g in GENDER_LEVELS if g in set(means[GENDER_COL])]

    fig, axes = plt.subplots(1, len(genders), figsize=(5.5 * len(genders), 5), squeeze=False)
    for ax, gender in zip(axes[0], genders):
        sub = means[means[GENDER_COL] == gender]
        for cond in CONDITION_LEVELS:
            pts = sub[sub[CONDITION_COL] == cond]
            if pts.empty:
                continue
            color = CONDITION_PALETTE[cond]
            ax.scatter(pts["f2_mean"], pts["f1_mean"], color=color, s=25, label=cond)
            for row in pts.itertuples(index=False):
                ax.annotate(
                    getattr(row, VOWEL_COL),
                    (row.f2_mean, row.f1_mean),
                    textcoords="offset points",
                    xytext=(4, 4),
                    fontsize=9,
                    color=color,
                )
            poly = hulls[(hulls[GENDER_COL] == gender) & (hulls[CONDITION_COL] == cond)]
            poly = poly.sort_values("order")
            ax.plot(poly["f2_mean"], poly["f1_mean"], color=color, linewidth=1.2)
        ax.invert_xaxis()
        ax.invert_yaxis()
        ax.set_title(str(gender).capitalize())
        ax.set_xlabel("F2 (Hz)")
        ax.set_ylabel("F1 (Hz)")
        ax.legend(frameon=False)
    fig.suptitle("Vowel space by condition")
    return _save(fig, output_dir / "figure1_vowel_space.png", verbose)


def plot_distance_boxplots(
    data: pd.DataFrame,
    output_dir: Path,
    measures: Iterable[str] = ("euclidean_dist", "both_dist"),
    verbose: bool = True,
) -> Path:
    measures = [m for m in measures if m in data.columns]
    fig, axes = plt.subplots(1, len(measures), figsize=(5 * len(measures), 4.5), squeeze=False)
    for ax, measure in zip(axes[0], measures):
        sns.boxplot(
            data=data,
            x=GENDER_COL,
            y=measure,
            hue=CONDITION_COL,
            hue_order=list(CONDITION_LEVELS),
            palette=CONDITION_PALETTE,
            ax=ax,
            fliersize=2,
        )
        ax.set_xlabel("")
        ax.set_ylabel(DISTANCE_LABELS.get(measure, measure))
    fig.tight_layout()
    return _save(fig, output_dir / "figure2_distance_boxplots.png", verbose)


def plot_paired_lines(
    data: pd.DataFrame,
    output_dir: Path,
    measure: str = "euclidean_dist",
    verbose: bool = True,
) -> Path:
    """Per-speaker condition means joined by a line; incomplete speakers are skipped."""
    paired = paired_condition_differences(data, measure).dropna(subset=["difference"])
    fig, ax = plt.subplots(figsize=(4.5, 5))
    for row in paired.itertuples(index=False):
        color = "#C44E52" if row.difference > 0 else "#8C8C8C"
        ax.plot([0, 1], [getattr(row, CASUAL), getattr(row, POLITE)], color=color, alpha=0.7, marker="o")
    ax.set_xticks([0, 1])
    ax.set_xticklabels([CASUAL, POLITE])
    ax.set_xlim(-0.3, 1.3)
    ax.set_ylabel(DISTANCE_LABELS.get(measure, measure))
    ax.set_title(f"By-speaker means (n={len(paired)})")
    return _save(fig, output_dir / f"figure3_paired_{measure}.png", verbose)


def plot_posteriors(fitted, output_dir: Path, terms: Optional[list[str]] = None, verbose: bool = True) -> Path:
    """Posterior densities for the condition-related coefficients of one model."""
    if terms is None:
        terms = [t for t in fitted.terms if "condition_coded" in t]
    if not terms:
        raise ValueError(f"{fitted.name}: no terms to plot")
    fig, axes = plt.subplots(1, len(terms), figsize=(4 * len(terms), 3.5), squeeze=False)
    for ax, term in zip(axes[0], terms):
        az.plot_posterior(
            fitted.idata,
            var_names=["beta"],
            coords={"term": [term]},
            ref_val=0,
            hdi_prob=0.95,
            ax=ax,
        )
        ax.set_title(term)
    plt.suptitle(f"{fitted.name}: posterior distributions")
    return _save(fig, output_dir / f"figure4_posterior_{fitted.name}.png", verbose)


def generate_all(
    data: pd.DataFrame,
    fitted_models: Iterable = (),
    output_dir: Optional[Path] = None,
    verbose: bool = True,
) -> list[Path]:
    if output_dir is None:
        output_dir = get_figures_dir()
    paths = [
        plot_vowel_space(data, output_dir, verbose=verbose),
        plot_distance_boxplots(data, output_dir, verbose=verbose),
        plot_paired_lines(data, output_dir, verbose=verbose),
    ]
    for fitted in fitted_models:
        paths.append(plot_posteriors(fitted, output_dir, verbose=verbose))
    return paths
