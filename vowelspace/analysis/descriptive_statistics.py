"""
Descriptive Statistics Analysis
===============================

Grouped N / Mean / SD summaries of duration and vowel-space distance
measures, by-speaker paired (polite - casual) differences with one-sample
t-tests, and per-speaker vowel-space hull areas.

Tables:
    by condition, condition x gender, subject x condition, vowel x condition
    paired differences per measure + t-tests
    hull areas per subject x condition

Usage:
    python -m vowelspace.analysis.descriptive_statistics --input data/derived/derived_tokens.csv
"""

from __future__ import annotations

import sys
if sys.platform.startswith("win") and hasattr(sys.stdout, "reconfigure"):
    sys.stdout.reconfigure(encoding='utf-8')

import argparse
from pathlib import Path
from typing import Dict, Sequence

import numpy as np
import pandas as pd
from scipy import stats

from vowelspace.analysis.utils import get_output_dir, print_section_header, save_table
from vowelspace.figures_tables.hulls import hull_areas, vowel_means
from vowelspace.preprocessing.constants import (
    CASUAL,
    CONDITION_COL,
    DURATION_COL,
    GENDER_COL,
    POLITE,
    SUBJECT_COL,
    VOWEL_COL,
    get_derived_tokens_path,
)
from vowelspace.preprocessing.core import MissingValueError

DESCRIPTIVE_VARS = [DURATION_COL, "f1_dist", "f2_dist", "both_dist", "euclidean_dist"]

GROUPINGS: Dict[str, list[str]] = {
    "condition": [CONDITION_COL],
    "condition_gender": [CONDITION_COL, GENDER_COL],
    "subject_condition": [SUBJECT_COL, CONDITION_COL],
    "vowel_condition": [VOWEL_COL, CONDITION_COL],
}


def grouped_summary(
    data: pd.DataFrame,
    by: Sequence[str],
    value_cols: Sequence[str] = DESCRIPTIVE_VARS,
) -> pd.DataFrame:
    """
    N, mean and SD (ddof=1) of each value column per group present in the data.

    Long format: one row per (group, variable).
    """
    keys = list(by)
    value_cols = [c for c in value_cols if c in data.columns]
    if not value_cols:
        return pd.DataFrame(columns=keys + ["variable", "n", "mean", "sd"])
    long = data.melt(id_vars=keys, value_vars=value_cols, var_name="variable", value_name="value")
    summary = (
        long.groupby(keys + ["variable"], observed=True)["value"]
        .agg(n="count", mean="mean", sd="std")
        .reset_index()
    )
    order = {name: i for i, name in enumerate(value_cols)}
    summary["_order"] = summary["variable"].map(order)
    return summary.sort_values(keys + ["_order"]).drop(columns="_order").reset_index(drop=True)


def paired_condition_differences(
    data: pd.DataFrame,
    value_col: str,
    strict: bool = False,
) -> pd.DataFrame:
    """
    Per-speaker condition means and the polite - casual difference.

    A speaker without tokens in one condition gets a missing difference
    (never zero). With ``strict=True`` such speakers raise MissingValueError.
    """
    means = data.groupby([SUBJECT_COL, CONDITION_COL])[value_col].mean().unstack()
    means = means.reindex(columns=[CASUAL, POLITE])
    out = pd.DataFrame(
        {
            SUBJECT_COL: means.index.astype(str),
            CASUAL: means[CASUAL].to_numpy(),
            POLITE: means[POLITE].to_numpy(),
        }
    )
    out["difference"] = out[POLITE] - out[CASUAL]
    out.insert(1, "variable", value_col)

    incomplete = out.loc[out["difference"].isna(), SUBJECT_COL].tolist()
    if strict and incomplete:
        raise MissingValueError(
            f"{value_col}: no paired difference for subject(s) {incomplete} "
            f"(missing {CASUAL} or {POLITE} tokens)",
            keys=incomplete,
        )
    return out


def paired_difference_ttest(paired: pd.DataFrame, popmean: float = 0.0) -> dict[str, float]:
    """One-sample t-test on the non-missing paired differences."""
    diffs = paired["difference"].dropna()
    n = int(len(diffs))
    result = {
        "n": n,
        "n_excluded": int(paired["difference"].isna().sum()),
        "mean": float(diffs.mean()) if n else np.nan,
        "sd": float(diffs.std(ddof=1)) if n > 1 else np.nan,
        "t": np.nan,
        "p": np.nan,
    }
    if n > 1:
        t_stat, p_val = stats.ttest_1samp(diffs, popmean)
        result["t"] = float(t_stat)
        result["p"] = float(p_val)
    return result


def paired_tests(data: pd.DataFrame, value_cols: Sequence[str] = DESCRIPTIVE_VARS) -> pd.DataFrame:
    rows = []
    for col in value_cols:
        if col not in data.columns:
            continue
        paired = paired_condition_differences(data, col)
        rows.append({"variable": col, **paired_difference_ttest(paired)})
    return pd.DataFrame(rows)


def compute_vowel_space_areas(data: pd.DataFrame) -> pd.DataFrame:
    """Convex-hull area of vowel means per subject and condition."""
    means = vowel_means(data, by=[SUBJECT_COL, CONDITION_COL])
    return hull_areas(means, by=[SUBJECT_COL, CONDITION_COL])


def describe_measures(data: pd.DataFrame, verbose: bool = True) -> Dict[str, pd.DataFrame]:
    """Build the standard set of descriptive tables."""
    tables: Dict[str, pd.DataFrame] = {}
    for name, keys in GROUPINGS.items():
        tables[f"descriptives_by_{name}"] = grouped_summary(data, keys)

    tables["paired_differences"] = pd.concat(
        [paired_condition_differences(data, col) for col in DESCRIPTIVE_VARS if col in data.columns],
        ignore_index=True,
    )
    tables["paired_ttests"] = paired_tests(data)

    areas = compute_vowel_space_areas(data)
    tables["vowel_space_areas"] = areas
    area_pairs = areas.pivot(index=SUBJECT_COL, columns=CONDITION_COL, values="hull_area")
    area_pairs = area_pairs.reindex(columns=[CASUAL, POLITE])
    area_pairs["difference"] = area_pairs[POLITE] - area_pairs[CASUAL]
    area_test = {"variable": "hull_area", **paired_difference_ttest(area_pairs)}
    tables["paired_ttests"] = pd.concat(
        [tables["paired_ttests"], pd.DataFrame([area_test])], ignore_index=True
    )

    if verbose:
        print_section_header("DESCRIPTIVES: polite - casual (by speaker)")
        for row in tables["paired_ttests"].itertuples(index=False):
            excluded = f", excluded={row.n_excluded}" if row.n_excluded else ""
            print(
                f"  {row.variable:>15}: mean diff={row.mean:.2f} (SD={row.sd:.2f}), "
                f"t={row.t:.2f}, p={row.p:.4f}, n={row.n}{excluded}"
            )
    return tables


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Descriptive statistics for derived vowel tokens")
    parser.add_argument("--input", type=Path, default=None, help="Derived token table (CSV)")
    parser.add_argument("--output-dir", type=Path, default=None, help="Outputs root directory")
    parser.add_argument("--quiet", action="store_true")
    args = parser.parse_args(argv)

    input_path = args.input or get_derived_tokens_path()
    if not input_path.exists():
        print(f"[ERROR] derived token table not found: {input_path}")
        print("        run `python -m vowelspace.preprocessing --build` first")
        return 1

    data = pd.read_csv(input_path, encoding="utf-8-sig")
    verbose = not args.quiet
    tables = describe_measures(data, verbose=verbose)
    out_dir = get_output_dir(args.output_dir)
    for name, table in tables.items():
        save_table(table, out_dir / f"{name}.csv", verbose=verbose)
    return 0


if __name__ == "__main__":
    sys.exit(main())
