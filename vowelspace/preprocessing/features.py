"""
Token-level feature derivation.

Per speaker, the vowel-space centroid is the mean F1/F2 over all of that
speaker's monophthong tokens (both conditions). Every distance measure is
taken relative to that single centroid.

Sum coding:
    condition: casual -> -1, polite -> +1
    gender:    female -> -1, male   -> +1
"""

from __future__ import annotations

from typing import Mapping

import numpy as np
import pandas as pd

from .constants import (
    CONDITION_COL,
    CONDITION_SUM_CODES,
    F1_COL,
    F2_COL,
    GENDER_COL,
    GENDER_SUM_CODES,
    SUBJECT_COL,
)
from .core import SchemaError

DISTANCE_COLUMNS = ["f1_dist", "f2_dist", "both_dist", "euclidean_dist"]
BOTH_DIST_REFERENCES = ("speaker", "grand_mean")


def sum_code(series: pd.Series, codes: Mapping[str, int]) -> pd.Series:
    """Map a two-level factor onto its fixed -1/+1 codes."""
    unknown = sorted({str(v) for v in series.unique()} - set(codes))
    if unknown:
        raise SchemaError(
            f"Column '{series.name}' has level(s) {unknown} outside {sorted(codes)}; cannot sum-code."
        )
    return series.map(codes).astype(int)


def compute_speaker_centroids(tokens: pd.DataFrame) -> pd.DataFrame:
    """Mean F1/F2 per speaker across every token of that speaker."""
    centroids = (
        tokens.groupby(SUBJECT_COL)
        .agg(
            f1_midpoint=(F1_COL, "mean"),
            f2_midpoint=(F2_COL, "mean"),
            n_tokens=(F1_COL, "size"),
        )
        .reset_index()
    )
    return centroids


def derive_features(
    tokens: pd.DataFrame,
    both_dist_reference: str = "speaker",
    verbose: bool = False,
) -> pd.DataFrame:
    """
    Build the Derived Token table from a cleaned Token table.

    ``both_dist_reference`` selects the centroid behind ``both_dist``:
    "speaker" uses each speaker's own midpoint (same reference as
    ``euclidean_dist``); "grand_mean" reproduces the older per-axis
    variant that subtracts the dataset-wide mean of speaker midpoints.
    """
    if both_dist_reference not in BOTH_DIST_REFERENCES:
        raise ValueError(
            f"Unknown both_dist_reference: {both_dist_reference}. Valid: {BOTH_DIST_REFERENCES}"
        )

    df = tokens.copy()
    df["condition_coded"] = sum_code(df[CONDITION_COL], CONDITION_SUM_CODES)
    df["gender_coded"] = sum_code(df[GENDER_COL], GENDER_SUM_CODES)

    centroids = compute_speaker_centroids(df)
    unusable = centroids[centroids[["f1_midpoint", "f2_midpoint"]].isna().any(axis=1)]
    if not unusable.empty:
        if verbose:
            print(f"  [WARN] speakers without a centroid excluded: {unusable[SUBJECT_COL].tolist()}")
        centroids = centroids.drop(index=unusable.index)

    df = df.merge(centroids.drop(columns=["n_tokens"]), on=SUBJECT_COL, how="inner")
    df["f1_dist"] = df[F1_COL] - df["f1_midpoint"]
    df["f2_dist"] = df[F2_COL] - df["f2_midpoint"]
    df["euclidean_dist"] = np.sqrt(df["f1_dist"] ** 2 + df["f2_dist"] ** 2)

    if both_dist_reference == "grand_mean":
        if verbose:
            print(
                "  [WARN] both_dist uses the grand mean of speaker midpoints; "
                "euclidean_dist still uses each speaker's own midpoint"
            )
        f1_axis = df[F1_COL] - centroids["f1_midpoint"].mean()
        f2_axis = df[F2_COL] - centroids["f2_midpoint"].mean()
    else:
        f1_axis = df["f1_dist"]
        f2_axis = df["f2_dist"]
    df["both_dist"] = (f1_axis.abs() + f2_axis.abs()) / 2

    return df
