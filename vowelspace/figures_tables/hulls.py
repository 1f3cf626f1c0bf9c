"""
Vowel-mean and convex-hull tables for vowel-space plots.

All functions are pure: they take a tidy table and return a new one.
Points are (F2, F1) pairs, the conventional vowel-chart orientation.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np
import pandas as pd
from scipy.spatial import ConvexHull, QhullError

from vowelspace.preprocessing.constants import F1_COL, F2_COL, VOWEL_COL


def vowel_means(data: pd.DataFrame, by: Sequence[str] = ()) -> pd.DataFrame:
    """Mean F1/F2 per vowel within each combination of ``by``."""
    keys = list(by) + [VOWEL_COL]
    return (
        data.groupby(keys, observed=True)
        .agg(f1_mean=(F1_COL, "mean"), f2_mean=(F2_COL, "mean"), n=(F1_COL, "size"))
        .reset_index()
    )


def convex_hull(points: np.ndarray) -> np.ndarray:
    """
    Hull vertices of 2-D points in counter-clockwise order.

    Fewer than three distinct or collinear points have no area; they are
    returned unchanged (deduplicated) so a plot can still draw a line.
    """
    pts = np.unique(np.asarray(points, dtype=float).reshape(-1, 2), axis=0)
    if len(pts) < 3:
        return pts
    try:
        hull = ConvexHull(pts)
    except QhullError:
        return pts
    return pts[hull.vertices]


def hull_area(points: np.ndarray) -> float:
    """Polygon area of the convex hull (0.0 when degenerate)."""
    vertices = convex_hull(points)
    if len(vertices) < 3:
        return 0.0
    x, y = vertices[:, 0], vertices[:, 1]
    return float(0.5 * abs(np.dot(x, np.roll(y, 1)) - np.dot(y, np.roll(x, 1))))


def hull_table(means: pd.DataFrame, by: Sequence[str]) -> pd.DataFrame:
    """
    Closed hull polygons per group, ready for line plotting.

    One row per vertex with its drawing ``order``; the first vertex is
    repeated at the end to close the polygon.
    """
    keys = list(by)
    columns = keys + ["order", "f2_mean", "f1_mean"]
    rows = []
    groups = means.groupby(keys, observed=True) if keys else [((), means)]
    for key, grp in groups:
        key = key if isinstance(key, tuple) else (key,)
        vertices = convex_hull(grp[["f2_mean", "f1_mean"]].to_numpy())
        if len(vertices) == 0:
            continue
        closed = np.vstack([vertices, vertices[:1]]) if len(vertices) >= 3 else vertices
        for order, (f2, f1) in enumerate(closed):
            rows.append(dict(zip(keys, key), order=order, f2_mean=f2, f1_mean=f1))
    return pd.DataFrame(rows, columns=columns)


def hull_areas(means: pd.DataFrame, by: Sequence[str]) -> pd.DataFrame:
    """Convex-hull area of the vowel means per group."""
    keys = list(by)
    rows = []
    for key, grp in means.groupby(keys, observed=True):
        key = key if isinstance(key, tuple) else (key,)
        rows.append(
            dict(
                zip(keys, key),
                n_vowels=int(len(grp)),
                hull_area=hull_area(grp[["f2_mean", "f1_mean"]].to_numpy()),
            )
        )
    return pd.DataFrame(rows, columns=keys + ["n_vowels", "hull_area"])
