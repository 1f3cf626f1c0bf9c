"""Tests for vowel means and convex hulls."""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from vowelspace.figures_tables.hulls import (
    convex_hull,
    hull_area,
    hull_areas,
    hull_table,
    vowel_means,
)

SQUARE = np.array([[0.0, 0.0], [2.0, 0.0], [2.0, 2.0], [0.0, 2.0], [1.0, 1.0]])


def test_convex_hull_drops_interior_points():
    vertices = convex_hull(SQUARE)
    assert len(vertices) == 4
    assert not any(np.allclose(v, [1.0, 1.0]) for v in vertices)


def test_hull_area_of_square():
    assert hull_area(SQUARE) == pytest.approx(4.0)


def test_degenerate_hulls_have_zero_area():
    assert hull_area(np.array([[0.0, 0.0], [1.0, 1.0]])) == 0.0
    assert hull_area(np.array([[0.0, 0.0], [1.0, 1.0], [2.0, 2.0]])) == 0.0
    assert hull_area(np.array([[1.0, 1.0], [1.0, 1.0], [1.0, 1.0]])) == 0.0


def test_vowel_means_per_group(derived):
    means = vowel_means(derived, by=["subject"])
    assert len(means) == 3 * 4
    row = means[(means["subject"] == "S3") & (means["vowel"] == "a")].iloc[0]
    expected = derived.loc[(derived["subject"] == "S3") & (derived["vowel"] == "a"), "f1_hz"].mean()
    assert row["f1_mean"] == pytest.approx(expected)
    assert row["n"] == 2


def test_hull_table_closes_each_polygon(derived):
    means = vowel_means(derived, by=["condition"])
    table = hull_table(means, by=["condition"])
    for _, grp in table.groupby("condition"):
        grp = grp.sort_values("order")
        first = grp.iloc[0][["f2_mean", "f1_mean"]].to_numpy(dtype=float)
        last = grp.iloc[-1][["f2_mean", "f1_mean"]].to_numpy(dtype=float)
        assert np.allclose(first, last)


def test_hull_areas_table():
    means = pd.DataFrame({
        "group": ["g"] * 4,
        "vowel": ["a", "e", "i", "u"],
        "f2_mean": [0.0, 3.0, 3.0, 0.0],
        "f1_mean": [0.0, 0.0, 1.0, 1.0],
    })
    table = hull_areas(means, by=["group"])
    assert table.loc[0, "n_vowels"] == 4
    assert table.loc[0, "hull_area"] == pytest.approx(3.0)
