"""Tests for centroid, distance and sum-code derivation."""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from vowelspace.analysis.descriptive_statistics import paired_condition_differences
from vowelspace.preprocessing.core import SchemaError
from vowelspace.preprocessing.features import (
    compute_speaker_centroids,
    derive_features,
    sum_code,
)


def _token_frame(rows):
    columns = ["subject", "item_id", "vowel", "vowel_type", "condition", "gender", "duration_ms", "f1_hz", "f2_hz"]
    return pd.DataFrame(rows, columns=columns)


@pytest.fixture
def four_tokens() -> pd.DataFrame:
    return _token_frame([
        ("A", "Item1", "a", "monophthong", "casual", "female", 90.0, 500.0, 1500.0),
        ("A", "Item2", "i", "monophthong", "casual", "female", 95.0, 700.0, 1700.0),
        ("B", "Item1", "a", "monophthong", "casual", "male", 100.0, 600.0, 1600.0),
        ("B", "Item2", "i", "monophthong", "polite", "male", 120.0, 650.0, 1650.0),
    ])


# ----------------------------------------------------------------------------
# Centroids
# ----------------------------------------------------------------------------


def test_centroid_is_mean_of_speaker_tokens(derived):
    means = derived.groupby("subject")[["f1_hz", "f2_hz"]].mean()
    mids = derived.groupby("subject")[["f1_midpoint", "f2_midpoint"]].first()
    assert np.allclose(means["f1_hz"], mids["f1_midpoint"])
    assert np.allclose(means["f2_hz"], mids["f2_midpoint"])


def test_axis_distances_average_to_zero_per_speaker(derived):
    per_speaker = derived.groupby("subject")[["f1_dist", "f2_dist"]].mean()
    assert np.allclose(per_speaker.to_numpy(), 0.0, atol=1e-9)


def test_centroid_pools_both_conditions(four_tokens):
    centroids = compute_speaker_centroids(four_tokens).set_index("subject")
    assert centroids.loc["B", "f1_midpoint"] == pytest.approx(625.0)
    assert centroids.loc["B", "n_tokens"] == 2


# ----------------------------------------------------------------------------
# Distances
# ----------------------------------------------------------------------------


def test_distance_bounds(derived):
    tol = 1e-9
    assert (derived["euclidean_dist"] >= 0).all()
    assert (derived["both_dist"] >= 0).all()
    assert (derived["euclidean_dist"] + tol >= derived["f1_dist"].abs()).all()
    assert (derived["euclidean_dist"] + tol >= derived["f2_dist"].abs()).all()
    assert (derived["euclidean_dist"] <= derived["f1_dist"].abs() + derived["f2_dist"].abs() + tol).all()


def test_single_condition_speaker_distances(four_tokens):
    derived = derive_features(four_tokens)
    a = derived[derived["subject"] == "A"].sort_values("f1_hz")
    assert a["f1_midpoint"].tolist() == pytest.approx([600.0, 600.0])
    assert a["f2_midpoint"].tolist() == pytest.approx([1600.0, 1600.0])
    assert a["f1_dist"].tolist() == pytest.approx([-100.0, 100.0])
    assert a["euclidean_dist"].tolist() == pytest.approx([141.42, 141.42], abs=0.01)
    assert a["both_dist"].tolist() == pytest.approx([100.0, 100.0])

    paired = paired_condition_differences(derived, "euclidean_dist").set_index("subject")
    assert np.isnan(paired.loc["A", "difference"])
    assert paired.loc["B", "difference"] == pytest.approx(0.0)


def test_grand_mean_reference_changes_only_both_dist(derived, tokens):
    grand = derive_features(tokens, both_dist_reference="grand_mean")
    assert np.allclose(grand["euclidean_dist"], derived["euclidean_dist"])
    assert np.allclose(grand["f1_dist"], derived["f1_dist"])
    assert not np.allclose(grand["both_dist"], derived["both_dist"])


def test_unknown_both_dist_reference(tokens):
    with pytest.raises(ValueError):
        derive_features(tokens, both_dist_reference="median")


def test_derive_does_not_mutate_input(tokens):
    before = tokens.copy()
    derive_features(tokens)
    pd.testing.assert_frame_equal(tokens, before)


# ----------------------------------------------------------------------------
# Sum coding
# ----------------------------------------------------------------------------


def test_sum_codes_follow_fixed_direction(derived):
    assert set(derived["condition_coded"]) == {-1, 1}
    assert set(derived["gender_coded"]) == {-1, 1}
    polite = derived["condition"] == "polite"
    male = derived["gender"] == "male"
    assert (derived.loc[polite, "condition_coded"] == 1).all()
    assert (derived.loc[~polite, "condition_coded"] == -1).all()
    assert (derived.loc[male, "gender_coded"] == 1).all()
    assert (derived.loc[~male, "gender_coded"] == -1).all()


def test_sum_code_rejects_unknown_level():
    with pytest.raises(SchemaError):
        sum_code(pd.Series(["casual", "shouted"], name="condition"), {"casual": -1, "polite": 1})
