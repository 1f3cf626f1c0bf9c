"""Tests for raw measurement loading and cleaning."""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from vowelspace.preprocessing.constants import TOKEN_COLUMNS
from vowelspace.preprocessing.core import (
    EmptyDatasetError,
    SchemaError,
    normalize_condition_value,
    normalize_gender_value,
    normalize_header,
    resolve_columns,
)
from vowelspace.preprocessing.loaders import (
    assign_item_ids,
    build_item_mapping,
    clean_measurements,
    filter_monophthongs,
    load_raw_measurements,
    load_tokens,
)


# ----------------------------------------------------------------------------
# Header and value normalisation
# ----------------------------------------------------------------------------


def test_normalize_header_strips_punctuation_and_case():
    assert normalize_header("Duration (ms)") == "durationms"
    assert normalize_header(" F1 (Hz) ") == "f1hz"


def test_resolve_columns_maps_display_headers(raw_measurements):
    out = resolve_columns(raw_measurements, ["subject", "item_label", "duration_ms", "f1_hz"])
    assert {"subject", "item_label", "vowel", "vowel_type", "duration_ms", "f1_hz", "f2_hz"} <= set(out.columns)


def test_missing_column_raises_schema_error(raw_measurements):
    raw = raw_measurements.drop(columns=["F2 (Hz)"])
    with pytest.raises(SchemaError) as excinfo:
        clean_measurements(raw)
    assert "f2_hz" in str(excinfo.value)


def test_schema_error_is_a_key_error():
    assert issubclass(SchemaError, KeyError)


def test_value_normalizers():
    assert normalize_condition_value("Polite") == "polite"
    assert normalize_condition_value("casual ") == "casual"
    assert normalize_condition_value("whisper") is None
    assert normalize_gender_value("F") == "female"
    assert normalize_gender_value("Male") == "male"
    assert normalize_gender_value(np.nan) is None


# ----------------------------------------------------------------------------
# Filtering
# ----------------------------------------------------------------------------


def test_cleaned_tokens_are_monophthongs_only(tokens):
    assert set(tokens["vowel_type"]) == {"monophthong"}
    assert "ai" not in set(tokens["vowel"])
    assert list(tokens.columns) == TOKEN_COLUMNS


def test_filter_removing_every_row_raises(raw_measurements):
    raw = raw_measurements.copy()
    raw["Vowel Type"] = "Diphthong"
    with pytest.raises(EmptyDatasetError) as excinfo:
        clean_measurements(raw)
    assert "monophthong" in str(excinfo.value)


def test_filter_monophthongs_keeps_abbreviated_labels():
    df = pd.DataFrame({"vowel_type": ["mono", "Diph", "Monophthong"], "x": [1, 2, 3]})
    out = filter_monophthongs(df)
    assert out["x"].tolist() == [1, 3]


def test_empty_table_raises():
    with pytest.raises(EmptyDatasetError):
        clean_measurements(pd.DataFrame(columns=["Subject"]))


def test_invalid_measurements_are_dropped(raw_measurements):
    raw = raw_measurements.copy()
    raw["F1 (Hz)"] = raw["F1 (Hz)"].astype(object)
    raw.loc[0, "F1 (Hz)"] = "n/a"
    raw.loc[1, "Duration (ms)"] = -5
    cleaned = clean_measurements(raw)
    n_monophthong = int((raw["Vowel Type"] == "Monophthong").sum())
    assert len(cleaned) == n_monophthong - 2


def test_unknown_condition_warns_and_drops(raw_measurements):
    raw = raw_measurements.copy()
    raw.loc[0, "Condition"] = "Whisper"
    with pytest.warns(UserWarning, match="Whisper"):
        cleaned = clean_measurements(raw)
    assert set(cleaned["condition"]) == {"casual", "polite"}


# ----------------------------------------------------------------------------
# Item identifiers
# ----------------------------------------------------------------------------


def test_item_mapping_follows_sorted_labels():
    mapping = build_item_mapping(["b", "a", "b", "c"])
    assert dict(zip(mapping["item_label"], mapping["item_id"])) == {
        "a": "Item1",
        "b": "Item2",
        "c": "Item3",
    }


def test_item_ids_are_a_bijection_with_labels(raw_measurements):
    df = raw_measurements.rename(columns={"Word": "item_label"})
    out = assign_item_ids(df)
    assert "item_label" not in out.columns
    paired = pd.DataFrame({"label": df["item_label"].astype(str), "item_id": out["item_id"]})
    assert paired.groupby("label")["item_id"].nunique().eq(1).all()
    assert paired.groupby("item_id")["label"].nunique().eq(1).all()
    assert out["item_id"].nunique() == df["item_label"].nunique()


def test_item_ids_do_not_depend_on_row_order(raw_measurements):
    df = raw_measurements.rename(columns={"Word": "item_label"})
    forward = assign_item_ids(df)
    backward = assign_item_ids(df.iloc[::-1])
    assert forward["item_id"].sort_index().tolist() == backward["item_id"].sort_index().tolist()


# ----------------------------------------------------------------------------
# File loading
# ----------------------------------------------------------------------------


def test_load_tokens_reads_tab_separated_file(tmp_path, raw_measurements):
    path = tmp_path / "measurements.tsv"
    raw_measurements.to_csv(path, sep="\t", index=False)
    loaded = load_tokens(path)
    assert len(loaded) == int((raw_measurements["Vowel Type"] == "Monophthong").sum())


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_raw_measurements(tmp_path / "absent.csv")
