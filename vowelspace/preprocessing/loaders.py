"""
Raw measurement loading and cleaning.

Turns the exported formant spreadsheet into a Token table: canonical
headers, monophthongs only, synthetic item identifiers in place of the raw
lexical labels.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional

import numpy as np
import pandas as pd

from .constants import (
    CONDITION_COL,
    GENDER_COL,
    ITEM_ID_COL,
    ITEM_LABEL_COL,
    MONOPHTHONG,
    NUMERIC_COLUMNS,
    RAW_REQUIRED_COLUMNS,
    SUBJECT_COL,
    TOKEN_COLUMNS,
    VOWEL_COL,
    VOWEL_TYPE_COL,
    get_raw_measurements_path,
)
from .core import (
    EmptyDatasetError,
    normalize_condition_value,
    normalize_gender_value,
    normalize_series,
    normalize_vowel_type_value,
    resolve_columns,
)


def _sniff_separator(path: Path) -> str:
    return "\t" if path.suffix.lower() in {".tsv", ".txt", ".tab"} else ","


def load_raw_measurements(path: Optional[Path] = None) -> pd.DataFrame:
    """Read the raw delimited measurement file without touching its contents."""
    if path is None:
        path = get_raw_measurements_path()
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Measurement file not found: {path}")
    return pd.read_csv(path, sep=_sniff_separator(path), encoding="utf-8-sig")


def standardize_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Rename display headers to canonical names; SchemaError if any is absent."""
    df = resolve_columns(df, RAW_REQUIRED_COLUMNS)
    return df[RAW_REQUIRED_COLUMNS].copy()


def filter_monophthongs(df: pd.DataFrame) -> pd.DataFrame:
    """Keep monophthong tokens only."""
    vowel_type = normalize_series(df[VOWEL_TYPE_COL], normalize_vowel_type_value, VOWEL_TYPE_COL)
    out = df[vowel_type == MONOPHTHONG].copy()
    if out.empty:
        raise EmptyDatasetError(
            f"Filter '{VOWEL_TYPE_COL} == {MONOPHTHONG}' removed all {len(df)} rows."
        )
    out[VOWEL_TYPE_COL] = MONOPHTHONG
    return out


def build_item_mapping(labels: Iterable[object]) -> pd.DataFrame:
    """
    Map each distinct raw item label to Item1..ItemN.

    Identifiers follow the sorted order of the distinct labels, so the
    mapping does not depend on row order.
    """
    distinct = sorted({str(label) for label in labels if not pd.isna(label)})
    return pd.DataFrame(
        {
            ITEM_LABEL_COL: distinct,
            ITEM_ID_COL: [f"Item{i}" for i in range(1, len(distinct) + 1)],
        }
    )


def assign_item_ids(df: pd.DataFrame) -> pd.DataFrame:
    """Join synthetic item ids onto every row and drop the raw label."""
    df = df.copy()
    df[ITEM_LABEL_COL] = df[ITEM_LABEL_COL].astype(str)
    mapping = build_item_mapping(df[ITEM_LABEL_COL])
    out = df.merge(mapping, on=ITEM_LABEL_COL, how="left", validate="many_to_one")
    out.index = df.index
    return out.drop(columns=[ITEM_LABEL_COL])


def clean_measurements(df: pd.DataFrame, verbose: bool = False) -> pd.DataFrame:
    """Standardize, filter and type-coerce a raw measurement table."""
    n_raw = len(df)
    if n_raw == 0:
        raise EmptyDatasetError("Measurement table has no rows.")

    df = standardize_columns(df)
    df = df.dropna(subset=[ITEM_LABEL_COL, SUBJECT_COL])
    df = filter_monophthongs(df)
    if verbose:
        print(f"  [INFO] monophthong tokens: {len(df)} of {n_raw}")

    df[SUBJECT_COL] = df[SUBJECT_COL].astype(str).str.strip()
    df[VOWEL_COL] = df[VOWEL_COL].astype(str).str.strip()
    df[CONDITION_COL] = normalize_series(df[CONDITION_COL], normalize_condition_value, CONDITION_COL)
    df[GENDER_COL] = normalize_series(df[GENDER_COL], normalize_gender_value, GENDER_COL)
    for col in NUMERIC_COLUMNS:
        df[col] = pd.to_numeric(df[col], errors="coerce")

    finite = np.isfinite(df[NUMERIC_COLUMNS].to_numpy(dtype=float)).all(axis=1)
    positive = (df[NUMERIC_COLUMNS] > 0).all(axis=1).to_numpy()
    valid = finite & positive & df[CONDITION_COL].notna().to_numpy() & df[GENDER_COL].notna().to_numpy()
    n_dropped = int((~valid).sum())
    if n_dropped and verbose:
        print(f"  [INFO] dropped tokens with invalid measurements or labels: {n_dropped}")
    df = df[valid]
    if df.empty:
        raise EmptyDatasetError("No tokens left after dropping invalid measurements.")

    df = assign_item_ids(df)
    return df[TOKEN_COLUMNS].reset_index(drop=True)


def load_tokens(path: Optional[Path] = None, verbose: bool = False) -> pd.DataFrame:
    """Read and clean the raw measurements into a Token table."""
    raw = load_raw_measurements(path)
    if verbose:
        print(f"  [INFO] raw rows: {len(raw)} ({path or get_raw_measurements_path()})")
    return clean_measurements(raw, verbose=verbose)
