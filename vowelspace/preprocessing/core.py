"""
Core helpers for preprocessing.
"""

from __future__ import annotations

import re
from typing import Iterable, Mapping, Optional
import warnings

import pandas as pd

from .constants import (
    COLUMN_ALIASES,
    CONDITION_TOKENS,
    FEMALE,
    FEMALE_TOKENS,
    MALE,
    MALE_TOKENS,
    VOWEL_TYPE_TOKENS,
)


class SchemaError(KeyError):
    """Input table lacks required columns or carries unknown factor levels."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


class EmptyDatasetError(RuntimeError):
    """A filtering step removed every row."""


class MissingValueError(ValueError):
    """An aggregate cannot be computed because data for its key is absent."""

    def __init__(self, message: str, keys: Iterable[object] = ()) -> None:
        super().__init__(message)
        self.keys = list(keys)


def normalize_header(name: object) -> str:
    """Lower-case a header and drop everything but letters and digits."""
    return re.sub(r"[^a-z0-9]", "", str(name).strip().lower())


def resolve_columns(
    df: pd.DataFrame,
    required: Iterable[str],
    aliases: Mapping[str, set[str]] = COLUMN_ALIASES,
) -> pd.DataFrame:
    """
    Rename display-formatted headers to canonical identifiers.

    A header maps to a canonical name when its normalised form equals the
    canonical name or one of its aliases. The first matching header wins;
    later duplicates are left untouched. Raises SchemaError listing every
    required column that could not be found.
    """
    rename: dict[str, str] = {}
    claimed: set[str] = set()
    for col in df.columns:
        key = normalize_header(col)
        for canonical, names in aliases.items():
            if canonical in claimed:
                continue
            if key == normalize_header(canonical) or key in names:
                rename[col] = canonical
                claimed.add(canonical)
                break

    out = df.rename(columns=rename)
    missing = [col for col in required if col not in out.columns]
    if missing:
        raise SchemaError(
            f"Missing required column(s): {', '.join(missing)}. "
            f"Available columns: {', '.join(map(str, df.columns))}"
        )
    return out


def _normalize_token(value: object) -> str:
    if not isinstance(value, str):
        return "" if value is None or pd.isna(value) else str(value).strip().lower()
    return re.sub(r"[^a-z]", "", value.strip().lower())


def _lookup(value: object, table: Mapping[str, set[str]]) -> Optional[str]:
    token = _normalize_token(value)
    if not token:
        return None
    for canonical, tokens in table.items():
        if token == canonical or token in tokens:
            return canonical
    return None


def normalize_vowel_type_value(value: object) -> Optional[str]:
    """Map vowel-type labels to 'monophthong'/'diphthong'; None if unknown."""
    return _lookup(value, VOWEL_TYPE_TOKENS)


def normalize_condition_value(value: object) -> Optional[str]:
    """Map condition labels to 'casual'/'polite'; None if unknown."""
    return _lookup(value, CONDITION_TOKENS)


def normalize_gender_value(value: object) -> Optional[str]:
    """Normalize gender text to 'male'/'female'. Returns None if unmapped."""
    return _lookup(value, {FEMALE: FEMALE_TOKENS, MALE: MALE_TOKENS})


def normalize_series(series: pd.Series, normalizer, label: str) -> pd.Series:
    """
    Apply a value normalizer and warn about values it could not map.

    Unmapped values become missing; callers decide whether that is fatal.
    """
    mapped = series.apply(normalizer)
    unmapped = sorted({str(v) for v in series[mapped.isna() & series.notna()].unique()})
    if unmapped:
        warnings.warn(
            f"{label}: {len(unmapped)} unrecognised value(s) set to missing: {unmapped[:10]}",
            UserWarning,
        )
    return pd.Series(mapped, index=series.index, dtype="object")
