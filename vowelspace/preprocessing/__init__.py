"""
Vowel measurement preprocessing.

    from vowelspace.preprocessing import load_tokens, derive_features
    tokens = load_tokens()
    derived = derive_features(tokens)

CLI:
    python -m vowelspace.preprocessing --build
    python -m vowelspace.preprocessing --info
"""

from .constants import (
    CONDITION_SUM_CODES,
    GENDER_SUM_CODES,
    MONOPHTHONG,
    TOKEN_COLUMNS,
    get_derived_tokens_path,
    get_raw_measurements_path,
)
from .core import EmptyDatasetError, MissingValueError, SchemaError
from .loaders import (
    assign_item_ids,
    build_item_mapping,
    clean_measurements,
    filter_monophthongs,
    load_raw_measurements,
    load_tokens,
    standardize_columns,
)
from .features import (
    DISTANCE_COLUMNS,
    compute_speaker_centroids,
    derive_features,
    sum_code,
)

__all__ = [
    "CONDITION_SUM_CODES",
    "GENDER_SUM_CODES",
    "MONOPHTHONG",
    "TOKEN_COLUMNS",
    "get_derived_tokens_path",
    "get_raw_measurements_path",
    "EmptyDatasetError",
    "MissingValueError",
    "SchemaError",
    "assign_item_ids",
    "build_item_mapping",
    "clean_measurements",
    "filter_monophthongs",
    "load_raw_measurements",
    "load_tokens",
    "standardize_columns",
    "DISTANCE_COLUMNS",
    "compute_speaker_centroids",
    "derive_features",
    "sum_code",
]
