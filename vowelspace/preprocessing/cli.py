"""
Preprocessing CLI for building the derived token table.

Usage:
    python -m vowelspace.preprocessing --build
    python -m vowelspace.preprocessing --build --input data/raw/vowel_measurements.csv
    python -m vowelspace.preprocessing --info
"""

import argparse
import sys
from pathlib import Path

import pandas as pd

from .constants import (
    CONDITION_COL,
    GENDER_COL,
    ITEM_ID_COL,
    SUBJECT_COL,
    VOWEL_COL,
    get_derived_tokens_path,
)
from .core import EmptyDatasetError, SchemaError
from .features import BOTH_DIST_REFERENCES, derive_features
from .loaders import load_tokens


if sys.platform.startswith("win") and hasattr(sys.stdout, "reconfigure"):
    sys.stdout.reconfigure(encoding="utf-8")


def build_derived_tokens(
    input_path: Path | None = None,
    output_path: Path | None = None,
    both_dist_reference: str = "speaker",
    save: bool = True,
    verbose: bool = True,
) -> pd.DataFrame:
    if verbose:
        print("=" * 60)
        print("Derived token build")
        print("=" * 60)

    tokens = load_tokens(input_path, verbose=verbose)
    derived = derive_features(tokens, both_dist_reference=both_dist_reference, verbose=verbose)

    if verbose:
        print(f"  [OK] derived tokens: {len(derived)} rows, {len(derived.columns)} cols")

    if save:
        if output_path is None:
            output_path = get_derived_tokens_path()
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        derived.to_csv(output_path, index=False, encoding="utf-8-sig")
        if verbose:
            print(f"  [OK] saved: {output_path}")
    return derived


def dataset_info(derived: pd.DataFrame) -> dict[str, object]:
    return {
        "n_tokens": int(len(derived)),
        "n_subjects": int(derived[SUBJECT_COL].nunique()),
        "n_items": int(derived[ITEM_ID_COL].nunique()),
        "vowels": sorted(derived[VOWEL_COL].unique().tolist()),
        "tokens_by_condition": derived[CONDITION_COL].value_counts().sort_index().to_dict(),
        "subjects_by_gender": (
            derived.drop_duplicates(SUBJECT_COL)[GENDER_COL].value_counts().sort_index().to_dict()
        ),
    }


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Build the derived vowel token table",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python -m vowelspace.preprocessing --build
    python -m vowelspace.preprocessing --info
        """,
    )
    parser.add_argument("--build", action="store_true", help="Clean raw data and derive features")
    parser.add_argument("--info", action="store_true", help="Show a summary of the derived table")
    parser.add_argument("--input", type=Path, default=None, help="Raw measurement file")
    parser.add_argument("--output", type=Path, default=None, help="Derived table destination")
    parser.add_argument(
        "--both-dist-reference",
        choices=list(BOTH_DIST_REFERENCES),
        default="speaker",
        help="Centroid used for the mean absolute axis distance",
    )
    parser.add_argument("--no-save", action="store_true", help="Build without writing to disk")
    parser.add_argument("--quiet", action="store_true", help="Suppress verbose output")
    args = parser.parse_args(argv)

    if not (args.build or args.info):
        parser.print_help()
        return 0

    verbose = not args.quiet
    try:
        derived = build_derived_tokens(
            input_path=args.input,
            output_path=args.output,
            both_dist_reference=args.both_dist_reference,
            save=args.build and not args.no_save,
            verbose=verbose and args.build,
        )
    except (SchemaError, EmptyDatasetError, FileNotFoundError) as exc:
        print(f"[ERROR] {exc}")
        return 1

    if args.info:
        for key, value in dataset_info(derived).items():
            print(f"  {key}: {value}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
