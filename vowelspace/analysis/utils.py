"""Shared helpers for analysis scripts: output locations and console formatting."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import numpy as np
import pandas as pd

from vowelspace.preprocessing.constants import (
    OUTPUT_FIGURES_DIR,
    OUTPUT_MODELS_DIR,
    OUTPUT_TABLES_DIR,
)


def _ensure(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_output_dir(base: Optional[Path] = None) -> Path:
    return _ensure(Path(base) / "tables" if base is not None else OUTPUT_TABLES_DIR)


def get_figures_dir(base: Optional[Path] = None) -> Path:
    return _ensure(Path(base) / "figures" if base is not None else OUTPUT_FIGURES_DIR)


def get_models_dir(base: Optional[Path] = None) -> Path:
    return _ensure(Path(base) / "models" if base is not None else OUTPUT_MODELS_DIR)


def print_section_header(title: str, width: int = 70) -> None:
    print("\n" + "=" * width)
    print(title)
    print("=" * width)


def format_coefficient(mean: float, low: float, high: float, digits: int = 2) -> str:
    if not np.isfinite(mean):
        return "NA"
    return f"{mean:.{digits}f} [{low:.{digits}f}, {high:.{digits}f}]"


def save_table(df: pd.DataFrame, path: Path, verbose: bool = True) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False, encoding="utf-8-sig")
    if verbose:
        print(f"  [OK] {path.name}: {len(df)} rows")
    return path
