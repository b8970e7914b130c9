from typing import Iterable

import numpy as np


def assert_required_columns(df, required: Iterable[str]) -> None:
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise ValueError(f"Missing required columns: {missing}")


def assert_finite_columns(df, columns: Iterable[str]) -> None:
    bad = [c for c in columns if not np.isfinite(df[c].to_numpy(dtype=float)).all()]
    if bad:
        raise ValueError(f"Columns contain missing or non-finite values: {bad}")


def assert_binary_column(df, column: str) -> None:
    vals = set(df[column].dropna().unique().tolist())
    if not vals.issubset({0, 1}):
        raise ValueError(f"Column {column} must be binary {{0,1}}; observed values: {sorted(vals)}")
