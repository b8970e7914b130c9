from __future__ import annotations

import numpy as np
import pandas as pd


def summarize_missingness(df: pd.DataFrame) -> pd.DataFrame:
    """Return per-column missingness summary in stable column order."""

    n = len(df)
    rows = []
    for col in df.columns.astype(str).tolist():
        n_missing = int(df[col].isna().sum())
        missing_rate = round(n_missing / n, 6) if n else np.nan
        rows.append({"column": col, "n": n, "n_missing": n_missing, "missing_rate": missing_rate})
    return pd.DataFrame(rows)


def summarize_covariates(df: pd.DataFrame, columns) -> pd.DataFrame:
    """Mean, variance and range of numeric columns (variance with ddof=1, as used for reliability ratios)."""

    rows = []
    for col in columns:
        x = df[col].to_numpy(dtype=float)
        rows.append(
            {
                "column": col,
                "mean": round(float(np.mean(x)), 6),
                "variance": round(float(np.var(x, ddof=1)), 6) if x.size > 1 else np.nan,
                "min": round(float(np.min(x)), 6),
                "max": round(float(np.max(x)), 6),
            }
        )
    return pd.DataFrame(rows)
