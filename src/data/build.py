from typing import Iterable, Optional
import pandas as pd
from .validate import assert_finite_columns, assert_required_columns


def build_observation_table(
    df: pd.DataFrame,
    response: str,
    error_cols: Iterable[str],
    exact_cols: Iterable[str],
    extra_cols: Optional[Iterable[str]] = None,
) -> pd.DataFrame:
    """Select the modelling columns in a fixed order: response, contaminated, exact, extras."""
    columns = [response] + list(error_cols) + list(exact_cols) + list(extra_cols or [])
    assert_required_columns(df, columns)
    assert_finite_columns(df, columns)
    return df[columns].reset_index(drop=True).copy()
