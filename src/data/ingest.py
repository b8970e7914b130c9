from pathlib import Path
from typing import Optional

import pandas as pd


def load_raw_table(path: Path, nrows: Optional[int] = None) -> pd.DataFrame:
    suffix = path.suffix.lower()
    if suffix == ".csv":
        return pd.read_csv(path, nrows=nrows)
    if suffix == ".xlsx":
        return pd.read_excel(path, nrows=nrows)
    if suffix == ".parquet":
        df = pd.read_parquet(path)
        return df.head(nrows).copy() if nrows is not None else df
    raise ValueError(f"Unsupported dataset format: {path.name} (expected .csv, .xlsx or .parquet)")
