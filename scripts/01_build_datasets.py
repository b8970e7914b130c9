import sys
from pathlib import Path


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import argparse
import hashlib

import pandas as pd

from src.config import (
    DATASET_VERSION,
    DEFAULT_SEED,
    EUCALYPT_SIGMA_SQ_U,
    FRAMINGHAM_SIGMA_SQ_U,
    LOGS_DIR,
    PROCESSED_DIR,
    RAW_FILES,
    TABLES_DIR,
)
from src.data.summaries import summarize_covariates, summarize_missingness
from src.data.datasets import DATASETS, load_dataset
from src.utils.logging import write_json


ERROR_VARIANCES = {"framingham": FRAMINGHAM_SIGMA_SQ_U, "eucalypt": EUCALYPT_SIGMA_SQ_U}


def _sha256_df(df: pd.DataFrame) -> str:
    h = hashlib.sha256()
    h.update("||".join(df.columns.astype(str).tolist()).encode("utf-8"))
    h.update("||".join(map(str, df.dtypes.tolist())).encode("utf-8"))
    row_hashes = pd.util.hash_pandas_object(df, index=True).to_numpy()
    h.update(row_hashes.tobytes())
    return h.hexdigest()


def main() -> None:
    parser = argparse.ArgumentParser(description="Materialise the example observation tables.")
    parser.add_argument("--datasets", nargs="+", choices=sorted(DATASETS), default=sorted(DATASETS))
    parser.add_argument("--nrows", type=int, default=None, help="Optional dev mode: truncate each table.")
    parser.add_argument("--seed", type=int, default=DEFAULT_SEED, help="Seed of the synthetic stand-ins.")
    parser.add_argument("--processed-dir", type=Path, default=PROCESSED_DIR)
    parser.add_argument("--tables-dir", type=Path, default=TABLES_DIR)
    parser.add_argument("--decisions-json", type=Path, default=LOGS_DIR / "dataset_decisions.json")
    args = parser.parse_args()

    if args.nrows is not None and args.nrows <= 0:
        raise SystemExit("--nrows must be a positive integer.")

    decisions = {"dataset_version": DATASET_VERSION, "seed": args.seed, "datasets": {}}
    for name in args.datasets:
        info = DATASETS[name]
        raw_path = RAW_FILES[name]
        table = load_dataset(name, nrows=args.nrows, seed=args.seed)

        out_parquet = args.processed_dir / f"{name}.parquet"
        out_parquet.parent.mkdir(parents=True, exist_ok=True)
        table.to_parquet(out_parquet, index=False)

        args.tables_dir.mkdir(parents=True, exist_ok=True)
        miss_csv = args.tables_dir / f"missingness_{name}.csv"
        summarize_missingness(table).to_csv(miss_csv, index=False)

        summary = summarize_covariates(table, info.error_cols + info.exact_cols)
        sigma_sq_u = ERROR_VARIANCES[name]
        is_error = summary["column"].isin(info.error_cols)
        summary["sigma_sq_u"] = summary["column"].map(lambda c: sigma_sq_u if c in info.error_cols else 0.0)
        summary.loc[is_error, "reliability"] = 1.0 - sigma_sq_u / summary.loc[is_error, "variance"]
        summary_csv = args.tables_dir / f"covariates_{name}.csv"
        summary.to_csv(summary_csv, index=False)

        decisions["datasets"][name] = {
            "source": str(raw_path) if raw_path.exists() else "synthetic",
            "description": info.description,
            "response": info.response,
            "error_cols": info.error_cols,
            "exact_cols": info.exact_cols,
            "extra_cols": info.extra_cols,
            "sigma_sq_u": sigma_sq_u,
            "rows": int(len(table)),
            "output_parquet": str(out_parquet),
            "missingness_csv": str(miss_csv),
            "covariates_csv": str(summary_csv),
            "content_hash_sha256": _sha256_df(table),
        }
        print(f"Wrote {out_parquet}")
        print(f"Wrote {miss_csv}")
        print(f"Wrote {summary_csv}")

    write_json(args.decisions_json, decisions)
    print(f"Wrote {args.decisions_json}")


if __name__ == "__main__":
    main()
