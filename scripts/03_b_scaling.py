from __future__ import annotations

import argparse
import os
import sys
import tempfile
from pathlib import Path

_mpl_cache_dir = Path(tempfile.gettempdir()) / "matplotlib"
_mpl_cache_dir.mkdir(parents=True, exist_ok=True)
os.environ.setdefault("MPLCONFIGDIR", str(_mpl_cache_dir))

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from src.config import B_SCALING_GRID, DEFAULT_SEED  # noqa: E402
from src.examples import EXAMPLES  # noqa: E402
from src.reporting.figures import METHOD_COLORS, save_figure  # noqa: E402
from src.reporting.tables import format_table  # noqa: E402
from src.utils.logging import configure_logging, write_json  # noqa: E402
from src.workflow import b_scaling_study  # noqa: E402


def main() -> None:
    parser = argparse.ArgumentParser(description="Correction runtime as a function of the replicate count B.")
    parser.add_argument("--example", choices=sorted(EXAMPLES), default="glm")
    parser.add_argument("--Bs", type=int, nargs="+", default=list(B_SCALING_GRID))
    parser.add_argument("--methods", nargs="+", choices=["mcem", "simex"], default=["mcem"])
    parser.add_argument("--seed", type=int, default=DEFAULT_SEED)
    parser.add_argument("--nrows", type=int, default=None, help="Optional dev mode: truncate the dataset.")
    parser.add_argument("--outdir", type=Path, default=Path("outputs"))
    args = parser.parse_args()

    if any(b < 1 for b in args.Bs):
        raise SystemExit("--Bs must all be positive integers.")
    if args.nrows is not None and args.nrows <= 0:
        raise SystemExit("--nrows must be a positive integer.")

    configure_logging(False)
    study = b_scaling_study(args.example, args.Bs, seed=args.seed, methods=args.methods, nrows=args.nrows)
    print(format_table(study, digits=3))

    tag = f"{args.example}_seed{args.seed}"
    table_path = args.outdir / "tables" / f"b_scaling_{tag}.csv"
    table_path.parent.mkdir(parents=True, exist_ok=True)
    study.to_csv(table_path, index=False)

    fig, ax = plt.subplots(figsize=(5, 3.5))
    for method, grp in study.groupby("method", sort=False):
        ax.plot(grp["B"], grp["seconds"], "o-", color=METHOD_COLORS.get(method), label=method)
    ax.set_xlabel("B")
    ax.set_ylabel("elapsed seconds")
    ax.set_title(f"Runtime vs B ({args.example})")
    ax.legend(loc="best")
    fig.tight_layout()
    fig_path = args.outdir / "figures" / f"b_scaling_{tag}.png"
    save_figure(fig, fig_path)
    plt.close(fig)

    write_json(
        args.outdir / "logs" / f"b_scaling_{tag}.json",
        {"example": args.example, "Bs": args.Bs, "methods": args.methods, "seed": args.seed, "table": str(table_path)},
    )
    print(f"Wrote {table_path}")
    print(f"Wrote {fig_path}")


if __name__ == "__main__":
    main()
