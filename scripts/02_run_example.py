from __future__ import annotations

import argparse
import os
import platform
import sys
import tempfile
from datetime import datetime, timezone
from pathlib import Path

# Matplotlib must be configured before importing pyplot.
_mpl_cache_dir = Path(tempfile.gettempdir()) / "matplotlib"
_mpl_cache_dir.mkdir(parents=True, exist_ok=True)
os.environ.setdefault("MPLCONFIGDIR", str(_mpl_cache_dir))

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt

import joblib
import numpy as np


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from src.config import (  # noqa: E402
    DATASET_VERSION,
    DEFAULT_B,
    DEFAULT_SEED,
    EXPERIMENT_NAMESPACE,
    MCEM_EPSILON,
    MCEM_MAX_ITER,
    METHODS,
    SIMEX_FITTING_METHOD,
)
from src.correction.simex import EXTRAPOLANTS  # noqa: E402
from src.examples import EXAMPLES  # noqa: E402
from src.reporting.figures import (  # noqa: E402
    plot_coefficients,
    plot_ppm_intensity,
    plot_simex_extrapolation,
    plot_smooth_terms,
    save_figure,
)
from src.reporting.tables import format_table, relative_change_table  # noqa: E402
from src.utils.logging import (  # noqa: E402
    STACK_PACKAGES,
    configure_logging,
    package_versions,
    resolve_git_commit,
    write_json,
)
from src.workflow import WorkflowResult, run_example  # noqa: E402


def deterministic_run_id(example: str, seed: int, B: int) -> str:
    return f"{EXPERIMENT_NAMESPACE}_{example}_seed{seed}_B{B}"


def write_figures(result: WorkflowResult, out_figures: Path, tag: str) -> list:
    written = []
    models = result.models
    ex = result.example

    if ex.name == "gam":
        fig = plot_smooth_terms(models, title="Smooth terms: naive vs corrected")
        path = out_figures / f"smooth_terms_{tag}.png"
    else:
        fig = plot_coefficients(models, title=ex.description)
        path = out_figures / f"coefficients_{tag}.png"
    save_figure(fig, path)
    plt.close(fig)
    written.append(path)

    if ex.name == "ppm":
        fig = plot_ppm_intensity(models, title="Fitted intensity")
        path = out_figures / f"ppm_intensity_{tag}.png"
        save_figure(fig, path)
        plt.close(fig)
        written.append(path)

    if "simex" in models:
        simex_fit = models["simex"]
        term = ex.spec_factory().term_for(ex.simex_variable)
        fig = plot_simex_extrapolation(simex_fit, terms=term.columns())
        path = out_figures / f"simex_extrapolation_{tag}.png"
        save_figure(fig, path)
        plt.close(fig)
        written.append(path)
    return written


def main() -> None:
    parser = argparse.ArgumentParser(description="Naive vs measurement-error-corrected fits for the worked examples.")
    parser.add_argument("--example", choices=sorted(EXAMPLES) + ["all"], default="all")
    parser.add_argument("--B", type=int, default=DEFAULT_B, help="Monte Carlo / simulation replicates.")
    parser.add_argument("--seed", type=int, default=DEFAULT_SEED, help="Seed of the correction draws.")
    parser.add_argument("--methods", nargs="+", choices=list(METHODS), default=list(METHODS))
    parser.add_argument("--nrows", type=int, default=None, help="Optional dev mode: truncate the dataset.")
    parser.add_argument("--outdir", type=Path, default=Path("outputs"), help="Output directory (default: outputs/).")
    parser.add_argument("--epsilon", type=float, default=MCEM_EPSILON, help="MCEM convergence tolerance.")
    parser.add_argument("--max-iter", type=int, default=MCEM_MAX_ITER, help="MCEM iteration cap.")
    parser.add_argument("--fitting-method", choices=list(EXTRAPOLANTS), default=SIMEX_FITTING_METHOD)
    parser.add_argument("--no-figures", action="store_true", help="Skip plotting.")
    parser.add_argument("--verbose", action="store_true", help="Log MCEM iterations.")
    args = parser.parse_args()

    if args.B < 1:
        raise SystemExit("--B must be a positive integer.")
    if args.nrows is not None and args.nrows <= 0:
        raise SystemExit("--nrows must be a positive integer.")
    if args.epsilon <= 0:
        raise SystemExit("--epsilon must be > 0.")
    if args.max_iter < 1:
        raise SystemExit("--max-iter must be >= 1.")

    configure_logging(args.verbose)

    out_tables = args.outdir / "tables"
    out_figures = args.outdir / "figures"
    out_models = args.outdir / "models"
    out_logs = args.outdir / "logs"
    for d in [out_tables, out_figures, out_models, out_logs]:
        d.mkdir(parents=True, exist_ok=True)

    names = sorted(EXAMPLES) if args.example == "all" else [args.example]
    pkg_versions = package_versions(STACK_PACKAGES)
    git_commit = resolve_git_commit(PROJECT_ROOT)

    for name in names:
        result = run_example(
            name,
            B=args.B,
            seed=args.seed,
            methods=args.methods,
            nrows=args.nrows,
            epsilon=args.epsilon,
            max_iter=args.max_iter,
            fitting_method=args.fitting_method,
        )
        tag = f"{name}_seed{args.seed}_B{args.B}"
        coef = result.coefficient_table()
        timing = result.timing_table()

        print(f"\n== {name}: {result.example.description}")
        print(format_table(coef))
        print()
        print(format_table(timing))

        coef_path = out_tables / f"coefficients_{tag}.csv"
        timing_path = out_tables / f"timing_{tag}.csv"
        change_path = out_tables / f"relative_change_{tag}.csv"
        coef.to_csv(coef_path)
        timing.to_csv(timing_path, index=False)
        relative_change_table(result.models).to_csv(change_path)

        model_paths = {}
        for method, model in result.models.items():
            path = out_models / f"{method}_{tag}.joblib"
            joblib.dump(model, path)
            model_paths[method] = str(path)

        figure_paths = [] if args.no_figures else write_figures(result, out_figures, tag)

        run_id = deterministic_run_id(name, args.seed, args.B)
        meta = {
            "dataset_version": DATASET_VERSION,
            "experiment_namespace": EXPERIMENT_NAMESPACE,
            "run_id": run_id,
            "example": name,
            "dataset": result.example.dataset,
            "family": result.example.family,
            "sigma_sq_u": result.example.sigma_sq_u,
            "error_columns": result.example.error_columns,
            "n_obs": int(len(result.data)),
            "B": args.B,
            "seed": args.seed,
            "methods": list(result.models),
            "simex_fitting_method": args.fitting_method,
            "timings_seconds": {m: float(fit.elapsed_seconds) for m, fit in result.models.items()},
            "converged": {m: bool(fit.converged) for m, fit in result.models.items()},
            "n_iter": {m: int(fit.n_iter) for m, fit in result.models.items()},
            "artifacts": {
                "coefficients_csv": str(coef_path),
                "timing_csv": str(timing_path),
                "relative_change_csv": str(change_path),
                "models_joblib": model_paths,
                "figures": [str(p) for p in figure_paths],
            },
            "runtime": {
                "timestamp_utc": datetime.now(timezone.utc).isoformat(),
                "python_version": sys.version,
                "platform": platform.platform(),
                "argv": sys.argv,
                "packages": pkg_versions,
                "git_commit": git_commit,
            },
        }
        if "mcem" in result.models:
            mcem_fit = result.models["mcem"]
            meta["mcem"] = {
                "reliability": mcem_fit.extra["reliability"],
                "min_ess": float(mcem_fit.extra["ess"].min()),
                "median_ess": float(np.median(mcem_fit.extra["ess"])),
            }
        write_json(out_logs / f"run_{run_id}.json", meta)

    print(f"\nWrote example artifacts to {args.outdir}/")


if __name__ == "__main__":
    main()
