import json
import subprocess
import sys
from pathlib import Path

import pandas as pd


REPO_ROOT = Path(__file__).resolve().parents[1]


def test_build_datasets_smoke(tmp_path: Path):
    decisions_json = tmp_path / "decisions.json"
    cmd = [
        sys.executable,
        str(REPO_ROOT / "scripts" / "01_build_datasets.py"),
        "--nrows",
        "400",
        "--processed-dir",
        str(tmp_path / "processed"),
        "--tables-dir",
        str(tmp_path / "tables"),
        "--decisions-json",
        str(decisions_json),
    ]
    subprocess.run(cmd, cwd=REPO_ROOT, check=True)

    heart = pd.read_parquet(tmp_path / "processed" / "framingham.parquet")
    assert heart.columns.tolist() == ["Y", "w1", "z1", "z2", "z3"]
    assert len(heart) == 400
    assert (tmp_path / "processed" / "eucalypt.parquet").exists()
    assert (tmp_path / "tables" / "missingness_framingham.csv").exists()

    covariates = pd.read_csv(tmp_path / "tables" / "covariates_framingham.csv")
    rel = covariates.loc[covariates["column"] == "w1", "reliability"].iloc[0]
    assert 0.0 < rel < 1.0

    payload = json.loads(decisions_json.read_text(encoding="utf-8"))
    assert payload["datasets"]["framingham"]["sigma_sq_u"] == 0.006295
    assert payload["datasets"]["eucalypt"]["error_cols"] == ["MNT"]


def test_run_example_smoke(tmp_path: Path):
    cmd = [
        sys.executable,
        str(REPO_ROOT / "scripts" / "02_run_example.py"),
        "--example",
        "glm",
        "--B",
        "3",
        "--seed",
        "7",
        "--nrows",
        "800",
        "--max-iter",
        "10",
        "--outdir",
        str(tmp_path),
    ]
    proc = subprocess.run(cmd, cwd=REPO_ROOT, check=True, capture_output=True, text=True)
    assert "chol. level" in proc.stdout

    tag = "glm_seed7_B3"
    coef = pd.read_csv(tmp_path / "tables" / f"coefficients_{tag}.csv", index_col=0)
    assert coef.index.tolist() == ["(Intercept)", "SBP", "chol. level", "age", "smoke"]
    required = [
        f"tables/timing_{tag}.csv",
        f"tables/relative_change_{tag}.csv",
        f"figures/coefficients_{tag}.png",
        f"figures/simex_extrapolation_{tag}.png",
        f"models/naive_{tag}.joblib",
        f"models/mcem_{tag}.joblib",
        f"models/simex_{tag}.joblib",
    ]
    for rel in required:
        assert (tmp_path / rel).exists(), f"Missing expected artifact: {rel}"

    logs = list((tmp_path / "logs").glob("run_*.json"))
    assert len(logs) == 1
    meta = json.loads(logs[0].read_text(encoding="utf-8"))
    assert meta["B"] == 3
    assert set(meta["timings_seconds"]) == {"naive", "mcem", "simex"}


def test_run_ppm_example_smoke(tmp_path: Path):
    cmd = [
        sys.executable,
        str(REPO_ROOT / "scripts" / "02_run_example.py"),
        "--example",
        "ppm",
        "--B",
        "2",
        "--methods",
        "naive",
        "mcem",
        "--max-iter",
        "5",
        "--outdir",
        str(tmp_path),
    ]
    subprocess.run(cmd, cwd=REPO_ROOT, check=True)
    assert (tmp_path / "figures" / "ppm_intensity_ppm_seed2026_B2.png").exists()


def test_b_scaling_smoke(tmp_path: Path):
    cmd = [
        sys.executable,
        str(REPO_ROOT / "scripts" / "03_b_scaling.py"),
        "--example",
        "glm",
        "--Bs",
        "2",
        "4",
        "--nrows",
        "600",
        "--outdir",
        str(tmp_path),
    ]
    subprocess.run(cmd, cwd=REPO_ROOT, check=True)
    study = pd.read_csv(tmp_path / "tables" / "b_scaling_glm_seed2026.csv")
    assert study["B"].tolist() == [2, 4]
    assert (study["seconds"] >= 0).all()


def test_bad_arguments_exit_nonzero(tmp_path: Path):
    cmd = [sys.executable, str(REPO_ROOT / "scripts" / "02_run_example.py"), "--B", "0", "--outdir", str(tmp_path)]
    proc = subprocess.run(cmd, cwd=REPO_ROOT, capture_output=True, text=True)
    assert proc.returncode != 0
    assert "--B must be a positive integer" in proc.stderr
