from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]

DATA_DIR = PROJECT_ROOT / "data"
RAW_DIR = DATA_DIR / "raw"
PROCESSED_DIR = DATA_DIR / "processed"

OUTPUTS_DIR = PROJECT_ROOT / "outputs"
FIGURES_DIR = OUTPUTS_DIR / "figures"
TABLES_DIR = OUTPUTS_DIR / "tables"
MODELS_DIR = OUTPUTS_DIR / "models"
LOGS_DIR = OUTPUTS_DIR / "logs"

# Optional pre-packaged copies of the example datasets. When a file is missing the
# deterministic synthetic stand-in from src/data/synthetic.py is used instead.
RAW_FILES = {
    "framingham": RAW_DIR / "Framinghamdata.csv",
    "eucalypt": RAW_DIR / "Corymbia_eximia_ppm.csv",
}

# Dataset identifiers (used in outputs/ metadata)
DATASET_VERSION = "me_examples_v1"
EXPERIMENT_NAMESPACE = "mcem_vs_simex_v1"

# Heart-study example (logistic GLM / GAM).
# w1 = log(SBP - 50), z1 = serum cholesterol, z2 = age, z3 = smoking indicator.
FRAMINGHAM_N = 1615
FRAMINGHAM_RESPONSE = "Y"
FRAMINGHAM_ERROR_COLS = ["w1"]
FRAMINGHAM_EXACT_COLS = ["z1", "z2", "z3"]
FRAMINGHAM_LABELS = {"w1": "SBP", "z1": "chol. level", "z2": "age", "z3": "smoke"}
# Error variance of log(SBP - 50) estimated from replicate exams (Carroll et al., 2006).
FRAMINGHAM_SIGMA_SQ_U = 0.006295

# Presence-only eucalypt example (Poisson point-process model, Berman-Turner weights).
EUCALYPT_RESPONSE = "Y.obs"
EUCALYPT_WEIGHT_COL = "p.wt"
EUCALYPT_COORD_COLS = ["X", "Y"]
EUCALYPT_ERROR_COLS = ["MNT"]
EUCALYPT_EXACT_COLS = ["FC", "Rain", "D.Main"]
EUCALYPT_SIGMA_SQ_U = 0.25
EUCALYPT_GRID_SHAPE = (40, 30)

# Correction defaults
DEFAULT_B = 100
DEFAULT_SEED = 2026
MCEM_EPSILON = 1e-5
MCEM_MAX_ITER = 100
SIMEX_LAMBDAS = (0.5, 1.0, 1.5, 2.0)
SIMEX_FITTING_METHOD = "quadratic"  # choices: linear, quadratic, loglinear, nonlinear

# GAM smooth terms
SMOOTH_N_KNOTS = 5
SMOOTH_DEGREE = 3
SMOOTH_GRID_POINTS = 100

# Runtime-vs-B study
B_SCALING_GRID = (5, 10, 25, 50)

METHODS = ("naive", "mcem", "simex")
