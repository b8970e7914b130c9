import os
import sys
import tempfile
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

_mpl_cache_dir = Path(tempfile.gettempdir()) / "matplotlib"
_mpl_cache_dir.mkdir(parents=True, exist_ok=True)
os.environ.setdefault("MPLCONFIGDIR", str(_mpl_cache_dir))

import matplotlib  # noqa: E402

matplotlib.use("Agg")

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from src.data.datasets import load_dataset  # noqa: E402


@pytest.fixture(scope="session")
def heart_data() -> pd.DataFrame:
    return load_dataset("framingham")


@pytest.fixture(scope="session")
def eucalypt_data() -> pd.DataFrame:
    return load_dataset("eucalypt")


@pytest.fixture(scope="session")
def linear_me_data() -> pd.DataFrame:
    """Gaussian outcome with slope 3 on a covariate observed with error variance 0.49 (reliability ~0.67)."""
    rng = np.random.default_rng(7)
    n = 1000
    x = rng.normal(0.0, 1.0, size=n)
    w = x + rng.normal(0.0, 0.7, size=n)
    z = rng.normal(0.0, 1.0, size=n)
    y = 2.0 + 3.0 * x + 0.5 * z + rng.normal(0.0, 1.0, size=n)
    return pd.DataFrame({"y": y, "w": w, "z": z})
