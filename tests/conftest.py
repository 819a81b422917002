"""
Shared pytest fixtures for the three-profile workflow tests.

Provides a configuration rooted in a temporary directory and a seeded
generator, and forces the non-interactive matplotlib backend.
"""

from dataclasses import replace

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
import numpy as np  # noqa: E402
import pytest  # noqa: E402

from src.profiles.config import default_config  # noqa: E402


@pytest.fixture
def cfg(tmp_path):
    """Default configuration writing into a temporary project root."""
    return replace(default_config(), project_root=tmp_path)


@pytest.fixture
def rng(cfg):
    return np.random.default_rng(cfg.random_seed)


@pytest.fixture(autouse=True)
def close_figures():
    yield
    plt.close("all")
