from __future__ import annotations

import logging
import warnings
from typing import Dict, Sequence, Tuple

import numpy as np
import pandas as pd
import statsmodels.api as sm
from numpy.typing import ArrayLike
from scipy import stats
from statsmodels.tools.sm_exceptions import ConvergenceWarning, IterationLimitWarning

from .config import PHASE_POST, PHASE_PRE, X_COL, Y_COL, ProfileConfig, ScenarioParameters

logger = logging.getLogger(__name__)


def thermal_variability_grid(cfg: ProfileConfig) -> np.ndarray:
    """Shared ascending x sequence used by every scenario."""
    return np.linspace(cfg.x_min, cfg.x_max, cfg.n_points)


def _as_point_array(values: ArrayLike, n: int, name: str) -> np.ndarray:
    arr = np.asarray(values, dtype=float)
    if arr.ndim == 0:
        return np.full(n, float(arr))
    if arr.shape != (n,):
        raise ValueError(f"{name} must be a scalar or have length {n}, got shape {arr.shape}")
    return arr


# Reference: Azzalini (1985) Scand. J. Stat.; Equation: Y = xi + omega * Z, Z ~ SN(alpha) with density 2 phi(z) Phi(alpha z); Parameters: xi location, omega scale (> 0), alpha shape (alpha = 0 gives the normal).
def sample_skew_normal(
    n: int,
    xi: ArrayLike,
    omega: ArrayLike,
    alpha: ArrayLike,
    rng: np.random.Generator,
) -> np.ndarray:
    """Draw ``n`` skew-normal values, one per index, each with its own (xi, omega, alpha)."""
    if n < 1:
        raise ValueError(f"n must be positive, got {n}")
    xi_arr = _as_point_array(xi, n, "xi")
    omega_arr = _as_point_array(omega, n, "omega")
    alpha_arr = _as_point_array(alpha, n, "alpha")
    if not np.all(np.isfinite(omega_arr)) or np.any(omega_arr <= 0):
        raise ValueError("Skew-normal scale (omega) must be finite and strictly positive at every point.")
    if not (np.all(np.isfinite(xi_arr)) and np.all(np.isfinite(alpha_arr))):
        raise ValueError("Skew-normal location and shape must be finite.")
    return stats.skewnorm.rvs(a=alpha_arr, loc=xi_arr, scale=omega_arr, size=n, random_state=rng)


# Funnel: tighter at low variability. Equation: omega(x) = 5 + x^3.
def scale_profile(x: ArrayLike) -> np.ndarray:
    return 5.0 + np.asarray(x, dtype=float) ** 3


# Threshold collapse. Equation: xi(x) = c for x < x_thr, c + drop otherwise; a point exactly at x_thr is shifted.
def location_profile(x: ArrayLike, center_shift: float, drop: float, threshold: float) -> np.ndarray:
    x = np.asarray(x, dtype=float)
    return np.where(x < threshold, center_shift, center_shift + drop).astype(float)


def generate_skewed_data_with_threshold(
    params: ScenarioParameters,
    x: ArrayLike,
    threshold: float,
    rng: np.random.Generator,
) -> pd.DataFrame:
    """Simulate one scenario with skew, funnel-shaped spread and a threshold shift.

    The sampler is called exactly once, so the draws depend on the state of
    ``rng``; callers fix the seed and call order to reproduce a run.
    """
    params.validate()
    x = np.asarray(x, dtype=float)
    omega = scale_profile(x)
    xi = location_profile(x, params.center_shift, params.drop, threshold)
    response = sample_skew_normal(len(x), xi=xi, omega=omega, alpha=params.skew_value, rng=rng)
    return pd.DataFrame({X_COL: x, Y_COL: response})


def _poly_design(x: ArrayLike, degree: int) -> pd.DataFrame:
    x = np.asarray(x, dtype=float)
    columns = {"const": np.ones_like(x)}
    for power in range(1, degree + 1):
        columns[f"x^{power}"] = x**power
    return pd.DataFrame(columns)


def split_by_threshold(data: pd.DataFrame, threshold: float) -> Dict[str, pd.DataFrame]:
    """Pre keeps x <= threshold, Post keeps x > threshold."""
    pre = data.loc[data[X_COL] <= threshold]
    post = data.loc[data[X_COL] > threshold]
    return {PHASE_PRE: pre, PHASE_POST: post}


# Reference: ordinary least squares polynomial regression; Equation: y = b0 + b1 x + b2 x^2 + e, fitted separately on each side of x_thr; Parameters: degree 2, no shared coefficients between phases.
def fit_phase_models(
    data: pd.DataFrame,
    threshold: float,
    degree: int = 2,
) -> Dict[str, sm.regression.linear_model.RegressionResultsWrapper]:
    min_obs = degree + 1
    models = {}
    for phase, subset in split_by_threshold(data, threshold).items():
        if subset.shape[0] < min_obs:
            raise ValueError(
                f"{phase}-threshold partition has {subset.shape[0]} observations; "
                f"a degree-{degree} fit needs at least {min_obs}. Choose a different threshold."
            )
        design = _poly_design(subset[X_COL], degree)
        if np.linalg.matrix_rank(design.to_numpy()) < design.shape[1]:
            logger.warning("%s-threshold design matrix is rank deficient; trend fit is unreliable", phase)
        models[phase] = sm.OLS(subset[Y_COL].to_numpy(), design).fit()
    return models


def get_trend_lines(
    data: pd.DataFrame,
    threshold: float,
    n_points: int = 100,
    degree: int = 2,
) -> pd.DataFrame:
    """Fit separate quadratic trends pre- and post-threshold.

    Each phase is evaluated on ``n_points`` evenly spaced values spanning its
    own observed range, so the two halves need not meet at the threshold.
    """
    models = fit_phase_models(data, threshold, degree=degree)
    parts = split_by_threshold(data, threshold)
    frames = []
    for phase in (PHASE_PRE, PHASE_POST):
        x_obs = parts[phase][X_COL]
        x_seq = np.linspace(x_obs.min(), x_obs.max(), n_points)
        y_seq = np.asarray(models[phase].predict(_poly_design(x_seq, degree)))
        frames.append(pd.DataFrame({"x": x_seq, "y": y_seq, "phase": phase}))
    return pd.concat(frames, ignore_index=True)


def _validate_taus(taus: Sequence[float]) -> Tuple[float, float]:
    if len(taus) != 2:
        raise ValueError(f"Expected two quantile levels, got {taus!r}")
    low, high = float(taus[0]), float(taus[1])
    if not 0.0 < low < high < 1.0:
        raise ValueError(f"Quantile levels must satisfy 0 < low < high < 1, got {taus!r}")
    return low, high


# Reference: Koenker and Bassett (1978) Econometrica; Equation: min_b sum rho_tau(y_i - X_i b), rho_tau(u) = u (tau - 1[u < 0]); Parameters: tau quantile level, X the degree-2 polynomial design on the full dataset.
def fit_quantile_models(
    data: pd.DataFrame,
    taus: Sequence[float] = (0.05, 0.95),
    degree: int = 2,
) -> Dict[float, sm.regression.linear_model.RegressionResultsWrapper]:
    design = _poly_design(data[X_COL], degree)
    y = data[Y_COL].to_numpy()
    models = {}
    for tau in _validate_taus(taus):
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            models[tau] = sm.QuantReg(y, design).fit(q=tau)
        for item in caught:
            if issubclass(item.category, (IterationLimitWarning, ConvergenceWarning)):
                logger.warning("QuantReg tau=%.2f did not converge cleanly: %s", tau, item.message)
            else:
                logger.debug("QuantReg tau=%.2f emitted %s: %s", tau, item.category.__name__, item.message)
    return models


def get_quantile_ribbon(
    data: pd.DataFrame,
    taus: Sequence[float] = (0.05, 0.95),
    n_points: int = 300,
    degree: int = 2,
) -> pd.DataFrame:
    """Quantile band over the full x range; inverted bounds are logged, not clipped."""
    low, high = _validate_taus(taus)
    models = fit_quantile_models(data, (low, high), degree=degree)
    x_seq = np.linspace(data[X_COL].min(), data[X_COL].max(), n_points)
    grid = _poly_design(x_seq, degree)
    ribbon = pd.DataFrame(
        {
            X_COL: x_seq,
            "ymin": np.asarray(models[low].predict(grid)),
            "ymax": np.asarray(models[high].predict(grid)),
        }
    )
    inverted = int((ribbon["ymin"] > ribbon["ymax"]).sum())
    if inverted:
        logger.warning(
            "Quantile ribbon (tau=%.2f/%.2f) is inverted at %d of %d points; drawn as fitted",
            low,
            high,
            inverted,
            n_points,
        )
    return ribbon


def restrict_to_pre(ribbon: pd.DataFrame, threshold: float) -> pd.DataFrame:
    return ribbon.loc[ribbon[X_COL] <= threshold].reset_index(drop=True)
