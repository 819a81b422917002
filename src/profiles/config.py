from __future__ import annotations

import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Tuple

# Column names of the simulated dataset
X_COL = "thermal_variability"
Y_COL = "organism_response"

PHASE_PRE = "Pre"
PHASE_POST = "Post"


@dataclass(frozen=True)
class ScenarioParameters:
    """Shape of one stress-response hypothesis.

    skew_value shifts asymmetry of the response distribution, center_shift
    moves its location before the threshold and drop is the additional
    location offset applied from the threshold onwards.
    """

    skew_value: float
    center_shift: float
    drop: float

    def validate(self) -> None:
        for name in ("skew_value", "center_shift", "drop"):
            value = getattr(self, name)
            if not math.isfinite(float(value)):
                raise ValueError(f"ScenarioParameters.{name} must be finite, got {value!r}")


@dataclass(frozen=True)
class Scenario:
    key: str
    title: str
    color: str
    params: ScenarioParameters


# Dark viridis shades, skipping yellow
DEFAULT_SCENARIOS: Tuple[Scenario, ...] = (
    Scenario(
        key="symmetric",
        title="Symmetric Response (Normal)",
        color="#440154FF",
        params=ScenarioParameters(skew_value=0.0, center_shift=0.0, drop=-5.0),
    ),
    Scenario(
        key="left_skew",
        title="Left-Skewed Response (Threshold Collapse)",
        color="#21908CFF",
        params=ScenarioParameters(skew_value=-3.0, center_shift=7.0, drop=-13.0),
    ),
    Scenario(
        key="right_skew",
        title="Right-Skewed Response (Filtered Survivors)",
        color="#3B528BFF",
        params=ScenarioParameters(skew_value=3.0, center_shift=-7.0, drop=-13.0),
    ),
)


@dataclass(frozen=True)
class ProfileConfig:
    """Central configuration shared across the profile workflow."""

    project_root: Path = Path(".").resolve()
    n_points: int = 300
    x_min: float = 0.5
    x_max: float = 3.0
    threshold_point: float = 2.5
    random_seed: int = 42
    scenarios: Tuple[Scenario, ...] = field(default_factory=lambda: DEFAULT_SCENARIOS)
    trend_points: int = 100
    ribbon_points: int = 300
    poly_degree: int = 2
    ribbon_taus: Tuple[float, float] = (0.05, 0.95)
    y_limits: Tuple[float, float] = (-45.0, 45.0)
    figure_size_in: Tuple[float, float] = (6.0, 8.5)
    dpi: int = 300
    legend_height_fraction: float = 0.07
    figure_name: str = "3phases_threshold_funnel_skew222.png"
    base_font_size: float = 13.0
    # Relative to project_root; an absolute path is used as given
    figures_subdir: Path = Path("figures")

    @property
    def figures_dir(self) -> Path:
        return self.project_root / self.figures_subdir

    @property
    def output_dirs(self) -> Tuple[Path, ...]:
        return (self.figures_dir,)

    @property
    def figure_path(self) -> Path:
        return self.figures_dir / self.figure_name

    def validate(self) -> None:
        """Reject settings that cannot produce a well-posed run.

        The grid is ``linspace(x_min, x_max, n_points)`` and the scale is
        ``5 + x**3``, so ``x_min >= 0`` keeps every scale positive. Both sides
        of the threshold need at least ``poly_degree + 1`` grid points for the
        piecewise polynomial fits.
        """
        min_obs = self.poly_degree + 1
        if self.poly_degree < 0:
            raise ValueError(f"poly_degree must be non-negative, got {self.poly_degree}")
        if self.n_points < 2 * min_obs:
            raise ValueError(f"n_points must be at least {2 * min_obs}, got {self.n_points}")
        if not self.x_min < self.x_max:
            raise ValueError(f"x_min ({self.x_min}) must be below x_max ({self.x_max})")
        if self.x_min < 0:
            raise ValueError(f"x_min must be non-negative to keep the scale positive, got {self.x_min}")
        if not self.x_min < self.threshold_point < self.x_max:
            raise ValueError(
                f"threshold_point {self.threshold_point} lies outside the domain ({self.x_min}, {self.x_max})"
            )
        step = (self.x_max - self.x_min) / (self.n_points - 1)
        n_pre = int(math.floor((self.threshold_point - self.x_min) / step + 1e-9)) + 1
        n_post = self.n_points - n_pre
        if n_pre < min_obs or n_post < min_obs:
            raise ValueError(
                f"threshold_point {self.threshold_point} leaves {n_pre} pre / {n_post} post points; "
                f"need at least {min_obs} on each side"
            )
        if self.trend_points < 2 or self.ribbon_points < 2:
            raise ValueError("trend_points and ribbon_points must both be at least 2")
        low, high = self.ribbon_taus
        if not 0.0 < low < high < 1.0:
            raise ValueError(f"ribbon_taus must satisfy 0 < low < high < 1, got {self.ribbon_taus}")
        if not self.scenarios:
            raise ValueError("At least one scenario is required.")
        keys = [scenario.key for scenario in self.scenarios]
        if len(set(keys)) != len(keys):
            raise ValueError(f"Duplicate scenario keys: {keys}")
        for scenario in self.scenarios:
            scenario.params.validate()
        if not 0.0 < self.legend_height_fraction < 1.0:
            raise ValueError("legend_height_fraction must lie in (0, 1)")


def default_config() -> ProfileConfig:
    return ProfileConfig()
