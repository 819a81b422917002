from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

import matplotlib.pyplot as plt
import pandas as pd
import seaborn as sns

from .config import PHASE_POST, PHASE_PRE, X_COL, Y_COL, ProfileConfig, default_config
from .core import get_quantile_ribbon, get_trend_lines, restrict_to_pre

logger = logging.getLogger(__name__)

PHASE_LINESTYLES = {PHASE_PRE: "-", PHASE_POST: "--"}
LEGEND_TITLE = "Trend Phase"
X_LABEL = "Thermal Variability"
Y_LABEL = "Organism Response Index"

# ggplot grey levels used by the reference figure
GRAY30 = "#4d4d4d"
GRAY40 = "#666666"


def set_plot_style(cfg: ProfileConfig | None = None) -> None:
    """
    White panels with a dark border and light grid, sized for a 6 x 8.5 in
    three-row figure.
    """
    cfg = cfg or default_config()
    base = float(cfg.base_font_size)
    sns.set_theme(style="whitegrid")
    plt.rcParams.update(
        {
            "font.family": "sans-serif",
            "font.sans-serif": ["Arial", "Helvetica", "DejaVu Sans"],
            "font.size": base * 0.8,
            "axes.titlesize": base * 0.8,
            "axes.labelsize": base * 0.75,
            "xtick.labelsize": base * 0.65,
            "ytick.labelsize": base * 0.65,
            "legend.fontsize": base * 0.7,
            "legend.title_fontsize": base * 0.7,
            "axes.edgecolor": "#333333",
            "axes.linewidth": 0.8,
            "grid.color": "#ebebeb",
            "grid.linewidth": 0.6,
            "figure.dpi": 100,
            "savefig.dpi": cfg.dpi,
        }
    )
    sns.set_palette([scenario.color for scenario in cfg.scenarios])


@dataclass(frozen=True)
class PanelData:
    title: str
    color: str
    threshold: float
    data: pd.DataFrame
    trend: pd.DataFrame
    ribbon: pd.DataFrame
    ribbon_pre: pd.DataFrame


def build_panel(
    data: pd.DataFrame,
    title: str,
    color: str,
    threshold: float,
    cfg: ProfileConfig | None = None,
) -> PanelData:
    """Fit ribbon and trend for one scenario; only the pre-threshold ribbon is shown."""
    cfg = cfg or default_config()
    ribbon = get_quantile_ribbon(
        data,
        taus=cfg.ribbon_taus,
        n_points=cfg.ribbon_points,
        degree=cfg.poly_degree,
    )
    trend = get_trend_lines(data, threshold, n_points=cfg.trend_points, degree=cfg.poly_degree)
    logger.debug("Built panel %r (%d points, %d trend rows)", title, data.shape[0], trend.shape[0])
    return PanelData(
        title=title,
        color=color,
        threshold=threshold,
        data=data,
        trend=trend,
        ribbon=ribbon,
        ribbon_pre=restrict_to_pre(ribbon, threshold),
    )


def draw_threshold_panel(
    ax: plt.Axes,
    panel: PanelData,
    cfg: ProfileConfig | None = None,
    show_legend: bool = True,
) -> plt.Axes:
    cfg = cfg or default_config()
    data = panel.data
    threshold = panel.threshold

    # Post-threshold region, full height
    ax.axvspan(threshold, data[X_COL].max(), color=GRAY30, alpha=0.08, linewidth=0.0, zorder=0)
    ax.fill_between(
        panel.ribbon_pre[X_COL],
        panel.ribbon_pre["ymin"],
        panel.ribbon_pre["ymax"],
        color=panel.color,
        alpha=0.3,
        linewidth=0.0,
        zorder=1,
    )
    sns.scatterplot(
        data=data,
        x=X_COL,
        y=Y_COL,
        color=panel.color,
        alpha=0.5,
        s=14,
        edgecolor="none",
        legend=False,
        ax=ax,
        zorder=2,
    )
    for phase in (PHASE_PRE, PHASE_POST):
        segment = panel.trend.loc[panel.trend["phase"] == phase]
        ax.plot(
            segment["x"],
            segment["y"],
            color="black",
            linestyle=PHASE_LINESTYLES[phase],
            linewidth=2.0,
            label=phase,
            zorder=3,
        )
    ax.axvline(threshold, color=GRAY40, linestyle=":", linewidth=1.0, zorder=4)
    ax.axhline(0.0, color=GRAY30, linestyle="--", linewidth=1.0, zorder=5)

    ax.set_ylim(*cfg.y_limits)
    ax.set_title(panel.title, loc="left")
    ax.set_xlabel(X_LABEL)
    ax.set_ylabel(Y_LABEL)
    if show_legend:
        ax.legend(
            title=LEGEND_TITLE,
            loc="upper center",
            bbox_to_anchor=(0.5, -0.22),
            ncol=2,
            frameon=False,
        )
    return ax


def build_figure(panels: Sequence[PanelData], cfg: ProfileConfig | None = None) -> plt.Figure:
    """Stack the panels vertically and append one shared legend row below them."""
    cfg = cfg or default_config()
    if not panels:
        raise ValueError("At least one panel is required to compose a figure.")
    n_rows = len(panels)
    # Legend row height is a fraction of the whole panel stack
    height_ratios = [1.0] * n_rows + [cfg.legend_height_fraction * n_rows]
    fig = plt.figure(figsize=cfg.figure_size_in)
    grid = fig.add_gridspec(n_rows + 1, 1, height_ratios=height_ratios)

    axes = []
    for row, panel in enumerate(panels):
        ax = fig.add_subplot(grid[row, 0], sharex=axes[0] if axes else None)
        draw_threshold_panel(ax, panel, cfg, show_legend=False)
        axes.append(ax)
    fig.align_ylabels(axes)

    legend_ax = fig.add_subplot(grid[n_rows, 0])
    legend_ax.axis("off")
    handles, labels = axes[0].get_legend_handles_labels()
    legend_ax.legend(
        handles,
        labels,
        title=LEGEND_TITLE,
        loc="center",
        ncol=max(len(handles), 1),
        frameon=False,
    )
    fig.tight_layout()
    return fig


def compose_figure(
    panels: Sequence[PanelData],
    output_path: Path,
    cfg: ProfileConfig | None = None,
) -> None:
    cfg = cfg or default_config()
    output_path = Path(output_path)
    fig = build_figure(panels, cfg)
    # Render next to the target and swap in, so a failed save leaves no partial PNG
    staging_path = output_path.with_name(f".{output_path.name}.tmp")
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(staging_path, dpi=cfg.dpi, format="png")
        staging_path.replace(output_path)
    except BaseException:
        staging_path.unlink(missing_ok=True)
        raise
    finally:
        plt.close(fig)
    logger.info("Saved %d-panel figure to %s", len(panels), output_path)
