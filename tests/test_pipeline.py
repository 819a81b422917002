import importlib.util
import logging
from dataclasses import replace
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from src.profiles.config import X_COL, Y_COL
from src.profiles.core import generate_skewed_data_with_threshold, get_trend_lines, thermal_variability_grid
from src.profiles.pipeline import build_panels, run_three_profiles, simulate_scenarios

SCRIPT_PATH = Path(__file__).resolve().parents[1] / "scripts" / "three_profiles_with_skew.py"


def _load_script():
    spec = importlib.util.spec_from_file_location("three_profiles_with_skew", SCRIPT_PATH)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_scenarios_share_x_and_length(cfg):
    datasets = simulate_scenarios(cfg)
    assert list(datasets) == ["symmetric", "left_skew", "right_skew"]
    reference = datasets["symmetric"][X_COL].to_numpy()
    for data in datasets.values():
        assert data.shape[0] == 300
        np.testing.assert_array_equal(data[X_COL].to_numpy(), reference)


def test_simulation_is_reproducible_for_fixed_seed(cfg):
    first = simulate_scenarios(cfg)
    second = simulate_scenarios(cfg)
    for key in first:
        pd.testing.assert_frame_equal(first[key], second[key])
        pd.testing.assert_frame_equal(
            get_trend_lines(first[key], cfg.threshold_point),
            get_trend_lines(second[key], cfg.threshold_point),
        )


def test_simulation_consumes_generator_in_scenario_order(cfg):
    datasets = simulate_scenarios(cfg)
    rng = np.random.default_rng(cfg.random_seed)
    x = thermal_variability_grid(cfg)
    for scenario in cfg.scenarios:
        expected = generate_skewed_data_with_threshold(scenario.params, x, cfg.threshold_point, rng)
        pd.testing.assert_frame_equal(datasets[scenario.key], expected)

    reordered = replace(cfg, scenarios=tuple(reversed(cfg.scenarios)))
    swapped = simulate_scenarios(reordered)
    assert not np.allclose(swapped["symmetric"][Y_COL], datasets["symmetric"][Y_COL])


def test_different_seed_changes_draws(cfg):
    base = simulate_scenarios(cfg)["symmetric"]
    other = simulate_scenarios(replace(cfg, random_seed=7))["symmetric"]
    assert not np.allclose(base[Y_COL], other[Y_COL])


def test_end_to_end_run_writes_only_the_figure(cfg, tmp_path):
    run = run_three_profiles(cfg)
    assert run.figure_path == cfg.figure_path
    assert run.figure_path.exists()
    assert run.figure_path.read_bytes()[:8] == b"\x89PNG\r\n\x1a\n"
    written = {path.relative_to(tmp_path) for path in tmp_path.rglob("*") if path.is_file()}
    assert written == {cfg.figure_path.relative_to(tmp_path)}
    data = run.datasets["symmetric"]
    assert data.shape[0] == 300
    assert np.all(np.diff(data[X_COL]) > 0)
    assert [panel.title for panel in run.panels] == [s.title for s in cfg.scenarios]


def test_invalid_config_fails_before_any_output(cfg):
    bad = replace(cfg, threshold_point=3.5)
    with pytest.raises(ValueError):
        run_three_profiles(bad)
    assert not bad.figure_path.exists()


def test_fit_failure_is_logged_with_traceback_and_scenario(cfg, caplog):
    datasets = simulate_scenarios(cfg)
    x = datasets["symmetric"][X_COL]
    # one grid point beyond the threshold cannot support a quadratic fit
    bad = replace(cfg, threshold_point=float(x.iloc[-2]))
    with caplog.at_level(logging.ERROR, logger="src.profiles.pipeline"):
        with pytest.raises(ValueError, match="Post-threshold"):
            build_panels(datasets, bad)
    errors = [r for r in caplog.records if r.levelno == logging.ERROR]
    assert len(errors) == 1
    assert "symmetric" in errors[0].getMessage()
    assert errors[0].exc_info is not None
    assert errors[0].exc_info[0] is ValueError


def test_script_main_writes_the_figure(cfg, capsys):
    script = _load_script()
    assert script.parse_args([]).debug is False
    assert script.main(["--debug"], cfg=cfg) == 0
    assert cfg.figure_path.exists()
    assert "figure saved" in capsys.readouterr().out


def test_script_rejects_unknown_flags():
    script = _load_script()
    with pytest.raises(SystemExit):
        script.parse_args(["--seed", "7"])
