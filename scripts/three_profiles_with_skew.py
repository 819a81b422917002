from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Sequence

import matplotlib

matplotlib.use("Agg")

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.append(str(ROOT))

from src.profiles.config import ProfileConfig, default_config  # noqa: E402
from src.profiles.pipeline import run_three_profiles  # noqa: E402

logger = logging.getLogger(__name__)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Simulate symmetric, left- and right-skewed threshold profiles and plot them as one figure."
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    return parser.parse_args(argv)


def configure_logging(debug: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logging.getLogger("matplotlib").setLevel(logging.WARNING)
    logging.getLogger("fontTools").setLevel(logging.ERROR)


def main(argv: Sequence[str] | None = None, cfg: ProfileConfig | None = None) -> int:
    args = parse_args(argv)
    configure_logging(args.debug)

    cfg = cfg or default_config()
    logger.info("Running three-profile workflow (seed=%d, n=%d)", cfg.random_seed, cfg.n_points)
    run = run_three_profiles(cfg)
    print(f"Three-profile threshold figure saved to {run.figure_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
