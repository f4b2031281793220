"""Write a simulated virulence assay CSV used by demo scripts."""

from __future__ import annotations

import argparse
from pathlib import Path

import numpy as np
import pandas as pd

try:  # pragma: no cover - import path depends on how the script is launched
    from examples.common import DEFAULT_DATA_PATH, format_error
except ModuleNotFoundError:  # pragma: no cover
    from common import DEFAULT_DATA_PATH, format_error
from clonesurv.config import SimulationConfig
from clonesurv.simulate import generate_clustered_survival


def build_assay_frame(seed: int, n_clones: int, n_per_cell: int) -> pd.DataFrame:
    """Two-level assay, every clone under both levels, daily inspections."""
    params = SimulationConfig(
        n_clones=n_clones,
        n_per_cell=n_per_cell,
        levels=["control", "treated"],
        assignment="within",
        log_hr=0.6,
        frailty_sd=0.7,
        weibull_shape=1.5,
        weibull_scale=5.0,
        follow_up=10.0,
        observation_interval=1.0,
    )
    return generate_clustered_survival(params, np.random.default_rng(seed))


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--out-path",
        default=str(DEFAULT_DATA_PATH),
        help="Output CSV path (default: examples/data/virulence_assay.csv).",
    )
    parser.add_argument("--seed", type=int, default=7, help="Random seed.")
    parser.add_argument("--n-clones", type=int, default=12, help="Number of clones.")
    parser.add_argument(
        "--n-per-cell", type=int, default=12, help="Hosts per clone and treatment level."
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    out_path = Path(args.out_path)

    try:
        frame = build_assay_frame(args.seed, args.n_clones, args.n_per_cell)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        frame.to_csv(out_path, index=False)
    except Exception as exc:  # pragma: no cover - exercised via CLI failure only
        raise SystemExit(
            format_error(exc, "Check --n-clones >= 2 and --n-per-cell >= 1.")
        ) from exc

    print(f"Saved demo data to: {out_path}")
    print(f"Rows: {len(frame)}")
    print(f"Deaths: {int(frame['status'].sum())}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
