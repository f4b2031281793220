"""Run the full model comparison on the demo assay and write an HTML report."""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Any

try:  # pragma: no cover - import path depends on how the script is launched
    from examples.common import (
        DEFAULT_DATA_PATH,
        DEFAULT_OUT_DIR,
        format_error,
        format_estimate_line,
        make_timestamp_dir,
        write_run_outputs,
    )
except ModuleNotFoundError:  # pragma: no cover
    from common import (
        DEFAULT_DATA_PATH,
        DEFAULT_OUT_DIR,
        format_error,
        format_estimate_line,
        make_timestamp_dir,
        write_run_outputs,
    )
from clonesurv.api import analyze

ALL_MODELS = [
    "cox",
    "cox_cluster",
    "cox_strata",
    "weibull",
    "pwe_poisson",
    "pwe_gee",
    "discrete_cloglog",
    "mixed_logit",
    "bayes_logit",
]


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--data-path",
        default=str(DEFAULT_DATA_PATH),
        help="Input CSV path prepared by prepare_demo_data.py.",
    )
    parser.add_argument(
        "--out-dir",
        default=str(DEFAULT_OUT_DIR),
        help="Output root directory (default: examples/out).",
    )
    parser.add_argument(
        "--n-intervals", type=int, default=6, help="Baseline intervals for interval models."
    )
    return parser.parse_args(argv)


def build_run_config(data_path: Path, artifact_dir: Path, n_intervals: int) -> dict[str, Any]:
    return {
        "config_version": 1,
        "task": {"type": "analysis"},
        "data": {
            "path": str(data_path),
            "group_col": "clone",
            "treatment_cols": ["treatment"],
            "reference_levels": {"treatment": "control"},
        },
        "models": [{"type": model_type} for model_type in ALL_MODELS],
        "survival": {"n_intervals": n_intervals},
        "report": {"title": "Demo virulence assay"},
        "export": {"artifact_dir": str(artifact_dir)},
    }


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    data_path = Path(args.data_path)

    if not data_path.exists():
        raise SystemExit(
            f"Input data was not found: {data_path}\n"
            "Hint: run `python examples/prepare_demo_data.py` first."
        )

    try:
        run_dir = make_timestamp_dir(args.out_dir)
        config = build_run_config(data_path, run_dir / "artifacts", args.n_intervals)
        result = analyze(config)
        write_run_outputs(
            run_dir,
            config,
            result.metrics,
            {"estimates": result.estimates, "model_comparison": result.comparison},
        )
    except Exception as exc:  # pragma: no cover - exercised via CLI failure only
        raise SystemExit(
            format_error(exc, "Check column names and model settings before re-running.")
        ) from exc

    print(f"run_id: {result.run_id}")
    print(f"artifact_path: {result.artifact_path}")
    for row in result.estimates.itertuples(index=False):
        print(format_estimate_line(row))
    print(f"report: {result.metadata.get('report_path')}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
