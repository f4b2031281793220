"""clonesurv package root."""

from __future__ import annotations

import argparse
import json
from typing import Any, Sequence

__version__ = "0.1.0"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="clonesurv",
        description="Survival analysis of clonal virulence assays.",
    )
    subparsers = parser.add_subparsers(dest="command")

    analyze_parser = subparsers.add_parser("analyze", help="Analyze an assay dataset.")
    analyze_parser.add_argument("--config", required=True, help="RunConfig YAML path.")

    simulate_parser = subparsers.add_parser("simulate", help="Run a simulation study.")
    simulate_parser.add_argument("--config", required=True, help="RunConfig YAML path.")
    simulate_parser.add_argument(
        "--n-jobs",
        type=int,
        default=None,
        help="Worker processes; overrides simulation.n_jobs.",
    )
    return parser


def _run_analyze(args: argparse.Namespace) -> dict[str, Any]:
    from clonesurv.api.runner import analyze
    from clonesurv.config.io import load_run_config

    result = analyze(load_run_config(args.config))
    return {
        "run_id": result.run_id,
        "task_type": result.task_type,
        "artifact_path": result.artifact_path,
        "metrics": result.metrics,
    }


def _run_simulate(args: argparse.Namespace) -> dict[str, Any]:
    from clonesurv.api.runner import simulate_study
    from clonesurv.config.io import load_run_config

    result = simulate_study(load_run_config(args.config), n_jobs=args.n_jobs)
    return {
        "run_id": result.run_id,
        "task_type": result.task_type,
        "artifact_path": result.artifact_path,
        "metrics": result.metrics,
    }


def main(argv: Sequence[str] | None = None) -> None:
    from clonesurv.api.exceptions import ClonesurvError

    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command == "analyze":
        handler = _run_analyze
    elif args.command == "simulate":
        handler = _run_simulate
    else:
        parser.print_help()
        return

    try:
        payload = handler(args)
    except ClonesurvError as exc:
        raise SystemExit(f"ERROR: {exc}") from exc
    print(json.dumps(payload, ensure_ascii=False, indent=2, default=str))
