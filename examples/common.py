"""Shared plumbing for the demo scripts: output folders, run files, console lines."""

from __future__ import annotations

import json
import math
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd
import yaml

EXAMPLES_DIR = Path(__file__).resolve().parent
DEFAULT_DATA_PATH = EXAMPLES_DIR / "data" / "virulence_assay.csv"
DEFAULT_OUT_DIR = EXAMPLES_DIR / "out"


def make_timestamp_dir(root: str | Path) -> Path:
    """Create ``<root>/<UTC timestamp>``, suffixing ``_01``, ``_02`` on collisions."""
    base = Path(root)
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    candidate = base / stamp
    suffix = 1
    while candidate.exists():
        candidate = base / f"{stamp}_{suffix:02d}"
        suffix += 1
    candidate.mkdir(parents=True, exist_ok=False)
    return candidate


def to_jsonable(value: Any) -> Any:
    """JSON-safe copy of run metrics; NaN and infinite estimates become ``None``."""
    if isinstance(value, pd.DataFrame):
        return to_jsonable(value.to_dict(orient="records"))
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, np.ndarray)):
        return [to_jsonable(item) for item in value]
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, (np.integer, np.bool_)):
        return value.item()
    if isinstance(value, (float, np.floating)):
        value = float(value)
        return value if math.isfinite(value) else None
    return value


def write_run_outputs(
    run_dir: Path,
    config: dict[str, Any],
    metrics: dict[str, Any],
    tables: dict[str, pd.DataFrame] | None = None,
) -> list[Path]:
    """Write ``used_config.yaml``, ``metrics.json`` and one CSV per table into ``run_dir``."""
    run_dir.mkdir(parents=True, exist_ok=True)
    written = [run_dir / "used_config.yaml", run_dir / "metrics.json"]
    written[0].write_text(
        yaml.safe_dump(config, sort_keys=False, allow_unicode=True), encoding="utf-8"
    )
    written[1].write_text(
        json.dumps(to_jsonable(metrics), indent=2, sort_keys=True), encoding="utf-8"
    )
    for name, table in (tables or {}).items():
        path = run_dir / f"{name}.csv"
        table.to_csv(path, index=False)
        written.append(path)
    return written


def format_estimate_line(row: Any) -> str:
    """One console line per model: hazard (or odds) ratio with its interval."""
    ratio = "OR" if getattr(row, "scale", "log_hr") == "log_or" else "HR"
    return (
        f"{row.model:>16s}  {ratio}={row.hazard_ratio:.3f} "
        f"({row.hr_low:.3f}, {row.hr_high:.3f})  converged={bool(row.converged)}"
    )


def format_summary_line(row: Any) -> str:
    """One console line per model of a simulation summary."""
    return (
        f"{row.model:>16s}  bias={row.bias:+.3f}  se_ratio={row.se_ratio:.2f}  "
        f"coverage={row.coverage:.2f}  power={row.rejection_rate:.2f}  "
        f"failed={int(row.n_failed)}"
    )


def format_error(error: Exception, hint: str) -> str:
    """Format a user-facing error with a concrete next action."""
    return f"{error}\nHint: {hint}"
