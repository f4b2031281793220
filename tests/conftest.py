"""Pytest shared setup."""

from __future__ import annotations

import shutil
import sys
from copy import deepcopy
from pathlib import Path
from uuid import uuid4

import numpy as np
import pandas as pd
import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))


@pytest.fixture
def tmp_path() -> Path:
    """Workspace-local tmp_path to avoid permission issues in this environment."""
    temp_root = REPO_ROOT / ".pytest_tmp" / "cases"
    temp_root.mkdir(parents=True, exist_ok=True)
    created = temp_root / f"case_{uuid4().hex}"
    created.mkdir(parents=True, exist_ok=False)
    try:
        yield created
    finally:
        shutil.rmtree(created, ignore_errors=True)


def _deep_merge(base: dict, overrides: dict) -> dict:
    merged = deepcopy(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


@pytest.fixture
def survival_frame():
    """Clustered assay: every clone under every level, exponential hazards with frailty."""

    def _build(
        n_clones: int = 8,
        n_per_cell: int = 15,
        levels: tuple[str, ...] = ("control", "treated"),
        log_hr: float = 0.7,
        frailty_sd: float = 0.5,
        follow_up: float = 6.0,
        seed: int = 3,
    ) -> pd.DataFrame:
        rng = np.random.default_rng(seed)
        frailty = rng.normal(scale=frailty_sd, size=n_clones)
        rows = []
        for clone_idx in range(n_clones):
            for level_idx, level in enumerate(levels):
                rate = 0.25 * np.exp(log_hr * (level_idx > 0) + frailty[clone_idx])
                times = rng.exponential(1.0 / rate, size=n_per_cell)
                for value in times:
                    rows.append(
                        {
                            "clone": f"C{clone_idx + 1:02d}",
                            "treatment": level,
                            "time": float(min(value, follow_up)),
                            "status": int(value <= follow_up),
                        }
                    )
        return pd.DataFrame(rows)

    return _build


@pytest.fixture
def config_payload():
    def _build(task_type: str = "analysis", **overrides: object) -> dict:
        base: dict = {
            "config_version": 1,
            "task": {"type": task_type},
            "data": {"group_col": "clone", "treatment_cols": ["treatment"]},
            "export": {"artifact_dir": "artifacts"},
        }
        if task_type == "analysis":
            base["data"]["reference_levels"] = {"treatment": "control"}
        if task_type == "simulation":
            base["simulation"] = {"n_reps": 3, "n_clones": 6, "n_per_cell": 8, "seed": 5}
        return _deep_merge(base, overrides)

    return _build
