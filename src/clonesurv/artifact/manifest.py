"""Run manifest: what was fitted, on which data, with which seed and library versions."""

from __future__ import annotations

import hashlib
import json
import platform
from datetime import datetime, timezone
from importlib import metadata
from typing import Any

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field

from clonesurv.config.models import RunConfig

# Libraries whose versions change estimates or outputs.
TRACKED_DEPENDENCIES = [
    "joblib",
    "lifelines",
    "numpy",
    "pandas",
    "plotly",
    "scipy",
    "statsmodels",
]


class ManifestModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    label: str
    type: str


class SimulationFacts(BaseModel):
    """Settings that fix the replicate stream of a simulation run."""

    model_config = ConfigDict(extra="forbid")
    seed: int
    n_reps: int
    assignment: str
    log_hr: float
    frailty_sd: float


class DataFacts(BaseModel):
    """Shape and fingerprint of the prepared survival frame of an analysis run."""

    model_config = ConfigDict(extra="forbid")
    path: str | None = None
    n_subjects: int
    n_events: int
    n_clones: int | None = None
    sha256: str


class Manifest(BaseModel):
    model_config = ConfigDict(extra="forbid")
    manifest_version: int = 1
    project_version: str
    run_id: str
    task_type: str
    config_version: int
    config_hash: str
    alpha: float
    models: list[ManifestModel] = Field(default_factory=list)
    simulation: SimulationFacts | None = None
    data: DataFacts | None = None
    python_version: str
    dependencies: dict[str, str] = Field(default_factory=dict)
    files: list[str] = Field(default_factory=list)
    created_at_utc: str


def config_hash(run_config: RunConfig) -> str:
    payload: dict[str, Any] = run_config.model_dump(mode="json", exclude_none=True)
    encoded = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


def frame_hash(frame: pd.DataFrame) -> str:
    """Order-sensitive SHA-256 of a frame's index and values."""
    row_hashes = pd.util.hash_pandas_object(frame, index=True).to_numpy()
    return hashlib.sha256(row_hashes.tobytes()).hexdigest()


def _dependency_versions() -> dict[str, str]:
    versions: dict[str, str] = {}
    for package in TRACKED_DEPENDENCIES:
        try:
            versions[package] = metadata.version(package)
        except metadata.PackageNotFoundError:
            versions[package] = "not-installed"
    return versions


def _data_facts(run_config: RunConfig, frame: pd.DataFrame) -> DataFacts:
    data = run_config.data
    return DataFacts(
        path=data.path,
        n_subjects=len(frame),
        n_events=int(frame[data.event_col].sum()),
        n_clones=(
            int(frame[data.group_col].astype(str).nunique()) if data.group_col else None
        ),
        sha256=frame_hash(frame),
    )


def build_manifest(
    run_config: RunConfig,
    run_id: str,
    project_version: str,
    frame: pd.DataFrame | None = None,
) -> Manifest:
    """Manifest for one run; ``frame`` is the prepared data of an analysis run."""
    simulation = None
    if run_config.task.type == "simulation":
        sim = run_config.simulation
        simulation = SimulationFacts(
            seed=sim.seed,
            n_reps=sim.n_reps,
            assignment=sim.assignment,
            log_hr=sim.log_hr,
            frailty_sd=sim.frailty_sd,
        )
    return Manifest(
        project_version=project_version,
        run_id=run_id,
        task_type=run_config.task.type,
        config_version=run_config.config_version,
        config_hash=config_hash(run_config),
        alpha=run_config.survival.alpha,
        models=[
            ManifestModel(label=model.resolved_label, type=model.type)
            for model in run_config.models
        ],
        simulation=simulation,
        data=_data_facts(run_config, frame) if frame is not None else None,
        python_version=platform.python_version(),
        dependencies=_dependency_versions(),
        created_at_utc=datetime.now(timezone.utc).isoformat(),
    )
