"""Run directory persistence."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import joblib
import pandas as pd

from clonesurv.api.exceptions import ClonesurvArtifactError
from clonesurv.artifact.manifest import Manifest
from clonesurv.config.io import load_run_config, save_run_config
from clonesurv.config.models import RunConfig
from clonesurv.survival.base import ModelFit

REQUIRED_FILES = ("manifest.json", "run_config.yaml", "metrics.json")
FITS_FILE = "fits.joblib"
REPLICATES_FILE = "replicates.parquet"


@dataclass(slots=True)
class ArtifactBundle:
    """Contents of a run directory loaded by :func:`load_artifact`."""

    path: Path
    run_config: RunConfig
    manifest: Manifest
    metrics: dict[str, Any]
    tables: dict[str, pd.DataFrame] = field(default_factory=dict)
    fits: list[ModelFit] | None = None
    replicates: pd.DataFrame | None = None


def save_artifact(
    path: str | Path,
    run_config: RunConfig,
    manifest: Manifest,
    metrics: dict[str, Any],
    tables: dict[str, pd.DataFrame] | None = None,
    fits: list[ModelFit] | None = None,
    replicates: pd.DataFrame | None = None,
) -> Path:
    """Write a run directory; ``tables`` are saved as ``<name>.csv``."""
    artifact_dir = Path(path)
    artifact_dir.mkdir(parents=True, exist_ok=True)
    written: list[str] = ["manifest.json", "run_config.yaml", "metrics.json"]

    save_run_config(run_config, artifact_dir / "run_config.yaml")
    (artifact_dir / "metrics.json").write_text(
        json.dumps(metrics, indent=2, sort_keys=True, default=str),
        encoding="utf-8",
    )
    for name, table in (tables or {}).items():
        table.to_csv(artifact_dir / f"{name}.csv", index=False)
        written.append(f"{name}.csv")
    if fits is not None:
        joblib.dump(fits, artifact_dir / FITS_FILE)
        written.append(FITS_FILE)
    if replicates is not None:
        replicates.to_parquet(artifact_dir / REPLICATES_FILE, index=False)
        written.append(REPLICATES_FILE)

    # Figures and reports written earlier into the same directory are listed too.
    present = {p.name for p in artifact_dir.iterdir() if p.is_file()}
    manifest = manifest.model_copy(update={"files": sorted(present | set(written))})
    (artifact_dir / "manifest.json").write_text(
        manifest.model_dump_json(indent=2),
        encoding="utf-8",
    )
    return artifact_dir


def load_artifact(path: str | Path) -> ArtifactBundle:
    artifact_dir = Path(path)
    missing = [name for name in REQUIRED_FILES if not (artifact_dir / name).exists()]
    if missing:
        raise ClonesurvArtifactError(
            f"Artifact is missing required file(s): {', '.join(missing)}"
        )

    try:
        manifest = Manifest.model_validate_json(
            (artifact_dir / "manifest.json").read_text(encoding="utf-8")
        )
        run_config = load_run_config(
            artifact_dir / "run_config.yaml", resolve_data_path=False
        )
        metrics = json.loads((artifact_dir / "metrics.json").read_text(encoding="utf-8"))
    except Exception as exc:
        raise ClonesurvArtifactError(f"Failed to load artifact from {artifact_dir}") from exc
    if not isinstance(metrics, dict):
        raise ClonesurvArtifactError("metrics.json must deserialize to an object.")

    tables = {
        csv_path.stem: pd.read_csv(csv_path) for csv_path in sorted(artifact_dir.glob("*.csv"))
    }
    fits_path = artifact_dir / FITS_FILE
    replicates_path = artifact_dir / REPLICATES_FILE
    return ArtifactBundle(
        path=artifact_dir,
        run_config=run_config,
        manifest=manifest,
        metrics=metrics,
        tables=tables,
        fits=joblib.load(fits_path) if fits_path.exists() else None,
        replicates=pd.read_parquet(replicates_path) if replicates_path.exists() else None,
    )
