from __future__ import annotations

import json
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from clonesurv.api import ClonesurvArtifactError
from clonesurv.artifact import build_manifest, load_artifact, save_artifact
from clonesurv.artifact.manifest import TRACKED_DEPENDENCIES, config_hash, frame_hash
from clonesurv.config import ModelConfig, RunConfig
from clonesurv.survival import ModelFit
from clonesurv.survival.base import tidy_coefficients


def _config(config_payload) -> RunConfig:
    return RunConfig.model_validate(config_payload("analysis"))


def _fit() -> ModelFit:
    coefficients = tidy_coefficients(
        ModelConfig(type="cox"), ["treatment[treated]"], np.array([0.3]), np.array([0.1]), 0.05
    )
    return ModelFit(
        model="cox",
        model_type="cox",
        coefficients=coefficients,
        n_obs=20,
        n_events=12,
        n_groups=4,
        converged=True,
        extras={"ties": "breslow"},
    )


def test_build_manifest_records_config_and_dependencies(config_payload) -> None:
    config = _config(config_payload)
    manifest = build_manifest(config, run_id="abc", project_version="0.1.0")

    assert manifest.run_id == "abc"
    assert manifest.task_type == "analysis"
    assert manifest.config_hash == config_hash(config)
    assert sorted(manifest.dependencies) == sorted(TRACKED_DEPENDENCIES)
    assert manifest.files == []
    assert [(m.label, m.type) for m in manifest.models] == [
        ("cox", "cox"),
        ("cox_cluster", "cox_cluster"),
    ]
    assert manifest.alpha == 0.05
    assert manifest.simulation is None
    assert manifest.data is None


def test_build_manifest_records_analysed_data(config_payload, survival_frame) -> None:
    frame = survival_frame(n_clones=3)
    manifest = build_manifest(_config(config_payload), "abc", "0.1.0", frame=frame)

    assert manifest.data.n_subjects == len(frame)
    assert manifest.data.n_events == int(frame["status"].sum())
    assert manifest.data.n_clones == 3
    assert manifest.data.sha256 == frame_hash(frame)


def test_build_manifest_records_simulation_seed(config_payload) -> None:
    config = RunConfig.model_validate(
        config_payload("simulation", simulation={"seed": 11, "assignment": "between"})
    )
    manifest = build_manifest(config, "abc", "0.1.0")

    assert manifest.simulation.seed == 11
    assert manifest.simulation.n_reps == 3
    assert manifest.simulation.assignment == "between"


def test_frame_hash_tracks_values_and_order(survival_frame) -> None:
    frame = survival_frame(n_clones=2)
    changed = frame.copy()
    changed.loc[0, "time"] = changed.loc[0, "time"] + 1.0

    assert frame_hash(frame) == frame_hash(frame.copy())
    assert frame_hash(frame) != frame_hash(changed)
    assert frame_hash(frame) != frame_hash(frame.iloc[::-1])


def test_config_hash_changes_with_settings(config_payload) -> None:
    base = _config(config_payload)
    other = RunConfig.model_validate(config_payload("analysis", survival={"alpha": 0.1}))
    assert config_hash(base) == config_hash(_config(config_payload))
    assert config_hash(base) != config_hash(other)


def test_save_and_load_artifact_roundtrip(tmp_path: Path, config_payload) -> None:
    config = _config(config_payload)
    manifest = build_manifest(config, run_id="run-1", project_version="0.1.0")
    (tmp_path / "report.html").write_text("<html></html>", encoding="utf-8")
    replicates = pd.DataFrame({"replicate": [1, 2], "estimate": [0.1, 0.2]})

    save_artifact(
        tmp_path,
        config,
        manifest,
        {"n_subjects": 20, "logrank_p": 0.01},
        tables={"estimates": _fit().coefficients},
        fits=[_fit()],
        replicates=replicates,
    )
    bundle = load_artifact(tmp_path)

    assert bundle.run_config == config
    assert bundle.metrics == {"n_subjects": 20, "logrank_p": 0.01}
    assert bundle.manifest.run_id == "run-1"
    assert bundle.manifest.files == sorted(
        [
            "estimates.csv",
            "fits.joblib",
            "manifest.json",
            "metrics.json",
            "replicates.parquet",
            "report.html",
            "run_config.yaml",
        ]
    )
    assert bundle.tables["estimates"]["model"].tolist() == ["cox"]
    assert bundle.fits[0].extras == {"ties": "breslow"}
    assert bundle.fits[0].coefficients["estimate"].iloc[0] == pytest.approx(0.3)
    pd.testing.assert_frame_equal(bundle.replicates, replicates)


def test_load_artifact_without_optional_files(tmp_path: Path, config_payload) -> None:
    config = _config(config_payload)
    save_artifact(tmp_path, config, build_manifest(config, "r", "0.1.0"), {})

    bundle = load_artifact(tmp_path)

    assert bundle.fits is None
    assert bundle.replicates is None
    assert bundle.tables == {}


def test_load_artifact_reports_missing_files(tmp_path: Path) -> None:
    (tmp_path / "metrics.json").write_text("{}", encoding="utf-8")
    with pytest.raises(ClonesurvArtifactError, match="manifest.json, run_config.yaml"):
        load_artifact(tmp_path)


def test_load_artifact_rejects_corrupt_metrics(tmp_path: Path, config_payload) -> None:
    config = _config(config_payload)
    save_artifact(tmp_path, config, build_manifest(config, "r", "0.1.0"), {})
    (tmp_path / "metrics.json").write_text(json.dumps([1, 2]), encoding="utf-8")

    with pytest.raises(ClonesurvArtifactError, match="must deserialize to an object"):
        load_artifact(tmp_path)
