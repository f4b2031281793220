from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from clonesurv.api import ClonesurvValidationError
from clonesurv.config.io import load_run_config, save_run_config
from clonesurv.config.models import RunConfig


def _run_config(tmp_path: Path) -> RunConfig:
    return RunConfig.model_validate(
        {
            "config_version": 1,
            "task": {"type": "analysis"},
            "data": {
                "path": str(tmp_path / "assay.csv"),
                "reference_levels": {"treatment": "control"},
            },
            "models": [{"type": "cox"}, {"type": "mixed_logit", "prior_sd": 3.0}],
            "survival": {"breakpoints": [1.0, 3.0], "km_by": ["clone"]},
            "export": {"artifact_dir": str(tmp_path / "artifacts")},
        }
    )


def test_save_then_load_run_config_roundtrip(tmp_path: Path) -> None:
    config = _run_config(tmp_path)
    path = tmp_path / "configs" / "run_config.yaml"
    save_run_config(config, path)
    loaded = load_run_config(path)
    assert loaded.model_dump(mode="json") == config.model_dump(mode="json")


def test_saved_simulation_config_loads_back(tmp_path: Path, config_payload) -> None:
    config = RunConfig.model_validate(config_payload("simulation"))
    path = tmp_path / "sim.yaml"
    save_run_config(config, path)
    assert load_run_config(path) == config


def test_save_run_config_omits_unset_optional_fields(tmp_path: Path, config_payload) -> None:
    path = tmp_path / "run.yaml"
    save_run_config(RunConfig.model_validate(config_payload("analysis")), path)
    payload = yaml.safe_load(path.read_text(encoding="utf-8"))
    assert "path" not in payload["data"]
    assert "label" not in payload["models"][0]


def test_load_run_config_rejects_non_mapping_yaml(tmp_path: Path) -> None:
    path = tmp_path / "list.yaml"
    path.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ClonesurvValidationError, match="mapping object"):
        load_run_config(path)


def test_load_run_config_raises_for_malformed_yaml(tmp_path: Path) -> None:
    path = tmp_path / "malformed.yaml"
    path.write_text("config_version: [1\n", encoding="utf-8")
    with pytest.raises(ClonesurvValidationError, match="parse error") as exc:
        load_run_config(path)
    assert isinstance(exc.value.__cause__, yaml.YAMLError)


def test_load_run_config_raises_for_missing_path(tmp_path: Path) -> None:
    with pytest.raises(ClonesurvValidationError, match="does not exist"):
        load_run_config(tmp_path / "missing.yaml")


def test_load_run_config_wraps_validation_errors(tmp_path: Path, config_payload) -> None:
    path = tmp_path / "bad.yaml"
    path.write_text(
        yaml.safe_dump(config_payload("analysis", survival={"alpha": 2.0})), encoding="utf-8"
    )
    with pytest.raises(ClonesurvValidationError, match="Invalid RunConfig"):
        load_run_config(path)


def test_load_run_config_resolves_relative_data_path(tmp_path: Path, config_payload) -> None:
    path = tmp_path / "configs" / "run.yaml"
    path.parent.mkdir()
    path.write_text(
        yaml.safe_dump(config_payload("analysis", data={"path": "data/assay.csv"})),
        encoding="utf-8",
    )

    resolved = load_run_config(path)
    verbatim = load_run_config(path, resolve_data_path=False)

    assert Path(resolved.data.path) == tmp_path / "configs" / "data" / "assay.csv"
    assert verbatim.data.path == "data/assay.csv"


def test_save_run_config_writes_header_comment(tmp_path: Path, config_payload) -> None:
    path = tmp_path / "run.yaml"
    save_run_config(RunConfig.model_validate(config_payload("simulation")), path)
    assert path.read_text(encoding="utf-8").splitlines()[0] == (
        "# clonesurv simulation run, 2 model(s)"
    )
