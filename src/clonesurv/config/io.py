"""Read and write RunConfig YAML files."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from clonesurv.api.exceptions import ClonesurvValidationError
from clonesurv.config.models import RunConfig


def _read_mapping(config_path: Path) -> dict[str, Any]:
    try:
        text = config_path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise ClonesurvValidationError(f"Config file does not exist: {config_path}") from exc
    try:
        raw = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ClonesurvValidationError(f"Config YAML parse error in {config_path}: {exc}") from exc
    if not isinstance(raw, dict):
        raise ClonesurvValidationError(
            f"Config {config_path} must deserialize to a mapping object."
        )
    return raw


def load_run_config(path: str | Path, *, resolve_data_path: bool = True) -> RunConfig:
    """Load and validate a RunConfig.

    A relative ``data.path`` is read relative to the config file's directory,
    so an assay CSV can ship next to its config. Pass
    ``resolve_data_path=False`` to keep paths exactly as written.

    Raises
    ------
    ClonesurvValidationError
        When the file is missing, is not a YAML mapping or fails validation.
    """
    config_path = Path(path)
    raw = _read_mapping(config_path)
    data = raw.get("data")
    if resolve_data_path and isinstance(data, dict) and isinstance(data.get("path"), str):
        data_path = Path(data["path"])
        if not data_path.is_absolute():
            raw["data"] = {**data, "path": str(config_path.parent / data_path)}
    try:
        return RunConfig.model_validate(raw)
    except ValidationError as exc:
        raise ClonesurvValidationError(f"Invalid RunConfig: {exc}") from exc


def save_run_config(config: RunConfig, path: str | Path) -> None:
    """Write ``config`` as YAML, leaving out unset optional fields."""
    config_path = Path(path)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    payload: dict[str, Any] = config.model_dump(mode="json", exclude_none=True)
    header = f"# clonesurv {config.task.type} run, {len(config.models)} model(s)\n"
    config_path.write_text(
        header + yaml.safe_dump(payload, sort_keys=False, allow_unicode=True),
        encoding="utf-8",
    )
