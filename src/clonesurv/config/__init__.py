"""Config package exports."""

from __future__ import annotations

from importlib import import_module
from typing import Any

__all__ = [
    "DataConfig",
    "ExportConfig",
    "ModelConfig",
    "ReportConfig",
    "RunConfig",
    "SimulationConfig",
    "SurvivalConfig",
    "TaskConfig",
    "load_run_config",
    "save_run_config",
]


def __getattr__(name: str) -> Any:
    if name in {"load_run_config", "save_run_config"}:
        return getattr(import_module("clonesurv.config.io"), name)
    if name in {
        "DataConfig",
        "ExportConfig",
        "ModelConfig",
        "ReportConfig",
        "RunConfig",
        "SimulationConfig",
        "SurvivalConfig",
        "TaskConfig",
    }:
        return getattr(import_module("clonesurv.config.models"), name)
    raise AttributeError(f"module 'clonesurv.config' has no attribute '{name}'")
