"""Stable public API exports.

Attributes resolve lazily so importing lightweight submodules (for example
``clonesurv.api.exceptions``) does not pull statsmodels or plotly into memory.
"""

from __future__ import annotations

from importlib import import_module
from typing import Any

from clonesurv.api.exceptions import (
    ClonesurvArtifactError,
    ClonesurvError,
    ClonesurvModelError,
    ClonesurvNotImplementedError,
    ClonesurvValidationError,
)

__all__ = [
    "AnalysisResult",
    "ArtifactBundle",
    "ClonesurvArtifactError",
    "ClonesurvError",
    "ClonesurvModelError",
    "ClonesurvNotImplementedError",
    "ClonesurvValidationError",
    "SimulationStudyResult",
    "analyze",
    "load_artifact",
    "simulate_study",
]


def __getattr__(name: str) -> Any:
    if name in {"analyze", "simulate_study"}:
        return getattr(import_module("clonesurv.api.runner"), name)
    if name in {"AnalysisResult", "SimulationStudyResult"}:
        return getattr(import_module("clonesurv.api.types"), name)
    if name in {"ArtifactBundle", "load_artifact"}:
        return getattr(import_module("clonesurv.artifact.store"), name)
    raise AttributeError(f"module 'clonesurv.api' has no attribute '{name}'")
