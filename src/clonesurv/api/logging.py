"""Structured logging helpers.

Every event is one JSON object carrying ``run_id``, ``artifact_path`` and
``task_type``. Non-finite floats (NaN estimates of failed replicates, missing
Bayesian p-values) are logged as ``null``.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from typing import Any

import numpy as np


def _json_value(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k): _json_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_value(v) for v in value]
    if isinstance(value, (np.integer, np.bool_)):
        return value.item()
    if isinstance(value, (float, np.floating)):
        value = float(value)
        return value if math.isfinite(value) else None
    return value


def build_log_payload(
    run_id: str,
    artifact_path: str | None,
    task_type: str,
    **extra: Any,
) -> dict[str, Any]:
    """Build a structured payload: mandatory keys first, then JSON-safe extras.

    Parameters
    ----------
    run_id
        Run identifier.
    artifact_path
        Run directory linked to the event, if it exists yet.
    task_type
        ``"analysis"`` or ``"simulation"``.
    **extra
        Event fields such as the model label or replicate progress.
    """
    payload: dict[str, Any] = {
        "run_id": run_id,
        "artifact_path": artifact_path,
        "task_type": task_type,
    }
    payload.update({key: _json_value(value) for key, value in extra.items()})
    return payload


def log_event(
    logger: logging.Logger,
    level: int,
    message: str,
    run_id: str,
    artifact_path: str | None,
    task_type: str,
    **extra: Any,
) -> dict[str, Any]:
    """Emit one structured log event and return its payload.

    The JSON payload is the log message; the mandatory keys are also attached
    to the ``LogRecord`` so handlers can filter on them.
    """
    payload = build_log_payload(
        run_id=run_id,
        artifact_path=artifact_path,
        task_type=task_type,
        **extra,
    )
    logger.log(
        level,
        json.dumps(payload, sort_keys=True, default=str),
        extra={
            "run_id": payload["run_id"],
            "artifact_path": payload["artifact_path"],
            "task_type": payload["task_type"],
            "payload": payload,
            "event_message": message,
        },
    )
    return payload


@dataclass(slots=True)
class RunLog:
    """Logger bound to one run, so call sites only pass the event fields."""

    logger: logging.Logger
    run_id: str
    artifact_path: str | None
    task_type: str

    def event(self, level: int, message: str, **extra: Any) -> dict[str, Any]:
        return log_event(
            self.logger,
            level,
            message,
            run_id=self.run_id,
            artifact_path=self.artifact_path,
            task_type=self.task_type,
            **extra,
        )
