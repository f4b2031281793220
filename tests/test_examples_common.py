from __future__ import annotations

import json
from pathlib import Path
from types import SimpleNamespace

import numpy as np
import pandas as pd
import yaml

from examples import common


def test_make_timestamp_dir_uses_suffix_when_name_collides(tmp_path, monkeypatch) -> None:
    class _Now:
        @staticmethod
        def strftime(_: str) -> str:
            return "20260210_010203"

    class _DatetimeMock:
        @staticmethod
        def now(_: object) -> _Now:
            return _Now()

    monkeypatch.setattr(common, "datetime", _DatetimeMock)
    (tmp_path / "20260210_010203").mkdir()

    created = common.make_timestamp_dir(tmp_path)

    assert created.name == "20260210_010203_01"
    assert created.exists()


def test_to_jsonable_nulls_non_finite_estimates() -> None:
    out = common.to_jsonable(
        {
            "p": Path("abc/def.txt"),
            "arr": np.array([3, 4]),
            1: (np.float64(0.5), np.nan, np.float64(np.inf)),
            "flag": np.bool_(True),
            "table": pd.DataFrame({"model": ["cox"], "estimate": [np.nan]}),
        }
    )

    assert out["p"].endswith("def.txt")
    assert out["arr"] == [3, 4]
    assert out["1"] == [0.5, None, None]
    assert out["flag"] is True
    assert out["table"] == [{"model": "cox", "estimate": None}]


def test_write_run_outputs_writes_config_metrics_and_tables(tmp_path) -> None:
    run_dir = tmp_path / "run"
    written = common.write_run_outputs(
        run_dir,
        {"task": {"type": "analysis"}, "models": [{"type": "cox"}]},
        {"models": {"cox": {"p_value": float("nan")}}},
        {"estimates": pd.DataFrame({"model": ["cox"], "estimate": [0.4]})},
    )

    assert [p.name for p in written] == ["used_config.yaml", "metrics.json", "estimates.csv"]
    config = yaml.safe_load((run_dir / "used_config.yaml").read_text(encoding="utf-8"))
    assert list(config) == ["task", "models"]
    metrics = json.loads((run_dir / "metrics.json").read_text(encoding="utf-8"))
    assert metrics == {"models": {"cox": {"p_value": None}}}
    assert pd.read_csv(run_dir / "estimates.csv")["estimate"].tolist() == [0.4]


def test_format_estimate_line_labels_odds_ratios() -> None:
    row = SimpleNamespace(
        model="mixed_logit",
        scale="log_or",
        hazard_ratio=1.5,
        hr_low=1.1,
        hr_high=2.0,
        converged=np.bool_(True),
    )
    assert common.format_estimate_line(row) == (
        "     mixed_logit  OR=1.500 (1.100, 2.000)  converged=True"
    )


def test_format_summary_line_reports_failures() -> None:
    row = SimpleNamespace(
        model="cox", bias=0.01, se_ratio=0.8, coverage=0.9, rejection_rate=0.7, n_failed=2
    )
    line = common.format_summary_line(row)
    assert "bias=+0.010" in line
    assert line.endswith("failed=2")


def test_format_error_includes_hint() -> None:
    text = common.format_error(ValueError("boom"), "retry")
    assert text == "boom\nHint: retry"


def test_default_data_path_points_into_examples() -> None:
    assert common.DEFAULT_DATA_PATH.parent.parent == common.EXAMPLES_DIR
    assert common.DEFAULT_DATA_PATH.suffix == ".csv"
