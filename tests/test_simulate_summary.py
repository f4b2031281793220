from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from clonesurv.api import ClonesurvValidationError
from clonesurv.simulate import SUMMARY_COLUMNS, summarize_simulation


def _rows(model: str, estimates: list[float], se: float = 0.2) -> pd.DataFrame:
    est = np.asarray(estimates, dtype=float)
    return pd.DataFrame(
        {
            "replicate": np.arange(1, len(est) + 1),
            "model": model,
            "model_type": model,
            "term": "treatment[treated]",
            "scale": "log_hr",
            "estimate": est,
            "std_error": se,
            "conf_low": est - 1.96 * se,
            "conf_high": est + 1.96 * se,
            "converged": True,
            "error": "",
        }
    )


def test_summary_statistics_match_hand_values() -> None:
    replicates = _rows("cox", [0.4, 0.6, 0.8, 1.0])

    summary = summarize_simulation(replicates, truth=0.5)

    assert list(summary.columns) == SUMMARY_COLUMNS
    row = summary.iloc[0]
    assert row["n_reps"] == 4
    assert row["n_failed"] == 0
    assert row["mean_estimate"] == pytest.approx(0.7)
    assert row["bias"] == pytest.approx(0.2)
    assert row["relative_bias"] == pytest.approx(0.4)
    empirical = np.std([0.4, 0.6, 0.8, 1.0], ddof=1)
    assert row["empirical_se"] == pytest.approx(empirical)
    assert row["mcse_bias"] == pytest.approx(empirical / 2.0)
    assert row["mean_model_se"] == pytest.approx(0.2)
    assert row["se_ratio"] == pytest.approx(0.2 / empirical)
    errors = np.array([0.4, 0.6, 0.8, 1.0]) - 0.5
    assert row["rmse"] == pytest.approx(np.sqrt(np.mean(errors**2)))
    # Intervals are +/- 0.392: 0.4, 0.6 and 0.8 cover 0.5, 1.0 does not.
    assert row["coverage"] == pytest.approx(0.75)
    assert row["mcse_coverage"] == pytest.approx(np.sqrt(0.75 * 0.25 / 4))
    # Every interval lies above zero.
    assert row["rejection_rate"] == pytest.approx(1.0)
    assert row["nominal_coverage"] == pytest.approx(0.95)


def test_summary_keeps_model_order_and_uses_truth_mapping() -> None:
    replicates = pd.concat(
        [_rows("mixed_logit", [0.1, 0.2]), _rows("cox", [0.3, 0.5])], ignore_index=True
    )

    summary = summarize_simulation(replicates, truth={"treatment[treated]": 0.0}, alpha=0.1)

    assert summary["model"].tolist() == ["mixed_logit", "cox"]
    assert summary["truth"].tolist() == [0.0, 0.0]
    assert np.isnan(summary["relative_bias"]).all()
    assert summary["nominal_coverage"].tolist() == [0.9, 0.9]


def test_failed_and_nonconverged_rows_are_counted() -> None:
    replicates = _rows("cox", [0.4, 0.6, np.nan])
    replicates.loc[2, "error"] = "Model 'cox' failed to fit"
    replicates.loc[1, "converged"] = False

    row = summarize_simulation(replicates, truth=0.5).iloc[0]

    assert row["n_reps"] == 3
    assert row["n_failed"] == 1
    assert row["n_nonconverged"] == 1
    assert row["mean_estimate"] == pytest.approx(0.5)


def test_all_failed_rows_give_nan_statistics() -> None:
    replicates = _rows("cox", [np.nan, np.nan])

    row = summarize_simulation(replicates, truth=0.5).iloc[0]

    assert row["n_failed"] == 2
    assert np.isnan(row["bias"])
    assert np.isnan(row["coverage"])


def test_single_usable_replicate_has_no_empirical_se() -> None:
    row = summarize_simulation(_rows("cox", [0.4]), truth=0.5).iloc[0]
    assert np.isnan(row["empirical_se"])
    assert np.isnan(row["se_ratio"])
    assert row["coverage"] == 1.0


def test_summary_rejects_bad_input() -> None:
    with pytest.raises(ClonesurvValidationError, match="missing columns"):
        summarize_simulation(pd.DataFrame({"model": ["cox"]}), truth=0.5)
    with pytest.raises(ClonesurvValidationError, match="empty"):
        summarize_simulation(_rows("cox", []), truth=0.5)
