"""RunConfig models and validation."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

TaskType = Literal["analysis", "simulation"]
ModelType = Literal[
    "cox",
    "cox_cluster",
    "cox_strata",
    "weibull",
    "pwe_poisson",
    "pwe_gee",
    "discrete_cloglog",
    "mixed_logit",
    "bayes_logit",
]
TiesMethod = Literal["breslow", "efron"]
Assignment = Literal["within", "between"]
OnError = Literal["raise", "record"]

_PHREG_MODELS = {"cox", "cox_cluster", "cox_strata"}
_INTERVAL_MODELS = {"pwe_poisson", "pwe_gee", "discrete_cloglog", "mixed_logit", "bayes_logit"}
_ROBUST_MODELS = {"pwe_poisson", "discrete_cloglog"}
_PRIOR_MODELS = {"mixed_logit", "bayes_logit"}
GROUP_REQUIRED_MODELS = {"cox_cluster", "cox_strata", "pwe_gee", "mixed_logit", "bayes_logit"}


def _check_breakpoints(values: list[float], label: str) -> None:
    if not values:
        raise ValueError(f"{label} must not be empty when set")
    if any(v <= 0 for v in values):
        raise ValueError(f"{label} must contain only positive values")
    if any(b <= a for a, b in zip(values, values[1:])):
        raise ValueError(f"{label} must be strictly increasing")


class TaskConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    type: TaskType


class DataConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    path: str | None = None
    time_col: str = "time"
    event_col: str = "status"
    group_col: str | None = "clone"
    treatment_cols: list[str] = Field(default_factory=lambda: ["treatment"])
    reference_levels: dict[str, str] = Field(default_factory=dict)
    interaction: bool = False

    @model_validator(mode="after")
    def _validate_columns(self) -> "DataConfig":
        if not (1 <= len(self.treatment_cols) <= 2):
            raise ValueError("data.treatment_cols must contain one or two column names")
        if len(set(self.treatment_cols)) != len(self.treatment_cols):
            raise ValueError("data.treatment_cols must not contain duplicates")
        reserved = [self.time_col, self.event_col]
        if self.group_col is not None:
            reserved.append(self.group_col)
        if len(set(reserved)) != len(reserved):
            raise ValueError("data.time_col, data.event_col and data.group_col must differ")
        overlap = sorted(set(self.treatment_cols) & set(reserved))
        if overlap:
            raise ValueError(
                f"data.treatment_cols overlaps time/event/group columns: {overlap}"
            )
        unknown = sorted(set(self.reference_levels) - set(self.treatment_cols))
        if unknown:
            raise ValueError(
                f"data.reference_levels has keys that are not treatment columns: {unknown}"
            )
        if self.interaction and len(self.treatment_cols) != 2:
            raise ValueError("data.interaction requires exactly two treatment columns")
        return self


class ModelConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    type: ModelType
    label: str | None = None
    ties: TiesMethod = "breslow"
    robust: bool = True
    n_intervals: int | None = None
    breakpoints: list[float] | None = None
    prior_sd: float = 5.0
    vc_prior_sd: float = 1.0

    @property
    def resolved_label(self) -> str:
        return self.label or self.type

    @model_validator(mode="after")
    def _validate_model_fields(self) -> "ModelConfig":
        if self.label is not None and not self.label.strip():
            raise ValueError("models[].label must be a non-empty string when set")
        if self.ties != "breslow" and self.type not in _PHREG_MODELS:
            raise ValueError(
                f"models[].ties can be customized only for Cox models, got type='{self.type}'"
            )
        if not self.robust and self.type not in _ROBUST_MODELS:
            raise ValueError(
                "models[].robust can be customized only for "
                f"{sorted(_ROBUST_MODELS)}, got type='{self.type}'"
            )
        if self.type not in _INTERVAL_MODELS:
            if self.n_intervals is not None or self.breakpoints is not None:
                raise ValueError(
                    "models[].n_intervals/breakpoints can be set only for interval models "
                    f"{sorted(_INTERVAL_MODELS)}"
                )
        if self.n_intervals is not None and self.n_intervals < 1:
            raise ValueError("models[].n_intervals must be >= 1")
        if self.breakpoints is not None:
            _check_breakpoints(self.breakpoints, "models[].breakpoints")
        if self.type in _PRIOR_MODELS:
            if self.prior_sd <= 0:
                raise ValueError("models[].prior_sd must be > 0")
            if self.vc_prior_sd <= 0:
                raise ValueError("models[].vc_prior_sd must be > 0")
        elif self.prior_sd != 5.0 or self.vc_prior_sd != 1.0:
            raise ValueError(
                "models[].prior_sd/vc_prior_sd can be customized only for "
                f"{sorted(_PRIOR_MODELS)}"
            )
        return self


def _default_models() -> list[ModelConfig]:
    return [ModelConfig(type="cox"), ModelConfig(type="cox_cluster")]


class SurvivalConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    alpha: float = 0.05
    n_intervals: int = 6
    breakpoints: list[float] | None = None
    km_by: list[str] | None = None
    stratified_logrank: bool = True

    @model_validator(mode="after")
    def _validate_survival_fields(self) -> "SurvivalConfig":
        if not (0.0 < self.alpha < 1.0):
            raise ValueError("survival.alpha must satisfy 0 < alpha < 1")
        if self.n_intervals < 1:
            raise ValueError("survival.n_intervals must be >= 1")
        if self.breakpoints is not None:
            _check_breakpoints(self.breakpoints, "survival.breakpoints")
        if self.km_by is not None and len(self.km_by) == 0:
            raise ValueError("survival.km_by must not be empty when set")
        return self


class SimulationConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    n_reps: int = 200
    seed: int = 42
    n_jobs: int = 1
    n_clones: int = 10
    n_per_cell: int = 10
    levels: list[str] = Field(default_factory=lambda: ["control", "treated"])
    assignment: Assignment = "within"
    log_hr: float = 0.5
    frailty_sd: float = 0.5
    weibull_shape: float = 1.5
    weibull_scale: float = 5.0
    follow_up: float = 7.0
    censor_rate: float = 0.0
    observation_interval: float | None = None
    on_error: OnError = "raise"

    @model_validator(mode="after")
    def _validate_simulation_fields(self) -> "SimulationConfig":
        if self.n_reps < 1:
            raise ValueError("simulation.n_reps must be >= 1")
        if self.n_jobs == 0:
            raise ValueError("simulation.n_jobs must be non-zero (use -1 for all cores)")
        if self.n_clones < 2:
            raise ValueError("simulation.n_clones must be >= 2")
        if self.n_per_cell < 1:
            raise ValueError("simulation.n_per_cell must be >= 1")
        if len(self.levels) < 2:
            raise ValueError("simulation.levels must contain at least two treatment levels")
        if len(set(self.levels)) != len(self.levels):
            raise ValueError("simulation.levels must not contain duplicates")
        if self.assignment == "between" and self.n_clones < len(self.levels):
            raise ValueError(
                "simulation.n_clones must be >= len(simulation.levels) when "
                "simulation.assignment='between'"
            )
        if self.frailty_sd < 0:
            raise ValueError("simulation.frailty_sd must be >= 0")
        if self.weibull_shape <= 0 or self.weibull_scale <= 0:
            raise ValueError("simulation.weibull_shape and weibull_scale must be > 0")
        if self.follow_up <= 0:
            raise ValueError("simulation.follow_up must be > 0")
        if self.censor_rate < 0:
            raise ValueError("simulation.censor_rate must be >= 0")
        if self.observation_interval is not None:
            if self.observation_interval <= 0:
                raise ValueError("simulation.observation_interval must be > 0 when set")
            if self.observation_interval > self.follow_up:
                raise ValueError(
                    "simulation.observation_interval must not exceed simulation.follow_up"
                )
        return self


class ReportConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    enabled: bool = True
    title: str | None = None


class ExportConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    artifact_dir: str = "artifacts"
    save_figures: bool = True


class RunConfig(BaseModel):
    """Single shared entrypoint configuration for analysis and simulation runs."""

    model_config = ConfigDict(extra="forbid")
    config_version: int
    task: TaskConfig
    data: DataConfig = Field(default_factory=DataConfig)
    models: list[ModelConfig] = Field(default_factory=_default_models)
    survival: SurvivalConfig = Field(default_factory=SurvivalConfig)
    simulation: SimulationConfig = Field(default_factory=SimulationConfig)
    report: ReportConfig = Field(default_factory=ReportConfig)
    export: ExportConfig = Field(default_factory=ExportConfig)

    @model_validator(mode="after")
    def _validate_cross_fields(self) -> "RunConfig":
        if self.config_version < 1:
            raise ValueError("config_version must be >= 1")

        if not self.models:
            raise ValueError("models must not be empty")
        labels = [m.resolved_label for m in self.models]
        duplicated = sorted({label for label in labels if labels.count(label) > 1})
        if duplicated:
            raise ValueError(
                f"models[].label must be unique, duplicated: {duplicated}. "
                "Set an explicit label when fitting the same model type twice."
            )

        if self.data.group_col is None:
            needs_group = sorted(
                {m.type for m in self.models if m.type in GROUP_REQUIRED_MODELS}
            )
            if needs_group:
                raise ValueError(
                    f"data.group_col is required for model types {needs_group}"
                )
            if self.survival.stratified_logrank:
                raise ValueError(
                    "survival.stratified_logrank requires data.group_col; "
                    "set it to false for data without clones"
                )

        if self.survival.km_by is not None:
            allowed = set(self.data.treatment_cols)
            if self.data.group_col is not None:
                allowed.add(self.data.group_col)
            invalid = sorted(set(self.survival.km_by) - allowed)
            if invalid:
                raise ValueError(
                    f"survival.km_by contains unknown columns: {invalid}. "
                    f"Allowed: {sorted(allowed)}"
                )

        if self.task.type == "analysis":
            # Compared with defaults so dumped configs load back unchanged.
            if self.simulation != SimulationConfig():
                raise ValueError(
                    "simulation settings can only be customized when task.type='simulation'"
                )
        else:
            if len(self.data.treatment_cols) != 1:
                raise ValueError(
                    "simulation task supports exactly one treatment column"
                )
            if self.data.group_col is None:
                raise ValueError("data.group_col is required when task.type='simulation'")
            if self.data.reference_levels:
                raise ValueError(
                    "data.reference_levels cannot be set when task.type='simulation'; "
                    "the first entry of simulation.levels is the reference"
                )
            if self.data.path is not None:
                raise ValueError(
                    "data.path cannot be set when task.type='simulation'; "
                    "datasets are generated"
                )
            if self.simulation.assignment == "between" and any(
                m.type == "cox_strata" for m in self.models
            ):
                raise ValueError(
                    "models type 'cox_strata' cannot estimate a treatment effect when "
                    "simulation.assignment='between' (treatment is constant within clone)"
                )

        return self
