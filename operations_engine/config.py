"""Engine configuration.

Thresholds for each component live in a small dataclass with defaults.
``EngineConfig.from_env`` applies optional ``OPS_*`` environment overrides.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields


def _default_weights() -> dict[str, float]:
    return {"open_count": 2.0, "overdue_count": 3.0, "duplicate_count": 1.0, "ghost_count": 1.0}


@dataclass
class AnomalyConfig:
    """Rule thresholds for the anomaly detector."""

    spike_multiplier: float = 2.0
    system_spike_multiplier: float = 1.5
    cost_spike_multiplier: float = 2.0
    min_volume_baseline: float = 0.0
    min_cost_baseline: float = 100.0
    completion_drop_ratio: float = 0.85
    entity_completion_drop_ratio: float = 0.8
    min_completion_baseline: float = 0.5
    baseline_buckets: int = 3
    backlog_days: int = 90
    backlog_priorities: tuple[str, ...] = ("urgent", "high")
    backlog_volume_threshold: int = 50
    duration_sigma: float = 2.0
    recurrence_buckets: int = 3
    recurrence_min_count: int = 3
    max_anomalies: int = 8


@dataclass
class ForecastConfig:
    window: int = 6
    horizon: int = 3
    band_ratio: float = 0.2
    mode: str = "ratio"


@dataclass
class ScoringConfig:
    weights: dict[str, float] = field(default_factory=_default_weights)
    baseline: float = 100.0
    stale_days: int = 90


@dataclass
class EngineConfig:
    """Root configuration handed to the report builder."""

    anomaly: AnomalyConfig = field(default_factory=AnomalyConfig)
    forecast: ForecastConfig = field(default_factory=ForecastConfig)
    scoring: ScoringConfig = field(default_factory=ScoringConfig)

    @classmethod
    def from_env(cls, environ: dict | None = None) -> EngineConfig:
        """Build configuration, overriding defaults from ``OPS_<SECTION>_<FIELD>`` variables.

        Example: ``OPS_ANOMALY_MAX_ANOMALIES=5``, ``OPS_FORECAST_MODE=prediction``.
        Tuple fields take comma-separated values. Weights are not
        overridable from the environment.

        Raises:
            ValueError: If a variable cannot be parsed to the field's type
        """
        env = os.environ if environ is None else environ
        return cls(
            anomaly=_apply_overrides(AnomalyConfig(), "OPS_ANOMALY_", env),
            forecast=_apply_overrides(ForecastConfig(), "OPS_FORECAST_", env),
            scoring=_apply_overrides(ScoringConfig(), "OPS_SCORING_", env),
        )


def _apply_overrides(section, prefix: str, env) -> object:
    for item in fields(section):
        raw = env.get(prefix + item.name.upper())
        if raw is None:
            continue
        current = getattr(section, item.name)
        if isinstance(current, dict):
            continue
        setattr(section, item.name, _coerce(raw, current, prefix + item.name.upper()))
    return section


def _coerce(raw: str, current, name: str):
    try:
        if isinstance(current, bool):
            return raw.strip().lower() in ("1", "true", "yes")
        if isinstance(current, int):
            return int(raw)
        if isinstance(current, float):
            return float(raw)
        if isinstance(current, tuple):
            return tuple(part.strip() for part in raw.split(",") if part.strip())
    except ValueError as exc:
        raise ValueError(f"{name}: cannot parse {raw!r}") from exc
    return raw.strip()
