import pytest

from operations_engine.config import EngineConfig


def test_defaults():
    config = EngineConfig()
    assert config.anomaly.spike_multiplier == 2.0
    assert config.anomaly.backlog_days == 90
    assert config.anomaly.max_anomalies == 8
    assert config.forecast.horizon == 3
    assert config.scoring.weights["overdue_count"] == 3.0


def test_environment_overrides():
    config = EngineConfig.from_env(
        {
            "OPS_ANOMALY_MAX_ANOMALIES": "5",
            "OPS_ANOMALY_SPIKE_MULTIPLIER": "2.5",
            "OPS_ANOMALY_BACKLOG_PRIORITIES": "urgent, high, normal",
            "OPS_FORECAST_MODE": "prediction",
            "OPS_SCORING_WEIGHTS": "ignored",
        }
    )
    assert config.anomaly.max_anomalies == 5
    assert config.anomaly.spike_multiplier == 2.5
    assert config.anomaly.backlog_priorities == ("urgent", "high", "normal")
    assert config.forecast.mode == "prediction"
    assert config.scoring.weights["open_count"] == 2.0


def test_malformed_override_raises():
    with pytest.raises(ValueError):
        EngineConfig.from_env({"OPS_ANOMALY_BACKLOG_DAYS": "ninety"})
