"""Short-horizon linear trend forecasting."""

from __future__ import annotations

import math
from typing import Optional, Sequence, Union

import numpy as np
from sklearn.linear_model import LinearRegression

from operations_engine.bucketing import complete_buckets
from operations_engine.schema import Bucket, ForecastPoint

MIN_POINTS = 3
# Two-sided 95% normal quantile for the prediction-interval mode.
_Z_95 = 1.96

SeriesItem = Union[float, tuple[str, float]]


def _split(series: Sequence[SeriesItem]) -> tuple[list[str], list[float]]:
    labels: list[str] = []
    values: list[float] = []
    for index, item in enumerate(series):
        if isinstance(item, tuple):
            label, value = item
        else:
            label, value = str(index), item
        labels.append(str(label))
        values.append(float(value))
    return labels, values


def _band(value: float, ratio: float) -> tuple[float, float]:
    return value * (1 + ratio), max(0.0, value * (1 - ratio))


def forecast(
    series: Sequence[SeriesItem],
    horizon: int = 3,
    window: int = 6,
    mode: str = "ratio",
    band_ratio: float = 0.2,
) -> list[ForecastPoint]:
    """Fit a least-squares line over the trailing ``window`` and project ``horizon`` periods.

    ``series`` holds values in period order, either bare numbers or
    ``(label, value)`` pairs. Fewer than three points yields ``[]``.

    The default ``ratio`` band is ``forecast * (1 +/- band_ratio)``, a fixed
    presentation band rather than a statistical interval. ``prediction``
    mode uses the OLS prediction interval under a normal approximation.
    Every forecast and bound is floored at zero.

    Raises:
        ValueError: On a negative horizon, a window under three points or an unknown mode
    """

    if horizon < 0:
        raise ValueError(f"horizon must be non-negative, got {horizon}")
    if window < MIN_POINTS:
        raise ValueError(f"window must cover at least {MIN_POINTS} periods, got {window}")
    if mode not in ("ratio", "prediction"):
        raise ValueError(f"Unknown forecast mode {mode!r}, expected 'ratio' or 'prediction'")

    labels, values = _split(series)
    labels, values = labels[-window:], values[-window:]
    n = len(values)
    if n < MIN_POINTS:
        return []

    x = np.arange(n, dtype=float).reshape(-1, 1)
    y = np.asarray(values, dtype=float)
    model = LinearRegression().fit(x, y)

    future_x = np.arange(n, n + horizon, dtype=float).reshape(-1, 1)
    fitted = model.predict(x)
    projected = model.predict(future_x) if horizon else np.empty(0)

    if mode == "prediction":
        spread = _prediction_spread(x.ravel(), y, fitted)
    else:
        spread = None

    points: list[ForecastPoint] = []
    for index, (label, actual, value) in enumerate(zip(labels, values, fitted)):
        points.append(_point(label, actual, float(value), index, spread, band_ratio))
    for step, value in enumerate(projected, start=1):
        points.append(_point(f"+{step}", None, float(value), n + step - 1, spread, band_ratio))
    return points


def _prediction_spread(x: np.ndarray, y: np.ndarray, fitted: np.ndarray):
    n = len(x)
    x_mean = float(x.mean())
    sxx = float(np.sum((x - x_mean) ** 2))
    dof = max(1, n - 2)
    residual_se = math.sqrt(float(np.sum((y - fitted) ** 2)) / dof)

    def spread(index: float) -> float:
        return _Z_95 * residual_se * math.sqrt(1 + 1 / n + (index - x_mean) ** 2 / sxx)

    return spread


def _point(label: str, actual: Optional[float], value: float, index: int, spread, band_ratio: float) -> ForecastPoint:
    value = max(0.0, value)
    if spread is None:
        upper, lower = _band(value, band_ratio)
    else:
        width = spread(index)
        upper, lower = value + width, max(0.0, value - width)
    return ForecastPoint(period_label=label, actual=actual, forecast=value, upper_bound=upper, lower_bound=lower)


def forecast_buckets(
    buckets: list[Bucket],
    metric: str = "value_sum",
    horizon: int = 3,
    window: int = 6,
    mode: str = "ratio",
    band_ratio: float = 0.2,
) -> list[ForecastPoint]:
    """Forecast a bucket metric, leaving out trailing partial buckets."""

    series = [(bucket.label, bucket.metrics.get(metric, 0.0)) for bucket in complete_buckets(buckets)]
    return forecast(series, horizon=horizon, window=window, mode=mode, band_ratio=band_ratio)
