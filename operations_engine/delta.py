"""Period-over-period deltas."""

from __future__ import annotations

from datetime import timedelta

from operations_engine.schema import Bucket, Delta, Direction, Window

FLAT_THRESHOLD_PCT = 3.0


def compute_delta(current: float, prior: float, invert: bool = False) -> Delta:
    """Compare a current value against its prior-period counterpart.

    ``invert`` marks lower-is-better metrics (resolution time, overdue
    count) so that a decrease reads as improving. A zero prior leaves the
    percentage undefined and reports ``flat`` with ``insufficient_baseline``.
    """

    current = float(current)
    prior = float(prior)
    value_delta = current - prior

    if prior == 0:
        return Delta(
            current=current,
            prior=prior,
            value_delta=value_delta,
            percent_delta=None,
            direction=Direction.FLAT,
            insufficient_baseline=True,
        )

    percent_delta = (value_delta / abs(prior)) * 100.0
    if abs(percent_delta) < FLAT_THRESHOLD_PCT:
        direction = Direction.FLAT
    elif (percent_delta < 0) == invert:
        direction = Direction.IMPROVING
    else:
        direction = Direction.DECLINING

    return Delta(
        current=current,
        prior=prior,
        value_delta=value_delta,
        percent_delta=percent_delta,
        direction=direction,
    )


def prior_window(window: Window) -> Window:
    """Return the window of identical duration ending the day before ``window``."""

    prior_end = window.start - timedelta(days=1)
    return Window(start=prior_end - (window.end - window.start), end=prior_end)


def compare_buckets(current: list[Bucket], prior: list[Bucket], metric: str = "count", invert: bool = False) -> Delta:
    """Delta of ``metric`` summed over two equal-length bucket sets.

    Raises:
        ValueError: If the bucket sets differ in length
    """

    if len(current) != len(prior):
        raise ValueError(f"Bucket sets differ in length: {len(current)} current vs {len(prior)} prior")

    return compute_delta(
        sum(bucket.metrics.get(metric, 0.0) for bucket in current),
        sum(bucket.metrics.get(metric, 0.0) for bucket in prior),
        invert=invert,
    )
