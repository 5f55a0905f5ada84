"""Descriptive statistics over a sequence of numbers."""

from __future__ import annotations

import math
from collections.abc import Sequence

_PERCENTILES = {
    "p1": 0.01,
    "p5": 0.05,
    "p10": 0.1,
    "p20": 0.2,
    "p30": 0.3,
    "p40": 0.4,
    "p50": 0.5,
    "p60": 0.6,
    "p70": 0.7,
    "p80": 0.8,
    "p90": 0.9,
    "p95": 0.95,
    "p99": 0.99,
    "p999": 0.999,
}


def percentile(values: Sequence[float], p: float) -> float:
    """Return the *p* quantile of *values* (0 < p < 1), linearly interpolated."""
    if isinstance(p, bool) or not isinstance(p, int | float) or p <= 0 or p >= 1.0:
        raise ValueError("Percentile must be a number between 0 and 1")
    if not values:
        raise ValueError("percentile() requires at least one value")
    ordered = sorted(values)
    index = p * (len(ordered) - 1)
    lower = math.floor(index)
    upper = math.ceil(index)
    weight = index - lower
    return ordered[lower] * (1 - weight) + ordered[upper] * weight


def std_dev(values: Sequence[float], avg: float) -> float:
    """Population standard deviation of *values* around *avg*."""
    return math.sqrt(sum((v - avg) ** 2 for v in values) / len(values))


def stats(values: Sequence[float]) -> dict[str, float]:
    """Summarise *values*: count, min, max, stdDev, sum, avg and p1…p999.

    Raises:
        ValueError: if *values* is empty.
    """
    if not values:
        raise ValueError("stats() requires at least one value")
    total = sum(values)
    avg = total / len(values)
    summary: dict[str, float] = {
        "count": len(values),
        "min": min(values),
        "max": max(values),
        "stdDev": std_dev(values, avg),
        "sum": total,
        "avg": avg,
    }
    for name, p in _PERCENTILES.items():
        summary[name] = percentile(values, p)
    return summary
