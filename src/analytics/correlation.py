"""
Correlation coefficients with two-tailed significance testing.

  pearson_correlation         continuous × continuous
  point_biserial_correlation  binary × continuous (Pearson r over a 0/1 indicator)

Both share one t-test:

    t = r·√(n−2) / √(1−r²),   p = 2·(1 − F_t(|t|; n−2))

Insufficient data (n < 3, no variance, single-group binary) is not an
error: it yields the neutral result (r=0, p=1, strength/confidence "none").
Mismatched input lengths are a caller bug and raise ValueError.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence, Union

import numpy as np

from analytics.stats_primitives import mean, student_t_cdf, variance

MIN_CORRELATION_N = 3

# (lower bound on |r|, label), checked top-down
STRENGTH_THRESHOLDS = [
    (0.9, "very strong"),
    (0.7, "strong"),
    (0.5, "moderate"),
    (0.3, "weak"),
    (0.1, "very weak"),
]

# (upper bound on p, label), checked top-down
CONFIDENCE_THRESHOLDS = [
    (0.01, "strong"),
    (0.05, "moderate"),
    (0.1, "exploratory"),
]

BinaryValue = Union[bool, int, float]


@dataclass(frozen=True)
class CorrelationResult:
    r: float
    p_value: float
    n: int
    confidence: str
    strength: str

    @classmethod
    def neutral(cls, n: int) -> "CorrelationResult":
        """The "no finding" result used whenever the data cannot support a test."""
        return cls(r=0.0, p_value=1.0, n=n, confidence="none", strength="none")

    def to_dict(self) -> dict:
        return {
            "r": self.r,
            "p_value": self.p_value,
            "n": self.n,
            "confidence": self.confidence,
            "strength": self.strength,
        }


def classify_strength(r: float) -> str:
    abs_r = abs(r)
    for bound, label in STRENGTH_THRESHOLDS:
        if abs_r >= bound:
            return label
    return "none"


def classify_confidence(p_value: float) -> str:
    for bound, label in CONFIDENCE_THRESHOLDS:
        if p_value < bound:
            return label
    return "none"


def correlation_p_value(r: float, n: int) -> float:
    """Two-tailed p-value for a correlation coefficient r over n pairs."""
    if n < MIN_CORRELATION_N or not math.isfinite(r):
        return 1.0
    if abs(r) >= 1.0:
        return 0.0
    df = n - 2
    t_stat = r * math.sqrt(df) / math.sqrt(1 - r * r)
    p = 2 * (1 - student_t_cdf(abs(t_stat), df))
    if not math.isfinite(p):
        return 1.0
    return min(1.0, max(0.0, p))


def _result(r: float, n: int) -> CorrelationResult:
    p = correlation_p_value(r, n)
    return CorrelationResult(
        r=r,
        p_value=p,
        n=n,
        confidence=classify_confidence(p),
        strength=classify_strength(r),
    )


def pearson_correlation(x: Sequence[float], y: Sequence[float]) -> CorrelationResult:
    """Pearson's r between two equal-length numeric series."""
    if len(x) != len(y):
        raise ValueError(
            f"pearson_correlation needs equal-length inputs (got {len(x)} and {len(y)})"
        )

    n = len(x)
    if n < MIN_CORRELATION_N:
        return CorrelationResult.neutral(n)

    xs = np.asarray(x, dtype=np.float64)
    ys = np.asarray(y, dtype=np.float64)
    dx = xs - mean(x)
    dy = ys - mean(y)

    numerator = float(np.sum(dx * dy))
    denominator = math.sqrt(float(np.sum(dx * dx)) * float(np.sum(dy * dy)))
    if denominator == 0:
        return CorrelationResult.neutral(n)

    r = numerator / denominator
    if not math.isfinite(r):
        return CorrelationResult.neutral(n)
    # float rounding can push |r| a hair past 1
    r = max(-1.0, min(1.0, r))
    return _result(r, n)


def _as_indicator(value: BinaryValue) -> float:
    if isinstance(value, (bool, np.bool_)):
        return 1.0 if value else 0.0
    if value == 0 or value == 1:
        return float(value)
    raise ValueError(f"binary series must hold booleans or 0/1, got {value!r}")


def point_biserial_correlation(
    binary: Sequence[BinaryValue], continuous: Sequence[float]
) -> CorrelationResult:
    """Point-biserial r between a dichotomous and a continuous series.

    r_pb = (M₁ − M₀) / s_n · √(n₁·n₀ / n²)

    where M₁/M₀ are the continuous means of the two groups and s_n is the
    population standard deviation of the continuous series.  This equals
    the Pearson r of the 0/1 indicator, so the same t-test applies.
    """
    if len(binary) != len(continuous):
        raise ValueError(
            "point_biserial_correlation needs equal-length inputs "
            f"(got {len(binary)} and {len(continuous)})"
        )

    n = len(binary)
    if n < MIN_CORRELATION_N:
        return CorrelationResult.neutral(n)

    flags = [_as_indicator(v) for v in binary]
    values = [float(v) for v in continuous]

    group1 = [v for f, v in zip(flags, values) if f == 1.0]
    group0 = [v for f, v in zip(flags, values) if f == 0.0]
    if not group1 or not group0:
        return CorrelationResult.neutral(n)

    var = variance(values)
    if var == 0:
        return CorrelationResult.neutral(n)

    n1, n0 = len(group1), len(group0)
    r = (mean(group1) - mean(group0)) / math.sqrt(var) * math.sqrt(n1 * n0 / (n * n))
    if not math.isfinite(r):
        return CorrelationResult.neutral(n)
    r = max(-1.0, min(1.0, r))
    return _result(r, n)


def is_significant(result: CorrelationResult, alpha: float = 0.05) -> bool:
    return result.p_value < alpha


def format_correlation(result: CorrelationResult) -> str:
    """e.g. 'very strong positive correlation (r=0.950, p=0.0001, n=12)'"""
    direction = "positive" if result.r > 0 else "negative"
    return (
        f"{result.strength} {direction} correlation "
        f"(r={result.r:.3f}, p={result.p_value:.4f}, n={result.n})"
    )
