"""
Correlation Discovery Engine
============================
Searches every pair of registered daily metrics for statistically
significant relationships and explains each one in plain language.

Architecture (3 layers):
  Layer 0 - Window:  keep the `days` calendar days ending at `end_date`
            (default: latest record).
  Layer 1 - Pairs:   enumerate unordered metric pairs, skip self-pairs,
            boolean×boolean pairs and definitionally related pairs
            (TRIVIAL_PAIRS), align on dates where both values exist,
            then Pearson (continuous×continuous) or point-biserial
            (boolean involved).  Pairs with n < MIN_SAMPLE_SIZE,
            |r| < min_abs_r or p > p_value_threshold are dropped.
  Layer 2 - Digest:  interpretation per pair plus a short text summary.

Interpretations respect time order: the metric with the larger lag_days
happened first and is phrased as the antecedent ("the day before"),
whichever order the pair was enumerated in.  Equal lags get symmetric
wording.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

import config
from analytics.correlation import (
    CorrelationResult,
    pearson_correlation,
    point_biserial_correlation,
)
from daily_metrics import (
    METRIC_REGISTRY,
    MIN_SAMPLE_SIZE,
    DailyRecord,
    MetricDefinition,
    get_metric,
)

log = logging.getLogger("correlation_engine")


# ═══════════════════════════════════════════════════════════════
#  CONSTANTS
# ═══════════════════════════════════════════════════════════════

# Pairs that correlate by construction, never reported
TRIVIAL_PAIRS: List[Tuple[str, str]] = [
    ("total_caffeine_mg", "coffee_count"),
    ("run_distance_km", "run_duration_min"),
    ("outdoor_minutes", "run_duration_min"),
    ("outdoor_minutes", "run_distance_km"),
    ("workout_count", "workout_duration_min"),
    ("prev_day_workout_day", "prev_day_workout_duration_min"),
    ("prev_day_running_day", "prev_day_run_distance_km"),
    ("avg_cloudiness", "sunny_day"),
    ("avg_temp_celsius", "avg_humidity"),
    ("avg_cloudiness", "avg_temp_celsius"),
    ("avg_cloudiness", "avg_humidity"),
    ("workout_day", "workout_count"),
    ("workout_day", "workout_duration_min"),
    ("running_day", "run_distance_km"),
    ("running_day", "run_duration_min"),
]
_TRIVIAL: FrozenSet[FrozenSet[str]] = frozenset(frozenset(p) for p in TRIVIAL_PAIRS)

# p-values closer than this are ranked by |r| instead
P_VALUE_TIE = 0.001

# Below this many days the digest carries a data-quality note
PRELIMINARY_DAYS = 21

STRENGTH_SENTENCES = {
    "very strong": " This is a very strong relationship.",
    "strong": " This is a strong relationship.",
}
CONFIDENCE_SENTENCES = {
    "strong": " High statistical confidence (p < 0.01).",
    "moderate": " Moderate statistical confidence (p < 0.05).",
    "exploratory": " Exploratory finding (p < 0.1).",
}


# ═══════════════════════════════════════════════════════════════
#  RESULT TYPE
# ═══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class DiscoveredCorrelation:
    metric_a: MetricDefinition
    metric_b: MetricDefinition
    correlation: CorrelationResult
    date_range: Tuple[str, str]  # first and last aligned date
    interpretation: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metric_a": self.metric_a.key,
            "metric_b": self.metric_b.key,
            "label_a": self.metric_a.label,
            "label_b": self.metric_b.label,
            "correlation": self.correlation.to_dict(),
            "date_range": {"start": self.date_range[0], "end": self.date_range[1]},
            "interpretation": self.interpretation,
        }


# ═══════════════════════════════════════════════════════════════
#  LAYER 0: Window
# ═══════════════════════════════════════════════════════════════

def restrict_window(
    records: Sequence[DailyRecord], days: int, end_date: Optional[date] = None
) -> List[DailyRecord]:
    """Records dated within the `days` calendar days ending at `end_date`, inclusive."""
    if days <= 0:
        raise ValueError(f"days must be positive, got {days}")
    if not records:
        return []

    end = end_date or max(date.fromisoformat(r.date) for r in records)
    start = end - timedelta(days=days - 1)
    lo, hi = start.isoformat(), end.isoformat()
    return sorted((r for r in records if lo <= r.date <= hi), key=lambda r: r.date)


# ═══════════════════════════════════════════════════════════════
#  LAYER 1: Pairs
# ═══════════════════════════════════════════════════════════════

def is_trivial_pair(key_a: str, key_b: str) -> bool:
    return frozenset((key_a, key_b)) in _TRIVIAL


def candidate_pairs(
    metrics: Sequence[MetricDefinition],
) -> List[Tuple[MetricDefinition, MetricDefinition]]:
    pairs = []
    for i, metric_a in enumerate(metrics):
        for metric_b in metrics[i + 1:]:
            if metric_a.key == metric_b.key:
                continue
            if metric_a.is_boolean and metric_b.is_boolean:
                continue
            if is_trivial_pair(metric_a.key, metric_b.key):
                continue
            pairs.append((metric_a, metric_b))
    return pairs


def align_metrics(
    records: Iterable[DailyRecord], key_a: str, key_b: str
) -> List[Tuple[str, Any, Any]]:
    """(date, value_a, value_b) for every day where both values are present."""
    aligned = []
    for rec in records:
        value_a = rec.get(key_a)
        value_b = rec.get(key_b)
        if value_a is None or value_b is None:
            continue
        aligned.append((rec.date, value_a, value_b))
    return aligned


def correlate_pair(
    metric_a: MetricDefinition,
    metric_b: MetricDefinition,
    aligned: Sequence[Tuple[str, Any, Any]],
) -> CorrelationResult:
    values_a = [row[1] for row in aligned]
    values_b = [row[2] for row in aligned]
    if metric_a.is_boolean:
        return point_biserial_correlation(values_a, [float(v) for v in values_b])
    if metric_b.is_boolean:
        return point_biserial_correlation(values_b, [float(v) for v in values_a])
    return pearson_correlation([float(v) for v in values_a], [float(v) for v in values_b])


# ═══════════════════════════════════════════════════════════════
#  LAYER 2: Interpretation + Digest
# ═══════════════════════════════════════════════════════════════

def _lag_phrase(days: int) -> str:
    return "the day before" if days == 1 else f"{days} days before"


def _event_metric(metric: MetricDefinition) -> MetricDefinition:
    """The same-day metric a lagged metric was copied from."""
    return get_metric(metric.source) if metric.source else metric


def generate_interpretation(
    metric_a: MetricDefinition,
    metric_b: MetricDefinition,
    correlation: CorrelationResult,
) -> str:
    """Plain-language reading of one correlation, antecedent first."""
    positive = correlation.r > 0

    if metric_a.lag_days != metric_b.lag_days:
        if metric_a.lag_days > metric_b.lag_days:
            antecedent, outcome = metric_a, metric_b
        else:
            antecedent, outcome = metric_b, metric_a
        when = _lag_phrase(antecedent.lag_days - outcome.lag_days)
        event = _event_metric(antecedent)

        if antecedent.is_boolean:
            direction = "higher" if positive else "lower"
            text = f"When {event.description} {when}, {outcome.label} tends to be {direction}."
        elif outcome.is_boolean:
            likelihood = "more" if positive else "less"
            text = (
                f"When {event.label} goes up {when}, "
                f"it becomes {likelihood} likely that {outcome.description}."
            )
        else:
            direction = "increase" if positive else "decrease"
            text = f"When {event.label} goes up {when}, {outcome.label} tends to {direction}."

    elif metric_a.is_boolean or metric_b.is_boolean:
        binary, continuous = (metric_a, metric_b) if metric_a.is_boolean else (metric_b, metric_a)
        direction = "higher" if positive else "lower"
        text = f"On days when {binary.description}, {continuous.label} tends to be {direction}."

    else:
        together = "together" if positive else "inversely"
        text = f"{metric_a.label} and {metric_b.label} tend to move {together}."

    text += STRENGTH_SENTENCES.get(correlation.strength, "")
    text += CONFIDENCE_SENTENCES.get(correlation.confidence, "")
    return text


def rank_discoveries(discoveries: Iterable[DiscoveredCorrelation]) -> List[DiscoveredCorrelation]:
    """Ascending p-value; p-values within P_VALUE_TIE of a group's first one rank by |r|."""
    by_p = sorted(discoveries, key=lambda d: d.correlation.p_value)
    ranked: List[DiscoveredCorrelation] = []
    group: List[DiscoveredCorrelation] = []
    for d in by_p:
        if group and d.correlation.p_value - group[0].correlation.p_value > P_VALUE_TIE:
            ranked.extend(sorted(group, key=lambda g: -abs(g.correlation.r)))
            group = []
        group.append(d)
    ranked.extend(sorted(group, key=lambda g: -abs(g.correlation.r)))
    return ranked


def _resolve_metrics(metrics: Optional[Sequence[str]]) -> List[MetricDefinition]:
    if metrics is None:
        return list(METRIC_REGISTRY)
    wanted = {get_metric(key).key for key in metrics}
    # registry order keeps pair enumeration deterministic
    return [m for m in METRIC_REGISTRY if m.key in wanted]


def _discovery(
    metric_a: MetricDefinition,
    metric_b: MetricDefinition,
    aligned: Sequence[Tuple[str, Any, Any]],
    correlation: CorrelationResult,
) -> DiscoveredCorrelation:
    return DiscoveredCorrelation(
        metric_a=metric_a,
        metric_b=metric_b,
        correlation=correlation,
        date_range=(aligned[0][0], aligned[-1][0]),
        interpretation=generate_interpretation(metric_a, metric_b, correlation),
    )


def discover_correlations(
    records: Sequence[DailyRecord],
    days: int = 90,
    p_value_threshold: float = 0.1,
    min_abs_r: float = 0.3,
    metrics: Optional[Sequence[str]] = None,
    end_date: Optional[date] = None,
) -> List[DiscoveredCorrelation]:
    """Significant, non-trivial metric pairs, most significant first."""
    candidates = candidate_pairs(_resolve_metrics(metrics))
    window = restrict_window(records, days, end_date)
    log.info("   Layer 0: %d of %d daily records inside the %d-day window",
             len(window), len(records), days)

    discoveries: List[DiscoveredCorrelation] = []
    n_tested = 0
    for metric_a, metric_b in candidates:
        aligned = align_metrics(window, metric_a.key, metric_b.key)
        if len(aligned) < MIN_SAMPLE_SIZE:
            continue

        n_tested += 1
        correlation = correlate_pair(metric_a, metric_b, aligned)
        if correlation.p_value > p_value_threshold or abs(correlation.r) < min_abs_r:
            continue
        discoveries.append(_discovery(metric_a, metric_b, aligned, correlation))

    discoveries = rank_discoveries(discoveries)
    log.info("   Layer 1: %d candidate pairs, %d with n >= %d, %d significant",
             len(candidates), n_tested, MIN_SAMPLE_SIZE, len(discoveries))
    return discoveries


def get_correlation_between(
    records: Sequence[DailyRecord],
    key_a: str,
    key_b: str,
    days: int = 90,
    end_date: Optional[date] = None,
) -> Optional[DiscoveredCorrelation]:
    """One pair regardless of thresholds; None below MIN_SAMPLE_SIZE aligned days."""
    metric_a = get_metric(key_a)
    metric_b = get_metric(key_b)
    if metric_a.is_boolean and metric_b.is_boolean:
        raise ValueError(f"Cannot correlate two boolean metrics ({key_a}, {key_b})")

    aligned = align_metrics(restrict_window(records, days, end_date), key_a, key_b)
    if len(aligned) < MIN_SAMPLE_SIZE:
        return None
    return _discovery(metric_a, metric_b, aligned, correlate_pair(metric_a, metric_b, aligned))


def build_summary(discoveries: Sequence[DiscoveredCorrelation], n_days: int) -> str:
    """Short natural-language digest of discovered pairs."""
    log.info("   Layer 2: building digest…")
    lines: List[str] = []

    last_day = max((d.date_range[1] for d in discoveries), default="no data")
    lines.append(f"=== CORRELATION DISCOVERY ({last_day}) ===")
    lines.append(f"Data: {n_days} days, {len(discoveries)} significant pairs")
    if n_days < PRELIMINARY_DAYS:
        lines.append(
            f"NOTE*: Only {n_days} days of data analyzed. Findings are "
            f"PRELIMINARY and should be read as directional. "
            f"Confidence improves after {PRELIMINARY_DAYS}+ days."
        )
    lines.append("")

    lines.append("[SIGNIFICANT PAIRS (most significant first)]")
    if not discoveries:
        lines.append("  none")
    for d in discoveries:
        c = d.correlation
        arrow = "↑↑" if c.r > 0 else "↑↓"
        sig = "***" if c.p_value < 0.01 else ("**" if c.p_value < 0.05 else "*")
        lines.append(
            f"  {arrow} {d.metric_a.label} × {d.metric_b.label}: "
            f"r={c.r:+.3f} (p={c.p_value:.4f}, n={c.n}) {sig}"
        )
        lines.append(f"     {d.interpretation}")

    return "\n".join(lines)


# ═══════════════════════════════════════════════════════════════
#  ENGINE
# ═══════════════════════════════════════════════════════════════

class CorrelationEngine:
    """
    Discovery with thresholds taken from configuration unless overridden.
    """

    def __init__(
        self,
        days: Optional[int] = None,
        p_value_threshold: Optional[float] = None,
        min_abs_r: Optional[float] = None,
    ):
        self.days = days if days is not None else config.DISCOVERY_DAYS
        self.p_value_threshold = (
            p_value_threshold if p_value_threshold is not None else config.DISCOVERY_P_VALUE
        )
        self.min_abs_r = min_abs_r if min_abs_r is not None else config.DISCOVERY_MIN_ABS_R

    def discover(
        self,
        records: Sequence[DailyRecord],
        metrics: Optional[Sequence[str]] = None,
        end_date: Optional[date] = None,
    ) -> List[DiscoveredCorrelation]:
        return discover_correlations(
            records,
            days=self.days,
            p_value_threshold=self.p_value_threshold,
            min_abs_r=self.min_abs_r,
            metrics=metrics,
            end_date=end_date,
        )

    def summarize(self, discoveries: Sequence[DiscoveredCorrelation], n_days: int) -> str:
        return build_summary(discoveries, n_days)

    def run(
        self, records: Sequence[DailyRecord], end_date: Optional[date] = None
    ) -> Dict[str, Any]:
        """Discover + digest, with analysis_status metadata."""
        result: Dict[str, Any] = {
            "summary": "",
            "discoveries": [],
            "analysis_status": "success",
            "degraded_reasons": [],
            "n_days": 0,
        }

        window = restrict_window(records, self.days, end_date)
        result["n_days"] = len(window)
        if len(window) < MIN_SAMPLE_SIZE:
            msg = f"Not enough data for correlation analysis (need >= {MIN_SAMPLE_SIZE} days)."
            log.info("   %s", msg)
            result["summary"] = msg
            result["analysis_status"] = "degraded"
            result["degraded_reasons"] = ["insufficient_daily_rows"]
            return result

        discoveries = self.discover(records, end_date=end_date)
        result["discoveries"] = discoveries
        result["summary"] = self.summarize(discoveries, len(window))
        log.info(
            "\n   DISCOVERY DIGEST (%s -> %s, %d days)\n"
            "   Significant pairs : %d\n"
            "   Summary           : %d chars",
            window[0].date,
            window[-1].date,
            len(window),
            len(discoveries),
            len(result["summary"]),
        )
        return result
