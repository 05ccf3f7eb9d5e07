"""
Daily Metric Aggregation
========================
Builds one immutable DailyRecord per calendar day from the per-domain rows
the host has already keyed by date, and derives the previous-day ("lagged")
variants used to test next-day effects.

Steps:
  1. Normalize every row's date to a local YYYY-MM-DD key.
  2. Outer-join the domain frames on that key (missing stays missing,
     never 0).
  3. Derive boolean flags (workout day, running day, sunny day).
  4. Sort chronologically and shift by position.  A lagged value is kept
     only when the row it came from is exactly `lag_days` calendar days
     earlier; a hole in the sequence leaves the lagged field unset rather
     than borrowing from further back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import pandas as pd

import config
from caffeine_model import CaffeineEvent, event_time_ms, mg_for

log = logging.getLogger("daily_metrics")

CONTINUOUS = "continuous"
BOOLEAN = "boolean"

# Fewest aligned days a pair needs before it is tested
MIN_SAMPLE_SIZE = 10

# Cloud cover (%) below which a day counts as sunny
SUNNY_CLOUDINESS_PCT = 30


# ═══════════════════════════════════════════════════════════════
#  METRIC REGISTRY
# ═══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class MetricDefinition:
    key: str
    label: str
    description: str
    unit: str
    value_kind: str = CONTINUOUS
    source: Optional[str] = None  # same-day metric a lagged metric copies
    lag_days: int = 0

    @property
    def is_boolean(self) -> bool:
        return self.value_kind == BOOLEAN

    @property
    def is_lagged(self) -> bool:
        return self.lag_days > 0


def _continuous(key: str, label: str, description: str, unit: str) -> MetricDefinition:
    return MetricDefinition(key, label, description, unit, CONTINUOUS)


def _boolean(key: str, label: str, description: str) -> MetricDefinition:
    return MetricDefinition(key, label, description, "boolean", BOOLEAN)


def _previous_day(source: MetricDefinition, description: str) -> MetricDefinition:
    return MetricDefinition(
        key=f"prev_day_{source.key}",
        label=f"Previous Day {source.label}",
        description=description,
        unit=source.unit,
        value_kind=source.value_kind,
        source=source.key,
        lag_days=1,
    )


_SAME_DAY = (
    _continuous("sleep_score", "Sleep Score", "Sleep quality score (0-100)", "points"),
    _continuous("focus_minutes", "Focus Time", "Deep focus work time", "minutes"),
    _continuous("steps", "Steps", "Daily step count", "steps"),
    _continuous("reading_minutes", "Reading Time", "Time spent reading", "minutes"),
    _continuous("outdoor_minutes", "Outdoor Time", "Time spent outdoors", "minutes"),
    _continuous("writing_minutes", "Writing Time", "Time spent writing", "minutes"),
    _continuous("coffee_count", "Coffee Cups", "Number of coffee servings", "cups"),
    _continuous("total_caffeine_mg", "Caffeine Intake", "Total caffeine consumed", "mg"),
    _continuous("run_distance_km", "Running Distance", "Distance ran", "km"),
    _continuous("run_duration_min", "Running Duration", "Time spent running", "minutes"),
    _continuous("workout_count", "Workout Sessions", "Number of workout sessions", "sessions"),
    _continuous("workout_duration_min", "Workout Duration", "Total workout time", "minutes"),
    _continuous("avg_temp_celsius", "Temperature", "Average daily temperature", "°C"),
    _continuous("avg_humidity", "Humidity", "Average daily humidity", "%"),
    _continuous("avg_cloudiness", "Cloudiness", "Average daily cloud cover", "%"),
    _continuous("mood", "Mood", "Daily mood rating (1-10)", "score"),
    _continuous("energy", "Energy", "Daily energy level (1-10)", "score"),
    _continuous("stress", "Stress", "Daily stress level (1-10)", "score"),
    _continuous("focus_quality", "Focus Quality", "Subjective focus quality (1-10)", "score"),
    _boolean("workout_day", "Workout", "a workout was logged"),
    _boolean("running_day", "Running", "a run was logged"),
    _boolean("sunny_day", "Sunny Day", "the sky was mostly clear (cloudiness < 30%)"),
)
_BY_KEY = {m.key: m for m in _SAME_DAY}

_LAGGED = (
    _previous_day(_BY_KEY["workout_day"], "a workout was logged the previous day"),
    _previous_day(_BY_KEY["running_day"], "a run was logged the previous day"),
    _previous_day(_BY_KEY["workout_duration_min"], "Workout time on the previous day"),
    _previous_day(_BY_KEY["run_distance_km"], "Distance ran on the previous day"),
    _previous_day(_BY_KEY["total_caffeine_mg"], "Caffeine consumed on the previous day"),
    _previous_day(_BY_KEY["steps"], "Step count on the previous day"),
)

METRIC_REGISTRY: Tuple[MetricDefinition, ...] = _SAME_DAY + _LAGGED
_REGISTRY_BY_KEY = {m.key: m for m in METRIC_REGISTRY}

SAME_DAY_CONTINUOUS_KEYS = [m.key for m in _SAME_DAY if not m.is_boolean]
LAGGED_METRICS = [m for m in METRIC_REGISTRY if m.is_lagged]

# Which columns each upstream domain contributes
SOURCE_COLUMNS: Dict[str, Tuple[str, ...]] = {
    "days": ("sleep_score", "focus_minutes", "steps",
             "reading_minutes", "outdoor_minutes", "writing_minutes"),
    "coffee": ("coffee_count", "total_caffeine_mg"),
    "runs": ("run_distance_km", "run_duration_min"),
    "workouts": ("workout_count", "workout_duration_min"),
    "weather": ("avg_temp_celsius", "avg_humidity", "avg_cloudiness"),
    "subjective": ("mood", "energy", "stress", "focus_quality"),
}


def get_metric(key: str) -> MetricDefinition:
    try:
        return _REGISTRY_BY_KEY[key]
    except KeyError:
        raise ValueError(f"Unknown metric key: {key!r}") from None


# ═══════════════════════════════════════════════════════════════
#  DAILY RECORD
# ═══════════════════════════════════════════════════════════════

def _is_missing(value: Any) -> bool:
    return value is None or (pd.api.types.is_scalar(value) and bool(pd.isna(value)))


@dataclass(frozen=True)
class DailyRecord:
    date: str
    values: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        # NaN, NaT and pd.NA all mean "no value" and are stored as None
        cleaned = {k: (None if _is_missing(v) else v) for k, v in self.values.items()}
        object.__setattr__(self, "values", MappingProxyType(cleaned))

    def get(self, key: str) -> Any:
        return self.values.get(key)

    def to_dict(self) -> Dict[str, Any]:
        return {"date": self.date, **self.values}


def normalize_date_key(value: Any, tz: Optional[str] = None) -> str:
    """YYYY-MM-DD key for a date-like value, in the local calendar."""
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        raise ValueError("row without a date")
    ts = pd.Timestamp(value)
    if ts.tzinfo is not None:
        ts = ts.tz_convert(tz or config.LOCAL_TZ)
    return ts.strftime("%Y-%m-%d")


RowSource = Union[pd.DataFrame, Iterable[Mapping[str, Any]]]


def _source_frame(name: str, rows: RowSource, tz: Optional[str]) -> Optional[pd.DataFrame]:
    if name not in SOURCE_COLUMNS:
        raise ValueError(f"Unknown metric source {name!r}; expected one of {sorted(SOURCE_COLUMNS)}")

    df = rows.copy() if isinstance(rows, pd.DataFrame) else pd.DataFrame(list(rows))
    if df.empty:
        return None
    if "date" not in df.columns:
        raise ValueError(f"Source {name!r} rows must carry a 'date' column")

    df["date"] = [normalize_date_key(v, tz) for v in df["date"]]
    dupes = df["date"][df["date"].duplicated()].unique()
    if len(dupes):
        raise ValueError(f"Source {name!r} has more than one row for {', '.join(dupes)}")

    wanted = [c for c in SOURCE_COLUMNS[name] if c in df.columns]
    ignored = sorted(set(df.columns) - set(wanted) - {"date"})
    if ignored:
        log.debug("   %s: ignoring unregistered columns %s", name, ignored)

    out = df[["date", *wanted]].set_index("date")
    for col in wanted:
        out[col] = pd.to_numeric(out[col], errors="coerce")
    return out


def _flag(condition: pd.Series, known: pd.Series) -> pd.Series:
    """Boolean column with None where the underlying measurement is unknown."""
    return pd.Series(
        [bool(c) if k else None for c, k in zip(condition, known)],
        index=condition.index,
        dtype=object,
    )


def _derive_flags(frame: pd.DataFrame, present: Sequence[str]) -> pd.DataFrame:
    tracked = pd.Series(True, index=frame.index)
    untracked = pd.Series(False, index=frame.index)

    # A tracked day without workout/run rows had no workout/run
    workouts_known = tracked if "workouts" in present else untracked
    frame["workout_day"] = _flag(frame["workout_count"].fillna(0) > 0, workouts_known)

    runs_known = tracked if "runs" in present else untracked
    ran = (frame["run_distance_km"].fillna(0) > 0) | (frame["run_duration_min"].fillna(0) > 0)
    frame["running_day"] = _flag(ran, runs_known)

    cloud = frame["avg_cloudiness"]
    frame["sunny_day"] = _flag(cloud < SUNNY_CLOUDINESS_PCT, cloud.notna())
    return frame


def align_lagged_fields(frame: pd.DataFrame) -> pd.DataFrame:
    """Sort by date and fill every registered lagged column by positional shift.

    The value is copied from the row `lag_days` positions earlier only when
    that row is exactly `lag_days` calendar days earlier.
    """
    frame = frame.sort_index()
    day = pd.Series(pd.to_datetime(frame.index), index=frame.index)

    for metric in LAGGED_METRICS:
        gap_days = (day - day.shift(metric.lag_days)).dt.days
        contiguous = gap_days == metric.lag_days
        shifted = frame[metric.source].shift(metric.lag_days)
        frame[metric.key] = shifted.where(contiguous, None).astype(object)

    n_gaps = int(((day - day.shift(1)).dt.days > 1).sum())
    if n_gaps:
        log.info("   %d day(s) without a predecessor; their lagged fields stay unset", n_gaps)
    return frame


def _cell(metric: MetricDefinition, value: Any) -> Any:
    if _is_missing(value):
        return None
    return bool(value) if metric.is_boolean else float(value)


def build_daily_records(sources: Mapping[str, RowSource], tz: Optional[str] = None) -> List[DailyRecord]:
    """One DailyRecord per date across all sources, ascending by date."""
    frames = []
    present = []
    for name, rows in sources.items():
        frame = _source_frame(name, rows, tz)
        if frame is not None:
            frames.append(frame)
            present.append(name)

    if not frames:
        log.info("   No daily rows supplied")
        return []

    merged = pd.concat(frames, axis=1, join="outer")
    merged = merged.reindex(columns=SAME_DAY_CONTINUOUS_KEYS)
    merged = _derive_flags(merged, present)
    merged = align_lagged_fields(merged)

    records = [
        DailyRecord(
            date=str(day),
            values={m.key: _cell(m, row[m.key]) for m in METRIC_REGISTRY},
        )
        for day, row in merged.iterrows()
    ]
    log.info("   Built %d daily records (%s -> %s)", len(records), records[0].date, records[-1].date)
    return records


# ═══════════════════════════════════════════════════════════════
#  HELPERS
# ═══════════════════════════════════════════════════════════════

def extract_metric_values(records: Sequence[DailyRecord], key: str) -> Tuple[List[str], List[Any]]:
    """Parallel (dates, values) for one metric, skipping days without a value."""
    get_metric(key)
    dates: List[str] = []
    values: List[Any] = []
    for rec in records:
        value = rec.get(key)
        if value is None:
            continue
        dates.append(rec.date)
        values.append(value)
    return dates, values


def summarize_coffee_events(events: Iterable[CaffeineEvent], tz: Optional[str] = None) -> List[Dict[str, Any]]:
    """Per-day `coffee` source rows (cup count, caffeine mg) from raw brew events."""
    zone = tz or config.LOCAL_TZ
    rows = []
    for ev in events:
        if not ev.time_iso:
            continue
        local = pd.Timestamp(event_time_ms(ev.time_iso), unit="ms", tz="UTC").tz_convert(zone)
        mg = ev.mg if ev.mg is not None and ev.mg > 0 else mg_for(ev.brew_type, ev.amount_ml)
        rows.append({"date": local.strftime("%Y-%m-%d"), "mg": mg})

    if not rows:
        return []

    daily = (
        pd.DataFrame(rows)
        .groupby("date", sort=True)
        .agg(coffee_count=("mg", "size"), total_caffeine_mg=("mg", "sum"))
        .reset_index()
    )
    return [
        {"date": r["date"], "coffee_count": int(r["coffee_count"]), "total_caffeine_mg": float(r["total_caffeine_mg"])}
        for r in daily.to_dict("records")
    ]
