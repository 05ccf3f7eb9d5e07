"""
Caffeine Decay Model
====================
Turns discrete brew events into a continuous body-caffeine time series.

Model: single-compartment, first-order elimination with linear
superposition of independent doses.

    k          = ln 2 / t½                       (per hour, used per ms)
    dose_i     = mg_for(brew, mL) · F · S        (F = bioavailability,
                                                  S = sensitivity)
    body(t)    = Σ_{t_i ≤ t} dose_i · e^{−k (t − t_i)}
    intake(t)  = Σ_{t_i ≤ t} dose_i              (non-decaying running total)
    blood(t)   = body(t) / V_d,   V_d = vd_l_per_kg · mass

Doses taken before the window start still contribute residue, so callers
must pass events from a lookback window of at least
max(24 h, 4·t½) before `start_ms` (see `lookback_hours`).  The model never
fetches or filters events itself.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, List, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo

import numpy as np
import pandas as pd

import config
from constants import DEFAULT_MG_PER_ML, DEFAULT_SHOT_ML, FALLBACK_BREW_TYPE

log = logging.getLogger("caffeine_model")

LN2 = math.log(2)
MS_PER_MINUTE = 60 * 1000
MS_PER_HOUR = 60 * MS_PER_MINUTE

MIN_LOOKBACK_HOURS = 24
LOOKBACK_HALF_LIVES = 4
MIN_DISTRIBUTION_MASS_KG = 30


# ═══════════════════════════════════════════════════════════════
#  DATA TYPES
# ═══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class CaffeineEvent:
    time_iso: str
    brew_type: str = FALLBACK_BREW_TYPE
    amount_ml: Optional[float] = None
    mg: Optional[float] = None  # explicit dose, overrides the brew lookup


@dataclass(frozen=True)
class BodyProfile:
    half_life_hours: float = 5.0
    bioavailability: float = 0.9
    sensitivity: float = 1.0
    weight_kg: float = 75.0
    vd_l_per_kg: float = 0.6
    body_fat_percentage: Optional[float] = None

    @classmethod
    def from_env(cls) -> "BodyProfile":
        """Profile built from BODY_* environment settings."""
        return cls(
            half_life_hours=config.BODY_HALF_LIFE_H,
            bioavailability=config.BODY_BIOAVAILABILITY,
            sensitivity=config.BODY_CAFFEINE_SENSITIVITY,
            weight_kg=config.BODY_WEIGHT_KG,
            vd_l_per_kg=config.BODY_VD_L_PER_KG,
        )

    def distribution_volume_l(self) -> float:
        mass = self.weight_kg if self.weight_kg and self.weight_kg > 0 else config.BODY_WEIGHT_KG
        if self.body_fat_percentage:
            # distribute over lean mass when body fat is known
            mass = mass * (1 - self.body_fat_percentage / 100.0)
        vd_per_kg = self.vd_l_per_kg if self.vd_l_per_kg else config.BODY_VD_L_PER_KG
        return max(1.0, vd_per_kg * max(MIN_DISTRIBUTION_MASS_KG, mass))


@dataclass(frozen=True)
class CaffeineGrid:
    start_ms: int
    end_ms: int
    grid_minutes: float = 15
    align_to_hour: bool = False
    tz: str = config.LOCAL_TZ


@dataclass(frozen=True)
class CaffeineSeriesPoint:
    time_iso: str
    intake_mg: float
    body_mg: float
    blood_mg_per_l: float

    def to_dict(self) -> dict:
        return {
            "time": self.time_iso,
            "intake_mg": int(round(self.intake_mg)),
            "body_mg": int(round(self.body_mg)),
            "blood_mg_per_l": round(self.blood_mg_per_l, 3),
        }


# ═══════════════════════════════════════════════════════════════
#  DOSE LOOKUP
# ═══════════════════════════════════════════════════════════════

def normalize_brew_type(brew_type: Optional[str]) -> str:
    """'Cold-Brew' -> 'cold_brew'; unknown or empty -> 'other'."""
    key = (brew_type or "").strip().lower().replace("-", "_").replace(" ", "_")
    return key if key in DEFAULT_MG_PER_ML else FALLBACK_BREW_TYPE


def mg_for(brew_type: Optional[str], amount_ml: Optional[float] = None) -> float:
    """Caffeine content (mg) of one brew before absorption.

    A missing or non-positive amount falls back to the brew's default
    serving size.
    """
    key = normalize_brew_type(brew_type)
    volume = amount_ml if amount_ml is not None and amount_ml > 0 else DEFAULT_SHOT_ML[key]
    return float(volume) * DEFAULT_MG_PER_ML[key]


def absorbed_dose_mg(event: CaffeineEvent, profile: BodyProfile) -> float:
    base = event.mg if event.mg is not None and event.mg > 0 else mg_for(event.brew_type, event.amount_ml)
    return base * profile.bioavailability * profile.sensitivity


# ═══════════════════════════════════════════════════════════════
#  TIME HELPERS
# ═══════════════════════════════════════════════════════════════

def event_time_ms(time_iso: str) -> int:
    """Epoch milliseconds for an ISO instant; naive strings are read as UTC."""
    ts = pd.Timestamp(time_iso)
    if ts.tzinfo is None:
        ts = ts.tz_localize("UTC")
    return int(ts.value // 1_000_000)


def ms_to_iso(ms: float) -> str:
    dt = datetime.fromtimestamp(ms / 1000, tz=timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def align_to_local_hour(ms: float, tz: str) -> int:
    """Snap an instant down to the start of its wall-clock hour in `tz`.

    Works on the local calendar rather than UTC, so half-hour offset zones
    and DST transitions still land on :00 local labels.
    """
    local = datetime.fromtimestamp(ms / 1000, tz=ZoneInfo(tz))
    floored = local.replace(minute=0, second=0, microsecond=0)
    return int(round(floored.timestamp() * 1000))


def local_day_bounds_ms(day: date, tz: str) -> Tuple[int, int]:
    """[local midnight, next local midnight) of `day` as epoch ms."""
    zone = ZoneInfo(tz)
    start = datetime(day.year, day.month, day.day, tzinfo=zone)
    nxt = day + timedelta(days=1)
    end = datetime(nxt.year, nxt.month, nxt.day, tzinfo=zone)
    return int(start.timestamp() * 1000), int(end.timestamp() * 1000)


def lookback_hours(half_life_hours: float) -> int:
    """History the caller must supply before the window start."""
    return max(MIN_LOOKBACK_HOURS, math.ceil(half_life_hours * LOOKBACK_HALF_LIVES))


# ═══════════════════════════════════════════════════════════════
#  SIMULATION
# ═══════════════════════════════════════════════════════════════

def _grid_times(grid: CaffeineGrid) -> np.ndarray:
    if grid.start_ms > grid.end_ms:
        raise ValueError(f"start_ms ({grid.start_ms}) is after end_ms ({grid.end_ms})")
    if grid.grid_minutes is None or not math.isfinite(grid.grid_minutes) or grid.grid_minutes <= 0:
        raise ValueError(f"grid_minutes must be a positive finite number, got {grid.grid_minutes!r}")

    start = align_to_local_hour(grid.start_ms, grid.tz) if grid.align_to_hour else grid.start_ms
    step = grid.grid_minutes * MS_PER_MINUTE
    # end-exclusive walk
    n_points = max(0, math.ceil((grid.end_ms - start) / step))
    return start + step * np.arange(n_points, dtype=np.float64)


def simulate(
    events: Iterable[CaffeineEvent],
    profile: BodyProfile,
    grid: CaffeineGrid,
) -> List[CaffeineSeriesPoint]:
    """Resample brew events onto an evenly spaced grid of modeled caffeine load."""
    if profile.half_life_hours is None or profile.half_life_hours <= 0:
        raise ValueError(f"half_life_hours must be positive, got {profile.half_life_hours!r}")

    times = _grid_times(grid)

    event_ms: List[float] = []
    doses: List[float] = []
    for ev in events:
        if not ev.time_iso:
            log.debug("Skipping brew event without a timestamp: %r", ev)
            continue
        event_ms.append(event_time_ms(ev.time_iso))
        doses.append(absorbed_dose_mg(ev, profile))

    k_per_ms = LN2 / (profile.half_life_hours * MS_PER_HOUR)
    ev_t = np.asarray(event_ms, dtype=np.float64)
    ev_mg = np.asarray(doses, dtype=np.float64)

    # rows = grid points, columns = events
    elapsed = times[:, None] - ev_t[None, :]
    taken = elapsed >= 0
    decay = np.exp(-k_per_ms * np.where(taken, elapsed, 0.0))
    body = (ev_mg * decay * taken).sum(axis=1)
    intake = (ev_mg * taken).sum(axis=1)

    vd_l = profile.distribution_volume_l()
    series = [
        CaffeineSeriesPoint(
            time_iso=ms_to_iso(t),
            intake_mg=float(i),
            body_mg=float(b),
            blood_mg_per_l=float(b) / vd_l,
        )
        for t, i, b in zip(times, intake, body)
    ]
    log.debug("Simulated %d grid points from %d events", len(series), len(doses))
    return series


def caffeine_curve_for_day(
    events: Sequence[CaffeineEvent],
    profile: BodyProfile,
    day: date,
    tz: str = config.LOCAL_TZ,
    resolution_minutes: float = 60,
) -> List[CaffeineSeriesPoint]:
    """Hour-aligned curve covering one local calendar day.

    `events` should already include the lookback window
    (`lookback_hours(profile.half_life_hours)` before local midnight).
    """
    start_ms, end_ms = local_day_bounds_ms(day, tz)
    grid = CaffeineGrid(
        start_ms=start_ms,
        end_ms=end_ms,
        grid_minutes=resolution_minutes,
        align_to_hour=True,
        tz=tz,
    )
    return simulate(events, profile, grid)
