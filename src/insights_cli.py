"""
Quantified-Self Insights — Command-Line Host
============================================
Loads exported CSVs and runs the analytics core on them:
  1. discover  — per-day CSV → daily records → correlation discovery digest
  2. caffeine  — brew-event CSV → one local day's modeled caffeine curve

Usage:
    python insights_cli.py discover --csv daily.csv
    python insights_cli.py discover --csv daily.csv --days 30 --json
    python insights_cli.py caffeine --events events.csv --date 2024-01-15
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import replace
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
log = logging.getLogger("insights_cli")

import config
from caffeine_model import (
    BodyProfile,
    CaffeineEvent,
    MS_PER_HOUR,
    caffeine_curve_for_day,
    event_time_ms,
    local_day_bounds_ms,
    lookback_hours,
)
from correlation_engine import CorrelationEngine
from daily_metrics import SOURCE_COLUMNS, build_daily_records


# ─── CSV loading ────────────────────────────────────────────────

def split_daily_frame(df: pd.DataFrame) -> Dict[str, pd.DataFrame]:
    """Slice one joined per-day table into the per-domain source frames."""
    if "date" not in df.columns:
        raise ValueError("daily CSV must have a 'date' column")

    sources = {}
    for name, columns in SOURCE_COLUMNS.items():
        present = [c for c in columns if c in df.columns]
        if not present:
            continue
        part = df[["date", *present]].dropna(subset=present, how="all")
        sources[name] = part
    return sources


def _optional(value: Any) -> Optional[Any]:
    return None if pd.isna(value) else value


def load_events(path: str) -> List[CaffeineEvent]:
    """Brew events from a CSV with `time` (or `time_iso`), `brew_type`, `amount_ml`, `mg`."""
    df = pd.read_csv(path)
    time_col = "time_iso" if "time_iso" in df.columns else "time"
    if time_col not in df.columns:
        raise ValueError(f"{path}: events CSV needs a 'time' column")

    events = []
    for row in df.to_dict("records"):
        time_iso = _optional(row.get(time_col))
        brew = _optional(row.get("brew_type"))
        amount = _optional(row.get("amount_ml"))
        mg = _optional(row.get("mg"))
        events.append(CaffeineEvent(
            time_iso=str(time_iso) if time_iso is not None else "",
            brew_type=str(brew) if brew is not None else "other",
            amount_ml=float(amount) if amount is not None else None,
            mg=float(mg) if mg is not None else None,
        ))
    return events


# ─── Commands ───────────────────────────────────────────────────

def run_discover(args: argparse.Namespace) -> int:
    df = pd.read_csv(args.csv)
    records = build_daily_records(split_daily_frame(df), tz=args.tz)
    engine = CorrelationEngine(
        days=args.days,
        p_value_threshold=args.p_value,
        min_abs_r=args.min_abs_r,
    )
    end = date.fromisoformat(args.end_date) if args.end_date else None
    result = engine.run(records, end_date=end)

    if args.json:
        print(json.dumps({
            "analysis_status": result["analysis_status"],
            "degraded_reasons": result["degraded_reasons"],
            "n_days": result["n_days"],
            "discoveries": [d.to_dict() for d in result["discoveries"]],
        }, indent=2, ensure_ascii=False))
    else:
        print(result["summary"])
    return 0


def run_caffeine(args: argparse.Namespace) -> int:
    day = date.fromisoformat(args.date)
    profile = BodyProfile.from_env()
    if args.half_life is not None:
        profile = replace(profile, half_life_hours=args.half_life)

    # Hand the model the day plus its lookback window
    start_ms, end_ms = local_day_bounds_ms(day, args.tz)
    earliest = start_ms - lookback_hours(profile.half_life_hours) * MS_PER_HOUR
    events = [
        ev for ev in load_events(args.events)
        if ev.time_iso and earliest <= event_time_ms(ev.time_iso) < end_ms
    ]
    log.info("   %d brew events in window for %s", len(events), day)

    series = caffeine_curve_for_day(events, profile, day, tz=args.tz,
                                    resolution_minutes=args.resolution)

    if args.json:
        print(json.dumps([p.to_dict() for p in series], indent=2))
        return 0

    print(f"=== CAFFEINE CURVE {day} ({args.tz}) ===")
    print(f"  {'time':>5}  {'intake mg':>9}  {'body mg':>7}  {'mg/L':>6}")
    for p in series:
        local = pd.Timestamp(p.time_iso).tz_convert(args.tz).strftime("%H:%M")
        print(f"  {local:>5}  {p.intake_mg:9.0f}  {p.body_mg:7.0f}  {p.blood_mg_per_l:6.3f}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Quantified-self insights")
    sub = parser.add_subparsers(dest="command", required=True)

    disc = sub.add_parser("discover", help="Find significant correlations in daily metrics")
    disc.add_argument("--csv", required=True, help="Per-day CSV, columns named by metric key")
    disc.add_argument("--days", type=int, default=config.DISCOVERY_DAYS,
                      help=f"Window length in days (default: {config.DISCOVERY_DAYS})")
    disc.add_argument("--p-value", type=float, default=config.DISCOVERY_P_VALUE,
                      help=f"Maximum p-value (default: {config.DISCOVERY_P_VALUE})")
    disc.add_argument("--min-abs-r", type=float, default=config.DISCOVERY_MIN_ABS_R,
                      help=f"Minimum |r| (default: {config.DISCOVERY_MIN_ABS_R})")
    disc.add_argument("--end-date", default=None,
                      help="Last day of the window, YYYY-MM-DD (default: latest row)")
    disc.add_argument("--tz", default=config.LOCAL_TZ,
                      help="Zone for timezone-aware dates (default: %(default)s)")
    disc.add_argument("--json", action="store_true", help="Print JSON instead of the digest")
    disc.set_defaults(func=run_discover)

    caf = sub.add_parser("caffeine", help="Model one day's caffeine curve")
    caf.add_argument("--events", required=True, help="Brew-event CSV")
    caf.add_argument("--date", required=True, help="Local day, YYYY-MM-DD")
    caf.add_argument("--resolution", type=float, default=60,
                     help="Grid step in minutes (default: 60)")
    caf.add_argument("--tz", default=config.LOCAL_TZ,
                     help="IANA zone of the local day (default: %(default)s)")
    caf.add_argument("--half-life", type=float, default=None,
                     help="Override BODY_HALF_LIFE_H (hours)")
    caf.add_argument("--json", action="store_true", help="Print JSON instead of a table")
    caf.set_defaults(func=run_caffeine)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except ValueError as e:
        log.error("%s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
