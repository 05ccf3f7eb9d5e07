"""
Shared test configuration.

Adds src/ to sys.path so the flat modules (correlation_engine,
daily_metrics, caffeine_model, ...) and the analytics package import
with plain `import module_name`, exactly as they do when run from src/.
"""

import os
import sys
from datetime import date, timedelta

import pytest

_project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
_src_dir = os.path.join(_project_root, "src")

if _src_dir not in sys.path:
    sys.path.insert(0, _src_dir)


def _day_keys(n, start=date(2024, 1, 1)):
    return [(start + timedelta(days=i)).isoformat() for i in range(n)]


@pytest.fixture
def day_keys():
    """Factory: n consecutive YYYY-MM-DD keys starting 2024-01-01."""
    return _day_keys


@pytest.fixture
def make_records():
    """Factory: DailyRecords for consecutive days from per-metric value lists."""
    from daily_metrics import DailyRecord

    def _make(**series):
        n = max(len(v) for v in series.values())
        return [
            DailyRecord(d, {k: v[i] for k, v in series.items() if i < len(v)})
            for i, d in enumerate(_day_keys(n))
        ]

    return _make
