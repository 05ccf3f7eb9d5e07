"""Configuration loaded from .env"""

from __future__ import annotations

import os

from dotenv import load_dotenv

load_dotenv()


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value == value else default  # NaN -> default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    try:
        return int(raw) if raw and raw.strip() else default
    except ValueError:
        return default


# Calendar used for day keys and hour-aligned caffeine grids
LOCAL_TZ = os.getenv("INSIGHTS_TIMEZONE", "Europe/Berlin")

# Correlation discovery defaults
DISCOVERY_DAYS = _env_int("DISCOVERY_DAYS", 90)
DISCOVERY_P_VALUE = _env_float("DISCOVERY_P_VALUE", 0.1)
DISCOVERY_MIN_ABS_R = _env_float("DISCOVERY_MIN_ABS_R", 0.3)

# Body profile fallback (used when the host supplies none)
BODY_WEIGHT_KG = _env_float("BODY_WEIGHT_KG", 75.0)
BODY_VD_L_PER_KG = _env_float("BODY_VD_L_PER_KG", 0.6)
BODY_HALF_LIFE_H = _env_float("BODY_HALF_LIFE_H", 5.0)
BODY_CAFFEINE_SENSITIVITY = _env_float("BODY_CAFFEINE_SENSITIVITY", 1.0)
BODY_BIOAVAILABILITY = _env_float("BODY_BIOAVAILABILITY", 0.9)
