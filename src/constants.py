"""
Shared constants used across multiple modules.
Single source of truth for brew-type caffeine concentrations.
"""

# Caffeine density per brew type (mg per mL)
DEFAULT_MG_PER_ML = {
    "espresso": 2.1,
    "v60": 0.8,
    "chemex": 0.8,
    "filter": 0.8,
    "moka": 1.6,
    "aero": 1.1,
    "cold_brew": 1.0,
    "other": 1.0,
}

# Poured volume assumed when a brew is logged without an amount (mL)
DEFAULT_SHOT_ML = {
    "espresso": 38,
    "v60": 250,
    "chemex": 300,
    "filter": 250,
    "moka": 60,
    "aero": 200,
    "cold_brew": 250,
    "other": 200,
}

FALLBACK_BREW_TYPE = "other"
