"""
variants.py  –  parameter sets for the estimator.

All knobs live in one flat dict.  NAME_ORDER lists the numeric fallback
coefficients that tune_cfg.py searches over; the remaining keys drive the
neighbor search.  VARIANTS are named overrides on top of DEFAULTS.
"""
from __future__ import annotations

import json
import math
from pathlib import Path

from cases import ConfigError

NAME_ORDER = [
    # per-diem and mileage
    "inverse", "base", "mile_rate",
    # receipt tiers
    "receipt_t1", "receipt_t2", "receipt_c1", "receipt_c2", "receipt_c3",
    # adjustments
    "hr_threshold", "hr_rate", "eff_threshold", "eff_rate",
    "conservative_factor",
    # bounds
    "min_per_day", "max_per_day", "cap_rate", "receipt_cap",
]

DEFAULTS = {
    "inverse": 400.0, "base": 50.0, "mile_rate": 0.30,
    "receipt_t1": 800.0, "receipt_t2": 1500.0,
    "receipt_c1": 0.50, "receipt_c2": 0.35, "receipt_c3": 0.10,
    "hr_threshold": 1800.0, "hr_rate": -0.10, "short_trip_days": 4,
    "eff_threshold": 200.0, "eff_rate": 0.05, "eff_max_days": 5,
    "conservative_factor": 0.9,
    "min_per_day": 35.0, "max_per_day": 600.0,
    "cap_rate": 0.2, "receipt_cap": 400.0,
    # neighbor search
    "k": 5, "max_distance": 50.0,
    "w_days": 100.0, "w_miles": 0.1, "w_receipts": 0.5,
    "combine": "extrapolate", "shrinkage": 0.0,
    # local rates used to move a neighbor's output onto the query
    "day_factor": 0.8, "interp_mile_rate": 0.30,
    "interp_lo_threshold": 500.0, "interp_hi_threshold": 1500.0,
    "interp_receipt_lo": 0.5, "interp_receipt_mid": 0.4, "interp_receipt_hi": 0.2,
}

COMBINE_MODES = ("extrapolate", "idw")

VARIANTS = {
    "smart_hybrid": {},
    "pattern_matcher": {
        "k": 10, "max_distance": 5.0, "combine": "idw",
        "inverse": 800.0, "base": 70.0, "mile_rate": 0.50,
        "conservative_factor": 1.0,
    },
    "adaptive_learner": {
        "max_distance": 0.0,
        "conservative_factor": 1.0,
        "eff_rate": 0.0,
    },
    "robust_idw": {
        "k": 7, "max_distance": 120.0, "combine": "idw",
        "w_miles": 0.05, "w_receipts": 0.25,
        "shrinkage": 0.1,
    },
    "conservative": {
        "max_distance": 25.0, "shrinkage": 0.25,
        "conservative_factor": 0.85,
        "min_per_day": 50.0, "max_per_day": 450.0,
    },
}

# weighted votes over named variants; LINEAR is a least-squares fit on the index
LINEAR = "linear"

ENSEMBLES = {
    "ensemble": {
        "smart_hybrid": 0.30, "robust_idw": 0.25,
        "pattern_matcher": 0.15, "conservative": 0.15,
        "adaptive_learner": 0.05, LINEAR: 0.10,
    },
}

_INT_KEYS = {"k", "short_trip_days", "eff_max_days"}


def variant_names() -> list[str]:
    """Everything --variant accepts: single configs, then ensembles."""
    return sorted(VARIANTS) + sorted(ENSEMBLES)


def validate_weights(weights: dict) -> dict:
    if not weights:
        raise ConfigError("an ensemble needs at least one member")
    for name, w in weights.items():
        if name != LINEAR and name not in VARIANTS:
            raise ConfigError(f"unknown ensemble member {name!r}")
        if isinstance(w, bool) or not isinstance(w, (int, float)) or not math.isfinite(w) or w < 0:
            raise ConfigError(f"weight for {name} must be a finite number >= 0, got {w!r}")
    if sum(weights.values()) <= 0:
        raise ConfigError("ensemble weights must not all be zero")
    return weights


def validate_cfg(cfg: dict) -> dict:
    """Raise ConfigError for anything that would break the estimator's guarantees."""
    unknown = set(cfg) - set(DEFAULTS)
    if unknown:
        raise ConfigError(f"unknown config keys: {sorted(unknown)}")
    missing = set(DEFAULTS) - set(cfg)
    if missing:
        raise ConfigError(f"missing config keys: {sorted(missing)}")

    for key, v in cfg.items():
        if key == "combine":
            continue
        if isinstance(v, bool) or not isinstance(v, (int, float)) or not math.isfinite(v):
            raise ConfigError(f"{key} must be a finite number, got {v!r}")

    if cfg["combine"] not in COMBINE_MODES:
        raise ConfigError(f"combine must be one of {COMBINE_MODES}, got {cfg['combine']!r}")
    for key in _INT_KEYS:
        if cfg[key] != int(cfg[key]):
            raise ConfigError(f"{key} must be a whole number, got {cfg[key]}")
    if cfg["k"] < 1:
        raise ConfigError("k must be >= 1")
    if not 0.0 <= cfg["shrinkage"] <= 1.0:
        raise ConfigError("shrinkage must lie in [0, 1]")
    if cfg["conservative_factor"] <= 0:
        raise ConfigError("conservative_factor must be > 0")

    nonneg = [
        "mile_rate", "receipt_t1", "receipt_c1", "receipt_c2", "receipt_c3",
        "eff_rate", "eff_threshold", "min_per_day", "max_per_day",
        "cap_rate", "receipt_cap", "max_distance",
        "w_days", "w_miles", "w_receipts", "day_factor", "interp_mile_rate",
    ]
    for key in nonneg:
        if cfg[key] < 0:
            raise ConfigError(f"{key} must be >= 0, got {cfg[key]}")

    if cfg["receipt_t1"] >= cfg["receipt_t2"]:
        raise ConfigError("receipt_t1 must be below receipt_t2")
    if cfg["interp_lo_threshold"] > cfg["interp_hi_threshold"]:
        raise ConfigError("interp_lo_threshold must not exceed interp_hi_threshold")
    if cfg["min_per_day"] > cfg["max_per_day"]:
        raise ConfigError("min_per_day must not exceed max_per_day")

    # days >= 1, so the efficiency slope per mile is at most eff_rate
    if cfg["eff_rate"] > cfg["mile_rate"]:
        raise ConfigError("eff_rate above mile_rate makes the total fall as miles grow")

    # every receipt segment above hr_threshold must keep a non-negative slope
    tiers = [
        (cfg["receipt_t1"], cfg["receipt_c1"]),
        (cfg["receipt_t2"], cfg["receipt_c2"]),
        (math.inf, cfg["receipt_c3"]),
    ]
    for upper, slope in tiers:
        if upper > cfg["hr_threshold"] and slope + cfg["hr_rate"] < 0:
            raise ConfigError("hr_rate makes the receipt contribution decrease")
    return cfg


def _coerce(cfg: dict) -> dict:
    for key in _INT_KEYS:
        if isinstance(cfg.get(key), float) and cfg[key].is_integer():
            cfg[key] = int(cfg[key])
    return cfg


def load_cfg_file(path: Path | str) -> dict:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as exc:
        raise ConfigError(f"config file {path} not found") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"config file {path} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must hold a JSON object")
    return data


def resolve_cfg(variant: str | None = None,
                path: Path | str | None = None,
                overrides: dict | None = None) -> dict:
    """DEFAULTS <- VARIANTS[variant] <- config file <- overrides, validated."""
    cfg = dict(DEFAULTS)
    if variant is not None:
        if variant not in VARIANTS:
            raise ConfigError(f"unknown variant {variant!r}; choose from {sorted(VARIANTS)}")
        cfg.update(VARIANTS[variant])
    if path is not None:
        cfg.update(load_cfg_file(path))
    if overrides:
        cfg.update(overrides)
    return validate_cfg(_coerce(cfg))


def dump_cfg(cfg: dict, path: Path | str):
    with open(path, "w", encoding="utf-8") as f:
        json.dump(cfg, f, indent=2, sort_keys=True)
        f.write("\n")
