"""
cases.py  –  trip records, the JSON case file, and input validation.

A case file is a JSON array of records like
{
  "input": {
    "trip_duration_days": 3,
    "miles_traveled": 93,
    "total_receipts_amount": 1.42
  },
  "expected_output": 494.63
}
"""
from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from pathlib import Path

import numpy as np

logger = logging.getLogger(__name__)

DEFAULT_CASES = Path("public_cases.json")

# largest accepted query; the reference data tops out around 14 days / $2.5k
MAX_DAYS = 1000
MAX_AMOUNT = 1_000_000.0


class ReimbursementError(Exception):
    """Base class for everything this package raises on purpose."""


class InvalidTripError(ReimbursementError, ValueError):
    pass


class ConfigError(ReimbursementError, ValueError):
    pass


class DatasetError(ReimbursementError):
    pass


@dataclass(frozen=True)
class TripRecord:
    days: int
    miles: float
    receipts: float
    expected_output: float

    @property
    def inputs(self) -> tuple[int, float, float]:
        return self.days, self.miles, self.receipts


def validate_trip(days, miles, receipts) -> tuple[int, float, float]:
    """Normalise a (days, miles, receipts) query or raise InvalidTripError.

    Days must be a whole number in [1, MAX_DAYS]; 3.0 is accepted as 3.
    Miles and receipts must lie in [0, MAX_AMOUNT].
    """
    for name, v in (("days", days), ("miles", miles), ("receipts", receipts)):
        if isinstance(v, bool):
            raise InvalidTripError(f"{name} must be a number, got {v!r}")
    try:
        d, m, r = float(days), float(miles), float(receipts)
    except (TypeError, ValueError) as exc:
        raise InvalidTripError(f"non-numeric trip input: {exc}") from exc

    for name, v in (("days", d), ("miles", m), ("receipts", r)):
        if not math.isfinite(v):
            raise InvalidTripError(f"{name} must be finite, got {v}")
    if d != int(d):
        raise InvalidTripError(f"days must be a whole number, got {days}")
    if d < 1:
        raise InvalidTripError(f"days must be >= 1, got {days}")
    if m < 0:
        raise InvalidTripError(f"miles must be >= 0, got {miles}")
    if r < 0:
        raise InvalidTripError(f"receipts must be >= 0, got {receipts}")
    if d > MAX_DAYS:
        raise InvalidTripError(f"days must be <= {MAX_DAYS}, got {days}")
    if m > MAX_AMOUNT or r > MAX_AMOUNT:
        raise InvalidTripError(f"miles and receipts must be <= {MAX_AMOUNT:,.0f}")
    return int(d), m, r


def parse_case(raw: dict) -> TripRecord:
    try:
        inp = raw["input"]
        days, miles, receipts = validate_trip(
            inp["trip_duration_days"],
            inp["miles_traveled"],
            inp["total_receipts_amount"],
        )
        output = float(raw["expected_output"])
    except (KeyError, TypeError) as exc:
        raise DatasetError(f"malformed case record {raw!r}") from exc
    except InvalidTripError as exc:
        raise DatasetError(f"invalid case record {raw!r}: {exc}") from exc
    return TripRecord(days, miles, receipts, output)


def load_cases(json_path: Path | str = DEFAULT_CASES) -> list[TripRecord]:
    json_path = Path(json_path)
    try:
        with open(json_path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except FileNotFoundError as exc:
        raise DatasetError(f"{json_path} not found") from exc
    except json.JSONDecodeError as exc:
        raise DatasetError(f"{json_path} is not valid JSON: {exc}") from exc

    if not isinstance(raw, list) or not raw:
        raise DatasetError(f"{json_path} must hold a non-empty JSON array")

    cases = [parse_case(c) for c in raw]
    logger.debug("loaded %d cases from %s", len(cases), json_path)
    return cases


def cases_to_arrays(cases: list[TripRecord]):
    """Return X (n×3: days, miles, receipts) and y (n,) as float arrays."""
    X = np.array([c.inputs for c in cases], float).reshape(-1, 3)
    y = np.array([c.expected_output for c in cases], float)
    return X, y
