"""
estimator.py  –  the nearest-record estimator.

    exact match  →  neighbor interpolation  →  closed-form fallback

Every step is a pure function of the query, the reference index and the
config dict, so repeated calls always agree.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field

import analytical_core as core
from cases import TripRecord, validate_trip
from reference_index import Neighbor, ReferenceIndex
from variants import resolve_cfg, validate_cfg

logger = logging.getLogger(__name__)

EXACT, NEIGHBORS, FALLBACK = "exact", "neighbors", "fallback"


@dataclass(frozen=True)
class Prediction:
    value: float
    path: str
    neighbors: tuple[Neighbor, ...] = field(default=())
    branches: tuple[str, ...] = field(default=())


def receipt_rate(receipts, cfg):
    if receipts < cfg["interp_lo_threshold"]:
        return cfg["interp_receipt_lo"]
    if receipts > cfg["interp_hi_threshold"]:
        return cfg["interp_receipt_hi"]
    return cfg["interp_receipt_mid"]


def extrapolate(record: TripRecord, days, miles, receipts, cfg) -> float:
    """Move a neighbor's output onto the query using local per-unit rates."""
    out = record.expected_output
    if record.days != days:
        out += (days - record.days) * (record.expected_output / record.days) * cfg["day_factor"]
    if record.miles != miles:
        out += (miles - record.miles) * cfg["interp_mile_rate"]
    if record.receipts != receipts:
        out += (receipts - record.receipts) * receipt_rate(receipts, cfg)
    return out


def inverse_distance(neighbors, days, miles, receipts, cfg) -> float:
    num = den = 0.0
    for n in neighbors:
        w = 1.0 / (1.0 + n.distance)
        num += w * extrapolate(n.record, days, miles, receipts, cfg)
        den += w
    return num / den


class NearestRecordEstimator:
    def __init__(self, index: ReferenceIndex, cfg: dict | None = None):
        self.index = index
        self.cfg = validate_cfg(dict(cfg)) if cfg is not None else resolve_cfg()

    @classmethod
    def from_cases(cls, cases, cfg=None):
        return cls(ReferenceIndex(cases), cfg)

    def with_index(self, index: ReferenceIndex) -> "NearestRecordEstimator":
        return NearestRecordEstimator(index, self.cfg)

    def close_neighbors(self, days, miles, receipts) -> tuple[Neighbor, ...]:
        cfg = self.cfg
        found = self.index.nearest(days, miles, receipts, cfg["k"],
                                   cfg["w_days"], cfg["w_miles"], cfg["w_receipts"])
        return tuple(n for n in found if n.distance <= cfg["max_distance"])

    def explain(self, days, miles, receipts) -> Prediction:
        days, miles, receipts = validate_trip(days, miles, receipts)
        cfg = self.cfg

        hit = self.index.exact(days, miles, receipts)
        if hit is not None:
            return Prediction(core.round_currency(hit.expected_output), EXACT)

        branches = core.fallback_branches(days, miles, receipts, cfg)
        fallback = core.raw_fallback(days, miles, receipts, cfg)

        close = self.close_neighbors(days, miles, receipts)
        if close:
            if cfg["combine"] == "idw":
                value = inverse_distance(close, days, miles, receipts, cfg)
            else:
                close = close[:1]
                value = extrapolate(close[0].record, days, miles, receipts, cfg)
            s = cfg["shrinkage"]
            value = (1.0 - s) * value + s * fallback
            value = core.round_currency(core.clamp(value, days, receipts, cfg))
            logger.debug("neighbors(%d) %s,%s,%s -> %.2f", len(close), days, miles, receipts, value)
            return Prediction(value, NEIGHBORS, close)

        value = core.round_currency(core.clamp(fallback, days, receipts, cfg))
        logger.debug("fallback %s,%s,%s -> %.2f %s", days, miles, receipts, value, branches)
        return Prediction(value, FALLBACK, (), branches)

    def predict(self, days, miles, receipts) -> float:
        return self.explain(days, miles, receipts).value

    def bounds(self, days, receipts) -> tuple[float, float]:
        days, _, receipts = validate_trip(days, 0, receipts)
        return core.bounds(days, receipts, self.cfg)
