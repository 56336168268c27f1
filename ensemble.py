"""
ensemble.py  –  weighted vote over several variant estimators.

Every member shares one ReferenceIndex.  A query that hits the exact map is
answered verbatim; anything else is the weighted mean of the members
(nearest-record variants plus an optional least-squares line), falling back
to the plain median when the members disagree wildly.  The result is
clamped to the base config's bounds and rounded to cents, like every other
path.
"""
from __future__ import annotations

import logging

import numpy as np
from sklearn.linear_model import LinearRegression

import analytical_core as core
from cases import cases_to_arrays, validate_trip
from estimator import EXACT, NearestRecordEstimator, Prediction
from reference_index import ReferenceIndex
from variants import ENSEMBLES, LINEAR, resolve_cfg, validate_weights

logger = logging.getLogger(__name__)

ENSEMBLE = "ensemble"

# relative spread (std / mean) above which the median replaces the mean
DISAGREEMENT = 0.5


class LinearBaseline:
    """reimbursement ~ 1 + days + miles + receipts, fitted on an index."""

    def __init__(self, index: ReferenceIndex):
        X, y = cases_to_arrays(list(index.cases))
        model = LinearRegression().fit(X, y)
        self.intercept = float(model.intercept_)
        self.coef = np.asarray(model.coef_, float)

    def predict(self, days, miles, receipts) -> float:
        return self.intercept + float(self.coef @ np.array([days, miles, receipts], float))


class EnsembleEstimator:
    def __init__(self, index: ReferenceIndex, weights: dict, cfg: dict | None = None,
                 member_cfgs: dict | None = None):
        self.index = index
        self.weights = {k: float(w) for k, w in validate_weights(dict(weights)).items() if w > 0}
        self.cfg = resolve_cfg() if cfg is None else resolve_cfg(overrides=cfg)
        if member_cfgs is None:
            member_cfgs = {name: resolve_cfg(name) for name in self.weights if name != LINEAR}
        self.member_cfgs = member_cfgs
        self.members = {}
        for name in self.weights:
            if name == LINEAR:
                self.members[name] = LinearBaseline(index)
            else:
                self.members[name] = NearestRecordEstimator(index, member_cfgs[name])

    @classmethod
    def from_cases(cls, cases, weights, cfg=None):
        return cls(ReferenceIndex(cases), weights, cfg)

    def with_index(self, index: ReferenceIndex) -> "EnsembleEstimator":
        return EnsembleEstimator(index, self.weights, self.cfg, self.member_cfgs)

    def votes(self, days, miles, receipts) -> dict:
        return {name: m.predict(days, miles, receipts) for name, m in self.members.items()}

    def explain(self, days, miles, receipts) -> Prediction:
        days, miles, receipts = validate_trip(days, miles, receipts)

        hit = self.index.exact(days, miles, receipts)
        if hit is not None:
            return Prediction(core.round_currency(hit.expected_output), EXACT)

        votes = self.votes(days, miles, receipts)
        values = np.array(list(votes.values()), float)
        w = np.array([self.weights[name] for name in votes], float)
        value = float(np.dot(w, values) / w.sum())
        mean = float(values.mean())
        if mean > 0 and float(values.std()) > DISAGREEMENT * mean:
            value = float(np.median(values))

        value = core.round_currency(core.clamp(value, days, receipts, self.cfg))
        logger.debug("ensemble %s,%s,%s -> %.2f %s", days, miles, receipts, value, votes)
        return Prediction(value, ENSEMBLE)

    def predict(self, days, miles, receipts) -> float:
        return self.explain(days, miles, receipts).value

    def bounds(self, days, receipts) -> tuple[float, float]:
        days, _, receipts = validate_trip(days, 0, receipts)
        return core.bounds(days, receipts, self.cfg)


def build_estimator(cases, variant="smart_hybrid", cfg_path=None):
    """Estimator for any --variant name; ``cfg_path`` layers onto every member."""
    index = ReferenceIndex(cases)
    if variant in ENSEMBLES:
        weights = ENSEMBLES[variant]
        member_cfgs = {name: resolve_cfg(name, cfg_path) for name in weights if name != LINEAR}
        return EnsembleEstimator(index, weights, resolve_cfg(path=cfg_path), member_cfgs)
    return NearestRecordEstimator(index, resolve_cfg(variant, cfg_path))
