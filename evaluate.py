"""
evaluate.py  –  score an estimator against labeled cases.

In-sample numbers are flattering by construction (every case is an exact
hit), so leave_one_out and cross_validate rebuild the index without the
cases being scored.
"""
from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field

import numpy as np
from sklearn.model_selection import KFold

from cases import DatasetError, TripRecord
from estimator import NearestRecordEstimator, Prediction
from reference_index import ReferenceIndex

logger = logging.getLogger(__name__)


@dataclass
class EvalReport:
    n: int
    exact: int
    close: int
    very_close: int
    mean_error: float
    max_error: float
    score: float
    paths: dict = field(default_factory=dict)
    worst: list = field(default_factory=list)   # (record, predicted, error)
    label: str = "in-sample"


def summarise(cases: list[TripRecord], predicted, paths, worst=5, label="in-sample") -> EvalReport:
    y = np.array([c.expected_output for c in cases], float)
    pred = np.asarray(predicted, float)
    err = np.abs(pred - y)
    n = len(cases)
    exact = int(np.sum(err < 0.01))
    mean_error = float(np.mean(err))
    order = np.argsort(err, kind="stable")[::-1][:worst]
    return EvalReport(
        n=n,
        exact=exact,
        close=int(np.sum(err < 1.0)),
        very_close=int(np.sum(err < 10.0)),
        mean_error=mean_error,
        max_error=float(np.max(err)),
        score=mean_error * 100 + (n - exact) * 0.1,
        paths=dict(Counter(paths)),
        worst=[(cases[i], float(pred[i]), float(err[i])) for i in order],
        label=label,
    )


def evaluate(estimator, cases: list[TripRecord], worst=5) -> EvalReport:
    preds = [estimator.explain(*c.inputs) for c in cases]
    return summarise(cases, [p.value for p in preds], [p.path for p in preds], worst)


def _prototype(index, cfg, estimator):
    # held-out scoring re-points a prototype at each reduced index
    return estimator if estimator is not None else NearestRecordEstimator(index, cfg)


def loo_predictions(cases: list[TripRecord], cfg: dict | None = None, estimator=None) -> list[Prediction]:
    """Predict every case from an index that does not contain it.

    Pass ``estimator`` (anything with ``with_index`` and ``explain``) to score
    something other than a NearestRecordEstimator built from ``cfg``.
    """
    if len(cases) < 2:
        raise DatasetError("leave-one-out needs at least two cases")
    index = ReferenceIndex(cases)
    proto = _prototype(index, cfg, estimator)
    return [proto.with_index(index.without([i])).explain(*c.inputs)
            for i, c in enumerate(cases)]


def leave_one_out(cases: list[TripRecord], cfg: dict | None = None, worst=5, estimator=None) -> EvalReport:
    preds = loo_predictions(cases, cfg, estimator)
    return summarise(cases, [p.value for p in preds], [p.path for p in preds], worst,
                     label="leave-one-out")


def cross_validate(cases: list[TripRecord], cfg: dict | None = None, folds=5, seed=0, worst=5,
                   estimator=None) -> EvalReport:
    if folds < 2:
        raise DatasetError(f"k-fold validation needs at least 2 folds, got {folds}")
    if len(cases) < folds:
        raise DatasetError(f"{folds}-fold validation needs at least {folds} cases")
    index = ReferenceIndex(cases)
    proto = _prototype(index, cfg, estimator)
    values = [0.0] * len(cases)
    paths = [""] * len(cases)
    kf = KFold(n_splits=folds, shuffle=True, random_state=seed)
    for fold, (train_idx, test_idx) in enumerate(kf.split(np.arange(len(cases)))):
        est = proto.with_index(index.subset(train_idx))
        for i in test_idx:
            p = est.explain(*cases[i].inputs)
            values[i], paths[i] = p.value, p.path
        logger.debug("fold %d/%d done (%d held out)", fold + 1, folds, len(test_idx))
    return summarise(cases, values, paths, worst, label=f"{folds}-fold")


def format_report(rep: EvalReport) -> str:
    lines = [
        f"Results ({rep.label})",
        f"  Total cases: {rep.n}",
        f"  Exact matches (±$0.01): {rep.exact} ({rep.exact / rep.n * 100:.1f}%)",
        f"  Close matches (±$1.00): {rep.close} ({rep.close / rep.n * 100:.1f}%)",
        f"  Very close (±$10.00):   {rep.very_close} ({rep.very_close / rep.n * 100:.1f}%)",
        f"  Average error: ${rep.mean_error:.2f}",
        f"  Maximum error: ${rep.max_error:.2f}",
        f"  Score: {rep.score:.2f} (lower is better)",
        "",
        "Paths taken:",
    ]
    shown = ["exact", "neighbors", "fallback"]
    shown += sorted(set(rep.paths) - set(shown))
    for path in shown:
        cnt = rep.paths.get(path, 0)
        lines.append(f"  {path:<10} {cnt:>5} ({cnt / rep.n * 100:.1f}%)")
    if rep.worst:
        lines += ["", f"Top {len(rep.worst)} high-error cases:"]
        for rec, pred, err in rep.worst:
            lines.append(f"  {rec.days} days, {rec.miles:g} miles, ${rec.receipts:.2f}")
            lines.append(f"    Expected: ${rec.expected_output:.2f}, Got: ${pred:.2f}, Error: ${err:.2f}")
    return "\n".join(lines)
