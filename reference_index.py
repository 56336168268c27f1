"""
reference_index.py  –  lookup structures over the reference records.

Two views of the same immutable case list:

* an exact map keyed on (days, miles, round_half_up(receipts));
* numpy columns for weighted-L1 neighbor search.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from analytical_core import round_half_up
from cases import TripRecord, DatasetError, cases_to_arrays

logger = logging.getLogger(__name__)


def exact_key(days, miles, receipts) -> tuple[int, float, int]:
    return int(days), float(miles), round_half_up(receipts)


@dataclass(frozen=True)
class Neighbor:
    record: TripRecord
    distance: float


class ReferenceIndex:
    def __init__(self, cases: list[TripRecord]):
        if not cases:
            raise DatasetError("reference index needs at least one case")
        self.cases = tuple(cases)
        # later records overwrite earlier ones that share a key
        self._exact = {exact_key(*c.inputs): c for c in self.cases}
        X, y = cases_to_arrays(list(self.cases))
        self._days, self._miles, self._receipts = X[:, 0], X[:, 1], X[:, 2]
        self._outputs = y
        logger.debug("index built: %d cases, %d exact keys", len(self.cases), len(self._exact))

    def __len__(self):
        return len(self.cases)

    def exact(self, days, miles, receipts) -> TripRecord | None:
        return self._exact.get(exact_key(days, miles, receipts))

    def distances(self, days, miles, receipts, w_days, w_miles, w_receipts) -> np.ndarray:
        return (w_days * np.abs(self._days - days)
                + w_miles * np.abs(self._miles - miles)
                + w_receipts * np.abs(self._receipts - receipts))

    def nearest(self, days, miles, receipts, k, w_days=100.0, w_miles=0.1, w_receipts=0.5) -> list[Neighbor]:
        """k closest records, nearest first; ties keep dataset order."""
        dist = self.distances(days, miles, receipts, w_days, w_miles, w_receipts)
        order = np.argsort(dist, kind="stable")[:k]
        return [Neighbor(self.cases[i], float(dist[i])) for i in order]

    def without(self, positions) -> "ReferenceIndex":
        """New index without the records at the given positions."""
        drop = set(int(i) for i in positions)
        return ReferenceIndex([c for i, c in enumerate(self.cases) if i not in drop])

    def subset(self, positions) -> "ReferenceIndex":
        return ReferenceIndex([self.cases[int(i)] for i in positions])
