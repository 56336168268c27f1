import unittest
import sys
import os

# Add the parent directory to the path so we can import the modules
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from decimal import Decimal

import analytical_core as core
from cases import MAX_AMOUNT, MAX_DAYS, InvalidTripError, TripRecord, load_cases
from estimator import EXACT, FALLBACK, NEIGHBORS, NearestRecordEstimator, extrapolate
from reference_index import ReferenceIndex
from variants import VARIANTS, resolve_cfg

FIXTURE = os.path.join(os.path.dirname(__file__), 'fixtures', 'sample_cases.json')


class TestReferenceIndex(unittest.TestCase):

    def setUp(self):
        self.index = ReferenceIndex(load_cases(FIXTURE))

    def test_exact_lookup_rounds_receipts(self):
        self.assertEqual(self.index.exact(3, 93, 1.42).expected_output, 494.63)
        self.assertEqual(self.index.exact(3, 93, 0.6).expected_output, 494.63)
        self.assertIsNone(self.index.exact(3, 93, 1.5))
        self.assertIsNone(self.index.exact(3, 94, 1.42))

    def test_later_record_wins_on_duplicate_key(self):
        index = ReferenceIndex([TripRecord(2, 10, 5.2, 100.0), TripRecord(2, 10, 4.9, 200.0)])
        self.assertEqual(index.exact(2, 10, 5).expected_output, 200.0)

    def test_nearest_order(self):
        found = self.index.nearest(8, 266, 252.08, k=3)
        self.assertEqual(len(found), 3)
        self.assertEqual(found[0].record.expected_output, 880.41)
        self.assertAlmostEqual(found[0].distance, 0.087)
        self.assertEqual([n.distance for n in found], sorted(n.distance for n in found))

    def test_ties_keep_dataset_order(self):
        index = ReferenceIndex([TripRecord(1, 10, 0, 1.0), TripRecord(1, 30, 0, 2.0)])
        found = index.nearest(1, 20, 0, k=2)
        self.assertEqual([n.record.expected_output for n in found], [1.0, 2.0])

    def test_without_and_subset(self):
        self.assertEqual(len(self.index.without([0, 1])), 15)
        self.assertIsNone(self.index.without([5]).exact(3, 93, 1.42))
        sub = self.index.subset([5])
        self.assertEqual(len(sub), 1)
        self.assertEqual(sub.cases[0].expected_output, 494.63)


class TestExactPath(unittest.TestCase):

    def setUp(self):
        self.est = NearestRecordEstimator.from_cases(load_cases(FIXTURE))

    def test_known_case(self):
        p = self.est.explain(3, 93, 1.42)
        self.assertEqual(p.path, EXACT)
        self.assertEqual(p.value, 494.63)

    def test_every_reference_record_is_returned_verbatim(self):
        for c in load_cases(FIXTURE):
            self.assertEqual(self.est.predict(*c.inputs), c.expected_output)

    def test_string_input(self):
        self.assertEqual(self.est.predict("3", "93", "1.42"), 494.63)


class TestNeighborPath(unittest.TestCase):

    def test_extrapolates_from_closest(self):
        est = NearestRecordEstimator.from_cases(load_cases(FIXTURE))
        p = est.explain(8, 266, 252.08)
        self.assertEqual(p.path, NEIGHBORS)
        self.assertEqual(len(p.neighbors), 1)
        # 880.41 - 0.87 * 0.30
        self.assertAlmostEqual(p.value, 880.15, places=2)

    def test_day_adjustment(self):
        cfg = resolve_cfg(overrides={"w_days": 1.0})
        rec = TripRecord(5, 100, 100, 700.0)
        # 700 + 1 * (700 / 5) * 0.8
        self.assertAlmostEqual(extrapolate(rec, 6, 100, 100, cfg), 812.0)

    def test_receipt_rate_tiers(self):
        cfg = resolve_cfg()
        rec = TripRecord(5, 100, 1000, 700.0)
        self.assertAlmostEqual(extrapolate(rec, 5, 100, 400, cfg), 700.0 - 600 * 0.5)
        self.assertAlmostEqual(extrapolate(rec, 5, 100, 1100, cfg), 700.0 + 100 * 0.4)
        self.assertAlmostEqual(extrapolate(rec, 5, 100, 1600, cfg), 700.0 + 600 * 0.2)

    def test_inverse_distance_average(self):
        cases = [TripRecord(5, 100, 100, 700.0), TripRecord(5, 110, 100, 710.0)]
        cfg = resolve_cfg(overrides={"combine": "idw", "k": 2})
        p = NearestRecordEstimator.from_cases(cases, cfg).explain(5, 105, 100)
        self.assertEqual(p.path, NEIGHBORS)
        self.assertEqual(len(p.neighbors), 2)
        # (701.5 + 708.5) / 2 with equal weights
        self.assertAlmostEqual(p.value, 705.0)

    def test_full_shrinkage_is_the_fallback(self):
        cases = [TripRecord(5, 100, 100, 700.0)]
        cfg = resolve_cfg(overrides={"shrinkage": 1.0})
        p = NearestRecordEstimator.from_cases(cases, cfg).explain(5, 101, 100)
        self.assertEqual(p.path, NEIGHBORS)
        self.assertEqual(p.value, core.analytic_pred(5, 101, 100, cfg))

    def test_clamped_to_upper_bound(self):
        est = NearestRecordEstimator.from_cases([TripRecord(1, 0, 0, 5000.0)])
        p = est.explain(1, 1, 0)
        self.assertEqual(p.path, NEIGHBORS)
        self.assertEqual(p.value, 600.0)

    def test_clamped_to_lower_bound(self):
        est = NearestRecordEstimator.from_cases([TripRecord(2, 0, 0, 10.0)])
        self.assertEqual(est.predict(2, 1, 0), 70.0)


class TestFallbackPath(unittest.TestCase):

    def setUp(self):
        self.est = NearestRecordEstimator.from_cases(load_cases(FIXTURE))

    def test_unseen_high_mileage_four_day_trip(self):
        p = self.est.explain(4, 862, 2335.55)
        self.assertEqual(p.path, FALLBACK)
        self.assertIn("high_efficiency", p.branches)
        lo, hi = self.est.bounds(4, 2335.55)
        self.assertLessEqual(lo, p.value)
        self.assertLessEqual(p.value, hi)

    def test_far_from_everything(self):
        p = self.est.explain(14, 10, 10)
        self.assertEqual(p.path, FALLBACK)
        self.assertEqual(p.neighbors, ())


class TestStructuralProperties(unittest.TestCase):

    QUERIES = [
        (1, 0, 0), (1, 1200, 2500), (2, 55.5, 19.99), (4, 862, 2335.55),
        (5, 200, 1000), (6, 135.5, 1144.1), (8, 276, 1179.95), (12, 350, 750),
        (14, 1100, 2400), (3, 1317, 476.9),
    ]

    def test_bounds_hold_for_every_variant(self):
        cases = load_cases(FIXTURE)
        for name in VARIANTS:
            est = NearestRecordEstimator.from_cases(cases, resolve_cfg(name))
            for q in self.QUERIES:
                with self.subTest(variant=name, query=q):
                    p = est.explain(*q)
                    if p.path == EXACT:
                        continue
                    lo, hi = est.bounds(q[0], q[2])
                    self.assertLessEqual(lo, p.value)
                    self.assertLessEqual(p.value, hi)

    def test_quantized_and_idempotent(self):
        est = NearestRecordEstimator.from_cases(load_cases(FIXTURE), resolve_cfg("robust_idw"))
        for q in self.QUERIES:
            first = est.predict(*q)
            self.assertEqual(first, est.predict(*q))
            self.assertGreaterEqual(Decimal(str(first)).as_tuple().exponent, -2)

    def test_invalid_query(self):
        est = NearestRecordEstimator.from_cases(load_cases(FIXTURE))
        with self.assertRaises(InvalidTripError):
            est.predict(0, 100, 100)
        with self.assertRaises(InvalidTripError):
            est.predict(3, -5, 100)
        with self.assertRaises(InvalidTripError):
            est.predict(1, 0, 1e30)
        with self.assertRaises(InvalidTripError):
            est.predict(10 ** 27, 0, 0)

    def test_largest_accepted_query(self):
        est = NearestRecordEstimator.from_cases([TripRecord(3, 93, 1.42, 494.63)])
        p = est.explain(MAX_DAYS, MAX_AMOUNT, MAX_AMOUNT)
        self.assertEqual(p.path, FALLBACK)
        lo, hi = est.bounds(MAX_DAYS, MAX_AMOUNT)
        self.assertLessEqual(lo, p.value)
        self.assertLessEqual(p.value, hi)


if __name__ == '__main__':
    unittest.main()
