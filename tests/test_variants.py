import unittest
import sys
import os
import json
import tempfile

# Add the parent directory to the path so we can import the modules
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from cases import ConfigError
from variants import DEFAULTS, VARIANTS, dump_cfg, resolve_cfg, validate_cfg


class TestResolveCfg(unittest.TestCase):

    def test_defaults_are_valid(self):
        self.assertEqual(resolve_cfg(), DEFAULTS)

    def test_every_variant_resolves(self):
        for name in VARIANTS:
            with self.subTest(variant=name):
                cfg = resolve_cfg(name)
                for key, value in VARIANTS[name].items():
                    self.assertEqual(cfg[key], value)

    def test_unknown_variant(self):
        with self.assertRaises(ConfigError):
            resolve_cfg("quantum_zero")

    def test_overrides_win(self):
        cfg = resolve_cfg("pattern_matcher", overrides={"k": 3})
        self.assertEqual(cfg["k"], 3)
        self.assertEqual(cfg["combine"], "idw")

    def test_file_between_variant_and_overrides(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "cfg.json")
            with open(path, "w") as f:
                json.dump({"k": 9.0, "mile_rate": 0.4}, f)
            cfg = resolve_cfg("robust_idw", path, {"mile_rate": 0.45})
        self.assertEqual(cfg["k"], 9)
        self.assertIsInstance(cfg["k"], int)
        self.assertEqual(cfg["mile_rate"], 0.45)
        self.assertEqual(cfg["combine"], "idw")

    def test_dump_then_resolve(self):
        cfg = resolve_cfg("conservative")
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "tuned.json")
            dump_cfg(cfg, path)
            self.assertEqual(resolve_cfg(path=path), cfg)

    def test_missing_file(self):
        with self.assertRaises(ConfigError):
            resolve_cfg(path="/nonexistent/cfg.json")

    def test_file_must_be_object(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "cfg.json")
            with open(path, "w") as f:
                f.write("[1, 2]")
            with self.assertRaises(ConfigError):
                resolve_cfg(path=path)


class TestValidateCfg(unittest.TestCase):

    def bad(self, **overrides):
        cfg = dict(DEFAULTS)
        cfg.update(overrides)
        with self.assertRaises(ConfigError):
            validate_cfg(cfg)

    def test_unknown_key(self):
        self.bad(jitter=0.01)

    def test_missing_key(self):
        cfg = dict(DEFAULTS)
        del cfg["k"]
        with self.assertRaises(ConfigError):
            validate_cfg(cfg)

    def test_non_numeric(self):
        self.bad(mile_rate="0.3")
        self.bad(k=True)
        self.bad(base=float("nan"))

    def test_combine_mode(self):
        self.bad(combine="vote")

    def test_k(self):
        self.bad(k=0)
        self.bad(k=2.5)

    def test_shrinkage_range(self):
        self.bad(shrinkage=1.5)
        self.bad(shrinkage=-0.1)

    def test_negative_rate(self):
        self.bad(receipt_c2=-0.1)
        self.bad(w_days=-1.0)

    def test_thresholds_ordered(self):
        self.bad(receipt_t1=1500.0, receipt_t2=800.0)
        self.bad(interp_lo_threshold=2000.0)

    def test_bounds_ordered(self):
        self.bad(min_per_day=700.0)

    def test_conservative_factor(self):
        self.bad(conservative_factor=0.0)

    def test_efficiency_penalty_steeper_than_mileage(self):
        self.bad(eff_rate=0.5)

    def test_high_receipt_adjustment_steeper_than_tier(self):
        # the historical -0.2 against a 0.10 third tier
        self.bad(hr_rate=-0.2)

    def test_high_receipt_threshold_inside_second_tier(self):
        self.bad(hr_threshold=1000.0, hr_rate=-0.2)
        cfg = dict(DEFAULTS, hr_threshold=1000.0, hr_rate=-0.1)
        self.assertIs(validate_cfg(cfg), cfg)


if __name__ == '__main__':
    unittest.main()
