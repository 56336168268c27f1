#!/usr/bin/env python3
"""
model_optimize.py  –  Optuna search over the neighbor-search settings.

Usage
-----
    python model_optimize.py public_cases.json \
        [--n_trials 100] [--timeout 600] [--seed 0] [-o best.json]

    • Each trial builds the reference index from a training split and is
      scored on the held‑out split, so the exact‑match path cannot hide the
      error.
    • The fallback coefficients come from --variant / --cfg and stay fixed;
      tune those with tune_cfg.py.

Runtime dependencies
--------------------
* optuna ≥ 3.6
* scikit‑learn ≥ 1.3
* numpy
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

import numpy as np
import optuna
from sklearn.metrics import mean_absolute_error
from sklearn.model_selection import train_test_split

from cases import ReimbursementError, ConfigError, load_cases
from estimator import NearestRecordEstimator
from variants import COMBINE_MODES, VARIANTS, dump_cfg, resolve_cfg, validate_cfg


# ────────────────────────────── Helpers ─────────────────────────────────────

def split_cases(cases, test_size=0.2, seed=0):
    idx = np.arange(len(cases))
    tr, va = train_test_split(idx, test_size=test_size, random_state=seed)
    return [cases[i] for i in tr], [cases[i] for i in va]


def holdout_mae(train, valid, cfg) -> float:
    est = NearestRecordEstimator.from_cases(train, cfg)
    pred = [est.predict(*c.inputs) for c in valid]
    return float(mean_absolute_error([c.expected_output for c in valid], pred))


def suggest_params(trial) -> dict:
    return dict(
        k=trial.suggest_int("k", 1, 25),
        max_distance=trial.suggest_float("max_distance", 0.0, 300.0),
        w_days=trial.suggest_float("w_days", 1.0, 200.0, log=True),
        w_miles=trial.suggest_float("w_miles", 0.01, 2.0, log=True),
        w_receipts=trial.suggest_float("w_receipts", 0.01, 2.0, log=True),
        combine=trial.suggest_categorical("combine", list(COMBINE_MODES)),
        shrinkage=trial.suggest_float("shrinkage", 0.0, 0.5),
    )


# ─────────────────────── Hyper‑parameter optimisation ──────────────────────

def run_optuna(train, valid, base_cfg: dict, n_trials: int, timeout: int | None, seed: int,
               show_progress_bar=False):
    def objective(trial):
        cfg = dict(base_cfg)
        cfg.update(suggest_params(trial))
        try:
            validate_cfg(cfg)
        except ConfigError:
            raise optuna.TrialPruned()
        return holdout_mae(train, valid, cfg)

    study = optuna.create_study(direction="minimize", sampler=optuna.samplers.TPESampler(seed=seed))
    study.optimize(objective, n_trials=n_trials, timeout=timeout, show_progress_bar=show_progress_bar)
    return study


# ───────────────────────────── Main entry‑point ────────────────────────────

def main(argv=None):
    p = argparse.ArgumentParser()
    p.add_argument("json_path", type=Path, help="public_cases.json path")
    p.add_argument("--n_trials", type=int, default=50, help="Optuna trials")
    p.add_argument("--timeout", type=int, default=None, help="Optuna timeout seconds")
    p.add_argument("--seed", type=int, default=0, help="Random seed")
    p.add_argument("--test_size", type=float, default=0.2)
    p.add_argument("--variant", choices=sorted(VARIANTS), default="smart_hybrid")
    p.add_argument("--cfg", type=Path, default=None, help="JSON config to start from")
    p.add_argument("-o", "--out", type=Path, default=None, help="write best config JSON")
    p.add_argument("-v", "--verbose", action="store_true")
    args = p.parse_args(argv)

    if not args.verbose:
        optuna.logging.set_verbosity(optuna.logging.WARNING)

    try:
        cases = load_cases(args.json_path)
        base_cfg = resolve_cfg(args.variant, args.cfg)
    except ReimbursementError as exc:
        sys.exit(f"Error: {exc}")

    train, valid = split_cases(cases, args.test_size, args.seed)
    print(f"Hold-out MAE before search: {holdout_mae(train, valid, base_cfg):.3f}")

    study = run_optuna(train, valid, base_cfg, args.n_trials, args.timeout, args.seed,
                       show_progress_bar=args.verbose)

    print("\nBest Optuna params (val MAE {:.4f}):".format(study.best_value))
    for k, v in study.best_params.items():
        print(f"  {k}: {v}")

    best = dict(base_cfg)
    best.update(study.best_params)
    best = validate_cfg(best)
    if args.out is not None:
        dump_cfg(best, args.out)
        print(f"\nSaved config → {args.out}")


if __name__ == "__main__":
    main()
