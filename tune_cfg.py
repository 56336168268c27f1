#!/usr/bin/env python3
"""
tune_cfg.py  –  lightweight random-search fitter for the fallback formula

Usage
-----
    python tune_cfg.py public_cases.json [--iters 20000] [--folds 5] [-o tuned.json]

    • Searches the NAME_ORDER coefficients only; neighbor settings are left
      alone (see model_optimize.py for those).
    • With --folds K the search is also run once per fold and the
      out‑of‑fold MAE is reported, so the in‑sample number is not the only
      one you see.
"""
from __future__ import annotations

import argparse
import logging
import math
import random
import sys
from pathlib import Path

import numpy as np
from sklearn.model_selection import KFold

from analytical_core import analytic_pred
from cases import ReimbursementError, ConfigError, load_cases
from variants import NAME_ORDER, VARIANTS, dump_cfg, resolve_cfg, validate_cfg

logger = logging.getLogger(__name__)

# ─────────── parameter helpers ────────────────────────────────────────────

def vec_to_cfg(vec, template):
    cfg = dict(template)
    cfg.update({k: float(v) for k, v in zip(NAME_ORDER, vec)})
    return cfg


def cfg_to_vec(cfg):
    return [float(cfg[k]) for k in NAME_ORDER]


def fallback_mae(cases, cfg):
    err = 0.0
    for c in cases:
        err += abs(analytic_pred(c.days, c.miles, c.receipts, cfg) - c.expected_output)
    return err / len(cases)


# ─────────── optimiser: random local search ──────────────────────────────

def local_search(cases, template, n_iter=20_000, seed=0, step=0.02):
    """Multiplicative one‑coordinate perturbations, keep only improvements."""
    rng = random.Random(seed)
    vec = cfg_to_vec(template)
    best = fallback_mae(cases, template)
    start = best

    for it in range(n_iter):
        i = rng.randrange(len(vec))
        new_vec = vec.copy()
        new_vec[i] *= math.exp(rng.uniform(-step, step))
        cand = vec_to_cfg(new_vec, template)
        try:
            validate_cfg(cand)
        except ConfigError:
            continue
        new_err = fallback_mae(cases, cand)
        if new_err < best:
            vec, best = new_vec, new_err
            step *= 0.999          # slow annealing
        if it and it % 5000 == 0:
            logger.debug("iter %d  MAE %.4f", it, best)

    logger.debug("search finished: %.4f -> %.4f", start, best)
    return vec_to_cfg(vec, template), best


def out_of_fold_mae(cases, template, folds=5, n_iter=20_000, seed=0):
    kf = KFold(n_splits=folds, shuffle=True, random_state=seed)
    errs = []
    for k, (tr, te) in enumerate(kf.split(np.arange(len(cases)))):
        cfg, _ = local_search([cases[i] for i in tr], template, n_iter, seed + k)
        errs.append(fallback_mae([cases[i] for i in te], cfg))
    return float(np.mean(errs)), errs


# ─────────── CLI ─────────────────────────────────────────────────────────

def main(argv=None):
    p = argparse.ArgumentParser()
    p.add_argument("json_path", type=Path, help="public_cases.json path")
    p.add_argument("--iters", type=int, default=20_000)
    p.add_argument("--folds", type=int, default=0, help="k-fold check (0 = skip)")
    p.add_argument("--seed", type=int, default=0)
    p.add_argument("--variant", choices=sorted(VARIANTS), default="smart_hybrid")
    p.add_argument("-o", "--out", type=Path, default=None, help="write tuned config JSON")
    args = p.parse_args(argv)

    try:
        cases = load_cases(args.json_path)
        template = resolve_cfg(args.variant)
    except ReimbursementError as exc:
        sys.exit(f"Error: {exc}")

    print(f"Initial MAE: {fallback_mae(cases, template):.4f}")

    if args.folds > 1:
        cv, per_fold = out_of_fold_mae(cases, template, args.folds, args.iters, args.seed)
        print(f"Out-of-fold MAE ({args.folds} folds): {cv:.4f}  "
              f"[{', '.join(f'{e:.2f}' for e in per_fold)}]")

    cfg, best = local_search(cases, template, args.iters, args.seed)
    print(f"Final MAE:   {best:.4f}\n")

    print("### Tuned fallback coefficients ###")
    for k in NAME_ORDER:
        print(f'    "{k}": {cfg[k]:.6f},')

    if args.out is not None:
        dump_cfg(cfg, args.out)
        print(f"\nSaved config → {args.out}")


if __name__ == "__main__":
    main()
