#!/usr/bin/env python3
"""
plot_residuals.py – Visual diagnostics for the nearest-record estimator.

Residuals are leave‑one‑out by default (each case predicted from an index
without it); pass --in-sample to see the memorised fit instead.  Plots:

1. Scatter plots of residuals vs. key raw features, coloured by the path
   the estimator took (exact / neighbors / fallback).
2. 2‑D binned heatmaps (days×receipts and days×miles).

The figures are saved to a multi‑page PDF (default `residual_diagnostics.pdf`).

Usage
-----
    python plot_residuals.py public_cases.json [-o out.pdf] [--variant smart_hybrid]
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

import numpy as np
import matplotlib.pyplot as plt
from matplotlib.backends.backend_pdf import PdfPages

from cases import ReimbursementError, cases_to_arrays, load_cases
from estimator import NearestRecordEstimator
from evaluate import loo_predictions
from variants import VARIANTS, resolve_cfg

PATH_COLOURS = {"exact": "tab:green", "neighbors": "tab:blue", "fallback": "tab:red"}

# ────────────────────────────── Helpers ────────────────────────────────────

def residuals(cases, cfg, in_sample=False):
    """(residuals, paths) with residual = true – predicted."""
    if in_sample:
        est = NearestRecordEstimator.from_cases(cases, cfg)
        preds = [est.explain(*c.inputs) for c in cases]
    else:
        preds = loo_predictions(cases, cfg)
    y = np.array([c.expected_output for c in cases], float)
    return y - np.array([p.value for p in preds], float), [p.path for p in preds]


def write_pdf(cases, resid, paths, out: Path):
    X, _ = cases_to_arrays(cases)
    days, miles, rec = X[:, 0], X[:, 1], X[:, 2]
    colours = [PATH_COLOURS[p] for p in paths]

    with PdfPages(out) as pdf:
        # Scatter plots
        fig, axs = plt.subplots(2, 2, figsize=(10, 8))
        axs = axs.ravel()
        for ax, x, lbl in zip(
            axs,
            [days, miles, rec, rec / days],
            ["Trip duration (days)", "Miles traveled", "Total receipts ($)", "Receipts per day ($)"]
        ):
            ax.scatter(x, resid, c=colours, alpha=0.4, s=8)
            ax.axhline(0, color="k", lw=0.7)
            ax.set_xlabel(lbl)
            ax.set_ylabel("Residual (true – pred)")
        fig.tight_layout()
        pdf.savefig(fig)
        plt.close(fig)

        # 2‑D heatmaps
        vmax = max(float(np.max(np.abs(resid))), 0.01)
        for x, y, xlabel, ylabel in [
            (days, rec, "Trip duration (days)", "Total receipts ($)"),
            (days, miles, "Trip duration (days)", "Miles traveled"),
        ]:
            fig, ax = plt.subplots(figsize=(6, 5))
            hb = ax.hexbin(x, y, C=resid, gridsize=40, cmap="RdBu", vmin=-vmax, vmax=vmax)
            ax.set_xlabel(xlabel)
            ax.set_ylabel(ylabel)
            cb = fig.colorbar(hb, ax=ax)
            cb.set_label("Residual (true – pred)")
            fig.tight_layout()
            pdf.savefig(fig)
            plt.close(fig)

# ───────────────────────────────── Main ────────────────────────────────────

def main(argv=None):
    ap = argparse.ArgumentParser()
    ap.add_argument("json_path", type=Path)
    ap.add_argument("-o", "--out", type=Path, default=Path("residual_diagnostics.pdf"))
    ap.add_argument("--variant", choices=sorted(VARIANTS), default="smart_hybrid")
    ap.add_argument("--cfg", type=Path, default=None)
    ap.add_argument("--in-sample", action="store_true")
    args = ap.parse_args(argv)

    try:
        cases = load_cases(args.json_path)
        cfg = resolve_cfg(args.variant, args.cfg)
        resid, paths = residuals(cases, cfg, args.in_sample)
    except ReimbursementError as exc:
        sys.exit(f"Error: {exc}")

    write_pdf(cases, resid, paths, args.out)
    print(f"Mean |residual|: {np.mean(np.abs(resid)):.2f}")
    print(f"Saved residual diagnostics → {args.out}")

if __name__ == "__main__":
    main()
