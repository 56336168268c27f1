#!/usr/bin/env python3
"""
Summarise a case file and fit the linear baseline behind the fallback.

The fallback's per-diem term (A/days + B)*days is just A + B*days, so an
ordinary least-squares fit of

    reimbursement ~ 1 + days + miles

reads off A (intercept), B (days) and C (miles) directly.  The receipts
coefficient is printed for reference; the fallback treats receipts with
its own tiers.

Usage
-----
    python examine.py public_cases.json [--plot]
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

import pandas as pd
from sklearn.linear_model import LinearRegression

from cases import ReimbursementError, load_cases

X_COLS = ["trip_duration_days", "miles_traveled", "total_receipts_amount"]


def cases_frame(cases) -> pd.DataFrame:
    df = pd.DataFrame(
        [(c.days, c.miles, c.receipts, c.expected_output) for c in cases],
        columns=X_COLS + ["reimbursement"],
    )
    df["miles_per_day"] = df["miles_traveled"] / df["trip_duration_days"]
    df["receipts_per_day"] = df["total_receipts_amount"] / df["trip_duration_days"]
    return df


def per_day_summary(df: pd.DataFrame) -> pd.DataFrame:
    g = df.groupby("trip_duration_days")
    out = g["reimbursement"].agg(["count", "mean", "min", "max"])
    out["mean_per_day"] = out["mean"] / out.index
    return out


def fit_linear_baseline(df: pd.DataFrame) -> dict:
    """Least-squares A, B, C for the fallback plus a receipts slope and R²."""
    X, y = df[["trip_duration_days", "miles_traveled"]], df["reimbursement"]
    model = LinearRegression().fit(X, y)
    full = LinearRegression().fit(df[X_COLS], y)
    return {
        "inverse": float(model.intercept_),
        "base": float(model.coef_[0]),
        "mile_rate": float(model.coef_[1]),
        "r2": float(model.score(X, y)),
        "receipt_rate": float(full.coef_[2]),
        "r2_with_receipts": float(full.score(df[X_COLS], y)),
    }


def plot_inputs(df: pd.DataFrame):
    import matplotlib.pyplot as plt

    fig, axes = plt.subplots(1, 3, figsize=(12, 4), sharey=True)
    for ax, col in zip(axes, X_COLS):
        ax.scatter(df[col], df["reimbursement"], s=8, alpha=0.5)
        ax.set_xlabel(col.replace("_", " "))
    axes[0].set_ylabel("reimbursement")
    fig.suptitle("Reimbursement vs. each individual input")
    fig.tight_layout()

    fig3d = plt.figure(figsize=(6, 5))
    ax3d = fig3d.add_subplot(projection="3d")
    sc = ax3d.scatter(df["trip_duration_days"], df["miles_traveled"],
                      df["total_receipts_amount"], c=df["reimbursement"], cmap="viridis")
    ax3d.set_xlabel("trip duration (days)")
    ax3d.set_ylabel("miles traveled")
    ax3d.set_zlabel("total receipts ($)")
    fig3d.colorbar(sc, label="reimbursement")
    plt.show()


def main(argv=None):
    p = argparse.ArgumentParser()
    p.add_argument("json_path", type=Path)
    p.add_argument("--plot", action="store_true", help="show scatter plots")
    args = p.parse_args(argv)

    try:
        df = cases_frame(load_cases(args.json_path))
    except ReimbursementError as exc:
        sys.exit(f"Error: {exc}")

    print(f"{len(df)} cases\n")
    print(df[X_COLS + ["reimbursement"]].describe().round(2))

    print("\nCorrelation with reimbursement:")
    print(df[X_COLS + ["miles_per_day", "receipts_per_day", "reimbursement"]]
          .corr(numeric_only=True)["reimbursement"].round(3))

    print("\nBy trip length:")
    print(per_day_summary(df).round(2))

    fit = fit_linear_baseline(df)
    print("\nLinear baseline  (A/days + B)*days + C*miles")
    print(f"  A (inverse)   = {fit['inverse']:.3f}")
    print(f"  B (base)      = {fit['base']:.3f}")
    print(f"  C (mile_rate) = {fit['mile_rate']:.3f}")
    print(f"  R² = {fit['r2']:.3f}   (with receipts: {fit['r2_with_receipts']:.3f}, "
          f"slope {fit['receipt_rate']:.3f})")

    if args.plot:
        plot_inputs(df)


if __name__ == "__main__":
    main()
