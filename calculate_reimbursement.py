#!/usr/bin/env python3
"""
calculate_reimbursement.py  –  one-shot estimate or self-evaluation report.

Usage
-----
    python calculate_reimbursement.py <days> <miles> <receipts>
        prints a single amount, e.g. 494.63

    python calculate_reimbursement.py [--loo] [--worst 5]
        scores the estimator against the case file

Common options: --cases public_cases.json  --variant smart_hybrid|ensemble  --cfg tuned.json
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from cases import DEFAULT_CASES, ReimbursementError, load_cases
from ensemble import build_estimator
from evaluate import evaluate, format_report, leave_one_out
from variants import variant_names


def non_negative_int(text: str) -> int:
    value = int(text)
    if value < 0:
        raise argparse.ArgumentTypeError(f"expected an integer >= 0, got {text}")
    return value


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Trip reimbursement estimator")
    p.add_argument("query", nargs="*", help="<days> <miles> <receipts>")
    p.add_argument("--cases", type=Path, default=DEFAULT_CASES, help="reference case file")
    p.add_argument("--variant", choices=variant_names(), default="smart_hybrid")
    p.add_argument("--cfg", type=Path, default=None, help="JSON config overrides")
    p.add_argument("--loo", action="store_true", help="report leave-one-out instead of in-sample")
    p.add_argument("--worst", type=non_negative_int, default=5, help="high-error cases to list")
    p.add_argument("-v", "--verbose", action="store_true")
    return p


def run(argv=None) -> str:
    args = build_parser().parse_args(argv)
    if len(args.query) not in (0, 3):
        raise SystemExit("Usage: calculate_reimbursement.py <days> <miles> <receipts>")

    cases = load_cases(args.cases)
    est = build_estimator(cases, args.variant, args.cfg)

    if args.query:
        return f"{est.predict(*args.query):.2f}"

    if args.loo:
        rep = leave_one_out(cases, worst=args.worst, estimator=est)
    else:
        rep = evaluate(est, cases, worst=args.worst)
    return f"Variant: {args.variant}\n" + format_report(rep)


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    logging.basicConfig(level=logging.DEBUG if "-v" in argv or "--verbose" in argv else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")
    try:
        print(run(argv))
    except ReimbursementError as exc:
        sys.exit(f"Error: {exc}")


if __name__ == "__main__":
    main()
