# closed-form fallback: per-diem + flat mileage + tiered receipts, then clamp
from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP as RHU, localcontext

CENT = Decimal("0.01")
# enough digits to quantize any finite float (max ~1.8e308) to cents
_PREC = 320


def _quantize(x: float, exp: Decimal) -> Decimal:
    with localcontext() as ctx:
        ctx.prec = _PREC
        return Decimal(str(x)).quantize(exp, rounding=RHU)


def round_currency(x: float) -> float:
    return float(_quantize(x, CENT))


def round_half_up(x: float) -> int:
    return int(_quantize(x, Decimal(1)))


def receipt_contribution(receipts, cfg):
    t1, t2 = cfg["receipt_t1"], cfg["receipt_t2"]
    c1, c2, c3 = cfg["receipt_c1"], cfg["receipt_c2"], cfg["receipt_c3"]
    if receipts <= 0:   return 0.0
    if receipts <= t1:  return receipts * c1
    if receipts <= t2:  return t1 * c1 + (receipts - t1) * c2
    return t1 * c1 + (t2 - t1) * c2 + (receipts - t2) * c3


def high_receipt_adj(days, receipts, cfg):
    if receipts > cfg["hr_threshold"] and days <= cfg["short_trip_days"]:
        return cfg["hr_rate"] * (receipts - cfg["hr_threshold"])
    return 0.0


def efficiency_adj(days, miles, cfg):
    mpd = miles / days
    if mpd > cfg["eff_threshold"] and days <= cfg["eff_max_days"]:
        return -cfg["eff_rate"] * (mpd - cfg["eff_threshold"])
    return 0.0


def fallback_branches(days, miles, receipts, cfg) -> tuple[str, ...]:
    """Names of the piecewise segments that apply to this trip."""
    if receipts <= 0:
        tier = "receipts_none"
    elif receipts <= cfg["receipt_t1"]:
        tier = "receipts_tier1"
    elif receipts <= cfg["receipt_t2"]:
        tier = "receipts_tier2"
    else:
        tier = "receipts_tier3"
    out = [tier]
    if receipts > cfg["hr_threshold"] and days <= cfg["short_trip_days"]:
        out.append("high_receipt_short_trip")
    if miles / days > cfg["eff_threshold"] and days <= cfg["eff_max_days"]:
        out.append("high_efficiency")
    return tuple(out)


def bounds(days, receipts, cfg) -> tuple[float, float]:
    lo = days * cfg["min_per_day"]
    hi = days * cfg["max_per_day"] + min(receipts * cfg["cap_rate"], cfg["receipt_cap"])
    return round_currency(lo), round_currency(hi)


def clamp(value, days, receipts, cfg):
    lo, hi = bounds(days, receipts, cfg)
    return max(lo, min(hi, value))


def raw_fallback(days, miles, receipts, cfg):
    """Unclamped, unrounded fallback total."""
    base = (cfg["inverse"] / days + cfg["base"]) * days
    subtotal = base + cfg["mile_rate"] * miles + receipt_contribution(receipts, cfg)
    subtotal += high_receipt_adj(days, receipts, cfg)
    subtotal += efficiency_adj(days, miles, cfg)
    return subtotal * cfg["conservative_factor"]


def analytic_pred(days, miles, receipts, cfg):
    return round_currency(clamp(raw_fallback(days, miles, receipts, cfg),
                                days, receipts, cfg))
