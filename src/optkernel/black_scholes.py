"""Closed-form Black-Scholes-Merton pricing.

Greeks use the desk conventions consumed across the package: theta per
calendar day, vega per vol point (1%), rho per 1% rate move. The simulation
and lattice models borrow these values, so the scaling must not change.
"""

from __future__ import annotations
import math
from dataclasses import replace

from .config import DAYS_PER_YEAR, PER_PERCENT
from .core import OptionParams, Greeks, HigherOrderGreeks, PricingOutcome, Diagnostics, CALL
from .stats import normal_cdf as _N, normal_pdf as _n

__all__ = ["price", "greeks", "higher_order_greeks", "bsm", "with_sigma"]

MODEL = "black-scholes"


def _d1_d2(opt: OptionParams) -> tuple[float, float]:
    srt = opt.sigma * math.sqrt(opt.T)
    d1 = (math.log(opt.S0 / opt.K) + (opt.r - opt.q + 0.5 * opt.sigma * opt.sigma) * opt.T) / srt
    return d1, d1 - srt


def _degenerate(opt: OptionParams) -> bool:
    return opt.T <= 0 or opt.sigma == 0


def _zero_vol(opt: OptionParams) -> tuple[float, Greeks]:
    """Deterministic-forward limit of the formula as sigma -> 0 (T > 0)."""
    disc_q = math.exp(-opt.q * opt.T)
    fwd_S = opt.S0 * disc_q
    fwd_K = opt.K * math.exp(-opt.r * opt.T)
    sign = 1.0 if opt.kind == CALL else -1.0
    value = sign * (fwd_S - fwd_K)
    if value <= 0:
        return 0.0, Greeks.zero()
    theta = sign * (opt.q * fwd_S - opt.r * fwd_K)
    return value, Greeks(
        delta=sign * disc_q,
        gamma=0.0,
        theta=theta / DAYS_PER_YEAR,
        vega=0.0,
        rho=sign * opt.T * fwd_K / PER_PERCENT,
    )


def price(opt: OptionParams) -> float:
    if opt.T <= 0:
        return opt.intrinsic()
    if opt.sigma == 0:
        return _zero_vol(opt)[0]
    d1, d2 = _d1_d2(opt)
    disc_r = math.exp(-opt.r * opt.T)
    disc_q = math.exp(-opt.q * opt.T)
    if opt.kind == CALL:
        return disc_q * opt.S0 * _N(d1) - disc_r * opt.K * _N(d2)
    return disc_r * opt.K * _N(-d2) - disc_q * opt.S0 * _N(-d1)


def greeks(opt: OptionParams) -> Greeks:
    if opt.T <= 0:
        return Greeks.zero()
    if opt.sigma == 0:
        return _zero_vol(opt)[1]

    d1, d2 = _d1_d2(opt)
    n_d1   = _n(d1)
    disc_r = math.exp(-opt.r * opt.T)
    disc_q = math.exp(-opt.q * opt.T)
    sqrt_T = math.sqrt(opt.T)

    # Common
    gamma = disc_q * n_d1 / (opt.S0 * opt.sigma * sqrt_T)
    vega  = opt.S0 * disc_q * n_d1 * sqrt_T
    decay = -opt.S0 * disc_q * n_d1 * opt.sigma / (2 * sqrt_T)

    if opt.kind == CALL:
        delta = disc_q * _N(d1)
        theta = decay - opt.r * opt.K * disc_r * _N(d2) + opt.q * opt.S0 * disc_q * _N(d1)
        rho   = opt.K * opt.T * disc_r * _N(d2)
    else:
        delta = -disc_q * _N(-d1)
        theta = decay + opt.r * opt.K * disc_r * _N(-d2) - opt.q * opt.S0 * disc_q * _N(-d1)
        rho   = -opt.K * opt.T * disc_r * _N(-d2)

    return Greeks(
        delta=delta,
        gamma=gamma,
        theta=theta / DAYS_PER_YEAR,
        vega=vega / PER_PERCENT,
        rho=rho / PER_PERCENT,
    )


def higher_order_greeks(opt: OptionParams) -> HigherOrderGreeks:
    """Vanna, volga, charm, veta, speed, zomma and color from one d1/d2 pass."""
    if _degenerate(opt):
        return HigherOrderGreeks.zero()

    S, T, r, q, sigma = opt.S0, opt.T, opt.r, opt.q, opt.sigma
    d1, d2 = _d1_d2(opt)
    n_d1 = _n(d1)
    disc_q = math.exp(-q * T)
    sqrt_T = math.sqrt(T)
    srt = sigma * sqrt_T
    gamma = disc_q * n_d1 / (S * srt)
    drift_term = (2 * (r - q) * T - d2 * srt) / (2 * T * srt)

    vanna = -disc_q * n_d1 * d2 / sigma
    volga = S * disc_q * n_d1 * sqrt_T * d1 * d2 / sigma
    if opt.kind == CALL:
        charm = q * disc_q * _N(d1) - disc_q * n_d1 * drift_term
    else:
        charm = -q * disc_q * _N(-d1) - disc_q * n_d1 * drift_term
    veta = -S * disc_q * n_d1 * sqrt_T * (q + (r - q) * d1 / srt - (1 + d1 * d2) / (2 * T))
    speed = -gamma / S * (d1 / srt + 1)
    zomma = gamma * (d1 * d2 - 1) / sigma
    color = -disc_q * n_d1 / (2 * S * T * srt) * (
        2 * q * T + 1 + (2 * (r - q) * T - d2 * srt) * d1 / srt
    )
    return HigherOrderGreeks(vanna, volga, charm, veta, speed, zomma, color)


def bsm(opt: OptionParams) -> PricingOutcome:
    """Price, Greeks and higher-order Greeks in one outcome."""
    if opt.T <= 0:
        reason = "expired"
    elif opt.sigma == 0:
        reason = "zero-vol"
    else:
        reason = None
    return PricingOutcome(
        price=price(opt),
        greeks=greeks(opt),
        model=MODEL,
        higher_order=higher_order_greeks(opt),
        diagnostics=Diagnostics(short_circuit=reason),
    )


def with_sigma(opt: OptionParams, sigma: float) -> OptionParams:
    return replace(opt, sigma=sigma)
