# exotics.py
# Exotic option evaluators.
#
# The payoff functions accept pre-generated paths from ``processes.py``
# (shape ``(n_steps+1, n_paths_eff)`` including the t=0 row) and are kept
# separate from the pricers, so any process can be combined with any
# payoff. The pricers simulate GBM paths chunk by chunk and reduce
# sufficient statistics; the digital option is closed form.

from __future__ import annotations
import logging
import math
import numpy as np

from . import black_scholes as bs
from .config import MC_PATHS, ASIAN_OBSERVATIONS, BARRIER_STEPS, PATH_CHUNK_SIZE, DAYS_PER_YEAR, PER_PERCENT
from .core import (
    OptionParams, BarrierSpec, PricingOutcome, Greeks, Diagnostics,
    ParameterError, GREEK_NAMES, CALL,
)
from .monte_carlo import run_chunks, draw_count, expired_outcome
from .processes import simulate, GBM
from .stats import normal_cdf as _N, normal_pdf as _n, sample_stderr, SeedLike

logger = logging.getLogger(__name__)

__all__ = [
    "asian_payoff",
    "barrier_payoff",
    "asian_price",
    "barrier_price",
    "digital_price",
]

ASIAN_MODEL = "asian"
BARRIER_MODEL = "barrier"
DIGITAL_MODEL = "digital"


# ---------------------------------------------------------------------------
# Payoffs over path arrays
# ---------------------------------------------------------------------------
def asian_payoff(
    paths: np.ndarray,
    K: float,
    kind: str,
    average_type: str = "arithmetic",
    strike_type: str = "fixed",
) -> np.ndarray:
    """Asian payoff per path.

    The average runs over the monitoring rows ``paths[1:]``; the t=0 spot
    is not an observation.

    Parameters
    ----------
    paths : ndarray, shape (n_steps+1, n_paths)
    K : float
        Strike (used for fixed-strike; ignored for floating).
    kind : str
        ``"call"`` or ``"put"``.
    average_type : str
        ``"arithmetic"`` (default) or ``"geometric"``.
    strike_type : str
        ``"fixed"`` (payoff on avg vs K) or ``"floating"`` (payoff on S_T vs avg).
    """
    monitoring = paths[1:, :]
    ST = paths[-1, :]

    if average_type == "arithmetic":
        avg = monitoring.mean(axis=0)
    elif average_type == "geometric":
        avg = np.exp(np.log(monitoring).mean(axis=0))
    else:
        raise ParameterError("average_type must be 'arithmetic' or 'geometric'")

    if strike_type == "fixed":
        underlying, strike = avg, K
    elif strike_type == "floating":
        underlying, strike = ST, avg
    else:
        raise ParameterError("strike_type must be 'fixed' or 'floating'")

    if kind == CALL:
        return np.maximum(underlying - strike, 0.0)
    return np.maximum(strike - underlying, 0.0)


def barrier_payoff(
    paths: np.ndarray,
    K: float,
    kind: str,
    barrier: BarrierSpec,
) -> tuple[np.ndarray, np.ndarray]:
    """Discretely monitored barrier payoff per path.

    Every row, t=0 included, is a monitoring date. Knock-outs pay the
    vanilla terminal payoff if never breached, else the rebate; knock-ins
    pay it only if breached, else the rebate.

    Returns
    -------
    tuple[ndarray, ndarray]
        ``(payoff, breached)``
    """
    ST = paths[-1, :]
    breached = np.any(barrier.breached(paths), axis=0)

    if kind == CALL:
        vanilla = np.maximum(ST - K, 0.0)
    else:
        vanilla = np.maximum(K - ST, 0.0)

    if barrier.is_knock_out:
        payoff = np.where(breached, barrier.rebate, vanilla)
    else:
        payoff = np.where(breached, vanilla, barrier.rebate)
    return payoff, breached


# ---------------------------------------------------------------------------
# Simulation pricers
# ---------------------------------------------------------------------------
def _gbm_paths(opt, n, rng, n_steps, antithetic):
    return simulate(opt, n_steps, n, dynamics=GBM, antithetic=antithetic,
                    seed=rng, keep_path=True).spots


def _asian_chunk(n, rng, *, opt, n_steps, antithetic, average_type, strike_type):
    paths = _gbm_paths(opt, n, rng, n_steps, antithetic)
    payoff = asian_payoff(paths, opt.K, opt.kind, average_type, strike_type)
    return np.array([payoff.size, payoff.sum(), (payoff * payoff).sum()])


def _barrier_chunk(n, rng, *, opt, barrier, n_steps, antithetic):
    paths = _gbm_paths(opt, n, rng, n_steps, antithetic)
    payoff, breached = barrier_payoff(paths, opt.K, opt.kind, barrier)
    return np.array([payoff.size, payoff.sum(), (payoff * payoff).sum(), breached.sum()])


def asian_price(
    opt: OptionParams,
    *,
    n_paths: int = MC_PATHS,
    n_steps: int = ASIAN_OBSERVATIONS,
    average_type: str = "arithmetic",
    strike_type: str = "fixed",
    antithetic: bool = True,
    seed: SeedLike = None,
    chunk_size: int = PATH_CHUNK_SIZE,
    n_workers: int = 1,
) -> PricingOutcome:
    """Average-price option by GBM simulation; ``n_steps`` equally spaced observations."""
    if opt.T <= 0:
        return expired_outcome(opt, ASIAN_MODEL)

    n, sum_x, sum_x2 = run_chunks(
        _asian_chunk, draw_count(n_paths, antithetic, n_steps),
        chunk_size=chunk_size, seed=seed, n_workers=n_workers,
        opt=opt, n_steps=n_steps, antithetic=antithetic,
        average_type=average_type, strike_type=strike_type,
    )
    n = int(n)
    df = math.exp(-opt.r * opt.T)
    price = df * sum_x / n
    stderr = df * sample_stderr(n, sum_x, sum_x2)

    logger.debug("asian %s (%s, %s): price=%.6f stderr=%.6f", opt.kind,
                 average_type, strike_type, price, stderr)
    return PricingOutcome(
        price=float(price),
        greeks=bs.greeks(opt),
        model=ASIAN_MODEL,
        borrowed=GREEK_NAMES,
        stderr=float(stderr),
        diagnostics=Diagnostics(n_paths=n, n_steps=n_steps),
    )


def _cash_flow_greeks(value: float, T: float, r: float) -> Greeks:
    """Greeks of a fixed amount paid at T: only time and rate sensitivity."""
    return Greeks(delta=0.0, gamma=0.0, theta=r * value / DAYS_PER_YEAR,
                  vega=0.0, rho=-T * value / PER_PERCENT)


def _barrier_settled(opt: OptionParams, barrier: BarrierSpec) -> PricingOutcome:
    """Spot already through the barrier: the contingency is decided at t=0."""
    T = max(opt.T, 0.0)
    if barrier.is_knock_out:
        price = barrier.rebate * math.exp(-opt.r * T)
        greeks, borrowed = _cash_flow_greeks(price, T, opt.r), ()
    else:
        # knocked in: a plain European from here on
        price, greeks, borrowed = bs.price(opt), bs.greeks(opt), GREEK_NAMES
    return PricingOutcome(
        price=price, greeks=greeks, model=BARRIER_MODEL, borrowed=borrowed, stderr=0.0,
        diagnostics=Diagnostics(knockout_probability=1.0, short_circuit="barrier-breached"),
    )


def barrier_price(
    opt: OptionParams,
    barrier: BarrierSpec,
    *,
    n_paths: int = MC_PATHS,
    n_steps: int = BARRIER_STEPS,
    antithetic: bool = True,
    seed: SeedLike = None,
    chunk_size: int = PATH_CHUNK_SIZE,
    n_workers: int = 1,
) -> PricingOutcome:
    """Knock-in / knock-out option with discrete monitoring and rebate at expiry.

    ``knockout_probability`` in the diagnostics is the fraction of paths
    that touched the barrier, for every barrier type.
    """
    if barrier.breached(opt.S0):
        return _barrier_settled(opt, barrier)
    if opt.T <= 0:
        price = opt.intrinsic() if barrier.is_knock_out else barrier.rebate
        return PricingOutcome(
            price=price, greeks=Greeks.zero(), model=BARRIER_MODEL, borrowed=GREEK_NAMES,
            stderr=0.0,
            diagnostics=Diagnostics(knockout_probability=0.0, short_circuit="expired"),
        )

    n, sum_x, sum_x2, n_breached = run_chunks(
        _barrier_chunk, draw_count(n_paths, antithetic, n_steps),
        chunk_size=chunk_size, seed=seed, n_workers=n_workers,
        opt=opt, barrier=barrier, n_steps=n_steps, antithetic=antithetic,
    )
    n = int(n)
    df = math.exp(-opt.r * opt.T)
    price = df * sum_x / n
    stderr = df * sample_stderr(n, sum_x, sum_x2)
    knockout = float(n_breached / n)

    logger.debug("barrier %s %s B=%.4f: price=%.6f stderr=%.6f knockout=%.4f",
                 barrier.barrier_type, opt.kind, barrier.level, price, stderr, knockout)
    return PricingOutcome(
        price=float(price),
        greeks=bs.greeks(opt),
        model=BARRIER_MODEL,
        borrowed=GREEK_NAMES,
        stderr=float(stderr),
        diagnostics=Diagnostics(n_paths=n, n_steps=n_steps, knockout_probability=knockout),
    )


# ---------------------------------------------------------------------------
# Digital (binary / cash-or-nothing) options
# ---------------------------------------------------------------------------
def digital_price(opt: OptionParams, payout: float = 1.0) -> PricingOutcome:
    """Cash-or-nothing digital, closed form: payout * e^{-rT} * N(+-d2).

    Pays ``payout`` if S_T > K (call) or S_T < K (put). Delta and gamma
    are unbounded near S = K as T -> 0; that is the instrument, not noise.
    """
    if payout < 0 or not math.isfinite(payout):
        raise ParameterError(f"payout must be a non-negative number, got {payout}")
    sign = 1.0 if opt.kind == CALL else -1.0

    if opt.T <= 0:
        itm = sign * (opt.S0 - opt.K) > 0
        return PricingOutcome(
            price=payout if itm else 0.0, greeks=Greeks.zero(), model=DIGITAL_MODEL,
            diagnostics=Diagnostics(short_circuit="expired"),
        )

    df = math.exp(-opt.r * opt.T)
    if opt.sigma == 0:
        forward = opt.S0 * math.exp((opt.r - opt.q) * opt.T)
        price = payout * df if sign * (forward - opt.K) > 0 else 0.0
        return PricingOutcome(
            price=price, greeks=_cash_flow_greeks(price, opt.T, opt.r), model=DIGITAL_MODEL,
            diagnostics=Diagnostics(short_circuit="zero-vol"),
        )

    S, K, T, r, q, sigma = opt.S0, opt.K, opt.T, opt.r, opt.q, opt.sigma
    sqrt_T = math.sqrt(T)
    srt = sigma * sqrt_T
    d2 = (math.log(S / K) + (r - q - 0.5 * sigma * sigma) * T) / srt
    d1 = d2 + srt
    price = payout * df * _N(sign * d2)
    dens = payout * df * _n(d2)           # sensitivity of the price to d2

    delta = sign * dens / (S * srt)
    gamma = -sign * dens * d1 / (S * S * sigma * sigma * T)
    dd2_dT = (r - q) / srt - d1 / (2 * T)
    theta = r * price - sign * dens * dd2_dT
    vega = -sign * dens * d1 / sigma
    rho = -T * price + sign * dens * sqrt_T / sigma

    return PricingOutcome(
        price=price,
        greeks=Greeks(delta=delta, gamma=gamma, theta=theta / DAYS_PER_YEAR,
                      vega=vega / PER_PERCENT, rho=rho / PER_PERCENT),
        model=DIGITAL_MODEL,
    )
