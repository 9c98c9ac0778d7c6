# optkernel/monte_carlo.py

from __future__ import annotations
import logging
import math
import numpy as np
from concurrent.futures import ProcessPoolExecutor
from functools import partial
from typing import Callable

from . import black_scholes as bs
from .config import MC_PATHS, CHUNK_SIZE, CONTROL_VARIATE_BETA
from .core import OptionParams, PricingOutcome, Diagnostics, ParameterError, GREEK_NAMES
from .processes import gbm_step
from .stats import standard_normals, spawn_generators, sample_stderr, SeedLike

logger = logging.getLogger(__name__)

__all__ = ["mc_price", "run_chunks", "plan_chunks", "draw_count", "expired_outcome"]

MODEL = "monte-carlo"


# ---- chunked reduction shared by every simulation model ----

def plan_chunks(n_items: int, chunk_size: int) -> list[int]:
    if chunk_size <= 0:
        raise ParameterError("chunk_size must be positive.")
    chunks = []
    remaining = int(n_items)
    while remaining > 0:
        m = min(chunk_size, remaining)
        chunks.append(m)
        remaining -= m
    return chunks


def draw_count(n_paths: int, antithetic: bool, n_steps: int = 1) -> int:
    """Base normal draws per time step behind ``n_paths`` simulated paths."""
    if n_steps <= 0:
        raise ParameterError(f"n_steps must be positive, got {n_steps}")
    n = n_paths // 2 if antithetic else n_paths
    if n <= 0:
        raise ParameterError(f"n_paths too small: {n_paths}")
    return n


def run_chunks(
    chunk_fn: Callable[..., np.ndarray],
    n_items: int,
    *,
    chunk_size: int,
    seed: SeedLike,
    n_workers: int = 1,
    reduce: bool = True,
    **kwargs,
):
    """Run ``chunk_fn(m, rng, **kwargs)`` over a chunk plan and sum the results.

    Each chunk returns a vector of sufficient statistics (counts, sums,
    sums of squares ...), so the merge is a plain elementwise sum. Every
    chunk has its own generator spawned from ``seed``; chunks are mapped in
    order, so the result does not depend on ``n_workers``.

    ``chunk_fn`` must be a module-level function when ``n_workers > 1``.
    With ``reduce=False`` the per-chunk vectors are returned as a list.
    """
    chunks = plan_chunks(n_items, chunk_size)
    rngs = spawn_generators(seed, len(chunks))
    fn = partial(chunk_fn, **kwargs)
    if n_workers <= 1:
        stats = [fn(m, g) for m, g in zip(chunks, rngs)]
    else:
        # process pool: needs an importable __main__, use n_workers=1 in notebooks
        with ProcessPoolExecutor(max_workers=n_workers) as ex:
            stats = list(ex.map(fn, chunks, rngs))
    if not reduce:
        return stats
    return np.sum(stats, axis=0)


def expired_outcome(opt: OptionParams, model: str) -> PricingOutcome:
    """Intrinsic value with zero Greeks for ``T <= 0``; nothing is simulated."""
    return PricingOutcome(
        price=opt.intrinsic(),
        greeks=bs.greeks(opt),
        model=model,
        borrowed=GREEK_NAMES,
        stderr=0.0,
        diagnostics=Diagnostics(short_circuit="expired"),
    )


# ---- vanilla European chunk (terminal only, no path storage) ----

def _vanilla_chunk(n: int, rng: np.random.Generator, *, opt: OptionParams, antithetic: bool) -> np.ndarray:
    """
    Draw ``n`` normals, price the +Z (and -Z) terminal spots and return
        n_eff, sum(payoff), sum(payoff^2), sum(S_T)
    with undiscounted payoffs.
    """
    z = standard_normals(rng, n)
    if antithetic:
        z = np.concatenate([z, -z])

    ST = gbm_step(np.full(z.shape, opt.S0), opt.T, opt.r, opt.q, opt.sigma, z)
    payoff = opt.payoff(ST)

    return np.array([payoff.size, payoff.sum(), (payoff * payoff).sum(), ST.sum()])


def mc_price(
    opt: OptionParams,
    *,
    n_paths: int = MC_PATHS,
    antithetic: bool = True,
    control_variate: bool = True,
    seed: SeedLike = None,
    chunk_size: int = CHUNK_SIZE,
    n_workers: int = 1,
) -> PricingOutcome:
    """
    European option by terminal-value Monte Carlo.

    - ``n_paths`` terminal prices are simulated; with antithetic sampling
      ``n_paths // 2`` draws each feed a +Z and a -Z path.
    - Control variate: the terminal spot, with known mean S0*exp((r-q)T),
      adjusts the payoff average by a fixed beta of -0.5.
    - The standard error comes from the sample variance of the raw payoffs,
      i.e. before the control-variate adjustment and treating antithetic
      partners as independent. It is an approximation of the adjusted
      estimator's error, not its exact value.
    - Greeks are never estimated from the simulation; they are the analytic
      Black-Scholes-Merton values and are marked as borrowed.
    """
    if opt.T <= 0:
        return expired_outcome(opt, MODEL)

    n, sum_x, sum_x2, sum_st = run_chunks(
        _vanilla_chunk, draw_count(n_paths, antithetic),
        chunk_size=chunk_size, seed=seed, n_workers=n_workers,
        opt=opt, antithetic=antithetic,
    )
    n = int(n)

    mean_payoff = sum_x / n
    if control_variate:
        expected_st = opt.S0 * math.exp((opt.r - opt.q) * opt.T)
        mean_payoff += CONTROL_VARIATE_BETA * (sum_st / n - expected_st)

    df = math.exp(-opt.r * opt.T)
    price = df * mean_payoff
    stderr = df * sample_stderr(n, sum_x, sum_x2)

    logger.debug("monte-carlo %s: price=%.6f stderr=%.6f paths=%d", opt.kind, price, stderr, n)
    return PricingOutcome(
        price=float(price),
        greeks=bs.greeks(opt),
        model=MODEL,
        borrowed=GREEK_NAMES,
        stderr=float(stderr),
        diagnostics=Diagnostics(n_paths=n, n_steps=1),
    )
