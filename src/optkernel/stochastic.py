# stochastic.py
# European options under Heston stochastic variance and Merton jump-diffusion.
#
# Both price by simulation on top of processes.simulate and report the
# analytic Black-Scholes-Merton Greeks as borrowed (for Heston at the
# instantaneous vol sqrt(v0)).

from __future__ import annotations
import logging
import math
import numpy as np

from . import black_scholes as bs
from .config import MC_PATHS, HESTON_STEPS, JUMP_STEPS, PATH_CHUNK_SIZE, VOL_SAMPLE_SIZE
from .core import OptionParams, HestonParams, JumpParams, PricingOutcome, Diagnostics, GREEK_NAMES
from .monte_carlo import run_chunks, draw_count, expired_outcome
from .processes import simulate, check_jump_resolution, HESTON, JUMP
from .stats import sample_stderr, SeedLike

logger = logging.getLogger(__name__)

__all__ = ["heston_price", "jump_diffusion_price"]

HESTON_MODEL = "heston"
JUMP_MODEL = "jump-diffusion"


# ---------------------------------------------------------------------------
# Heston
# ---------------------------------------------------------------------------
def _heston_chunk(n, rng, *, opt, hp, n_steps, antithetic):
    """n_eff, sum(payoff), sum(payoff^2), sum(v_T+), then a terminal-vol sample."""
    out = simulate(opt, n_steps, n, dynamics=HESTON, heston=hp,
                   antithetic=antithetic, seed=rng, keep_path=False)
    payoff = opt.payoff(out.spots)
    v_T = np.maximum(out.variance, 0.0)

    sample = np.full(VOL_SAMPLE_SIZE, np.nan)
    k = min(VOL_SAMPLE_SIZE, v_T.size)
    sample[:k] = np.sqrt(v_T[:k])
    head = np.array([payoff.size, payoff.sum(), (payoff * payoff).sum(), v_T.sum()])
    return np.concatenate([head, sample])


def heston_price(
    opt: OptionParams,
    hp: HestonParams,
    *,
    n_paths: int = MC_PATHS,
    n_steps: int = HESTON_STEPS,
    antithetic: bool = True,
    seed: SeedLike = None,
    chunk_size: int = PATH_CHUNK_SIZE,
    n_workers: int = 1,
) -> PricingOutcome:
    """European option under Heston dynamics (``opt.sigma`` is not used).

    Diagnostics carry the mean terminal variance and the terminal vols of
    the first paths simulated, for plotting the vol distribution.
    """
    if opt.T <= 0:
        return expired_outcome(opt, HESTON_MODEL)

    per_chunk = run_chunks(
        _heston_chunk, draw_count(n_paths, antithetic, n_steps),
        chunk_size=chunk_size, seed=seed, n_workers=n_workers, reduce=False,
        opt=opt, hp=hp, n_steps=n_steps, antithetic=antithetic,
    )
    n, sum_x, sum_x2, sum_v = np.sum([c[:4] for c in per_chunk], axis=0)
    n = int(n)
    sample = per_chunk[0][4:]
    sample = tuple(float(s) for s in sample[~np.isnan(sample)])

    df = math.exp(-opt.r * opt.T)
    price = df * sum_x / n
    stderr = df * sample_stderr(n, sum_x, sum_x2)

    logger.debug("heston %s: price=%.6f stderr=%.6f paths=%d steps=%d",
                 opt.kind, price, stderr, n, n_steps)
    return PricingOutcome(
        price=float(price),
        greeks=bs.greeks(bs.with_sigma(opt, math.sqrt(hp.v0))),
        model=HESTON_MODEL,
        borrowed=GREEK_NAMES,
        stderr=float(stderr),
        diagnostics=Diagnostics(
            n_paths=n, n_steps=n_steps,
            mean_terminal_variance=float(sum_v / n),
            terminal_vol_sample=sample,
        ),
    )


# ---------------------------------------------------------------------------
# Merton jump-diffusion
# ---------------------------------------------------------------------------
def _jump_chunk(n, rng, *, opt, jp, n_steps, antithetic):
    """n_eff, sum(payoff), sum(payoff^2), total jump count."""
    out = simulate(opt, n_steps, n, dynamics=JUMP, jumps=jp,
                   antithetic=antithetic, seed=rng, keep_path=False)
    payoff = opt.payoff(out.spots)
    return np.array([payoff.size, payoff.sum(), (payoff * payoff).sum(), out.jumps.sum()])


def jump_diffusion_price(
    opt: OptionParams,
    jp: JumpParams,
    *,
    n_paths: int = MC_PATHS,
    n_steps: int = JUMP_STEPS,
    antithetic: bool = True,
    seed: SeedLike = None,
    chunk_size: int = PATH_CHUNK_SIZE,
    n_workers: int = 1,
) -> PricingOutcome:
    """European option under Merton jump-diffusion.

    Arrivals are one Bernoulli(lam*dt) trial per step, so at most one jump
    per step is possible. The error against the Poisson count is O((lam*dt)^2)
    per step; keep lam*dt well below 0.1 (a warning is logged otherwise).
    """
    if opt.T <= 0:
        return expired_outcome(opt, JUMP_MODEL)
    n_draws = draw_count(n_paths, antithetic, n_steps)
    check_jump_resolution(jp, opt.T / n_steps)

    n, sum_x, sum_x2, n_jumps = run_chunks(
        _jump_chunk, n_draws,
        chunk_size=chunk_size, seed=seed, n_workers=n_workers,
        opt=opt, jp=jp, n_steps=n_steps, antithetic=antithetic,
    )
    n = int(n)

    df = math.exp(-opt.r * opt.T)
    price = df * sum_x / n
    stderr = df * sample_stderr(n, sum_x, sum_x2)

    logger.debug("jump-diffusion %s: price=%.6f stderr=%.6f paths=%d steps=%d",
                 opt.kind, price, stderr, n, n_steps)
    return PricingOutcome(
        price=float(price),
        greeks=bs.greeks(opt),
        model=JUMP_MODEL,
        borrowed=GREEK_NAMES,
        stderr=float(stderr),
        diagnostics=Diagnostics(n_paths=n, n_steps=n_steps, jumps_per_path=float(n_jumps / n)),
    )
