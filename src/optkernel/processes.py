# processes.py
# Path simulation for the Monte Carlo models.
#
# Each dynamics is a pure one-step function taking its normal draws as
# arguments, so the antithetic leg reuses exactly the draw of its partner
# and tests can inject deterministic shocks. The drivers below return
# arrays of shape (n_steps+1, n_paths_eff) including the t=0 row with S0.
# With antithetic=True the number of returned paths is doubled.

from __future__ import annotations
import logging
import math
import numpy as np
from dataclasses import dataclass
from typing import Optional

from .config import JUMP_PROB_WARN
from .core import OptionParams, HestonParams, JumpParams, ParameterError
from .stats import make_rng, standard_normals, standard_normal_pair, SeedLike

logger = logging.getLogger(__name__)

__all__ = [
    "gbm_step",
    "heston_step",
    "jump_step",
    "simulate",
    "simulate_paths",
    "simulate_terminal",
    "check_jump_resolution",
    "PathBundle",
    "GBM",
    "HESTON",
    "JUMP",
]

GBM = "gbm"
HESTON = "heston"
JUMP = "jump"
DYNAMICS = (GBM, HESTON, JUMP)


# -----------------------------
# One-step dynamics
# -----------------------------
def gbm_step(S, dt: float, r: float, q: float, sigma: float, z):
    """Exact GBM step: S * exp((r - q - sigma^2/2) dt + sigma sqrt(dt) Z)."""
    return S * np.exp((r - q - 0.5 * sigma * sigma) * dt + sigma * math.sqrt(dt) * z)


def heston_step(S, v, dt: float, r: float, q: float, hp: HestonParams, z_v, z_perp):
    """Full-truncation Euler step of the Heston model.

    The variance state ``v`` is carried un-floored; only its positive part
    enters drift and diffusion. The asset moves log-Euler with the same
    ``v+`` and the shock ``rho Z_v + sqrt(1 - rho^2) Z_perp``.
    Returns ``(S_next, v_next)``.
    """
    v_plus = np.maximum(v, 0.0)
    z_s = hp.rho * z_v + math.sqrt(max(0.0, 1.0 - hp.rho * hp.rho)) * z_perp
    diffusion = np.sqrt(v_plus * dt)
    S_next = S * np.exp((r - q - 0.5 * v_plus) * dt + diffusion * z_s)
    v_next = v + hp.kappa * (hp.theta - v_plus) * dt + hp.xi * diffusion * z_v
    return S_next, v_next


def jump_step(S, dt: float, r: float, q: float, sigma: float, jp: JumpParams, z, z_jump, u):
    """GBM step plus at most one lognormal jump.

    A jump arrives when ``u < lam * dt`` (Bernoulli stand-in for the Poisson
    count, accurate only while lam*dt is small). The drift carries the
    compensator -lam * (E[e^Y] - 1) so the discounted price stays a martingale.
    """
    drift = (r - q - 0.5 * sigma * sigma - jp.lam * jp.mean_jump) * dt
    jump = np.where(u < jp.lam * dt, np.exp(jp.mu_j + jp.sigma_j * z_jump) - 1.0, 0.0)
    return S * np.exp(drift + sigma * math.sqrt(dt) * z) * (1.0 + jump)


# -----------------------------
# Drivers
# -----------------------------
def check_jump_resolution(jp: JumpParams, dt: float) -> bool:
    """Warn when lam*dt is too coarse for one-jump-per-step arrivals."""
    p = jp.lam * dt
    if p > JUMP_PROB_WARN:
        logger.warning(
            "jump probability per step %.3f exceeds %.2f; Bernoulli arrivals "
            "undercount multiple jumps, increase n_steps",
            p, JUMP_PROB_WARN,
        )
        return False
    return True


@dataclass
class PathBundle:
    """Simulation output.

    ``spots`` is (n_steps+1, n) when the full path was kept, else (n,).
    ``variance`` mirrors it for Heston; ``jumps`` counts arrivals per path.
    """
    spots: np.ndarray
    variance: Optional[np.ndarray] = None
    jumps: Optional[np.ndarray] = None


def _pair(x: np.ndarray, antithetic: bool, negate: bool = True) -> np.ndarray:
    if not antithetic:
        return x
    return np.concatenate([x, -x if negate else x])


def simulate(
    opt: OptionParams, n_steps: int, n_paths: int,
    *, dynamics: str = GBM,
    heston: Optional[HestonParams] = None,
    jumps: Optional[JumpParams] = None,
    antithetic: bool = True,
    seed: SeedLike = None,
    keep_path: bool = True,
) -> PathBundle:
    """Advance ``n_paths`` (doubled if antithetic) trajectories to ``opt.T``."""
    if n_steps <= 0 or n_paths <= 0:
        raise ParameterError("n_steps and n_paths must be positive.")
    if dynamics not in DYNAMICS:
        raise ParameterError(f"dynamics must be one of {DYNAMICS}, got {dynamics!r}")
    if dynamics == HESTON and heston is None:
        raise ParameterError("heston dynamics need HestonParams")
    if dynamics == JUMP and jumps is None:
        raise ParameterError("jump dynamics need JumpParams")

    rng = make_rng(seed)
    dt = max(opt.T, 0.0) / n_steps
    n_cols = 2 * n_paths if antithetic else n_paths
    r, q, sigma = opt.r, opt.q, opt.sigma

    S_t = np.full(n_cols, opt.S0, dtype=float)
    v_t = np.full(n_cols, heston.v0, dtype=float) if dynamics == HESTON else None
    n_jumps = np.zeros(n_cols, dtype=np.int64) if dynamics == JUMP else None

    if keep_path:
        S = np.empty((n_steps + 1, n_cols), dtype=float)
        S[0, :] = S_t
        v = None
        if dynamics == HESTON:
            v = np.empty_like(S)
            v[0, :] = v_t

    for t in range(n_steps):
        if dynamics == GBM:
            z = _pair(standard_normals(rng, n_paths), antithetic)
            S_t = gbm_step(S_t, dt, r, q, sigma, z)
        elif dynamics == HESTON:
            z_v, z_perp = standard_normal_pair(rng, n_paths)
            S_t, v_t = heston_step(
                S_t, v_t, dt, r, q, heston,
                _pair(z_v, antithetic), _pair(z_perp, antithetic),
            )
        else:
            z, z_jump = standard_normal_pair(rng, n_paths)
            u = _pair(rng.random(n_paths), antithetic, negate=False)
            S_t = jump_step(
                S_t, dt, r, q, sigma, jumps,
                _pair(z, antithetic), _pair(z_jump, antithetic), u,
            )
            n_jumps += u < jumps.lam * dt

        if keep_path:
            S[t + 1, :] = S_t
            if v is not None:
                v[t + 1, :] = v_t

    if keep_path:
        return PathBundle(S, v, n_jumps)
    return PathBundle(S_t, v_t, n_jumps)


def simulate_paths(
    opt: OptionParams, n_steps: int, n_paths: int,
    *, dynamics: str = GBM,
    heston: Optional[HestonParams] = None,
    jumps: Optional[JumpParams] = None,
    antithetic: bool = True,
    seed: SeedLike = None,
    return_variance: bool = False,
) -> np.ndarray | tuple[np.ndarray, np.ndarray]:
    """Full paths, shape (n_steps+1, n_paths_eff)."""
    if jumps is not None and dynamics == JUMP:
        check_jump_resolution(jumps, max(opt.T, 0.0) / max(n_steps, 1))
    out = simulate(
        opt, n_steps, n_paths, dynamics=dynamics, heston=heston, jumps=jumps,
        antithetic=antithetic, seed=seed, keep_path=True,
    )
    if return_variance:
        if out.variance is None:
            raise ParameterError("variance paths exist only for heston dynamics")
        return out.spots, out.variance
    return out.spots


def simulate_terminal(
    opt: OptionParams, n_steps: int, n_paths: int,
    *, dynamics: str = GBM,
    heston: Optional[HestonParams] = None,
    jumps: Optional[JumpParams] = None,
    antithetic: bool = True,
    seed: SeedLike = None,
) -> np.ndarray:
    """Terminal prices only, shape (n_paths_eff,); no path storage."""
    if jumps is not None and dynamics == JUMP:
        check_jump_resolution(jumps, max(opt.T, 0.0) / max(n_steps, 1))
    return simulate(
        opt, n_steps, n_paths, dynamics=dynamics, heston=heston, jumps=jumps,
        antithetic=antithetic, seed=seed, keep_path=False,
    ).spots
