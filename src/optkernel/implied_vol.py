# implied_vol.py
# Newton-Raphson inversion of the Black-Scholes-Merton price.

from __future__ import annotations
import logging
import math
from dataclasses import dataclass

from . import black_scholes as bs
from .config import (
    IV_INITIAL_GUESS, IV_TOLERANCE, IV_MAX_ITERATIONS,
    IV_LOWER_BOUND, IV_UPPER_BOUND, VEGA_FLOOR, PER_PERCENT,
)
from .core import OptionParams, ParameterError, ImpliedVolatilityError

logger = logging.getLogger(__name__)

__all__ = ["ImpliedVolResult", "implied_vol"]


@dataclass(frozen=True)
class ImpliedVolResult:
    implied_vol: float
    iterations: int
    converged: bool
    residual: float       # model price minus market price at implied_vol

    def require(self) -> float:
        """The root, or ImpliedVolatilityError if the solve did not converge."""
        if not self.converged:
            raise ImpliedVolatilityError(
                f"implied vol did not converge after {self.iterations} iterations "
                f"(last sigma={self.implied_vol:.6f}, residual={self.residual:.3e})"
            )
        return self.implied_vol


def implied_vol(
    market_price: float,
    opt: OptionParams,
    *,
    initial_guess: float = IV_INITIAL_GUESS,
    tol: float = IV_TOLERANCE,
    max_iter: int = IV_MAX_ITERATIONS,
) -> ImpliedVolResult:
    """
    Volatility at which the analytic price matches ``market_price``.

    ``opt.sigma`` is ignored. Each Newton step uses the analytic vega and
    the iterate is clamped to [0.001, 5.0]. The loop stops when the price
    error is below ``tol``, when vega has vanished (deep in or out of the
    money, or near expiry), or after ``max_iter`` steps; only the first case
    reports ``converged=True``. The result always pairs a priced sigma with
    the residual measured there.

    Raises
    ------
    ParameterError
        If ``market_price`` is negative or not finite.
    """
    if not math.isfinite(market_price) or market_price < 0:
        raise ParameterError(f"market_price must be a non-negative number, got {market_price}")
    if max_iter <= 0:
        raise ParameterError(f"max_iter must be positive, got {max_iter}")

    sigma = min(max(initial_guess, IV_LOWER_BOUND), IV_UPPER_BOUND)
    root = sigma    # sigma at which diff was last taken
    diff = math.inf
    converged = False
    iterations = 0

    for _ in range(max_iter):
        iterations += 1
        root = sigma
        trial = bs.with_sigma(opt, root)
        diff = bs.price(trial) - market_price
        if abs(diff) < tol:
            converged = True
            break

        vega = bs.greeks(trial).vega * PER_PERCENT   # back to per unit of vol
        if abs(vega) < VEGA_FLOOR:
            logger.warning("implied vol: vega %.3e below floor at sigma=%.6f, stopping", vega, root)
            break

        sigma = min(max(sigma - diff / vega, IV_LOWER_BOUND), IV_UPPER_BOUND)

    if not converged:
        logger.warning("implied vol did not converge: price=%.6f sigma=%.6f residual=%.3e iterations=%d",
                       market_price, root, diff, iterations)
    return ImpliedVolResult(implied_vol=root, iterations=iterations, converged=converged, residual=diff)
