"""Model validation framework.

Cross-model benchmarking against the closed form and convergence analysis
of the numerical methods (simulation paths, lattice steps).
"""

from __future__ import annotations

import logging
import numpy as np
from typing import Optional, Sequence
from scipy.stats import linregress

from . import black_scholes as bs
from .binomial import crr
from .config import MC_PATHS, LATTICE_STEPS
from .core import OptionParams, ParameterError
from .monte_carlo import mc_price

logger = logging.getLogger(__name__)

__all__ = [
    "cross_validate",
    "convergence_analysis",
]

METHODS = ("bs", "mc", "tree")


def _run(method: str, opt: OptionParams, size: int, seed):
    if method == "bs":
        return bs.bsm(opt)
    if method == "mc":
        return mc_price(opt, n_paths=size, seed=seed)
    if method == "tree":
        return crr(opt, steps=size)
    raise ParameterError(f"Unknown method: {method}")


# ---------------------------------------------------------------------------
# Cross-model benchmarking
# ---------------------------------------------------------------------------

def cross_validate(
    opt: OptionParams,
    methods: Sequence[str] = METHODS,
    *,
    mc_paths: int = MC_PATHS,
    mc_seed: Optional[int] = 42,
    tree_steps: int = LATTICE_STEPS,
) -> dict:
    """Price one European option with several models.

    Returns
    -------
    dict
        One ``PricingOutcome`` per method name, plus ``"max_discrepancy"``:
        the largest absolute price gap to the ``"bs"`` result (NaN when
        ``"bs"`` is not among the methods).
    """
    sizes = {"bs": 0, "mc": mc_paths, "tree": tree_steps}
    results: dict = {}
    for m in methods:
        if m not in sizes:
            raise ParameterError(f"Unknown method: {m}")
        results[m] = _run(m, opt, sizes[m], mc_seed)

    ref = results.get("bs")
    if ref is not None:
        discs = [abs(v.price - ref.price) for k, v in results.items() if k != "bs"]
        results["max_discrepancy"] = max(discs) if discs else 0.0
    else:
        results["max_discrepancy"] = float("nan")

    logger.debug("cross-validate %s: max discrepancy %.6g", ",".join(methods), results["max_discrepancy"])
    return results


# ---------------------------------------------------------------------------
# Convergence analysis
# ---------------------------------------------------------------------------

def convergence_analysis(
    opt: OptionParams,
    method: str,
    values: Sequence[int],
    *,
    reference: Optional[float] = None,
    seed: Optional[int] = 42,
) -> dict:
    """Analyse convergence of a numerical method as its size grows.

    Parameters
    ----------
    method : str
        ``"mc"`` (values are path counts) or ``"tree"`` (values are steps).
    values : sequence of int
        Sizes to test.
    reference : float, optional
        True price for error computation.  Default: BS analytical.

    Returns
    -------
    dict
        ``"params"``, ``"prices"``, ``"errors"``, ``"order"`` and
        ``"r_squared"`` of the log-log fit ``error ~ C / value**order``.
        Expect an order near 1 for the tree and near 0.5 for Monte Carlo.
    """
    if method not in ("mc", "tree"):
        raise ParameterError(f"Unknown method: {method}")
    values = [int(v) for v in values]
    if reference is None:
        reference = bs.price(opt)

    prices = [_run(method, opt, v, seed).price for v in values]
    errors = [abs(p - reference) for p in prices]

    order = r_squared = float("nan")
    valid = [(v, e) for v, e in zip(values, errors) if e > 0]
    if len(valid) >= 2:
        fit = linregress(np.log([v for v, _ in valid]), np.log([e for _, e in valid]))
        order = -float(fit.slope)
        r_squared = float(fit.rvalue ** 2)

    return {
        "params": values,
        "prices": prices,
        "errors": errors,
        "order": order,
        "r_squared": r_squared,
    }
