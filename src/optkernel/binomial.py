import logging
import numpy as np
from math import exp, sqrt

from . import black_scholes as bs
from .config import LATTICE_STEPS
from .core import OptionParams, PricingOutcome, Greeks, Diagnostics, ParameterError, GREEK_NAMES

logger = logging.getLogger(__name__)

MODEL = "binomial"
TREE_GREEKS = ("delta", "gamma")
BORROWED = tuple(g for g in GREEK_NAMES if g not in TREE_GREEKS)


def _moves(opt: OptionParams, dt: float) -> tuple[float, float, float]:
    """Up factor, down factor and risk-neutral probability for one step.

    CRR (u = e^{sigma sqrt dt}, d = 1/u) unless the drift over a step
    outgrows the vol move, which pushes p out of (0,1) at small sigma. The
    tree is then centred on the drift (Jarrow-Rudd):
    u, d = e^{(r - q - sigma^2/2) dt +- sigma sqrt dt}, where p stays in
    (0,1) while sigma sqrt dt < 2.
    """
    growth = exp((opt.r - opt.q) * dt)
    move = opt.sigma * sqrt(dt)
    u = exp(move)
    d = 1.0 / u
    p = (growth - d) / (u - d)
    if 0.0 < p < 1.0:
        return u, d, p

    centre = (opt.r - opt.q - 0.5 * opt.sigma ** 2) * dt
    u = exp(centre + move)
    d = exp(centre - move)
    p = (growth - d) / (u - d)
    if not (0.0 < p < 1.0):
        raise ParameterError(
            f"risk-neutral probability {p:.4f} outside (0,1) with sigma*sqrt(dt)={move:.4f}; "
            "use more steps"
        )
    logger.debug("binomial: CRR p out of range at sigma=%g dt=%g, using drift-centred tree", opt.sigma, dt)
    return u, d, p


def _rollback(opt: OptionParams, N: int, american: bool):
    """Backward induction through a recombining tree.

    Returns the root value plus node values and spots at levels 1 and 2
    (index j counts up-moves), which the tree delta/gamma are read from.
    """
    dt = opt.T / N
    u, d, p = _moves(opt, dt)
    disc = exp(-opt.r * dt)

    # Payoff at maturity
    j = np.arange(N + 1)
    ST = opt.S0 * (u ** j) * (d ** (N - j))
    V = opt.payoff(ST)

    levels = {N: (V.copy(), ST)} if N <= 2 else {}
    for k in range(N - 1, -1, -1):
        V = disc * (p * V[1:] + (1.0 - p) * V[:-1])
        if american or k <= 2:
            j = np.arange(k + 1)
            S_k = opt.S0 * (u ** j) * (d ** (k - j))
            if american:
                V = np.maximum(V, opt.payoff(S_k))
            if k in (1, 2):
                levels[k] = (V.copy(), S_k)

    return float(V[0]), levels


def _tree_delta_gamma(levels) -> tuple[float, float]:
    V1, S1 = levels[1]
    V2, S2 = levels[2]
    delta = (V1[1] - V1[0]) / (S1[1] - S1[0])
    slope_up = (V2[2] - V2[1]) / (S2[2] - S2[1])
    slope_dn = (V2[1] - V2[0]) / (S2[1] - S2[0])
    gamma = (slope_up - slope_dn) / ((S2[2] - S2[0]) / 2.0)
    return float(delta), float(gamma)


def _deterministic(opt: OptionParams, N: int, american: bool) -> float:
    """Zero-vol lattice: the spot follows its forward, u = d = 1."""
    t = np.arange(N + 1) * (opt.T / N)
    S_t = opt.S0 * np.exp((opt.r - opt.q) * t)
    values = np.exp(-opt.r * t) * opt.payoff(S_t)
    return float(values.max() if american else values[-1])


def crr(opt: OptionParams, *, steps: int = LATTICE_STEPS, american: bool = False) -> PricingOutcome:
    """Cox-Ross-Rubinstein tree, European or American exercise.

    q enters through the risk-neutral probability; at vols too small for CRR
    the tree is centred on the drift instead. Delta and gamma come from
    the first two tree levels; theta, vega and rho are borrowed from the
    analytic model. With ``american=True`` a European pass on the same tree
    gives the early-exercise premium.
    """
    if steps < 2:
        raise ParameterError(f"steps must be at least 2, got {steps}")

    analytic = bs.greeks(opt)
    if opt.T <= 0:
        return PricingOutcome(
            price=opt.intrinsic(),
            greeks=Greeks.zero(),
            model=MODEL,
            borrowed=BORROWED,
            diagnostics=Diagnostics(n_steps=steps, short_circuit="expired",
                                    early_exercise_premium=0.0 if american else None),
        )

    if opt.sigma == 0:
        price = _deterministic(opt, steps, american)
        euro = _deterministic(opt, steps, False) if american else None
        return PricingOutcome(
            price=price,
            greeks=analytic,
            model=MODEL,
            borrowed=GREEK_NAMES,
            diagnostics=Diagnostics(
                n_steps=steps, short_circuit="zero-vol",
                early_exercise_premium=None if euro is None else price - euro,
                european_price=euro,
            ),
        )

    price, levels = _rollback(opt, steps, american)
    delta, gamma = _tree_delta_gamma(levels)

    premium = euro = None
    if american:
        euro, _ = _rollback(opt, steps, False)
        premium = price - euro

    logger.debug("binomial %s N=%d american=%s: price=%.6f", opt.kind, steps, american, price)
    return PricingOutcome(
        price=price,
        greeks=Greeks(delta=delta, gamma=gamma,
                      theta=analytic.theta, vega=analytic.vega, rho=analytic.rho),
        model=MODEL,
        borrowed=BORROWED,
        diagnostics=Diagnostics(n_steps=steps, early_exercise_premium=premium, european_price=euro),
    )
