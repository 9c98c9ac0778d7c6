"""Bump-and-reprice risk engine.

Every function here drives a *pricer*: any callable ``pricer(opt)`` that
returns a ``PricingOutcome`` (``black_scholes.bsm``, ``binomial.crr``,
``monte_carlo.mc_price`` ...) or a plain float price. Extra pricer
arguments are bound with ``functools.partial``; for simulation pricers bind
a fixed ``seed`` so that bumped revaluations share their random numbers.

Provides numerical Greeks, one- and two-dimensional parameter sweeps (the
heatmap / animation surfaces), named stress scenarios and portfolio
aggregation.
"""

from __future__ import annotations

import logging
import numpy as np
from dataclasses import dataclass, replace
from typing import Callable, Iterable, Sequence, Union

from .black_scholes import bsm
from .config import DAYS_PER_YEAR, PER_PERCENT
from .core import OptionParams, PricingOutcome, Greeks, ParameterError, GREEK_NAMES

logger = logging.getLogger(__name__)

__all__ = [
    "numerical_greeks",
    "sweep",
    "scenario_grid",
    "spot_ladder",
    "expiry_ladder",
    "Scenario",
    "ScenarioResult",
    "STANDARD_SCENARIOS",
    "stress_test",
    "stress_summary",
    "Position",
    "PortfolioRisk",
    "portfolio_greeks",
]

Pricer = Callable[[OptionParams], Union[PricingOutcome, float]]

BUMPABLE_FIELDS = ("S0", "K", "T", "r", "sigma", "q")
HEATMAP_DAYS = (1, 7, 14, 30, 60, 90, 180, 365)
MIN_STRESS_VOL = 0.01


def _metric(result, metric: str) -> float:
    """Pull ``metric`` ("price", "stderr" or a Greek name) out of a pricer result."""
    if not isinstance(result, PricingOutcome):
        if metric != "price":
            raise ParameterError(f"pricer returned a bare price; metric {metric!r} unavailable")
        return float(result)
    if metric == "price":
        return result.price
    if metric == "stderr":
        return float("nan") if result.stderr is None else result.stderr
    if metric in GREEK_NAMES:
        return getattr(result.greeks, metric)
    raise ParameterError(f"unknown metric {metric!r}")


def _check_field(name: str) -> None:
    if name not in BUMPABLE_FIELDS:
        raise ParameterError(f"field must be one of {BUMPABLE_FIELDS}, got {name!r}")


def _price(pricer: Pricer, opt: OptionParams) -> float:
    return _metric(pricer(opt), "price")


# ---------------------------------------------------------------------------
# Numerical Greeks
# ---------------------------------------------------------------------------

def numerical_greeks(
    pricer: Pricer,
    opt: OptionParams,
    *,
    bump_pct: float = 0.01,
) -> Greeks:
    """Compute Greeks via central finite differences on an arbitrary pricer.

    Parameters
    ----------
    pricer : callable
        ``pricer(opt) -> PricingOutcome | float``.
    opt : OptionParams
    bump_pct : float
        Relative bump size for spot and vol; absolute for rate (default 0.01).

    Returns
    -------
    Greeks
        Same units as the analytic model: theta per day (one-day forward
        difference), vega and rho per 1%.
    """
    if bump_pct <= 0:
        raise ParameterError(f"bump_pct must be positive, got {bump_pct}")
    P0 = _price(pricer, opt)

    # --- Delta & Gamma (spot bump) ---
    eps_S = bump_pct * opt.S0
    P_up = _price(pricer, replace(opt, S0=opt.S0 + eps_S))
    P_dn = _price(pricer, replace(opt, S0=opt.S0 - eps_S))
    delta = (P_up - P_dn) / (2.0 * eps_S)
    gamma = (P_up - 2.0 * P0 + P_dn) / (eps_S ** 2)

    # --- Vega (vol bump, lower leg kept at sigma >= 0) ---
    eps_v = max(bump_pct * opt.sigma, 1e-4)
    sig_dn = max(opt.sigma - eps_v, 0.0)
    P_vup = _price(pricer, replace(opt, sigma=opt.sigma + eps_v))
    P_vdn = _price(pricer, replace(opt, sigma=sig_dn))
    vega = (P_vup - P_vdn) / (opt.sigma + eps_v - sig_dn)

    # --- Theta (time decay, 1-day bump, capped at expiry) ---
    if opt.T > 0:
        T_next = max(opt.T - 1.0 / DAYS_PER_YEAR, 0.0)
        P_t = _price(pricer, replace(opt, T=T_next))
        theta = (P_t - P0) / ((opt.T - T_next) * DAYS_PER_YEAR)
    else:
        theta = 0.0

    # --- Rho (rate bump) ---
    eps_r = bump_pct
    P_rup = _price(pricer, replace(opt, r=opt.r + eps_r))
    P_rdn = _price(pricer, replace(opt, r=opt.r - eps_r))
    rho = (P_rup - P_rdn) / (2.0 * eps_r)

    return Greeks(
        delta=float(delta),
        gamma=float(gamma),
        theta=float(theta),
        vega=float(vega / PER_PERCENT),
        rho=float(rho / PER_PERCENT),
    )


# ---------------------------------------------------------------------------
# Sweeps and scenario grids
# ---------------------------------------------------------------------------

def sweep(
    pricer: Pricer,
    opt: OptionParams,
    field: str,
    values: Iterable[float],
    *,
    metric: str = "price",
) -> np.ndarray:
    """Reprice with one field of ``opt`` replaced by each of ``values``.

    This is the per-frame recalculation behind sensitivity charts and
    time-decay animations (``field="T"``).
    """
    _check_field(field)
    return np.array([_metric(pricer(replace(opt, **{field: float(v)})), metric) for v in values])


def scenario_grid(
    pricer: Pricer,
    opt: OptionParams,
    x: tuple[str, Sequence[float]],
    y: tuple[str, Sequence[float]],
    *,
    metric: str = "price",
) -> dict:
    """Evaluate a pricer across a 2-D scenario grid.

    Parameters
    ----------
    x, y : (field, values)
        Axis definitions, e.g. ``("S0", spot_ladder(100))`` and
        ``("T", expiry_ladder())``.
    metric : str
        ``"price"``, ``"stderr"`` or a Greek name (heatmap of that Greek).

    Returns
    -------
    dict
        ``"x_field"``, ``"x_values"``, ``"y_field"``, ``"y_values"``,
        ``"values"`` (shape n_x × n_y).
    """
    x_field, x_values = x
    y_field, y_values = y
    _check_field(x_field)
    _check_field(y_field)
    if x_field == y_field:
        raise ParameterError(f"grid axes must differ, got {x_field!r} twice")

    x_values = np.asarray(x_values, dtype=float)
    y_values = np.asarray(y_values, dtype=float)
    values = np.empty((len(x_values), len(y_values)))

    for i, xv in enumerate(x_values):
        for j, yv in enumerate(y_values):
            bumped = replace(opt, **{x_field: float(xv), y_field: float(yv)})
            values[i, j] = _metric(pricer(bumped), metric)

    return {
        "x_field": x_field,
        "x_values": x_values.copy(),
        "y_field": y_field,
        "y_values": y_values.copy(),
        "values": values,
    }


def spot_ladder(K: float, n: int = 15, start: float = 0.7, step: float = 0.04) -> np.ndarray:
    """Spots ``K * (start + step*i)`` for i in 0..n-1 (70%..126% of strike by default)."""
    return K * (start + step * np.arange(n))


def expiry_ladder(days: Sequence[int] = HEATMAP_DAYS) -> np.ndarray:
    """Calendar days to expiry as year fractions."""
    return np.asarray(days, dtype=float) / DAYS_PER_YEAR


# ---------------------------------------------------------------------------
# Stress scenarios
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Scenario:
    name: str
    spot_change_pct: float     # relative move of S0, in percent
    vol_change_pct: float      # relative move of sigma, in percent

    def apply(self, opt: OptionParams) -> OptionParams:
        """Shocked parameters; a shocked vol is floored at 1%, an unshocked one is kept."""
        sigma = opt.sigma
        if self.vol_change_pct != 0:
            sigma = max(MIN_STRESS_VOL, sigma * (1.0 + self.vol_change_pct / 100.0))
        return replace(
            opt,
            S0=opt.S0 * (1.0 + self.spot_change_pct / 100.0),
            sigma=sigma,
        )


STANDARD_SCENARIOS = (
    Scenario("Market Crash", -20, 80),
    Scenario("Sharp Drop", -10, 40),
    Scenario("Moderate Drop", -5, 15),
    Scenario("Vol Spike", 0, 50),
    Scenario("Vol Crush", 0, -50),
    Scenario("Moderate Rally", 5, -10),
    Scenario("Strong Rally", 10, -20),
    Scenario("Explosive Rally", 20, -30),
    Scenario("Black Swan", -35, 150),
    Scenario("Euphoric Surge", 30, -40),
)


@dataclass(frozen=True)
class ScenarioResult:
    scenario: Scenario
    spot: float
    sigma: float
    price: float
    pnl: float           # currency, whole position
    pnl_pct: float       # percent of the base option price, signed by side


def stress_test(
    pricer: Pricer,
    opt: OptionParams,
    scenarios: Iterable[Scenario] = STANDARD_SCENARIOS,
    *,
    quantity: float = 1,
    multiplier: float = 100,
    long: bool = True,
) -> list[ScenarioResult]:
    """Revalue a position under each scenario and report its P&L.

    ``pnl = (shocked - base) * quantity * multiplier`` with the sign flipped
    for a short position. ``pnl_pct`` is NaN when the base price is zero.
    """
    sign = 1.0 if long else -1.0
    base = _price(pricer, opt)
    results = []
    for sc in scenarios:
        shocked = sc.apply(opt)
        p = _price(pricer, shocked)
        change = p - base
        results.append(ScenarioResult(
            scenario=sc,
            spot=shocked.S0,
            sigma=shocked.sigma,
            price=p,
            pnl=change * quantity * multiplier * sign,
            pnl_pct=change / base * 100.0 * sign if base > 0 else float("nan"),
        ))
    logger.debug("stress test: %d scenarios, base price %.6f", len(results), base)
    return results


def stress_summary(results: Sequence[ScenarioResult]) -> dict:
    """Worst, best and average scenario P&L."""
    if not results:
        raise ParameterError("no scenario results to summarise")
    worst = min(results, key=lambda r: r.pnl)
    best = max(results, key=lambda r: r.pnl)
    return {
        "worst": worst,
        "best": best,
        "average_pnl": float(np.mean([r.pnl for r in results])),
    }


# ---------------------------------------------------------------------------
# Portfolio risk
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Position:
    opt: OptionParams
    quantity: float            # contracts, negative for short
    multiplier: float = 100


@dataclass(frozen=True)
class PortfolioRisk:
    value: float
    greeks: Greeks
    positions: tuple = ()      # per-position (value, Greeks)


def portfolio_greeks(positions: Iterable[Position], pricer: Pricer = bsm) -> PortfolioRisk:
    """Aggregate value and Greeks over positions, each scaled by quantity * multiplier.

    ``pricer`` must return a ``PricingOutcome`` (its Greeks are summed).
    """
    total_value = 0.0
    totals = dict.fromkeys(GREEK_NAMES, 0.0)
    per_position = []

    for pos in positions:
        out = pricer(pos.opt)
        if not isinstance(out, PricingOutcome):
            raise ParameterError("portfolio_greeks needs a pricer returning PricingOutcome")
        scale = pos.quantity * pos.multiplier
        scaled = out.greeks.scaled(scale)
        value = out.price * scale
        for name in GREEK_NAMES:
            totals[name] += getattr(scaled, name)
        total_value += value
        per_position.append((value, scaled))

    return PortfolioRisk(value=total_value, greeks=Greeks(**totals), positions=tuple(per_position))
