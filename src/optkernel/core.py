from __future__ import annotations
import math
import numpy as np
from dataclasses import dataclass, field, asdict
from typing import Optional

CALL = "call"
PUT  = "put"

UP_AND_OUT = "up-and-out"
UP_AND_IN = "up-and-in"
DOWN_AND_OUT = "down-and-out"
DOWN_AND_IN = "down-and-in"
BARRIER_TYPES = (UP_AND_OUT, UP_AND_IN, DOWN_AND_OUT, DOWN_AND_IN)

GREEK_NAMES = ("delta", "gamma", "theta", "vega", "rho")


class ParameterError(ValueError):
    """Invalid pricing input, raised before any model runs."""


class ImpliedVolatilityError(RuntimeError):
    """Implied volatility was requested from a solve that did not converge."""


def _require_finite(**values):
    for name, v in values.items():
        if not math.isfinite(v):
            raise ParameterError(f"{name} must be finite, got {v}")


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class OptionParams:
    """Vanilla contract plus the market state it is priced in.

    ``T <= 0`` is a valid, expired option: every pricer returns intrinsic
    value with zero Greeks. ``sigma == 0`` is likewise allowed.
    """
    S0: float
    K: float
    T: float          # years
    r: float          # continuous risk-free
    sigma: float
    q: float = 0.0    # continuous dividend yield
    kind: str = CALL

    def __post_init__(self):
        _require_finite(S0=self.S0, K=self.K, T=self.T, r=self.r, sigma=self.sigma, q=self.q)
        if self.S0 <= 0:
            raise ParameterError(f"S0 must be positive, got {self.S0}")
        if self.K <= 0:
            raise ParameterError(f"K must be positive, got {self.K}")
        if self.sigma < 0:
            raise ParameterError(f"sigma must be non-negative, got {self.sigma}")
        if self.kind not in (CALL, PUT):
            raise ParameterError(f"kind must be 'call' or 'put', got {self.kind!r}")

    @property
    def is_call(self) -> bool:
        return self.kind == CALL

    @property
    def expired(self) -> bool:
        return self.T <= 0

    def intrinsic(self, spot: Optional[float] = None) -> float:
        S = self.S0 if spot is None else spot
        return max(S - self.K, 0.0) if self.is_call else max(self.K - S, 0.0)

    def payoff(self, S):
        """Vanilla exercise value, elementwise over an array of spots."""
        if self.is_call:
            return np.maximum(S - self.K, 0.0)
        return np.maximum(self.K - S, 0.0)


@dataclass(frozen=True)
class HestonParams:
    """Stochastic-variance dynamics layered on an ``OptionParams``."""
    kappa: float      # mean-reversion speed
    theta: float      # long-run variance
    xi: float         # vol of vol
    rho: float        # spot/variance correlation
    v0: float         # initial variance

    def __post_init__(self):
        _require_finite(kappa=self.kappa, theta=self.theta, xi=self.xi, rho=self.rho, v0=self.v0)
        for name in ("kappa", "theta", "xi", "v0"):
            if getattr(self, name) < 0:
                raise ParameterError(f"{name} must be non-negative, got {getattr(self, name)}")
        if not (-1.0 <= self.rho <= 1.0):
            raise ParameterError(f"rho must be in [-1, 1], got {self.rho}")


@dataclass(frozen=True)
class JumpParams:
    """Merton lognormal jumps: intensity per year, log-jump mean and stdev."""
    lam: float
    mu_j: float
    sigma_j: float

    def __post_init__(self):
        _require_finite(lam=self.lam, mu_j=self.mu_j, sigma_j=self.sigma_j)
        if self.lam < 0:
            raise ParameterError(f"lam must be non-negative, got {self.lam}")
        if self.sigma_j < 0:
            raise ParameterError(f"sigma_j must be non-negative, got {self.sigma_j}")

    @property
    def mean_jump(self) -> float:
        """E[e^Y - 1], the compensator term of the drift."""
        return math.exp(self.mu_j + 0.5 * self.sigma_j ** 2) - 1.0


@dataclass(frozen=True)
class BarrierSpec:
    level: float
    barrier_type: str
    rebate: float = 0.0

    def __post_init__(self):
        _require_finite(level=self.level, rebate=self.rebate)
        if self.level <= 0:
            raise ParameterError(f"barrier level must be positive, got {self.level}")
        if self.barrier_type not in BARRIER_TYPES:
            raise ParameterError(
                f"barrier_type must be one of {BARRIER_TYPES}, got {self.barrier_type!r}"
            )
        if self.rebate < 0:
            raise ParameterError(f"rebate must be non-negative, got {self.rebate}")

    @property
    def is_up(self) -> bool:
        return self.barrier_type.startswith("up")

    @property
    def is_knock_out(self) -> bool:
        return self.barrier_type.endswith("out")

    def breached(self, spot):
        """Elementwise breach test: ``S >= B`` for up barriers, ``S <= B`` for down."""
        return spot >= self.level if self.is_up else spot <= self.level


# ---------------------------------------------------------------------------
# Outputs
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class Greeks:
    """First-order sensitivities.

    theta is per calendar day, vega per 1 vol point, rho per 1% rate.
    """
    delta: float
    gamma: float
    theta: float
    vega: float
    rho: float

    @classmethod
    def zero(cls) -> Greeks:
        return cls(0.0, 0.0, 0.0, 0.0, 0.0)

    def as_dict(self) -> dict[str, float]:
        return asdict(self)

    def scaled(self, factor: float) -> Greeks:
        return Greeks(*(factor * v for v in (self.delta, self.gamma, self.theta, self.vega, self.rho)))


@dataclass(frozen=True)
class HigherOrderGreeks:
    """Second-order cross sensitivities (annual units, vol in absolute terms)."""
    vanna: float
    volga: float
    charm: float
    veta: float
    speed: float
    zomma: float
    color: float

    @classmethod
    def zero(cls) -> HigherOrderGreeks:
        return cls(0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0)

    def as_dict(self) -> dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class Diagnostics:
    n_paths: Optional[int] = None
    n_steps: Optional[int] = None
    knockout_probability: Optional[float] = None
    early_exercise_premium: Optional[float] = None
    european_price: Optional[float] = None
    short_circuit: Optional[str] = None       # "expired" | "zero-vol" | "barrier-breached"
    mean_terminal_variance: Optional[float] = None
    terminal_vol_sample: Optional[tuple] = None
    jumps_per_path: Optional[float] = None

    def as_dict(self) -> dict:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass(frozen=True)
class PricingOutcome:
    """Result of one pricing call.

    ``borrowed`` names the Greeks that were taken from the analytic
    Black-Scholes-Merton model instead of being produced by ``model``.
    """
    price: float
    greeks: Greeks
    model: str
    borrowed: tuple[str, ...] = ()
    higher_order: Optional[HigherOrderGreeks] = None
    stderr: Optional[float] = None
    diagnostics: Diagnostics = field(default_factory=Diagnostics)

    @property
    def greeks_borrowed(self) -> bool:
        return bool(self.borrowed)

    def confidence_interval(self, level: float = 0.95) -> tuple[float, float]:
        """Normal-approximation interval around a simulated price."""
        if self.stderr is None:
            raise ValueError(f"{self.model} outcome carries no standard error")
        if not (0.0 < level < 1.0):
            raise ValueError(f"level must be in (0, 1), got {level}")
        from scipy.stats import norm
        z = float(norm.ppf(0.5 + 0.5 * level))
        return self.price - z * self.stderr, self.price + z * self.stderr

    def to_dict(self) -> dict:
        """Flat mapping for tables, chart series and exports."""
        out = {"model": self.model, "price": self.price, "stderr": self.stderr}
        out.update(self.greeks.as_dict())
        out["borrowed_greeks"] = ",".join(self.borrowed)
        if self.higher_order is not None:
            out.update(self.higher_order.as_dict())
        out.update(self.diagnostics.as_dict())
        return out
