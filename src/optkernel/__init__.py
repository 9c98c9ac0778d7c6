# optkernel: options pricing kernel
# Public API

import logging

# Data model
from .core import (
    OptionParams, HestonParams, JumpParams, BarrierSpec,
    Greeks, HigherOrderGreeks, Diagnostics, PricingOutcome,
    ParameterError, ImpliedVolatilityError,
    CALL, PUT, UP_AND_OUT, UP_AND_IN, DOWN_AND_OUT, DOWN_AND_IN,
)

# Analytic
from .black_scholes import price as bs_price, greeks as bs_greeks, higher_order_greeks, bsm
from .implied_vol import implied_vol, ImpliedVolResult

# Simulation and lattice
from .processes import simulate_paths, simulate_terminal
from .monte_carlo import mc_price
from .binomial import crr
from .stochastic import heston_price, jump_diffusion_price

# Exotic payoffs
from .exotics import asian_price, barrier_price, digital_price

# Risk engine
from .risk import (
    numerical_greeks, sweep, scenario_grid, stress_test,
    Scenario, STANDARD_SCENARIOS, Position, portfolio_greeks,
)

# Model validation
from .validation import cross_validate, convergence_analysis

__all__ = [
    # Data model
    "OptionParams", "HestonParams", "JumpParams", "BarrierSpec",
    "Greeks", "HigherOrderGreeks", "Diagnostics", "PricingOutcome",
    "ParameterError", "ImpliedVolatilityError",
    "CALL", "PUT", "UP_AND_OUT", "UP_AND_IN", "DOWN_AND_OUT", "DOWN_AND_IN",
    # Analytic
    "bs_price", "bs_greeks", "higher_order_greeks", "bsm",
    "implied_vol", "ImpliedVolResult",
    # Simulation and lattice
    "simulate_paths", "simulate_terminal",
    "mc_price", "crr", "heston_price", "jump_diffusion_price",
    # Exotics
    "asian_price", "barrier_price", "digital_price",
    # Risk
    "numerical_greeks", "sweep", "scenario_grid", "stress_test",
    "Scenario", "STANDARD_SCENARIOS", "Position", "portfolio_greeks",
    # Validation
    "cross_validate", "convergence_analysis",
]

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())
