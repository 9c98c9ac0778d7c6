"""Tests for the data model."""

import math
import pytest
from scipy.stats import norm

from optkernel.core import (
    OptionParams, HestonParams, JumpParams, BarrierSpec, Greeks, Diagnostics,
    PricingOutcome, ParameterError, PUT, UP_AND_OUT, DOWN_AND_IN,
)


class TestOptionParams:
    @pytest.mark.parametrize("kwargs", [
        dict(S0=0.0), dict(S0=-1.0), dict(K=0.0), dict(sigma=-0.1),
        dict(r=float("nan")), dict(T=float("inf")), dict(kind="straddle"),
    ])
    def test_rejects_invalid(self, kwargs):
        base = dict(S0=100, K=100, T=1.0, r=0.05, sigma=0.2)
        base.update(kwargs)
        with pytest.raises(ParameterError):
            OptionParams(**base)

    def test_parameter_error_is_value_error(self):
        with pytest.raises(ValueError):
            OptionParams(S0=-1, K=100, T=1, r=0, sigma=0.2)

    def test_expired_and_zero_vol_allowed(self):
        opt = OptionParams(S0=100, K=90, T=0.0, r=0.05, sigma=0.0)
        assert opt.expired
        assert opt.intrinsic() == 10.0

    def test_put_intrinsic(self):
        opt = OptionParams(S0=100, K=110, T=1.0, r=0.05, sigma=0.2, kind=PUT)
        assert opt.intrinsic() == 10.0
        assert opt.intrinsic(spot=120.0) == 0.0


class TestExtensions:
    def test_heston_rho_bounds(self):
        with pytest.raises(ParameterError):
            HestonParams(kappa=2, theta=0.04, xi=0.3, rho=-1.2, v0=0.04)

    def test_heston_negative_variance(self):
        with pytest.raises(ParameterError):
            HestonParams(kappa=2, theta=0.04, xi=0.3, rho=-0.5, v0=-0.01)

    def test_jump_mean(self):
        jp = JumpParams(lam=1.0, mu_j=-0.1, sigma_j=0.2)
        assert jp.mean_jump == pytest.approx(math.exp(-0.1 + 0.02) - 1.0)

    def test_jump_negative_intensity(self):
        with pytest.raises(ParameterError):
            JumpParams(lam=-1.0, mu_j=0.0, sigma_j=0.1)

    def test_barrier_validation(self):
        with pytest.raises(ParameterError):
            BarrierSpec(level=0.0, barrier_type=UP_AND_OUT)
        with pytest.raises(ParameterError):
            BarrierSpec(level=120.0, barrier_type="sideways-and-out")
        with pytest.raises(ParameterError):
            BarrierSpec(level=120.0, barrier_type=UP_AND_OUT, rebate=-1.0)

    def test_barrier_breach_direction(self):
        up = BarrierSpec(120.0, UP_AND_OUT)
        down = BarrierSpec(80.0, DOWN_AND_IN)
        assert up.is_up and up.is_knock_out
        assert not down.is_up and not down.is_knock_out
        assert up.breached(120.0) and not up.breached(119.9)
        assert down.breached(80.0) and not down.breached(80.1)


class TestOutcome:
    def test_greeks_scaled(self):
        g = Greeks(0.5, 0.02, -0.01, 0.4, 0.5).scaled(-200)
        assert g.delta == -100.0
        assert g.vega == pytest.approx(-80.0)

    def test_diagnostics_drop_none(self):
        d = Diagnostics(n_paths=10, short_circuit="expired")
        assert d.as_dict() == {"n_paths": 10, "short_circuit": "expired"}

    def test_confidence_interval(self):
        out = PricingOutcome(price=10.0, greeks=Greeks.zero(), model="mc", stderr=0.1)
        lo, hi = out.confidence_interval(0.95)
        z = norm.ppf(0.975)
        assert lo == pytest.approx(10.0 - z * 0.1)
        assert hi == pytest.approx(10.0 + z * 0.1)

    def test_confidence_interval_needs_stderr(self):
        out = PricingOutcome(price=10.0, greeks=Greeks.zero(), model="black-scholes")
        with pytest.raises(ValueError):
            out.confidence_interval()

    def test_to_dict(self):
        out = PricingOutcome(price=1.0, greeks=Greeks.zero(), model="binomial",
                             borrowed=("theta", "vega", "rho"),
                             diagnostics=Diagnostics(n_steps=200))
        d = out.to_dict()
        assert d["model"] == "binomial"
        assert d["borrowed_greeks"] == "theta,vega,rho"
        assert d["n_steps"] == 200
        assert out.greeks_borrowed
