"""Tests for the path simulator: injected-shock steps and martingale checks."""

import logging
import math
import numpy as np
import pytest

from optkernel.core import OptionParams, HestonParams, JumpParams, ParameterError
from optkernel.processes import (
    gbm_step, heston_step, jump_step, simulate_paths, simulate_terminal,
    check_jump_resolution, GBM, HESTON, JUMP,
)

OPT = OptionParams(S0=100, K=100, T=1.0, r=0.05, sigma=0.2, q=0.01)
HP = HestonParams(kappa=2.0, theta=0.04, xi=0.3, rho=-0.7, v0=0.04)
JP = JumpParams(lam=0.5, mu_j=-0.1, sigma_j=0.15)


class TestSteps:
    def test_gbm_zero_shock(self):
        S = gbm_step(np.array([100.0]), 0.1, 0.05, 0.01, 0.2, np.array([0.0]))
        assert S[0] == pytest.approx(100.0 * math.exp((0.05 - 0.01 - 0.02) * 0.1))

    def test_gbm_unit_shock(self):
        S = gbm_step(100.0, 0.25, 0.0, 0.0, 0.2, 1.0)
        assert S == pytest.approx(100.0 * math.exp(-0.02 * 0.25 + 0.2 * 0.5))

    def test_heston_truncation(self):
        """Negative variance contributes nothing to drift or diffusion."""
        S, v = heston_step(np.array([100.0]), np.array([-0.01]), 0.01, 0.05, 0.0, HP,
                           np.array([2.0]), np.array([-1.5]))
        assert S[0] == pytest.approx(100.0 * math.exp(0.05 * 0.01))
        # state kept un-floored: v + kappa * (theta - 0) * dt
        assert v[0] == pytest.approx(-0.01 + 2.0 * 0.04 * 0.01)

    def test_heston_correlated_shock(self):
        dt = 0.01
        S, v = heston_step(100.0, 0.04, dt, 0.0, 0.0, HP, 1.0, 0.0)
        z_s = HP.rho * 1.0
        expected_S = 100.0 * math.exp(-0.5 * 0.04 * dt + math.sqrt(0.04 * dt) * z_s)
        assert S == pytest.approx(expected_S)
        assert v == pytest.approx(0.04 + HP.xi * math.sqrt(0.04 * dt))

    def test_jump_no_arrival_is_compensated_gbm(self):
        dt = 0.01
        S = jump_step(100.0, dt, 0.05, 0.0, 0.2, JP, 0.3, 1.0, 0.9)
        drift = (0.05 - 0.02 - JP.lam * JP.mean_jump) * dt
        assert S == pytest.approx(100.0 * math.exp(drift + 0.2 * 0.1 * 0.3))

    def test_jump_arrival_multiplies(self):
        dt = 0.01
        no_jump = jump_step(100.0, dt, 0.05, 0.0, 0.2, JP, 0.0, 0.0, 0.99)
        jump = jump_step(100.0, dt, 0.05, 0.0, 0.2, JP, 0.0, 0.0, 0.0)
        assert jump / no_jump == pytest.approx(math.exp(JP.mu_j))


class TestDrivers:
    def test_shape_includes_t0_row(self):
        paths = simulate_paths(OPT, 12, 50, seed=1)
        assert paths.shape == (13, 100)
        assert np.all(paths[0] == OPT.S0)

    def test_no_antithetic_shape(self):
        assert simulate_paths(OPT, 5, 50, antithetic=False, seed=1).shape == (6, 50)

    def test_antithetic_mirror(self):
        n, steps = 200, 10
        paths = simulate_paths(OPT, steps, n, seed=3)
        t = np.arange(steps + 1) * OPT.T / steps
        log_sum = np.log(paths[:, :n] / OPT.S0) + np.log(paths[:, n:] / OPT.S0)
        expected = 2 * (OPT.r - OPT.q - 0.5 * OPT.sigma ** 2) * t
        np.testing.assert_allclose(log_sum, np.repeat(expected[:, None], n, axis=1), atol=1e-10)

    def test_seed_reproducible(self):
        a = simulate_terminal(OPT, 10, 1000, dynamics=HESTON, heston=HP, seed=11)
        b = simulate_terminal(OPT, 10, 1000, dynamics=HESTON, heston=HP, seed=11)
        np.testing.assert_array_equal(a, b)

    @pytest.mark.parametrize("dynamics,kw", [
        (GBM, {}), (HESTON, {"heston": HP}), (JUMP, {"jumps": JP}),
    ])
    def test_discounted_martingale(self, dynamics, kw):
        ST = simulate_terminal(OPT, 50, 50_000, dynamics=dynamics, seed=2024, **kw)
        disc = math.exp(-OPT.r * OPT.T) * ST
        se = disc.std(ddof=1) / math.sqrt(disc.size)
        assert abs(disc.mean() - OPT.S0 * math.exp(-OPT.q * OPT.T)) < 4 * se + 0.05

    def test_heston_variance_paths(self):
        spots, var = simulate_paths(OPT, 20, 100, dynamics=HESTON, heston=HP,
                                    seed=4, return_variance=True)
        assert spots.shape == var.shape
        assert np.all(var[0] == HP.v0)

    def test_variance_only_for_heston(self):
        with pytest.raises(ParameterError):
            simulate_paths(OPT, 5, 10, seed=1, return_variance=True)

    def test_invalid_arguments(self):
        with pytest.raises(ParameterError):
            simulate_paths(OPT, 0, 10)
        with pytest.raises(ParameterError):
            simulate_paths(OPT, 10, 10, dynamics="levy")
        with pytest.raises(ParameterError):
            simulate_paths(OPT, 10, 10, dynamics=HESTON)

    def test_expired_paths_are_flat(self):
        expired = OptionParams(100, 100, 0.0, 0.05, 0.2)
        assert np.all(simulate_paths(expired, 4, 10, seed=0) == 100.0)


class TestJumpResolution:
    def test_warns_when_coarse(self, caplog):
        with caplog.at_level(logging.WARNING, logger="optkernel.processes"):
            assert not check_jump_resolution(JumpParams(5.0, 0.0, 0.1), 0.05)
        assert "jump probability" in caplog.text

    def test_quiet_when_fine(self, caplog):
        with caplog.at_level(logging.WARNING, logger="optkernel.processes"):
            assert check_jump_resolution(JP, 0.01)
        assert caplog.text == ""
