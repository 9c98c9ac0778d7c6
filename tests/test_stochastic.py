"""Tests for the Heston and Merton jump-diffusion pricers."""

import logging
import math
from dataclasses import replace

import pytest

from optkernel.core import OptionParams, HestonParams, JumpParams, PUT, GREEK_NAMES, ParameterError
from optkernel import black_scholes as bs
from optkernel.stochastic import heston_price, jump_diffusion_price

OPT = OptionParams(S0=100, K=100, T=1.0, r=0.05, sigma=0.2)


def merton_series(opt: OptionParams, jp: JumpParams, terms: int = 40) -> float:
    """Merton (1976) price as a Poisson mixture of Black-Scholes prices."""
    m = jp.mean_jump
    lam_p = jp.lam * (1.0 + m)
    total = 0.0
    for k in range(terms):
        sigma_k = math.sqrt(opt.sigma ** 2 + k * jp.sigma_j ** 2 / opt.T)
        r_k = opt.r - jp.lam * m + k * (jp.mu_j + 0.5 * jp.sigma_j ** 2) / opt.T
        weight = math.exp(-lam_p * opt.T) * (lam_p * opt.T) ** k / math.factorial(k)
        total += weight * bs.price(replace(opt, sigma=sigma_k, r=r_k))
    return total


class TestHeston:
    def test_constant_variance_is_black_scholes(self):
        hp = HestonParams(kappa=1.5, theta=0.04, xi=0.0, rho=0.0, v0=0.04)
        out = heston_price(OPT, hp, n_paths=100_000, n_steps=20, seed=8)
        assert abs(out.price - bs.price(OPT)) < 4 * out.stderr

    def test_diagnostics(self):
        hp = HestonParams(kappa=2.0, theta=0.04, xi=0.3, rho=-0.7, v0=0.04)
        out = heston_price(OPT, hp, n_paths=40_000, n_steps=50, seed=2)
        d = out.diagnostics
        assert len(d.terminal_vol_sample) == 100
        assert all(v >= 0 for v in d.terminal_vol_sample)
        assert d.mean_terminal_variance == pytest.approx(0.04, abs=0.005)
        assert d.n_paths == 40_000 and d.n_steps == 50

    def test_greeks_borrowed_at_initial_vol(self):
        hp = HestonParams(kappa=2.0, theta=0.09, xi=0.4, rho=-0.5, v0=0.0625)
        out = heston_price(replace(OPT, kind=PUT), hp, n_paths=2_000, n_steps=10, seed=0)
        assert out.borrowed == GREEK_NAMES
        assert out.greeks == bs.greeks(OptionParams(100, 100, 1.0, 0.05, 0.25, kind=PUT))

    def test_negative_correlation_skews_puts(self):
        """With rho < 0 the left tail fattens: OTM puts gain relative to flat vol."""
        hp = HestonParams(kappa=1.0, theta=0.04, xi=0.6, rho=-0.9, v0=0.04)
        put = OptionParams(100, 80, 1.0, 0.05, 0.2, kind=PUT)
        out = heston_price(put, hp, n_paths=100_000, n_steps=100, seed=21)
        assert out.price - 4 * out.stderr > bs.price(put)

    def test_expired(self):
        hp = HestonParams(kappa=1.0, theta=0.04, xi=0.3, rho=-0.5, v0=0.04)
        out = heston_price(replace(OPT, T=0.0, S0=105), hp)
        assert out.price == 5.0
        assert out.diagnostics.short_circuit == "expired"


class TestJumpDiffusion:
    def test_no_jumps_is_black_scholes(self):
        out = jump_diffusion_price(OPT, JumpParams(0.0, -0.1, 0.2), n_paths=100_000,
                                   n_steps=10, seed=4)
        assert abs(out.price - bs.price(OPT)) < 4 * out.stderr
        assert out.diagnostics.jumps_per_path == 0.0

    def test_matches_merton_series(self):
        jp = JumpParams(lam=1.0, mu_j=-0.1, sigma_j=0.15)
        out = jump_diffusion_price(OPT, jp, n_paths=100_000, n_steps=100, seed=12)
        assert abs(out.price - merton_series(OPT, jp)) < 4 * out.stderr + 0.05

    def test_jump_count(self):
        jp = JumpParams(lam=1.0, mu_j=0.0, sigma_j=0.1)
        out = jump_diffusion_price(OPT, jp, n_paths=50_000, n_steps=100, seed=6)
        assert out.diagnostics.jumps_per_path == pytest.approx(1.0, abs=0.03)
        assert out.borrowed == GREEK_NAMES

    def test_coarse_grid_warns(self, caplog):
        with caplog.at_level(logging.WARNING, logger="optkernel.processes"):
            jump_diffusion_price(OPT, JumpParams(20.0, 0.0, 0.1), n_paths=200, n_steps=10, seed=0)
        assert caplog.text.count("jump probability") == 1


@pytest.mark.parametrize("kwargs", [{"n_paths": 1}, {"n_steps": 0}])
def test_path_and_step_counts_validated(kwargs):
    hp = HestonParams(kappa=2.0, theta=0.04, xi=0.3, rho=-0.7, v0=0.04)
    jp = JumpParams(lam=0.5, mu_j=-0.1, sigma_j=0.2)
    with pytest.raises(ParameterError):
        heston_price(OPT, hp, seed=0, **kwargs)
    with pytest.raises(ParameterError):
        jump_diffusion_price(OPT, jp, seed=0, **kwargs)
