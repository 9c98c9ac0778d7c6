from dataclasses import replace

import pytest

from optkernel.core import OptionParams, CALL, PUT, GREEK_NAMES, ParameterError
from optkernel import black_scholes as bs
from optkernel.monte_carlo import mc_price, plan_chunks, draw_count

OPT = OptionParams(S0=100, K=100, T=1.0, r=0.03, sigma=0.25, q=0.01)


def test_mc_call_within_three_stderr():
    out = mc_price(OPT, n_paths=100_000, seed=1)
    assert abs(out.price - bs.price(OPT)) < 3 * out.stderr


def test_mc_put_within_three_stderr():
    put = replace(OPT, kind=PUT)
    out = mc_price(put, n_paths=100_000, seed=1)
    assert abs(out.price - bs.price(put)) < 3 * out.stderr + 0.01


def test_mc_without_variance_reduction():
    out = mc_price(OPT, n_paths=200_000, antithetic=False, control_variate=False, seed=7)
    assert abs(out.price - bs.price(OPT)) < 4 * out.stderr


def test_stderr_ignores_control_variate():
    """The reported error is the raw-payoff error, with or without the control."""
    a = mc_price(OPT, n_paths=20_000, control_variate=True, seed=3)
    b = mc_price(OPT, n_paths=20_000, control_variate=False, seed=3)
    assert a.stderr == b.stderr
    assert a.price != b.price


def test_path_count_is_total():
    assert mc_price(OPT, n_paths=50_000, seed=0).diagnostics.n_paths == 50_000
    assert mc_price(OPT, n_paths=50_001, seed=0).diagnostics.n_paths == 50_000
    assert mc_price(OPT, n_paths=1_001, antithetic=False, seed=0).diagnostics.n_paths == 1_001


def test_greeks_are_borrowed():
    out = mc_price(OPT, n_paths=2_000, seed=0)
    assert out.borrowed == GREEK_NAMES
    assert out.greeks == bs.greeks(OPT)
    assert out.model == "monte-carlo"


def test_seeded_runs_repeat():
    a = mc_price(OPT, n_paths=30_000, chunk_size=7_000, seed=99)
    b = mc_price(OPT, n_paths=30_000, chunk_size=7_000, seed=99)
    assert a.price == b.price and a.stderr == b.stderr


def test_workers_do_not_change_result():
    a = mc_price(OPT, n_paths=40_000, chunk_size=5_000, seed=5, n_workers=1)
    b = mc_price(OPT, n_paths=40_000, chunk_size=5_000, seed=5, n_workers=2)
    assert a.price == pytest.approx(b.price, rel=1e-12)
    assert a.stderr == pytest.approx(b.stderr, rel=1e-12)


def test_confidence_interval_covers_bs():
    out = mc_price(OPT, n_paths=100_000, seed=11)
    lo, hi = out.confidence_interval(0.999)
    assert lo < bs.price(OPT) < hi


@pytest.mark.parametrize("kind,expected", [(CALL, 15.0), (PUT, 0.0)])
def test_expired_short_circuit(kind, expected):
    opt = OptionParams(115, 100, 0.0, 0.03, 0.25, kind=kind)
    out = mc_price(opt, seed=0)
    assert out.price == expected
    assert out.stderr == 0.0
    assert out.diagnostics.short_circuit == "expired"


def test_too_few_paths():
    with pytest.raises(ValueError):
        mc_price(OPT, n_paths=1)


def test_plan_chunks():
    assert plan_chunks(250, 100) == [100, 100, 50]
    assert plan_chunks(0, 10) == []


@pytest.mark.parametrize("n_paths", [1_000, 10_000, 100_000])
def test_converges_with_path_count(n_paths):
    out = mc_price(OPT, n_paths=n_paths, seed=2)
    assert abs(out.price - bs.price(OPT)) < 4 * out.stderr


def test_draw_count():
    assert draw_count(10_001, antithetic=True) == 5_000
    assert draw_count(10_001, antithetic=False) == 10_001
    with pytest.raises(ParameterError, match="n_paths"):
        draw_count(1, antithetic=True)
    with pytest.raises(ParameterError, match="n_steps"):
        draw_count(1_000, antithetic=True, n_steps=0)
