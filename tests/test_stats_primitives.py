"""
Tests for the numeric primitives behind the significance tests.

scipy is used only here, as an independent reference implementation.
"""
import math

import pytest
from scipy import special, stats

from analytics.stats_primitives import (
    incomplete_beta,
    log_beta,
    log_gamma,
    mean,
    student_t_cdf,
    variance,
)


# ─── mean / variance ──────────────────────────────────────────


class TestMoments:
    """First and second moments."""

    def test_mean(self):
        assert mean([1, 2, 3, 4]) == 2.5

    def test_mean_of_empty_raises(self):
        with pytest.raises(ValueError):
            mean([])

    def test_population_variance(self):
        assert variance([2, 4, 4, 4, 5, 5, 7, 9]) == pytest.approx(4.0)

    def test_sample_variance(self):
        assert variance([2, 4, 4, 4, 5, 5, 7, 9], ddof=1) == pytest.approx(32 / 7)

    def test_constant_series_has_zero_variance(self):
        assert variance([3.3] * 10) == pytest.approx(0.0, abs=1e-15)

    def test_sample_variance_needs_two_values(self):
        with pytest.raises(ValueError):
            variance([1.0], ddof=1)


# ─── log_gamma / log_beta ─────────────────────────────────────


class TestLogGamma:
    """Lanczos log-gamma against math.lgamma."""

    @pytest.mark.parametrize("x", [0.1, 0.5, 1.0, 1.5, 2.0, 3.7, 10.0, 50.5, 200.0])
    def test_matches_lgamma(self, x):
        assert log_gamma(x) == pytest.approx(math.lgamma(x), rel=1e-10, abs=1e-12)

    def test_integer_factorials(self):
        # Γ(n) = (n-1)!
        for n in range(1, 12):
            assert math.exp(log_gamma(n)) == pytest.approx(math.factorial(n - 1), rel=1e-9)

    def test_reflection_branch(self):
        assert log_gamma(0.25) == pytest.approx(math.lgamma(0.25), rel=1e-10)

    def test_log_beta(self):
        assert log_beta(2.5, 0.5) == pytest.approx(math.log(special.beta(2.5, 0.5)), rel=1e-10)


# ─── incomplete_beta ──────────────────────────────────────────


class TestIncompleteBeta:
    """Regularized incomplete beta against scipy.special.betainc."""

    def test_bounds(self):
        assert incomplete_beta(0.0, 2, 3) == 0.0
        assert incomplete_beta(-0.5, 2, 3) == 0.0
        assert incomplete_beta(1.0, 2, 3) == 1.0
        assert incomplete_beta(1.5, 2, 3) == 1.0

    @pytest.mark.parametrize("x,a,b", [
        (0.1, 0.5, 0.5),
        (0.3, 2.0, 3.0),
        (0.5, 1.5, 0.5),
        (0.9, 5.0, 0.5),   # symmetry-swap branch
        (0.95, 20.0, 0.5),
        (0.2, 100.0, 0.5),
        (0.99, 199.0, 0.5),
    ])
    def test_matches_scipy(self, x, a, b):
        assert incomplete_beta(x, a, b) == pytest.approx(special.betainc(a, b, x), rel=1e-6, abs=1e-12)

    def test_symmetry(self):
        x, a, b = 0.37, 4.0, 2.5
        assert incomplete_beta(x, a, b) == pytest.approx(1 - incomplete_beta(1 - x, b, a), abs=1e-12)

    def test_monotone_in_x(self):
        values = [incomplete_beta(x / 20, 3.0, 0.5) for x in range(21)]
        assert values == sorted(values)


# ─── student_t_cdf ────────────────────────────────────────────


class TestStudentT:
    """Student's t CDF against scipy.stats.t.cdf."""

    def test_zero_is_half(self):
        for df in (1, 2, 5, 30):
            assert student_t_cdf(0.0, df) == 0.5

    def test_df1_cauchy(self):
        assert student_t_cdf(1.0, 1) == pytest.approx(0.75)

    def test_df2_closed_form(self):
        assert student_t_cdf(2.0, 2) == pytest.approx(stats.t.cdf(2.0, 2), rel=1e-9)

    @pytest.mark.parametrize("df", [1, 2, 3, 8, 20, 100, 398])
    @pytest.mark.parametrize("t", [-4.0, -1.3, 0.4, 2.1, 6.0])
    def test_matches_scipy(self, t, df):
        assert student_t_cdf(t, df) == pytest.approx(stats.t.cdf(t, df), rel=1e-6, abs=1e-10)

    def test_antisymmetric(self):
        for t in (0.5, 1.7, 3.2):
            assert student_t_cdf(-t, 9) == pytest.approx(1 - student_t_cdf(t, 9), abs=1e-12)

    def test_stays_in_unit_interval(self):
        for t in (-50.0, -10.0, 10.0, 50.0):
            p = student_t_cdf(t, 4)
            assert 0.0 <= p <= 1.0
