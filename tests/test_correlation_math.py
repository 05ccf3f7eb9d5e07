"""
Tests for the correlation coefficients and their significance tests.

Covers: Pearson r, point-biserial r, neutral results on degenerate input,
strength/confidence classification, and p-values against scipy.
"""
import math

import numpy as np
import pytest
from scipy import stats

from analytics.correlation import (
    CorrelationResult,
    classify_confidence,
    classify_strength,
    correlation_p_value,
    format_correlation,
    is_significant,
    pearson_correlation,
    point_biserial_correlation,
)


# ─── Pearson ──────────────────────────────────────────────────


class TestPearson:
    """Continuous × continuous correlation."""

    def test_perfect_positive(self):
        res = pearson_correlation([1, 2, 3, 4, 5], [2, 4, 6, 8, 10])
        assert res.r == pytest.approx(1.0)
        assert res.p_value == 0.0
        assert res.strength == "very strong"
        assert res.confidence == "strong"

    def test_perfect_negative(self):
        res = pearson_correlation([1, 2, 3, 4, 5], [10, 8, 6, 4, 2])
        assert res.r == pytest.approx(-1.0)
        assert res.p_value == 0.0

    def test_matches_scipy(self):
        rng = np.random.default_rng(7)
        x = rng.normal(size=40)
        y = 0.4 * x + rng.normal(size=40)
        res = pearson_correlation(list(x), list(y))
        ref = stats.pearsonr(x, y)
        assert res.r == pytest.approx(ref[0], abs=1e-12)
        assert res.p_value == pytest.approx(ref[1], rel=1e-5)
        assert res.n == 40

    def test_symmetric_in_arguments(self):
        x = [3.0, 1.0, 4.0, 1.0, 5.0, 9.0, 2.0, 6.0]
        y = [2.0, 7.0, 1.0, 8.0, 2.0, 8.0, 1.0, 8.0]
        a = pearson_correlation(x, y)
        b = pearson_correlation(y, x)
        assert a.r == pytest.approx(b.r)
        assert a.p_value == pytest.approx(b.p_value)

    def test_length_mismatch_raises(self):
        with pytest.raises(ValueError):
            pearson_correlation([1, 2, 3], [1, 2])

    def test_too_few_points_is_neutral(self):
        res = pearson_correlation([1, 2], [3, 4])
        assert res == CorrelationResult.neutral(2)

    def test_nan_input_is_neutral(self):
        y = [2.0, 4.1, float("nan"), 8.2, 9.9, 12.0]
        res = pearson_correlation([1, 2, 3, 4, 5, 6], y)
        assert res == CorrelationResult.neutral(6)

    def test_constant_series_is_neutral(self):
        res = pearson_correlation([5, 5, 5, 5], [1, 2, 3, 4])
        assert res.r == 0.0
        assert res.p_value == 1.0
        assert res.strength == "none"
        assert res.confidence == "none"
        assert res.n == 4

    def test_r_stays_in_range(self):
        rng = np.random.default_rng(1)
        for _ in range(20):
            x = rng.normal(size=12)
            res = pearson_correlation(list(x), list(x * 3.0 + 1e-13))
            assert -1.0 <= res.r <= 1.0
            assert 0.0 <= res.p_value <= 1.0


# ─── Point-biserial ───────────────────────────────────────────


class TestPointBiserial:
    """Binary × continuous correlation."""

    def test_matches_pearson_of_indicator(self):
        flags = [True, False, True, True, False, False, True, False, True, False]
        values = [7.0, 3.0, 6.5, 8.0, 2.0, 4.0, 9.0, 3.5, 5.5, 4.5]
        pb = point_biserial_correlation(flags, values)
        pr = pearson_correlation([1.0 if f else 0.0 for f in flags], values)
        assert pb.r == pytest.approx(pr.r, abs=1e-12)
        assert pb.p_value == pytest.approx(pr.p_value, rel=1e-9)

    def test_matches_scipy(self):
        flags = [1, 0, 1, 1, 0, 0, 1, 0, 1, 0, 1, 1]
        values = [5.1, 4.0, 6.3, 5.9, 3.8, 4.4, 6.1, 4.9, 5.0, 3.9, 6.6, 5.2]
        res = point_biserial_correlation(flags, values)
        ref = stats.pointbiserialr(flags, values)
        assert res.r == pytest.approx(ref[0], abs=1e-12)
        assert res.p_value == pytest.approx(ref[1], rel=1e-5)

    def test_accepts_numpy_booleans(self):
        flags = np.array([True, False, True, False, True])
        res = point_biserial_correlation(list(flags), [3.0, 1.0, 3.5, 1.5, 2.5])
        assert res.r > 0

    def test_single_group_is_neutral(self):
        res = point_biserial_correlation([True] * 5, [1, 2, 3, 4, 5])
        assert res == CorrelationResult.neutral(5)

    def test_zero_variance_is_neutral(self):
        res = point_biserial_correlation([True, False, True, False], [2, 2, 2, 2])
        assert res == CorrelationResult.neutral(4)

    def test_non_binary_values_raise(self):
        with pytest.raises(ValueError):
            point_biserial_correlation([0, 1, 2, 1], [1.0, 2.0, 3.0, 4.0])

    def test_length_mismatch_raises(self):
        with pytest.raises(ValueError):
            point_biserial_correlation([True, False], [1.0, 2.0, 3.0])

    def test_too_few_points_is_neutral(self):
        assert point_biserial_correlation([True, False], [1.0, 2.0]).r == 0.0

    def test_alternating_groups(self):
        res = point_biserial_correlation([True, False, True, False, True], [100, 50, 110, 40, 120])
        assert res.r > 0
        assert res.p_value < 0.1

    def test_nan_continuous_is_neutral(self):
        flags = [True, False, True, False, True, False]
        res = point_biserial_correlation(flags, [7.0, 3.0, float("nan"), 2.5, 8.0, 4.0])
        assert res == CorrelationResult.neutral(6)


# ─── Classification ───────────────────────────────────────────


class TestClassification:
    """Strength and confidence labels."""

    @pytest.mark.parametrize("r,label", [
        (0.95, "very strong"),
        (-0.9, "very strong"),
        (0.75, "strong"),
        (-0.5, "moderate"),
        (0.31, "weak"),
        (0.1, "very weak"),
        (0.05, "none"),
        (0.0, "none"),
    ])
    def test_strength(self, r, label):
        assert classify_strength(r) == label

    @pytest.mark.parametrize("p,label", [
        (0.001, "strong"),
        (0.01, "moderate"),
        (0.049, "moderate"),
        (0.05, "exploratory"),
        (0.099, "exploratory"),
        (0.1, "none"),
        (0.8, "none"),
    ])
    def test_confidence(self, p, label):
        assert classify_confidence(p) == label


# ─── p-values ─────────────────────────────────────────────────


class TestPValue:
    """Two-tailed t-test on r."""

    def test_small_n_is_one(self):
        assert correlation_p_value(0.99, 2) == 1.0

    def test_unit_r_is_zero(self):
        assert correlation_p_value(1.0, 10) == 0.0
        assert correlation_p_value(-1.0, 10) == 0.0

    def test_zero_r_is_one(self):
        assert correlation_p_value(0.0, 30) == pytest.approx(1.0)

    def test_non_finite_r_is_one(self):
        assert correlation_p_value(float("nan"), 30) == 1.0
        assert correlation_p_value(float("inf"), 30) == 1.0

    def test_matches_t_distribution(self):
        r, n = 0.42, 25
        t = r * math.sqrt(n - 2) / math.sqrt(1 - r * r)
        expected = 2 * stats.t.sf(abs(t), n - 2)
        assert correlation_p_value(r, n) == pytest.approx(expected, rel=1e-6)

    def test_is_significant(self):
        res = pearson_correlation([1, 2, 3, 4, 5, 6], [1.1, 2.3, 2.9, 4.2, 5.1, 5.8])
        assert is_significant(res)
        assert not is_significant(CorrelationResult.neutral(6))

    def test_format(self):
        res = CorrelationResult(r=0.95, p_value=0.0001, n=12, confidence="strong", strength="very strong")
        assert format_correlation(res) == "very strong positive correlation (r=0.950, p=0.0001, n=12)"
