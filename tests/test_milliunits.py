from decimal import Decimal

import pytest

from engine import milliunits as mu
from engine.errors import FinancialSafetyError
from utils.constants import MAX_SAFE_MILLIUNITS
from utils.currency import format_currency


class TestConversion:
    def test_decimal_amounts_scale_by_one_thousand(self):
        assert mu.to_milliunits(10.50) == 10500
        assert mu.to_milliunits("-5.123") == -5123
        assert mu.to_milliunits(Decimal("1234.56")) == 1234560
        assert mu.to_milliunits(7) == 7000

    def test_sub_milliunit_fractions_round_half_away_from_zero(self):
        assert mu.to_milliunits("0.0005") == 1
        assert mu.to_milliunits("-0.0005") == -1
        assert mu.to_milliunits("0.0004") == 0

    def test_from_milliunits_is_exact(self):
        assert mu.from_milliunits(10500) == Decimal("10.5")
        assert mu.from_milliunits(-1) == Decimal("-0.001")

    @pytest.mark.parametrize("x", [0, 1, -1, 999, 10500, -123456789, MAX_SAFE_MILLIUNITS])
    def test_round_trip(self, x):
        assert mu.to_milliunits(mu.from_milliunits(x)) == x

    @pytest.mark.parametrize("bad", [float("nan"), float("inf"), float("-inf"),
                                     "NaN", "Infinity", "abc", None, True, [1]])
    def test_non_finite_or_non_numeric_input_is_rejected(self, bad):
        with pytest.raises(FinancialSafetyError):
            mu.to_milliunits(bad)

    def test_values_beyond_safe_range_are_rejected(self):
        with pytest.raises(FinancialSafetyError):
            mu.milliunit(MAX_SAFE_MILLIUNITS + 1)
        with pytest.raises(FinancialSafetyError):
            mu.to_milliunits(10**13)

    def test_milliunit_requires_whole_numbers(self):
        assert mu.milliunit("42") == 42
        with pytest.raises(FinancialSafetyError):
            mu.milliunit(1.5)
        with pytest.raises(FinancialSafetyError):
            mu.milliunit(float("nan"))


class TestArithmetic:
    def test_basic_operations(self):
        assert mu.add(1000, 250) == 1250
        assert mu.sub(1000, 250) == 750
        assert mu.neg(5) == -5
        assert mu.abs_(-5) == 5
        assert mu.min_(3, -4) == -4
        assert mu.max_(3, -4) == 3
        assert [mu.sign(v) for v in (-7, 0, 7)] == [-1, 0, 1]
        assert mu.sum_([100, 200, -50]) == 250
        assert mu.sum_([]) == 0

    def test_overflowing_results_are_rejected(self):
        with pytest.raises(FinancialSafetyError):
            mu.add(MAX_SAFE_MILLIUNITS, 1)
        with pytest.raises(FinancialSafetyError):
            mu.sum_([MAX_SAFE_MILLIUNITS, MAX_SAFE_MILLIUNITS])

    def test_divide_uses_bankers_rounding(self):
        assert mu.divide(2500, 1000) == 2
        assert mu.divide(3500, 1000) == 4
        assert mu.divide(2500, 2) == 1250
        assert mu.divide(-2500, 1000) == -2

    def test_divide_by_zero_fails(self):
        with pytest.raises(FinancialSafetyError):
            mu.divide(1000, 0)

    def test_multiply_rounds_to_nearest_milliunit(self):
        assert mu.multiply(1000, 0.0015) == 2
        assert mu.multiply(10000, "0.333") == 3330
        assert mu.multiply(-1000, 0.0015) == -2

    @pytest.mark.parametrize("bad", [float("nan"), float("inf"), "nope"])
    def test_scalar_operations_reject_non_finite_scalars(self, bad):
        with pytest.raises(FinancialSafetyError):
            mu.multiply(1000, bad)
        with pytest.raises(FinancialSafetyError):
            mu.divide(1000, bad)

    def test_arithmetic_rejects_non_finite_operands(self):
        with pytest.raises(FinancialSafetyError):
            mu.add(float("nan"), 1)
        with pytest.raises(FinancialSafetyError):
            mu.sub(1, float("inf"))


def test_format_currency():
    assert format_currency(1234560) == "$1,234.56"
    assert format_currency(-5000, "€") == "-€5.00"
