"""Tests for amount conversion and probe-and-scale."""

import pytest

from crossroute.routing.amounts import (
    DEFAULT_SCALING,
    ScalingPolicy,
    exchange_rate,
    format_amount,
    probe_and_scale,
    to_smallest_unit,
)
from crossroute.routing.errors import InvalidRequestError, ProviderError


class TestConversions:
    """Tests for human <-> smallest-unit conversion."""

    def test_to_smallest_unit(self):
        """Test decimal strings convert exactly."""
        assert to_smallest_unit("1.5", 18) == 1_500_000_000_000_000_000
        assert to_smallest_unit("100", 6) == 100_000_000
        assert to_smallest_unit("0.000001", 6) == 1

    def test_to_smallest_unit_truncates_extra_precision(self):
        """Test digits beyond the token precision are dropped, not rounded."""
        assert to_smallest_unit("1.2345679", 6) == 1_234_567

    @pytest.mark.parametrize("amount", ["abc", "-1", "NaN", "Infinity"])
    def test_to_smallest_unit_rejects_bad_input(self, amount):
        """Test malformed amounts raise InvalidRequestError."""
        with pytest.raises(InvalidRequestError):
            to_smallest_unit(amount, 18)

    def test_format_amount_trims_zeros(self):
        """Test formatting trims trailing zeros."""
        assert format_amount(1_500_000, 6) == "1.5"
        assert format_amount(2 * 10**18, 18) == "2"
        assert format_amount(1, 18) == "0.000000000000000001"
        assert format_amount(42, 0) == "42"

    def test_format_amount_keeps_large_values_exact(self):
        """Test amounts far beyond float precision survive formatting."""
        raw = 123456789012345678901234567890
        assert format_amount(raw, 18) == "123456789012.34567890123456789"

    def test_exchange_rate_across_decimals(self):
        """Test exchange rate between 18 and 6 decimal tokens."""
        # 2 tokens in (18 dec) -> 3000 out (6 dec)
        assert exchange_rate(2 * 10**18, 3000 * 10**6, 18, 6) == "1500"

    def test_exchange_rate_zero_input(self):
        """Test a zero input gives a zero rate instead of dividing by zero."""
        assert exchange_rate(0, 100, 18, 18) == "0"


class TestScalingPolicy:
    """Tests for the test-amount ladder and discount curve."""

    def test_default_ladder(self):
        """Test default ladder is 50%, 10%, 1% then the 1e18 floor."""
        amount = 10**22
        assert DEFAULT_SCALING.test_amounts(amount) == [
            amount // 2,
            amount // 10,
            amount // 100,
            10**18,
        ]

    def test_ladder_skips_duplicates_and_oversized(self):
        """Test the floor is dropped when it is not below the requested amount."""
        assert DEFAULT_SCALING.test_amounts(10**18) == [5 * 10**17, 10**17, 10**16]

    def test_scale_factor_curve(self):
        """Test discount: >100x keeps 75%, >10x keeps 90%, otherwise 100%."""
        assert DEFAULT_SCALING.scale_factor(2) == 100
        assert DEFAULT_SCALING.scale_factor(10) == 100
        assert DEFAULT_SCALING.scale_factor(11) == 90
        assert DEFAULT_SCALING.scale_factor(100) == 90
        assert DEFAULT_SCALING.scale_factor(101) == 75

    def test_custom_policy(self):
        """Test a custom ladder and curve are honoured."""
        policy = ScalingPolicy(ladder=((1, 4),), floor_amount=None, discount_curve=((2, 50),))
        assert policy.test_amounts(100) == [25]
        assert policy.scale(10, 4) == 20


class TestProbeAndScale:
    """Tests for the probe-and-scale estimator."""

    @pytest.mark.asyncio
    async def test_uses_first_successful_rung(self):
        """Test only the 1% probe succeeding yields X * 100 * 90%."""
        amount_in = 10**20

        async def probe(amount):
            if amount > 10**18:
                raise ProviderError("too large")
            return [amount, amount * 2]

        amounts = await probe_and_scale(amount_in, probe)

        # 1% of 1e20 == 1e18, output X = 2e18, ratio 100 keeps 90%
        assert amounts == [amount_in, 2 * 10**18 * 100 * 90 // 100]

    @pytest.mark.asyncio
    async def test_prefers_larger_rung(self):
        """Test the 50% probe wins over smaller ones when it succeeds."""
        amount_in = 10**20

        async def probe(amount):
            return [amount, amount * 3]

        amounts = await probe_and_scale(amount_in, probe)

        assert amounts[-1] == (amount_in // 2) * 3 * 2

    @pytest.mark.asyncio
    async def test_all_rungs_fail(self):
        """Test None when no test amount produces output."""

        async def probe(amount):
            return [amount, 0]

        assert await probe_and_scale(10**20, probe) is None

    @pytest.mark.asyncio
    async def test_amount_too_small_to_probe(self):
        """Test None when the ladder has no usable amount."""

        async def probe(amount):
            return [amount, amount]

        assert await probe_and_scale(1, probe) is None
