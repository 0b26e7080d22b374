"""Amount conversion and the probe-and-scale estimator.

Raw token amounts are Python ints in the token's smallest unit. Human
amounts are decimal strings. Conversions never go through float.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_DOWN, localcontext
from typing import Awaitable, Callable, Optional, Sequence

from crossroute.routing.errors import InvalidRequestError
from crossroute.utils.concurrency import gather_settled

logger = logging.getLogger(__name__)


def to_smallest_unit(amount: str, decimals: int) -> int:
    """Convert a human-readable amount to smallest units.

    Digits beyond the token's precision are truncated.

    Raises:
        InvalidRequestError: if the amount is not a finite non-negative number
    """
    try:
        value = Decimal(str(amount).strip())
    except (InvalidOperation, ValueError):
        raise InvalidRequestError(f"Invalid amount: {amount!r}")
    if not value.is_finite() or value < 0:
        raise InvalidRequestError(f"Invalid amount: {amount!r}")
    scaled = (value * (Decimal(10) ** decimals)).quantize(Decimal(1), rounding=ROUND_DOWN)
    return int(scaled)


def format_amount(amount: int, decimals: int) -> str:
    """Format smallest units as a human-readable string, trimming trailing zeros."""
    if decimals == 0:
        return str(amount)
    sign = "-" if amount < 0 else ""
    whole, fractional = divmod(abs(amount), 10**decimals)
    if fractional == 0:
        return f"{sign}{whole}"
    fraction = str(fractional).rjust(decimals, "0").rstrip("0")
    return f"{sign}{whole}.{fraction}"


def exchange_rate(amount_in: int, amount_out: int, decimals_in: int, decimals_out: int) -> str:
    """Human exchange rate (to per from) computed from raw integers."""
    if amount_in == 0:
        return "0"
    with localcontext() as ctx:
        ctx.prec = 80
        rate = (Decimal(amount_out) / Decimal(10**decimals_out)) / (
            Decimal(amount_in) / Decimal(10**decimals_in)
        )
        rate = rate.quantize(Decimal("0.000000000001"), rounding=ROUND_DOWN)
    return format(rate.normalize(), "f")


@dataclass(frozen=True)
class ScalingPolicy:
    """Test-amount ladder and discount curve for probe-and-scale.

    ladder holds (numerator, denominator) fractions of the requested amount
    tried in order, then floor_amount. discount_curve maps a ratio
    threshold to the percentage kept once ratio exceeds it; the largest
    matching threshold wins, ratios at or below every threshold keep 100%.
    """

    ladder: tuple[tuple[int, int], ...] = ((1, 2), (1, 10), (1, 100))
    floor_amount: Optional[int] = 10**18
    discount_curve: tuple[tuple[int, int], ...] = ((100, 75), (10, 90))

    def test_amounts(self, amount_in: int) -> list[int]:
        amounts: list[int] = []
        candidates = [amount_in * num // den for num, den in self.ladder]
        if self.floor_amount is not None:
            candidates.append(self.floor_amount)
        for candidate in candidates:
            if 0 < candidate < amount_in and candidate not in amounts:
                amounts.append(candidate)
        return amounts

    def scale_factor(self, ratio: int) -> int:
        for threshold, percent in sorted(self.discount_curve, reverse=True):
            if ratio > threshold:
                return percent
        return 100

    def scale(self, amount: int, ratio: int) -> int:
        return amount * ratio * self.scale_factor(ratio) // 100


DEFAULT_SCALING = ScalingPolicy()


def _has_output(amounts: Optional[Sequence[int]]) -> bool:
    return bool(amounts) and amounts[-1] > 0


async def probe_and_scale(
    amount_in: int,
    probe: Callable[[int], Awaitable[Optional[Sequence[int]]]],
    policy: ScalingPolicy = DEFAULT_SCALING,
) -> Optional[list[int]]:
    """Estimate per-hop amounts for amount_in from smaller test quotes.

    Issues every test amount of the policy's ladder concurrently and uses
    the first one (in ladder order) that returned a positive output. Each
    observed amount is multiplied by amount_in // test_amount and discounted
    by the policy's curve. amounts[0] is always amount_in.

    Args:
        amount_in: Requested input in smallest units
        probe: Returns the venue's amounts array for a test amount, or
            None / raises when that amount cannot be quoted either
        policy: Ladder and discount curve

    Returns:
        Estimated amounts array, or None if no test amount succeeded
    """
    test_amounts = policy.test_amounts(amount_in)
    if not test_amounts:
        return None

    results = await gather_settled(probe(amount) for amount in test_amounts)

    for test_amount, result in zip(test_amounts, results):
        if isinstance(result, BaseException):
            logger.debug(f"Probe with {test_amount} failed: {type(result).__name__}: {result}")
            continue
        if not _has_output(result):
            continue

        ratio = amount_in // test_amount
        scaled = [amount_in] + [policy.scale(amount, ratio) for amount in list(result)[1:]]
        logger.debug(
            f"Scaled probe {test_amount} x{ratio} at {policy.scale_factor(ratio)}%: "
            f"{result[-1]} -> {scaled[-1]}"
        )
        return scaled

    return None
