"""Bridge quote providers used by the cross-chain finder.

BridgeComparator asks every registered bridge for the chain pair at once
and hands back the best-scoring quote, so the finder sees a single
provider whichever bridge wins.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from crossroute.routing.base import OrderPreference
from crossroute.routing.errors import ProviderError
from crossroute.routing.models import BridgeQuote
from crossroute.utils.concurrency import failures, gather_settled

logger = logging.getLogger(__name__)

# Scoring weights: one USD of fees costs 100 score points, ten seconds one point,
# and each priority step below 100 is worth 10 points.
FEE_PENALTY_PER_USD = Decimal("100")
SECONDS_PER_PENALTY_POINT = Decimal("10")
PRIORITY_BONUS_PER_STEP = Decimal("10")


class BridgeQuoteProvider(ABC):
    """Quotes moving a token from one chain to another."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name identifier."""
        pass

    @property
    def priority(self) -> int:
        """Reliability rank, lower is preferred."""
        return 50

    def supports_chain_pair(self, from_chain_id: int, to_chain_id: int) -> bool:
        return True

    @abstractmethod
    async def get_quote(
        self,
        from_chain_id: int,
        from_token: str,
        amount_in: int,
        to_chain_id: int,
        to_token: str,
        recipient: Optional[str] = None,
        from_address: Optional[str] = None,
        slippage: float = 0.5,
        order: OrderPreference = OrderPreference.RECOMMENDED,
    ) -> Optional[BridgeQuote]:
        """
        Get a bridge quote.

        Args:
            from_chain_id: Source chain
            from_token: Token sent on the source chain
            amount_in: Exact amount sent, smallest units
            to_chain_id: Destination chain
            to_token: Token requested on the destination chain
            recipient: Destination address
            from_address: Sender wallet, when known
            slippage: Tolerance in percent

        Returns:
            BridgeQuote, or None if the bridge cannot move this token
        """
        pass


class BridgeRegistry:
    """Registered bridge providers, ordered by priority."""

    def __init__(self, providers: Optional[list[BridgeQuoteProvider]] = None):
        self._providers: dict[str, BridgeQuoteProvider] = {}
        for provider in providers or []:
            self.register(provider)

    def register(self, provider: BridgeQuoteProvider) -> None:
        if provider.name in self._providers:
            logger.warning(f"Replacing registered bridge {provider.name}")
        self._providers[provider.name] = provider

    def all(self) -> list[BridgeQuoteProvider]:
        return sorted(self._providers.values(), key=lambda p: (p.priority, p.name))

    def for_chain_pair(self, from_chain_id: int, to_chain_id: int) -> list[BridgeQuoteProvider]:
        return [p for p in self.all() if p.supports_chain_pair(from_chain_id, to_chain_id)]

    def __len__(self) -> int:
        return len(self._providers)


@dataclass(frozen=True)
class BridgeComparison:
    """One bridge's quote with its score and 1-based rank."""

    provider: BridgeQuoteProvider
    quote: BridgeQuote
    score: Decimal
    ranking: int


def score_bridge_quote(quote: BridgeQuote, priority: int) -> Decimal:
    """Output amount less fee and time penalties, plus a priority bonus."""
    fees = Decimal(quote.fee_usd or "0") + Decimal(quote.gas_usd or "0")
    time_penalty = Decimal(quote.estimated_time or 0) / SECONDS_PER_PENALTY_POINT
    bonus = (100 - priority) * PRIORITY_BONUS_PER_STEP
    return Decimal(quote.amount_out) - fees * FEE_PENALTY_PER_USD - time_penalty + bonus


class BridgeComparator(BridgeQuoteProvider):
    """Quotes every bridge serving the chain pair and returns the best."""

    def __init__(self, registry: BridgeRegistry):
        self.registry = registry

    @property
    def name(self) -> str:
        return "best_bridge"

    def supports_chain_pair(self, from_chain_id: int, to_chain_id: int) -> bool:
        return bool(self.registry.for_chain_pair(from_chain_id, to_chain_id))

    async def compare(
        self,
        from_chain_id: int,
        from_token: str,
        amount_in: int,
        to_chain_id: int,
        to_token: str,
        recipient: Optional[str] = None,
        from_address: Optional[str] = None,
        slippage: float = 0.5,
        order: OrderPreference = OrderPreference.RECOMMENDED,
    ) -> list[BridgeComparison]:
        """
        Rank quotes from every bridge serving the chain pair, best first.

        A bridge that fails or has no quote is left out of the ranking.

        Raises:
            ProviderError: every bridge failed on a provider error
        """
        providers = self.registry.for_chain_pair(from_chain_id, to_chain_id)
        if not providers:
            logger.debug(f"No bridge serves chain {from_chain_id} -> {to_chain_id}")
            return []

        results = await gather_settled(
            provider.get_quote(
                from_chain_id,
                from_token,
                amount_in,
                to_chain_id,
                to_token,
                recipient=recipient,
                from_address=from_address,
                slippage=slippage,
                order=order,
            )
            for provider in providers
        )

        scored = []
        for provider, result in zip(providers, results):
            if isinstance(result, BaseException):
                logger.warning(
                    f"Bridge {provider.name} failed for {from_token}@{from_chain_id} -> "
                    f"chain {to_chain_id} amount {amount_in}: {type(result).__name__}: {result}"
                )
                continue
            if result is not None:
                scored.append((score_bridge_quote(result, provider.priority), provider, result))

        errors = failures(results)
        if not scored and errors and len(errors) == len(providers):
            if all(isinstance(e, ProviderError) for e in errors):
                raise ProviderError(f"All bridges failed: {errors[0]}")

        scored.sort(key=lambda item: item[0], reverse=True)
        return [
            BridgeComparison(provider, quote, score, ranking)
            for ranking, (score, provider, quote) in enumerate(scored, start=1)
        ]

    async def get_quote(
        self,
        from_chain_id: int,
        from_token: str,
        amount_in: int,
        to_chain_id: int,
        to_token: str,
        recipient: Optional[str] = None,
        from_address: Optional[str] = None,
        slippage: float = 0.5,
        order: OrderPreference = OrderPreference.RECOMMENDED,
    ) -> Optional[BridgeQuote]:
        comparisons = await self.compare(
            from_chain_id,
            from_token,
            amount_in,
            to_chain_id,
            to_token,
            recipient=recipient,
            from_address=from_address,
            slippage=slippage,
            order=order,
        )
        if not comparisons:
            return None
        best = comparisons[0]
        if len(comparisons) > 1:
            logger.info(
                f"Bridge {best.provider.name} ranked first of {len(comparisons)} "
                f"(score {best.score:.2f})"
            )
        return best.quote
