"""Cross-chain route finder.

For each bridgeable token of the source chain: swap into it on the source
chain, bridge it, then swap the delivered token into the target on the
destination chain. Candidates run either all at once (best output wins) or
one by one in priority order (first complete route wins).
"""

import logging
from typing import Optional

from crossroute.routing.base import OrderPreference
from crossroute.routing.bridges import BridgeQuoteProvider
from crossroute.routing.errors import ProviderError
from crossroute.routing.models import CrossChainRoute, SameChainRoute, same_address
from crossroute.routing.same_chain import SameChainRouteFinder
from crossroute.routing.token_registry import TokenInfo, TokenRegistry
from crossroute.utils.concurrency import failures, gather_settled

logger = logging.getLogger(__name__)

PARALLEL = "parallel"
SEQUENTIAL = "sequential"


class CrossChainRouteFinder:
    """Composes source swap, bridge and destination swap."""

    def __init__(
        self,
        same_chain_finder: SameChainRouteFinder,
        bridge_provider: BridgeQuoteProvider,
        token_registry: TokenRegistry,
        strategy: str = PARALLEL,
    ):
        if strategy not in (PARALLEL, SEQUENTIAL):
            raise ValueError(f"Unknown cross-chain strategy: {strategy}")
        self.same_chain = same_chain_finder
        self.bridge = bridge_provider
        self.tokens = token_registry
        self.strategy = strategy

    async def find(
        self,
        from_token: str,
        to_token: str,
        from_chain_id: int,
        to_chain_id: int,
        amount_in: int,
        recipient: Optional[str] = None,
        from_address: Optional[str] = None,
        slippage: float = 0.5,
        order: OrderPreference = OrderPreference.RECOMMENDED,
    ) -> Optional[CrossChainRoute]:
        """
        Find a cross-chain route.

        Returns:
            CrossChainRoute, or None once every bridgeable token is exhausted

        Raises:
            ProviderError: every bridgeable token failed on a provider error
        """
        bridge_tokens = self.tokens.bridgeable_tokens(from_chain_id)
        if not bridge_tokens:
            logger.info(f"No bridgeable tokens configured for chain {from_chain_id}")
            return None

        logger.info(
            f"Cross-chain search {from_token}@{from_chain_id} -> {to_token}@{to_chain_id} "
            f"over {len(bridge_tokens)} bridge token(s), {self.strategy}"
        )

        async def attempt(token: TokenInfo) -> Optional[CrossChainRoute]:
            return await self._try_bridge_token(
                token,
                from_token,
                to_token,
                from_chain_id,
                to_chain_id,
                amount_in,
                recipient,
                from_address,
                slippage,
                order,
            )

        errors: list[BaseException] = []
        best: Optional[CrossChainRoute] = None

        if self.strategy == SEQUENTIAL:
            for token in bridge_tokens:
                try:
                    best = await attempt(token)
                except Exception as e:
                    logger.warning(f"Bridge token {token.symbol} failed: {type(e).__name__}: {e}")
                    errors.append(e)
                    continue
                if best:
                    break
        else:
            results = await gather_settled(attempt(token) for token in bridge_tokens)
            for token, result in zip(bridge_tokens, results):
                if isinstance(result, BaseException):
                    logger.warning(
                        f"Bridge token {token.symbol} failed: {type(result).__name__}: {result}"
                    )
                    continue
                if result and (best is None or result.total_output > best.total_output):
                    best = result
            errors = failures(results)

        if best:
            logger.info(
                f"Cross-chain route via {best.bridge.provider}: bridge "
                f"{best.bridge.from_token} -> {best.bridge.to_token}, out {best.total_output}"
            )
            return best

        if errors and len(errors) == len(bridge_tokens):
            if all(isinstance(e, ProviderError) for e in errors):
                raise ProviderError(f"All bridge tokens failed: {errors[0]}")

        logger.info(f"No cross-chain route {from_chain_id} -> {to_chain_id} for {from_token}")
        return None

    async def _leg(
        self, from_token: str, to_token: str, chain_id: int, amount_in: int
    ) -> Optional[SameChainRoute]:
        if same_address(from_token, to_token):
            return SameChainRoute.identity(from_token, amount_in, chain_id)
        return await self.same_chain.find(from_token, to_token, chain_id, amount_in)

    async def _try_bridge_token(
        self,
        bridge_token: TokenInfo,
        from_token: str,
        to_token: str,
        from_chain_id: int,
        to_chain_id: int,
        amount_in: int,
        recipient: Optional[str],
        from_address: Optional[str],
        slippage: float,
        order: OrderPreference,
    ) -> Optional[CrossChainRoute]:
        source = await self._leg(from_token, bridge_token.address, from_chain_id, amount_in)
        if source is None:
            logger.debug(f"No source leg into {bridge_token.symbol} on chain {from_chain_id}")
            return None

        # The leg's real output token, which may differ from the one requested
        sent_token = source.to_token
        dest_bridge_token = self.tokens.corresponding_token(sent_token, from_chain_id, to_chain_id)
        if dest_bridge_token is None:
            logger.debug(
                f"{bridge_token.symbol} ({sent_token}) has no counterpart on chain {to_chain_id}"
            )
            return None

        quote = await self.bridge.get_quote(
            from_chain_id,
            sent_token,
            source.output_amount,
            to_chain_id,
            dest_bridge_token,
            recipient=recipient,
            from_address=from_address,
            slippage=slippage,
            order=order,
        )
        if quote is None or quote.amount_out <= 0:
            logger.debug(f"No bridge quote for {bridge_token.symbol} {from_chain_id}->{to_chain_id}")
            return None

        dest = await self._leg(quote.to_token, to_token, to_chain_id, quote.amount_out)
        if dest is None:
            logger.debug(f"No destination leg from {quote.to_token} on chain {to_chain_id}")
            return None

        return CrossChainRoute(
            source_route=source,
            bridge=quote,
            dest_route=dest,
            total_output=dest.output_amount,
            chain_id=to_chain_id,
        )
