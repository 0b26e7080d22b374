"""On-chain V2-style DEX venue adapter.

Quotes come from the router's getAmountsOut through the shared verifier,
so adapter quotes and finder quotes share one cache and one call budget.
"""

import logging
from typing import Optional

from crossroute.routing.base import RouterParams, RouterRoute, VenueAdapter
from crossroute.routing.dex_registry import DexRegistry
from crossroute.routing.errors import UnsupportedChainError
from crossroute.routing.models import SameChainRoute, same_address
from crossroute.routing.normalizer import RouteNormalizer
from crossroute.routing.token_registry import TokenRegistry
from crossroute.routing.verifier import QuoteVerifier, VerificationCandidate

logger = logging.getLogger(__name__)


class OnChainDexAdapter(VenueAdapter):
    """One DEX (e.g. PancakeSwap) across every chain it is deployed on.

    Tries the direct pair and every top-K intermediary path on this DEX
    only, returning the best verified output.
    """

    def __init__(
        self,
        dex_id: str,
        verifier: QuoteVerifier,
        dex_registry: DexRegistry,
        token_registry: TokenRegistry,
        normalizer: RouteNormalizer,
        intermediary_top_k: int = 5,
    ):
        if not dex_registry.chains_for(dex_id):
            raise ValueError(f"DEX {dex_id} has no registered deployment")
        self.dex_id = dex_id
        self.verifier = verifier
        self.dexes = dex_registry
        self.tokens = token_registry
        self.normalizer = normalizer
        self.intermediary_top_k = intermediary_top_k

    @property
    def name(self) -> str:
        return self.dex_id

    @property
    def display_name(self) -> str:
        return self.dexes.protocol_name(self.dex_id)

    @property
    def priority(self) -> int:
        chains = self.dexes.chains_for(self.dex_id)
        return min(self.dexes.get(chain_id, self.dex_id).priority for chain_id in chains)

    def supports_chain(self, chain_id: int) -> bool:
        return self.dexes.get(chain_id, self.dex_id) is not None

    def _candidates(self, params: RouterParams) -> list[VerificationCandidate]:
        chain_id = params.from_chain_id
        paths = [(params.from_token, params.to_token)]
        for token in self.tokens.intermediaries(chain_id, self.intermediary_top_k):
            if same_address(token.address, params.from_token):
                continue
            if same_address(token.address, params.to_token):
                continue
            paths.append((params.from_token, token.address, params.to_token))
        return [
            VerificationCandidate(path, chain_id, self.dex_id, params.amount_in) for path in paths
        ]

    async def get_route(self, params: RouterParams) -> Optional[RouterRoute]:
        """Get the best direct or one-intermediary route on this DEX."""
        if params.is_cross_chain or not self.supports_chain(params.from_chain_id):
            raise UnsupportedChainError(
                f"{self.dex_id} cannot route {params.from_chain_id} -> {params.to_chain_id}",
                self.name,
            )
        if same_address(params.from_token, params.to_token):
            return None

        verified = await self.verifier.verify_many(self._candidates(params))
        if verified is None:
            logger.debug(
                f"{self.dex_id} has no route {params.from_token} -> {params.to_token} "
                f"on chain {params.from_chain_id}"
            )
            return None

        return self.normalizer.from_same_chain(
            SameChainRoute.from_verified(verified),
            from_decimals=params.from_decimals,
            to_decimals=params.to_decimals,
            slippage=params.slippage,
            router=self.name,
        )
