"""Same-chain route finder.

Tries, in order and returning on the first success:

1. Direct pair on each DEX of the chain, by DEX priority.
2. Two-hop scan through the chain's top-K intermediaries on the primary DEX.
3. Forced route through the wrapped native token on every DEX.
"""

import logging
from typing import Optional

from crossroute.routing.dex_registry import DexRegistry
from crossroute.routing.errors import ProviderError
from crossroute.routing.models import SameChainRoute, VerifiedRoute, same_address
from crossroute.routing.token_registry import TokenRegistry
from crossroute.routing.verifier import QuoteVerifier, VerificationCandidate

logger = logging.getLogger(__name__)


class _AttemptLog:
    """Counts verification attempts and how many died on provider errors."""

    def __init__(self):
        self.attempts = 0
        self.provider_errors: list[ProviderError] = []

    def provider_failure(self, error: ProviderError) -> None:
        self.provider_errors.append(error)

    @property
    def all_failed_on_provider(self) -> bool:
        return self.attempts > 0 and len(self.provider_errors) == self.attempts


class SameChainRouteFinder:
    """Finds a verified path between two tokens on one chain."""

    def __init__(
        self,
        verifier: QuoteVerifier,
        dex_registry: DexRegistry,
        token_registry: TokenRegistry,
        intermediary_top_k: int = 5,
    ):
        self.verifier = verifier
        self.dexes = dex_registry
        self.tokens = token_registry
        self.intermediary_top_k = intermediary_top_k

    async def find(
        self, from_token: str, to_token: str, chain_id: int, amount_in: int
    ) -> Optional[SameChainRoute]:
        """
        Find a route from from_token to to_token.

        Args:
            from_token: Input token address
            to_token: Output token address
            chain_id: Chain to route on
            amount_in: Input amount in smallest units

        Returns:
            SameChainRoute, or None when every strategy is exhausted

        Raises:
            ProviderError: every verification attempt failed on the provider
        """
        if same_address(from_token, to_token):
            logger.debug(f"Same token {from_token} on chain {chain_id}, nothing to route")
            return None
        if not self.dexes.supports_chain(chain_id):
            logger.debug(f"No DEX configured on chain {chain_id}")
            return None

        log = _AttemptLog()

        strategies = (
            self._find_direct,
            self._find_via_intermediaries,
            self._find_via_wrapped_native,
        )
        for strategy in strategies:
            verified = await strategy(from_token, to_token, chain_id, amount_in, log)
            if verified:
                route = SameChainRoute.from_verified(verified)
                logger.info(
                    f"Same-chain route on chain {chain_id} via {route.dex_id}: "
                    f"{' -> '.join(route.path)} ({route.hops} hop(s), out {route.output_amount})"
                )
                return route

        if log.all_failed_on_provider:
            raise ProviderError(
                f"Every verification for {from_token} -> {to_token} on chain {chain_id} "
                f"failed: {log.provider_errors[0]}"
            )

        logger.info(f"No same-chain route for {from_token} -> {to_token} on chain {chain_id}")
        return None

    async def _verify(
        self, path: list[str], chain_id: int, dex_id: str, amount_in: int, log: _AttemptLog
    ) -> Optional[VerifiedRoute]:
        log.attempts += 1
        try:
            return await self.verifier.verify(path, chain_id, dex_id, amount_in)
        except ProviderError as e:
            logger.warning(
                f"Provider error verifying {path} on {dex_id} chain {chain_id} "
                f"amount {amount_in}: {e}"
            )
            log.provider_failure(e)
            return None

    async def _find_direct(
        self, from_token: str, to_token: str, chain_id: int, amount_in: int, log: _AttemptLog
    ) -> Optional[VerifiedRoute]:
        for dex in self.dexes.for_chain(chain_id):
            verified = await self._verify(
                [from_token, to_token], chain_id, dex.dex_id, amount_in, log
            )
            if verified:
                return verified
        return None

    async def _find_via_intermediaries(
        self, from_token: str, to_token: str, chain_id: int, amount_in: int, log: _AttemptLog
    ) -> Optional[VerifiedRoute]:
        dex = self.dexes.primary(chain_id)
        intermediaries = [
            token
            for token in self.tokens.intermediaries(chain_id, self.intermediary_top_k)
            if not same_address(token.address, from_token)
            and not same_address(token.address, to_token)
        ]
        if dex is None or not intermediaries:
            return None

        paths = [(from_token, token.address, to_token) for token in intermediaries]
        paths.append((from_token, to_token))
        candidates = [
            VerificationCandidate(path, chain_id, dex.dex_id, amount_in) for path in paths
        ]
        logger.debug(
            f"Scanning {len(intermediaries)} intermediaries on {dex.dex_id} chain {chain_id}"
        )

        log.attempts += 1
        try:
            return await self.verifier.verify_many(candidates)
        except ProviderError as e:
            logger.warning(f"Intermediary scan on {dex.dex_id} chain {chain_id} failed: {e}")
            log.provider_failure(e)
            return None

    async def _find_via_wrapped_native(
        self, from_token: str, to_token: str, chain_id: int, amount_in: int, log: _AttemptLog
    ) -> Optional[VerifiedRoute]:
        wrapped = self.tokens.wrapped_native(chain_id)
        if wrapped is None:
            return None
        if same_address(from_token, wrapped.address) or same_address(to_token, wrapped.address):
            logger.debug(f"Wrapped-native fallback skipped, {wrapped.symbol} is an endpoint")
            return None

        path = [from_token, wrapped.address, to_token]
        for dex in self.dexes.for_chain(chain_id):
            verified = await self._verify(path, chain_id, dex.dex_id, amount_in, log)
            if verified:
                return verified
        return None
