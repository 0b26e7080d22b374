"""Quote verifier: confirms a path yields output using the venue's getAmountsOut.

A full-amount liquidity revert (or zero output) falls back to
probe-and-scale. Definitive answers, including "no liquidity", are cached
per (chain, dex, path, amount). Provider failures are never cached.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from crossroute.routing.amounts import DEFAULT_SCALING, ScalingPolicy, probe_and_scale
from crossroute.routing.cache import MISSING, VerificationCache
from crossroute.routing.dex_registry import DexConfig, DexRegistry
from crossroute.routing.errors import (
    ContractRevertError,
    InsufficientLiquidityError,
    ProviderError,
    UnsupportedChainError,
)
from crossroute.routing.models import VerifiedRoute, same_address
from crossroute.routing.rpc import PricingBackend
from crossroute.utils.concurrency import ConcurrencyLimiter, failures, gather_settled

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VerificationCandidate:
    """One (path, venue, amount) combination to verify."""

    path: tuple[str, ...]
    chain_id: int
    dex_id: str
    amount_in: int


def _is_valid_path(path: Sequence[str]) -> bool:
    if len(path) < 2:
        return False
    return not any(same_address(a, b) for a, b in zip(path, path[1:]))


class QuoteVerifier:
    """Verifies candidate paths against on-chain pricing."""

    def __init__(
        self,
        pricing: PricingBackend,
        dex_registry: DexRegistry,
        cache: VerificationCache,
        limiter: ConcurrencyLimiter,
        scaling: ScalingPolicy = DEFAULT_SCALING,
    ):
        self._pricing = pricing
        self._dexes = dex_registry
        self._cache = cache
        self._limiter = limiter
        self._scaling = scaling

    async def verify(
        self, path: Sequence[str], chain_id: int, dex_id: str, amount_in: int
    ) -> Optional[VerifiedRoute]:
        """
        Verify that a path produces a positive output.

        Args:
            path: Token addresses, first is the input token
            chain_id: Chain to price on
            dex_id: DEX whose router is queried
            amount_in: Input in smallest units

        Returns:
            VerifiedRoute, or None when the venue has no usable liquidity

        Raises:
            ProviderError: the RPC endpoint failed (not cached)
            UnsupportedChainError: the DEX is not deployed on the chain
        """
        path = list(path)
        if amount_in <= 0 or not _is_valid_path(path):
            logger.debug(f"Skipping invalid candidate {path} with amount {amount_in}")
            return None

        dex = self._dexes.get(chain_id, dex_id)
        if dex is None:
            raise UnsupportedChainError(f"{dex_id} is not deployed on chain {chain_id}", dex_id)

        key = VerificationCache.make_key(chain_id, dex_id, path, amount_in)
        cached = self._cache.get(key)
        if cached is not MISSING:
            logger.debug(f"Verification cache hit for {dex_id} chain {chain_id} {path}")
            return cached

        result = await self._verify_uncached(dex, path, amount_in)
        self._cache.set(key, result)
        return result

    async def _quote(self, dex: DexConfig, amount: int, path: list[str]) -> list[int]:
        async with self._limiter:
            return await self._pricing.get_amounts_out(
                dex.chain_id, dex.router_address, amount, path
            )

    async def _verify_uncached(
        self, dex: DexConfig, path: list[str], amount_in: int
    ) -> Optional[VerifiedRoute]:
        amounts: Optional[list[int]] = None
        estimated = False

        try:
            amounts = await self._quote(dex, amount_in, path)
        except InsufficientLiquidityError as e:
            logger.debug(
                f"Liquidity revert on {dex.dex_id} chain {dex.chain_id} {path} "
                f"amount {amount_in}: {e}"
            )
        except ContractRevertError as e:
            logger.debug(f"No pair on {dex.dex_id} chain {dex.chain_id} for {path}: {e}")
            return None

        if not amounts or amounts[-1] <= 0:
            provider_failures: list[ProviderError] = []

            async def probe(amount: int) -> list[int]:
                try:
                    return await self._quote(dex, amount, path)
                except ProviderError as e:
                    provider_failures.append(e)
                    raise

            amounts = await probe_and_scale(amount_in, probe, self._scaling)
            estimated = True
            if amounts is None and provider_failures:
                # unknown outcome, must not be cached as "no liquidity"
                raise ProviderError(
                    f"Probing {path} on {dex.dex_id} chain {dex.chain_id} failed: "
                    f"{provider_failures[0]}",
                    dex.dex_id,
                )
            if amounts is None:
                logger.debug(
                    f"All probe amounts failed on {dex.dex_id} chain {dex.chain_id} for {path}"
                )
                return None

        if len(amounts) != len(path) or amounts[0] != amount_in or amounts[-1] <= 0:
            logger.debug(
                f"Rejected amounts {amounts} for {path} on {dex.dex_id} chain {dex.chain_id}"
            )
            return None

        return VerifiedRoute(
            path=path,
            output_amount=amounts[-1],
            dex_id=dex.dex_id,
            chain_id=dex.chain_id,
            amounts=list(amounts),
            estimated=estimated,
        )

    async def verify_many(
        self, candidates: Sequence[VerificationCandidate]
    ) -> Optional[VerifiedRoute]:
        """
        Verify all candidates concurrently and return the best.

        Each candidate is isolated: a failure never aborts its siblings.

        Returns:
            The route with the strictly greatest output (first wins ties),
            or None if no candidate verified

        Raises:
            ProviderError: every candidate failed with a provider error
        """
        if not candidates:
            return None

        results = await gather_settled(
            self.verify(c.path, c.chain_id, c.dex_id, c.amount_in) for c in candidates
        )

        best: Optional[VerifiedRoute] = None
        for candidate, result in zip(candidates, results):
            if isinstance(result, BaseException):
                logger.warning(
                    f"Verification failed for {list(candidate.path)} on {candidate.dex_id} "
                    f"chain {candidate.chain_id} amount {candidate.amount_in}: "
                    f"{type(result).__name__}: {result}"
                )
                continue
            if result is not None and (best is None or result.output_amount > best.output_amount):
                best = result

        errors = failures(results)
        if best is None and errors and len(errors) == len(candidates):
            if all(isinstance(e, ProviderError) for e in errors):
                raise ProviderError(
                    f"All {len(candidates)} verification calls failed: {errors[0]}"
                )

        return best
