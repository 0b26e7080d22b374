"""Pytest configuration and fixtures."""

import os
from typing import Optional

import pytest

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["DEBUG"] = "true"
os.environ["DRY_RUN"] = "true"
os.environ["LIFI_API_KEY"] = ""

from crossroute.routing.base import (
    RouterParams,
    RouterRoute,
    RouteStep,
    StepToken,
    StepType,
    VenueAdapter,
)
from crossroute.routing.bridges import BridgeQuoteProvider
from crossroute.routing.cache import VerificationCache
from crossroute.routing.dex_registry import DexRegistry
from crossroute.routing.dry_run import SimulatedAmm
from crossroute.routing.models import BridgeQuote
from crossroute.routing.normalizer import RouteNormalizer
from crossroute.routing.same_chain import SameChainRouteFinder
from crossroute.routing.token_registry import TokenRegistry
from crossroute.routing.verifier import QuoteVerifier
from crossroute.utils.concurrency import ConcurrencyLimiter

# BSC
WBNB = "0xbb4CdB9CBd36B01bD1cBaEBF2De08d9173bc095c"
BSC_USDT = "0x55d398326f99059fF775485246999027B3197955"
BSC_BUSD = "0xe9e7CEA3DedcA5984780Bafc599bD69ADd087D56"
BSC_USDC = "0x8AC76a51cc950d9822D68b83fE1Ad97B32Cd580d"
PANCAKE_ROUTER = "0x10ED43C718714eb63d5aA57B78B54704E256024E"

# Ethereum
WETH = "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"
ETH_USDT = "0xdAC17F958D2ee523a2206206994597C13D831ec7"
ETH_USDC = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"

# Unlisted tokens
TOKEN_A = "0x1111111111111111111111111111111111111111"
TOKEN_B = "0x2222222222222222222222222222222222222222"
TOKEN_C = "0x3333333333333333333333333333333333333333"

E18 = 10**18
DEEP = 10**27  # reserves deep enough that test trades barely move the price


@pytest.fixture
def token_registry() -> TokenRegistry:
    return TokenRegistry()


@pytest.fixture
def dex_registry() -> DexRegistry:
    return DexRegistry()


@pytest.fixture
def amm() -> SimulatedAmm:
    """Empty constant-product backend; tests add the pools they need."""
    return SimulatedAmm()


@pytest.fixture
def limiter() -> ConcurrencyLimiter:
    return ConcurrencyLimiter(4, name="test")


@pytest.fixture
def verification_cache() -> VerificationCache:
    return VerificationCache(ttl_seconds=30)


@pytest.fixture
def verifier(amm, dex_registry, verification_cache, limiter) -> QuoteVerifier:
    return QuoteVerifier(amm, dex_registry, verification_cache, limiter)


@pytest.fixture
def same_chain_finder(verifier, dex_registry, token_registry) -> SameChainRouteFinder:
    return SameChainRouteFinder(verifier, dex_registry, token_registry, intermediary_top_k=5)


@pytest.fixture
def normalizer(token_registry, dex_registry) -> RouteNormalizer:
    return RouteNormalizer(token_registry, dex_registry)


def make_route(
    normalizer: RouteNormalizer,
    params: RouterParams,
    amount_out: int,
    router: str = "venue",
    ttl_seconds: int = 60,
    price_impact: str = "0.1",
) -> RouterRoute:
    """Single-step RouterRoute answering params with amount_out."""
    from_token = normalizer.token_amount(
        params.from_chain_id, params.from_token, params.amount_in, params.from_decimals
    )
    to_token = normalizer.token_amount(
        params.to_chain_id, params.to_token, amount_out, params.to_decimals
    )
    step = RouteStep(
        type=StepType.BRIDGE if params.is_cross_chain else StepType.SWAP,
        chain_id=params.from_chain_id,
        to_chain_id=params.to_chain_id if params.is_cross_chain else None,
        from_token=StepToken(params.from_token, from_token.amount, from_token.symbol),
        to_token=StepToken(params.to_token, to_token.amount, to_token.symbol),
        protocol=router,
        description=f"{from_token.symbol} to {to_token.symbol} on {router}",
    )
    return normalizer.build(
        router=router,
        from_token=from_token,
        to_token=to_token,
        steps=[step],
        ttl_seconds=ttl_seconds,
        price_impact=price_impact,
        slippage=params.slippage,
    )


def rate_table(normalizer: RouteNormalizer, rates: dict, router: str = "venue"):
    """Adapter responder quoting amount * multiplier for known (from, to) pairs."""

    async def respond(params: RouterParams) -> Optional[RouterRoute]:
        multiplier = rates.get((params.from_token.lower(), params.to_token.lower()))
        if multiplier is None:
            return None
        return make_route(normalizer, params, params.amount_in * multiplier, router)

    return respond


class ScriptedAdapter(VenueAdapter):
    """Venue adapter answering from a callable; records every request."""

    def __init__(
        self,
        name: str,
        respond,
        chains: Optional[set[int]] = None,
        priority: int = 50,
        cross_chain: bool = False,
    ):
        self._name = name
        self._respond = respond
        self._chains = chains
        self._priority = priority
        self._cross_chain = cross_chain
        self.requests: list[RouterParams] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def priority(self) -> int:
        return self._priority

    def supports_chain(self, chain_id: int) -> bool:
        return self._chains is None or chain_id in self._chains

    def supports_cross_chain(self) -> bool:
        return self._cross_chain

    async def get_route(self, params: RouterParams) -> Optional[RouterRoute]:
        self.requests.append(params)
        return await self._respond(params)


class ScriptedBridge(BridgeQuoteProvider):
    """Bridge delivering the requested token at a fixed rate (basis points)."""

    def __init__(self, rate_bps: int = 9990, fail_with: Optional[Exception] = None):
        self.rate_bps = rate_bps
        self.fail_with = fail_with
        self.requests: list[tuple] = []

    @property
    def name(self) -> str:
        return "scripted_bridge"

    async def get_quote(
        self,
        from_chain_id,
        from_token,
        amount_in,
        to_chain_id,
        to_token,
        recipient=None,
        from_address=None,
        slippage=0.5,
        order=None,
    ) -> Optional[BridgeQuote]:
        self.requests.append((from_chain_id, from_token, amount_in, to_chain_id, to_token))
        if self.fail_with:
            raise self.fail_with
        return BridgeQuote(
            provider=self.name,
            from_chain_id=from_chain_id,
            to_chain_id=to_chain_id,
            from_token=from_token,
            to_token=to_token,
            amount_in=amount_in,
            amount_out=amount_in * self.rate_bps // 10_000,
            estimated_time=120,
            fee_usd="1.5",
        )


@pytest.fixture
def scripted_adapter():
    """Factory for ScriptedAdapter instances."""
    return ScriptedAdapter


@pytest.fixture
def scripted_bridge():
    """Factory for ScriptedBridge instances."""
    return ScriptedBridge
