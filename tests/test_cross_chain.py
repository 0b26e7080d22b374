"""Tests for the cross-chain route finder."""

import pytest

from crossroute.chains import SOLANA_CHAIN_ID
from crossroute.routing.cross_chain import PARALLEL, SEQUENTIAL, CrossChainRouteFinder
from crossroute.routing.errors import ProviderError, UnsupportedChainError
from crossroute.routing.same_chain import SameChainRouteFinder
from crossroute.routing.token_registry import TokenCategory, TokenInfo, TokenRegistry

from conftest import (
    BSC_USDT,
    DEEP,
    E18,
    ETH_USDT,
    TOKEN_A,
    TOKEN_C,
    WBNB,
    WETH,
    ScriptedBridge,
)


def registry(intermediaries: dict) -> TokenRegistry:
    """Registry with the given intermediaries and no identity map."""
    return TokenRegistry(
        intermediaries=intermediaries,
        multihop_intermediates={},
        identities={},
        equivalences={},
    )


def make_finder(verifier, dex_registry, tokens, bridge, strategy=PARALLEL):
    same_chain = SameChainRouteFinder(verifier, dex_registry, tokens)
    return CrossChainRouteFinder(same_chain, bridge, tokens, strategy=strategy)


class TestCrossChainRouteFinder:
    """Tests for CrossChainRouteFinder.find."""

    def test_unknown_strategy(self, same_chain_finder, token_registry, scripted_bridge):
        """Test the strategy must be parallel or sequential."""
        with pytest.raises(ValueError):
            CrossChainRouteFinder(same_chain_finder, scripted_bridge(), token_registry, "random")

    @pytest.mark.asyncio
    async def test_skips_bridge_token_without_destination_mapping(
        self, verifier, dex_registry, amm, scripted_bridge
    ):
        """Test USDT with a source leg but no mapping falls through to WBNB/WETH."""
        tokens = registry(
            {
                56: [
                    TokenInfo(56, BSC_USDT, "USDT", 18, 1, TokenCategory.STABLE),
                    TokenInfo(56, WBNB, "WBNB", 18, 2, TokenCategory.NATIVE),
                ],
                1: [TokenInfo(1, WETH, "WETH", 18, 1, TokenCategory.NATIVE)],
            }
        )
        bridge = scripted_bridge()
        finder = make_finder(verifier, dex_registry, tokens, bridge, SEQUENTIAL)
        amm.add_pool(56, TOKEN_A, BSC_USDT, DEEP, DEEP)
        amm.add_pool(56, TOKEN_A, WBNB, DEEP, DEEP)
        amm.add_pool(1, WETH, TOKEN_C, DEEP, DEEP)

        route = await finder.find(TOKEN_A, TOKEN_C, 56, 1, E18)

        assert route is not None
        assert route.bridge.from_token == WBNB
        assert route.bridge.to_token == WETH
        assert len(bridge.requests) == 1
        assert route.bridge.amount_in == route.source_route.output_amount
        assert route.total_output == route.dest_route.output_amount
        assert route.dest_route.path == [WETH, TOKEN_C]

    @pytest.mark.asyncio
    async def test_identity_legs(self, verifier, dex_registry, token_registry, scripted_bridge):
        """Test WBNB -> WETH needs no swap on either side."""
        bridge = scripted_bridge(rate_bps=9990)
        finder = make_finder(verifier, dex_registry, token_registry, bridge)

        route = await finder.find(WBNB, WETH, 56, 1, E18)

        assert route.source_route.hops == 0
        assert route.dest_route.hops == 0
        assert route.bridge.amount_in == E18
        assert route.total_output == E18 * 9990 // 10_000

    @pytest.mark.asyncio
    async def test_parallel_picks_best_and_sequential_first(
        self, verifier, dex_registry, token_registry, amm, scripted_bridge
    ):
        """Test parallel returns the best bridge token, sequential the first success."""
        amm.add_pool(56, TOKEN_A, WBNB, DEEP, DEEP)
        amm.add_pool(56, TOKEN_A, BSC_USDT, DEEP, DEEP)
        # WETH leg on the destination loses half
        amm.add_pool(1, WETH, ETH_USDT, DEEP, DEEP // 2)

        parallel = make_finder(verifier, dex_registry, token_registry, scripted_bridge())
        sequential = make_finder(
            verifier, dex_registry, token_registry, scripted_bridge(), SEQUENTIAL
        )

        best = await parallel.find(TOKEN_A, ETH_USDT, 56, 1, E18)
        first = await sequential.find(TOKEN_A, ETH_USDT, 56, 1, E18)

        assert best.bridge.from_token == BSC_USDT
        assert best.dest_route.hops == 0
        assert first.bridge.from_token == WBNB
        assert best.total_output > first.total_output

    @pytest.mark.asyncio
    async def test_chain_without_bridgeable_tokens(
        self, verifier, dex_registry, token_registry, scripted_bridge
    ):
        """Test a source chain with no configured bridge tokens has no route."""
        bridge = scripted_bridge()
        finder = make_finder(verifier, dex_registry, token_registry, bridge)

        route = await finder.find(
            "So11111111111111111111111111111111111111112", WETH, SOLANA_CHAIN_ID, 1, E18
        )

        assert route is None
        assert bridge.requests == []

    @pytest.mark.asyncio
    async def test_bridge_outage_raises(self, verifier, dex_registry, scripted_bridge):
        """Test ProviderError when every bridge token failed on the provider."""
        tokens = registry(
            {
                56: [TokenInfo(56, WBNB, "WBNB", 18, 1, TokenCategory.NATIVE)],
                1: [TokenInfo(1, WETH, "WETH", 18, 1, TokenCategory.NATIVE)],
            }
        )
        bridge = scripted_bridge(fail_with=ProviderError("bridge API down"))
        finder = make_finder(verifier, dex_registry, tokens, bridge)

        with pytest.raises(ProviderError):
            await finder.find(WBNB, WETH, 56, 1, E18)

    @pytest.mark.asyncio
    async def test_no_destination_leg(self, verifier, dex_registry, token_registry, scripted_bridge):
        """Test None when the delivered token cannot reach the target."""
        finder = make_finder(verifier, dex_registry, token_registry, scripted_bridge())

        assert await finder.find(WBNB, TOKEN_C, 56, 1, E18) is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("strategy", [PARALLEL, SEQUENTIAL])
    async def test_refused_bridge_token_falls_through(
        self, verifier, dex_registry, token_registry, amm, strategy
    ):
        """Test a bridge declining one token leaves the next bridge token to succeed."""

        class RefusesWbnb(ScriptedBridge):
            async def get_quote(self, from_chain_id, from_token, *args, **kwargs):
                if from_token == WBNB:
                    self.requests.append((from_chain_id, from_token))
                    raise UnsupportedChainError("token not bridgeable", self.name)
                return await super().get_quote(from_chain_id, from_token, *args, **kwargs)

        amm.add_pool(56, TOKEN_A, WBNB, DEEP, DEEP)
        amm.add_pool(56, TOKEN_A, BSC_USDT, DEEP, DEEP)
        bridge = RefusesWbnb()
        finder = make_finder(verifier, dex_registry, token_registry, bridge, strategy)

        route = await finder.find(TOKEN_A, ETH_USDT, 56, 1, E18)

        assert route is not None
        assert route.bridge.from_token == BSC_USDT
        assert (56, WBNB) in bridge.requests
