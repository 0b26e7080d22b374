"""Tests for the on-chain DEX adapter, simulated venues and service wiring."""

import pytest

from crossroute.config import Settings
from crossroute.routing.base import RouterParams
from crossroute.routing.dry_run import SimulatedAmm, SimulatedBridgeProvider, SimulatedVenueAdapter
from crossroute.routing.errors import ContractRevertError, UnsupportedChainError
from crossroute.routing.factory import create_route_service
from crossroute.routing.onchain import OnChainDexAdapter

from conftest import BSC_BUSD, BSC_USDT, DEEP, E18, TOKEN_A, TOKEN_B, WBNB, WETH


def swap(from_token: str, to_token: str, amount: int = E18, chain_id: int = 56) -> RouterParams:
    return RouterParams(chain_id, from_token, str(amount), chain_id, to_token)


class TestOnChainDexAdapter:
    """Tests for OnChainDexAdapter."""

    @pytest.fixture
    def adapter(self, verifier, dex_registry, token_registry, normalizer):
        return OnChainDexAdapter(
            "pancakeswap", verifier, dex_registry, token_registry, normalizer
        )

    @pytest.mark.asyncio
    async def test_best_of_direct_and_intermediary(self, adapter, amm):
        """Test a deeper path through an intermediary beats a shallow direct pool."""
        amm.add_pool(56, WBNB, BSC_USDT, 10 * E18, 6000 * E18)
        amm.add_pool(56, WBNB, BSC_BUSD, DEEP, DEEP * 600)
        amm.add_pool(56, BSC_BUSD, BSC_USDT, DEEP, DEEP)

        route = await adapter.get_route(swap(WBNB, BSC_USDT))

        assert route.router == "pancakeswap"
        assert len(route.steps) == 2
        assert route.steps[0].to_token.address == BSC_BUSD
        assert route.output_amount > 590 * E18

    @pytest.mark.asyncio
    async def test_no_pool(self, adapter):
        """Test None when the DEX has no pool for the pair."""
        assert await adapter.get_route(swap(TOKEN_A, TOKEN_B)) is None

    @pytest.mark.asyncio
    async def test_refuses_other_chains(self, adapter):
        """Test chains without a deployment and cross-chain requests are refused."""
        assert adapter.supports_chain(56)
        assert not adapter.supports_chain(1)
        with pytest.raises(UnsupportedChainError):
            await adapter.get_route(RouterParams(56, WBNB, str(E18), 1, WETH))

    def test_unknown_dex(self, verifier, dex_registry, token_registry, normalizer):
        """Test a DEX id without deployments cannot be wrapped."""
        with pytest.raises(ValueError):
            OnChainDexAdapter("nope", verifier, dex_registry, token_registry, normalizer)


class TestSimulatedVenues:
    """Tests for the dry-run venue, bridge and AMM."""

    @pytest.mark.asyncio
    async def test_venue_prices_from_table(self, token_registry, normalizer):
        """Test 1 WBNB at 710 USD less the 0.3% fee."""
        venue = SimulatedVenueAdapter(token_registry, normalizer)

        route = await venue.get_route(swap(WBNB, BSC_USDT))

        assert route.router == "dry_run"
        assert route.to_token.amount == "707.87"
        assert route.raw.decode("dry_run")["simulated"] is True

    @pytest.mark.asyncio
    async def test_venue_unknown_token(self, token_registry, normalizer):
        """Test tokens outside the registry get no simulated quote."""
        venue = SimulatedVenueAdapter(token_registry, normalizer)

        assert await venue.get_route(swap(TOKEN_A, BSC_USDT)) is None

    @pytest.mark.asyncio
    async def test_bridge_converts_by_price(self, token_registry):
        """Test the simulated bridge converts WBNB into WETH value."""
        bridge = SimulatedBridgeProvider(token_registry)

        quote = await bridge.get_quote(56, WBNB, E18, 1, WETH)

        assert quote.to_token == WETH
        assert quote.to_decimals == 18
        assert 0 < quote.amount_out < E18
        assert quote.estimated_time == 180

    @pytest.mark.asyncio
    async def test_amm_seeded_from_registry(self, token_registry, dex_registry):
        """Test seeding creates pools and decimals for known tokens."""
        amm = SimulatedAmm()

        assert amm.seed_from_registry(token_registry, dex_registry) > 0
        amounts = await amm.get_amounts_out(56, "any", E18, [WBNB, BSC_USDT])
        assert 700 * E18 < amounts[-1] < 710 * E18
        assert await amm.get_decimals(1, WETH) == 18

    @pytest.mark.asyncio
    async def test_amm_missing_pair_reverts(self, amm):
        """Test a missing pair reverts like a V2 router."""
        with pytest.raises(ContractRevertError):
            await amm.get_amounts_out(56, "any", E18, [TOKEN_A, TOKEN_B])


class TestFactory:
    """Tests for wiring the route service."""

    @pytest.mark.asyncio
    async def test_dry_run_wiring(self):
        """Test dry-run mode wires simulated venues and no live clients."""
        service = create_route_service(Settings(dry_run=True, enable_multi_hop=True))

        names = [adapter.name for adapter in service.adapters.all()]
        assert "dry_run" in names
        assert "pancakeswap" in names
        assert "lifi" not in names
        assert isinstance(service.pricing, SimulatedAmm)
        assert service.multihop is not None

        await service.aclose()

    @pytest.mark.asyncio
    async def test_live_wiring(self):
        """Test live mode wires LiFi and Jupiter."""
        service = create_route_service(Settings(dry_run=False, enable_multi_hop=False))

        names = [adapter.name for adapter in service.adapters.all()]
        assert names[:2] == ["lifi", "jupiter"]
        assert service.multihop is None
        bridges = service.cross_chain.bridge.registry.all()
        assert [bridge.name for bridge in bridges] == ["lifi"]

        await service.aclose()
