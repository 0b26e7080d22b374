"""Simulated venues for dry-run mode and tests.

SimulatedAmm is a deterministic in-process stand-in for on-chain
getAmountsOut: constant-product pools with a swap fee, V2-style reverts
for missing pairs and oversized trades. The simulated venue adapter and
bridge price by symbol from a fixed USD table.
"""

import logging
from decimal import ROUND_DOWN, Decimal
from typing import Iterable, Optional

from crossroute.routing.amounts import format_amount
from crossroute.routing.base import (
    OrderPreference,
    RouteFees,
    RoutePayload,
    RouterParams,
    RouterRoute,
    RouteStep,
    StepToken,
    StepType,
    VenueAdapter,
)
from crossroute.routing.bridges import BridgeQuoteProvider
from crossroute.routing.dex_registry import DexRegistry
from crossroute.routing.errors import (
    ContractRevertError,
    InsufficientLiquidityError,
    ProviderError,
)
from crossroute.routing.models import BridgeQuote, same_address
from crossroute.routing.normalizer import RouteNormalizer
from crossroute.routing.rpc import PricingBackend
from crossroute.routing.token_registry import TokenInfo, TokenRegistry

logger = logging.getLogger(__name__)


# Simulated market prices in USD, for demonstration only
SIMULATED_PRICES: dict[str, Decimal] = {
    # ========== Native & wrapped native ==========
    "ETH": Decimal("3900.00"),
    "WETH": Decimal("3900.00"),
    "BNB": Decimal("710.00"),
    "WBNB": Decimal("710.00"),
    "MATIC": Decimal("0.62"),
    "WMATIC": Decimal("0.62"),
    "SOL": Decimal("225.00"),
    # ========== Stablecoins ==========
    "USDT": Decimal("1.00"),
    "USDC": Decimal("1.00"),
    "BUSD": Decimal("1.00"),
    "DAI": Decimal("1.00"),
    # ========== Bluechips & LSTs ==========
    "WBTC": Decimal("100000.00"),
    "BTCB": Decimal("100000.00"),
    "CAKE": Decimal("2.80"),
    "stETH": Decimal("3890.00"),
    "wstETH": Decimal("4600.00"),
    "cbETH": Decimal("4150.00"),
}

BPS = 10_000


def _pair_key(chain_id: int, router: Optional[str], token_a: str, token_b: str) -> tuple:
    return (chain_id, router.lower() if router else None, token_a.lower(), token_b.lower())


class SimulatedAmm(PricingBackend):
    """Constant-product pools answering getAmountsOut like a V2 router.

    Pools registered without a router are visible to every router on the
    chain; router-specific pools take precedence.
    """

    def __init__(self, fee_bps: int = 30, max_input_ratio: Optional[Decimal] = None):
        """
        Args:
            fee_bps: Swap fee per hop in basis points
            max_input_ratio: Trades with amount_in > reserve_in * ratio revert
                with INSUFFICIENT_LIQUIDITY (None = never)
        """
        self.fee_bps = fee_bps
        self.max_input_ratio = max_input_ratio
        self._reserves: dict[tuple, tuple[int, int]] = {}
        self._decimals: dict[tuple[int, str], int] = {}
        self.unavailable_chains: set[int] = set()
        self.calls: list[tuple[int, str, int, tuple[str, ...]]] = []

    def add_pool(
        self,
        chain_id: int,
        token_a: str,
        token_b: str,
        reserve_a: int,
        reserve_b: int,
        router: Optional[str] = None,
    ) -> None:
        """Register a pool (both directions)."""
        self._reserves[_pair_key(chain_id, router, token_a, token_b)] = (reserve_a, reserve_b)
        self._reserves[_pair_key(chain_id, router, token_b, token_a)] = (reserve_b, reserve_a)

    def add_token(self, chain_id: int, address: str, decimals: int) -> None:
        self._decimals[(chain_id, address.lower())] = decimals

    def _reserves_for(
        self, chain_id: int, router: str, token_in: str, token_out: str
    ) -> Optional[tuple[int, int]]:
        return self._reserves.get(
            _pair_key(chain_id, router, token_in, token_out)
        ) or self._reserves.get(_pair_key(chain_id, None, token_in, token_out))

    def amount_out(self, amount_in: int, reserve_in: int, reserve_out: int) -> int:
        """V2 getAmountOut with this AMM's fee."""
        amount_in_with_fee = amount_in * (BPS - self.fee_bps)
        return amount_in_with_fee * reserve_out // (reserve_in * BPS + amount_in_with_fee)

    async def get_amounts_out(
        self, chain_id: int, router: str, amount_in: int, path: list[str]
    ) -> list[int]:
        self.calls.append((chain_id, router, amount_in, tuple(path)))
        if chain_id in self.unavailable_chains:
            raise ProviderError(f"Simulated RPC outage on chain {chain_id}")
        if len(path) < 2:
            raise ContractRevertError("execution reverted: INVALID_PATH")

        amounts = [amount_in]
        for token_in, token_out in zip(path, path[1:]):
            reserves = self._reserves_for(chain_id, router, token_in, token_out)
            if reserves is None:
                raise ContractRevertError("execution reverted")
            reserve_in, reserve_out = reserves
            if reserve_in <= 0 or reserve_out <= 0:
                raise InsufficientLiquidityError("UniswapV2Library: INSUFFICIENT_LIQUIDITY")
            if self.max_input_ratio is not None and amounts[-1] > reserve_in * self.max_input_ratio:
                raise InsufficientLiquidityError("UniswapV2Library: INSUFFICIENT_LIQUIDITY")
            amounts.append(self.amount_out(amounts[-1], reserve_in, reserve_out))
        return amounts

    async def get_decimals(self, chain_id: int, token: str) -> int:
        if chain_id in self.unavailable_chains:
            raise ProviderError(f"Simulated RPC outage on chain {chain_id}")
        decimals = self._decimals.get((chain_id, token.lower()))
        if decimals is None:
            raise ContractRevertError(f"execution reverted: no decimals() on {token}")
        return decimals

    def seed_from_registry(
        self,
        token_registry: TokenRegistry,
        dex_registry: DexRegistry,
        prices: Optional[dict[str, Decimal]] = None,
        depth_usd: Decimal = Decimal("5000000"),
    ) -> int:
        """Create a pool between every pair of priced known tokens on each DEX chain.

        Returns:
            Number of pools created
        """
        prices = SIMULATED_PRICES if prices is None else prices
        created = 0
        for chain_id in token_registry.chains():
            if not dex_registry.supports_chain(chain_id):
                continue
            tokens = _unique_tokens(
                token_registry.intermediaries(chain_id)
                + token_registry.multihop_intermediates(chain_id)
            )
            priced = [t for t in tokens if t.symbol in prices]
            for token in priced:
                self.add_token(chain_id, token.address, token.decimals)
            for i, token_a in enumerate(priced):
                for token_b in priced[i + 1 :]:
                    self.add_pool(
                        chain_id,
                        token_a.address,
                        token_b.address,
                        _reserve(depth_usd, prices[token_a.symbol], token_a.decimals),
                        _reserve(depth_usd, prices[token_b.symbol], token_b.decimals),
                    )
                    created += 1
        logger.info(f"Seeded simulated AMM with {created} pools")
        return created


def _unique_tokens(tokens: Iterable[TokenInfo]) -> list[TokenInfo]:
    seen: set[str] = set()
    unique = []
    for token in tokens:
        if token.address.lower() not in seen:
            seen.add(token.address.lower())
            unique.append(token)
    return unique


def _reserve(depth_usd: Decimal, price: Decimal, decimals: int) -> int:
    return int((depth_usd / price * (Decimal(10) ** decimals)).to_integral_value(ROUND_DOWN))


def _convert(
    amount: int,
    from_price: Decimal,
    from_decimals: int,
    to_price: Decimal,
    to_decimals: int,
    fee_bps: int,
) -> int:
    human = Decimal(amount) / (Decimal(10) ** from_decimals)
    out = human * from_price / to_price * (Decimal(BPS - fee_bps) / BPS)
    return int((out * (Decimal(10) ** to_decimals)).to_integral_value(ROUND_DOWN))


class SimulatedVenueAdapter(VenueAdapter):
    """Simulated same-chain venue priced from the USD table."""

    def __init__(
        self,
        token_registry: TokenRegistry,
        normalizer: RouteNormalizer,
        fee_bps: int = 30,
        prices: Optional[dict[str, Decimal]] = None,
    ):
        self.tokens = token_registry
        self.normalizer = normalizer
        self.fee_bps = fee_bps
        self._prices = dict(SIMULATED_PRICES if prices is None else prices)

    @property
    def name(self) -> str:
        return "dry_run"

    @property
    def display_name(self) -> str:
        return "Dry Run"

    @property
    def priority(self) -> int:
        return 100

    def supports_chain(self, chain_id: int) -> bool:
        return chain_id in self.tokens.chains()

    def set_price(self, symbol: str, price: Decimal) -> None:
        """Set simulated price for a symbol."""
        self._prices[symbol] = price

    async def get_route(self, params: RouterParams) -> Optional[RouterRoute]:
        """Generate a simulated quote."""
        if params.is_cross_chain or same_address(params.from_token, params.to_token):
            return None

        chain_id = params.from_chain_id
        from_info = self.tokens.get_token(chain_id, params.from_token)
        to_info = self.tokens.get_token(chain_id, params.to_token)
        if from_info is None or to_info is None:
            return None
        from_price = self._prices.get(from_info.symbol)
        to_price = self._prices.get(to_info.symbol)
        if from_price is None or to_price is None:
            return None

        out = _convert(
            params.amount_in,
            from_price,
            from_info.decimals,
            to_price,
            to_info.decimals,
            self.fee_bps,
        )
        if out <= 0:
            return None

        step = RouteStep(
            type=StepType.SWAP,
            chain_id=chain_id,
            from_token=StepToken(
                from_info.address,
                format_amount(params.amount_in, from_info.decimals),
                from_info.symbol,
            ),
            to_token=StepToken(to_info.address, format_amount(out, to_info.decimals), to_info.symbol),
            protocol=self.display_name,
            description=f"Swap {from_info.symbol} to {to_info.symbol} (simulated)",
        )
        return self.normalizer.build(
            router=self.name,
            from_token=self.normalizer.token_amount(
                chain_id, from_info.address, params.amount_in, from_info.decimals, from_info.symbol
            ),
            to_token=self.normalizer.token_amount(
                chain_id, to_info.address, out, to_info.decimals, to_info.symbol
            ),
            steps=[step],
            ttl_seconds=self.normalizer.same_chain_ttl_seconds,
            fees=RouteFees(gas="150000", gas_usd="0.50", total="0.50"),
            slippage=params.slippage,
            raw=RoutePayload.encode(self.name, {"simulated": True, "outAmount": str(out)}),
        )


class SimulatedBridgeProvider(BridgeQuoteProvider):
    """Simulated bridge delivering the requested token at a flat fee."""

    def __init__(
        self,
        token_registry: TokenRegistry,
        fee_bps: int = 10,
        estimated_time: int = 180,
        fee_usd: str = "2.50",
        prices: Optional[dict[str, Decimal]] = None,
    ):
        self.tokens = token_registry
        self.fee_bps = fee_bps
        self.estimated_time = estimated_time
        self.fee_usd = fee_usd
        self._prices = SIMULATED_PRICES if prices is None else prices

    @property
    def name(self) -> str:
        return "bridge_sim"

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
        """Generate a simulated bridge quote."""
        source = self.tokens.get_token(from_chain_id, from_token)
        dest = self.tokens.get_token(to_chain_id, to_token)
        if source is None or dest is None:
            logger.debug(f"Simulated bridge cannot move {from_token} to chain {to_chain_id}")
            return None

        from_price = self._prices.get(source.symbol)
        to_price = self._prices.get(dest.symbol)
        if from_price is None or to_price is None:
            return None

        amount_out = _convert(
            amount_in, from_price, source.decimals, to_price, dest.decimals, self.fee_bps
        )
        if amount_out <= 0:
            return None

        return BridgeQuote(
            provider=self.name,
            from_chain_id=from_chain_id,
            to_chain_id=to_chain_id,
            from_token=from_token,
            to_token=dest.address,
            amount_in=amount_in,
            amount_out=amount_out,
            to_decimals=dest.decimals,
            estimated_time=self.estimated_time,
            fee_usd=self.fee_usd,
            quote={"simulated": True, "toAmount": str(amount_out)},
        )
