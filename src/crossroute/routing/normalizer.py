"""Route normalizer: internal routes and adapter legs to RouterRoute.

Human amounts are always derived from integers with format_amount; the
exchange rate uses Decimal arithmetic on the raw integers.
"""

import logging
import uuid
from typing import Callable, Optional

from crossroute.chains import get_chain_name
from crossroute.routing.amounts import exchange_rate, format_amount
from crossroute.routing.base import (
    RouteFees,
    RoutePayload,
    RouterRoute,
    RouteStep,
    StepToken,
    StepType,
    TokenAmount,
    now_ms,
    sum_decimal_strings,
)
from crossroute.routing.dex_registry import DexRegistry
from crossroute.routing.models import CrossChainRoute, SameChainRoute
from crossroute.routing.token_registry import TokenRegistry

logger = logging.getLogger(__name__)

DEFAULT_DECIMALS = 18

# Gas unit estimates for routes priced from on-chain reads
SAME_CHAIN_GAS_ESTIMATE = "150000"
CROSS_CHAIN_GAS_ESTIMATE = "500000"

SAME_CHAIN_SWAP_SECONDS = 30


def new_route_id() -> str:
    return f"route-{now_ms()}-{uuid.uuid4().hex[:9]}"


class RouteNormalizer:
    """Builds RouterRoute records with ids, expiry and readable amounts."""

    def __init__(
        self,
        token_registry: TokenRegistry,
        dex_registry: DexRegistry,
        same_chain_ttl_seconds: int = 60,
        cross_chain_ttl_seconds: int = 120,
        clock: Callable[[], int] = now_ms,
    ):
        self.tokens = token_registry
        self.dexes = dex_registry
        self.same_chain_ttl_seconds = same_chain_ttl_seconds
        self.cross_chain_ttl_seconds = cross_chain_ttl_seconds
        self._clock = clock

    # ======================
    # Building blocks
    # ======================

    def decimals_for(self, chain_id: int, address: str, fallback: Optional[int] = None) -> int:
        if fallback is not None:
            return fallback
        decimals = self.tokens.get_decimals(chain_id, address)
        if decimals is None:
            logger.debug(f"Unknown decimals for {address} on chain {chain_id}, using 18")
            return DEFAULT_DECIMALS
        return decimals

    def symbol_for(self, chain_id: int, address: str, fallback: Optional[str] = None) -> str:
        return fallback or self.tokens.get_symbol(chain_id, address) or "UNKNOWN"

    def token_amount(
        self,
        chain_id: int,
        address: str,
        raw_amount: int,
        decimals: Optional[int] = None,
        symbol: Optional[str] = None,
        amount_usd: Optional[str] = None,
    ) -> TokenAmount:
        decimals = self.decimals_for(chain_id, address, decimals)
        return TokenAmount(
            chain_id=chain_id,
            address=address,
            symbol=self.symbol_for(chain_id, address, symbol),
            amount=format_amount(raw_amount, decimals),
            decimals=decimals,
            amount_usd=amount_usd,
        )

    def build(
        self,
        router: str,
        from_token: TokenAmount,
        to_token: TokenAmount,
        steps: list[RouteStep],
        ttl_seconds: int,
        fees: Optional[RouteFees] = None,
        price_impact: str = "0",
        slippage: float = 0.5,
        estimated_time: int = SAME_CHAIN_SWAP_SECONDS,
        raw: Optional[RoutePayload] = None,
    ) -> RouterRoute:
        """Assemble a RouterRoute, assigning route id, rate and expiry."""
        now = self._clock()
        return RouterRoute(
            router=router,
            route_id=new_route_id(),
            from_token=from_token,
            to_token=to_token,
            exchange_rate=exchange_rate(
                from_token.raw_amount,
                to_token.raw_amount,
                from_token.decimals,
                to_token.decimals,
            ),
            price_impact=price_impact,
            slippage=str(slippage),
            fees=fees or RouteFees(),
            steps=steps,
            estimated_time=estimated_time,
            expires_at=now + ttl_seconds * 1000,
            raw=raw,
            created_at=now,
        )

    def swap_steps(
        self,
        route: SameChainRoute,
        from_decimals: Optional[int] = None,
        to_decimals: Optional[int] = None,
    ) -> list[RouteStep]:
        """One swap step per hop, carrying that hop's amounts."""
        if route.hops == 0:
            return []

        protocol = self.dexes.protocol_name(route.dex_id)
        amounts = route.amounts
        if len(amounts) != len(route.path):
            amounts = [route.amount_in] + [0] * (route.hops - 1) + [route.output_amount]
        last = len(route.path) - 1

        steps = []
        for i in range(route.hops):
            token_in, token_out = route.path[i], route.path[i + 1]
            dec_in = self.decimals_for(route.chain_id, token_in, from_decimals if i == 0 else None)
            dec_out = self.decimals_for(
                route.chain_id, token_out, to_decimals if i + 1 == last else None
            )
            amount_in, amount_out = amounts[i], amounts[i + 1]
            symbol_in = self.symbol_for(route.chain_id, token_in)
            symbol_out = self.symbol_for(route.chain_id, token_out)
            steps.append(
                RouteStep(
                    type=StepType.SWAP,
                    chain_id=route.chain_id,
                    from_token=StepToken(token_in, format_amount(amount_in, dec_in), symbol_in),
                    to_token=StepToken(token_out, format_amount(amount_out, dec_out), symbol_out),
                    protocol=protocol,
                    description=f"Swap {symbol_in} to {symbol_out} on {protocol}",
                )
            )
        return steps

    @staticmethod
    def _leg_payload(route: SameChainRoute) -> dict:
        return {
            "chainId": route.chain_id,
            "dexId": route.dex_id,
            "path": route.path,
            "amounts": [str(a) for a in route.amounts],
            "outputAmount": str(route.output_amount),
        }

    # ======================
    # Internal routes
    # ======================

    def from_same_chain(
        self,
        route: SameChainRoute,
        from_decimals: Optional[int] = None,
        to_decimals: Optional[int] = None,
        slippage: float = 0.5,
        from_symbol: Optional[str] = None,
        to_symbol: Optional[str] = None,
        router: Optional[str] = None,
    ) -> RouterRoute:
        """Normalize a verified same-chain route."""
        router = router or f"universal-{route.dex_id}"
        dex = self.dexes.get(route.chain_id, route.dex_id)
        payload = self._leg_payload(route)
        if dex:
            payload["router"] = dex.router_address

        return self.build(
            router=router,
            from_token=self.token_amount(
                route.chain_id, route.from_token, route.amount_in, from_decimals, from_symbol
            ),
            to_token=self.token_amount(
                route.chain_id, route.to_token, route.output_amount, to_decimals, to_symbol
            ),
            steps=self.swap_steps(route, from_decimals, to_decimals),
            ttl_seconds=self.same_chain_ttl_seconds,
            fees=RouteFees(gas=SAME_CHAIN_GAS_ESTIMATE),
            slippage=slippage,
            estimated_time=SAME_CHAIN_SWAP_SECONDS,
            raw=RoutePayload.encode(router, payload),
        )

    def from_cross_chain(
        self,
        route: CrossChainRoute,
        from_decimals: Optional[int] = None,
        to_decimals: Optional[int] = None,
        slippage: float = 0.5,
        from_symbol: Optional[str] = None,
        to_symbol: Optional[str] = None,
    ) -> RouterRoute:
        """Normalize source leg, bridge and destination leg into one route."""
        source, bridge, dest = route.source_route, route.bridge, route.dest_route
        router = f"universal-{bridge.provider}"

        bridge_in_decimals = self.decimals_for(
            source.chain_id, bridge.from_token, from_decimals if source.hops == 0 else None
        )
        delivered_decimals = bridge.to_decimals
        if delivered_decimals is None and dest.hops == 0:
            delivered_decimals = to_decimals
        bridge_out_decimals = self.decimals_for(dest.chain_id, bridge.to_token, delivered_decimals)
        bridge_in_symbol = self.symbol_for(source.chain_id, bridge.from_token)
        bridge_out_symbol = self.symbol_for(dest.chain_id, bridge.to_token)
        bridge_step = RouteStep(
            type=StepType.BRIDGE,
            chain_id=bridge.from_chain_id,
            to_chain_id=bridge.to_chain_id,
            from_token=StepToken(
                bridge.from_token,
                format_amount(bridge.amount_in, bridge_in_decimals),
                bridge_in_symbol,
            ),
            to_token=StepToken(
                bridge.to_token,
                format_amount(bridge.amount_out, bridge_out_decimals),
                bridge_out_symbol,
            ),
            protocol=bridge.provider,
            description=(
                f"Bridge {bridge_in_symbol} from {get_chain_name(bridge.from_chain_id)} "
                f"to {get_chain_name(bridge.to_chain_id)} via {bridge.provider}"
            ),
        )

        steps = (
            self.swap_steps(source, from_decimals, None)
            + [bridge_step]
            + self.swap_steps(dest, bridge_out_decimals, to_decimals)
        )
        swap_legs = sum(1 for leg in (source, dest) if leg.hops > 0)
        if bridge.estimated_time is not None:
            estimated_time = bridge.estimated_time + swap_legs * SAME_CHAIN_SWAP_SECONDS
        else:
            estimated_time = len(steps) * 60

        fees = RouteFees(
            protocol=bridge.fee_usd,
            gas=CROSS_CHAIN_GAS_ESTIMATE,
            gas_usd=bridge.gas_usd,
            total=sum_decimal_strings(bridge.fee_usd, bridge.gas_usd),
        )

        payload = {
            "sourceRoute": self._leg_payload(source),
            "bridge": {
                "provider": bridge.provider,
                "fromChainId": bridge.from_chain_id,
                "toChainId": bridge.to_chain_id,
                "fromToken": bridge.from_token,
                "toToken": bridge.to_token,
                "amountIn": str(bridge.amount_in),
                "amountOut": str(bridge.amount_out),
                "quote": bridge.quote,
            },
            "destRoute": self._leg_payload(dest),
        }

        return self.build(
            router=router,
            from_token=self.token_amount(
                source.chain_id, source.from_token, source.amount_in, from_decimals, from_symbol
            ),
            to_token=self.token_amount(
                dest.chain_id, dest.to_token, route.total_output, to_decimals, to_symbol
            ),
            steps=steps,
            ttl_seconds=self.cross_chain_ttl_seconds,
            fees=fees,
            slippage=slippage,
            estimated_time=estimated_time,
            raw=RoutePayload.encode(router, payload),
        )

    # ======================
    # Multi-hop bundles
    # ======================

    def combine(
        self,
        legs: list[RouterRoute],
        intermediate_token: str,
        bridge_token: Optional[str] = None,
    ) -> RouterRoute:
        """Chain adapter legs into one route.

        Steps are concatenated, fees, price impact and time are summed and
        the combined route expires with its earliest leg.
        """
        if len(legs) < 2:
            raise ValueError("combine needs at least two legs")

        cross_chain = legs[0].from_token.chain_id != legs[-1].to_token.chain_id
        router = "multi-hop-bridge" if cross_chain else "multi-hop"

        fees = legs[0].fees
        for leg in legs[1:]:
            fees = fees.combine(leg.fees)

        payload = {
            "isMultiHop": True,
            "intermediateToken": intermediate_token,
            "bridgeToken": bridge_token,
            "legs": [
                {
                    "router": leg.router,
                    "routeId": leg.route_id,
                    "raw": leg.raw.to_dict() if leg.raw else None,
                }
                for leg in legs
            ],
        }

        combined = self.build(
            router=router,
            from_token=legs[0].from_token,
            to_token=legs[-1].to_token,
            steps=[step for leg in legs for step in leg.steps],
            ttl_seconds=0,
            fees=fees,
            price_impact=sum_decimal_strings(*(leg.price_impact for leg in legs)),
            slippage=float(legs[0].slippage),
            estimated_time=sum(leg.estimated_time for leg in legs),
            raw=RoutePayload.encode(router, payload),
        )
        combined.expires_at = min(leg.expires_at for leg in legs)
        return combined
