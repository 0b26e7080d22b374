"""Multi-hop router: chains independent venue-adapter quotes.

Same-chain: every multi-hop intermediate times every adapter for the first
leg, then every adapter again from each first-leg result to the target.
Cross-chain: per bridgeable token, the best source swap, the best bridge
quote and the best destination swap, keeping the best complete chain.
"""

import asyncio
import logging
from dataclasses import replace
from typing import Optional

from crossroute.routing.base import (
    AdapterRegistry,
    OrderPreference,
    RouterParams,
    RouterRoute,
    VenueAdapter,
)
from crossroute.routing.errors import ProviderError
from crossroute.routing.models import MultiHopRoute, same_address
from crossroute.routing.normalizer import RouteNormalizer
from crossroute.routing.token_registry import TokenInfo, TokenRegistry
from crossroute.utils.concurrency import failures, gather_settled

logger = logging.getLogger(__name__)


class _CallLog:
    """Counts adapter calls and the exceptions they raised."""

    def __init__(self):
        self.attempts = 0
        self.errors: list[BaseException] = []

    @property
    def all_failed_on_provider(self) -> bool:
        return (
            self.attempts > 0
            and len(self.errors) == self.attempts
            and all(isinstance(e, ProviderError) for e in self.errors)
        )


def _best(routes: list[RouterRoute]) -> Optional[RouterRoute]:
    best = None
    for route in routes:
        if best is None or route.output_amount > best.output_amount:
            best = route
    return best


class MultiHopRouter:
    """Finds two-leg (or bridge) chains across registered venue adapters."""

    def __init__(
        self,
        adapters: AdapterRegistry,
        token_registry: TokenRegistry,
        normalizer: RouteNormalizer,
        adapter_timeout: float = 10.0,
    ):
        self.adapters = adapters
        self.tokens = token_registry
        self.normalizer = normalizer
        self.adapter_timeout = adapter_timeout

    async def _call(self, adapter: VenueAdapter, params: RouterParams) -> Optional[RouterRoute]:
        try:
            route = await asyncio.wait_for(adapter.get_route(params), self.adapter_timeout)
        except asyncio.TimeoutError:
            raise ProviderError(
                f"{adapter.name} timed out after {self.adapter_timeout}s", adapter.name
            )
        if route is not None and route.output_amount <= 0:
            return None
        return route

    async def _fan_out(
        self, calls: list[tuple[VenueAdapter, RouterParams]], log: _CallLog
    ) -> list[tuple[RouterParams, RouterRoute]]:
        """Run adapter calls in parallel, keeping (params, route) successes."""
        if not calls:
            return []
        log.attempts += len(calls)
        results = await gather_settled(self._call(adapter, params) for adapter, params in calls)
        found = []
        for (adapter, params), result in zip(calls, results):
            if isinstance(result, BaseException):
                logger.warning(
                    f"{adapter.name} failed {params.from_token}@{params.from_chain_id} -> "
                    f"{params.to_token}@{params.to_chain_id} amount {params.from_amount}: "
                    f"{type(result).__name__}: {result}"
                )
                continue
            if result is not None:
                found.append((params, result))
        log.errors.extend(failures(results))
        return found

    async def find(
        self,
        from_token: str,
        to_token: str,
        from_chain_id: int,
        to_chain_id: int,
        amount_in: int,
        slippage: float = 0.5,
        recipient: Optional[str] = None,
        from_address: Optional[str] = None,
        from_decimals: Optional[int] = None,
        to_decimals: Optional[int] = None,
        order: OrderPreference = OrderPreference.RECOMMENDED,
    ) -> Optional[MultiHopRoute]:
        """
        Find the best chained route.

        Returns:
            MultiHopRoute, or None when no complete chain exists

        Raises:
            ProviderError: nothing was found and every adapter call failed
        """
        base = RouterParams(
            from_chain_id=from_chain_id,
            from_token=from_token,
            from_amount=str(amount_in),
            to_chain_id=to_chain_id,
            to_token=to_token,
            recipient=recipient,
            slippage=slippage,
            order=order,
            from_decimals=from_decimals,
            to_decimals=to_decimals,
            from_address=from_address,
        )
        log = _CallLog()

        if from_chain_id == to_chain_id:
            route = await self._find_same_chain(base, log)
        else:
            route = await self._find_cross_chain(base, log)

        if route:
            logger.info(
                f"Multi-hop route via {route.intermediate_token}: "
                f"{' + '.join(leg.router for leg in route.legs)}, out {route.output_amount}"
            )
            return route

        if log.all_failed_on_provider:
            raise ProviderError(f"All multi-hop adapter calls failed: {log.errors[0]}")
        return None

    # ======================
    # Same chain
    # ======================

    async def _find_same_chain(
        self, base: RouterParams, log: _CallLog
    ) -> Optional[MultiHopRoute]:
        chain_id = base.from_chain_id
        adapters = self.adapters.for_chain(chain_id)
        intermediates = [
            t
            for t in self.tokens.multihop_intermediates(chain_id)
            if not same_address(t.address, base.from_token)
            and not same_address(t.address, base.to_token)
        ]
        if not adapters or not intermediates:
            return None

        first_calls = [
            (
                adapter,
                replace(base, to_token=token.address, to_decimals=token.decimals, recipient=None),
            )
            for token in intermediates
            for adapter in adapters
        ]
        first_legs = await self._fan_out(first_calls, log)
        if not first_legs:
            return None

        # Identical second-leg requests are issued once
        first_leg_for: dict[RouterParams, RouterRoute] = {}
        second_calls = []
        for _, leg in first_legs:
            mid = leg.to_token
            params = replace(
                base,
                from_token=mid.address,
                from_amount=str(mid.raw_amount),
                from_decimals=mid.decimals,
            )
            if params in first_leg_for:
                # same token and amount delivered, so the earlier leg stands in for this one
                continue
            first_leg_for[params] = leg
            second_calls.extend((adapter, params) for adapter in adapters)
        second_legs = await self._fan_out(second_calls, log)

        best: Optional[tuple[RouterRoute, RouterRoute]] = None
        for params, leg2 in second_legs:
            if best is None or leg2.output_amount > best[1].output_amount:
                best = (first_leg_for[params], leg2)

        if best is None:
            return None
        legs = list(best)
        intermediate = legs[0].to_token.address
        return MultiHopRoute(
            legs=legs,
            combined=self.normalizer.combine(legs, intermediate),
            intermediate_token=intermediate,
        )

    # ======================
    # Cross chain
    # ======================

    async def _find_cross_chain(
        self, base: RouterParams, log: _CallLog
    ) -> Optional[MultiHopRoute]:
        bridge_tokens = self.tokens.bridgeable_tokens(base.from_chain_id)
        bridges = [a for a in self.adapters.all() if a.supports_cross_chain()]
        if not bridge_tokens or not bridges:
            return None

        results = await gather_settled(
            self._bridge_chain(token, base, bridges, log) for token in bridge_tokens
        )
        candidates = []
        for token, result in zip(bridge_tokens, results):
            if isinstance(result, BaseException):
                logger.warning(f"Multi-hop via {token.symbol} failed: {result}")
                log.attempts += 1
                log.errors.append(result)
            elif result is not None:
                candidates.append(result)

        if not candidates:
            return None
        return max(candidates, key=lambda r: r.output_amount)

    async def _bridge_chain(
        self,
        bridge_token: TokenInfo,
        base: RouterParams,
        bridges: list[VenueAdapter],
        log: _CallLog,
    ) -> Optional[MultiHopRoute]:
        source_chain, dest_chain = base.from_chain_id, base.to_chain_id
        legs: list[RouterRoute] = []

        # Source swap into the bridge token, unless already holding it
        send_token = base.from_token
        send_amount = base.amount_in
        send_decimals = base.from_decimals
        if not same_address(base.from_token, bridge_token.address):
            params = replace(
                base,
                to_chain_id=source_chain,
                to_token=bridge_token.address,
                to_decimals=bridge_token.decimals,
                recipient=None,
            )
            calls = [(a, params) for a in self.adapters.for_chain(source_chain)]
            leg = _best([route for _, route in await self._fan_out(calls, log)])
            if leg is None:
                return None
            legs.append(leg)
            send_token = leg.to_token.address
            send_amount = leg.to_token.raw_amount
            send_decimals = leg.to_token.decimals

        dest_bridge_token = self.tokens.corresponding_token(send_token, source_chain, dest_chain)
        if dest_bridge_token is None:
            logger.debug(f"No counterpart for {send_token} on chain {dest_chain}")
            return None

        bridge_params = replace(
            base,
            from_token=send_token,
            from_amount=str(send_amount),
            from_decimals=send_decimals,
            to_token=dest_bridge_token,
            to_decimals=self.tokens.get_decimals(dest_chain, dest_bridge_token),
        )
        calls = [(a, bridge_params) for a in bridges if a.can_handle(bridge_params)]
        bridge_leg = _best([route for _, route in await self._fan_out(calls, log)])
        if bridge_leg is None:
            return None
        legs.append(bridge_leg)

        delivered = bridge_leg.to_token
        if not same_address(delivered.address, base.to_token):
            params = replace(
                base,
                from_chain_id=dest_chain,
                from_token=delivered.address,
                from_amount=str(delivered.raw_amount),
                from_decimals=delivered.decimals,
            )
            calls = [(a, params) for a in self.adapters.for_chain(dest_chain)]
            leg = _best([route for _, route in await self._fan_out(calls, log)])
            if leg is None:
                return None
            legs.append(leg)

        if len(legs) < 2:
            # a bare bridge is the bridge adapter's own direct route
            return None

        return MultiHopRoute(
            legs=legs,
            combined=self.normalizer.combine(legs, delivered.address, bridge_token.address),
            intermediate_token=delivered.address,
            bridge_token=bridge_token.address,
        )
