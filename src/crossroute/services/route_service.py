"""Route discovery entry point.

Takes a RouteRequest in human-readable units, runs every discovery branch
(venue adapters, the universal same-chain or cross-chain finder and the
multi-hop router) in parallel under one deadline and returns the best route
with the others as alternatives.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Awaitable, Optional

from crossroute.chains import get_chain, is_evm_chain
from crossroute.routing.amounts import to_smallest_unit
from crossroute.routing.base import (
    AdapterRegistry,
    OrderPreference,
    RouterParams,
    RouterRoute,
    VenueAdapter,
    now_ms,
)
from crossroute.routing.cross_chain import CrossChainRouteFinder
from crossroute.routing.errors import (
    DiscoveryTimeoutError,
    InvalidRequestError,
    ProviderError,
    RoutingError,
)
from crossroute.routing.models import same_address
from crossroute.routing.multihop import MultiHopRouter
from crossroute.routing.normalizer import DEFAULT_DECIMALS, RouteNormalizer
from crossroute.routing.rpc import PricingBackend
from crossroute.routing.same_chain import SameChainRouteFinder
from crossroute.routing.token_registry import TokenRegistry
from crossroute.routing.validator import EVM_ADDRESS, RouteValidator, ValidationResult

logger = logging.getLogger(__name__)


@dataclass
class RouteRequest:
    """Canonical route request. from_amount is human-readable."""

    from_chain_id: int
    from_token: str
    to_chain_id: int
    to_token: str
    from_amount: str
    slippage: Optional[float] = None  # percent, settings default when None
    recipient: Optional[str] = None
    from_address: Optional[str] = None
    from_decimals: Optional[int] = None
    to_decimals: Optional[int] = None
    order: OrderPreference = OrderPreference.RECOMMENDED


@dataclass
class RouteResponse:
    """Best route plus alternatives, best first."""

    route: RouterRoute
    alternatives: list[RouterRoute] = field(default_factory=list)
    timestamp: int = field(default_factory=now_ms)
    expires_at: int = 0

    def to_dict(self) -> dict:
        return {
            "route": self.route.to_dict(),
            "alternatives": [route.to_dict() for route in self.alternatives],
            "timestamp": self.timestamp,
            "expiresAt": self.expires_at,
        }


class RouteService:
    """Orchestrates route discovery across adapters and finders."""

    def __init__(
        self,
        adapters: AdapterRegistry,
        same_chain_finder: SameChainRouteFinder,
        cross_chain_finder: CrossChainRouteFinder,
        normalizer: RouteNormalizer,
        token_registry: TokenRegistry,
        validator: RouteValidator,
        multihop_router: Optional[MultiHopRouter] = None,
        pricing: Optional[PricingBackend] = None,
        adapter_timeout: float = 10.0,
        discovery_timeout: float = 25.0,
        default_slippage: float = 0.5,
        closeables: Optional[list] = None,
    ):
        self.adapters = adapters
        self.same_chain = same_chain_finder
        self.cross_chain = cross_chain_finder
        self.normalizer = normalizer
        self.tokens = token_registry
        self.validator = validator
        self.multihop = multihop_router
        self.pricing = pricing
        self.adapter_timeout = adapter_timeout
        self.discovery_timeout = discovery_timeout
        self.default_slippage = default_slippage
        self._closeables = closeables or []

    # ======================
    # Request handling
    # ======================

    def validate_request(self, request: RouteRequest) -> None:
        """
        Reject malformed requests before any network call.

        Raises:
            InvalidRequestError: describing the first problem found
        """
        sides = (
            ("fromToken", request.from_chain_id, request.from_token),
            ("toToken", request.to_chain_id, request.to_token),
        )
        for side, chain_id, address in sides:
            if not chain_id:
                raise InvalidRequestError(f"{side} is missing a chain id")
            if get_chain(chain_id) is None:
                raise InvalidRequestError(f"{side} chain {chain_id} is not supported")
            if not address:
                raise InvalidRequestError(f"{side} is missing an address")
            if is_evm_chain(chain_id) and not EVM_ADDRESS.match(address):
                raise InvalidRequestError(f"{side} address {address} is not a valid EVM address")

        try:
            amount = Decimal(str(request.from_amount).strip())
        except (InvalidOperation, ValueError):
            raise InvalidRequestError(f"Invalid amount: {request.from_amount!r}")
        if not amount.is_finite() or amount <= 0:
            raise InvalidRequestError("Amount must be greater than zero")

        if request.slippage is not None and not 0 <= request.slippage <= 100:
            raise InvalidRequestError(f"Slippage {request.slippage} must be between 0 and 100")

        if request.from_chain_id == request.to_chain_id and same_address(
            request.from_token, request.to_token
        ):
            raise InvalidRequestError("fromToken and toToken are the same token")

    async def resolve_decimals(
        self, chain_id: int, address: str, supplied: Optional[int] = None
    ) -> int:
        """Request value, then registry, then on-chain decimals(), then 18."""
        if supplied is not None:
            return supplied
        decimals = self.tokens.get_decimals(chain_id, address)
        if decimals is not None:
            return decimals
        if self.pricing is not None and is_evm_chain(chain_id):
            try:
                return await self.pricing.get_decimals(chain_id, address)
            except RoutingError as e:
                logger.warning(f"decimals() failed for {address} on chain {chain_id}: {e}")
        logger.warning(f"Unknown decimals for {address} on chain {chain_id}, assuming 18")
        return DEFAULT_DECIMALS

    async def build_params(self, request: RouteRequest) -> RouterParams:
        from_decimals = await self.resolve_decimals(
            request.from_chain_id, request.from_token, request.from_decimals
        )
        to_decimals = await self.resolve_decimals(
            request.to_chain_id, request.to_token, request.to_decimals
        )
        amount_in = to_smallest_unit(request.from_amount, from_decimals)
        if amount_in <= 0:
            raise InvalidRequestError(
                f"Amount {request.from_amount} is below the smallest unit of the token"
            )

        return RouterParams(
            from_chain_id=request.from_chain_id,
            from_token=request.from_token,
            from_amount=str(amount_in),
            to_chain_id=request.to_chain_id,
            to_token=request.to_token,
            recipient=request.recipient,
            slippage=self.default_slippage if request.slippage is None else request.slippage,
            order=request.order,
            from_decimals=from_decimals,
            to_decimals=to_decimals,
            from_address=request.from_address,
        )

    # ======================
    # Discovery
    # ======================

    async def get_route(self, request: RouteRequest) -> Optional[RouteResponse]:
        """
        Find the best route for a request.

        Returns:
            RouteResponse, or None when no venue or finder has a route

        Raises:
            InvalidRequestError: the request is malformed
            DiscoveryTimeoutError: the deadline passed before any route was found
            ProviderError: no route was found and every branch failed on a provider
        """
        self.validate_request(request)
        params = await self.build_params(request)

        branches = self._branches(params)
        logger.info(
            f"Discovering {params.from_token}@{params.from_chain_id} -> "
            f"{params.to_token}@{params.to_chain_id} amount {params.from_amount} "
            f"over {len(branches)} branch(es)"
        )
        routes, errors, abandoned = await self._run(branches)
        routes = [route for route in routes if self._acceptable(route)]

        if not routes:
            if abandoned:
                raise DiscoveryTimeoutError(
                    f"No route found within {self.discovery_timeout}s, "
                    f"{abandoned} branch(es) still pending"
                )
            if errors and len(errors) == len(branches):
                if all(isinstance(e, ProviderError) for e in errors):
                    logger.error(
                        f"Every discovery branch failed for {params.from_token}@"
                        f"{params.from_chain_id} -> {params.to_token}@{params.to_chain_id}: "
                        f"{errors[0]}"
                    )
                    raise ProviderError(f"All route providers failed: {errors[0]}")
            logger.info(
                f"No route for {params.from_token}@{params.from_chain_id} -> "
                f"{params.to_token}@{params.to_chain_id}"
            )
            return None

        # stable sort keeps branch order (adapter priority first) on ties
        routes.sort(key=lambda r: r.output_amount, reverse=True)
        best = routes[0]
        logger.info(
            f"Best route from {best.router}: {best.to_token.amount} {best.to_token.symbol} "
            f"({len(routes) - 1} alternative(s))"
        )
        return RouteResponse(
            route=best,
            alternatives=routes[1:],
            timestamp=now_ms(),
            expires_at=best.expires_at,
        )

    def validate_route(self, route: RouterRoute) -> ValidationResult:
        return self.validator.validate_route(route)

    def _branches(self, params: RouterParams) -> list[tuple[str, Awaitable]]:
        branches: list[tuple[str, Awaitable]] = [
            (adapter.name, self._call_adapter(adapter, params))
            for adapter in self.adapters.for_params(params)
        ]
        if params.is_cross_chain:
            branches.append(("universal-cross-chain", self._universal_cross_chain(params)))
        else:
            branches.append(("universal-same-chain", self._universal_same_chain(params)))
        if self.multihop is not None:
            branches.append(("multi-hop", self._multi_hop(params)))
        return branches

    async def _run(
        self, branches: list[tuple[str, Awaitable]]
    ) -> tuple[list[RouterRoute], list[BaseException], int]:
        """Run branches until done or the deadline, abandoning stragglers."""
        if not branches:
            return [], [], 0

        tasks = {asyncio.ensure_future(coro): label for label, coro in branches}
        try:
            done, pending = await asyncio.wait(tasks, timeout=self.discovery_timeout)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()

        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.warning(
                f"Discovery deadline of {self.discovery_timeout}s passed, abandoned: "
                f"{', '.join(tasks[task] for task in pending)}"
            )

        routes: list[RouterRoute] = []
        errors: list[BaseException] = []
        for task, label in tasks.items():
            if task not in done:
                continue
            error = task.exception()
            if error is not None:
                logger.warning(f"Branch {label} failed: {type(error).__name__}: {error}")
                errors.append(error)
                continue
            route = task.result()
            if route is not None:
                routes.append(route)
        return routes, errors, len(pending)

    def _acceptable(self, route: RouterRoute) -> bool:
        if route.output_amount <= 0:
            return False
        result = self.validator.validate_route(route)
        if not result.is_valid:
            logger.warning(f"Dropping route from {route.router}: {'; '.join(result.errors)}")
        return result.is_valid

    async def _call_adapter(
        self, adapter: VenueAdapter, params: RouterParams
    ) -> Optional[RouterRoute]:
        try:
            return await asyncio.wait_for(adapter.get_route(params), self.adapter_timeout)
        except asyncio.TimeoutError:
            raise ProviderError(
                f"{adapter.name} timed out after {self.adapter_timeout}s", adapter.name
            )

    async def _universal_same_chain(self, params: RouterParams) -> Optional[RouterRoute]:
        route = await self.same_chain.find(
            params.from_token, params.to_token, params.from_chain_id, params.amount_in
        )
        if route is None:
            return None
        return self.normalizer.from_same_chain(
            route,
            from_decimals=params.from_decimals,
            to_decimals=params.to_decimals,
            slippage=params.slippage,
        )

    async def _universal_cross_chain(self, params: RouterParams) -> Optional[RouterRoute]:
        route = await self.cross_chain.find(
            params.from_token,
            params.to_token,
            params.from_chain_id,
            params.to_chain_id,
            params.amount_in,
            recipient=params.recipient,
            from_address=params.from_address,
            slippage=params.slippage,
            order=params.order,
        )
        if route is None:
            return None
        return self.normalizer.from_cross_chain(
            route,
            from_decimals=params.from_decimals,
            to_decimals=params.to_decimals,
            slippage=params.slippage,
        )

    async def _multi_hop(self, params: RouterParams) -> Optional[RouterRoute]:
        route = await self.multihop.find(
            params.from_token,
            params.to_token,
            params.from_chain_id,
            params.to_chain_id,
            params.amount_in,
            slippage=params.slippage,
            recipient=params.recipient,
            from_address=params.from_address,
            from_decimals=params.from_decimals,
            to_decimals=params.to_decimals,
            order=params.order,
        )
        return route.combined if route else None

    async def aclose(self) -> None:
        """Close HTTP and RPC clients owned by the wired components."""
        for resource in self._closeables:
            await resource.aclose()
