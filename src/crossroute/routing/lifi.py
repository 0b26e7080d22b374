"""LiFi aggregator and bridge integration.

Uses the LiFi REST API for same-chain and cross-chain quotes.
API docs: https://docs.li.fi/li.fi-api/li.fi-api
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Optional

import httpx

from crossroute.chains import get_chain, get_chain_by_lifi_id
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
    sum_decimal_strings,
)
from crossroute.routing.bridges import BridgeQuoteProvider
from crossroute.routing.errors import ProviderError, UnsupportedChainError
from crossroute.routing.models import BridgeQuote
from crossroute.routing.normalizer import RouteNormalizer
from crossroute.utils.concurrency import ConcurrencyLimiter

logger = logging.getLogger(__name__)

LIFI_API_URL = "https://li.quest/v1"

# Status codes LiFi uses for "no route for these parameters"
NO_ROUTE_STATUSES = (400, 404, 422)


def lifi_chain_id(chain_id: int) -> int:
    """Map our chain id to LiFi's.

    Raises:
        UnsupportedChainError: chain is not reachable through LiFi
    """
    chain = get_chain(chain_id)
    if chain is None or chain.lifi_chain_id is None:
        raise UnsupportedChainError(f"Chain {chain_id} is not supported by LiFi", router="lifi")
    return chain.lifi_chain_id


def canonical_chain_id(lifi_id: Optional[int], fallback: int) -> int:
    chain = get_chain_by_lifi_id(lifi_id) if lifi_id is not None else None
    return chain.chain_id if chain else fallback


def _decimal_or_zero(value) -> Decimal:
    try:
        return Decimal(str(value)) if value not in (None, "") else Decimal("0")
    except InvalidOperation:
        return Decimal("0")


class LiFiClient:
    """Thin async client for the LiFi quote endpoints.

    Both lookups return a route-shaped dict (``fromAmount``, ``toAmount``,
    ``steps``) or None when LiFi has no route.
    """

    def __init__(
        self,
        api_url: str = LIFI_API_URL,
        api_key: Optional[str] = None,
        integrator: Optional[str] = None,
        timeout: float = 8.0,
        limiter: Optional[ConcurrencyLimiter] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.api_key = api_key
        self.integrator = integrator
        self.limiter = limiter
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    def _get_headers(self) -> dict:
        """Get API headers."""
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["x-lifi-api-key"] = self.api_key
        return headers

    async def _send(self, method: str, path: str, **kwargs) -> Optional[dict]:
        url = f"{self.api_url}{path}"
        try:
            if self.limiter:
                async with self.limiter:
                    response = await self._client.request(
                        method, url, headers=self._get_headers(), **kwargs
                    )
            else:
                response = await self._client.request(
                    method, url, headers=self._get_headers(), **kwargs
                )
        except httpx.HTTPError as e:
            raise ProviderError(f"LiFi {path} request failed: {type(e).__name__}: {e}", "lifi")

        if response.status_code in NO_ROUTE_STATUSES:
            logger.debug(f"LiFi {path} returned {response.status_code}: {response.text[:200]}")
            return None
        if response.status_code != 200:
            raise ProviderError(f"LiFi {path} returned HTTP {response.status_code}", "lifi")

        try:
            return response.json()
        except ValueError:
            raise ProviderError(f"LiFi {path} returned invalid JSON", "lifi")

    async def get_quote(
        self,
        from_chain_id: int,
        from_token: str,
        from_amount: int,
        to_chain_id: int,
        to_token: str,
        from_address: Optional[str] = None,
        to_address: Optional[str] = None,
        slippage: float = 0.5,
        order: OrderPreference = OrderPreference.RECOMMENDED,
    ) -> Optional[dict]:
        """GET /quote. Slippage is given in percent and sent as a fraction."""
        params = {
            "fromChain": lifi_chain_id(from_chain_id),
            "toChain": lifi_chain_id(to_chain_id),
            "fromToken": from_token,
            "toToken": to_token,
            "fromAmount": str(from_amount),
            "slippage": str(Decimal(str(slippage)) / 100),
            "order": OrderPreference(order).value,
        }
        if from_address:
            params["fromAddress"] = from_address
        if to_address:
            params["toAddress"] = to_address
        if self.integrator:
            params["integrator"] = self.integrator

        step = await self._send("GET", "/quote", params=params)
        if not step or not step.get("estimate"):
            return None

        estimate = step["estimate"]
        return {
            "id": step.get("id"),
            "fromAmount": estimate.get("fromAmount") or step.get("action", {}).get("fromAmount"),
            "toAmount": estimate.get("toAmount"),
            "fromAmountUSD": estimate.get("fromAmountUSD"),
            "toAmountUSD": estimate.get("toAmountUSD"),
            "steps": [step],
        }

    async def get_routes(
        self,
        from_chain_id: int,
        from_token: str,
        from_amount: int,
        to_chain_id: int,
        to_token: str,
        from_address: Optional[str] = None,
        to_address: Optional[str] = None,
        slippage: float = 0.5,
        order: OrderPreference = OrderPreference.RECOMMENDED,
    ) -> Optional[dict]:
        """POST /advanced/routes and return the first (best) route."""
        body = {
            "fromChainId": lifi_chain_id(from_chain_id),
            "toChainId": lifi_chain_id(to_chain_id),
            "fromTokenAddress": from_token,
            "toTokenAddress": to_token,
            "fromAmount": str(from_amount),
            "options": {
                "slippage": float(Decimal(str(slippage)) / 100),
                "order": OrderPreference(order).value,
            },
        }
        if from_address:
            body["fromAddress"] = from_address
        if to_address:
            body["toAddress"] = to_address
        if self.integrator:
            body["options"]["integrator"] = self.integrator

        data = await self._send("POST", "/advanced/routes", json=body)
        routes = (data or {}).get("routes") or []
        return routes[0] if routes else None

    async def find_route(self, *args, **kwargs) -> Optional[dict]:
        """Quote first, then the advanced routes endpoint.

        A provider failure on /quote still falls through to /advanced/routes;
        the routes endpoint's own failure propagates.
        """
        try:
            route = await self.get_quote(*args, **kwargs)
        except ProviderError as e:
            logger.warning(f"LiFi quote failed, trying advanced routes: {e}")
            route = None
        if route:
            return route
        return await self.get_routes(*args, **kwargs)

    async def aclose(self) -> None:
        await self._client.aclose()


class LiFiRoute:
    """Read-only view over a LiFi route dict."""

    def __init__(self, data: dict):
        self.data = data
        self.steps: list[dict] = [s for s in data.get("steps") or [] if s.get("action")]
        if not self.steps:
            raise ProviderError("LiFi route has no steps", "lifi")

    @property
    def first_action(self) -> dict:
        return self.steps[0]["action"]

    @property
    def last_action(self) -> dict:
        return self.steps[-1]["action"]

    @property
    def from_token(self) -> dict:
        return self.first_action.get("fromToken") or {}

    @property
    def to_token(self) -> dict:
        return self.last_action.get("toToken") or {}

    @property
    def to_amount(self) -> int:
        value = self.data.get("toAmount") or self.last_action.get("toAmount") or "0"
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ProviderError(f"LiFi returned non-integer toAmount {value!r}", "lifi")

    @property
    def execution_duration(self) -> Optional[int]:
        durations = [
            s.get("estimate", {}).get("executionDuration")
            for s in self.steps
            if s.get("estimate", {}).get("executionDuration") is not None
        ]
        return int(sum(durations)) if durations else None

    def fee_costs_usd(self) -> str:
        return sum_decimal_strings(
            *(
                str(fee.get("amountUSD") or "0")
                for s in self.steps
                for fee in s.get("estimate", {}).get("feeCosts") or []
            )
        )

    def gas_costs_usd(self) -> str:
        if self.data.get("gasCostUSD"):
            return sum_decimal_strings(str(self.data["gasCostUSD"]))
        return sum_decimal_strings(
            *(
                str(gas.get("amountUSD") or "0")
                for s in self.steps
                for gas in s.get("estimate", {}).get("gasCosts") or []
            )
        )

    def gas_units(self) -> str:
        for s in self.steps:
            for gas in s.get("estimate", {}).get("gasCosts") or []:
                if gas.get("estimate"):
                    return str(gas["estimate"])
        return "0"

    def price_impact(self) -> str:
        """Percent lost between input and output USD value, 0 when unknown."""
        from_usd = _decimal_or_zero(self.data.get("fromAmountUSD"))
        to_usd = _decimal_or_zero(self.data.get("toAmountUSD"))
        if from_usd <= 0 or to_usd <= 0:
            return "0"
        impact = (from_usd - to_usd) / from_usd * 100
        if impact <= 0:
            return "0"
        return format(impact.quantize(Decimal("0.0001")).normalize(), "f")

    def fees(self) -> RouteFees:
        protocol = self.fee_costs_usd()
        gas_usd = self.gas_costs_usd()
        return RouteFees(
            protocol=protocol,
            gas=self.gas_units(),
            gas_usd=gas_usd,
            total=sum_decimal_strings(protocol, gas_usd),
        )


def _step_type(step: dict, action: dict) -> StepType:
    if step.get("type") == "cross":
        return StepType.BRIDGE
    if action.get("fromChainId") != action.get("toChainId"):
        return StepType.BRIDGE
    return StepType.SWAP


class LiFiAdapter(VenueAdapter):
    """LiFi as a venue: same-chain swaps and cross-chain transfers."""

    def __init__(self, client: LiFiClient, normalizer: RouteNormalizer):
        self.client = client
        self.normalizer = normalizer

    @property
    def name(self) -> str:
        return "lifi"

    @property
    def display_name(self) -> str:
        return "LiFi"

    @property
    def priority(self) -> int:
        return 0

    def supports_chain(self, chain_id: int) -> bool:
        chain = get_chain(chain_id)
        return bool(chain and chain.lifi_chain_id is not None)

    def supports_cross_chain(self) -> bool:
        return True

    async def get_route(self, params: RouterParams) -> Optional[RouterRoute]:
        """Get a LiFi route for the request."""
        if not self.can_handle(params):
            raise UnsupportedChainError(
                f"LiFi does not route {params.from_chain_id} -> {params.to_chain_id}", self.name
            )

        data = await self.client.find_route(
            params.from_chain_id,
            params.from_token,
            params.amount_in,
            params.to_chain_id,
            params.to_token,
            from_address=params.from_address,
            to_address=params.recipient,
            slippage=params.slippage,
            order=params.order,
        )
        if data is None:
            logger.debug(
                f"LiFi has no route {params.from_token}@{params.from_chain_id} -> "
                f"{params.to_token}@{params.to_chain_id}"
            )
            return None

        route = LiFiRoute(data)
        if route.to_amount <= 0:
            return None
        return self._normalize(route, params)

    def _normalize(self, route: LiFiRoute, params: RouterParams) -> RouterRoute:
        from_info, to_info = route.from_token, route.to_token
        from_decimals = from_info.get("decimals", params.from_decimals)
        to_decimals = to_info.get("decimals", params.to_decimals)

        steps = []
        for step in route.steps:
            action = step["action"]
            step_from = action.get("fromToken") or {}
            step_to = action.get("toToken") or {}
            estimate = step.get("estimate") or {}
            chain_id = canonical_chain_id(action.get("fromChainId"), params.from_chain_id)
            to_chain_id = canonical_chain_id(action.get("toChainId"), params.to_chain_id)
            step_type = _step_type(step, action)
            tool = step.get("toolDetails", {}).get("name") or step.get("tool") or self.name
            steps.append(
                RouteStep(
                    type=step_type,
                    chain_id=chain_id,
                    to_chain_id=to_chain_id if step_type == StepType.BRIDGE else None,
                    from_token=StepToken(
                        step_from.get("address", ""),
                        format_amount(
                            int(action.get("fromAmount") or 0), step_from.get("decimals", 18)
                        ),
                        step_from.get("symbol"),
                    ),
                    to_token=StepToken(
                        step_to.get("address", ""),
                        format_amount(
                            int(estimate.get("toAmount") or 0), step_to.get("decimals", 18)
                        ),
                        step_to.get("symbol"),
                    ),
                    protocol=tool,
                    description=(
                        f"{'Bridge' if step_type == StepType.BRIDGE else 'Swap'} "
                        f"{step_from.get('symbol', '?')} to {step_to.get('symbol', '?')} via {tool}"
                    ),
                )
            )

        ttl = (
            self.normalizer.cross_chain_ttl_seconds
            if params.is_cross_chain
            else self.normalizer.same_chain_ttl_seconds
        )
        return self.normalizer.build(
            router=self.name,
            from_token=self.normalizer.token_amount(
                params.from_chain_id,
                from_info.get("address") or params.from_token,
                params.amount_in,
                from_decimals,
                from_info.get("symbol"),
                route.data.get("fromAmountUSD"),
            ),
            to_token=self.normalizer.token_amount(
                params.to_chain_id,
                to_info.get("address") or params.to_token,
                route.to_amount,
                to_decimals,
                to_info.get("symbol"),
                route.data.get("toAmountUSD"),
            ),
            steps=steps,
            ttl_seconds=ttl,
            fees=route.fees(),
            price_impact=route.price_impact(),
            slippage=params.slippage,
            estimated_time=route.execution_duration or len(steps) * 60,
            raw=RoutePayload.encode(self.name, route.data),
        )


class LiFiBridgeProvider(BridgeQuoteProvider):
    """Bridge leg quotes for the cross-chain finder, backed by LiFi."""

    def __init__(self, client: LiFiClient):
        self.client = client

    @property
    def name(self) -> str:
        return "lifi"

    @property
    def priority(self) -> int:
        return 10

    def supports_chain_pair(self, from_chain_id: int, to_chain_id: int) -> bool:
        return all(
            chain is not None and chain.lifi_chain_id is not None
            for chain in (get_chain(from_chain_id), get_chain(to_chain_id))
        )

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
        """Quote moving amount_in of from_token to to_chain_id."""
        data = await self.client.find_route(
            from_chain_id,
            from_token,
            amount_in,
            to_chain_id,
            to_token,
            from_address=from_address,
            to_address=recipient,
            slippage=slippage,
            order=order,
        )
        if data is None:
            return None

        route = LiFiRoute(data)
        amount_out = route.to_amount
        if amount_out <= 0:
            return None

        delivered = route.to_token
        delivered_address = delivered.get("address") or to_token
        if delivered_address.lower() != to_token.lower():
            logger.info(
                f"LiFi delivers {delivered.get('symbol', delivered_address)} on chain "
                f"{to_chain_id} instead of requested {to_token}"
            )

        return BridgeQuote(
            provider=self.name,
            from_chain_id=from_chain_id,
            to_chain_id=to_chain_id,
            from_token=from_token,
            to_token=delivered_address,
            amount_in=amount_in,
            amount_out=amount_out,
            to_decimals=delivered.get("decimals"),
            estimated_time=route.execution_duration,
            fee_usd=route.fee_costs_usd(),
            gas_usd=route.gas_costs_usd(),
            quote=data,
        )
