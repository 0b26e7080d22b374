"""Venue adapter interface and the normalized route records it produces."""

import json
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional

from crossroute.routing.amounts import to_smallest_unit

logger = logging.getLogger(__name__)


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class StepType(str, Enum):
    """Kind of action a route step performs."""

    SWAP = "swap"
    BRIDGE = "bridge"
    WRAP = "wrap"
    UNWRAP = "unwrap"


class OrderPreference(str, Enum):
    """Route ordering preference passed through to aggregators."""

    RECOMMENDED = "RECOMMENDED"
    FASTEST = "FASTEST"
    CHEAPEST = "CHEAPEST"


@dataclass(frozen=True)
class TokenAmount:
    """A token on a chain with a human-readable amount."""

    chain_id: int
    address: str
    symbol: str
    amount: str  # human-readable
    decimals: int
    amount_usd: Optional[str] = None

    @property
    def raw_amount(self) -> int:
        """Amount in smallest units."""
        return to_smallest_unit(self.amount, self.decimals)

    def to_dict(self) -> dict:
        data = {
            "chainId": self.chain_id,
            "address": self.address,
            "symbol": self.symbol,
            "amount": self.amount,
            "decimals": self.decimals,
        }
        if self.amount_usd is not None:
            data["amountUSD"] = self.amount_usd
        return data


def sum_decimal_strings(*values: str) -> str:
    total = Decimal("0")
    for value in values:
        try:
            total += Decimal(value or "0")
        except InvalidOperation:
            logger.debug(f"Ignoring non-numeric fee value {value!r}")
    return format(total.normalize(), "f") if total else "0"


@dataclass(frozen=True)
class RouteFees:
    """Route fees. gas is an estimate in gas units, every other field is USD."""

    protocol: str = "0"
    gas: str = "0"
    gas_usd: str = "0"
    platform: str = "0"
    total: str = "0"

    def combine(self, other: "RouteFees") -> "RouteFees":
        """Sum two fee records field by field."""
        return RouteFees(
            protocol=sum_decimal_strings(self.protocol, other.protocol),
            gas=sum_decimal_strings(self.gas, other.gas),
            gas_usd=sum_decimal_strings(self.gas_usd, other.gas_usd),
            platform=sum_decimal_strings(self.platform, other.platform),
            total=sum_decimal_strings(self.total, other.total),
        )

    def to_dict(self) -> dict:
        return {
            "protocol": self.protocol,
            "gas": self.gas,
            "gasUSD": self.gas_usd,
            "platform": self.platform,
            "total": self.total,
        }


@dataclass(frozen=True)
class StepToken:
    """Token side of a route step."""

    address: str
    amount: str
    symbol: Optional[str] = None

    def to_dict(self) -> dict:
        return {"address": self.address, "amount": self.amount, "symbol": self.symbol}


@dataclass(frozen=True)
class RouteStep:
    """One action of the execution plan."""

    type: StepType
    chain_id: int
    from_token: StepToken
    to_token: StepToken
    protocol: str
    description: str
    to_chain_id: Optional[int] = None  # bridge steps only

    def to_dict(self) -> dict:
        data = {
            "type": self.type.value,
            "chainId": self.chain_id,
            "fromToken": self.from_token.to_dict(),
            "toToken": self.to_token.to_dict(),
            "protocol": self.protocol,
            "description": self.description,
        }
        if self.to_chain_id is not None:
            data["toChainId"] = self.to_chain_id
        return data


@dataclass(frozen=True)
class RoutePayload:
    """Venue-tagged opaque blob for the execution layer.

    Discovery code only creates and forwards payloads. The component that
    executes routes for ``venue`` is the only reader of ``data``.
    """

    venue: str
    data: str

    @classmethod
    def encode(cls, venue: str, obj: Any) -> "RoutePayload":
        return cls(venue=venue, data=json.dumps(obj, default=str, sort_keys=True))

    def decode(self, venue: str) -> Any:
        """Deserialize for the matching venue only."""
        if venue != self.venue:
            raise ValueError(f"Payload belongs to {self.venue}, not {venue}")
        return json.loads(self.data)

    def to_dict(self) -> dict:
        return {"venue": self.venue, "data": self.data}


@dataclass(frozen=True)
class RouterParams:
    """Canonical, immutable input to a venue adapter."""

    from_chain_id: int
    from_token: str
    from_amount: str  # integer string, smallest unit
    to_chain_id: int
    to_token: str
    recipient: Optional[str] = None
    slippage: float = 0.5  # percent
    order: OrderPreference = OrderPreference.RECOMMENDED
    from_decimals: Optional[int] = None
    to_decimals: Optional[int] = None
    from_address: Optional[str] = None

    def __post_init__(self):
        if not str(self.from_amount).isdigit():
            raise ValueError(f"from_amount must be an integer string, got {self.from_amount!r}")

    @property
    def amount_in(self) -> int:
        return int(self.from_amount)

    @property
    def is_cross_chain(self) -> bool:
        return self.from_chain_id != self.to_chain_id


@dataclass
class RouterRoute:
    """Normalized route as returned to consumers.

    expires_at is epoch milliseconds. A route past expires_at must be
    re-quoted, never executed.
    """

    router: str
    route_id: str
    from_token: TokenAmount
    to_token: TokenAmount
    exchange_rate: str
    price_impact: str  # percent
    slippage: str  # percent
    fees: RouteFees
    steps: list[RouteStep]
    estimated_time: int  # seconds
    expires_at: int
    raw: Optional[RoutePayload] = None
    created_at: int = field(default_factory=now_ms)

    @property
    def output_amount(self) -> int:
        """Final output in the destination token's smallest units."""
        return self.to_token.raw_amount

    @property
    def is_cross_chain(self) -> bool:
        return self.from_token.chain_id != self.to_token.chain_id

    @property
    def is_expired(self) -> bool:
        """Check if route has expired."""
        return now_ms() >= self.expires_at

    @property
    def seconds_until_expiry(self) -> float:
        """Get seconds until route expires (negative if expired)."""
        return (self.expires_at - now_ms()) / 1000

    def to_dict(self) -> dict:
        """Convert to the camelCase wire shape consumed by clients."""
        return {
            "router": self.router,
            "routeId": self.route_id,
            "fromToken": self.from_token.to_dict(),
            "toToken": self.to_token.to_dict(),
            "exchangeRate": self.exchange_rate,
            "priceImpact": self.price_impact,
            "slippage": self.slippage,
            "fees": self.fees.to_dict(),
            "steps": [step.to_dict() for step in self.steps],
            "estimatedTime": self.estimated_time,
            "expiresAt": self.expires_at,
            "raw": self.raw.to_dict() if self.raw else None,
        }


class VenueAdapter(ABC):
    """Capability interface every venue plugin implements.

    get_route returns None when the venue has no liquidity for the request.
    It may raise for transport or validation problems.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Venue identifier."""
        pass

    @property
    def display_name(self) -> str:
        return self.name

    @property
    @abstractmethod
    def priority(self) -> int:
        """Lower values are tried first."""
        pass

    @abstractmethod
    def supports_chain(self, chain_id: int) -> bool:
        """Check if the venue operates on a chain."""
        pass

    def supports_cross_chain(self) -> bool:
        return False

    @abstractmethod
    async def get_route(self, params: RouterParams) -> Optional[RouterRoute]:
        """
        Get a route for the given parameters.

        Args:
            params: Canonical routing parameters

        Returns:
            RouterRoute if the venue can fill the request, None otherwise
        """
        pass

    def can_handle(self, params: RouterParams) -> bool:
        """Check chain support and cross-chain capability for a request."""
        if not self.supports_chain(params.from_chain_id):
            return False
        if params.is_cross_chain:
            return self.supports_cross_chain() and self.supports_chain(params.to_chain_id)
        return True


class AdapterRegistry:
    """Holds the venue adapters available to discovery, ordered by priority."""

    def __init__(self, adapters: Optional[list[VenueAdapter]] = None):
        self._adapters: dict[str, VenueAdapter] = {}
        for adapter in adapters or []:
            self.register(adapter)

    def register(self, adapter: VenueAdapter) -> None:
        """Add a venue adapter, replacing any adapter with the same name."""
        if adapter.name in self._adapters:
            logger.warning(f"Replacing registered adapter {adapter.name}")
        self._adapters[adapter.name] = adapter

    def get(self, name: str) -> Optional[VenueAdapter]:
        return self._adapters.get(name)

    def all(self) -> list[VenueAdapter]:
        """All adapters, lowest priority value first."""
        return sorted(self._adapters.values(), key=lambda a: (a.priority, a.name))

    def for_chain(self, chain_id: int) -> list[VenueAdapter]:
        """Adapters that can quote same-chain swaps on chain_id."""
        return [a for a in self.all() if a.supports_chain(chain_id)]

    def for_params(self, params: RouterParams) -> list[VenueAdapter]:
        """Adapters eligible for a request."""
        return [a for a in self.all() if a.can_handle(params)]

    def __len__(self) -> int:
        return len(self._adapters)
