"""Internal route value objects produced by the finders.

These live for one discovery call and are converted to RouterRoute by the
normalizer. Amounts are ints in smallest units.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from crossroute.routing.base import RoutePayload, RouterRoute


def same_address(a: str, b: str) -> bool:
    """Case-insensitive address comparison."""
    return a.lower() == b.lower()


def _check_path(path: list[str]) -> None:
    if not path:
        raise ValueError("path must not be empty")
    for left, right in zip(path, path[1:]):
        if same_address(left, right):
            raise ValueError(f"path has adjacent duplicate {left}")


@dataclass(frozen=True)
class VerifiedRoute:
    """A path whose output was confirmed by the venue's pricing function."""

    path: list[str]
    output_amount: int
    dex_id: str
    chain_id: int
    amounts: list[int] = field(default_factory=list)
    estimated: bool = False  # True when derived by probe-and-scale
    valid: bool = True

    def __post_init__(self):
        if self.output_amount <= 0:
            raise ValueError("VerifiedRoute requires a positive output amount")
        if len(self.path) < 2:
            raise ValueError("VerifiedRoute requires at least two tokens")
        _check_path(self.path)


@dataclass(frozen=True)
class SameChainRoute:
    """A verified single-chain path.

    hops == 0 is an identity leg (the token is already the one wanted); it
    has a one-token path and output equal to its input.
    """

    path: list[str]
    output_amount: int
    dex_id: str
    chain_id: int
    hops: int
    amounts: list[int] = field(default_factory=list)
    pairs: list[tuple[str, str]] = field(default_factory=list)
    liquidity_usd: Optional[str] = None
    verified: bool = True

    def __post_init__(self):
        _check_path(self.path)
        if len(self.path) != self.hops + 1:
            raise ValueError(f"path length {len(self.path)} does not match hops {self.hops}")

    @property
    def from_token(self) -> str:
        return self.path[0]

    @property
    def to_token(self) -> str:
        return self.path[-1]

    @property
    def amount_in(self) -> int:
        return self.amounts[0] if self.amounts else self.output_amount

    @classmethod
    def from_verified(cls, route: VerifiedRoute) -> "SameChainRoute":
        return cls(
            path=list(route.path),
            output_amount=route.output_amount,
            dex_id=route.dex_id,
            chain_id=route.chain_id,
            hops=len(route.path) - 1,
            amounts=list(route.amounts),
            pairs=list(zip(route.path, route.path[1:])),
        )

    @classmethod
    def identity(cls, token: str, amount: int, chain_id: int) -> "SameChainRoute":
        return cls(
            path=[token],
            output_amount=amount,
            dex_id="none",
            chain_id=chain_id,
            hops=0,
            amounts=[amount],
        )


@dataclass(frozen=True)
class BridgeQuote:
    """External bridge quote for moving a token between chains.

    to_token is the token the bridge actually delivers, which can differ
    from the requested one when the provider substitutes an equivalent.
    """

    provider: str
    from_chain_id: int
    to_chain_id: int
    from_token: str
    to_token: str
    amount_in: int
    amount_out: int
    to_decimals: Optional[int] = None
    estimated_time: Optional[int] = None  # seconds
    fee_usd: str = "0"
    gas_usd: str = "0"
    quote: Any = None  # provider's raw quote, never inspected by discovery

    def to_payload(self) -> RoutePayload:
        return RoutePayload.encode(self.provider, self.quote)


@dataclass(frozen=True)
class CrossChainRoute:
    """Source swap, bridge and destination swap composed into one route."""

    source_route: SameChainRoute
    bridge: BridgeQuote
    dest_route: SameChainRoute
    total_output: int
    chain_id: int  # destination chain

    def __post_init__(self):
        if self.bridge.amount_in != self.source_route.output_amount:
            raise ValueError("bridge input must equal source leg output")
        if self.total_output != self.dest_route.output_amount:
            raise ValueError("total output must equal destination leg output")
        if not same_address(self.dest_route.from_token, self.bridge.to_token):
            raise ValueError("destination leg must start at the bridged token")


@dataclass(frozen=True)
class MultiHopRoute:
    """Adapter legs chained through an intermediate token plus their combined route."""

    legs: list[RouterRoute]
    combined: RouterRoute
    intermediate_token: str
    bridge_token: Optional[str] = None

    @property
    def output_amount(self) -> int:
        return self.combined.output_amount

    @property
    def is_cross_chain(self) -> bool:
        return self.combined.is_cross_chain
