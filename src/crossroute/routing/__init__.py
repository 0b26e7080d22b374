"""Route discovery for same-chain and cross-chain swaps.

Venues:
- On-chain V2 routers: PancakeSwap (BSC), Uniswap (Ethereum, L2s), QuickSwap
  (Polygon), SushiSwap, priced through getAmountsOut
- LiFi: aggregator and bridge quotes (EVM chains, cross-chain)
- Jupiter: Solana DEX aggregator

Wiring lives in crossroute.routing.factory.
"""

from crossroute.routing.base import (
    AdapterRegistry,
    OrderPreference,
    RouterParams,
    RouterRoute,
    VenueAdapter,
)
from crossroute.routing.errors import (
    InvalidRequestError,
    ProviderError,
    QuoteExpiredError,
    RoutingError,
)

__all__ = [
    # Adapter interface
    "VenueAdapter",
    "AdapterRegistry",
    "RouterParams",
    "RouterRoute",
    "OrderPreference",
    # Errors
    "RoutingError",
    "InvalidRequestError",
    "ProviderError",
    "QuoteExpiredError",
]
