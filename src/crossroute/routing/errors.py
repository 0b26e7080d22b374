"""Routing error taxonomy.

"No route" is never an exception: finders and adapters return None for it.
Everything here is either a request problem, a venue declining work, or an
infrastructure failure that callers may want to retry or alert on.
"""

from typing import Optional


class RoutingError(Exception):
    """Base class for route discovery errors."""

    code = "UNKNOWN_ERROR"

    def __init__(self, message: str, router: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.router = router


class InvalidRequestError(RoutingError):
    """Raised when a request is missing or has malformed parameters."""

    code = "INVALID_REQUEST"


class UnsupportedChainError(RoutingError):
    """Raised when a chain is not configured for a venue or registry."""

    code = "UNSUPPORTED_CHAIN"


class UnsupportedPairError(RoutingError):
    """Raised when a token pair cannot be handled by a venue."""

    code = "UNSUPPORTED_PAIR"


class ContractRevertError(RoutingError):
    """Raised when a read-only contract call reverts."""

    code = "NO_ROUTE"


class InsufficientLiquidityError(ContractRevertError):
    """Raised when a pricing call reverts because reserves cannot cover the amount."""

    code = "INSUFFICIENT_LIQUIDITY"


class ProviderError(RoutingError):
    """Raised on transport failures, timeouts or malformed provider responses."""

    code = "PROVIDER_ERROR"


class QuoteExpiredError(RoutingError):
    """Raised when a route is used after its expiry."""

    code = "QUOTE_EXPIRED"


class DiscoveryTimeoutError(ProviderError):
    """Raised when the overall discovery deadline passed before any route was found."""

    code = "TIMEOUT"
