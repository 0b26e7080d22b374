"""Consumer-side checks on a normalized route before it is shown or executed."""

import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Callable, Optional

from crossroute.chains import is_evm_chain
from crossroute.routing.base import RouterRoute, StepType, now_ms
from crossroute.routing.errors import QuoteExpiredError

logger = logging.getLogger(__name__)

EVM_ADDRESS = re.compile(r"^0x[0-9a-fA-F]{40}$")

MAX_PRICE_IMPACT = Decimal("50")
HIGH_PRICE_IMPACT = Decimal("10")
EXPIRY_WARNING_SECONDS = 30


@dataclass
class ValidationResult:
    """Outcome of validating a route."""

    is_valid: bool = True
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def error(self, message: str) -> None:
        self.errors.append(message)
        self.is_valid = False

    def warn(self, message: str) -> None:
        self.warnings.append(message)

    def to_dict(self) -> dict:
        return {"isValid": self.is_valid, "errors": self.errors, "warnings": self.warnings}


def _decimal(value: Optional[str]) -> Optional[Decimal]:
    try:
        return Decimal(str(value))
    except (InvalidOperation, TypeError):
        return None


class RouteValidator:
    """Validates route integrity and freshness.

    The engine never re-checks expiry after returning a route, so whatever
    builds transactions must call ensure_executable first.
    """

    def __init__(
        self,
        max_price_impact: Decimal = MAX_PRICE_IMPACT,
        high_price_impact: Decimal = HIGH_PRICE_IMPACT,
        expiry_warning_seconds: int = EXPIRY_WARNING_SECONDS,
        clock: Callable[[], int] = now_ms,
    ):
        self.max_price_impact = Decimal(str(max_price_impact))
        self.high_price_impact = Decimal(str(high_price_impact))
        self.expiry_warning_seconds = expiry_warning_seconds
        self._clock = clock

    def validate_route(self, route: RouterRoute) -> ValidationResult:
        """Run every check and collect errors and warnings."""
        result = ValidationResult()
        self._check_required(route, result)
        self._check_amounts(route, result)
        self._check_price_impact(route, result)
        self._check_expiry(route, result)
        self._check_steps(route, result)
        self._check_fees(route, result)

        if not result.is_valid:
            logger.debug(f"Route {route.route_id} from {route.router} invalid: {result.errors}")
        return result

    def is_executable(self, route: RouterRoute) -> bool:
        return self._clock() < route.expires_at

    def ensure_executable(self, route: RouterRoute) -> None:
        """
        Refuse a route past its expiry.

        Raises:
            QuoteExpiredError: the route must be re-quoted
        """
        if not self.is_executable(route):
            expired_for = (self._clock() - route.expires_at) / 1000
            logger.warning(
                f"Refusing expired route {route.route_id} from {route.router} "
                f"(expired {expired_for:.1f}s ago)"
            )
            raise QuoteExpiredError(
                f"Route {route.route_id} expired, request a fresh quote", route.router
            )

    # ======================
    # Checks
    # ======================

    def _check_required(self, route: RouterRoute, result: ValidationResult) -> None:
        if not route.router:
            result.error("Missing router")
        if not route.route_id:
            result.error("Missing route id")
        for side, token in (("fromToken", route.from_token), ("toToken", route.to_token)):
            if not token.address:
                result.error(f"{side} has no address")
            elif is_evm_chain(token.chain_id) and not EVM_ADDRESS.match(token.address):
                result.error(f"{side} address {token.address} is not a valid EVM address")
            if token.decimals < 0:
                result.error(f"{side} has negative decimals")

    def _check_amounts(self, route: RouterRoute, result: ValidationResult) -> None:
        for side, token in (("fromToken", route.from_token), ("toToken", route.to_token)):
            amount = _decimal(token.amount)
            if amount is None:
                result.error(f"{side} amount {token.amount!r} is not a number")
            elif amount <= 0:
                result.error(f"{side} amount must be positive")

        rate = _decimal(route.exchange_rate)
        if rate is None or rate <= 0:
            result.error(f"Exchange rate {route.exchange_rate!r} must be positive")

    def _check_price_impact(self, route: RouterRoute, result: ValidationResult) -> None:
        impact = _decimal(route.price_impact)
        if impact is None:
            result.warn(f"Unknown price impact {route.price_impact!r}")
            return
        if impact > self.max_price_impact:
            result.error(f"Price impact {impact}% exceeds {self.max_price_impact}%")
        elif impact > self.high_price_impact:
            result.warn(f"High price impact: {impact}%")

    def _check_expiry(self, route: RouterRoute, result: ValidationResult) -> None:
        remaining = (route.expires_at - self._clock()) / 1000
        if remaining <= 0:
            result.error("Route has expired, request a fresh quote")
        elif remaining < self.expiry_warning_seconds:
            result.warn(f"Route expires in {remaining:.0f}s")

    def _check_steps(self, route: RouterRoute, result: ValidationResult) -> None:
        if not route.steps:
            result.warn("Route has no steps")
            return

        first, last = route.steps[0], route.steps[-1]
        if first.chain_id != route.from_token.chain_id:
            result.error("First step is not on the source chain")
        last_chain = last.to_chain_id if last.type == StepType.BRIDGE else last.chain_id
        if last_chain != route.to_token.chain_id:
            result.error("Last step does not end on the destination chain")

        for i, (current, following) in enumerate(zip(route.steps, route.steps[1:])):
            if current.type == StepType.BRIDGE:
                # the delivered token is resolved independently on the other chain
                if current.to_chain_id is not None and following.chain_id != current.to_chain_id:
                    result.error(f"Step {i + 1} does not continue on the bridged chain")
                continue
            if current.to_token.address.lower() != following.from_token.address.lower():
                result.error(
                    f"Step {i + 1} outputs {current.to_token.address} but step {i + 2} "
                    f"spends {following.from_token.address}"
                )

    def _check_fees(self, route: RouterRoute, result: ValidationResult) -> None:
        for name, value in route.fees.to_dict().items():
            amount = _decimal(value)
            if amount is None or amount < 0:
                result.error(f"Fee {name} must be a non-negative number, got {value!r}")
