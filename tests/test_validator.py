"""Tests for route validation and the expiry guard."""

from dataclasses import replace

import pytest

from crossroute.routing.base import RouteFees, RouterParams, RouteStep, StepToken, StepType
from crossroute.routing.errors import QuoteExpiredError
from crossroute.routing.normalizer import RouteNormalizer
from crossroute.routing.validator import RouteValidator

from conftest import BSC_USDT, E18, TOKEN_A, TOKEN_B, WBNB, make_route

NOW = 1_700_000_000_000


class Clock:
    def __init__(self, now: int = NOW):
        self.now = now

    def __call__(self) -> int:
        return self.now


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def validator(clock) -> RouteValidator:
    return RouteValidator(clock=clock)


@pytest.fixture
def route(token_registry, dex_registry):
    normalizer = RouteNormalizer(token_registry, dex_registry, clock=lambda: NOW)
    return make_route(
        normalizer, RouterParams(56, WBNB, str(E18), 56, BSC_USDT), 600 * E18, ttl_seconds=60
    )


class TestValidateRoute:
    """Tests for RouteValidator.validate_route."""

    def test_fresh_route_is_valid(self, validator, route):
        """Test a well-formed route passes without warnings."""
        result = validator.validate_route(route)

        assert result.is_valid
        assert result.errors == []
        assert result.warnings == []
        assert result.to_dict()["isValid"] is True

    def test_expired_route(self, validator, clock, route):
        """Test a route past expires_at is invalid."""
        clock.now = route.expires_at

        result = validator.validate_route(route)

        assert not result.is_valid
        assert any("expired" in error for error in result.errors)

    def test_expiry_warning(self, validator, clock, route):
        """Test a route close to expiry is flagged but still valid."""
        clock.now = route.expires_at - 10_000

        result = validator.validate_route(route)

        assert result.is_valid
        assert any("expires in" in warning for warning in result.warnings)

    @pytest.mark.parametrize(
        "impact,valid,warned",
        [("60", False, False), ("15", True, True), ("2", True, False), ("n/a", True, True)],
    )
    def test_price_impact(self, validator, route, impact, valid, warned):
        """Test impact over the maximum fails and high or unknown impact warns."""
        route.price_impact = impact

        result = validator.validate_route(route)

        assert result.is_valid is valid
        assert bool(result.warnings) is warned

    def test_invalid_evm_address(self, validator, route):
        """Test malformed EVM addresses are rejected."""
        route.to_token = replace(route.to_token, address="0x1234")

        result = validator.validate_route(route)

        assert not result.is_valid
        assert any("toToken" in error for error in result.errors)

    def test_non_positive_output(self, validator, route):
        """Test a zero output amount is rejected."""
        route.to_token = replace(route.to_token, amount="0")

        assert not validator.validate_route(route).is_valid

    def test_negative_fee(self, validator, route):
        """Test fees must be non-negative numbers."""
        route.fees = RouteFees(total="-1")

        assert not validator.validate_route(route).is_valid

    def test_broken_step_chain(self, validator, route):
        """Test consecutive steps must hand over the same token."""
        route.from_token = replace(route.from_token, address=TOKEN_A)
        route.steps = [
            RouteStep(
                type=StepType.SWAP,
                chain_id=56,
                from_token=StepToken(TOKEN_A, "1"),
                to_token=StepToken(WBNB, "2"),
                protocol="venue",
                description="first",
            ),
            RouteStep(
                type=StepType.SWAP,
                chain_id=56,
                from_token=StepToken(TOKEN_B, "2"),
                to_token=StepToken(BSC_USDT, "600"),
                protocol="venue",
                description="second",
            ),
        ]

        result = validator.validate_route(route)

        assert not result.is_valid
        assert any("spends" in error for error in result.errors)

    def test_step_on_wrong_chain(self, validator, route):
        """Test the first step must start on the source chain."""
        route.steps = [replace(route.steps[0], chain_id=1)]

        assert not validator.validate_route(route).is_valid

    def test_no_steps_warns(self, validator, route):
        """Test a route without steps is only a warning."""
        route.steps = []

        result = validator.validate_route(route)

        assert result.is_valid
        assert result.warnings


class TestExpiryGuard:
    """Tests for the executable-route guard."""

    def test_fresh_route_is_executable(self, validator, route):
        """Test a route before expiry passes the guard."""
        assert validator.is_executable(route)
        validator.ensure_executable(route)

    def test_expired_route_is_refused(self, validator, clock, route):
        """Test an expired route raises QuoteExpiredError and must be re-quoted."""
        clock.now = route.expires_at + 1

        assert not validator.is_executable(route)
        with pytest.raises(QuoteExpiredError) as exc_info:
            validator.ensure_executable(route)
        assert exc_info.value.code == "QUOTE_EXPIRED"
        assert exc_info.value.router == route.router
