"""Tests for the FastAPI endpoints."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

from crossroute.api.app import create_app
from crossroute.config import Settings, get_settings
from crossroute.main import Application
from crossroute.routing.errors import DiscoveryTimeoutError, ProviderError
from crossroute.routing.factory import create_route_service

from conftest import BSC_USDT, TOKEN_A, TOKEN_B, WBNB, WETH


def route_request(**overrides) -> dict:
    body = {
        "fromChainId": 56,
        "fromToken": WBNB,
        "toChainId": 56,
        "toToken": BSC_USDT,
        "fromAmount": "1",
    }
    body.update(overrides)
    return body


@pytest.fixture
async def test_app():
    """Create test application over the dry-run venues."""
    service = create_route_service(get_settings())

    yield create_app(route_service=service)

    await service.aclose()


@pytest.fixture
async def client(test_app):
    """Create async test client."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def failing_client(error: Exception) -> AsyncClient:
    """Client for an app whose route service fails every lookup with error."""
    service = MagicMock()
    service.get_route = AsyncMock(side_effect=error)
    service.aclose = AsyncMock()
    transport = ASGITransport(app=create_app(route_service=service))
    return AsyncClient(transport=transport, base_url="http://test")


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    @pytest.mark.asyncio
    async def test_health_check(self, client):
        """Test basic health check."""
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "crossroute"

    @pytest.mark.asyncio
    async def test_detailed_health(self, client):
        """Test detailed health check."""
        response = await client.get("/health/detailed")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["config"]["environment"] == "test"
        assert data["config"]["dry_run"] is True
        venues = [venue["name"] for venue in data["routing"]["venues"]]
        assert "dry_run" in venues
        assert data["routing"]["bridges"] == ["bridge_sim"]
        assert data["routing"]["crossChainStrategy"] == "parallel"


class TestRouteEndpoints:
    """Tests for route discovery endpoints."""

    @pytest.mark.asyncio
    async def test_same_chain_route(self, client):
        """Test a same-chain request returns the best route and alternatives."""
        response = await client.post("/api/v1/routes", json=route_request())

        assert response.status_code == 200
        data = response.json()
        route = data["route"]
        assert route["fromToken"]["amount"] == "1"
        assert route["toToken"]["symbol"] == "USDT"
        assert float(route["toToken"]["amount"]) > 0
        assert route["steps"]
        assert data["expiresAt"] == route["expiresAt"]
        assert isinstance(data["alternatives"], list)
        outputs = [float(r["toToken"]["amount"]) for r in [route] + data["alternatives"]]
        assert outputs == sorted(outputs, reverse=True)

    @pytest.mark.asyncio
    async def test_cross_chain_route(self, client):
        """Test a cross-chain request returns a route ending on the target chain."""
        response = await client.post(
            "/api/v1/routes", json=route_request(toChainId=1, toToken=WETH, slippage=1)
        )

        assert response.status_code == 200
        route = response.json()["route"]
        assert route["toToken"]["chainId"] == 1
        assert any(step["type"] == "bridge" for step in route["steps"])

    @pytest.mark.asyncio
    async def test_no_route(self, client):
        """Test unknown tokens without liquidity return 404 NO_ROUTE."""
        response = await client.post(
            "/api/v1/routes",
            json=route_request(fromToken=TOKEN_A, toToken=TOKEN_B, fromDecimals=18, toDecimals=18),
        )

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "NO_ROUTE"

    @pytest.mark.asyncio
    async def test_invalid_amount(self, client):
        """Test a zero amount is rejected with 400."""
        response = await client.post("/api/v1/routes", json=route_request(fromAmount="0"))

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "INVALID_REQUEST"

    @pytest.mark.asyncio
    async def test_missing_field(self, client):
        """Test a body missing required fields is rejected with 400."""
        body = route_request()
        del body["toToken"]

        response = await client.post("/api/v1/routes", json=body)

        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["code"] == "INVALID_REQUEST"
        assert detail["errors"]

    @pytest.mark.asyncio
    async def test_slippage_out_of_range(self, client):
        """Test slippage above 100 percent is rejected."""
        response = await client.post("/api/v1/routes", json=route_request(slippage=101))

        assert response.status_code == 400

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error,status,code",
        [
            (ProviderError("upstream down"), 503, "PROVIDER_ERROR"),
            (DiscoveryTimeoutError("deadline passed"), 504, "TIMEOUT"),
        ],
    )
    async def test_provider_failures(self, error, status, code):
        """Test provider failures map to 503 and the discovery deadline to 504."""
        async with failing_client(error) as ac:
            response = await ac.post("/api/v1/routes", json=route_request())

        assert response.status_code == status
        assert response.json()["detail"]["code"] == code


class TestApplication:
    """Tests for the server entry point."""

    @pytest.mark.asyncio
    async def test_server_wraps_wired_service(self):
        """Test the server serves an app holding a freshly wired route service."""
        application = Application(Settings(dry_run=True, api_port=8123))

        server = application._build_server()

        assert server.config.port == 8123
        service = server.config.app.state.route_service
        assert "dry_run" in [adapter.name for adapter in service.adapters.all()]
        await service.aclose()

    def test_shutdown_stops_server(self):
        """Test a shutdown request asks uvicorn to exit."""
        application = Application(Settings(dry_run=True))
        application.server = MagicMock(should_exit=False)

        application.shutdown()

        assert application.server.should_exit is True


class TestValidateEndpoint:
    """Tests for route validation before execution."""

    @pytest.mark.asyncio
    async def test_fresh_route_is_executable(self, client):
        """Test a just-returned route validates and may be executed."""
        route = (await client.post("/api/v1/routes", json=route_request())).json()["route"]

        response = await client.post("/api/v1/routes/validate", json=route)

        assert response.status_code == 200
        data = response.json()
        assert data["isValid"] is True
        assert data["executable"] is True
        assert data["secondsUntilExpiry"] > 0

    @pytest.mark.asyncio
    async def test_expired_route_is_refused(self, client):
        """Test a route past its expiry must be re-quoted."""
        route = (await client.post("/api/v1/routes", json=route_request())).json()["route"]
        route["expiresAt"] = 1

        response = await client.post("/api/v1/routes/validate", json=route)

        assert response.status_code == 200
        data = response.json()
        assert data["isValid"] is False
        assert data["executable"] is False
        assert data["secondsUntilExpiry"] < 0
