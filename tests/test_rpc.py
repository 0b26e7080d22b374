"""Tests for the JSON-RPC pricing client."""

import json

import httpx
import pytest
from eth_abi import encode

from crossroute.routing.errors import (
    ContractRevertError,
    InsufficientLiquidityError,
    ProviderError,
    UnsupportedChainError,
)
from crossroute.routing.rpc import (
    ERROR_STRING_SELECTOR,
    GET_AMOUNTS_OUT_SELECTOR,
    EvmRpcClient,
    RpcClientPool,
    classify_revert,
)

ROUTER = "0x10ed43c718714eb63d5aa57b78b54704e256024e"
TOKEN_IN = "0xbb4cdb9cbd36b01bd1cbaebf2de08d9173bc095c"
TOKEN_OUT = "0x55d398326f99059ff775485246999027b3197955"


def rpc_result(request_body: dict, result: str) -> httpx.Response:
    return httpx.Response(200, json={"jsonrpc": "2.0", "id": request_body["id"], "result": result})


def rpc_revert(request_body: dict, reason: str) -> httpx.Response:
    data = ERROR_STRING_SELECTOR + encode(["string"], [reason]).hex()
    return httpx.Response(
        200,
        json={
            "jsonrpc": "2.0",
            "id": request_body["id"],
            "error": {"code": 3, "message": "execution reverted", "data": data},
        },
    )


def make_client(handler, retries: int = 2) -> EvmRpcClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return EvmRpcClient(56, "https://rpc.test", retries=retries, http_client=http_client)


class TestEvmRpcClient:
    """Tests for EvmRpcClient."""

    @pytest.mark.asyncio
    async def test_get_amounts_out(self):
        """Test calldata encoding and uint256[] decoding."""
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            seen.append(body)
            return rpc_result(body, "0x" + encode(["uint256[]"], [[10**18, 600 * 10**18]]).hex())

        client = make_client(handler)
        amounts = await client.get_amounts_out(ROUTER, 10**18, [TOKEN_IN, TOKEN_OUT])

        assert amounts == [10**18, 600 * 10**18]
        call = seen[0]
        assert call["method"] == "eth_call"
        assert call["params"][1] == "latest"
        assert call["params"][0]["to"] == "0x10ED43C718714eb63d5aA57B78B54704E256024E"
        assert call["params"][0]["data"].startswith(GET_AMOUNTS_OUT_SELECTOR)

    @pytest.mark.asyncio
    async def test_liquidity_revert(self):
        """Test an INSUFFICIENT_LIQUIDITY revert is classified for probing."""

        def handler(request: httpx.Request) -> httpx.Response:
            return rpc_revert(json.loads(request.content), "UniswapV2Library: INSUFFICIENT_LIQUIDITY")

        client = make_client(handler)
        with pytest.raises(InsufficientLiquidityError) as exc_info:
            await client.get_amounts_out(ROUTER, 10**18, [TOKEN_IN, TOKEN_OUT])
        assert "INSUFFICIENT_LIQUIDITY" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_plain_revert_is_not_liquidity(self):
        """Test a generic revert (missing pair) is a plain ContractRevertError."""

        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            return httpx.Response(
                200,
                json={"jsonrpc": "2.0", "id": body["id"], "error": {"code": -32000, "message": "execution reverted"}},
            )

        client = make_client(handler)
        with pytest.raises(ContractRevertError) as exc_info:
            await client.get_amounts_out(ROUTER, 10**18, [TOKEN_IN, TOKEN_OUT])
        assert not isinstance(exc_info.value, InsufficientLiquidityError)

    @pytest.mark.asyncio
    async def test_server_errors_are_retried(self):
        """Test 5xx responses are retried, then surface as ProviderError."""
        attempts = []

        def handler(request: httpx.Request) -> httpx.Response:
            attempts.append(1)
            return httpx.Response(502, text="bad gateway")

        client = make_client(handler, retries=2)
        with pytest.raises(ProviderError):
            await client.get_amounts_out(ROUTER, 10**18, [TOKEN_IN, TOKEN_OUT])
        assert len(attempts) == 3

    @pytest.mark.asyncio
    async def test_retry_recovers(self):
        """Test a transient transport failure followed by success."""
        attempts = []

        def handler(request: httpx.Request) -> httpx.Response:
            attempts.append(1)
            if len(attempts) == 1:
                raise httpx.ConnectError("connection refused", request=request)
            return rpc_result(json.loads(request.content), "0x" + encode(["uint8"], [6]).hex())

        client = make_client(handler)
        assert await client.get_decimals(TOKEN_OUT) == 6
        assert len(attempts) == 2

    @pytest.mark.asyncio
    async def test_rpc_error_is_provider_error(self):
        """Test a non-revert JSON-RPC error is a provider failure."""

        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            return httpx.Response(
                200,
                json={"jsonrpc": "2.0", "id": body["id"], "error": {"code": -32005, "message": "rate limited"}},
            )

        client = make_client(handler)
        with pytest.raises(ProviderError):
            await client.get_decimals(TOKEN_OUT)

    @pytest.mark.asyncio
    async def test_empty_return_data(self):
        """Test 0x return data (no contract) reverts."""

        def handler(request: httpx.Request) -> httpx.Response:
            return rpc_result(json.loads(request.content), "0x")

        client = make_client(handler)
        with pytest.raises(ContractRevertError):
            await client.get_decimals(TOKEN_OUT)


class TestClassifyRevert:
    """Tests for revert reason classification."""

    @pytest.mark.parametrize(
        "reason",
        [
            "UniswapV2Library: INSUFFICIENT_LIQUIDITY",
            "UniswapV2Library: INSUFFICIENT_INPUT_AMOUNT",
            "Pancake: K",
        ],
    )
    def test_liquidity_reasons(self, reason):
        """Test liquidity-style reasons map to InsufficientLiquidityError."""
        assert isinstance(classify_revert(reason), InsufficientLiquidityError)

    def test_other_reasons(self):
        """Test unrelated reasons stay generic reverts."""
        error = classify_revert("TransferHelper: TRANSFER_FROM_FAILED")
        assert type(error) is ContractRevertError


class TestRpcClientPool:
    """Tests for the per-chain client pool."""

    def test_reuses_clients(self):
        """Test one client per chain is built and cached."""
        pool = RpcClientPool({56: "https://bsc.test"}.get)

        assert pool.get(56) is pool.get(56)

    def test_unknown_chain(self):
        """Test a chain without an RPC URL is unsupported."""
        pool = RpcClientPool(lambda chain_id: "")

        with pytest.raises(UnsupportedChainError):
            pool.get(999)
