"""Read-only EVM JSON-RPC access for on-chain pricing.

Calls go straight to the node with eth_call over httpx; calldata is
ABI-encoded with eth-abi. One client per chain is built lazily and reused.
"""

import logging
import re
from abc import ABC, abstractmethod
from typing import Callable, Optional

import httpx
from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from web3 import Web3

from crossroute.routing.errors import (
    ContractRevertError,
    InsufficientLiquidityError,
    ProviderError,
    UnsupportedChainError,
)

logger = logging.getLogger(__name__)

# Function selectors
GET_AMOUNTS_OUT_SELECTOR = "0xd06ca61f"  # getAmountsOut(uint256,address[])
DECIMALS_SELECTOR = "0x313ce567"  # decimals()
ERROR_STRING_SELECTOR = "0x08c379a0"  # Error(string)

_LIQUIDITY_MARKERS = ("insufficient", "constant product")
_K_INVARIANT = re.compile(r"(?:^|[:\s'\"])K(?:$|[\s'\".])")


def classify_revert(message: str) -> ContractRevertError:
    """Map a revert reason to the liquidity or generic revert error."""
    lowered = message.lower()
    if any(marker in lowered for marker in _LIQUIDITY_MARKERS) or _K_INVARIANT.search(message):
        return InsufficientLiquidityError(message)
    return ContractRevertError(message)


def _decode_revert_reason(data: Optional[str]) -> Optional[str]:
    if not isinstance(data, str) or not data.startswith(ERROR_STRING_SELECTOR):
        return None
    try:
        (reason,) = decode(["string"], bytes.fromhex(data[len(ERROR_STRING_SELECTOR):]))
        return reason
    except (DecodingError, ValueError):
        return None


class EvmRpcClient:
    """JSON-RPC client for one EVM chain."""

    def __init__(
        self,
        chain_id: int,
        rpc_url: str,
        timeout: float = 5.0,
        retries: int = 2,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize the client.

        Args:
            chain_id: Chain the endpoint serves
            rpc_url: JSON-RPC endpoint
            timeout: Per-request deadline in seconds
            retries: Extra attempts on transport failures (never on reverts)
            http_client: Optional preconfigured client (tests use MockTransport)
        """
        self.chain_id = chain_id
        self.rpc_url = rpc_url
        self.retries = retries
        self._client = http_client or httpx.AsyncClient(timeout=timeout)
        self._request_id = 0

    async def _request(self, method: str, params: list) -> str:
        self._request_id += 1
        payload = {"jsonrpc": "2.0", "method": method, "params": params, "id": self._request_id}

        last_error: Optional[Exception] = None
        for attempt in range(self.retries + 1):
            try:
                response = await self._client.post(self.rpc_url, json=payload)
            except httpx.HTTPError as e:
                last_error = e
                logger.debug(
                    f"RPC {method} on chain {self.chain_id} attempt {attempt + 1} failed: "
                    f"{type(e).__name__}: {e}"
                )
                continue

            if response.status_code == 429 or response.status_code >= 500:
                last_error = ProviderError(f"RPC HTTP {response.status_code}")
                continue
            if response.status_code != 200:
                raise ProviderError(
                    f"RPC {method} on chain {self.chain_id} returned HTTP {response.status_code}"
                )

            try:
                body = response.json()
            except ValueError:
                raise ProviderError(f"RPC {method} on chain {self.chain_id} returned invalid JSON")

            error = body.get("error")
            if error:
                message = str(error.get("message", ""))
                if error.get("code") == 3 or "revert" in message.lower():
                    reason = _decode_revert_reason(error.get("data")) or message
                    raise classify_revert(reason)
                raise ProviderError(f"RPC {method} on chain {self.chain_id} error: {message}")

            result = body.get("result")
            if not isinstance(result, str):
                raise ProviderError(f"RPC {method} on chain {self.chain_id} returned no result")
            return result

        raise ProviderError(
            f"RPC {method} on chain {self.chain_id} failed after {self.retries + 1} attempts: "
            f"{last_error}"
        )

    async def eth_call(self, to: str, data: str) -> bytes:
        """Execute a read-only call and return the raw return data.

        Raises:
            ContractRevertError: call reverted or returned nothing
            ProviderError: transport failure or malformed response
        """
        result = await self._request("eth_call", [{"to": to, "data": data}, "latest"])
        if result in ("0x", ""):
            raise ContractRevertError(f"Empty return data from {to}")
        return bytes.fromhex(result[2:] if result.startswith("0x") else result)

    async def get_amounts_out(self, router: str, amount_in: int, path: list[str]) -> list[int]:
        """Call getAmountsOut(amountIn, path) on a V2-style router."""
        checksummed = [Web3.to_checksum_address(token) for token in path]
        data = GET_AMOUNTS_OUT_SELECTOR + encode(
            ["uint256", "address[]"], [amount_in, checksummed]
        ).hex()
        raw = await self.eth_call(Web3.to_checksum_address(router), data)
        try:
            (amounts,) = decode(["uint256[]"], raw)
        except DecodingError as e:
            raise ProviderError(f"Malformed getAmountsOut response from {router}: {e}")
        return list(amounts)

    async def get_decimals(self, token: str) -> int:
        """Read an ERC-20 token's decimals()."""
        raw = await self.eth_call(Web3.to_checksum_address(token), DECIMALS_SELECTOR)
        try:
            (decimals,) = decode(["uint8"], raw)
        except DecodingError as e:
            raise ProviderError(f"Malformed decimals response from {token}: {e}")
        return int(decimals)

    async def aclose(self) -> None:
        await self._client.aclose()


class PricingBackend(ABC):
    """Source of on-chain pricing reads, addressed by chain id."""

    @abstractmethod
    async def get_amounts_out(
        self, chain_id: int, router: str, amount_in: int, path: list[str]
    ) -> list[int]:
        """Return getAmountsOut(amount_in, path) from a router on a chain."""
        pass

    @abstractmethod
    async def get_decimals(self, chain_id: int, token: str) -> int:
        """Return a token's decimals()."""
        pass


class RpcClientPool(PricingBackend):
    """Per-chain RPC clients, built once and reused for the process lifetime."""

    def __init__(
        self,
        url_resolver: Callable[[int], str],
        timeout: float = 5.0,
        retries: int = 2,
    ):
        """Initialize the pool.

        Args:
            url_resolver: Maps a chain id to its RPC URL ("" when unsupported)
            timeout: Per-request deadline in seconds
            retries: Transport retries per call
        """
        self._url_resolver = url_resolver
        self.timeout = timeout
        self.retries = retries
        self._clients: dict[int, EvmRpcClient] = {}

    def get(self, chain_id: int) -> EvmRpcClient:
        """Get (or create) the client for a chain.

        Raises:
            UnsupportedChainError: no RPC URL is configured for the chain
        """
        client = self._clients.get(chain_id)
        if client is None:
            rpc_url = self._url_resolver(chain_id)
            if not rpc_url:
                raise UnsupportedChainError(f"No RPC URL configured for chain {chain_id}")
            client = EvmRpcClient(chain_id, rpc_url, timeout=self.timeout, retries=self.retries)
            self._clients[chain_id] = client
            logger.debug(f"Created RPC client for chain {chain_id}")
        return client

    async def get_amounts_out(
        self, chain_id: int, router: str, amount_in: int, path: list[str]
    ) -> list[int]:
        return await self.get(chain_id).get_amounts_out(router, amount_in, path)

    async def get_decimals(self, chain_id: int, token: str) -> int:
        return await self.get(chain_id).get_decimals(token)

    async def aclose(self) -> None:
        for client in self._clients.values():
            await client.aclose()
        self._clients.clear()
