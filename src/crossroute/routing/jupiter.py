"""Jupiter DEX aggregator integration for Solana.

Uses the Jupiter quote API; swap transactions are built by the execution layer.
API docs: https://station.jup.ag/docs/apis/swap-api
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Optional

import httpx

from crossroute.chains import SOLANA_CHAIN_ID
from crossroute.routing.amounts import format_amount
from crossroute.routing.base import (
    RouteFees,
    RoutePayload,
    RouterParams,
    RouterRoute,
    RouteStep,
    StepToken,
    StepType,
    VenueAdapter,
)
from crossroute.routing.errors import ProviderError, UnsupportedChainError
from crossroute.routing.normalizer import RouteNormalizer
from crossroute.utils.concurrency import ConcurrencyLimiter

logger = logging.getLogger(__name__)

JUPITER_API_V6 = "https://quote-api.jup.ag/v6"

# Signature fee plus a typical priority fee, in lamports
ESTIMATED_FEE_LAMPORTS = 5000


class JupiterAdapter(VenueAdapter):
    """Jupiter aggregator provider for Solana.

    Jupiter aggregates liquidity from Raydium, Orca and other Solana DEXes.
    """

    def __init__(
        self,
        normalizer: RouteNormalizer,
        api_url: str = JUPITER_API_V6,
        api_key: Optional[str] = None,
        timeout: float = 8.0,
        limiter: Optional[ConcurrencyLimiter] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.normalizer = normalizer
        self.base_url = api_url.rstrip("/")
        self.api_key = api_key
        self.limiter = limiter
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    @property
    def name(self) -> str:
        return "jupiter"

    @property
    def display_name(self) -> str:
        return "Jupiter"

    @property
    def priority(self) -> int:
        return 1

    def supports_chain(self, chain_id: int) -> bool:
        return chain_id == SOLANA_CHAIN_ID

    def _get_headers(self) -> dict:
        """Get API headers."""
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def _fetch_quote(self, params: RouterParams) -> Optional[dict]:
        query = {
            "inputMint": params.from_token,
            "outputMint": params.to_token,
            "amount": params.from_amount,
            # Slippage in basis points
            "slippageBps": str(round(params.slippage * 100)),
            "onlyDirectRoutes": "false",
        }
        try:
            if self.limiter:
                async with self.limiter:
                    response = await self._client.get(
                        f"{self.base_url}/quote", headers=self._get_headers(), params=query
                    )
            else:
                response = await self._client.get(
                    f"{self.base_url}/quote", headers=self._get_headers(), params=query
                )
        except httpx.HTTPError as e:
            raise ProviderError(f"Jupiter quote request failed: {type(e).__name__}: {e}", self.name)

        if response.status_code in (400, 404):
            logger.debug(f"Jupiter has no route: {response.status_code} - {response.text[:200]}")
            return None
        if response.status_code != 200:
            raise ProviderError(f"Jupiter API error: HTTP {response.status_code}", self.name)

        try:
            return response.json()
        except ValueError:
            raise ProviderError("Jupiter returned invalid JSON", self.name)

    async def get_route(self, params: RouterParams) -> Optional[RouterRoute]:
        """Get a Solana swap route from Jupiter."""
        if params.is_cross_chain or not self.supports_chain(params.from_chain_id):
            raise UnsupportedChainError(
                f"Jupiter only routes on Solana, got {params.from_chain_id} -> {params.to_chain_id}",
                self.name,
            )

        data = await self._fetch_quote(params)
        if not data:
            return None

        try:
            out_amount = int(data.get("outAmount", "0"))
        except (TypeError, ValueError):
            raise ProviderError(
                f"Jupiter returned invalid outAmount {data.get('outAmount')!r}", self.name
            )
        if out_amount <= 0:
            return None

        try:
            price_impact = abs(Decimal(str(data.get("priceImpactPct") or "0"))) * 100
        except InvalidOperation:
            price_impact = Decimal("0")

        steps = []
        for plan in data.get("routePlan") or []:
            swap_info = plan.get("swapInfo") or {}
            label = swap_info.get("label") or "Jupiter"
            in_mint = swap_info.get("inputMint", "")
            out_mint = swap_info.get("outputMint", "")
            in_decimals = self.normalizer.decimals_for(
                SOLANA_CHAIN_ID,
                in_mint,
                params.from_decimals if in_mint == params.from_token else None,
            )
            out_decimals = self.normalizer.decimals_for(
                SOLANA_CHAIN_ID,
                out_mint,
                params.to_decimals if out_mint == params.to_token else None,
            )
            in_symbol = self.normalizer.symbol_for(SOLANA_CHAIN_ID, in_mint)
            out_symbol = self.normalizer.symbol_for(SOLANA_CHAIN_ID, out_mint)
            steps.append(
                RouteStep(
                    type=StepType.SWAP,
                    chain_id=SOLANA_CHAIN_ID,
                    from_token=StepToken(
                        in_mint,
                        format_amount(int(swap_info.get("inAmount") or 0), in_decimals),
                        in_symbol,
                    ),
                    to_token=StepToken(
                        out_mint,
                        format_amount(int(swap_info.get("outAmount") or 0), out_decimals),
                        out_symbol,
                    ),
                    protocol=label,
                    description=f"Swap {in_symbol} to {out_symbol} on {label}",
                )
            )

        return self.normalizer.build(
            router=self.name,
            from_token=self.normalizer.token_amount(
                SOLANA_CHAIN_ID, params.from_token, params.amount_in, params.from_decimals
            ),
            to_token=self.normalizer.token_amount(
                SOLANA_CHAIN_ID, params.to_token, out_amount, params.to_decimals
            ),
            steps=steps,
            ttl_seconds=self.normalizer.same_chain_ttl_seconds,
            fees=RouteFees(gas=str(ESTIMATED_FEE_LAMPORTS)),
            price_impact=format(price_impact.normalize(), "f") if price_impact else "0",
            slippage=params.slippage,
            # Solana is very fast
            estimated_time=1,
            raw=RoutePayload.encode(self.name, data),
        )

    async def aclose(self) -> None:
        await self._client.aclose()
