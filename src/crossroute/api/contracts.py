"""Route request and route contracts for the HTTP API.

Field names are snake_case in Python and camelCase on the wire.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from crossroute.routing.base import (
    OrderPreference,
    RouteFees,
    RoutePayload,
    RouterRoute,
    RouteStep,
    StepToken,
    StepType,
    TokenAmount,
)
from crossroute.services.route_service import RouteRequest


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class RouteRequestBody(_WireModel):
    """Request for the best route between two tokens."""

    from_chain_id: int = Field(..., alias="fromChainId", gt=0, description="Source chain id")
    from_token: str = Field(..., alias="fromToken", min_length=1, description="Source token address")
    to_chain_id: int = Field(..., alias="toChainId", gt=0, description="Destination chain id")
    to_token: str = Field(..., alias="toToken", min_length=1, description="Destination token address")
    from_amount: str = Field(
        ..., alias="fromAmount", description="Human-readable input amount (e.g. '1.5')"
    )
    slippage: Optional[float] = Field(
        default=None, ge=0, le=100, description="Slippage tolerance in percent"
    )
    recipient: Optional[str] = Field(None, description="Address receiving the output")
    from_address: Optional[str] = Field(None, alias="fromAddress", description="Sender address")
    from_decimals: Optional[int] = Field(
        None, alias="fromDecimals", ge=0, le=36, description="Source token decimals if known"
    )
    to_decimals: Optional[int] = Field(
        None, alias="toDecimals", ge=0, le=36, description="Destination token decimals if known"
    )
    order: OrderPreference = Field(
        default=OrderPreference.RECOMMENDED, description="Aggregator ordering preference"
    )

    def to_request(self) -> RouteRequest:
        return RouteRequest(
            from_chain_id=self.from_chain_id,
            from_token=self.from_token,
            to_chain_id=self.to_chain_id,
            to_token=self.to_token,
            from_amount=self.from_amount,
            slippage=self.slippage,
            recipient=self.recipient,
            from_address=self.from_address,
            from_decimals=self.from_decimals,
            to_decimals=self.to_decimals,
            order=self.order,
        )


class TokenAmountBody(_WireModel):
    chain_id: int = Field(..., alias="chainId")
    address: str
    symbol: str
    amount: str
    decimals: int
    amount_usd: Optional[str] = Field(None, alias="amountUSD")


class FeesBody(_WireModel):
    protocol: str = "0"
    gas: str = "0"
    gas_usd: str = Field("0", alias="gasUSD")
    platform: str = "0"
    total: str = "0"


class StepTokenBody(_WireModel):
    address: str
    amount: str
    symbol: Optional[str] = None


class StepBody(_WireModel):
    type: StepType
    chain_id: int = Field(..., alias="chainId")
    from_token: StepTokenBody = Field(..., alias="fromToken")
    to_token: StepTokenBody = Field(..., alias="toToken")
    protocol: str
    description: str = ""
    to_chain_id: Optional[int] = Field(None, alias="toChainId")


class PayloadBody(_WireModel):
    venue: str
    data: str


class RouteBody(_WireModel):
    """A route as returned by POST /api/v1/routes."""

    router: str
    route_id: str = Field(..., alias="routeId")
    from_token: TokenAmountBody = Field(..., alias="fromToken")
    to_token: TokenAmountBody = Field(..., alias="toToken")
    exchange_rate: str = Field(..., alias="exchangeRate")
    price_impact: str = Field("0", alias="priceImpact")
    slippage: str = "0.5"
    fees: FeesBody = Field(default_factory=FeesBody)
    steps: list[StepBody] = Field(default_factory=list)
    estimated_time: int = Field(0, alias="estimatedTime")
    expires_at: int = Field(..., alias="expiresAt", description="Expiry, epoch milliseconds")
    raw: Optional[PayloadBody] = None

    def to_route(self) -> RouterRoute:
        return RouterRoute(
            router=self.router,
            route_id=self.route_id,
            from_token=TokenAmount(**self.from_token.model_dump()),
            to_token=TokenAmount(**self.to_token.model_dump()),
            exchange_rate=self.exchange_rate,
            price_impact=self.price_impact,
            slippage=self.slippage,
            fees=RouteFees(**self.fees.model_dump()),
            steps=[
                RouteStep(
                    type=step.type,
                    chain_id=step.chain_id,
                    from_token=StepToken(**step.from_token.model_dump()),
                    to_token=StepToken(**step.to_token.model_dump()),
                    protocol=step.protocol,
                    description=step.description,
                    to_chain_id=step.to_chain_id,
                )
                for step in self.steps
            ],
            estimated_time=self.estimated_time,
            expires_at=self.expires_at,
            raw=RoutePayload(**self.raw.model_dump()) if self.raw else None,
        )
