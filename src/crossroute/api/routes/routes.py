"""Route discovery API endpoints."""

import logging

from fastapi import APIRouter, HTTPException, Request

from crossroute.api.contracts import RouteBody, RouteRequestBody
from crossroute.routing.errors import DiscoveryTimeoutError, InvalidRequestError, ProviderError
from crossroute.services.route_service import RouteService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/routes")


def _service(request: Request) -> RouteService:
    return request.app.state.route_service


@router.post("")
async def find_route(body: RouteRequestBody, request: Request) -> dict:
    """Find the best route for a swap.

    Returns the best route and the alternatives found, best first.
    This is a READ-ONLY operation - no transactions are built or sent.
    """
    try:
        response = await _service(request).get_route(body.to_request())
    except InvalidRequestError as e:
        raise HTTPException(status_code=400, detail={"code": e.code, "message": e.message})
    except DiscoveryTimeoutError as e:
        raise HTTPException(status_code=504, detail={"code": e.code, "message": e.message})
    except ProviderError as e:
        raise HTTPException(status_code=503, detail={"code": e.code, "message": e.message})

    if response is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "NO_ROUTE", "message": "No route available for this swap"},
        )
    return response.to_dict()


@router.post("/validate")
async def validate_route(body: RouteBody, request: Request) -> dict:
    """Check a previously returned route before execution.

    An expired route is reported invalid and must be re-quoted.
    """
    route = body.to_route()
    service = _service(request)
    result = service.validate_route(route)
    data = result.to_dict()
    data["executable"] = result.is_valid and service.validator.is_executable(route)
    data["secondsUntilExpiry"] = round(route.seconds_until_expiry, 1)
    return data
