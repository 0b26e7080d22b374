"""Services exposed to the API layer."""

from crossroute.services.route_service import RouteRequest, RouteResponse, RouteService

__all__ = ["RouteRequest", "RouteResponse", "RouteService"]
