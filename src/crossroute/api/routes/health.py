"""Health check endpoints."""

from fastapi import APIRouter, Request

from crossroute.config import get_settings

router = APIRouter()


@router.get("/health")
async def health_check():
    return {"status": "healthy", "service": "crossroute"}


@router.get("/health/detailed")
async def detailed_health(request: Request):
    """Report configuration and the venues the route service was wired with."""
    service = request.app.state.route_service
    return {
        "status": "healthy",
        "service": "crossroute",
        "config": get_settings().get_safe_dict(),
        "routing": {
            "venues": [
                {"name": adapter.name, "priority": adapter.priority}
                for adapter in service.adapters.all()
            ],
            "bridges": [provider.name for provider in service.cross_chain.bridge.registry.all()],
            "crossChainStrategy": service.cross_chain.strategy,
            "multiHop": service.multihop is not None,
        },
    }
