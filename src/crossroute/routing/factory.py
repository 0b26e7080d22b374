"""Factory for wiring the discovery components.

Creates live clients (JSON-RPC, LiFi, Jupiter) unless dry-run mode is on,
in which case simulated pricing, venue and bridge stand in for them.
Everything is built once per process and injected, never looked up globally.
"""

import logging
from decimal import Decimal
from typing import Optional

from crossroute.config import Settings, get_settings
from crossroute.routing.base import AdapterRegistry
from crossroute.routing.bridges import BridgeComparator, BridgeQuoteProvider, BridgeRegistry
from crossroute.routing.cache import VerificationCache
from crossroute.routing.cross_chain import CrossChainRouteFinder
from crossroute.routing.dex_registry import DexRegistry
from crossroute.routing.multihop import MultiHopRouter
from crossroute.routing.normalizer import RouteNormalizer
from crossroute.routing.onchain import OnChainDexAdapter
from crossroute.routing.rpc import PricingBackend, RpcClientPool
from crossroute.routing.same_chain import SameChainRouteFinder
from crossroute.routing.token_registry import TokenRegistry
from crossroute.routing.validator import RouteValidator
from crossroute.routing.verifier import QuoteVerifier
from crossroute.services.route_service import RouteService
from crossroute.utils.concurrency import ConcurrencyLimiter

logger = logging.getLogger(__name__)


def create_pricing_backend(
    settings: Settings, token_registry: TokenRegistry, dex_registry: DexRegistry
) -> PricingBackend:
    """Create the getAmountsOut backend.

    Live mode talks JSON-RPC to each chain; dry-run mode seeds an in-process
    AMM from the registries.
    """
    if not settings.dry_run:
        return RpcClientPool(settings.get_rpc_url, timeout=settings.rpc_timeout_seconds)

    from crossroute.routing.dry_run import SimulatedAmm

    amm = SimulatedAmm()
    amm.seed_from_registry(token_registry, dex_registry)
    return amm


def create_verifier(
    settings: Settings,
    pricing: PricingBackend,
    dex_registry: DexRegistry,
    limiter: ConcurrencyLimiter,
) -> QuoteVerifier:
    cache = VerificationCache(
        ttl_seconds=settings.verification_cache_ttl_seconds,
        max_entries=settings.verification_cache_max_entries,
    )
    return QuoteVerifier(pricing, dex_registry, cache, limiter)


def create_lifi_client(settings: Settings, limiter: Optional[ConcurrencyLimiter] = None):
    """Create the LiFi HTTP client, or None in dry-run mode."""
    if settings.dry_run:
        return None

    from crossroute.routing.lifi import LiFiClient

    return LiFiClient(
        api_url=settings.lifi_api_url,
        api_key=settings.lifi_api_key,
        integrator=settings.lifi_integrator,
        timeout=settings.http_timeout_seconds,
        limiter=limiter,
    )


def create_bridge_registry(
    settings: Settings, token_registry: TokenRegistry, lifi_client=None
) -> BridgeRegistry:
    """Register every available bridge; the simulated one when none is live."""
    registry = BridgeRegistry()

    if lifi_client is not None and not settings.dry_run:
        from crossroute.routing.lifi import LiFiBridgeProvider

        registry.register(LiFiBridgeProvider(lifi_client))

    if not len(registry):
        # Fallback to simulated
        from crossroute.routing.dry_run import SimulatedBridgeProvider

        registry.register(SimulatedBridgeProvider(token_registry))

    logger.info(f"Bridge registry: {', '.join(p.name for p in registry.all())}")
    return registry


def create_bridge_provider(
    settings: Settings, token_registry: TokenRegistry, lifi_client=None
) -> BridgeQuoteProvider:
    """Create the bridge quote provider used by the cross-chain finder."""
    return BridgeComparator(create_bridge_registry(settings, token_registry, lifi_client))


def create_adapter_registry(
    settings: Settings,
    verifier: QuoteVerifier,
    dex_registry: DexRegistry,
    token_registry: TokenRegistry,
    normalizer: RouteNormalizer,
    limiter: Optional[ConcurrencyLimiter] = None,
    lifi_client=None,
) -> AdapterRegistry:
    """Create the venue adapter registry.

    One on-chain adapter per registered DEX, plus LiFi and Jupiter in live
    mode or the simulated venue in dry-run mode.
    """
    registry = AdapterRegistry()

    for dex_id in dex_registry.dex_ids():
        registry.register(
            OnChainDexAdapter(
                dex_id,
                verifier,
                dex_registry,
                token_registry,
                normalizer,
                intermediary_top_k=settings.intermediary_top_k,
            )
        )

    if settings.dry_run:
        from crossroute.routing.dry_run import SimulatedVenueAdapter

        registry.register(SimulatedVenueAdapter(token_registry, normalizer))
        logger.info("Dry-run mode: added simulated venue")
    else:
        from crossroute.routing.jupiter import JupiterAdapter
        from crossroute.routing.lifi import LiFiAdapter

        if lifi_client is not None:
            registry.register(LiFiAdapter(lifi_client, normalizer))
            logger.info("Added LiFi adapter")
        registry.register(
            JupiterAdapter(
                normalizer,
                api_url=settings.jupiter_api_url,
                timeout=settings.http_timeout_seconds,
                limiter=limiter,
            )
        )
        logger.info("Added Jupiter adapter")

    logger.info(f"Adapter registry: {', '.join(a.name for a in registry.all())}")
    return registry


def create_route_service(
    settings: Optional[Settings] = None,
    token_registry: Optional[TokenRegistry] = None,
    dex_registry: Optional[DexRegistry] = None,
) -> RouteService:
    """Create a fully wired RouteService.

    This is the main factory function used by the API.

    Args:
        settings: Settings to use (defaults to get_settings())
        token_registry: Token tables (defaults to the built-in tables)
        dex_registry: DEX deployments (defaults to the built-in table)
    """
    settings = settings or get_settings()
    tokens = token_registry or TokenRegistry()
    dexes = dex_registry or DexRegistry()

    limiter = ConcurrencyLimiter(settings.verifier_concurrency)
    pricing = create_pricing_backend(settings, tokens, dexes)
    verifier = create_verifier(settings, pricing, dexes, limiter)
    normalizer = RouteNormalizer(
        tokens,
        dexes,
        same_chain_ttl_seconds=settings.same_chain_quote_ttl_seconds,
        cross_chain_ttl_seconds=settings.cross_chain_quote_ttl_seconds,
    )
    lifi_client = create_lifi_client(settings, limiter)
    adapters = create_adapter_registry(
        settings, verifier, dexes, tokens, normalizer, limiter, lifi_client
    )

    same_chain = SameChainRouteFinder(
        verifier, dexes, tokens, intermediary_top_k=settings.intermediary_top_k
    )
    cross_chain = CrossChainRouteFinder(
        same_chain,
        create_bridge_provider(settings, tokens, lifi_client),
        tokens,
        strategy=settings.cross_chain_strategy,
    )
    multihop = None
    if settings.enable_multi_hop:
        multihop = MultiHopRouter(
            adapters, tokens, normalizer, adapter_timeout=settings.adapter_timeout_seconds
        )

    closeables = [
        resource
        for resource in [pricing, lifi_client, *adapters.all()]
        if resource is not None and hasattr(resource, "aclose")
    ]

    logger.info(
        f"Route service ready (dry_run={settings.dry_run}, "
        f"strategy={settings.cross_chain_strategy}, multi_hop={settings.enable_multi_hop})"
    )
    return RouteService(
        adapters=adapters,
        same_chain_finder=same_chain,
        cross_chain_finder=cross_chain,
        normalizer=normalizer,
        token_registry=tokens,
        validator=RouteValidator(max_price_impact=Decimal(str(settings.max_price_impact))),
        multihop_router=multihop,
        pricing=pricing,
        adapter_timeout=settings.adapter_timeout_seconds,
        discovery_timeout=settings.discovery_timeout_seconds,
        default_slippage=settings.default_slippage,
        closeables=closeables,
    )
