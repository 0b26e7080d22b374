"""Application configuration using pydantic-settings.

Covers RPC endpoints for the supported EVM chains, discovery timeouts,
verifier concurrency and cache limits, and the external aggregator APIs.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # API
    # ======================
    api_host: str = Field(default="0.0.0.0", description="API server host")
    api_port: int = Field(default=8000, description="API server port")

    # ======================
    # Environment
    # ======================
    environment: str = Field(default="development", description="Runtime environment")
    debug: bool = Field(default=True, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level when debug is off")

    # ======================
    # Chain RPC Endpoints
    # ======================
    eth_rpc_url: str = Field(default="https://eth.llamarpc.com", description="Ethereum RPC URL")
    bsc_rpc_url: str = Field(default="https://bsc-dataseed.binance.org", description="BSC RPC URL")
    polygon_rpc_url: str = Field(default="https://polygon-rpc.com", description="Polygon RPC URL")
    optimism_rpc_url: str = Field(
        default="https://mainnet.optimism.io", description="Optimism RPC URL"
    )
    arbitrum_rpc_url: str = Field(
        default="https://arb1.arbitrum.io/rpc", description="Arbitrum One RPC URL"
    )
    base_rpc_url: str = Field(default="https://mainnet.base.org", description="Base RPC URL")

    # ======================
    # Timeouts
    # ======================
    rpc_timeout_seconds: float = Field(default=5.0, description="Deadline for a single JSON-RPC call")
    http_timeout_seconds: float = Field(
        default=8.0, description="Deadline for a single aggregator/bridge HTTP call"
    )
    adapter_timeout_seconds: float = Field(
        default=10.0, description="Deadline for one venue adapter getRoute call"
    )
    discovery_timeout_seconds: float = Field(
        default=25.0, description="Overall deadline for one route discovery request"
    )

    # ======================
    # Quote Verifier
    # ======================
    verifier_concurrency: int = Field(
        default=8, description="Maximum simultaneous outbound quote calls"
    )
    verification_cache_ttl_seconds: float = Field(
        default=30.0, description="TTL for cached getAmountsOut verification results"
    )
    verification_cache_max_entries: int = Field(
        default=500, description="Cache size above which expired entries are evicted"
    )

    # ======================
    # Route Finding
    # ======================
    intermediary_top_k: int = Field(
        default=5, description="Number of priority intermediaries scanned for 2-hop paths"
    )
    cross_chain_strategy: str = Field(
        default="parallel",
        description="Bridgeable token strategy: 'parallel' (best of all) or 'sequential' (first success)",
    )
    enable_multi_hop: bool = Field(
        default=True, description="Run the adapter multi-hop router alongside direct discovery"
    )

    # ======================
    # Quotes
    # ======================
    same_chain_quote_ttl_seconds: int = Field(
        default=60, description="Validity of a single-chain quote"
    )
    cross_chain_quote_ttl_seconds: int = Field(
        default=120, description="Validity of a cross-chain quote"
    )
    default_slippage: float = Field(default=0.5, description="Default slippage tolerance (percent)")
    max_price_impact: float = Field(
        default=50.0, description="Price impact (percent) above which a route is rejected"
    )

    # ======================
    # External APIs
    # ======================
    lifi_api_url: str = Field(default="https://li.quest/v1", description="LiFi API base URL")
    lifi_api_key: Optional[str] = Field(default=None, description="LiFi API key")
    lifi_integrator: str = Field(default="crossroute", description="LiFi integrator id")
    jupiter_api_url: str = Field(
        default="https://quote-api.jup.ag/v6", description="Jupiter quote API base URL"
    )

    # ======================
    # Safety Guards
    # ======================
    dry_run: bool = Field(
        default=True, description="Use simulated venues and bridge instead of live endpoints"
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    def get_rpc_url(self, chain_id: int) -> str:
        """Get RPC URL for a chain id."""
        rpc_map = {
            1: self.eth_rpc_url,
            56: self.bsc_rpc_url,
            137: self.polygon_rpc_url,
            10: self.optimism_rpc_url,
            42161: self.arbitrum_rpc_url,
            8453: self.base_rpc_url,
        }
        return rpc_map.get(chain_id, "")

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "dry_run": self.dry_run,
            "api_host": self.api_host,
            "api_port": self.api_port,
            "rpc": {
                str(chain_id): self.get_rpc_url(chain_id)
                for chain_id in (1, 56, 137, 10, 42161, 8453)
            },
            "verifier": {
                "concurrency": self.verifier_concurrency,
                "cache_ttl": self.verification_cache_ttl_seconds,
                "cache_max_entries": self.verification_cache_max_entries,
            },
            "routing": {
                "intermediary_top_k": self.intermediary_top_k,
                "cross_chain_strategy": self.cross_chain_strategy,
                "multi_hop": self.enable_multi_hop,
                "discovery_timeout": self.discovery_timeout_seconds,
            },
            "lifi": {
                "url": self.lifi_api_url,
                "api_key": "***" if self.lifi_api_key else "(not set)",
            },
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
