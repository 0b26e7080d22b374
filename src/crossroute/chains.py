"""Supported chains for route discovery.

EVM chains are priced on-chain through V2-style routers and bridged via LiFi.
Solana is reachable only through the Jupiter aggregator.
"""

from dataclasses import dataclass
from typing import Optional

SOLANA_CHAIN_ID = 7565164


@dataclass(frozen=True)
class ChainConfig:
    """Configuration for a blockchain."""

    chain_id: int
    name: str
    symbol: str  # native gas token
    is_evm: bool = True
    lifi_chain_id: Optional[int] = None  # None = not bridgeable through LiFi
    explorer_url: Optional[str] = None


# ======================
# Chain Configurations
# ======================

CHAINS: dict[int, ChainConfig] = {
    1: ChainConfig(
        chain_id=1,
        name="Ethereum",
        symbol="ETH",
        lifi_chain_id=1,
        explorer_url="https://etherscan.io",
    ),
    56: ChainConfig(
        chain_id=56,
        name="BSC",
        symbol="BNB",
        lifi_chain_id=56,
        explorer_url="https://bscscan.com",
    ),
    137: ChainConfig(
        chain_id=137,
        name="Polygon",
        symbol="MATIC",
        lifi_chain_id=137,
        explorer_url="https://polygonscan.com",
    ),
    10: ChainConfig(
        chain_id=10,
        name="Optimism",
        symbol="ETH",
        lifi_chain_id=10,
        explorer_url="https://optimistic.etherscan.io",
    ),
    42161: ChainConfig(
        chain_id=42161,
        name="Arbitrum",
        symbol="ETH",
        lifi_chain_id=42161,
        explorer_url="https://arbiscan.io",
    ),
    8453: ChainConfig(
        chain_id=8453,
        name="Base",
        symbol="ETH",
        lifi_chain_id=8453,
        explorer_url="https://basescan.org",
    ),
    SOLANA_CHAIN_ID: ChainConfig(
        chain_id=SOLANA_CHAIN_ID,
        name="Solana",
        symbol="SOL",
        is_evm=False,
        lifi_chain_id=1151111081099710,
        explorer_url="https://solscan.io",
    ),
}


def get_chain(chain_id: int) -> Optional[ChainConfig]:
    """Get chain configuration by id."""
    return CHAINS.get(chain_id)


def get_chain_name(chain_id: int) -> str:
    """Human readable chain name, falling back to the numeric id."""
    chain = CHAINS.get(chain_id)
    return chain.name if chain else f"Chain {chain_id}"


def is_evm_chain(chain_id: int) -> bool:
    chain = CHAINS.get(chain_id)
    return bool(chain and chain.is_evm)


def get_chain_by_lifi_id(lifi_chain_id: int) -> Optional[ChainConfig]:
    """Reverse lookup from LiFi's chain id to our chain config."""
    for chain in CHAINS.values():
        if chain.lifi_chain_id == lifi_chain_id:
            return chain
    return None
