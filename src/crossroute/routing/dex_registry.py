"""Registry of V2-style DEX deployments per chain.

Every DEX listed here exposes getAmountsOut(uint256, address[]) on its router.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

# Uniswap V2 router/factory on Ethereum mainnet
UNISWAP_V2_ROUTER = "0x7a250d5630B4cF539739dF2C5dAcb4c659F2488D"
UNISWAP_V2_FACTORY = "0x5C69bEe701ef814a2B6a3EDD4B1652CB9cc5aA6f"


@dataclass(frozen=True)
class DexConfig:
    """A DEX router deployment on one chain."""

    dex_id: str
    name: str
    chain_id: int
    router_address: str
    factory_address: str
    priority: int  # lower = tried first
    version: str = "v2"
    fee_bps: int = 30


DEFAULT_DEXES: list[DexConfig] = [
    DexConfig(
        dex_id="pancakeswap",
        name="PancakeSwap",
        chain_id=56,
        router_address="0x10ED43C718714eb63d5aA57B78B54704E256024E",
        factory_address="0xcA143Ce32Fe78f1f7019d7d551a6402fC5350c73",
        priority=5,
        fee_bps=25,
    ),
    DexConfig(
        dex_id="uniswap",
        name="Uniswap",
        chain_id=1,
        router_address=UNISWAP_V2_ROUTER,
        factory_address=UNISWAP_V2_FACTORY,
        priority=10,
    ),
    DexConfig(
        dex_id="sushiswap",
        name="SushiSwap",
        chain_id=1,
        router_address="0xd9e1cE17f2641f24aE83637ab66a2cca9C378B9F",
        factory_address="0xC0AEe478e3658e2610c5F7A4A2E1777cE9e4f2Ac",
        priority=20,
    ),
    DexConfig(
        dex_id="quickswap",
        name="QuickSwap",
        chain_id=137,
        router_address="0xa5E0829CaCEd8fFDD4De3c43696c57F7D7A678ff",
        factory_address="0x5757371414417b8C6CAad45bAeF941aBc7d3Ab32",
        priority=15,
    ),
    # Uniswap V2 L2 deployments use their own router/factory addresses
    DexConfig(
        dex_id="uniswap",
        name="Uniswap",
        chain_id=10,
        router_address="0x4A7b5Da61326A6379179b40d00F57E5bbDC962c2",
        factory_address="0x0c3c1c532F1e39EdF36BE9Fe0bE1410313E074Bf",
        priority=10,
    ),
    DexConfig(
        dex_id="uniswap",
        name="Uniswap",
        chain_id=42161,
        router_address="0x4752ba5DBc23f44D87826276BF6Fd6b1C372aD24",
        factory_address="0xf1D7CC64Fb4452F05c498126312eBE29f30Fbcf9",
        priority=10,
    ),
    DexConfig(
        dex_id="uniswap",
        name="Uniswap",
        chain_id=8453,
        router_address="0x4752ba5DBc23f44D87826276BF6Fd6b1C372aD24",
        factory_address="0x8909Dc15e40173Ff4699343b6eB8132c65e18eC6",
        priority=10,
    ),
]


class DexRegistry:
    """Lookup of DEX deployments by chain and id."""

    def __init__(self, dexes: Optional[Iterable[DexConfig]] = None):
        self._dexes: dict[tuple[int, str], DexConfig] = {}
        for dex in DEFAULT_DEXES if dexes is None else dexes:
            self._dexes[(dex.chain_id, dex.dex_id)] = dex

    def get(self, chain_id: int, dex_id: str) -> Optional[DexConfig]:
        return self._dexes.get((chain_id, dex_id))

    def for_chain(self, chain_id: int) -> list[DexConfig]:
        """DEXes on a chain, ordered by priority."""
        dexes = [d for d in self._dexes.values() if d.chain_id == chain_id]
        return sorted(dexes, key=lambda d: (d.priority, d.dex_id))

    def primary(self, chain_id: int) -> Optional[DexConfig]:
        """Highest-priority DEX on a chain."""
        dexes = self.for_chain(chain_id)
        return dexes[0] if dexes else None

    def dex_ids(self) -> list[str]:
        """Distinct DEX ids across all chains."""
        return sorted({dex_id for _, dex_id in self._dexes})

    def chains_for(self, dex_id: str) -> set[int]:
        return {chain_id for chain_id, registered in self._dexes if registered == dex_id}

    def supports_chain(self, chain_id: int) -> bool:
        return any(d.chain_id == chain_id for d in self._dexes.values())

    def protocol_name(self, dex_id: str) -> str:
        """Display name for a DEX id."""
        for dex in self._dexes.values():
            if dex.dex_id == dex_id:
                return dex.name
        return dex_id
