"""Static token tables used by discovery.

Holds the per-chain intermediary list (with priority and category), the
multi-hop intermediate list, the cross-chain token identity map and known
decimals. All tables can be replaced at construction time.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from crossroute.chains import SOLANA_CHAIN_ID

logger = logging.getLogger(__name__)


class TokenCategory(str, Enum):
    """Role of an intermediary token."""

    NATIVE = "native"  # wrapped native gas token
    STABLE = "stable"
    LST = "lst"  # liquid staking token
    BLUECHIP = "bluechip"


BRIDGEABLE_CATEGORIES = (TokenCategory.NATIVE, TokenCategory.STABLE, TokenCategory.LST)


@dataclass(frozen=True)
class TokenInfo:
    """A known token on one chain."""

    chain_id: int
    address: str
    symbol: str
    decimals: int
    priority: int = 100  # lower = higher priority
    category: TokenCategory = TokenCategory.BLUECHIP


def _t(chain_id, address, symbol, decimals, priority=100, category=TokenCategory.BLUECHIP):
    return TokenInfo(chain_id, address, symbol, decimals, priority, category)


N, S, L, B = (
    TokenCategory.NATIVE,
    TokenCategory.STABLE,
    TokenCategory.LST,
    TokenCategory.BLUECHIP,
)

# ======================
# Intermediaries (same-chain scan, bridgeable set, wrapped native)
# ======================

DEFAULT_INTERMEDIARIES: dict[int, list[TokenInfo]] = {
    56: [
        _t(56, "0xbb4CdB9CBd36B01bD1cBaEBF2De08d9173bc095c", "WBNB", 18, 1, N),
        _t(56, "0x55d398326f99059fF775485246999027B3197955", "USDT", 18, 2, S),
        _t(56, "0xe9e7CEA3DedcA5984780Bafc599bD69ADd087D56", "BUSD", 18, 3, S),
        _t(56, "0x8AC76a51cc950d9822D68b83fE1Ad97B32Cd580d", "USDC", 18, 4, S),
        _t(56, "0x2170Ed0880ac9A755fd29B2688956BD959F933F8", "ETH", 18, 5, B),
    ],
    1: [
        _t(1, "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2", "WETH", 18, 1, N),
        _t(1, "0xdAC17F958D2ee523a2206206994597C13D831ec7", "USDT", 6, 2, S),
        _t(1, "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48", "USDC", 6, 3, S),
        _t(1, "0x6B175474E89094C44Da98b954EedeAC495271d0F", "DAI", 18, 4, S),
        _t(1, "0xae7ab96520DE3A18E5e111B5EaAb095312D7fE84", "stETH", 18, 5, L),
        _t(1, "0x7f39C581F595B53c5cb19bD0b3f8dA6c935E2Ca0", "wstETH", 18, 6, L),
    ],
    137: [
        _t(137, "0x0d500B1d8E8eF31E21C99d1Db9A6444d3ADf1270", "WMATIC", 18, 1, N),
        _t(137, "0xc2132D05D31c914a87C6611C10748AEb04B58e8F", "USDT", 6, 2, S),
        _t(137, "0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174", "USDC", 6, 3, S),
        _t(137, "0x1BFD67037B42Cf73acF2047067bd4F2C47D9BfD6", "WBTC", 8, 4, B),
    ],
    10: [
        _t(10, "0x4200000000000000000000000000000000000006", "WETH", 18, 1, N),
        _t(10, "0x94b008aA00579c1307B0EF2c499aD98a8ce58e58", "USDT", 6, 2, S),
        _t(10, "0x7F5c764cBc14f9669B88837ca1490cCa17c31607", "USDC", 6, 3, S),
        _t(10, "0x1F32b1c2345538c0C6F582fB022929c35a05FeF0", "wstETH", 18, 4, L),
    ],
    42161: [
        _t(42161, "0x82aF49447D8a07e3bd95BD0d56f35241523fBab1", "WETH", 18, 1, N),
        _t(42161, "0xFd086bC7CD5C481DCC9C85ebE478A1C0b69FCbb9", "USDT", 6, 2, S),
        _t(42161, "0xFF970A61A04b1cA14834A43f5dE4533eBDDB5CC8", "USDC", 6, 3, S),
        _t(42161, "0x5979D7b546E38E414F7E9822514be443A4800529", "wstETH", 18, 4, L),
    ],
    8453: [
        _t(8453, "0x4200000000000000000000000000000000000006", "WETH", 18, 1, N),
        _t(8453, "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913", "USDC", 6, 2, S),
        _t(8453, "0x4158734D47Fc9692176B5085E0F52ee0Da5d47F1", "cbETH", 18, 3, L),
    ],
}

# ======================
# Multi-hop intermediates (adapter chaining), stablecoins first
# ======================

DEFAULT_MULTIHOP_INTERMEDIATES: dict[int, list[TokenInfo]] = {
    1: [
        _t(1, "0xdAC17F958D2ee523a2206206994597C13D831ec7", "USDT", 6),
        _t(1, "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48", "USDC", 6),
        _t(1, "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2", "WETH", 18),
        _t(1, "0x6B175474E89094C44Da98b954EedeAC495271d0F", "DAI", 18),
    ],
    56: [
        _t(56, "0x55d398326f99059fF775485246999027B3197955", "USDT", 18),
        _t(56, "0x8AC76a51cc950d9822D68b83fE1Ad97B32Cd580d", "USDC", 18),
        _t(56, "0xbb4CdB9CBd36B01bD1cBaEBF2De08d9173bc095c", "WBNB", 18),
        _t(56, "0xe9e7CEA3DedcA5984780Bafc599bD69ADd087D56", "BUSD", 18),
        _t(56, "0x1AF3F329e8BE154074D8769D1FFa4eE058B1DBc3", "DAI", 18),
    ],
    137: [
        _t(137, "0xc2132D05D31c914a87C6611C10748AEb04B58e8F", "USDT", 6),
        _t(137, "0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174", "USDC", 6),
        _t(137, "0x0d500B1d8E8eF31E21C99d1Db9A6444d3ADf1270", "WMATIC", 18),
        _t(137, "0x8f3Cf7ad23Cd3CaDbD9735AFf958023239c6A063", "DAI", 18),
    ],
    42161: [
        _t(42161, "0xFd086bC7CD5C481DCC9C85ebE478A1C0b69FCbb9", "USDT", 6),
        _t(42161, "0xFF970A61A04b1cA14834A43f5dE4533eBDDB5CC8", "USDC", 6),
        _t(42161, "0x82aF49447D8a07e3bd95BD0d56f35241523fBab1", "WETH", 18),
        _t(42161, "0xDA10009cBd5D07dd0CeCc66161FC93D7c9000da1", "DAI", 18),
    ],
    10: [
        _t(10, "0x94b008aA00579c1307B0EF2c499aD98a8ce58e58", "USDT", 6),
        _t(10, "0x7F5c764cBc14f9669B88837ca1490cCa17c31607", "USDC", 6),
        _t(10, "0x4200000000000000000000000000000000000006", "WETH", 18),
        _t(10, "0xDA10009cBd5D07dd0CeCc66161FC93D7c9000da1", "DAI", 18),
    ],
    8453: [
        _t(8453, "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913", "USDC", 6),
        _t(8453, "0x4200000000000000000000000000000000000006", "WETH", 18),
        _t(8453, "0x50c5725949A6F0c72E6C4a641F24049A917DB0Cb", "DAI", 18),
    ],
    SOLANA_CHAIN_ID: [
        _t(SOLANA_CHAIN_ID, "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v", "USDC", 6),
        _t(SOLANA_CHAIN_ID, "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB", "USDT", 6),
        _t(SOLANA_CHAIN_ID, "So11111111111111111111111111111111111111112", "SOL", 9),
    ],
}

# ======================
# Cross-chain identity map: asset key -> chain id -> address
# ======================

DEFAULT_IDENTITIES: dict[str, dict[int, str]] = {
    "weth": {
        1: "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2",
        10: "0x4200000000000000000000000000000000000006",
        42161: "0x82aF49447D8a07e3bd95BD0d56f35241523fBab1",
        8453: "0x4200000000000000000000000000000000000006",
    },
    "wbnb": {56: "0xbb4CdB9CBd36B01bD1cBaEBF2De08d9173bc095c"},
    "wmatic": {137: "0x0d500B1d8E8eF31E21C99d1Db9A6444d3ADf1270"},
    "usdt": {
        1: "0xdAC17F958D2ee523a2206206994597C13D831ec7",
        56: "0x55d398326f99059fF775485246999027B3197955",
        137: "0xc2132D05D31c914a87C6611C10748AEb04B58e8F",
        10: "0x94b008aA00579c1307B0EF2c499aD98a8ce58e58",
        42161: "0xFd086bC7CD5C481DCC9C85ebE478A1C0b69FCbb9",
        8453: "0xfde4C96c8593536E31F229EA8f37b2ADa2699bb2",
    },
    "usdc": {
        1: "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
        56: "0x8AC76a51cc950d9822D68b83fE1Ad97B32Cd580d",
        137: "0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174",
        10: "0x7F5c764cBc14f9669B88837ca1490cCa17c31607",
        42161: "0xFF970A61A04b1cA14834A43f5dE4533eBDDB5CC8",
        8453: "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
    },
    "wsteth": {
        1: "0x7f39C581F595B53c5cb19bD0b3f8dA6c935E2Ca0",
        10: "0x1F32b1c2345538c0C6F582fB022929c35a05FeF0",
        42161: "0x5979D7b546E38E414F7E9822514be443A4800529",
    },
}

# Bridged representations that map onto another asset's identity
# (source chain id, address) -> asset key
DEFAULT_EQUIVALENCES: dict[tuple[int, str], str] = {
    (56, "0x2170ed0880ac9a755fd29b2688956bd959f933f8"): "weth",  # ETH on BSC
}

# Decimals for tokens that are neither intermediaries nor multi-hop intermediates
EXTRA_TOKENS: list[TokenInfo] = [
    _t(8453, "0xfde4C96c8593536E31F229EA8f37b2ADa2699bb2", "USDT", 6),
    _t(56, "0x7130d2A12B9BCbFAe4f2634d864A1Ee1Ce3Ead9c", "BTCB", 18),
    _t(56, "0x0E09FaBB73Bd3Ade0a17ECC321fD13a19e81cE82", "CAKE", 18),
    _t(1, "0x2260FAC5E5542a773Aa44fBCfeDf7C193bc2C599", "WBTC", 8),
]


class TokenRegistry:
    """Read-only token tables, keyed case-insensitively by address."""

    def __init__(
        self,
        intermediaries: Optional[dict[int, list[TokenInfo]]] = None,
        multihop_intermediates: Optional[dict[int, list[TokenInfo]]] = None,
        identities: Optional[dict[str, dict[int, str]]] = None,
        equivalences: Optional[dict[tuple[int, str], str]] = None,
        extra_tokens: Optional[list[TokenInfo]] = None,
    ):
        self._intermediaries = (
            DEFAULT_INTERMEDIARIES if intermediaries is None else intermediaries
        )
        self._multihop = (
            DEFAULT_MULTIHOP_INTERMEDIATES
            if multihop_intermediates is None
            else multihop_intermediates
        )
        self._identities = DEFAULT_IDENTITIES if identities is None else identities
        self._equivalences = {
            (chain_id, address.lower()): key
            for (chain_id, address), key in (
                DEFAULT_EQUIVALENCES if equivalences is None else equivalences
            ).items()
        }

        self._tokens: dict[tuple[int, str], TokenInfo] = {}
        for token in EXTRA_TOKENS if extra_tokens is None else extra_tokens:
            self._index(token)
        for table in (self._multihop, self._intermediaries):
            for tokens in table.values():
                for token in tokens:
                    self._index(token)

    def _index(self, token: TokenInfo) -> None:
        self._tokens[(token.chain_id, token.address.lower())] = token

    # ======================
    # Lookups
    # ======================

    def get_token(self, chain_id: int, address: str) -> Optional[TokenInfo]:
        return self._tokens.get((chain_id, address.lower()))

    def get_decimals(self, chain_id: int, address: str) -> Optional[int]:
        token = self.get_token(chain_id, address)
        return token.decimals if token else None

    def get_symbol(self, chain_id: int, address: str) -> Optional[str]:
        token = self.get_token(chain_id, address)
        return token.symbol if token else None

    def intermediaries(self, chain_id: int, top_k: Optional[int] = None) -> list[TokenInfo]:
        """Intermediary tokens sorted by priority, optionally truncated to top_k."""
        tokens = sorted(self._intermediaries.get(chain_id, []), key=lambda t: t.priority)
        return tokens[:top_k] if top_k is not None else tokens

    def multihop_intermediates(self, chain_id: int) -> list[TokenInfo]:
        return list(self._multihop.get(chain_id, []))

    def wrapped_native(self, chain_id: int) -> Optional[TokenInfo]:
        for token in self.intermediaries(chain_id):
            if token.category == TokenCategory.NATIVE:
                return token
        return None

    def bridgeable_tokens(self, chain_id: int) -> list[TokenInfo]:
        """Native first, then stablecoins, then liquid staking tokens."""
        return [t for t in self.intermediaries(chain_id) if t.category in BRIDGEABLE_CATEGORIES]

    def chains(self) -> list[int]:
        return sorted(set(self._intermediaries) | set(self._multihop))

    # ======================
    # Cross-chain identity
    # ======================

    def corresponding_token(
        self, address: str, from_chain_id: int, to_chain_id: int
    ) -> Optional[str]:
        """Resolve the same asset on another chain.

        Wrapped native maps to the destination's wrapped native, then the
        identity map is consulted, then the curated equivalence table.
        """
        address_lower = address.lower()

        source_native = self.wrapped_native(from_chain_id)
        if source_native and source_native.address.lower() == address_lower:
            dest_native = self.wrapped_native(to_chain_id)
            if dest_native:
                return dest_native.address

        for chain_map in self._identities.values():
            source = chain_map.get(from_chain_id)
            if source and source.lower() == address_lower:
                dest = chain_map.get(to_chain_id)
                if dest:
                    return dest

        key = self._equivalences.get((from_chain_id, address_lower))
        if key:
            dest = self._identities.get(key, {}).get(to_chain_id)
            if dest:
                return dest

        logger.debug(
            f"No cross-chain mapping for {address} from chain {from_chain_id} to {to_chain_id}"
        )
        return None
