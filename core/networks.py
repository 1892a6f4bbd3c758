"""Network lookup table.

Every chain the farm touches is described once here.  Free-form names
coming from configuration or from the exchange (``"Arbitrum One"``,
``"zkSync Era"``, ``"op"`` ...) go through :func:`normalize_network_name`
first, which yields a canonical key or ``None`` for unsupported names.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional


class UnsupportedNetworkError(ValueError):
    """Raised when a network name has no entry in :data:`NETWORKS`."""


@dataclass(frozen=True)
class NetworkDescriptor:
    """Static facts about one chain.

    Attributes:
        key: Canonical network key (also the key of ``rpc_urls``).
        chain_id: EIP-155 chain id.
        explorer_tx_url: Explorer prefix; append the tx hash.
        okx_chain: OKX network name, ``None`` if OKX cannot withdraw there.
    """

    key: str
    chain_id: int
    explorer_tx_url: str
    okx_chain: Optional[str] = None

    def tx_link(self, tx_hash: str) -> str:
        return f"{self.explorer_tx_url}/{tx_hash}"


SETTLEMENT_NETWORK = "Ethereum"
VAULT_NETWORK = "Berachain"

NETWORKS: Dict[str, NetworkDescriptor] = {
    "Ethereum": NetworkDescriptor(
        "Ethereum", 1, "https://etherscan.io/tx", "ERC20",
    ),
    "Arb": NetworkDescriptor(
        "Arb", 42161, "https://arbiscan.io/tx", "Arbitrum One",
    ),
    "Base": NetworkDescriptor(
        "Base", 8453, "https://basescan.org/tx", "Base",
    ),
    "Linea": NetworkDescriptor(
        "Linea", 59144, "https://lineascan.build/tx", "Linea",
    ),
    "Op": NetworkDescriptor(
        "Op", 10, "https://optimistic.etherscan.io/tx", "Optimism",
    ),
    "zkSyncEra": NetworkDescriptor(
        "zkSyncEra", 324, "https://explorer.zksync.io/tx", "zkSync Era",
    ),
    "Berachain": NetworkDescriptor(
        "Berachain", 80084, "https://bartio.beratrail.io/tx",
    ),
}

# Networks funds may be bridged from toward the settlement chain
BRIDGE_SOURCE_NETWORKS: List[str] = ["Arb", "Base", "Linea", "Op", "zkSyncEra"]

_ALIASES: Dict[str, str] = {
    "ethereum": "Ethereum",
    "eth": "Ethereum",
    "mainnet": "Ethereum",
    "erc20": "Ethereum",
    "arb": "Arb",
    "arbitrum": "Arb",
    "arbitrum one": "Arb",
    "arbone": "Arb",
    "base": "Base",
    "linea": "Linea",
    "op": "Op",
    "optimism": "Op",
    "zksyncera": "zkSyncEra",
    "zksync era": "zkSyncEra",
    "zksync": "zkSyncEra",
    "berachain": "Berachain",
    "bartio": "Berachain",
}


def normalize_network_name(name: Optional[str]) -> Optional[str]:
    """Map a free-form network name to its canonical key.

    Matching ignores case and repeated whitespace.

    Returns:
        Canonical key, or ``None`` when the name is not supported.
    """
    if not name:
        return None
    cleaned = " ".join(str(name).split()).lower()
    return _ALIASES.get(cleaned)


def get_network(name: str) -> NetworkDescriptor:
    """Resolve *name* (any alias) to its :class:`NetworkDescriptor`.

    Raises:
        UnsupportedNetworkError: If the name is not recognized.
    """
    key = normalize_network_name(name)
    if key is None:
        raise UnsupportedNetworkError(f"Unsupported network: {name}")
    return NETWORKS[key]
