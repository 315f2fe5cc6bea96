from dataclasses import dataclass
from typing import Dict, List, Optional

from .errors import UnknownNetwork

DEFAULT_NETWORK = "mainnet"


@dataclass(frozen=True)
class NetworkConfig:
    id: str
    name: str
    chain_id: str
    currency: str
    rpc_url: str


NETWORKS: Dict[str, NetworkConfig] = {
    "mainnet": NetworkConfig("mainnet", "Ethereum Mainnet", "1", "ETH", "https://ethereum-rpc.publicnode.com"),
    "sepolia": NetworkConfig(
        "sepolia", "Sepolia Testnet", "11155111", "ETH", "https://ethereum-sepolia-rpc.publicnode.com"
    ),
    "holesky": NetworkConfig(
        "holesky", "Holesky Testnet", "17000", "ETH", "https://ethereum-holesky-rpc.publicnode.com"
    ),
    "arbitrum": NetworkConfig("arbitrum", "Arbitrum One", "42161", "ETH", "https://arbitrum-one-rpc.publicnode.com"),
    "optimism": NetworkConfig("optimism", "OP Mainnet", "10", "ETH", "https://optimism-rpc.publicnode.com"),
    "base": NetworkConfig("base", "Base", "8453", "ETH", "https://base-rpc.publicnode.com"),
    "polygon": NetworkConfig("polygon", "Polygon PoS", "137", "POL", "https://polygon-bor-rpc.publicnode.com"),
    "bsc": NetworkConfig("bsc", "BNB Smart Chain", "56", "BNB", "https://bsc-rpc.publicnode.com"),
    "avalanche": NetworkConfig(
        "avalanche", "Avalanche C-Chain", "43114", "AVAX", "https://avalanche-c-chain-rpc.publicnode.com"
    ),
}

_ALIASES = {
    "eth": "mainnet",
    "ethereum": "mainnet",
    "homestead": "mainnet",
    "arb": "arbitrum",
    "arb1": "arbitrum",
    "arbitrum-one": "arbitrum",
    "op": "optimism",
    "matic": "polygon",
    "bnb": "bsc",
    "avax": "avalanche",
}


def get_network(network: Optional[str]) -> NetworkConfig:
    """Resolve a network id, alias or numeric chain id."""
    normalized = (network or DEFAULT_NETWORK).strip().lower()
    normalized = _ALIASES.get(normalized, normalized)
    if normalized in NETWORKS:
        return NETWORKS[normalized]
    if normalized.isdigit():
        for config in NETWORKS.values():
            if config.chain_id == normalized:
                return config

    allowed = ", ".join(sorted(NETWORKS.keys()) + ["<chain_id>"])
    raise UnknownNetwork(f"Unknown network '{network}'. Supported: {allowed}.")


def list_networks() -> List[NetworkConfig]:
    return list(NETWORKS.values())
