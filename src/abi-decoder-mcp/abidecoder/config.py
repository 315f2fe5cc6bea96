import logging
import os
from dataclasses import dataclass, field
from typing import Dict, Optional

from .networks import DEFAULT_NETWORK, NETWORKS, get_network

DEFAULT_BASE_URL = "https://api.etherscan.io/v2/api"
DEFAULT_CACHE_TTL_SECONDS = 3600
DEFAULT_MAX_PROXY_DEPTH = 3


@dataclass
class Config:
    api_key: Optional[str] = None
    base_url: str = DEFAULT_BASE_URL
    network: str = DEFAULT_NETWORK
    request_timeout: int = 10
    max_retries: int = 3
    backoff_seconds: float = 0.5
    cache_ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS
    max_proxy_depth: int = DEFAULT_MAX_PROXY_DEPTH
    rpc_urls: Dict[str, str] = field(default_factory=dict)
    log_level: str = "WARNING"

    def rpc_url_for(self, network: str) -> str:
        config = get_network(network)
        return self.rpc_urls.get(config.id) or config.rpc_url

    def require_api_key(self) -> str:
        if not self.api_key:
            raise ValueError("ETHERSCAN_API_KEY is required but not set.")
        return self.api_key


def load_config() -> Config:
    """Load configuration from environment variables."""
    api_key = os.getenv("ETHERSCAN_API_KEY") or None
    base_url = os.getenv("ETHERSCAN_BASE_URL", DEFAULT_BASE_URL).rstrip("/")
    network = get_network(os.getenv("NETWORK", DEFAULT_NETWORK)).id
    timeout = int(os.getenv("REQUEST_TIMEOUT", "10"))
    max_retries = int(os.getenv("REQUEST_RETRIES", "3"))
    backoff = float(os.getenv("REQUEST_BACKOFF_SECONDS", "0.5"))
    ttl = int(os.getenv("ABI_CACHE_TTL_SECONDS", str(DEFAULT_CACHE_TTL_SECONDS)))
    max_depth = int(os.getenv("MAX_PROXY_DEPTH", str(DEFAULT_MAX_PROXY_DEPTH)))
    log_level = os.getenv("LOG_LEVEL", "WARNING").strip().upper()

    rpc_urls: Dict[str, str] = {}
    for network_id in NETWORKS:
        override = os.getenv(f"RPC_URL_{network_id.upper()}")
        if override:
            rpc_urls[network_id] = override.strip()
    # RPC_URL applies to the selected default network only
    default_rpc = os.getenv("RPC_URL")
    if default_rpc:
        rpc_urls[network] = default_rpc.strip()

    return Config(
        api_key=api_key,
        base_url=base_url,
        network=network,
        request_timeout=timeout,
        max_retries=max_retries,
        backoff_seconds=backoff,
        cache_ttl_seconds=ttl,
        max_proxy_depth=max_depth,
        rpc_urls=rpc_urls,
        log_level=log_level,
    )


def configure_logging(level: Optional[str] = None) -> None:
    logging.basicConfig(
        level=getattr(logging, (level or "WARNING").upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
