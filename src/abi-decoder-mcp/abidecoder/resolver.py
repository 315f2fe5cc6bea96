import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .cache import AbiCache
from .config import DEFAULT_MAX_PROXY_DEPTH
from .errors import ContractUnverified
from .hexutil import normalize_address
from .models import ContractInfo
from .networks import get_network
from .proxy import ProxyDetector
from .sources import AbiSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Resolution:
    contract: ContractInfo
    cache_used: bool

    def to_dict(self) -> Dict[str, Any]:
        return {"contract": self.contract.to_dict(), "cache_used": self.cache_used}


class ContractResolver:
    """
    Map (address, network) to the ABI that should decode calls to it.

    Proxies are followed to their implementation, whose ABI becomes the
    effective ABI while the ContractInfo keeps the proxy address. The cache is
    written only once a resolution has fully succeeded, so a failed or
    cancelled call leaves it untouched.
    """

    def __init__(
        self,
        source: AbiSource,
        cache: Optional[AbiCache] = None,
        detector: Optional[ProxyDetector] = None,
        max_proxy_depth: int = DEFAULT_MAX_PROXY_DEPTH,
    ) -> None:
        self.source = source
        self.cache = cache if cache is not None else AbiCache()
        self.detector = detector or ProxyDetector()
        self.max_proxy_depth = max(0, int(max_proxy_depth))

    async def resolve(self, address: str, network: Optional[str] = None) -> Resolution:
        normalized_address = normalize_address(address)
        network_id = get_network(network).id
        return await self._resolve(normalized_address, network_id, self.max_proxy_depth)

    async def _resolve(self, address: str, network: str, depth: int) -> Resolution:
        cached = self.cache.get(network, address)
        if cached is not None:
            logger.debug("ABI cache hit for %s on %s", address, network)
            return Resolution(contract=cached, cache_used=True)

        logger.debug("ABI cache miss for %s on %s", address, network)
        source = await self.source.fetch_verified_abi(address, network)
        detection = self.detector.detect(source)

        implementation: Optional[ContractInfo] = None
        if detection.is_proxy and detection.implementation:
            if depth <= 0:
                logger.warning("Proxy depth limit reached at %s; not following %s", address, detection.implementation)
            else:
                implementation = await self._resolve_implementation(detection.implementation, network, depth - 1)

        if implementation is None and not source.is_verified:
            raise ContractUnverified(address, network)

        abi = implementation.abi if implementation is not None else source.abi
        info = ContractInfo(
            address=address,
            network=network,
            abi=abi,
            contract_name=source.contract_name or (implementation.contract_name if implementation else ""),
            is_verified=source.is_verified,
            is_proxy=detection.is_proxy,
            proxy_type=detection.proxy_type,
            implementation_address=detection.implementation if detection.is_proxy else None,
            implementation_name=implementation.contract_name if implementation else None,
            compiler=source.compiler,
        )
        self.cache.put(network, address, info)
        return Resolution(contract=info, cache_used=False)

    async def _resolve_implementation(self, address: str, network: str, depth: int) -> Optional[ContractInfo]:
        try:
            resolution = await self._resolve(address, network, depth)
        except ContractUnverified:
            logger.warning("Implementation %s on %s is not verified; using proxy ABI", address, network)
            return None
        return resolution.contract
