"""
Proxy detection heuristics.

Checked in order, first match wins:

1. Minimal proxy (EIP-1167, plus the PUSH0 variant from EIP-7511): the
   runtime bytecode is the fixed clone template, implementation embedded at a
   fixed offset.
2. EIP-1967 implementation slot non-zero: `transparent` when the EIP-1967
   admin slot is also set, otherwise `uups` (upgrade logic lives in the
   implementation, the proxy has no admin).
3. EIP-1822 PROXIABLE slot non-zero: `uups`.
4. The explorer flags the contract as a proxy and reports an implementation:
   `unknown`.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Pattern, Tuple

from .hexutil import normalize_address_optional, storage_word_to_address
from .models import ProxyType, VerifiedSource

logger = logging.getLogger(__name__)

EIP1967_IMPLEMENTATION_SLOT = "0x360894a13ba1a3210667c828492db98dca3e2076cc3735a920a3ca505d382bbc"
EIP1967_ADMIN_SLOT = "0xb53127684a568b3173ae13b9f8a6016e243e63b6e8ee1178d6a717850b5d6103"
EIP1822_PROXIABLE_SLOT = "0xc5f16f0fcc639fa48a6947836d9850f504798523bf8c9a3a87d5876cf622bcf7"

PROXY_STORAGE_SLOTS = (EIP1967_IMPLEMENTATION_SLOT, EIP1967_ADMIN_SLOT, EIP1822_PROXIABLE_SLOT)

MINIMAL_PROXY_PATTERNS: Tuple[Tuple[str, Pattern[str]], ...] = (
    ("eip1167", re.compile(r"^363d3d373d3d3d363d73([0-9a-f]{40})5af43d82803e903d91602b57fd5bf3$")),
    ("eip7511", re.compile(r"^365f5f375f5f365f73([0-9a-f]{40})5af43d5f5f3e5f3d91602a57fd5bf3$")),
)


@dataclass(frozen=True)
class ProxyDetection:
    is_proxy: bool = False
    proxy_type: Optional[str] = None
    implementation: Optional[str] = None
    evidence: List[str] = field(default_factory=list)


def match_minimal_proxy(bytecode: Optional[str]) -> Optional[Tuple[str, str]]:
    """Return (pattern name, implementation address) when bytecode is a clone."""
    if not bytecode:
        return None
    body = bytecode.strip().lower()
    if body.startswith("0x"):
        body = body[2:]
    for name, pattern in MINIMAL_PROXY_PATTERNS:
        match = pattern.match(body)
        if match:
            return name, "0x" + match.group(1)
    return None


class ProxyDetector:
    def detect(self, source: VerifiedSource) -> ProxyDetection:
        minimal = match_minimal_proxy(source.bytecode)
        if minimal:
            pattern, implementation = minimal
            return self._found(
                source,
                ProxyType.MINIMAL,
                implementation,
                [f"runtime bytecode matches {pattern} minimal proxy template"],
            )

        storage = {slot.lower(): word for slot, word in (source.storage or {}).items()}
        implementation = storage_word_to_address(storage.get(EIP1967_IMPLEMENTATION_SLOT))
        if implementation:
            admin = storage_word_to_address(storage.get(EIP1967_ADMIN_SLOT))
            evidence = [f"implementation slot {EIP1967_IMPLEMENTATION_SLOT} -> {implementation}"]
            if admin:
                evidence.append(f"admin slot {EIP1967_ADMIN_SLOT} -> {admin}")
                return self._found(source, ProxyType.TRANSPARENT, implementation, evidence)
            evidence.append("admin slot empty")
            return self._found(source, ProxyType.UUPS, implementation, evidence)

        implementation = storage_word_to_address(storage.get(EIP1822_PROXIABLE_SLOT))
        if implementation:
            return self._found(
                source,
                ProxyType.UUPS,
                implementation,
                [f"PROXIABLE slot {EIP1822_PROXIABLE_SLOT} -> {implementation}"],
            )

        implementation = normalize_address_optional(source.explorer_implementation)
        if source.explorer_proxy or implementation:
            return self._found(
                source,
                ProxyType.UNKNOWN,
                implementation,
                ["explorer Proxy/Implementation fields"],
            )

        return ProxyDetection()

    def _found(
        self,
        source: VerifiedSource,
        proxy_type: str,
        implementation: Optional[str],
        evidence: List[str],
    ) -> ProxyDetection:
        if implementation and implementation.lower() == source.address.lower():
            evidence = evidence + ["implementation points to itself, ignored"]
            implementation = None
        logger.info(
            "Detected %s proxy at %s (implementation=%s)", proxy_type, source.address, implementation
        )
        return ProxyDetection(
            is_proxy=True,
            proxy_type=proxy_type,
            implementation=implementation.lower() if implementation else None,
            evidence=evidence,
        )
