import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from .models import ContractInfo

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 3600


@dataclass(frozen=True)
class _Entry:
    info: ContractInfo
    stored_at: float


class AbiCache:
    """In-memory ContractInfo cache keyed by network+address, with lazy TTL expiry."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = float(ttl_seconds)
        self._clock = clock
        self._lock = threading.Lock()
        self._memory: Dict[Tuple[str, str], _Entry] = {}

    def _key(self, network: str, address: str) -> Tuple[str, str]:
        return (network or "").strip().lower(), (address or "").strip().lower()

    def _expired(self, entry: _Entry, now: float) -> bool:
        return (now - entry.stored_at) >= self.ttl_seconds

    def get(self, network: str, address: str) -> Optional[ContractInfo]:
        key = self._key(network, address)
        with self._lock:
            entry = self._memory.get(key)
            if entry is None:
                return None
            if self._expired(entry, self._clock()):
                del self._memory[key]
                logger.debug("Cache entry expired for %s:%s", *key)
                return None
            return entry.info

    def put(self, network: str, address: str, info: ContractInfo) -> None:
        key = self._key(network, address)
        entry = _Entry(info=info, stored_at=self._clock())
        with self._lock:
            self._memory[key] = entry

    def invalidate(self, network: str, address: str) -> bool:
        with self._lock:
            return self._memory.pop(self._key(network, address), None) is not None

    def clear(self) -> None:
        with self._lock:
            self._memory.clear()

    def purge_expired(self) -> int:
        now = self._clock()
        with self._lock:
            stale = [key for key, entry in self._memory.items() if self._expired(entry, now)]
            for key in stale:
                del self._memory[key]
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._memory)
