import logging
import time
from typing import Any, Dict

import requests

logger = logging.getLogger(__name__)

RATE_LIMIT_MARKERS = ("rate limit", "max calls per sec", "too many requests")


def is_rate_limited(payload: Any) -> bool:
    """True when an Etherscan reply is a throttling notice instead of data."""
    if not isinstance(payload, dict):
        return False
    texts = [payload.get("message"), payload.get("result")]
    error_obj = payload.get("error")
    if isinstance(error_obj, dict):
        texts += [error_obj.get("message"), error_obj.get("data")]
    haystack = " ".join(text for text in texts if isinstance(text, str)).lower()
    return any(marker in haystack for marker in RATE_LIMIT_MARKERS)


class EtherscanClient:
    """
    Etherscan V2 endpoints needed for ABI resolution: verified source, runtime
    code and storage slots. The chain is chosen per call via `chainid`.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str,
        timeout: int = 10,
        max_retries: int = 3,
        backoff_seconds: float = 0.5,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max(1, int(max_retries))
        self.backoff_seconds = backoff_seconds
        self.session = requests.Session()
        self.session.headers.update({"X-API-Key": api_key})

    def get_contract_source(self, address: str, chain_id: str) -> Dict[str, Any]:
        return self._get(chain_id, module="contract", action="getsourcecode", address=address)

    def get_code(self, address: str, chain_id: str, tag: str = "latest") -> Dict[str, Any]:
        return self._get(chain_id, module="proxy", action="eth_getCode", address=address, tag=tag)

    def get_storage_at(self, address: str, slot: str, chain_id: str, tag: str = "latest") -> Dict[str, Any]:
        return self._get(
            chain_id,
            module="proxy",
            action="eth_getStorageAt",
            address=address,
            position=slot,
            tag=tag,
        )

    def _backoff(self, attempt: int) -> None:
        time.sleep(self.backoff_seconds * attempt)

    def _get(self, chain_id: str, **params: Any) -> Dict[str, Any]:
        query = {**params, "chainid": chain_id, "apikey": self.api_key}
        logger.debug("Etherscan %s.%s (chainid=%s)", params.get("module"), params.get("action"), chain_id)

        for attempt in range(1, self.max_retries + 1):
            final = attempt == self.max_retries
            try:
                response = self.session.get(self.base_url, params=query, timeout=self.timeout)
                if response.status_code >= 500 and not final:
                    self._backoff(attempt)
                    continue
                response.raise_for_status()
                payload = response.json()
            except requests.RequestException:
                if final:
                    raise
                self._backoff(attempt)
                continue
            except ValueError as exc:
                if final:
                    raise ValueError("Failed to parse response from Etherscan.") from exc
                self._backoff(attempt)
                continue

            if is_rate_limited(payload) and not final:
                logger.debug("Etherscan rate limit hit (attempt %d), backing off.", attempt)
                self._backoff(attempt)
                continue
            return payload

        raise RuntimeError("Etherscan request loop ended without a response.")
