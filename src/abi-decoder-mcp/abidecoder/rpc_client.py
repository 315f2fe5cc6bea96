import logging
import time
from typing import Any, Dict, List, Optional

import requests

logger = logging.getLogger(__name__)

RETRYABLE_STATUS = 429


class RpcError(ValueError):
    """Error object returned by the node; deterministic, so never retried."""


class RpcClient:
    """JSON-RPC 2.0 over HTTP POST, used to look up transactions by hash."""

    def __init__(
        self,
        rpc_url: str,
        timeout: int = 10,
        max_retries: int = 3,
        backoff_seconds: float = 0.5,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        url = (rpc_url or "").strip()
        if not url:
            raise ValueError("rpc_url must be a non-empty string.")

        self.rpc_url = url
        self.timeout = timeout
        self.max_retries = max(1, int(max_retries))
        self.backoff_seconds = float(backoff_seconds)
        self.session = requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})
        if headers:
            self.session.headers.update(dict(headers))
        self._next_id = 1

    def get_transaction_by_hash(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        result = self.call("eth_getTransactionByHash", [tx_hash])
        if result is not None and not isinstance(result, dict):
            raise ValueError("eth_getTransactionByHash returned an unexpected result.")
        return result

    def call(self, method: str, params: Optional[List[Any]] = None) -> Any:
        if not isinstance(method, str) or not method.strip():
            raise ValueError("method must be a non-empty string.")
        params = [] if params is None else params
        if not isinstance(params, list):
            raise ValueError("params must be a list.")

        body = {"jsonrpc": "2.0", "id": self._next_id, "method": method, "params": params}
        self._next_id += 1
        logger.debug("RPC %s via %s", method, self.rpc_url)

        for attempt in range(1, self.max_retries + 1):
            final = attempt == self.max_retries
            try:
                response = self.session.post(self.rpc_url, json=body, timeout=self.timeout)
                if (response.status_code == RETRYABLE_STATUS or response.status_code >= 500) and not final:
                    self._backoff(attempt)
                    continue
                response.raise_for_status()
                data = response.json()
            except requests.RequestException:
                if final:
                    raise
                self._backoff(attempt)
                continue
            except ValueError as exc:
                if final:
                    raise ValueError("Failed to parse JSON-RPC response.") from exc
                self._backoff(attempt)
                continue
            return self._unwrap(data)

        raise RuntimeError("RPC request loop ended without a response.")

    def _backoff(self, attempt: int) -> None:
        time.sleep(self.backoff_seconds * attempt)

    @staticmethod
    def _unwrap(data: Any) -> Any:
        if not isinstance(data, dict):
            raise ValueError("Unexpected JSON-RPC response (non-object).")

        error_obj = data.get("error")
        if isinstance(error_obj, dict):
            parts = [f"code {error_obj['code']}"] if error_obj.get("code") is not None else []
            parts += [str(error_obj[key]) for key in ("message", "data") if error_obj.get(key)]
            raise RpcError(f"RPC error: {': '.join(parts) or 'unknown error'}.")

        if "result" not in data:
            raise ValueError("Unexpected JSON-RPC response (missing result).")
        return data["result"]
