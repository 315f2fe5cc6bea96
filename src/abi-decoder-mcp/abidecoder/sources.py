"""
External collaborators: verified ABI source (Etherscan) and transaction
source (JSON-RPC node).

Both clients are blocking `requests` wrappers; the async methods here run
them in a worker thread and translate transport problems into
TransportFailure so callers can tell them apart from "no ABI exists".
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Protocol

import requests

from .config import Config
from .errors import DecoderError, InvalidAddress, InvalidHexInput, TransactionNotFound, TransportFailure
from .etherscan_client import EtherscanClient
from .hexutil import normalize_address, normalize_address_optional, normalize_tx_hash, storage_word_to_address
from .models import VerifiedSource
from .networks import get_network
from .proxy import PROXY_STORAGE_SLOTS, match_minimal_proxy
from .rpc_client import RpcClient

logger = logging.getLogger(__name__)

UNVERIFIED_MARKERS = ("contract source code not verified", "source code not verified")


class AbiSource(Protocol):
    async def fetch_verified_abi(self, address: str, network: str) -> VerifiedSource:
        ...


@dataclass(frozen=True)
class TransactionDetails:
    hash: str
    network: str
    from_address: Optional[str]
    to: Optional[str]
    input: str
    value: int = 0
    block_number: Optional[int] = None
    nonce: Optional[int] = None

    @property
    def is_contract_creation(self) -> bool:
        return self.to is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hash": self.hash,
            "network": self.network,
            "from": self.from_address,
            "to": self.to,
            "input": self.input,
            "value": str(self.value),
            "block_number": self.block_number,
            "nonce": self.nonce,
        }


class TransactionSource(Protocol):
    async def fetch_transaction(self, tx_hash: str, network: str) -> TransactionDetails:
        ...


class EtherscanAbiSource:
    """Fetch verified ABI plus the on-chain data proxy detection needs."""

    def __init__(self, client: EtherscanClient) -> None:
        self.client = client

    @classmethod
    def from_config(cls, config: Config) -> "EtherscanAbiSource":
        client = EtherscanClient(
            api_key=config.require_api_key(),
            base_url=config.base_url,
            timeout=config.request_timeout,
            max_retries=config.max_retries,
            backoff_seconds=config.backoff_seconds,
        )
        return cls(client)

    async def fetch_verified_abi(self, address: str, network: str) -> VerifiedSource:
        return await asyncio.to_thread(self._fetch, normalize_address(address), network)

    def _fetch(self, address: str, network: str) -> VerifiedSource:
        chain_id = get_network(network).chain_id
        try:
            payload = self.client.get_contract_source(address, chain_id)
            entry = self._extract_source_entry(payload)
            bytecode = self._extract_proxy_result(self.client.get_code(address, chain_id)) or "0x"
            storage: Dict[str, str] = {}
            if bytecode not in ("0x", "0x0") and not match_minimal_proxy(bytecode):
                for slot in PROXY_STORAGE_SLOTS:
                    storage[slot] = self._extract_storage_word(self.client.get_storage_at(address, slot, chain_id), slot)
        except requests.RequestException as exc:
            raise TransportFailure(f"Etherscan request failed for {address}: {exc}") from exc
        except DecoderError:
            raise
        except ValueError as exc:
            raise TransportFailure(str(exc)) from exc

        abi_raw = entry.get("ABI") or ""
        is_verified = self._is_verified_abi(abi_raw)
        proxy_flag = str(entry.get("Proxy", "")).strip().lower() in {"1", "true", "yes"}

        logger.debug("Fetched source for %s on %s (verified=%s)", address, network, is_verified)
        return VerifiedSource(
            address=address,
            network=network,
            abi=abi_raw if is_verified else "",
            contract_name=entry.get("ContractName") or "",
            is_verified=is_verified,
            bytecode=bytecode,
            storage=storage,
            explorer_proxy=proxy_flag,
            explorer_implementation=normalize_address_optional(entry.get("Implementation") or None),
            compiler=entry.get("CompilerVersion") or "",
        )

    def _is_verified_abi(self, abi_raw: str) -> bool:
        if not abi_raw or any(marker in abi_raw.lower() for marker in UNVERIFIED_MARKERS):
            return False
        try:
            return isinstance(json.loads(abi_raw), list)
        except json.JSONDecodeError:
            return False

    def _extract_source_entry(self, payload: Any) -> Dict[str, Any]:
        if not isinstance(payload, dict):
            raise TransportFailure("Unexpected response from Etherscan.")

        status = str(payload.get("status", "")).strip()
        message = payload.get("message", "")
        result = payload.get("result", [])

        if status != "1" or not isinstance(result, list) or not result or not isinstance(result[0], dict):
            detail = ""
            if isinstance(result, str):
                detail = result
            elif isinstance(result, list) and result:
                detail = result[0] if isinstance(result[0], str) else ""
            raise TransportFailure(f"Etherscan error: {detail or message or 'unknown error'}.")

        return result[0]

    def _extract_storage_word(self, payload: Any, slot: str) -> str:
        word = self._extract_proxy_result(payload)
        try:
            storage_word_to_address(word)
        except InvalidHexInput as exc:
            raise TransportFailure(f"Etherscan returned a malformed storage word for slot {slot}.") from exc
        return word

    def _extract_proxy_result(self, payload: Any) -> str:
        if not isinstance(payload, dict):
            raise TransportFailure("Unexpected response from Etherscan.")

        error_obj = payload.get("error")
        if isinstance(error_obj, dict):
            detail = error_obj.get("message") or "unknown error"
            raise TransportFailure(f"Etherscan error: {detail}.")

        result = payload.get("result")
        if isinstance(result, str) and result.startswith("0x"):
            return result
        detail = result if isinstance(result, str) else payload.get("message", "")
        raise TransportFailure(f"Etherscan error: {detail or 'unexpected proxy result'}.")


class RpcTransactionSource:
    """Fetch transactions from the network's JSON-RPC endpoint."""

    def __init__(self, client_factory: Callable[[str], RpcClient]) -> None:
        self._client_factory = client_factory
        self._clients: Dict[str, RpcClient] = {}

    @classmethod
    def from_config(cls, config: Config) -> "RpcTransactionSource":
        def factory(network: str) -> RpcClient:
            return RpcClient(
                config.rpc_url_for(network),
                timeout=config.request_timeout,
                max_retries=config.max_retries,
                backoff_seconds=config.backoff_seconds,
            )

        return cls(factory)

    def _client(self, network: str) -> RpcClient:
        network_id = get_network(network).id
        if network_id not in self._clients:
            self._clients[network_id] = self._client_factory(network_id)
        return self._clients[network_id]

    async def fetch_transaction(self, tx_hash: str, network: str) -> TransactionDetails:
        normalized = normalize_tx_hash(tx_hash)
        client = self._client(network)
        try:
            tx = await asyncio.to_thread(client.get_transaction_by_hash, normalized)
        except requests.RequestException as exc:
            raise TransportFailure(f"RPC request failed for {normalized}: {exc}") from exc
        except ValueError as exc:
            raise TransportFailure(str(exc)) from exc

        if tx is None:
            raise TransactionNotFound(normalized, network)
        return self._map_transaction(tx, normalized, network)

    def _map_transaction(self, tx: Dict[str, Any], tx_hash: str, network: str) -> TransactionDetails:
        def hx(field: str) -> Optional[int]:
            value = tx.get(field)
            if not isinstance(value, str):
                return None
            try:
                return int(value, 16)
            except ValueError as exc:
                raise TransportFailure(f"{field} is not a valid hex value.") from exc

        return TransactionDetails(
            hash=tx.get("hash") or tx_hash,
            network=network,
            from_address=normalize_address_optional(tx.get("from")),
            to=self._recipient(tx),
            input=tx.get("input") or tx.get("data") or "0x",
            value=hx("value") or 0,
            block_number=hx("blockNumber"),
            nonce=hx("nonce"),
        )

    def _recipient(self, tx: Dict[str, Any]) -> Optional[str]:
        # only a missing or null `to` marks contract creation
        to = tx.get("to")
        if to is None:
            return None
        try:
            return normalize_address(to)
        except InvalidAddress as exc:
            raise TransportFailure(f"Transaction `to` field is not a valid address: {to!r}.") from exc
