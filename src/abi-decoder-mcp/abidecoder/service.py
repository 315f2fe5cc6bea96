import json
import logging
from typing import Any, Dict, List, Optional, Sequence, Union

from .abi_parser import parse_abi, parse_signature
from .cache import AbiCache
from .config import Config
from .decoder import decode_calldata, decode_function_result
from .encoder import encode_function_call
from .errors import CreationTransaction, DecoderError
from .formatter import format_decoded
from .hexutil import hex_to_bytes
from .models import AbiDefinition, ContractInfo, DecodedCall, FunctionEntry
from .networks import get_network, list_networks
from .resolver import ContractResolver, Resolution
from .selector import event_topic, selector_from_signature
from .sources import AbiSource, EtherscanAbiSource, RpcTransactionSource, TransactionSource

logger = logging.getLogger(__name__)

AbiInput = Union[str, Sequence[Any]]


class DecoderService:
    """
    Combine ABI parsing, decoding, formatting and contract resolution.

    Three decode modes mirror how call data reaches the decoder:
    manual (ABI + data supplied), transaction (fetch tx, resolve `to`) and
    contract (resolve an address, decode supplied data).
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        abi_source: Optional[AbiSource] = None,
        tx_source: Optional[TransactionSource] = None,
        cache: Optional[AbiCache] = None,
    ) -> None:
        self.config = config or Config()
        self.cache = cache or AbiCache(ttl_seconds=self.config.cache_ttl_seconds)
        self._abi_source = abi_source
        self._tx_source = tx_source
        self._resolver: Optional[ContractResolver] = None

    @property
    def resolver(self) -> ContractResolver:
        if self._resolver is None:
            source = self._abi_source or EtherscanAbiSource.from_config(self.config)
            self._resolver = ContractResolver(
                source,
                cache=self.cache,
                max_proxy_depth=self.config.max_proxy_depth,
            )
        return self._resolver

    @property
    def tx_source(self) -> TransactionSource:
        if self._tx_source is None:
            self._tx_source = RpcTransactionSource.from_config(self.config)
        return self._tx_source

    # --- manual mode -------------------------------------------------------

    def decode_calldata(self, abi: AbiInput, data: str) -> Dict[str, Any]:
        definition = parse_abi(abi)
        decoded = decode_calldata(definition, data)
        return self._decoded_response(decoded)

    # --- fetch mode --------------------------------------------------------

    async def decode_transaction(self, tx_hash: str, network: Optional[str] = None) -> Dict[str, Any]:
        network_id = self._network_id(network)
        transaction = await self.tx_source.fetch_transaction(tx_hash, network_id)
        if transaction.is_contract_creation:
            raise CreationTransaction(transaction.hash)

        logger.debug("Decoding %s against contract %s on %s", transaction.hash, transaction.to, network_id)

        resolution = await self.resolver.resolve(transaction.to, network_id)
        response = self._decode_with_contract(resolution, transaction.input)
        response["transaction"] = transaction.to_dict()
        return response

    # --- contract mode -----------------------------------------------------

    async def decode_contract_call(self, address: str, data: str, network: Optional[str] = None) -> Dict[str, Any]:
        resolution = await self.resolver.resolve(address, self._network_id(network))
        return self._decode_with_contract(resolution, data)

    async def resolve_contract(self, address: str, network: Optional[str] = None) -> Dict[str, Any]:
        resolution = await self.resolver.resolve(address, self._network_id(network))
        response = resolution.to_dict()
        response["functions"] = self.list_functions(resolution.contract.abi)
        return response

    # --- utilities ---------------------------------------------------------

    def list_functions(self, abi: AbiInput) -> List[Dict[str, Any]]:
        definition = parse_abi(abi)
        items: List[Dict[str, Any]] = []
        for entry in definition:
            if entry.kind not in ("function", "event", "error"):
                continue
            item: Dict[str, Any] = {
                "kind": entry.kind,
                "name": entry.name,
                "signature": entry.signature,
            }
            if entry.kind == "event":
                item["topic"] = "0x" + event_topic(entry).hex()
            else:
                item["selector"] = entry.selector_hex
            if entry.state_mutability:
                item["state_mutability"] = entry.state_mutability
            items.append(item)
        return items

    def compute_selector(self, signature: str) -> Dict[str, str]:
        entry = parse_signature(signature)
        return {
            "signature": entry.signature,
            "selector": entry.selector_hex,
            "input_signature": signature,
        }

    def encode_function_data(self, function: str, args: Optional[List[Any]] = None) -> Dict[str, str]:
        selector, data = encode_function_call(function, args or [])
        return {"function": function, "selector": "0x" + selector, "data": data}

    def decode_function_result(self, abi: AbiInput, function: str, data: str) -> Dict[str, Any]:
        """Decode return data for `function` (a name, signature or 0x selector)."""
        definition = parse_abi(abi)
        entry = self._find_function(definition, function)
        values = decode_function_result(entry, data)
        return {
            "function": self._function_info(entry),
            "outputs": [record.to_dict() for record in format_decoded(entry.outputs, values)],
        }

    def networks(self) -> List[Dict[str, str]]:
        return [
            {"id": n.id, "name": n.name, "chain_id": n.chain_id, "currency": n.currency}
            for n in list_networks()
        ]

    # --- helpers -----------------------------------------------------------

    def _network_id(self, network: Optional[str]) -> str:
        return get_network(network or self.config.network).id

    def _decode_with_contract(self, resolution: Resolution, data: str) -> Dict[str, Any]:
        contract = resolution.contract
        decoded = decode_calldata(parse_abi(contract.abi), data)
        response = self._decoded_response(decoded)
        response["contract"] = self._contract_summary(contract)
        response["cache_used"] = resolution.cache_used
        return response

    def _decoded_response(self, decoded: DecodedCall) -> Dict[str, Any]:
        records = format_decoded(decoded.function.inputs, decoded.values)
        return {
            "function": self._function_info(decoded.function),
            "parameters": [record.to_dict() for record in records],
        }

    def _function_info(self, entry: FunctionEntry) -> Dict[str, str]:
        return {
            "name": entry.name,
            "signature": entry.signature,
            "selector": entry.selector_hex,
        }

    def _contract_summary(self, contract: ContractInfo) -> Dict[str, Any]:
        summary = contract.to_dict()
        summary.pop("abi", None)
        try:
            summary["abi_entries"] = len(json.loads(contract.abi))
        except (TypeError, ValueError):
            summary["abi_entries"] = None
        return summary

    def _find_function(self, definition: AbiDefinition, function: str) -> FunctionEntry:
        text = (function or "").strip()
        if text.startswith("0x") and len(text) == 10:
            return definition.find_by_selector(hex_to_bytes(text, "selector"))
        if "(" in text:
            return definition.find_by_selector(selector_from_signature(parse_signature(text).signature))
        matches = definition.find_by_name(text)
        if not matches:
            raise DecoderError(f"Function '{text}' not found in ABI.")
        if len(matches) > 1:
            raise DecoderError(
                f"Function name '{text}' is overloaded; pass a full signature instead: "
                + ", ".join(entry.signature for entry in matches)
            )
        return matches[0]
