"""
Etherscan/JSON-RPC collaborator tests. HTTP is replaced with MagicMock
sessions, so no network access is needed.
"""

import json
from unittest.mock import MagicMock

import pytest
import requests

from abidecoder.errors import ContractUnverified, InvalidHexInput, TransactionNotFound, TransportFailure
from abidecoder.etherscan_client import EtherscanClient, is_rate_limited
from abidecoder.proxy import EIP1967_ADMIN_SLOT, EIP1967_IMPLEMENTATION_SLOT, PROXY_STORAGE_SLOTS
from abidecoder.rpc_client import RpcClient, RpcError
from abidecoder.sources import EtherscanAbiSource, RpcTransactionSource

from conftest import ADMIN, IMPLEMENTATION, PROXY, TOKEN, TRANSFER_ABI, minimal_proxy_bytecode, storage_word

ZERO_WORD = "0x" + "0" * 64
TX_HASH = "0x" + "cd" * 32


def _response(payload, status_code=200):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status_code} error")
    return response


def _source_payload(abi, name="Token", **extra):
    entry = {"ABI": abi, "ContractName": name, "CompilerVersion": "v0.8.20+commit.a1b79de6", "Proxy": "0", "Implementation": ""}
    entry.update(extra)
    return {"status": "1", "message": "OK", "result": [entry]}


class FakeEtherscanClient:
    def __init__(self, source, code="0x6080", storage=None):
        self.source = source
        self.code = code
        self.storage = storage or {}
        self.storage_reads = []

    def get_contract_source(self, address, chain_id):
        if isinstance(self.source, Exception):
            raise self.source
        return self.source

    def get_code(self, address, chain_id, tag="latest"):
        return {"jsonrpc": "2.0", "id": 1, "result": self.code}

    def get_storage_at(self, address, slot, chain_id, tag="latest"):
        self.storage_reads.append(slot)
        return {"jsonrpc": "2.0", "id": 1, "result": self.storage.get(slot, ZERO_WORD)}


class TestEtherscanAbiSource:
    @pytest.mark.asyncio
    async def test_verified_contract(self):
        client = FakeEtherscanClient(_source_payload(json.dumps(TRANSFER_ABI)))
        source = await EtherscanAbiSource(client).fetch_verified_abi(TOKEN.upper().replace("0X", "0x"), "mainnet")

        assert source.address == TOKEN
        assert source.is_verified is True
        assert json.loads(source.abi) == TRANSFER_ABI
        assert source.contract_name == "Token"
        assert source.compiler.startswith("v0.8.20")
        assert source.bytecode == "0x6080"
        assert set(source.storage) == set(PROXY_STORAGE_SLOTS)

    @pytest.mark.asyncio
    async def test_unverified_marker(self):
        client = FakeEtherscanClient(_source_payload("Contract source code not verified", name=""))
        source = await EtherscanAbiSource(client).fetch_verified_abi(TOKEN, "mainnet")
        assert source.is_verified is False
        assert source.abi == ""

    @pytest.mark.asyncio
    async def test_proxy_storage_and_explorer_fields(self):
        client = FakeEtherscanClient(
            _source_payload("[]", name="TransparentUpgradeableProxy", Proxy="1", Implementation=IMPLEMENTATION),
            storage={
                EIP1967_IMPLEMENTATION_SLOT: storage_word(IMPLEMENTATION),
                EIP1967_ADMIN_SLOT: storage_word(ADMIN),
            },
        )
        source = await EtherscanAbiSource(client).fetch_verified_abi(PROXY, "mainnet")
        assert source.explorer_proxy is True
        assert source.explorer_implementation == IMPLEMENTATION
        assert source.storage[EIP1967_IMPLEMENTATION_SLOT] == storage_word(IMPLEMENTATION)

    @pytest.mark.asyncio
    async def test_minimal_proxy_skips_storage_reads(self):
        client = FakeEtherscanClient(
            _source_payload("Contract source code not verified"), code=minimal_proxy_bytecode(IMPLEMENTATION)
        )
        source = await EtherscanAbiSource(client).fetch_verified_abi(PROXY, "mainnet")
        assert client.storage_reads == []
        assert source.storage == {}

    @pytest.mark.asyncio
    async def test_malformed_storage_word_is_transport_failure(self):
        client = FakeEtherscanClient(
            _source_payload("[]", name="Proxy"),
            storage={EIP1967_IMPLEMENTATION_SLOT: "0xnothex"},
        )
        with pytest.raises(TransportFailure, match="storage word") as excinfo:
            await EtherscanAbiSource(client).fetch_verified_abi(PROXY, "mainnet")
        assert not isinstance(excinfo.value, InvalidHexInput)

    @pytest.mark.asyncio
    async def test_explorer_error_is_transport_failure(self):
        client = FakeEtherscanClient({"status": "0", "message": "NOTOK", "result": "Invalid API Key"})
        with pytest.raises(TransportFailure, match="Invalid API Key"):
            await EtherscanAbiSource(client).fetch_verified_abi(TOKEN, "mainnet")

    @pytest.mark.asyncio
    async def test_request_exception_is_transport_failure(self):
        client = FakeEtherscanClient(requests.ConnectionError("connection refused"))
        with pytest.raises(TransportFailure) as excinfo:
            await EtherscanAbiSource(client).fetch_verified_abi(TOKEN, "mainnet")
        assert not isinstance(excinfo.value, ContractUnverified)

    def test_from_config_requires_api_key(self):
        from abidecoder.config import Config

        with pytest.raises(ValueError, match="ETHERSCAN_API_KEY"):
            EtherscanAbiSource.from_config(Config(api_key=None))
        source = EtherscanAbiSource.from_config(Config(api_key="key"))
        assert source.client.api_key == "key"


class FakeRpcClient:
    def __init__(self, result):
        self.result = result

    def get_transaction_by_hash(self, tx_hash):
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


class TestRpcTransactionSource:
    @pytest.mark.asyncio
    async def test_maps_transaction_fields(self):
        created = []

        def factory(network):
            created.append(network)
            return FakeRpcClient(
                {
                    "hash": TX_HASH,
                    "from": ADMIN,
                    "to": TOKEN,
                    "input": "0xa9059cbb",
                    "value": "0xde0b6b3a7640000",
                    "blockNumber": "0x10",
                    "nonce": "0x2",
                }
            )

        source = RpcTransactionSource(factory)
        tx = await source.fetch_transaction(TX_HASH.upper().replace("0X", "0x"), "eth")
        await source.fetch_transaction(TX_HASH, "mainnet")

        assert created == ["mainnet"]
        assert tx.to == TOKEN
        assert tx.value == 10**18
        assert tx.block_number == 16
        assert tx.nonce == 2
        assert tx.is_contract_creation is False

    @pytest.mark.asyncio
    async def test_creation_transaction(self):
        source = RpcTransactionSource(lambda network: FakeRpcClient({"hash": TX_HASH, "to": None, "input": "0x60"}))
        tx = await source.fetch_transaction(TX_HASH, "mainnet")
        assert tx.is_contract_creation is True

    @pytest.mark.asyncio
    async def test_missing_to_is_creation(self):
        source = RpcTransactionSource(lambda network: FakeRpcClient({"hash": TX_HASH, "input": "0x60"}))
        tx = await source.fetch_transaction(TX_HASH, "mainnet")
        assert tx.is_contract_creation is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize("to", ["0x1234", "", 42])
    async def test_malformed_to_is_transport_failure(self, to):
        source = RpcTransactionSource(lambda network: FakeRpcClient({"hash": TX_HASH, "to": to, "input": "0xa9059cbb"}))
        with pytest.raises(TransportFailure, match="not a valid address"):
            await source.fetch_transaction(TX_HASH, "mainnet")

    @pytest.mark.asyncio
    async def test_not_found(self):
        source = RpcTransactionSource(lambda network: FakeRpcClient(None))
        with pytest.raises(TransactionNotFound):
            await source.fetch_transaction(TX_HASH, "mainnet")

    @pytest.mark.asyncio
    async def test_failures(self):
        source = RpcTransactionSource(lambda network: FakeRpcClient(requests.Timeout("timed out")))
        with pytest.raises(TransportFailure):
            await source.fetch_transaction(TX_HASH, "mainnet")

        source = RpcTransactionSource(lambda network: FakeRpcClient(RpcError("RPC error: code -32000.")))
        with pytest.raises(TransportFailure, match="-32000"):
            await source.fetch_transaction(TX_HASH, "mainnet")

    @pytest.mark.asyncio
    async def test_bad_hash(self):
        source = RpcTransactionSource(lambda network: FakeRpcClient(None))
        with pytest.raises(InvalidHexInput):
            await source.fetch_transaction("0x1234", "mainnet")


class TestEtherscanClient:
    def _client(self, responses):
        client = EtherscanClient(api_key="key", base_url="https://api.etherscan.io/v2/api/", backoff_seconds=0)
        client.session = MagicMock()
        client.session.get.side_effect = responses
        return client

    def test_request_parameters(self):
        client = self._client([_response({"status": "1", "result": []})])
        client.get_storage_at(PROXY, EIP1967_IMPLEMENTATION_SLOT, "1")

        args, kwargs = client.session.get.call_args
        assert args[0] == "https://api.etherscan.io/v2/api"
        assert kwargs["params"]["action"] == "eth_getStorageAt"
        assert kwargs["params"]["position"] == EIP1967_IMPLEMENTATION_SLOT
        assert kwargs["params"]["chainid"] == "1"
        assert kwargs["params"]["apikey"] == "key"

    def test_retries_server_errors_and_rate_limits(self):
        client = self._client(
            [
                _response({}, status_code=502),
                _response({"status": "0", "message": "NOTOK", "result": "Max calls per sec rate limit reached (5/sec)"}),
                _response({"status": "1", "result": "0x6080"}),
            ]
        )
        assert client.get_code(TOKEN, "1")["result"] == "0x6080"
        assert client.session.get.call_count == 3

    def test_gives_up_after_max_retries(self):
        client = self._client([requests.ConnectionError("down")] * 3)
        with pytest.raises(requests.ConnectionError):
            client.get_contract_source(TOKEN, "1")
        assert client.session.get.call_count == 3


class TestRpcClient:
    def _client(self, responses):
        client = RpcClient("https://rpc.example", backoff_seconds=0)
        client.session = MagicMock()
        client.session.post.side_effect = responses
        return client

    def test_get_transaction_by_hash(self):
        client = self._client([_response({"jsonrpc": "2.0", "id": 1, "result": {"hash": TX_HASH}})])
        assert client.get_transaction_by_hash(TX_HASH) == {"hash": TX_HASH}
        payload = client.session.post.call_args.kwargs["json"]
        assert payload["method"] == "eth_getTransactionByHash"
        assert payload["params"] == [TX_HASH]

    def test_rpc_error_is_not_retried(self):
        client = self._client(
            [_response({"jsonrpc": "2.0", "id": 1, "error": {"code": -32602, "message": "invalid argument"}})]
        )
        with pytest.raises(RpcError, match="invalid argument"):
            client.call("eth_getTransactionByHash", ["0x"])
        assert client.session.post.call_count == 1

    def test_rate_limited_then_ok(self):
        client = self._client([_response({}, status_code=429), _response({"jsonrpc": "2.0", "id": 1, "result": None})])
        assert client.get_transaction_by_hash(TX_HASH) is None

    def test_requires_url(self):
        with pytest.raises(ValueError):
            RpcClient("  ")


class TestRateLimitDetection:
    @pytest.mark.parametrize(
        "payload, expected",
        [
            ({"status": "0", "message": "NOTOK", "result": "Max calls per sec rate limit reached (5/sec)"}, True),
            ({"error": {"code": -32005, "message": "Too Many Requests"}}, True),
            ({"status": "1", "message": "OK", "result": []}, False),
            ("rate limit", False),
        ],
    )
    def test_is_rate_limited(self, payload, expected):
        assert is_rate_limited(payload) is expected
