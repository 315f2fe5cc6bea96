"""
Shared fixtures and in-memory collaborators for the decoder test suite.
"""

import asyncio
import json
from typing import Dict, List, Optional

import pytest

from abidecoder.errors import TransactionNotFound
from abidecoder.models import VerifiedSource
from abidecoder.sources import TransactionDetails

TOKEN = "0x742d35cc6634c0532925a3b8d91b94e8a72c3b31"
PROXY = "0x1111111111111111111111111111111111111111"
IMPLEMENTATION = "0x2222222222222222222222222222222222222222"
ADMIN = "0x3333333333333333333333333333333333333333"

TRANSFER_ABI = [
    {
        "type": "function",
        "name": "transfer",
        "inputs": [
            {"name": "to", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "outputs": [{"name": "", "type": "bool"}],
        "stateMutability": "nonpayable",
    }
]

TRANSFER_DATA = (
    "0xa9059cbb"
    "000000000000000000000000742d35cc6634c0532925a3b8d91b94e8a72c3b31"
    "0000000000000000000000000000000000000000000000000de0b6b3a7640000"
)

PROXY_ADMIN_ABI = [
    {"type": "function", "name": "upgradeTo", "inputs": [{"name": "impl", "type": "address"}], "outputs": []},
]


def word(value: int) -> str:
    """Hex of a single 32-byte big-endian word."""
    return value.to_bytes(32, "big").hex()


def minimal_proxy_bytecode(implementation: str) -> str:
    return "0x363d3d373d3d3d363d73" + implementation[2:] + "5af43d82803e903d91602b57fd5bf3"


def storage_word(address: str) -> str:
    return "0x" + address[2:].rjust(64, "0")


class FakeAbiSource:
    """Serves VerifiedSource records from a dict and counts fetches."""

    def __init__(self, sources: Optional[Dict[str, VerifiedSource]] = None) -> None:
        self.sources = dict(sources or {})
        self.calls: List[str] = []
        self.error: Optional[Exception] = None
        self.gate: Optional[asyncio.Event] = None

    def add(self, address: str, abi=None, name: str = "", verified: bool = True, **kwargs) -> None:
        self.sources[address.lower()] = VerifiedSource(
            address=address.lower(),
            network="mainnet",
            abi=json.dumps(abi) if abi is not None else "",
            contract_name=name,
            is_verified=verified,
            **kwargs,
        )

    async def fetch_verified_abi(self, address: str, network: str) -> VerifiedSource:
        self.calls.append(address)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.sources[address.lower()]


class FakeTransactionSource:
    def __init__(self) -> None:
        self.transactions: Dict[str, TransactionDetails] = {}

    def add(self, tx_hash: str, to: Optional[str], data: str) -> None:
        self.transactions[tx_hash] = TransactionDetails(
            hash=tx_hash,
            network="mainnet",
            from_address=ADMIN,
            to=to,
            input=data,
            value=0,
            block_number=19000000,
            nonce=7,
        )

    async def fetch_transaction(self, tx_hash: str, network: str) -> TransactionDetails:
        try:
            return self.transactions[tx_hash]
        except KeyError:
            raise TransactionNotFound(tx_hash, network) from None


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def abi_source() -> FakeAbiSource:
    return FakeAbiSource()


@pytest.fixture
def tx_source() -> FakeTransactionSource:
    return FakeTransactionSource()
