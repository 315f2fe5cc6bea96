from typing import Iterable

from eth_utils import keccak

from .models import AbiType, FunctionEntry

SELECTOR_SIZE = 4


def canonical_signature(entry: FunctionEntry) -> str:
    """Build `name(type1,type2,...)` from canonical input type spellings."""
    return signature_from_types(entry.name, (param.type for param in entry.inputs))


def signature_from_types(name: str, types: Iterable[AbiType]) -> str:
    return f"{name}({','.join(t.canonical for t in types)})"


def selector_from_signature(signature: str) -> bytes:
    return keccak(text=signature)[:SELECTOR_SIZE]


def compute_selector(entry: FunctionEntry) -> bytes:
    return selector_from_signature(canonical_signature(entry))


def event_topic(entry: FunctionEntry) -> bytes:
    """Full 32-byte keccak of the signature, as used for event topic0."""
    return keccak(text=canonical_signature(entry))
