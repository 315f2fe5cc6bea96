import re
from typing import Any, Optional

from .errors import InvalidAddress, InvalidHexInput

ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")
TX_HASH_PATTERN = re.compile(r"^0x[0-9a-f]{64}$")
_HEX_BODY = re.compile(r"[0-9a-fA-F]*")


def hex_to_bytes(value: Any, field: str = "data") -> bytes:
    """Decode a hex string with optional 0x prefix; odd length is rejected."""
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if not isinstance(value, str):
        raise InvalidHexInput(f"{field} must be a hex string.")
    candidate = value.strip()
    if candidate[:2] in ("0x", "0X"):
        candidate = candidate[2:]
    if not _HEX_BODY.fullmatch(candidate):
        raise InvalidHexInput(f"{field} must be a hex string.")
    if len(candidate) % 2 != 0:
        raise InvalidHexInput(f"{field} has an odd number of hex digits.")
    return bytes.fromhex(candidate)


def normalize_address(address: Any) -> str:
    if not isinstance(address, str):
        raise InvalidAddress("Address must be a string.")

    candidate = address.strip()
    if not candidate.startswith("0x"):
        candidate = f"0x{candidate}"

    if not ADDRESS_PATTERN.match(candidate):
        raise InvalidAddress("Invalid address format. Expected 0x-prefixed 40 hex characters.")

    return candidate.lower()


def normalize_address_optional(address: Any) -> Optional[str]:
    if address is None:
        return None
    try:
        return normalize_address(str(address))
    except InvalidAddress:
        return None


def normalize_tx_hash(tx_hash: Any) -> str:
    if not isinstance(tx_hash, str):
        raise InvalidHexInput("tx_hash must be a string.")
    candidate = tx_hash.strip().lower()
    if not candidate.startswith("0x"):
        candidate = f"0x{candidate}"
    if not TX_HASH_PATTERN.match(candidate):
        raise InvalidHexInput("tx_hash must be 0x-prefixed 64 hex characters.")
    return candidate


def storage_word_to_address(word: Optional[str]) -> Optional[str]:
    """Last 20 bytes of a storage word as an address, None for an empty slot."""
    if not word or not isinstance(word, str):
        return None
    body = word.strip().lower()
    if body.startswith("0x"):
        body = body[2:]
    if not _HEX_BODY.fullmatch(body) or len(body) > 64:
        raise InvalidHexInput("Invalid storage word.")
    body = body.rjust(64, "0")
    if int(body, 16) == 0:
        return None
    return f"0x{body[-40:]}"
