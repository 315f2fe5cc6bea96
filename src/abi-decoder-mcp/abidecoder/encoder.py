"""ABI encoder, the inverse of the decoder; used to build call data."""

from typing import Any, List, Sequence, Tuple

from .abi_parser import parse_signature
from .errors import EncodingError
from .hexutil import hex_to_bytes, normalize_address
from .models import (
    WORD_SIZE,
    AbiType,
    AddressType,
    ArrayType,
    BoolType,
    BytesType,
    FixedBytesType,
    IntType,
    StringType,
    TupleType,
    UIntType,
)


def encode_parameters(types: Sequence[AbiType], values: Sequence[Any]) -> bytes:
    if len(types) != len(values):
        raise EncodingError(f"Argument count mismatch: expected {len(types)}, got {len(values)}.")
    return _encode_sequence(list(types), list(values))


def encode_function_call(signature: str, args: Sequence[Any]) -> Tuple[str, str]:
    """Encode selector + arguments; returns (selector hex, call data hex)."""
    entry = parse_signature(signature)
    payload = encode_parameters(entry.input_types, list(args))
    return entry.selector.hex(), "0x" + entry.selector.hex() + payload.hex()


def _pad32(b: bytes) -> bytes:
    if len(b) > WORD_SIZE:
        raise EncodingError("Encoded value exceeds 32 bytes.")
    return b.rjust(WORD_SIZE, b"\x00")


def _uint_word(value: int) -> bytes:
    return value.to_bytes(WORD_SIZE, "big")


def _encode_sequence(types: List[AbiType], values: List[Any]) -> bytes:
    head_parts: List[bytes] = []
    tail_parts: List[bytes] = []
    dynamic_offset = sum(t.head_size for t in types)

    for typ, value in zip(types, values):
        enc = _encode_value(typ, value)
        if typ.dynamic:
            # head contains offset to current tail start
            head_parts.append(_uint_word(dynamic_offset))
            tail_parts.append(enc)
            dynamic_offset += len(enc)
        else:
            head_parts.append(enc)

    return b"".join(head_parts + tail_parts)


def _encode_value(typ: AbiType, value: Any) -> bytes:
    if isinstance(typ, AddressType):
        if isinstance(value, (bytes, bytearray)) and len(value) == 20:
            return _pad32(bytes(value))
        return _pad32(bytes.fromhex(normalize_address(value)[2:]))

    if isinstance(typ, UIntType):
        if not isinstance(value, int) or isinstance(value, bool):
            raise EncodingError(f"{typ} value must be an integer.")
        if value < 0 or value >= 2**typ.bits:
            raise EncodingError(f"{typ} value out of range.")
        return _uint_word(value)

    if isinstance(typ, IntType):
        if not isinstance(value, int) or isinstance(value, bool):
            raise EncodingError(f"{typ} value must be an integer.")
        if value < -(2 ** (typ.bits - 1)) or value > 2 ** (typ.bits - 1) - 1:
            raise EncodingError(f"{typ} value out of range.")
        return (value & (2**256 - 1)).to_bytes(WORD_SIZE, "big")

    if isinstance(typ, BoolType):
        if isinstance(value, bool):
            return _uint_word(int(value))
        if isinstance(value, int) and value in (0, 1):
            return _uint_word(value)
        raise EncodingError("bool value must be bool or 0/1.")

    if isinstance(typ, FixedBytesType):
        data = _to_bytes(value, typ.canonical)
        if len(data) != typ.size:
            raise EncodingError(f"{typ} requires {typ.size} bytes.")
        return data.ljust(WORD_SIZE, b"\x00")

    if isinstance(typ, BytesType):
        return _encode_dynamic_bytes(_to_bytes(value, "bytes"))

    if isinstance(typ, StringType):
        if not isinstance(value, str):
            raise EncodingError("string value must be a string.")
        return _encode_dynamic_bytes(value.encode("utf-8"))

    if isinstance(typ, TupleType):
        if isinstance(value, dict):
            value = [value[f.name] for f in typ.fields]
        if not isinstance(value, (list, tuple)) or len(value) != len(typ.fields):
            raise EncodingError(f"{typ} value must have {len(typ.fields)} components.")
        return _encode_sequence([f.type for f in typ.fields], list(value))

    if isinstance(typ, ArrayType):
        if not isinstance(value, (list, tuple)):
            raise EncodingError("Array value must be a list or tuple.")
        values = list(value)
        if typ.length is not None:
            if len(values) != typ.length:
                raise EncodingError(f"Expected array of length {typ.length}, got {len(values)}.")
            return _encode_sequence([typ.element] * typ.length, values)
        return _uint_word(len(values)) + _encode_sequence([typ.element] * len(values), values)

    raise EncodingError(f"Unsupported ABI type '{typ}'.")


def _encode_dynamic_bytes(data: bytes) -> bytes:
    padded_data = data + b"\x00" * ((WORD_SIZE - (len(data) % WORD_SIZE)) % WORD_SIZE)
    return _uint_word(len(data)) + padded_data


def _to_bytes(value: Any, field: str) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        return hex_to_bytes(value, field)
    raise EncodingError(f"{field} must be hex string or bytes.")
