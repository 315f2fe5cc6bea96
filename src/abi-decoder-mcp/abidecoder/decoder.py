"""
ABI call-data decoder.

Layout follows the ABI head/tail rule: static values sit inline in the head,
dynamic values store a 32-byte offset in the head that is relative to the
start of the enclosing tuple (or array body). Every read is bounds checked
against the payload; nothing is ever zero padded implicitly.
"""

import logging
from typing import Sequence, Tuple, Union

from .errors import ReadLimitExceeded, TruncatedPayload, ValueOutOfRange
from .hexutil import hex_to_bytes
from .models import (
    WORD_SIZE,
    AbiDefinition,
    AbiType,
    AddressType,
    AddressValue,
    ArrayType,
    BoolType,
    BoolValue,
    BytesType,
    BytesValue,
    DecodedCall,
    DecodedValue,
    FixedBytesType,
    FunctionEntry,
    IntType,
    IntValue,
    ListValue,
    StringType,
    StrValue,
    StructValue,
    TupleType,
    UIntType,
    UIntValue,
)
from .selector import SELECTOR_SIZE

logger = logging.getLogger(__name__)

CallData = Union[str, bytes, bytearray]

# bytes touched per payload byte before aliased offsets are treated as hostile
READ_LIMIT_FACTOR = 8


def decode_calldata(definition: AbiDefinition, data: CallData) -> DecodedCall:
    """Match the selector against the ABI and decode the function arguments."""
    raw = hex_to_bytes(data, "call data")
    if len(raw) < SELECTOR_SIZE:
        raise TruncatedPayload(0, SELECTOR_SIZE, len(raw), "function selector")

    entry = definition.find_by_selector(raw[:SELECTOR_SIZE])
    logger.debug("Selector 0x%s matched %s", raw[:SELECTOR_SIZE].hex(), entry.signature)
    values = decode_parameters(entry.input_types, raw[SELECTOR_SIZE:])
    return DecodedCall(function=entry, values=values)


def decode_function_result(entry: FunctionEntry, data: CallData) -> Tuple[DecodedValue, ...]:
    """Decode return data (no selector) against the function's outputs."""
    return decode_parameters(entry.output_types, hex_to_bytes(data, "return data"))


def decode_parameters(types: Sequence[AbiType], payload: bytes) -> Tuple[DecodedValue, ...]:
    return _PayloadDecoder(bytes(payload)).sequence(types, 0)


class _PayloadDecoder:
    def __init__(self, payload: bytes) -> None:
        self.payload = payload
        self.bytes_read = 0
        self.read_limit = READ_LIMIT_FACTOR * max(len(payload), WORD_SIZE)

    # --- raw reads ---------------------------------------------------------

    def read(self, offset: int, size: int, typ: str) -> bytes:
        available = max(len(self.payload) - offset, 0)
        if offset < 0 or offset + size > len(self.payload):
            raise TruncatedPayload(offset, size, available, typ)
        self.bytes_read += size
        if self.bytes_read > self.read_limit:
            raise ReadLimitExceeded(self.read_limit, len(self.payload), typ)
        return self.payload[offset : offset + size]

    def word(self, offset: int, typ: str) -> bytes:
        return self.read(offset, WORD_SIZE, typ)

    def uint_word(self, offset: int, typ: str) -> int:
        return int.from_bytes(self.word(offset, typ), "big")

    # --- structure ---------------------------------------------------------

    def sequence(self, types: Sequence[AbiType], base: int) -> Tuple[DecodedValue, ...]:
        """Decode consecutive head slots starting at `base`; offsets are relative to `base`."""
        values = []
        head = base
        for typ in types:
            if typ.dynamic:
                offset = self.uint_word(head, typ.canonical)
                values.append(self.value(typ, base + offset))
            else:
                values.append(self.value(typ, head))
            head += typ.head_size
        return tuple(values)

    def value(self, typ: AbiType, start: int) -> DecodedValue:
        if isinstance(typ, UIntType):
            return self._uint(typ, start)
        if isinstance(typ, IntType):
            return self._int(typ, start)
        if isinstance(typ, AddressType):
            return self._address(typ, start)
        if isinstance(typ, BoolType):
            return self._bool(typ, start)
        if isinstance(typ, FixedBytesType):
            return BytesValue(value=self.word(start, typ.canonical)[: typ.size], size=typ.size)
        if isinstance(typ, BytesType):
            return BytesValue(value=self._length_prefixed(typ, start), size=None)
        if isinstance(typ, StringType):
            return self._string(typ, start)
        if isinstance(typ, TupleType):
            values = self.sequence([f.type for f in typ.fields], start)
            return StructValue(fields=tuple((f.name, v) for f, v in zip(typ.fields, values)))
        if isinstance(typ, ArrayType):
            return self._array(typ, start)
        raise TypeError(f"Unhandled ABI type descriptor {typ!r}")

    def _array(self, typ: ArrayType, start: int) -> ListValue:
        if typ.length is not None:
            self._check_room(typ, start, typ.length)
            return ListValue(items=self.sequence([typ.element] * typ.length, start))

        length = self.uint_word(start, typ.canonical)
        body = start + WORD_SIZE
        self._check_room(typ, body, length)
        return ListValue(items=self.sequence([typ.element] * length, body))

    def _check_room(self, typ: ArrayType, body: int, count: int) -> None:
        # each element needs at least its head slot, so an oversized length is
        # rejected before any element is materialized
        needed = count * typ.element.head_size
        available = len(self.payload) - body
        if body < 0 or needed > available:
            raise TruncatedPayload(body, needed, max(available, 0), typ.canonical)

    def _length_prefixed(self, typ: AbiType, start: int) -> bytes:
        length = self.uint_word(start, typ.canonical)
        return self.read(start + WORD_SIZE, length, typ.canonical)

    def _string(self, typ: StringType, start: int) -> StrValue:
        raw = self._length_prefixed(typ, start)
        try:
            return StrValue(value=raw.decode("utf-8"), invalid_utf8=False)
        except UnicodeDecodeError:
            logger.debug("Invalid UTF-8 in string at offset %d", start)
            return StrValue(value=raw.decode("utf-8", errors="replace"), invalid_utf8=True)

    # --- scalars -----------------------------------------------------------

    def _uint(self, typ: UIntType, start: int) -> UIntValue:
        value = self.uint_word(start, typ.canonical)
        if value >> typ.bits:
            raise ValueOutOfRange(typ.canonical, start, f"{value} exceeds {typ.bits} bits")
        return UIntValue(value=value, bits=typ.bits)

    def _int(self, typ: IntType, start: int) -> IntValue:
        value = int.from_bytes(self.word(start, typ.canonical), "big", signed=True)
        bound = 1 << (typ.bits - 1)
        if value < -bound or value >= bound:
            raise ValueOutOfRange(typ.canonical, start, f"{value} exceeds {typ.bits} bits")
        return IntValue(value=value, bits=typ.bits)

    def _address(self, typ: AddressType, start: int) -> AddressValue:
        word = self.word(start, typ.canonical)
        if any(word[:12]):
            raise ValueOutOfRange(typ.canonical, start, "high 12 bytes are not zero")
        return AddressValue(value=word[12:])

    def _bool(self, typ: BoolType, start: int) -> BoolValue:
        value = self.uint_word(start, typ.canonical)
        if value not in (0, 1):
            raise ValueOutOfRange(typ.canonical, start, f"{value} is not 0 or 1")
        return BoolValue(value=bool(value))
