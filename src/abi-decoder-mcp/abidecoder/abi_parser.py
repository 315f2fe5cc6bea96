"""
ABI JSON -> AbiDefinition.

Every parameter type string is turned into an AbiType descriptor up front;
a single unsupported type rejects the whole document.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from .errors import MalformedAbiJson, UnsupportedType
from .models import (
    FUNCTION_KINDS,
    AbiDefinition,
    AbiType,
    AddressType,
    ArrayType,
    BoolType,
    BytesType,
    FixedBytesType,
    FunctionEntry,
    IntType,
    Parameter,
    StringType,
    TupleField,
    TupleType,
    UIntType,
)

logger = logging.getLogger(__name__)

_DIMENSION_RE = re.compile(r"\[([0-9]*)\]$")
_SIZED_RE = re.compile(r"^(uint|int|bytes)([0-9]+)$")


def parse_abi(raw: Union[str, bytes, Sequence[Any]]) -> AbiDefinition:
    """Parse ABI JSON text (or an already-decoded list) into an AbiDefinition."""
    if isinstance(raw, (str, bytes, bytearray)):
        text = raw.decode("utf-8") if isinstance(raw, (bytes, bytearray)) else raw
        if not text.strip():
            raise MalformedAbiJson("ABI is empty.")
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise MalformedAbiJson(f"Invalid ABI JSON: {exc.msg} (line {exc.lineno}, column {exc.colno}).") from exc
    else:
        data = raw

    if not isinstance(data, list):
        raise MalformedAbiJson("ABI must be a JSON array of entries.")

    entries = [_parse_entry(item, idx) for idx, item in enumerate(data)]
    definition = AbiDefinition(entries)
    if definition.collisions:
        logger.warning(
            "ABI contains colliding selectors: %s",
            ", ".join("0x" + sel.hex() for sel in definition.collisions),
        )
    logger.debug("Parsed ABI with %d entries (%d functions).", len(entries), len(definition.functions))
    return definition


def _parse_entry(item: Any, idx: int) -> FunctionEntry:
    if not isinstance(item, dict):
        raise MalformedAbiJson(f"ABI entry {idx} must be an object.")

    kind = item.get("type")
    if not isinstance(kind, str) or not kind:
        raise MalformedAbiJson(f"ABI entry {idx} is missing required field 'type'.")
    if kind not in FUNCTION_KINDS:
        raise MalformedAbiJson(f"ABI entry {idx} has unknown type '{kind}'.")

    if kind == "function":
        if not isinstance(item.get("name"), str) or not item.get("name"):
            raise MalformedAbiJson(f"Function entry {idx} is missing required field 'name'.")
        if "inputs" not in item:
            raise MalformedAbiJson(f"Function entry {idx} ('{item['name']}') is missing required field 'inputs'.")

    name = item.get("name") or ""
    if not isinstance(name, str):
        raise MalformedAbiJson(f"ABI entry {idx} has a non-string name.")

    inputs = _parse_parameters(item.get("inputs"), f"{name or kind}.inputs")
    outputs = _parse_parameters(item.get("outputs"), f"{name or kind}.outputs")
    mutability = item.get("stateMutability")

    return FunctionEntry(
        kind=kind,
        name=name,
        inputs=inputs,
        outputs=outputs,
        state_mutability=mutability if isinstance(mutability, str) else None,
        anonymous=bool(item.get("anonymous", False)),
    )


def _parse_parameters(raw: Any, where: str) -> Tuple[Parameter, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise MalformedAbiJson(f"{where} must be an array.")
    return tuple(_parse_parameter(param, f"{where}[{idx}]") for idx, param in enumerate(raw))


def _parse_parameter(raw: Any, where: str) -> Parameter:
    if not isinstance(raw, dict):
        raise MalformedAbiJson(f"{where} must be an object.")
    typ = raw.get("type")
    if not isinstance(typ, str) or not typ.strip():
        raise MalformedAbiJson(f"{where} is missing required field 'type'.")
    name = raw.get("name") or ""
    if not isinstance(name, str):
        raise MalformedAbiJson(f"{where} has a non-string name.")
    internal = raw.get("internalType")
    return Parameter(
        name=name,
        type=parse_type(typ, raw.get("components")),
        indexed=bool(raw.get("indexed", False)),
        internal_type=internal if isinstance(internal, str) else None,
    )


def parse_type(type_string: str, components: Optional[List[Dict[str, Any]]] = None) -> AbiType:
    """
    Turn an ABI type string (plus `components` for tuples) into a descriptor.

    Array suffixes are applied innermost first, so `uint8[2][]` becomes a
    dynamic array of `uint8[2]`.
    """
    base, dimensions = split_array_dimensions(type_string)
    element = _parse_base(base, components, type_string)
    for dim in dimensions:
        element = ArrayType(element=element, length=dim)
    return element


def split_array_dimensions(type_string: str) -> Tuple[str, List[Optional[int]]]:
    base = type_string.strip()
    dims: List[Optional[int]] = []
    while base.endswith("]"):
        match = _DIMENSION_RE.search(base)
        if not match:
            raise UnsupportedType(type_string, "malformed array suffix")
        size = match.group(1)
        if size == "":
            dims.insert(0, None)
        else:
            length = int(size)
            if length <= 0:
                raise UnsupportedType(type_string, "fixed array length must be > 0")
            dims.insert(0, length)
        base = base[: match.start()]
    if "[" in base or "]" in base:
        raise UnsupportedType(type_string, "malformed array suffix")
    return base, dims


def _parse_base(base: str, components: Any, type_string: str) -> AbiType:
    if base == "address":
        return AddressType()
    if base == "bool":
        return BoolType()
    if base == "string":
        return StringType()
    if base == "bytes":
        return BytesType()
    if base == "byte":
        return FixedBytesType(size=1)
    if base == "uint":
        return UIntType(bits=256)
    if base == "int":
        return IntType(bits=256)
    if base == "tuple":
        return _parse_tuple(components, type_string)

    match = _SIZED_RE.match(base)
    if match:
        prefix, size_text = match.group(1), match.group(2)
        if size_text.startswith("0"):
            raise UnsupportedType(type_string, "size must not have leading zeros")
        size = int(size_text)
        try:
            if prefix == "uint":
                return UIntType(bits=size)
            if prefix == "int":
                return IntType(bits=size)
            return FixedBytesType(size=size)
        except UnsupportedType as exc:
            raise UnsupportedType(type_string, exc.reason) from exc

    raise UnsupportedType(type_string)


def _parse_tuple(components: Any, type_string: str) -> TupleType:
    if not isinstance(components, list) or not components:
        raise UnsupportedType(type_string, "tuple requires a non-empty 'components' array")
    fields = []
    for idx, comp in enumerate(components):
        param = _parse_parameter(comp, f"{type_string}.components[{idx}]")
        fields.append(TupleField(name=param.name, type=param.type))
    return TupleType(fields=tuple(fields))


_NAME_RE = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")


def parse_signature(signature: str) -> FunctionEntry:
    """
    Parse a human signature such as `transfer(address,uint)` into a function
    entry with unnamed inputs. Tuples are written inline as `(t1,t2)`.
    """
    text = (signature or "").strip()
    if text.startswith("function "):
        text = text[len("function ") :].strip()
    if "(" not in text or not text.endswith(")"):
        raise MalformedAbiJson("function must be in the form name(type1,type2,...)")
    name, rest = text.split("(", 1)
    name = name.strip()
    if not _NAME_RE.match(name):
        raise MalformedAbiJson(f"Invalid function name '{name}'.")
    inputs = tuple(Parameter(name="", type=_parse_signature_type(t)) for t in _split_top_level(rest[:-1]))
    return FunctionEntry(kind="function", name=name, inputs=inputs)


def _split_top_level(params: str) -> List[str]:
    if not params.strip():
        return []
    parts: List[str] = []
    depth = 0
    buf = ""
    for ch in params:
        if ch == "," and depth == 0:
            parts.append(buf.strip())
            buf = ""
            continue
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth < 0:
                raise MalformedAbiJson("Unbalanced parentheses in signature.")
        buf += ch
    if depth != 0:
        raise MalformedAbiJson("Unbalanced parentheses in signature.")
    parts.append(buf.strip())
    for part in parts:
        if not part:
            raise MalformedAbiJson("Empty type in function signature.")
    return parts


def _parse_signature_type(text: str) -> AbiType:
    # drop an optional parameter name / data location, e.g. "address to"
    text = text.strip()
    if not text.startswith("("):
        text = text.split()[0]
        return parse_type(text)

    depth = 0
    close = -1
    for idx, ch in enumerate(text):
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                close = idx
                break
    if close < 0:
        raise MalformedAbiJson(f"Unbalanced parentheses in '{text}'.")

    inner = _split_top_level(text[1:close])
    suffix = text[close + 1 :].split()[0] if text[close + 1 :].strip() else ""
    _, dims = split_array_dimensions("tuple" + suffix)
    element: AbiType = TupleType(
        fields=tuple(TupleField(name="", type=_parse_signature_type(part)) for part in inner)
    )
    for dim in dims:
        element = ArrayType(element=element, length=dim)
    return element
