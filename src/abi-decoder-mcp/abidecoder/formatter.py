"""
Render decoded values as display strings.

Formatting is a display concern: it never raises, anything unexpected turns
into a `<...>` diagnostic string instead.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from .models import (
    AddressValue,
    BoolValue,
    BytesValue,
    DecodedValue,
    IntValue,
    ListValue,
    Parameter,
    StrValue,
    StructValue,
    UIntValue,
)

logger = logging.getLogger(__name__)

INVALID_UTF8_MARKER = " [invalid UTF-8]"
MISSING = "<missing>"


@dataclass(frozen=True)
class DisplayRecord:
    index: int
    name: str
    type: str
    display: str
    value: Optional[DecodedValue] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "name": self.name,
            "type": self.type,
            "display": self.display,
        }


def format_decoded(parameters: Sequence[Parameter], values: Sequence[DecodedValue]) -> List[DisplayRecord]:
    records: List[DisplayRecord] = []
    count = max(len(parameters), len(values))
    for idx in range(count):
        param = parameters[idx] if idx < len(parameters) else None
        value = values[idx] if idx < len(values) else None
        name = (param.name if param is not None else "") or str(idx)
        type_string = _safe_type(param)
        display = format_value(value) if value is not None else MISSING
        records.append(DisplayRecord(index=idx, name=name, type=type_string, display=display, value=value))
    return records


def format_value(value: Any) -> str:
    try:
        return _render(value)
    except Exception as exc:  # pylint: disable=broad-except
        logger.debug("Failed to render %r: %s", value, exc)
        return f"<unrenderable {type(value).__name__}: {exc}>"


def _safe_type(param: Optional[Parameter]) -> str:
    if param is None:
        return "<unknown>"
    try:
        return param.canonical_type
    except Exception:  # pylint: disable=broad-except
        return "<unknown>"


def _render(value: Any) -> str:
    if isinstance(value, AddressValue):
        return "0x" + bytes(value.value).hex().rjust(40, "0")
    if isinstance(value, BoolValue):
        return "true" if value.value else "false"
    if isinstance(value, (UIntValue, IntValue)):
        return str(int(value.value))
    if isinstance(value, BytesValue):
        return "0x" + bytes(value.value).hex()
    if isinstance(value, StrValue):
        return value.value + (INVALID_UTF8_MARKER if value.invalid_utf8 else "")
    if isinstance(value, ListValue):
        return "[" + ", ".join(format_value(item) for item in value.items) + "]"
    if isinstance(value, StructValue):
        return "(" + ", ".join(format_value(item) for _, item in value.fields) + ")"
    return f"<unrenderable {type(value).__name__}>"
