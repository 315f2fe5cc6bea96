from dataclasses import asdict, dataclass, field
from functools import cached_property
from typing import Any, Dict, List, Optional, Tuple

from .errors import SelectorCollision, UnknownSelector, UnsupportedType

WORD_SIZE = 32

FUNCTION_KINDS = ("function", "constructor", "fallback", "receive", "event", "error")


# --- type descriptors -------------------------------------------------------


@dataclass(frozen=True)
class AbiType:
    """
    Base of the closed set of ABI type descriptors.

    `canonical`, `dynamic` and `head_size` are derived once when the descriptor
    is built, so the decoder never re-inspects type strings.
    """

    canonical: str = field(init=False, repr=False, compare=False)
    dynamic: bool = field(init=False, repr=False, compare=False)
    head_size: int = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        self._validate()
        object.__setattr__(self, "canonical", self._spell())
        object.__setattr__(self, "dynamic", self._is_dynamic())
        object.__setattr__(self, "head_size", WORD_SIZE if self.dynamic else self._static_size())

    def _validate(self) -> None:
        return None

    def _spell(self) -> str:
        raise NotImplementedError

    def _is_dynamic(self) -> bool:
        return False

    def _static_size(self) -> int:
        return WORD_SIZE

    def __str__(self) -> str:
        return self.canonical


@dataclass(frozen=True)
class AddressType(AbiType):
    def _spell(self) -> str:
        return "address"


@dataclass(frozen=True)
class BoolType(AbiType):
    def _spell(self) -> str:
        return "bool"


def _check_bits(prefix: str, bits: int) -> None:
    if not isinstance(bits, int) or bits < 8 or bits > 256 or bits % 8 != 0:
        raise UnsupportedType(f"{prefix}{bits}", "bit width must be a multiple of 8 in 8..256")


@dataclass(frozen=True)
class UIntType(AbiType):
    bits: int = 256

    def _validate(self) -> None:
        _check_bits("uint", self.bits)

    def _spell(self) -> str:
        return f"uint{self.bits}"


@dataclass(frozen=True)
class IntType(AbiType):
    bits: int = 256

    def _validate(self) -> None:
        _check_bits("int", self.bits)

    def _spell(self) -> str:
        return f"int{self.bits}"


@dataclass(frozen=True)
class FixedBytesType(AbiType):
    size: int = 32

    def _validate(self) -> None:
        if not isinstance(self.size, int) or self.size < 1 or self.size > 32:
            raise UnsupportedType(f"bytes{self.size}", "size must be between 1 and 32")

    def _spell(self) -> str:
        return f"bytes{self.size}"


@dataclass(frozen=True)
class BytesType(AbiType):
    def _spell(self) -> str:
        return "bytes"

    def _is_dynamic(self) -> bool:
        return True


@dataclass(frozen=True)
class StringType(AbiType):
    def _spell(self) -> str:
        return "string"

    def _is_dynamic(self) -> bool:
        return True


@dataclass(frozen=True)
class ArrayType(AbiType):
    element: AbiType
    length: Optional[int] = None

    def _validate(self) -> None:
        if not isinstance(self.element, AbiType):
            raise UnsupportedType("[]", "array element type missing")
        if self.length is not None and self.length <= 0:
            raise UnsupportedType(f"{self.element.canonical}[{self.length}]", "fixed array length must be > 0")

    def _spell(self) -> str:
        suffix = "" if self.length is None else str(self.length)
        return f"{self.element.canonical}[{suffix}]"

    def _is_dynamic(self) -> bool:
        return self.length is None or self.element.dynamic

    def _static_size(self) -> int:
        return self.element.head_size * (self.length or 0)


@dataclass(frozen=True)
class TupleField:
    name: str
    type: AbiType


@dataclass(frozen=True)
class TupleType(AbiType):
    fields: Tuple[TupleField, ...] = ()

    def _validate(self) -> None:
        if not self.fields:
            raise UnsupportedType("tuple", "tuple must declare at least one component")

    def _spell(self) -> str:
        return "(" + ",".join(f.type.canonical for f in self.fields) + ")"

    def _is_dynamic(self) -> bool:
        return any(f.type.dynamic for f in self.fields)

    def _static_size(self) -> int:
        return sum(f.type.head_size for f in self.fields)


# --- ABI entries ------------------------------------------------------------


@dataclass(frozen=True)
class Parameter:
    name: str
    type: AbiType
    indexed: bool = False
    internal_type: Optional[str] = None

    @property
    def canonical_type(self) -> str:
        return self.type.canonical


@dataclass(frozen=True)
class FunctionEntry:
    kind: str
    name: str = ""
    inputs: Tuple[Parameter, ...] = ()
    outputs: Tuple[Parameter, ...] = ()
    state_mutability: Optional[str] = None
    anonymous: bool = False

    @cached_property
    def signature(self) -> str:
        from .selector import canonical_signature

        return canonical_signature(self)

    @cached_property
    def selector(self) -> bytes:
        from .selector import compute_selector

        return compute_selector(self)

    @property
    def selector_hex(self) -> str:
        return "0x" + self.selector.hex()

    @property
    def input_types(self) -> List[AbiType]:
        return [param.type for param in self.inputs]

    @property
    def output_types(self) -> List[AbiType]:
        return [param.type for param in self.outputs]


class AbiDefinition:
    """Ordered ABI entries plus a selector table over the `function` entries."""

    def __init__(self, entries: List[FunctionEntry]) -> None:
        self.entries: Tuple[FunctionEntry, ...] = tuple(entries)
        self._table: Dict[bytes, List[FunctionEntry]] = {}
        for entry in self.functions:
            self._table.setdefault(entry.selector, []).append(entry)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)

    @property
    def functions(self) -> List[FunctionEntry]:
        return [entry for entry in self.entries if entry.kind == "function"]

    @property
    def collisions(self) -> Dict[bytes, List[str]]:
        return {
            selector: [entry.signature for entry in entries]
            for selector, entries in self._table.items()
            if len(entries) > 1
        }

    def selectors(self) -> List[bytes]:
        return list(self._table.keys())

    def find_by_selector(self, selector: bytes) -> FunctionEntry:
        candidates = self._table.get(bytes(selector))
        if not candidates:
            raise UnknownSelector(bytes(selector))
        if len(candidates) > 1:
            raise SelectorCollision(bytes(selector), [entry.signature for entry in candidates])
        return candidates[0]

    def find_by_name(self, name: str) -> List[FunctionEntry]:
        return [entry for entry in self.functions if entry.name == name]


# --- decoded values ---------------------------------------------------------


class DecodedValue:
    """Base of the decoded value tree."""

    def to_python(self) -> Any:
        """Plain Python form, in the shape the encoder accepts."""
        return getattr(self, "value")


@dataclass(frozen=True)
class AddressValue(DecodedValue):
    value: bytes

    @property
    def hex(self) -> str:
        return "0x" + self.value.hex()

    def to_python(self) -> str:
        return self.hex


@dataclass(frozen=True)
class BoolValue(DecodedValue):
    value: bool


@dataclass(frozen=True)
class UIntValue(DecodedValue):
    value: int
    bits: int = 256


@dataclass(frozen=True)
class IntValue(DecodedValue):
    value: int
    bits: int = 256


@dataclass(frozen=True)
class BytesValue(DecodedValue):
    value: bytes
    size: Optional[int] = None  # None for dynamic `bytes`


@dataclass(frozen=True)
class StrValue(DecodedValue):
    value: str
    invalid_utf8: bool = False


@dataclass(frozen=True)
class ListValue(DecodedValue):
    items: Tuple[DecodedValue, ...] = ()

    def __len__(self) -> int:
        return len(self.items)

    def to_python(self) -> List[Any]:
        return [item.to_python() for item in self.items]


@dataclass(frozen=True)
class StructValue(DecodedValue):
    fields: Tuple[Tuple[str, DecodedValue], ...] = ()

    def get(self, name: str) -> Optional[DecodedValue]:
        for field_name, value in self.fields:
            if field_name == name:
                return value
        return None

    def to_python(self) -> Tuple[Any, ...]:
        return tuple(value.to_python() for _, value in self.fields)


@dataclass(frozen=True)
class DecodedCall:
    function: FunctionEntry
    values: Tuple[DecodedValue, ...]


# --- resolved contract metadata ---------------------------------------------


class ProxyType:
    MINIMAL = "minimal"
    TRANSPARENT = "transparent"
    UUPS = "uups"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ContractInfo:
    address: str
    network: str
    abi: str
    contract_name: str = ""
    is_verified: bool = True
    is_proxy: bool = False
    proxy_type: Optional[str] = None
    implementation_address: Optional[str] = None
    implementation_name: Optional[str] = None
    compiler: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class VerifiedSource:
    """What the ABI-source collaborator returns for one address."""

    address: str
    network: str
    abi: str
    contract_name: str = ""
    is_verified: bool = False
    bytecode: str = "0x"
    storage: Dict[str, str] = field(default_factory=dict)
    explorer_proxy: bool = False
    explorer_implementation: Optional[str] = None
    compiler: str = ""
