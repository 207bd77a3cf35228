"""
Typed message definitions and the message registry.

Every message is an immutable (frozen) dataclass deriving from ``Message``.
Its shape is the ordered tuple of ``(field_name, type_name)`` pairs of its
dataclass fields. Field values are validated on construction, so a message
that exists is always complete and well-typed.

Encoding is deterministic and little-endian:

    u16 name length | name (UTF-8) | u16 field count |
    per field: u8 type tag | value

with float64 as an 8-byte IEEE-754 double, int64 as an 8-byte signed
integer, bool as one byte and string as a u32 length plus UTF-8 bytes.
"""
import keyword
import struct
import threading
from dataclasses import dataclass, fields, is_dataclass, make_dataclass
from functools import lru_cache
from typing import Any, Dict, Iterable, List, Tuple, Type, Union

import numpy as np

from nodebus.utils.failures import (
    DuplicateDefinition, InvalidField, InvalidName, SchemaMismatch, UnknownMessageType,
)


FLOAT64 = "float64"
INT64 = "int64"
BOOL = "bool"
STRING = "string"

FIELD_TYPES: Dict[str, type] = {
    FLOAT64: float,
    INT64: int,
    BOOL: bool,
    STRING: str,
}
_PY_TO_NAME = {py_type: name for name, py_type in FIELD_TYPES.items()}
_TAGS = {FLOAT64: 1, INT64: 2, BOOL: 3, STRING: 4}

_INT64_MIN = -(2 ** 63)
_INT64_MAX = 2 ** 63 - 1

Schema = Tuple[Tuple[str, str], ...]
FieldDefs = Iterable[Tuple[str, Union[str, type]]]


def field_type_name(field_type: Union[str, type]) -> str:
    """Normalise a python type or type name to one of the supported type names."""
    if isinstance(field_type, str):
        if field_type in FIELD_TYPES:
            return field_type
    elif field_type in _PY_TO_NAME:
        return _PY_TO_NAME[field_type]
    raise InvalidField(f"Unsupported field type: {field_type!r}")


@lru_cache(maxsize=None)
def schema_of(cls: type) -> Schema:
    """Ordered (field name, type name) pairs of a message class."""
    return tuple((f.name, field_type_name(f.type)) for f in fields(cls))


def _coerce(owner: str, name: str, type_name: str, value: Any) -> Any:
    """Validate one field value against its declared type."""
    if type_name == FLOAT64:
        if isinstance(value, (bool, np.bool_)) or not isinstance(value, (int, float, np.integer, np.floating)):
            raise InvalidField(f"{owner}.{name} expects float64, got {type(value).__name__}")
        try:
            return float(value)
        except OverflowError:
            raise InvalidField(f"{owner}.{name} out of float64 range") from None

    if type_name == INT64:
        if isinstance(value, (bool, np.bool_)) or not isinstance(value, (int, np.integer)):
            raise InvalidField(f"{owner}.{name} expects int64, got {type(value).__name__}")
        value = int(value)
        if not _INT64_MIN <= value <= _INT64_MAX:
            raise InvalidField(f"{owner}.{name} out of int64 range: {value}")
        return value

    if type_name == BOOL:
        if not isinstance(value, (bool, np.bool_)):
            raise InvalidField(f"{owner}.{name} expects bool, got {type(value).__name__}")
        return bool(value)

    if not isinstance(value, str):
        raise InvalidField(f"{owner}.{name} expects string, got {type(value).__name__}")
    try:
        value.encode("utf-8")
    except UnicodeEncodeError as e:
        raise InvalidField(f"{owner}.{name} is not valid UTF-8 text: {e.reason}") from None
    return value


@dataclass(frozen=True)
class Message:
    """Base class of every message type."""

    def __post_init__(self):
        owner = type(self).__name__
        for name, type_name in schema_of(type(self)):
            object.__setattr__(self, name, _coerce(owner, name, type_name, getattr(self, name)))

    @classmethod
    def type_name(cls) -> str:
        return cls.__name__

    def to_dict(self) -> Dict[str, Any]:
        """Field values in declaration order."""
        return {name: getattr(self, name) for name, _ in schema_of(type(self))}


# ─── Built-in messages ───────────────────────────────────────────────────

@dataclass(frozen=True)
class Text(Message):
    """A plain string payload."""
    data: str


@dataclass(frozen=True)
class Vector3(Message):
    """A point or direction in 3D space."""
    x: float
    y: float
    z: float

    def as_array(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z], dtype=np.float64)

    @classmethod
    def from_array(cls, values) -> "Vector3":
        arr = np.asarray(values, dtype=np.float64).reshape(-1)
        if arr.shape != (3,):
            raise InvalidField(f"Vector3 needs exactly 3 values, got {arr.size}")
        return cls(x=arr[0], y=arr[1], z=arr[2])


@dataclass(frozen=True)
class ColorNumber(Message):
    """A color name paired with a numeric reading."""
    color: str
    number: float


# ─── Registry ────────────────────────────────────────────────────────────

class _Reader:
    """Sequential reader over an encoded payload."""

    def __init__(self, data: bytes):
        self.data = data
        self.offset = 0

    def unpack(self, fmt: str) -> Any:
        (value,) = struct.unpack_from(fmt, self.data, self.offset)
        self.offset += struct.calcsize(fmt)
        return value

    def string(self, length_fmt: str) -> str:
        length = self.unpack(length_fmt)
        end = self.offset + length
        if end > len(self.data):
            raise SchemaMismatch(f"String of {length} bytes runs past end of payload")
        raw = self.data[self.offset:end]
        self.offset = end
        return raw.decode("utf-8")

    def value(self, type_name: str) -> Any:
        if type_name == FLOAT64:
            return self.unpack("<d")
        if type_name == INT64:
            return self.unpack("<q")
        if type_name == BOOL:
            return self.unpack("<?")
        return self.string("<I")

    @property
    def remaining(self) -> int:
        return len(self.data) - self.offset


def _pack_string(value: str, length_fmt: str) -> bytes:
    raw = value.encode("utf-8")
    return struct.pack(length_fmt, len(raw)) + raw


class MessageRegistry:
    """
    Name -> message class table.

    Registration is idempotent for identical shapes: defining a name again
    with the same fields returns the class already registered.
    """

    def __init__(self):
        self._types: Dict[str, Type[Message]] = {}
        self._lock = threading.Lock()

    def register(self, cls: Type[Message]) -> Type[Message]:
        """Register a hand-written message dataclass."""
        if not (isinstance(cls, type) and issubclass(cls, Message) and is_dataclass(cls)):
            raise InvalidField(f"{cls!r} is not a Message dataclass")
        schema = schema_of(cls)
        with self._lock:
            existing = self._types.get(cls.__name__)
            if existing is None:
                self._types[cls.__name__] = cls
                return cls
            if existing is cls or schema_of(existing) == schema:
                return existing
        raise DuplicateDefinition(
            f"Message '{cls.__name__}' already defined as {self.describe(existing)!r}"
        )

    def define(self, name: str, field_defs: FieldDefs) -> Type[Message]:
        """
        Define a message shape from an ordered list of (field name, type) pairs.

        Args:
            name: Message type name, a python identifier.
            field_defs: Field names with python types or type names
                         ("float64", "int64", "bool", "string").

        Returns:
            The message class registered under ``name``.
        """
        if not isinstance(name, str) or not name.isidentifier() or keyword.iskeyword(name):
            raise InvalidName(f"Invalid message type name: {name!r}")

        schema = tuple((field_name, field_type_name(field_type)) for field_name, field_type in field_defs)
        seen = set()
        for field_name, _ in schema:
            if not isinstance(field_name, str) or not field_name.isidentifier() or keyword.iskeyword(field_name):
                raise InvalidField(f"Invalid field name in {name}: {field_name!r}")
            if field_name in seen:
                raise InvalidField(f"Duplicate field '{field_name}' in {name}")
            seen.add(field_name)

        with self._lock:
            existing = self._types.get(name)
            if existing is not None:
                if schema_of(existing) == schema:
                    return existing
                raise DuplicateDefinition(
                    f"Message '{name}' already defined with fields {list(schema_of(existing))}"
                )

            cls = make_dataclass(
                name,
                [(field_name, FIELD_TYPES[type_name]) for field_name, type_name in schema],
                bases=(Message,),
                frozen=True,
            )
            cls.__module__ = __name__
            self._types[name] = cls
            return cls

    def get(self, name: str) -> Type[Message]:
        with self._lock:
            cls = self._types.get(name)
        if cls is None:
            raise UnknownMessageType(f"No message type named '{name}'")
        return cls

    def names(self) -> List[str]:
        with self._lock:
            return sorted(self._types)

    def __contains__(self, name: str) -> bool:
        with self._lock:
            return name in self._types

    def describe(self, msg_type: Union[str, Type[Message]]) -> str:
        """Interface text of a message type, one "<type> <field>" line per field."""
        cls = self.get(msg_type) if isinstance(msg_type, str) else msg_type
        return "\n".join(f"{type_name} {field_name}" for field_name, type_name in schema_of(cls))

    def encode(self, message: Message) -> bytes:
        """Encode a message into its deterministic byte form."""
        if not isinstance(message, Message):
            raise InvalidField(f"Cannot encode {type(message).__name__}: not a Message")

        cls = type(message)
        schema = schema_of(cls)
        parts = [_pack_string(cls.__name__, "<H"), struct.pack("<H", len(schema))]

        for field_name, type_name in schema:
            value = getattr(message, field_name)
            parts.append(struct.pack("<B", _TAGS[type_name]))
            if type_name == FLOAT64:
                parts.append(struct.pack("<d", value))
            elif type_name == INT64:
                parts.append(struct.pack("<q", value))
            elif type_name == BOOL:
                parts.append(struct.pack("<?", value))
            else:
                parts.append(_pack_string(value, "<I"))

        return b"".join(parts)

    def decode(self, data: bytes, expected: Union[str, Type[Message]]) -> Message:
        """
        Decode bytes produced by ``encode`` into a message of ``expected`` type.

        Raises:
            SchemaMismatch: the payload's name, field count, field types or
                            length do not match ``expected``.
        """
        cls = self.get(expected) if isinstance(expected, str) else expected
        schema = schema_of(cls)
        reader = _Reader(bytes(data))

        try:
            name = reader.string("<H")
            if name != cls.__name__:
                raise SchemaMismatch(f"Payload holds '{name}', expected '{cls.__name__}'")

            count = reader.unpack("<H")
            if count != len(schema):
                raise SchemaMismatch(
                    f"{cls.__name__} has {len(schema)} field(s), payload has {count}"
                )

            values = {}
            for field_name, type_name in schema:
                tag = reader.unpack("<B")
                if tag != _TAGS[type_name]:
                    raise SchemaMismatch(
                        f"{cls.__name__}.{field_name}: expected {type_name}, found tag {tag}"
                    )
                values[field_name] = reader.value(type_name)

            if reader.remaining:
                raise SchemaMismatch(f"{reader.remaining} trailing byte(s) after {cls.__name__}")
        except (struct.error, UnicodeDecodeError) as e:
            raise SchemaMismatch(f"Malformed {cls.__name__} payload: {e}") from e

        return cls(**values)


registry = MessageRegistry()
for _builtin in (Text, Vector3, ColorNumber):
    registry.register(_builtin)


def define(name: str, field_defs: FieldDefs) -> Type[Message]:
    return registry.define(name, field_defs)


def encode(message: Message) -> bytes:
    return registry.encode(message)


def decode(data: bytes, expected: Union[str, Type[Message]]) -> Message:
    return registry.decode(data, expected)
