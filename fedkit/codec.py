"""Consensus-critical binary encoding.

Every codec writes a value to a binary stream and reads it back. Integers are
little-endian, sequences carry a ``u64`` length prefix, fixed arrays carry none,
and optional values are prefixed with a one-byte flag.
"""

from __future__ import annotations

import hashlib
import io
from abc import ABC, abstractmethod
from typing import Any, BinaryIO, Callable, Iterable


class DecodeError(Exception):
    """Raised when bytes cannot be decoded into the expected value."""


def _read_exact(reader: BinaryIO, size: int) -> bytes:
    data = reader.read(size)
    if data is None or len(data) != size:
        got = 0 if data is None else len(data)
        raise DecodeError(f"unexpected end of input: wanted {size} bytes, got {got}")
    return bytes(data)


def _write_all(writer: BinaryIO, data: bytes) -> int:
    writer.write(data)
    return len(data)


class Codec(ABC):
    """Encodes and decodes one kind of value."""

    @abstractmethod
    def encode(self, value: Any, writer: BinaryIO) -> int:
        """Write ``value`` to ``writer`` and return the number of bytes written."""

    @abstractmethod
    def decode(self, reader: BinaryIO) -> Any:
        """Read one value from ``reader``."""


class UInt(Codec):
    """Unsigned little-endian integer of a fixed bit width."""

    def __init__(self, bits: int) -> None:
        if bits not in (8, 16, 32, 64):
            raise ValueError(f"unsupported integer width: {bits}")
        self.bits = bits
        self.size = bits // 8

    def encode(self, value: int, writer: BinaryIO) -> int:
        if not isinstance(value, int) or isinstance(value, bool):
            raise TypeError(f"expected int, got {type(value).__name__}")
        if not 0 <= value < (1 << self.bits):
            raise ValueError(f"{value} does not fit in u{self.bits}")
        return _write_all(writer, value.to_bytes(self.size, "little"))

    def decode(self, reader: BinaryIO) -> int:
        return int.from_bytes(_read_exact(reader, self.size), "little")

    def __repr__(self) -> str:
        return f"UInt({self.bits})"


U8 = UInt(8)
U16 = UInt(16)
U32 = UInt(32)
U64 = UInt(64)


class VecOf(Codec):
    """Variable-length sequence: ``u64`` count followed by the items."""

    def __init__(self, item: Codec) -> None:
        self.item = item

    def encode(self, value: Iterable[Any], writer: BinaryIO) -> int:
        items = list(value)
        written = U64.encode(len(items), writer)
        for element in items:
            written += self.item.encode(element, writer)
        return written

    def decode(self, reader: BinaryIO) -> list[Any]:
        length = U64.decode(reader)
        return [self.item.decode(reader) for _ in range(length)]


class ArrayOf(Codec):
    """Fixed-length sequence with no length prefix."""

    def __init__(self, item: Codec, size: int) -> None:
        self.item = item
        self.size = size

    def encode(self, value: Iterable[Any], writer: BinaryIO) -> int:
        items = list(value)
        if len(items) != self.size:
            raise ValueError(f"expected {self.size} items, got {len(items)}")
        return sum(self.item.encode(element, writer) for element in items)

    def decode(self, reader: BinaryIO) -> list[Any]:
        return [self.item.decode(reader) for _ in range(self.size)]


class OptionOf(Codec):
    """Optional value: flag byte 0 for ``None``, 1 followed by the value."""

    def __init__(self, item: Codec) -> None:
        self.item = item

    def encode(self, value: Any, writer: BinaryIO) -> int:
        if value is None:
            return U8.encode(0, writer)
        return U8.encode(1, writer) + self.item.encode(value, writer)

    def decode(self, reader: BinaryIO) -> Any:
        flag = U8.decode(reader)
        if flag == 0:
            return None
        if flag == 1:
            return self.item.decode(reader)
        raise DecodeError("Invalid flag for option enum, expected 0 or 1")


class TupleOf(Codec):
    """Heterogeneous tuple: each element encoded in turn."""

    def __init__(self, *items: Codec) -> None:
        self.items = items

    def encode(self, value: tuple, writer: BinaryIO) -> int:
        elements = tuple(value)
        if len(elements) != len(self.items):
            raise ValueError(f"expected {len(self.items)} elements, got {len(elements)}")
        return sum(codec.encode(element, writer) for codec, element in zip(self.items, elements))

    def decode(self, reader: BinaryIO) -> tuple:
        return tuple(codec.decode(reader) for codec in self.items)


class FixedBytes(Codec):
    """Raw byte string of a fixed size, optionally wrapped by ``factory``."""

    def __init__(self, size: int, factory: Callable[[bytes], Any] = bytes) -> None:
        self.size = size
        self.factory = factory

    def encode(self, value: bytes, writer: BinaryIO) -> int:
        data = bytes(value)
        if len(data) != self.size:
            raise ValueError(f"expected {self.size} bytes, got {len(data)}")
        return _write_all(writer, data)

    def decode(self, reader: BinaryIO) -> Any:
        return self.factory(_read_exact(reader, self.size))


class UnitCodec(Codec):
    """The empty value: writes nothing and decodes to ``None``."""

    def encode(self, value: None, writer: BinaryIO) -> int:
        return 0

    def decode(self, reader: BinaryIO) -> None:
        return None


class StringCodec(Codec):
    """UTF-8 text encoded as a length-prefixed byte sequence."""

    def encode(self, value: str, writer: BinaryIO) -> int:
        data = value.encode("utf-8")
        return U64.encode(len(data), writer) + _write_all(writer, data)

    def decode(self, reader: BinaryIO) -> str:
        length = U64.decode(reader)
        data = _read_exact(reader, length)
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecodeError(str(exc)) from exc


BYTES = VecOf(U8)
UNIT = UnitCodec()
STRING = StringCodec()


class Sha256Hash(bytes):
    """A 32-byte SHA-256 digest."""

    SIZE = 32

    def __new__(cls, data: bytes = bytes(32)) -> "Sha256Hash":
        if len(data) != cls.SIZE:
            raise ValueError(f"a SHA-256 hash is {cls.SIZE} bytes, got {len(data)}")
        return super().__new__(cls, data)

    @classmethod
    def hash(cls, data: bytes) -> "Sha256Hash":
        """Return the SHA-256 digest of ``data``."""
        return cls(hashlib.sha256(data).digest())

    def __str__(self) -> str:
        return self.hex()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.hex()})"


SHA256_HASH = FixedBytes(Sha256Hash.SIZE, Sha256Hash)


def encode_to_bytes(codec: Codec, value: Any) -> bytes:
    """Encode ``value`` with ``codec`` into a byte string."""
    buffer = io.BytesIO()
    codec.encode(value, buffer)
    return buffer.getvalue()


def decode_from_bytes(codec: Codec, data: bytes) -> Any:
    """Decode one value with ``codec`` from the start of ``data``."""
    return codec.decode(io.BytesIO(data))