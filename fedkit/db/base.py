"""Typed database interface over a raw byte key-value store.

A key type carries ``DB_PREFIX`` (one byte), ``VALUE_TYPE`` and a ``CODEC``; a
prefix type additionally names ``KEY_TYPE``, the key type of the entries it
matches (a key type without it is its own key type). Keys are stored as the
prefix byte followed by the encoded key; values are stored encoded.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Iterable, Iterator, Optional

from fedkit.codec import Codec, DecodeError, decode_from_bytes, encode_to_bytes

logger = logging.getLogger(__name__)


class DecodingError(Exception):
    """Raised when stored bytes cannot be decoded into a key or value."""


class WrongPrefixError(DecodingError):
    """A key started with an unexpected prefix byte."""

    def __init__(self, expected: int, found: int) -> None:
        super().__init__(f"Key had a wrong prefix, expected {expected} but got {found}")
        self.expected = expected
        self.found = found


class WrongLengthError(DecodingError):
    """A key had an unexpected length."""

    def __init__(self, expected: int, found: int) -> None:
        super().__init__(f"Key had a wrong length, expected {expected} but got {found}")
        self.expected = expected
        self.found = found


def _codec(cls: type) -> Codec:
    codec = getattr(cls, "CODEC", None)
    if not isinstance(codec, Codec):
        raise TypeError(f"{cls.__name__} has no CODEC")
    return codec


def _prefix(cls: type) -> int:
    prefix = getattr(cls, "DB_PREFIX", None)
    if not isinstance(prefix, int) or not 0 <= prefix <= 0xFF:
        raise TypeError(f"{cls.__name__} has no one-byte DB_PREFIX")
    return prefix


def _key_type(prefix_type: type) -> type:
    return getattr(prefix_type, "KEY_TYPE", None) or prefix_type


def _value_type(prefix_type: type) -> type:
    value_type = getattr(prefix_type, "VALUE_TYPE", None)
    if value_type is None:
        raise TypeError(f"{prefix_type.__name__} has no VALUE_TYPE")
    return value_type


def key_to_bytes(key: Any) -> bytes:
    """Serialize a key or key prefix: prefix byte followed by its encoding."""
    cls = type(key)
    return bytes([_prefix(cls)]) + encode_to_bytes(_codec(cls), key)


def key_from_bytes(key_type: type, data: bytes) -> Any:
    """Deserialize a key of ``key_type``, checking its prefix byte."""
    if not data:
        raise WrongLengthError(1, 0)
    expected = _prefix(key_type)
    if data[0] != expected:
        raise WrongPrefixError(expected, data[0])
    try:
        return decode_from_bytes(_codec(key_type), bytes(data[1:]))
    except DecodeError as exc:
        raise DecodingError(f"Other decoding error: {exc}") from exc


def value_to_bytes(value: Any) -> bytes:
    """Serialize a value with its type's codec."""
    return encode_to_bytes(_codec(type(value)), value)


def value_from_bytes(value_type: type, data: bytes) -> Any:
    """Deserialize a value of ``value_type``."""
    try:
        return decode_from_bytes(_codec(value_type), bytes(data))
    except DecodeError as exc:
        raise DecodingError(f"Other decoding error: {exc}") from exc


class Database(ABC):
    """A byte key-value store with typed access on top."""

    @abstractmethod
    def raw_insert_entry(self, key: bytes, value: bytes) -> Optional[bytes]:
        """Store ``value`` under ``key``, returning the previous value if any."""

    @abstractmethod
    def raw_get_value(self, key: bytes) -> Optional[bytes]:
        """Return the value stored under ``key``, or ``None``."""

    @abstractmethod
    def raw_remove_entry(self, key: bytes) -> Optional[bytes]:
        """Remove ``key``, returning its value if it was present."""

    @abstractmethod
    def raw_find_by_prefix(self, key_prefix: bytes) -> Iterator[tuple[bytes, bytes]]:
        """Iterate over the entries whose key starts with ``key_prefix``."""

    @abstractmethod
    def raw_apply_batch(self, batch: Iterable[Any]) -> None:
        """Apply every operation of ``batch`` in order."""

    def insert_entry(self, key: Any, value: Any) -> Any:
        """Store ``value`` under ``key`` and return the decoded previous value, if any."""
        old = self.raw_insert_entry(key_to_bytes(key), value_to_bytes(value))
        if old is None:
            return None
        value_type = _value_type(type(key))
        logger.debug("insert_entry: decoding %s from bytes %r", value_type.__name__, old)
        return value_from_bytes(value_type, old)

    def get_value(self, key: Any) -> Any:
        """Return the decoded value stored under ``key``, or ``None``."""
        data = self.raw_get_value(key_to_bytes(key))
        if data is None:
            return None
        value_type = _value_type(type(key))
        logger.debug("get_value: decoding %s from bytes %r", value_type.__name__, data)
        return value_from_bytes(value_type, data)

    def remove_entry(self, key: Any) -> Any:
        """Remove ``key`` and return its decoded value, or ``None`` if absent."""
        data = self.raw_remove_entry(key_to_bytes(key))
        if data is None:
            return None
        value_type = _value_type(type(key))
        logger.debug("remove_entry: decoding %s from bytes %r", value_type.__name__, data)
        return value_from_bytes(value_type, data)

    def find_by_prefix(self, key_prefix: Any) -> Iterator[tuple[Any, Any]]:
        """Iterate over decoded ``(key, value)`` pairs matching ``key_prefix``."""
        prefix_type = type(key_prefix)
        key_type = _key_type(prefix_type)
        value_type = _value_type(prefix_type)
        for key_bytes, value_bytes in self.raw_find_by_prefix(key_to_bytes(key_prefix)):
            key = key_from_bytes(key_type, key_bytes)
            logger.debug(
                "find_by_prefix: decoding %s from bytes %r", value_type.__name__, value_bytes
            )
            yield key, value_from_bytes(value_type, value_bytes)

    def apply_batch(self, batch: Iterable[Any]) -> None:
        """Apply a batch of operations."""
        self.raw_apply_batch(batch)