"""Codecs built from the shape of a class: structs, enums and consensus unzipping."""

from __future__ import annotations

import dataclasses
import re
from typing import Any, BinaryIO, Callable, Iterable, Sequence

from fedkit.codec import U64, Codec, DecodeError

_ACRONYM_BOUNDARY = re.compile(r"([A-Z]+)([A-Z][a-z])")
_WORD_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")


def _snake_case(name: str) -> str:
    name = _ACRONYM_BOUNDARY.sub(r"\1_\2", name)
    name = _WORD_BOUNDARY.sub(r"\1_\2", name)
    return name.lower()


def _codec_of(cls: type) -> Codec:
    codec = getattr(cls, "CODEC", None)
    if not isinstance(codec, Codec):
        raise TypeError(f"{cls.__name__} has no CODEC; decorate it with consensus_struct")
    return codec


class StructCodec(Codec):
    """Encodes the named attributes of ``cls`` in order and rebuilds it positionally."""

    def __init__(self, cls: type, fields: Iterable[tuple[str, Codec]]) -> None:
        self.cls = cls
        self.fields = tuple(fields)

    def encode(self, value: Any, writer: BinaryIO) -> int:
        if not isinstance(value, self.cls):
            raise TypeError(f"expected {self.cls.__name__}, got {type(value).__name__}")
        return sum(codec.encode(getattr(value, name), writer) for name, codec in self.fields)

    def decode(self, reader: BinaryIO) -> Any:
        return self.cls(*(codec.decode(reader) for _, codec in self.fields))

    def __repr__(self) -> str:
        return f"StructCodec({self.cls.__name__})"


class EnumCodec(Codec):
    """A tagged union: a ``u64`` variant index followed by the variant's fields.

    Each variant is a class carrying its own ``CODEC``; variants are numbered
    in the order given.
    """

    def __init__(self, *variants: type) -> None:
        if not variants:
            raise TypeError("an enum needs at least one variant")
        self.variants: tuple[type, ...] = variants
        self._codecs = tuple(_codec_of(variant) for variant in variants)
        self._index = {variant: index for index, variant in enumerate(variants)}

    def encode(self, value: Any, writer: BinaryIO) -> int:
        index = self._index.get(type(value))
        if index is None:
            raise TypeError(f"{type(value).__name__} is not a variant of this enum")
        return U64.encode(index, writer) + self._codecs[index].encode(value, writer)

    def decode(self, reader: BinaryIO) -> Any:
        index = U64.decode(reader)
        if index >= len(self._codecs):
            raise DecodeError("invalid enum variant")
        return self._codecs[index].decode(reader)


def consensus_struct(*args: Codec) -> Callable[[type], type]:
    """Class decorator giving a dataclass a ``CODEC`` built from one codec per field."""

    def decorate(cls: type) -> type:
        if not dataclasses.is_dataclass(cls):
            raise TypeError(f"{cls.__name__} must be a dataclass")
        names = [field.name for field in dataclasses.fields(cls)]
        if len(names) != len(args):
            raise TypeError(
                f"{cls.__name__} has {len(names)} fields but {len(args)} codecs were given"
            )
        cls.CODEC = StructCodec(cls, zip(names, args))  # type: ignore[attr-defined]
        return cls

    return decorate


def unzip_consensus(
    items: Iterable[tuple[Any, Any]], variants: Sequence[type]
) -> dict[str, list[tuple[Any, Any]]]:
    """Split ``(peer, item)`` pairs into one list per variant type.

    The result is keyed by the snake-case name of each variant type and keeps
    the order in which items arrived.
    """
    variants = tuple(variants)
    result: dict[str, list[tuple[Any, Any]]] = {_snake_case(v.__name__): [] for v in variants}
    for peer, item in items:
        for variant in variants:
            if isinstance(item, variant):
                result[_snake_case(variant.__name__)].append((peer, item))
                break
        else:
            raise TypeError(f"{type(item).__name__} is not one of the consensus variants")
    return result