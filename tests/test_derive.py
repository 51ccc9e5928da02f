import io
from dataclasses import dataclass
from typing import Optional

import pytest

from fedkit.codec import (
    BYTES,
    U32,
    U64,
    U8,
    DecodeError,
    OptionOf,
    decode_from_bytes,
    encode_to_bytes,
)
from fedkit.derive import EnumCodec, StructCodec, consensus_struct, unzip_consensus


def roundtrip_expected(codec, value, expected):
    buffer = io.BytesIO()
    length = codec.encode(value, buffer)
    data = buffer.getvalue()
    assert length == len(data)
    assert data == bytes(expected)
    cursor = io.BytesIO(data)
    decoded = codec.decode(cursor)
    assert decoded == value
    assert cursor.tell() == length


@consensus_struct(BYTES, U32)
@dataclass
class NamedStruct:
    vec: list
    num: int


@consensus_struct(BYTES, U32)
@dataclass
class TupleStruct:
    field_0: list
    field_1: int


@consensus_struct(OptionOf(U64))
@dataclass
class Foo:
    value: Optional[int]


@consensus_struct(BYTES)
@dataclass
class Bar:
    bazz: list


TEST_ENUM = EnumCodec(Foo, Bar)

STRUCT_BYTES = bytes([3, 0, 0, 0, 0, 0, 0, 0, 1, 2, 3, 42, 0, 0, 0])


def test_derive_struct():
    value = NamedStruct(vec=[1, 2, 3], num=42)
    assert encode_to_bytes(NamedStruct.CODEC, value) == STRUCT_BYTES
    assert decode_from_bytes(NamedStruct.CODEC, STRUCT_BYTES) == value
    roundtrip_expected(NamedStruct.CODEC, value, STRUCT_BYTES)


def test_derive_tuple_struct():
    value = TupleStruct([1, 2, 3], 42)
    assert encode_to_bytes(TupleStruct.CODEC, value) == STRUCT_BYTES
    assert decode_from_bytes(TupleStruct.CODEC, STRUCT_BYTES) == value
    roundtrip_expected(TupleStruct.CODEC, value, STRUCT_BYTES)


@pytest.mark.parametrize(
    "value, expected",
    [
        (Foo(42), [0, 0, 0, 0, 0, 0, 0, 0, 1, 42, 0, 0, 0, 0, 0, 0, 0]),
        (Foo(None), [0, 0, 0, 0, 0, 0, 0, 0, 0]),
        (Bar([1, 2, 3]), [1, 0, 0, 0, 0, 0, 0, 0, 3, 0, 0, 0, 0, 0, 0, 0, 1, 2, 3]),
    ],
)
def test_derive_enum(value, expected):
    assert encode_to_bytes(TEST_ENUM, value) == bytes(expected)
    roundtrip_expected(TEST_ENUM, value, expected)


def test_enum_rejects_unknown_variant_index():
    with pytest.raises(DecodeError, match="invalid enum variant"):
        decode_from_bytes(TEST_ENUM, bytes([2, 0, 0, 0, 0, 0, 0, 0]))


def test_enum_rejects_foreign_type():
    with pytest.raises(TypeError):
        TEST_ENUM.encode(NamedStruct([], 0), io.BytesIO())


def test_enum_requires_codec_on_variants():
    class Plain:
        pass

    with pytest.raises(TypeError):
        EnumCodec(Plain)


def test_consensus_struct_checks_field_count():
    @dataclass
    class Two:
        a: int
        b: int

    with pytest.raises(TypeError):
        consensus_struct(U8)(Two)


def test_consensus_struct_requires_dataclass():
    class NotData:
        pass

    with pytest.raises(TypeError):
        consensus_struct()(NotData)


def test_empty_struct_encodes_to_nothing():
    @dataclass
    class Empty:
        pass

    decorated = consensus_struct()(Empty)
    assert encode_to_bytes(decorated.CODEC, decorated()) == b""
    assert decode_from_bytes(decorated.CODEC, b"") == decorated()
    roundtrip_expected(decorated.CODEC, decorated(), [])


def test_struct_codec_rejects_wrong_type():
    codec = StructCodec(NamedStruct, [("vec", BYTES), ("num", U32)])
    with pytest.raises(TypeError):
        codec.encode(TupleStruct([], 1), io.BytesIO())


def test_truncated_struct_fails():
    with pytest.raises(DecodeError):
        decode_from_bytes(NamedStruct.CODEC, bytes([3, 0, 0, 0, 0, 0, 0, 0, 1, 2]))


@dataclass
class EpochInfo:
    share: int


@dataclass
class LN:
    item: str


def test_unzip_consensus_groups_by_variant():
    items = [(0, EpochInfo(1)), (1, LN("a")), (2, EpochInfo(3))]
    result = unzip_consensus(items, [EpochInfo, LN])
    assert result == {
        "epoch_info": [(0, EpochInfo(1)), (2, EpochInfo(3))],
        "ln": [(1, LN("a"))],
    }


def test_unzip_consensus_keeps_empty_variants():
    result = unzip_consensus([], [EpochInfo, LN])
    assert result == {"epoch_info": [], "ln": []}


def test_unzip_consensus_rejects_unknown_item():
    with pytest.raises(TypeError):
        unzip_consensus([(0, "stray")], [EpochInfo, LN])