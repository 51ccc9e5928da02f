import io

import pytest

from fedkit.codec import (
    BYTES,
    SHA256_HASH,
    STRING,
    U8,
    U16,
    U32,
    U64,
    UNIT,
    ArrayOf,
    DecodeError,
    FixedBytes,
    OptionOf,
    Sha256Hash,
    TupleOf,
    UInt,
    UnitCodec,
    VecOf,
    decode_from_bytes,
    encode_to_bytes,
)


def roundtrip(codec, value, expected=None):
    buffer = io.BytesIO()
    length = codec.encode(value, buffer)
    data = buffer.getvalue()
    assert length == len(data)
    if expected is not None:
        assert data == bytes(expected)
    reader = io.BytesIO(data)
    decoded = codec.decode(reader)
    assert decoded == value
    assert reader.tell() == length
    return data


def test_integers_little_endian():
    assert encode_to_bytes(U8, 42) == bytes([42])
    assert encode_to_bytes(U16, 0x0102) == bytes([2, 1])
    assert encode_to_bytes(U32, 42) == bytes([42, 0, 0, 0])
    assert encode_to_bytes(U64, 2**64 - 1) == bytes([255] * 8)
    assert decode_from_bytes(U16, bytes([2, 1])) == 0x0102
    roundtrip(U8, 42, [42])
    roundtrip(U16, 0x0102, [2, 1])
    roundtrip(U32, 42, [42, 0, 0, 0])
    roundtrip(U64, 2**64 - 1, [255] * 8)


def test_integer_overflow_rejected():
    with pytest.raises(ValueError):
        encode_to_bytes(U8, 256)
    with pytest.raises(ValueError):
        encode_to_bytes(U64, -1)


def test_unsupported_width():
    with pytest.raises(ValueError):
        UInt(24)


def test_vec_of_bytes():
    expected = bytes([3, 0, 0, 0, 0, 0, 0, 0, 1, 2, 3])
    assert encode_to_bytes(BYTES, [1, 2, 3]) == expected
    assert decode_from_bytes(BYTES, expected) == [1, 2, 3]
    roundtrip(BYTES, [1, 2, 3], expected)


def test_empty_vec():
    roundtrip(VecOf(U32), [], [0] * 8)


def test_option_some_and_none():
    codec = OptionOf(U64)
    roundtrip(codec, 42, [1, 42, 0, 0, 0, 0, 0, 0, 0])
    roundtrip(codec, None, [0])


def test_option_invalid_flag():
    with pytest.raises(DecodeError, match="expected 0 or 1"):
        decode_from_bytes(OptionOf(U8), bytes([2, 0]))


def test_tuple_roundtrip():
    codec = TupleOf(U16, STRING, OptionOf(U8))
    roundtrip(codec, (7, "hi", None), [7, 0, 2, 0, 0, 0, 0, 0, 0, 0, ord("h"), ord("i"), 0])


def test_tuple_arity_mismatch():
    with pytest.raises(ValueError):
        encode_to_bytes(TupleOf(U8, U8), (1,))


def test_array_has_no_prefix():
    roundtrip(ArrayOf(U16, 2), [1, 2], [1, 0, 2, 0])


def test_array_wrong_size():
    with pytest.raises(ValueError):
        encode_to_bytes(ArrayOf(U8, 3), [1, 2])


def test_fixed_bytes():
    roundtrip(FixedBytes(4), b"\x01\x02\x03\x04", [1, 2, 3, 4])
    with pytest.raises(ValueError):
        encode_to_bytes(FixedBytes(4), b"\x01")


def test_unit_writes_nothing():
    assert encode_to_bytes(UNIT, None) == b""
    assert decode_from_bytes(UnitCodec(), b"\xff") is None


def test_string_roundtrip():
    data = encode_to_bytes(STRING, "héllo")
    assert data[:8] == bytes([6, 0, 0, 0, 0, 0, 0, 0])
    assert data[8:] == "héllo".encode("utf-8")
    assert decode_from_bytes(STRING, data) == "héllo"
    roundtrip(STRING, "héllo")


def test_string_invalid_utf8():
    with pytest.raises(DecodeError):
        decode_from_bytes(STRING, bytes([1, 0, 0, 0, 0, 0, 0, 0, 0xFF]))


def test_truncated_input():
    with pytest.raises(DecodeError):
        decode_from_bytes(U64, b"\x01\x02")
    with pytest.raises(DecodeError):
        decode_from_bytes(BYTES, bytes([5, 0, 0, 0, 0, 0, 0, 0, 1]))


def test_sha256_roundtrip():
    digest = Sha256Hash.hash(b"Hello world!")
    data = roundtrip(SHA256_HASH, digest)
    assert len(data) == 32
    assert isinstance(decode_from_bytes(SHA256_HASH, data), Sha256Hash)


def test_sha256_known_digest():
    assert str(Sha256Hash.hash(b"abc")) == (
        "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
    )


def test_sha256_wrong_length():
    with pytest.raises(ValueError):
        Sha256Hash(b"short")


def test_decode_ignores_trailing_bytes():
    assert decode_from_bytes(U8, b"\x05\x06") == 5