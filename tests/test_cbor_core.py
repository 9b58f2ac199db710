import pytest

from logcodec.cbor_core import (
    MajorType,
    append_embedded_cbor,
    append_embedded_json,
    append_length_header,
    append_type_prefix,
)


def test_type_prefix_single_byte_argument():
    assert append_type_prefix(b"", MajorType.UNSIGNED_INT, 24) == b"\x18\x18"


def test_type_prefix_is_always_extended():
    out = append_type_prefix(b"", MajorType.UNSIGNED_INT, 5)
    assert len(out) == 2
    assert out[0] & 0x1F == 24
    assert out[1] == 5


@pytest.mark.parametrize(
    "number,width",
    [(0, 1), (255, 1), (256, 2), (65535, 2), (65536, 4), (2**32 - 1, 4), (2**32, 8), (2**64 - 1, 8)],
)
def test_type_prefix_round_trip(number, width):
    out = append_type_prefix(b"", MajorType.NEGATIVE_INT, number)
    assert out[0] & 0xE0 == MajorType.NEGATIVE_INT
    assert len(out) == 1 + width
    assert int.from_bytes(out[1:], "big") == number


def test_type_prefix_keeps_dst():
    out = append_type_prefix(b"abc", MajorType.ARRAY, 1000)
    assert out.startswith(b"abc")
    assert out[3:] == b"\x99\x03\xe8"


@pytest.mark.parametrize("bad", [-1, 2**64])
def test_type_prefix_out_of_range(bad):
    with pytest.raises(ValueError):
        append_type_prefix(b"", MajorType.UNSIGNED_INT, bad)


def test_length_header_short_and_long():
    assert append_length_header(b"", MajorType.UTF8_STRING, 4) == b"\x64"
    assert append_length_header(b"", MajorType.UTF8_STRING, 30) == b"\x78\x1e"
    assert append_length_header(b"", MajorType.UTF8_STRING, 0x11170) == b"\x7a\x00\x01\x11\x70"


def test_length_header_boundary():
    assert len(append_length_header(b"", MajorType.ARRAY, 23)) == 1
    assert len(append_length_header(b"", MajorType.ARRAY, 24)) == 2


def test_embedded_json():
    payload = b'{"a":1}'
    out = append_embedded_json(b"", payload)
    assert out[:3] == b"\xd9\x01\x06"
    assert out[3] == MajorType.BYTE_STRING | len(payload)
    assert out[4:] == payload


def test_embedded_json_long_payload():
    payload = b"x" * 300
    out = append_embedded_json(b"pre", payload)
    assert out.startswith(b"pre")
    assert out[6:9] == b"\x59\x01\x2c"
    assert out.endswith(payload)


def test_embedded_cbor():
    payload = b"\xf5"
    out = append_embedded_cbor(b"", payload)
    assert out[:2] == b"\xd8\x3f"
    assert out[2:] == b"\x41\xf5"