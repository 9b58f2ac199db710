"""CBOR wire-format constants and the low-level header helpers shared by the encoders."""

from enum import IntEnum

MAJOR_OFFSET = 5
ADDITIONAL_MAX = 23

# Simple values.
ADDITIONAL_BOOL_FALSE = 20
ADDITIONAL_BOOL_TRUE = 21
ADDITIONAL_NULL = 22

# Integer widths.
ADDITIONAL_UINT8 = 24
ADDITIONAL_UINT16 = 25
ADDITIONAL_UINT32 = 26
ADDITIONAL_UINT64 = 27

# Float widths.
ADDITIONAL_FLOAT16 = 25
ADDITIONAL_FLOAT32 = 26
ADDITIONAL_FLOAT64 = 27
ADDITIONAL_BREAK = 31

# Tags.
TAG_TIMESTAMP = 1
TAG_EMBEDDED_CBOR = 63
TAG_NETWORK_ADDR = 260
TAG_NETWORK_PREFIX = 261
TAG_EMBEDDED_JSON = 262
TAG_HEX_STRING = 263

ADDITIONAL_INDEFINITE = 31

MASK_MAJOR = 7 << MAJOR_OFFSET
MASK_ADDITIONAL = 31

FLOAT32_NAN = b"\xfa\x7f\xc0\x00\x00"
FLOAT32_POS_INF = b"\xfa\x7f\x80\x00\x00"
FLOAT32_NEG_INF = b"\xfa\xff\x80\x00\x00"
FLOAT64_NAN = b"\xfb\x7f\xf8\x00\x00\x00\x00\x00\x00"
FLOAT64_POS_INF = b"\xfb\x7f\xf0\x00\x00\x00\x00\x00\x00"
FLOAT64_NEG_INF = b"\xfb\xff\xf0\x00\x00\x00\x00\x00\x00"


class MajorType(IntEnum):
    """CBOR major types, already shifted into the high three bits."""

    UNSIGNED_INT = 0 << MAJOR_OFFSET
    NEGATIVE_INT = 1 << MAJOR_OFFSET
    BYTE_STRING = 2 << MAJOR_OFFSET
    UTF8_STRING = 3 << MAJOR_OFFSET
    ARRAY = 4 << MAJOR_OFFSET
    MAP = 5 << MAJOR_OFFSET
    TAGS = 6 << MAJOR_OFFSET
    SIMPLE_AND_FLOAT = 7 << MAJOR_OFFSET


_WIDTHS = (
    (1 << 8, ADDITIONAL_UINT8, 1),
    (1 << 16, ADDITIONAL_UINT16, 2),
    (1 << 32, ADDITIONAL_UINT32, 4),
    (1 << 64, ADDITIONAL_UINT64, 8),
)


def append_type_prefix(dst, major, number):
    """Append a major type with an explicit 1, 2, 4 or 8 byte argument."""
    if not 0 <= number < 1 << 64:
        raise ValueError(f"CBOR argument out of range: {number}")
    minor, width = next((m, w) for limit, m, w in _WIDTHS if number < limit)
    return bytes(dst) + bytes((int(major) | minor,)) + number.to_bytes(width, "big")


def append_length_header(dst, major, length):
    """Append a header, packing values up to 23 into the initial byte."""
    if 0 <= length <= ADDITIONAL_MAX:
        return bytes(dst) + bytes((int(major) | length,))
    return append_type_prefix(dst, major, length)


def _append_tagged_bytes(dst, tag_header, payload):
    payload = bytes(payload)
    out = bytes(dst) + tag_header
    return append_length_header(out, MajorType.BYTE_STRING, len(payload)) + payload


def append_embedded_json(dst, s):
    """Append a JSON document as a byte string tagged as embedded JSON."""
    header = bytes((MajorType.TAGS | ADDITIONAL_UINT16,)) + TAG_EMBEDDED_JSON.to_bytes(2, "big")
    return _append_tagged_bytes(dst, header, s)


def append_embedded_cbor(dst, s):
    """Append CBOR data as a byte string tagged as embedded CBOR."""
    header = bytes((MajorType.TAGS | ADDITIONAL_UINT8, TAG_EMBEDDED_CBOR))
    return _append_tagged_bytes(dst, header, s)