"""Streaming conversion of CBOR-encoded log records into JSON text."""

import base64
import io
import itertools
import math
import struct
from datetime import datetime, timedelta
from datetime import timezone as _tz
from ipaddress import IPv4Address, IPv6Address

from logcodec import json_strings
from logcodec.cbor_core import (
    ADDITIONAL_BOOL_FALSE,
    ADDITIONAL_BOOL_TRUE,
    ADDITIONAL_BREAK,
    ADDITIONAL_FLOAT16,
    ADDITIONAL_FLOAT32,
    ADDITIONAL_FLOAT64,
    ADDITIONAL_INDEFINITE,
    ADDITIONAL_MAX,
    ADDITIONAL_NULL,
    ADDITIONAL_UINT8,
    ADDITIONAL_UINT16,
    ADDITIONAL_UINT32,
    ADDITIONAL_UINT64,
    FLOAT32_NAN,
    FLOAT32_NEG_INF,
    FLOAT32_POS_INF,
    FLOAT64_NAN,
    FLOAT64_NEG_INF,
    FLOAT64_POS_INF,
    MASK_ADDITIONAL,
    MASK_MAJOR,
    TAG_EMBEDDED_CBOR,
    TAG_EMBEDDED_JSON,
    TAG_HEX_STRING,
    TAG_NETWORK_ADDR,
    TAG_NETWORK_PREFIX,
    TAG_TIMESTAMP,
    MajorType,
)
from logcodec.json_encoder import JSONEncoder

_EPOCH = datetime(1970, 1, 1, tzinfo=_tz.utc)
_BREAK_BYTE = MajorType.SIMPLE_AND_FLOAT | ADDITIONAL_BREAK
_ARGUMENT_WIDTHS = {
    ADDITIONAL_UINT8: 1,
    ADDITIONAL_UINT16: 2,
    ADDITIONAL_UINT32: 4,
    ADDITIONAL_UINT64: 8,
}
_FLOAT32_SPECIAL = {
    FLOAT32_NAN[1:]: math.nan,
    FLOAT32_POS_INF[1:]: math.inf,
    FLOAT32_NEG_INF[1:]: -math.inf,
}
_FLOAT64_SPECIAL = {
    FLOAT64_NAN[1:]: math.nan,
    FLOAT64_POS_INF[1:]: math.inf,
    FLOAT64_NEG_INF[1:]: -math.inf,
}
_FLOAT_TEXT = JSONEncoder()


class CBORDecodeError(ValueError):
    """Raised when CBOR input is truncated or malformed."""


def _to_int64(value):
    value &= (1 << 64) - 1
    return value - (1 << 64) if value >= 1 << 63 else value


def _addr_text(octets):
    if len(octets) == 4:
        return str(IPv4Address(octets))
    addr = IPv6Address(octets)
    if addr.ipv4_mapped is not None:
        return str(addr.ipv4_mapped)
    return str(addr)


def _prefix_text(octets, length):
    if len(octets) == 4:
        if not 0 <= length <= 32:
            return "<nil>"
        return f"{IPv4Address(octets)}/{length}"
    if len(octets) == 16 and 0 <= length <= 128:
        addr = IPv6Address(octets)
        if addr.ipv4_mapped is not None:
            return f"{addr.ipv4_mapped}/{max(length - 96, 0)}"
        return f"{addr}/{length}"
    return "<nil>"


class CBORReader:
    """Reads CBOR items from a byte stream and renders each as JSON bytes."""

    _CHUNK = 4096

    def __init__(self, stream, timezone=None):
        if isinstance(stream, (bytes, bytearray, memoryview)):
            stream = io.BytesIO(bytes(stream))
        self._stream = stream
        self._buf = b""
        self._pos = 0
        self.timezone = timezone if timezone is not None else _tz.utc

    # Low-level buffered access.

    def _fill(self, n):
        while len(self._buf) - self._pos < n:
            chunk = self._stream.read(max(self._CHUNK, n))
            if not chunk:
                break
            keep = max(self._pos - 1, 0)  # keep one byte so it can be unread
            self._buf = self._buf[keep:] + bytes(chunk)
            self._pos -= keep
        return len(self._buf) - self._pos

    def _peek(self):
        if self._fill(1) < 1:
            raise CBORDecodeError("EOF")
        return self._buf[self._pos]

    def _read_byte(self):
        if self._fill(1) < 1:
            raise CBORDecodeError("Tried to Read 1 Byte.. But hit end of file")
        byte = self._buf[self._pos]
        self._pos += 1
        return byte

    def _unread(self):
        self._pos -= 1

    def _read_exact(self, n):
        available = self._fill(n)
        if available < n:
            self._pos = len(self._buf)
            raise CBORDecodeError(f"Tried to Read {n} Bytes.. But hit end of file")
        data = self._buf[self._pos:self._pos + n]
        self._pos += n
        return data

    def _header(self):
        byte = self._read_byte()
        return byte & MASK_MAJOR, byte & MASK_ADDITIONAL

    def _argument(self, minor):
        if minor <= ADDITIONAL_MAX:
            return minor
        width = _ARGUMENT_WIDTHS.get(minor)
        if width is None:
            raise CBORDecodeError(
                f"Invalid Additional Type: {minor} in decodeInteger (expected <28)"
            )
        return int.from_bytes(self._read_exact(width), "big")

    def _take_break(self):
        if self._peek() == _BREAK_BYTE:
            self._read_byte()
            return True
        return False

    def at_end(self):
        """Return True when no further bytes can be read."""
        return self._fill(1) < 1

    # Scalars.

    def read_integer(self):
        """Read a positive or negative integer item."""
        major, minor = self._header()
        if major not in (MajorType.UNSIGNED_INT, MajorType.NEGATIVE_INT):
            raise CBORDecodeError(
                f"Major type is: {major} in decodeInteger!! (expected 0 or 1)"
            )
        value = _to_int64(self._argument(minor))
        if major == MajorType.UNSIGNED_INT:
            return value
        return _to_int64(-1 - value)

    def _read_float_sized(self):
        major, minor = self._header()
        if major != MajorType.SIMPLE_AND_FLOAT:
            raise CBORDecodeError(f"Incorrect Major type is: {major} in decodeFloat")
        if minor == ADDITIONAL_FLOAT16:
            raise CBORDecodeError("float16 is not suppported in decodeFloat")
        if minor == ADDITIONAL_FLOAT32:
            raw = self._read_exact(4)
            if raw in _FLOAT32_SPECIAL:
                return _FLOAT32_SPECIAL[raw], 4
            return struct.unpack(">f", raw)[0], 4
        if minor == ADDITIONAL_FLOAT64:
            raw = self._read_exact(8)
            if raw in _FLOAT64_SPECIAL:
                return _FLOAT64_SPECIAL[raw], 8
            return struct.unpack(">d", raw)[0], 8
        raise CBORDecodeError(f"Invalid Additional Type: {minor} in decodeFloat")

    def read_float(self):
        """Read a single or double precision float item."""
        return self._read_float_sized()[0]

    def read_simple_float(self):
        """Read a boolean, null or float item and return its JSON form."""
        major, minor = self._header()
        if major != MajorType.SIMPLE_AND_FLOAT:
            raise CBORDecodeError(f"Major type is: {major} in decodeSimpleFloat")
        if minor == ADDITIONAL_BOOL_TRUE:
            return b"true"
        if minor == ADDITIONAL_BOOL_FALSE:
            return b"false"
        if minor == ADDITIONAL_NULL:
            return b"null"
        if minor in (ADDITIONAL_FLOAT16, ADDITIONAL_FLOAT32, ADDITIONAL_FLOAT64):
            self._unread()
            value, width = self._read_float_sized()
            if width == 4:
                return _FLOAT_TEXT.append_float32(b"", value)
            return _FLOAT_TEXT.append_float64(b"", value)
        raise CBORDecodeError(f"Invalid Additional Type: {minor} in decodeSimpleFloat")

    # Strings.

    def read_utf8_string(self):
        """Read a text string and return it as an escaped JSON string."""
        major, minor = self._header()
        if major != MajorType.UTF8_STRING:
            raise CBORDecodeError(f"Major type is: {major} in decodeUTF8String")
        data = self._read_exact(self._argument(minor))
        return json_strings.append_bytes(b"", data)

    def read_byte_string(self, quoted=True):
        """Read a byte string, returned raw and optionally wrapped in quotes."""
        major, minor = self._header()
        if major != MajorType.BYTE_STRING:
            raise CBORDecodeError(f"Major type is: {major} in decodeString")
        data = self._read_exact(self._argument(minor))
        return b'"' + data + b'"' if quoted else data

    def _read_data_url(self, mime_type):
        payload = self.read_byte_string(quoted=False)
        encoded = base64.b64encode(payload)
        return b'"data:' + mime_type.encode("ascii") + b";base64," + encoded + b'"'

    def _expect_byte_string(self, where):
        major = self._read_byte() & MASK_MAJOR
        if major != MajorType.BYTE_STRING:
            raise CBORDecodeError(f"Unsupported embedded Type: {major} in {where}")
        self._unread()

    # Containers.

    def _emit_array(self, out):
        out += b"["
        major, minor = self._header()
        if major != MajorType.ARRAY:
            raise CBORDecodeError(f"Major type is: {major} in array2Json")
        indefinite = minor == ADDITIONAL_INDEFINITE
        count = 0 if indefinite else self._argument(minor)
        for i in itertools.count() if indefinite else range(count):
            if indefinite and self._take_break():
                break
            self._emit_object(out)
            if indefinite:
                if self._take_break():
                    break
                out += b","
            elif i + 1 < count:
                out += b","
        out += b"]"

    def _emit_map(self, out):
        major, minor = self._header()
        if major != MajorType.MAP:
            raise CBORDecodeError(f"Major type is: {major} in map2Json")
        indefinite = minor == ADDITIONAL_INDEFINITE
        count = 0 if indefinite else self._argument(minor)
        out += b"{"
        for i in itertools.count() if indefinite else range(count):
            if indefinite and self._take_break():
                break
            self._emit_object(out)
            if i % 2 == 0:
                out += b":"
            elif indefinite:
                if self._take_break():
                    break
                out += b","
            elif i + 1 < count:
                out += b","
        out += b"}"

    def read_array(self):
        """Read an array item and return it as a JSON array."""
        out = bytearray()
        self._emit_array(out)
        return bytes(out)

    def read_map(self):
        """Read a map item and return it as a JSON object."""
        out = bytearray()
        self._emit_map(out)
        return bytes(out)

    # Tags.

    def _format_time(self, total_ns, with_fraction):
        secs, rem = divmod(total_ns, 10**9)
        try:
            moment = (_EPOCH + timedelta(seconds=secs)).astimezone(self.timezone)
        except (OverflowError, ValueError) as err:
            raise CBORDecodeError(f"timestamp out of range: {err}") from None
        text = (
            f"{moment.year:04d}-{moment.month:02d}-{moment.day:02d}"
            f"T{moment.hour:02d}:{moment.minute:02d}:{moment.second:02d}"
        )
        if with_fraction and rem:
            text += "." + f"{rem:09d}".rstrip("0")
        offset = moment.utcoffset()
        minutes = int(offset.total_seconds()) // 60 if offset else 0
        if minutes == 0:
            text += "Z"
        else:
            sign = "+" if minutes > 0 else "-"
            minutes = abs(minutes)
            text += f"{sign}{minutes // 60:02d}:{minutes % 60:02d}"
        return b'"' + text.encode("ascii") + b'"'

    def _read_timestamp(self):
        major = self._peek() & MASK_MAJOR
        if major in (MajorType.UNSIGNED_INT, MajorType.NEGATIVE_INT):
            return self._format_time(self.read_integer() * 10**9, False)
        if major == MajorType.SIMPLE_AND_FLOAT:
            value = self.read_float()
            if math.isnan(value) or math.isinf(value):
                raise CBORDecodeError(f"timestamp out of range: {value}")
            secs = int(value)
            nanos = int((value - secs) * 1e9)
            return self._format_time(secs * 10**9 + nanos, True)
        raise CBORDecodeError(f"TS format is neigther int nor float: {major}")

    def read_tag(self):
        """Read a tagged item (timestamp, network address, hex, embedded data)."""
        major, minor = self._header()
        if major != MajorType.TAGS:
            raise CBORDecodeError(f"Major type is: {major} in decodeTagData")
        if minor == TAG_TIMESTAMP:
            return self._read_timestamp()
        if minor == ADDITIONAL_UINT8:
            tag = self._argument(minor)
            if tag == TAG_EMBEDDED_CBOR:
                self._expect_byte_string("decodeEmbeddedCBOR")
                return self._read_data_url("application/cbor")
            raise CBORDecodeError(f"Unsupported Additional Tag Type: {tag} in decodeTagData")
        if minor == ADDITIONAL_UINT16:
            tag = self._argument(minor)
            if tag == TAG_EMBEDDED_JSON:
                self._expect_byte_string("decodeEmbeddedJSON")
                return self.read_byte_string(quoted=False)
            if tag == TAG_NETWORK_ADDR:
                octets = self.read_byte_string(quoted=False)
                if len(octets) == 6:
                    text = ":".join(f"{b:02x}" for b in octets)
                elif len(octets) in (4, 16):
                    text = _addr_text(octets)
                else:
                    raise CBORDecodeError(
                        f"Unexpected Network Address length: {len(octets)} (expected 4,6,16)"
                    )
                return b'"' + text.encode("ascii") + b'"'
            if tag == TAG_NETWORK_PREFIX:
                if self._read_byte() != MajorType.MAP | 1:
                    raise CBORDecodeError("IP Prefix is NOT of MAP of 1 elements as expected")
                octets = self.read_byte_string(quoted=False)
                length = self.read_integer()
                return b'"' + _prefix_text(octets, length).encode("ascii") + b'"'
            if tag == TAG_HEX_STRING:
                octets = self.read_byte_string(quoted=False)
                return json_strings.append_hex(b"", octets)
            raise CBORDecodeError(f"Unsupported Additional Tag Type: {tag} in decodeTagData")
        raise CBORDecodeError(f"Unsupported Additional Type: {minor} in decodeTagData")

    # Dispatch.

    def _emit_object(self, out):
        major = self._peek() & MASK_MAJOR
        if major in (MajorType.UNSIGNED_INT, MajorType.NEGATIVE_INT):
            out += str(self.read_integer()).encode("ascii")
        elif major == MajorType.BYTE_STRING:
            out += self.read_byte_string(quoted=True)
        elif major == MajorType.UTF8_STRING:
            out += self.read_utf8_string()
        elif major == MajorType.ARRAY:
            self._emit_array(out)
        elif major == MajorType.MAP:
            self._emit_map(out)
        elif major == MajorType.TAGS:
            out += self.read_tag()
        else:
            out += self.read_simple_float()

    def read_object(self):
        """Read one complete item and return its JSON form."""
        out = bytearray()
        self._emit_object(out)
        return bytes(out)


def cbor_to_json_many(src, dst):
    """Decode every item in src, writing each as JSON plus a newline to dst.

    Output produced before a decoding failure is still written to dst.
    """
    reader = src if isinstance(src, CBORReader) else CBORReader(src)
    while not reader.at_end():
        out = bytearray()
        try:
            reader._emit_object(out)
        finally:
            dst.write(bytes(out))
        dst.write(b"\n")


def _is_binary(data):
    return len(data) > 0 and data[0] > 0x7F


def decode_if_binary_to_bytes(data):
    """Convert binary log data to JSON bytes; other input is returned unchanged."""
    data = bytes(data)
    if not _is_binary(data):
        return data
    sink = io.BytesIO()
    try:
        cbor_to_json_many(data, sink)
    except CBORDecodeError:
        pass
    return sink.getvalue()


def decode_if_binary_to_string(data):
    """Convert binary log data to a JSON string; other input is decoded as text."""
    return decode_if_binary_to_bytes(data).decode("utf-8", errors="replace")


def decode_object_to_str(data):
    """Decode a single item if the input is binary; other input is decoded as text."""
    data = bytes(data)
    if _is_binary(data):
        data = CBORReader(data).read_object()
    return data.decode("utf-8", errors="replace")