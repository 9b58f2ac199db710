"""JSON string, byte and hex encoding for log output."""

import re

_UTF8_SEQUENCE = (
    rb"[\xc2-\xdf][\x80-\xbf]"
    rb"|\xe0[\xa0-\xbf][\x80-\xbf]"
    rb"|[\xe1-\xec\xee\xef][\x80-\xbf]{2}"
    rb"|\xed[\x80-\x9f][\x80-\xbf]"
    rb"|\xf0[\x90-\xbf][\x80-\xbf]{2}"
    rb"|[\xf1-\xf3][\x80-\xbf]{3}"
    rb"|\xf4[\x80-\x8f][\x80-\xbf]{2}"
)
_SPECIAL = rb'[\x00-\x1f"\\\x7f-\xff]'
_NEEDS_ESCAPE = re.compile(_SPECIAL)
_SEQUENCE_OR_SPECIAL = re.compile(rb"(" + _UTF8_SEQUENCE + rb")|(" + _SPECIAL + rb")")

_SHORT_ESCAPES = {
    0x22: b'\\"',
    0x5C: b"\\\\",
    0x08: b"\\b",
    0x0C: b"\\f",
    0x0A: b"\\n",
    0x0D: b"\\r",
    0x09: b"\\t",
}


def _escape(match):
    if match.group(1):
        return match.group(1)
    byte = match.group(2)[0]
    if byte >= 0x80:
        return b"\\ufffd"
    return _SHORT_ESCAPES.get(byte) or b"\\u00%02x" % byte


def _quote(data):
    if _NEEDS_ESCAPE.search(data):
        data = _SEQUENCE_OR_SPECIAL.sub(_escape, data)
    return b'"' + data + b'"'


def append_bytes(dst, s):
    """Append raw bytes as a JSON string; invalid UTF-8 bytes become \\ufffd."""
    return bytes(dst) + _quote(bytes(s))


def append_string(dst, s):
    """Append a text string as a quoted, escaped JSON string."""
    return bytes(dst) + _quote(s.encode("utf-8", "surrogatepass"))


def append_hex(dst, s):
    """Append bytes as a quoted lower-case hex string."""
    return bytes(dst) + b'"' + bytes(s).hex().encode("ascii") + b'"'


def append_strings(dst, vals):
    """Append a JSON array of strings."""
    return bytes(dst) + b"[" + b",".join(_quote(v.encode("utf-8", "surrogatepass")) for v in vals) + b"]"