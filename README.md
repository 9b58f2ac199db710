# logcodec

Low-level building blocks for writing structured log records in two wire
formats:

- **JSON**: compact, human-readable lines.
- **CBOR**: a compact binary form. A decoder turns binary records back into
  JSON text for display.

Both encoders share the same method names. Code that builds a log record can
switch formats by swapping the encoder object. Every `append_*` method takes
the buffer built so far (`bytes`) and returns a new `bytes` with the value
appended.

## Installation

```
pip install logcodec
```

The package has no runtime dependencies beyond the standard library.

## Modules

| Module | What it holds |
| --- | --- |
| `logcodec.json_strings` | JSON string escaping: `append_string`, `append_bytes`, `append_hex`, `append_strings` |
| `logcodec.json_encoder` | `JSONEncoder`, and the time-format names `UNIX`, `UNIX_MS`, `UNIX_MICRO`, `UNIX_NANO` |
| `logcodec.cbor_core` | CBOR major types (`MajorType`) and header helpers: `append_type_prefix`, `append_length_header`, `append_embedded_json`, `append_embedded_cbor` |
| `logcodec.cbor_time` | CBOR timestamps and durations: `append_time`, `append_times`, `append_duration`, `append_durations` |
| `logcodec.cbor_encoder` | `CBOREncoder` |
| `logcodec.cbor_decoder` | `CBORReader` and `CBORDecodeError`, plus the helpers `cbor_to_json_many`, `decode_if_binary_to_string`, `decode_object_to_str` and `decode_if_binary_to_bytes` |

## Building a record

```python
from logcodec.json_encoder import JSONEncoder

enc = JSONEncoder()
buf = enc.append_begin_marker(b"")
buf = enc.append_key(buf, "level")
buf = enc.append_string(buf, "info")
buf = enc.append_key(buf, "count")
buf = enc.append_int(buf, 3)
buf = enc.append_end_marker(buf)
buf = enc.append_line_break(buf)
# b'{"level":"info","count":3}\n'
```

Both `JSONEncoder` and `CBOREncoder` take an optional `marshal` callable.
`append_interface` calls it to turn an arbitrary value into JSON. If you do
not pass one, the encoders use compact `json.dumps` output. If the callable
raises, the encoder writes the string `"marshaling error: ..."` in the value's
place. The JSON encoder inserts the marshaled text as is. The CBOR encoder
wraps it in an embedded-JSON tag.

### Structure

- `append_begin_marker` and `append_end_marker` open and close a map.
- `append_key` adds a key to the map:
  - The JSON encoder adds a comma before the key unless the buffer ends with
    `{`. It raises `ValueError` if the buffer is empty.
  - The CBOR encoder opens the map itself if the buffer is empty.
- `append_array_start`, `append_array_end` and `append_array_delim` handle
  arrays.
- `append_line_break` ends a record.
- `append_object_data` splices in an object that was already encoded. Its
  leading map marker is dropped.

In CBOR, `append_line_break` and `append_array_delim` do nothing, because the
binary format needs no separators.

### Values

- **Scalars:** `append_string`, `append_bytes`, `append_hex`, `append_bool`,
  `append_int`, `append_float32`, `append_float64` and `append_nil`.
- **Lists:** the plural forms (`append_strings`, `append_bools`, `append_ints`,
  `append_floats32`, `append_floats64`, `append_stringers`).
- **Stringers:** `append_stringer` writes `str(value)`. A `None` value is
  written as null.
- **Type name:** `append_type` writes the value's type name, or `"<nil>"` for
  `None`. Built-in types are written bare, such as `"int"`. Other types are
  written as `module.Name`.
- **IP addresses:** `append_ip_addr` accepts an `ipaddress` address, a
  string, or 4 or 16 raw bytes.
- **IP prefixes:** `append_ip_prefix` accepts an `(address, length)` tuple,
  an `ipaddress` network or interface, or a string.
- **MAC addresses:** `append_mac_addr` accepts bytes or a hex string. The
  separators `:`, `-` and `.` are allowed in the string.

### Escaping and special numbers

JSON strings are escaped byte by byte. Invalid UTF-8 is replaced with
`\ufffd`.

JSON cannot hold NaN or infinity. The JSON encoder writes them as the strings
`"NaN"`, `"+Inf"` and `"-Inf"`. Other floats are written in plain positional
notation, never as exponents. A float32 value uses the shortest digits that
survive a round trip through single precision.

### Time and durations

Times are `datetime` objects. A naive time is taken as UTC. Durations and
their units are `timedelta` objects.

For `JSONEncoder.append_time` and `append_times`, the format argument picks
the output:

| Format | Output |
| --- | --- |
| `UNIX` (`""`) | integer Unix seconds |
| `UNIX_MS` (`"UNIXMS"`) | integer milliseconds |
| `UNIX_MICRO` (`"UNIXMICRO"`) | integer microseconds |
| `UNIX_NANO` (`"UNIXNANO"`) | integer nanoseconds |
| anything else | a `strftime` format, written as a quoted string |

`append_duration` writes the duration divided by `unit`:

- With `use_int=True`, it writes an integer, truncated toward zero.
- Otherwise it writes a float.

The CBOR encoder ignores the time format. It writes a tagged integer
timestamp when the time has no sub-second part, and a tagged float64
otherwise.

## Reading binary logs

```python
from logcodec.cbor_encoder import CBOREncoder
from logcodec.cbor_decoder import decode_if_binary_to_string

enc = CBOREncoder()
buf = enc.append_key(b"", "level")
buf = enc.append_string(buf, "info")
buf = enc.append_end_marker(buf)
print(decode_if_binary_to_string(buf), end="")  # {"level":"info"}
```

Data that starts with a byte above `0x7F` is treated as binary. Any other
input is passed through unchanged.

- `cbor_to_json_many(src, dst)` reads every item from `src` and writes each
  one to `dst` as a JSON line. `src` can be bytes, a binary stream or a
  `CBORReader`. Output produced before an error is still written, and then
  the error is raised.
- `decode_if_binary_to_bytes` and `decode_if_binary_to_string` decode all
  items. On malformed input they return whatever was decoded before the
  error, and raise nothing.
- `decode_object_to_str` decodes only the first item. It raises on malformed
  input.

For finer control, wrap bytes or a stream in `CBORReader(stream,
timezone=None)`:

- Call `read_object` repeatedly to read items, and `at_end` to test for more
  input.
- Typed readers are also available: `read_integer`, `read_float`,
  `read_utf8_string`, `read_byte_string`, `read_array`, `read_map`, `read_tag`
  and `read_simple_float`.

Truncated or malformed input raises `CBORDecodeError`, which is a subclass of
`ValueError`. The message says what went wrong, for example
`"Tried to Read 4 Bytes.. But hit end of file"`.

When decoding, tagged values become JSON text:

- Timestamps become RFC 3339 strings in the reader's time zone, which is UTC
  by default.
- IP addresses, prefixes and MAC addresses become their usual text forms.
- Hex tags become lowercase hex strings.
- Embedded JSON is inserted as is.
- Embedded CBOR becomes a `data:application/cbor;base64,...` URL.
- Float16 values are not supported.

## What this package does not do

It only encodes and decodes values. It has no logger front end: no levels,
hooks, context fields or output writers, and no command-line tool. You build
records with the encoders and write the bytes wherever you need them.

## Running the tests

```
pip install -e ".[test]"
pytest
```