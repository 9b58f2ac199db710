"""Append-style JSON and CBOR encoders for structured log records, and a CBOR-to-JSON decoder."""

__version__ = "0.1.0"

__all__ = [
    "cbor_core",
    "cbor_time",
    "cbor_encoder",
    "cbor_decoder",
    "json_strings",
    "json_encoder",
]