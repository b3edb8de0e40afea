"""Decoding utilities: hex/bytes conversion, topic parsers and value normalization."""

from __future__ import annotations

from typing import Any

from .specs import TopicFieldSpec


def hex_to_bytes(value: str | bytes) -> bytes:
    """Return raw bytes for a 0x-hex string (bytes pass through)."""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    h = value[2:] if value[:2].lower() == "0x" else value
    return bytes.fromhex(h) if h else b""


def address_topic(address: str) -> str:
    """Left-pad an address into a 32-byte indexed topic."""
    a = address.lower()
    a = a[2:] if a.startswith("0x") else a
    if len(a) != 40:
        raise ValueError(f"not an address: {address}")
    return "0x" + "0" * 24 + a


def uint_topic(value: int) -> str:
    """Encode an unsigned integer as a 32-byte indexed topic."""
    return "0x" + value.to_bytes(32, "big").hex()


def parse_topic_field(topic_hex: str, spec: TopicFieldSpec) -> Any:
    """Parse one indexed topic according to the declared type.

    Dynamic types (string, bytes, arrays) are stored as their keccak hash
    and come back as the raw hex topic.
    """
    t = spec.type
    h = topic_hex.lower()
    if t == "address":
        return "0x" + h[-40:]
    if t == "bool":
        return int(h, 16) != 0
    if t.startswith("uint"):
        return int(h, 16)
    if t.startswith("int"):
        v = int(h, 16)
        bits = int(t[3:]) if t != "int" else 256
        # two's complement over the declared width
        v &= (1 << bits) - 1
        if v >= 2 ** (bits - 1):
            v -= 2**bits
        return v
    # Unknown type: return raw hex string
    return h


def normalize_value(value: Any, typ: str) -> Any:
    """Normalize a decoded ABI value: lowercase addresses, tuples for arrays."""
    if typ.endswith("]"):
        inner = typ[: typ.rfind("[")]
        return tuple(normalize_value(v, inner) for v in value)
    if typ == "address" and isinstance(value, str):
        return value.lower()
    return value


def decode_content_id(raw: bytes | str | None) -> str:
    """Decode an on-chain content identifier stored as bytes.

    UTF-8 text with trailing NUL padding stripped; bytes that are not valid
    UTF-8 come back as their 0x-hex form.
    """
    if raw is None:
        return ""
    if isinstance(raw, str):
        try:
            raw = hex_to_bytes(raw)
        except ValueError:
            return raw
    if not raw:
        return ""
    try:
        return raw.decode("utf-8").rstrip("\x00")
    except UnicodeDecodeError:
        return "0x" + raw.hex()
