"""Generic decoders for event logs and call data.

`decode_event` translates raw logs into `ParsedEvent` using an
`EventRegistry` defined by `EventSpec` + (topic|data) field specs.
`decode_call` does the same for function call payloads against a
`FunctionRegistry`. Both return None instead of raising: an entry that
does not match, or does not decode, is simply dropped by the caller.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from eth_abi import decode as abi_decode
from eth_abi import encode as abi_encode
from eth_abi.exceptions import DecodingError

from dappgov.core.models import Meta
from dappgov.decoding.specs import (
    EventRegistry,
    EventSpec,
    FunctionRegistry,
    FunctionSpec,
    resolve_projection_ref,
)
from dappgov.decoding.utils import normalize_value, parse_topic_field

# ---------- parsed results ----------


@dataclass(slots=True)
class ParsedEvent:
    """Decoded event with open-ended `values` from the spec projection."""

    name: str
    contract: str
    meta: Meta
    values: dict[str, Any]

    @property
    def position(self) -> tuple[int, int]:
        return (self.meta.block_number, self.meta.log_index)


@dataclass(slots=True)
class ParsedCall:
    """Decoded function call payload."""

    name: str
    args: dict[str, Any]


# ---------- helper functions ----------


def _validate_and_get_spec(topics: Sequence[str], registry: EventRegistry) -> EventSpec | None:
    """Validate topics and retrieve event spec from registry.

    Returns None if topics are invalid or spec not found.
    """
    if not topics:
        return None
    topic0 = topics[0].lower()
    return registry.get(topic0)


def _decode_data(spec: EventSpec, data: bytes) -> dict[str, Any] | None:
    if not spec.data_fields:
        return {}
    try:
        decoded = abi_decode(spec.data_types, data)
    except (DecodingError, ValueError, OverflowError):
        return None
    ordered = sorted(spec.data_fields, key=lambda df: df.index)
    return {df.name: normalize_value(v, df.type) for df, v in zip(ordered, decoded)}


# ---------- main generic decoders ----------


def decode_event(
    *,
    topics: Sequence[str],
    data: bytes,
    meta: Meta,
    registry: EventRegistry,
) -> ParsedEvent | None:
    """Decode raw log (topics + data) into a `ParsedEvent` or return None.

    None means: unknown topic0, missing indexed topics, or a data section
    that does not decode against the spec's types.
    """
    spec = _validate_and_get_spec(topics, registry)
    if spec is None:
        return None

    # Parse topic fields
    topic_vals: dict[str, Any] = {}
    for tf in spec.topic_fields:
        if tf.index >= len(topics):
            return None
        try:
            topic_vals[tf.name] = parse_topic_field(topics[tf.index], tf)
        except ValueError:
            return None

    data_vals = _decode_data(spec, data)
    if data_vals is None:
        return None

    resolved: dict[str, Any] = {}
    for out_key, ref in spec.projection.items():
        resolved[out_key] = resolve_projection_ref(ref, topic_vals, data_vals)

    return ParsedEvent(
        name=spec.name,
        contract=meta.address.lower(),
        meta=meta,
        values=resolved,
    )


def decode_call(calldata: bytes, functions: FunctionRegistry) -> ParsedCall | None:
    """Decode a call payload against the registry's function selectors."""
    if len(calldata) < 4:
        return None
    selector = calldata[:4]
    for spec in functions.values():
        if spec.selector != selector:
            continue
        try:
            args = abi_decode(spec.input_types, calldata[4:])
        except (DecodingError, ValueError, OverflowError):
            return None
        return ParsedCall(
            name=spec.name,
            args={n: normalize_value(v, t) for (n, t), v in zip(spec.inputs, args)},
        )
    return None


def encode_call(spec: FunctionSpec, args: Sequence[Any]) -> bytes:
    """ABI-encode a call payload (selector + arguments)."""
    return spec.selector + abi_encode(spec.input_types, list(args))


def decode_output(spec: FunctionSpec, raw: bytes) -> tuple[Any, ...]:
    """Decode `eth_call` return data; raises on malformed output."""
    return tuple(normalize_value(v, t) for t, v in zip(spec.outputs, abi_decode(list(spec.outputs), raw)))
