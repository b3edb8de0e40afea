"""Event and call-data decoding.

This package provides:
- Specification system (EventSpec, TopicFieldSpec, DataFieldSpec, FunctionSpec)
- Generic decoders translating raw logs / call data into parsed records
- Registry builders from Solidity signatures
- Pre-built registries for the governor and the dapp registry
"""

from dappgov.decoding.decoder import ParsedCall, ParsedEvent, decode_call, decode_event, decode_output, encode_call
from dappgov.decoding.registry_builder import make_function_registry, make_registry
from dappgov.decoding.specs import (
    DataFieldSpec,
    EventRegistry,
    EventSpec,
    FunctionRegistry,
    FunctionSpec,
    Projection,
    ProjectionRefs,
    TopicFieldSpec,
)

__all__ = [
    "ParsedCall",
    "ParsedEvent",
    "decode_call",
    "decode_event",
    "decode_output",
    "encode_call",
    "make_function_registry",
    "make_registry",
    "DataFieldSpec",
    "EventRegistry",
    "EventSpec",
    "FunctionRegistry",
    "FunctionSpec",
    "Projection",
    "ProjectionRefs",
    "TopicFieldSpec",
]
