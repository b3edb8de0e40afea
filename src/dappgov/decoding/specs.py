"""Event/function specification primitives and registry typing.

Defines lightweight dataclasses to describe how to decode chain data:
- `TopicFieldSpec` / `DataFieldSpec`: typed sources for indexed topics / data values
- `EventSpec`: one event rule (topic0, fields, projection)
- `EventRegistry`: mapping from topic0 → EventSpec
- `FunctionSpec`: one contract function (selector, typed inputs/outputs)
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any


# ---- Projection mapping ----
# Keys: output field names (e.g., "dappId", "versionId", "rootCid")
# Values: references to parsed fields or constant strings
#   - ProjectionRefs.TopicRef(name="<name>")  → take from parsed indexed topic fields
#   - ProjectionRefs.DataRef(name="<name>")   → take from decoded data values
#   - ProjectionRefs.Constant(value="value")  → output a constant
class ProjectionRefs:
    @dataclass(kw_only=True)
    class TopicRef:
        name: str

    @dataclass(kw_only=True)
    class DataRef:
        name: str

    @dataclass(kw_only=True)
    class Constant:
        value: Any


ProjectionRef = ProjectionRefs.TopicRef | ProjectionRefs.DataRef | ProjectionRefs.Constant | None

Projection = Mapping[str, ProjectionRef]


def resolve_projection_ref(
    ref: ProjectionRef,
    topic_vals: dict[str, Any],
    data_vals: dict[str, Any],
) -> Any:
    """Resolve a projection reference"""
    if ref is None:
        return None
    match ref:
        case ProjectionRefs.TopicRef():
            return topic_vals.get(ref.name)
        case ProjectionRefs.DataRef():
            return data_vals.get(ref.name)
        case ProjectionRefs.Constant():
            return ref.value
    raise RuntimeError("Unsupported ProjectionEntry type")


@dataclass(frozen=True)
class TopicFieldSpec:
    """Describe one indexed topic field (by 0-based topic index and ABI type)."""

    name: str
    index: int
    type: str  # e.g., "address", "uint256", "bytes32"


@dataclass(frozen=True)
class DataFieldSpec:
    """Describe one non-indexed value (0-based position in the data tuple)."""

    name: str
    index: int
    type: str  # e.g., "uint256", "address[]", "string", "bytes"


@dataclass(frozen=True)
class EventSpec:
    """One event decoding rule + projection."""

    topic0: str
    name: str
    topic_fields: list[TopicFieldSpec]
    data_fields: list[DataFieldSpec]
    projection: Projection

    def __post_init__(self):
        def _find_matches(ref_name: str, fields: Sequence[TopicFieldSpec | DataFieldSpec]):
            return [field for field in fields if field.name == ref_name]

        for name, projection_ref in self.projection.items():
            if not isinstance(projection_ref, ProjectionRef):
                raise ValueError(f"{name} projection is not a ProjectionRef instance")
            match projection_ref:
                case ProjectionRefs.TopicRef():
                    matches = _find_matches(projection_ref.name, self.topic_fields)
                    if len(matches) == 0:
                        raise ValueError(f"{name} projection refers to an non-existant topic field")
                case ProjectionRefs.DataRef():
                    matches = _find_matches(projection_ref.name, self.data_fields)
                    if len(matches) == 0:
                        raise ValueError(f"{name} projection refers to an non-existant data field")

    @property
    def data_types(self) -> list[str]:
        return [df.type for df in sorted(self.data_fields, key=lambda df: df.index)]


# The full registry keyed by topic0 (lowercased 0x-hex).
EventRegistry = dict[str, EventSpec]


def spec_by_name(registry: EventRegistry, name: str) -> EventSpec:
    """Return the spec registered under an event name."""
    for spec in registry.values():
        if spec.name == name:
            return spec
    raise KeyError(name)


@dataclass(frozen=True)
class FunctionSpec:
    """One contract function: 4-byte selector and typed inputs/outputs."""

    name: str
    selector: bytes
    inputs: tuple[tuple[str, str], ...]  # (name, abi_type)
    outputs: tuple[str, ...] = field(default=())

    @property
    def input_types(self) -> list[str]:
        return [t for _n, t in self.inputs]

    @property
    def input_names(self) -> list[str]:
        return [n for n, _t in self.inputs]

    @property
    def canonical_signature(self) -> str:
        return f"{self.name}({','.join(self.input_types)})"


# Function specs keyed by name.
FunctionRegistry = dict[str, FunctionSpec]
