"""Registry builder utilities for creating event and function registries from signatures.

This module provides the core tools for building registries:
- Generic `make_registry()` function for single or multiple event signatures
- `make_function_registry()` for function signatures (with optional `returns (...)`)
- Signature parsing helpers for converting Solidity signatures to specs
"""

from __future__ import annotations

from typing import NamedTuple, Optional

from eth_utils import keccak

from .specs import (
    DataFieldSpec,
    EventRegistry,
    EventSpec,
    FunctionRegistry,
    FunctionSpec,
    Projection,
    ProjectionRefs,
    TopicFieldSpec,
)

_DATA_LOCATIONS = frozenset({"memory", "calldata", "storage"})


class Param(NamedTuple):
    name: str
    abi_type: str
    indexed: bool = False


# ---- Helpers: parse signatures ----
def _split_params(params_str: str) -> list[str]:
    """Split a parameter list on top-level commas (tuple types stay whole)."""
    items: list[str] = []
    depth = 0
    start = 0
    for i, ch in enumerate(params_str):
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        elif ch == "," and depth == 0:
            items.append(params_str[start:i].strip())
            start = i + 1
    items.append(params_str[start:].strip())
    return [i for i in items if i]


def _parse_param(fragment: str, fallback_name: str) -> Param:
    """Parse "uint256 indexed dappId" / "bytes calldata blob" / "address" into a Param."""
    tokens = [t for t in fragment.split() if t not in _DATA_LOCATIONS]
    indexed = "indexed" in tokens
    tokens = [t for t in tokens if t != "indexed"]
    if not tokens:
        raise ValueError(f"Invalid parameter: {fragment!r}")
    if len(tokens) == 1:
        return Param(fallback_name, tokens[0], indexed)
    # the last token is the name; the type may contain spaces inside tuple syntax
    return Param(tokens[-1], " ".join(tokens[:-1]), indexed)


def _parse_params(params_str: str, prefix: str = "arg") -> list[Param]:
    return [_parse_param(part, f"{prefix}{i}") for i, part in enumerate(_split_params(params_str))]


def _name_and_params(signature: str) -> tuple[str, str, str]:
    """Split "name(params) returns (outs)" into its three parts."""
    sig = signature.strip()
    for prefix in ("event ", "function "):
        sig = sig.removeprefix(prefix).strip()
    sig, _, returns = sig.partition(" returns")
    returns = returns.strip()
    if returns.startswith("(") and returns.endswith(")"):
        returns = returns[1:-1]
    sig = sig.strip()
    open_paren = sig.find("(")
    if open_paren <= 0 or not sig.endswith(")"):
        raise ValueError(f"Invalid signature: {signature}")
    return sig[:open_paren].strip(), sig[open_paren + 1 : -1].strip(), returns


def _canonical(name: str, params: list[Param]) -> str:
    return f"{name}({','.join(p.abi_type for p in params)})"


# ---- Events ----
def event_spec_from_signature(
    signature: str,
    projection: Optional[Projection] = None,
) -> EventSpec:
    """Build an EventSpec from a Solidity event signature string.

    Example input:
      "DappPublished(uint256 indexed dappId, uint256 indexed versionId, bytes rootCid, address proposer)"

    topic0 is keccak256 of the canonical type list (names and `indexed`
    dropped). Without an explicit projection every field is exposed under
    its own name.
    """
    name, params_str, _ = _name_and_params(signature)
    params = _parse_params(params_str)
    indexed = [p for p in params if p.indexed]
    data = [p for p in params if not p.indexed]

    if projection is None:
        projection = {
            p.name: ProjectionRefs.TopicRef(name=p.name) if p.indexed else ProjectionRefs.DataRef(name=p.name)
            for p in params
        }

    return EventSpec(
        topic0="0x" + keccak(text=_canonical(name, params)).hex(),
        name=name,
        topic_fields=[TopicFieldSpec(p.name, pos + 1, p.abi_type) for pos, p in enumerate(indexed)],
        data_fields=[DataFieldSpec(p.name, pos, p.abi_type) for pos, p in enumerate(data)],
        projection=projection,
    )


def make_registry(
    signatures: str | list[str],
    projections: Optional[dict[str, Projection]] = None,
) -> EventRegistry:
    """Create a registry keyed by topic0 from one or more event signatures.

    `projections` optionally overrides the projection per event name.
    """
    projections = projections or {}
    reg: EventRegistry = {}
    for signature in [signatures] if isinstance(signatures, str) else signatures:
        name, _, _ = _name_and_params(signature)
        spec = event_spec_from_signature(signature, projections.get(name))
        reg[spec.topic0] = spec
    return reg


# ---- Functions ----
def function_spec_from_signature(signature: str) -> FunctionSpec:
    """Build a FunctionSpec from a Solidity function signature string.

    Example input:
      "hasVoted(uint256 proposalId, address account) returns (bool)"
    """
    name, params_str, returns_str = _name_and_params(signature)
    inputs = _parse_params(params_str)
    return FunctionSpec(
        name=name,
        selector=keccak(text=_canonical(name, inputs))[:4],
        inputs=tuple((p.name, p.abi_type) for p in inputs),
        outputs=tuple(p.abi_type for p in _parse_params(returns_str, prefix="out")),
    )


def make_function_registry(signatures: str | list[str]) -> FunctionRegistry:
    """Create a function registry keyed by function name."""
    reg: FunctionRegistry = {}
    for signature in [signatures] if isinstance(signatures, str) else signatures:
        spec = function_spec_from_signature(signature)
        reg[spec.name] = spec
    return reg
