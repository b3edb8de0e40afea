"""Build event and function specs from contract ABI JSON.

Accepts a bare ABI list, a build artifact carrying an `abi` key, or a
path to either. Field order follows the ABI, so specs built here match
the ones built from the equivalent Solidity signatures.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any, Literal

from eth_utils import keccak
from pydantic import BaseModel, Field

from dappgov.decoding.specs import (
    DataFieldSpec,
    EventRegistry,
    EventSpec,
    FunctionRegistry,
    FunctionSpec,
    ProjectionRefs,
    TopicFieldSpec,
)


class AbiInput(BaseModel):
    name: str = ""
    type: str
    indexed: bool = False
    internal_type: str | None = Field(default=None, alias="internalType")


class AbiEvent(BaseModel):
    type: Literal["event"]
    name: str
    inputs: Sequence[AbiInput] = ()
    anonymous: bool = False


class AbiFunction(BaseModel):
    type: Literal["function"]
    name: str
    inputs: Sequence[AbiInput] = ()
    outputs: Sequence[AbiInput] = ()
    state_mutability: str | None = Field(default=None, alias="stateMutability")


def _arg_name(inp: AbiInput, i: int) -> str:
    return inp.name or f"arg{i}"


def get_event_signature(event: AbiEvent) -> str:
    return f"{event.name}({','.join(i.type for i in event.inputs)})"


def get_event_topic0(event: AbiEvent) -> str:
    return "0x" + keccak(text=get_event_signature(event)).hex()


def get_event_spec(event: AbiEvent) -> EventSpec:
    named = [(_arg_name(inp, i), inp) for i, inp in enumerate(event.inputs)]
    indexed = [(n, inp) for n, inp in named if inp.indexed]
    data = [(n, inp) for n, inp in named if not inp.indexed]
    return EventSpec(
        topic0=get_event_topic0(event),
        name=event.name,
        topic_fields=[TopicFieldSpec(n, idx + 1, inp.type) for idx, (n, inp) in enumerate(indexed)],
        data_fields=[DataFieldSpec(n, idx, inp.type) for idx, (n, inp) in enumerate(data)],
        projection={
            n: ProjectionRefs.TopicRef(name=n) if inp.indexed else ProjectionRefs.DataRef(name=n)
            for n, inp in named
        },
    )


def get_function_spec(fn: AbiFunction) -> FunctionSpec:
    inputs = tuple((_arg_name(inp, i), inp.type) for i, inp in enumerate(fn.inputs))
    canonical = f"{fn.name}({','.join(t for _n, t in inputs)})"
    return FunctionSpec(
        name=fn.name,
        selector=keccak(text=canonical)[:4],
        inputs=inputs,
        outputs=tuple(o.type for o in fn.outputs),
    )


AbiJson = Iterable[dict[str, Any]]
AbiSource = AbiJson | dict[str, Any] | Path


def _load_abi(abi: AbiSource) -> list[dict[str, Any]]:
    if isinstance(abi, Path):
        abi = json.loads(abi.read_text())
    if isinstance(abi, dict):
        # build artifacts wrap the ABI
        abi = abi.get("abi", [])
    return list(abi)


def get_events_from_abi(abi: AbiSource) -> dict[str, AbiEvent]:
    return {e["name"]: AbiEvent.model_validate(e) for e in _load_abi(abi) if e.get("type") == "event"}


def get_functions_from_abi(abi: AbiSource) -> dict[str, AbiFunction]:
    # overloads: first declaration wins
    out: dict[str, AbiFunction] = {}
    for e in _load_abi(abi):
        if e.get("type") == "function" and e["name"] not in out:
            out[e["name"]] = AbiFunction.model_validate(e)
    return out


def make_event_registry_from_abi(abi: AbiSource, names: Iterable[str] | None = None) -> EventRegistry:
    """Event registry keyed by topic0, optionally restricted to `names`."""
    events = get_events_from_abi(abi)
    wanted = set(names) if names is not None else None
    reg: EventRegistry = {}
    for name, event in events.items():
        if event.anonymous or (wanted is not None and name not in wanted):
            continue
        spec = get_event_spec(event)
        reg[spec.topic0] = spec
    return reg


def make_function_registry_from_abi(abi: AbiSource) -> FunctionRegistry:
    return {name: get_function_spec(fn) for name, fn in get_functions_from_abi(abi).items()}
