from dataclasses import dataclass, field
from typing import Any
from unittest.mock import AsyncMock

import pytest
from eth_abi import encode as abi_encode

from dappgov.core.errors import RpcError
from dappgov.core.models import EventLog
from dappgov.decoding.decoder import decode_call
from dappgov.decoding.registries import make_dapp_registry, make_governor_functions, make_proposal_registry, make_vote_registry
from dappgov.decoding.specs import EventRegistry, spec_by_name
from dappgov.decoding.utils import address_topic, uint_topic

GOVERNOR = "0x" + "11" * 20
REGISTRY = "0x" + "22" * 20
ACCOUNT = "0x" + "aa" * 20
OTHER = "0x" + "bb" * 20

GENESIS_TS = 1_700_000_000


def _topic(value: Any, typ: str) -> str:
    if typ == "address":
        return address_topic(value)
    return uint_topic(value)


def make_log(
    registry: EventRegistry,
    event: str,
    *,
    address: str,
    block: int,
    log_index: int = 0,
    **fields: Any,
) -> EventLog:
    """ABI-encode an event log the way a node would return it."""
    spec = spec_by_name(registry, event)
    topics = [spec.topic0] + [_topic(fields[tf.name], tf.type) for tf in sorted(spec.topic_fields, key=lambda f: f.index)]
    data = abi_encode(spec.data_types, [fields[df.name] for df in sorted(spec.data_fields, key=lambda f: f.index)])
    return EventLog(
        address=address.lower(),
        topics=tuple(topics),
        data_hex="0x" + data.hex(),
        block_number=block,
        tx_hash="0x" + f"{block:04x}{log_index:04x}".rjust(64, "0"),
        log_index=log_index,
    )


def proposal_log(
    proposal_id: int,
    *,
    block: int,
    log_index: int = 0,
    proposer: str = ACCOUNT,
    targets: tuple[str, ...] = (REGISTRY,),
    values: tuple[int, ...] = (0,),
    calldatas: tuple[bytes, ...] = (b"",),
    vote_start: int = 0,
    vote_end: int = 0,
    description: str = "",
    address: str = GOVERNOR,
) -> EventLog:
    return make_log(
        make_proposal_registry(),
        "ProposalCreated",
        address=address,
        block=block,
        log_index=log_index,
        proposalId=proposal_id,
        proposer=proposer,
        targets=list(targets),
        values=list(values),
        signatures=[""] * len(targets),
        calldatas=list(calldatas),
        voteStart=vote_start or block + 1,
        voteEnd=vote_end or block + 100,
        description=description,
    )


def vote_log(
    proposal_id: int,
    support: int,
    weight: int,
    *,
    block: int,
    log_index: int = 0,
    voter: str = ACCOUNT,
    reason: str = "",
    with_params: bool = False,
    address: str = GOVERNOR,
) -> EventLog:
    fields: dict[str, Any] = dict(voter=voter, proposalId=proposal_id, support=support, weight=weight, reason=reason)
    if with_params:
        fields["params"] = b"\x01"
    return make_log(
        make_vote_registry(),
        "VoteCastWithParams" if with_params else "VoteCast",
        address=address,
        block=block,
        log_index=log_index,
        **fields,
    )


def dapp_log(event: str, *, block: int, log_index: int = 0, address: str = REGISTRY, **fields: Any) -> EventLog:
    return make_log(make_dapp_registry(), event, address=address, block=block, log_index=log_index, **fields)


@dataclass
class FakeGovernor:
    """Governor read surface keyed by proposal id; missing entries revert."""

    states: dict[int, int] = field(default_factory=dict)
    snapshots: dict[int, int] = field(default_factory=dict)
    deadlines: dict[int, int] = field(default_factory=dict)
    etas: dict[int, int] = field(default_factory=dict)
    voted: set[tuple[int, str]] = field(default_factory=set)
    votes: dict[str, int] = field(default_factory=dict)
    threshold: int = 0
    # (function, proposal id or None for any) -> revert
    failing: set[tuple[str, int | None]] = field(default_factory=set)

    def add(self, proposal_id: int, state: int, *, snapshot: int = 0, deadline: int = 0, eta: int = 0) -> None:
        self.states[proposal_id] = state
        self.snapshots[proposal_id] = snapshot
        self.deadlines[proposal_id] = deadline
        self.etas[proposal_id] = eta

    def handle(self, name: str, args: dict[str, Any]) -> Any:
        pid = args.get("proposalId")
        if (name, pid) in self.failing or (name, None) in self.failing:
            raise RpcError("eth_call", "execution reverted")
        try:
            match name:
                case "state":
                    return self.states[pid]
                case "proposalSnapshot":
                    return self.snapshots[pid]
                case "proposalDeadline":
                    return self.deadlines[pid]
                case "proposalEta":
                    return self.etas[pid]
                case "hasVoted":
                    return (pid, args["account"]) in self.voted
                case "proposalThreshold":
                    return self.threshold
                case "getVotes":
                    return self.votes.get(args["account"], 0)
        except KeyError:
            raise RpcError("eth_call", "execution reverted") from None
        raise RpcError("eth_call", f"unsupported function {name}")


class FakeChain:
    """In-memory IChainReader: filters stored logs and serves governor reads."""

    def __init__(self, head: int = 1_000) -> None:
        self.head = head
        self.logs: list[EventLog] = []
        self.governors: dict[str, FakeGovernor] = {}
        self.get_logs_calls: list[tuple[str, tuple, int, int]] = []
        self.call_log: list[tuple[str, str, Any]] = []
        self.failing_ranges: set[tuple[int, int]] = set()
        self._functions = make_governor_functions()

    def add_logs(self, *logs: EventLog) -> None:
        self.logs.extend(logs)

    def governor(self, address: str = GOVERNOR) -> FakeGovernor:
        return self.governors.setdefault(address.lower(), FakeGovernor())

    async def latest_block(self) -> int:
        return self.head

    async def get_block_timestamp(self, block_number: int) -> int:
        return GENESIS_TS + 12 * block_number

    async def get_logs(self, *, address: str, topics, from_block: int, to_block: int) -> list[EventLog]:
        self.get_logs_calls.append((address.lower(), tuple(topics), from_block, to_block))
        if (from_block, to_block) in self.failing_ranges:
            raise RpcError("eth_getLogs", "query returned more than 10000 results")
        out = []
        for ev in self.logs:
            if ev.address != address.lower() or not from_block <= ev.block_number <= to_block:
                continue
            if all(_topic_matches(ev, i, t) for i, t in enumerate(topics)):
                out.append(ev)
        return sorted(out, key=lambda ev: ev.position)

    async def call(self, *, to: str, data: bytes, block: int | str = "latest") -> bytes:
        parsed = decode_call(data, self._functions)
        if parsed is None:
            raise RpcError("eth_call", "unknown selector")
        self.call_log.append((to.lower(), parsed.name, block))
        gov = self.governors.get(to.lower())
        if gov is None:
            return b""
        value = gov.handle(parsed.name, parsed.args)
        return abi_encode(list(self._functions[parsed.name].outputs), [value])


def _topic_matches(ev: EventLog, i: int, want: Any) -> bool:
    if want is None:
        return True
    if i >= len(ev.topics):
        return False
    if isinstance(want, str):
        return ev.topics[i] == want.lower()
    return ev.topics[i] in {w.lower() for w in want}


@pytest.fixture
def mock_rpc():
    rpc = AsyncMock()
    rpc.get_logs = AsyncMock(return_value=[])
    rpc.latest_block = AsyncMock(return_value=100)
    rpc.aclose = AsyncMock()
    return rpc


@pytest.fixture
def chain() -> FakeChain:
    return FakeChain()
