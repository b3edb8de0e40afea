"""Core data models for governance and registry projections.

This module defines:
- `EventLog`: minimal RPC log record used by the decoders.
- `Meta`: per-log position metadata carried through decoding.
- `ProposalRecord` / `ProposalRuntimeState` / `VoteEvent`: governor views.
- `DappVersionRecord` / `DappRecord` / `DappRow`: registry projection.
- `BundleReference`: link from a proposal to the bundle it governs.

Design notes
------------
- Every value record is a frozen dataclass rebuilt on each refresh.
- `DappVersionRecord` and `DappRecord` are the only mutable types; they
  exist only while the registry fold runs and are frozen into `DappRow`.
- Chain order is always `(block_number, log_index)`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

PROPOSAL_STATES: tuple[str, ...] = (
    "Pending",
    "Active",
    "Canceled",
    "Defeated",
    "Succeeded",
    "Queued",
    "Expired",
    "Executed",
)

HISTORICAL_STATES = frozenset({"Canceled", "Defeated", "Expired", "Executed"})

VoteDirection = Literal["for", "against", "abstain", "none"]
DappStatus = Literal["Published", "Paused", "Deprecated", "Unknown"]
BundleAction = Literal["publish", "upgrade"]

# Governor support codes (GovernorCountingSimple)
SUPPORT_CODES: dict[str, int] = {"against": 0, "for": 1, "abstain": 2}
SUPPORT_NAMES: dict[int, VoteDirection] = {v: k for k, v in SUPPORT_CODES.items()}  # type: ignore[misc]


def state_name(code: int) -> str:
    """Map a governor state code to its name; unknown codes pass through as text."""
    if 0 <= code < len(PROPOSAL_STATES):
        return PROPOSAL_STATES[code]
    return str(code)


# === RPC record ===


@dataclass(slots=True, frozen=True)
class EventLog:
    """Raw log as fetched from RPC, minimally normalized."""

    address: str  # lowercased 0x...
    topics: tuple[str, ...]  # lowercased 0x...
    data_hex: str  # "0x..."
    block_number: int
    tx_hash: str  # lowercased 0x...
    log_index: int
    block_timestamp: int | None = None

    @property
    def position(self) -> tuple[int, int]:
        return (self.block_number, self.log_index)


@dataclass(slots=True, frozen=True)
class Meta:
    """Lightweight metadata for a single log used during decoding."""

    block_number: int
    block_timestamp: int | None
    tx_hash: str
    log_index: int
    address: str

    @staticmethod
    def from_log(ev: EventLog) -> Meta:
        return Meta(
            block_number=ev.block_number,
            block_timestamp=ev.block_timestamp,
            tx_hash=ev.tx_hash,
            log_index=ev.log_index,
            address=ev.address,
        )


# === Governor ===


@dataclass(slots=True, frozen=True)
class ProposalRecord:
    """One proposal as created on-chain, plus its last read lifecycle state."""

    proposal_id: int
    proposer: str
    description: str
    targets: tuple[str, ...]
    values: tuple[int, ...]
    calldatas: tuple[bytes, ...]
    vote_start: int
    vote_end: int
    state: str
    created_block: int = 0
    created_log_index: int = 0

    def __post_init__(self) -> None:
        if not (len(self.targets) == len(self.values) == len(self.calldatas)):
            raise ValueError(
                f"proposal {self.proposal_id}: targets/values/calldatas length mismatch "
                f"({len(self.targets)}/{len(self.values)}/{len(self.calldatas)})"
            )

    @property
    def sort_key(self) -> tuple[int, int, int, int]:
        return (self.created_block, self.created_log_index, self.vote_start, self.proposal_id)

    @property
    def is_historical(self) -> bool:
        return self.state in HISTORICAL_STATES


@dataclass(slots=True, frozen=True)
class VoteEvent:
    """A decoded VoteCast / VoteCastWithParams log."""

    proposal_id: int
    voter: str
    direction: VoteDirection
    weight: int
    block_number: int
    log_index: int
    reason: str = ""

    @property
    def position(self) -> tuple[int, int]:
        return (self.block_number, self.log_index)


@dataclass(slots=True, frozen=True)
class ChainHead:
    """Common "now" reference for one enrichment batch."""

    block_number: int
    timestamp: int


@dataclass(slots=True, frozen=True)
class ProposalRuntimeState:
    """Authoritative runtime facts for one proposal and (optionally) one account."""

    proposal_id: int
    state: str
    snapshot_block: int
    deadline_block: int
    execution_eta_seconds: int | None
    has_voted: bool = False
    vote_direction: VoteDirection = "none"
    vote_weight: int | None = None
    degraded: bool = False

    def can_vote(self) -> bool:
        return self.state == "Active" and not self.has_voted

    def can_queue(self) -> bool:
        return self.state == "Succeeded"

    def can_execute(self, head: ChainHead) -> bool:
        if self.state != "Queued" or self.execution_eta_seconds is None:
            return False
        return self.execution_eta_seconds <= head.timestamp

    def seconds_until_executable(self, head: ChainHead) -> int | None:
        """Countdown to the timelock ETA (0 once reached), None without an ETA."""
        if self.execution_eta_seconds is None or self.execution_eta_seconds == 0:
            return None
        return max(0, self.execution_eta_seconds - head.timestamp)

    def blocks_until_deadline(self, head: ChainHead) -> int:
        return max(0, self.deadline_block - head.block_number)


@dataclass(slots=True, frozen=True)
class RuntimeSnapshot:
    """Output of one enrichment pass."""

    chain_head: ChainHead
    by_proposal_id: dict[int, ProposalRuntimeState]

    @property
    def degraded_ids(self) -> list[int]:
        return sorted(pid for pid, rt in self.by_proposal_id.items() if rt.degraded)


# === Registry ===


@dataclass(slots=True)
class DappVersionRecord:
    """One version of a dapp while the registry fold runs."""

    version_id: int
    root_content_id: str = ""
    name: str = ""
    version_label: str = ""
    description: str = ""
    status: DappStatus = "Unknown"


@dataclass(slots=True)
class DappRecord:
    """All known versions of a dapp and the pointer to the latest one."""

    dapp_id: int
    latest_version_id: int = 0
    versions: dict[int, DappVersionRecord] = field(default_factory=dict)

    def version(self, version_id: int) -> DappVersionRecord:
        """Return the version record, creating an empty one if absent."""
        rec = self.versions.get(version_id)
        if rec is None:
            rec = DappVersionRecord(version_id=version_id)
            self.versions[version_id] = rec
        return rec

    def to_row(self) -> DappRow:
        latest = self.versions.get(self.latest_version_id)
        if latest is None:
            return DappRow(dapp_id=self.dapp_id, version_id=self.latest_version_id)
        return DappRow(
            dapp_id=self.dapp_id,
            version_id=self.latest_version_id,
            root_content_id=latest.root_content_id,
            name=latest.name,
            version_label=latest.version_label,
            description=latest.description,
            status=latest.status,
        )


@dataclass(slots=True, frozen=True)
class DappRow:
    """Externally visible latest-version view of a dapp."""

    dapp_id: int
    version_id: int
    root_content_id: str = ""
    name: str = ""
    version_label: str = ""
    description: str = ""
    status: DappStatus = "Unknown"


@dataclass(slots=True, frozen=True)
class BundleReference:
    """Content bundle a proposal publishes or upgrades to."""

    action: BundleAction
    root_content_id: str
    dapp_id: int | None = None
