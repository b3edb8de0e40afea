from __future__ import annotations

import logging
from dataclasses import dataclass, field

from dappgov.clients.contracts import GovernorReader
from dappgov.core.errors import ContractReadError
from dappgov.core.interfaces import IChainReader
from dappgov.core.models import EventLog, Meta, ProposalRecord, state_name
from dappgov.core.use_cases.fetch_logs import ChunkedLogRetriever
from dappgov.decoding.decoder import ParsedEvent, decode_event
from dappgov.decoding.registries import make_proposal_registry
from dappgov.decoding.specs import EventRegistry
from dappgov.decoding.utils import hex_to_bytes
from dappgov.orchestration.utils import gather_or_cancel

log = logging.getLogger(__name__)


@dataclass(kw_only=True)
class ProposalListing:
    """Ordered proposals plus how many creation logs were dropped."""

    proposals: list[ProposalRecord] = field(default_factory=list)
    dropped: int = 0


@dataclass(slots=True, frozen=True)
class _DecodedProposal:
    """A decoded creation event, before its state read."""

    parsed: ParsedEvent
    targets: tuple[str, ...]
    values: tuple[int, ...]
    calldatas: tuple[bytes, ...]


def decode_proposal_created(ev: EventLog, registry: EventRegistry) -> _DecodedProposal | None:
    """Decode one ProposalCreated log; None for malformed or unrelated logs."""
    try:
        data = hex_to_bytes(ev.data_hex)
    except ValueError:
        return None
    pe = decode_event(topics=ev.topics, data=data, meta=Meta.from_log(ev), registry=registry)
    if pe is None or pe.name != "ProposalCreated":
        return None
    v = pe.values
    targets, values, calldatas = tuple(v["targets"]), tuple(v["values"]), tuple(v["calldatas"])
    if not (len(targets) == len(values) == len(calldatas)):
        return None
    return _DecodedProposal(parsed=pe, targets=targets, values=values, calldatas=calldatas)


def sort_proposals(rows: list[ProposalRecord]) -> list[ProposalRecord]:
    """Most recent first: descending (created_block, created_log_index, vote_start, proposal_id)."""
    return sorted(rows, key=lambda p: p.sort_key, reverse=True)


class ProposalProjector:
    """
    Decode governor proposal-creation logs and attach their live lifecycle state.

    - Undecodable logs are dropped (counted in `ProposalListing.dropped`).
    - `state(id)` reads run concurrently; a failing read drops that proposal only.
    - Output order is deterministic and independent of submission wall-clock.
    """

    def __init__(self, chain: IChainReader, retriever: ChunkedLogRetriever) -> None:
        self._chain = chain
        self._retriever = retriever
        self._registry = make_proposal_registry()

    async def _project(self, governor: GovernorReader, dp: _DecodedProposal) -> ProposalRecord | None:
        v = dp.parsed.values
        try:
            code = await governor.state(v["proposalId"])
        except ContractReadError as e:
            log.warning("proposal %s: state read failed, skipping: %s", v["proposalId"], e)
            return None
        return ProposalRecord(
            proposal_id=v["proposalId"],
            proposer=v["proposer"],
            description=v["description"] or "",
            targets=dp.targets,
            values=dp.values,
            calldatas=dp.calldatas,
            vote_start=v["voteStart"],
            vote_end=v["voteEnd"],
            state=state_name(code),
            created_block=dp.parsed.meta.block_number,
            created_log_index=dp.parsed.meta.log_index,
        )

    async def list_proposals(self, governor_address: str, from_block: int) -> ProposalListing:
        (topic0,) = self._registry.keys()
        logs = await self._retriever.fetch_logs(governor_address, topic0, from_block=from_block)

        decoded: list[_DecodedProposal] = []
        for ev in logs:
            dp = decode_proposal_created(ev, self._registry)
            if dp is not None:
                decoded.append(dp)
        dropped = len(logs) - len(decoded)
        if dropped:
            log.debug("list_proposals %s: dropped %d undecodable logs", governor_address, dropped)

        governor = GovernorReader(self._chain, governor_address)
        results = await gather_or_cancel(*(self._project(governor, dp) for dp in decoded))
        rows = [r for r in results if r is not None]
        dropped += len(results) - len(rows)
        return ProposalListing(proposals=sort_proposals(rows), dropped=dropped)


async def list_proposals(
    chain: IChainReader,
    governor_address: str,
    from_block: int,
    *,
    retriever: ChunkedLogRetriever | None = None,
) -> list[ProposalRecord]:
    """Return proposals ordered most recent first."""
    projector = ProposalProjector(chain, retriever or ChunkedLogRetriever(chain))
    listing = await projector.list_proposals(governor_address, from_block)
    return listing.proposals
