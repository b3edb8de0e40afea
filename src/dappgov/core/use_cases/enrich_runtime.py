from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from dappgov.clients.contracts import GovernorReader
from dappgov.core.errors import ContractReadError
from dappgov.core.interfaces import IChainReader
from dappgov.core.models import (
    SUPPORT_NAMES,
    ChainHead,
    EventLog,
    Meta,
    ProposalRecord,
    ProposalRuntimeState,
    RuntimeSnapshot,
    VoteEvent,
    state_name,
)
from dappgov.core.use_cases.fetch_logs import ChunkedLogRetriever
from dappgov.decoding.decoder import decode_event
from dappgov.decoding.registries import make_vote_registry
from dappgov.decoding.specs import EventRegistry
from dappgov.decoding.utils import address_topic, hex_to_bytes
from dappgov.orchestration.utils import gather_or_cancel

log = logging.getLogger(__name__)


def decode_vote(ev: EventLog, registry: EventRegistry) -> VoteEvent | None:
    """Decode a VoteCast / VoteCastWithParams log; None if it does not decode."""
    try:
        data = hex_to_bytes(ev.data_hex)
    except ValueError:
        return None
    pe = decode_event(topics=ev.topics, data=data, meta=Meta.from_log(ev), registry=registry)
    if pe is None:
        return None
    v = pe.values
    return VoteEvent(
        proposal_id=v["proposalId"],
        voter=v["voter"],
        direction=SUPPORT_NAMES.get(v["support"], "none"),
        weight=v["weight"],
        block_number=ev.block_number,
        log_index=ev.log_index,
        reason=v.get("reason") or "",
    )


def latest_votes(votes: Iterable[VoteEvent]) -> dict[int, VoteEvent]:
    """Keep, per proposal id, the vote with the greatest (block_number, log_index)."""
    out: dict[int, VoteEvent] = {}
    for vote in votes:
        cur = out.get(vote.proposal_id)
        if cur is None or vote.position > cur.position:
            out[vote.proposal_id] = vote
    return out


def degraded_runtime(proposal: ProposalRecord) -> ProposalRuntimeState:
    """Runtime record built only from creation-time fields."""
    return ProposalRuntimeState(
        proposal_id=proposal.proposal_id,
        state=proposal.state,
        snapshot_block=proposal.vote_start,
        deadline_block=proposal.vote_end,
        execution_eta_seconds=None,
        has_voted=False,
        degraded=True,
    )


class RuntimeEnricher:
    """
    Build per-proposal runtime facts for one account.

    - One head read (number + timestamp) is the shared "now" for the batch.
    - The account's vote events come from both vote-cast shapes, filtered on
      the indexed voter topic; last writer in chain order wins.
    - `hasVoted` decides *whether* the account voted; the scanned event only
      supplies *what* it voted. No event, no direction.
    - A failing read for one proposal degrades that proposal only.
    """

    def __init__(self, chain: IChainReader, retriever: ChunkedLogRetriever) -> None:
        self._chain = chain
        self._retriever = retriever
        self._registry = make_vote_registry()

    async def chain_head(self) -> ChainHead:
        number = await self._chain.latest_block()
        timestamp = await self._chain.get_block_timestamp(number)
        return ChainHead(block_number=number, timestamp=timestamp)

    async def account_votes(self, governor_address: str, account: str, from_block: int) -> dict[int, VoteEvent]:
        voter = address_topic(account)
        streams = await gather_or_cancel(
            *(
                self._retriever.fetch_logs(governor_address, topic0, [voter], from_block=from_block)
                for topic0 in self._registry
            )
        )
        votes: list[VoteEvent] = []
        for logs in streams:
            for ev in logs:
                vote = decode_vote(ev, self._registry)
                if vote is not None:
                    votes.append(vote)
        return latest_votes(votes)

    async def _runtime(
        self,
        governor: GovernorReader,
        proposal: ProposalRecord,
        account: str | None,
        votes: dict[int, VoteEvent],
    ) -> ProposalRuntimeState:
        pid = proposal.proposal_id
        reads = [
            governor.state(pid),
            governor.proposal_snapshot(pid),
            governor.proposal_deadline(pid),
            governor.proposal_eta(pid),
        ]
        if account:
            reads.append(governor.has_voted(pid, account))
        results = await asyncio.gather(*reads, return_exceptions=True)
        failures = [r for r in results if isinstance(r, BaseException)]
        for err in failures:
            if not isinstance(err, ContractReadError):
                raise err
        if failures:
            log.warning("proposal %s: runtime read failed, using creation-time fields: %s", pid, failures[0])
            return degraded_runtime(proposal)

        code, snapshot, deadline, eta = results[:4]
        has_voted = bool(results[4]) if account else False
        vote = votes.get(pid) if has_voted else None
        return ProposalRuntimeState(
            proposal_id=pid,
            state=state_name(code),
            snapshot_block=snapshot,
            deadline_block=deadline,
            execution_eta_seconds=eta,
            has_voted=has_voted,
            vote_direction=vote.direction if vote else "none",
            vote_weight=vote.weight if vote else None,
        )

    async def enrich(
        self,
        governor_address: str,
        proposals: Sequence[ProposalRecord],
        account: str | None,
        from_block: int,
    ) -> RuntimeSnapshot:
        head = await self.chain_head()
        votes: dict[int, VoteEvent] = {}
        if account:
            votes = await self.account_votes(governor_address, account, from_block)

        governor = GovernorReader(self._chain, governor_address)
        rows = await gather_or_cancel(*(self._runtime(governor, p, account, votes) for p in proposals))
        snapshot = RuntimeSnapshot(chain_head=head, by_proposal_id={r.proposal_id: r for r in rows})
        if snapshot.degraded_ids:
            log.info("enrich %s: %d/%d proposals degraded", governor_address, len(snapshot.degraded_ids), len(rows))
        return snapshot


async def enrich(
    chain: IChainReader,
    governor_address: str,
    proposals: Sequence[ProposalRecord],
    account: str | None,
    from_block: int,
    *,
    retriever: ChunkedLogRetriever | None = None,
) -> RuntimeSnapshot:
    enricher = RuntimeEnricher(chain, retriever or ChunkedLogRetriever(chain))
    return await enricher.enrich(governor_address, proposals, account, from_block)


@dataclass(slots=True, frozen=True)
class ProposingPower:
    """Whether an account currently holds enough votes to propose."""

    votes: int
    threshold: int
    timepoint: int

    @property
    def can_propose(self) -> bool:
        return self.votes >= self.threshold


async def read_proposing_power(chain: IChainReader, governor_address: str, account: str) -> ProposingPower:
    """Votes at `head - 1` (getVotes rejects the current block) against the threshold."""
    head = await chain.latest_block()
    timepoint = max(0, head - 1)
    governor = GovernorReader(chain, governor_address)
    votes, threshold = await gather_or_cancel(
        governor.get_votes(account, timepoint),
        governor.proposal_threshold(),
    )
    return ProposingPower(votes=votes, threshold=threshold, timepoint=timepoint)
