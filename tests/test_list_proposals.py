from dataclasses import replace

import pytest

from conftest import GOVERNOR, OTHER, REGISTRY, FakeChain, proposal_log

from dappgov.core.models import EventLog, ProposalRecord
from dappgov.core.use_cases.fetch_logs import ChunkedLogRetriever
from dappgov.core.use_cases.list_proposals import ProposalProjector, decode_proposal_created, list_proposals, sort_proposals
from dappgov.decoding.registries import make_proposal_registry
from dappgov.orchestration.utils import format_proposal_id


def _record(pid: int, block: int, log_index: int = 0, vote_start: int = 0) -> ProposalRecord:
    return ProposalRecord(
        proposal_id=pid,
        proposer=OTHER,
        description="",
        targets=(),
        values=(),
        calldatas=(),
        vote_start=vote_start,
        vote_end=0,
        state="Pending",
        created_block=block,
        created_log_index=log_index,
    )


def test_proposal_record_rejects_length_mismatch() -> None:
    with pytest.raises(ValueError):
        ProposalRecord(
            proposal_id=1,
            proposer=OTHER,
            description="",
            targets=(REGISTRY,),
            values=(),
            calldatas=(b"",),
            vote_start=0,
            vote_end=0,
            state="Pending",
        )


def test_sort_proposals_most_recent_first() -> None:
    rows = [_record(1, 10), _record(2, 20, 0), _record(3, 20, 1), _record(4, 20, 1, vote_start=5), _record(5, 5)]
    assert [p.proposal_id for p in sort_proposals(rows)] == [4, 3, 2, 1, 5]


def test_decode_proposal_created_fields() -> None:
    ev = proposal_log(
        42,
        block=100,
        log_index=3,
        proposer=OTHER,
        targets=(REGISTRY, GOVERNOR),
        values=(0, 5),
        calldatas=(b"\x01\x02", b""),
        vote_start=101,
        vote_end=200,
        description="Publish dapp",
    )
    dp = decode_proposal_created(ev, make_proposal_registry())
    assert dp is not None
    assert dp.parsed.values["proposalId"] == 42
    assert dp.parsed.values["proposer"] == OTHER
    assert dp.targets == (REGISTRY, GOVERNOR)
    assert dp.values == (0, 5)
    assert dp.calldatas == (b"\x01\x02", b"")
    assert dp.parsed.meta.log_index == 3


def test_decode_proposal_created_mismatched_arrays_dropped() -> None:
    ev = proposal_log(1, block=10, targets=(REGISTRY, GOVERNOR), values=(0,), calldatas=(b"", b""))
    assert decode_proposal_created(ev, make_proposal_registry()) is None


def test_decode_proposal_created_garbage_data() -> None:
    good = proposal_log(1, block=10)
    bad = EventLog(
        address=good.address,
        topics=good.topics,
        data_hex="0x1234",
        block_number=10,
        tx_hash=good.tx_hash,
        log_index=0,
    )
    assert decode_proposal_created(bad, make_proposal_registry()) is None


@pytest.mark.asyncio
async def test_state_code_maps_to_name(chain: FakeChain) -> None:
    chain.add_logs(proposal_log(7, block=100))
    chain.governor().add(7, state=1)

    proposals = await list_proposals(chain, GOVERNOR, from_block=0)

    assert len(proposals) == 1
    assert proposals[0].proposal_id == 7
    assert proposals[0].state == "Active"
    assert proposals[0].created_block == 100


@pytest.mark.asyncio
async def test_unknown_state_code_passes_through(chain: FakeChain) -> None:
    chain.add_logs(proposal_log(7, block=100))
    chain.governor().add(7, state=9)

    (proposal,) = await list_proposals(chain, GOVERNOR, from_block=0)
    assert proposal.state == "9"


@pytest.mark.asyncio
async def test_listing_orders_and_counts_dropped(chain: FakeChain) -> None:
    chain.add_logs(
        proposal_log(1, block=100),
        proposal_log(2, block=300),
        proposal_log(3, block=300, log_index=2),
        proposal_log(4, block=200, targets=(REGISTRY,), values=(0, 1), calldatas=(b"",)),
        proposal_log(5, block=250),
    )
    gov = chain.governor()
    for pid in (1, 2, 3, 5):
        gov.add(pid, state=0)
    gov.failing.add(("state", 5))

    projector = ProposalProjector(chain, ChunkedLogRetriever(chain, step=120))
    listing = await projector.list_proposals(GOVERNOR, from_block=50)

    assert [p.proposal_id for p in listing.proposals] == [3, 2, 1]
    assert listing.dropped == 2


@pytest.mark.asyncio
async def test_from_block_excludes_earlier_proposals(chain: FakeChain) -> None:
    chain.add_logs(proposal_log(1, block=100), proposal_log(2, block=600))
    gov = chain.governor()
    gov.add(1, state=7)
    gov.add(2, state=4)

    proposals = await list_proposals(chain, GOVERNOR, from_block=500)
    assert [(p.proposal_id, p.state) for p in proposals] == [(2, "Succeeded")]


@pytest.mark.asyncio
async def test_other_contract_logs_ignored(chain: FakeChain) -> None:
    chain.add_logs(proposal_log(1, block=100, address=OTHER))
    assert await list_proposals(chain, GOVERNOR, from_block=0) == []


def test_historical_states() -> None:
    pending = _record(1, 10)
    assert not pending.is_historical
    for state in ("Canceled", "Defeated", "Expired", "Executed"):
        assert replace(pending, state=state).is_historical


def test_format_proposal_id() -> None:
    assert format_proposal_id(42) == "#42"
    assert format_proposal_id(2**200) == f"#{str(2**200)[:8]}...{str(2**200)[-4:]}"


@pytest.mark.asyncio
async def test_listing_is_idempotent(chain: FakeChain) -> None:
    chain.add_logs(*(proposal_log(pid, block=100 + pid * 7 % 5, log_index=pid) for pid in range(1, 8)))
    gov = chain.governor()
    for pid in range(1, 8):
        gov.add(pid, state=pid % 8)

    first = await list_proposals(chain, GOVERNOR, from_block=0)
    second = await list_proposals(chain, GOVERNOR, from_block=0)

    assert first == second
    keys = [(p.created_block, p.created_log_index) for p in first]
    assert keys == sorted(keys, reverse=True)
