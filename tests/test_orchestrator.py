import asyncio
from typing import Any
from unittest.mock import AsyncMock

import pytest

from conftest import ACCOUNT, GOVERNOR, REGISTRY, FakeChain, dapp_log, proposal_log

from dappgov.core.config import GovernanceConfig
from dappgov.core.errors import MissingPrerequisiteError, RangeFetchError
from dappgov.core.networks import NetworkAddresses
from dappgov.core.payloads import encode_publish_dapp
from dappgov.orchestration.orchestrator import GovernanceService, IndexingLagNotice, RefreshCoordinator

CONFIG = GovernanceConfig(rpc_url="http://localhost:8545", chain_id=31337, log_chunk_size=250)
NETWORK = NetworkAddresses(name="anvil", deploy_block=10, governor=GOVERNOR, dapp_registry=REGISTRY)


@pytest.fixture
def service(chain: FakeChain) -> GovernanceService:
    return GovernanceService(chain, NETWORK, CONFIG)


def _seed(chain: FakeChain) -> None:
    chain.add_logs(
        proposal_log(1, block=100, calldatas=(encode_publish_dapp("bafyAAA", "Swap", "1.0.0", ""),)),
        proposal_log(2, block=400, targets=(ACCOUNT,), calldatas=(b"",)),
        dapp_log("DappPublished", block=600, dappId=1, versionId=1, rootCid=b"bafyAAA", proposer=ACCOUNT),
    )
    gov = chain.governor()
    gov.add(1, state=7, snapshot=101, deadline=200)
    gov.add(2, state=1, snapshot=401, deadline=500)


@pytest.mark.asyncio
async def test_refresh_builds_full_snapshot(chain: FakeChain, service: GovernanceService) -> None:
    _seed(chain)

    result = await service.refresh()

    assert [p.proposal_id for p in result.proposals] == [2, 1]
    assert [(d.dapp_id, d.status) for d in result.dapps] == [(1, "Published")]
    assert set(result.runtime.by_proposal_id) == {1, 2}
    assert result.bundle_refs[1].root_content_id == "bafyAAA"
    assert 2 not in result.bundle_refs
    assert result.status == "complete"
    assert result.summary() == "Loaded 2 proposals and 1 dapps"
    # every scan starts at the deploy block
    assert min(start for _a, _t, start, _e in chain.get_logs_calls) == 10


@pytest.mark.asyncio
async def test_refresh_partial_when_degraded(chain: FakeChain, service: GovernanceService) -> None:
    _seed(chain)
    chain.governor().failing.add(("proposalDeadline", 2))

    result = await service.refresh(ACCOUNT)

    assert result.status == "partial"
    assert result.degraded_ids == [2]
    assert "1 proposals degraded" in result.summary()


@pytest.mark.asyncio
async def test_refresh_range_failure_propagates(chain: FakeChain, service: GovernanceService) -> None:
    _seed(chain)
    chain.failing_ranges.add((260, 509))

    with pytest.raises(RangeFetchError):
        await service.refresh()


@pytest.mark.asyncio
async def test_missing_network(chain: FakeChain) -> None:
    service = GovernanceService(chain, None, CONFIG)
    with pytest.raises(MissingPrerequisiteError):
        await service.refresh()
    assert chain.get_logs_calls == []


@pytest.mark.asyncio
async def test_wait_for_proposal_found_after_retry(chain: FakeChain, service: GovernanceService) -> None:
    sleep = AsyncMock()
    gov = chain.governor()
    gov.add(9, state=0)

    async def index_on_sleep(delay: float) -> None:
        chain.add_logs(proposal_log(9, block=700))

    sleep.side_effect = index_on_sleep

    found = await service.wait_for_proposal(9, attempts=3, delay_s=0.5, sleep=sleep)

    assert not isinstance(found, IndexingLagNotice)
    assert found.proposal_id == 9
    sleep.assert_awaited_once_with(0.5)


@pytest.mark.asyncio
async def test_wait_for_proposal_gives_up(chain: FakeChain, service: GovernanceService) -> None:
    sleep = AsyncMock()

    notice = await service.wait_for_proposal(9, attempts=3, delay_s=0.1, sleep=sleep)

    assert isinstance(notice, IndexingLagNotice)
    assert notice.attempts == 3
    assert "9" in notice.message
    assert sleep.await_count == 2


class _SlowService:
    def __init__(self) -> None:
        self.calls: list[Any] = []
        self.release = asyncio.Event()

    async def refresh(self, account: str | None = None) -> Any:
        self.calls.append(account)
        await self.release.wait()
        return object()


@pytest.mark.asyncio
async def test_coordinator_coalesces_same_identity() -> None:
    slow = _SlowService()
    coordinator = RefreshCoordinator(slow, chain_id=31337)

    first = asyncio.create_task(coordinator.refresh(ACCOUNT))
    second = asyncio.create_task(coordinator.refresh(ACCOUNT.upper().replace("0X", "0x")))
    other = asyncio.create_task(coordinator.refresh(None))
    await asyncio.sleep(0)
    assert coordinator.in_flight == 2

    slow.release.set()
    a, b, c = await asyncio.gather(first, second, other)

    assert a is b
    assert c is not a
    assert slow.calls == [ACCOUNT, None]
    assert coordinator.in_flight == 0


@pytest.mark.asyncio
async def test_coordinator_runs_again_after_completion() -> None:
    slow = _SlowService()
    slow.release.set()
    coordinator = RefreshCoordinator(slow, chain_id=1)

    await coordinator.refresh(ACCOUNT)
    await coordinator.refresh(ACCOUNT)

    assert slow.calls == [ACCOUNT, ACCOUNT]
