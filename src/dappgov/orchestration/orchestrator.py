"""Refresh orchestration: listing → registry → enrichment → bundle links.

This module provides three layers:

1) `GovernanceService.refresh(...)`:
   - Pure application-layer use case over an `IChainReader`.
   - Recomputes the whole snapshot from the network deploy block.
   - Does NOT manage the lifecycle of the chain reader.

2) `RefreshCoordinator`:
   - Coalesces concurrent refreshes sharing a (chain_id, account) identity
     onto one in-flight task.

3) `GovernanceService.wait_for_proposal(...)`:
   - Caller-level bounded retry while a freshly proposed id propagates
     through RPC indexing.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Literal

from dappgov.core.config import GovernanceConfig
from dappgov.core.errors import MissingPrerequisiteError
from dappgov.core.interfaces import IChainReader
from dappgov.core.models import BundleReference, DappRow, ProposalRecord, RuntimeSnapshot
from dappgov.core.networks import NetworkAddresses, block_from
from dappgov.core.use_cases.bundle_reference import extract_bundle_reference
from dappgov.core.use_cases.enrich_runtime import RuntimeEnricher
from dappgov.core.use_cases.fetch_logs import ChunkedLogRetriever
from dappgov.core.use_cases.list_dapps import RegistryProjector
from dappgov.core.use_cases.list_proposals import ProposalProjector
from dappgov.orchestration.utils import gather_or_cancel

log = logging.getLogger(__name__)

RefreshStatus = Literal["complete", "partial"]


# ---------------------------------------------------------------------------
# Output DTOs
# ---------------------------------------------------------------------------


@dataclass(kw_only=True)
class RefreshResult:
    """One consistent snapshot of governance and registry state."""

    proposals: list[ProposalRecord]
    runtime: RuntimeSnapshot
    dapps: list[DappRow]
    bundle_refs: dict[int, BundleReference] = field(default_factory=dict)
    dropped_logs: int = 0

    @property
    def degraded_ids(self) -> list[int]:
        return self.runtime.degraded_ids

    @property
    def status(self) -> RefreshStatus:
        """`partial` when some proposals only carry creation-time runtime facts."""
        return "partial" if self.degraded_ids else "complete"

    def summary(self) -> str:
        text = f"Loaded {len(self.proposals)} proposals and {len(self.dapps)} dapps"
        if self.degraded_ids:
            text += f" ({len(self.degraded_ids)} proposals degraded)"
        return text


@dataclass(frozen=True)
class IndexingLagNotice:
    """A proposal expected to exist did not show up after bounded retries."""

    proposal_id: int
    attempts: int
    delay_s: float

    @property
    def message(self) -> str:
        return (
            f"Proposal {self.proposal_id} submitted but not visible after {self.attempts} refreshes; "
            "the RPC provider may still be indexing it"
        )


# ---------------------------------------------------------------------------
# Governance service
# ---------------------------------------------------------------------------


class GovernanceService:
    """
    Application service recomputing governance/registry state from scratch.

    It depends only on an `IChainReader` and a resolved network entry; every
    call re-scans from the network deploy block.
    """

    def __init__(
        self,
        chain: IChainReader,
        network: NetworkAddresses | None,
        config: GovernanceConfig,
    ) -> None:
        self._chain = chain
        self._network = network
        self._config = config
        retriever = ChunkedLogRetriever(
            chain,
            step=config.log_chunk_size,
            sem=asyncio.Semaphore(config.concurrency),
        )
        self._proposals = ProposalProjector(chain, retriever)
        self._registry = RegistryProjector(chain, retriever)
        self._enricher = RuntimeEnricher(chain, retriever)

    @property
    def network(self) -> NetworkAddresses:
        if self._network is None:
            raise MissingPrerequisiteError(f"No network configuration for chain {self._config.chain_id}")
        return self._network

    async def list_proposals(self) -> list[ProposalRecord]:
        network = self.network
        listing = await self._proposals.list_proposals(network.governor, block_from(network))
        return listing.proposals

    async def list_dapps(self) -> list[DappRow]:
        network = self.network
        listing = await self._registry.list_dapps(network.dapp_registry, block_from(network))
        return listing.rows

    async def refresh(self, account: str | None = None) -> RefreshResult:
        """Recompute proposals, runtime facts, dapps and bundle links."""
        network = self.network
        from_block = block_from(network)
        log.info("refresh chain=%s account=%s from_block=%d", self._config.chain_id, account, from_block)

        proposals, dapps = await gather_or_cancel(
            self._proposals.list_proposals(network.governor, from_block),
            self._registry.list_dapps(network.dapp_registry, from_block),
        )
        runtime = await self._enricher.enrich(network.governor, proposals.proposals, account, from_block)

        bundle_refs: dict[int, BundleReference] = {}
        for p in proposals.proposals:
            ref = extract_bundle_reference(p, network.dapp_registry)
            if ref is not None:
                bundle_refs[p.proposal_id] = ref

        result = RefreshResult(
            proposals=proposals.proposals,
            runtime=runtime,
            dapps=dapps.rows,
            bundle_refs=bundle_refs,
            dropped_logs=proposals.dropped + dapps.dropped,
        )
        log.info("refresh %s: %s", result.status, result.summary())
        return result

    async def wait_for_proposal(
        self,
        proposal_id: int,
        *,
        attempts: int | None = None,
        delay_s: float | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> ProposalRecord | IndexingLagNotice:
        """Re-list proposals until `proposal_id` appears, or give up with a notice."""
        attempts = self._config.proposal_wait_attempts if attempts is None else attempts
        delay_s = self._config.proposal_wait_delay_s if delay_s is None else delay_s
        for attempt in range(1, attempts + 1):
            for p in await self.list_proposals():
                if p.proposal_id == proposal_id:
                    log.debug("proposal %s visible after %d attempt(s)", proposal_id, attempt)
                    return p
            if attempt < attempts:
                await sleep(delay_s)
        notice = IndexingLagNotice(proposal_id=proposal_id, attempts=attempts, delay_s=delay_s)
        log.warning(notice.message)
        return notice


# ---------------------------------------------------------------------------
# Refresh coalescing
# ---------------------------------------------------------------------------


class RefreshCoordinator:
    """
    Share one in-flight refresh between callers with the same identity.

    The identity is (chain_id, lowercased account). A caller arriving while a
    refresh for its identity is running awaits that refresh instead of
    starting an overlapping full scan.
    """

    def __init__(self, service: GovernanceService, chain_id: int) -> None:
        self._service = service
        self._chain_id = chain_id
        self._inflight: dict[tuple[int, str | None], asyncio.Task[RefreshResult]] = {}

    def _key(self, account: str | None) -> tuple[int, str | None]:
        return (self._chain_id, account.lower() if account else None)

    async def refresh(self, account: str | None = None) -> RefreshResult:
        key = self._key(account)
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.create_task(self._service.refresh(account))
            self._inflight[key] = task
            task.add_done_callback(functools.partial(self._forget, key))
        return await asyncio.shield(task)

    def _forget(self, key: tuple[int, str | None], task: asyncio.Task[RefreshResult]) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]

    @property
    def in_flight(self) -> int:
        return len(self._inflight)
