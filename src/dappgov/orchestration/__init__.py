"""Orchestration of full refreshes over the governance projections.

This package provides:
- GovernanceService / RefreshCoordinator (see `dappgov.orchestration.orchestrator`)
- Block-range utilities used by the chunked log retriever
"""

from dappgov.orchestration.utils import format_proposal_id, gather_or_cancel, iter_chunks

__all__ = [
    "format_proposal_id",
    "gather_or_cancel",
    "iter_chunks",
]
