"""Core data models, configuration and errors.

This package provides:
- Data models (EventLog, ProposalRecord, ProposalRuntimeState, DappRow, ...)
- Configuration (GovernanceConfig) and the known network table
- The error hierarchy rooted at DappGovError
"""

from dappgov.core.config import GovernanceConfig
from dappgov.core.errors import DappGovError
from dappgov.core.models import (
    BundleReference,
    ChainHead,
    DappRow,
    EventLog,
    Meta,
    ProposalRecord,
    ProposalRuntimeState,
    RuntimeSnapshot,
)

__all__ = [
    "GovernanceConfig",
    "DappGovError",
    "BundleReference",
    "ChainHead",
    "DappRow",
    "EventLog",
    "Meta",
    "ProposalRecord",
    "ProposalRuntimeState",
    "RuntimeSnapshot",
]
