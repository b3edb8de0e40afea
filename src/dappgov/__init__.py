from __future__ import annotations

from .core.config import GovernanceConfig, load_config
from .core.errors import ContractReadError, DappGovError, MissingPrerequisiteError, RangeFetchError, RpcError
from .core.models import BundleReference, DappRow, ProposalRecord, ProposalRuntimeState, RuntimeSnapshot
from .core.networks import DEFAULT_NETWORKS, NetworkAddresses, get_network, resolve_networks
from .orchestration.orchestrator import GovernanceService, RefreshCoordinator, RefreshResult

__all__ = [
    "GovernanceConfig",
    "load_config",
    "DappGovError",
    "RpcError",
    "RangeFetchError",
    "ContractReadError",
    "MissingPrerequisiteError",
    "BundleReference",
    "DappRow",
    "ProposalRecord",
    "ProposalRuntimeState",
    "RuntimeSnapshot",
    "DEFAULT_NETWORKS",
    "NetworkAddresses",
    "get_network",
    "resolve_networks",
    "GovernanceService",
    "RefreshCoordinator",
    "RefreshResult",
]
