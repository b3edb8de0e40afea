from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dappgov.core.errors import MissingPrerequisiteError

DEFAULT_LOG_CHUNK_SIZE = 45_000
DEFAULT_CHAIN_ID = 11155111

ENV_PREFIX = "DAPPGOV_"


@dataclass(frozen=True)
class GovernanceConfig:
    """Configuration for governance/registry refreshes."""

    rpc_url: str
    chain_id: int = DEFAULT_CHAIN_ID
    log_chunk_size: int = DEFAULT_LOG_CHUNK_SIZE  # max blocks per eth_getLogs window
    concurrency: int = 16
    timeout_s: int = 20
    max_connections: int = 64
    # caller-level retry while a new proposal propagates through RPC indexing
    proposal_wait_attempts: int = 6
    proposal_wait_delay_s: float = 2.0
    addresses_path: Path | None = None

    def __post_init__(self) -> None:
        if self.log_chunk_size <= 0:
            raise ValueError("log_chunk_size must be positive")
        if self.concurrency <= 0:
            raise ValueError("concurrency must be positive")


def get_rpc_url(env: dict[str, str] | None = None) -> str | None:
    """Return the configured RPC URL, `DAPPGOV_RPC_URL` first, then `RPC_URL`."""
    env = os.environ if env is None else env
    return env.get(f"{ENV_PREFIX}RPC_URL") or env.get("RPC_URL") or None


def require_rpc_url(env: dict[str, str] | None = None) -> str:
    rpc = get_rpc_url(env)
    if not rpc:
        raise MissingPrerequisiteError(f"Missing {ENV_PREFIX}RPC_URL or RPC_URL")
    return rpc


def load_config(
    rpc_url: str | None = None,
    chain_id: int | None = None,
    env: dict[str, str] | None = None,
) -> GovernanceConfig:
    """Build a `GovernanceConfig` from explicit arguments and environment variables.

    Priority (highest wins):
        1. Explicit arguments
        2. Environment variables (DAPPGOV_RPC_URL, DAPPGOV_CHAIN_ID, ...)
        3. Defaults from GovernanceConfig
    """
    env = dict(os.environ) if env is None else env
    url = rpc_url or require_rpc_url(env)

    kwargs: dict = {"rpc_url": url}
    if chain_id is not None:
        kwargs["chain_id"] = int(chain_id)
    elif v := env.get(f"{ENV_PREFIX}CHAIN_ID"):
        kwargs["chain_id"] = int(v)
    if v := env.get(f"{ENV_PREFIX}LOG_CHUNK_SIZE"):
        kwargs["log_chunk_size"] = int(v)
    if v := env.get(f"{ENV_PREFIX}CONCURRENCY"):
        kwargs["concurrency"] = int(v)
    if v := env.get(f"{ENV_PREFIX}ADDRESSES"):
        kwargs["addresses_path"] = Path(v).expanduser()
    return GovernanceConfig(**kwargs)
