"""Known network deployments, merged with deployment-specific overrides.

`DEFAULT_NETWORKS` carries sane defaults; an addresses JSON file (same
shape, keyed by chain id string) overrides them field by field. The merge
happens once and produces a read-only table.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from pathlib import Path
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class NetworkAddresses(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str | None = None
    deploy_block: int = Field(default=0, alias="deployBlock", ge=0)
    governor: str = Field(alias="vfiGovernor")
    dapp_registry: str = Field(alias="dappRegistry")
    token: str | None = Field(default=None, alias="vfiToken")


NetworkTable = Mapping[str, NetworkAddresses]

_DEFAULTS_RAW: dict[str, dict[str, Any]] = {
    "11155111": {
        "name": "Sepolia",
        "deployBlock": 10239268,
        "vfiGovernor": "0x753d33e2E61F249c87e6D33c4e04b39731776297",
        "dappRegistry": "0xFb84B57E757649Dff3870F1381C67c9097D0c67f",
        "vfiToken": "0xD11496882E083Ce67653eC655d14487030E548aC",
    },
}

DEFAULT_NETWORKS: NetworkTable = MappingProxyType(
    {k: NetworkAddresses.model_validate(v) for k, v in _DEFAULTS_RAW.items()}
)


def load_overrides(path: Path) -> dict[str, dict[str, Any]]:
    """Read an addresses JSON file; a missing file means no overrides."""
    if not path.is_file():
        return {}
    raw = json.loads(path.read_text())
    if not isinstance(raw, dict):
        raise ValueError(f"{path}: expected an object keyed by chain id")
    return {str(k): dict(v) for k, v in raw.items()}


def resolve_networks(
    overrides: Mapping[str, Mapping[str, Any]] | None = None,
    defaults: NetworkTable = DEFAULT_NETWORKS,
) -> NetworkTable:
    """Merge overrides over defaults key-by-key, then field-by-field."""
    overrides = overrides or {}
    resolved: dict[str, NetworkAddresses] = {}
    for chain_key in dict.fromkeys([*defaults.keys(), *overrides.keys()]):
        base = defaults.get(chain_key)
        merged: dict[str, Any] = base.model_dump(by_alias=True) if base is not None else {}
        merged.update(overrides.get(chain_key, {}))
        resolved[chain_key] = NetworkAddresses.model_validate(merged)
    return MappingProxyType(resolved)


def supported_chain_ids(table: NetworkTable) -> list[int]:
    return [int(k) for k in table if k.isdigit()]


def get_network(table: NetworkTable, chain_id: int | None) -> NetworkAddresses | None:
    if not chain_id:
        return None
    return table.get(str(chain_id))


def block_from(network: NetworkAddresses | None) -> int:
    """First block to scan for a network (its deploy block, else genesis)."""
    return network.deploy_block if network is not None else 0
