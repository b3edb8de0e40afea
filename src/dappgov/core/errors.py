"""Exception hierarchy.

- `RpcError` / `RangeFetchError`: fatal to a refresh, propagated.
- `ContractReadError`: per-item, absorbed into a degraded runtime record.
- `MissingPrerequisiteError`: raised before any network call.
"""

from __future__ import annotations


class DappGovError(Exception):
    """Base class for all dappgov errors."""


class RpcError(DappGovError, RuntimeError):
    """A JSON-RPC call failed (transport error or `error` object in the response)."""

    def __init__(self, method: str, message: str, code: int | None = None) -> None:
        self.method = method
        self.code = code
        self.message = message
        super().__init__(f"RPC error: {method}: {code} {message}" if code is not None else f"RPC error: {method}: {message}")


class RangeFetchError(DappGovError):
    """A windowed log query failed; no partial result is returned."""

    def __init__(self, address: str, from_block: int, to_block: int, cause: BaseException) -> None:
        self.address = address
        self.from_block = from_block
        self.to_block = to_block
        super().__init__(f"eth_getLogs failed for {address} [{from_block}, {to_block}]: {cause}")


class ContractReadError(DappGovError):
    """An eth_call read failed or returned undecodable output."""

    def __init__(self, function: str, cause: BaseException | str) -> None:
        self.function = function
        super().__init__(f"{function}: {cause}")


class MissingPrerequisiteError(DappGovError):
    """Required context (RPC URL, network entry, account) is missing."""
