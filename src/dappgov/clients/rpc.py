"""Lightweight JSON-RPC client for Ethereum-compatible nodes.

This module provides:
- `RPC`: an async client with sane timeouts/connection limits
- Helper utilities to format block numbers and topic filters

It returns `EventLog` records ready for downstream decoding.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Sequence
from typing import Any

import httpx

from dappgov.core.errors import RpcError
from dappgov.core.interfaces import TopicFilter
from dappgov.core.models import EventLog

log = logging.getLogger(__name__)


def to_hex_block(x: int | str) -> str:
    """Return a 0x-prefixed hex block number (tags like "latest" pass through)."""
    if isinstance(x, int):
        return hex(x)
    return x


def topics_param(topics: Sequence[TopicFilter]) -> list[str | list[str] | None]:
    """Format a positional topic filter for eth_getLogs."""
    out: list[str | list[str] | None] = []
    for t in topics:
        if t is None:
            out.append(None)
        elif isinstance(t, str):
            out.append(t.lower())
        else:
            out.append([x.lower() for x in t])
    # trailing wildcards are implicit
    while out and out[-1] is None:
        out.pop()
    return out


def _hex_int(value: Any) -> int | None:
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.startswith("0x"):
        return int(value, 16)
    return None


class RPC:
    """Minimal async RPC client.

    Parameters
    ----------
    url : str
        RPC endpoint URL.
    timeout_s : int
        Per-operation timeout in seconds (connect/read/write).
    max_connections : int
        Maximum concurrent connections to keep in the pool.
    transport : httpx.AsyncBaseTransport | None
        Optional transport override (tests use `httpx.MockTransport`).
    """

    def __init__(
        self,
        url: str,
        *,
        timeout_s: int = 20,
        max_connections: int = 64,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url
        self._ids = itertools.count(1)
        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(
                connect=timeout_s,
                read=timeout_s,
                write=timeout_s,
                pool=max(30, timeout_s * 3),
            ),
            limits=httpx.Limits(
                max_connections=max_connections,
                max_keepalive_connections=max(1, max_connections // 2),
            ),
            http2=transport is None,
            transport=transport,
        )

    async def __aenter__(self) -> RPC:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    async def request(self, method: str, params: list[Any]) -> Any:
        """Send one JSON-RPC request and return its `result`."""
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        try:
            r = await self.client.post(self.url, json=payload)
            r.raise_for_status()
            data = r.json()
        except httpx.HTTPError as e:
            raise RpcError(method, f"{type(e).__name__}: {e}") from e
        except ValueError as e:
            raise RpcError(method, f"invalid JSON response: {e}") from e
        if not isinstance(data, dict):
            raise RpcError(method, f"unexpected response body: {type(data).__name__}")
        if "error" in data:
            e = data["error"]
            if isinstance(e, dict):
                raise RpcError(method, str(e.get("message")), e.get("code"))
            raise RpcError(method, str(e))
        return data.get("result")

    async def chain_id(self) -> int:
        return int(await self.request("eth_chainId", []), 16)

    async def latest_block(self) -> int:
        """Return the latest block number as an int."""
        return int(await self.request("eth_blockNumber", []), 16)

    async def get_block_timestamp(self, block_number: int) -> int:
        """Return the timestamp of a block (header only, no transactions)."""
        block = await self.request("eth_getBlockByNumber", [to_hex_block(block_number), False])
        if not block:
            raise RpcError("eth_getBlockByNumber", f"block {block_number} not found")
        return int(block["timestamp"], 16)

    async def call(self, *, to: str, data: bytes, block: int | str = "latest") -> bytes:
        """Execute a read-only `eth_call` and return the raw return data."""
        result = await self.request(
            "eth_call",
            [{"to": to.lower(), "data": "0x" + data.hex()}, to_hex_block(block)],
        )
        raw = (result or "0x")[2:]
        return bytes.fromhex(raw)

    async def get_logs(
        self,
        *,
        address: str,
        topics: Sequence[TopicFilter],
        from_block: int,
        to_block: int,
    ) -> list[EventLog]:
        """Fetch logs for an address and a positional topic filter within a block range."""
        params = [
            {
                "address": address.lower(),
                "fromBlock": to_hex_block(from_block),
                "toBlock": to_hex_block(to_block),
                "topics": topics_param(topics),
            }
        ]
        result = await self.request("eth_getLogs", params)
        log.debug("eth_getLogs %s [%d, %d] -> %d logs", address, from_block, to_block, len(result or []))

        out: list[EventLog] = []
        for rl in result or []:
            topics_out = tuple((t if isinstance(t, str) else t.decode()).lower() for t in rl.get("topics", []))
            out.append(
                EventLog(
                    address=str(rl.get("address") or address).lower(),
                    topics=topics_out,
                    data_hex=str(rl.get("data") or "0x"),
                    block_number=_hex_int(rl.get("blockNumber")) or 0,
                    tx_hash=(rl.get("transactionHash") or rl.get("transaction_hash") or "").lower(),
                    log_index=_hex_int(rl.get("logIndex")) or 0,
                    block_timestamp=_hex_int(rl.get("blockTimestamp")),
                )
            )
        return out

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.aclose()
