from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, List, Protocol, runtime_checkable

from dappgov.core.models import EventLog

if TYPE_CHECKING:
    from dappgov.clients.content import ContentHead, ContentListing, ContentSnippet

# A topic filter position: one topic, any of several topics, or wildcard.
TopicFilter = str | Sequence[str] | None


# ---------------------------------------------------------------------------
# IEvmLogsProvider
# ---------------------------------------------------------------------------

@runtime_checkable
class IEvmLogsProvider(Protocol):
    """
    Abstract provider for fetching EVM logs.

    Domain expectations:
    - It returns EventLog objects already mapped into internal domain models.
    - It hides the underlying RPC / DB / archive technology.
    """

    async def get_logs(
        self,
        *,
        address: str,
        topics: Sequence[TopicFilter],
        from_block: int,
        to_block: int,
    ) -> List[EventLog]:
        """
        Return all logs for (address, topics) over the inclusive block range.

        `topics[0]` is the event selector; later positions filter indexed
        arguments (None = wildcard).
        """
        ...

    async def latest_block(self) -> int:
        """
        Return the current chain head height.
        """
        ...


# ---------------------------------------------------------------------------
# IChainReader
# ---------------------------------------------------------------------------

@runtime_checkable
class IChainReader(IEvmLogsProvider, Protocol):
    """
    Logs provider that can also read blocks and execute read-only calls.

    Domain expectations:
    - `call` returns raw ABI-encoded return data for `eth_call`.
    - Failures raise; the domain decides which failures are fatal.
    """

    async def get_block_timestamp(self, block_number: int) -> int:
        """Return the timestamp (seconds) of the given block."""
        ...

    async def call(self, *, to: str, data: bytes, block: int | str = "latest") -> bytes:
        """Execute `eth_call` and return the raw return data."""
        ...


# ---------------------------------------------------------------------------
# IContentBridge
# ---------------------------------------------------------------------------

@runtime_checkable
class IContentBridge(Protocol):
    """
    Narrow request/response bridge to the external content-retrieval service.

    Domain expectations:
    - The content identifier is passed through opaquely.
    - The bridge is read-only and returns bounded, sanitized results.
    """

    async def list(self, cid: str, path: str = "") -> ContentListing:
        ...

    async def head(self, cid: str, path: str = "") -> ContentHead:
        ...

    async def read_snippet(
        self,
        cid: str,
        path: str,
        start_line: int = 1,
        max_lines: int = 200,
        end_line: int | None = None,
    ) -> ContentSnippet:
        ...
