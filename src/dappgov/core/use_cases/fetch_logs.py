from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from dappgov.core.config import DEFAULT_LOG_CHUNK_SIZE
from dappgov.core.errors import RangeFetchError
from dappgov.core.interfaces import IEvmLogsProvider, TopicFilter
from dappgov.core.models import EventLog
from dappgov.orchestration.utils import gather_or_cancel, iter_chunks

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class LogWindow:
    """Inclusive block interval queried in one eth_getLogs call."""

    start: int
    end: int


def build_windows(from_block: int, head: int, step: int) -> list[LogWindow]:
    """Partition [from_block, head] into consecutive windows of at most `step` blocks."""
    return [LogWindow(a, b) for a, b in iter_chunks(from_block, head, step)]


class ChunkedLogRetriever:
    """
    Fetch logs across an arbitrary block range while respecting provider limits.

    Windowing is a pure performance partition: the concatenated output equals
    what a single unbounded query over [from_block, head] would return.
    Windows run concurrently (bounded by `sem`) and are concatenated in window
    order. Any window failure aborts the whole call with `RangeFetchError`.
    """

    def __init__(
        self,
        logs_provider: IEvmLogsProvider,
        *,
        step: int = DEFAULT_LOG_CHUNK_SIZE,
        sem: asyncio.Semaphore | None = None,
    ) -> None:
        if step <= 0:
            raise ValueError("step must be positive")
        self._logs_provider = logs_provider
        self._step = step
        self._sem = sem or asyncio.Semaphore(16)

    async def _fetch_window(
        self,
        address: str,
        topics: list[TopicFilter],
        window: LogWindow,
    ) -> list[EventLog]:
        try:
            async with self._sem:
                return await self._logs_provider.get_logs(
                    address=address,
                    topics=topics,
                    from_block=window.start,
                    to_block=window.end,
                )
        except Exception as e:
            raise RangeFetchError(address, window.start, window.end, e) from e

    async def fetch_logs(
        self,
        address: str,
        topic0: str,
        indexed_topics: Sequence[TopicFilter] = (),
        *,
        from_block: int,
    ) -> list[EventLog]:
        """Return all logs for (address, topic0, indexed_topics) from `from_block` to head."""
        head = await self._logs_provider.latest_block()
        if from_block > head:
            # contract not deployed yet on this fork, or a stale head read
            log.debug("fetch_logs %s: from_block %d > head %d", address, from_block, head)
            return []

        topics: list[TopicFilter] = [topic0, *indexed_topics]
        windows = build_windows(from_block, head, self._step)
        results = await gather_or_cancel(
            *(self._fetch_window(address, topics, w) for w in windows)
        )

        out: list[EventLog] = []
        for chunk in results:
            out.extend(chunk)
        log.debug(
            "fetch_logs %s topic0=%s [%d, %d]: %d windows, %d logs",
            address, topic0[:10], from_block, head, len(windows), len(out),
        )
        return out


async def fetch_logs(
    logs_provider: IEvmLogsProvider,
    address: str,
    topic0: str,
    indexed_topics: Sequence[TopicFilter] = (),
    *,
    from_block: int,
    step: int = DEFAULT_LOG_CHUNK_SIZE,
) -> list[EventLog]:
    """Convenience wrapper around `ChunkedLogRetriever.fetch_logs`."""
    retriever = ChunkedLogRetriever(logs_provider, step=step)
    return await retriever.fetch_logs(address, topic0, indexed_topics, from_block=from_block)
