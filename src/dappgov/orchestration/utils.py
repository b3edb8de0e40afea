"""Block-range and display utilities.

Functions
---------
- iter_chunks: split an inclusive block range into bounded windows.
- format_proposal_id: compact display form for 256-bit proposal ids.
- gather_or_cancel: gather awaitables, cancelling the rest on first failure.

All intervals are inclusive on both ends: [start, end].
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Generator
from typing import Any


def iter_chunks(a: int, b: int, step: int) -> Generator[tuple[int, int], None, None]:
    """Yield inclusive [start, end] block ranges of size at most `step`."""
    if step <= 0:
        raise ValueError("step must be positive")
    x = a
    while x <= b:
        y = min(b, x + step - 1)
        yield (x, y)
        x = y + 1


def format_proposal_id(proposal_id: int) -> str:
    raw = str(proposal_id)
    if len(raw) <= 12:
        return f"#{raw}"
    return f"#{raw[:8]}...{raw[-4:]}"


async def gather_or_cancel(*aws: Awaitable[Any]) -> list[Any]:
    """Like `asyncio.gather`, but the first failure cancels and awaits the siblings.

    Nothing scheduled here outlives the call, so callers can close the
    transport right after an error.
    """
    tasks = [asyncio.ensure_future(a) for a in aws]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for t in tasks:
            t.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
