from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from dappgov.core.interfaces import IEvmLogsProvider
from dappgov.core.models import DappRecord, DappRow, EventLog, Meta
from dappgov.core.use_cases.fetch_logs import ChunkedLogRetriever
from dappgov.decoding.decoder import ParsedEvent, decode_event
from dappgov.decoding.registries import make_dapp_registry
from dappgov.decoding.specs import EventRegistry
from dappgov.decoding.utils import decode_content_id, hex_to_bytes
from dappgov.orchestration.utils import gather_or_cancel

log = logging.getLogger(__name__)


@dataclass(kw_only=True)
class DappListing:
    """Latest-version rows plus the full per-dapp projection."""

    rows: list[DappRow] = field(default_factory=list)
    dapps: dict[int, DappRecord] = field(default_factory=dict)
    dropped: int = 0


def decode_registry_logs(logs: Iterable[EventLog], registry: EventRegistry) -> tuple[list[ParsedEvent], int]:
    """Decode registry logs, dropping (and counting) the ones that do not decode."""
    out: list[ParsedEvent] = []
    dropped = 0
    for ev in logs:
        try:
            data = hex_to_bytes(ev.data_hex)
        except ValueError:
            dropped += 1
            continue
        pe = decode_event(topics=ev.topics, data=data, meta=Meta.from_log(ev), registry=registry)
        if pe is None:
            dropped += 1
            continue
        out.append(pe)
    return out, dropped


def chain_order(events: Iterable[ParsedEvent]) -> list[ParsedEvent]:
    """One timeline across every event kind, ascending (block_number, log_index)."""
    return sorted(events, key=lambda pe: pe.position)


def fold_registry_events(events: Iterable[ParsedEvent]) -> dict[int, DappRecord]:
    """Fold an ordered registry timeline into per-dapp, per-version records."""
    dapps: dict[int, DappRecord] = {}

    def _dapp(dapp_id: int) -> DappRecord:
        rec = dapps.get(dapp_id)
        if rec is None:
            rec = DappRecord(dapp_id=dapp_id)
            dapps[dapp_id] = rec
        return rec

    for pe in events:
        v = pe.values
        dapp = _dapp(v["dappId"])
        version_id = v["versionId"]
        version = dapp.version(version_id)
        match pe.name:
            case "DappPublished" | "DappUpgraded":
                version.root_content_id = decode_content_id(v.get("rootCid"))
                version.status = "Published"
                dapp.latest_version_id = version_id
            case "DappMetadata":
                version.name = v.get("name") or ""
                version.version_label = v.get("version") or ""
                version.description = v.get("description") or ""
            case "DappPaused":
                version.status = "Paused"
            case "DappUnpaused":
                version.status = "Published"
            case "DappDeprecated":
                version.status = "Deprecated"
    return dapps


class RegistryProjector:
    """
    Latest-state projection of the dapp registry.

    Six log streams are fetched concurrently, decoded, merged into a single
    chain-order timeline and folded. Exactly one row per dapp id comes out,
    reflecting `versions[latest_version_id]`.
    """

    def __init__(self, logs_provider: IEvmLogsProvider, retriever: ChunkedLogRetriever) -> None:
        self._logs_provider = logs_provider
        self._retriever = retriever
        self._registry = make_dapp_registry()

    async def list_dapps(self, registry_address: str, from_block: int) -> DappListing:
        streams = await gather_or_cancel(
            *(
                self._retriever.fetch_logs(registry_address, topic0, from_block=from_block)
                for topic0 in self._registry
            )
        )
        parsed: list[ParsedEvent] = []
        dropped = 0
        for logs in streams:
            events, n = decode_registry_logs(logs, self._registry)
            parsed.extend(events)
            dropped += n
        if dropped:
            log.debug("list_dapps %s: dropped %d undecodable logs", registry_address, dropped)

        dapps = fold_registry_events(chain_order(parsed))
        rows = [dapps[k].to_row() for k in sorted(dapps)]
        return DappListing(rows=rows, dapps=dapps, dropped=dropped)


async def list_dapps(
    logs_provider: IEvmLogsProvider,
    registry_address: str,
    from_block: int,
    *,
    retriever: ChunkedLogRetriever | None = None,
) -> list[DappRow]:
    projector = RegistryProjector(logs_provider, retriever or ChunkedLogRetriever(logs_provider))
    listing = await projector.list_dapps(registry_address, from_block)
    return listing.rows
