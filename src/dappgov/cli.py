import asyncio
import logging
import os
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, TypeVar

import click
from eth_utils import is_address
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from dappgov.clients.content import JsonRpcContentBridge, format_bytes, is_likely_code_file
from dappgov.clients.rpc import RPC
from dappgov.core.config import ENV_PREFIX, GovernanceConfig, load_config
from dappgov.core.errors import DappGovError
from dappgov.core.networks import DEFAULT_NETWORKS, get_network, load_overrides, resolve_networks
from dappgov.core.use_cases.bundle_reference import extract_bundle_reference
from dappgov.orchestration.orchestrator import GovernanceService, IndexingLagNotice
from dappgov.orchestration.utils import format_proposal_id

console = Console()

T = TypeVar("T")


@click.group()
@click.option("--rpc", "rpc_url", default=None, help="RPC endpoint URL (else DAPPGOV_RPC_URL / RPC_URL)")
@click.option("--chain-id", type=int, default=None, help="Chain id (else DAPPGOV_CHAIN_ID)")
@click.option(
    "--addresses",
    "addresses_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Addresses JSON overriding the built-in networks",
)
@click.option("-v", "--verbose", count=True, help="-v for info, -vv for debug logs")
@click.pass_context
def cli(ctx: click.Context, rpc_url: str | None, chain_id: int | None, addresses_path: Path | None, verbose: int) -> None:
    """dappgov: governance proposals and dapp registry state from chain logs."""
    level = logging.WARNING if verbose == 0 else logging.INFO if verbose == 1 else logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )
    ctx.obj = {"rpc_url": rpc_url, "chain_id": chain_id, "addresses_path": addresses_path}


def _account(ctx: click.Context, param: click.Parameter, value: str | None) -> str | None:
    if value is not None and not is_address(value):
        raise click.BadParameter(f"not an address: {value}")
    return value


def _config(ctx: click.Context) -> GovernanceConfig:
    try:
        return load_config(rpc_url=ctx.obj["rpc_url"], chain_id=ctx.obj["chain_id"])
    except DappGovError as e:
        raise click.ClickException(str(e)) from e


def _networks(ctx: click.Context, config: GovernanceConfig | None = None):
    path = ctx.obj["addresses_path"] or (config.addresses_path if config else None)
    if path is None and (env_path := os.environ.get(f"{ENV_PREFIX}ADDRESSES")):
        path = Path(env_path).expanduser()
    if path is None:
        return DEFAULT_NETWORKS
    try:
        return resolve_networks(load_overrides(path))
    except ValueError as e:
        raise click.ClickException(f"{path}: {e}") from e


def _run(ctx: click.Context, body: Callable[[GovernanceService, RPC, GovernanceConfig], Awaitable[T]]) -> T:
    """Open an RPC session, build the service and run `body` to completion."""
    config = _config(ctx)
    network = get_network(_networks(ctx, config), config.chain_id)

    async def run() -> T:
        async with RPC(config.rpc_url, timeout_s=config.timeout_s, max_connections=config.max_connections) as rpc:
            service = GovernanceService(rpc, network, config)
            return await body(service, rpc, config)

    try:
        return asyncio.run(run())
    except DappGovError as e:
        raise click.ClickException(str(e)) from e


@cli.command("networks")
@click.pass_context
def networks_cmd(ctx: click.Context) -> None:
    """Show the resolved network table."""
    table = Table(title="networks")
    for col in ("chain", "name", "deploy block", "governor", "registry", "token"):
        table.add_column(col)
    for chain_key, n in _networks(ctx).items():
        table.add_row(chain_key, n.name or "", f"{n.deploy_block:,}", n.governor, n.dapp_registry, n.token or "")
    console.print(table)


@cli.command("proposals")
@click.option("--open/--all", "open_only", default=False, help="Hide canceled, defeated, expired and executed proposals")
@click.pass_context
def proposals_cmd(ctx: click.Context, open_only: bool) -> None:
    """List governor proposals, newest first."""

    async def body(service: GovernanceService, rpc: RPC, config: GovernanceConfig) -> Any:
        return await service.list_proposals()

    proposals = _run(ctx, body)
    if open_only:
        proposals = [p for p in proposals if not p.is_historical]
    table = Table(title=f"proposals ({len(proposals)})")
    for col in ("id", "state", "proposer", "votes", "created", "description"):
        table.add_column(col)
    for p in proposals:
        table.add_row(
            format_proposal_id(p.proposal_id),
            p.state,
            p.proposer,
            f"{p.vote_start}-{p.vote_end}",
            str(p.created_block),
            p.description.splitlines()[0] if p.description else "",
        )
    console.print(table)


@cli.command("dapps")
@click.pass_context
def dapps_cmd(ctx: click.Context) -> None:
    """List registered dapps at their latest version."""

    async def body(service: GovernanceService, rpc: RPC, config: GovernanceConfig) -> Any:
        return await service.list_dapps()

    rows = _run(ctx, body)
    table = Table(title=f"dapps ({len(rows)})")
    for col in ("dapp", "version", "status", "name", "label", "root cid"):
        table.add_column(col)
    status_style = {"Published": "green", "Paused": "yellow", "Deprecated": "red"}
    for r in rows:
        style = status_style.get(r.status, "dim")
        table.add_row(
            str(r.dapp_id),
            str(r.version_id),
            f"[{style}]{r.status}[/]",
            r.name,
            r.version_label,
            r.root_content_id,
        )
    console.print(table)


@cli.command("runtime")
@click.option("--account", default=None, callback=_account, help="Account to report votes and action gates for")
@click.pass_context
def runtime_cmd(ctx: click.Context, account: str | None) -> None:
    """Live proposal state, timing and the account's votes."""

    async def body(service: GovernanceService, rpc: RPC, config: GovernanceConfig) -> Any:
        return await service.refresh(account)

    result = _run(ctx, body)
    head = result.runtime.chain_head
    table = Table(title=f"runtime @ block {head.block_number:,}")
    for col in ("id", "state", "snapshot", "deadline", "eta", "voted", "actions"):
        table.add_column(col)
    for p in result.proposals:
        rt = result.runtime.by_proposal_id.get(p.proposal_id)
        if rt is None:
            continue
        actions = [
            name
            for name, ok in (("vote", rt.can_vote()), ("queue", rt.can_queue()), ("execute", rt.can_execute(head)))
            if ok
        ]
        voted = rt.vote_direction if rt.has_voted else "-"
        if rt.vote_weight is not None:
            voted += f" ({rt.vote_weight})"
        state = f"{rt.state} [yellow](degraded)[/]" if rt.degraded else rt.state
        table.add_row(
            format_proposal_id(p.proposal_id),
            state,
            str(rt.snapshot_block),
            str(rt.deadline_block),
            "" if rt.execution_eta_seconds is None else str(rt.execution_eta_seconds),
            voted,
            ", ".join(actions),
        )
    console.print(table)
    console.print(f"[bold]{result.status}[/]: {result.summary()}")


@cli.command("bundle")
@click.argument("proposal_id", type=int)
@click.option("--files/--no-files", default=False, help="Also list the bundle's files through the content bridge")
@click.option("--wait/--no-wait", default=False, help="Retry while the proposal is still being indexed")
@click.pass_context
def bundle_cmd(ctx: click.Context, proposal_id: int, files: bool, wait: bool) -> None:
    """Show the content bundle a proposal publishes or upgrades to."""

    async def body(service: GovernanceService, rpc: RPC, config: GovernanceConfig) -> Any:
        if wait:
            found = await service.wait_for_proposal(proposal_id)
        else:
            found = next((p for p in await service.list_proposals() if p.proposal_id == proposal_id), None)
        if found is None or isinstance(found, IndexingLagNotice):
            return found, None, None
        ref = extract_bundle_reference(found, service.network.dapp_registry)
        listing = None
        if ref is not None and files:
            listing = await JsonRpcContentBridge(rpc).list(ref.root_content_id)
        return found, ref, listing

    proposal, ref, listing = _run(ctx, body)
    if isinstance(proposal, IndexingLagNotice):
        raise click.ClickException(proposal.message)
    if proposal is None:
        raise click.ClickException(f"Proposal {proposal_id} not found")
    if ref is None:
        console.print(f"proposal {format_proposal_id(proposal_id)} does not publish or upgrade a dapp")
        return
    target = f" dapp #{ref.dapp_id}" if ref.dapp_id is not None else ""
    console.print(f"[bold]{ref.action}[/]{target}: {ref.root_content_id}")
    if listing is not None:
        table = Table(title=f"files ({len(listing.files)})")
        table.add_column("path")
        table.add_column("size", justify="right")
        for f in listing.files:
            path = f"[cyan]{f.path}[/]" if is_likely_code_file(f.path) else f.path
            table.add_row(path, format_bytes(f.bytes))
        console.print(table)


@cli.command("refresh")
@click.option("--account", default=None, callback=_account, help="Account for vote enrichment")
@click.pass_context
def refresh_cmd(ctx: click.Context, account: str | None) -> None:
    """Run a full refresh and print its summary."""

    async def body(service: GovernanceService, rpc: RPC, config: GovernanceConfig) -> Any:
        return await service.refresh(account)

    result = _run(ctx, body)
    console.print(f"[bold]{result.status}[/]: {result.summary()}")
    console.print(
        f"[green]bundles[/]={len(result.bundle_refs)}  "
        f"[yellow]degraded[/]={len(result.degraded_ids)}  "
        f"[red]dropped_logs[/]={result.dropped_logs}"
    )


if __name__ == "__main__":
    cli()
