"""Write-side call payloads for the governor and the dapp registry.

These builders only ABI-encode; signing and submission belong to the
wallet layer. `ProposalPayload` carries the exact arguments `propose`,
`queue` and `execute` expect, so a proposal read back from the chain can
be queued or executed with the same values.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from eth_abi import encode as abi_encode
from eth_utils import is_hex, keccak

from dappgov.core.models import SUPPORT_CODES, ProposalRecord, VoteDirection
from dappgov.decoding.decoder import encode_call
from dappgov.decoding.registries import make_dapp_registry_functions, make_governor_functions
from dappgov.decoding.utils import hex_to_bytes

MAX_ROOT_CID_BYTES = 4096

_GOVERNOR = make_governor_functions()
_REGISTRY = make_dapp_registry_functions()
_UINT = re.compile(r"^\d+$")


@dataclass(frozen=True)
class ProposalPayload:
    targets: tuple[str, ...]
    values: tuple[int, ...]
    calldatas: tuple[bytes, ...]
    description: str

    @staticmethod
    def from_record(proposal: ProposalRecord) -> ProposalPayload:
        return ProposalPayload(
            targets=proposal.targets,
            values=proposal.values,
            calldatas=proposal.calldatas,
            description=proposal.description,
        )


def description_hash(description: str) -> bytes:
    """keccak256 of the UTF-8 description, as the governor computes proposal ids."""
    return keccak(text=description)


def encode_root_cid(value: str) -> bytes:
    """Encode a content id for the registry: hex passes through, text becomes UTF-8."""
    raw = value.strip()
    if not raw:
        raise ValueError("rootCid cannot be empty")
    if raw.startswith("0x") and is_hex(raw):
        data = hex_to_bytes(raw)
        if not data:
            raise ValueError("rootCid hex must not be empty")
    else:
        data = raw.encode("utf-8")
    if len(data) > MAX_ROOT_CID_BYTES:
        raise ValueError(f"rootCid exceeds {MAX_ROOT_CID_BYTES} bytes")
    return data


def parse_dapp_id(value: str) -> int:
    trimmed = value.strip()
    if not trimmed:
        raise ValueError("dapp id is required")
    if not _UINT.match(trimmed):
        raise ValueError("dapp id must be an unsigned integer")
    return int(trimmed)


def encode_publish_dapp(root_cid: str, name: str, version: str, description: str) -> bytes:
    return encode_call(_REGISTRY["publishDapp"], [encode_root_cid(root_cid), name, version, description])


def encode_upgrade_dapp(dapp_id: int, root_cid: str, name: str, version: str, description: str) -> bytes:
    return encode_call(_REGISTRY["upgradeDapp"], [dapp_id, encode_root_cid(root_cid), name, version, description])


def build_publish_proposal(
    registry: str,
    *,
    root_cid: str,
    name: str,
    version: str,
    description: str,
    proposal_description: str | None = None,
) -> ProposalPayload:
    calldata = encode_publish_dapp(root_cid, name, version, description)
    text = (proposal_description or "").strip() or f"Publish dapp {name} {version}"
    return ProposalPayload(targets=(registry,), values=(0,), calldatas=(calldata,), description=text)


def build_upgrade_proposal(
    registry: str,
    *,
    dapp_id: int,
    root_cid: str,
    name: str,
    version: str,
    description: str,
    proposal_description: str | None = None,
) -> ProposalPayload:
    calldata = encode_upgrade_dapp(dapp_id, root_cid, name, version, description)
    text = (proposal_description or "").strip() or f"Upgrade dapp #{dapp_id} {name} {version}"
    return ProposalPayload(targets=(registry,), values=(0,), calldatas=(calldata,), description=text)


def _proposal_args(p: ProposalPayload) -> list:
    return [list(p.targets), list(p.values), list(p.calldatas)]


def encode_propose(p: ProposalPayload) -> bytes:
    return encode_call(_GOVERNOR["propose"], [*_proposal_args(p), p.description])


def encode_cast_vote(proposal_id: int, support: VoteDirection, reason: str | None = None) -> bytes:
    """castVote, or castVoteWithReason when a non-blank reason is given."""
    if support not in SUPPORT_CODES:
        raise ValueError(f"unsupported vote direction: {support}")
    code = SUPPORT_CODES[support]
    if reason and reason.strip():
        return encode_call(_GOVERNOR["castVoteWithReason"], [proposal_id, code, reason])
    return encode_call(_GOVERNOR["castVote"], [proposal_id, code])


def encode_queue(p: ProposalPayload) -> bytes:
    return encode_call(_GOVERNOR["queue"], [*_proposal_args(p), description_hash(p.description)])


def encode_execute(p: ProposalPayload) -> bytes:
    return encode_call(_GOVERNOR["execute"], [*_proposal_args(p), description_hash(p.description)])


def proposal_id_for(p: ProposalPayload) -> int:
    """The id the governor assigns: keccak256(abi.encode(targets, values, calldatas, descriptionHash))."""
    encoded = abi_encode(
        ["address[]", "uint256[]", "bytes[]", "bytes32"],
        [*_proposal_args(p), description_hash(p.description)],
    )
    return int.from_bytes(keccak(encoded), "big")

