from __future__ import annotations

from dappgov.core.models import BundleReference, ProposalRecord
from dappgov.decoding.decoder import decode_call
from dappgov.decoding.registries import make_dapp_registry_functions
from dappgov.decoding.specs import FunctionRegistry
from dappgov.decoding.utils import decode_content_id

_REGISTRY_FUNCTIONS: FunctionRegistry = make_dapp_registry_functions()


def same_address(a: str | None, b: str | None) -> bool:
    if not a or not b:
        return False
    return a.lower() == b.lower()


def extract_bundle_reference(
    proposal: ProposalRecord,
    expected_registry: str | None = None,
    *,
    functions: FunctionRegistry = _REGISTRY_FUNCTIONS,
) -> BundleReference | None:
    """Recover the content bundle a proposal publishes or upgrades to.

    Walks target/calldata pairs in order and returns the first pair that
    targets the registry (when `expected_registry` is given) and decodes as
    `publishDapp` or `upgradeDapp` with a non-empty content id. Proposals
    unrelated to publishing return None.
    """
    for target, calldata in zip(proposal.targets, proposal.calldatas):
        if expected_registry and not same_address(target, expected_registry):
            continue
        call = decode_call(calldata, functions)
        if call is None:
            continue
        root_cid = decode_content_id(call.args.get("rootCid"))
        if not root_cid:
            continue
        if call.name == "publishDapp":
            return BundleReference(action="publish", root_content_id=root_cid)
        if call.name == "upgradeDapp":
            return BundleReference(action="upgrade", root_content_id=root_cid, dapp_id=call.args["dappId"])
    return None
