"""Event and function registries for the governor and the dapp registry.

This module consolidates the contract surfaces consumed by the projections,
built from Solidity signatures via the registry_builder module. Event
registries are composable and can be merged with `{**a, **b}` syntax.

Available registries:
- Governor events: make_proposal_registry(), make_vote_registry()
- Dapp registry events: make_dapp_registry()
- Governor functions: make_governor_functions()
- Dapp registry functions: make_dapp_registry_functions()

Example
-------
>>> from dappgov.decoding.registries import make_dapp_registry, make_vote_registry
>>> reg = {**make_dapp_registry(), **make_vote_registry()}
"""

from __future__ import annotations

from .registry_builder import make_function_registry, make_registry
from .specs import EventRegistry, FunctionRegistry, ProjectionRefs


# -------------------------
# Governor events
# -------------------------

PROPOSAL_CREATED = (
    "ProposalCreated(uint256 proposalId, address proposer, address[] targets, uint256[] values, "
    "string[] signatures, bytes[] calldatas, uint256 voteStart, uint256 voteEnd, string description)"
)
VOTE_CAST = "VoteCast(address indexed voter, uint256 proposalId, uint8 support, uint256 weight, string reason)"
VOTE_CAST_WITH_PARAMS = (
    "VoteCastWithParams(address indexed voter, uint256 proposalId, uint8 support, uint256 weight, "
    "string reason, bytes params)"
)


def make_proposal_registry() -> EventRegistry:
    """Return registry for governor proposal-creation events."""
    return make_registry(PROPOSAL_CREATED)


def make_vote_registry() -> EventRegistry:
    """Return registry for both vote-cast event shapes."""
    return make_registry([VOTE_CAST, VOTE_CAST_WITH_PARAMS])


# -------------------------
# Dapp registry events
# -------------------------

DAPP_PUBLISHED = "DappPublished(uint256 indexed dappId, uint256 indexed versionId, bytes rootCid, address proposer)"
DAPP_UPGRADED = (
    "DappUpgraded(uint256 indexed dappId, uint256 indexed fromVersionId, uint256 indexed toVersionId, "
    "bytes rootCid, address proposer)"
)
DAPP_METADATA = (
    "DappMetadata(uint256 indexed dappId, uint256 indexed versionId, string name, string version, string description)"
)
DAPP_PAUSED = "DappPaused(uint256 indexed dappId, uint256 indexed versionId, address pausedBy, string reason)"
DAPP_UNPAUSED = "DappUnpaused(uint256 indexed dappId, uint256 indexed versionId, address unpausedBy, string reason)"
DAPP_DEPRECATED = (
    "DappDeprecated(uint256 indexed dappId, uint256 indexed versionId, address deprecatedBy, string reason)"
)

DAPP_EVENT_NAMES: tuple[str, ...] = (
    "DappPublished",
    "DappUpgraded",
    "DappMetadata",
    "DappPaused",
    "DappUnpaused",
    "DappDeprecated",
)

# Upgrades address the new version as `toVersionId`; project it onto the
# same `versionId` key every other registry event uses.
_UPGRADE_PROJECTION = {
    "dappId": ProjectionRefs.TopicRef(name="dappId"),
    "fromVersionId": ProjectionRefs.TopicRef(name="fromVersionId"),
    "versionId": ProjectionRefs.TopicRef(name="toVersionId"),
    "rootCid": ProjectionRefs.DataRef(name="rootCid"),
    "proposer": ProjectionRefs.DataRef(name="proposer"),
}


def make_dapp_registry() -> EventRegistry:
    """Return registry for the six dapp registry lifecycle events."""
    return make_registry(
        [DAPP_PUBLISHED, DAPP_UPGRADED, DAPP_METADATA, DAPP_PAUSED, DAPP_UNPAUSED, DAPP_DEPRECATED],
        projections={"DappUpgraded": _UPGRADE_PROJECTION},
    )


# -------------------------
# Functions
# -------------------------

def make_governor_functions() -> FunctionRegistry:
    """Return the governor read and write surface."""
    return make_function_registry([
        "state(uint256 proposalId) returns (uint8)",
        "proposalSnapshot(uint256 proposalId) returns (uint256)",
        "proposalDeadline(uint256 proposalId) returns (uint256)",
        "proposalEta(uint256 proposalId) returns (uint256)",
        "hasVoted(uint256 proposalId, address account) returns (bool)",
        "proposalThreshold() returns (uint256)",
        "getVotes(address account, uint256 timepoint) returns (uint256)",
        "propose(address[] targets, uint256[] values, bytes[] calldatas, string description) returns (uint256)",
        "castVote(uint256 proposalId, uint8 support) returns (uint256)",
        "castVoteWithReason(uint256 proposalId, uint8 support, string reason) returns (uint256)",
        "queue(address[] targets, uint256[] values, bytes[] calldatas, bytes32 descriptionHash) returns (uint256)",
        "execute(address[] targets, uint256[] values, bytes[] calldatas, bytes32 descriptionHash) returns (uint256)",
    ])


def make_dapp_registry_functions() -> FunctionRegistry:
    """Return the two governed dapp registry functions."""
    return make_function_registry([
        "publishDapp(bytes rootCid, string name, string version, string description) returns (uint256)",
        "upgradeDapp(uint256 dappId, bytes rootCid, string name, string version, string description) returns (uint256)",
    ])
