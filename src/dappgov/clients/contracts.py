"""Typed read access to contracts over `eth_call`.

- `ContractReader`: encode a `FunctionSpec` call, execute it, decode outputs.
- `GovernorReader`: the governor read surface used by the projections.

Every failure (transport, revert, malformed return data) surfaces as
`ContractReadError` so callers can decide per item whether to degrade.
"""

from __future__ import annotations

from typing import Any

from dappgov.core.errors import ContractReadError
from dappgov.core.interfaces import IChainReader
from dappgov.decoding.decoder import decode_output, encode_call
from dappgov.decoding.registries import make_governor_functions
from dappgov.decoding.specs import FunctionRegistry


class ContractReader:
    """Read-only calls against one contract address."""

    def __init__(self, chain: IChainReader, address: str, functions: FunctionRegistry) -> None:
        self._chain = chain
        self.address = address
        self._functions = functions

    async def read(self, function: str, *args: Any, block: int | str = "latest") -> tuple[Any, ...]:
        spec = self._functions.get(function)
        if spec is None:
            raise ContractReadError(function, "unknown function")
        try:
            raw = await self._chain.call(to=self.address, data=encode_call(spec, args), block=block)
        except Exception as e:
            raise ContractReadError(function, e) from e
        if not raw:
            # empty return data: no contract at the address, or a revert without reason
            raise ContractReadError(function, "empty return data")
        try:
            return decode_output(spec, raw)
        except Exception as e:
            raise ContractReadError(function, e) from e

    async def read_one(self, function: str, *args: Any, block: int | str = "latest") -> Any:
        out = await self.read(function, *args, block=block)
        return out[0]


class GovernorReader(ContractReader):
    """Governor read surface (OpenZeppelin Governor + timelock extension)."""

    def __init__(self, chain: IChainReader, address: str) -> None:
        super().__init__(chain, address, make_governor_functions())

    async def state(self, proposal_id: int) -> int:
        return int(await self.read_one("state", proposal_id))

    async def proposal_snapshot(self, proposal_id: int) -> int:
        return int(await self.read_one("proposalSnapshot", proposal_id))

    async def proposal_deadline(self, proposal_id: int) -> int:
        return int(await self.read_one("proposalDeadline", proposal_id))

    async def proposal_eta(self, proposal_id: int) -> int:
        return int(await self.read_one("proposalEta", proposal_id))

    async def has_voted(self, proposal_id: int, account: str) -> bool:
        return bool(await self.read_one("hasVoted", proposal_id, account))

    async def proposal_threshold(self) -> int:
        return int(await self.read_one("proposalThreshold"))

    async def get_votes(self, account: str, block_number: int) -> int:
        return int(await self.read_one("getVotes", account, block_number))
