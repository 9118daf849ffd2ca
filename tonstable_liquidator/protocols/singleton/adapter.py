"""Singleton adapter: runs the contract's get-methods and decodes the results."""
from __future__ import annotations

import logging

from ...cell import Address, StackItem, TupleReader, address_cell
from ...interfaces.chain import ChainClient
from ...models import AccruedProfits, CustodyToken, Position, PositionState, ProtocolState
from . import decoder

logger = logging.getLogger(__name__)


def _address_arg(address: Address) -> StackItem:
    return StackItem.of_slice(address_cell(address))


class SingletonAdapter:
    """Read-only view of the singleton contract.

    Chain and decoding errors propagate; a half-decoded snapshot is never returned.
    """

    def __init__(self, chain_client: ChainClient, singleton: Address) -> None:
        self._client = chain_client
        self.address = singleton

    async def _run(self, method: str, args: list[StackItem] | None = None) -> TupleReader:
        stack = await self._client.run_method(self.address, method, args or [])
        logger.debug("%s returned %d stack item(s)", method, len(stack))
        return TupleReader(stack)

    async def fetch_state(self) -> ProtocolState:
        state = decoder.decode_singleton_state(await self._run("get_singleton_state"))
        logger.debug(
            "Singleton state: %d supported asset(s), %d price(s), %d APY checkpoint(s)",
            len(state.supported_assets),
            len(state.prices),
            len(state.apy_timeline),
        )
        return state

    async def fetch_position_state(self, owner: Address) -> PositionState:
        reader = await self._run("get_position_state", [_address_arg(owner)])
        return decoder.decode_position_state(reader)

    async def fetch_all_positions(self, offset: int = 0, limit: int = 0) -> list[Position]:
        """Page through ``get_all_positions``; ``limit`` 0 lets the contract decide."""
        reader = await self._run(
            "get_all_positions",
            [StackItem.of_int(max(offset, 0)), StackItem.of_int(max(limit, 0))],
        )
        positions: list[Position] = []
        for item in reader.read_lisp_list():
            if item.kind != "cell":
                continue
            positions.append(decoder.decode_position_cell(item.value))
        return positions

    async def fetch_custody_tokens(self, owner: Address) -> list[CustodyToken]:
        reader = await self._run("get_user_stucked_token", [_address_arg(owner)])
        return decoder.decode_custody_tokens(reader.read_cell_opt())

    async def fetch_accrued_profits(self) -> AccruedProfits:
        return decoder.decode_accrued_profits(await self._run("get_protocol_accrued_profits"))

    async def fetch_jetton_wallet(self, minter: Address, owner: Address) -> Address:
        """Resolve ``owner``'s jetton wallet through the minter's ``get_wallet_address``."""
        stack = await self._client.run_method(
            minter, "get_wallet_address", [_address_arg(owner)]
        )
        return TupleReader(stack).read_address()
