"""Chain client protocol: ledger node abstraction."""
from typing import Protocol

from ..cell import Address, StackItem


class ChainClient(Protocol):
    """Abstract interface for get-method calls and account reads."""

    async def get_last_seqno(self) -> int: ...

    async def run_method(
        self, address: Address, method: str, args: list[StackItem] | None = None
    ) -> list[StackItem]: ...

    async def get_account_last_lt(self, address: Address) -> int | None: ...
