"""Sender protocol: signs and submits an internal message."""
from typing import Protocol

from ..cell import Address, Cell


class Sender(Protocol):
    """Wallet that sends ``value`` nanotons with ``body`` to ``to``.

    Key management and signing stay behind this interface.
    """

    @property
    def address(self) -> Address: ...

    async def send(self, to: Address, value: int, body: Cell) -> bool: ...
