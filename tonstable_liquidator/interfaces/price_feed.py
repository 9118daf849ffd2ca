"""Price feed protocol: off-chain prices and signed price updates."""
from typing import Protocol

from ..cell import Cell


class PriceFeed(Protocol):
    """Abstract interface for fetching asset prices."""

    async def fetch_prices(self) -> dict[str, int]: ...

    async def fetch_feed_data(self) -> tuple[Cell, Cell] | None: ...
