"""TonStable price API: per-symbol prices and signed on-chain price updates."""
import logging
import ssl
from decimal import ROUND_DOWN, Decimal, InvalidOperation
from typing import Any

import aiohttp
import certifi

from ..cell import Cell
from ..config import PriceFeedConfig
from ..errors import MalformedCell

logger = logging.getLogger(__name__)


def _parse_price(raw: Any) -> int:
    """Prices are integers scaled by PRICE_DENOM; fractional digits are dropped."""
    value = Decimal(str(raw))
    if not value.is_finite() or value < 0:
        raise ValueError(f"Invalid price: {raw!r}")
    return int(value.to_integral_value(rounding=ROUND_DOWN))


class TonStableOracle:
    """Fetch prices and price-update cells from the protocol's price API."""

    def __init__(self, config: PriceFeedConfig) -> None:
        self.base_url = config.base_url.rstrip("/")
        self.timeout = config.timeout

    async def _get_json(self, path: str) -> dict[str, Any] | None:
        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)

        async with aiohttp.ClientSession(connector=connector) as session:
            async with session.get(
                f"{self.base_url}{path}",
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as response:
                if response.status != 200:
                    logger.error(
                        "Error fetching %s from price API: HTTP %s", path, response.status
                    )
                    return None
                return await response.json()

    async def fetch_prices(self) -> dict[str, int]:
        """Fetch current prices keyed by symbol; empty on any failure."""
        prices: dict[str, int] = {}

        try:
            data = await self._get_json("/api/getprice")
            if data is None:
                return prices

            for item in data.get("data", []):
                symbol = item.get("symbol")
                if not symbol:
                    continue
                try:
                    prices[symbol] = _parse_price(item.get("price"))
                except (InvalidOperation, ValueError) as e:
                    logger.warning("Skipping price for %s: %s", symbol, e)

            logger.info("Fetched prices from price API:")
            for symbol, price in sorted(prices.items()):
                logger.info("  %s: %d", symbol, price)

        except Exception as e:
            logger.error("Error fetching prices: %s", e)

        return prices

    async def fetch_feed_data(self) -> tuple[Cell, Cell] | None:
        """Signed price and exchange-ratio update cells, ``None`` on failure."""
        try:
            data = await self._get_json("/api/getfeedData")
            if data is None:
                return None

            payload = data.get("data", [])
            if len(payload) < 2:
                logger.error("Price feed data is incomplete: %d item(s)", len(payload))
                return None
            prices = Cell.from_boc(bytes.fromhex(payload[0]))
            ratios = Cell.from_boc(bytes.fromhex(payload[1]))
            return prices, ratios

        except MalformedCell as e:
            logger.error("Price feed returned a malformed cell: %s", e)
        except Exception as e:
            logger.error("Error fetching price feed data: %s", e)

        return None
