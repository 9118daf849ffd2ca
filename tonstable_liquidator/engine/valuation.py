"""Collateral valuation against an already-validated price table."""
from __future__ import annotations

import logging
from typing import Iterable, Mapping

from ..cell import Address, address_hash
from ..constants import DEFAULT_CONSTANTS, ProtocolConstants
from ..models import Position

logger = logging.getLogger(__name__)


def value_of(
    position: Position,
    price_table: Mapping[int, int],
    asset_list: Iterable[int],
    constants: ProtocolConstants = DEFAULT_CONSTANTS,
) -> int:
    """Total collateral value of ``position`` in price units.

    Only assets in ``asset_list`` count. Each held amount is converted with
    ``amount * price // PRICE_DENOM``; assets without a price contribute zero.
    Price freshness is the price feed's responsibility, not checked here.
    """
    total = 0
    for key in asset_list:
        amount = position.collateral.get(key, 0)
        if not amount:
            continue
        price = price_table.get(key, 0)
        if not price:
            logger.debug("No price for held collateral %064x", key)
        total += amount * price // constants.price_denom
    return total


def build_price_table(
    symbol_prices: Mapping[str, int],
    asset_symbols: Mapping[str, Address],
) -> dict[int, int]:
    """Re-key per-symbol feed prices by the asset's address hash."""
    table: dict[int, int] = {}
    for symbol, address in asset_symbols.items():
        if symbol in symbol_prices:
            table[address_hash(address)] = symbol_prices[symbol]
    return table
