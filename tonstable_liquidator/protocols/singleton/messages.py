"""Message bodies sent to the singleton and to jetton wallets."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

from ...cell import Address, Cell, StackItem, address_cell, begin_cell, serialize_tuple
from ...constants import DEFAULT_FEES, FeeSchedule
from ...errors import InsufficientValue

logger = logging.getLogger(__name__)

BITS_OP = 32
BITS_QUERY_ID = 64

OP_LIQUIDATE = 0x7DF2105D
OP_JETTON_TRANSFER = 0x0F8A7EA5

AMOUNT_TYPE_CAPITAL_MAX = 0
AMOUNT_TYPE_VALUE_MIN = 1


@dataclass(frozen=True)
class LiquidationInstruction:
    """Forward payload asking the singleton to liquidate ``owner``'s position.

    ``exchange_ratios`` is only written when ``prices`` is present.
    """

    owner: Address
    collaterals: tuple[Address, ...]
    amount: int
    amount_type: int = AMOUNT_TYPE_CAPITAL_MAX
    prices: Cell | None = field(default=None, compare=False)
    exchange_ratios: Cell | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        if self.amount_type not in (AMOUNT_TYPE_CAPITAL_MAX, AMOUNT_TYPE_VALUE_MIN):
            raise ValueError(f"Unknown amount type: {self.amount_type}")
        if self.amount < 0:
            raise ValueError("Liquidation amount must not be negative")

    def to_cell(self) -> Cell:
        collaterals = serialize_tuple(
            [StackItem.of_cell(address_cell(address)) for address in self.collaterals]
        )
        builder = (
            begin_cell()
            .store_uint(OP_LIQUIDATE, BITS_OP)
            .store_address(self.owner)
            .store_ref(collaterals)
            .store_coins(self.amount)
            .store_uint(self.amount_type, 1)
        )
        if self.prices is not None:
            builder.store_ref(self.prices)
            if self.exchange_ratios is not None:
                builder.store_ref(self.exchange_ratios)
        return builder.end_cell()


def make_jetton_transfer(
    amount: int,
    destination: Address,
    response_destination: Address | None,
    forward_ton_amount: int,
    forward_payload: Cell | None,
    custom_payload: Cell | None = Cell.EMPTY,
    query_id: int = 0,
) -> Cell:
    """Standard jetton ``transfer`` body addressed to our own jetton wallet."""
    return (
        begin_cell()
        .store_uint(OP_JETTON_TRANSFER, BITS_OP)
        .store_uint(query_id, BITS_QUERY_ID)
        .store_coins(amount)
        .store_address(destination)
        .store_address(response_destination)
        .store_maybe_ref(custom_payload)
        .store_coins(forward_ton_amount)
        .store_maybe_ref(forward_payload)
        .end_cell()
    )


def required_liquidation_value(
    collateral_count: int, fees: FeeSchedule = DEFAULT_FEES
) -> int:
    """TON that must accompany a liquidation: wallet transfer plus singleton fee."""
    return fees.jetton_transfer + fees.liquidate_fee(collateral_count)


def check_liquidation_value(
    value: int, collateral_count: int, fees: FeeSchedule = DEFAULT_FEES
) -> None:
    required = required_liquidation_value(collateral_count, fees)
    if value < required:
        raise InsufficientValue(value, required)


def build_liquidation_transfer(
    instruction: LiquidationInstruction,
    capital: int,
    singleton: Address,
    value: int,
    fees: FeeSchedule = DEFAULT_FEES,
    query_id: int = 0,
) -> Cell:
    """Jetton transfer of ``capital`` to the singleton carrying the instruction.

    Raises :class:`InsufficientValue` before anything is built when ``value``
    cannot cover the fees.
    """
    count = len(instruction.collaterals)
    check_liquidation_value(value, count, fees)
    logger.debug(
        "Building liquidation transfer: capital %d, amount %d, %d collateral(s)",
        capital,
        instruction.amount,
        count,
    )
    return make_jetton_transfer(
        amount=capital,
        destination=singleton,
        response_destination=singleton,
        forward_ton_amount=fees.liquidate_fee(count),
        forward_payload=instruction.to_cell(),
        query_id=query_id,
    )
