"""Interest accrual: replays the APY timeline the same way the contract does."""
from __future__ import annotations

from typing import Iterable

from ..constants import DEFAULT_CONSTANTS, ProtocolConstants
from ..models import ApyCheckpoint, Position


def accrue(
    query_time: int,
    timeline: Iterable[ApyCheckpoint],
    principal: int,
    last_update: int,
    constants: ProtocolConstants = DEFAULT_CONSTANTS,
) -> int:
    """Interest accrued on ``principal`` from ``last_update`` to ``query_time``.

    Each segment between checkpoints accrues at the rate set by the previous
    checkpoint (zero before the first one). Every segment is truncated on its
    own, exactly like the on-chain integer arithmetic:

        principal * seconds * rate // (SECONDS_PER_YEAR * RATIO_DENOM)

    Checkpoints at or before ``last_update`` only move the running rate;
    checkpoints after ``query_time`` are ignored.
    """
    denom = constants.seconds_per_year * constants.ratio_denom
    rate = 0
    accrued = 0

    for checkpoint in timeline:
        if checkpoint.ts > query_time:
            break
        if checkpoint.ts > last_update:
            accrued += principal * (checkpoint.ts - last_update) * rate // denom
            last_update = checkpoint.ts
        rate = checkpoint.rate

    if query_time > last_update:
        accrued += principal * (query_time - last_update) * rate // denom

    return accrued


def total_debt(
    position: Position,
    timeline: Iterable[ApyCheckpoint],
    when: int,
    constants: ProtocolConstants = DEFAULT_CONSTANTS,
) -> tuple[int, int]:
    """Return ``(principal, interest)`` summed over every debt of the position.

    Interest includes the amount already snapshotted in each debt record.
    """
    checkpoints = tuple(timeline)
    principal = 0
    interest = 0
    for debt in position.debts.values():
        principal += debt.principal
        interest += debt.accrued_interest + accrue(
            when, checkpoints, debt.principal, debt.start_ts, constants
        )
    return principal, interest
