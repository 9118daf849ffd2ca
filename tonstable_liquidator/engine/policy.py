"""Liquidation policy: trigger check, penalty regime and minimal liquidation size."""
from __future__ import annotations

import logging
from dataclasses import dataclass

from ..constants import DEFAULT_CONSTANTS, ProtocolConstants
from ..errors import DivisionByZero
from ..models import (
    LiquidationAction,
    LiquidationDecision,
    PenaltyRatios,
    ProtocolState,
)

logger = logging.getLogger(__name__)

BISECTION_STEPS = 32


def capital_adequacy(
    collateral_value: int,
    total_debt: int,
    constants: ProtocolConstants = DEFAULT_CONSTANTS,
) -> int:
    """Collateral over debt on the LINE_DENOM scale."""
    if total_debt == 0:
        raise DivisionByZero("Capital adequacy is undefined for a debt-free position")
    return collateral_value * constants.line_denom // total_debt


def outstanding_line(safe_line: int, liquidation_line: int) -> int:
    """Adequacy a liquidation must restore: midway between the two lines."""
    return (safe_line + liquidation_line) // 2


def decide_penalty_ratios(
    adequacy: int,
    liquidation_penalty: int,
    penalty_split: int,
    constants: ProtocolConstants = DEFAULT_CONSTANTS,
) -> PenaltyRatios:
    """Pick the penalty ratio and its liquidator split for an adequacy level.

    Regime 1 (deeply under water): the liquidator's share becomes the whole
    penalty. Regime 2 (just under the line): configured penalty and split.
    Regime 3: the penalty shrinks to whatever the collateral still covers,
    keeping the liquidator's absolute share constant.
    """
    ratio_denom = constants.ratio_denom
    adequacy_ratio = adequacy * ratio_denom // constants.line_denom
    liquidator_gains = liquidation_penalty * penalty_split // ratio_denom

    if adequacy_ratio <= ratio_denom + liquidator_gains:
        return PenaltyRatios(liquidator_gains, ratio_denom, 1)
    if adequacy_ratio >= ratio_denom + liquidation_penalty:
        return PenaltyRatios(liquidation_penalty, penalty_split, 2)

    penalty_ratio = adequacy_ratio - ratio_denom
    if penalty_ratio == 0:
        raise DivisionByZero("Interpolated penalty ratio is zero")
    split_ratio = penalty_split * liquidation_penalty // penalty_ratio
    return PenaltyRatios(penalty_ratio, split_ratio, 3)


@dataclass(frozen=True)
class SizingResult:
    debt: int
    searches: int
    collateral_exhausted: bool = False


def minimal_liquidation(
    penalty_ratio: int,
    target_line: int,
    total_debt: int,
    collateral_value: int,
    constants: ProtocolConstants = DEFAULT_CONSTANTS,
    steps: int = BISECTION_STEPS,
) -> SizingResult:
    """Smallest debt amount whose removal lifts adequacy to ``target_line``.

    Removing ``d`` of debt also removes ``d * (1 + penalty)`` of collateral.
    A fixed number of bisection steps over ``[0, total_debt]`` bounds the
    error to ``2**-steps`` of the debt. When the collateral cannot cover a
    candidate plus penalty, or no candidate ever reaches the target, the
    whole debt is liquidated.
    """
    ratio_denom = constants.ratio_denom
    line_denom = constants.line_denom

    if capital_adequacy(collateral_value, total_debt, constants) >= target_line:
        return SizingResult(0, 0)

    low, high = 0, total_debt
    best: int | None = None
    searches = 0

    while searches < steps:
        debt_removed = (low + high) // 2
        collateral_reduced = debt_removed * (ratio_denom + penalty_ratio) // ratio_denom
        searches += 1

        if collateral_value <= collateral_reduced:
            return SizingResult(total_debt, searches, collateral_exhausted=True)

        remaining_debt = total_debt - debt_removed
        adequacy = (collateral_value - collateral_reduced) * line_denom // remaining_debt
        if adequacy >= target_line:
            high = debt_removed
            if best is None or debt_removed < best:
                best = debt_removed
        else:
            low = debt_removed

    if best is None:
        return SizingResult(total_debt, searches)
    return SizingResult(best, searches)


def evaluate(
    collateral_value: int,
    total_debt: int,
    state: ProtocolState,
    constants: ProtocolConstants = DEFAULT_CONSTANTS,
) -> LiquidationDecision:
    """Run trigger check, penalty decision and sizing for one position.

    A debt-free position is a ``SKIP``; a position at or above the
    liquidation line is ``SOLVENT`` and nothing further is computed.
    """
    try:
        adequacy = capital_adequacy(collateral_value, total_debt, constants)
    except DivisionByZero:
        logger.debug("Position has no debt, nothing to liquidate")
        return LiquidationDecision(LiquidationAction.SKIP)

    if adequacy >= state.liquidation_line:
        return LiquidationDecision(LiquidationAction.SOLVENT, capital_adequacy=adequacy)

    try:
        penalty = decide_penalty_ratios(
            adequacy,
            state.liquidation_penalty,
            state.liquidation_penalty_split,
            constants,
        )
    except DivisionByZero as e:
        logger.warning("Skipping liquidation: %s", e)
        return LiquidationDecision(LiquidationAction.SKIP, capital_adequacy=adequacy)

    target = outstanding_line(state.safe_line, state.liquidation_line)
    sizing = minimal_liquidation(
        penalty.penalty_ratio, target, total_debt, collateral_value, constants
    )
    logger.info(
        "Liquidation triggered: adequacy %d < %d, regime %d, liquidate %d of %d (%d steps)",
        adequacy,
        state.liquidation_line,
        penalty.regime,
        sizing.debt,
        total_debt,
        sizing.searches,
    )
    return LiquidationDecision(
        LiquidationAction.LIQUIDATE,
        capital_adequacy=adequacy,
        penalty=penalty,
        outstanding_line=target,
        debt_to_liquidate=sizing.debt,
        searches=sizing.searches,
        collateral_exhausted=sizing.collateral_exhausted,
    )
