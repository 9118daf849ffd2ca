"""Pure risk engine: interest accrual, collateral valuation, liquidation policy."""
from .accrual import accrue, total_debt
from .policy import (
    capital_adequacy,
    decide_penalty_ratios,
    evaluate,
    minimal_liquidation,
    outstanding_line,
)
from .valuation import build_price_table, value_of

__all__ = [
    "accrue",
    "build_price_table",
    "capital_adequacy",
    "decide_penalty_ratios",
    "evaluate",
    "minimal_liquidation",
    "outstanding_line",
    "total_debt",
    "value_of",
]
