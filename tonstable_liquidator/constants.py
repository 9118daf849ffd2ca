"""Protocol-wide fixed-point denominators and fee schedule."""
from __future__ import annotations

from dataclasses import dataclass

RATIO_DENOM = 100_000_000
PRICE_DENOM = 100_000_000
LINE_DENOM = 10_000

# 365 days, no leap-year adjustment: this is the contract's accrual year.
SECONDS_PER_YEAR = 365 * 86_400

NANOTON = 1_000_000_000


@dataclass(frozen=True)
class ProtocolConstants:
    """Denominators injected into the accrual, valuation and policy engines."""

    ratio_denom: int = RATIO_DENOM
    price_denom: int = PRICE_DENOM
    line_denom: int = LINE_DENOM
    seconds_per_year: int = SECONDS_PER_YEAR


DEFAULT_CONSTANTS = ProtocolConstants()


@dataclass(frozen=True)
class FeeSchedule:
    """Message fees charged by the singleton contract, in nanotons."""

    upload_price: int = 80_000_000
    deposit: int = 500_000_000
    mint: int = 100_000_000
    print_usd: int = 500_000_000
    jetton_transfer: int = 50_000_000
    jetton_burn_internal: int = 50_000_000
    liquidate_base: int = 500_000_000
    free_custody: int = 150_000_000
    withdraw: int = 200_000_000
    repay: int = 500_000_000
    extract_accrued: int = 100_000_000

    def liquidate_fee(self, collateral_count: int) -> int:
        """Fee forwarded with a liquidation request.

        The contract currently charges a flat base fee regardless of how many
        collaterals are requested.
        """
        return self.liquidate_base


DEFAULT_FEES = FeeSchedule()
