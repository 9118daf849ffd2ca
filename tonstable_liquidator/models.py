"""Domain records: frozen value snapshots."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from .cell import Address, Cell

ASSET_TYPE_WRAP_TON = 1
ASSET_TYPE_SIMPLE = 2
ASSET_TYPE_WRAP = 3


@dataclass(frozen=True)
class ApyCheckpoint:
    """Rate that applies from ``ts`` until the next checkpoint."""

    ts: int
    rate: int


@dataclass(frozen=True)
class SingletonMinter:
    """Stablecoin minter registered with the singleton."""

    address: Address
    minter_code: Cell
    wallet_code: Cell


@dataclass(frozen=True)
class SupportedAsset:
    """Collateral type accepted by the protocol."""

    key: int
    minter_address: Address
    wallet_code: Cell
    asset_type: int
    exchange_ratio: int
    exchange_ratio_ts: int
    wrapped_minter_address: Address | None = None
    price_feed_address: Address | None = None


@dataclass(frozen=True)
class ProtocolState:
    """Decoded ``get_singleton_state`` snapshot."""

    owner: Address
    fee_controller: Address
    protocol_account: Address
    minter: SingletonMinter | None
    total_deposits: dict[int, int]
    total_borrows: int
    supported_assets: dict[int, SupportedAsset]
    prices: dict[int, int]
    safe_line: int
    liquidation_line: int
    apy_timeline: tuple[ApyCheckpoint, ...]
    liquidation_penalty: int
    liquidation_penalty_split: int


@dataclass(frozen=True)
class Debt:
    """One borrowed asset inside a position."""

    principal: int
    start_ts: int
    accrued_interest: int
    created_at: int = 0


@dataclass(frozen=True)
class Position:
    """A user's collateralized debt position."""

    owner: Address
    created_at: int
    state: int
    credit: int
    collateral: dict[int, int] = field(default_factory=dict)
    debts: dict[int, Debt] = field(default_factory=dict)


@dataclass(frozen=True)
class PositionState:
    """``get_position_state`` snapshot: the position plus contract-side totals."""

    position: Position
    total_debt: int
    outstanding_debt: int
    interest_debt: int


@dataclass(frozen=True)
class PenaltyRatios:
    """Penalty ratio, liquidator split and the regime (1, 2 or 3) that chose them."""

    penalty_ratio: int
    split_ratio: int
    regime: int


class LiquidationAction(str, Enum):
    SOLVENT = "solvent"
    SKIP = "skip"
    LIQUIDATE = "liquidate"


@dataclass(frozen=True)
class LiquidationDecision:
    """Outcome of the liquidation policy for one position."""

    action: LiquidationAction
    capital_adequacy: int | None = None
    penalty: PenaltyRatios | None = None
    outstanding_line: int = 0
    debt_to_liquidate: int = 0
    searches: int = 0
    collateral_exhausted: bool = False

    @property
    def should_liquidate(self) -> bool:
        return self.action is LiquidationAction.LIQUIDATE and self.debt_to_liquidate > 0


@dataclass(frozen=True)
class PositionReport:
    """Everything computed for one position during a single query."""

    owner: Address
    principal: int
    accrued_interest: int
    collateral_value: int
    safe_credit: int
    decision: LiquidationDecision

    @property
    def total_debt(self) -> int:
        return self.principal + self.accrued_interest


@dataclass(frozen=True)
class CustodyToken:
    """Jetton held by the singleton on a user's behalf."""

    minter_address: Address
    amount: int


@dataclass(frozen=True)
class AccruedProfits:
    """Protocol interest income as reported by ``get_protocol_accrued_profits``."""

    total_accrued: int
    last_updated: int
    extracted: int


@dataclass(frozen=True)
class LiquidationOutcome:
    """What ``try_to_liquidate`` did for one position.

    ``body`` is set whenever a liquidation was due, including dry runs.
    """

    report: PositionReport
    body: Cell | None = None
    value: int = 0
    destination: Address | None = None
    sent: bool = False
    confirmed: bool = False
