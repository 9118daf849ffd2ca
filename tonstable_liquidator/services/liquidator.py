"""Liquidation orchestration: fetch, evaluate, encode, send and confirm."""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable

from ..cell import Address, address_hash
from ..chains.ton import TonClient
from ..config import AppConfig
from ..constants import DEFAULT_CONSTANTS, DEFAULT_FEES, FeeSchedule, ProtocolConstants
from ..engine import build_price_table, evaluate, total_debt, value_of
from ..errors import ChainError, LiquidatorError
from ..interfaces.chain import ChainClient
from ..interfaces.price_feed import PriceFeed
from ..interfaces.sender import Sender
from ..models import (
    LiquidationAction,
    LiquidationDecision,
    LiquidationOutcome,
    Position,
    PositionReport,
    ProtocolState,
)
from ..oracles.tonstable import TonStableOracle
from ..protocols.singleton import (
    AMOUNT_TYPE_CAPITAL_MAX,
    LiquidationInstruction,
    SingletonAdapter,
    build_liquidation_transfer,
    required_liquidation_value,
)
from .confirmation import wait_for_transaction

logger = logging.getLogger(__name__)


class Liquidator:
    """Evaluates positions against live state and liquidates under-collateralized ones.

    Without a :class:`Sender` every liquidation is a dry run: the transfer
    body is built and returned but nothing is sent.
    """

    def __init__(
        self,
        config: AppConfig,
        chain_client: ChainClient | None = None,
        price_feed: PriceFeed | None = None,
        sender: Sender | None = None,
        fees: FeeSchedule = DEFAULT_FEES,
        constants: ProtocolConstants = DEFAULT_CONSTANTS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config
        self._client: ChainClient = chain_client or TonClient(config.chain)
        self._feed: PriceFeed = price_feed or TonStableOracle(config.price_feed)
        self._sender = sender
        self._fees = fees
        self._constants = constants
        self._clock = clock
        self._lock = asyncio.Lock()

        contracts = config.contracts
        self.singleton = SingletonAdapter(self._client, Address.parse(contracts.singleton))
        self._collaterals = {
            symbol: Address.parse(address) for symbol, address in contracts.collaterals.items()
        }
        wanted = contracts.wanted_collaterals or tuple(self._collaterals)
        self._wanted = tuple(self._collaterals[symbol] for symbol in wanted)
        self._jetton_wallet: Address | None = (
            Address.parse(contracts.liquidator_jetton_wallet)
            if contracts.liquidator_jetton_wallet
            else None
        )

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    async def _price_table(self) -> dict[int, int]:
        prices = await self._feed.fetch_prices()
        if not prices:
            raise LiquidatorError("No prices available from the price feed")
        return build_price_table(prices, self._collaterals)

    def _asset_list(self, state: ProtocolState) -> list[int]:
        """Supported assets that are also configured as collaterals."""
        configured = {address_hash(address) for address in self._collaterals.values()}
        return [key for key in state.supported_assets if key in configured]

    def report(
        self, position: Position, state: ProtocolState, price_table: dict[int, int]
    ) -> PositionReport:
        """Evaluate one decoded position against a state snapshot and price table."""
        now = int(self._clock())
        principal, interest = total_debt(position, state.apy_timeline, now, self._constants)
        assets = self._asset_list(state)
        collateral_value = value_of(position, price_table, assets, self._constants)
        safe_credit = (
            position.credit * self._constants.line_denom // state.safe_line
            if state.safe_line
            else 0
        )

        unpriced = [k for k in assets if position.collateral.get(k) and k not in price_table]
        if unpriced:
            logger.warning(
                "Skipping %s: %d held collateral(s) have no price", position.owner, len(unpriced)
            )
            decision = LiquidationDecision(LiquidationAction.SKIP)
        else:
            decision = evaluate(collateral_value, principal + interest, state, self._constants)

        return PositionReport(
            owner=position.owner,
            principal=principal,
            accrued_interest=interest,
            collateral_value=collateral_value,
            safe_credit=safe_credit,
            decision=decision,
        )

    async def evaluate(self, owner: Address) -> PositionReport:
        """Fetch fresh state, the owner's position and prices, then evaluate."""
        state = await self.singleton.fetch_state()
        position_state = await self.singleton.fetch_position_state(owner)
        price_table = await self._price_table()
        return self.report(position_state.position, state, price_table)

    # ------------------------------------------------------------------
    # Liquidation
    # ------------------------------------------------------------------

    async def _resolve_jetton_wallet(self, state: ProtocolState) -> Address:
        if self._jetton_wallet is not None:
            return self._jetton_wallet

        owner = self._sender.address if self._sender else None
        if owner is None and self._config.liquidator.wallet_address:
            owner = Address.parse(self._config.liquidator.wallet_address)
        minter_address = self._config.contracts.stablecoin_minter
        minter = (
            Address.parse(minter_address)
            if minter_address
            else (state.minter.address if state.minter else None)
        )
        if owner is None or minter is None:
            raise LiquidatorError("Cannot resolve the liquidator's stablecoin wallet")

        self._jetton_wallet = await self.singleton.fetch_jetton_wallet(minter, owner)
        logger.info("Resolved liquidator jetton wallet: %s", self._jetton_wallet)
        return self._jetton_wallet

    async def liquidate(self, report: PositionReport, state: ProtocolState) -> LiquidationOutcome:
        """Encode, send and confirm a liquidation for an already evaluated position.

        Only one liquidation is in flight at a time.
        """
        if not report.decision.should_liquidate:
            return LiquidationOutcome(report)

        async with self._lock:
            amount = report.decision.debt_to_liquidate
            feed_data = await self._feed.fetch_feed_data()
            prices, ratios = feed_data if feed_data is not None else (None, None)
            if feed_data is None:
                logger.warning("Liquidating without price updates: feed data unavailable")

            instruction = LiquidationInstruction(
                owner=report.owner,
                collaterals=self._wanted,
                amount=amount,
                amount_type=AMOUNT_TYPE_CAPITAL_MAX,
                prices=prices,
                exchange_ratios=ratios,
            )
            value = self._config.liquidator.funding_value or required_liquidation_value(
                len(self._wanted), self._fees
            )
            body = build_liquidation_transfer(
                instruction,
                capital=amount,
                singleton=self.singleton.address,
                value=value,
                fees=self._fees,
            )

            if self._sender is None:
                logger.info(
                    "Dry run: would liquidate %d of %s with %d nanotons attached",
                    amount,
                    report.owner,
                    value,
                )
                return LiquidationOutcome(report, body=body, value=value)

            destination = await self._resolve_jetton_wallet(state)
            try:
                previous_lt = await self._client.get_account_last_lt(self._sender.address)
                baseline_known = True
            except ChainError as e:
                logger.warning("Could not read wallet state before sending: %s", e)
                previous_lt = None
                baseline_known = False

            sent = await self._sender.send(destination, value, body)
            if not sent:
                logger.error("Sender rejected liquidation of %s", report.owner)
                return LiquidationOutcome(report, body=body, value=value, destination=destination)

            logger.info("Liquidation of %s sent, %d debt requested", report.owner, amount)
            if not baseline_known:
                logger.warning(
                    "Cannot confirm liquidation of %s without the wallet's prior state",
                    report.owner,
                )
                return LiquidationOutcome(
                    report, body=body, value=value, destination=destination, sent=True
                )

            confirmed = await wait_for_transaction(
                self._client,
                self._sender.address,
                previous_lt,
                max_retry=self._config.liquidator.confirm_max_retry,
                interval=self._config.liquidator.confirm_interval_seconds,
                action="liquidation",
            )
            return LiquidationOutcome(
                report,
                body=body,
                value=value,
                destination=destination,
                sent=True,
                confirmed=confirmed,
            )

    async def try_to_liquidate(self, owner: Address) -> LiquidationOutcome:
        """Evaluate ``owner``'s position and liquidate it if it is under the line."""
        state = await self.singleton.fetch_state()
        position_state = await self.singleton.fetch_position_state(owner)
        price_table = await self._price_table()
        report = self.report(position_state.position, state, price_table)

        if report.decision.action is LiquidationAction.SOLVENT:
            logger.info(
                "%s is solvent (adequacy %s)", owner, report.decision.capital_adequacy
            )
        elif report.decision.action is LiquidationAction.SKIP:
            logger.info("Nothing to liquidate for %s", owner)
        return await self.liquidate(report, state)

    async def positions(self) -> list[Position]:
        """All positions, paged through ``get_all_positions``."""
        page_size = self._config.liquidator.page_size
        positions: list[Position] = []
        offset = 0
        while True:
            page = await self.singleton.fetch_all_positions(offset, page_size)
            positions.extend(page)
            if len(page) < page_size:
                break
            offset += page_size
        return positions

    async def scan(self, liquidate: bool = True) -> list[LiquidationOutcome]:
        """Evaluate every position and, unless ``liquidate`` is off, act on them.

        A failure on one position is logged and the scan moves on.
        """
        state = await self.singleton.fetch_state()
        price_table = await self._price_table()
        positions = await self.positions()
        logger.info("Scanning %d position(s)", len(positions))

        outcomes: list[LiquidationOutcome] = []
        for position in positions:
            try:
                report = self.report(position, state, price_table)
                if liquidate:
                    outcomes.append(await self.liquidate(report, state))
                else:
                    outcomes.append(LiquidationOutcome(report))
            except LiquidatorError as e:
                logger.error("Error processing position %s: %s", position.owner, e)

        due = sum(1 for o in outcomes if o.report.decision.should_liquidate)
        logger.info("Scan complete: %d of %d position(s) due for liquidation", due, len(outcomes))
        return outcomes
