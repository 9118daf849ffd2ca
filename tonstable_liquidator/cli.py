"""Command-line interface for the TonStable liquidator."""
from __future__ import annotations

import argparse
import asyncio
import base64
import sys

from .cell import Address
from .config import load_config
from .constants import LINE_DENOM, RATIO_DENOM
from .errors import LiquidatorError
from .logging_setup import configure_logging
from .models import LiquidationOutcome, PositionReport, ProtocolState
from .services import Liquidator


def _address(value: str) -> Address:
    try:
        return Address.parse(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse CLI parser."""
    parser = argparse.ArgumentParser(
        prog="tonstable-liquidator",
        description="Off-chain risk evaluation and liquidation for the TonStable singleton",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.yaml (default: config.yaml in project root)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )

    sub = parser.add_subparsers(dest="command")

    sub.add_parser("state", help="Show the decoded singleton state")
    sub.add_parser("positions", help="List every open position")

    evaluate_parser = sub.add_parser("evaluate", help="Evaluate one position")
    evaluate_parser.add_argument("owner", type=_address, help="Position owner address")

    liquidate_parser = sub.add_parser(
        "liquidate", help="Liquidate one position if it is under the line (dry run)"
    )
    liquidate_parser.add_argument("owner", type=_address, help="Position owner address")

    scan_parser = sub.add_parser("scan", help="Evaluate every position")
    scan_parser.add_argument(
        "--liquidate",
        action="store_true",
        help="Build liquidation messages for positions under the line",
    )

    return parser


def _format_ratio(value: int, denom: int) -> str:
    return f"{value * 100 / denom:.2f}%"


def _print_state(state: ProtocolState) -> None:
    print(f"Owner:             {state.owner}")
    print(f"Minter:            {state.minter.address if state.minter else '-'}")
    print(f"Total borrows:     {state.total_borrows}")
    print(f"Safe line:         {_format_ratio(state.safe_line, LINE_DENOM)}")
    print(f"Liquidation line:  {_format_ratio(state.liquidation_line, LINE_DENOM)}")
    print(f"Penalty:           {_format_ratio(state.liquidation_penalty, RATIO_DENOM)}")
    print(f"Penalty split:     {_format_ratio(state.liquidation_penalty_split, RATIO_DENOM)}")
    print("Supported assets:")
    for key, asset in state.supported_assets.items():
        deposits = state.total_deposits.get(key, 0)
        price = state.prices.get(key)
        print(
            f"  {asset.minter_address} type={asset.asset_type} "
            f"ratio={asset.exchange_ratio} deposits={deposits} "
            f"price={price if price is not None else '-'}"
        )
    print("APY timeline:")
    for checkpoint in state.apy_timeline:
        print(f"  {checkpoint.ts}: {_format_ratio(checkpoint.rate, RATIO_DENOM)}")


def _print_report(report: PositionReport) -> None:
    decision = report.decision
    adequacy = decision.capital_adequacy
    print(f"Owner:             {report.owner}")
    print(f"Debt:              {report.principal} + {report.accrued_interest} interest")
    print(f"Collateral value:  {report.collateral_value}")
    print(f"Safe credit:       {report.safe_credit}")
    print(
        "Capital adequacy:  "
        + (_format_ratio(adequacy, LINE_DENOM) if adequacy is not None else "-")
    )
    print(f"Decision:          {decision.action.value}")
    if decision.penalty is not None:
        print(
            f"Penalty regime:    {decision.penalty.regime} "
            f"(penalty {_format_ratio(decision.penalty.penalty_ratio, RATIO_DENOM)}, "
            f"split {_format_ratio(decision.penalty.split_ratio, RATIO_DENOM)})"
        )
        print(f"Debt to liquidate: {decision.debt_to_liquidate} ({decision.searches} steps)")


def _print_outcome(outcome: LiquidationOutcome) -> None:
    _print_report(outcome.report)
    if outcome.body is None:
        return
    print(f"Attached value:    {outcome.value}")
    if outcome.sent:
        print(f"Sent to:           {outcome.destination}")
        print(f"Confirmed:         {outcome.confirmed}")
    else:
        print("Transfer body (BoC, base64):")
        print(base64.b64encode(outcome.body.to_boc()).decode())


async def _run(args: argparse.Namespace) -> None:
    """Execute the selected command."""
    configure_logging(args.log_level)
    config = load_config(args.config)
    liquidator = Liquidator(config)

    if args.command == "state":
        _print_state(await liquidator.singleton.fetch_state())
    elif args.command == "positions":
        for position in await liquidator.positions():
            print(
                f"{position.owner} created={position.created_at} "
                f"collaterals={len(position.collateral)} debts={len(position.debts)}"
            )
    elif args.command == "evaluate":
        _print_report(await liquidator.evaluate(args.owner))
    elif args.command == "liquidate":
        _print_outcome(await liquidator.try_to_liquidate(args.owner))
    elif args.command == "scan":
        for outcome in await liquidator.scan(liquidate=args.liquidate):
            _print_outcome(outcome)
            print()
    else:
        build_parser().print_help()
        sys.exit(1)


def main() -> None:
    """Entry point."""
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        asyncio.run(_run(args))
    except LiquidatorError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
