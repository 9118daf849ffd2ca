"""Unit tests for CLI argument parsing and output."""
from __future__ import annotations

import base64
import sys
from unittest.mock import patch

import pytest

from tonstable_liquidator.cell import Address, Cell, begin_cell
from tonstable_liquidator.cli import _print_outcome, _print_report, build_parser, main
from tonstable_liquidator.errors import ChainError
from tonstable_liquidator.models import (
    LiquidationAction,
    LiquidationDecision,
    LiquidationOutcome,
    PenaltyRatios,
    PositionReport,
)

OWNER = "0:" + "01" * 32


def _report(owner: Address) -> PositionReport:
    return PositionReport(
        owner=owner,
        principal=100,
        accrued_interest=1,
        collateral_value=105,
        safe_credit=87,
        decision=LiquidationDecision(
            LiquidationAction.LIQUIDATE,
            capital_adequacy=10_396,
            penalty=PenaltyRatios(5_000_000, 100_000_000, 1),
            outstanding_line=11_500,
            debt_to_liquidate=60,
            searches=32,
        ),
    )


class TestBuildParser:
    def test_state_command(self) -> None:
        args = build_parser().parse_args(["state"])
        assert args.command == "state"

    def test_positions_command(self) -> None:
        args = build_parser().parse_args(["positions"])
        assert args.command == "positions"

    def test_evaluate_parses_address(self, owner: Address) -> None:
        args = build_parser().parse_args(["evaluate", OWNER])
        assert args.command == "evaluate"
        assert args.owner == owner

    def test_liquidate_accepts_friendly_address(self, owner: Address) -> None:
        args = build_parser().parse_args(["liquidate", owner.to_string()])
        assert args.owner == owner

    def test_invalid_address_exits(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args(["evaluate", "not-an-address"])

    def test_scan_defaults_to_read_only(self) -> None:
        args = build_parser().parse_args(["scan"])
        assert args.liquidate is False

    def test_scan_liquidate_flag(self) -> None:
        args = build_parser().parse_args(["scan", "--liquidate"])
        assert args.liquidate is True

    def test_config_flag(self) -> None:
        args = build_parser().parse_args(["--config", "/tmp/c.yaml", "state"])
        assert args.config == "/tmp/c.yaml"

    def test_log_level_flag(self) -> None:
        args = build_parser().parse_args(["--log-level", "DEBUG", "state"])
        assert args.log_level == "DEBUG"

    def test_no_command(self) -> None:
        args = build_parser().parse_args([])
        assert args.command is None


class TestOutput:
    def test_report(self, owner: Address, capsys: pytest.CaptureFixture[str]) -> None:
        _print_report(_report(owner))
        out = capsys.readouterr().out
        assert "103.96%" in out
        assert "liquidate" in out
        assert "Debt to liquidate: 60 (32 steps)" in out

    def test_dry_run_prints_boc(self, owner: Address, capsys: pytest.CaptureFixture[str]) -> None:
        body = begin_cell().store_uint(1, 8).end_cell()
        _print_outcome(LiquidationOutcome(_report(owner), body=body, value=550_000_000))
        out = capsys.readouterr().out
        encoded = out.strip().splitlines()[-1]
        assert Cell.from_boc(base64.b64decode(encoded)) == body

    def test_sent_outcome(self, owner: Address, capsys: pytest.CaptureFixture[str]) -> None:
        outcome = LiquidationOutcome(
            _report(owner),
            body=Cell.EMPTY,
            value=1,
            destination=owner,
            sent=True,
            confirmed=True,
        )
        _print_outcome(outcome)
        out = capsys.readouterr().out
        assert "Confirmed:         True" in out
        assert "BoC" not in out


class TestMain:
    def test_no_command_exits_one(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(sys, "argv", ["tonstable-liquidator"])
        with pytest.raises(SystemExit) as exc_info:
            main()
        assert exc_info.value.code == 1

    def test_liquidator_error_exits_two(
        self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        monkeypatch.setattr(sys, "argv", ["tonstable-liquidator", "state"])

        async def fail(args: object) -> None:
            raise ChainError("All RPC endpoints failed")

        with patch("tonstable_liquidator.cli._run", fail):
            with pytest.raises(SystemExit) as exc_info:
                main()

        assert exc_info.value.code == 2
        assert "All RPC endpoints failed" in capsys.readouterr().err
