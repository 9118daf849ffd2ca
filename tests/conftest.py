"""Shared test fixtures and sample data."""
from __future__ import annotations

import textwrap
from pathlib import Path
from typing import Callable

import pytest

from tonstable_liquidator.cell import (
    Address,
    Cell,
    Dictionary,
    StackItem,
    Values,
    address_cell,
    address_hash,
    begin_cell,
)
from tonstable_liquidator.config import (
    AppConfig,
    ChainConfig,
    ContractsConfig,
    LiquidatorConfig,
    PriceFeedConfig,
)
from tonstable_liquidator.models import (
    ApyCheckpoint,
    Debt,
    Position,
    ProtocolState,
    SingletonMinter,
    SupportedAsset,
)
from tonstable_liquidator.protocols.singleton.decoder import (
    encode_apy_timeline,
    encode_debt,
    encode_minter,
    encode_position_cell,
    encode_price_record,
    encode_supported_asset,
)

NOW = 1_700_000_000


def _address(fill: int) -> Address:
    return Address(0, bytes([fill]) * 32)


@pytest.fixture()
def now() -> int:
    return NOW


# ---------------------------------------------------------------------------
# Addresses
# ---------------------------------------------------------------------------


@pytest.fixture()
def owner() -> Address:
    return _address(0x01)


@pytest.fixture()
def stton_minter() -> Address:
    return _address(0x02)


@pytest.fixture()
def stablecoin_minter() -> Address:
    return _address(0x03)


@pytest.fixture()
def singleton_address() -> Address:
    return _address(0x04)


@pytest.fixture()
def jetton_wallet() -> Address:
    return _address(0x05)


@pytest.fixture()
def liquidator_wallet() -> Address:
    return _address(0x06)


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def sample_chain_config() -> ChainConfig:
    return ChainConfig(
        rpc_endpoints=("https://rpc1.example.com", "https://rpc2.example.com"),
        rpc_timeout=10,
    )


@pytest.fixture()
def sample_app_config(
    sample_chain_config: ChainConfig,
    singleton_address: Address,
    stablecoin_minter: Address,
    stton_minter: Address,
    jetton_wallet: Address,
) -> AppConfig:
    return AppConfig(
        chain=sample_chain_config,
        contracts=ContractsConfig(
            singleton=singleton_address.to_raw_string(),
            stablecoin_minter=stablecoin_minter.to_raw_string(),
            liquidator_jetton_wallet=jetton_wallet.to_raw_string(),
            collaterals={"STTON": stton_minter.to_raw_string()},
            wanted_collaterals=("STTON",),
        ),
        price_feed=PriceFeedConfig(base_url="https://prices.example.com", timeout=5),
        liquidator=LiquidatorConfig(
            confirm_max_retry=3,
            confirm_interval_seconds=0,
            page_size=2,
        ),
    )


# ---------------------------------------------------------------------------
# Model fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def sample_minter(stablecoin_minter: Address) -> SingletonMinter:
    return SingletonMinter(
        address=stablecoin_minter,
        minter_code=begin_cell().store_uint(0xAA, 8).end_cell(),
        wallet_code=begin_cell().store_uint(0xBB, 8).end_cell(),
    )


@pytest.fixture()
def sample_asset(stton_minter: Address, owner: Address) -> SupportedAsset:
    return SupportedAsset(
        key=address_hash(stton_minter),
        minter_address=stton_minter,
        wallet_code=begin_cell().store_uint(0xCC, 8).end_cell(),
        asset_type=2,
        exchange_ratio=100_000_000,
        exchange_ratio_ts=NOW - 50,
        wrapped_minter_address=None,
        price_feed_address=owner,
    )


@pytest.fixture()
def sample_state(
    owner: Address,
    sample_minter: SingletonMinter,
    sample_asset: SupportedAsset,
) -> ProtocolState:
    return ProtocolState(
        owner=owner,
        fee_controller=owner,
        protocol_account=owner,
        minter=sample_minter,
        total_deposits={sample_asset.key: 500 * 10**9},
        total_borrows=100 * 10**9,
        supported_assets={sample_asset.key: sample_asset},
        prices={sample_asset.key: 100_000_000},
        safe_line=12_000,
        liquidation_line=11_000,
        apy_timeline=(),
        liquidation_penalty=10_000_000,
        liquidation_penalty_split=50_000_000,
    )


@pytest.fixture()
def sample_position(
    owner: Address, stton_minter: Address, stablecoin_minter: Address
) -> Position:
    """105 STTON against 100 USTG of principal: adequacy 10500 at price 1."""
    return Position(
        owner=owner,
        created_at=NOW - 10_000,
        state=1,
        credit=90 * 10**9,
        collateral={address_hash(stton_minter): 105 * 10**9},
        debts={
            address_hash(stablecoin_minter): Debt(
                principal=100 * 10**9, start_ts=NOW - 1_000, accrued_interest=0
            )
        },
    )


# ---------------------------------------------------------------------------
# Get-method stacks
# ---------------------------------------------------------------------------


def _coins_dict(amounts: dict[int, int]) -> Cell:
    return Dictionary(
        256,
        Values.cell(),
        {key: begin_cell().store_coins(v).end_cell() for key, v in amounts.items()},
    ).to_cell()


def _cell_or_null(cell: Cell | None) -> StackItem:
    return StackItem.of_cell(cell) if cell is not None else StackItem.null()


@pytest.fixture()
def singleton_stack() -> Callable[[ProtocolState], list[StackItem]]:
    """Encode a ProtocolState the way ``get_singleton_state`` returns it."""

    def build(state: ProtocolState) -> list[StackItem]:
        supported = Dictionary(
            256,
            Values.cell(),
            {k: encode_supported_asset(a) for k, a in state.supported_assets.items()},
        )
        prices = Dictionary(
            256,
            Values.cell(),
            {
                key: encode_price_record(state.supported_assets[key].minter_address, price)
                for key, price in state.prices.items()
            },
        )
        stats = (
            begin_cell()
            .store_maybe_ref(_coins_dict(state.total_deposits) if state.total_deposits else None)
            .store_maybe_ref(
                _coins_dict({address_hash(state.minter.address): state.total_borrows})
                if state.minter is not None
                else None
            )
            .end_cell()
        )
        return [
            StackItem.of_slice(address_cell(state.owner)),
            StackItem.of_slice(address_cell(state.fee_controller)),
            StackItem.of_slice(address_cell(state.protocol_account)),
            _cell_or_null(encode_minter(state.minter) if state.minter else None),
            StackItem.of_cell(stats),
            _cell_or_null(supported.to_cell() if len(supported) else None),
            _cell_or_null(prices.to_cell() if len(prices) else None),
            StackItem.of_int(state.safe_line),
            StackItem.of_int(state.liquidation_line),
            _cell_or_null(encode_apy_timeline(state.apy_timeline)),
            StackItem.of_int(state.liquidation_penalty),
            StackItem.of_int(state.liquidation_penalty_split),
        ]

    return build


@pytest.fixture()
def position_stack() -> Callable[[Position], list[StackItem]]:
    """Encode a Position the way ``get_position_state`` returns it."""

    def build(position: Position) -> list[StackItem]:
        principal = sum(d.principal for d in position.debts.values())
        collateral = _coins_dict(position.collateral) if position.collateral else None
        debts = (
            Dictionary(
                256, Values.cell(), {k: encode_debt(d) for k, d in position.debts.items()}
            ).to_cell()
            if position.debts
            else None
        )
        return [
            StackItem.of_slice(address_cell(position.owner)),
            StackItem.of_int(position.created_at),
            StackItem.of_int(position.state),
            StackItem.of_int(position.credit),
            StackItem.of_int(principal),
            _cell_or_null(collateral),
            _cell_or_null(debts),
            StackItem.of_int(0),
            StackItem.of_int(0),
        ]

    return build


@pytest.fixture()
def positions_stack() -> Callable[[list[Position]], list[StackItem]]:
    """Encode positions as the lisp list ``get_all_positions`` returns."""

    def build(positions: list[Position]) -> list[StackItem]:
        node = StackItem.null()
        for position in reversed(positions):
            node = StackItem.of_tuple(
                [StackItem.of_cell(encode_position_cell(position)), node]
            )
        return [node]

    return build


@pytest.fixture()
def sample_timeline() -> tuple[ApyCheckpoint, ...]:
    return (
        ApyCheckpoint(NOW, 5_000_000),
        ApyCheckpoint(NOW + 2_592_000, 10_000_000),
    )


# ---------------------------------------------------------------------------
# Config YAML fixture
# ---------------------------------------------------------------------------

SAMPLE_YAML = textwrap.dedent("""\
    chain:
      rpc_endpoints: ["https://rpc.example.com"]
      rpc_timeout: 10
    contracts:
      singleton: "0:0404040404040404040404040404040404040404040404040404040404040404"
      stablecoin_minter: "0:0303030303030303030303030303030303030303030303030303030303030303"
      collaterals:
        STTON: "0:0202020202020202020202020202020202020202020202020202020202020202"
      wanted_collaterals: [STTON]
    price_feed:
      base_url: "https://prices.example.com"
      timeout: 5
    liquidator:
      funding_value: 600000000
      confirm_max_retry: 5
      confirm_interval_seconds: 1.5
""")


@pytest.fixture()
def sample_yaml_path(tmp_path: Path) -> Path:
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text(SAMPLE_YAML)
    return cfg_file
