"""Pure decoding of singleton contract state, no I/O.

Every function here either returns a complete record or raises
:class:`~tonstable_liquidator.errors.MalformedCell`; nothing is partially
recovered. The ``encode_*`` helpers write the same layouts back, so decoded
records can be re-serialized bit for bit.
"""
from __future__ import annotations

from typing import Iterable, Sequence

from ...cell import (
    Address,
    Builder,
    Cell,
    Dictionary,
    StackItem,
    TupleReader,
    Values,
    address_hash,
    begin_cell,
)
from ...errors import MalformedCell
from ...models import (
    AccruedProfits,
    ApyCheckpoint,
    CustodyToken,
    Debt,
    Position,
    PositionState,
    ProtocolState,
    SingletonMinter,
    SupportedAsset,
)

BITS_TIMESTAMP = 32
BITS_RATIO = 64
BITS_TYPE = 8
BITS_PRICE_VALUE = 256
BITS_KEY = 256


def _cell_dict(root: Cell | None) -> Dictionary[Cell]:
    return Dictionary.load_direct(BITS_KEY, Values.cell(), root)


def _reader(stack: TupleReader | Sequence[StackItem]) -> TupleReader:
    return stack if isinstance(stack, TupleReader) else TupleReader(stack)


# ----------------------------------------------------------------------
# Protocol state
# ----------------------------------------------------------------------


def decode_apy_timeline(root: Cell | None) -> tuple[ApyCheckpoint, ...]:
    """APY dictionary (uint32 ts → uint64 rate) in ascending timestamp order."""
    rates = Dictionary.load_direct(BITS_TIMESTAMP, Values.uint(BITS_RATIO), root)
    return tuple(ApyCheckpoint(ts, rate) for ts, rate in rates.items())


def decode_minter(cell: Cell) -> SingletonMinter:
    cs = cell.begin_parse()
    return SingletonMinter(
        address=cs.load_address(),
        minter_code=cs.load_ref(),
        wallet_code=cs.load_ref(),
    )


def decode_supported_asset(key: int, cell: Cell) -> SupportedAsset:
    """Header (type, ratio, ratio ts) plus the extended ref of optional addresses."""
    cs = cell.begin_parse()
    minter_address = cs.load_address()
    wallet_code = cs.load_ref()
    params = cs.load_ref().begin_parse()

    asset_type = params.load_uint(BITS_TYPE)
    exchange_ratio = params.load_uint(BITS_RATIO)
    exchange_ratio_ts = params.load_uint(BITS_TIMESTAMP)
    extended = params.load_ref().begin_parse()
    params.end_parse()

    wrapped = extended.load_maybe_ref()
    price_feed = extended.load_maybe_ref()

    return SupportedAsset(
        key=key,
        minter_address=minter_address,
        wallet_code=wallet_code,
        asset_type=asset_type,
        exchange_ratio=exchange_ratio,
        exchange_ratio_ts=exchange_ratio_ts,
        wrapped_minter_address=(
            wrapped.begin_parse().load_address() if wrapped is not None else None
        ),
        price_feed_address=(
            price_feed.begin_parse().load_address() if price_feed is not None else None
        ),
    )


def parse_supported_assets(root: Cell | None) -> dict[int, SupportedAsset]:
    return {key: decode_supported_asset(key, value) for key, value in _cell_dict(root).items()}


def decode_prices(root: Cell | None) -> dict[int, int]:
    """Price table keyed by the address hash of each record's (optional) minter.

    The value lives in a nested ref rather than in the record itself.
    """
    prices: dict[int, int] = {}
    for value in _cell_dict(root).values():
        cs = value.begin_parse()
        minter = cs.load_maybe_address()
        data = cs.load_ref().begin_parse()
        prices[address_hash(minter)] = data.load_uint(BITS_PRICE_VALUE)
    return prices


def decode_totals(
    stats: Cell | None,
    supported: dict[int, SupportedAsset],
    minter: SingletonMinter | None,
) -> tuple[dict[int, int], int]:
    """Return per-asset total deposits and the stablecoin's total borrows."""
    deposits: dict[int, int] = {}
    borrows = 0
    if stats is None:
        return deposits, borrows

    cs = stats.begin_parse()
    deposit_root = cs.load_maybe_ref()
    borrow_root = cs.load_maybe_ref()

    if deposit_root is not None:
        recorded = _cell_dict(deposit_root)
        for key in supported:
            entry = recorded.get(key)
            deposits[key] = entry.begin_parse().load_coins() if entry is not None else 0

    if borrow_root is not None:
        if minter is None:
            raise MalformedCell("Total borrows recorded but no minter is configured")
        entry = _cell_dict(borrow_root).get(address_hash(minter.address))
        borrows = entry.begin_parse().load_coins() if entry is not None else 0

    return deposits, borrows


def decode_singleton_state(stack: TupleReader | Sequence[StackItem]) -> ProtocolState:
    """Decode the ``get_singleton_state`` result stack."""
    reader = _reader(stack)
    owner = reader.read_address()
    fee_controller = reader.read_address()
    protocol_account = reader.read_address()
    minter_cell = reader.read_cell_opt()
    stats = reader.read_cell_opt()
    supported_root = reader.read_cell_opt()
    prices_root = reader.read_cell_opt()
    safe_line = reader.read_int()
    liquidation_line = reader.read_int()
    apy_root = reader.read_cell_opt()
    liquidation_penalty = reader.read_int()
    liquidation_penalty_split = reader.read_int()

    minter = decode_minter(minter_cell) if minter_cell is not None else None
    supported = parse_supported_assets(supported_root)
    deposits, borrows = decode_totals(stats, supported, minter)

    return ProtocolState(
        owner=owner,
        fee_controller=fee_controller,
        protocol_account=protocol_account,
        minter=minter,
        total_deposits=deposits,
        total_borrows=borrows,
        supported_assets=supported,
        prices=decode_prices(prices_root),
        safe_line=safe_line,
        liquidation_line=liquidation_line,
        apy_timeline=decode_apy_timeline(apy_root),
        liquidation_penalty=liquidation_penalty,
        liquidation_penalty_split=liquidation_penalty_split,
    )


# ----------------------------------------------------------------------
# Positions
# ----------------------------------------------------------------------


def decode_debt(cell: Cell) -> Debt:
    cs = cell.begin_parse()
    principal = cs.load_coins()
    start_ts = cs.load_uint(BITS_TIMESTAMP)
    accrued = cs.load_coins()
    created_at = cs.load_uint(BITS_TIMESTAMP) if cs.remaining_bits >= BITS_TIMESTAMP else 0
    return Debt(principal, start_ts, accrued, created_at)


def decode_collateral(root: Cell | None) -> dict[int, int]:
    return {key: value.begin_parse().load_coins() for key, value in _cell_dict(root).items()}


def decode_debts(root: Cell | None) -> dict[int, Debt]:
    return {key: decode_debt(value) for key, value in _cell_dict(root).items()}


def decode_position_cell(cell: Cell) -> Position:
    """Decode one entry of ``get_all_positions``: a config ref and a state ref."""
    cs = cell.begin_parse()
    config = cs.load_ref().begin_parse()
    state = cs.load_ref().begin_parse()
    cs.end_parse()

    owner = config.load_address()
    created_at = config.load_uint(BITS_TIMESTAMP)
    config.end_parse()

    state_tag = state.load_uint(BITS_TYPE)
    credit = state.load_coins()
    collateral_root = state.load_maybe_ref()
    debts_root = state.load_maybe_ref()
    state.end_parse()

    return Position(
        owner=owner,
        created_at=created_at,
        state=state_tag,
        credit=credit,
        collateral=decode_collateral(collateral_root),
        debts=decode_debts(debts_root),
    )


def decode_position_state(stack: TupleReader | Sequence[StackItem]) -> PositionState:
    """Decode the ``get_position_state`` result stack."""
    reader = _reader(stack)
    owner = reader.read_address()
    created_at = reader.read_int()
    state_tag = reader.read_int()
    credit = reader.read_int()
    total = reader.read_int()
    collateral_root = reader.read_cell_opt()
    debts_root = reader.read_cell_opt()
    outstanding = reader.read_int()
    interest = reader.read_int()

    position = Position(
        owner=owner,
        created_at=created_at,
        state=state_tag,
        credit=credit,
        collateral=decode_collateral(collateral_root),
        debts=decode_debts(debts_root),
    )
    return PositionState(
        position=position,
        total_debt=total,
        outstanding_debt=outstanding,
        interest_debt=interest,
    )


def decode_custody_tokens(root: Cell | None) -> list[CustodyToken]:
    """Jettons the singleton holds for a user (``get_user_stucked_token``)."""
    tokens: list[CustodyToken] = []
    for value in _cell_dict(root).values():
        cs = value.begin_parse()
        tokens.append(CustodyToken(cs.load_address(), cs.load_coins()))
    return tokens


def decode_accrued_profits(stack: TupleReader | Sequence[StackItem]) -> AccruedProfits:
    reader = _reader(stack)
    return AccruedProfits(
        total_accrued=reader.read_int(),
        last_updated=reader.read_int(),
        extracted=reader.read_int(),
    )


# ----------------------------------------------------------------------
# Encoders
# ----------------------------------------------------------------------


def encode_apy_timeline(timeline: Iterable[ApyCheckpoint]) -> Cell | None:
    rates = Dictionary(
        BITS_TIMESTAMP, Values.uint(BITS_RATIO), ((c.ts, c.rate) for c in timeline)
    )
    return rates.to_cell() if len(rates) else None


def encode_minter(minter: SingletonMinter) -> Cell:
    return (
        begin_cell()
        .store_address(minter.address)
        .store_ref(minter.minter_code)
        .store_ref(minter.wallet_code)
        .end_cell()
    )


def _optional_address(address: Address | None) -> Cell | None:
    if address is None:
        return None
    return begin_cell().store_address(address).end_cell()


def encode_supported_asset(asset: SupportedAsset) -> Cell:
    extended = (
        begin_cell()
        .store_maybe_ref(_optional_address(asset.wrapped_minter_address))
        .store_maybe_ref(_optional_address(asset.price_feed_address))
        .end_cell()
    )
    params = (
        begin_cell()
        .store_uint(asset.asset_type, BITS_TYPE)
        .store_uint(asset.exchange_ratio, BITS_RATIO)
        .store_uint(asset.exchange_ratio_ts, BITS_TIMESTAMP)
        .store_ref(extended)
        .end_cell()
    )
    return (
        begin_cell()
        .store_address(asset.minter_address)
        .store_ref(asset.wallet_code)
        .store_ref(params)
        .end_cell()
    )


def encode_price_record(minter: Address | None, price: int, ts: int = 0) -> Cell:
    data = (
        begin_cell()
        .store_uint(price, BITS_PRICE_VALUE)
        .store_uint(ts, BITS_TIMESTAMP)
        .end_cell()
    )
    return begin_cell().store_address(minter).store_ref(data).end_cell()


def encode_debt(debt: Debt) -> Cell:
    return (
        begin_cell()
        .store_coins(debt.principal)
        .store_uint(debt.start_ts, BITS_TIMESTAMP)
        .store_coins(debt.accrued_interest)
        .store_uint(debt.created_at, BITS_TIMESTAMP)
        .end_cell()
    )


def _coins_cell(amount: int) -> Cell:
    return begin_cell().store_coins(amount).end_cell()


def encode_position_cell(position: Position) -> Cell:
    config = (
        begin_cell()
        .store_address(position.owner)
        .store_uint(position.created_at, BITS_TIMESTAMP)
        .end_cell()
    )
    collateral = Dictionary(
        BITS_KEY,
        Values.cell(),
        {key: _coins_cell(amount) for key, amount in position.collateral.items()},
    )
    debts = Dictionary(
        BITS_KEY,
        Values.cell(),
        {key: encode_debt(debt) for key, debt in position.debts.items()},
    )
    state = Builder()
    state.store_uint(position.state, BITS_TYPE)
    state.store_coins(position.credit)
    state.store_dict(collateral)
    state.store_dict(debts)
    return begin_cell().store_ref(config).store_ref(state.end_cell()).end_cell()
