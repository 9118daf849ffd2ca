"""TonStable singleton contract: state decoding, messages and the get-method adapter."""
from .adapter import SingletonAdapter
from .messages import (
    AMOUNT_TYPE_CAPITAL_MAX,
    AMOUNT_TYPE_VALUE_MIN,
    OP_JETTON_TRANSFER,
    OP_LIQUIDATE,
    LiquidationInstruction,
    build_liquidation_transfer,
    check_liquidation_value,
    make_jetton_transfer,
    required_liquidation_value,
)

__all__ = [
    "AMOUNT_TYPE_CAPITAL_MAX",
    "AMOUNT_TYPE_VALUE_MIN",
    "OP_JETTON_TRANSFER",
    "OP_LIQUIDATE",
    "LiquidationInstruction",
    "SingletonAdapter",
    "build_liquidation_transfer",
    "check_liquidation_value",
    "make_jetton_transfer",
    "required_liquidation_value",
]
