"""Error taxonomy shared by the codec, the engine and the collaborators."""
from __future__ import annotations


class LiquidatorError(Exception):
    """Base class for every error raised by this package."""


class MalformedCell(LiquidatorError, ValueError):
    """Cell data does not match the expected layout (overrun, bad trie, bad BoC)."""


class DivisionByZero(LiquidatorError, ZeroDivisionError):
    """A ratio was requested against a zero denominator (debt-free position)."""


class InsufficientValue(LiquidatorError):
    """Funding attached to an outbound message does not cover the required fee."""

    def __init__(self, provided: int, required: int) -> None:
        super().__init__(
            f"Attached value {provided} is below the required {required} nanotons"
        )
        self.provided = provided
        self.required = required


class ChainError(LiquidatorError, RuntimeError):
    """The ledger node could not be reached or a get-method failed."""
