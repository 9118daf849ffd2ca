"""Off-chain risk evaluation and liquidation engine for the TON stablecoin singleton."""

__version__ = "0.3.0"
