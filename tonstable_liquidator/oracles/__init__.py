"""Off-chain price sources."""
from .tonstable import TonStableOracle

__all__ = ["TonStableOracle"]
