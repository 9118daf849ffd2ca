"""TON HTTP API v4 client."""
from .client import TonClient

__all__ = ["TonClient"]
