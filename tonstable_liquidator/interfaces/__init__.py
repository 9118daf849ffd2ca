"""Protocol interfaces for the liquidator's collaborators."""
from .chain import ChainClient
from .price_feed import PriceFeed
from .sender import Sender

__all__ = ["ChainClient", "PriceFeed", "Sender"]
