"""Service modules"""
from .confirmation import wait_for_transaction
from .liquidator import Liquidator

__all__ = ["Liquidator", "wait_for_transaction"]
