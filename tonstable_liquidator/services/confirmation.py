"""Bounded polling for a sent message to land on-chain."""
from __future__ import annotations

import asyncio
import logging

from ..cell import Address
from ..errors import ChainError
from ..interfaces.chain import ChainClient

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRY = 10
DEFAULT_INTERVAL_SECONDS = 3.0


async def wait_for_transaction(
    client: ChainClient,
    account: Address,
    previous_lt: int | None = None,
    max_retry: int = DEFAULT_MAX_RETRY,
    interval: float = DEFAULT_INTERVAL_SECONDS,
    action: str = "transaction",
) -> bool:
    """Wait until ``account``'s last transaction differs from ``previous_lt``.

    Returns ``False`` once ``max_retry`` polls pass without a change; node
    errors during polling count as a failed attempt and are never raised.
    """
    for attempt in range(1, max_retry + 1):
        logger.debug("Awaiting %s completion (%d/%d)", action, attempt, max_retry)
        await asyncio.sleep(interval)
        try:
            last_lt = await client.get_account_last_lt(account)
        except ChainError as e:
            logger.warning("Polling %s failed: %s", account, e)
            continue
        if last_lt is not None and last_lt != previous_lt:
            logger.info("%s confirmed at lt %d", action.capitalize(), last_lt)
            return True

    logger.warning("%s not confirmed after %d attempt(s)", action.capitalize(), max_retry)
    return False
