"""Shared pacing helpers.

Random draws and the randomized sleeps used between modules, withdrawals
and wallets.  All ranges are inclusive on both ends.
"""

import asyncio
import logging
import random
from decimal import Decimal
from typing import Optional

logger = logging.getLogger(__name__)


def random_int(low: int, high: int) -> int:
    """Uniform integer in ``[low, high]``; bounds may come in any order."""
    if low > high:
        low, high = high, low
    return random.randint(low, high)


def random_float(low: float, high: float) -> float:
    """Uniform float in ``[low, high]``; bounds may come in any order."""
    if low > high:
        low, high = high, low
    return random.uniform(low, high)


def random_amount(low: float, high: float, decimals: int = 5) -> Decimal:
    """Random amount in ``[low, high]`` rounded to *decimals* places.

    The rounded value is clamped back into the band so rounding can never
    push it outside the configured limits.
    """
    if low > high:
        low, high = high, low
    quantum = Decimal(1).scaleb(-decimals)
    amount = Decimal(str(random_float(low, high))).quantize(quantum)
    lower = Decimal(str(low))
    upper = Decimal(str(high))
    return min(max(amount, lower), upper)


async def sleep_between(
    low: int,
    high: int,
    reason: str = "",
    address: Optional[str] = None,
) -> int:
    """Sleep a random whole number of seconds in ``[low, high]``.

    Args:
        low: Minimum seconds.
        high: Maximum seconds.
        reason: Text appended to the log line (``"until next wallet"``).
        address: Wallet address used as log prefix.

    Returns:
        The number of seconds slept.
    """
    seconds = random_int(low, high)
    prefix = f"{address} | " if address else ""
    logger.info("%sWaiting %d sec %s", prefix, seconds, reason)
    await asyncio.sleep(seconds)
    return seconds
