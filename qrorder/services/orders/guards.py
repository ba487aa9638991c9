"""Timeout guard for calls into storage and the payment provider."""

import asyncio
import logging
from typing import Awaitable, TypeVar

from qrorder.core.errors import ServiceUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def bounded(awaitable: Awaitable[T], timeout: float, what: str) -> T:
    """
    Await ``awaitable`` for at most ``timeout`` seconds.

    Raises:
        ServiceUnavailable: the call did not finish in time
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError:
        logger.error(f"{what} timed out after {timeout}s")
        raise ServiceUnavailable(detail=f"{what} timed out")
