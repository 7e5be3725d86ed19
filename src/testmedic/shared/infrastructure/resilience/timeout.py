"""Timeout Resilience Pattern."""

import asyncio
from typing import Any

from testmedic.shared.domain.exceptions import ApiTimeoutError
from testmedic.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


async def with_timeout_async(
    coro,
    timeout_seconds: float,
    operation_name: str = "operation",
) -> Any:
    """Execute a coroutine with a timeout, raising ApiTimeoutError on expiry."""
    try:
        return await asyncio.wait_for(coro, timeout=timeout_seconds)
    except asyncio.TimeoutError:
        logger.warning(
            "operation_timeout",
            operation=operation_name,
            timeout=timeout_seconds,
        )
        raise ApiTimeoutError(operation_name, timeout_seconds)
