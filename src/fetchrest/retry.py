import asyncio
from collections.abc import Awaitable, Callable
from typing import Union

from .types import RetryConfig

Sleep = Callable[[float], Awaitable[None]]


def status_of(error: BaseException) -> Union[int, None]:
    """Best-effort HTTP status carried by a transport error.

    Looks at ``status``/``status_code`` on the error, then on ``error.response``
    (httpx.HTTPStatusError, requests.HTTPError, aiohttp.ClientResponseError).
    """
    for obj in (error, getattr(error, "response", None)):
        if obj is None:
            continue
        for attr in ("status", "status_code"):
            value = getattr(obj, attr, None)
            if isinstance(value, int):
                return value
    return None


class RetryController:
    """Per-request retry state: decides after each attempt whether to go again."""

    def __init__(self, config: RetryConfig, sleep: Union[Sleep, None] = None):
        self.config = config
        self.attempts = 0
        self._sleep = sleep or asyncio.sleep

    def on_status(self, status: int) -> bool:
        """Record a non-ok response; True means back off and retry."""
        if status in self.config.retry_on and self.attempts < self.config.retry_count:
            self.attempts += 1
            return True
        return False

    def on_error(self, error: BaseException) -> bool:
        """Record a raised attempt; True means back off and retry, False means re-raise."""
        self.attempts += 1
        if self.attempts > self.config.retry_count:
            return False
        return status_of(error) in self.config.retry_on

    @property
    def delay(self) -> float:
        # seconds
        return self.config.retry_delay_ms * self.attempts / 1000

    async def backoff(self) -> None:
        await self._sleep(self.delay)
