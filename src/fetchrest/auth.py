import asyncio
from typing import Union

from .types import AuthFailureHandler, ResponseLike


class AuthRecoveryCoordinator:
    """Single-flight 401 recovery shared by every client holding the same coordinator.

    While a recovery task is active, clients park in ``wait()`` before issuing a
    request. The first request to see a 401 starts the client's failure handler;
    every later 401 joins the same task instead of starting another. The task is
    cleared when the handler finishes, whether it succeeded or raised, and a
    handler error is re-raised in every waiter.
    """

    def __init__(self):
        self._task: Union[asyncio.Task, None] = None

    @property
    def active(self) -> bool:
        return self._task is not None

    async def wait(self) -> None:
        task = self._task
        if task is not None:
            await asyncio.shield(task)

    async def recover(self, handler: AuthFailureHandler, response: ResponseLike) -> None:
        # check-and-set happens without an await in between
        if self._task is None:
            self._task = asyncio.ensure_future(self._run(handler, response))
        await asyncio.shield(self._task)

    async def _run(self, handler: AuthFailureHandler, response: ResponseLike) -> None:
        try:
            await handler(response)
        finally:
            self._task = None


# Default coordinator: clients share recovery process-wide unless given their own.
SHARED_AUTH_RECOVERY = AuthRecoveryCoordinator()
