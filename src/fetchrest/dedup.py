import asyncio
import json
import time
from collections.abc import Awaitable, Callable
from typing import Any, Union

from .state import PendingRequest


def fingerprint(url: str, method: str, body: Any = None) -> str:
    """Stable key for a request; body keys are sorted so key order does not matter.

    Dicts whose keys cannot be ordered against each other (e.g. ``{1: "a", "b": 2}``)
    fall back to insertion order rather than failing the request.
    """
    key = {"url": url, "method": method.upper(), "body": body}
    try:
        return json.dumps(key, sort_keys=True, separators=(",", ":"), default=repr)
    except TypeError:
        return json.dumps(key, separators=(",", ":"), default=repr)


class RequestDeduplicator:
    """Share one in-flight execution between concurrent identical requests."""

    def __init__(self, on_settled: Union[Callable[[asyncio.Future], None], None] = None):
        self.pending: dict[str, PendingRequest] = {}
        self._on_settled = on_settled

    def run(self, key: str, factory: Callable[[], Awaitable[Any]]) -> asyncio.Future:
        entry = self.pending.get(key)
        if entry is not None:
            return entry.task
        task = asyncio.ensure_future(factory())
        self.pending[key] = PendingRequest(task=task, created_at=time.time())
        task.add_done_callback(lambda t: self._settle(key, t))
        return task

    def _settle(self, key: str, task: asyncio.Future) -> None:
        stored = self.pending.get(key)
        if stored is not None and stored.task is task:
            del self.pending[key]
        if self._on_settled is not None:
            self._on_settled(task)
