from typing import Union

from .client import FetchRest


class ClientRegistry:
    """Lazily builds and caches one FetchRest per key.

    The first ``get`` for a key constructs the client; later calls return that same
    instance and ignore their options.
    """

    def __init__(self, factory=FetchRest):
        self._factory = factory
        self._clients: dict[str, FetchRest] = {}

    def get(self, *args, key: str = "default", **kwargs) -> FetchRest:
        client = self._clients.get(key)
        if client is None:
            client = self._clients[key] = self._factory(*args, **kwargs)
        return client

    def reset(self, key: Union[str, None] = None) -> None:
        if key is None:
            self._clients.clear()
        else:
            self._clients.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._clients


default_registry = ClientRegistry()


def get_client(*args, **kwargs) -> FetchRest:
    """Shortcut for ``default_registry.get``."""
    return default_registry.get(*args, **kwargs)
