from typing import Any


class FetchRestError(RuntimeError):
    pass


class ConfigError(FetchRestError, ValueError):
    pass


class ResponseError(FetchRestError):
    """Raised for a non-ok response.

    ``value`` is what a successful call would have returned: the parsed JSON or text
    body, or the response object itself when ``raw_response=True`` was requested.
    """

    def __init__(self, status: int, value: Any, response: Any = None):
        super().__init__(f"HTTP {status}")
        self.status = status
        self.value = value
        self.response = response
