from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol, Union

HttpMethod = Literal["HEAD", "GET", "POST", "PUT", "DELETE", "PATCH"]

QueryValue = Union[str, int, float, bool, None, Sequence[Union[str, int, float, bool]]]


class HeaderLookup(Protocol):
    def get(self, name: str, default: Any = None) -> Any: ...


class ResponseLike(Protocol):
    """What the orchestrator needs from a transport response."""

    status: int
    ok: bool
    headers: HeaderLookup

    async def json(self) -> Any: ...

    async def text(self) -> str: ...


Transport = Callable[[str, dict[str, Any]], Awaitable[ResponseLike]]
AuthFailureHandler = Callable[[ResponseLike], Awaitable[None]]


@dataclass(frozen=True)
class MultipartForm:
    """Multipart body; sent as-is, the transport supplies the boundary.

    files values are either raw bytes or (filename, content[, content_type]) tuples.
    """

    fields: dict[str, str] = field(default_factory=dict)
    files: dict[str, Any] = field(default_factory=dict)


@dataclass
class HookContext:
    client: Any
    # URL after path params and query were applied
    url: str
    wire_options: dict[str, Any]


Hook = Callable[[HookContext], Awaitable[None]]


@dataclass(frozen=True)
class Hooks:
    before_request: Hook | None = None
    after_request: Hook | None = None


@dataclass(frozen=True)
class RetryConfig:
    # retries are opt-in: nothing is retried while retry_on is empty
    retry_count: int = 2
    retry_on: frozenset[int] = frozenset()
    # linear backoff: retry_delay_ms * attempt
    retry_delay_ms: int = 500

    def __post_init__(self):
        try:
            codes = frozenset(int(c) for c in self.retry_on)
        except (TypeError, ValueError) as e:
            raise ValueError("retry_on must be an iterable of integer status codes") from e
        object.__setattr__(self, "retry_on", codes)
        if self.retry_delay_ms < 0:
            raise ValueError("retry_delay_ms must be non-negative")


@dataclass
class ClientConfig:
    base_url: str
    fetch_opts: dict[str, Any] = field(default_factory=dict)
    retry: RetryConfig = field(default_factory=RetryConfig)
    hooks: Hooks = field(default_factory=Hooks)
    logs: bool = False

    def __post_init__(self):
        self.base_url = self.base_url.rstrip("/")


@dataclass
class RequestDescriptor:
    method: HttpMethod
    path: str
    params: Mapping[str, Any] | None = None
    query: Mapping[str, QueryValue] | None = None
    headers: Mapping[str, str] | None = None
    body: Any = None
    raw_response: bool = False
    fetch_fn: Transport | None = None
    fetch_opts: Mapping[str, Any] | None = None
