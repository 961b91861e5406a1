import asyncio
import contextlib
import json
from typing import Any, Union

from .types import MultipartForm

# wire option keys consumed by the adapters; everything else is passed through
_WIRE_KEYS = ("method", "headers", "body")


def _split_options(options: dict[str, Any]) -> tuple[str, dict[str, str], Any, dict[str, Any]]:
    extra = {k: v for k, v in options.items() if k not in _WIRE_KEYS}
    return options.get("method", "GET"), dict(options.get("headers") or {}), options.get("body"), extra


class BufferedResponse:
    """Fully-read response satisfying ResponseLike; the library response is kept on ``raw``."""

    def __init__(self, status: int, headers, content: bytes, encoding: Union[str, None] = None, raw=None):
        self.status = status
        # expected to be case-insensitive (httpx.Headers, CIMultiDictProxy, CaseInsensitiveDict)
        self.headers = headers
        self.content = content
        self.encoding = encoding
        self.raw = raw

    @property
    def ok(self) -> bool:
        return 200 <= self.status <= 299  # noqa: PLR2004, http status range can be constant

    async def text(self) -> str:
        return self.content.decode(self.encoding or "utf-8", errors="replace")

    async def json(self) -> Any:
        return json.loads(await self.text())

    def __repr__(self):
        return f"<BufferedResponse [{self.status}]>"


# ---------- httpx (default) ----------
class HttpxTransport:
    """Transport on httpx.AsyncClient.

    A borrowed ``client`` is used as-is and never closed here. Without one, a client is
    created on first use and reused for every later call (retries included) until
    ``aclose()``.
    """

    def __init__(self, client=None):
        self.client = client
        self._internal_client = None

    async def __call__(self, url: str, options: dict[str, Any]) -> BufferedResponse:
        client = self.client if self.client is not None else self._internal_client
        if client is None:
            import httpx  # noqa: PLC0415

            self._internal_client = client = httpx.AsyncClient()
        return await self._send(client, url, options)

    async def aclose(self) -> None:
        if self._internal_client is not None:
            with contextlib.suppress(Exception):
                await self._internal_client.aclose()
            self._internal_client = None

    async def _send(self, client, url, options):
        method, headers, body, extra = _split_options(options)
        if isinstance(body, MultipartForm):
            extra["data"] = body.fields
            extra["files"] = body.files or None
        elif body is not None:
            extra["content"] = body
        resp = await client.request(method, url, headers=headers, **extra)
        return BufferedResponse(resp.status_code, resp.headers, resp.content, resp.encoding, raw=resp)


# ---------- aiohttp ----------
def _aiohttp_form(form: MultipartForm):
    import aiohttp  # noqa: PLC0415

    data = aiohttp.FormData()
    for name, value in form.fields.items():
        data.add_field(name, value)
    for name, entry in form.files.items():
        if isinstance(entry, tuple):
            filename, content, *rest = entry
            data.add_field(name, content, filename=filename, content_type=rest[0] if rest else None)
        else:
            data.add_field(name, entry, filename=name)
    return data


class AiohttpTransport:
    """Transport on aiohttp.ClientSession; owns a lazily created session unless one is given."""

    def __init__(self, session=None):
        self.session = session
        self._own_session = None

    async def __call__(self, url: str, options: dict[str, Any]) -> BufferedResponse:
        session = self.session if self.session is not None else self._own_session
        if session is None:
            import aiohttp  # noqa: PLC0415

            self._own_session = session = aiohttp.ClientSession()
        return await self._send(session, url, options)

    async def aclose(self) -> None:
        if self._own_session is not None:
            await self._own_session.close()
            self._own_session = None

    async def _send(self, session, url, options):
        method, headers, body, extra = _split_options(options)
        if isinstance(body, MultipartForm):
            body = _aiohttp_form(body)
        async with session.request(method, url, headers=headers, data=body, **extra) as resp:
            content = await resp.read()
            return BufferedResponse(resp.status, resp.headers, content, resp.charset, raw=resp)


# ---------- requests (runs in a worker thread) ----------
class RequestsTransport:
    """Transport on requests.Session, each call run in a worker thread."""

    def __init__(self, session=None):
        self.session = session
        self._own_session = None

    async def __call__(self, url: str, options: dict[str, Any]) -> BufferedResponse:
        # created here, on the loop thread, so concurrent calls share one session
        if self.session is None and self._own_session is None:
            import requests  # noqa: PLC0415

            self._own_session = requests.Session()
        return await asyncio.to_thread(self._send, url, options)

    async def aclose(self) -> None:
        if self._own_session is not None:
            with contextlib.suppress(Exception):
                self._own_session.close()
            self._own_session = None

    def _send(self, url, options):
        method, headers, body, extra = _split_options(options)
        if isinstance(body, MultipartForm):
            extra["data"] = body.fields
            extra["files"] = body.files or None
        elif body is not None:
            extra["data"] = body
        sess = self.session if self.session is not None else self._own_session
        resp = sess.request(method, url, headers=headers, **extra)
        return BufferedResponse(resp.status_code, resp.headers, resp.content, resp.encoding, raw=resp)
