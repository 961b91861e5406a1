import asyncio
import contextlib
import inspect
import json
import logging
import re
from typing import Any, Union

from .adapters import HttpxTransport
from .auth import SHARED_AUTH_RECOVERY, AuthRecoveryCoordinator
from .compose import build_headers, build_url
from .dedup import RequestDeduplicator, fingerprint
from .env import load_client_config_from_env
from .errors import ResponseError
from .retry import RetryController, status_of
from .state import AuthState
from .types import (
    AuthFailureHandler,
    ClientConfig,
    Hook,
    HookContext,
    Hooks,
    MultipartForm,
    RequestDescriptor,
    ResponseLike,
    RetryConfig,
    Transport,
)

_JSON_CONTENT_TYPE = re.compile(r"application/(json|\w+\+json)")
# statuses whose body is never read
_NO_CONTENT = {204, 205}


class FetchRest:
    def __init__(
        self,
        base_url: str,
        fetch_fn: Union[Transport, None] = None,
        fetch_opts: Union[dict[str, Any], None] = None,
        logs: bool = False,
        hooks: Union[Hooks, dict, None] = None,
        log_level: Union[int, None] = None,
        **kwargs,
    ):
        """Initialize a FetchRest client.

        Args:
            base_url (str): prepended to relative paths; trailing slashes are stripped
            fetch_fn (Transport | None): async ``(url, options) -> response``; defaults to httpx
            fetch_opts (dict | None): transport options for every request, ``headers`` included
            logs (bool): log the request lifecycle at INFO
            hooks (Hooks | dict | None): ``before_request`` / ``after_request`` callbacks
            log_level (int | None): level for the "fetchrest" logger
            kwargs:
            - retry_config: RetryConfig object
            - retry_count: int (default 2)
            - retry_on: Iterable[int] (default empty, i.e. no retries)
            - retry_delay_ms: int (default 500)
            - auth_recovery: AuthRecoveryCoordinator shared with other clients
        """
        # Prefer a RetryConfig object, then individual keywords
        retry = kwargs.get("retry_config")
        if retry is None:
            retry = RetryConfig(
                retry_count=kwargs.get("retry_count", 2),
                retry_on=frozenset(kwargs.get("retry_on") or ()),
                retry_delay_ms=kwargs.get("retry_delay_ms", 500),
            )
        if isinstance(hooks, dict):
            hooks = Hooks(**hooks)
        self.config = ClientConfig(
            base_url=base_url,
            fetch_opts=dict(fetch_opts or {}),
            retry=retry,
            hooks=hooks or Hooks(),
            logs=logs,
        )
        self.fetch_fn = fetch_fn
        self.auth_recovery: AuthRecoveryCoordinator = kwargs.get(
            "auth_recovery", SHARED_AUTH_RECOVERY
        )
        self._auth = AuthState()
        self._default_transport: Union[HttpxTransport, None] = None
        self._dedup = RequestDeduplicator(on_settled=self._log_outcome)
        self._logger = logging.getLogger("fetchrest")
        if log_level is not None:
            with contextlib.suppress(Exception):
                self._logger.setLevel(log_level)

    @classmethod
    def from_config(cls, config: ClientConfig, **kwargs):
        return cls(
            config.base_url,
            fetch_opts=config.fetch_opts,
            logs=config.logs,
            hooks=config.hooks,
            retry_config=config.retry,
            **kwargs,
        )

    @classmethod
    def from_env(
        cls,
        prefix: str = "FETCHREST_",
        env_path: Union[str, None] = None,
        **kwargs,
    ):
        """Build a client from ``<prefix>BASE_URL`` and friends (see load_client_config_from_env).

        ``<prefix>TOKEN``, when present, becomes the bearer token. Remaining kwargs go to
        the constructor (fetch_fn, auth_recovery, log_level...).
        """
        config, token = load_client_config_from_env(prefix=prefix, env_path=env_path)
        client = cls.from_config(config, **kwargs)
        if token:
            client.set_bearer_token(token)
        return client

    @property
    def base_url(self) -> str:
        return self.config.base_url

    @property
    def bearer_token(self) -> Union[str, None]:
        return self._auth.bearer_token

    # ---------- lifecycle ----------
    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()
        return False

    async def aclose(self) -> None:
        """Close the default httpx transport if one was created; fetch_fn callables are left alone."""
        transport = self._default_transport
        self._default_transport = None
        if transport is not None:
            await transport.aclose()

    # ---------- auth state ----------
    def set_bearer_token(self, token: Union[str, None]) -> None:
        self._auth.bearer_token = token

    def set_auth_failure_handler(self, handler: Union[AuthFailureHandler, None]) -> None:
        """Register the coroutine run (once, shared) when a request gets a 401."""
        self._auth.failure_handler = handler

    # ---------- verbs ----------
    async def head(self, path: str, **kwargs):
        return await self.request(path, method="HEAD", **kwargs)

    async def get(self, path: str, **kwargs):
        return await self.request(path, method="GET", **kwargs)

    async def post(self, path: str, body: Any = None, **kwargs):
        return await self.request(path, method="POST", body=body, **kwargs)

    async def put(self, path: str, body: Any = None, **kwargs):
        return await self.request(path, method="PUT", body=body, **kwargs)

    async def patch(self, path: str, body: Any = None, **kwargs):
        return await self.request(path, method="PATCH", body=body, **kwargs)

    async def delete(self, path: str, **kwargs):
        return await self.request(path, method="DELETE", **kwargs)

    # ---------- orchestration ----------
    async def request(
        self,
        path: str,
        method: str = "GET",
        *,
        params=None,
        query=None,
        headers=None,
        body: Any = None,
        raw_response: bool = False,
        fetch_fn: Union[Transport, None] = None,
        fetch_opts=None,
    ) -> Any:
        """Send one logical request and return its parsed body.

        Concurrent calls with the same URL, method and body share a single execution.
        A non-ok response raises ResponseError carrying the parsed body (or the raw
        response when ``raw_response=True``); 204/205 responses and HEAD requests
        resolve to None without reading the body.
        """
        desc = RequestDescriptor(
            method=method.upper(),
            path=path,
            params=params,
            query=query,
            headers=headers,
            body=body,
            raw_response=raw_response,
            fetch_fn=fetch_fn,
            fetch_opts=fetch_opts,
        )
        url = build_url(self.config.base_url, path, params, query)
        key = fingerprint(url, desc.method, body)
        task = self._dedup.run(key, lambda: self._execute(url, desc))
        return await asyncio.shield(task)

    async def _execute(self, url: str, desc: RequestDescriptor) -> Any:
        retry = RetryController(self.config.retry, sleep=self._sleep)
        handled_401 = False

        while True:
            try:
                if self.auth_recovery.active:
                    self._log("awaiting ongoing 401 recovery")
                await self.auth_recovery.wait()
                response = await self._send(url, desc)

                handler = self._auth.failure_handler
                if response.status == 401 and handler is not None and not handled_401:  # noqa: PLR2004
                    handled_401 = True
                    self._log("401 on %s %s; recovering", desc.method, url)
                    await self.auth_recovery.recover(handler, response)
                    self._log("401 recovery complete")
                    continue
            except Exception as e:
                self._log("request error on %s %s: %s", desc.method, url, status_of(e) or e)
                if not retry.on_error(e):
                    raise
                await retry.backoff()
                continue

            if not response.ok:
                self._log("HTTP %s received for %s %s", response.status, desc.method, url)
                if retry.on_status(response.status):
                    self._log(
                        "retrying (%s/%s) in %.3fs",
                        retry.attempts,
                        self.config.retry.retry_count,
                        retry.delay,
                    )
                    await retry.backoff()
                    continue

            return await self._normalize(response, desc)

    async def _send(self, url: str, desc: RequestDescriptor) -> ResponseLike:
        fetch_fn = desc.fetch_fn or self.fetch_fn or self._transport()
        request_opts = dict(desc.fetch_opts or {})
        wire_headers = build_headers(
            desc.method,
            body=desc.body,
            bearer_token=self._auth.bearer_token,
            default_headers=self.config.fetch_opts.get("headers"),
            request_headers=request_opts.get("headers"),
            headers=desc.headers,
        )
        wire_options = {
            **self.config.fetch_opts,
            **request_opts,
            "method": desc.method,
            "headers": wire_headers,
            "body": self._wire_body(desc.body),
        }

        await self._call_hook(self.config.hooks.before_request, url, wire_options)
        self._log("sending %s %s headers=%s", desc.method, url, wire_headers)
        response = await fetch_fn(url, wire_options)
        await self._call_hook(self.config.hooks.after_request, url, wire_options)
        return response

    async def _normalize(self, response: ResponseLike, desc: RequestDescriptor) -> Any:
        value = None
        if response.status in _NO_CONTENT or desc.method == "HEAD":
            self._log("no content response (%s)", response.status)
        elif desc.raw_response:
            value = response
        else:
            content_type = response.headers.get("content-type") or ""
            if _JSON_CONTENT_TYPE.search(content_type):
                value = await response.json()
            else:
                value = await response.text()

        if not response.ok:
            raise ResponseError(response.status, value, response)
        self._log("response OK (%s) %s", response.status, value)
        return value

    # ---------- helpers ----------
    @staticmethod
    def _wire_body(body: Any):
        if body is None or isinstance(body, MultipartForm):
            return body
        return json.dumps(body)

    async def _call_hook(self, hook: Union[Hook, None], url: str, wire_options: dict) -> None:
        if hook is None:
            return
        result = hook(HookContext(client=self, url=url, wire_options=wire_options))
        if inspect.isawaitable(result):
            await result

    def _transport(self) -> Transport:
        if self._default_transport is None:
            self._default_transport = HttpxTransport()
        return self._default_transport

    async def _sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)

    def _log(self, msg: str, *args) -> None:
        if self.config.logs:
            self._logger.info(msg, *args)

    def _log_outcome(self, task: asyncio.Future) -> None:
        if task.cancelled():
            return
        # retrieving the exception also keeps asyncio from reporting it as unhandled
        error = task.exception()
        if error is not None:
            self._log("request failed: %r", error)
