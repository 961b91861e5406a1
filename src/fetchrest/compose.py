import re
from collections.abc import Mapping
from typing import Any, Union
from urllib.parse import quote

import httpx

from .types import MultipartForm, QueryValue

_ABSOLUTE_URL = re.compile(r"^https?://", re.IGNORECASE)
# same set encodeURIComponent leaves untouched
_UNRESERVED = "-_.!~*'()"
_BODY_METHODS = {"POST", "PUT", "PATCH"}


def _to_str(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _encode(value: Any) -> str:
    return quote(_to_str(value), safe=_UNRESERVED)


def build_query(query: Union[Mapping[str, QueryValue], None]) -> str:
    """Serialize query params; falsy values are dropped and sequences repeat the key."""
    if not query:
        return ""
    pairs: list[str] = []
    for key, value in query.items():
        if not value:
            continue
        items = value if isinstance(value, (list, tuple)) else [value]
        pairs.extend(f"{_encode(key)}={_encode(item)}" for item in items)
    return "&".join(pairs)


def build_url(
    base_url: str,
    path: str,
    params: Union[Mapping[str, Any], None] = None,
    query: Union[Mapping[str, QueryValue], None] = None,
) -> str:
    """Compose the final request URL.

    Args:
        base_url (str): client base URL, without trailing slash
        path (str): path template such as ``/users/:id``; absolute http(s) URLs skip base_url
        params (Mapping | None): values for ``:name`` placeholders (whole-word matches only)
        query (Mapping | None): query parameters

    Returns:
        str: the URL handed to the transport
    """
    full_path = path
    for name, value in (params or {}).items():
        encoded = _encode(value)
        full_path = re.sub(rf":{re.escape(name)}\b", lambda _m: encoded, full_path)

    prefix = "" if _ABSOLUTE_URL.match(path) else base_url
    query_string = build_query(query)
    if not query_string:
        return f"{prefix}{full_path}"
    separator = "&" if "?" in full_path else "?"
    return f"{prefix}{full_path}{separator}{query_string}"


def build_headers(
    method: str,
    body: Any = None,
    bearer_token: Union[str, None] = None,
    default_headers: Union[Mapping[str, str], None] = None,
    request_headers: Union[Mapping[str, str], None] = None,
    headers: Union[Mapping[str, str], None] = None,
) -> dict[str, str]:
    """Merge header sources case-insensitively; later sources win.

    Order: client defaults, request fetch_opts headers, per-request headers, then the
    derived Authorization and Content-Type headers which are always forced. Values are
    converted with str(), so ``{"X-Page": 3}`` is sent as "3".
    """
    merged = httpx.Headers()
    for source in (default_headers, request_headers, headers):
        for name, value in (source or {}).items():
            merged[name] = str(value)
    if bearer_token:
        merged["Authorization"] = f"Bearer {bearer_token}"
    if method.upper() in _BODY_METHODS and not isinstance(body, MultipartForm):
        merged["Content-Type"] = "application/json"
    return dict(merged.items())
