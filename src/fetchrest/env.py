import os
from typing import Union

from .errors import ConfigError
from .types import ClientConfig, RetryConfig

_TRUTHY = {"1", "true", "yes", "on"}


def _parse_env_line(line: str) -> Union[tuple[str, str], None]:
    """Split one .env line into (name, value); None for blanks, comments and junk.

    Accepts an optional ``export`` prefix. A quoted value is taken verbatim up to its
    closing quote, so ``#`` inside quotes survives; for unquoted values anything after
    `` #`` is an inline comment.
    """
    line = line.strip()
    if not line or line.startswith("#"):
        return None
    if line.startswith("export "):
        line = line[len("export ") :].lstrip()
    name, sep, value = line.partition("=")
    name = name.strip()
    if not sep or not name:
        return None
    value = value.strip()
    if value[:1] in ("'", '"'):
        closing = value.find(value[0], 1)
        return name, value[1:closing] if closing != -1 else value[1:]
    comment = value.find(" #")
    if comment != -1:
        value = value[:comment].rstrip()
    return name, value


def _read_env_file(env_path: str) -> dict[str, str]:
    """Values from a .env file, or {} when it does not exist. os.environ is untouched."""
    try:
        with open(env_path) as f:
            lines = f.readlines()
    except FileNotFoundError:
        return {}
    return dict(pair for pair in map(_parse_env_line, lines) if pair is not None)


def _int(env_map: dict[str, str], var: str, default: int) -> int:
    raw = env_map.get(var, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigError(f"{var} must be an integer, got {raw!r}") from e


def load_client_config_from_env(
    prefix: str = "FETCHREST_",
    env_path: Union[str, None] = None,
) -> tuple[ClientConfig, Union[str, None]]:
    """Read client settings from the environment.

    Variables (all prefixed):
    - BASE_URL: required
    - RETRY_COUNT: int (default 2)
    - RETRY_ON: comma-separated status codes, e.g. "502,503"
    - RETRY_DELAY_MS: int (default 500)
    - LOGS: 1/true/yes/on enables lifecycle logging
    - TOKEN: bearer token

    If 'env_path' is provided, variables from the .env file augment lookups (without
    mutating the process environment); the actual environment takes precedence.

    Returns:
        tuple[ClientConfig, str | None]: the config and the bearer token, if any
    """
    file_env = _read_env_file(env_path) if env_path else {}
    env_map: dict[str, str] = {**file_env, **os.environ}

    base_url = env_map.get(f"{prefix}BASE_URL", "").strip()
    if not base_url:
        raise ConfigError(f"{prefix}BASE_URL is not set")

    retry_on_raw = env_map.get(f"{prefix}RETRY_ON", "")
    try:
        retry_on = frozenset(int(p.strip()) for p in retry_on_raw.split(",") if p.strip())
    except ValueError as e:
        raise ConfigError(f"{prefix}RETRY_ON must be comma-separated integers") from e

    retry = RetryConfig(
        retry_count=_int(env_map, f"{prefix}RETRY_COUNT", 2),
        retry_on=retry_on,
        retry_delay_ms=_int(env_map, f"{prefix}RETRY_DELAY_MS", 500),
    )
    logs = env_map.get(f"{prefix}LOGS", "").strip().lower() in _TRUTHY
    token = env_map.get(f"{prefix}TOKEN") or None
    return ClientConfig(base_url=base_url, retry=retry, logs=logs), token
