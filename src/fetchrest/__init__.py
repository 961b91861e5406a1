from .adapters import AiohttpTransport, BufferedResponse, HttpxTransport, RequestsTransport
from .auth import SHARED_AUTH_RECOVERY, AuthRecoveryCoordinator
from .client import FetchRest
from .compose import build_headers, build_url
from .dedup import RequestDeduplicator, fingerprint
from .env import load_client_config_from_env
from .errors import ConfigError, FetchRestError, ResponseError
from .registry import ClientRegistry, default_registry, get_client
from .retry import RetryController
from .types import (
    ClientConfig,
    HookContext,
    Hooks,
    MultipartForm,
    RequestDescriptor,
    ResponseLike,
    RetryConfig,
)

__all__ = [
    "FetchRest",
    "ClientConfig",
    "RetryConfig",
    "Hooks",
    "HookContext",
    "MultipartForm",
    "RequestDescriptor",
    "ResponseLike",
    "AuthRecoveryCoordinator",
    "SHARED_AUTH_RECOVERY",
    "RequestDeduplicator",
    "fingerprint",
    "RetryController",
    "build_url",
    "build_headers",
    "HttpxTransport",
    "AiohttpTransport",
    "RequestsTransport",
    "BufferedResponse",
    "ClientRegistry",
    "default_registry",
    "get_client",
    "FetchRestError",
    "ResponseError",
    "ConfigError",
    "load_client_config_from_env",
]
