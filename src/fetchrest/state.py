import asyncio
from dataclasses import dataclass

from .types import AuthFailureHandler


@dataclass
class AuthState:
    bearer_token: str | None = None
    failure_handler: AuthFailureHandler | None = None


@dataclass
class PendingRequest:
    task: asyncio.Future
    created_at: float  # informational only, entries never expire
