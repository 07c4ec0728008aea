"""
Login validation strategies, consulted after the token exchange and before the session is set.
"""
import inspect
from typing import Any, Awaitable, Callable, Protocol

from fastapi.concurrency import run_in_threadpool

Validator = Callable[[dict[str, Any], dict[str, Any]], "bool | Awaitable[bool]"]


class LoginValidation(Protocol):
    async def validate_login(self, credentials: dict[str, Any], userinfo: dict[str, Any]) -> bool: ...


class AllowAll:
    """No loginValidation configured: every completed login is accepted."""

    async def validate_login(self, credentials: dict[str, Any], userinfo: dict[str, Any]) -> bool:
        return True


class CallableValidation:
    """
    Wraps a user predicate; it may be a plain function or a coroutine function.
    Plain functions run in the threadpool so a blocking lookup does not stall the event loop.
    """

    def __init__(self, fn: Validator):
        self._fn = fn

    async def validate_login(self, credentials: dict[str, Any], userinfo: dict[str, Any]) -> bool:
        if inspect.iscoroutinefunction(self._fn):
            result = await self._fn(credentials, userinfo)
        else:
            result = await run_in_threadpool(self._fn, credentials, userinfo)
        if inspect.isawaitable(result):
            result = await result
        return bool(result)


def login_validation_from(fn: Validator | None) -> LoginValidation:
    return AllowAll() if fn is None else CallableValidation(fn)
