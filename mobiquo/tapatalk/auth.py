"""
Session authentication with one transparent re-login.

Forums expire sessions silently; the next call then faults with an auth
error. When that happens on a session we believed was logged in, the
guard logs in again once and replays the call once.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from loguru import logger

from mobiquo.tapatalk.models import LoginResult
from mobiquo.utils.exceptions import DecodeError, FaultError, LoginError, TransportError
from mobiquo.utils.singleflight import SingleFlight
from mobiquo.xmlrpc.client import XmlRpcClient
from mobiquo.xmlrpc.types import Fault, ParamType

AUTH_FAULT_CODE = 4
AUTH_FAULT_MARKERS = ("not logged in", "session", "permission", "login")


def is_auth_fault(result: Any) -> bool:
    if not isinstance(result, Fault):
        return False
    if result.code == AUTH_FAULT_CODE:
        return True
    message = result.message.lower()
    return any(marker in message for marker in AUTH_FAULT_MARKERS)


class AuthGuard:
    def __init__(self, rpc: XmlRpcClient, username: str | None = None, password: str | None = None):
        self._rpc = rpc
        self._username = username
        self._password = password
        self._authenticated = False
        self._flight = SingleFlight()

    @property
    def is_authenticated(self) -> bool:
        return self._authenticated

    @property
    def has_credentials(self) -> bool:
        return bool(self._username and self._password)

    async def call(
        self,
        method: str,
        params: Sequence[Any] = (),
        types: Sequence[ParamType | str] | None = None,
    ) -> Any:
        """Call ``method``; raise FaultError if the final result is a fault."""
        observed = self._flight.generation
        # A call started mid re-login may go out with an emptied jar.
        was_authenticated = self._authenticated or self._flight.in_flight

        result = await self._rpc.call(method, params, types)
        if was_authenticated and self.has_credentials and is_auth_fault(result):
            logger.info("Session expired, re-logging in...")
            await self._flight.run(observed, self._relogin)
            result = await self._rpc.call(method, params, types)

        if isinstance(result, Fault):
            raise FaultError(result)
        return result

    async def login(self, username: str | None = None, password: str | None = None) -> LoginResult:
        """Log in with the given credentials, or the configured ones."""
        username = username or self._username
        password = password or self._password
        observed = self._flight.generation
        return await self._flight.run(observed, lambda: self._do_login(username, password))

    async def _relogin(self) -> LoginResult:
        self._rpc.clear_cookies()
        self._authenticated = False
        return await self._do_login(self._username, self._password)

    async def _do_login(self, username: str | None, password: str | None) -> LoginResult:
        if not username or not password:
            raise LoginError("No credentials configured")

        logger.info("Logging in...")
        try:
            result = await self._rpc.call("login", [username, password], [ParamType.BASE64, ParamType.BASE64])
        except TransportError as e:
            raise LoginError(f"Login failed: {e.message}") from e
        except DecodeError as e:
            raise LoginError(f"Login failed: malformed response ({e.message})") from e

        if isinstance(result, Fault):
            raise LoginError(f"Login failed: {result.message}", result_text=result.message)
        if not isinstance(result, dict):
            raise LoginError("Login failed: unexpected response shape")

        login = LoginResult.from_value(result)
        if not login.result:
            reason = login.result_text or "Unknown error"
            logger.error(f"Login failed: {reason}")
            raise LoginError(f"Login failed: {reason}", result_text=login.result_text)

        self._authenticated = True
        logger.info("Login successful")
        return login
