"""
High-level Tapatalk client.

Each forum operation maps to one mobiquo method with a fixed positional
parameter list. Text the protocol declares as ``byte[]`` goes over the
wire as base64; results are returned as the decoded XML-RPC value.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from loguru import logger

from mobiquo.config.schema import Settings
from mobiquo.tapatalk.auth import AuthGuard
from mobiquo.tapatalk.models import LoginResult
from mobiquo.transport.clearance import ClearanceEscalator
from mobiquo.transport.http import DEFAULT_USER_AGENT, SessionTransport
from mobiquo.utils.exceptions import FaultError, NotLoggedInError
from mobiquo.xmlrpc.client import XmlRpcClient
from mobiquo.xmlrpc.types import Fault, ParamType

STRING = ParamType.STRING
INT = ParamType.INT
BOOLEAN = ParamType.BOOLEAN
BASE64 = ParamType.BASE64


class TapatalkClient:
    """Forum operations over one authenticated (or anonymous) session."""

    def __init__(self, rpc: XmlRpcClient, username: str | None = None, password: str | None = None):
        self._rpc = rpc
        self._guard = AuthGuard(rpc, username, password)

    @classmethod
    def from_settings(cls, settings: Settings) -> "TapatalkClient":
        transport = SessionTransport(
            settings.mobiquo_url,
            timeout=settings.timeout,
            max_response_size=settings.max_response_size,
            user_agent=settings.user_agent or DEFAULT_USER_AGENT,
        )
        escalator = ClearanceEscalator(transport, settings.escalation, site_url=settings.forum_url)
        if escalator.kind != "none":
            logger.info(f"Clearance escalation configured: {escalator.kind}")
        password = settings.password.get_secret_value() if settings.password else None
        return cls(XmlRpcClient(transport, escalator), settings.username, password)

    async def __aenter__(self) -> "TapatalkClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._rpc.aclose()

    # -- session --

    async def call(
        self,
        method: str,
        params: Sequence[Any] = (),
        types: Sequence[ParamType | str] | None = None,
    ) -> Any:
        return await self._guard.call(method, params, types)

    async def login(self, username: str | None = None, password: str | None = None) -> LoginResult:
        return await self._guard.login(username, password)

    def clear_cookies(self) -> None:
        self._rpc.clear_cookies()

    def has_cookies(self) -> bool:
        return self._rpc.has_cookies()

    def is_logged_in(self) -> bool:
        return self._guard.is_authenticated

    def has_credentials(self) -> bool:
        return self._guard.has_credentials

    # -- forums --

    async def get_config(self) -> dict[str, Any]:
        # No re-login here; this is the connectivity probe.
        result = await self._rpc.call("get_config")
        if isinstance(result, Fault):
            raise FaultError(result)
        return result

    async def get_forum(self, return_description: bool = False, forum_id: str | None = None) -> list[Any]:
        params: list[Any] = [return_description]
        types = [BOOLEAN]
        if forum_id is not None:
            params.append(forum_id)
            types.append(STRING)
        result = await self.call("get_forum", params, types)
        # Servers answer with a bare list, a struct holding a child list, or one struct.
        if isinstance(result, list):
            return result
        if isinstance(result, dict) and isinstance(result.get("child"), list):
            return result["child"]
        return [result]

    async def get_board_stat(self) -> dict[str, Any]:
        return await self.call("get_board_stat")

    # -- topics --

    async def get_topics(
        self,
        forum_id: str,
        start_num: int = 0,
        last_num: int = 19,
        mode: str | None = None,
    ) -> dict[str, Any]:
        """List topics in a forum. ``mode`` is ``TOP`` (sticky) or ``ANN`` (announcements)."""
        params: list[Any] = [forum_id, start_num, last_num]
        types = [STRING, INT, INT]
        if mode:
            params.append(mode)
            types.append(STRING)
        return await self.call("get_topic", params, types)

    async def get_latest_topics(self, start_num: int = 0, last_num: int = 19) -> dict[str, Any]:
        return await self.call("get_latest_topic", [start_num, last_num], [INT, INT])

    async def get_unread_topics(self, start_num: int = 0, last_num: int = 19) -> dict[str, Any]:
        return await self.call("get_unread_topic", [start_num, last_num], [INT, INT])

    async def get_participated_topics(self, start_num: int = 0, last_num: int = 19) -> dict[str, Any]:
        return await self.call("get_participated_topic", [start_num, last_num], [INT, INT])

    # -- threads --

    async def get_thread(
        self,
        topic_id: str,
        start_num: int = 0,
        last_num: int = 19,
        return_html: bool = True,
    ) -> dict[str, Any]:
        return await self.call(
            "get_thread",
            [topic_id, start_num, last_num, return_html],
            [STRING, INT, INT, BOOLEAN],
        )

    async def get_thread_by_unread(self, topic_id: str) -> dict[str, Any]:
        return await self.call("get_thread_by_unread", [topic_id], [STRING])

    # -- search --

    async def search_topics(
        self,
        query: str,
        start_num: int = 0,
        last_num: int = 19,
        search_id: str | None = None,
    ) -> dict[str, Any]:
        return await self._search("search_topic", query, start_num, last_num, search_id)

    async def search_posts(
        self,
        query: str,
        start_num: int = 0,
        last_num: int = 19,
        search_id: str | None = None,
    ) -> dict[str, Any]:
        return await self._search("search_post", query, start_num, last_num, search_id)

    async def _search(self, method: str, query: str, start_num: int, last_num: int, search_id: str | None) -> Any:
        params: list[Any] = [query, start_num, last_num]
        types = [BASE64, INT, INT]
        if search_id:
            # Reusing a search id pages through a cached result set.
            params.append(search_id)
            types.append(STRING)
        return await self.call(method, params, types)

    async def search_advanced(
        self,
        *,
        keywords: str = "",
        user_id: str = "",
        search_user: str = "",
        forum_id: str = "",
        thread_id: str = "",
        title_only: bool = False,
        show_posts: bool = False,
        search_time: int = 0,
        page: int = 1,
        per_page: int = 20,
        search_id: str = "",
    ) -> dict[str, Any]:
        """Run the positional ``search`` method. Unused filters are sent empty."""
        params = [
            search_id,
            page,
            per_page,
            keywords,
            user_id,
            search_user,
            forum_id,
            thread_id,
            1 if title_only else 0,
            1 if show_posts else 0,
            search_time,
        ]
        types = [STRING, INT, INT, BASE64, STRING, BASE64, STRING, STRING, INT, INT, INT]
        return await self.call("search", params, types)

    # -- users --

    async def get_user_info(self, username: str | None = None, user_id: str | None = None) -> dict[str, Any]:
        if user_id:
            # Lookup by id still sends the username slot, empty.
            return await self.call("get_user_info", ["", user_id], [BASE64, STRING])
        if username:
            return await self.call("get_user_info", [username], [BASE64])
        raise ValueError("Either username or user_id is required")

    async def get_online_users(self) -> Any:
        return await self.call("get_online_users")

    # -- writes --

    async def new_topic(self, forum_id: str, subject: str, body: str) -> dict[str, Any]:
        if not self.is_logged_in():
            raise NotLoggedInError("create topics")
        return await self.call("new_topic", [forum_id, subject, body], [STRING, BASE64, BASE64])

    async def reply_post(self, forum_id: str, topic_id: str, subject: str, body: str) -> dict[str, Any]:
        if not self.is_logged_in():
            raise NotLoggedInError("reply to posts")
        return await self.call(
            "reply_post",
            [forum_id, topic_id, subject, body],
            [STRING, STRING, BASE64, BASE64],
        )
