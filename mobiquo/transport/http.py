"""
HTTP transport for the mobiquo endpoint.

One POST per call against the configured URL. Security: redirects are never
followed, response bodies are size-capped while streaming, every exchange
is bounded by one timeout, and cookies are scoped to the configured host.
"""

from __future__ import annotations

import asyncio
from urllib.parse import urljoin, urlparse

import httpx
from loguru import logger

from mobiquo.transport.session import Session
from mobiquo.utils.exceptions import ConfigError, TransportError

DEFAULT_USER_AGENT = "Tapatalk/8.9.7 (Android; com.quoord.tapatalkpro.activity)"
CONTENT_TYPE = "text/xml; charset=utf-8"
DEFAULT_TIMEOUT = 15.0
DEFAULT_MAX_RESPONSE_SIZE = 5 * 1024 * 1024


class SessionTransport:
    """Executes raw XML-RPC exchanges against one fixed endpoint."""

    def __init__(
        self,
        url: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        max_response_size: int = DEFAULT_MAX_RESPONSE_SIZE,
        user_agent: str = DEFAULT_USER_AGENT,
        session: Session | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        hostname = urlparse(url).hostname
        if not hostname:
            raise ConfigError(f"Endpoint URL has no hostname: {url}", field="url")
        self.url = url
        self.hostname = hostname.lower()
        self.timeout = timeout
        self.max_response_size = max_response_size
        self.user_agent = user_agent
        self.session = session or Session(self.hostname)
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(follow_redirects=False, timeout=self.timeout)
        return self._client

    def _headers(self, user_agent: str | None) -> dict[str, str]:
        headers = {
            "Content-Type": CONTENT_TYPE,
            "User-Agent": user_agent or self.user_agent,
            "Accept-Encoding": "gzip, deflate",
        }
        cookie = self.session.cookie_header()
        if cookie:
            headers["Cookie"] = cookie
        return headers

    def clear_cookies(self) -> None:
        self.session.clear()

    def has_cookies(self) -> bool:
        return len(self.session) > 0

    async def execute(self, body: bytes, *, user_agent: str | None = None) -> bytes:
        """POST ``body`` and return the raw response bytes.

        The whole exchange (connect, headers, body) is cancelled once
        ``timeout`` elapses. Cookies are merged only after a complete,
        successful read, so a failed or cancelled call never touches the jar.
        """
        try:
            return await asyncio.wait_for(self._exchange(body, user_agent), timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            raise TransportError(
                f"Request timed out after {self.timeout}s",
                code="TRANSPORT_TIMEOUT",
                retryable=True,
            ) from exc

    async def _exchange(self, body: bytes, user_agent: str | None) -> bytes:
        client = self._get_client()
        try:
            async with client.stream("POST", self.url, content=body, headers=self._headers(user_agent)) as response:
                self._check_status(response)
                payload = await self._read_capped(response)
                set_cookies = response.headers.get_list("set-cookie")
        except httpx.TimeoutException as exc:
            raise TransportError(
                f"Request timed out: {exc}",
                code="TRANSPORT_TIMEOUT",
                retryable=True,
            ) from exc
        except httpx.RequestError as exc:
            raise TransportError(
                f"Network error: {exc}",
                code="TRANSPORT_NETWORK_ERROR",
                retryable=True,
            ) from exc
        finally:
            # The jar lives in Session; httpx's own jar is kept empty.
            client.cookies.clear()

        for header in set_cookies:
            self.session.store_set_cookie(header)
        return payload

    def _check_status(self, response: httpx.Response) -> None:
        status = response.status_code
        if 300 <= status < 400:
            location = response.headers.get("location")
            if location:
                try:
                    redirect_host = urlparse(urljoin(self.url, location)).hostname
                except ValueError as exc:
                    raise TransportError(
                        f"Malformed redirect URL: {location}",
                        code="TRANSPORT_REDIRECT",
                        status_code=status,
                    ) from exc
                if not redirect_host:
                    raise TransportError(
                        f"Malformed redirect URL: {location}",
                        code="TRANSPORT_REDIRECT",
                        status_code=status,
                    )
                if redirect_host.lower() != self.hostname:
                    raise TransportError(
                        f"Refusing redirect to different host: {redirect_host}",
                        code="TRANSPORT_REDIRECT",
                        status_code=status,
                        cross_host=True,
                    )
            raise TransportError(
                f"Unexpected redirect ({status})",
                code="TRANSPORT_REDIRECT",
                status_code=status,
            )
        if not 200 <= status < 300:
            logger.debug(f"HTTP {status} from {self.hostname}")
            raise TransportError(
                f"HTTP {status}: {response.reason_phrase}",
                code="TRANSPORT_HTTP_ERROR",
                status_code=status,
                retryable=self._is_retryable_status(status),
            )

    @staticmethod
    def _is_retryable_status(status_code: int) -> bool:
        return status_code >= 500 or status_code in {408, 425, 429}

    async def _read_capped(self, response: httpx.Response) -> bytes:
        buf = bytearray()
        async for chunk in response.aiter_bytes():
            buf.extend(chunk)
            if len(buf) > self.max_response_size:
                raise TransportError(
                    f"Response too large: more than {self.max_response_size} bytes",
                    code="TRANSPORT_TOO_LARGE",
                )
        return bytes(buf)

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
