"""
Browser-proxied request execution over Chrome DevTools Protocol.

When the forum sits behind an anti-bot layer, a real browser's network
stack and TLS fingerprint get through where a plain HTTP client does not.
We attach to a remote Chrome, open one page, navigate it to the forum so it
earns clearance, then run each XML-RPC POST as an in-page ``fetch()``.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Callable
from urllib.parse import urlparse

import httpx
from loguru import logger

from mobiquo.utils.exceptions import TransportError

PAGE_TTL_SECONDS = 10 * 60
NAVIGATION_TIMEOUT_MS = 30_000

# Runs inside the page. Returns {status, statusText, body} or {error}.
_FETCH_SCRIPT = """
async ([url, body, timeoutMs]) => {
  const controller = new AbortController();
  const timer = setTimeout(() => controller.abort(), timeoutMs);
  try {
    const resp = await fetch(url, {
      method: "POST",
      headers: { "Content-Type": "text/xml; charset=utf-8" },
      body,
      redirect: "error",
      signal: controller.signal,
    });
    const text = await resp.text();
    return { status: resp.status, statusText: resp.statusText, body: text };
  } catch (e) {
    return { error: (e && e.message) || String(e) };
  } finally {
    clearTimeout(timer);
  }
}
"""


@dataclass
class BrowserPage:
    """A live page attached to the remote browser, plus what owns it."""
    page: Any  # playwright.async_api.Page
    browser: Any = None  # playwright.async_api.Browser
    playwright: Any = None  # playwright.async_api.Playwright
    created_at: float = 0.0

    def expired(self, now: float, ttl: float) -> bool:
        return now - self.created_at > ttl


class BrowserProxy:
    """Owns one cached page on a remote Chrome and executes requests through it.

    Creation is exclusive: concurrent callers wait on the lock and reuse the
    page the first one created. Use of an existing page is concurrent. The
    page is released and recreated after ``page_ttl`` seconds or after any
    execution failure, since the remote browser can die between calls.
    """

    def __init__(
        self,
        cdp_url: str,
        site_url: str,
        *,
        timeout: float = 15.0,
        max_response_size: int = 5 * 1024 * 1024,
        page_ttl: float = PAGE_TTL_SECONDS,
        navigation_timeout_ms: int = NAVIGATION_TIMEOUT_MS,
        http_transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.cdp_url = cdp_url.rstrip("/")
        self.site_url = site_url
        self.timeout = timeout
        self.max_response_size = max_response_size
        self.page_ttl = page_ttl
        self.navigation_timeout_ms = navigation_timeout_ms
        self._http_transport = http_transport
        self._clock = clock
        self._handle: BrowserPage | None = None
        self._lock = asyncio.Lock()
        self._session_reset = False

    @property
    def handle(self) -> BrowserPage | None:
        return self._handle

    async def acquire(self) -> Any:
        """Return the cached page, creating it (and earning clearance) if needed."""
        handle = self._handle
        if handle is not None and not self._stale(handle):
            return handle.page
        async with self._lock:
            handle = self._handle
            if handle is not None and self._stale(handle):
                logger.info("Browser page expired or session reset, reconnecting...")
                self._handle = None
                await self._release(handle)
            if self._handle is None:
                self._handle = await self._open()
                self._session_reset = False
            return self._handle.page

    def reset_session(self) -> None:
        """Forget the forum session. The next page starts from an empty cookie store."""
        self._session_reset = True

    def _stale(self, handle: BrowserPage) -> bool:
        return self._session_reset or handle.expired(self._clock(), self.page_ttl)

    async def invalidate(self, page: Any = None) -> None:
        """Drop the cached page. With ``page`` given, only if it is still the current one."""
        async with self._lock:
            handle = self._handle
            if handle is None or (page is not None and handle.page is not page):
                return
            self._handle = None
        await self._release(handle)

    async def aclose(self) -> None:
        await self.invalidate()

    async def fetch(self, url: str, body: bytes) -> bytes:
        """POST ``body`` to ``url`` from inside the page and return the response bytes."""
        page = await self.acquire()
        timeout_ms = int(self.timeout * 1000)
        try:
            result = await asyncio.wait_for(
                page.evaluate(_FETCH_SCRIPT, [url, body.decode("utf-8"), timeout_ms]),
                timeout=self.timeout + 1.0,
            )
        except asyncio.TimeoutError as exc:
            await self.invalidate(page)
            raise TransportError(
                f"Browser request timed out after {self.timeout}s",
                code="TRANSPORT_TIMEOUT",
                retryable=True,
            ) from exc
        except Exception as exc:
            await self.invalidate(page)
            raise TransportError(f"Browser request failed: {exc}", code="TRANSPORT_BROWSER_ERROR") from exc

        if not isinstance(result, dict) or result.get("error"):
            await self.invalidate(page)
            error = result.get("error") if isinstance(result, dict) else "no result"
            raise TransportError(f"Browser request failed: {error}", code="TRANSPORT_BROWSER_ERROR")

        status = int(result.get("status") or 0)
        if not 200 <= status < 300:
            await self.invalidate(page)
            raise TransportError(
                f"HTTP {status}: {result.get('statusText') or ''}".rstrip(),
                code="TRANSPORT_HTTP_ERROR",
                status_code=status,
            )

        data = str(result.get("body") or "").encode("utf-8")
        if len(data) > self.max_response_size:
            raise TransportError(
                f"Response too large: {len(data)} bytes (limit: {self.max_response_size})",
                code="TRANSPORT_TOO_LARGE",
            )
        return data

    async def _resolve_ws_endpoint(self) -> str:
        """Ask Chrome for its WebSocket URL and point it at the configured CDP host.

        Chrome reports ``ws://localhost/...`` even when reached through another
        hostname (e.g. a container name), so the host part is rewritten.
        """
        version_url = f"{self.cdp_url}/json/version"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._http_transport) as client:
                resp = await client.get(version_url)
        except httpx.RequestError as exc:
            raise TransportError(
                f"Chrome CDP not reachable: {exc}",
                code="TRANSPORT_BROWSER_ERROR",
            ) from exc
        if resp.status_code != 200:
            raise TransportError(
                f"Chrome CDP not reachable: HTTP {resp.status_code}",
                code="TRANSPORT_BROWSER_ERROR",
                status_code=resp.status_code,
            )
        try:
            ws_url = str(resp.json()["webSocketDebuggerUrl"])
        except (ValueError, KeyError, TypeError) as exc:
            raise TransportError(
                "Chrome CDP returned no webSocketDebuggerUrl",
                code="TRANSPORT_BROWSER_ERROR",
            ) from exc

        ws = urlparse(ws_url)
        cdp_host = urlparse(self.cdp_url).netloc
        scheme = "wss" if urlparse(self.cdp_url).scheme == "https" else "ws"
        return ws._replace(scheme=scheme, netloc=cdp_host).geturl()

    async def _open(self) -> BrowserPage:
        from playwright.async_api import async_playwright

        ws_url = await self._resolve_ws_endpoint()
        logger.info(f"Connecting to Chrome at {ws_url}")
        playwright = await async_playwright().start()
        handle = BrowserPage(page=None, playwright=playwright)
        try:
            handle.browser = await playwright.chromium.connect_over_cdp(ws_url)
            context = await self._prepare_context(handle.browser)
            handle.page = await context.new_page()
            logger.info(f"Navigating to {self.site_url} to establish clearance...")
            await handle.page.goto(self.site_url, wait_until="networkidle", timeout=self.navigation_timeout_ms)
        except Exception as exc:
            await self._release(handle)
            raise TransportError(f"Browser clearance failed: {exc}", code="TRANSPORT_BROWSER_ERROR") from exc
        handle.created_at = self._clock()
        logger.info("Browser clearance established")
        return handle

    async def _prepare_context(self, browser: Any) -> Any:
        contexts = browser.contexts
        context = contexts[0] if contexts else await browser.new_context()
        if self._session_reset:
            logger.debug("Clearing browser cookies before re-establishing clearance")
            await context.clear_cookies()
        return context

    @staticmethod
    async def _release(handle: BrowserPage) -> None:
        # Best effort: the remote browser may already be gone.
        for closer in (
            getattr(handle.page, "close", None),
            getattr(handle.browser, "close", None),
            getattr(handle.playwright, "stop", None),
        ):
            if closer is None:
                continue
            try:
                await closer()
            except Exception as exc:
                logger.debug(f"Ignoring browser cleanup error: {exc}")
