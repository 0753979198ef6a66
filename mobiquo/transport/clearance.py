"""
Adaptive clearance escalation.

Calls go out as plain HTTP until the endpoint answers 403. At that point
the configured variant is activated once and the client stays escalated
for the rest of its lifetime. A harvested clearance can be lost (cleared
jar, expired cookie); a 403 on the harvested path harvests again. Every
call is still retried at most once.
"""

from __future__ import annotations

from enum import Enum
from urllib.parse import urlparse

from loguru import logger

from mobiquo.config.schema import (
    BrowserProxyConfig,
    CookieHarvestConfig,
    EscalationConfig,
    NoEscalation,
)
from mobiquo.transport.browser import BrowserProxy
from mobiquo.transport.harvest import CookieHarvester
from mobiquo.transport.http import SessionTransport
from mobiquo.utils.exceptions import TransportError
from mobiquo.utils.singleflight import SingleFlight


class ClearanceState(str, Enum):
    DIRECT = "direct"
    ESCALATED = "escalated"


def site_root(endpoint_url: str) -> str:
    """Forum root for an endpoint URL: strip the mobiquo path, else the origin."""
    marker = "/mobiquo/"
    idx = endpoint_url.find(marker)
    if idx != -1:
        return endpoint_url[:idx] + "/"
    parsed = urlparse(endpoint_url)
    return f"{parsed.scheme}://{parsed.netloc}/"


class ClearanceEscalator:
    """Routes request bodies through the direct or the escalated path."""

    def __init__(
        self,
        transport: SessionTransport,
        escalation: EscalationConfig | None = None,
        *,
        site_url: str | None = None,
        browser: BrowserProxy | None = None,
        harvester: CookieHarvester | None = None,
    ):
        self._transport = transport
        self._escalation = escalation or NoEscalation()
        self.site_url = site_url.rstrip("/") + "/" if site_url else site_root(transport.url)
        self._state = ClearanceState.DIRECT
        self._user_agent: str | None = None
        self._flight = SingleFlight()
        self._browser: BrowserProxy | None = None
        self._harvester: CookieHarvester | None = None

        esc = self._escalation
        if isinstance(esc, BrowserProxyConfig):
            self._browser = browser or BrowserProxy(
                esc.cdp_url,
                self.site_url,
                timeout=transport.timeout,
                max_response_size=transport.max_response_size,
                page_ttl=esc.page_ttl_seconds,
                navigation_timeout_ms=esc.navigation_timeout_ms,
            )
        elif isinstance(esc, CookieHarvestConfig):
            self._harvester = harvester or CookieHarvester(esc.service_url, timeout=esc.timeout)

    @property
    def state(self) -> ClearanceState:
        return self._state

    @property
    def kind(self) -> str:
        return self._escalation.kind

    @property
    def user_agent(self) -> str | None:
        """User-Agent the harvested cookies are bound to, once escalated."""
        return self._user_agent

    async def execute(self, body: bytes) -> bytes:
        if self._state is ClearanceState.ESCALATED:
            if self._escalation.kind == "harvest":
                return await self._execute_harvested(body)
            return await self._execute_escalated(body)

        observed = self._flight.generation
        try:
            return await self._transport.execute(body)
        except TransportError as e:
            if not e.is_block or self._escalation.kind == "none":
                raise
            logger.info(f"Got 403 from {self._transport.hostname}, escalating via {self._escalation.kind}")
            await self._flight.run(observed, lambda: self._activate(e))

        return await self._execute_escalated(body)

    async def _execute_harvested(self, body: bytes) -> bytes:
        observed = self._flight.generation
        try:
            return await self._execute_escalated(body)
        except TransportError as e:
            if not e.is_block:
                raise
            logger.info(f"Got 403 from {self._transport.hostname} with harvested clearance, harvesting again")
            await self._flight.run(observed, lambda: self._harvest(e))

        return await self._execute_escalated(body)

    async def _activate(self, block: TransportError) -> None:
        if self._state is ClearanceState.ESCALATED:
            return
        if self._escalation.kind == "browser":
            await self._browser.acquire()
        elif self._escalation.kind == "harvest":
            await self._harvest(block)
        self._state = ClearanceState.ESCALATED

    async def _harvest(self, block: TransportError) -> None:
        result = await self._harvester.harvest(self.site_url)
        imported = sum(1 for cookie in result.cookies if self._transport.session.store(cookie))
        if imported == 0:
            logger.warning("Clearance service returned no usable cookies")
            raise block
        self._user_agent = result.user_agent
        logger.info(f"Imported {imported} clearance cookie(s)")

    async def _execute_escalated(self, body: bytes) -> bytes:
        if self._escalation.kind == "browser":
            return await self._browser.fetch(self._transport.url, body)
        return await self._transport.execute(body, user_agent=self._user_agent)

    def clear_cookies(self) -> None:
        """Drop the forum session on every path: the jar and, in browser mode, the page's cookies."""
        self._transport.clear_cookies()
        if self._browser is not None:
            self._browser.reset_session()

    async def aclose(self) -> None:
        if self._browser is not None:
            await self._browser.aclose()
