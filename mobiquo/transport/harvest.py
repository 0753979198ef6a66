"""Clearance cookie harvesting through a FlareSolverr-compatible service."""

from __future__ import annotations

from dataclasses import dataclass, field

import httpx
from loguru import logger

from mobiquo.transport.session import Cookie
from mobiquo.utils.exceptions import TransportError

DEFAULT_HARVEST_TIMEOUT = 60.0


@dataclass
class HarvestResult:
    cookies: list[Cookie] = field(default_factory=list)
    user_agent: str | None = None


class CookieHarvester:
    """Asks an external solver to load the forum and hands back its cookies.

    The solver runs a real browser, so the cookies it returns are only
    honoured together with the User-Agent it used.
    """

    def __init__(
        self,
        service_url: str,
        *,
        timeout: float = DEFAULT_HARVEST_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.service_url = service_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def harvest(self, target_url: str) -> HarvestResult:
        payload = {
            "cmd": "request.get",
            "url": target_url,
            "maxTimeout": int(self.timeout * 1000),
        }
        logger.info(f"Requesting clearance cookies for {target_url}")
        try:
            # The solver enforces maxTimeout itself; leave headroom for its reply.
            async with httpx.AsyncClient(timeout=self.timeout + 10, transport=self._transport) as client:
                resp = await client.post(f"{self.service_url}/v1", json=payload)
        except httpx.TimeoutException as exc:
            raise TransportError(
                f"Clearance service timed out: {exc}",
                code="TRANSPORT_TIMEOUT",
                retryable=True,
            ) from exc
        except httpx.RequestError as exc:
            raise TransportError(
                f"Clearance service unreachable: {exc}",
                code="TRANSPORT_HARVEST_ERROR",
                retryable=True,
            ) from exc

        if resp.status_code >= 400:
            raise TransportError(
                f"Clearance service HTTP {resp.status_code}",
                code="TRANSPORT_HARVEST_ERROR",
                status_code=resp.status_code,
            )
        try:
            data = resp.json()
        except ValueError as exc:
            raise TransportError("Clearance service returned invalid JSON", code="TRANSPORT_HARVEST_ERROR") from exc
        if not isinstance(data, dict) or data.get("status") != "ok":
            message = data.get("message") if isinstance(data, dict) else None
            raise TransportError(
                f"Clearance service error: {message or 'unknown'}",
                code="TRANSPORT_HARVEST_ERROR",
            )

        solution = data.get("solution") or {}
        cookies = []
        for item in solution.get("cookies") or []:
            if not isinstance(item, dict) or not item.get("name") or not item.get("value"):
                continue
            cookies.append(Cookie(
                name=str(item["name"]),
                value=str(item["value"]),
                domain=item.get("domain") or None,
            ))
        user_agent = solution.get("userAgent") or None
        logger.info(f"Clearance service returned {len(cookies)} cookie(s)")
        return HarvestResult(cookies=cookies, user_agent=user_agent)
