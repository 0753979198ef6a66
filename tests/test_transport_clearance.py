import asyncio

import httpx
import pytest

from mobiquo.config.schema import BrowserProxyConfig, CookieHarvestConfig
from mobiquo.transport.clearance import ClearanceEscalator, ClearanceState, site_root
from mobiquo.transport.harvest import HarvestResult
from mobiquo.transport.http import SessionTransport
from mobiquo.transport.session import Cookie
from mobiquo.utils.exceptions import TransportError

ENDPOINT = "https://forum.example.com/mobiquo/mobiquo.php"


class FakeHarvester:
    def __init__(self, result: HarvestResult):
        self.result = result
        self.targets: list[str] = []

    async def harvest(self, target_url: str) -> HarvestResult:
        self.targets.append(target_url)
        await asyncio.sleep(0)
        return self.result


class FakeBrowser:
    def __init__(self):
        self.acquired = 0
        self.fetched: list[tuple[str, bytes]] = []
        self.closed = False
        self.resets = 0

    async def acquire(self):
        self.acquired += 1
        return object()

    async def fetch(self, url: str, body: bytes) -> bytes:
        self.fetched.append((url, body))
        return b"via-browser"

    async def aclose(self):
        self.closed = True

    def reset_session(self):
        self.resets += 1


class GatedForum:
    """Answers 403 until a request carries the clearance cookie."""

    def __init__(self, always_block: bool = False):
        self.always_block = always_block
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        cookie = request.headers.get("cookie", "")
        if self.always_block or "cf_clearance=" not in cookie:
            return httpx.Response(403, content=b"Just a moment...")
        return httpx.Response(200, content=b"ok")


def _transport(handler) -> SessionTransport:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=False)
    return SessionTransport(ENDPOINT, client=client)


def _harvest_config() -> CookieHarvestConfig:
    return CookieHarvestConfig(service_url="http://solver:8191")


@pytest.mark.asyncio
async def test_without_escalation_block_propagates() -> None:
    escalator = ClearanceEscalator(_transport(GatedForum()))
    with pytest.raises(TransportError) as exc_info:
        await escalator.execute(b"x")
    assert exc_info.value.status_code == 403
    assert escalator.state is ClearanceState.DIRECT


@pytest.mark.asyncio
async def test_harvest_imports_cookies_and_retries_with_harvested_agent() -> None:
    forum = GatedForum()
    harvester = FakeHarvester(HarvestResult(
        cookies=[Cookie("cf_clearance", "tok", ".example.com")],
        user_agent="Mozilla/5.0 Solver",
    ))
    escalator = ClearanceEscalator(_transport(forum), _harvest_config(), harvester=harvester)

    assert await escalator.execute(b"first") == b"ok"
    assert escalator.state is ClearanceState.ESCALATED
    assert escalator.user_agent == "Mozilla/5.0 Solver"
    assert harvester.targets == ["https://forum.example.com/"]
    assert forum.requests[1].content == b"first"
    assert forum.requests[1].headers["user-agent"] == "Mozilla/5.0 Solver"

    assert await escalator.execute(b"second") == b"ok"
    assert len(harvester.targets) == 1
    assert forum.requests[2].headers["user-agent"] == "Mozilla/5.0 Solver"


@pytest.mark.asyncio
async def test_harvest_with_no_usable_cookies_reraises_block() -> None:
    harvester = FakeHarvester(HarvestResult(cookies=[Cookie("cf_clearance", "tok", "other.org")]))
    escalator = ClearanceEscalator(_transport(GatedForum()), _harvest_config(), harvester=harvester)

    with pytest.raises(TransportError) as exc_info:
        await escalator.execute(b"x")
    assert exc_info.value.is_block
    assert escalator.state is ClearanceState.DIRECT


@pytest.mark.asyncio
async def test_block_after_escalation_is_retried_at_most_once_per_call() -> None:
    forum = GatedForum(always_block=True)
    harvester = FakeHarvester(HarvestResult(cookies=[Cookie("cf_clearance", "tok")]))
    escalator = ClearanceEscalator(_transport(forum), _harvest_config(), harvester=harvester)

    with pytest.raises(TransportError) as exc_info:
        await escalator.execute(b"x")
    assert exc_info.value.is_block
    assert len(forum.requests) == 2
    assert len(harvester.targets) == 1
    assert escalator.state is ClearanceState.ESCALATED

    with pytest.raises(TransportError):
        await escalator.execute(b"y")
    assert len(forum.requests) == 4
    assert len(harvester.targets) == 2


@pytest.mark.asyncio
async def test_concurrent_blocked_calls_share_one_harvest() -> None:
    forum = GatedForum()
    harvester = FakeHarvester(HarvestResult(cookies=[Cookie("cf_clearance", "tok")]))
    escalator = ClearanceEscalator(_transport(forum), _harvest_config(), harvester=harvester)

    results = await asyncio.gather(*(escalator.execute(f"call-{i}".encode()) for i in range(4)))

    assert results == [b"ok"] * 4
    assert len(harvester.targets) == 1


@pytest.mark.asyncio
async def test_lost_clearance_is_harvested_again() -> None:
    forum = GatedForum()
    harvester = FakeHarvester(HarvestResult(cookies=[Cookie("cf_clearance", "tok")], user_agent="Solver"))
    transport = _transport(forum)
    escalator = ClearanceEscalator(transport, _harvest_config(), harvester=harvester)

    assert await escalator.execute(b"login") == b"ok"
    transport.session.clear()

    assert await escalator.execute(b"login-again") == b"ok"
    assert len(harvester.targets) == 2
    assert transport.session.names() == ["cf_clearance"]
    assert [r.content for r in forum.requests] == [b"login", b"login", b"login-again", b"login-again"]
    assert escalator.state is ClearanceState.ESCALATED


@pytest.mark.asyncio
async def test_concurrent_calls_with_lost_clearance_share_one_harvest() -> None:
    forum = GatedForum()
    harvester = FakeHarvester(HarvestResult(cookies=[Cookie("cf_clearance", "tok")]))
    transport = _transport(forum)
    escalator = ClearanceEscalator(transport, _harvest_config(), harvester=harvester)
    await escalator.execute(b"warmup")
    escalator.clear_cookies()

    results = await asyncio.gather(*(escalator.execute(f"call-{i}".encode()) for i in range(3)))

    assert results == [b"ok"] * 3
    assert len(harvester.targets) == 2


@pytest.mark.asyncio
async def test_non_block_errors_do_not_escalate() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500)

    harvester = FakeHarvester(HarvestResult(cookies=[Cookie("cf_clearance", "tok")]))
    escalator = ClearanceEscalator(_transport(handler), _harvest_config(), harvester=harvester)
    with pytest.raises(TransportError):
        await escalator.execute(b"x")
    assert harvester.targets == []


@pytest.mark.asyncio
async def test_browser_variant_routes_all_calls_through_page_once_escalated() -> None:
    forum = GatedForum(always_block=True)
    browser = FakeBrowser()
    escalator = ClearanceEscalator(
        _transport(forum),
        BrowserProxyConfig(cdp_url="http://chrome:9222"),
        browser=browser,
    )

    assert await escalator.execute(b"one") == b"via-browser"
    assert await escalator.execute(b"two") == b"via-browser"

    assert browser.acquired == 1
    assert browser.fetched == [(ENDPOINT, b"one"), (ENDPOINT, b"two")]
    assert len(forum.requests) == 1

    await escalator.aclose()
    assert browser.closed


def test_clear_cookies_resets_jar_and_browser_session() -> None:
    forum = GatedForum()
    browser = FakeBrowser()
    transport = _transport(forum)
    transport.session.store(Cookie("sid", "abc"))
    escalator = ClearanceEscalator(transport, BrowserProxyConfig(cdp_url="http://chrome:9222"), browser=browser)

    escalator.clear_cookies()

    assert not transport.has_cookies()
    assert browser.resets == 1


def test_site_root_strips_mobiquo_path_or_falls_back_to_origin() -> None:
    assert site_root(ENDPOINT) == "https://forum.example.com/"
    assert site_root("https://example.com/board/mobiquo/mobiquo.php") == "https://example.com/board/"
    assert site_root("https://example.com/xmlrpc.php") == "https://example.com/"
