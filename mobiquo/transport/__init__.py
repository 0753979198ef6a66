"""HTTP transport, cookie session and clearance escalation."""

from mobiquo.transport.browser import BrowserProxy
from mobiquo.transport.clearance import ClearanceEscalator, ClearanceState
from mobiquo.transport.harvest import CookieHarvester, HarvestResult
from mobiquo.transport.http import DEFAULT_USER_AGENT, SessionTransport
from mobiquo.transport.session import Cookie, Session, parse_set_cookie

__all__ = [
    "BrowserProxy",
    "ClearanceEscalator",
    "ClearanceState",
    "Cookie",
    "CookieHarvester",
    "DEFAULT_USER_AGENT",
    "HarvestResult",
    "Session",
    "SessionTransport",
    "parse_set_cookie",
]
