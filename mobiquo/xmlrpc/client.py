"""XML-RPC channel: encode, execute through the escalator, decode."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from loguru import logger

from mobiquo.transport.clearance import ClearanceEscalator
from mobiquo.transport.http import SessionTransport
from mobiquo.xmlrpc.deserialize import parse_method_response
from mobiquo.xmlrpc.serialize import build_method_call
from mobiquo.xmlrpc.types import Fault, ParamType


class XmlRpcClient:
    """One remote call per ``call``. Faults come back as values, not exceptions."""

    def __init__(self, transport: SessionTransport, escalator: ClearanceEscalator | None = None):
        self.transport = transport
        self.escalator = escalator or ClearanceEscalator(transport)

    async def call(
        self,
        method: str,
        params: Sequence[Any] = (),
        types: Sequence[ParamType | str] | None = None,
    ) -> Any:
        body = build_method_call(method, params, types)
        logger.debug(f"XML-RPC call: {method} ({len(params)} params)")
        raw = await self.escalator.execute(body)
        result = parse_method_response(raw)
        if isinstance(result, Fault):
            logger.debug(f"XML-RPC fault from {method}: {result.code}")
        return result

    def clear_cookies(self) -> None:
        self.escalator.clear_cookies()

    def has_cookies(self) -> bool:
        return self.transport.has_cookies()

    async def aclose(self) -> None:
        await self.escalator.aclose()
        await self.transport.aclose()
