"""
XML-RPC serialization: Python values -> ``<methodCall>`` bytes.

Pure functions, no I/O. Callers pass a list of declared types alongside the
positional parameters; a missing entry means ``auto``.
"""

from __future__ import annotations

import base64
import math
from collections.abc import Mapping, Sequence
from datetime import date, datetime
from typing import Any

from mobiquo.xmlrpc.types import ParamType

_XML_ESCAPES = {
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&apos;",
}


def escape_xml(text: str) -> str:
    """Escape the five reserved markup characters."""
    return "".join(_XML_ESCAPES.get(ch, ch) for ch in text)


def _number(value: Any) -> int | float:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    try:
        parsed = float(str(value).strip())
    except ValueError as exc:
        raise ValueError(f"not a number: {value!r}") from exc
    return parsed


def _numeric(value: Any) -> str:
    n = _number(value)
    if isinstance(n, int):
        return f"<value><int>{n}</int></value>"
    if math.isfinite(n) and n.is_integer():
        return f"<value><int>{int(n)}</int></value>"
    return f"<value><double>{n!r}</double></value>"


def _base64(value: Any) -> str:
    raw = value if isinstance(value, (bytes, bytearray)) else str(value).encode("utf-8")
    encoded = base64.b64encode(bytes(raw)).decode("ascii")
    return f"<value><base64>{encoded}</base64></value>"


def _string(value: Any) -> str:
    return f"<value><string>{escape_xml(str(value))}</string></value>"


def serialize_value(value: Any, type_: ParamType | str = ParamType.AUTO) -> str:
    """Serialize one value as a ``<value>`` element."""
    type_ = ParamType(type_)

    if value is None:
        return "<value><string></string></value>"

    if type_ is ParamType.BASE64:
        return _base64(value)
    if type_ is ParamType.INT:
        return _numeric(value)
    if type_ is ParamType.BOOLEAN:
        return f"<value><boolean>{1 if value else 0}</boolean></value>"
    if type_ is ParamType.STRING:
        return _string(value)

    # auto: dispatch on the runtime shape; bool before int (bool is an int)
    if isinstance(value, bool):
        return f"<value><boolean>{1 if value else 0}</boolean></value>"
    if isinstance(value, (int, float)):
        return _numeric(value)
    if isinstance(value, str):
        return _string(value)
    if isinstance(value, (bytes, bytearray)):
        return _base64(value)
    if isinstance(value, (datetime, date)):
        return f"<value><dateTime.iso8601>{value.isoformat()}</dateTime.iso8601></value>"
    if isinstance(value, Mapping):
        members = "".join(
            f"<member><name>{escape_xml(str(k))}</name>{serialize_value(v)}</member>"
            for k, v in value.items()
        )
        return f"<value><struct>{members}</struct></value>"
    if isinstance(value, Sequence):
        items = "".join(serialize_value(v) for v in value)
        return f"<value><array><data>{items}</data></array></value>"

    return _string(value)


def build_method_call(
    method: str,
    params: Sequence[Any] = (),
    types: Sequence[ParamType | str] | None = None,
) -> bytes:
    """Build a complete ``<methodCall>`` document, UTF-8 encoded."""
    types = list(types or [])
    params_xml = ""
    if params:
        entries = []
        for i, param in enumerate(params):
            type_ = types[i] if i < len(types) else ParamType.AUTO
            entries.append(f"<param>{serialize_value(param, type_)}</param>")
        params_xml = f"<params>{''.join(entries)}</params>"
    doc = (
        '<?xml version="1.0" encoding="UTF-8"?>'
        f"<methodCall><methodName>{escape_xml(method)}</methodName>{params_xml}</methodCall>"
    )
    return doc.encode("utf-8")
