"""
XML-RPC deserialization: ``<methodResponse>`` -> Python values.

Hand-written recursive-descent scanner over the decoded text. We avoid
general XML parsers to keep the attack surface minimal (no entity
expansion, no DTDs). The scanner is strict: anything it does not
recognise raises DecodeError rather than being guessed at.
"""

from __future__ import annotations

import base64
import binascii
import re
from typing import Any

from mobiquo.utils.exceptions import DecodeError
from mobiquo.xmlrpc.types import Fault

_ENTITY_RE = re.compile(r"&(#[0-9]+|#x[0-9a-fA-F]+|amp|lt|gt|quot|apos);")
_NAMED_ENTITIES = {"amp": "&", "lt": "<", "gt": ">", "quot": '"', "apos": "'"}
_WHITESPACE = " \t\r\n"


def unescape_xml(text: str) -> str:
    """Decode named and numeric character references in one pass."""

    def _replace(match: re.Match[str]) -> str:
        ref = match.group(1)
        if ref in _NAMED_ENTITIES:
            return _NAMED_ENTITIES[ref]
        try:
            codepoint = int(ref[2:], 16) if ref[1] in "xX" else int(ref[1:])
            return chr(codepoint)
        except (ValueError, OverflowError) as exc:
            raise DecodeError(f"Invalid character reference: &{ref};") from exc

    return _ENTITY_RE.sub(_replace, text)


class _Scanner:
    def __init__(self, text: str):
        self.text = text
        self.pos = 0

    def skip_ws(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos] in _WHITESPACE:
            self.pos += 1

    def at(self, token: str) -> bool:
        return self.text.startswith(token, self.pos)

    def expect(self, token: str) -> None:
        self.skip_ws()
        if not self.at(token):
            found = self.text[self.pos:self.pos + 20]
            raise DecodeError(
                f'Malformed XML-RPC response: expected "{token}" at position {self.pos}, found {found!r}',
                position=self.pos,
            )
        self.pos += len(token)

    def consume(self, token: str) -> bool:
        self.skip_ws()
        if self.at(token):
            self.pos += len(token)
            return True
        return False

    def read_until(self, delimiter: str) -> str:
        idx = self.text.find(delimiter, self.pos)
        if idx == -1:
            raise DecodeError(
                f'Malformed XML-RPC response: missing "{delimiter}" after position {self.pos}',
                position=self.pos,
            )
        chunk = self.text[self.pos:idx]
        if "<" in chunk:
            raise DecodeError(
                f'Malformed XML-RPC response: unexpected markup before "{delimiter}" at position {self.pos}',
                position=self.pos,
            )
        self.pos = idx + len(delimiter)
        return chunk

    def at_end(self) -> bool:
        self.skip_ws()
        return self.pos >= len(self.text)


def _parse_int(raw: str, sc: _Scanner) -> int:
    try:
        return int(raw.strip(), 10)
    except ValueError as exc:
        raise DecodeError(f"Invalid integer {raw!r} before position {sc.pos}", position=sc.pos) from exc


def _parse_double(raw: str, sc: _Scanner) -> float:
    try:
        return float(raw.strip())
    except ValueError as exc:
        raise DecodeError(f"Invalid double {raw!r} before position {sc.pos}", position=sc.pos) from exc


def _parse_boolean(raw: str, sc: _Scanner) -> bool:
    val = raw.strip()
    if val in ("1", "true"):
        return True
    if val in ("0", "false"):
        return False
    raise DecodeError(f"Invalid boolean {raw!r} before position {sc.pos}", position=sc.pos)


def _parse_base64(raw: str, sc: _Scanner) -> str:
    compact = "".join(raw.split())
    try:
        return base64.b64decode(compact, validate=True).decode("utf-8")
    except (binascii.Error, ValueError) as exc:
        raise DecodeError(f"Invalid base64 payload before position {sc.pos}", position=sc.pos) from exc


def _parse_value(sc: _Scanner) -> Any:
    sc.expect("<value>")
    start = sc.pos
    sc.skip_ws()

    # <value>text</value> is an implicit string
    if not sc.at("<") or sc.at("</value>"):
        sc.pos = start
        return unescape_xml(sc.read_until("</value>").strip())

    result: Any
    if sc.consume("<string>"):
        result = unescape_xml(sc.read_until("</string>"))
    elif sc.consume("<string/>"):
        result = ""
    elif sc.consume("<base64>"):
        result = _parse_base64(sc.read_until("</base64>"), sc)
    elif sc.consume("<base64/>"):
        result = ""
    elif sc.consume("<i4>"):
        result = _parse_int(sc.read_until("</i4>"), sc)
    elif sc.consume("<int>"):
        result = _parse_int(sc.read_until("</int>"), sc)
    elif sc.consume("<double>"):
        result = _parse_double(sc.read_until("</double>"), sc)
    elif sc.consume("<boolean>"):
        result = _parse_boolean(sc.read_until("</boolean>"), sc)
    elif sc.consume("<dateTime.iso8601>"):
        result = sc.read_until("</dateTime.iso8601>")
    elif sc.consume("<array>"):
        result = _parse_array(sc)
        sc.expect("</array>")
    elif sc.consume("<struct>"):
        result = _parse_struct(sc)
        sc.expect("</struct>")
    elif sc.consume("<nil/>"):
        result = None
    elif sc.consume("<nil>"):
        sc.expect("</nil>")
        result = None
    else:
        found = sc.text[sc.pos:sc.pos + 20]
        raise DecodeError(f"Unexpected token {found!r} at position {sc.pos}", position=sc.pos)

    sc.expect("</value>")
    return result


def _parse_array(sc: _Scanner) -> list[Any]:
    if sc.consume("<data/>"):
        return []
    sc.expect("<data>")
    items: list[Any] = []
    while not sc.consume("</data>"):
        if sc.at_end():
            raise DecodeError("Truncated array: missing </data>", position=sc.pos)
        items.append(_parse_value(sc))
    return items


def _parse_struct(sc: _Scanner) -> dict[str, Any]:
    obj: dict[str, Any] = {}
    while sc.consume("<member>"):
        sc.expect("<name>")
        name = unescape_xml(sc.read_until("</name>"))
        obj[name] = _parse_value(sc)
        sc.expect("</member>")
    return obj


def _skip_prolog(sc: _Scanner) -> None:
    sc.skip_ws()
    if sc.at("<?xml"):
        end = sc.text.find("?>", sc.pos)
        if end == -1:
            raise DecodeError("Unterminated XML declaration", position=sc.pos)
        sc.pos = end + 2


def _fault_from(value: Any, sc: _Scanner) -> Fault:
    if not isinstance(value, dict):
        raise DecodeError("Fault value must be a struct", position=sc.pos)
    code = value.get("faultCode", 0)
    if isinstance(code, bool) or not isinstance(code, int):
        raise DecodeError(f"Fault code must be an integer, got {code!r}", position=sc.pos)
    message = value.get("faultString", "Unknown fault")
    return Fault(code=code, message=str(message))


def parse_method_response(data: bytes | str) -> Any:
    """Decode a ``<methodResponse>`` document.

    Returns the single response value, or a :class:`Fault` when the document
    carries a fault. Raises :class:`DecodeError` on any structural violation.
    """
    if isinstance(data, (bytes, bytearray)):
        try:
            text = bytes(data).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecodeError(f"Response is not valid UTF-8: {exc.reason}", position=exc.start) from exc
    else:
        text = data
    if text.startswith("\ufeff"):
        text = text[1:]

    sc = _Scanner(text)
    _skip_prolog(sc)
    sc.expect("<methodResponse>")

    if sc.consume("<fault>"):
        result: Any = _fault_from(_parse_value(sc), sc)
        sc.expect("</fault>")
    else:
        sc.expect("<params>")
        sc.expect("<param>")
        result = _parse_value(sc)
        sc.expect("</param>")
        sc.expect("</params>")

    sc.expect("</methodResponse>")
    if not sc.at_end():
        raise DecodeError(f"Trailing content after </methodResponse> at position {sc.pos}", position=sc.pos)
    return result
