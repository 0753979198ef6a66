"""XML-RPC value model shared by the serializer and the deserializer."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Union


class ParamType(str, Enum):
    """Declared wire type of one positional parameter.

    Tapatalk declares most text parameters as ``byte[]``, which means they go
    over the wire as ``<base64>`` even though the value is ordinary text.
    """
    STRING = "string"
    INT = "int"
    BOOLEAN = "boolean"
    BASE64 = "base64"
    AUTO = "auto"


@dataclass(frozen=True)
class Fault:
    """A well-formed ``<fault>`` response. Returned as a value, not raised."""
    code: int
    message: str


# None | bool | int | float | str | list[Value] | dict[str, Value]
Value = Union[None, bool, int, float, str, list[Any], dict[str, Any]]
