"""XML-RPC codec and call channel."""

from mobiquo.xmlrpc.client import XmlRpcClient
from mobiquo.xmlrpc.deserialize import parse_method_response, unescape_xml
from mobiquo.xmlrpc.serialize import build_method_call, escape_xml, serialize_value
from mobiquo.xmlrpc.types import Fault, ParamType, Value

__all__ = [
    "Fault",
    "ParamType",
    "Value",
    "XmlRpcClient",
    "build_method_call",
    "escape_xml",
    "parse_method_response",
    "serialize_value",
    "unescape_xml",
]
