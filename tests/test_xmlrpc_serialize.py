import base64
from datetime import datetime

import pytest

from mobiquo.xmlrpc.serialize import build_method_call, escape_xml, serialize_value
from mobiquo.xmlrpc.types import ParamType


def test_escape_xml_replaces_all_five_reserved_characters() -> None:
    assert escape_xml("a&b<c>d\"e'f") == "a&amp;b&lt;c&gt;d&quot;e&apos;f"
    assert escape_xml("plain") == "plain"


def test_declared_base64_encodes_utf8_text() -> None:
    out = serialize_value("héllo wörld", ParamType.BASE64)
    encoded = base64.b64encode("héllo wörld".encode("utf-8")).decode("ascii")
    assert out == f"<value><base64>{encoded}</base64></value>"


def test_declared_int_truncates_integral_floats_and_keeps_fractions_as_double() -> None:
    assert serialize_value(3.0, ParamType.INT) == "<value><int>3</int></value>"
    assert serialize_value("42", ParamType.INT) == "<value><int>42</int></value>"
    assert serialize_value(2.5, ParamType.INT) == "<value><double>2.5</double></value>"


def test_declared_int_rejects_non_numeric_text() -> None:
    with pytest.raises(ValueError, match="not a number"):
        serialize_value("abc", ParamType.INT)


def test_declared_boolean_uses_truthiness() -> None:
    assert serialize_value(1, ParamType.BOOLEAN) == "<value><boolean>1</boolean></value>"
    assert serialize_value("", ParamType.BOOLEAN) == "<value><boolean>0</boolean></value>"


def test_declared_string_stringifies_and_escapes() -> None:
    assert serialize_value(17, ParamType.STRING) == "<value><string>17</string></value>"
    assert serialize_value("<b>", "string") == "<value><string>&lt;b&gt;</string></value>"


def test_none_becomes_empty_string_whatever_the_declared_type() -> None:
    for type_ in ParamType:
        assert serialize_value(None, type_) == "<value><string></string></value>"


def test_auto_dispatches_on_runtime_shape() -> None:
    assert serialize_value(True) == "<value><boolean>1</boolean></value>"
    assert serialize_value(7) == "<value><int>7</int></value>"
    assert serialize_value(1.25) == "<value><double>1.25</double></value>"
    assert serialize_value("x") == "<value><string>x</string></value>"
    assert serialize_value(b"\x00\x01") == "<value><base64>AAE=</base64></value>"
    assert serialize_value(datetime(2024, 1, 2, 3, 4, 5)) == (
        "<value><dateTime.iso8601>2024-01-02T03:04:05</dateTime.iso8601></value>"
    )


def test_auto_nests_arrays_and_structs_in_order() -> None:
    out = serialize_value({"a&b": [1, "two"], "c": {}})
    assert out == (
        "<value><struct>"
        "<member><name>a&amp;b</name><value><array><data>"
        "<value><int>1</int></value><value><string>two</string></value>"
        "</data></array></value></member>"
        "<member><name>c</name><value><struct></struct></value></member>"
        "</struct></value>"
    )


def test_build_method_call_without_params_omits_params_element() -> None:
    doc = build_method_call("get_config").decode("utf-8")
    assert doc == (
        '<?xml version="1.0" encoding="UTF-8"?>'
        "<methodCall><methodName>get_config</methodName></methodCall>"
    )


def test_build_method_call_applies_types_positionally_and_defaults_to_auto() -> None:
    doc = build_method_call("login", ["user", "pw", 5], ["base64", "base64"]).decode("utf-8")
    assert "<methodName>login</methodName>" in doc
    assert doc.count("<param>") == 3
    assert "<value><base64>dXNlcg==</base64></value>" in doc
    assert "<value><base64>cHc=</base64></value>" in doc
    assert "<value><int>5</int></value>" in doc
    assert "<string>user</string>" not in doc


def test_build_method_call_is_utf8_bytes() -> None:
    doc = build_method_call("search_topic", ["ünïcode"], [ParamType.STRING])
    assert isinstance(doc, bytes)
    assert "ünïcode".encode("utf-8") in doc
