import pytest

from core_utils import jsonx


def test_jsonx_roundtrip():
    obj = {"a": 1, "b": ["x", 2]}
    s = jsonx.dumps(obj)
    assert isinstance(s, str)
    assert jsonx.loads(s) == obj


def test_jsonx_keeps_insertion_order_unless_asked():
    assert jsonx.dumps({"b": 1, "a": 2}) == '{"b":1,"a":2}'
    assert jsonx.dumps({"b": 1, "a": 2}, sort_keys=True) == '{"a":2,"b":1}'


def test_jsonx_loads_tolerates_bom():
    assert jsonx.loads(b'\xef\xbb\xbf{"ok": true}') == {"ok": True}


def test_jsonx_loads_is_strict():
    with pytest.raises(ValueError):
        jsonx.loads("{'single': 'quotes'}")


def test_jsonx_sanitize():
    out = jsonx.sanitize({"err": ValueError("bad"), "raw": b"abc", "tags": ("x",)})
    assert out == {"err": {"error": "ValueError", "message": "bad"}, "raw": "abc", "tags": ["x"]}
