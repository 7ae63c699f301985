"""Tests for the {code, message, data} response envelope."""
from resource_server.envelope import BaseRes


def test_from_message_has_no_data():
    res = BaseRes.from_message("Failed to read request")
    assert res.code == ""
    assert res.message == "Failed to read request"
    assert res.data is None


def test_success_carries_data_and_ok():
    res = BaseRes.success(["a", "b"])
    assert res.code == ""
    assert res.message == "OK"
    assert res.data == ["a", "b"]


def test_success_with_none_data():
    res = BaseRes.success(None)
    assert res.message == "OK"
    assert res.data is None


def test_dump_shape():
    assert BaseRes.from_message("Access Denied").model_dump() == {
        "code": "",
        "message": "Access Denied",
        "data": None,
    }
