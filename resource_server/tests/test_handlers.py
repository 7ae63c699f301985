"""
Tests for the outermost failure boundary: commit guard, error attribute and log severity.
"""
import asyncio
import json
import logging

import pytest

from resource_server.classifier import ClassifiedFailure, ExceptionClassifier
from resource_server.errors import NotFoundError, ResourceServerError
from resource_server.handlers import ERROR_EXCEPTION_ATTRIBUTE, ExceptionTranslationMiddleware, log_failure
from resource_server.messages import MessageSource


def _scope():
    return {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": "GET",
        "scheme": "http",
        "path": "/rest/v1/resource/public",
        "raw_path": b"/rest/v1/resource/public",
        "query_string": b"",
        "headers": [],
        "client": ("127.0.0.1", 50000),
        "server": ("testserver", 80),
    }


async def _receive():
    return {"type": "http.request", "body": b"", "more_body": False}


def _run(app, scope):
    sent = []

    async def send(message):
        sent.append(message)

    middleware = ExceptionTranslationMiddleware(app, ExceptionClassifier(MessageSource({})))
    asyncio.run(middleware(scope, _receive, send))
    return sent


def test_committed_response_is_left_alone(caplog):
    async def app(scope, receive, send):
        await send({"type": "http.response.start", "status": 200, "headers": []})
        raise RuntimeError("failed mid-stream")

    with caplog.at_level(logging.WARNING, logger="resource_server.handlers"):
        sent = _run(app, _scope())

    assert [m["type"] for m in sent] == ["http.response.start"]
    assert "Response already committed. Ignoring : builtins.RuntimeError" in caplog.text
    failure_records = [r for r in caplog.records if r.exc_info and isinstance(r.exc_info[1], RuntimeError)]
    assert failure_records and failure_records[0].levelno == logging.WARNING


def test_uncommitted_failure_writes_envelope():
    async def app(scope, receive, send):
        raise NotFoundError("No route for GET /nowhere")

    sent = _run(app, _scope())

    start = sent[0]
    assert start["type"] == "http.response.start"
    assert start["status"] == 404
    body = json.loads(b"".join(m.get("body", b"") for m in sent[1:]))
    assert body == {"code": "", "message": "No route for GET /nowhere", "data": None}


def test_server_error_attaches_failure_to_request_state():
    exc = RuntimeError("database exploded")

    async def app(scope, receive, send):
        raise exc

    scope = _scope()
    sent = _run(app, scope)

    assert sent[0]["status"] == 500
    assert scope["state"][ERROR_EXCEPTION_ATTRIBUTE] is exc
    body = json.loads(b"".join(m.get("body", b"") for m in sent[1:]))
    assert body["message"] == "Internal Server Error"
    assert "exploded" not in json.dumps(body)


def test_client_error_does_not_attach_failure():
    async def app(scope, receive, send):
        raise NotFoundError("nope")

    scope = _scope()
    _run(app, scope)
    assert ERROR_EXCEPTION_ATTRIBUTE not in scope.get("state", {})


def test_non_http_scope_passes_through():
    called = []

    async def app(scope, receive, send):
        called.append(scope["type"])

    middleware = ExceptionTranslationMiddleware(app)
    asyncio.run(middleware({"type": "lifespan"}, _receive, None))
    assert called == ["lifespan"]


# --- log severity ---


def _levels(caplog):
    return [r.levelno for r in caplog.records if r.name == "resource_server.handlers" and r.exc_info]


@pytest.mark.parametrize(
    "failure, level",
    [
        (ClassifiedFailure(400, "bad", 400), logging.DEBUG),
        (ClassifiedFailure(404, "missing", 404), logging.INFO),
        (ClassifiedFailure(413, "too big", 413), logging.INFO),
        (ClassifiedFailure(500, "broken", 500), logging.WARNING),
        (ClassifiedFailure(503, "Asynchronous request time out", 500), logging.WARNING),
    ],
)
def test_log_level_follows_status_class(caplog, failure, level):
    with caplog.at_level(logging.DEBUG, logger="resource_server.handlers"):
        log_failure(RuntimeError("x"), failure)
    assert _levels(caplog) == [level]


def test_wrapped_application_failure_logs_its_cause(caplog):
    cause = ConnectionError("upstream refused")
    try:
        raise ResourceServerError("Could not load resources") from cause
    except ResourceServerError as e:
        exc = e

    with caplog.at_level(logging.DEBUG, logger="resource_server.handlers"):
        log_failure(exc, ClassifiedFailure(500, "Could not load resources", 500))

    records = [r for r in caplog.records if r.exc_info]
    assert len(records) == 1
    assert records[0].levelno == logging.WARNING
    assert records[0].exc_info[1] is cause


def test_application_failure_without_cause_logs_itself(caplog):
    exc = ResourceServerError("plain")
    with caplog.at_level(logging.DEBUG, logger="resource_server.handlers"):
        log_failure(exc, ClassifiedFailure(500, "plain", 500))
    records = [r for r in caplog.records if r.exc_info]
    assert records[0].exc_info[1] is exc


def test_status_and_message_logged_at_debug(caplog):
    with caplog.at_level(logging.DEBUG, logger="resource_server.handlers"):
        log_failure(RuntimeError("x"), ClassifiedFailure(404, "Not Found", 404), "10.0.0.1")
    assert "status code : 404 | message : Not Found | client : 10.0.0.1" in caplog.text


def test_configure_logging_sets_root_level_and_format():
    from resource_server.logging_config import LOG_FORMAT, configure_logging

    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        configure_logging("debug")
        assert root.level == logging.DEBUG
        assert root.handlers[0].formatter._fmt == LOG_FORMAT
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
