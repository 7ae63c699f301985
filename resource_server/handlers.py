"""
Outermost request-failure boundary.

Every failure raised while handling a request ends up here, either through the FastAPI exception
handlers (HTTPException, RequestValidationError) or through ExceptionTranslationMiddleware for
everything else. Each one is classified once, logged, and answered with the error envelope.
"""
import logging

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.requests import Request
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from resource_server.classifier import ClassifiedFailure, ExceptionClassifier
from resource_server.client_address import get_client_address
from resource_server.envelope import BaseRes
from resource_server.errors import ResourceServerError
from resource_server.messages import get_message_source

logger = logging.getLogger(__name__)

# request.state attribute holding the failure behind a 500, for error-page rendering further out
ERROR_EXCEPTION_ATTRIBUTE = "error_exception"

_classifier: ExceptionClassifier | None = None


def get_classifier() -> ExceptionClassifier:
    global _classifier
    if _classifier is None:
        _classifier = ExceptionClassifier(get_message_source())
    return _classifier


def log_failure(exc: BaseException, failure: ClassifiedFailure, client: str | None = None) -> None:
    """400 at debug, other 4xx at info, the rest at warning (the cause, for wrapped application failures)."""
    logger.debug("status code : %s | message : %s | client : %s", failure.status, failure.message, client)
    status = failure.reported_status
    if status == 400:
        logger.debug("Request failed: %s", type(exc).__name__, exc_info=exc)
    elif 400 <= status < 500:
        logger.info("Request failed: %s", type(exc).__name__, exc_info=exc)
    elif isinstance(exc, ResourceServerError) and exc.__cause__ is not None:
        logger.warning("Request failed: %s", type(exc.__cause__).__name__, exc_info=exc.__cause__)
    else:
        logger.warning("Request failed: %s", type(exc).__name__, exc_info=exc)


def record_failure(request: Request, exc: BaseException, classifier: ExceptionClassifier | None = None) -> ClassifiedFailure:
    """Classify and log one failure; a server error is also attached to the request state."""
    classifier = classifier or get_classifier()
    failure = classifier.classify(exc, request.headers.get("content-type"))
    log_failure(exc, failure, get_client_address(request))
    if failure.is_server_error:
        setattr(request.state, ERROR_EXCEPTION_ATTRIBUTE, exc)
    return failure


def error_response(request: Request, exc: BaseException, classifier: ExceptionClassifier | None = None) -> JSONResponse:
    """Classify, log and build the envelope response for one failure."""
    failure = record_failure(request, exc, classifier)
    headers = getattr(exc, "headers", None) if isinstance(exc, StarletteHTTPException) else None
    return JSONResponse(
        status_code=failure.status,
        content=BaseRes.from_message(failure.message).model_dump(),
        headers=headers,
    )


async def translate_exception(request: Request, exc: Exception) -> JSONResponse:
    return error_response(request, exc)


def register_exception_handlers(app: FastAPI) -> None:
    """Route FastAPI's own HTTP / validation failures through the classifier."""
    app.add_exception_handler(StarletteHTTPException, translate_exception)
    app.add_exception_handler(RequestValidationError, translate_exception)


class ExceptionTranslationMiddleware:
    """
    Catches whatever the exception handlers did not turn into a response.
    If the response has already started, the failure is still classified and logged but nothing
    more is written; the server's own handling of the broken response takes over.
    """

    def __init__(self, app: ASGIApp, classifier: ExceptionClassifier | None = None):
        self.app = app
        self.classifier = classifier

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def send_wrapper(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as exc:
            request = Request(scope, receive)
            if response_started:
                record_failure(request, exc, self.classifier)
                logger.warning("Response already committed. Ignoring : %s.%s", type(exc).__module__, type(exc).__qualname__)
                return
            response = error_response(request, exc, self.classifier)
            await response(scope, receive, send)
