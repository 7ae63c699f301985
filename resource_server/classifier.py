"""
Exception classifier: maps any failure raised while handling a request to one (status, message) pair.

Framework failures are first normalised into resource_server.errors, then matched against an
ordered isinstance table. The table is closed: anything unmatched falls into REMAINDER (500).
"""
import enum
import logging
from dataclasses import dataclass
from typing import Any

import pydantic
from fastapi.exceptions import RequestValidationError, ResponseValidationError
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from resource_server.auth import bearer_token_failure_message
from resource_server.config import MAX_UPLOAD_SIZE
from resource_server.errors import (
    AsyncRequestTimeoutError,
    BadJwtError,
    BindError,
    ConstraintViolation,
    ConstraintViolationError,
    ConversionNotSupportedError,
    FieldError,
    HandlerMethodValidationError,
    MaxUploadSizeExceededError,
    MessageNotReadableError,
    MessageNotWritableError,
    MethodNotAllowedError,
    MethodValidationError,
    MissingParameterError,
    MissingPartError,
    MissingPathVariableError,
    NotAcceptableError,
    NotFoundError,
    ObjectError,
    RequestBindingError,
    ResourceServerError,
    TypeMismatchError,
    UnsupportedMediaTypeError,
)
from resource_server.messages import DEFAULT_EXCEPTION_MESSAGE, MessageSource, validation_key

logger = logging.getLogger(__name__)

TYPE_MISMATCH_CODE = "TypeMismatch"
BAD_REQUEST_PHRASE = "Bad Request"
INTERNAL_SERVER_ERROR_PHRASE = "Internal Server Error"

# Request locations whose scalar values are converted from strings
_SCALAR_LOCATIONS = ("query", "path", "header", "cookie")


class FailureCategory(enum.Enum):
    BIND = "bind"
    CONSTRAINT_VIOLATION = "constraint_violation"
    MESSAGE_NOT_READABLE = "message_not_readable"
    MISSING_PARAMETER = "missing_parameter"
    MISSING_PART = "missing_part"
    MISSING_PATH_VARIABLE = "missing_path_variable"
    REQUEST_BINDING = "request_binding"
    TYPE_MISMATCH = "type_mismatch"
    HANDLER_METHOD_VALIDATION = "handler_method_validation"
    BAD_JWT = "bad_jwt"
    NOT_FOUND = "not_found"
    METHOD_NOT_ALLOWED = "method_not_allowed"
    NOT_ACCEPTABLE = "not_acceptable"
    PAYLOAD_TOO_LARGE = "payload_too_large"
    UNSUPPORTED_MEDIA_TYPE = "unsupported_media_type"
    USER_DEFINED = "user_defined"
    CONVERSION_NOT_SUPPORTED = "conversion_not_supported"
    MESSAGE_NOT_WRITABLE = "message_not_writable"
    ILLEGAL_ARGUMENT = "illegal_argument"
    METHOD_VALIDATION = "method_validation"
    DATA_ACCESS = "data_access"
    ASYNC_TIMEOUT = "async_timeout"
    REMAINDER = "remainder"


# Most specific classes first: ConversionNotSupportedError is a TypeMismatchError,
# the Missing*Error classes are RequestBindingErrors, and ValueError must come last.
_CATEGORY_TABLE: tuple[tuple[type[BaseException], FailureCategory], ...] = (
    (BindError, FailureCategory.BIND),
    (ConstraintViolationError, FailureCategory.CONSTRAINT_VIOLATION),
    (MessageNotReadableError, FailureCategory.MESSAGE_NOT_READABLE),
    (MissingPathVariableError, FailureCategory.MISSING_PATH_VARIABLE),
    (MissingParameterError, FailureCategory.MISSING_PARAMETER),
    (MissingPartError, FailureCategory.MISSING_PART),
    (RequestBindingError, FailureCategory.REQUEST_BINDING),
    (ConversionNotSupportedError, FailureCategory.CONVERSION_NOT_SUPPORTED),
    (TypeMismatchError, FailureCategory.TYPE_MISMATCH),
    (HandlerMethodValidationError, FailureCategory.HANDLER_METHOD_VALIDATION),
    (BadJwtError, FailureCategory.BAD_JWT),
    (NotFoundError, FailureCategory.NOT_FOUND),
    (MethodNotAllowedError, FailureCategory.METHOD_NOT_ALLOWED),
    (NotAcceptableError, FailureCategory.NOT_ACCEPTABLE),
    (MaxUploadSizeExceededError, FailureCategory.PAYLOAD_TOO_LARGE),
    (UnsupportedMediaTypeError, FailureCategory.UNSUPPORTED_MEDIA_TYPE),
    (ResourceServerError, FailureCategory.USER_DEFINED),
    (MessageNotWritableError, FailureCategory.MESSAGE_NOT_WRITABLE),
    (MethodValidationError, FailureCategory.METHOD_VALIDATION),
    (SQLAlchemyError, FailureCategory.DATA_ACCESS),
    (AsyncRequestTimeoutError, FailureCategory.ASYNC_TIMEOUT),
    (TimeoutError, FailureCategory.ASYNC_TIMEOUT),
    (ValueError, FailureCategory.ILLEGAL_ARGUMENT),
)

_STATUS_BY_CATEGORY: dict[FailureCategory, int] = {
    FailureCategory.BIND: 400,
    FailureCategory.CONSTRAINT_VIOLATION: 400,
    FailureCategory.MESSAGE_NOT_READABLE: 400,
    FailureCategory.MISSING_PARAMETER: 400,
    FailureCategory.MISSING_PART: 400,
    FailureCategory.MISSING_PATH_VARIABLE: 400,
    FailureCategory.REQUEST_BINDING: 400,
    FailureCategory.TYPE_MISMATCH: 400,
    FailureCategory.HANDLER_METHOD_VALIDATION: 400,
    FailureCategory.BAD_JWT: 401,
    FailureCategory.NOT_FOUND: 404,
    FailureCategory.METHOD_NOT_ALLOWED: 405,
    FailureCategory.NOT_ACCEPTABLE: 406,
    FailureCategory.PAYLOAD_TOO_LARGE: 413,
    FailureCategory.UNSUPPORTED_MEDIA_TYPE: 415,
    FailureCategory.USER_DEFINED: 500,
    FailureCategory.CONVERSION_NOT_SUPPORTED: 500,
    FailureCategory.MESSAGE_NOT_WRITABLE: 500,
    FailureCategory.ILLEGAL_ARGUMENT: 500,
    FailureCategory.METHOD_VALIDATION: 500,
    FailureCategory.DATA_ACCESS: 500,
    FailureCategory.ASYNC_TIMEOUT: 503,
    FailureCategory.REMAINDER: 500,
}

_OWN_MESSAGE_CATEGORIES = frozenset({
    FailureCategory.NOT_FOUND,
    FailureCategory.METHOD_NOT_ALLOWED,
    FailureCategory.NOT_ACCEPTABLE,
    FailureCategory.UNSUPPORTED_MEDIA_TYPE,
    FailureCategory.USER_DEFINED,
})

_HTTP_EXCEPTION_TYPES: dict[int, type[Exception]] = {
    404: NotFoundError,
    405: MethodNotAllowedError,
    406: NotAcceptableError,
    415: UnsupportedMediaTypeError,
}


@dataclass(frozen=True)
class ClassifiedFailure:
    """
    Resolved outcome for one failure.
    reported_status drives log severity and error-attribute attachment; it only differs from
    status for the async timeout (sent as 503, reported as 500).
    """

    status: int
    message: str
    reported_status: int

    @property
    def is_server_error(self) -> bool:
        return self.reported_status == 500


def _python_type_name(error_type: str) -> str | None:
    # pydantic error types look like "int_parsing", "bool_type", "uuid_parsing"
    for suffix in ("_parsing", "_type"):
        if error_type.endswith(suffix):
            return error_type[: -len(suffix)]
    return None


def _field_error(error: dict) -> FieldError:
    loc = [str(part) for part in error.get("loc", ())]
    object_name = loc[0] if loc else "request"
    field = ".".join(loc[1:]) if len(loc) > 1 else object_name
    code = error.get("type") or "invalid"
    if _python_type_name(code) is not None:
        code = TYPE_MISMATCH_CODE
    return FieldError(
        object_name=object_name,
        codes=[f"{code}.{object_name}.{field}", f"{code}.{field}", code],
        arguments=(field, error.get("input")),
        default_message=error.get("msg"),
        field=field,
        rejected_value=error.get("input"),
        code=code,
    )


def from_request_validation_error(exc: RequestValidationError, content_type: str | None = None) -> Exception:
    """Translate FastAPI's request validation failure; the first reported error decides the class."""
    errors = list(exc.errors())
    if not errors:
        return BindError([])
    first = errors[0]
    error_type = first.get("type", "")
    loc = [str(part) for part in first.get("loc", ())]
    where = loc[0] if loc else ""
    name = loc[-1] if loc else ""

    if error_type == "json_invalid":
        return MessageNotReadableError(first.get("msg", "JSON decode error"))
    if error_type == "missing":
        if where == "query":
            return MissingParameterError(name, where)
        if where == "path":
            return MissingPathVariableError(name)
        if where in ("header", "cookie"):
            return RequestBindingError(f"Required {where} '{name}' is not present")
        if where == "body" and (content_type or "").lower().startswith("multipart/form-data"):
            return MissingPartError(name)
    if where in _SCALAR_LOCATIONS:
        required_type = _python_type_name(error_type)
        if required_type is not None:
            return TypeMismatchError(name, first.get("input"), required_type)
    return BindError([_field_error(e) for e in errors])


def normalize(exc: BaseException, content_type: str | None = None) -> BaseException:
    """Map framework exceptions onto the resource server taxonomy; other failures pass through."""
    if isinstance(exc, RequestValidationError):
        return from_request_validation_error(exc, content_type)
    if isinstance(exc, ResponseValidationError):
        return MessageNotWritableError(str(exc))
    if isinstance(exc, pydantic.ValidationError):
        return ConstraintViolationError(
            [ConstraintViolation(".".join(str(p) for p in e["loc"]), e["msg"]) for e in exc.errors()]
        )
    if isinstance(exc, StarletteHTTPException):
        # FastAPI wraps failures raised while reading the body in a 400
        if isinstance(exc.__cause__, MaxUploadSizeExceededError):
            return exc.__cause__
        if exc.status_code == 400:
            return MessageNotReadableError(str(exc.detail))
        if exc.status_code == 413:
            return MaxUploadSizeExceededError(MAX_UPLOAD_SIZE)
        translated = _HTTP_EXCEPTION_TYPES.get(exc.status_code)
        if translated is not None:
            return translated(str(exc.detail))
    return exc


def categorize(exc: BaseException) -> FailureCategory:
    for exc_type, category in _CATEGORY_TABLE:
        if isinstance(exc, exc_type):
            return category
    return FailureCategory.REMAINDER


def _own_message(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


class ExceptionClassifier:
    """Total function from a failure to a ClassifiedFailure."""

    def __init__(self, messages: MessageSource):
        self.messages = messages

    def classify(self, exc: BaseException, content_type: str | None = None) -> ClassifiedFailure:
        failure = normalize(exc, content_type)
        category = categorize(failure)
        status = _STATUS_BY_CATEGORY[category]
        try:
            message = self._message_for(category, failure)
        except Exception:
            logger.exception("Failed to build message for %s", type(failure).__name__)
            message = BAD_REQUEST_PHRASE if status == 400 else INTERNAL_SERVER_ERROR_PHRASE
        # Async timeout is sent as 503 but logged and attached as a 500
        reported = 500 if category is FailureCategory.ASYNC_TIMEOUT else status
        return ClassifiedFailure(status=status, message=message, reported_status=reported)

    def _message_for(self, category: FailureCategory, exc: Any) -> str:
        if category is FailureCategory.BIND:
            return self.bind_error_message(exc)
        if category is FailureCategory.CONSTRAINT_VIOLATION:
            if not exc.violations:
                return DEFAULT_EXCEPTION_MESSAGE
            first = exc.violations[0]
            return f"{first.property_path} {first.message}"
        if category is FailureCategory.MESSAGE_NOT_READABLE:
            return "Failed to read request"
        if category is FailureCategory.MISSING_PARAMETER:
            return self.validation_message(type(exc).__name__, exc.parameter_type, exc.parameter_name)
        if category is FailureCategory.MISSING_PART:
            return self.validation_message(type(exc).__name__, exc.part_name)
        if category is FailureCategory.MISSING_PATH_VARIABLE:
            return f"URI path variable {exc.variable_name} is not present"
        if category is FailureCategory.REQUEST_BINDING:
            return "Unrecoverable fatal binding exception occurred"
        if category in (FailureCategory.TYPE_MISMATCH, FailureCategory.CONVERSION_NOT_SUPPORTED):
            return self.validation_message(type(exc).__name__, exc.required_type, exc.name, exc.value)
        if category is FailureCategory.HANDLER_METHOD_VALIDATION:
            return BAD_REQUEST_PHRASE
        if category is FailureCategory.BAD_JWT:
            return bearer_token_failure_message(exc)
        if category is FailureCategory.PAYLOAD_TOO_LARGE:
            return f"Maximum upload size exceeded ({exc.max_upload_size})"
        if category in _OWN_MESSAGE_CATEGORIES:
            return _own_message(exc)
        if category is FailureCategory.MESSAGE_NOT_WRITABLE:
            return "Failed to write request"
        if category is FailureCategory.METHOD_VALIDATION:
            return "Method validation failed"
        if category is FailureCategory.ASYNC_TIMEOUT:
            return "Asynchronous request time out"
        # illegal argument, data access and remainder never leak the exception text
        return INTERNAL_SERVER_ERROR_PHRASE

    def validation_message(self, name: str, *args: Any) -> str:
        return self.messages.resolve(validation_key(name), args, DEFAULT_EXCEPTION_MESSAGE)

    def bind_error_message(self, exc: BindError) -> str:
        if not exc.errors:
            return DEFAULT_EXCEPTION_MESSAGE
        error: ObjectError = exc.errors[0]
        for code in error.codes:
            resolved = self.messages.resolve(code, error.arguments, "")
            if resolved.strip():
                return resolved
        if isinstance(error, FieldError):
            return self._field_error_message(error)
        return error.default_message or DEFAULT_EXCEPTION_MESSAGE

    def _field_error_message(self, error: FieldError) -> str:
        if (error.code or "").lower() == TYPE_MISMATCH_CODE.lower():
            return self.validation_message(TYPE_MISMATCH_CODE, error.field, str(error.rejected_value))
        if error.default_message:
            return f"{error.field}: {error.default_message}"
        return DEFAULT_EXCEPTION_MESSAGE
