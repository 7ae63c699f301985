"""
Failure taxonomy for the resource server.
Framework failures (FastAPI / Starlette / SQLAlchemy) are normalised into these classes
by resource_server.classifier before a status and message are chosen.
"""
from dataclasses import dataclass, field
from typing import Any


class ResourceServerError(Exception):
    """User-defined application failure. Use `raise ResourceServerError(...) from cause` to keep the cause."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


# --- Request binding (400) ---


@dataclass
class ObjectError:
    """A binding error not tied to a single field."""

    object_name: str
    codes: list[str] = field(default_factory=list)
    arguments: tuple[Any, ...] = ()
    default_message: str | None = None


@dataclass
class FieldError(ObjectError):
    """A binding error for one field; `code` is the bare error code (e.g. TypeMismatch)."""

    field: str = ""
    rejected_value: Any = None
    code: str | None = None


class BindError(Exception):
    def __init__(self, errors: list[ObjectError]):
        super().__init__(f"{len(errors)} binding error(s)")
        self.errors = errors


@dataclass
class ConstraintViolation:
    property_path: str
    message: str


class ConstraintViolationError(Exception):
    def __init__(self, violations: list[ConstraintViolation]):
        super().__init__("; ".join(f"{v.property_path}: {v.message}" for v in violations))
        self.violations = violations


class MessageNotReadableError(Exception):
    """Request body could not be parsed (e.g. malformed JSON)."""


class RequestBindingError(Exception):
    """Generic, unrecoverable failure binding request values (headers, cookies, ...)."""


class MissingParameterError(RequestBindingError):
    def __init__(self, parameter_name: str, parameter_type: str):
        super().__init__(f"Required request parameter '{parameter_name}' for method parameter type {parameter_type} is not present")
        self.parameter_name = parameter_name
        self.parameter_type = parameter_type


class MissingPathVariableError(RequestBindingError):
    def __init__(self, variable_name: str):
        super().__init__(f"Required URI template variable '{variable_name}' is not present")
        self.variable_name = variable_name


class MissingPartError(Exception):
    def __init__(self, part_name: str):
        super().__init__(f"Required part '{part_name}' is not present.")
        self.part_name = part_name


class TypeMismatchError(Exception):
    def __init__(self, name: str, value: Any, required_type: str | None):
        super().__init__(f"Failed to convert value of type '{type(value).__name__}' to required type '{required_type}'")
        self.name = name
        self.value = value
        self.required_type = required_type


class ConversionNotSupportedError(TypeMismatchError):
    """No converter exists for the requested type. Classified as a server failure."""


class HandlerMethodValidationError(Exception):
    """Validation of an endpoint's arguments failed."""


# --- Authentication (401) ---


@dataclass(frozen=True)
class JwtIssue:
    error_code: str
    description: str | None = None


class BadJwtError(Exception):
    """The bearer token could not be decoded or verified."""


class JwtValidationError(BadJwtError):
    """The token decoded fine but one or more claim validators rejected it."""

    def __init__(self, message: str, errors: list[JwtIssue]):
        super().__init__(message)
        self.errors = errors


class AuthenticationFailure(Exception):
    """Raised by the auth dependencies; `__cause__` holds the decoding failure, if any."""


class InsufficientAuthenticationError(AuthenticationFailure):
    """No bearer credentials were presented for a protected route."""


class AccessDeniedError(Exception):
    """Authenticated, but the token lacks the required authority."""


# --- Routing / content negotiation (4xx) ---


class NotFoundError(Exception):
    pass


class MethodNotAllowedError(Exception):
    pass


class NotAcceptableError(Exception):
    pass


class MaxUploadSizeExceededError(Exception):
    def __init__(self, max_upload_size: int):
        super().__init__(f"Maximum upload size of {max_upload_size} bytes exceeded")
        self.max_upload_size = max_upload_size


class UnsupportedMediaTypeError(Exception):
    pass


# --- Server side (5xx) ---


class MessageNotWritableError(Exception):
    """The response body could not be serialized."""


class MethodValidationError(Exception):
    """Validation of a service method's return value failed."""


class AsyncRequestTimeoutError(Exception):
    """The host signalled that an asynchronous request has timed out."""
