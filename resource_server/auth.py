"""
Bearer JWT validation for the resource server.
Tokens are verified against a single configured RSA public key; no OAuth flows here.
Authentication / authorization failures are answered here and never reach the exception classifier.
"""
import base64
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Annotated

import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPublicKey
from fastapi import Depends, FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from resource_server.config import JWT_CLOCK_SKEW_SECONDS, RSA_PUBLIC_KEY_PATH, SCOPE_ADMIN, SCOPE_READ
from resource_server.envelope import BaseRes
from resource_server.errors import (
    AccessDeniedError,
    AuthenticationFailure,
    BadJwtError,
    InsufficientAuthenticationError,
    JwtIssue,
    JwtValidationError,
)

logger = logging.getLogger(__name__)

INVALID_TOKEN = "invalid_token"
ACCESS_DENIED_MESSAGE = "Access Denied"
AUTHORITY_PREFIX = "SCOPE_"


def load_public_key(path: str | Path) -> RSAPublicKey:
    """Load an RSA public key from a PEM file or from bare base64 of the X.509 DER bytes."""
    raw = Path(path).read_bytes()
    if raw.lstrip().startswith(b"-----BEGIN"):
        key = serialization.load_pem_public_key(raw)
    else:
        key = serialization.load_der_public_key(base64.b64decode(b"".join(raw.split())))
    if not isinstance(key, RSAPublicKey):
        raise ValueError(f"Not an RSA public key: {path}")
    return key


# Loaded on first use (or at startup); tests may set this directly
_public_key: RSAPublicKey | None = None


def get_public_key() -> RSAPublicKey:
    global _public_key
    if _public_key is None:
        _public_key = load_public_key(RSA_PUBLIC_KEY_PATH)
        logger.info("Loaded RSA public key from %s", RSA_PUBLIC_KEY_PATH)
    return _public_key


def _format_instant(value) -> str:
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
    except (TypeError, ValueError, OverflowError):
        return str(value)


def _unverified_claims(token: str) -> dict:
    try:
        return jwt.decode(token, options={"verify_signature": False})
    except jwt.InvalidTokenError:
        return {}


def decode_token(token: str) -> dict:
    """
    Verify the RS256 signature and the exp / nbf timestamps.
    Returns decoded claims. Raises JwtValidationError for rejected timestamps, BadJwtError otherwise.
    """
    try:
        return jwt.decode(
            token,
            get_public_key(),
            algorithms=["RS256"],
            leeway=JWT_CLOCK_SKEW_SECONDS,
            options={"verify_aud": False, "verify_iss": False},
        )
    except jwt.ExpiredSignatureError as e:
        # Signature is checked before claims, so reading the payload here is safe
        exp = _unverified_claims(token).get("exp")
        issue = JwtIssue(INVALID_TOKEN, f"Jwt expired at {_format_instant(exp)}")
        raise JwtValidationError(f"An error occurred while attempting to decode the Jwt: {issue.description}", [issue]) from e
    except jwt.ImmatureSignatureError as e:
        claims = _unverified_claims(token)
        nbf = claims.get("nbf", claims.get("iat"))
        issue = JwtIssue(INVALID_TOKEN, f"Jwt used before {_format_instant(nbf)}")
        raise JwtValidationError(f"An error occurred while attempting to decode the Jwt: {issue.description}", [issue]) from e
    except jwt.InvalidTokenError as e:
        raise BadJwtError(f"An error occurred while attempting to decode the Jwt: {e}") from e


def bearer_token_failure_message(cause: BaseException | None) -> str:
    """Diagnostic for a failed bearer authentication: first validation error if there is one."""
    if isinstance(cause, JwtValidationError):
        if not cause.errors:
            return "Invalid Jwt"
        first = cause.errors[0]
        return f"{first.error_code} : {first.description or ''}"
    return "Invalid Bearer Token"


security = HTTPBearer(auto_error=False)


def get_bearer_token(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> str:
    """Extract the Bearer token from the Authorization header."""
    if credentials is None:
        raise InsufficientAuthenticationError("Full authentication is required to access this resource")
    return credentials.credentials


def get_claims(
    token: Annotated[str, Depends(get_bearer_token)],
) -> dict:
    """Dependency: valid Bearer token -> decoded claims."""
    try:
        return decode_token(token)
    except BadJwtError as e:
        raise AuthenticationFailure(str(e)) from e


def get_authorities(claims: dict) -> set[str]:
    """Granted authorities from the scope (space separated) or scp (list) claim."""
    value = claims.get("scope")
    if value is None:
        value = claims.get("scp")
    if value is None:
        return set()
    if isinstance(value, (list, tuple)):
        scopes = [str(s) for s in value]
    else:
        scopes = str(value).split()
    return {AUTHORITY_PREFIX + s for s in scopes}


def require_authority(authority: str):
    """Dependency factory: require the given authority in the access token."""

    def _check(claims: Annotated[dict, Depends(get_claims)]) -> dict:
        if authority not in get_authorities(claims):
            raise AccessDeniedError(f"Authority '{authority}' required")
        return claims

    return Depends(_check)


RequireRead = require_authority(AUTHORITY_PREFIX + SCOPE_READ)
RequireAdmin = require_authority(AUTHORITY_PREFIX + SCOPE_ADMIN)


def send_json_error_response(status_code: int = status.HTTP_403_FORBIDDEN, message: str = ACCESS_DENIED_MESSAGE) -> JSONResponse:
    """Write the error envelope for an authentication / authorization failure."""
    return JSONResponse(status_code=status_code, content=BaseRes.from_message(message).model_dump())


async def bearer_token_entry_point(request: Request, exc: AuthenticationFailure) -> JSONResponse:
    logger.debug("Bearer token rejected", exc_info=exc)
    return send_json_error_response(status.HTTP_401_UNAUTHORIZED, bearer_token_failure_message(exc.__cause__))


async def forbidden_entry_point(request: Request, exc: InsufficientAuthenticationError) -> JSONResponse:
    logger.debug("pre-authenticated entry point called. rejecting access", exc_info=exc)
    return send_json_error_response()


async def access_denied_handler(request: Request, exc: AccessDeniedError) -> JSONResponse:
    logger.debug("access denied", exc_info=exc)
    return send_json_error_response()


def register_security_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AuthenticationFailure, bearer_token_entry_point)
    app.add_exception_handler(InsufficientAuthenticationError, forbidden_entry_point)
    app.add_exception_handler(AccessDeniedError, access_denied_handler)
