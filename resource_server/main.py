"""
Resource Server (protected API).
Bearer JWTs verified against a configured RSA public key; two read-only resources backed by SQL tables.
Every failure is answered with the {code, message, data} envelope.
"""
import logging
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import APIRouter, Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from resource_server.auth import RequireAdmin, RequireRead, get_public_key, register_security_handlers
from resource_server.config import HOST, LOG_LEVEL, MAX_UPLOAD_SIZE, PORT
from resource_server.database import init_db
from resource_server.envelope import BaseRes
from resource_server.handlers import ExceptionTranslationMiddleware, register_exception_handlers
from resource_server.logging_config import configure_logging
from resource_server.messages import get_message_source
from resource_server.middleware import SecurityHeadersMiddleware, UploadLimitMiddleware
from resource_server.service import ResourceService, get_resource_service

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables, load the verification key and message table on startup."""
    init_db()
    get_public_key()
    get_message_source()
    logger.info("Resource server started")
    yield


router = APIRouter(prefix="/rest/v1/resource", tags=["resource"])


@router.get("/public", response_model=BaseRes[list[str]])
def retrieve_public_info(
    service: Annotated[ResourceService, Depends(get_resource_service)],
    claims: dict = RequireRead,
):
    """Requires authority SCOPE_resource:read."""
    return BaseRes.success(service.retrieve_public_info())


@router.get("/secret", response_model=BaseRes[list[str]])
def retrieve_secret_info(
    service: Annotated[ResourceService, Depends(get_resource_service)],
    claims: dict = RequireAdmin,
):
    """Requires authority SCOPE_ADMIN."""
    return BaseRes.success(service.retrieve_secret_info())


def configure_app(app: FastAPI, max_upload_size: int = MAX_UPLOAD_SIZE) -> FastAPI:
    """Install failure handling and the HTTP middleware stack on an application."""
    register_security_handlers(app)
    register_exception_handlers(app)
    # Added innermost first: CORS and security headers also wrap translated error responses
    app.add_middleware(UploadLimitMiddleware, max_upload_size=max_upload_size)
    app.add_middleware(ExceptionTranslationMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])
    return app


app = FastAPI(title="Resource Server", version="1.0.0", lifespan=lifespan)
app.include_router(router)
configure_app(app)


@app.get("/health")
def health():
    """Health check endpoint."""
    return {"status": "ok", "service": "resource_server"}


if __name__ == "__main__":
    import uvicorn

    configure_logging(LOG_LEVEL)
    uvicorn.run(
        "resource_server.main:app",
        host=HOST,
        port=PORT,
        log_level=LOG_LEVEL.lower(),
    )
