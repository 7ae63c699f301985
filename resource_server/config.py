"""
Resource server configuration.
Everything here can be overridden from the environment; the RSA public key itself lives on disk.
"""
import os
from pathlib import Path

# RSA public key (PEM or bare base64 X.509 DER) used to verify bearer tokens
RSA_PUBLIC_KEY_PATH = os.environ.get("RESOURCE_RSA_PUBLIC_KEY_PATH", "public_key.pem")

# Clock skew tolerated when checking exp / nbf (seconds)
JWT_CLOCK_SKEW_SECONDS = int(os.environ.get("RESOURCE_JWT_CLOCK_SKEW_SECONDS", "60"))

# SQLite for development; any SQLAlchemy URL works
DATABASE_URL = os.environ.get("RESOURCE_DATABASE_URL", "sqlite:///./resource_server.db")

# Request bodies larger than this are rejected with 413 (default 10MB)
MAX_UPLOAD_SIZE = int(os.environ.get("RESOURCE_MAX_UPLOAD_SIZE", str(10 * 1024 * 1024)))

# Localized validation messages
MESSAGES_PATH = os.environ.get(
    "RESOURCE_MESSAGES_PATH", str(Path(__file__).resolve().parent / "messages.json")
)
MESSAGE_NAMESPACE = "resource_server"

LOG_LEVEL = os.environ.get("RESOURCE_LOG_LEVEL", "INFO")

HOST = os.environ.get("RESOURCE_HOST", "127.0.0.1")
PORT = int(os.environ.get("RESOURCE_PORT", "7000"))

# Scopes required by protected routes; token scopes become SCOPE_<scope> authorities
SCOPE_READ = "resource:read"
SCOPE_ADMIN = "ADMIN"
