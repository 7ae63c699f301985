"""
Pytest configuration for resource_server. In-memory SQLite so tests don't touch the filesystem,
and one throwaway RSA key pair for the whole session.
"""
import os

# In-memory SQLite; database.py uses StaticPool so all connections share the same DB
os.environ["RESOURCE_DATABASE_URL"] = "sqlite:///:memory:"
os.environ.pop("RESOURCE_MAX_UPLOAD_SIZE", None)
os.environ.pop("RESOURCE_MESSAGES_PATH", None)

import pytest
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives.asymmetric.rsa import generate_private_key

from resource_server import auth as auth_module


@pytest.fixture(scope="session")
def signing_key():
    return generate_private_key(65537, 2048, default_backend())


@pytest.fixture(autouse=True)
def public_key(signing_key):
    """Verify tokens against the session key instead of reading a key file."""
    auth_module._public_key = signing_key.public_key()
    yield signing_key.public_key()
    auth_module._public_key = None
