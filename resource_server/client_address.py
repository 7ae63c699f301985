"""
Client address resolution behind proxies / load balancers.
"""
from starlette.requests import Request

# Checked in order; first usable value wins
FORWARDED_HEADER_CANDIDATES = (
    "X-Forwarded-For",
    "Proxy-Client-IP",
    "WL-Proxy-Client-IP",
    "HTTP_CLIENT_IP",
    "HTTP_X_FORWARDED_FOR",
    "X-Real-IP",
)


def _first_entry(value: str) -> str:
    return value.split(",")[0].strip() if "," in value else value.strip()


def get_client_address(request: Request | None) -> str | None:
    """Forwarded client address if a proxy header carries one, else the socket peer."""
    if request is None:
        return None
    for header in FORWARDED_HEADER_CANDIDATES:
        value = (request.headers.get(header) or "").strip()
        if value and value != "unknown":
            return _first_entry(value)
    if request.client is None:
        return None
    return getattr(request.client, "host", None)
