"""
Localized message lookup for validation failures.
Templates use positional placeholders ({0}, {1}, ...) and are loaded once from a JSON file.
"""
import json
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

from resource_server.config import MESSAGE_NAMESPACE, MESSAGES_PATH

logger = logging.getLogger(__name__)

DEFAULT_EXCEPTION_MESSAGE = "Invalid Parameters Found"


def validation_key(name: str) -> str:
    """Key of the validation message for the given exception (or error code) name."""
    return f"{MESSAGE_NAMESPACE}.validation.exceptions.{name}.message"


class MessageSource:
    """Read-only key -> template table; safe to share between requests."""

    def __init__(self, templates: Mapping[str, str]):
        self._templates = MappingProxyType(dict(templates))

    @classmethod
    def from_file(cls, path: str | Path) -> "MessageSource":
        p = Path(path)
        with p.open(encoding="utf-8") as fh:
            raw = json.load(fh)
        if not isinstance(raw, dict):
            raise ValueError(f"Message file must contain a JSON object: {p}")
        logger.debug("Loaded %d message templates from %s", len(raw), p)
        return cls({str(k): str(v) for k, v in raw.items()})

    def resolve(self, key: str, args: tuple[Any, ...] | list[Any] | None = None, default: str = "") -> str:
        template = self._templates.get(key)
        if template is None:
            return default
        try:
            return template.format(*(args or ()))
        except (IndexError, KeyError, ValueError) as e:
            logger.debug("Could not format message %s: %s", key, e)
            return template


_message_source: MessageSource | None = None


def get_message_source() -> MessageSource:
    global _message_source
    if _message_source is None:
        _message_source = MessageSource.from_file(MESSAGES_PATH)
    return _message_source
