"""Helpers for interpreting cache service responses.

Error bodies come from two different backends: the cache service itself
answers with JSON (``{"message": ...}``) while the blob store behind archive
locations answers with XML (``<Error><Message>...</Message></Error>``).  The
extractors below are tried in order and fall back to the raw body.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable, Optional, Sequence, Tuple

import httpx

from .errors import ContentTypeMismatch, ProtocolError

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"
XML_CONTENT_TYPE = "application/xml"
OCTET_STREAM_CONTENT_TYPE = "application/octet-stream"

_XML_MESSAGE_PATTERN = re.compile(r"<Message>(.*?)</Message>", re.DOTALL)

ContentTypePredicate = Callable[[str], bool]
MessageExtractor = Callable[[str], Optional[str]]


def _json_message(body: str) -> Optional[str]:
    try:
        data = json.loads(body)
    except ValueError:
        return None
    if isinstance(data, dict) and "message" in data:
        return str(data["message"])
    return None


def _xml_message(body: str) -> Optional[str]:
    match = _XML_MESSAGE_PATTERN.search(body)
    return match.group(1) if match else None


ERROR_MESSAGE_EXTRACTORS: Sequence[Tuple[ContentTypePredicate, MessageExtractor]] = (
    (lambda content_type: JSON_CONTENT_TYPE in content_type, _json_message),
    (lambda content_type: XML_CONTENT_TYPE in content_type, _xml_message),
)


def content_type_of(response: httpx.Response) -> Optional[str]:
    return response.headers.get("content-type")


def assert_content_type(response: httpx.Response, expected: str) -> None:
    """Raise :class:`ContentTypeMismatch` unless ``response`` declares ``expected``."""

    actual = content_type_of(response)
    if actual is None or expected not in actual:
        raise ContentTypeMismatch(expected, actual)


async def drain(response: httpx.Response) -> None:
    """Consume and discard the remaining body of a response.

    ``aread`` is a no-op on bodies that are already loaded, so this is safe
    for both network streams and preloaded responses.
    """

    await response.aread()


async def read_json(response: httpx.Response) -> Any:
    """Read a streamed response body that must be JSON."""

    assert_content_type(response, JSON_CONTENT_TYPE)
    body = await response.aread()
    return json.loads(body)


def error_message(status_code: int, content_type: Optional[str], body: str) -> str:
    """Pick the most specific message available in an error body."""

    if content_type:
        for matches, extract in ERROR_MESSAGE_EXTRACTORS:
            if matches(content_type):
                message = extract(body)
                if message is not None:
                    return f"{message} ({status_code})"
    return f"{body} ({status_code})"


async def read_error(response: httpx.Response) -> ProtocolError:
    """Read an unexpected response and turn it into a :class:`ProtocolError`."""

    body = (await response.aread()).decode("utf-8", errors="replace")
    message = error_message(response.status_code, content_type_of(response), body)
    logger.debug(
        "cache service returned an unexpected status",
        extra={
            "status_code": response.status_code,
            "method": response.request.method,
            "url": str(response.request.url),
        },
    )
    return ProtocolError(message, status_code=response.status_code)


__all__ = [
    "JSON_CONTENT_TYPE",
    "XML_CONTENT_TYPE",
    "OCTET_STREAM_CONTENT_TYPE",
    "ERROR_MESSAGE_EXTRACTORS",
    "assert_content_type",
    "drain",
    "read_json",
    "error_message",
    "read_error",
]
