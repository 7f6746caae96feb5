"""Turning service errors into user-facing messages."""

import re
from typing import Any, Iterable
from urllib.parse import urlsplit

from ledgersync.config.settings import get_settings
from ledgersync.core.exceptions import AppError, RemoteValidationError

GENERIC_ERROR = "An error occurred"
UNEXPECTED_ERROR = "An unexpected error occurred"
EMPTY_AFTER_CLEANUP = "An error occurred. Please try again."

_URL = re.compile(r"https?://\S+")
_LOCALHOST = re.compile(r"localhost\S*", re.IGNORECASE)
_LOOPBACK = re.compile(r"127\.0\.0\.1\S*")
# host:port where the host part holds at least one letter
_HOST_PORT = re.compile(r"\b(?=[\w.-]*[A-Za-z])[\w.-]+:\d+\S*")
_PORT = re.compile(r":\d+\S*")
_WHITESPACE = re.compile(r"\s+")


def strip_endpoints(message: str, hosts: Iterable[str] = ()) -> str:
    """
    Remove URLs, localhost/loopback references, host:port pairs and :port
    fragments, plus bare mentions of any of the given host names.
    """
    message = _URL.sub("", message)
    message = _LOCALHOST.sub("", message)
    message = _LOOPBACK.sub("", message)
    message = _HOST_PORT.sub("", message)
    message = _PORT.sub("", message)
    for host in hosts:
        if host:
            pattern = rf"(?<![\w.-]){re.escape(host)}(?![\w-])"
            message = re.sub(pattern, "", message, flags=re.IGNORECASE)
    return _WHITESPACE.sub(" ", message).strip()


def _first_value(body: dict) -> Any:
    for value in body.values():
        if isinstance(value, (list, tuple)):
            return value[0] if value else None
        return value
    return None


def message_from_body(body: Any) -> str:
    """
    Pick the most useful message out of a decoded error body.

    Prefers a top-level "message" or "error", then the first value of a
    field-keyed validation map (first element if that value is a list).
    """
    if isinstance(body, dict):
        picked = body.get("message") or body.get("error") or _first_value(body)
        return str(picked) if picked else GENERIC_ERROR
    if isinstance(body, str):
        return body
    return ""


def join_field_errors(body: Any) -> str:
    """Join every non-empty value of a field-keyed map with ", "."""
    if not isinstance(body, dict):
        return ""
    parts = []
    for value in body.values():
        if isinstance(value, (list, tuple)):
            parts.extend(str(v) for v in value if v)
        elif value:
            parts.append(str(value))
    return ", ".join(parts)


def extract_error_message(error: Any) -> str:
    """
    Convert any transport/validation error into a readable string.

    Endpoint text (scheme, host, port) never survives into the result.
    """
    message = ""
    if isinstance(error, RemoteValidationError) and error.body is not None:
        message = message_from_body(error.body)
    if not message:
        if isinstance(error, AppError):
            message = error.message
        elif isinstance(error, BaseException):
            message = str(error)
        elif isinstance(error, str):
            message = error
    if not message:
        message = UNEXPECTED_ERROR

    return strip_endpoints(message, configured_hosts()) or EMPTY_AFTER_CLEANUP


def configured_hosts() -> list[str]:
    """Host name of the configured API base URL."""
    host = urlsplit(get_settings().api_base_url).hostname
    return [host] if host else []
