"""Header merging and validation."""

import re
from collections.abc import Mapping

from src.features.errors import InvalidHeaderError


# RFC 7230 token characters
_TOKEN = re.compile(r"^[\^_`a-zA-Z\-0-9!#$%&'*+.|~]+$")

# Anything but HTAB, visible ASCII, space and obs-text
_INVALID_VALUE_CHAR = re.compile(r"[^\t\x20-\x7e\x80-\xff]")


def is_token(name: str) -> bool:
    """Check if a header name is a well-formed token."""
    return bool(_TOKEN.fullmatch(name))


def has_invalid_value_chars(value: str) -> bool:
    """Check if a header value contains control characters."""
    return bool(_INVALID_VALUE_CHAR.search(value))


def find_header(headers: Mapping[str, str], name: str) -> str | None:
    """Find a header name case-insensitively.

    Args:
        headers: Headers to search.
        name: Header name.

    Returns:
        The key as spelled in the mapping, or None.
    """
    lowered = name.lower()
    for key in headers:
        if key.lower() == lowered:
            return key
    return None


def merge_headers(
    defaults: Mapping[str, str], overrides: Mapping[str, str]
) -> dict[str, str]:
    """Merge default headers under request headers.

    A default is skipped when the request sets the same header under any
    spelling.

    Args:
        defaults: Client default headers.
        overrides: Request headers (win on conflict).

    Returns:
        Merged headers, defaults first.
    """
    merged: dict[str, str] = {}
    for key, value in defaults.items():
        if find_header(overrides, key) is None:
            merged[key] = value
    merged.update(overrides)
    return merged


def set_default_header(headers: dict[str, str], name: str, value: str) -> None:
    """Set a header unless it is already present under any spelling."""
    if find_header(headers, name) is None:
        headers[name] = value


def replace_header(headers: dict[str, str], name: str, value: str) -> None:
    """Set a header, replacing any existing spelling of it."""
    existing = find_header(headers, name)
    if existing is not None:
        del headers[existing]
    headers[name] = value


def validate_headers(headers: Mapping[str, object]) -> dict[str, str]:
    """Validate header names and values.

    Args:
        headers: Headers to validate; values are converted to str.

    Returns:
        Headers with string values.

    Raises:
        InvalidHeaderError: If a name is not a token or a value contains
            control characters.
    """
    validated: dict[str, str] = {}
    for name, raw_value in headers.items():
        if not is_token(name):
            raise InvalidHeaderError(f"Invalid characters in header name: {name!r}", name)
        value = str(raw_value)
        if has_invalid_value_chars(value):
            raise InvalidHeaderError(
                f"Invalid characters in header value: {name}: {value!r}", name
            )
        validated[name] = value
    return validated
