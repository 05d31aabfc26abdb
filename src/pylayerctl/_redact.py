"""Helpers for safe debug logging.

Basemap style and tile URLs routinely carry provider API keys
(``?key=`` for MapTiler, ``access_token=`` for Mapbox, ...). This module
redacts them before URLs reach log output.
"""

from __future__ import annotations

from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

_SENSITIVE_QUERY_KEYS: frozenset[str] = frozenset(
    {
        "key",
        "api_key",
        "apikey",
        "access_token",
        "accesstoken",
        "token",
        "sig",
        "signature",
        "secret",
    }
)


def redact_url_for_log(url: str | None, *, max_length: int = 256) -> str:
    """Return ``url`` with sensitive query values and credentials masked."""
    if not url:
        return ""
    try:
        parts = urlsplit(url)
    except ValueError:
        return "<unparsable-url>"

    netloc = parts.netloc
    if "@" in netloc:
        netloc = "<redacted>@" + netloc.rsplit("@", 1)[1]

    query = parts.query
    if query:
        pairs = parse_qsl(query, keep_blank_values=True)
        query = urlencode(
            [(k, "<redacted>" if k.lower() in _SENSITIVE_QUERY_KEYS else v) for k, v in pairs],
            safe="<>{}",
        )

    redacted = urlunsplit((parts.scheme, netloc, parts.path, query, parts.fragment))
    if len(redacted) > max_length:
        return f"{redacted[:max_length]}…<truncated>"
    return redacted
