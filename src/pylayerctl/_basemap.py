"""One-shot fetch of the authoritative basemap style document."""

from __future__ import annotations

import json
import logging
from typing import Any

import aiohttp
from pydantic import ValidationError

from pylayerctl._redact import redact_url_for_log
from pylayerctl.exceptions import BasemapFetchError
from pylayerctl.models.style import BasemapStyle

_logger = logging.getLogger(__name__)

_ACCEPT = "application/json"


def parse_basemap_style(payload: Any, *, url: str = "") -> BasemapStyle:
    """Validate a decoded style document.

    Raises :class:`BasemapFetchError` if it is not an object with a
    ``layers`` list.
    """
    if not isinstance(payload, dict):
        raise BasemapFetchError("Basemap style is not a JSON object", url=url)
    if not isinstance(payload.get("layers"), list):
        raise BasemapFetchError("Basemap style has no 'layers' list", url=url)
    try:
        return BasemapStyle.model_validate(payload)
    except ValidationError as exc:
        raise BasemapFetchError(f"Invalid basemap style: {exc}", url=url) from exc


async def fetch_basemap_style(
    session: aiohttp.ClientSession,
    url: str,
    *,
    timeout: float,
) -> BasemapStyle:
    """GET and parse the basemap style at ``url``.

    Every failure (network, non-200, bad encoding, invalid JSON, wrong
    shape) is raised as :class:`BasemapFetchError`.
    """
    safe_url = redact_url_for_log(url)
    _logger.debug("GET %s", safe_url)

    try:
        async with session.get(
            url,
            headers={"accept": _ACCEPT},
            timeout=aiohttp.ClientTimeout(total=timeout),
        ) as resp:
            body = await resp.read()
            charset = resp.charset or "utf-8"
            if resp.status != 200:
                raise BasemapFetchError(
                    f"HTTP {resp.status} from {safe_url}",
                    url=url,
                    status_code=resp.status,
                )
    except BasemapFetchError:
        raise
    except (aiohttp.ClientError, TimeoutError) as exc:
        raise BasemapFetchError(f"Request to {safe_url} failed: {exc!r}", url=url) from exc

    try:
        text = body.decode(charset)
    except (UnicodeDecodeError, LookupError) as exc:
        raise BasemapFetchError(f"Invalid encoding from {safe_url}: {exc}", url=url) from exc

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise BasemapFetchError(f"Invalid JSON from {safe_url}: {text[:64]}", url=url) from exc

    return parse_basemap_style(payload, url=url)
