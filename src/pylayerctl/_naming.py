"""Display names for auto-detected layers."""

from __future__ import annotations

import re

_PREFIX_RE = re.compile(r"^(layer[-_]?|gl[-_]?)")
_SEPARATOR_RE = re.compile(r"[-_]")
_WORD_START_RE = re.compile(r"\b\w")


def friendly_name(layer_id: str) -> str:
    """Derive a display label from a layer ID.

    ``"layer-user_fill-1"`` becomes ``"User Fill 1"``. Falls back to the
    raw ID when nothing is left after stripping.
    """
    name = _PREFIX_RE.sub("", layer_id)
    name = _SEPARATOR_RE.sub(" ", name)
    name = _WORD_START_RE.sub(lambda match: match.group(0).upper(), name)
    return name.strip() or layer_id
