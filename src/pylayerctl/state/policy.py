"""Deterministic derivation rules for the Background aggregate.

This module intentionally contains no store access; it maps member
entries to the aggregate's read-only views.
"""

from __future__ import annotations

import math
from collections.abc import Iterable

from pylayerctl.models.layer import LayerEntry


def clamp_opacity(value: float) -> float:
    """Clamp to ``[0, 1]``; NaN becomes fully opaque."""
    opacity = float(value)
    if math.isnan(opacity):
        return 1.0
    return min(1.0, max(0.0, opacity))


def aggregate_visibility(members: Iterable[LayerEntry]) -> tuple[bool, bool]:
    """Return ``(visible, indeterminate)`` for a set of Background members.

    Visible when any member is visible; indeterminate when some but not
    all are.
    """
    flags = [member.visible for member in members]
    if not flags:
        return False, False
    any_visible = any(flags)
    return any_visible, any_visible and not all(flags)


def aggregate_opacity(members: Iterable[LayerEntry]) -> float:
    """Common opacity when uniform, otherwise the arithmetic mean."""
    values = [member.opacity for member in members]
    if not values:
        return 1.0
    first = values[0]
    if all(math.isclose(v, first) for v in values):
        return first
    return clamp_opacity(sum(values) / len(values))
