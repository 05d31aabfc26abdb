"""Structural interface of the live host map.

Having a protocol here makes it easy to pass test doubles while keeping
real map bindings (a Jupyter widget bridge, a headless renderer, ...)
outside this package.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any, Protocol

from pylayerctl.models.source import SourceDescriptor
from pylayerctl.state.events import HostEvent

_logger = logging.getLogger(__name__)


class HostMap(Protocol):
    """The host map API consumed by the engine.

    Every read may raise if the layer vanished between enumeration and
    lookup; callers treat that as a transient failure. Optional
    capabilities (``get_sprite_url``, ``get_glyphs_url``,
    ``remove_layer``, ``move_layer``) are looked up with ``getattr`` and
    are not part of this protocol.
    """

    def get_all_layer_ids(self) -> list[str]:
        """Layer IDs in bottom-to-top render order."""
        ...

    def get_layer_kind(self, layer_id: str) -> str | None:
        """Host layer type (``"fill"``, ``"raster"``...) or ``None`` if gone."""
        ...

    def get_visibility(self, layer_id: str) -> bool: ...

    def get_opacity(self, layer_id: str) -> float: ...

    def set_visibility(self, layer_id: str, visible: bool) -> None: ...

    def set_opacity(self, layer_id: str, opacity: float) -> None: ...

    def get_source_descriptor(self, layer_id: str) -> SourceDescriptor | Mapping[str, Any] | None:
        """Describe the layer's source; ``None`` when the layer has no source."""
        ...

    def subscribe(self, callback: Callable[[HostEvent], None]) -> Callable[[], None]:
        """Register for change notifications; return an unsubscribe callable."""
        ...


def read_source_descriptor(host: HostMap, layer_id: str) -> SourceDescriptor | None:
    """Fetch and normalize a layer's source descriptor."""
    raw = host.get_source_descriptor(layer_id)
    if raw is None or isinstance(raw, SourceDescriptor):
        return raw
    return SourceDescriptor.model_validate(dict(raw))


def optional_host_url(host: HostMap, method: str) -> str | None:
    """Call an optional zero-argument URL getter on the host, if present.

    A getter that raises is treated as absent.
    """
    getter = getattr(host, method, None)
    if getter is None:
        return None
    try:
        value = getter()
    except Exception:
        _logger.debug("Host %s() failed", method, exc_info=True)
        return None
    return value if isinstance(value, str) and value.strip() else None
