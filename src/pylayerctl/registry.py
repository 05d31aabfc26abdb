"""Registry for custom (non-host) layer adapters.

Routes per-layer operations to the adapter that owns the layer ID and
merges every adapter's add/remove notifications into one stream. The
registry also owns the tombstone set: IDs the user removed that must not
be resurrected until their adapter reports a fresh ``add``.

Each adapter owns a disjoint namespace of layer IDs. Disjointness is the
caller's responsibility; with a collision the first registered adapter
wins every lookup.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

from pylayerctl.exceptions import AdapterError
from pylayerctl.models.layer import CustomLayerState
from pylayerctl.state.events import AdapterEvent

_logger = logging.getLogger(__name__)

ChangeCallback = Callable[[AdapterEvent, str], None]
Bounds = tuple[float, float, float, float]


class CustomLayerAdapter(Protocol):
    """Required adapter capabilities.

    Optional capabilities are looked up with ``getattr`` at call time:
    ``get_symbol_type(layer_id) -> str``, ``get_bounds(layer_id) ->
    (west, south, east, north) | None``, ``get_native_layer_ids(layer_id)
    -> list[str]``, ``remove_layer(layer_id)`` and
    ``on_layer_change(callback) -> unsubscribe``.
    """

    type: str

    def get_layer_ids(self) -> list[str]: ...

    def get_layer_state(self, layer_id: str) -> CustomLayerState | dict[str, Any] | None: ...

    def set_visibility(self, layer_id: str, visible: bool) -> None: ...

    def set_opacity(self, layer_id: str, opacity: float) -> None: ...


@dataclass(slots=True)
class AdapterRegistration:
    """One registered adapter and its change subscription."""

    type_tag: str
    adapter: CustomLayerAdapter
    unsubscribe: Callable[[], None] | None = None

    def optional(self, name: str) -> Callable[..., Any] | None:
        method = getattr(self.adapter, name, None)
        return method if callable(method) else None

    def layer_ids(self) -> list[str]:
        return [str(layer_id) for layer_id in self.adapter.get_layer_ids()]


class CustomLayerRegistry:
    """Adapter registry with tombstones and failure isolation.

    Any exception raised by an adapter is logged and turned into a
    "not handled" / empty result so the caller can fall back to the
    host map.
    """

    def __init__(self) -> None:
        self._registrations: dict[str, AdapterRegistration] = {}
        self._listeners: list[ChangeCallback] = []
        self._tombstones: set[str] = set()

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, adapter: CustomLayerAdapter) -> AdapterRegistration:
        type_tag = getattr(adapter, "type", None)
        if not isinstance(type_tag, str) or not type_tag:
            raise AdapterError("Adapter must expose a non-empty 'type' tag")
        if type_tag in self._registrations:
            raise AdapterError(f"Adapter type '{type_tag}' is already registered", type_tag=type_tag)

        registration = AdapterRegistration(type_tag=type_tag, adapter=adapter)
        subscribe = registration.optional("on_layer_change")
        if subscribe is not None:
            try:
                registration.unsubscribe = subscribe(self._on_adapter_change)
            except Exception:
                _logger.debug("Adapter %s change subscription failed", type_tag, exc_info=True)
        self._registrations[type_tag] = registration
        _logger.debug("Registered custom layer adapter %s", type_tag)
        return registration

    def unregister(self, type_tag: str) -> bool:
        registration = self._registrations.pop(type_tag, None)
        if registration is None:
            return False
        if registration.unsubscribe is not None:
            try:
                registration.unsubscribe()
            except Exception:
                _logger.debug("Adapter %s unsubscribe failed", type_tag, exc_info=True)
        _logger.debug("Unregistered custom layer adapter %s", type_tag)
        return True

    @property
    def type_tags(self) -> list[str]:
        return list(self._registrations)

    def destroy(self) -> None:
        for type_tag in list(self._registrations):
            self.unregister(type_tag)
        self._listeners.clear()

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def _safe_layer_ids(self, registration: AdapterRegistration) -> list[str]:
        try:
            return registration.layer_ids()
        except Exception:
            _logger.debug("Adapter %s failed to enumerate layers", registration.type_tag, exc_info=True)
            return []

    def get_all_layer_ids(self) -> list[str]:
        """Every adapter-reported ID, tombstoned ones included, de-duplicated."""
        seen: dict[str, None] = {}
        for registration in self._registrations.values():
            for layer_id in self._safe_layer_ids(registration):
                seen.setdefault(layer_id, None)
        return list(seen)

    def get_registration_for(self, layer_id: str) -> AdapterRegistration | None:
        for registration in self._registrations.values():
            if layer_id in self._safe_layer_ids(registration):
                return registration
        return None

    def get_adapter_for(self, layer_id: str) -> CustomLayerAdapter | None:
        registration = self.get_registration_for(layer_id)
        return registration.adapter if registration is not None else None

    def has_layer(self, layer_id: str) -> bool:
        return self.get_registration_for(layer_id) is not None

    def get_layer_state(self, layer_id: str) -> CustomLayerState | None:
        registration = self.get_registration_for(layer_id)
        if registration is None:
            return None
        try:
            state = registration.adapter.get_layer_state(layer_id)
            if state is None or isinstance(state, CustomLayerState):
                return state
            return CustomLayerState.model_validate(dict(state))
        except Exception:
            _logger.debug("Adapter %s failed to read state of %s", registration.type_tag, layer_id, exc_info=True)
            return None

    def _call_optional(self, layer_id: str, name: str, default: Any) -> Any:
        registration = self.get_registration_for(layer_id)
        if registration is None:
            return default
        method = registration.optional(name)
        if method is None:
            return default
        try:
            return method(layer_id)
        except Exception:
            _logger.debug("Adapter %s failed in %s(%s)", registration.type_tag, name, layer_id, exc_info=True)
            return default

    def get_symbol_type(self, layer_id: str) -> str | None:
        value = self._call_optional(layer_id, "get_symbol_type", None)
        return str(value) if value else None

    def get_bounds(self, layer_id: str) -> Bounds | None:
        value = self._call_optional(layer_id, "get_bounds", None)
        if value is None:
            return None
        try:
            west, south, east, north = (float(v) for v in value)
        except (TypeError, ValueError):
            _logger.debug("Ignoring malformed bounds for %s: %r", layer_id, value)
            return None
        return west, south, east, north

    def get_native_layer_ids(self, layer_id: str) -> list[str]:
        value = self._call_optional(layer_id, "get_native_layer_ids", None)
        return [str(v) for v in value] if value else []

    def all_native_sublayer_ids(self) -> set[str]:
        """Host layer IDs that adapters expose as parts of their custom layers."""
        result: set[str] = set()
        for layer_id in self.get_all_layer_ids():
            result.update(self.get_native_layer_ids(layer_id))
        return result

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def set_visibility(self, layer_id: str, visible: bool) -> bool:
        """Return ``True`` if an adapter applied the change."""
        registration = self.get_registration_for(layer_id)
        if registration is None:
            return False
        try:
            registration.adapter.set_visibility(layer_id, visible)
        except Exception:
            _logger.debug("Adapter %s failed to set visibility of %s", registration.type_tag, layer_id, exc_info=True)
            return False
        return True

    def set_opacity(self, layer_id: str, opacity: float) -> bool:
        """Return ``True`` if an adapter applied the change."""
        registration = self.get_registration_for(layer_id)
        if registration is None:
            return False
        try:
            registration.adapter.set_opacity(layer_id, opacity)
        except Exception:
            _logger.debug("Adapter %s failed to set opacity of %s", registration.type_tag, layer_id, exc_info=True)
            return False
        return True

    def remove_layer(self, layer_id: str) -> bool:
        """Tombstone ``layer_id`` and ask its adapter to drop it, if supported."""
        registration = self.get_registration_for(layer_id)
        self._tombstones.add(layer_id)
        if registration is None:
            return False
        method = registration.optional("remove_layer")
        if method is None:
            return False
        try:
            method(layer_id)
        except Exception:
            _logger.debug("Adapter %s failed to remove %s", registration.type_tag, layer_id, exc_info=True)
            return False
        return True

    # ------------------------------------------------------------------
    # Tombstones
    # ------------------------------------------------------------------

    def tombstone(self, layer_id: str) -> None:
        self._tombstones.add(layer_id)

    def is_tombstoned(self, layer_id: str) -> bool:
        return layer_id in self._tombstones

    @property
    def tombstones(self) -> frozenset[str]:
        return frozenset(self._tombstones)

    # ------------------------------------------------------------------
    # Change stream
    # ------------------------------------------------------------------

    def on_change(self, callback: ChangeCallback) -> Callable[[], None]:
        """Subscribe to add/remove events from every adapter."""
        self._listeners.append(callback)

        def _unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return _unsubscribe

    def _on_adapter_change(self, event: AdapterEvent | str, layer_id: str) -> None:
        try:
            normalized = AdapterEvent(event)
        except ValueError:
            _logger.debug("Ignoring unknown adapter event %r for %s", event, layer_id)
            return
        if normalized == AdapterEvent.ADD and layer_id in self._tombstones:
            # A fresh add re-arms a user-removed layer.
            self._tombstones.discard(layer_id)
            _logger.debug("Cleared tombstone for re-added layer %s", layer_id)
        for listener in list(self._listeners):
            try:
                listener(normalized, layer_id)
            except Exception:
                _logger.debug("Custom layer change listener failed", exc_info=True)
