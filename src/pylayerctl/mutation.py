"""User-initiated mutations.

Every write follows the same order:

1. raise the guard (reconciliation becomes Suppressed);
2. update the state store optimistically;
3. offer the change to the custom layer registry;
4. otherwise write to the host map directly;
5. after the settle delay, lower the guard and run one deferred pass.

The settle timer restarts on each mutation, so a burst of slider moves
keeps reconciliation suppressed until the host's notifications for the
last one have landed.
"""

from __future__ import annotations

import logging
import math
from enum import StrEnum

from pylayerctl._constants import BACKGROUND_ID
from pylayerctl._scheduler import Debouncer, Scheduler
from pylayerctl.host import HostMap
from pylayerctl.models.layer import LayerEntry, LayerKind
from pylayerctl.reconcile import ReconciliationLoop
from pylayerctl.registry import CustomLayerRegistry
from pylayerctl.state.policy import clamp_opacity
from pylayerctl.state.store import StateStore

_logger = logging.getLogger(__name__)


class DeliveryPath(StrEnum):
    ADAPTER = "adapter"
    HOST = "host"
    FAILED = "failed"


class MutationGuard:
    """The guard flag. Only :class:`MutationFunnel` raises and lowers it."""

    def __init__(self) -> None:
        self._raised = False

    @property
    def raised(self) -> bool:
        return self._raised

    def raise_(self) -> None:
        self._raised = True

    def lower(self) -> None:
        self._raised = False


class MutationFunnel:
    """Single entry point for visibility, opacity and structural writes."""

    def __init__(
        self,
        host: HostMap,
        store: StateStore,
        registry: CustomLayerRegistry,
        loop: ReconciliationLoop,
        guard: MutationGuard,
        scheduler: Scheduler,
        *,
        settle_delay: float,
    ) -> None:
        self._host = host
        self._store = store
        self._registry = registry
        self._loop = loop
        self._guard = guard
        self._settle = Debouncer(scheduler, settle_delay, self._release, name="settle")

    @property
    def guard(self) -> MutationGuard:
        return self._guard

    # ------------------------------------------------------------------
    # Guard window
    # ------------------------------------------------------------------

    def _begin(self) -> None:
        if not self._guard.raised:
            _logger.debug("Mutation guard raised")
        self._guard.raise_()
        self._settle.trigger()

    def _release(self) -> None:
        self._guard.lower()
        _logger.debug("Mutation guard lowered; running deferred reconciliation")
        self._loop.resume()

    def flush(self) -> None:
        """Release a raised guard immediately (runs the deferred pass)."""
        if self._settle.pending:
            self._settle.cancel()
            self._release()

    def cancel(self) -> None:
        """Drop the settle timer and lower the guard without reconciling."""
        self._settle.cancel()
        self._guard.lower()

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    def _deliver_visibility(self, layer_id: str, visible: bool) -> DeliveryPath:
        if self._registry.set_visibility(layer_id, visible):
            return DeliveryPath.ADAPTER
        try:
            self._host.set_visibility(layer_id, visible)
        except Exception:
            _logger.debug("Host failed to set visibility of %s", layer_id, exc_info=True)
            return DeliveryPath.FAILED
        return DeliveryPath.HOST

    def _deliver_opacity(self, layer_id: str, opacity: float) -> DeliveryPath:
        if self._registry.set_opacity(layer_id, opacity):
            return DeliveryPath.ADAPTER
        try:
            self._host.set_opacity(layer_id, opacity)
        except Exception:
            _logger.debug("Host failed to set opacity of %s", layer_id, exc_info=True)
            return DeliveryPath.FAILED
        return DeliveryPath.HOST

    # ------------------------------------------------------------------
    # Visibility / opacity
    # ------------------------------------------------------------------

    def set_visibility(self, layer_id: str, visible: bool) -> dict[str, DeliveryPath]:
        """Show or hide a layer, or every Background member for ``"Background"``.

        Returns the delivery path taken per written layer ID.
        """
        self._begin()
        if layer_id == BACKGROUND_ID:
            self._store.upsert(BACKGROUND_ID, visible=visible)
            members = self._store.background_members()
            return {member_id: self._deliver_visibility(member_id, visible) for member_id in members}
        if layer_id in self._store:
            self._store.upsert(layer_id, visible=visible)
        return {layer_id: self._deliver_visibility(layer_id, visible)}

    def set_opacity(self, layer_id: str, opacity: float) -> dict[str, DeliveryPath]:
        """Set opacity (clamped to ``[0, 1]``) on a layer or on every Background member."""
        if math.isnan(float(opacity)):
            raise ValueError("opacity must be a number in [0, 1]")
        value = clamp_opacity(opacity)
        self._begin()
        if layer_id == BACKGROUND_ID:
            self._store.upsert(BACKGROUND_ID, opacity=value)
            members = self._store.background_members()
            return {member_id: self._deliver_opacity(member_id, value) for member_id in members}
        if layer_id in self._store:
            self._store.upsert(layer_id, opacity=value)
        return {layer_id: self._deliver_opacity(layer_id, value)}

    def set_background_member_visibility(self, layer_id: str, visible: bool) -> DeliveryPath | None:
        """Toggle one basemap layer inside the Background aggregate."""
        entry = self._store.get(layer_id)
        if entry is None or not entry.is_background_member:
            _logger.debug("Layer %s is not a Background member", layer_id)
            return None
        self._begin()
        self._store.upsert(layer_id, visible=visible)
        return self._deliver_visibility(layer_id, visible)

    # ------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------

    def rename_layer(self, layer_id: str, name: str) -> LayerEntry | None:
        """Override a layer's display name; reconciliation keeps it."""
        cleaned = name.strip()
        if not cleaned:
            raise ValueError("name must be non-empty")
        if layer_id == BACKGROUND_ID or layer_id not in self._store:
            return None
        return self._store.upsert(layer_id, name=cleaned, name_overridden=True)

    def remove_custom_layer(self, layer_id: str) -> bool:
        """Drop a custom layer and tombstone it so reconciliation won't re-add it."""
        self._begin()
        entry = self._store.remove(layer_id)
        self._registry.remove_layer(layer_id)
        _logger.debug("Tombstoned custom layer %s", layer_id)
        return entry is not None

    def remove_layer(self, layer_id: str) -> bool:
        """Remove a layer from the map (custom layers are tombstoned instead)."""
        entry = self._store.get(layer_id)
        if (entry is not None and entry.kind == LayerKind.CUSTOM) or self._registry.has_layer(layer_id):
            return self.remove_custom_layer(layer_id)
        if layer_id == BACKGROUND_ID:
            return False
        remover = getattr(self._host, "remove_layer", None)
        if remover is None:
            _logger.debug("Host does not support layer removal")
            return False
        self._begin()
        self._store.remove(layer_id)
        try:
            remover(layer_id)
        except Exception:
            # The next pass re-adds the entry if the layer survived.
            _logger.debug("Host failed to remove layer %s", layer_id, exc_info=True)
            return False
        return True

    def move_layer(self, layer_id: str, before_id: str | None = None) -> bool:
        """Reorder a layer in the display order and, for native layers, on the map."""
        entry = self._store.get(layer_id)
        if entry is None or layer_id == BACKGROUND_ID:
            return False
        self._begin()
        moved = self._store.move(layer_id, before_id)
        mover = getattr(self._host, "move_layer", None)
        if moved and entry.kind == LayerKind.NATIVE and mover is not None:
            try:
                mover(layer_id, before_id)
            except Exception:
                _logger.debug("Host failed to move layer %s", layer_id, exc_info=True)
        return moved
