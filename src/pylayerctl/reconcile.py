"""Debounced reconciliation of the state store against the live host map.

The host's layer list can change at any time (other code may call the
map API directly), so every pass re-snapshots the host instead of
trusting cached assumptions. A pass:

1. enumerates the host's current layer IDs;
2. removes native entries whose layer is gone (adapter-owned IDs are
   never removed by host absence);
3. adds unseen layers, classified Individual or Background member;
4. refreshes visibility/opacity of the remaining native entries;
5. diffs the custom layer registry against tracked custom entries,
   honouring tombstones.

While the mutation guard is raised a requested pass is only recorded;
exactly one pass runs when the funnel releases the guard.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import StrEnum
from typing import Any, Protocol

from pylayerctl._constants import BACKGROUND_ID
from pylayerctl._naming import friendly_name
from pylayerctl._scheduler import Debouncer, Scheduler
from pylayerctl.classifier import LayerClassifier
from pylayerctl.config import LayerControlConfig
from pylayerctl.exceptions import HostReadError
from pylayerctl.host import HostMap
from pylayerctl.models.layer import LayerGroup, LayerKind
from pylayerctl.registry import CustomLayerRegistry
from pylayerctl.state.events import AdapterEvent, HostEvent, ReconcileResult
from pylayerctl.state.policy import clamp_opacity
from pylayerctl.state.store import StateStore

_logger = logging.getLogger(__name__)


class ReconcilerState(StrEnum):
    IDLE = "idle"
    SUPPRESSED = "suppressed"


class SuppressionFlag(Protocol):
    """Read-only view of the mutation guard."""

    @property
    def raised(self) -> bool: ...


def read_native_state(host: HostMap, layer_id: str) -> dict[str, Any]:
    """Read one native layer's state from the host.

    Raises :class:`HostReadError` when the layer is gone; other host
    exceptions propagate to the caller's per-entry handler.
    """
    layer_type = host.get_layer_kind(layer_id)
    if layer_type is None:
        raise HostReadError(f"Layer {layer_id} disappeared", layer_id=layer_id)
    return {
        "visible": bool(host.get_visibility(layer_id)),
        "opacity": clamp_opacity(host.get_opacity(layer_id)),
        "layer_type": layer_type,
    }


class ReconciliationLoop:
    """Idle/Suppressed state machine around :meth:`run_pass`."""

    def __init__(
        self,
        host: HostMap,
        classifier: LayerClassifier,
        registry: CustomLayerRegistry,
        store: StateStore,
        guard: SuppressionFlag,
        scheduler: Scheduler,
        *,
        config: LayerControlConfig,
        on_result: Callable[[ReconcileResult], None] | None = None,
    ) -> None:
        self._host = host
        self._classifier = classifier
        self._registry = registry
        self._store = store
        self._guard = guard
        self._on_result = on_result
        self._pending = False
        self._pass_count = 0
        self._debouncers: dict[HostEvent, Debouncer] = {
            HostEvent.STYLE_CHANGED: Debouncer(scheduler, config.style_debounce, self.request, name="style"),
            HostEvent.CONTENT_LOADED: Debouncer(scheduler, config.content_debounce, self.request, name="content"),
            HostEvent.METADATA_LOADED: Debouncer(scheduler, config.metadata_debounce, self.request, name="metadata"),
        }
        self._adapter_debouncer = Debouncer(scheduler, config.adapter_debounce, self.request, name="adapter")

    @property
    def state(self) -> ReconcilerState:
        return ReconcilerState.SUPPRESSED if self._guard.raised else ReconcilerState.IDLE

    @property
    def pending(self) -> bool:
        """Whether a pass was requested while suppressed."""
        return self._pending

    @property
    def pass_count(self) -> int:
        return self._pass_count

    @property
    def classifier(self) -> LayerClassifier:
        return self._classifier

    # ------------------------------------------------------------------
    # Triggers
    # ------------------------------------------------------------------

    def notify(self, event: HostEvent | str) -> None:
        """Host change notification; (re)starts that event's debounce timer."""
        try:
            debouncer = self._debouncers[HostEvent(event)]
        except ValueError:
            _logger.debug("Ignoring unknown host event %r", event)
            return
        debouncer.trigger()

    def notify_adapter(self, event: AdapterEvent, layer_id: str) -> None:
        _logger.debug("Adapter %s event for %s", event, layer_id)
        self._adapter_debouncer.trigger()

    def request(self) -> ReconcileResult:
        """Run a pass now, or record it if the guard is raised."""
        if self._guard.raised:
            if not self._pending:
                _logger.debug("Reconciliation deferred while a mutation settles")
            self._pending = True
            return ReconcileResult(suppressed=True)
        return self.run_pass()

    def resume(self) -> ReconcileResult:
        """Run the single deferred pass after the guard is released."""
        self._pending = False
        return self.request()

    def cancel(self) -> None:
        for debouncer in self._debouncers.values():
            debouncer.cancel()
        self._adapter_debouncer.cancel()
        self._pending = False

    # ------------------------------------------------------------------
    # Pass
    # ------------------------------------------------------------------

    def run_pass(self) -> ReconcileResult:
        self._pass_count += 1
        self._pending = False
        added: list[str] = []
        removed: list[str] = []
        updated: list[str] = []
        background_added: list[str] = []
        background_removed: list[str] = []
        failed: list[str] = []

        try:
            current_ids: list[str] | None = list(self._host.get_all_layer_ids())
        except Exception:
            _logger.debug("Failed to enumerate host layers", exc_info=True)
            current_ids = None

        if current_ids is not None:
            self._reconcile_native(current_ids, added, removed, updated, background_added, background_removed, failed)
        self._reconcile_custom(added, removed, failed)

        result = ReconcileResult(
            added=tuple(added),
            removed=tuple(removed),
            updated=tuple(updated),
            background_added=tuple(background_added),
            background_removed=tuple(background_removed),
            failed=tuple(failed),
        )
        if result.store_writes:
            _logger.debug(
                "Reconciled: +%d -%d ~%d background +%d -%d",
                len(added),
                len(removed),
                len(updated),
                len(background_added),
                len(background_removed),
            )
            if self._on_result is not None:
                try:
                    self._on_result(result)
                except Exception:
                    _logger.debug("on_result callback failed", exc_info=True)
        return result

    def _reconcile_native(
        self,
        current_ids: list[str],
        added: list[str],
        removed: list[str],
        updated: list[str],
        background_added: list[str],
        background_removed: list[str],
        failed: list[str],
    ) -> None:
        current = set(current_ids)
        custom_owned = set(self._registry.get_all_layer_ids())
        sublayers = self._registry.all_native_sublayer_ids()
        native_tracked = self._store.tracked_ids(kind=LayerKind.NATIVE)

        for layer_id in native_tracked:
            if layer_id in current or layer_id in custom_owned:
                continue
            entry = self._store.remove(layer_id)
            self._classifier.forget(layer_id)
            if entry is not None and entry.is_background_member:
                background_removed.append(layer_id)
            else:
                removed.append(layer_id)

        for layer_id in current_ids:
            if layer_id == BACKGROUND_ID or layer_id in self._store:
                continue
            if layer_id in custom_owned or layer_id in sublayers:
                continue
            try:
                group = self._classifier.classify_layer(layer_id, self._host)
                fields = read_native_state(self._host, layer_id)
            except Exception:
                _logger.debug("Skipping new layer %s for this pass", layer_id, exc_info=True)
                failed.append(layer_id)
                continue
            self._store.upsert(
                layer_id,
                fields,
                kind=LayerKind.NATIVE,
                group=group,
                name=friendly_name(layer_id),
            )
            if group == LayerGroup.BACKGROUND_MEMBER:
                background_added.append(layer_id)
            else:
                added.append(layer_id)

        background_touched = False
        for layer_id in native_tracked:
            if layer_id not in current or layer_id not in self._store:
                continue
            try:
                fields = read_native_state(self._host, layer_id)
            except Exception:
                _logger.debug("Failed to refresh layer %s", layer_id, exc_info=True)
                failed.append(layer_id)
                continue
            revision = self._store.revision
            entry = self._store.upsert(layer_id, fields)
            if self._store.revision == revision:
                continue
            if entry is not None and entry.is_background_member:
                background_touched = True
            else:
                updated.append(layer_id)
        if background_touched:
            updated.append(BACKGROUND_ID)

    def _reconcile_custom(self, added: list[str], removed: list[str], failed: list[str]) -> None:
        reported = self._registry.get_all_layer_ids()
        reported_set = set(reported)

        for layer_id in self._store.tracked_ids(kind=LayerKind.CUSTOM):
            if layer_id in reported_set and not self._registry.is_tombstoned(layer_id):
                continue
            self._store.remove(layer_id)
            removed.append(layer_id)

        for layer_id in reported:
            if self._registry.is_tombstoned(layer_id) or layer_id in self._store:
                continue
            state = self._registry.get_layer_state(layer_id)
            if state is None:
                failed.append(layer_id)
                continue
            self._store.upsert(
                layer_id,
                kind=LayerKind.CUSTOM,
                group=LayerGroup.INDIVIDUAL,
                visible=bool(state.visible),
                opacity=clamp_opacity(state.opacity),
                name=state.name or friendly_name(layer_id),
                custom_type=self._registry.get_symbol_type(layer_id),
            )
            added.append(layer_id)
