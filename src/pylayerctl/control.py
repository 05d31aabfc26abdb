"""High-level layer control engine."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from typing import Any

import aiohttp

from pylayerctl._basemap import fetch_basemap_style
from pylayerctl._redact import redact_url_for_log
from pylayerctl._scheduler import AsyncioScheduler, Scheduler
from pylayerctl.classifier import Classification, ClassificationContext, LayerClassifier
from pylayerctl.config import LayerControlConfig
from pylayerctl.exceptions import BasemapFetchError, LayerControlError
from pylayerctl.host import HostMap
from pylayerctl.models.layer import LayerEntry
from pylayerctl.models.style import BasemapStyle
from pylayerctl.mutation import DeliveryPath, MutationFunnel, MutationGuard
from pylayerctl.reconcile import ReconcilerState, ReconciliationLoop
from pylayerctl.registry import Bounds, CustomLayerAdapter, CustomLayerRegistry
from pylayerctl.state.events import ReconcileResult
from pylayerctl.state.store import StateStore

_logger = logging.getLogger(__name__)


class LayerControl:
    """Keeps a canonical layer state in sync with a live host map.

    Usage::

        async with LayerControl(host, LayerControlConfig(basemap_style_url=url)) as control:
            for layer_id, entry in control.snapshot().items():
                ...
            control.set_visibility("user-fill-1", False)

    ``attach()`` fetches the basemap style (if configured), snapshots the
    host's initial layers and sources, seeds the store and subscribes to
    host and adapter notifications. Every mutation goes through the
    mutation funnel; reconciliation passes are debounced.
    """

    def __init__(
        self,
        host: HostMap,
        config: LayerControlConfig | None = None,
        *,
        adapters: Iterable[CustomLayerAdapter] = (),
        session: aiohttp.ClientSession | None = None,
        scheduler: Scheduler | None = None,
        on_change: Callable[[ReconcileResult], None] | None = None,
    ) -> None:
        self._config = (config or LayerControlConfig()).validate()
        self._host = host
        self._external_session = session is not None
        self._http_session = session
        self._scheduler = scheduler
        self._on_change = on_change
        self._registry = CustomLayerRegistry()
        for adapter in adapters:
            self._registry.register(adapter)
        self._store = StateStore()
        self._guard = MutationGuard()
        self._basemap_style: BasemapStyle | None = None
        self._classifier: LayerClassifier | None = None
        self._loop: ReconciliationLoop | None = None
        self._funnel: MutationFunnel | None = None
        self._unsubscribers: list[Callable[[], None]] = []

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> LayerControl:
        await self.attach()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.detach()

    @property
    def attached(self) -> bool:
        return self._loop is not None

    async def attach(self) -> None:
        if self._loop is not None:
            raise LayerControlError("LayerControl is already attached")
        try:
            await self._attach()
        except BaseException:
            await self.detach()
            raise

    async def _attach(self) -> None:
        scheduler = self._scheduler or AsyncioScheduler(asyncio.get_running_loop())

        # The initial snapshot must not see layers added while the style fetch is in flight.
        snapshot = ClassificationContext.capture(
            self._host,
            explicit_targets=self._config.layers,
            exclusion_patterns=self._config.exclusion_patterns(),
        )
        basemap_ids = await self._load_basemap_layer_ids()
        extra_urls: list[str] = []
        if self._config.basemap_style_url:
            extra_urls.append(self._config.basemap_style_url)
        if self._basemap_style is not None:
            extra_urls.extend(self._basemap_style.sprite)
            if self._basemap_style.glyphs:
                extra_urls.append(self._basemap_style.glyphs)

        context = snapshot.with_basemap(basemap_ids, extra_style_urls=extra_urls)
        self._classifier = LayerClassifier(context)
        loop = ReconciliationLoop(
            self._host,
            self._classifier,
            self._registry,
            self._store,
            self._guard,
            scheduler,
            config=self._config,
            on_result=self._on_change,
        )
        self._funnel = MutationFunnel(
            self._host,
            self._store,
            self._registry,
            loop,
            self._guard,
            scheduler,
            settle_delay=self._config.settle_delay,
        )
        self._loop = loop

        seeded = loop.run_pass()
        _logger.debug(
            "Attached: %d individual layers, %d background members",
            len(seeded.added),
            len(seeded.background_added),
        )
        self._unsubscribers.append(self._host.subscribe(loop.notify))
        self._unsubscribers.append(self._registry.on_change(loop.notify_adapter))

    async def detach(self) -> None:
        for unsubscribe in self._unsubscribers:
            try:
                unsubscribe()
            except Exception:
                _logger.debug("Unsubscribe failed", exc_info=True)
        self._unsubscribers.clear()
        if self._loop is not None:
            self._loop.cancel()
        if self._funnel is not None:
            self._funnel.cancel()
        self._loop = None
        self._funnel = None
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None

    async def _load_basemap_layer_ids(self) -> frozenset[str] | None:
        """Fetch the authoritative basemap layer IDs once; ``None`` on failure."""
        url = self._config.basemap_style_url
        if not url:
            return None
        if self._http_session is None:
            self._http_session = aiohttp.ClientSession()
        try:
            style = await fetch_basemap_style(
                self._http_session,
                url,
                timeout=self._config.basemap_fetch_timeout,
            )
        except BasemapFetchError as exc:
            _logger.warning(
                "Basemap style %s unavailable (%s); falling back to heuristic classification",
                redact_url_for_log(url),
                exc,
            )
            return None
        self._basemap_style = style
        return style.layer_ids()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_loop(self) -> ReconciliationLoop:
        if self._loop is None:
            raise LayerControlError("LayerControl not attached. Use 'async with LayerControl(...) as control:'")
        return self._loop

    def _require_funnel(self) -> MutationFunnel:
        if self._funnel is None:
            raise LayerControlError("LayerControl not attached. Use 'async with LayerControl(...) as control:'")
        return self._funnel

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def config(self) -> LayerControlConfig:
        return self._config

    @property
    def registry(self) -> CustomLayerRegistry:
        return self._registry

    @property
    def context(self) -> ClassificationContext:
        return self._require_loop().classifier.context

    @property
    def basemap_style(self) -> BasemapStyle | None:
        return self._basemap_style

    @property
    def state(self) -> ReconcilerState:
        return self._require_loop().state

    def snapshot(self) -> dict[str, LayerEntry]:
        """Display-ordered entries: Background aggregate first, then individual layers."""
        return self._store.snapshot()

    def background_members(self) -> dict[str, LayerEntry]:
        return self._store.background_members()

    def get(self, layer_id: str) -> LayerEntry | None:
        return self._store.get(layer_id)

    def classify(self, layer_ids: Iterable[str] | None = None) -> Classification:
        """Partition ``layer_ids`` (default: the host's current layers)."""
        loop = self._require_loop()
        ids = list(layer_ids) if layer_ids is not None else list(self._host.get_all_layer_ids())
        return loop.classifier.classify(ids, self._host)

    def get_layer_bounds(self, layer_id: str) -> Bounds | None:
        return self._registry.get_bounds(layer_id)

    def get_native_layer_ids(self, layer_id: str) -> list[str]:
        """Host layers that back a custom layer, for style-editor passthrough."""
        return self._registry.get_native_layer_ids(layer_id)

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def reconcile(self) -> ReconcileResult:
        """Request a pass now (deferred if a mutation is settling)."""
        return self._require_loop().request()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def set_visibility(self, layer_id: str, visible: bool) -> dict[str, DeliveryPath]:
        return self._require_funnel().set_visibility(layer_id, visible)

    def set_opacity(self, layer_id: str, opacity: float) -> dict[str, DeliveryPath]:
        return self._require_funnel().set_opacity(layer_id, opacity)

    def set_background_member_visibility(self, layer_id: str, visible: bool) -> DeliveryPath | None:
        return self._require_funnel().set_background_member_visibility(layer_id, visible)

    def rename_layer(self, layer_id: str, name: str) -> LayerEntry | None:
        return self._require_funnel().rename_layer(layer_id, name)

    def remove_layer(self, layer_id: str) -> bool:
        return self._require_funnel().remove_layer(layer_id)

    def remove_custom_layer(self, layer_id: str) -> bool:
        return self._require_funnel().remove_custom_layer(layer_id)

    def move_layer(self, layer_id: str, before_id: str | None = None) -> bool:
        return self._require_funnel().move_layer(layer_id, before_id)

    # ------------------------------------------------------------------
    # Adapters
    # ------------------------------------------------------------------

    def register_adapter(self, adapter: CustomLayerAdapter) -> None:
        """Register an adapter; its layers appear on the next pass."""
        self._registry.register(adapter)
        if self._loop is not None:
            self._loop.request()

    def unregister_adapter(self, type_tag: str) -> bool:
        removed = self._registry.unregister(type_tag)
        if removed and self._loop is not None:
            self._loop.request()
        return removed
