from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import pytest

from pylayerctl.classifier import ClassificationContext, LayerClassifier
from pylayerctl.config import LayerControlConfig
from pylayerctl.models.layer import CustomLayerState
from pylayerctl.mutation import MutationFunnel, MutationGuard
from pylayerctl.reconcile import ReconciliationLoop
from pylayerctl.registry import CustomLayerRegistry
from pylayerctl.state.events import AdapterEvent, HostEvent, ReconcileResult
from pylayerctl.state.store import StateStore

BASEMAP_SOURCE: dict[str, Any] = {
    "id": "openmaptiles",
    "type": "vector",
    "url": "https://api.maptiler.com/tiles/v3/tiles.json?key=SECRET",
}


def geojson_source(source_id: str = "user-src") -> dict[str, Any]:
    return {"id": source_id, "type": "geojson", "data": {"type": "FeatureCollection", "features": []}}


class FakeHostMap:
    """In-memory host map. Layers keep insertion order (bottom to top)."""

    def __init__(self, *, sprite_url: str | None = None, glyphs_url: str | None = None) -> None:
        self.layers: dict[str, dict[str, Any]] = {}
        self.sprite_url = sprite_url
        self.glyphs_url = glyphs_url
        self.writes: list[tuple[str, str, Any]] = []
        self.failing: set[str] = set()
        self._listeners: list[Callable[[HostEvent], None]] = []

    def add_layer(
        self,
        layer_id: str,
        *,
        layer_type: str = "fill",
        source: dict[str, Any] | None = None,
        visible: bool = True,
        opacity: float = 1.0,
    ) -> None:
        self.layers[layer_id] = {"type": layer_type, "source": source, "visible": visible, "opacity": opacity}

    def _layer(self, layer_id: str) -> dict[str, Any]:
        if layer_id in self.failing:
            raise RuntimeError(f"layer {layer_id} is mid-teardown")
        return self.layers[layer_id]

    def get_all_layer_ids(self) -> list[str]:
        return list(self.layers)

    def get_layer_kind(self, layer_id: str) -> str | None:
        if layer_id not in self.layers:
            return None
        return str(self._layer(layer_id)["type"])

    def get_visibility(self, layer_id: str) -> bool:
        return bool(self._layer(layer_id)["visible"])

    def get_opacity(self, layer_id: str) -> float:
        return float(self._layer(layer_id)["opacity"])

    def set_visibility(self, layer_id: str, visible: bool) -> None:
        self._layer(layer_id)["visible"] = visible
        self.writes.append(("visibility", layer_id, visible))

    def set_opacity(self, layer_id: str, opacity: float) -> None:
        self._layer(layer_id)["opacity"] = opacity
        self.writes.append(("opacity", layer_id, opacity))

    def get_source_descriptor(self, layer_id: str) -> dict[str, Any] | None:
        return self._layer(layer_id)["source"]

    def get_sprite_url(self) -> str | None:
        return self.sprite_url

    def get_glyphs_url(self) -> str | None:
        return self.glyphs_url

    def remove_layer(self, layer_id: str) -> None:
        del self.layers[layer_id]
        self.writes.append(("remove", layer_id, None))

    def move_layer(self, layer_id: str, before_id: str | None = None) -> None:
        self.writes.append(("move", layer_id, before_id))

    def subscribe(self, callback: Callable[[HostEvent], None]) -> Callable[[], None]:
        self._listeners.append(callback)

        def _unsubscribe() -> None:
            self._listeners.remove(callback)

        return _unsubscribe

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def emit(self, event: HostEvent) -> None:
        for callback in list(self._listeners):
            callback(event)


class FakeResponse:
    """Minimal stand-in for an aiohttp response used as an async context manager."""

    def __init__(self, status: int, body: str | bytes, charset: str | None = "utf-8") -> None:
        self.status = status
        self.charset = charset
        self._body = body.encode() if isinstance(body, str) else body

    async def read(self) -> bytes:
        return self._body

    async def __aenter__(self) -> FakeResponse:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        return None


class FakeSession:
    """Records GET requests and replays one canned response or error."""

    def __init__(self, response: FakeResponse | None = None, error: Exception | None = None) -> None:
        self._response = response
        self._error = error
        self.requests: list[tuple[str, dict[str, Any]]] = []
        self.closed = False

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        self.requests.append((url, kwargs))
        if self._error is not None:
            raise self._error
        assert self._response is not None
        return self._response

    async def close(self) -> None:
        self.closed = True


class _ManualHandle:
    def __init__(self, due: float, callback: Callable[[], None]) -> None:
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Deterministic scheduler: timers only fire inside :meth:`advance`."""

    def __init__(self) -> None:
        self.now = 0.0
        self._handles: list[_ManualHandle] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> _ManualHandle:
        handle = _ManualHandle(self.now + delay, callback)
        self._handles.append(handle)
        return handle

    @property
    def pending(self) -> int:
        return sum(1 for handle in self._handles if not handle.cancelled)

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [h for h in self._handles if not h.cancelled and h.due <= target]
            if not due:
                break
            handle = min(due, key=lambda h: h.due)
            self._handles.remove(handle)
            self.now = handle.due
            handle.callback()
        self._handles = [h for h in self._handles if not h.cancelled]
        self.now = target


class FakeAdapter:
    """Scripted custom layer adapter with every optional capability."""

    def __init__(self, type_tag: str = "cog", layer_ids: tuple[str, ...] = ()) -> None:
        self.type = type_tag
        self.layers: dict[str, dict[str, Any]] = {
            layer_id: {"visible": True, "opacity": 1.0, "name": f"COG {layer_id}"} for layer_id in layer_ids
        }
        self.calls: list[tuple[str, str, Any]] = []
        self.native_layers: dict[str, list[str]] = {}
        self.fail_reads = False
        self.fail_writes = False
        self._callbacks: list[Callable[[str, str], None]] = []

    def get_layer_ids(self) -> list[str]:
        if self.fail_reads:
            raise RuntimeError("adapter offline")
        return list(self.layers)

    def get_layer_state(self, layer_id: str) -> CustomLayerState | None:
        state = self.layers.get(layer_id)
        return CustomLayerState(**state) if state is not None else None

    def set_visibility(self, layer_id: str, visible: bool) -> None:
        if self.fail_writes:
            raise RuntimeError("adapter write failed")
        self.layers[layer_id]["visible"] = visible
        self.calls.append(("visibility", layer_id, visible))

    def set_opacity(self, layer_id: str, opacity: float) -> None:
        if self.fail_writes:
            raise RuntimeError("adapter write failed")
        self.layers[layer_id]["opacity"] = opacity
        self.calls.append(("opacity", layer_id, opacity))

    def get_symbol_type(self, layer_id: str) -> str:
        return "raster"

    def get_bounds(self, layer_id: str) -> tuple[float, float, float, float]:
        return (-10.0, -5.0, 10.0, 5.0)

    def get_native_layer_ids(self, layer_id: str) -> list[str]:
        return self.native_layers.get(layer_id, [])

    def remove_layer(self, layer_id: str) -> None:
        self.calls.append(("remove", layer_id, None))

    def on_layer_change(self, callback: Callable[[str, str], None]) -> Callable[[], None]:
        self._callbacks.append(callback)

        def _unsubscribe() -> None:
            self._callbacks.remove(callback)

        return _unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._callbacks)

    def emit(self, event: AdapterEvent | str, layer_id: str) -> None:
        for callback in list(self._callbacks):
            callback(str(event), layer_id)

    def add(self, layer_id: str, **state: Any) -> None:
        self.layers[layer_id] = {"visible": True, "opacity": 1.0, "name": f"COG {layer_id}", **state}
        self.emit(AdapterEvent.ADD, layer_id)


class MinimalAdapter:
    """Adapter implementing only the required capabilities."""

    type = "minimal"

    def __init__(self, layer_ids: tuple[str, ...] = ()) -> None:
        self._ids = list(layer_ids)

    def get_layer_ids(self) -> list[str]:
        return list(self._ids)

    def get_layer_state(self, layer_id: str) -> dict[str, Any]:
        return {"visible": False, "opacity": 0.5, "name": ""}

    def set_visibility(self, layer_id: str, visible: bool) -> None:
        pass

    def set_opacity(self, layer_id: str, opacity: float) -> None:
        pass


@dataclass
class Engine:
    host: FakeHostMap
    scheduler: ManualScheduler
    registry: CustomLayerRegistry
    store: StateStore
    guard: MutationGuard
    classifier: LayerClassifier
    loop: ReconciliationLoop
    funnel: MutationFunnel
    config: LayerControlConfig


def build_engine(
    host: FakeHostMap,
    *,
    config: LayerControlConfig | None = None,
    adapters: tuple[Any, ...] = (),
    basemap_layer_ids: frozenset[str] | None = None,
    on_result: Callable[[ReconcileResult], None] | None = None,
    seed: bool = True,
) -> Engine:
    """Wire the engine components the way LayerControl.attach does, synchronously."""
    config = (config or LayerControlConfig()).validate()
    scheduler = ManualScheduler()
    registry = CustomLayerRegistry()
    for adapter in adapters:
        registry.register(adapter)
    store = StateStore()
    guard = MutationGuard()
    context = ClassificationContext.capture(
        host,
        explicit_targets=config.layers,
        basemap_layer_ids=basemap_layer_ids,
        exclusion_patterns=config.exclusion_patterns(),
    )
    classifier = LayerClassifier(context)
    loop = ReconciliationLoop(host, classifier, registry, store, guard, scheduler, config=config, on_result=on_result)
    funnel = MutationFunnel(host, store, registry, loop, guard, scheduler, settle_delay=config.settle_delay)
    if seed:
        loop.run_pass()
    host.subscribe(loop.notify)
    registry.on_change(loop.notify_adapter)
    return Engine(host, scheduler, registry, store, guard, classifier, loop, funnel, config)


@pytest.fixture
def basemap_host() -> FakeHostMap:
    """The canonical scenario: two basemap layers present at attach time."""
    host = FakeHostMap(sprite_url="https://api.maptiler.com/maps/streets/sprite")
    host.add_layer("basemap-water", source=BASEMAP_SOURCE)
    host.add_layer("basemap-roads", layer_type="line", source=BASEMAP_SOURCE)
    return host


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()
