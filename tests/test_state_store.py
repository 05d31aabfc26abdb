from __future__ import annotations

import pytest

from pylayerctl._constants import BACKGROUND_ID
from pylayerctl.models.layer import LayerEntry, LayerGroup, LayerKind
from pylayerctl.state.policy import aggregate_opacity, aggregate_visibility, clamp_opacity
from pylayerctl.state.store import StateStore

BG = LayerGroup.BACKGROUND_MEMBER


def _store_with_background(*members: tuple[str, bool, float]) -> StateStore:
    store = StateStore()
    for layer_id, visible, opacity in members:
        store.upsert(layer_id, group=BG, visible=visible, opacity=opacity)
    return store


def test_new_entry_defaults_name_to_id() -> None:
    store = StateStore()
    entry = store.upsert("user-fill-1", visible=False)

    assert entry is not None
    assert entry.name == "user-fill-1"
    assert entry.kind == LayerKind.NATIVE
    assert entry.visible is False
    assert store.revision == 1


def test_noop_patch_does_not_bump_revision() -> None:
    store = StateStore()
    store.upsert("a", opacity=0.5)
    revision = store.revision

    store.upsert("a", opacity=0.5)
    store.upsert("a", {"visible": True})

    assert store.revision == revision


def test_partial_patch_keeps_other_fields() -> None:
    store = StateStore()
    store.upsert("a", name="Alpha", opacity=0.4, layer_type="fill")
    store.upsert("a", visible=False)

    entry = store.get("a")
    assert entry == LayerEntry(id="a", name="Alpha", opacity=0.4, layer_type="fill", visible=False)


def test_invalid_opacity_is_rejected() -> None:
    store = StateStore()
    with pytest.raises(ValueError):
        store.upsert("a", opacity=1.5)
    assert "a" not in store


def test_background_aggregate_derivation() -> None:
    store = _store_with_background(("water", True, 1.0), ("roads", False, 0.5))

    aggregate = store.get(BACKGROUND_ID)

    assert aggregate is not None
    assert aggregate.name == BACKGROUND_ID
    assert aggregate.visible is True
    assert aggregate.indeterminate is True
    assert aggregate.opacity == pytest.approx(0.75)
    assert BACKGROUND_ID in store
    assert store.has_background


def test_background_absent_without_members() -> None:
    store = StateStore()
    store.upsert("user-fill-1")

    assert store.get(BACKGROUND_ID) is None
    assert BACKGROUND_ID not in store
    assert list(store.snapshot()) == ["user-fill-1"]


def test_background_write_fans_out() -> None:
    store = _store_with_background(("water", True, 1.0), ("roads", False, 0.5))

    aggregate = store.upsert(BACKGROUND_ID, visible=False, opacity=0.3)

    assert aggregate is not None
    assert aggregate.visible is False
    assert aggregate.indeterminate is False
    assert aggregate.opacity == pytest.approx(0.3)
    assert all(not m.visible and m.opacity == pytest.approx(0.3) for m in store.background_members().values())


def test_background_rejects_other_fields() -> None:
    store = _store_with_background(("water", True, 1.0))
    with pytest.raises(ValueError, match="Background aggregate"):
        store.upsert(BACKGROUND_ID, name="Base")


def test_snapshot_order_background_first() -> None:
    store = StateStore()
    store.upsert("user-a")
    store.upsert("water", group=BG)
    store.upsert("user-b")

    assert list(store.snapshot()) == [BACKGROUND_ID, "user-a", "user-b"]
    assert store.tracked_ids(group=BG) == ["water"]
    assert store.tracked_ids(group=LayerGroup.INDIVIDUAL) == ["user-a", "user-b"]


def test_tracked_ids_by_kind() -> None:
    store = StateStore()
    store.upsert("native")
    store.upsert("cog-1", kind=LayerKind.CUSTOM)

    assert store.tracked_ids(kind=LayerKind.CUSTOM) == ["cog-1"]
    assert store.tracked_ids(kind=LayerKind.NATIVE) == ["native"]
    assert store.get("cog-1").is_custom  # type: ignore[union-attr]


def test_remove() -> None:
    store = StateStore()
    store.upsert("a")
    revision = store.revision

    assert store.remove("a") is not None
    assert store.remove("a") is None
    assert store.revision == revision + 1
    assert len(store) == 0


class TestMove:
    def test_move_before(self) -> None:
        store = StateStore()
        for layer_id in ("a", "b", "c"):
            store.upsert(layer_id)

        assert store.move("c", "a") is True
        assert list(store.snapshot()) == ["c", "a", "b"]

    def test_move_to_end(self) -> None:
        store = StateStore()
        for layer_id in ("a", "b"):
            store.upsert(layer_id)

        assert store.move("a") is True
        assert list(store.snapshot()) == ["b", "a"]

    def test_noop_moves(self) -> None:
        store = StateStore()
        for layer_id in ("a", "b"):
            store.upsert(layer_id)
        revision = store.revision

        assert store.move("b") is False
        assert store.move("a", "a") is False
        assert store.move("a", "missing") is False
        assert store.move("missing") is False
        assert store.revision == revision


class TestPolicy:
    def test_clamp_opacity(self) -> None:
        assert clamp_opacity(-0.2) == 0.0
        assert clamp_opacity(1.7) == 1.0
        assert clamp_opacity(float("nan")) == 1.0
        assert clamp_opacity(0.25) == 0.25

    def test_aggregate_visibility(self) -> None:
        on = LayerEntry(id="on", visible=True)
        off = LayerEntry(id="off", visible=False)

        assert aggregate_visibility([]) == (False, False)
        assert aggregate_visibility([on, on]) == (True, False)
        assert aggregate_visibility([off, off]) == (False, False)
        assert aggregate_visibility([on, off]) == (True, True)

    def test_aggregate_opacity(self) -> None:
        assert aggregate_opacity([]) == 1.0
        uniform = [LayerEntry(id="a", opacity=0.4), LayerEntry(id="b", opacity=0.4)]
        assert aggregate_opacity(uniform) == pytest.approx(0.4)
        mixed = [LayerEntry(id="a", opacity=0.2), LayerEntry(id="b", opacity=0.6)]
        assert aggregate_opacity(mixed) == pytest.approx(0.4)
