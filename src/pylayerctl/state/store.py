"""Canonical in-memory layer state.

This is the only component that holds per-layer state; reconciliation
and the mutation funnel write through it.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pylayerctl._constants import BACKGROUND_ID
from pylayerctl.models.layer import LayerEntry, LayerGroup, LayerKind
from pylayerctl.state.policy import aggregate_opacity, aggregate_visibility

_AGGREGATE_WRITABLE = frozenset({"visible", "opacity"})


class StateStore:
    """Ordered store of :class:`LayerEntry` records.

    Individual (and custom) entries keep their insertion order, which is
    the display order. Background members are stored alongside them but
    only surface through the synthetic ``"Background"`` aggregate, whose
    ``visible``/``opacity``/``indeterminate`` are derived from the
    members on every read. Writes to the aggregate fan out to every
    member.

    ``revision`` increments on every effective write, so callers can
    tell whether a batch of upserts changed anything.
    """

    def __init__(self) -> None:
        self._entries: dict[str, LayerEntry] = {}
        self._revision = 0

    @property
    def revision(self) -> int:
        return self._revision

    def __contains__(self, layer_id: object) -> bool:
        if layer_id == BACKGROUND_ID:
            return self.has_background
        return layer_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def has_background(self) -> bool:
        return any(entry.is_background_member for entry in self._entries.values())

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, layer_id: str) -> LayerEntry | None:
        if layer_id == BACKGROUND_ID:
            return self.background()
        return self._entries.get(layer_id)

    def background(self) -> LayerEntry | None:
        """The synthetic aggregate entry, or ``None`` without members."""
        members = list(self.background_members().values())
        if not members:
            return None
        visible, indeterminate = aggregate_visibility(members)
        return LayerEntry(
            id=BACKGROUND_ID,
            kind=LayerKind.NATIVE,
            visible=visible,
            opacity=aggregate_opacity(members),
            name=BACKGROUND_ID,
            group=LayerGroup.INDIVIDUAL,
            indeterminate=indeterminate,
        )

    def background_members(self) -> dict[str, LayerEntry]:
        return {layer_id: entry for layer_id, entry in self._entries.items() if entry.is_background_member}

    def tracked_ids(
        self,
        *,
        kind: LayerKind | None = None,
        group: LayerGroup | None = None,
    ) -> list[str]:
        """Stored IDs (never the aggregate key), optionally filtered."""
        return [
            layer_id
            for layer_id, entry in self._entries.items()
            if (kind is None or entry.kind == kind) and (group is None or entry.group == group)
        ]

    def snapshot(self) -> dict[str, LayerEntry]:
        """Display-ordered mapping: Background first (if any), then individual layers."""
        result: dict[str, LayerEntry] = {}
        aggregate = self.background()
        if aggregate is not None:
            result[BACKGROUND_ID] = aggregate
        for layer_id, entry in self._entries.items():
            if not entry.is_background_member:
                result[layer_id] = entry
        return result

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def upsert(self, layer_id: str, patch: Mapping[str, Any] | None = None, **fields: Any) -> LayerEntry | None:
        """Create or update an entry; a no-op patch performs no write.

        Patching ``"Background"`` fans ``visible``/``opacity`` out to the
        members and returns the re-derived aggregate.
        """
        values: dict[str, Any] = dict(patch or {})
        values.update(fields)
        values.pop("id", None)

        if layer_id == BACKGROUND_ID:
            return self._fan_out(values)

        existing = self._entries.get(layer_id)
        if existing is None:
            values.setdefault("name", layer_id)
            updated = LayerEntry(id=layer_id, **values)
        else:
            merged = existing.model_dump()
            merged.update(values)
            updated = LayerEntry.model_validate(merged)
            if updated == existing:
                return existing

        self._entries[layer_id] = updated
        self._revision += 1
        return updated

    def _fan_out(self, values: dict[str, Any]) -> LayerEntry | None:
        unsupported = set(values) - _AGGREGATE_WRITABLE
        if unsupported:
            raise ValueError(
                f"Background aggregate only accepts {sorted(_AGGREGATE_WRITABLE)}, got {sorted(unsupported)}"
            )
        for member_id in list(self.background_members()):
            self.upsert(member_id, values)
        return self.background()

    def remove(self, layer_id: str) -> LayerEntry | None:
        entry = self._entries.pop(layer_id, None)
        if entry is not None:
            self._revision += 1
        return entry

    def move(self, layer_id: str, before_id: str | None = None) -> bool:
        """Move an entry before ``before_id`` (or to the end). Return ``True`` if the order changed."""
        if layer_id not in self._entries or layer_id == before_id:
            return False
        if before_id is not None and before_id not in self._entries:
            return False
        order = [key for key in self._entries if key != layer_id]
        index = order.index(before_id) if before_id is not None else len(order)
        order.insert(index, layer_id)
        if order == list(self._entries):
            return False
        self._entries = {key: self._entries[key] for key in order}
        self._revision += 1
        return True
