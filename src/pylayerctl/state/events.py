"""Change notifications and reconciliation deltas.

Host and adapter notifications are normalized into these enums before
they reach the reconciliation loop; every pass reports what it changed
as a :class:`ReconcileResult`.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict


class HostEvent(StrEnum):
    STYLE_CHANGED = "style_changed"
    CONTENT_LOADED = "content_loaded"
    METADATA_LOADED = "metadata_loaded"


class AdapterEvent(StrEnum):
    ADD = "add"
    REMOVE = "remove"


class ReconcileResult(BaseModel):
    """Store mutations performed by one reconciliation pass.

    ``background_added`` / ``background_removed`` list Background
    members; they are appended silently and do not count as display
    changes.
    """

    model_config = ConfigDict(frozen=True)

    added: tuple[str, ...] = ()
    removed: tuple[str, ...] = ()
    updated: tuple[str, ...] = ()
    background_added: tuple[str, ...] = ()
    background_removed: tuple[str, ...] = ()
    failed: tuple[str, ...] = ()
    suppressed: bool = False

    @property
    def has_display_changes(self) -> bool:
        return bool(self.added or self.removed or self.updated or self.background_removed)

    @property
    def store_writes(self) -> int:
        return (
            len(self.added)
            + len(self.removed)
            + len(self.updated)
            + len(self.background_added)
            + len(self.background_removed)
        )
