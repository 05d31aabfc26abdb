"""Tracked layer entries."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from pylayerctl.models._base import LayerBaseModel


class LayerKind(StrEnum):
    NATIVE = "native"
    CUSTOM = "custom"


class LayerGroup(StrEnum):
    INDIVIDUAL = "individual"
    BACKGROUND_MEMBER = "background_member"


class LayerEntry(BaseModel):
    """Canonical state of one tracked layer.

    Parameters
    ----------
    id : str
        Layer ID, unique within the host's layer namespace (or the
        adapter's, for custom layers).
    kind : LayerKind
        Selects the mutation path (adapter vs. host map).
    visible : bool
        Whether the layer is shown.
    opacity : float
        Opacity in ``[0, 1]``.
    name : str
        Display label, derived from the ID or overridden by the user.
    group : LayerGroup
        Whether the layer is folded into the Background aggregate.
    custom_type : str or None
        Adapter-reported symbol type, display only.
    layer_type : str or None
        Host layer type (``"fill"``, ``"raster"``, ...), display only.
    indeterminate : bool
        Set on the Background aggregate when some, but not all,
        members are visible.
    name_overridden : bool
        ``True`` once the user renamed the layer; reconciliation then
        leaves ``name`` alone.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(..., min_length=1)
    kind: LayerKind = LayerKind.NATIVE
    visible: bool = True
    opacity: float = Field(default=1.0, ge=0.0, le=1.0)
    name: str = ""
    group: LayerGroup = LayerGroup.INDIVIDUAL
    custom_type: str | None = None
    layer_type: str | None = None
    indeterminate: bool = False
    name_overridden: bool = False

    @property
    def is_custom(self) -> bool:
        return self.kind == LayerKind.CUSTOM

    @property
    def is_background_member(self) -> bool:
        return self.group == LayerGroup.BACKGROUND_MEMBER


class CustomLayerState(LayerBaseModel):
    """State reported by a custom layer adapter for one of its layers."""

    visible: bool = True
    opacity: float = 1.0
    name: str = ""
