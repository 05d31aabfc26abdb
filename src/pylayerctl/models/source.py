"""Host source descriptors used by the source heuristic."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import field_validator

from pylayerctl.models._base import LayerBaseModel


class SourceType(StrEnum):
    VECTOR = "vector"
    RASTER = "raster"
    RASTER_DEM = "raster-dem"
    GEOJSON = "geojson"
    IMAGE = "image"
    VIDEO = "video"
    CANVAS = "canvas"
    UNKNOWN = "unknown"

    @classmethod
    def _missing_(cls, value: object) -> SourceType:
        return cls.UNKNOWN


MEDIA_SOURCE_TYPES: frozenset[SourceType] = frozenset({SourceType.IMAGE, SourceType.VIDEO, SourceType.CANVAS})


class SourceDescriptor(LayerBaseModel):
    """What the host knows about the source feeding a layer.

    ``data`` is the GeoJSON payload of a geojson source: either an
    inline object or a URL string.
    """

    id: str = ""
    type: SourceType = SourceType.UNKNOWN
    url: str | None = None
    tiles: tuple[str, ...] = ()
    data: Any = None

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_type(cls, value: Any) -> Any:
        if isinstance(value, str):
            return SourceType(value.strip().lower())
        return value

    @field_validator("tiles", mode="before")
    @classmethod
    def _coerce_tiles(cls, value: Any) -> Any:
        if isinstance(value, str):
            return (value,)
        if isinstance(value, (list, tuple)):
            return tuple(str(item) for item in value if item)
        return value

    @property
    def primary_url(self) -> str | None:
        """TileJSON URL if present, else the first tile template."""
        if self.url:
            return self.url
        if self.tiles:
            return self.tiles[0]
        if isinstance(self.data, str) and self.data.strip():
            return self.data
        return None

    @property
    def has_inline_data(self) -> bool:
        """Whether the source carries a non-URL payload (inline GeoJSON)."""
        return self.data is not None and not isinstance(self.data, str)

    @property
    def is_media(self) -> bool:
        return self.type in MEDIA_SOURCE_TYPES
