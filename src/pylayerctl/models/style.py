"""Basemap style document model."""

from __future__ import annotations

from typing import Any

from pydantic import Field, field_validator

from pylayerctl.models._base import LayerBaseModel


class StyleLayer(LayerBaseModel):
    id: str
    type: str | None = None
    source: str | None = None


class BasemapStyle(LayerBaseModel):
    """The parts of a style JSON document the classifier cares about.

    ``sprite`` may be a single URL or a list of ``{"id", "url"}``
    objects; it is normalized to a tuple of URLs.
    """

    version: int | None = None
    name: str | None = None
    sprite: tuple[str, ...] = ()
    glyphs: str | None = None
    sources: dict[str, Any] = Field(default_factory=dict)
    layers: tuple[StyleLayer, ...] = ()

    @field_validator("sprite", mode="before")
    @classmethod
    def _normalize_sprite(cls, value: Any) -> Any:
        if isinstance(value, str):
            return (value,)
        if isinstance(value, list):
            urls: list[str] = []
            for item in value:
                if isinstance(item, str):
                    urls.append(item)
                elif isinstance(item, dict) and isinstance(item.get("url"), str):
                    urls.append(item["url"])
            return tuple(urls)
        return value

    @field_validator("layers", mode="before")
    @classmethod
    def _drop_anonymous_layers(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [item for item in value if isinstance(item, dict) and item.get("id")]
        return value

    def layer_ids(self) -> frozenset[str]:
        return frozenset(layer.id for layer in self.layers)

    def source_ids(self) -> frozenset[str]:
        return frozenset(self.sources)
