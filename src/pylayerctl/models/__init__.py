"""Pydantic models for tracked layers, host sources and basemap styles."""

from pylayerctl.models.layer import CustomLayerState, LayerEntry, LayerGroup, LayerKind
from pylayerctl.models.source import MEDIA_SOURCE_TYPES, SourceDescriptor, SourceType
from pylayerctl.models.style import BasemapStyle, StyleLayer

__all__ = [
    "BasemapStyle",
    "CustomLayerState",
    "LayerEntry",
    "LayerGroup",
    "LayerKind",
    "MEDIA_SOURCE_TYPES",
    "SourceDescriptor",
    "SourceType",
    "StyleLayer",
]
