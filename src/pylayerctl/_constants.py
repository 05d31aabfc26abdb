"""Internal constants shared across the library."""

BACKGROUND_ID = "Background"

# Tile providers whose sources are typically part of a base style.
BASEMAP_PROVIDER_DOMAINS: tuple[str, ...] = (
    "demotiles.maplibre.org",
    "api.maptiler.com",
    "tiles.stadiamaps.com",
    "api.mapbox.com",
    "basemaps.cartocdn.com",
)

# Drawing-library scratch layers (matched case-insensitively).
DRAWN_LAYER_PATTERNS: tuple[str, ...] = (
    "gm-*",
    "gm_*",
    "gm *",
    "gl-draw-*",
    "gl-draw_*",
    "mapbox-gl-draw-*",
    "mapbox-gl-draw_*",
    "terra-draw-*",
    "terra-draw_*",
    "maplibre-gl-draw-*",
    "maplibre-gl-draw_*",
    "draw-layer*",
    "draw_layer*",
)

# ------------------------------------------------------------------
# Timing (seconds)
# ------------------------------------------------------------------

DEFAULT_STYLE_DEBOUNCE = 0.1
DEFAULT_CONTENT_DEBOUNCE = 0.1
DEFAULT_METADATA_DEBOUNCE = 0.15
DEFAULT_ADAPTER_DEBOUNCE = 0.1
DEFAULT_SETTLE_DELAY = 0.3
DEFAULT_BASEMAP_FETCH_TIMEOUT = 10.0

# ------------------------------------------------------------------
# Opacity paint properties per host layer type
# ------------------------------------------------------------------

_OPACITY_PROPERTIES: dict[str, tuple[str, ...]] = {
    "fill": ("fill-opacity",),
    "line": ("line-opacity",),
    "circle": ("circle-opacity",),
    "symbol": ("icon-opacity", "text-opacity"),
    "raster": ("raster-opacity",),
    "background": ("background-opacity",),
    "heatmap": ("heatmap-opacity",),
    "fill-extrusion": ("fill-extrusion-opacity",),
    # Hillshade has no opacity; exaggeration is the closest intensity knob.
    "hillshade": ("hillshade-exaggeration",),
    "color-relief": (),
}


def opacity_paint_properties(layer_type: str) -> tuple[str, ...]:
    """Return the paint properties a host binding writes to change opacity.

    The first entry is the one to read back. An empty tuple means the
    layer type has no opacity and reads should report ``1.0``. Unknown
    types follow the ``<type>-opacity`` convention.
    """
    props = _OPACITY_PROPERTIES.get(layer_type)
    if props is None:
        return (f"{layer_type}-opacity",)
    return props
