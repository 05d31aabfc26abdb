"""Background vs. user-layer classification.

There is no authoritative "basemap" flag on host layers, so membership is
inferred from indirect signals in strict precedence order:

1. exclusion patterns (drawing tools, user globs) -> Background
2. explicit targets, when configured -> Individual iff listed
3. authoritative basemap style layer IDs, when available
4. source heuristics, evaluated once per layer at first sight

Heuristics fail open: ambiguous layers are shown individually rather
than hidden inside Background.
"""

from __future__ import annotations

import fnmatch
import logging
from collections.abc import Iterable
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field

from pylayerctl._constants import BASEMAP_PROVIDER_DOMAINS
from pylayerctl.host import HostMap, optional_host_url, read_source_descriptor
from pylayerctl.models.layer import LayerGroup
from pylayerctl.models.source import SourceDescriptor, SourceType

_logger = logging.getLogger(__name__)

# Placeholders MapLibre-style templates carry in glyph/tile URLs.
_URL_PLACEHOLDERS = ("{fontstack}", "{range}", "{z}", "{x}", "{y}", "{ratio}", "{quadkey}", "{bbox-epsg-3857}")


def url_host(url: str) -> str | None:
    """Return the lowercase hostname of an absolute URL, ``None`` if unparsable."""
    text = url.strip()
    for placeholder in _URL_PLACEHOLDERS:
        text = text.replace(placeholder, "0")
    try:
        parts = urlsplit(text)
        host = parts.hostname
    except ValueError:
        return None
    if not parts.scheme or not host:
        return None
    return host.lower()


def matches_any(layer_id: str, patterns: Iterable[str]) -> bool:
    """Case-insensitive glob match of ``layer_id`` against any pattern."""
    lowered = layer_id.lower()
    return any(fnmatch.fnmatchcase(lowered, pattern.lower()) for pattern in patterns)


def _url_hosts(urls: Iterable[str | None]) -> frozenset[str]:
    hosts = (url_host(url) for url in urls if url)
    return frozenset(host for host in hosts if host)


class ClassificationContext(BaseModel):
    """Frozen snapshot of every signal the classifier may consult.

    Built once at attach time and threaded explicitly into
    :class:`LayerClassifier`. ``basemap_layer_ids`` is ``None`` when no
    authoritative style was configured or its fetch failed.
    """

    model_config = ConfigDict(frozen=True)

    explicit_targets: frozenset[str] = frozenset()
    basemap_layer_ids: frozenset[str] | None = None
    initial_layer_ids: frozenset[str] = frozenset()
    initial_source_ids: frozenset[str] = frozenset()
    exclusion_patterns: tuple[str, ...] = ()
    style_domains: frozenset[str] = frozenset()
    provider_domains: tuple[str, ...] = Field(default=BASEMAP_PROVIDER_DOMAINS)

    @property
    def explicit_mode(self) -> bool:
        return bool(self.explicit_targets)

    @property
    def has_basemap(self) -> bool:
        return bool(self.basemap_layer_ids)

    @classmethod
    def capture(
        cls,
        host: HostMap,
        *,
        explicit_targets: Iterable[str] = (),
        basemap_layer_ids: Iterable[str] | None = None,
        exclusion_patterns: Iterable[str] = (),
        extra_style_urls: Iterable[str] = (),
    ) -> ClassificationContext:
        """Snapshot the host's current layers and sources.

        Every layer and source present now is presumptively basemap.
        Layers that fail to read are left out of the source snapshot. If
        the host cannot enumerate its layers the snapshot is empty.
        """
        try:
            layer_ids = list(host.get_all_layer_ids())
        except Exception:
            _logger.debug("Layer enumeration failed; initial snapshot is empty", exc_info=True)
            layer_ids = []
        source_ids: set[str] = set()
        for layer_id in layer_ids:
            try:
                descriptor = read_source_descriptor(host, layer_id)
            except Exception:
                _logger.debug("Skipping source snapshot for layer %s", layer_id, exc_info=True)
                continue
            if descriptor is not None and descriptor.id:
                source_ids.add(descriptor.id)

        urls = [optional_host_url(host, "get_sprite_url"), optional_host_url(host, "get_glyphs_url")]
        urls.extend(extra_style_urls)
        style_domains = _url_hosts(urls)

        return cls(
            explicit_targets=frozenset(explicit_targets),
            basemap_layer_ids=frozenset(basemap_layer_ids) if basemap_layer_ids is not None else None,
            initial_layer_ids=frozenset(layer_ids),
            initial_source_ids=frozenset(source_ids),
            exclusion_patterns=tuple(exclusion_patterns),
            style_domains=style_domains,
        )

    def with_basemap(
        self,
        basemap_layer_ids: Iterable[str] | None,
        *,
        extra_style_urls: Iterable[str] = (),
    ) -> ClassificationContext:
        """Return a copy carrying the fetched basemap layer IDs and style domains.

        The initial layer and source snapshot is kept as captured.
        """
        return self.model_copy(
            update={
                "basemap_layer_ids": frozenset(basemap_layer_ids) if basemap_layer_ids is not None else None,
                "style_domains": self.style_domains | _url_hosts(extra_style_urls),
            }
        )


class Classification(BaseModel):
    """Partition of layer IDs; both tuples keep the input order."""

    model_config = ConfigDict(frozen=True)

    individual: tuple[str, ...] = ()
    background: tuple[str, ...] = ()

    def group_of(self, layer_id: str) -> LayerGroup | None:
        if layer_id in self.individual:
            return LayerGroup.INDIVIDUAL
        if layer_id in self.background:
            return LayerGroup.BACKGROUND_MEMBER
        return None


class LayerClassifier:
    """Apply the precedence rules to layer IDs.

    The only mutable state is the first-sight memo for the source
    heuristic: once a layer is resolved by it, the answer sticks until
    :meth:`forget` is called (the layer left the map), so ambiguous URLs
    cannot make a layer flap between groups.
    """

    def __init__(self, context: ClassificationContext) -> None:
        self._context = context
        self._first_sight: dict[str, LayerGroup] = {}

    @property
    def context(self) -> ClassificationContext:
        return self._context

    def forget(self, layer_id: str) -> None:
        self._first_sight.pop(layer_id, None)

    def classify(self, layer_ids: Iterable[str], host: HostMap) -> Classification:
        individual: list[str] = []
        background: list[str] = []
        for layer_id in layer_ids:
            if self.classify_layer(layer_id, host) == LayerGroup.INDIVIDUAL:
                individual.append(layer_id)
            else:
                background.append(layer_id)
        return Classification(individual=tuple(individual), background=tuple(background))

    def classify_layer(self, layer_id: str, host: HostMap) -> LayerGroup:
        ctx = self._context
        if matches_any(layer_id, ctx.exclusion_patterns):
            return LayerGroup.BACKGROUND_MEMBER
        if ctx.explicit_mode:
            return LayerGroup.INDIVIDUAL if layer_id in ctx.explicit_targets else LayerGroup.BACKGROUND_MEMBER
        if ctx.basemap_layer_ids:
            return LayerGroup.BACKGROUND_MEMBER if layer_id in ctx.basemap_layer_ids else LayerGroup.INDIVIDUAL

        cached = self._first_sight.get(layer_id)
        if cached is not None:
            return cached
        try:
            descriptor = read_source_descriptor(host, layer_id)
        except Exception:
            # Fail open, and do not memoize a transient read failure.
            _logger.debug("Source lookup failed for layer %s", layer_id, exc_info=True)
            return LayerGroup.INDIVIDUAL
        group = self.classify_source(layer_id, descriptor)
        self._first_sight[layer_id] = group
        return group

    def classify_source(self, layer_id: str, descriptor: SourceDescriptor | None) -> LayerGroup:
        """The source heuristic (rule 4) without memoization."""
        ctx = self._context
        if descriptor is None:
            return LayerGroup.BACKGROUND_MEMBER
        if descriptor.is_media or descriptor.has_inline_data:
            return LayerGroup.INDIVIDUAL
        if descriptor.id in ctx.initial_source_ids or layer_id in ctx.initial_layer_ids:
            return LayerGroup.BACKGROUND_MEMBER

        url = descriptor.primary_url
        if url is None:
            # Composite/inline style sources without any URL or payload.
            if descriptor.type == SourceType.GEOJSON:
                return LayerGroup.INDIVIDUAL
            return LayerGroup.BACKGROUND_MEMBER

        host_name = url_host(url)
        if host_name is None:
            _logger.debug("Unparsable source URL for layer %s; treating as user layer", layer_id)
            return LayerGroup.INDIVIDUAL
        if host_name in ctx.style_domains:
            return LayerGroup.BACKGROUND_MEMBER
        if any(domain in host_name for domain in ctx.provider_domains):
            return LayerGroup.BACKGROUND_MEMBER
        return LayerGroup.INDIVIDUAL
