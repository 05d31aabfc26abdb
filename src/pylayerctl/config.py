"""Layer control configuration for pylayerctl."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from pylayerctl._constants import (
    DEFAULT_ADAPTER_DEBOUNCE,
    DEFAULT_BASEMAP_FETCH_TIMEOUT,
    DEFAULT_CONTENT_DEBOUNCE,
    DEFAULT_METADATA_DEBOUNCE,
    DEFAULT_SETTLE_DELAY,
    DEFAULT_STYLE_DEBOUNCE,
    DRAWN_LAYER_PATTERNS,
)
from pylayerctl.exceptions import LayerControlConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_list(value: str | None) -> tuple[str, ...] | None:
    if value is None:
        return None
    return tuple(part.strip() for part in value.split(",") if part.strip())


@dataclasses.dataclass(frozen=True)
class LayerControlConfig:
    """Layer control configuration.

    Parameters
    ----------
    layers : tuple of str
        Explicit allow-list of layer IDs to track individually. When
        non-empty, every other layer is folded into the Background
        aggregate and no heuristics run.
    basemap_style_url : str or None
        URL of the authoritative basemap style JSON. Layers defined in
        that style are Background, everything else is Individual.
    exclude_layers : tuple of str
        Glob patterns (``*``, ``?``, ``[...]``) forcibly classified as
        Background. Matching is case-insensitive.
    exclude_drawn_layers : bool
        Also exclude the built-in drawing-tool layer patterns (Geoman,
        Mapbox GL Draw, Terra Draw, ...).
    style_debounce : float
        Seconds to batch style-changed notifications before reconciling.
    content_debounce : float
        Seconds to batch content-loaded notifications.
    metadata_debounce : float
        Seconds to batch metadata-loaded notifications.
    adapter_debounce : float
        Seconds to batch custom layer adapter add/remove notifications.
    settle_delay : float
        Seconds the mutation guard stays raised after the last user
        mutation. Must exceed every debounce delay so the host's own
        change notifications land while reconciliation is suppressed.
    basemap_fetch_timeout : float
        Total timeout for the one-shot basemap style fetch.
    """

    layers: tuple[str, ...] = ()
    basemap_style_url: str | None = None
    exclude_layers: tuple[str, ...] = ()
    exclude_drawn_layers: bool = True
    style_debounce: float = DEFAULT_STYLE_DEBOUNCE
    content_debounce: float = DEFAULT_CONTENT_DEBOUNCE
    metadata_debounce: float = DEFAULT_METADATA_DEBOUNCE
    adapter_debounce: float = DEFAULT_ADAPTER_DEBOUNCE
    settle_delay: float = DEFAULT_SETTLE_DELAY
    basemap_fetch_timeout: float = DEFAULT_BASEMAP_FETCH_TIMEOUT

    def __post_init__(self) -> None:
        # Accept lists from callers; keep the frozen instance hashable.
        object.__setattr__(self, "layers", tuple(self.layers))
        object.__setattr__(self, "exclude_layers", tuple(self.exclude_layers))

    @property
    def max_debounce(self) -> float:
        return max(
            self.style_debounce,
            self.content_debounce,
            self.metadata_debounce,
            self.adapter_debounce,
        )

    def validate(self) -> LayerControlConfig:
        """Check timing invariants; return ``self`` for chaining."""
        delays = {
            "style_debounce": self.style_debounce,
            "content_debounce": self.content_debounce,
            "metadata_debounce": self.metadata_debounce,
            "adapter_debounce": self.adapter_debounce,
            "settle_delay": self.settle_delay,
        }
        for name, value in delays.items():
            if value < 0:
                raise LayerControlConfigError(f"{name} must be >= 0, got {value}")
        if self.settle_delay <= self.max_debounce:
            raise LayerControlConfigError(
                f"settle_delay ({self.settle_delay}) must exceed the longest debounce delay ({self.max_debounce})"
            )
        if self.basemap_fetch_timeout <= 0:
            raise LayerControlConfigError("basemap_fetch_timeout must be > 0")
        return self

    def exclusion_patterns(self) -> tuple[str, ...]:
        """User exclusion globs plus the drawing-tool set when enabled."""
        if self.exclude_drawn_layers:
            return self.exclude_layers + DRAWN_LAYER_PATTERNS
        return self.exclude_layers

    @classmethod
    def from_env(cls, **overrides: Any) -> LayerControlConfig:
        """Create configuration from environment variables.

        Reads ``LAYERCTL_LAYERS``, ``LAYERCTL_BASEMAP_STYLE_URL``,
        ``LAYERCTL_EXCLUDE_LAYERS`` (comma separated lists),
        ``LAYERCTL_EXCLUDE_DRAWN_LAYERS`` and ``LAYERCTL_SETTLE_DELAY``.
        Explicit keyword arguments override environment values.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        layers = _env_list(env.get("LAYERCTL_LAYERS"))
        if layers is not None:
            config_kwargs["layers"] = layers

        style_url = env.get("LAYERCTL_BASEMAP_STYLE_URL")
        if style_url:
            config_kwargs["basemap_style_url"] = style_url.strip()

        exclude = _env_list(env.get("LAYERCTL_EXCLUDE_LAYERS"))
        if exclude is not None:
            config_kwargs["exclude_layers"] = exclude

        if "exclude_drawn_layers" not in overrides:
            config_kwargs["exclude_drawn_layers"] = _env_bool(env.get("LAYERCTL_EXCLUDE_DRAWN_LAYERS"), True)

        settle_env = env.get("LAYERCTL_SETTLE_DELAY")
        if settle_env is not None and "settle_delay" not in overrides:
            config_kwargs["settle_delay"] = float(settle_env)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
