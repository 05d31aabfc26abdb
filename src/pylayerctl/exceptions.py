"""Custom exception hierarchy for pylayerctl."""

from __future__ import annotations


class LayerControlError(Exception):
    """Base exception for all pylayerctl errors."""


class LayerControlConfigError(LayerControlError):
    """Invalid or inconsistent configuration."""


class BasemapFetchError(LayerControlError):
    """The authoritative basemap style could not be fetched or parsed."""

    def __init__(
        self,
        message: str,
        *,
        url: str = "",
        status_code: int | None = None,
    ) -> None:
        self.url = url
        self.status_code = status_code
        super().__init__(message)


class AdapterError(LayerControlError):
    """A custom layer adapter raised or returned something unusable."""

    def __init__(self, message: str, *, type_tag: str = "") -> None:
        self.type_tag = type_tag
        super().__init__(message)


class HostReadError(LayerControlError):
    """A layer vanished (or failed to read) between enumeration and lookup.

    Raised by the reconciliation helpers and caught per entry; the next
    debounce cycle re-converges.
    """

    def __init__(self, message: str, *, layer_id: str = "") -> None:
        self.layer_id = layer_id
        super().__init__(message)
