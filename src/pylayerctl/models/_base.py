"""Base model for payloads read from the host map and style documents.

Every model that parses host- or network-supplied dicts inherits from
:class:`LayerBaseModel`, which provides:

* frozen instances, unknown keys ignored;
* a ``model_validator(mode="before")`` that drops ``None`` and blank
  string values so the field default is used;
* a ``raw`` dict that captures the original payload.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class LayerBaseModel(BaseModel):
    """Base for host/style payload models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )

    raw: dict[str, Any] = Field(default_factory=dict, repr=False)
    """Original payload dict."""

    @staticmethod
    def _clean_dict(values: dict[str, Any]) -> dict[str, Any]:
        cleaned: dict[str, Any] = {}
        for key, value in values.items():
            if value is None:
                continue
            if isinstance(value, str) and not value.strip():
                continue
            cleaned[key] = value
        return cleaned

    @model_validator(mode="before")
    @classmethod
    def _clean_values(cls, values: Any) -> Any:
        """Strip empty values and stash the raw payload."""
        if not isinstance(values, dict):
            return values
        original = dict(values)
        cleaned = LayerBaseModel._clean_dict(original)
        # Keep an explicit raw= from keyword construction.
        if "raw" not in values:
            cleaned["raw"] = original
        return cleaned
