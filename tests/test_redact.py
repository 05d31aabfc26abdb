from __future__ import annotations

from pylayerctl._redact import redact_url_for_log


def test_redact_url_masks_provider_keys() -> None:
    redacted = redact_url_for_log("https://api.maptiler.com/maps/streets/style.json?key=ABC123&lang=en")

    assert "ABC123" not in redacted
    assert "key=<redacted>" in redacted
    assert "lang=en" in redacted


def test_redact_url_masks_access_token_case_insensitively() -> None:
    redacted = redact_url_for_log("https://api.mapbox.com/styles/v1/x?Access_Token=pk.secret")
    assert "pk.secret" not in redacted


def test_redact_url_masks_credentials() -> None:
    redacted = redact_url_for_log("https://user:pw@tiles.example.org/style.json")
    assert redacted == "https://<redacted>@tiles.example.org/style.json"


def test_redact_url_truncates_long_urls() -> None:
    redacted = redact_url_for_log("https://example.org/" + "x" * 600, max_length=32)
    assert redacted.startswith("https://example.org/")
    assert redacted.endswith("<truncated>")


def test_redact_url_empty() -> None:
    assert redact_url_for_log(None) == ""
    assert redact_url_for_log("") == ""
