from __future__ import annotations

import pytest

from pylayerctl._naming import friendly_name


@pytest.mark.parametrize(
    ("layer_id", "expected"),
    [
        ("layer-user_fill-1", "User Fill 1"),
        ("gl_points", "Points"),
        ("parcels", "Parcels"),
        ("road-labels", "Road Labels"),
        ("layer-", "layer-"),
    ],
)
def test_friendly_name(layer_id: str, expected: str) -> None:
    assert friendly_name(layer_id) == expected
