from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from geoplotter.config import AppConfig


def _square(lon0: float, lat0: float, lon1: float, lat1: float) -> dict[str, Any]:
    return {
        "type": "Polygon",
        "coordinates": [[[lon0, lat0], [lon1, lat0], [lon1, lat1], [lon0, lat1], [lon0, lat0]]],
    }


@pytest.fixture
def feature_collection() -> dict[str, Any]:
    return {
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "properties": {"NAME": "Alpha", "ISO2": "AL", "POP": 10},
                "geometry": _square(0.0, 45.0, 10.0, 55.0),
            },
            {
                "type": "Feature",
                "properties": {"NAME": "Beta", "ISO2": "BE", "POP": 20},
                "geometry": _square(10.0, 45.0, 20.0, 55.0),
            },
        ],
    }


@pytest.fixture
def boundaries_path(tmp_path: Path, feature_collection: dict[str, Any]) -> Path:
    path = tmp_path / "regions.geojson"
    path.write_text(json.dumps(feature_collection), encoding="utf-8")
    return path


@pytest.fixture
def write_csv(tmp_path: Path):
    def _write(text: str, name: str = "data.csv") -> Path:
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def app_config() -> AppConfig:
    return AppConfig.default()
