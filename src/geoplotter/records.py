"""Tabular and boundary dataset loading."""

from __future__ import annotations

import io
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Sequence

import requests

from .models import FIXED_SIZE, BoundaryFeature, BoundaryFeatureSet, TabularDataset, frozen_properties

LAT_COLUMN_CANDIDATES = ("latitude", "lat")
LON_COLUMN_CANDIDATES = ("longitude", "lon", "lng")
NAME_PROPERTY_CANDIDATES = ("NAME", "name", "ADMIN", "NAME_EN", "name_en")
JSON_SUFFIXES = {".json", ".geojson"}

_POLYGONAL_TYPES = {"Polygon", "MultiPolygon"}

_LOGGER = logging.getLogger("geoplotter.records")


class DataLoadError(ValueError):
    """Raised when an input file cannot be turned into a dataset."""


@dataclass(slots=True)
class RecordStore:
    """Currently loaded inputs; each slot is replaced wholesale."""

    dataset: TabularDataset | None = None
    boundaries: BoundaryFeatureSet | None = None

    def replace_dataset(self, dataset: TabularDataset) -> None:
        self.dataset = dataset

    def replace_boundaries(self, boundaries: BoundaryFeatureSet) -> None:
        self.boundaries = boundaries


def parse_tabular(text: str, *, delimiter: str = ",") -> TabularDataset:
    """Parse delimited text with a header row; every cell stays raw text."""
    if not text.strip():
        raise DataLoadError("Tabular file is empty.")
    pd = _require_pandas()
    try:
        frame = pd.read_csv(
            io.StringIO(text),
            sep=delimiter,
            dtype=str,
            keep_default_na=False,
            index_col=False,
        )
    except ValueError as exc:
        raise DataLoadError(f"Failed parsing tabular data: {exc}") from exc
    if frame.empty:
        raise DataLoadError("Tabular file has a header but no data rows.")

    frame = frame.fillna("")
    columns = tuple(str(col) for col in frame.columns)
    rows = tuple(
        MappingProxyType({col: str(value) for col, value in zip(columns, record)})
        for record in frame.itertuples(index=False, name=None)
    )
    return TabularDataset(columns=columns, rows=rows)


def load_tabular(path: Path, *, delimiter: str = ",", encoding: str = "utf-8-sig") -> TabularDataset:
    try:
        text = path.read_text(encoding=encoding)
    except (OSError, UnicodeDecodeError) as exc:
        raise DataLoadError(f"Failed reading tabular file '{path}': {exc}") from exc
    dataset = parse_tabular(text, delimiter=delimiter)
    _LOGGER.debug("Parsed %d rows x %d columns from %s", len(dataset), len(dataset.columns), path)
    return dataset


def parse_boundaries(text: str, *, source: str = "") -> BoundaryFeatureSet:
    """Parse a GeoJSON FeatureCollection into polygonal boundary features."""
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise DataLoadError(f"Boundary file is not valid JSON: {exc}") from exc
    return boundaries_from_payload(payload, source=source)


def boundaries_from_payload(payload: Any, *, source: str = "") -> BoundaryFeatureSet:
    if not isinstance(payload, Mapping):
        raise DataLoadError("Expected a JSON object at the boundary file root.")
    raw_features = payload.get("features")
    if not isinstance(raw_features, list):
        raise DataLoadError("Boundary file has no 'features' list.")
    if not raw_features:
        raise DataLoadError("Boundary file contains no features.")

    shape = _require_shapely_shape()
    features: list[BoundaryFeature] = []
    skipped: list[str] = []
    for idx, raw in enumerate(raw_features):
        if not isinstance(raw, Mapping):
            skipped.append(f"#{idx}(not an object)")
            continue
        properties = _feature_properties(raw)
        geometry_raw = raw.get("geometry")
        if not isinstance(geometry_raw, Mapping):
            skipped.append(f"#{idx}(no geometry)")
            continue
        try:
            geometry = shape(geometry_raw)
        except Exception as exc:
            skipped.append(f"#{idx}({exc})")
            continue
        if geometry.is_empty or geometry.geom_type not in _POLYGONAL_TYPES:
            skipped.append(f"#{idx}({geometry.geom_type})")
            continue
        features.append(
            BoundaryFeature(
                name=_feature_name(properties, idx),
                geometry=geometry,
                properties=frozen_properties(properties),
            )
        )

    if skipped:
        _LOGGER.warning(
            "Skipped %d non-polygonal or malformed features: %s",
            len(skipped),
            _format_list(skipped),
        )
    if not features:
        raise DataLoadError("Boundary file contains no polygonal features.")

    first = raw_features[0]
    property_keys = tuple(_feature_properties(first).keys()) if isinstance(first, Mapping) else ()
    return BoundaryFeatureSet(features=tuple(features), property_keys=property_keys, source=source)


def load_boundaries(path: Path) -> BoundaryFeatureSet:
    """Load boundaries from GeoJSON, or any vector format GeoPandas reads."""
    if path.suffix.casefold() in JSON_SUFFIXES:
        try:
            text = path.read_text(encoding="utf-8-sig")
        except (OSError, UnicodeDecodeError) as exc:
            raise DataLoadError(f"Failed reading boundary file '{path}': {exc}") from exc
        return parse_boundaries(text, source=str(path))

    gpd = _require_geopandas()
    try:
        frame = gpd.read_file(path)
    except Exception as exc:
        raise DataLoadError(f"Failed reading boundary file '{path}': {exc}") from exc
    if frame.crs is not None and frame.crs.to_epsg() != 4326:
        frame = frame.to_crs(epsg=4326)
    return parse_boundaries(frame.to_json(), source=str(path))


def fetch_boundaries(url: str, *, timeout_s: float, user_agent: str) -> BoundaryFeatureSet:
    """Fetch a remote GeoJSON FeatureCollection."""
    try:
        response = requests.get(url, timeout=timeout_s, headers={"User-Agent": user_agent})
        response.raise_for_status()
    except requests.RequestException as exc:
        raise DataLoadError(f"Failed fetching boundaries from {url}: {exc}") from exc
    return parse_boundaries(response.text, source=url)


def infer_column_defaults(columns: Sequence[str]) -> dict[str, str]:
    """Default column bindings for a freshly loaded dataset."""
    if not columns:
        raise ValueError("Cannot infer column defaults without columns")
    first = columns[0]
    second = columns[1] if len(columns) > 1 else first
    return {
        "lat_column": _first_present(columns, LAT_COLUMN_CANDIDATES) or first,
        "lon_column": _first_present(columns, LON_COLUMN_CANDIDATES) or second,
        "size_column": FIXED_SIZE,
        "key_column": first,
        "value_column": second,
    }


def infer_join_property(property_keys: Sequence[str]) -> str:
    return property_keys[0] if property_keys else ""


def _first_present(columns: Iterable[str], candidates: Sequence[str]) -> str | None:
    existing = set(columns)
    for candidate in candidates:
        if candidate in existing:
            return candidate
    return None


def _feature_properties(raw: Mapping[str, Any]) -> dict[str, Any]:
    properties = raw.get("properties")
    if not isinstance(properties, Mapping):
        return {}
    return {str(key): value for key, value in properties.items()}


def _feature_name(properties: Mapping[str, Any], idx: int) -> str:
    for key in NAME_PROPERTY_CANDIDATES:
        value = properties.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return f"feature-{idx}"


def _format_list(values: list[str], limit: int = 12) -> str:
    if len(values) <= limit:
        return ", ".join(values)
    shown = ", ".join(values[:limit])
    return f"{shown}, ... (+{len(values) - limit} more)"


def _require_pandas() -> Any:
    try:
        import pandas as pd
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("pandas is required for tabular data loading") from exc
    return pd


def _require_geopandas() -> Any:
    try:
        import geopandas as gpd
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("geopandas is required for non-GeoJSON boundary files") from exc
    return gpd


def _require_shapely_shape() -> Any:
    try:
        from shapely.geometry import shape
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("shapely is required for boundary geometry") from exc
    return shape
