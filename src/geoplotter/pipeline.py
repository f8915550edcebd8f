"""Data-to-visual mapping: records + boundaries + mapping config -> scene."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Sequence

from .config import CanvasConfig, ProjectionConfig
from .models import (
    FIXED_SIZE,
    PLOT_MODE_CHOROPLETH,
    PLOT_MODE_POINT,
    BoundaryFeature,
    BoundaryFeatureSet,
    MappingConfig,
    PointMarker,
    RegionShape,
    Scene,
    TabularDataset,
)
from .projection import MapProjection
from .scales import ColorScale, SizeScale, build_color_scale, build_size_scale, coerce_number, fixed_size_scale

_LOGGER = logging.getLogger("geoplotter.pipeline")


class RenderError(ValueError):
    """Raised when a redraw cannot proceed with the current inputs."""


@dataclass(frozen=True, slots=True)
class ValidPoint:
    row_index: int
    lon: float
    lat: float
    size_value: float | None


def render_scene(
    dataset: TabularDataset | None,
    boundaries: BoundaryFeatureSet | None,
    mapping: MappingConfig,
    *,
    canvas: CanvasConfig,
    projection_cfg: ProjectionConfig,
) -> Scene:
    """Build a complete scene; never reuses anything from a previous one."""
    if boundaries is None or not boundaries.features:
        raise RenderError("Boundary geometry not loaded.")
    if dataset is None:
        raise RenderError("Data not loaded.")

    projection = MapProjection.from_config(
        projection_cfg,
        width=canvas.width_px,
        height=canvas.height_px,
    )
    stroke = canvas.background if mapping.match_border_to_background else mapping.border_color

    markers: tuple[PointMarker, ...] = ()
    if mapping.plot_mode == PLOT_MODE_POINT:
        points = collect_valid_points(dataset, mapping)
        markers = _build_markers(points, mapping, projection)
        if mapping.fill_regions_with_points:
            hits = regions_containing_points(boundaries.features, points)
            fills = [
                mapping.region_point_fill if hit else mapping.region_fill
                for hit in hits
            ]
            _LOGGER.info("Regions containing points: %d/%d", sum(hits), len(hits))
        else:
            fills = [mapping.region_fill] * len(boundaries.features)
    elif mapping.plot_mode == PLOT_MODE_CHOROPLETH:
        fills = _choropleth_fills(dataset, boundaries, mapping)
    else:
        raise RenderError(f"Unknown plot mode: {mapping.plot_mode}")

    regions = tuple(
        RegionShape(
            name=feature.name,
            rings=projection.project_geometry(feature.geometry),
            fill=fill,
            stroke=stroke,
            stroke_width=mapping.border_width,
        )
        for feature, fill in zip(boundaries.features, fills)
    )
    return Scene(
        width=canvas.width_px,
        height=canvas.height_px,
        background=canvas.background,
        plot_mode=mapping.plot_mode,
        regions=regions,
        markers=markers,
    )


def collect_valid_points(dataset: TabularDataset, mapping: MappingConfig) -> list[ValidPoint]:
    """Rows whose latitude and longitude both coerce to finite numbers."""
    _require_column(dataset, mapping.lat_column, "Latitude")
    _require_column(dataset, mapping.lon_column, "Longitude")
    size_column = mapping.size_column
    if size_column != FIXED_SIZE:
        _require_column(dataset, size_column, "Size")

    points: list[ValidPoint] = []
    for idx, row in enumerate(dataset.rows):
        lat = coerce_number(row.get(mapping.lat_column))
        lon = coerce_number(row.get(mapping.lon_column))
        if lat is None or lon is None:
            continue
        size_value = coerce_number(row.get(size_column)) if size_column != FIXED_SIZE else None
        points.append(ValidPoint(row_index=idx, lon=lon, lat=lat, size_value=size_value))

    discarded = len(dataset.rows) - len(points)
    if discarded:
        _LOGGER.info("Discarded %d rows with non-numeric latitude/longitude", discarded)
    return points


def size_scale_for(points: Sequence[ValidPoint], mapping: MappingConfig) -> SizeScale:
    if mapping.size_column == FIXED_SIZE:
        return fixed_size_scale(mapping.size_multiplier)
    return build_size_scale((point.size_value for point in points), mapping.size_multiplier)


def regions_containing_points(
    features: Sequence[BoundaryFeature],
    points: Sequence[ValidPoint],
) -> list[bool]:
    """Per-feature flag: does the region cover at least one point?"""
    if not points:
        return [False] * len(features)
    Point = _require_shapely_point_factory()
    prep, make_valid = _require_shapely_prepared()
    shapely_points = [Point(point.lon, point.lat) for point in points]

    hits: list[bool] = []
    for feature in features:
        geometry = feature.geometry
        if not geometry.is_valid:
            geometry = make_valid(geometry)
        prepared = prep(geometry)
        hits.append(any(prepared.covers(point) for point in shapely_points))
    return hits


def build_value_lookup(
    dataset: TabularDataset,
    *,
    key_column: str,
    value_column: str,
) -> dict[str, float]:
    """Join key -> value; later rows overwrite earlier rows with the same key."""
    lookup: dict[str, float] = {}
    for row in dataset.rows:
        key = row.get(key_column, "")
        value = coerce_number(row.get(value_column))
        if not key or value is None:
            continue
        previous = lookup.get(key)
        if previous is not None:
            _LOGGER.debug("Duplicate join key %r: %s replaces %s", key, value, previous)
        lookup[key] = value
    return lookup


def _build_markers(
    points: Sequence[ValidPoint],
    mapping: MappingConfig,
    projection: MapProjection,
) -> tuple[PointMarker, ...]:
    scale = size_scale_for(points, mapping)
    markers: list[PointMarker] = []
    for point in points:
        pixel = projection.project(point.lon, point.lat)
        if pixel is None:
            _LOGGER.debug(
                "Row %d at (%s, %s) has no projected position",
                point.row_index,
                point.lon,
                point.lat,
            )
            continue
        markers.append(
            PointMarker(
                cx=pixel[0],
                cy=pixel[1],
                r=scale(point.size_value),
                fill=mapping.point_color,
                row_index=point.row_index,
            )
        )
    _LOGGER.info("Markers drawn: %d", len(markers))
    return tuple(markers)


def _choropleth_fills(
    dataset: TabularDataset,
    boundaries: BoundaryFeatureSet,
    mapping: MappingConfig,
) -> list[str]:
    if not mapping.key_column or not mapping.value_column:
        raise RenderError("Choropleth columns not selected.")
    if not mapping.join_property:
        raise RenderError("Choropleth join property not selected.")
    _require_column(dataset, mapping.key_column, "Choropleth key")
    _require_column(dataset, mapping.value_column, "Choropleth value")
    if mapping.join_property not in boundaries.property_keys:
        _LOGGER.warning(
            "Join property '%s' is not among the first feature's properties",
            mapping.join_property,
        )

    lookup = build_value_lookup(
        dataset,
        key_column=mapping.key_column,
        value_column=mapping.value_column,
    )
    try:
        scale = build_color_scale(lookup.values(), mapping.color_scheme)
    except ValueError as exc:
        raise RenderError(str(exc)) from exc

    fills: list[str] = []
    matched = 0
    for feature in boundaries.features:
        fill = _region_value_fill(feature, lookup, scale, mapping)
        if fill is None:
            fills.append(mapping.region_fill)
        else:
            fills.append(fill)
            matched += 1
    _LOGGER.info(
        "Choropleth: %d keys loaded, %d/%d regions matched",
        len(lookup),
        matched,
        len(fills),
    )
    return fills


def _region_value_fill(
    feature: BoundaryFeature,
    lookup: dict[str, float],
    scale: ColorScale | None,
    mapping: MappingConfig,
) -> str | None:
    if scale is None:
        return None
    key = feature.property_text(mapping.join_property)
    if key is None:
        return None
    value = lookup.get(key)
    if value is None:
        return None
    return scale(value)


def _require_column(dataset: TabularDataset, column: str, label: str) -> None:
    if not column:
        raise RenderError(f"{label} column not selected.")
    if not dataset.has_column(column):
        raise RenderError(f"{label} column '{column}' is not in the dataset.")


def _require_shapely_point_factory() -> Any:
    try:
        from shapely.geometry import Point
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("shapely is required for point checks in rendering") from exc
    return Point


def _require_shapely_prepared() -> tuple[Any, Any]:
    try:
        from shapely.prepared import prep
        from shapely.validation import make_valid
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("shapely is required for region membership tests") from exc
    return (prep, make_valid)
