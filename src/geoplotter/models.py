"""Domain models shared across pipeline modules."""

from __future__ import annotations

import math
from dataclasses import dataclass, field, fields, replace
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Mapping

from .scales import normalize_color

if TYPE_CHECKING:
    from .config import StyleConfig

PLOT_MODE_POINT = "point"
PLOT_MODE_CHOROPLETH = "choropleth"
PLOT_MODES = (PLOT_MODE_POINT, PLOT_MODE_CHOROPLETH)

# Empty size column means every marker gets the base radius.
FIXED_SIZE = ""

Ring = tuple[tuple[float, float], ...]


@dataclass(frozen=True, slots=True)
class TabularDataset:
    """Parsed delimited file: header order plus raw text cells."""

    columns: tuple[str, ...]
    rows: tuple[Mapping[str, str], ...]

    def __len__(self) -> int:
        return len(self.rows)

    def has_column(self, name: str) -> bool:
        return name in self.columns


@dataclass(frozen=True, slots=True)
class BoundaryFeature:
    name: str
    geometry: Any
    properties: Mapping[str, Any] = field(default_factory=dict)

    def property_text(self, key: str) -> str | None:
        """Property value as join text, or ``None`` when absent or null."""
        if key not in self.properties:
            return None
        value = self.properties[key]
        if value is None:
            return None
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        return str(value)


@dataclass(frozen=True, slots=True)
class BoundaryFeatureSet:
    features: tuple[BoundaryFeature, ...]
    property_keys: tuple[str, ...]
    source: str = ""

    def __len__(self) -> int:
        return len(self.features)

    def __iter__(self):
        return iter(self.features)


@dataclass(frozen=True, slots=True)
class MappingConfig:
    """User bindings and styling read by every redraw.

    Instances are never mutated; use :meth:`with_changes`.
    """

    plot_mode: str = PLOT_MODE_POINT
    lat_column: str = ""
    lon_column: str = ""
    size_column: str = FIXED_SIZE
    value_column: str = ""
    key_column: str = ""
    join_property: str = ""
    point_color: str = "#ff0000"
    region_fill: str = "#cccccc"
    region_point_fill: str = "#00ff00"
    border_color: str = "#000000"
    color_scheme: str = "viridis"
    border_width: float = 1.0
    size_multiplier: float = 1.0
    fill_regions_with_points: bool = False
    match_border_to_background: bool = False

    @classmethod
    def from_style(cls, style: StyleConfig) -> MappingConfig:
        return cls(
            point_color=style.point_color,
            region_fill=style.region_fill,
            region_point_fill=style.region_point_fill,
            border_color=style.border_color,
            color_scheme=style.color_scheme,
            border_width=style.border_width,
            size_multiplier=style.size_multiplier,
        )

    def with_changes(self, **changes: Any) -> MappingConfig:
        known = {item.name for item in fields(self)}
        unknown = sorted(set(changes) - known)
        if unknown:
            raise ValueError("Unknown mapping fields: " + ", ".join(unknown))
        return _validated(replace(self, **changes))


_COLUMN_FIELDS = (
    "lat_column",
    "lon_column",
    "size_column",
    "value_column",
    "key_column",
    "join_property",
)
_COLOR_FIELDS = ("point_color", "region_fill", "region_point_fill", "border_color")
_FLAG_FIELDS = ("fill_regions_with_points", "match_border_to_background")


def _validated(cfg: MappingConfig) -> MappingConfig:
    mode = str(cfg.plot_mode).strip().casefold()
    if mode not in PLOT_MODES:
        raise ValueError("plot_mode must be one of: " + ", ".join(PLOT_MODES))
    for name in _COLUMN_FIELDS:
        if not isinstance(getattr(cfg, name), str):
            raise ValueError(f"Expected string for '{name}'")
    for name in _FLAG_FIELDS:
        if not isinstance(getattr(cfg, name), bool):
            raise ValueError(f"Expected bool for '{name}'")
    if not isinstance(cfg.color_scheme, str) or not cfg.color_scheme.strip():
        raise ValueError("Expected non-empty string for 'color_scheme'")
    border_width = _finite_float(cfg.border_width, "border_width")
    if border_width < 0:
        raise ValueError("border_width must be >= 0")
    size_multiplier = _finite_float(cfg.size_multiplier, "size_multiplier")
    if size_multiplier <= 0:
        raise ValueError("size_multiplier must be > 0")
    colors = {name: normalize_color(getattr(cfg, name), name) for name in _COLOR_FIELDS}
    return replace(
        cfg,
        plot_mode=mode,
        color_scheme=cfg.color_scheme.strip(),
        border_width=border_width,
        size_multiplier=size_multiplier,
        **colors,
    )


def _finite_float(value: Any, field_name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"Expected number for '{field_name}'")
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"{field_name} must be finite")
    return number


@dataclass(frozen=True, slots=True)
class RegionShape:
    name: str
    rings: tuple[Ring, ...]
    fill: str
    stroke: str
    stroke_width: float


@dataclass(frozen=True, slots=True)
class PointMarker:
    cx: float
    cy: float
    r: float
    fill: str
    row_index: int


@dataclass(frozen=True, slots=True)
class Scene:
    """Fully resolved drawing; rebuilt from scratch on every redraw."""

    width: int
    height: int
    background: str
    plot_mode: str
    regions: tuple[RegionShape, ...]
    markers: tuple[PointMarker, ...] = ()


def frozen_properties(raw: Mapping[str, Any]) -> Mapping[str, Any]:
    return MappingProxyType(dict(raw))
