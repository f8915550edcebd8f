"""Typed configuration loader for `config.yaml`."""

from __future__ import annotations

import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, cast

import yaml

from .scales import normalize_color

DEFAULT_BOUNDARIES_URL = (
    "https://raw.githubusercontent.com/leakyMirror/map-of-europe/master/GeoJSON/europe.geojson"
)


def _mapping(value: Any, field_name: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ValueError(f"Expected mapping for '{field_name}'")
    return cast(Mapping[str, Any], value)


def _str(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Expected non-empty string for '{field_name}'")
    return value.strip()


def _int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"Expected integer for '{field_name}'")
    return value


def _float(value: Any, field_name: str) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value):
        return float(value)
    raise ValueError(f"Expected float for '{field_name}'")


def _positive_float(value: Any, field_name: str) -> float:
    number = _float(value, field_name)
    if number <= 0:
        raise ValueError(f"{field_name} must be > 0")
    return number


def _color(value: Any, field_name: str) -> str:
    return normalize_color(_str(value, field_name), field_name)


def _path_from_cfg(value: Any, field_name: str, root_dir: Path) -> Path:
    raw = _str(value, field_name)
    p = Path(raw)
    return p if p.is_absolute() else root_dir / p


@dataclass(frozen=True, slots=True)
class CanvasConfig:
    width_px: int
    height_px: int
    background: str
    preview_dpi: int

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> CanvasConfig:
        width_px = _int(raw.get("width_px", 1000), "canvas.width_px")
        height_px = _int(raw.get("height_px", 800), "canvas.height_px")
        preview_dpi = _int(raw.get("preview_dpi", 100), "canvas.preview_dpi")
        if width_px < 1 or height_px < 1:
            raise ValueError("canvas.width_px and canvas.height_px must be >= 1")
        if preview_dpi < 1:
            raise ValueError("canvas.preview_dpi must be >= 1")
        return cls(
            width_px=width_px,
            height_px=height_px,
            background=_color(raw.get("background", "#f3f4f6"), "canvas.background"),
            preview_dpi=preview_dpi,
        )


@dataclass(frozen=True, slots=True)
class ProjectionConfig:
    center_lon: float
    center_lat: float
    scale: float

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> ProjectionConfig:
        center_lon = _float(raw.get("center_lon", 10.0), "projection.center_lon")
        center_lat = _float(raw.get("center_lat", 52.0), "projection.center_lat")
        if center_lon < -180.0 or center_lon > 180.0:
            raise ValueError("projection.center_lon must be between -180 and 180")
        if center_lat < -90.0 or center_lat > 90.0:
            raise ValueError("projection.center_lat must be between -90 and 90")
        return cls(
            center_lon=center_lon,
            center_lat=center_lat,
            scale=_positive_float(raw.get("scale", 800.0), "projection.scale"),
        )


@dataclass(frozen=True, slots=True)
class BoundariesConfig:
    default_url: str
    request_timeout_s: float
    user_agent: str

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> BoundariesConfig:
        return cls(
            default_url=_str(raw.get("default_url", DEFAULT_BOUNDARIES_URL), "boundaries.default_url"),
            request_timeout_s=_positive_float(
                raw.get("request_timeout_s", 30), "boundaries.request_timeout_s"
            ),
            user_agent=_str(raw.get("user_agent", "geoplotter/0.1"), "boundaries.user_agent"),
        )


@dataclass(frozen=True, slots=True)
class DataConfig:
    delimiter: str
    encoding: str

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> DataConfig:
        delimiter = raw.get("delimiter", ",")
        if not isinstance(delimiter, str) or len(delimiter) != 1:
            raise ValueError("data.delimiter must be a single character")
        return cls(
            delimiter=delimiter,
            encoding=_str(raw.get("encoding", "utf-8-sig"), "data.encoding"),
        )


@dataclass(frozen=True, slots=True)
class StyleConfig:
    point_color: str
    region_fill: str
    region_point_fill: str
    border_color: str
    color_scheme: str
    border_width: float
    size_multiplier: float

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> StyleConfig:
        border_width = _float(raw.get("border_width", 1.0), "style.border_width")
        if border_width < 0:
            raise ValueError("style.border_width must be >= 0")
        return cls(
            point_color=_color(raw.get("point_color", "#ff0000"), "style.point_color"),
            region_fill=_color(raw.get("region_fill", "#cccccc"), "style.region_fill"),
            region_point_fill=_color(
                raw.get("region_point_fill", "#00ff00"), "style.region_point_fill"
            ),
            border_color=_color(raw.get("border_color", "#000000"), "style.border_color"),
            color_scheme=_str(raw.get("color_scheme", "viridis"), "style.color_scheme"),
            border_width=border_width,
            size_multiplier=_positive_float(raw.get("size_multiplier", 1.0), "style.size_multiplier"),
        )


@dataclass(frozen=True, slots=True)
class ExportConfig:
    filename: str
    output_dir: Path

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], root_dir: Path) -> ExportConfig:
        filename = _str(raw.get("filename", "map.svg"), "export.filename")
        if Path(filename).name != filename:
            raise ValueError("export.filename must be a bare file name")
        return cls(
            filename=filename,
            output_dir=_path_from_cfg(raw.get("output_dir", "build"), "export.output_dir", root_dir),
        )


@dataclass(frozen=True, slots=True)
class AppConfig:
    source_path: Path | None
    canvas: CanvasConfig
    projection: ProjectionConfig
    boundaries: BoundariesConfig
    data: DataConfig
    style: StyleConfig
    export: ExportConfig

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], source_path: Path | None) -> AppConfig:
        root_dir = source_path.parent.resolve() if source_path is not None else Path.cwd()
        return cls(
            source_path=source_path.resolve() if source_path is not None else None,
            canvas=CanvasConfig.from_mapping(_mapping(raw.get("canvas"), "canvas")),
            projection=ProjectionConfig.from_mapping(_mapping(raw.get("projection"), "projection")),
            boundaries=BoundariesConfig.from_mapping(_mapping(raw.get("boundaries"), "boundaries")),
            data=DataConfig.from_mapping(_mapping(raw.get("data"), "data")),
            style=StyleConfig.from_mapping(_mapping(raw.get("style"), "style")),
            export=ExportConfig.from_mapping(_mapping(raw.get("export"), "export"), root_dir),
        )

    @classmethod
    def default(cls) -> AppConfig:
        return cls.from_mapping({}, None)


def load_config(path: str | Path | None) -> AppConfig:
    """Load and validate the YAML config file into typed settings.

    ``None`` yields the built-in defaults.
    """
    if path is None:
        return AppConfig.default()
    cfg_path = Path(path).resolve()
    if not cfg_path.exists():
        raise FileNotFoundError(f"Config file not found: {cfg_path}")
    with cfg_path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)
    if raw is None:
        raw = {}
    if not isinstance(raw, Mapping):
        raise ValueError("Top-level config must be a YAML mapping")
    return AppConfig.from_mapping(cast(Mapping[str, Any], raw), cfg_path)
