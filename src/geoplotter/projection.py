"""Longitude/latitude to canvas-pixel projection."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Sequence

from .config import ProjectionConfig
from .models import Ring


@dataclass(frozen=True, slots=True)
class MapProjection:
    """Lambert azimuthal equal-area on the unit sphere, scaled to pixels.

    The projection centre lands on the canvas centre and y grows downward.
    """

    proj: Any
    scale: float
    translate: tuple[float, float]

    @classmethod
    def from_config(cls, cfg: ProjectionConfig, *, width: int, height: int) -> MapProjection:
        Proj = _require_pyproj_proj()
        proj = Proj(
            f"+proj=laea +lat_0={cfg.center_lat} +lon_0={cfg.center_lon} +R=1 +units=m +no_defs"
        )
        return cls(proj=proj, scale=cfg.scale, translate=(width / 2.0, height / 2.0))

    def project(self, lon: float, lat: float) -> tuple[float, float] | None:
        """Pixel position, or ``None`` where the projection is undefined."""
        x, y = self.proj(float(lon), float(lat))
        return self._to_pixels(float(x), float(y))

    def project_ring(self, coords: Sequence[tuple[float, float]]) -> Ring:
        if not coords:
            return ()
        lons = [float(point[0]) for point in coords]
        lats = [float(point[1]) for point in coords]
        xs, ys = self.proj(lons, lats)
        out: list[tuple[float, float]] = []
        for x, y in zip(xs, ys):
            pixel = self._to_pixels(float(x), float(y))
            if pixel is not None:
                out.append(pixel)
        return tuple(out)

    def project_geometry(self, geometry: Any) -> tuple[Ring, ...]:
        rings = (self.project_ring(ring) for ring in iter_linear_rings(geometry))
        return tuple(ring for ring in rings if len(ring) >= 3)

    def _to_pixels(self, x: float, y: float) -> tuple[float, float] | None:
        if not (math.isfinite(x) and math.isfinite(y)):
            return None
        tx, ty = self.translate
        return (tx + x * self.scale, ty - y * self.scale)


def iter_linear_rings(geometry: Any) -> list[Sequence[tuple[float, float]]]:
    """Exterior and interior rings of a (multi)polygon, in drawing order."""
    geom_type = getattr(geometry, "geom_type", "")
    if geom_type == "Polygon":
        rings: list[Sequence[tuple[float, float]]] = [
            [(float(x), float(y)) for x, y, *_ in geometry.exterior.coords]
        ]
        for interior in geometry.interiors:
            rings.append([(float(x), float(y)) for x, y, *_ in interior.coords])
        return rings

    if geom_type in {"MultiPolygon", "GeometryCollection"}:
        rings = []
        for part in geometry.geoms:
            rings.extend(iter_linear_rings(part))
        return rings

    return []


def _require_pyproj_proj() -> Any:
    try:
        from pyproj import Proj
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("pyproj is required for map projection") from exc
    return Proj
