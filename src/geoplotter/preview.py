"""Raster preview of a scene via matplotlib."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from .models import RegionShape, Scene

_LOGGER = logging.getLogger("geoplotter.preview")


def render_preview(scene: Scene, output_path: Path, *, dpi: int = 100) -> Path:
    """Draw the scene on a pixel-aligned canvas and save it as PNG."""
    plt, mpath, patches = _require_matplotlib()
    fig = plt.figure(figsize=(scene.width / dpi, scene.height / dpi), dpi=dpi)
    try:
        ax = fig.add_axes((0.0, 0.0, 1.0, 1.0))
        ax.set_xlim(0, scene.width)
        ax.set_ylim(scene.height, 0)
        ax.set_axis_off()
        fig.patch.set_facecolor(scene.background)
        ax.set_facecolor(scene.background)

        # one pixel of stroke in points
        px_to_pt = 72.0 / dpi
        for region in scene.regions:
            path = _region_path(region, mpath)
            if path is None:
                continue
            ax.add_patch(
                patches.PathPatch(
                    path,
                    facecolor=region.fill,
                    edgecolor=region.stroke,
                    linewidth=region.stroke_width * px_to_pt,
                    joinstyle="round",
                    zorder=1,
                )
            )
        for marker in scene.markers:
            ax.add_patch(
                patches.Circle(
                    (marker.cx, marker.cy),
                    radius=marker.r,
                    facecolor=marker.fill,
                    edgecolor="none",
                    zorder=2,
                )
            )

        output_path.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(output_path, dpi=dpi, format="png", facecolor=fig.get_facecolor())
    finally:
        plt.close(fig)
    _LOGGER.info("Preview written to %s", output_path)
    return output_path


def _region_path(region: RegionShape, mpath: Any) -> Any | None:
    vertices: list[tuple[float, float]] = []
    codes: list[int] = []
    for ring in region.rings:
        if len(ring) < 3:
            continue
        vertices.extend(ring)
        codes.append(mpath.Path.MOVETO)
        codes.extend([mpath.Path.LINETO] * (len(ring) - 1))
        vertices.append(ring[0])
        codes.append(mpath.Path.CLOSEPOLY)
    if not vertices:
        return None
    return mpath.Path(vertices, codes)


def _require_matplotlib() -> tuple[Any, Any, Any]:
    try:
        import matplotlib

        matplotlib.use("Agg", force=False)
        import matplotlib.patches as patches
        import matplotlib.path as mpath
        import matplotlib.pyplot as plt
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("matplotlib is required for preview rendering") from exc
    return (plt, mpath, patches)
