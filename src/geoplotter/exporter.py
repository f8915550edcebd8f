"""SVG serialization of rendered scenes."""

from __future__ import annotations

import logging
import re
from html import escape
from pathlib import Path

from .models import PointMarker, RegionShape, Ring, Scene

SVG_NAMESPACE = "http://www.w3.org/2000/svg"
XLINK_NAMESPACE = "http://www.w3.org/1999/xlink"
XML_DECLARATION = '<?xml version="1.0" standalone="no"?>\r\n'
DEFAULT_FILENAME = "map.svg"

_LEADING_DECLARATION_RE = re.compile(r"^\s*<\?xml[^>]*\?>\s*")
_ROOT_TAG_RE = re.compile(r"^\s*<svg\b[^>]*>")
_SVG_NS_RE = re.compile(r"\sxmlns\s*=\s*[\"']" + re.escape(SVG_NAMESPACE) + r"[\"']")
_XLINK_NS_RE = re.compile(r"\sxmlns:[\w.-]+\s*=\s*[\"']" + re.escape(XLINK_NAMESPACE) + r"[\"']")

_LOGGER = logging.getLogger("geoplotter.exporter")


def scene_to_svg(scene: Scene) -> str:
    """Markup of the scene as drawn, without namespace declarations."""
    lines = [
        f'<svg width="{scene.width}" height="{scene.height}" '
        f'viewBox="0 0 {scene.width} {scene.height}">',
        *(_region_element(region) for region in scene.regions if region.rings),
        *(_marker_element(marker) for marker in scene.markers),
        "</svg>",
    ]
    return "\n".join(lines)


def to_standalone_svg(markup: str) -> str:
    """Declare the SVG and XLink namespaces on the root and add the XML prolog.

    Declarations already present on the root element are left alone.
    """
    source = _LEADING_DECLARATION_RE.sub("", markup, count=1)
    root_match = _ROOT_TAG_RE.match(source)
    if root_match is None:
        raise ValueError("Markup has no root <svg> element")
    root_tag = root_match.group(0)

    additions: list[str] = []
    if not _SVG_NS_RE.search(root_tag):
        additions.append(f'xmlns="{SVG_NAMESPACE}"')
    if not _XLINK_NS_RE.search(root_tag):
        additions.append(f'xmlns:xlink="{XLINK_NAMESPACE}"')
    if additions:
        start = root_match.start(0) + root_tag.index("<svg") + len("<svg")
        source = source[:start] + " " + " ".join(additions) + source[start:]
    return XML_DECLARATION + source.lstrip()


def export_scene(scene: Scene, output_dir: Path, filename: str = DEFAULT_FILENAME) -> Path:
    """Write the scene as a standalone SVG document and return its path."""
    document = to_standalone_svg(scene_to_svg(scene))
    output_dir.mkdir(parents=True, exist_ok=True)
    output_path = output_dir / filename
    with output_path.open("w", encoding="utf-8", newline="") as fh:
        fh.write(document)
    _LOGGER.info(
        "Exported %d regions and %d markers to %s",
        len(scene.regions),
        len(scene.markers),
        output_path,
    )
    return output_path


def ring_path_data(rings: tuple[Ring, ...]) -> str:
    parts: list[str] = []
    for ring in rings:
        if len(ring) < 2:
            continue
        head, *tail = ring
        segment = [f"M{_fmt(head[0])},{_fmt(head[1])}"]
        segment.extend(f"L{_fmt(x)},{_fmt(y)}" for x, y in tail)
        segment.append("Z")
        parts.append("".join(segment))
    return "".join(parts)


def _region_element(region: RegionShape) -> str:
    return (
        f'  <path d="{ring_path_data(region.rings)}" fill="{escape(region.fill)}" '
        f'fill-rule="evenodd" stroke="{escape(region.stroke)}" '
        f'stroke-width="{_fmt(region.stroke_width)}">'
        f"<title>{escape(region.name)}</title></path>"
    )


def _marker_element(marker: PointMarker) -> str:
    return (
        f'  <circle cx="{_fmt(marker.cx)}" cy="{_fmt(marker.cy)}" '
        f'r="{_fmt(marker.r)}" fill="{escape(marker.fill)}"/>'
    )


def _fmt(value: float) -> str:
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return "0" if text in {"-0", ""} else text
