from __future__ import annotations

import pytest

from geoplotter.exporter import (
    SVG_NAMESPACE,
    XLINK_NAMESPACE,
    XML_DECLARATION,
    export_scene,
    ring_path_data,
    scene_to_svg,
    to_standalone_svg,
)
from geoplotter.models import PointMarker, RegionShape, Scene


@pytest.fixture
def scene() -> Scene:
    return Scene(
        width=200,
        height=100,
        background="#ffffff",
        plot_mode="point",
        regions=(
            RegionShape(
                name="A & B",
                rings=(((0.0, 0.0), (10.0, 0.0), (10.0, 10.5)),),
                fill="#cccccc",
                stroke="#000000",
                stroke_width=1.0,
            ),
            RegionShape(name="Empty", rings=(), fill="#cccccc", stroke="#000000", stroke_width=1.0),
        ),
        markers=(PointMarker(cx=5.0, cy=6.25, r=5.0, fill="#ff0000", row_index=0),),
    )


def _ns_counts(document: str) -> tuple[int, int]:
    return (
        document.count(f'xmlns="{SVG_NAMESPACE}"'),
        document.count(f'"{XLINK_NAMESPACE}"'),
    )


class TestSceneToSvg:
    def test_live_markup_has_no_namespaces(self, scene):
        markup = scene_to_svg(scene)
        assert markup.startswith('<svg width="200" height="100" viewBox="0 0 200 100">')
        assert "xmlns" not in markup
        assert markup.endswith("</svg>")

    def test_elements(self, scene):
        markup = scene_to_svg(scene)
        assert markup.count("<path ") == 1
        assert '<path d="M0,0L10,0L10,10.5Z"' in markup
        assert "<title>A &amp; B</title>" in markup
        assert '<circle cx="5" cy="6.25" r="5" fill="#ff0000"/>' in markup

    def test_ring_path_data_multiple_rings(self):
        rings = (((0.0, 0.0), (1.0, 0.0), (1.0, 1.0)), ((2.0, 2.0), (3.0, 2.0), (3.0, 3.0)))
        assert ring_path_data(rings) == "M0,0L1,0L1,1ZM2,2L3,2L3,3Z"


class TestStandaloneSvg:
    def test_adds_declaration_and_namespaces(self):
        document = to_standalone_svg('<svg width="1" height="1"></svg>')
        assert document.startswith(XML_DECLARATION)
        assert document.startswith('<?xml version="1.0" standalone="no"?>\r\n<svg ')
        assert _ns_counts(document) == (1, 1)

    def test_existing_namespaces_not_duplicated(self):
        markup = f'<svg xmlns="{SVG_NAMESPACE}" xmlns:xlink="{XLINK_NAMESPACE}" width="1"></svg>'
        document = to_standalone_svg(markup)
        assert _ns_counts(document) == (1, 1)
        assert document == XML_DECLARATION + markup

    def test_only_missing_namespace_added(self):
        document = to_standalone_svg(f'<svg xmlns="{SVG_NAMESPACE}"><g/></svg>')
        assert _ns_counts(document) == (1, 1)

    def test_idempotent(self):
        once = to_standalone_svg("<svg><g/></svg>")
        twice = to_standalone_svg(once)
        assert twice == once
        assert twice.count("<?xml") == 1

    def test_namespace_on_child_does_not_count(self):
        document = to_standalone_svg(f'<svg><g xmlns="{SVG_NAMESPACE}"/></svg>')
        assert document.count(f'<svg xmlns="{SVG_NAMESPACE}"') == 1

    def test_rejects_non_svg(self):
        with pytest.raises(ValueError, match="root <svg>"):
            to_standalone_svg("<html></html>")


class TestExportScene:
    def test_writes_fixed_filename(self, scene, tmp_path):
        path = export_scene(scene, tmp_path / "out")
        assert path == tmp_path / "out" / "map.svg"
        raw = path.read_bytes()
        assert raw.startswith(b'<?xml version="1.0" standalone="no"?>\r\n<svg')
        assert _ns_counts(raw.decode("utf-8")) == (1, 1)

    def test_custom_filename(self, scene, tmp_path):
        path = export_scene(scene, tmp_path, "europe.svg")
        assert path.name == "europe.svg"
        assert path.exists()
