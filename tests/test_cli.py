from __future__ import annotations

import pytest

from geoplotter.cli import main


@pytest.fixture(autouse=True)
def _keep_test_logging(monkeypatch):
    monkeypatch.setattr("geoplotter.cli.setup_logging", lambda *args, **kwargs: None)


@pytest.fixture
def points_csv(write_csv):
    return write_csv("name,latitude,longitude,pop\nA,50,5,10\nB,50,15,30\nC,x,3,5\n")


class TestRender:
    def test_point_render_writes_svg(self, points_csv, boundaries_path, tmp_path):
        out_dir = tmp_path / "out"
        code = main(
            [
                "render",
                "--data",
                str(points_csv),
                "--boundaries",
                str(boundaries_path),
                "--output-dir",
                str(out_dir),
                "--size-column",
                "pop",
                "--fill-regions-with-points",
            ]
        )
        assert code == 0
        document = (out_dir / "map.svg").read_text(encoding="utf-8")
        assert document.startswith('<?xml version="1.0" standalone="no"?>')
        assert document.count("<circle") == 2
        assert document.count("<path") == 2
        assert 'fill="#00ff00"' in document

    def test_choropleth_render_with_preview(self, write_csv, boundaries_path, tmp_path):
        data = write_csv("iso2,value\nAL,1\nBE,2\n")
        preview = tmp_path / "preview.png"
        code = main(
            [
                "render",
                "--data",
                str(data),
                "--boundaries",
                str(boundaries_path),
                "--output-dir",
                str(tmp_path),
                "--filename",
                "choropleth.svg",
                "--mode",
                "choropleth",
                "--join-property",
                "ISO2",
                "--color-scheme",
                "interpolateViridis",
                "--preview",
                str(preview),
            ]
        )
        assert code == 0
        document = (tmp_path / "choropleth.svg").read_text(encoding="utf-8")
        assert 'fill="#440154"' in document
        assert 'fill="#fde725"' in document
        assert preview.read_bytes().startswith(b"\x89PNG")

    def test_missing_data_file(self, boundaries_path, tmp_path):
        code = main(
            [
                "render",
                "--data",
                str(tmp_path / "missing.csv"),
                "--boundaries",
                str(boundaries_path),
                "--output-dir",
                str(tmp_path),
            ]
        )
        assert code == 1
        assert not (tmp_path / "map.svg").exists()

    @pytest.mark.parametrize(
        ("flag", "value"),
        [
            ("--size-multiplier", "0"),
            ("--size-multiplier", "nan"),
            ("--border-width", "inf"),
        ],
    )
    def test_invalid_mapping_option(self, points_csv, boundaries_path, tmp_path, flag, value):
        code = main(
            [
                "render",
                "--data",
                str(points_csv),
                "--boundaries",
                str(boundaries_path),
                "--output-dir",
                str(tmp_path),
                flag,
                value,
            ]
        )
        assert code == 1
        assert not (tmp_path / "map.svg").exists()

    def test_render_error_exit_code(self, points_csv, boundaries_path, tmp_path):
        code = main(
            [
                "render",
                "--data",
                str(points_csv),
                "--boundaries",
                str(boundaries_path),
                "--output-dir",
                str(tmp_path),
                "--lat-column",
                "nope",
            ]
        )
        assert code == 1


class TestInspect:
    def test_columns(self, points_csv, boundaries_path, caplog):
        caplog.set_level("INFO", logger="geoplotter")
        code = main(["columns", "--data", str(points_csv), "--boundaries", str(boundaries_path)])
        assert code == 0
        assert "column[3] pop" in caplog.text
        assert "Boundary property keys: NAME, ISO2, POP" in caplog.text

    def test_schemes(self, caplog):
        caplog.set_level("INFO", logger="geoplotter")
        assert main(["schemes"]) == 0
        assert "viridis" in caplog.text
