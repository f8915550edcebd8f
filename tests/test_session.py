from __future__ import annotations

import json

import pytest

from geoplotter import records
from geoplotter.pipeline import RenderError
from geoplotter.session import LoadReport, PlotterSession, RedrawReport, format_report_lines


@pytest.fixture
def session(app_config):
    return PlotterSession(app_config)


class TestLoading:
    def test_data_upload_resets_column_defaults(self, session, write_csv):
        report = session.load_data(write_csv("name,latitude,longitude,pop\nA,50,5,1\n"))
        assert report.ok
        assert session.columns == ("name", "latitude", "longitude", "pop")
        assert session.mapping.lat_column == "latitude"
        assert session.mapping.lon_column == "longitude"
        assert session.mapping.key_column == "name"
        assert session.mapping.value_column == "latitude"

        session.update_mapping(size_column="pop")
        session.load_data(write_csv("a,b\n1,2\n", name="other.csv"))
        assert session.mapping.size_column == ""
        assert session.mapping.lat_column == "a"
        assert session.mapping.lon_column == "b"

    def test_failed_data_upload_keeps_prior_state(self, session, write_csv):
        session.load_data(write_csv("latitude,longitude\n50,5\n"))
        before_dataset = session.store.dataset
        before_mapping = session.mapping

        report = session.load_data(write_csv("", name="empty.csv"))
        assert not report.ok
        assert session.store.dataset is before_dataset
        assert session.mapping == before_mapping
        assert any(line.startswith("[ERROR]") for line in format_report_lines(report))

    def test_boundary_upload_sets_join_property(self, session, boundaries_path):
        report = session.load_boundaries(boundaries_path)
        assert report.ok
        assert session.property_keys == ("NAME", "ISO2", "POP")
        assert session.mapping.join_property == "NAME"

    def test_failed_boundary_upload_keeps_prior_state(self, session, boundaries_path, tmp_path):
        session.load_boundaries(boundaries_path)
        before = session.store.boundaries
        broken = tmp_path / "broken.geojson"
        broken.write_text("{oops", encoding="utf-8")

        report = session.load_boundaries(broken)
        assert not report.ok
        assert session.store.boundaries is before
        assert session.mapping.join_property == "NAME"

    def test_default_boundaries_fetched_from_config_url(
        self, session, monkeypatch, feature_collection
    ):
        seen = []

        def fake_fetch(url, *, timeout_s, user_agent):
            seen.append(url)
            return records.parse_boundaries(json.dumps(feature_collection), source=url)

        monkeypatch.setattr("geoplotter.session.fetch_boundaries", fake_fetch)
        report = session.load_default_boundaries()
        assert report.ok
        assert seen == [session.cfg.boundaries.default_url]
        assert len(session.store.boundaries) == 2


class TestMapping:
    def test_update_is_replacement(self, session):
        before = session.mapping
        after = session.update_mapping(point_color="blue", border_width=2)
        assert after is session.mapping
        assert after is not before
        assert before.point_color == "#ff0000"
        assert after.point_color == "#0000ff"
        assert after.border_width == 2.0

    @pytest.mark.parametrize(
        "changes",
        [
            {"plot_mode": "heatmap"},
            {"size_multiplier": 0},
            {"border_width": -1},
            {"size_multiplier": float("nan")},
            {"size_multiplier": float("inf")},
            {"border_width": float("nan")},
            {"border_width": float("inf")},
            {"border_width": None},
            {"size_multiplier": "2"},
            {"point_color": "nope"},
            {"unknown_field": 1},
        ],
    )
    def test_invalid_update_keeps_old_mapping(self, session, changes):
        before = session.mapping
        with pytest.raises(ValueError):
            session.update_mapping(**changes)
        assert session.mapping is before


class TestRedrawAndExport:
    def test_redraw_without_inputs_reports_error(self, session):
        report = session.redraw()
        assert not report.ok
        assert report.scene is None
        assert session.scene is None

    def test_failed_redraw_keeps_last_scene(self, session, write_csv, boundaries_path):
        session.load_data(write_csv("latitude,longitude\n50,5\n"))
        session.load_boundaries(boundaries_path)
        first = session.redraw()
        assert first.ok
        assert first.summary == {"regions": 2, "markers": 1}

        session.update_mapping(lat_column="missing")
        second = session.redraw()
        assert not second.ok
        assert session.scene is first.scene

    def test_redraw_only_on_request(self, session, write_csv, boundaries_path):
        session.load_data(write_csv("latitude,longitude\n50,5\n"))
        session.load_boundaries(boundaries_path)
        session.redraw()
        scene = session.scene
        session.update_mapping(point_color="#00ff00")
        assert session.scene is scene
        assert session.scene.markers[0].fill == "#ff0000"

    def test_export_before_redraw(self, session, tmp_path):
        with pytest.raises(RenderError, match="Nothing rendered"):
            session.export(tmp_path)

    def test_export_after_redraw(self, session, write_csv, boundaries_path, tmp_path):
        session.load_data(write_csv("latitude,longitude\n50,5\n"))
        session.load_boundaries(boundaries_path)
        session.redraw()
        path = session.export(tmp_path)
        assert path == tmp_path / "map.svg"
        assert path.read_text(encoding="utf-8").count("<circle") == 1


class TestReports:
    @pytest.mark.parametrize("report_type", [LoadReport, RedrawReport])
    def test_reports_share_line_format(self, report_type):
        report = report_type()
        report.add_info("loaded")
        report.add_warning("odd")
        assert report.ok
        assert format_report_lines(report) == [
            "[INFO] loaded",
            "[WARN] odd",
            "[OK] Completed with no errors.",
        ]
        report.add_error("broken")
        assert not report.ok
        assert format_report_lines(report)[-1] == "[ERROR] broken"
