"""Stateful plotting session: loaded inputs, current mapping and last scene."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Sequence

from .config import AppConfig
from .exporter import export_scene
from .models import BoundaryFeatureSet, MappingConfig, Scene, TabularDataset
from .pipeline import RenderError, render_scene
from .records import (
    DataLoadError,
    RecordStore,
    fetch_boundaries,
    infer_column_defaults,
    infer_join_property,
    load_boundaries as load_boundary_file,
    load_tabular,
)

_LOGGER = logging.getLogger("geoplotter.session")


@dataclass(slots=True)
class ActionReport:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    infos: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)

    def add_info(self, msg: str) -> None:
        self.infos.append(msg)


@dataclass(slots=True)
class LoadReport(ActionReport):
    source: str = ""


@dataclass(slots=True)
class RedrawReport(ActionReport):
    scene: Scene | None = None
    summary: dict[str, int] = field(default_factory=dict)


class PlotterSession:
    """Holds one user's inputs and mapping; every method is one discrete action.

    Failed actions leave the previous state in place.
    """

    def __init__(self, cfg: AppConfig) -> None:
        self.cfg = cfg
        self.store = RecordStore()
        self.mapping = MappingConfig.from_style(cfg.style)
        self.scene: Scene | None = None

    @property
    def columns(self) -> tuple[str, ...]:
        return self.store.dataset.columns if self.store.dataset is not None else ()

    @property
    def property_keys(self) -> tuple[str, ...]:
        return self.store.boundaries.property_keys if self.store.boundaries is not None else ()

    def load_data(self, path: Path) -> LoadReport:
        report = LoadReport(source=str(path))
        dataset = self._attempt(
            report,
            lambda: load_tabular(
                path,
                delimiter=self.cfg.data.delimiter,
                encoding=self.cfg.data.encoding,
            ),
        )
        if dataset is not None:
            self._accept_dataset(dataset, report)
        return report

    def load_boundaries(self, path: Path) -> LoadReport:
        report = LoadReport(source=str(path))
        boundaries = self._attempt(report, lambda: load_boundary_file(path))
        if boundaries is not None:
            self._accept_boundaries(boundaries, report)
        return report

    def load_default_boundaries(self) -> LoadReport:
        url = self.cfg.boundaries.default_url
        report = LoadReport(source=url)
        boundaries = self._attempt(
            report,
            lambda: fetch_boundaries(
                url,
                timeout_s=self.cfg.boundaries.request_timeout_s,
                user_agent=self.cfg.boundaries.user_agent,
            ),
        )
        if boundaries is not None:
            self._accept_boundaries(boundaries, report)
        return report

    def update_mapping(self, **changes: Any) -> MappingConfig:
        """Replace the mapping config; raises ``ValueError`` and keeps the old one on bad input."""
        self.mapping = self.mapping.with_changes(**changes)
        return self.mapping

    def redraw(self) -> RedrawReport:
        report = RedrawReport()
        try:
            scene = render_scene(
                self.store.dataset,
                self.store.boundaries,
                self.mapping,
                canvas=self.cfg.canvas,
                projection_cfg=self.cfg.projection,
            )
        except RenderError as exc:
            report.add_error(str(exc))
            _LOGGER.error("Redraw aborted: %s", exc)
            return report

        self.scene = scene
        report.scene = scene
        report.summary = {
            "regions": len(scene.regions),
            "markers": len(scene.markers),
        }
        empty_regions = sum(1 for region in scene.regions if not region.rings)
        if empty_regions:
            report.add_warning(f"{empty_regions} regions fell outside the projection and were not drawn.")
        report.add_info(
            f"Redraw ({scene.plot_mode}): regions={len(scene.regions)}, markers={len(scene.markers)}"
        )
        return report

    def export(self, output_dir: Path | None = None, filename: str | None = None) -> Path:
        if self.scene is None:
            raise RenderError("Nothing rendered yet; redraw before exporting.")
        return export_scene(
            self.scene,
            output_dir if output_dir is not None else self.cfg.export.output_dir,
            filename if filename is not None else self.cfg.export.filename,
        )

    def _accept_dataset(self, dataset: TabularDataset, report: LoadReport) -> None:
        self.store.replace_dataset(dataset)
        self.mapping = self.mapping.with_changes(**infer_column_defaults(dataset.columns))
        report.add_info(f"Loaded {len(dataset)} rows with columns: {', '.join(dataset.columns)}")
        report.add_info(
            f"Defaults: lat={self.mapping.lat_column}, lon={self.mapping.lon_column}, "
            f"key={self.mapping.key_column}, value={self.mapping.value_column}"
        )

    def _accept_boundaries(self, boundaries: BoundaryFeatureSet, report: LoadReport) -> None:
        self.store.replace_boundaries(boundaries)
        join_property = infer_join_property(boundaries.property_keys)
        self.mapping = self.mapping.with_changes(join_property=join_property)
        report.add_info(f"Loaded {len(boundaries)} boundary features from {boundaries.source}")
        if join_property:
            report.add_info(f"Default join property: {join_property}")
        else:
            report.add_warning("First boundary feature has no properties; join property left empty.")

    @staticmethod
    def _attempt(report: LoadReport, loader: Callable[[], Any]) -> Any | None:
        try:
            return loader()
        except DataLoadError as exc:
            report.add_error(str(exc))
            _LOGGER.error("Load failed for %s: %s", report.source, exc)
            return None


def format_report_lines(report: ActionReport) -> Sequence[str]:
    lines: list[str] = []
    lines.extend(f"[INFO] {msg}" for msg in report.infos)
    lines.extend(f"[WARN] {msg}" for msg in report.warnings)
    lines.extend(f"[ERROR] {msg}" for msg in report.errors)
    if report.ok:
        lines.append("[OK] Completed with no errors.")
    return lines
