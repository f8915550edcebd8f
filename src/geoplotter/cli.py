"""CLI entrypoint for geoplotter."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Any, Sequence

from .config import AppConfig, load_config
from .models import PLOT_MODES
from .pipeline import RenderError
from .preview import render_preview
from .scales import available_color_schemes
from .session import PlotterSession, format_report_lines
from .util import log_lines, setup_logging

LOGGER = logging.getLogger("geoplotter.cli")

# CLI flag dest -> MappingConfig field
_MAPPING_FLAGS = (
    "plot_mode",
    "lat_column",
    "lon_column",
    "size_column",
    "key_column",
    "value_column",
    "join_property",
    "point_color",
    "region_fill",
    "region_point_fill",
    "border_color",
    "color_scheme",
    "size_multiplier",
    "border_width",
    "fill_regions_with_points",
    "match_border_to_background",
)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="geoplotter",
        description="Plot tabular data on boundary maps and export SVG.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common(p: argparse.ArgumentParser) -> None:
        p.add_argument("--config", default=None, help="Path to YAML config (defaults built in).")
        p.add_argument("--verbose", action="store_true", help="Enable debug logs.")
        p.add_argument("--log-file", default=None, help="Also write logs to this file.")

    columns_p = subparsers.add_parser(
        "columns",
        help="Show dataset columns, inferred defaults and boundary property keys.",
    )
    add_common(columns_p)
    columns_p.add_argument("--data", required=True, help="Delimited data file with header row.")
    columns_p.add_argument("--boundaries", default=None, help="Boundary file (GeoJSON or vector).")

    schemes_p = subparsers.add_parser("schemes", help="List available colour schemes.")
    add_common(schemes_p)

    render_p = subparsers.add_parser("render", help="Render a map and export it as SVG.")
    add_common(render_p)
    render_p.add_argument("--data", required=True, help="Delimited data file with header row.")
    render_p.add_argument(
        "--boundaries",
        default=None,
        help="Boundary file. When omitted the configured default URL is fetched.",
    )
    render_p.add_argument("--output-dir", default=None, help="Directory for the SVG file.")
    render_p.add_argument("--filename", default=None, help="SVG file name (default map.svg).")
    render_p.add_argument("--preview", default=None, help="Also write a PNG preview here.")

    mapping_g = render_p.add_argument_group("mapping")
    mapping_g.add_argument("--mode", dest="plot_mode", choices=PLOT_MODES, default=None)
    mapping_g.add_argument("--lat-column", default=None)
    mapping_g.add_argument("--lon-column", default=None)
    mapping_g.add_argument(
        "--size-column",
        default=None,
        help="Column driving marker radius; pass an empty string for fixed size.",
    )
    mapping_g.add_argument("--key-column", default=None, help="Choropleth join key column.")
    mapping_g.add_argument("--value-column", default=None, help="Choropleth value column.")
    mapping_g.add_argument("--join-property", default=None, help="Boundary property matched to the key.")
    mapping_g.add_argument("--point-color", default=None)
    mapping_g.add_argument("--region-fill", default=None)
    mapping_g.add_argument("--region-point-fill", default=None)
    mapping_g.add_argument("--border-color", default=None)
    mapping_g.add_argument("--color-scheme", default=None)
    mapping_g.add_argument("--size-multiplier", type=float, default=None)
    mapping_g.add_argument("--border-width", type=float, default=None)
    mapping_g.add_argument(
        "--fill-regions-with-points",
        action=argparse.BooleanOptionalAction,
        default=None,
    )
    mapping_g.add_argument(
        "--match-border-to-background",
        action=argparse.BooleanOptionalAction,
        default=None,
    )
    return parser


def _load_and_setup(args: argparse.Namespace) -> AppConfig:
    log_file = Path(args.log_file) if args.log_file else None
    setup_logging(log_file, verbose=args.verbose)
    return load_config(args.config)


def _mapping_changes(args: argparse.Namespace) -> dict[str, Any]:
    changes: dict[str, Any] = {}
    for name in _MAPPING_FLAGS:
        value = getattr(args, name, None)
        if value is not None:
            changes[name] = value
    return changes


def _load_boundaries(session: PlotterSession, boundaries: str | None) -> bool:
    if boundaries:
        report = session.load_boundaries(Path(boundaries))
    else:
        LOGGER.info("No boundary file given; fetching %s", session.cfg.boundaries.default_url)
        report = session.load_default_boundaries()
    log_lines(LOGGER, format_report_lines(report))
    return report.ok


def _run_columns(cfg: AppConfig, *, data: str, boundaries: str | None) -> int:
    session = PlotterSession(cfg)
    report = session.load_data(Path(data))
    log_lines(LOGGER, format_report_lines(report))
    if not report.ok:
        return 1
    for idx, column in enumerate(session.columns):
        LOGGER.info("column[%d] %s", idx, column)
    if boundaries:
        if not _load_boundaries(session, boundaries):
            return 1
        LOGGER.info("Boundary property keys: %s", ", ".join(session.property_keys) or "(none)")
    return 0


def _run_schemes() -> int:
    for name in available_color_schemes():
        LOGGER.info(name)
    return 0


def _run_render(cfg: AppConfig, args: argparse.Namespace) -> int:
    session = PlotterSession(cfg)
    data_report = session.load_data(Path(args.data))
    log_lines(LOGGER, format_report_lines(data_report))
    if not data_report.ok:
        LOGGER.error("Render aborted: data could not be loaded.")
        return 1
    if not _load_boundaries(session, args.boundaries):
        LOGGER.error("Render aborted: boundaries could not be loaded.")
        return 1

    try:
        session.update_mapping(**_mapping_changes(args))
    except ValueError as exc:
        LOGGER.error("Invalid mapping option: %s", exc)
        return 1

    redraw_report = session.redraw()
    log_lines(LOGGER, format_report_lines(redraw_report))
    if not redraw_report.ok or redraw_report.scene is None:
        return 1

    try:
        svg_path = session.export(
            Path(args.output_dir) if args.output_dir else None,
            args.filename,
        )
    except (OSError, RenderError) as exc:
        LOGGER.error("Export failed: %s", exc)
        return 1
    LOGGER.info("SVG written to %s", svg_path)

    if args.preview:
        try:
            render_preview(redraw_report.scene, Path(args.preview), dpi=cfg.canvas.preview_dpi)
        except (OSError, ValueError) as exc:
            LOGGER.error("Preview failed: %s", exc)
            return 1
    return 0


def _dispatch(args: argparse.Namespace) -> int:
    cfg = _load_and_setup(args)
    command = str(args.command)
    if command == "columns":
        return _run_columns(cfg, data=args.data, boundaries=args.boundaries)
    if command == "schemes":
        return _run_schemes()
    if command == "render":
        return _run_render(cfg, args)
    raise ValueError(f"Unknown command: {command}")


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    return _dispatch(args)


if __name__ == "__main__":
    raise SystemExit(main())
