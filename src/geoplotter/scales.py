"""Numeric coercion, size scales and sequential colour scales."""

from __future__ import annotations

import math
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Iterable

BASE_RADIUS_PX = 5.0
MAX_RADIUS_PX = 20.0

_D3_SCHEME_PREFIX = "interpolate"


def coerce_number(raw: Any) -> float | None:
    """Return ``raw`` as a finite float, or ``None`` when it is not a number."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        value = float(raw)
    else:
        text = str(raw).strip()
        if not text or "_" in text:
            return None
        try:
            value = float(text)
        except ValueError:
            return None
    if not math.isfinite(value):
        return None
    return value


@dataclass(frozen=True, slots=True)
class SizeScale:
    """Linear value -> radius mapping; a ``None`` domain means constant radius."""

    domain: tuple[float, float] | None
    range_px: tuple[float, float]

    @property
    def is_constant(self) -> bool:
        return self.domain is None

    def __call__(self, value: float | None) -> float:
        r0, r1 = self.range_px
        if self.domain is None or value is None:
            return r0
        d0, d1 = self.domain
        return r0 + (value - d0) / (d1 - d0) * (r1 - r0)


def build_size_scale(values: Iterable[float | None], multiplier: float) -> SizeScale:
    """Scale observed values onto ``[5*multiplier, 20*multiplier]`` pixels.

    Empty input or an all-equal column collapses to the base radius.
    """
    range_px = (BASE_RADIUS_PX * multiplier, MAX_RADIUS_PX * multiplier)
    observed = [value for value in values if value is not None]
    if not observed:
        return SizeScale(domain=None, range_px=range_px)
    lo = min(observed)
    hi = max(observed)
    if lo == hi:
        return SizeScale(domain=None, range_px=range_px)
    return SizeScale(domain=(lo, hi), range_px=range_px)


def fixed_size_scale(multiplier: float) -> SizeScale:
    return SizeScale(domain=None, range_px=(BASE_RADIUS_PX * multiplier, MAX_RADIUS_PX * multiplier))


@dataclass(frozen=True, slots=True)
class ColorScale:
    domain: tuple[float, float]
    scheme: str
    colormap: Any

    def __call__(self, value: float) -> str:
        d0, d1 = self.domain
        t = 0.5 if d1 == d0 else (value - d0) / (d1 - d0)
        t = min(max(t, 0.0), 1.0)
        to_hex = _require_matplotlib_colors().to_hex
        return str(to_hex(self.colormap(t), keep_alpha=False))


def build_color_scale(values: Iterable[float], scheme: str) -> ColorScale | None:
    """Sequential scale over the observed ``[min, max]``; ``None`` for no values."""
    colormap = resolve_color_scheme(scheme)
    observed = list(values)
    if not observed:
        return None
    return ColorScale(domain=(min(observed), max(observed)), scheme=scheme, colormap=colormap)


def resolve_color_scheme(name: str) -> Any:
    """Look up a matplotlib colormap by name.

    d3-style names such as ``interpolateViridis`` are accepted, and a
    case-insensitive match is used when the exact name is unknown.
    """
    registry = _require_colormap_registry()
    candidate = name.strip()
    if candidate.startswith(_D3_SCHEME_PREFIX) and len(candidate) > len(_D3_SCHEME_PREFIX):
        candidate = candidate[len(_D3_SCHEME_PREFIX):]
    if candidate in registry:
        return registry[candidate]
    folded = {key.casefold(): key for key in registry}
    match = folded.get(candidate.casefold())
    if match is None:
        raise ValueError(f"Unknown color scheme: '{name}'")
    return registry[match]


def available_color_schemes() -> list[str]:
    registry = _require_colormap_registry()
    return sorted((name for name in registry if not name.endswith("_r")), key=str.casefold)


def normalize_color(value: str, field_name: str) -> str:
    """Normalize any matplotlib colour spec to ``#rrggbb``."""
    colors = _require_matplotlib_colors()
    try:
        return str(colors.to_hex(value, keep_alpha=False))
    except ValueError as exc:
        raise ValueError(f"Invalid colour for '{field_name}': {value!r}") from exc


@lru_cache(maxsize=1)
def _require_matplotlib_colors() -> Any:
    try:
        import matplotlib.colors as colors
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("matplotlib is required for colour handling") from exc
    return colors


@lru_cache(maxsize=1)
def _require_colormap_registry() -> Any:
    try:
        import matplotlib
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("matplotlib is required for colour schemes") from exc
    return matplotlib.colormaps
