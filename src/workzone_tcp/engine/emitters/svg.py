"""Render a layout snapshot as SVG in local metres."""
from __future__ import annotations

from dataclasses import dataclass
from html import escape
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..domain.models import DeviceType, Layout, Point
from ..geometry.kernel import centroid, local_xy

CANVAS_PADDING = 25.0
LABEL_DELTA = 6.0
MIN_EXTENT_M = 1.0


@dataclass(frozen=True)
class DeviceStyle:
    fill: str
    radius: float
    shape: str = "circle"


# keyed by every DeviceType member
DEVICE_STYLES: Dict[DeviceType, DeviceStyle] = {
    DeviceType.CONE: DeviceStyle(fill="#f97316", radius=2.5),
    DeviceType.SIGN: DeviceStyle(fill="#facc15", radius=5.0, shape="diamond"),
    DeviceType.ARROW_BOARD: DeviceStyle(fill="#111827", radius=5.0, shape="square"),
    DeviceType.FLAGGER: DeviceStyle(fill="#16a34a", radius=4.5),
    DeviceType.DRUM: DeviceStyle(fill="#ea580c", radius=3.5),
    DeviceType.BARRICADE: DeviceStyle(fill="#dc2626", radius=4.0, shape="square"),
}


@dataclass
class SnapshotResult:
    image_path: Path
    origin: Point
    device_count: int


@dataclass
class _Bounds:
    min_x: float
    max_x: float
    min_y: float
    max_y: float

    @property
    def width(self) -> float:
        return max(MIN_EXTENT_M, self.max_x - self.min_x)

    @property
    def height(self) -> float:
        return max(MIN_EXTENT_M, self.max_y - self.min_y)


def _compute_bounds(coords: Iterable[Tuple[float, float]]) -> _Bounds:
    coords = list(coords)
    if not coords:
        return _Bounds(0.0, MIN_EXTENT_M, 0.0, MIN_EXTENT_M)
    xs = [c[0] for c in coords]
    ys = [c[1] for c in coords]
    return _Bounds(min(xs) - LABEL_DELTA, max(xs) + LABEL_DELTA, min(ys) - LABEL_DELTA, max(ys) + LABEL_DELTA)


def _marker(style: DeviceStyle, x: float, y: float) -> str:
    r = style.radius
    if style.shape == "diamond":
        points = f"{x},{y - r} {x + r},{y} {x},{y + r} {x - r},{y}"
        return f'<polygon points="{points}" fill="{style.fill}" stroke="#1f2937" stroke-width="0.75" />'
    if style.shape == "square":
        return (
            f'<rect x="{x - r}" y="{y - r}" width="{2 * r}" height="{2 * r}" '
            f'fill="{style.fill}" stroke="#1f2937" stroke-width="0.75" />'
        )
    return f'<circle cx="{x}" cy="{y}" r="{r}" fill="{style.fill}" stroke="#1f2937" stroke-width="0.75" />'


def layout_svg(
    layout: Layout,
    polygon: Sequence[Point],
    road: Optional[Sequence[Point]] = None,
) -> str:
    origin = centroid(polygon) if polygon else (layout.devices[0].position if layout.devices else (0.0, 0.0))
    ring_xy = [local_xy(origin, p) for p in polygon]
    road_xy = [local_xy(origin, p) for p in road] if road else []
    device_xy = [(device, local_xy(origin, device.position)) for device in layout.devices]
    bounds = _compute_bounds(ring_xy + [xy for _, xy in device_xy])

    width = bounds.width + 2 * CANVAS_PADDING
    height = bounds.height + 2 * CANVAS_PADDING

    def to_svg_coord(x: float, y: float) -> Tuple[float, float]:
        return x - bounds.min_x + CANVAS_PADDING, (bounds.max_y - y) + CANVAS_PADDING

    elements: List[str] = [
        '<svg xmlns="http://www.w3.org/2000/svg" '
        f'width="{width:.1f}" height="{height:.1f}" viewBox="0 0 {width:.1f} {height:.1f}">',
        '<rect width="100%" height="100%" fill="#f8fafc" />',
    ]

    if len(road_xy) >= 2:
        points = " ".join("{:.2f},{:.2f}".format(*to_svg_coord(x, y)) for x, y in road_xy)
        elements.append(f'<polyline points="{points}" fill="none" stroke="#94a3b8" stroke-width="6" />')

    if ring_xy:
        points = " ".join("{:.2f},{:.2f}".format(*to_svg_coord(x, y)) for x, y in ring_xy)
        elements.append(
            f'<polygon points="{points}" fill="#fde68a" fill-opacity="0.4" stroke="#b45309" stroke-width="1.5" />'
        )

    # devices on top of the zone
    for device, (lx, ly) in device_xy:
        sx, sy = to_svg_coord(lx, ly)
        elements.append(_marker(DEVICE_STYLES[device.type], sx, sy))
        if device.label:
            elements.append(
                f'<text x="{sx + LABEL_DELTA:.2f}" y="{sy - LABEL_DELTA:.2f}" fill="#0f172a" '
                f'font-size="10" font-weight="bold">{escape(device.label)}</text>'
            )

    elements.append("</svg>")
    return "".join(elements)


def render_layout_svg(
    layout: Layout,
    polygon: Sequence[Point],
    output_path: Path,
    *,
    road: Optional[Sequence[Point]] = None,
) -> Optional[SnapshotResult]:
    """Write a static snapshot of ``layout``; returns None when there is nothing to draw."""
    if not polygon and not layout.devices:
        return None
    content = layout_svg(layout, polygon, road)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(content, encoding="utf-8")
    origin = centroid(polygon) if polygon else layout.devices[0].position
    return SnapshotResult(image_path=output_path, origin=origin, device_count=len(layout.devices))
