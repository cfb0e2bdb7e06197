"""Page geometry: card slot positions and cut-guide shapes."""

import math
from dataclasses import dataclass, field
from typing import Sequence, TypeVar

from proxyprint.config import LayoutSpec
from proxyprint.utils.dimensions import center_on_page

T = TypeVar("T")

# Cut lines closer than this are treated as the same line
_CUT_LINE_TOLERANCE_MM = 1e-6


@dataclass(frozen=True)
class SlotPosition:
    """One card slot on a page. Millimetres from the page's top-left corner."""

    x: float
    y: float
    width: float
    height: float
    col: int
    row: int

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height


@dataclass(frozen=True)
class GuideSegment:
    """A straight guide line from (x1, y1) to (x2, y2), in millimetres."""

    x1: float
    y1: float
    x2: float
    y2: float

    @property
    def length(self) -> float:
        return math.hypot(self.x2 - self.x1, self.y2 - self.y1)


@dataclass(frozen=True)
class GuidePolyline:
    """An open polyline guide (rounded corner arc), in millimetres."""

    points: tuple[tuple[float, float], ...]


Guide = GuideSegment | GuidePolyline


@dataclass
class PageLayout:
    """Everything needed to place cards and guides on one page."""

    slots: list[SlotPosition]
    card_guides: list[list[Guide]] = field(default_factory=list)
    """Guides per slot, same order as slots."""

    edge_guides: list[GuideSegment] = field(default_factory=list)
    """Page-edge stubs, shared by all cards on the page."""

    guide_width_mm: float = 0.0
    guide_color: str = "#000000"

    @property
    def guides_enabled(self) -> bool:
        return self.guide_width_mm > 0 and (bool(self.edge_guides) or any(self.card_guides))


def grid_size(spec: LayoutSpec) -> tuple[float, float]:
    """
    Overall grid size, including the gaps between cards.

    Args:
        spec: Page layout.

    Returns:
        Tuple of (width, height) in millimetres.
    """
    spacing = max(0.0, spec.spacing_mm)
    width = spec.columns * spec.card_width_mm + (spec.columns - 1) * spacing
    height = spec.rows * spec.card_height_mm + (spec.rows - 1) * spacing
    return (width, height)


def compute_slots(spec: LayoutSpec) -> list[SlotPosition]:
    """
    Compute every card slot on a page, row-major.

    The grid is centered on the page; negative margins (grid larger than the
    page) are clamped to zero.

    Args:
        spec: Page layout.

    Returns:
        Exactly columns * rows slot positions.
    """
    spacing = max(0.0, spec.spacing_mm)
    grid_width, grid_height = grid_size(spec)
    start_x, start_y = center_on_page(grid_width, grid_height, spec.page_width_mm, spec.page_height_mm)

    slots: list[SlotPosition] = []
    for row in range(spec.rows):
        for col in range(spec.columns):
            slots.append(
                SlotPosition(
                    x=start_x + col * (spec.card_width_mm + spacing),
                    y=start_y + row * (spec.card_height_mm + spacing),
                    width=spec.card_width_mm,
                    height=spec.card_height_mm,
                    col=col,
                    row=row,
                )
            )
    return slots


def straight_corner_guides(slot: SlotPosition, spec: LayoutSpec) -> list[GuideSegment]:
    """
    Eight corner ticks on a card's cut line, two per corner, pointing inward.

    Args:
        slot: Card slot.
        spec: Page layout.

    Returns:
        List of eight segments, or none when the tick length is not positive.
    """
    length = min(spec.guide_length_mm, spec.card_content_width_mm, spec.card_content_height_mm)
    if length <= 0:
        return []

    left = slot.x + spec.bleed_width_mm
    top = slot.y + spec.bleed_width_mm
    right = left + spec.card_content_width_mm
    bottom = top + spec.card_content_height_mm

    return [
        # top-left
        GuideSegment(left, top, left + length, top),
        GuideSegment(left, top, left, top + length),
        # top-right
        GuideSegment(right, top, right - length, top),
        GuideSegment(right, top, right, top + length),
        # bottom-left
        GuideSegment(left, bottom, left + length, bottom),
        GuideSegment(left, bottom, left, bottom - length),
        # bottom-right
        GuideSegment(right, bottom, right - length, bottom),
        GuideSegment(right, bottom, right, bottom - length),
    ]


def arc_segment_count(radius_mm: float) -> int:
    """Number of polyline segments for a quarter circle of the given radius."""
    return max(8, math.ceil(radius_mm * 3))


def quarter_arc(
    cx: float, cy: float, radius: float, start_deg: float, segments: int
) -> tuple[tuple[float, float], ...]:
    """
    Approximate a 90 degree arc as a polyline.

    Angles follow page coordinates (y grows downward), so 180->270 degrees is
    the top-left corner.

    Args:
        cx: Arc center x.
        cy: Arc center y.
        radius: Arc radius.
        start_deg: Start angle in degrees.
        segments: Number of straight segments.

    Returns:
        segments + 1 points.
    """
    points = []
    for i in range(segments + 1):
        angle = math.radians(start_deg + 90.0 * i / segments)
        points.append((cx + radius * math.cos(angle), cy + radius * math.sin(angle)))
    return tuple(points)


def rounded_corner_guides(slot: SlotPosition, spec: LayoutSpec) -> list[GuidePolyline]:
    """
    Four quarter-circle arcs following a card's rounded corners.

    The cut rectangle is inset by corner_offset_mm (negative moves the guide
    outward into the bleed) and the radius shrinks or grows by the same
    amount, so the arcs stay concentric with the physical corner.

    Args:
        slot: Card slot.
        spec: Page layout.

    Returns:
        Four polylines, or none when the offset collapses the rectangle.
    """
    offset = spec.corner_offset_mm
    left = slot.x + spec.bleed_width_mm + offset
    top = slot.y + spec.bleed_width_mm + offset
    right = slot.x + spec.bleed_width_mm + spec.card_content_width_mm - offset
    bottom = slot.y + spec.bleed_width_mm + spec.card_content_height_mm - offset
    if right <= left or bottom <= top:
        return []

    radius = max(0.0, spec.corner_radius_mm - offset)
    radius = min(radius, (right - left) / 2, (bottom - top) / 2)
    segments = arc_segment_count(radius)

    return [
        GuidePolyline(quarter_arc(left + radius, top + radius, radius, 180.0, segments)),
        GuidePolyline(quarter_arc(right - radius, top + radius, radius, 270.0, segments)),
        GuidePolyline(quarter_arc(right - radius, bottom - radius, radius, 0.0, segments)),
        GuidePolyline(quarter_arc(left + radius, bottom - radius, radius, 90.0, segments)),
    ]


def _unique_sorted(values: list[float]) -> list[float]:
    unique: list[float] = []
    for value in sorted(values):
        if not unique or abs(value - unique[-1]) > _CUT_LINE_TOLERANCE_MM:
            unique.append(value)
    return unique


def cut_lines(spec: LayoutSpec, slots: Sequence[SlotPosition]) -> tuple[list[float], list[float]]:
    """
    Distinct vertical and horizontal cut positions across the grid.

    Args:
        spec: Page layout.
        slots: Slots on the page.

    Returns:
        Tuple of (x positions, y positions), sorted, in millimetres.
    """
    xs: list[float] = []
    ys: list[float] = []
    for slot in slots:
        xs.append(slot.x + spec.bleed_width_mm)
        xs.append(slot.x + spec.bleed_width_mm + spec.card_content_width_mm)
        ys.append(slot.y + spec.bleed_width_mm)
        ys.append(slot.y + spec.bleed_width_mm + spec.card_content_height_mm)
    return _unique_sorted(xs), _unique_sorted(ys)


def edge_stub_guides(spec: LayoutSpec, slots: Sequence[SlotPosition]) -> list[GuideSegment]:
    """
    Page-edge stubs that extend each cut line to the paper edge.

    Each distinct vertical cut gets a stub from the top edge down to the first
    horizontal cut and one from the last horizontal cut down to the bottom
    edge; horizontal cuts get the same treatment left and right. Shared cut
    lines are drawn once.

    Args:
        spec: Page layout.
        slots: Slots on the page.

    Returns:
        List of stub segments (empty when there are no slots).
    """
    if not slots:
        return []

    xs, ys = cut_lines(spec, slots)
    first_y, last_y = ys[0], ys[-1]
    first_x, last_x = xs[0], xs[-1]

    stubs: list[GuideSegment] = []
    for x in xs:
        if first_y > 0:
            stubs.append(GuideSegment(x, 0.0, x, first_y))
        if last_y < spec.page_height_mm:
            stubs.append(GuideSegment(x, last_y, x, spec.page_height_mm))
    for y in ys:
        if first_x > 0:
            stubs.append(GuideSegment(0.0, y, first_x, y))
        if last_x < spec.page_width_mm:
            stubs.append(GuideSegment(last_x, y, spec.page_width_mm, y))
    return stubs


def layout_page(spec: LayoutSpec) -> PageLayout:
    """
    Compute slot positions and cut guides for one page.

    Guides are produced only when guides are enabled and the guide width is
    positive; otherwise the guide lists are empty.

    Args:
        spec: Page layout.

    Returns:
        PageLayout with columns * rows slots.
    """
    slots = compute_slots(spec)
    layout = PageLayout(
        slots=slots,
        card_guides=[[] for _ in slots],
        guide_width_mm=max(0.0, spec.guide_width_mm),
        guide_color=spec.guide_color,
    )

    if not spec.guides_enabled or spec.guide_width_mm <= 0:
        return layout

    if spec.corner_style == "rounded":
        layout.card_guides = [list(rounded_corner_guides(slot, spec)) for slot in slots]
    else:
        layout.card_guides = [list(straight_corner_guides(slot, spec)) for slot in slots]
    layout.edge_guides = edge_stub_guides(spec, slots)

    return layout


def cards_per_page(spec: LayoutSpec) -> int:
    """Number of card slots on one page."""
    return spec.columns * spec.rows


def paginate(items: Sequence[T], per_page: int) -> list[list[T]]:
    """
    Split items into consecutive pages.

    Args:
        items: Items in output order.
        per_page: Maximum items per page (at least 1).

    Returns:
        List of pages; the last may be partial. Empty input gives no pages.
    """
    size = max(1, per_page)
    return [list(items[i:i + size]) for i in range(0, len(items), size)]
