"""Print specifications, unit conversion and source-DPI guessing."""

import math
from dataclasses import dataclass


@dataclass(frozen=True)
class PageSize:
    """Named paper size."""

    width: float   # millimetres
    height: float  # millimetres
    label: str     # display label for CLI/help


@dataclass(frozen=True)
class DpiBucket:
    """Expected pixel heights of a card exported at a given DPI."""

    dpi: int
    height: int                      # content only
    height_with_baked_bleed: int     # content plus 3mm bleed on each side


@dataclass(frozen=True)
class HeightClass:
    """Best guess at a source image's DPI and whether it carries a baked bleed."""

    dpi: int
    has_baked_bleed: bool
    error_px: float


MM_PER_INCH = 25.4
POINTS_PER_INCH = 72.0

# Standard trading card (MTG-sized) content area
CARD_WIDTH_MM = 63.0
CARD_HEIGHT_MM = 88.0

# Bleed baked into community-made print assets (MPC style)
BAKED_BLEED_MM = 3.0

# Corner radius of a physical trading card
CARD_CORNER_RADIUS_MM = 2.5

# DPI settings
DPI_MIN = 300
DPI_RECOMMENDED = 600
DPI_MAX = 1200

# DPIs that card art is commonly exported at
KNOWN_EXPORT_DPIS = (300, 330, 460, 600, 800, 900, 1200)

# Classification stops early once the error is below this many millimetres
HEIGHT_MATCH_EPSILON_MM = 0.1


def _inches(value: float) -> float:
    return value * MM_PER_INCH


# Registry of standard page sizes
PAGE_SIZES = {
    "letter": PageSize(_inches(8.5), _inches(11.0), "Letter (8.5×11in)"),
    "legal": PageSize(_inches(8.5), _inches(14.0), "Legal (8.5×14in)"),
    "tabloid": PageSize(_inches(11.0), _inches(17.0), "Tabloid (11×17in)"),
    "a4": PageSize(210.0, 297.0, "A4 (210×297mm)"),
    "a3": PageSize(297.0, 420.0, "A3 (297×420mm)"),
    "a2": PageSize(420.0, 594.0, "A2 (420×594mm)"),
    "a1": PageSize(594.0, 841.0, "A1 (594×841mm)"),
    "9x12": PageSize(_inches(9.0), _inches(12.0), "Art board (9×12in)"),
    "12x18": PageSize(_inches(12.0), _inches(18.0), "Art board (12×18in)"),
    "13x19": PageSize(_inches(13.0), _inches(19.0), "Super B (13×19in)"),
}


def get_page_size(name: str) -> PageSize:
    """
    Get page size by name.

    Args:
        name: Page size name (e.g., "letter", "a4").

    Returns:
        PageSize object. Defaults to letter if name not found.
    """
    return PAGE_SIZES.get(name.lower(), PAGE_SIZES["letter"])


def px_per_mm(dpi: float) -> float:
    """Pixels per millimetre at the given DPI."""
    return dpi / MM_PER_INCH


def mm_to_px(mm: float, dpi: float) -> int:
    """
    Convert millimetres to a whole number of pixels.

    Args:
        mm: Length in millimetres.
        dpi: Target resolution.

    Returns:
        Rounded pixel count.
    """
    return int(round(mm * px_per_mm(dpi)))


def mm_to_points(mm: float) -> float:
    """
    Convert millimetres to PDF points (72 points per inch).

    Args:
        mm: Length in millimetres.

    Returns:
        Length in points.
    """
    return mm * POINTS_PER_INCH / MM_PER_INCH


def points_to_mm(points: float) -> float:
    """Convert PDF points to millimetres."""
    return points * MM_PER_INCH / POINTS_PER_INCH


def scale_px_for_dpi(px_at_300: int, dpi: float) -> int:
    """
    Scale a pixel constant tuned at 300 DPI to another DPI.

    Args:
        px_at_300: Pixel count at 300 DPI.
        dpi: Target resolution.

    Returns:
        Pixel count at the target DPI, at least 1.
    """
    return max(1, int(round(px_at_300 * dpi / 300.0)))


def build_dpi_table(
    card_height_mm: float = CARD_HEIGHT_MM,
    baked_bleed_mm: float = BAKED_BLEED_MM,
    dpis: tuple[int, ...] = KNOWN_EXPORT_DPIS,
) -> tuple[DpiBucket, ...]:
    """
    Build the table of expected card heights per export DPI.

    Args:
        card_height_mm: Height of the card content area.
        baked_bleed_mm: Bleed assumed on pre-bled assets.
        dpis: DPIs to include, lowest first.

    Returns:
        Tuple of DpiBucket entries in the order given.
    """
    return tuple(
        DpiBucket(
            dpi=dpi,
            height=mm_to_px(card_height_mm, dpi),
            height_with_baked_bleed=mm_to_px(card_height_mm + 2 * baked_bleed_mm, dpi),
        )
        for dpi in dpis
    )


DPI_HEIGHT_TABLE = build_dpi_table()


def classify_height(pixel_height: float, table: tuple[DpiBucket, ...] = DPI_HEIGHT_TABLE) -> HeightClass:
    """
    Guess a card image's source DPI and baked-bleed status from its height.

    This is an approximation. Pixel height is the only evidence, so the result
    is the bucket whose expected height (with or without a baked bleed) lies
    closest to the observed one. It never raises: heights that cannot be
    classified fall back to the lowest DPI bucket without bleed.

    Args:
        pixel_height: Observed image height in pixels.
        table: DPI buckets to compare against, lowest DPI first.

    Returns:
        HeightClass with the guessed dpi and bleed flag.
    """
    fallback_dpi = min((bucket.dpi for bucket in table), default=DPI_MIN)
    best = HeightClass(dpi=fallback_dpi, has_baked_bleed=False, error_px=math.inf)

    if not table or not isinstance(pixel_height, (int, float)) or not pixel_height > 0:
        return best
    if math.isinf(pixel_height):
        return best

    for bucket in table:
        err = abs(bucket.height - pixel_height)
        err_bleed = abs(bucket.height_with_baked_bleed - pixel_height)
        closest = min(err, err_bleed)
        if closest < best.error_px:
            best = HeightClass(dpi=bucket.dpi, has_baked_bleed=err_bleed < err, error_px=closest)
        # Good enough, no need to scan the rest
        if best.error_px < px_per_mm(bucket.dpi) * HEIGHT_MATCH_EPSILON_MM:
            return best

    return best


def jpeg_quality_for_dpi(dpi: int) -> float:
    """
    Pick the compression quality for embedded card images.

    Higher DPIs already carry more detail, so they get slightly more
    compression.

    Args:
        dpi: Output DPI.

    Returns:
        Quality in the 0.96-1.0 range.
    """
    if dpi <= 300:
        return 1.0
    if dpi <= 600:
        return 0.98
    if dpi < 1200:
        return 0.97
    return 0.96


def center_on_page(
    content_width: float, content_height: float, page_width: float, page_height: float
) -> tuple[float, float]:
    """
    Calculate position to center content on a page, never negative.

    Args:
        content_width: Width of content in millimetres.
        content_height: Height of content in millimetres.
        page_width: Width of page in millimetres.
        page_height: Height of page in millimetres.

    Returns:
        Tuple of (x, y) offset from the top-left corner.
    """
    x = max(0.0, (page_width - content_width) / 2)
    y = max(0.0, (page_height - content_height) / 2)
    return (x, y)
