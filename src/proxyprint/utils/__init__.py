"""Utility modules."""

from proxyprint.utils.dimensions import (
    CARD_HEIGHT_MM,
    CARD_WIDTH_MM,
    DPI_MAX,
    DPI_MIN,
    DPI_RECOMMENDED,
    PAGE_SIZES,
    classify_height,
    get_page_size,
    jpeg_quality_for_dpi,
    mm_to_points,
    mm_to_px,
)

__all__ = [
    "CARD_HEIGHT_MM",
    "CARD_WIDTH_MM",
    "DPI_MAX",
    "DPI_MIN",
    "DPI_RECOMMENDED",
    "PAGE_SIZES",
    "classify_height",
    "get_page_size",
    "jpeg_quality_for_dpi",
    "mm_to_points",
    "mm_to_px",
]
