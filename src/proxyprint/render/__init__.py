"""Rendering modules for bleed, page layout and PDF output."""

from proxyprint.render.bleed import BleedResult, BleedSynthesizer
from proxyprint.render.image import (
    load_image_from_bytes,
    resize_and_crop_cover,
    save_image_to_bytes,
)
from proxyprint.render.layout import PageLayout, layout_page, paginate

__all__ = [
    "BleedResult",
    "BleedSynthesizer",
    "PageLayout",
    "layout_page",
    "load_image_from_bytes",
    "paginate",
    "resize_and_crop_cover",
    "save_image_to_bytes",
]
