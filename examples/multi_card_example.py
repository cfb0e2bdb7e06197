#!/usr/bin/env python3
"""
Example: Large Batched Export with Progress and Cancellation

This example demonstrates how to use the Python API to print a big
card list as several smaller PDFs, with rounded cut guides, a wider
bleed, progress reporting and Ctrl+C cancellation.

Requirements:
- A text file (decklist.txt) with one image path or URL per line
"""

from pathlib import Path

from proxyprint import (
    AbortSignal,
    ExportCancelled,
    ExportOptions,
    ExportProgress,
    LayoutSpec,
    export_pdf,
    load_config,
    read_card_list,
    slots_from_sources,
)
from proxyprint.utils.dimensions import get_page_size

config = load_config()

# =============================================================================
# Layout: A4, 3x3, 2mm bleed, rounded guides in magenta
# =============================================================================
a4 = get_page_size("a4")
layout = LayoutSpec(
    page_width_mm=a4.width,
    page_height_mm=a4.height,
    bleed_width_mm=2.0,
    spacing_mm=0.5,
    guide_color="#FF00FF",
    corner_style="rounded",
)

# =============================================================================
# Export: 600 DPI, 5 pages per file
# =============================================================================
options = ExportOptions(dpi=600, batching=True, pages_per_batch=5)

slots, uploads = slots_from_sources(read_card_list(Path("decklist.txt")), has_baked_bleed=True)


def show_progress(progress: ExportProgress) -> None:
    print(f"\r{progress.overall_percent:5.1f}%  page {progress.current_page}/{progress.total_pages}", end="")


abort = AbortSignal()
try:
    files = export_pdf(
        slots,
        Path("out"),
        config,
        layout=layout,
        options=options,
        uploads=uploads,
        on_progress=show_progress,
        abort=abort,
    )
except (ExportCancelled, KeyboardInterrupt):
    print("\nCancelled, nothing written.")
else:
    print()
    for exported in files:
        print(f"✓ {exported.name}: {exported.pages} pages, {exported.cards} cards")
