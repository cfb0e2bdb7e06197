#!/usr/bin/env python3
"""
Simple Example: One Sheet of Proxies

This is the simplest way to print a sheet of proxies programmatically.
"""

from proxyprint import export_pdf, load_config, slots_from_sources

# Load config (proxyprint.toml in the current directory, or defaults)
config = load_config()

# Local files and URLs, in print order
slots, uploads = slots_from_sources(
    [
        "cards/lightning_bolt.png",  # Replace with your own images
        "cards/counterspell.png",
        "https://cards.scryfall.io/large/front/e/3/e3285e6b-3e79-4d7c-bf96-d920f973b122.jpg",
    ]
)

# Render to PDF in the current directory
files = export_pdf(slots, ".", config, uploads=uploads)

for exported in files:
    print(f"✓ Proxies saved to: {exported.name}")
