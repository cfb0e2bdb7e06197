"""CLI interface for proxy sheet generation."""

import logging
from pathlib import Path

import click

from proxyprint.api.builder import export_images, export_pdf, read_card_list, slots_from_sources
from proxyprint.api.models import ExportProgress
from proxyprint.config import load_config
from proxyprint.errors import ExportCancelled, ProxyPrintError
from proxyprint.utils.dimensions import PAGE_SIZES, get_page_size

EXIT_CANCELLED = 130


def _collect_sources(sources: tuple[str, ...], card_list: Path | None) -> list[str]:
    collected = list(sources)
    if card_list is not None:
        collected.extend(read_card_list(card_list))
    if not collected:
        click.echo("Error: No cards given. Pass image paths/URLs or --list.", err=True)
        raise SystemExit(1)
    return collected


class _PageEcho:
    """Prints one line per page as an export advances."""

    def __init__(self) -> None:
        self.last_page: int | None = None

    def __call__(self, progress: ExportProgress) -> None:
        if progress.current_page is None or progress.current_page == self.last_page:
            return
        self.last_page = progress.current_page
        click.echo(f"  Page {progress.current_page}/{progress.total_pages}...")


@click.group()
@click.version_option()
@click.option("-v", "--verbose", is_flag=True, help="Show debug logging.")
def main(verbose: bool) -> None:
    """Generate print-ready proxy sheets from card images."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )


@main.command()
@click.argument("sources", nargs=-1)
@click.option(
    "-l",
    "--list",
    "card_list",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Text file with one image path or URL per line ('4x <source>' repeats it).",
)
@click.option(
    "-o",
    "--output-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path("."),
    show_default=True,
    help="Directory to write PDF files into.",
)
@click.option(
    "--config",
    type=click.Path(exists=True, path_type=Path),
    help="Path to proxyprint.toml. Defaults to ./proxyprint.toml",
)
@click.option(
    "--page-size",
    type=click.Choice(list(PAGE_SIZES.keys()), case_sensitive=False),
    help="Paper size. Uses the config page size if not specified.",
)
@click.option("--landscape", is_flag=True, help="Rotate the page to landscape.")
@click.option("--columns", type=click.IntRange(min=1), help="Cards per row.")
@click.option("--rows", type=click.IntRange(min=1), help="Cards per column.")
@click.option("--bleed", type=click.FloatRange(min=0), help="Bleed around each card in mm.")
@click.option("--spacing", type=float, help="Gap between cards in mm.")
@click.option("--dpi", type=click.IntRange(72, 2400), help="Card image resolution (300-1200 recommended).")
@click.option(
    "--pages-per-file",
    type=click.IntRange(min=1),
    help="Split the output into PDFs of this many pages.",
)
@click.option(
    "--corners",
    type=click.Choice(["straight", "rounded"], case_sensitive=False),
    help="Cut guide style.",
)
@click.option("--corner-offset", type=float, help="Inset of rounded guides in mm (negative moves outward).")
@click.option("--guide-color", type=str, help="Cut guide color as #RRGGBB.")
@click.option("--no-guides", is_flag=True, help="Disable cut guides.")
@click.option("--baked-bleed", is_flag=True, help="Source images may already include a 3mm bleed.")
@click.option("--strict", is_flag=True, help="Fail instead of skipping cards whose image is missing.")
def pdf(
    sources: tuple[str, ...],
    card_list: Path | None,
    output_dir: Path,
    config: Path | None,
    page_size: str | None,
    landscape: bool,
    columns: int | None,
    rows: int | None,
    bleed: float | None,
    spacing: float | None,
    dpi: int | None,
    pages_per_file: int | None,
    corners: str | None,
    corner_offset: float | None,
    guide_color: str | None,
    no_guides: bool,
    baked_bleed: bool,
    strict: bool,
) -> None:
    """
    Lay out card images on printable pages with bleed and cut guides.

    SOURCES can be local image files or http(s) URLs, printed in the order
    given. Cards from --list are appended after them.
    """
    try:
        cfg = load_config(config)
        slots, uploads = slots_from_sources(_collect_sources(sources, card_list), has_baked_bleed=baked_bleed)

        # Layout overrides from the command line
        layout_updates: dict[str, object] = {}
        if page_size:
            ps = get_page_size(page_size)
            layout_updates["page_width_mm"] = ps.width
            layout_updates["page_height_mm"] = ps.height
        if columns is not None:
            layout_updates["columns"] = columns
        if rows is not None:
            layout_updates["rows"] = rows
        if bleed is not None:
            layout_updates["bleed_width_mm"] = bleed
        if spacing is not None:
            layout_updates["spacing_mm"] = spacing
        if guide_color:
            layout_updates["guide_color"] = guide_color
        if no_guides:
            layout_updates["guides_enabled"] = False
        layout = cfg.layout.model_copy(update=layout_updates)
        if landscape:
            layout = layout.model_copy(
                update={"page_width_mm": layout.page_height_mm, "page_height_mm": layout.page_width_mm}
            )

        export_updates: dict[str, object] = {}
        if dpi is not None:
            export_updates["dpi"] = dpi
        if pages_per_file is not None:
            export_updates["batching"] = True
            export_updates["pages_per_batch"] = pages_per_file
        if corners:
            export_updates["corner_style"] = corners.lower()
        if corner_offset is not None:
            export_updates["corner_offset_mm"] = corner_offset
        if strict:
            export_updates["skip_missing_sources"] = False
        options = cfg.export.model_copy(update=export_updates)

        click.echo(
            f"Generating proxies for {len(slots)} card(s) at {options.dpi} DPI "
            f"({layout.columns}x{layout.rows} per page)..."
        )
        files = export_pdf(
            slots,
            output_dir,
            cfg,
            layout=layout,
            options=options,
            uploads=uploads,
            on_progress=_PageEcho(),
        )

        for exported in files:
            click.echo(f"✓ Saved {output_dir / exported.name} ({exported.pages} page(s), {exported.cards} card(s))")

    except (ExportCancelled, KeyboardInterrupt):
        click.echo("Export cancelled; no files written.", err=True)
        raise SystemExit(EXIT_CANCELLED)
    except (FileNotFoundError, ValueError, ProxyPrintError) as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)


@main.command("zip")
@click.argument("sources", nargs=-1)
@click.option(
    "-l",
    "--list",
    "card_list",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Text file with one image path or URL per line.",
)
@click.option(
    "-o",
    "--output-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path("."),
    show_default=True,
    help="Directory to write the archive into.",
)
@click.option(
    "--config",
    type=click.Path(exists=True, path_type=Path),
    help="Path to proxyprint.toml. Defaults to ./proxyprint.toml",
)
def zip_images(
    sources: tuple[str, ...],
    card_list: Path | None,
    output_dir: Path,
    config: Path | None,
) -> None:
    """
    Download the original card images into a zip archive.

    Images are stored as-is, numbered in input order.
    """
    try:
        cfg = load_config(config)
        slots, uploads = slots_from_sources(_collect_sources(sources, card_list))

        click.echo(f"Collecting {len(slots)} image(s)...")
        exported = export_images(slots, output_dir, cfg, uploads=uploads)
        click.echo(f"✓ Saved {output_dir / exported.name} ({exported.cards} image(s))")

    except (ExportCancelled, KeyboardInterrupt):
        click.echo("Export cancelled; no files written.", err=True)
        raise SystemExit(EXIT_CANCELLED)
    except (FileNotFoundError, ValueError, ProxyPrintError) as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)


if __name__ == "__main__":
    main()
