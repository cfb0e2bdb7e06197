"""High-level API for programmatic proxy sheet creation."""

import asyncio
import logging
from datetime import date
from pathlib import Path
from typing import Callable, Mapping, Sequence
from urllib.parse import urlparse

from proxyprint.api.models import CardSlot, ExportedFile, ExportProgress, make_uploaded_file_token
from proxyprint.api.sources import ImageSourceResolver
from proxyprint.config import Config, ExportOptions, LayoutSpec
from proxyprint.render.archive import archive_file, export_images_zip
from proxyprint.render.pdf import DirectorySink, DocumentAssembler, OutputSink
from proxyprint.utils.concurrency import AbortSignal

logger = logging.getLogger(__name__)


def slots_from_sources(
    sources: Sequence[str],
    has_baked_bleed: bool = False,
) -> tuple[list[CardSlot], dict[str, Path]]:
    """
    Build card slots from URLs and local file paths.

    Local files are registered as uploads and referenced by upload token,
    so they are never rewritten through the image proxy.

    Args:
        sources: http(s) URLs, data URLs or local paths, in print order.
        has_baked_bleed: Mark every card as possibly carrying a 3mm bleed.

    Returns:
        Tuple of (slots, uploads mapping for ImageSourceResolver).

    Example:
        ```python
        slots, uploads = slots_from_sources(["bolt.png", "https://cards.scryfall.io/large/front/a/b/x.jpg"])
        ```
    """
    slots: list[CardSlot] = []
    uploads: dict[str, Path] = {}

    for index, source in enumerate(sources):
        source = source.strip()
        scheme = urlparse(source).scheme.lower()
        if scheme in ("http", "https"):
            name = Path(urlparse(source).path).stem or None
            slots.append(CardSlot(source_ref=source, has_baked_bleed=has_baked_bleed, name=name))
        elif scheme == "data":
            slots.append(CardSlot(source_ref=source, has_baked_bleed=has_baked_bleed))
        else:
            path = Path(source).expanduser()
            upload_id = f"{index:04d}-{path.name}"
            uploads[upload_id] = path
            slots.append(
                CardSlot(
                    source_ref=make_uploaded_file_token(upload_id),
                    is_user_upload=True,
                    has_baked_bleed=has_baked_bleed,
                    name=path.stem,
                )
            )

    return slots, uploads


def read_card_list(path: Path) -> list[str]:
    """
    Read a card list file: one source per line.

    Blank lines and lines starting with '#' are ignored. A leading count such
    as "4x " repeats the source. A bare leading number such as "2024 promo.png"
    is part of the source.

    Args:
        path: Card list file.

    Returns:
        Sources in order, with repeats expanded.
    """
    sources: list[str] = []
    for raw in Path(path).read_text(encoding="utf-8").splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        count = 1
        head, _, rest = line.partition(" ")
        if rest and head[-1:] in ("x", "X") and head[:-1].isdigit():
            count = max(1, int(head[:-1]))
            line = rest.strip()
        sources.extend([line] * count)
    return sources


def export_pdf(
    slots: Sequence[CardSlot],
    output_dir: str | Path | None = None,
    config: Config | None = None,
    layout: LayoutSpec | None = None,
    options: ExportOptions | None = None,
    uploads: Mapping[str, bytes | Path] | None = None,
    on_progress: Callable[[ExportProgress], None] | None = None,
    abort: AbortSignal | None = None,
    sink: OutputSink | None = None,
    export_date: date | None = None,
) -> list[ExportedFile]:
    """
    Render cards to one or more print-ready PDF files.

    Args:
        slots: Cards in print order.
        output_dir: Directory to write PDFs into (ignored when sink is given).
        config: Configuration (from load_config()). Defaults to Config().
        layout: Overrides config.layout.
        options: Overrides config.export.
        uploads: Upload id -> bytes or path, for uploaded-file tokens.
        on_progress: Progress callback.
        abort: Signal to cancel the export from another thread.
        sink: Custom output destination.
        export_date: Date stamp for file names.

    Returns:
        Files written, in batch order.

    Raises:
        ExportCancelled: If cancelled. No files are left behind.
        ImageLoadError: If a card image cannot be fetched or decoded.
        AssemblyError: If the PDF cannot be written.

    Example:
        ```python
        from proxyprint import export_pdf, load_config, slots_from_sources

        config = load_config()
        slots, uploads = slots_from_sources(["bolt.png", "counterspell.png"])
        files = export_pdf(slots, "out", config, uploads=uploads)
        ```
    """
    config = config or Config()
    layout = layout or config.layout
    options = options or config.export

    if sink is None:
        sink = DirectorySink(Path(output_dir) if output_dir is not None else Path.cwd())

    resolver = ImageSourceResolver(config.sources, uploads=uploads)
    assembler = DocumentAssembler(layout, options, resolver=resolver, sink=sink, export_date=export_date)

    logger.info(
        f"Rendering {len(slots)} card(s) at {options.dpi} DPI, "
        f"{layout.columns}x{layout.rows} per page, {layout.bleed_width_mm}mm bleed..."
    )
    files = asyncio.run(assembler.export(slots, on_progress=on_progress, abort=abort))

    for exported in files:
        logger.info(f"PDF saved: {exported.name} ({exported.pages} page(s), {exported.cards} card(s))")

    return files


def export_images(
    slots: Sequence[CardSlot],
    output_dir: str | Path | None = None,
    config: Config | None = None,
    uploads: Mapping[str, bytes | Path] | None = None,
    on_progress: Callable[[ExportProgress], None] | None = None,
    abort: AbortSignal | None = None,
    export_date: date | None = None,
) -> ExportedFile:
    """
    Pack the original card images into a zip archive.

    Args:
        slots: Cards in order.
        output_dir: Directory to write the archive into. Defaults to the cwd.
        config: Configuration. Defaults to Config().
        uploads: Upload id -> bytes or path, for uploaded-file tokens.
        on_progress: Progress callback.
        abort: Signal to cancel the export.
        export_date: Date stamp for the archive name.

    Returns:
        The archive written.

    Raises:
        ExportCancelled: If cancelled before the archive was written.
    """
    config = config or Config()
    resolver = ImageSourceResolver(config.sources, uploads=uploads)

    name, data = asyncio.run(
        export_images_zip(
            slots,
            resolver,
            concurrency=config.sources.max_concurrency,
            on_progress=on_progress,
            abort=abort,
            export_date=export_date,
        )
    )

    sink = DirectorySink(Path(output_dir) if output_dir is not None else Path.cwd())
    sink.write(name, data)
    return archive_file(name, data)
