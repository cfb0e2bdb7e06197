"""Zip export of the original card images, without bleed or layout."""

import io
import logging
import zipfile
from datetime import date
from typing import Callable, Sequence

from proxyprint.api.models import CardSlot, ExportedFile, ExportProgress
from proxyprint.api.sources import ImageSourceResolver
from proxyprint.config import format_output_name, sanitize_filename
from proxyprint.errors import ImageLoadError, NetworkError
from proxyprint.render.image import get_image_format
from proxyprint.utils.concurrency import AbortSignal, check_abort, process_with_concurrency

logger = logging.getLogger(__name__)

ARCHIVE_PREFIX = "card_images"

_EXTENSIONS = {"jpeg": "jpg", "png": "png", "webp": "webp", "gif": "gif", "bmp": "bmp", "tiff": "tif"}


def entry_names(slots: Sequence[CardSlot]) -> list[str]:
    """
    Build zip entry base names, numbered in input order.

    Repeated card names get a " (k)" suffix starting at the second use.

    Args:
        slots: Cards in output order.

    Returns:
        Names like "001 - Lightning Bolt (2)", without extension.
    """
    used: dict[str, int] = {}
    names = []
    for i, slot in enumerate(slots):
        base = sanitize_filename(slot.name or "") or f"Card {i + 1}"
        count = used.get(base, 0) + 1
        used[base] = count
        suffix = f" ({count})" if count > 1 else ""
        names.append(f"{i + 1:03d} - {base}{suffix}")
    return names


def extension_for(data: bytes) -> str:
    """File extension matching image bytes, defaulting to png."""
    fmt = get_image_format(data)
    return _EXTENSIONS.get(fmt or "", "png")


async def export_images_zip(
    slots: Sequence[CardSlot],
    resolver: ImageSourceResolver,
    concurrency: int | None = None,
    on_progress: Callable[[ExportProgress], None] | None = None,
    abort: AbortSignal | None = None,
    export_date: date | None = None,
) -> tuple[str, bytes]:
    """
    Fetch every card's source image and pack them into a zip archive.

    Sources are fetched by a bounded worker pool; entries keep input order.
    Cards whose source cannot be read are skipped with a warning.

    Args:
        slots: Cards in output order.
        resolver: Source resolver.
        concurrency: Worker count (capped at 8).
        on_progress: Called after every fetch.
        abort: Checked before each fetch and before packing.
        export_date: Date stamp for the archive name.

    Returns:
        Tuple of (archive file name, archive bytes).

    Raises:
        ExportCancelled: If the abort signal tripped.
    """
    slots = list(slots)
    names = entry_names(slots)
    fetched: list[bytes | None] = [None] * len(slots)
    done = 0

    async def fetch_one(slot: CardSlot, index: int) -> None:
        nonlocal done
        try:
            fetched[index] = await resolver.fetch(slot)
        except (ImageLoadError, NetworkError) as e:
            logger.warning(f"Export skipped {slot.label}: {e}")
        done += 1
        if on_progress is not None:
            on_progress(ExportProgress(overall_percent=min(99.0, 100.0 * done / len(slots))))

    await process_with_concurrency(slots, fetch_one, limit=concurrency, signal=abort)
    check_abort(abort)

    buffer = io.BytesIO()
    written = 0
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_STORED) as archive:
        for name, data in zip(names, fetched):
            if data is None:
                continue
            archive.writestr(f"{name}.{extension_for(data)}", data)
            written += 1

    if on_progress is not None:
        on_progress(ExportProgress(overall_percent=100.0))

    archive_name = format_output_name(ARCHIVE_PREFIX, "zip", export_date=export_date)
    logger.info(f"Packed {written} of {len(slots)} images into {archive_name}")
    return archive_name, buffer.getvalue()


def archive_file(name: str, data: bytes) -> ExportedFile:
    """Describe a finished archive."""
    with zipfile.ZipFile(io.BytesIO(data)) as archive:
        cards = len(archive.namelist())
    return ExportedFile(name=name, size=len(data), cards=cards)
