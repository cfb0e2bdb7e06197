"""PDF generation using ReportLab."""

import asyncio
import io
import logging
from dataclasses import dataclass
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Callable, Protocol, Sequence

from reportlab.lib.colors import HexColor
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from proxyprint.api.models import CardSlot, ExportedFile, ExportProgress
from proxyprint.api.sources import ImageSourceResolver
from proxyprint.config import ExportOptions, LayoutSpec, format_output_name
from proxyprint.errors import AssemblyError, ExportCancelled, SourceNotFoundError
from proxyprint.render.bleed import BleedSynthesizer
from proxyprint.render.image import flatten_onto, save_image_to_bytes
from proxyprint.render.layout import (
    Guide,
    GuidePolyline,
    GuideSegment,
    SlotPosition,
    layout_page,
    paginate,
)
from proxyprint.utils.concurrency import AbortSignal, check_abort
from proxyprint.utils.dimensions import jpeg_quality_for_dpi, mm_to_points

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ExportProgress], None]


class ExportState(Enum):
    """Lifecycle of one export."""

    IDLE = "idle"
    RENDERING = "rendering"
    FLUSHING = "flushing"
    DONE = "done"
    ABORTED = "aborted"
    FAILED = "failed"


class OutputSink(Protocol):
    """Destination for finished documents."""

    def write(self, name: str, data: bytes) -> None: ...

    def rollback(self) -> None: ...


class DirectorySink:
    """Writes documents into a directory and can delete them again."""

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)
        self.written: list[Path] = []

    def write(self, name: str, data: bytes) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.directory / name
        path.write_bytes(data)
        self.written.append(path)
        logger.info(f"Wrote {path} ({len(data)} bytes)")

    def rollback(self) -> None:
        """Delete every file written by this sink."""
        for path in self.written:
            path.unlink(missing_ok=True)
            logger.debug(f"Removed {path}")
        self.written.clear()


class MemorySink:
    """Keeps documents in memory, keyed by file name."""

    def __init__(self) -> None:
        self.files: dict[str, bytes] = {}

    def write(self, name: str, data: bytes) -> None:
        self.files[name] = data

    def rollback(self) -> None:
        self.files.clear()


@dataclass(frozen=True)
class Batch:
    """Consecutive pages that end up in one PDF file."""

    index: int  # 0-based
    pages: list[list[int]]
    """Slot indices per page, row-major."""

    first_page: int  # 1-based, across the whole export

    @property
    def card_count(self) -> int:
        return sum(len(page) for page in self.pages)


def plan_batches(slot_count: int, per_page: int, pages_per_batch: int | None = None) -> list[Batch]:
    """
    Split an export into pages and batches.

    Args:
        slot_count: Number of card slots.
        per_page: Card slots per page.
        pages_per_batch: Pages per file, or None for a single file.

    Returns:
        Batches in output order. No slots gives no batches.
    """
    pages = paginate(list(range(slot_count)), per_page)
    if not pages:
        return []
    size = pages_per_batch if pages_per_batch else len(pages)

    batches = []
    first_page = 1
    for index, group in enumerate(paginate(pages, size)):
        batches.append(Batch(index=index, pages=group, first_page=first_page))
        first_page += len(group)
    return batches


class _ProgressTracker:
    """Turns per-card events into ExportProgress snapshots."""

    def __init__(self, total_cards: int, total_pages: int, callback: ProgressCallback | None) -> None:
        self.total_cards = total_cards
        self.total_pages = total_pages
        self.callback = callback
        self.processed = 0
        self.current_page: int | None = None

    def start_page(self, page_number: int) -> None:
        self.current_page = page_number
        self._emit(0.0)

    def card_done(self, done_on_page: int, page_size: int) -> None:
        self.processed += 1
        self._emit(100.0 * done_on_page / page_size)

    def finish(self) -> None:
        if self.callback is not None:
            self.callback(
                ExportProgress(
                    overall_percent=100.0,
                    page_percent=100.0,
                    current_page=self.total_pages,
                    total_pages=self.total_pages,
                )
            )

    def _emit(self, page_percent: float) -> None:
        if self.callback is None:
            return
        overall = 100.0 * self.processed / self.total_cards if self.total_cards else 0.0
        self.callback(
            ExportProgress(
                overall_percent=min(99.0, overall),
                page_percent=page_percent,
                current_page=self.current_page,
                total_pages=self.total_pages,
            )
        )


class DocumentAssembler:
    """
    Lays out bled card images on pages and writes one PDF per batch.

    An assembler runs a single export. Cards, pages and batches are processed
    strictly in order; decoding, bleed synthesis and serialization run in a
    worker thread so the event loop stays responsive.
    """

    def __init__(
        self,
        layout: LayoutSpec,
        options: ExportOptions | None = None,
        resolver: ImageSourceResolver | None = None,
        sink: OutputSink | None = None,
        export_date: date | None = None,
    ) -> None:
        """
        Initialize the assembler.

        Args:
            layout: Page layout.
            options: Export options; corner overrides are applied to the layout.
            resolver: Turns card slots into image bytes.
            sink: Receives finished documents. Defaults to an in-memory sink.
            export_date: Date stamp for file names. Defaults to today.
        """
        self.options = options or ExportOptions()
        self.layout = self.options.apply_to(layout)
        self.resolver = resolver or ImageSourceResolver()
        self.sink: OutputSink = sink if sink is not None else MemorySink()
        self.export_date = export_date or date.today()

        self.page_layout = layout_page(self.layout)
        self.synthesizer = BleedSynthesizer.from_layout(self.layout, self.options.dpi)
        self.jpeg_quality = jpeg_quality_for_dpi(self.options.dpi)

        self.page_width_pt = mm_to_points(self.layout.page_width_mm)
        self.page_height_pt = mm_to_points(self.layout.page_height_mm)

        self.state = ExportState.IDLE
        self.current_batch: int | None = None
        self.skipped: list[CardSlot] = []

    async def export(
        self,
        slots: Sequence[CardSlot],
        on_progress: ProgressCallback | None = None,
        abort: AbortSignal | None = None,
    ) -> list[ExportedFile]:
        """
        Render all slots into PDF files.

        Args:
            slots: Cards in output order.
            on_progress: Called synchronously with progress snapshots.
            abort: Checked before and after every step.

        Returns:
            The files handed to the sink, in batch order.

        Raises:
            ExportCancelled: If the abort signal tripped. Nothing is left in the sink.
            SourceNotFoundError: For a missing source when skipping is disabled.
            ImageLoadError: If a card image cannot be fetched or decoded.
            NetworkError: If a remote fetch fails.
            AssemblyError: If embedding or serialization fails.
        """
        if self.state is not ExportState.IDLE:
            raise RuntimeError(f"Assembler already used (state: {self.state.value})")

        slots = list(slots)
        pages_per_batch = self.options.pages_per_batch if self.options.batching else None
        batches = plan_batches(len(slots), self.layout.cards_per_page, pages_per_batch)
        total_pages = sum(len(batch.pages) for batch in batches)
        tracker = _ProgressTracker(len(slots), total_pages, on_progress)

        logger.info(
            f"Exporting {len(slots)} cards on {total_pages} pages "
            f"in {len(batches)} file(s) at {self.options.dpi} DPI"
        )

        files: list[ExportedFile] = []
        try:
            for batch in batches:
                check_abort(abort)
                self.current_batch = batch.index
                self.state = ExportState.RENDERING
                data, placed = await self._render_batch(batch, slots, tracker, abort)

                check_abort(abort)
                self.state = ExportState.FLUSHING
                name = format_output_name(
                    self.options.file_prefix,
                    "pdf",
                    export_date=self.export_date,
                    part=batch.index + 1,
                    total_parts=len(batches),
                )
                self.sink.write(name, data)
                files.append(ExportedFile(name=name, size=len(data), pages=len(batch.pages), cards=placed))
        except (ExportCancelled, asyncio.CancelledError):
            self.state = ExportState.ABORTED
            self.sink.rollback()
            logger.info("Export cancelled; partial output removed")
            raise
        except Exception:
            self.state = ExportState.FAILED
            raise

        self.state = ExportState.DONE
        tracker.finish()
        if self.skipped:
            logger.warning(f"Skipped {len(self.skipped)} card(s) with missing sources")
        return files

    async def _render_batch(
        self,
        batch: Batch,
        slots: list[CardSlot],
        tracker: _ProgressTracker,
        abort: AbortSignal | None,
    ) -> tuple[bytes, int]:
        buffer = io.BytesIO()
        c = canvas.Canvas(buffer, pagesize=(self.page_width_pt, self.page_height_pt))
        c.setTitle("Card proxies")
        c.setCreator("proxyprint")

        placed = 0
        for offset, page in enumerate(batch.pages):
            page_number = batch.first_page + offset
            check_abort(abort)
            tracker.start_page(page_number)
            self._fill_page(c)

            for position, slot_index in enumerate(page):
                check_abort(abort)
                slot = slots[slot_index]
                if await self._place_card(c, slot, self.page_layout.slots[position], page_number, abort):
                    self._draw_guides(c, self.page_layout.card_guides[position])
                    placed += 1
                tracker.card_done(position + 1, len(page))

            # Shared cut-line stubs go on top of every card
            self._draw_guides(c, self.page_layout.edge_guides)
            c.showPage()
            logger.debug(f"Finished page {page_number}")

        check_abort(abort)
        try:
            data = await asyncio.to_thread(_serialize, c, buffer)
        except Exception as e:
            raise AssemblyError(f"Failed to serialize PDF batch {batch.index + 1}: {e}") from e
        return data, placed

    async def _place_card(
        self,
        c: canvas.Canvas,
        slot: CardSlot,
        position: SlotPosition,
        page_number: int,
        abort: AbortSignal | None,
    ) -> bool:
        """
        Fetch, bleed and draw one card.

        Returns:
            False if the card was skipped because its source is missing.
        """
        try:
            data = await self.resolver.fetch(slot)
        except SourceNotFoundError as e:
            if not self.options.skip_missing_sources:
                raise
            logger.warning(f"Skipping card {slot.label}: {e}")
            self.skipped.append(slot)
            return False
        check_abort(abort)

        jpeg = await asyncio.to_thread(self._prepare_card, data, slot)
        check_abort(abort)

        x = mm_to_points(position.x)
        y = self.page_height_pt - mm_to_points(position.bottom)
        try:
            c.drawImage(
                ImageReader(io.BytesIO(jpeg)),
                x, y,
                width=mm_to_points(position.width),
                height=mm_to_points(position.height),
                preserveAspectRatio=False,
            )
        except Exception as e:
            raise AssemblyError(f"Failed to embed {slot.label}: {e}", page_number=page_number) from e
        return True

    def _prepare_card(self, data: bytes, slot: CardSlot) -> bytes:
        """Decode, bleed, flatten and JPEG-encode one card. Runs in a worker thread."""
        result = self.synthesizer.synthesize_bytes(data, slot.label, has_baked_bleed=slot.has_baked_bleed)
        logger.debug(
            f"{slot.label}: {result.size[0]}x{result.size[1]}px, edge={result.edge_strategy}, "
            f"trim={result.trim_px}px, filled={sorted(result.filled_corners)}"
        )
        flat = flatten_onto(result.image)
        return save_image_to_bytes(flat, "JPEG", quality=self.jpeg_quality, dpi=self.options.dpi)

    def _fill_page(self, c: canvas.Canvas) -> None:
        c.setFillColor(HexColor(self.options.page_color))
        c.rect(0, 0, self.page_width_pt, self.page_height_pt, stroke=0, fill=1)

    def _draw_guides(self, c: canvas.Canvas, guides: Sequence[Guide]) -> None:
        """Draw cut guides given in millimetres from the page's top-left."""
        if not guides:
            return

        c.setStrokeColor(HexColor(self.page_layout.guide_color))
        c.setLineWidth(mm_to_points(self.page_layout.guide_width_mm))
        c.setDash()

        for guide in guides:
            if isinstance(guide, GuideSegment):
                x1, y1 = self._to_points(guide.x1, guide.y1)
                x2, y2 = self._to_points(guide.x2, guide.y2)
                c.line(x1, y1, x2, y2)
            elif isinstance(guide, GuidePolyline) and len(guide.points) > 1:
                path = c.beginPath()
                path.moveTo(*self._to_points(*guide.points[0]))
                for point in guide.points[1:]:
                    path.lineTo(*self._to_points(*point))
                c.drawPath(path, stroke=1, fill=0)

    def _to_points(self, x_mm: float, y_mm: float) -> tuple[float, float]:
        """Convert top-left millimetres to ReportLab's bottom-left points."""
        return (mm_to_points(x_mm), self.page_height_pt - mm_to_points(y_mm))


def _serialize(c: canvas.Canvas, buffer: io.BytesIO) -> bytes:
    c.save()
    return buffer.getvalue()
