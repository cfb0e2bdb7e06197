"""Configuration loading and validation."""

import tomllib
from datetime import date
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from proxyprint.types import CornerStyle
from proxyprint.utils.dimensions import (
    CARD_CORNER_RADIUS_MM,
    CARD_HEIGHT_MM,
    CARD_WIDTH_MM,
    DPI_MIN,
    PAGE_SIZES,
)

DEFAULT_CONFIG_NAME = "proxyprint.toml"

_LETTER = PAGE_SIZES["letter"]


class LayoutSpec(BaseModel):
    """
    Page layout for one export. Immutable for the duration of that export.

    All lengths are millimetres. The grid fitting on the page is the caller's
    concern; the layout engine centers whatever grid it is given.

    Override only what you need:

        spec = LayoutSpec(columns=4, rows=2)
        wide = spec.model_copy(update={"bleed_width_mm": 3.0})
    """

    model_config = ConfigDict(frozen=True)

    # ========================================================================
    # Page
    # ========================================================================
    page_width_mm: float = Field(default=_LETTER.width, gt=0)
    page_height_mm: float = Field(default=_LETTER.height, gt=0)

    # ========================================================================
    # Grid
    # ========================================================================
    columns: int = Field(default=3, ge=1)
    rows: int = Field(default=3, ge=1)
    spacing_mm: float = 0.0
    """Gap between adjacent cards. Negative values count as zero."""

    # ========================================================================
    # Card
    # ========================================================================
    card_content_width_mm: float = Field(default=CARD_WIDTH_MM, gt=0)
    card_content_height_mm: float = Field(default=CARD_HEIGHT_MM, gt=0)
    bleed_width_mm: float = Field(default=1.0, ge=0)
    corner_radius_mm: float = Field(default=CARD_CORNER_RADIUS_MM, ge=0)
    """Radius of the card's physical rounded corner, used by rounded guides."""

    # ========================================================================
    # Cut guides
    # ========================================================================
    guides_enabled: bool = True
    guide_width_mm: float = 0.13
    """Stroke width of cut guides. Zero or negative disables guides."""

    guide_color: str = "#39FF14"
    guide_length_mm: float = 4.0
    """Length of each straight corner tick."""

    corner_style: CornerStyle = "straight"
    corner_offset_mm: float = 0.0
    """Inset of rounded guides from the cut line (negative = outward)."""

    @property
    def card_width_mm(self) -> float:
        """Card width including bleed on both sides."""
        return self.card_content_width_mm + 2 * self.bleed_width_mm

    @property
    def card_height_mm(self) -> float:
        """Card height including bleed on both sides."""
        return self.card_content_height_mm + 2 * self.bleed_width_mm

    @property
    def cards_per_page(self) -> int:
        return self.columns * self.rows


class ExportOptions(BaseModel):
    """Options that control how a document is rendered and split into files."""

    model_config = ConfigDict(frozen=True)

    dpi: int = Field(default=DPI_MIN, ge=72, le=2400)
    """Resolution that card images are rasterized at."""

    batching: bool = False
    """Split the output into several PDF files."""

    pages_per_batch: int = Field(default=1, ge=1)
    """Pages per PDF file when batching is enabled."""

    corner_style: CornerStyle | None = None
    """Overrides LayoutSpec.corner_style when set."""

    corner_offset_mm: float | None = None
    """Overrides LayoutSpec.corner_offset_mm when set."""

    skip_missing_sources: bool = True
    """Skip (and log) cards whose source has nothing behind it instead of failing."""

    page_color: str = "#FFFFFF"
    file_prefix: str = "proxies"

    def apply_to(self, layout: LayoutSpec) -> LayoutSpec:
        """
        Apply guide overrides to a layout.

        Args:
            layout: Layout to adjust.

        Returns:
            Layout with this export's corner style and offset applied.
        """
        updates: dict[str, object] = {}
        if self.corner_style is not None:
            updates["corner_style"] = self.corner_style
        if self.corner_offset_mm is not None:
            updates["corner_offset_mm"] = self.corner_offset_mm
        if not updates:
            return layout
        return layout.model_copy(update=updates)


class SourceConfig(BaseModel):
    """How card image sources are fetched."""

    api_base: str | None = None
    """Base URL of a same-origin image proxy. Remote URLs are routed through it when set."""

    timeout: float = Field(default=15.0, gt=0)
    """Per-request timeout in seconds."""

    retries: int = Field(default=2, ge=0)
    """Extra attempts after a transport failure."""

    retry_backoff: float = Field(default=0.5, ge=0)
    """Seconds to wait before the first retry, doubled for each further retry."""

    max_concurrency: int = Field(default=4, ge=1, le=8)
    """Worker count for the zip export path."""

    prefer_png: bool = True
    """Ask Scryfall for PNG renditions instead of JPGs."""


class Config(BaseModel):
    """Root configuration."""

    layout: LayoutSpec = Field(default_factory=LayoutSpec)
    export: ExportOptions = Field(default_factory=ExportOptions)
    sources: SourceConfig = Field(default_factory=SourceConfig)


def load_config(config_path: Path | None = None) -> Config:
    """
    Load configuration from TOML file.

    Args:
        config_path: Path to config file. If None, looks for proxyprint.toml in
            the current directory and falls back to defaults when it is absent.

    Returns:
        Validated Config object.

    Raises:
        FileNotFoundError: If an explicitly given config file doesn't exist.
        ValueError: If config is invalid.
    """
    if config_path is None:
        config_path = Path.cwd() / DEFAULT_CONFIG_NAME
        if not config_path.exists():
            return Config()

    if not config_path.exists():
        raise FileNotFoundError(
            f"Config file not found: {config_path}\n"
            "Copy proxyprint.toml.example to proxyprint.toml and adjust it."
        )

    with open(config_path, "rb") as f:
        config_dict = tomllib.load(f)

    return Config(**config_dict)


def format_output_name(
    prefix: str,
    extension: str,
    export_date: date | None = None,
    part: int | None = None,
    total_parts: int | None = None,
) -> str:
    """
    Build an output filename.

    Args:
        prefix: Filename prefix (e.g., "proxies").
        extension: Extension without the dot.
        export_date: Date stamp. Defaults to today.
        part: 1-based batch number, only used when total_parts > 1.
        total_parts: Number of batches in the export.

    Returns:
        Filename like "proxies_2025-01-31_part-01-of-03.pdf".
    """
    stamp = (export_date or date.today()).isoformat()
    name = f"{sanitize_filename(prefix) or 'proxies'}_{stamp}"
    if part is not None and total_parts is not None and total_parts > 1:
        name += f"_part-{part:02d}-of-{total_parts:02d}"
    return f"{name}.{extension}"


def sanitize_filename(name: str) -> str:
    """
    Sanitize string for use in filename.

    Args:
        name: String to sanitize.

    Returns:
        Sanitized string safe for filenames.
    """
    # Replace invalid filename characters
    invalid_chars = '<>:"/\\|?*%'
    for char in invalid_chars:
        name = name.replace(char, "_")

    # Collapse runs of whitespace
    name = " ".join(name.split())

    # Remove leading/trailing whitespace and dots
    name = name.strip(". ")

    return name
