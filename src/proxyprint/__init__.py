"""Print-ready proxy sheets for trading cards."""

__version__ = "0.1.0"

# High-level Python API
from proxyprint.api.builder import export_images, export_pdf, read_card_list, slots_from_sources
from proxyprint.api.models import CardSlot, ExportedFile, ExportProgress
from proxyprint.config import Config, ExportOptions, LayoutSpec, load_config
from proxyprint.errors import (
    AssemblyError,
    ExportCancelled,
    ImageLoadError,
    NetworkError,
    ProxyPrintError,
    SourceNotFoundError,
)
from proxyprint.utils.concurrency import AbortSignal

__all__ = [
    "AbortSignal",
    "AssemblyError",
    "CardSlot",
    "Config",
    "ExportCancelled",
    "ExportOptions",
    "ExportProgress",
    "ExportedFile",
    "ImageLoadError",
    "LayoutSpec",
    "NetworkError",
    "ProxyPrintError",
    "SourceNotFoundError",
    "export_images",
    "export_pdf",
    "load_config",
    "read_card_list",
    "slots_from_sources",
]
