"""Error types raised by the export pipeline."""

import asyncio


class ProxyPrintError(Exception):
    """Base class for all proxyprint errors."""


class ImageLoadError(ProxyPrintError):
    """A card image could not be fetched or decoded."""

    def __init__(self, message: str, source: str | None = None, status_code: int | None = None) -> None:
        super().__init__(message)
        self.source = source
        self.status_code = status_code


class SourceNotFoundError(ImageLoadError):
    """
    A card's source reference has nothing behind it.

    Raised for upload tokens without backing bytes, missing local files and
    empty references. The assembler skips these slots instead of failing.
    """


class NetworkError(ProxyPrintError):
    """Transport-level failure while fetching a remote asset."""

    def __init__(self, message: str, url: str | None = None, status_code: int | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class ExportCancelled(ProxyPrintError):
    """The export was aborted by the caller. No output is produced."""

    def __init__(self, message: str = "Export was cancelled") -> None:
        super().__init__(message)


class AssemblyError(ProxyPrintError):
    """Embedding a card into the PDF or serializing the document failed."""

    def __init__(self, message: str, page_number: int | None = None) -> None:
        super().__init__(message)
        self.page_number = page_number


def is_cancellation(error: BaseException) -> bool:
    """
    Check whether an error means "user aborted" rather than a failure.

    Args:
        error: Exception raised by an export.

    Returns:
        True for ExportCancelled and asyncio task cancellation.
    """
    return isinstance(error, (ExportCancelled, asyncio.CancelledError))
