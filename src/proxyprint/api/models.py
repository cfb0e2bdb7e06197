"""Data models handed to and returned by the export pipeline."""

from dataclasses import dataclass

UPLOADED_FILE_TOKEN_PREFIX = "uploaded-file://"


@dataclass(frozen=True)
class CardSlot:
    """One card to print, as the caller's card list describes it."""

    source_ref: str
    is_user_upload: bool = False
    has_baked_bleed: bool = False
    name: str | None = None

    @property
    def label(self) -> str:
        """Human-readable identifier for logs and errors."""
        if self.name:
            return self.name
        if self.source_ref.startswith("data:"):
            return self.source_ref[:32] + "..."
        return self.source_ref or "<empty>"


@dataclass(frozen=True)
class ExportProgress:
    """Progress snapshot reported to the caller while exporting."""

    overall_percent: float | None = None
    page_percent: float | None = None
    current_page: int | None = None  # 1-based
    total_pages: int | None = None


@dataclass(frozen=True)
class ExportedFile:
    """A file produced by an export."""

    name: str
    size: int  # bytes
    pages: int = 0
    cards: int = 0


def make_uploaded_file_token(upload_id: str) -> str:
    """
    Build a source reference for an uploaded file.

    Args:
        upload_id: Key of the upload in the caller's uploads mapping.

    Returns:
        Token such as "uploaded-file://3f2a...".
    """
    return f"{UPLOADED_FILE_TOKEN_PREFIX}{upload_id}"


def is_uploaded_file_token(value: str | None) -> bool:
    """Check whether a source reference is an upload token."""
    return isinstance(value, str) and value.startswith(UPLOADED_FILE_TOKEN_PREFIX)


def upload_id_from_token(token: str) -> str:
    """Extract the upload key from an upload token."""
    return token[len(UPLOADED_FILE_TOKEN_PREFIX):]
