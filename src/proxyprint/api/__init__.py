"""Card models and image source resolution."""

from proxyprint.api.models import CardSlot, ExportedFile, ExportProgress, make_uploaded_file_token
from proxyprint.api.sources import ImageSourceResolver

__all__ = [
    "CardSlot",
    "ExportedFile",
    "ExportProgress",
    "ImageSourceResolver",
    "make_uploaded_file_token",
]
