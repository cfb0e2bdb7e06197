"""Resolve card source references to raw image bytes."""

import asyncio
import base64
import binascii
import logging
import time
from pathlib import Path
from typing import Mapping
from urllib.parse import quote, unquote_to_bytes, urlparse

import requests

from proxyprint.api.models import CardSlot, is_uploaded_file_token, upload_id_from_token
from proxyprint.config import SourceConfig
from proxyprint.errors import ImageLoadError, NetworkError, SourceNotFoundError

logger = logging.getLogger(__name__)

REQUEST_HEADERS = {"User-Agent": "proxyprint/0.1", "Accept": "image/*,*/*;q=0.8"}
PROXY_PATH = "/api/cards/images/proxy?url="


class ImageSourceResolver:
    """
    Fetches the bytes behind a CardSlot's source reference.

    Handles upload tokens (looked up in a caller-owned mapping that is never
    modified), data URLs, local files and remote http(s) URLs. Remote fetches
    carry a timeout and a bounded retry policy.
    """

    def __init__(
        self,
        config: SourceConfig | None = None,
        uploads: Mapping[str, bytes | Path] | None = None,
        session: requests.Session | None = None,
    ) -> None:
        """
        Initialize the resolver.

        Args:
            config: Fetch settings (timeouts, retries, proxy base).
            uploads: Upload id -> bytes or file path, for uploaded-file tokens.
            session: Optional requests session to reuse connections.
        """
        self.config = config or SourceConfig()
        self.uploads: Mapping[str, bytes | Path] = uploads if uploads is not None else {}
        self.session = session or requests.Session()

    async def fetch(self, slot: CardSlot) -> bytes:
        """
        Fetch a slot's image bytes without blocking the event loop.

        Raises:
            SourceNotFoundError: If the reference has nothing behind it.
            NetworkError: If a remote fetch fails at the transport level.
            ImageLoadError: If the source exists but cannot be read.
        """
        return await asyncio.to_thread(self.fetch_sync, slot)

    def fetch_sync(self, slot: CardSlot) -> bytes:
        """Blocking variant of fetch()."""
        ref = (slot.source_ref or "").strip()
        if not ref:
            raise SourceNotFoundError("Card has no image source", source=slot.label)

        if is_uploaded_file_token(ref):
            return self._read_upload(ref)
        if ref.startswith("data:"):
            return decode_data_url(ref)
        if ref.startswith("blob:"):
            raise SourceNotFoundError(f"Browser blob URLs cannot be resolved: {ref}", source=ref)

        scheme = urlparse(ref).scheme.lower()
        if scheme in ("http", "https"):
            url = ref if slot.is_user_upload else self.resolve_url(ref)
            return self._download(url)
        if scheme == "file":
            return read_file(Path(urlparse(ref).path))
        return read_file(Path(ref).expanduser())

    def resolve_url(self, url: str) -> str:
        """
        Rewrite a remote card URL the way fetched art is requested.

        Args:
            url: Original image URL.

        Returns:
            URL preferring PNG renditions, routed through the proxy when one is configured.
        """
        if self.config.prefer_png:
            url = prefer_png(url)
        if self.config.api_base:
            url = to_proxied(url, self.config.api_base)
        return url

    def _read_upload(self, token: str) -> bytes:
        upload_id = upload_id_from_token(token)
        data = self.uploads.get(upload_id)
        if data is None:
            raise SourceNotFoundError(f"No uploaded file for token {token}", source=token)
        if isinstance(data, (bytes, bytearray)):
            if not data:
                raise SourceNotFoundError(f"Uploaded file for token {token} is empty", source=token)
            return bytes(data)
        return read_file(Path(data))

    def _download(self, url: str) -> bytes:
        attempts = self.config.retries + 1
        delay = self.config.retry_backoff
        last_error: NetworkError | None = None

        for attempt in range(1, attempts + 1):
            try:
                response = self.session.get(url, headers=REQUEST_HEADERS, timeout=self.config.timeout)
            except (requests.ConnectionError, requests.Timeout) as e:
                last_error = NetworkError(f"Failed to fetch {url}: {e}", url=url)
            else:
                if response.status_code >= 500 or response.status_code == 429:
                    last_error = NetworkError(
                        f"Server error {response.status_code} fetching {url}",
                        url=url,
                        status_code=response.status_code,
                    )
                elif not response.ok:
                    raise ImageLoadError(
                        f"Failed to fetch image: HTTP {response.status_code} for {url}",
                        source=url,
                        status_code=response.status_code,
                    )
                elif not response.content:
                    raise ImageLoadError(f"Empty response body for {url}", source=url, status_code=response.status_code)
                else:
                    return response.content

            if attempt < attempts:
                logger.warning(f"Attempt {attempt}/{attempts} failed for {url}; retrying in {delay:.1f}s")
                time.sleep(delay)
                delay *= 2

        if last_error is None:
            raise NetworkError(f"No fetch attempts were made for {url}", url=url)
        raise last_error


def read_file(path: Path) -> bytes:
    """
    Read a local image file.

    Raises:
        SourceNotFoundError: If the file does not exist.
        ImageLoadError: If it exists but cannot be read.
    """
    if not path.is_file():
        raise SourceNotFoundError(f"Image file not found: {path}", source=str(path))
    try:
        return path.read_bytes()
    except OSError as e:
        raise ImageLoadError(f"Failed to read {path}: {e}", source=str(path)) from e


def decode_data_url(url: str) -> bytes:
    """
    Decode a data: URL into bytes.

    Args:
        url: URL such as "data:image/png;base64,iVBOR...".

    Returns:
        Decoded payload.

    Raises:
        ImageLoadError: If the URL is malformed.
    """
    header, sep, payload = url.partition(",")
    if not sep:
        raise ImageLoadError("Malformed data URL (missing ',')", source=url[:32])
    try:
        if header.endswith(";base64"):
            return base64.b64decode(payload, validate=False)
        return unquote_to_bytes(payload)
    except (binascii.Error, ValueError) as e:
        raise ImageLoadError(f"Malformed data URL: {e}", source=url[:32]) from e


def to_proxied(url: str, api_base: str) -> str:
    """
    Route a remote URL through the same-origin image proxy.

    Args:
        url: Original URL.
        api_base: Proxy server base URL.

    Returns:
        Proxy URL; data URLs and already-proxied URLs are returned unchanged.
    """
    if not url or url.startswith("data:") or is_uploaded_file_token(url):
        return url
    prefix = f"{api_base.rstrip('/')}{PROXY_PATH}"
    if url.startswith(prefix):
        return url
    return f"{prefix}{quote(url, safe='')}"


def prefer_png(url: str) -> str:
    """
    Prefer PNG assets when given a Scryfall JPG.

    Args:
        url: Image URL.

    Returns:
        URL pointing at the PNG rendition, or the input if it isn't a Scryfall JPG.
    """
    parsed = urlparse(url)
    host = parsed.hostname or ""
    if not host.endswith("scryfall.io"):
        return url
    path = parsed.path
    lower = path.lower()
    for ext in (".jpg", ".jpeg"):
        if lower.endswith(ext):
            path = path[: -len(ext)] + ".png"
            path = path.replace("/large/", "/png/").replace("/normal/", "/png/")
            return parsed._replace(path=path).geturl()
    return url
