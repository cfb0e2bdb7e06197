"""Tests for card source resolution."""

import asyncio
import base64

import pytest
import requests

from proxyprint.api.models import CardSlot, is_uploaded_file_token, make_uploaded_file_token
from proxyprint.api.sources import ImageSourceResolver, decode_data_url, prefer_png, to_proxied
from proxyprint.config import SourceConfig
from proxyprint.errors import ImageLoadError, NetworkError, SourceNotFoundError

NO_WAIT = SourceConfig(retry_backoff=0.0, prefer_png=False)


class FakeResponse:
    def __init__(self, status_code: int = 200, content: bytes = b"png-bytes") -> None:
        self.status_code = status_code
        self.content = content

    @property
    def ok(self) -> bool:
        return self.status_code < 400


class FakeSession:
    """Replays a script of responses or exceptions and records requested URLs."""

    def __init__(self, *script) -> None:
        self.script = list(script)
        self.urls: list[str] = []

    def get(self, url, headers=None, timeout=None):
        assert timeout is not None
        self.urls.append(url)
        step = self.script.pop(0)
        if isinstance(step, Exception):
            raise step
        return step


def fetch(resolver: ImageSourceResolver, ref: str, **slot_fields) -> bytes:
    return asyncio.run(resolver.fetch(CardSlot(source_ref=ref, **slot_fields)))


def test_upload_tokens_resolve_from_mapping(tmp_path):
    path = tmp_path / "bolt.png"
    path.write_bytes(b"from-disk")
    uploads = {"a": b"from-memory", "b": path}
    resolver = ImageSourceResolver(NO_WAIT, uploads=uploads)

    assert fetch(resolver, make_uploaded_file_token("a")) == b"from-memory"
    assert fetch(resolver, make_uploaded_file_token("b")) == b"from-disk"
    assert uploads == {"a": b"from-memory", "b": path}


def test_missing_upload_is_source_not_found():
    resolver = ImageSourceResolver(NO_WAIT, uploads={})
    with pytest.raises(SourceNotFoundError):
        fetch(resolver, make_uploaded_file_token("gone"))


@pytest.mark.parametrize("ref", ["", "   "])
def test_empty_reference_is_source_not_found(ref):
    with pytest.raises(SourceNotFoundError):
        fetch(ImageSourceResolver(NO_WAIT), ref)


def test_local_files(tmp_path):
    path = tmp_path / "card.png"
    path.write_bytes(b"local")
    resolver = ImageSourceResolver(NO_WAIT)

    assert fetch(resolver, str(path)) == b"local"
    assert fetch(resolver, path.as_uri()) == b"local"
    with pytest.raises(SourceNotFoundError):
        fetch(resolver, str(tmp_path / "missing.png"))


def test_data_urls():
    payload = base64.b64encode(b"\x89PNG data").decode()
    assert decode_data_url(f"data:image/png;base64,{payload}") == b"\x89PNG data"
    assert decode_data_url("data:text/plain,hello%20world") == b"hello world"
    with pytest.raises(ImageLoadError):
        decode_data_url("data:image/png;base64")


def test_http_fetch_retries_transport_errors():
    session = FakeSession(requests.ConnectionError("reset"), FakeResponse(503), FakeResponse(200, b"ok"))
    resolver = ImageSourceResolver(NO_WAIT, session=session)

    assert fetch(resolver, "https://example.com/card.png") == b"ok"
    assert len(session.urls) == 3


def test_http_fetch_gives_up_after_retries():
    session = FakeSession(*[requests.Timeout("slow")] * 3)
    resolver = ImageSourceResolver(NO_WAIT, session=session)

    with pytest.raises(NetworkError):
        fetch(resolver, "https://example.com/card.png")
    assert len(session.urls) == NO_WAIT.retries + 1


def test_http_client_error_is_not_retried():
    session = FakeSession(FakeResponse(404))
    resolver = ImageSourceResolver(NO_WAIT, session=session)

    with pytest.raises(ImageLoadError) as excinfo:
        fetch(resolver, "https://example.com/card.png")
    assert excinfo.value.status_code == 404
    assert len(session.urls) == 1


def test_remote_urls_are_rewritten_unless_uploaded():
    config = SourceConfig(api_base="https://proxy.example/", retry_backoff=0.0)
    url = "https://cards.scryfall.io/large/front/a/b/abc.jpg?1562"
    session = FakeSession(FakeResponse(), FakeResponse())
    resolver = ImageSourceResolver(config, session=session)

    fetch(resolver, url)
    fetch(resolver, url, is_user_upload=True)

    assert session.urls[0] == to_proxied(prefer_png(url), "https://proxy.example")
    assert session.urls[0].startswith("https://proxy.example/api/cards/images/proxy?url=https%3A%2F%2F")
    assert session.urls[1] == url


def test_prefer_png_only_touches_scryfall_jpgs():
    assert prefer_png("https://cards.scryfall.io/large/front/a/b/abc.jpg?1562") == (
        "https://cards.scryfall.io/png/front/a/b/abc.png?1562"
    )
    assert prefer_png("https://example.com/large/abc.jpg") == "https://example.com/large/abc.jpg"
    assert prefer_png("https://cards.scryfall.io/png/front/a/b/abc.png") == (
        "https://cards.scryfall.io/png/front/a/b/abc.png"
    )


def test_to_proxied_is_idempotent():
    once = to_proxied("https://example.com/a.png", "https://proxy.example")
    assert to_proxied(once, "https://proxy.example") == once
    assert to_proxied("data:image/png;base64,AAAA", "https://proxy.example").startswith("data:")


def test_upload_token_helpers():
    token = make_uploaded_file_token("abc")
    assert is_uploaded_file_token(token)
    assert not is_uploaded_file_token("https://example.com")
    assert not is_uploaded_file_token(None)
    assert CardSlot(source_ref=token, name="Bolt").label == "Bolt"


def test_http_fetch_without_attempts_raises_network_error():
    config = SourceConfig.model_construct(retries=-1, retry_backoff=0.0, prefer_png=False)
    session = FakeSession()
    resolver = ImageSourceResolver(config, session=session)

    with pytest.raises(NetworkError):
        fetch(resolver, "https://example.com/card.png")
    assert session.urls == []
