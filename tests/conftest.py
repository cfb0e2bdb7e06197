"""Shared fixtures: synthetic card images and a scripted source resolver."""

import io
from typing import Callable

import numpy as np
import pytest
from PIL import Image

from proxyprint.api.models import CardSlot
from proxyprint.errors import SourceNotFoundError


def textured_card(size: tuple[int, int], seed: int = 0) -> Image.Image:
    """Opaque RGBA image with a colour gradient and noise, so no region is flat."""
    width, height = size
    rng = np.random.default_rng(seed)
    xs = np.linspace(40, 200, width, dtype=np.float32)[None, :]
    ys = np.linspace(30, 180, height, dtype=np.float32)[:, None]
    pixels = np.zeros((height, width, 4), dtype=np.uint8)
    pixels[..., 0] = np.clip(xs + rng.integers(-20, 20, (height, width)), 0, 255)
    pixels[..., 1] = np.clip(ys + rng.integers(-20, 20, (height, width)), 0, 255)
    pixels[..., 2] = np.clip((xs + ys) / 2 + rng.integers(-20, 20, (height, width)), 0, 255)
    pixels[..., 3] = 255
    return Image.fromarray(pixels)


def clear_corners(img: Image.Image, size: int) -> Image.Image:
    """Make a size x size square at every corner fully transparent."""
    pixels = np.array(img.convert("RGBA"))
    pixels[:size, :size] = 0
    pixels[:size, -size:] = 0
    pixels[-size:, :size] = 0
    pixels[-size:, -size:] = 0
    return Image.fromarray(pixels)


def encode(img: Image.Image, format: str = "PNG") -> bytes:
    buffer = io.BytesIO()
    if format == "JPEG":
        img = img.convert("RGB")
    img.save(buffer, format=format)
    return buffer.getvalue()


class ScriptedResolver:
    """
    Stands in for ImageSourceResolver.

    Serves bytes from a dict, raises SourceNotFoundError for unknown refs and
    records the order in which slots were fetched.
    """

    def __init__(self, images: dict[str, bytes], on_fetch: Callable[[int], None] | None = None) -> None:
        self.images = images
        self.on_fetch = on_fetch
        self.fetched: list[str] = []

    async def fetch(self, slot: CardSlot) -> bytes:
        self.fetched.append(slot.source_ref)
        if self.on_fetch is not None:
            self.on_fetch(len(self.fetched))
        if slot.source_ref not in self.images:
            raise SourceNotFoundError(f"No image for {slot.source_ref}", source=slot.source_ref)
        return self.images[slot.source_ref]


@pytest.fixture
def card_png() -> bytes:
    return encode(textured_card((252, 352)))


@pytest.fixture
def make_slots(card_png: bytes) -> Callable[[int], tuple[list[CardSlot], dict[str, bytes]]]:
    """Factory: n slots named card-000.. and the bytes behind them."""

    def build(count: int) -> tuple[list[CardSlot], dict[str, bytes]]:
        slots = [CardSlot(source_ref=f"card-{i:03d}", name=f"Card {i}") for i in range(count)]
        return slots, {slot.source_ref: card_png for slot in slots}

    return build
