"""Bleed synthesis: turn one card image into a bordered, print-ready raster."""

import logging
import random
from dataclasses import dataclass, field

import numpy as np
from PIL import Image, ImageFilter

from proxyprint.config import LayoutSpec
from proxyprint.render.image import load_image_from_bytes, resize_and_crop_cover
from proxyprint.types import Corner, EdgeStrategy, RGBColor
from proxyprint.utils.dimensions import (
    BAKED_BLEED_MM,
    build_dpi_table,
    classify_height,
    mm_to_px,
    scale_px_for_dpi,
)

logger = logging.getLogger(__name__)

# Pixel sizes below are tuned at 300 DPI and scaled with the output DPI
CORNER_SIZE_PX = 30
SAMPLE_INSET_PX = 10
PATCH_SIZE_PX = 20
BORDER_THICKNESS_PX = {"top": 96, "bottom": 400, "left": 48, "right": 48}
BLUR_RADIUS_PX = 0.6

# Upper bound for the strip copied outward in replicate mode
REPLICATE_SLICE_MAX_PX = 8

ALPHA_EMPTY = 10
EMPTY_CORNER_RATIO = 0.05
NEAR_BLACK = 30
NEAR_WHITE = 240
FLAT_BORDER_RATIO = 0.9
PATCH_OPAQUE_RATIO = 0.7
PATCH_TEXTURED_RATIO = 0.2
MOSTLY_BLACK_RATIO = 0.7

CORNERS: tuple[Corner, ...] = ("top_left", "top_right", "bottom_left", "bottom_right")


@dataclass
class BleedResult:
    """A bled card raster plus a record of what was done to produce it."""

    image: Image.Image
    content_size: tuple[int, int]
    bleed_px: int
    source_dpi: int | None = None
    baked_bleed_detected: bool = False
    trim_px: int = 0
    corners_checked: list[Corner] = field(default_factory=list)
    filled_corners: dict[Corner, str] = field(default_factory=dict)
    edge_strategy: EdgeStrategy = "none"

    @property
    def size(self) -> tuple[int, int]:
        return self.image.size


class BleedSynthesizer:
    """
    Builds bled card rasters at a fixed output size.

    One instance serves a whole export; each call to synthesize() works on its
    own buffers and shares nothing with other calls.
    """

    def __init__(
        self,
        content_width_mm: float,
        content_height_mm: float,
        bleed_mm: float,
        dpi: int,
        seed: int = 0,
    ) -> None:
        """
        Initialize the synthesizer.

        Args:
            content_width_mm: Card content width (trim size).
            content_height_mm: Card content height (trim size).
            bleed_mm: Bleed to add on every side.
            dpi: Output resolution.
            seed: Seed for the corner texture jitter.
        """
        self.dpi = dpi
        self.bleed_mm = max(0.0, bleed_mm)
        self.seed = seed

        self.content_size = (
            max(1, mm_to_px(content_width_mm, dpi)),
            max(1, mm_to_px(content_height_mm, dpi)),
        )
        self.bleed_px = mm_to_px(self.bleed_mm, dpi)
        # Expected source heights for this card size, used to spot baked bleed
        self.dpi_table = build_dpi_table(content_height_mm)

        self.corner_size = scale_px_for_dpi(CORNER_SIZE_PX, dpi)
        self.sample_inset = scale_px_for_dpi(SAMPLE_INSET_PX, dpi)
        self.patch_size = scale_px_for_dpi(PATCH_SIZE_PX, dpi)
        self.border_thickness = {
            side: scale_px_for_dpi(px, dpi) for side, px in BORDER_THICKNESS_PX.items()
        }
        self.blur_radius = BLUR_RADIUS_PX * dpi / 300.0

    @classmethod
    def from_layout(cls, layout: LayoutSpec, dpi: int, seed: int = 0) -> "BleedSynthesizer":
        """Create a synthesizer matching a layout's card size and bleed."""
        return cls(
            layout.card_content_width_mm,
            layout.card_content_height_mm,
            layout.bleed_width_mm,
            dpi,
            seed=seed,
        )

    @property
    def final_size(self) -> tuple[int, int]:
        """Output size in pixels, content plus bleed on both sides."""
        width, height = self.content_size
        return (width + 2 * self.bleed_px, height + 2 * self.bleed_px)

    def synthesize_bytes(
        self, image_data: bytes, source: str | None = None, has_baked_bleed: bool = False
    ) -> BleedResult:
        """
        Decode image bytes and synthesize the bled card.

        Raises:
            ImageLoadError: If the bytes cannot be decoded.
        """
        image = load_image_from_bytes(image_data, source)
        return self.synthesize(image, has_baked_bleed=has_baked_bleed)

    def synthesize(self, image: Image.Image, has_baked_bleed: bool = False) -> BleedResult:
        """
        Produce the bled raster for one card.

        Args:
            image: Decoded source image of any size and aspect ratio.
            has_baked_bleed: The source may already embed a 3mm bleed.

        Returns:
            BleedResult whose image is exactly final_size.
        """
        img = image if image.mode == "RGBA" else image.convert("RGBA")
        result = BleedResult(
            image=img,
            content_size=self.content_size,
            bleed_px=self.bleed_px,
        )

        if has_baked_bleed:
            height_class = classify_height(img.height, self.dpi_table)
            result.source_dpi = height_class.dpi
            if height_class.has_baked_bleed:
                result.baked_bleed_detected = True
                if self.bleed_mm <= BAKED_BLEED_MM:
                    # Keep part of the baked bleed and scale straight to the output size
                    trim_px = mm_to_px(BAKED_BLEED_MM - self.bleed_mm, height_class.dpi)
                    img, result.trim_px = trim_edges(img, trim_px)
                    result.image = resize_and_crop_cover(img, self.final_size)
                    logger.debug(
                        f"Baked bleed at ~{height_class.dpi} DPI: trimmed {result.trim_px}px per edge"
                    )
                    return result
                img, result.trim_px = trim_edges(img, mm_to_px(BAKED_BLEED_MM, height_class.dpi))
            else:
                logger.debug(f"Image height {img.height}px not recognized as bled; using as-is")

        content = resize_and_crop_cover(img, self.content_size)
        if self.bleed_px == 0:
            result.image = content
            return result

        pixels = np.array(content, dtype=np.uint8)
        self._fill_corners(pixels, result)
        darken_border(pixels, self.border_thickness, NEAR_BLACK)

        content = Image.fromarray(pixels)
        if left_edge_mostly_black(pixels):
            slice_px = max(1, min(REPLICATE_SLICE_MAX_PX, content.width // 100))
            result.image = extend_replicate(content, self.bleed_px, slice_px)
            result.edge_strategy = "replicate"
        else:
            result.image = extend_mirror(content, self.bleed_px)
            result.edge_strategy = "mirror"

        return result

    def _fill_corners(self, pixels: np.ndarray, result: BleedResult) -> None:
        """Inpaint transparent corners in place, recording what was filled."""
        height, width = pixels.shape[:2]
        size = min(self.corner_size, width, height)

        for index, corner in enumerate(CORNERS):
            x, y = corner_origin(corner, width, height, size)
            result.corners_checked.append(corner)
            if not corner_needs_fill(pixels[y:y + size, x:x + size]):
                continue

            flat = flat_border_color(pixels, corner, size, self.sample_inset)
            if flat is not None:
                fill = Image.new("RGBA", (size, size), flat + (255,))
                result.filled_corners[corner] = "flat"
            else:
                fill = self._texture_fill(pixels, corner, size, index)
                result.filled_corners[corner] = "texture"

            composite_beneath(pixels, x, y, fill)
            logger.debug(f"Filled {corner} corner ({result.filled_corners[corner]})")

    def _texture_fill(self, pixels: np.ndarray, corner: Corner, size: int, index: int) -> Image.Image:
        """Tile a nearby textured patch over a corner-sized square."""
        height, width = pixels.shape[:2]
        patch = max(1, min(self.patch_size, width, height))

        seed_x = self.sample_inset if corner.endswith("left") else width - self.sample_inset - patch
        seed_y = self.sample_inset if corner.startswith("top") else height - self.sample_inset - patch
        px, py = find_textured_patch(pixels, seed_x, seed_y, patch)
        patch_img = Image.fromarray(np.ascontiguousarray(pixels[py:py + patch, px:px + patch]))

        fill = Image.new("RGBA", (size, size), (0, 0, 0, 0))
        # Plain grid first so jitter never leaves holes
        for ty in range(0, size, patch):
            for tx in range(0, size, patch):
                fill.paste(patch_img, (tx, ty))

        rng = random.Random(self.seed * 31 + index)
        jitter = max(1, patch // 8)
        for ty in range(0, size, patch):
            for tx in range(0, size, patch):
                dx = rng.randint(-jitter, jitter)
                dy = rng.randint(-jitter, jitter)
                fill.paste(patch_img, (tx + dx, ty + dy))

        return fill.filter(ImageFilter.GaussianBlur(radius=self.blur_radius))


def trim_edges(img: Image.Image, trim_px: int) -> tuple[Image.Image, int]:
    """
    Crop the same number of pixels from every edge.

    Args:
        img: Image to trim.
        trim_px: Pixels to remove per edge.

    Returns:
        Tuple of (trimmed image, pixels actually trimmed). The image is
        returned untouched when the trim is not positive or would consume it.
    """
    if trim_px <= 0:
        return img, 0
    if img.width - 2 * trim_px <= 0 or img.height - 2 * trim_px <= 0:
        return img, 0
    return img.crop((trim_px, trim_px, img.width - trim_px, img.height - trim_px)), trim_px


def corner_origin(corner: Corner, width: int, height: int, size: int) -> tuple[int, int]:
    """Top-left pixel of a corner square."""
    x = 0 if corner.endswith("left") else width - size
    y = 0 if corner.startswith("top") else height - size
    return (x, y)


def corner_needs_fill(region: np.ndarray) -> bool:
    """
    Check whether a corner region is noticeably transparent.

    Args:
        region: RGBA pixel block.

    Returns:
        True when more than 5% of the pixels are (nearly) fully transparent.
    """
    if region.size == 0:
        return False
    empty = region[..., 3] <= ALPHA_EMPTY
    return float(empty.mean()) > EMPTY_CORNER_RATIO


def _border_strips(pixels: np.ndarray, corner: Corner, size: int, thickness: int) -> list[np.ndarray]:
    """The two edge strips that run away from a corner square."""
    height, width = pixels.shape[:2]
    span_x = slice(size, min(width, 2 * size)) if corner.endswith("left") else slice(max(0, width - 2 * size), width - size)
    span_y = slice(size, min(height, 2 * size)) if corner.startswith("top") else slice(max(0, height - 2 * size), height - size)
    edge_y = slice(0, thickness) if corner.startswith("top") else slice(max(0, height - thickness), height)
    edge_x = slice(0, thickness) if corner.endswith("left") else slice(max(0, width - thickness), width)
    return [pixels[edge_y, span_x], pixels[span_y, edge_x]]


def flat_border_color(pixels: np.ndarray, corner: Corner, size: int, thickness: int) -> RGBColor | None:
    """
    Detect a flat black or white card border next to a corner.

    Args:
        pixels: RGBA card pixels.
        corner: Corner being filled.
        size: Corner square size.
        thickness: Strip thickness to sample.

    Returns:
        Average border color when both strips are uniformly near-black or
        near-white, otherwise None.
    """
    strips = _border_strips(pixels, corner, size, max(1, thickness))
    if any(strip.size == 0 for strip in strips):
        return None

    for is_flat in (_near_black, _near_white):
        samples = []
        for strip in strips:
            opaque = strip[..., 3] > ALPHA_EMPTY
            matches = opaque & is_flat(strip)
            if matches.mean() < FLAT_BORDER_RATIO:
                break
            samples.append(strip[matches][:, :3])
        else:
            mean = np.concatenate(samples).mean(axis=0)
            return (int(round(mean[0])), int(round(mean[1])), int(round(mean[2])))

    return None


def _near_black(block: np.ndarray) -> np.ndarray:
    return np.all(block[..., :3] < NEAR_BLACK, axis=-1)


def _near_white(block: np.ndarray) -> np.ndarray:
    return np.all(block[..., :3] >= NEAR_WHITE, axis=-1)


def find_textured_patch(pixels: np.ndarray, sx: int, sy: int, patch: int) -> tuple[int, int]:
    """
    Find a mostly opaque, textured patch near a seed point.

    The seed and its eight neighbours (cardinal and diagonal, one patch away)
    are probed in order; the first with at least 70% opaque pixels, of which
    at least 20% are not near-white, wins.

    Args:
        pixels: RGBA card pixels.
        sx: Seed x.
        sy: Seed y.
        patch: Patch size in pixels.

    Returns:
        Top-left (x, y) of the chosen patch; the clamped seed if none qualifies.
    """
    height, width = pixels.shape[:2]
    candidates = [
        (0, 0), (patch, 0), (0, patch), (-patch, 0), (0, -patch),
        (patch, patch), (-patch, patch), (patch, -patch), (-patch, -patch),
    ]

    def clamp(value: int, low: int, high: int) -> int:
        return max(low, min(high, value))

    total = patch * patch
    for dx, dy in candidates:
        px = clamp(sx + dx, 0, width - patch)
        py = clamp(sy + dy, 0, height - patch)
        block = pixels[py:py + patch, px:px + patch]

        opaque = block[..., 3] > ALPHA_EMPTY
        opaque_count = int(opaque.sum())
        if opaque_count == 0:
            continue
        textured = opaque & np.any(block[..., :3] < NEAR_WHITE, axis=-1)
        if opaque_count / total >= PATCH_OPAQUE_RATIO and int(textured.sum()) / opaque_count >= PATCH_TEXTURED_RATIO:
            return (px, py)

    return (clamp(sx, 0, width - patch), clamp(sy, 0, height - patch))


def composite_beneath(pixels: np.ndarray, x: int, y: int, fill: Image.Image) -> None:
    """
    Draw a fill layer underneath existing pixels, in place.

    Opaque pixels already present stay as they are; transparent ones show the fill.
    """
    height = min(fill.height, pixels.shape[0] - y)
    width = min(fill.width, pixels.shape[1] - x)
    region = Image.fromarray(np.ascontiguousarray(pixels[y:y + height, x:x + width]))
    under = fill if fill.size == (width, height) else fill.crop((0, 0, width, height))
    pixels[y:y + height, x:x + width] = np.asarray(Image.alpha_composite(under, region))


def darken_border(pixels: np.ndarray, thickness: dict[str, int], threshold: int) -> None:
    """
    Flatten near-black noise in the border band to pure black, in place.

    Args:
        pixels: RGBA card pixels.
        thickness: Band thickness per side ("top", "bottom", "left", "right").
        threshold: Channel value below which a pixel counts as near-black.
    """
    height, width = pixels.shape[:2]
    band = np.zeros((height, width), dtype=bool)
    band[:max(0, thickness["top"]), :] = True
    band[max(0, height - thickness["bottom"]):, :] = True
    band[:, :max(0, thickness["left"])] = True
    band[:, max(0, width - thickness["right"]):] = True

    dark = np.all(pixels[..., :3] < threshold, axis=-1)
    pixels[band & dark, :3] = 0


def left_edge_mostly_black(pixels: np.ndarray) -> bool:
    """Check whether more than 70% of the leftmost column is near-black."""
    column = pixels[:, 0, :]
    if column.size == 0:
        return False
    return float(_near_black(column).mean()) > MOSTLY_BLACK_RATIO


def extend_mirror(content: Image.Image, bleed_px: int) -> Image.Image:
    """
    Extend an image outward by reflecting its edges and corners.

    Args:
        content: Content-sized image.
        bleed_px: Bleed to add on every side.

    Returns:
        Image of size content + 2 * bleed_px.
    """
    if bleed_px <= 0:
        return content.copy()
    pixels = np.asarray(content)
    padded = np.pad(pixels, ((bleed_px, bleed_px), (bleed_px, bleed_px), (0, 0)), mode="symmetric")
    return Image.fromarray(padded)


def extend_replicate(content: Image.Image, bleed_px: int, slice_px: int) -> Image.Image:
    """
    Extend an image outward by stretching thin edge and corner slices.

    Used for black-bordered cards, where mirroring would reflect art back
    into the bleed.

    Args:
        content: Content-sized image.
        bleed_px: Bleed to add on every side.
        slice_px: Thickness of the strip copied from each edge.

    Returns:
        Image of size content + 2 * bleed_px.
    """
    width, height = content.size
    out = Image.new(content.mode, (width + 2 * bleed_px, height + 2 * bleed_px))
    out.paste(content, (bleed_px, bleed_px))
    if bleed_px <= 0:
        return out

    s = max(1, min(slice_px, width, height))
    b = bleed_px
    pieces = [
        # edges: (source box, stretched size, destination)
        ((0, 0, s, height), (b, height), (0, b)),
        ((width - s, 0, width, height), (b, height), (width + b, b)),
        ((0, 0, width, s), (width, b), (b, 0)),
        ((0, height - s, width, height), (width, b), (b, height + b)),
        # corners
        ((0, 0, s, s), (b, b), (0, 0)),
        ((width - s, 0, width, s), (b, b), (width + b, 0)),
        ((0, height - s, s, height), (b, b), (0, height + b)),
        ((width - s, height - s, width, height), (b, b), (width + b, height + b)),
    ]
    for box, size, dest in pieces:
        out.paste(content.crop(box).resize(size, Image.Resampling.BILINEAR), dest)

    return out
