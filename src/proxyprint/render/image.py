"""Image processing utilities using Pillow."""

from io import BytesIO

from PIL import Image, ImageOps, UnidentifiedImageError

from proxyprint.errors import ImageLoadError


def load_image_from_bytes(image_data: bytes, source: str | None = None) -> Image.Image:
    """
    Decode image bytes into an RGBA image.

    Args:
        image_data: Raw image bytes (JPEG, PNG, etc.).
        source: Where the bytes came from, used in error messages.

    Returns:
        Fully loaded PIL Image in RGBA mode.

    Raises:
        ImageLoadError: If the bytes are empty or not a decodable image.
    """
    label = source or "<bytes>"
    if not image_data:
        raise ImageLoadError(f"Image source is empty: {label}", source=source)

    try:
        img = Image.open(BytesIO(image_data))
        img.load()
        # Phone photos are often stored sideways with an Orientation tag
        img = ImageOps.exif_transpose(img)
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as e:
        raise ImageLoadError(f"Failed to decode image from {label}: {e}", source=source) from e

    # Convert to RGBA so transparent corners survive until bleed synthesis
    if img.mode != "RGBA":
        img = img.convert("RGBA")
    return img


def resize_and_crop_cover(img: Image.Image, target_size: tuple[int, int]) -> Image.Image:
    """
    Resize and crop an image to fill the target size while keeping its aspect ratio.

    Uses center crop, so the result never shows letterboxing.

    Args:
        img: Source image.
        target_size: Target size as (width, height) in pixels.

    Returns:
        New PIL Image of exactly target_size.
    """
    target_width, target_height = target_size
    if img.size == (target_width, target_height):
        return img.copy()

    # Uniform scale that covers both dimensions
    scale = max(target_width / img.width, target_height / img.height)
    new_width = max(target_width, int(round(img.width * scale)))
    new_height = max(target_height, int(round(img.height * scale)))

    # Resize with high-quality resampling
    resized = img.resize((new_width, new_height), Image.Resampling.LANCZOS)

    # Center crop to target size
    left = (new_width - target_width) // 2
    top = (new_height - target_height) // 2
    right = left + target_width
    bottom = top + target_height

    return resized.crop((left, top, right, bottom))


def flatten_onto(img: Image.Image, background: tuple[int, int, int] = (255, 255, 255)) -> Image.Image:
    """
    Composite an RGBA image onto a solid background.

    Args:
        img: Image to flatten.
        background: RGB background color.

    Returns:
        RGB image.
    """
    if img.mode == "RGB":
        return img
    rgba = img if img.mode == "RGBA" else img.convert("RGBA")
    base = Image.new("RGB", rgba.size, background)
    base.paste(rgba, mask=rgba.getchannel("A"))
    return base


def save_image_to_bytes(
    img: Image.Image, format: str = "PNG", quality: float | None = None, dpi: int | None = None
) -> bytes:
    """
    Save PIL Image to bytes.

    Args:
        img: PIL Image object.
        format: Image format (PNG, JPEG, etc.).
        quality: Compression quality in the 0-1 range (JPEG only).
        dpi: Resolution to record in the file header.

    Returns:
        Image as bytes.
    """
    buffer = BytesIO()
    params: dict[str, object] = {}
    if format.upper() in ("JPEG", "JPG"):
        if img.mode != "RGB":
            img = flatten_onto(img)
        params["quality"] = int(round((quality if quality is not None else 0.95) * 100))
        params["subsampling"] = 0
    if dpi:
        params["dpi"] = (dpi, dpi)
    img.save(buffer, format=format, **params)
    return buffer.getvalue()


def get_image_format(image_data: bytes) -> str | None:
    """
    Identify the format of image bytes without decoding pixels.

    Args:
        image_data: Raw image bytes.

    Returns:
        Lower-case format name (e.g., "png", "jpeg") or None if unknown.
    """
    try:
        with Image.open(BytesIO(image_data)) as img:
            return img.format.lower() if img.format else None
    except (UnidentifiedImageError, OSError, ValueError):
        return None
