"""Tests for bleed synthesis."""

import numpy as np
import pytest
from PIL import Image

from conftest import clear_corners, encode, textured_card
from proxyprint.config import LayoutSpec
from proxyprint.errors import ImageLoadError
from proxyprint.render.bleed import (
    BleedSynthesizer,
    corner_needs_fill,
    extend_mirror,
    extend_replicate,
    trim_edges,
)
from proxyprint.utils.dimensions import mm_to_px


def synth(bleed_mm: float = 1.0, dpi: int = 100, seed: int = 0) -> BleedSynthesizer:
    return BleedSynthesizer.from_layout(LayoutSpec(bleed_width_mm=bleed_mm), dpi, seed=seed)


def black_framed_card(size: tuple[int, int], frame: int = 20) -> Image.Image:
    pixels = np.array(textured_card(size))
    pixels[:frame, :, :3] = 0
    pixels[-frame:, :, :3] = 0
    pixels[:, :frame, :3] = 0
    pixels[:, -frame:, :3] = 0
    return Image.fromarray(pixels)


@pytest.mark.parametrize("source_size", [(200, 200), (500, 300), (252, 352), (1000, 1400)])
def test_output_size_ignores_source_aspect(source_size):
    """Output is always content plus bleed, whatever the source shape."""
    synthesizer = synth()
    result = synthesizer.synthesize(textured_card(source_size))

    width, height = synthesizer.content_size
    assert result.size == (width + 2 * synthesizer.bleed_px, height + 2 * synthesizer.bleed_px)
    assert result.size == synthesizer.final_size


def test_zero_bleed_is_fitted_content_and_repeatable():
    """Without bleed the result is just the fitted card, identical across runs."""
    synthesizer = synth(bleed_mm=0.0)
    source = textured_card((300, 420))

    first = synthesizer.synthesize(source)
    second = synthesizer.synthesize(source)

    assert first.size == synthesizer.content_size
    assert first.image.tobytes() == second.image.tobytes()
    assert first.corners_checked == []
    assert first.edge_strategy == "none"


def test_opaque_card_gets_mirrored_bleed_without_fills():
    """An opaque card needs no corner fills; the bleed mirrors the edges."""
    synthesizer = synth()
    result = synthesizer.synthesize(textured_card(synthesizer.content_size))

    assert result.filled_corners == {}
    assert len(result.corners_checked) == 4
    assert result.edge_strategy == "mirror"

    out = np.asarray(result.image)
    b = synthesizer.bleed_px
    # Reflection: the first bleed pixel repeats the first content pixel
    assert np.array_equal(out[b:-b, b - 1], out[b:-b, b])
    assert np.array_equal(out[b - 1, b:-b], out[b, b:-b])


def test_transparent_corners_are_textured():
    """Transparent corners on a textured card get a texture fill and end up opaque."""
    synthesizer = synth()
    source = clear_corners(textured_card(synthesizer.content_size), synthesizer.sample_inset)

    result = synthesizer.synthesize(source)

    assert result.filled_corners == {
        "top_left": "texture",
        "top_right": "texture",
        "bottom_left": "texture",
        "bottom_right": "texture",
    }
    b = synthesizer.bleed_px
    width, height = synthesizer.content_size
    for x, y in [(b, b), (b + width - 1, b), (b, b + height - 1), (b + width - 1, b + height - 1)]:
        assert result.image.getpixel((x, y))[3] == 255


def test_texture_fill_is_seeded():
    """The same seed gives the same corner texture."""
    source = clear_corners(textured_card(synth().content_size), synth().sample_inset)

    first = synth(seed=7).synthesize(source)
    second = synth(seed=7).synthesize(source)

    assert first.image.tobytes() == second.image.tobytes()


def test_black_border_gets_flat_corners_and_replicated_bleed():
    """Black-bordered cards get flat black corners and slice-replicated bleed."""
    synthesizer = synth()
    source = clear_corners(black_framed_card(synthesizer.content_size), synthesizer.sample_inset)

    result = synthesizer.synthesize(source)

    assert set(result.filled_corners.values()) == {"flat"}
    assert len(result.filled_corners) == 4
    assert result.edge_strategy == "replicate"

    b = synthesizer.bleed_px
    assert result.image.getpixel((b, b)) == (0, 0, 0, 255)
    assert result.image.getpixel((0, 0))[:3] == (0, 0, 0)


def test_near_black_border_noise_is_flattened():
    """Dark noise inside the border band becomes pure black."""
    synthesizer = synth()
    pixels = np.array(textured_card(synthesizer.content_size))
    pixels[5, 100, :3] = (20, 22, 18)
    pixels[synthesizer.content_size[1] // 2, synthesizer.content_size[0] // 2, :3] = (20, 22, 18)

    result = synthesizer.synthesize(Image.fromarray(pixels))

    b = synthesizer.bleed_px
    assert result.image.getpixel((100 + b, 5 + b))[:3] == (0, 0, 0)
    # The middle of the card is outside the band and keeps its value
    middle = (synthesizer.content_size[0] // 2 + b, synthesizer.content_size[1] // 2 + b)
    assert result.image.getpixel(middle)[:3] == (20, 22, 18)


def test_baked_bleed_is_trimmed_not_inpainted():
    """A 300 DPI source with 3mm baked bleed, printed with 1mm, loses 2mm per edge and nothing else."""
    synthesizer = synth(bleed_mm=1.0, dpi=300)
    source = clear_corners(textured_card((mm_to_px(69, 300), mm_to_px(94, 300))), 40)

    result = synthesizer.synthesize(source, has_baked_bleed=True)

    assert result.baked_bleed_detected
    assert result.source_dpi == 300
    assert result.trim_px == mm_to_px(2, 300)
    assert result.filled_corners == {}
    assert result.corners_checked == []
    assert result.edge_strategy == "none"
    assert result.size == synthesizer.final_size
    # Corners were left alone, so they are still transparent
    assert result.image.getpixel((0, 0))[3] < 128


def test_baked_bleed_smaller_than_requested_is_extended():
    """When more bleed is requested than is baked in, the baked bleed is dropped and regrown."""
    synthesizer = synth(bleed_mm=4.0, dpi=300)
    source = textured_card((mm_to_px(69, 300), mm_to_px(94, 300)))

    result = synthesizer.synthesize(source, has_baked_bleed=True)

    assert result.baked_bleed_detected
    assert result.trim_px == mm_to_px(3, 300)
    assert result.edge_strategy == "mirror"
    assert result.size == synthesizer.final_size


def test_baked_bleed_detection_follows_card_size():
    """A smaller card game's pre-bled asset is recognized from that card's height."""
    layout = LayoutSpec(card_content_width_mm=41, card_content_height_mm=63, bleed_width_mm=1)
    synthesizer = BleedSynthesizer.from_layout(layout, 300)
    source = textured_card((mm_to_px(47, 300), mm_to_px(69, 300)))

    result = synthesizer.synthesize(source, has_baked_bleed=True)

    assert result.baked_bleed_detected
    assert result.source_dpi == 300
    assert result.trim_px == mm_to_px(2, 300)
    assert result.edge_strategy == "none"
    assert result.size == synthesizer.final_size


def test_unrecognized_height_is_used_as_is():
    """A flagged image whose height matches no bled size is treated as plain content."""
    synthesizer = synth(dpi=300)
    source = textured_card((mm_to_px(63, 300), mm_to_px(88, 300)))

    result = synthesizer.synthesize(source, has_baked_bleed=True)

    assert not result.baked_bleed_detected
    assert result.trim_px == 0
    assert result.edge_strategy == "mirror"


def test_synthesize_bytes_decodes_png(card_png):
    synthesizer = synth()
    result = synthesizer.synthesize_bytes(card_png, source="card.png")
    assert result.size == synthesizer.final_size


def test_jpeg_source_is_accepted():
    synthesizer = synth()
    result = synthesizer.synthesize_bytes(encode(textured_card((250, 350)), "JPEG"))
    assert result.image.mode == "RGBA"


def test_undecodable_bytes_raise():
    """Garbage bytes raise ImageLoadError naming the source, never a placeholder."""
    with pytest.raises(ImageLoadError) as excinfo:
        synth().synthesize_bytes(b"definitely not an image", source="broken.png")
    assert excinfo.value.source == "broken.png"


def test_corner_needs_fill_threshold():
    region = np.full((10, 10, 4), 255, dtype=np.uint8)
    assert not corner_needs_fill(region)
    region[0, :5, 3] = 0  # 5%
    assert not corner_needs_fill(region)
    region[0, 5, 3] = 0  # 6%
    assert corner_needs_fill(region)


def test_trim_edges_refuses_to_consume_image():
    img = Image.new("RGBA", (10, 10))
    assert trim_edges(img, 5)[1] == 0
    trimmed, trim = trim_edges(img, 2)
    assert trim == 2
    assert trimmed.size == (6, 6)


def test_extenders_place_content_at_bleed_offset():
    content = textured_card((40, 60))
    for extended in (extend_mirror(content, 5), extend_replicate(content, 5, 2)):
        assert extended.size == (50, 70)
        assert extended.crop((5, 5, 45, 65)).tobytes() == content.tobytes()
