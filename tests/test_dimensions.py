"""Tests for unit conversion and source-DPI guessing."""

import pytest

from proxyprint.utils.dimensions import (
    DPI_HEIGHT_TABLE,
    center_on_page,
    classify_height,
    get_page_size,
    jpeg_quality_for_dpi,
    mm_to_points,
    mm_to_px,
)


def test_unit_conversion():
    assert mm_to_px(25.4, 300) == 300
    assert mm_to_px(88, 300) == 1039
    assert mm_to_points(25.4) == pytest.approx(72.0)


@pytest.mark.parametrize("bucket", DPI_HEIGHT_TABLE, ids=lambda b: f"{b.dpi}dpi")
def test_classify_exact_heights(bucket):
    """Each table height maps back to its own DPI, with and without baked bleed."""
    plain = classify_height(bucket.height)
    assert (plain.dpi, plain.has_baked_bleed) == (bucket.dpi, False)

    bled = classify_height(bucket.height_with_baked_bleed)
    assert (bled.dpi, bled.has_baked_bleed) == (bucket.dpi, True)


def test_classify_is_approximate():
    """Heights a few pixels off still land on the nearest bucket."""
    result = classify_height(1112)
    assert (result.dpi, result.has_baked_bleed) == (300, True)
    assert result.error_px == 2


@pytest.mark.parametrize("height", [0, -5, float("nan"), float("inf")])
def test_classify_never_raises(height):
    result = classify_height(height)
    assert (result.dpi, result.has_baked_bleed) == (300, False)


@pytest.mark.parametrize(
    "dpi, quality",
    [(150, 1.0), (300, 1.0), (301, 0.98), (600, 0.98), (800, 0.97), (1199, 0.97), (1200, 0.96), (2400, 0.96)],
)
def test_jpeg_quality_tiers(dpi, quality):
    assert jpeg_quality_for_dpi(dpi) == quality


def test_page_size_lookup():
    assert get_page_size("A4").width == 210.0
    assert get_page_size("unknown") == get_page_size("letter")
    assert get_page_size("letter").height == pytest.approx(279.4)


def test_center_on_page_never_negative():
    assert center_on_page(100, 100, 200, 300) == (50, 100)
    assert center_on_page(300, 100, 200, 300) == (0.0, 100)
