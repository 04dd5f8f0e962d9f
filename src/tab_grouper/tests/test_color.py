import pytest

from tab_grouper.color import (
    PALETTE,
    average_color,
    classify,
    classify_sample,
    color_distance,
    is_gray,
    is_ignored_pixel,
    nearest_color,
)
from tab_grouper.types.tab import ColorSample, GroupColor


def rgba(*pixels):
    """Pack (r, g, b, a) tuples into an RGBA buffer."""
    return bytes(channel for pixel in pixels for channel in pixel)


def solid(r, g, b, a=255, count=4):
    return rgba(*[(r, g, b, a)] * count)


def test_palette_order_starts_with_grey():
    assert list(PALETTE)[0] is GroupColor.GREY
    assert list(PALETTE) == list(GroupColor)


def test_all_transparent_is_grey():
    assert classify(solid(255, 0, 0, a=0), 2, 2) is GroupColor.GREY


def test_all_white_is_grey():
    assert classify(solid(255, 255, 255), 2, 2) is GroupColor.GREY


def test_empty_image_is_grey():
    assert classify(b"", 0, 0) is GroupColor.GREY


def test_red_average_ignoring_background():
    pixels = rgba(
        (255, 40, 30, 255),
        (255, 255, 255, 255),  # white background
        (0, 0, 0, 0),  # transparent
        (255, 40, 30, 255),
    )
    assert classify(pixels, 2, 2) is GroupColor.RED


def test_near_gray_average_short_circuits_to_grey():
    assert classify(solid(140, 140, 138), 2, 2) is GroupColor.GREY


def test_dark_gray_is_grey_not_nearest_hue():
    # (20, 30, 35) is closest to green by distance, but within the gray threshold
    assert classify(solid(20, 30, 35), 2, 2) is GroupColor.GREY


@pytest.mark.parametrize(
    "rgb, expected",
    [
        ((20, 100, 255), GroupColor.BLUE),
        ((66, 133, 244), GroupColor.BLUE),
        ((255, 170, 0), GroupColor.YELLOW),
        ((20, 130, 50), GroupColor.GREEN),
        ((200, 20, 130), GroupColor.PINK),
        ((160, 60, 240), GroupColor.PURPLE),
        ((0, 130, 128), GroupColor.CYAN),
        ((255, 140, 60), GroupColor.ORANGE),
    ],
)
def test_nearest_palette_color(rgb, expected):
    assert classify(solid(*rgb), 2, 2) is expected


def test_average_rounds_half_up():
    # Mean red is 127.5 -> 128, like JavaScript's Math.round
    pixels = rgba((127, 0, 0, 255), (128, 0, 0, 255))
    assert average_color(pixels, 2, 1) == (128, 0, 0)


def test_average_of_all_ignored_is_none():
    assert average_color(solid(255, 255, 255), 2, 2) is None


def test_semi_transparent_pixels_count():
    assert average_color(rgba((10, 20, 30, 1)), 1, 1) == (10, 20, 30)


def test_short_buffer_raises():
    with pytest.raises(ValueError):
        classify(b"\x00\x00\x00", 1, 1)


def test_is_ignored_pixel():
    assert is_ignored_pixel(1, 2, 3, 0)
    assert is_ignored_pixel(255, 255, 255, 255)
    assert not is_ignored_pixel(255, 255, 254, 255)


def test_is_gray_threshold_is_inclusive():
    assert is_gray(100, 115, 108)
    assert not is_gray(100, 116, 108)


def test_color_distance():
    assert color_distance((0, 0, 0), (3, 4, 0)) == 5


def test_nearest_color_tie_goes_to_first_palette_entry(monkeypatch):
    monkeypatch.setitem(PALETTE, GroupColor.BLUE, (0, 0, 10))
    monkeypatch.setitem(PALETTE, GroupColor.RED, (0, 0, 30))
    # Equidistant from blue and red; blue comes first
    assert nearest_color((0, 0, 20)) is GroupColor.BLUE


def test_classify_sample():
    sample = ColorSample(pixels=solid(255, 40, 30), width=2, height=2)
    assert classify_sample(sample) is GroupColor.RED
