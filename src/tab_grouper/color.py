import math
from typing import Dict, Tuple

from tab_grouper.types.tab import ColorSample, GroupColor

# Channel spread at or below which an average color counts as gray
GRAY_THRESHOLD = 15

RGB = Tuple[int, int, int]

# Reference point for each group color. Iteration order is the tie-break order.
PALETTE: Dict[GroupColor, RGB] = {
    GroupColor.GREY: (130, 130, 130),
    GroupColor.BLUE: (20, 100, 255),
    GroupColor.RED: (255, 40, 30),
    GroupColor.YELLOW: (255, 170, 0),
    GroupColor.GREEN: (20, 130, 50),
    GroupColor.PINK: (200, 20, 130),
    GroupColor.PURPLE: (160, 60, 240),
    GroupColor.CYAN: (0, 130, 128),
    GroupColor.ORANGE: (255, 140, 60),
}

FALLBACK_COLOR = GroupColor.GREY


def is_ignored_pixel(r: int, g: int, b: int, a: int) -> bool:
    """Transparent and pure white pixels are icon background."""
    return a == 0 or (r == 255 and g == 255 and b == 255)


def is_gray(r: int, g: int, b: int, threshold: int = GRAY_THRESHOLD) -> bool:
    return abs(r - g) <= threshold and abs(r - b) <= threshold and abs(g - b) <= threshold


def color_distance(a: RGB, b: RGB) -> float:
    """Euclidean distance in RGB space."""
    return math.sqrt(sum((x - y) ** 2 for x, y in zip(a, b, strict=True)))


def _round_half_up(total: int, count: int) -> int:
    # Python's round() is banker's rounding; 127.5 must become 128
    return (2 * total + count) // (2 * count)


def average_color(pixels: bytes, width: int, height: int) -> RGB | None:
    """Mean RGB over the non-ignored pixels, or None if every pixel is ignored.

    Raises:
        ValueError: If the buffer holds fewer than width * height RGBA pixels
    """
    expected = width * height * 4
    if width < 0 or height < 0 or len(pixels) < expected:
        raise ValueError(
            f"Pixel buffer of {len(pixels)} bytes is too small for {width}x{height} RGBA"
        )

    r_total = g_total = b_total = 0
    count = 0
    for i in range(0, expected, 4):
        r, g, b, a = pixels[i], pixels[i + 1], pixels[i + 2], pixels[i + 3]
        if is_ignored_pixel(r, g, b, a):
            continue
        r_total += r
        g_total += g
        b_total += b
        count += 1

    if count == 0:
        return None

    return (
        _round_half_up(r_total, count),
        _round_half_up(g_total, count),
        _round_half_up(b_total, count),
    )


def nearest_color(rgb: RGB) -> GroupColor:
    """Closest palette entry; on a tie the earlier entry wins."""
    closest = FALLBACK_COLOR
    min_distance = math.inf
    for name, reference in PALETTE.items():
        distance = color_distance(rgb, reference)
        if distance < min_distance:
            min_distance = distance
            closest = name
    return closest


def classify(pixels: bytes, width: int, height: int) -> GroupColor:
    """Pick the group color that best matches an icon's dominant color.

    Args:
        pixels: RGBA bytes, row-major
        width: Image width in pixels
        height: Image height in pixels

    Returns:
        A palette color; grey for empty, all-background or low-saturation icons
    """
    average = average_color(pixels, width, height)
    if average is None:
        return FALLBACK_COLOR

    if is_gray(*average):
        return GroupColor.GREY

    return nearest_color(average)


def classify_sample(sample: ColorSample) -> GroupColor:
    return classify(sample.pixels, sample.width, sample.height)
