"""Pillow helpers shared by the scene renderer, title card and compositor frames."""
import logging
from functools import lru_cache
from typing import Callable, List, Sequence, Tuple

from PIL import Image, ImageColor, ImageDraw, ImageFont

logger = logging.getLogger(__name__)

_REGULAR_FONTS = [
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/TTF/DejaVuSans.ttf",
    "/System/Library/Fonts/Helvetica.ttc",
    "Arial.ttf",
]
_BOLD_FONTS = [
    "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
    "/usr/share/fonts/TTF/DejaVuSans-Bold.ttf",
    "/System/Library/Fonts/Helvetica.ttc",
    "Arial Bold.ttf",
]

GradientStops = Sequence[Tuple[float, str]]


@lru_cache(maxsize=32)
def load_font(size: int, bold: bool = False):
    for candidate in _BOLD_FONTS if bold else _REGULAR_FONTS:
        try:
            return ImageFont.truetype(candidate, size)
        except (OSError, IOError):
            continue
    logger.warning(f"No TrueType font found, using Pillow default at {size}px")
    try:
        return ImageFont.load_default(size=size)
    except TypeError:
        return ImageFont.load_default()


def gradient_color(stops: GradientStops, t: float) -> Tuple[int, int, int]:
    """Colour at position ``t`` (0..1) of a linear gradient with sorted ``(offset, colour)`` stops."""
    t = min(max(t, 0.0), 1.0)
    rgb = [(offset, ImageColor.getrgb(color)[:3]) for offset, color in stops]
    if t <= rgb[0][0]:
        return rgb[0][1]
    for (o1, c1), (o2, c2) in zip(rgb, rgb[1:]):
        if t <= o2:
            span = (o2 - o1) or 1.0
            k = (t - o1) / span
            return tuple(round(a + (b - a) * k) for a, b in zip(c1, c2))
    return rgb[-1][1]


def fill_diagonal_gradient(img: Image.Image, stops: GradientStops) -> None:
    """Paint ``img`` with a gradient running from the top-left to the bottom-right corner."""
    w, h = img.size
    draw = ImageDraw.Draw(img)
    last = max(w + h - 2, 1)
    # every pixel lies on exactly one anti-diagonal x + y = k
    for k in range(w + h - 1):
        draw.line([(k, 0), (0, k)], fill=gradient_color(stops, k / last))


def wrap_text(text: str, max_width: float, measure: Callable[[str], float]) -> List[str]:
    """Greedy word wrap: extend the line while it fits ``max_width``; a lone over-wide word keeps its own line."""
    lines: List[str] = []
    current = ""
    for word in text.split():
        candidate = f"{current} {word}" if current else word
        if measure(candidate) > max_width and current:
            lines.append(current)
            current = word
        else:
            current = candidate
    if current:
        lines.append(current)
    return lines


def text_measure(draw: ImageDraw.ImageDraw, font) -> Callable[[str], float]:
    return lambda s: draw.textlength(s, font=font)


def draw_text_at(draw: ImageDraw.ImageDraw, text: str, x: float, y: float, font, fill, align: str = "center") -> None:
    """Draw ``text`` vertically centred on ``y``; ``x`` is the centre, left or right edge per ``align``."""
    left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
    width, height = right - left, bottom - top
    if align == "center":
        x = x - width / 2
    elif align == "right":
        x = x - width
    draw.text((x - left, y - height / 2 - top), text, font=font, fill=fill)


def draw_wrapped_block(draw, lines: Sequence[str], cx: float, center_y: float, line_height: float, font, fill) -> None:
    start_y = center_y - ((len(lines) - 1) * line_height) / 2
    for i, line in enumerate(lines):
        draw_text_at(draw, line, cx, start_y + i * line_height, font, fill)
