"""
Procedural scene images.

Draws a square storybook-style frame for one scene without any upstream
model: a keyword-driven gradient, a few translucent shapes, a scene badge,
the wrapped description and a language tag. Used when no image generation
service is configured, and as the fallback when one fails.
"""
import logging
import random
from typing import Optional, Tuple

from PIL import Image, ImageDraw

from .artifacts import artifact_path, public_ref
from .drawing import draw_text_at, draw_wrapped_block, fill_diagonal_gradient, load_font, text_measure, wrap_text
from .settings import IMAGE_SIZE, OUTPUT_DIR

logger = logging.getLogger(__name__)

Palette = Tuple[str, str, str]

# First matching group wins, in declaration order.
PALETTE_RULES = [
    (("village", "home", "house"), ("#ff9a9e", "#fecfef", "#fecfef")),
    (("forest", "tree", "nature"), ("#a8edea", "#fed6e3", "#d299c2")),
    (("mountain", "hill", "peak"), ("#667eea", "#764ba2", "#f093fb")),
    (("water", "river", "ocean"), ("#4facfe", "#00f2fe", "#43e97b")),
    (("sunset", "sunrise", "golden"), ("#fa709a", "#fee140", "#fa709a")),
    (("night", "dark", "moon"), ("#2c3e50", "#4a6741", "#2c5364")),
]

FALLBACK_PALETTES = [
    ("#667eea", "#764ba2", "#f093fb"),
    ("#f093fb", "#f5576c", "#4facfe"),
    ("#43e97b", "#38f9d7", "#667eea"),
    ("#fa709a", "#fee140", "#43e97b"),
]

CIRCLE_KEYWORDS = ("nature", "organic", "life")
RECT_KEYWORDS = ("building", "house", "structure")
TRIANGLE_KEYWORDS = ("action", "movement", "journey")

PLACEHOLDER_COLORS = ["ff6b6b", "4ecdc4", "45b7d1", "96ceb4", "feca57", "ff9ff3"]

BADGE_BOX = (50, 50, 200, 130)
CAPTION_TOP = 850
CAPTION_WIDTH = 950
CAPTION_LINE_HEIGHT = 35


def select_palette(description: str, ordinal: int) -> Palette:
    desc = description.lower()
    for keywords, palette in PALETTE_RULES:
        if any(k in desc for k in keywords):
            return palette
    return FALLBACK_PALETTES[ordinal % len(FALLBACK_PALETTES)]


def placeholder_image_url(ordinal: int) -> str:
    color = PLACEHOLDER_COLORS[ordinal % len(PLACEHOLDER_COLORS)]
    return f"https://via.placeholder.com/1024x1024/{color}/ffffff?text=Scene+{ordinal}"


def _draw_overlay(img: Image.Image, description: str, rng: random.Random) -> None:
    desc = description.lower()
    size = img.size[0]
    draw = ImageDraw.Draw(img, "RGBA")

    if any(k in desc for k in CIRCLE_KEYWORDS):
        for _ in range(5):
            cx, cy = rng.random() * size, rng.random() * size
            r = rng.random() * 100 + 50
            draw.ellipse([cx - r, cy - r, cx + r, cy + r], fill=(255, 255, 255, int(rng.random() * 0.3 * 255)))

    if any(k in desc for k in RECT_KEYWORDS):
        for _ in range(3):
            x, y = rng.random() * (size - 224), rng.random() * (size - 224)
            w, h = rng.random() * 200 + 100, rng.random() * 200 + 100
            draw.rectangle([x, y, x + w, y + h], fill=(255, 255, 255, int(rng.random() * 0.2 * 255)))

    if any(k in desc for k in TRIANGLE_KEYWORDS):
        for _ in range(4):
            x, y = rng.random() * size, rng.random() * size
            points = [
                (x, y),
                (x + rng.random() * 100, y + rng.random() * 100),
                (x - rng.random() * 100, y + rng.random() * 100),
            ]
            draw.polygon(points, fill=(255, 255, 255, int(rng.random() * 0.25 * 255)))


def _draw_labels(img: Image.Image, description: str, ordinal: int, language: str) -> None:
    size = img.size[0]
    draw = ImageDraw.Draw(img, "RGBA")

    draw.rectangle(BADGE_BOX, fill=(0, 0, 0, 178))
    badge_cx = (BADGE_BOX[0] + BADGE_BOX[2]) / 2
    badge_cy = (BADGE_BOX[1] + BADGE_BOX[3]) / 2
    draw_text_at(draw, f"Scene {ordinal}", badge_cx, badge_cy, load_font(36, bold=True), "white")

    draw.rectangle([0, CAPTION_TOP, size, size], fill=(0, 0, 0, 204))
    font = load_font(28)
    lines = wrap_text(description, CAPTION_WIDTH, text_measure(draw, font))
    band_center = (CAPTION_TOP + size) / 2
    draw_wrapped_block(draw, lines, size / 2, band_center, CAPTION_LINE_HEIGHT, font, "white")

    draw_text_at(draw, f"Generated for {language}", size - 50, size - 24, load_font(20), (255, 255, 255, 178), align="right")


class SceneImageRenderer:
    def __init__(self, output_dir=OUTPUT_DIR, size: int = IMAGE_SIZE, rng: Optional[random.Random] = None):
        self.output_dir = output_dir
        self.size = size
        self.rng = rng or random.Random()

    def render(self, description: str, ordinal: int, language: str) -> str:
        """Render scene ``ordinal`` and return its ``/generated/...`` reference, or a placeholder URL on failure."""
        try:
            img = Image.new("RGB", (self.size, self.size))
            start, middle, end = select_palette(description, ordinal)
            fill_diagonal_gradient(img, [(0.0, start), (0.5, middle), (1.0, end)])
            _draw_overlay(img, description, self.rng)
            _draw_labels(img, description, ordinal, language)

            path = artifact_path(self.output_dir, "scene", "png", ordinal)
            img.save(path, "PNG")
            logger.info(f"Rendered procedural image for scene {ordinal}: {path.name}")
            return public_ref(path)
        except Exception as e:
            logger.error(f"Procedural image rendering failed for scene {ordinal}: {e}")
            return placeholder_image_url(ordinal)
