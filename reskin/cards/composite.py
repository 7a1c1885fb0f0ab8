#!/usr/bin/env python3
"""
Themed card compositor.

Takes the base card frame image, lays generated art over the art box with a
cover crop, masks the printed title bar and renders the themed title on top.
Only standard single-face frames are supported; anything else is rejected
with an ``unsupported-layout`` error.
"""
import argparse
import base64
import io
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from PIL import Image, ImageDraw, ImageFont, UnidentifiedImageError

from reskin.errors import ReskinError

logger = logging.getLogger(__name__)

# Standard single-face frame (Scryfall "normal" is 488x680)
STANDARD_CARD_ASPECT_RATIO = 488 / 680
STANDARD_CARD_ASPECT_TOLERANCE = 0.03
MIN_CARD_WIDTH = 320
MIN_CARD_HEIGHT = 450

MIN_TITLE_FONT_SIZE = 15

COLORS = {
    "title_mask": (223, 209, 184),
    "title_fill": "#1f1610",
    "title_stroke": "#efe8d8",
}

BLEND_LUMINOSITY = "luminosity"
BLEND_OVER = "over"
SUPPORTED_BLEND_MODES = frozenset({BLEND_LUMINOSITY, BLEND_OVER})

# Serif faces close to the printed title font, best first
TITLE_FONT_NAMES = [
    "Cinzel-Bold",
    "MatrixBold",
    "GOUDOSB",
    "palab",
    "BKANT",
    "DejaVuSerif-Bold",
    "LiberationSerif-Bold",
]


class UnsupportedLayoutError(ReskinError):
    """Frame geometry the compositor cannot handle. Not retryable."""

    def __init__(self, detail: str):
        super().__init__("unsupported-layout", f"unsupported-layout: {detail}")


class RenderError(ReskinError):
    """Source image could not be decoded or rendered."""

    def __init__(self, detail: str):
        super().__init__("composite-render-failed", detail)


@dataclass(frozen=True)
class NormalizedRect:
    """Rectangle as fractions of the frame width/height."""
    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class PixelRect:
    left: int
    top: int
    width: int
    height: int

    @property
    def box(self) -> tuple[int, int, int, int]:
        return (self.left, self.top, self.left + self.width, self.top + self.height)


@dataclass(frozen=True)
class CoverSourceRect:
    sx: float
    sy: float
    width: float
    height: float

    @property
    def box(self) -> tuple[float, float, float, float]:
        return (self.sx, self.sy, self.sx + self.width, self.sy + self.height)


# Measured on Scryfall "normal" frames
ART_RECT = NormalizedRect(x=0.080, y=0.114, width=0.842, height=0.440)
TITLE_RECT = NormalizedRect(x=0.085, y=0.050, width=0.65, height=0.048)


def to_pixel_rect(rect: NormalizedRect, width: int, height: int) -> PixelRect:
    """Scale a normalized rect to the frame, clamped to the frame bounds."""
    left = max(0, round(rect.x * width))
    top = max(0, round(rect.y * height))
    rect_width = min(width - left, round(rect.width * width))
    rect_height = min(height - top, round(rect.height * height))

    if rect_width <= 0 or rect_height <= 0:
        raise UnsupportedLayoutError("invalid target frame coordinates.")

    return PixelRect(left=left, top=top, width=rect_width, height=rect_height)


def cover_source_rect(source_width: int, source_height: int, target_width: int, target_height: int) -> CoverSourceRect:
    """Centered source crop with the target's aspect ratio.

    Args:
        source_width: Art width in pixels
        source_height: Art height in pixels
        target_width: Destination width in pixels
        target_height: Destination height in pixels

    Returns:
        Source region that, scaled to the target, fills it exactly
    """
    if source_width <= 0 or source_height <= 0:
        raise UnsupportedLayoutError("themed art dimensions unavailable.")
    if target_width <= 0 or target_height <= 0:
        raise UnsupportedLayoutError("invalid cover target dimensions.")

    source_aspect = source_width / source_height
    target_aspect = target_width / target_height

    if source_aspect > target_aspect:
        width = source_height * target_aspect
        return CoverSourceRect(sx=(source_width - width) / 2, sy=0, width=width, height=source_height)

    height = source_width / target_aspect
    return CoverSourceRect(sx=0, sy=(source_height - height) / 2, width=source_width, height=height)


def title_font_size(width: int, height: int, text: str) -> int:
    """Font size from the title box and title length, never below the minimum."""
    max_for_height = int(height * 0.72)
    estimated_from_length = int((width * 0.86) // max(1, len(text) * 0.66))
    return max(MIN_TITLE_FONT_SIZE, min(max_for_height, estimated_from_length))


def title_stroke_width(font_size: int) -> int:
    return max(1, round(font_size * 0.1))


def resolve_title_mask_blend(supported: Iterable[str]) -> str:
    """Luminosity blend when the backend has it, else plain overlay."""
    return BLEND_LUMINOSITY if BLEND_LUMINOSITY in set(supported) else BLEND_OVER


def validate_frame_size(width: int, height: int) -> None:
    if width <= 0 or height <= 0:
        raise UnsupportedLayoutError("base card image dimensions unavailable.")
    if width < MIN_CARD_WIDTH or height < MIN_CARD_HEIGHT:
        raise UnsupportedLayoutError("base card image too small for standard-frame compositing.")
    if abs(width / height - STANDARD_CARD_ASPECT_RATIO) > STANDARD_CARD_ASPECT_TOLERANCE:
        raise UnsupportedLayoutError("card image is not a standard single-face frame ratio.")


def _find_font_file(font_path: Optional[str] = None) -> Optional[str]:
    """First existing title font file, or None to use Pillow's default face."""
    candidates = [font_path] if font_path else []
    for name in TITLE_FONT_NAMES:
        candidates.extend([
            # Windows
            f"C:/Windows/Fonts/{name}.ttf",
            # Common locations
            f"/usr/share/fonts/truetype/{name}.ttf",
            f"/usr/share/fonts/truetype/dejavu/{name}.ttf",
            f"/usr/share/fonts/truetype/liberation/{name}.ttf",
            f"/Library/Fonts/{name}.ttf",
            # Local fonts folder
            str(Path(__file__).parent.parent.parent / "fonts" / f"{name}.ttf"),
        ])

    for path in candidates:
        if path and os.path.exists(path):
            return path
    return None


def _load_font(size: int, font_file: Optional[str] = None):
    """Load the title font at a size, falling back to Pillow's default face."""
    if font_file:
        try:
            return ImageFont.truetype(font_file, size)
        except OSError:
            logger.debug(f"Could not load font {font_file}")
    return ImageFont.load_default(size=size)


def _open_image(data: bytes, label: str) -> Image.Image:
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError) as e:
        raise RenderError(f"{label}: could not decode image ({e}).") from e
    return image


def to_data_url(png_bytes: bytes) -> str:
    return f"data:image/png;base64,{base64.b64encode(png_bytes).decode('ascii')}"


class CardCompositor:
    """Pillow compositor for standard single-face card frames.

    Pure image work: no network or database access.
    """

    blend_modes = SUPPORTED_BLEND_MODES

    def __init__(self, font_path: Optional[str] = None, blend_modes: Optional[Iterable[str]] = None):
        self.font_path = font_path
        self.font_file = _find_font_file(font_path)
        if blend_modes is not None:
            self.blend_modes = frozenset(blend_modes)

    def compose(self, frame_bytes: bytes, art_bytes: bytes, title: str) -> bytes:
        """Composite art and title onto a frame.

        Args:
            frame_bytes: Encoded base card image
            art_bytes: Encoded themed art image
            title: Themed card title

        Returns:
            PNG bytes of the composed card
        """
        title = (title or "").strip()
        if not title:
            raise UnsupportedLayoutError("themed card title is required.")

        frame = _open_image(frame_bytes, "base-card-image")
        width, height = frame.size
        validate_frame_size(width, height)

        art = _open_image(art_bytes, "themed-art-image")
        art_rect = to_pixel_rect(ART_RECT, width, height)
        title_rect = to_pixel_rect(TITLE_RECT, width, height)

        card = frame.convert("RGB")
        self._draw_art_cover(card, art, art_rect)
        self._mask_title(card, title_rect, resolve_title_mask_blend(self.blend_modes))
        self._draw_title(card, title, title_rect)

        out = io.BytesIO()
        card.save(out, "PNG")
        return out.getvalue()

    def compose_data_url(self, frame_bytes: bytes, art_bytes: bytes, title: str) -> str:
        return to_data_url(self.compose(frame_bytes, art_bytes, title))

    def _draw_art_cover(self, card: Image.Image, art: Image.Image, rect: PixelRect) -> None:
        source = cover_source_rect(art.width, art.height, rect.width, rect.height)
        fitted = art.convert("RGB").resize(
            (rect.width, rect.height), Image.Resampling.LANCZOS, box=source.box
        )
        card.paste(fitted, (rect.left, rect.top))

    def _mask_title(self, card: Image.Image, rect: PixelRect, blend: str) -> None:
        if blend == BLEND_LUMINOSITY:
            # Keep the bar's hue and saturation, take the mask colour's luminosity
            region = card.crop(rect.box).convert("YCbCr")
            mask_luma = Image.new("RGB", (1, 1), COLORS["title_mask"]).convert("YCbCr").getpixel((0, 0))[0]
            _, cb, cr = region.split()
            luma = Image.new("L", region.size, mask_luma)
            card.paste(Image.merge("YCbCr", (luma, cb, cr)).convert("RGB"), (rect.left, rect.top))
            return

        draw = ImageDraw.Draw(card)
        draw.rectangle(
            (rect.left, rect.top, rect.left + rect.width - 1, rect.top + rect.height - 1),
            fill=COLORS["title_mask"],
        )

    def _draw_title(self, card: Image.Image, title: str, rect: PixelRect) -> None:
        draw = ImageDraw.Draw(card)
        size = title_font_size(rect.width, rect.height, title)
        font = _load_font(size, self.font_file)
        stroke = title_stroke_width(size)

        # Shrink until the title fits the bar width, never below the minimum size
        while size > MIN_TITLE_FONT_SIZE:
            bbox = draw.textbbox((0, 0), title, font=font, stroke_width=stroke)
            if bbox[2] - bbox[0] <= rect.width:
                break
            size -= 1
            font = _load_font(size, self.font_file)
            stroke = title_stroke_width(size)

        bbox = draw.textbbox((0, 0), title, font=font, stroke_width=stroke)
        text_width = bbox[2] - bbox[0]
        text_height = bbox[3] - bbox[1]
        y = rect.top + (rect.height - text_height) / 2

        if text_width <= rect.width:
            draw.text(
                (rect.left - bbox[0], y - bbox[1]),
                title,
                font=font,
                fill=COLORS["title_fill"],
                stroke_width=stroke,
                stroke_fill=COLORS["title_stroke"],
            )
            return

        # Too wide at the minimum size: render once, then squeeze to the bar width
        layer = Image.new("RGBA", (text_width, text_height), (0, 0, 0, 0))
        ImageDraw.Draw(layer).text(
            (-bbox[0], -bbox[1]),
            title,
            font=font,
            fill=COLORS["title_fill"],
            stroke_width=stroke,
            stroke_fill=COLORS["title_stroke"],
        )
        layer = layer.resize((rect.width, text_height), Image.Resampling.LANCZOS)
        card.paste(layer, (rect.left, round(y)), layer)


def main() -> int:
    parser = argparse.ArgumentParser(description="Composite themed art and title onto a card frame")
    parser.add_argument("--frame", required=True, help="Path to the base card image")
    parser.add_argument("--art", required=True, help="Path to the themed art image")
    parser.add_argument("--title", required=True, help="Themed card title")
    parser.add_argument("--out", required=True, help="Output path for the composed PNG")
    parser.add_argument("--font", default=None, help="Path to a TTF/OTF title font")

    args = parser.parse_args()

    compositor = CardCompositor(font_path=args.font)
    try:
        png = compositor.compose(Path(args.frame).read_bytes(), Path(args.art).read_bytes(), args.title)
    except ReskinError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    os.makedirs(os.path.dirname(args.out) or ".", exist_ok=True)
    Path(args.out).write_bytes(png)
    print(f"Generated: {args.out}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
