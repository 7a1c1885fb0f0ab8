import asyncio
import base64
import io

import pytest
from PIL import Image

from reskin.cards.composite import (
    ART_RECT,
    TITLE_RECT,
    CardCompositor,
    NormalizedRect,
    UnsupportedLayoutError,
    cover_source_rect,
    resolve_title_mask_blend,
    title_font_size,
    title_stroke_width,
    to_pixel_rect,
)
from reskin.cards import composite, sources
from reskin.cards.sources import CardComposer, ImageFetchError, decode_data_url, load_image_bytes


def _png(width, height, color=(20, 60, 120)):
    out = io.BytesIO()
    Image.new("RGB", (width, height), color).save(out, "PNG")
    return out.getvalue()


def _open(data):
    return Image.open(io.BytesIO(data)).convert("RGB")


def test_compose_standard_frame():
    frame = _png(488, 680, (10, 10, 10))
    art = _png(1024, 768, (200, 30, 30))

    result = _open(CardCompositor().compose(frame, art, "Lady Eboshi"))

    assert result.size == (488, 680)
    art_box = to_pixel_rect(ART_RECT, 488, 680)
    center = (art_box.left + art_box.width // 2, art_box.top + art_box.height // 2)
    assert result.getpixel(center) == (200, 30, 30)
    # Outside both rects the frame is untouched
    assert result.getpixel((5, 670)) == (10, 10, 10)


def test_compose_accepts_large_frame_within_tolerance():
    # 1000/1392 is within 3% of 488/680
    png = CardCompositor().compose(_png(1000, 1392), _png(600, 600), "Ashitaka")
    assert _open(png).size == (1000, 1392)


@pytest.mark.parametrize(
    "size, message",
    [
        ((300, 418), "unsupported-layout: base card image too small for standard-frame compositing."),
        ((500, 1000), "unsupported-layout: card image is not a standard single-face frame ratio."),
        ((1040, 745), "unsupported-layout: card image is not a standard single-face frame ratio."),
    ],
)
def test_compose_rejects_unsupported_frames(size, message):
    with pytest.raises(UnsupportedLayoutError) as excinfo:
        CardCompositor().compose(_png(*size), _png(400, 300), "Title")

    assert str(excinfo.value) == message
    assert excinfo.value.code == "unsupported-layout"


def test_compose_rejects_blank_title():
    with pytest.raises(UnsupportedLayoutError):
        CardCompositor().compose(_png(488, 680), _png(400, 300), "   ")


def test_over_blend_paints_mask_colour():
    compositor = CardCompositor(blend_modes={"over"})
    frame = _png(488, 680, (0, 0, 0))

    result = _open(compositor.compose(frame, _png(400, 300), "I"))

    title_box = to_pixel_rect(TITLE_RECT, 488, 680)
    # Far right of the title bar is clear of the short title
    assert result.getpixel((title_box.left + title_box.width - 2, title_box.top + 1)) == (223, 209, 184)


def test_luminosity_blend_keeps_bar_hue():
    frame = _png(488, 680, (0, 0, 200))

    result = _open(CardCompositor().compose(frame, _png(400, 300), "I"))

    title_box = to_pixel_rect(TITLE_RECT, 488, 680)
    r, g, b = result.getpixel((title_box.left + title_box.width - 2, title_box.top + 1))
    assert b > r and b > g


def test_resolve_title_mask_blend():
    assert resolve_title_mask_blend({"luminosity", "over"}) == "luminosity"
    assert resolve_title_mask_blend(["over"]) == "over"
    assert resolve_title_mask_blend([]) == "over"


def test_to_pixel_rect_rounds_and_clamps():
    assert to_pixel_rect(ART_RECT, 488, 680).box == (39, 78, 39 + 411, 78 + 299)
    clamped = to_pixel_rect(NormalizedRect(x=0.9, y=0.9, width=0.5, height=0.5), 100, 100)
    assert (clamped.left, clamped.top, clamped.width, clamped.height) == (90, 90, 10, 10)

    with pytest.raises(UnsupportedLayoutError, match="invalid target frame coordinates"):
        to_pixel_rect(NormalizedRect(x=1.0, y=0.0, width=0.5, height=0.5), 100, 100)


def test_cover_source_rect_crops_longer_side():
    wide = cover_source_rect(200, 100, 100, 100)
    assert (wide.sx, wide.sy, wide.width, wide.height) == (50, 0, 100, 100)

    tall = cover_source_rect(100, 300, 100, 100)
    assert (tall.sx, tall.sy, tall.width, tall.height) == (0, 100, 100, 100)

    with pytest.raises(UnsupportedLayoutError, match="themed art dimensions unavailable"):
        cover_source_rect(0, 100, 10, 10)


def test_title_font_size():
    # Short titles hit the height ceiling
    assert title_font_size(317, 33, "Ai") == 23
    # Long titles are limited by width, then clamped to the minimum
    assert title_font_size(317, 33, "A" * 20) == 20
    assert title_font_size(317, 33, "A" * 60) == 15
    assert title_stroke_width(23) == 2
    assert title_stroke_width(4) == 1


def test_data_url_and_fetch_errors():
    assert decode_data_url("data:image/png;base64,aGk=") == b"hi"
    assert decode_data_url("https://example.com/a.png") is None
    assert load_image_bytes(" data:image/png;base64,aGk= ", "art") == b"hi"

    with pytest.raises(ImageFetchError, match="art: image source is empty."):
        load_image_bytes("  ", "art")


def test_card_composer_returns_data_url():
    frame = "data:image/png;base64," + base64.b64encode(_png(488, 680)).decode()
    art = "data:image/png;base64," + base64.b64encode(_png(300, 200)).decode()

    url = asyncio.run(CardComposer()(frame, art, "San"))

    assert url.startswith("data:image/png;base64,")
    assert _open(decode_data_url(url)).size == (488, 680)


def test_rects_fit_inside_large_frame():
    for rect in (ART_RECT, TITLE_RECT):
        pixel = to_pixel_rect(rect, 1000, 1392)
        assert pixel.width > 0 and pixel.height > 0
        assert pixel.left + pixel.width <= 1000
        assert pixel.top + pixel.height <= 1392


LONG_TITLE = "The Extraordinarily Long Winded Name Of A Forest Spirit Of Doom"


def test_long_title_never_drops_below_minimum_font_size(monkeypatch):
    sizes = []
    load_font = composite._load_font

    def recording_load_font(size, font_file=None):
        sizes.append(size)
        return load_font(size, font_file)

    monkeypatch.setattr(composite, "_load_font", recording_load_font)
    compositor = CardCompositor(blend_modes={"over"})

    result = _open(compositor.compose(_png(488, 680, (10, 10, 10)), _png(400, 300), LONG_TITLE))

    assert sizes
    assert min(sizes) >= 15
    title_box = to_pixel_rect(TITLE_RECT, 488, 680)
    # Squeezed title stays inside the bar
    middle = title_box.top + title_box.height // 2
    assert result.getpixel((title_box.left + title_box.width + 1, middle)) == (10, 10, 10)
    assert min(result.crop(title_box.box).convert("L").getdata()) < 150


def test_font_file_is_resolved_once_per_compositor(monkeypatch):
    compositor = CardCompositor()
    lookups = []
    monkeypatch.setattr(composite, "_find_font_file", lambda font_path=None: lookups.append(font_path))

    compositor.compose(_png(488, 680), _png(400, 300), LONG_TITLE)

    assert lookups == []


class _ImageResponse:
    def __init__(self, content):
        self.ok = True
        self.status_code = 200
        self.content = content


def test_card_composer_fetches_each_image_with_its_own_request(monkeypatch):
    payloads = {
        "https://frames.example/elves.jpg": _png(488, 680),
        "https://art.example/1.png": _png(300, 200),
    }
    calls = []

    def fake_get(url, headers=None, timeout=None):
        calls.append((url, headers))
        return _ImageResponse(payloads[url])

    monkeypatch.setattr(sources.requests, "get", fake_get)

    url = asyncio.run(CardComposer()("https://frames.example/elves.jpg", "https://art.example/1.png", "San"))

    assert url.startswith("data:image/png;base64,")
    assert sorted(calls) == [
        ("https://art.example/1.png", {"Accept": "image/*"}),
        ("https://frames.example/elves.jpg", {"Accept": "image/*"}),
    ]
