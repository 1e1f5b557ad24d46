import asyncio
from io import BytesIO

import pytest

pytest.importorskip("PIL")
pytest.importorskip("qrcode")

from PIL import Image

from conftest import make_person, make_png

from errors import RenderFailure
from render import BACK, FRONT, CardDescriptor, PillowCardRenderer


def _descriptor(side, **kw):
    base = dict(person=make_person(name="Ann Lee"), side=side, width_px=1011, height_px=638, qr_payload="E1")
    base.update(kw)
    return CardDescriptor(**base)


def _size(png):
    return Image.open(BytesIO(png)).size


def test_front_with_photo_has_exact_size():
    r = PillowCardRenderer()
    png = r.render_sync(_descriptor(FRONT, photo=make_png((400, 500), (200, 150, 120))))
    assert _size(png) == (1011, 638)


def test_front_without_photo_and_with_logo():
    r = PillowCardRenderer(logo=make_png((300, 100), (10, 10, 10)))
    png = r.render_sync(_descriptor(FRONT, theme="green"))
    assert _size(png) == (1011, 638)


def test_back_has_qr_and_exact_size():
    png = asyncio.run(PillowCardRenderer().render(_descriptor(BACK, company_name="Acme")))
    assert _size(png) == (1011, 638)


def test_other_pixel_sizes_are_honoured():
    png = PillowCardRenderer().render_sync(_descriptor(BACK, width_px=506, height_px=319))
    assert _size(png) == (506, 319)


def test_undecodable_photo_is_render_failure():
    with pytest.raises(RenderFailure):
        PillowCardRenderer().render_sync(_descriptor(FRONT, photo=b"not an image"))


def test_unknown_theme_or_side_is_render_failure():
    with pytest.raises(RenderFailure):
        PillowCardRenderer().render_sync(_descriptor(FRONT, theme="purple"))
    with pytest.raises(RenderFailure):
        PillowCardRenderer().render_sync(_descriptor("middle"))


def test_make_qr_returns_rgb_image():
    img = PillowCardRenderer.make_qr("https://example.com/verify/E1")
    assert img.mode == "RGB"
    assert img.size[0] == img.size[1]


def test_logo_cache_follows_descriptor_bytes():
    r = PillowCardRenderer()
    wide = r._logo(make_png((300, 100)))
    tall = r._logo(make_png((100, 300)))
    assert wide.size == (300, 100)
    assert tall.size == (100, 300)
    assert r._logo(make_png((100, 300))) is tall


def test_png_is_tagged_with_descriptor_dpi():
    png = PillowCardRenderer().render_sync(_descriptor(BACK, width_px=506, height_px=319, dpi=150))
    dpi = Image.open(BytesIO(png)).info["dpi"]
    assert dpi[0] == pytest.approx(150, abs=1)
