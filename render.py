"""
Render adapter: card descriptor -> PNG bytes at the exact geometry pixel size.

The pipeline only depends on the CardRenderer protocol. PillowCardRenderer is
the built-in implementation; it keeps one font set and logo per instance, so
calls must not overlap (the pipeline renders strictly one card at a time).
"""

from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass
from io import BytesIO
from typing import Any, Optional, Protocol

import config
from columns import ResolvedPerson
from errors import RenderFailure

FRONT = "front"
BACK = "back"


@dataclass(frozen=True)
class CardDescriptor:
    person: ResolvedPerson
    side: str
    width_px: int
    height_px: int
    photo: Optional[bytes] = None
    logo: Optional[bytes] = None
    theme: str = config.DEFAULT_THEME
    company_name: str = ""
    qr_payload: str = ""
    dpi: int = config.DPI


class CardRenderer(Protocol):
    async def render(self, descriptor: CardDescriptor) -> bytes: ...


def _rgb(hex_color: str):
    h = hex_color.lstrip("#")
    return tuple(int(h[i : i + 2], 16) for i in (0, 2, 4))


class PillowCardRenderer:
    """Draws CR80 fronts and backs with Pillow."""

    def __init__(self, logo: Optional[bytes] = None):
        self._logo_bytes = logo
        self._logo_img: Optional[Any] = None
        self._logo_key: Optional[bytes] = None
        self._fonts: dict = {}

    def _font(self, size: int, bold: bool = False):
        """Load and cache fonts once per renderer instance."""
        from PIL import ImageFont

        key = (size, bold)
        if key in self._fonts:
            return self._fonts[key]

        candidates = [
            "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf" if bold else "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
            "/System/Library/Fonts/Supplemental/Arial Bold.ttf" if bold else "/System/Library/Fonts/Supplemental/Arial.ttf",
            "/Library/Fonts/Arial.ttf",
            "C:/Windows/Fonts/arialbd.ttf" if bold else "C:/Windows/Fonts/arial.ttf",
        ]
        font = None
        for path in candidates:
            if os.path.exists(path):
                try:
                    font = ImageFont.truetype(path, size)
                    break
                except OSError:
                    continue
        if font is None:
            font = ImageFont.load_default(size=size)
        self._fonts[key] = font
        return font

    def _logo(self, logo_bytes: Optional[bytes]):
        """Decoded RGBA logo; re-decoded only when the bytes change."""
        from PIL import Image

        data = logo_bytes or self._logo_bytes
        if not data:
            return None
        if self._logo_img is None or self._logo_key != data:
            img = Image.open(BytesIO(data))
            img.load()
            self._logo_img = img.convert("RGBA")
            self._logo_key = data
        return self._logo_img

    @staticmethod
    def make_qr(payload: str):
        """QR code image for the card back (verification URL or bare id)."""
        import qrcode

        qr = qrcode.QRCode(
            version=1,
            error_correction=qrcode.constants.ERROR_CORRECT_M,
            box_size=10,
            border=2,
        )
        qr.add_data(str(payload).strip())
        qr.make(fit=True)
        return qr.make_image(fill_color="black", back_color="white").convert("RGB")

    @staticmethod
    def _fit_text(draw, text: str, font, max_w: int) -> str:
        if draw.textlength(text, font=font) <= max_w:
            return text
        while text and draw.textlength(text + "…", font=font) > max_w:
            text = text[:-1]
        return text + "…"

    def _paste_cover(self, card, img, box):
        """Resize img to cover box (x0, y0, x1, y1), centre-cropped."""
        from PIL import Image

        x0, y0, x1, y1 = box
        bw, bh = x1 - x0, y1 - y0
        scale = max(bw / img.width, bh / img.height)
        resized = img.resize((max(1, round(img.width * scale)), max(1, round(img.height * scale))), Image.Resampling.LANCZOS)
        left = (resized.width - bw) // 2
        top = (resized.height - bh) // 2
        card.paste(resized.crop((left, top, left + bw, top + bh)), (x0, y0))

    def _draw_front(self, d: CardDescriptor):
        from PIL import Image, ImageDraw

        theme = {k: _rgb(v) for k, v in config.THEMES[d.theme].items()}
        w, h = d.width_px, d.height_px
        card = Image.new("RGB", (w, h), theme["bg"])
        draw = ImageDraw.Draw(card)

        # === TOP STRIP ===
        strip_h = int(h * 0.12)
        draw.rectangle([(0, 0), (w, strip_h)], fill=theme["primary"])

        # === PHOTO BOX ===
        pad = int(w * 0.04)
        box_w = int(w * 0.27)
        box_h = int(box_w * 1.2)
        box = (pad, strip_h + pad, pad + box_w, strip_h + pad + box_h)
        draw.rectangle(box, fill=(255, 255, 255), outline=theme["border"], width=3)
        if d.photo:
            try:
                photo = Image.open(BytesIO(d.photo))
                photo.load()
            except (OSError, ValueError) as e:
                raise RenderFailure(f"Photo for {d.person.person_id} could not be decoded: {e}") from e
            self._paste_cover(card, photo.convert("RGB"), (box[0] + 3, box[1] + 3, box[2] - 3, box[3] - 3))
        else:
            small = self._font(config.CARD_SMALL_FONT_SIZE)
            tw = draw.textlength("No Photo", font=small)
            draw.text((box[0] + (box_w - tw) // 2, box[1] + box_h // 2 - 15), "No Photo", font=small, fill=theme["subtext"])

        # === TEXT COLUMN ===
        tx = box[2] + pad
        max_w = w - tx - pad
        y = strip_h + pad
        logo = self._logo(d.logo)
        if logo is not None:
            lh = 60
            lw = max(1, int(logo.width * lh / logo.height))
            if lw > max_w:
                lw, lh = max_w, max(1, int(logo.height * max_w / logo.width))
            scaled = logo.resize((lw, lh), Image.Resampling.LANCZOS)
            card.paste(scaled, (tx, y), scaled)
            y += lh + 20
        else:
            company = self._fit_text(draw, d.company_name or "Company", self._font(config.CARD_SMALL_FONT_SIZE), max_w)
            draw.text((tx, y), company, font=self._font(config.CARD_SMALL_FONT_SIZE), fill=theme["subtext"])
            y += config.CARD_SMALL_FONT_SIZE + 30

        name_font = self._font(config.CARD_NAME_FONT_SIZE, bold=True)
        draw.text((tx, y), self._fit_text(draw, d.person.display_name, name_font, max_w), font=name_font, fill=theme["text"])
        y += config.CARD_NAME_FONT_SIZE + 20

        detail = d.person.title or config.DEFAULT_TITLE
        if d.person.department:
            detail = f"{detail} • {d.person.department}"
        detail_font = self._font(config.CARD_DETAIL_FONT_SIZE)
        draw.text((tx, y), self._fit_text(draw, detail, detail_font, max_w), font=detail_font, fill=theme["subtext"])

        # === ID CHIP ===
        chip_font = self._font(config.CARD_SMALL_FONT_SIZE)
        chip = self._fit_text(draw, f"ID: {d.person.person_id}", chip_font, max_w - 30)
        chip_w = int(draw.textlength(chip, font=chip_font)) + 30
        chip_y = box[3] - config.CARD_SMALL_FONT_SIZE - 20
        draw.rounded_rectangle(
            [(tx, chip_y), (tx + chip_w, chip_y + config.CARD_SMALL_FONT_SIZE + 20)],
            radius=10,
            fill=theme["secondary"],
            outline=theme["border"],
            width=2,
        )
        draw.text((tx + 15, chip_y + 8), chip, font=chip_font, fill=theme["text"])

        # bottom accent
        draw.rectangle([(0, h - int(h * 0.03)), (w, h)], fill=theme["secondary"])
        return card

    def _draw_back(self, d: CardDescriptor):
        from PIL import Image, ImageDraw

        theme = {k: _rgb(v) for k, v in config.THEMES[d.theme].items()}
        w, h = d.width_px, d.height_px
        card = Image.new("RGB", (w, h), (255, 255, 255))
        draw = ImageDraw.Draw(card)

        strip_h = int(h * 0.09)
        draw.rectangle([(0, 0), (w, strip_h)], fill=theme["primary"])

        # === QR CODE (left) ===
        pad = int(w * 0.04)
        qr_size = h - strip_h - pad * 2
        qr_img = self.make_qr(d.qr_payload or d.person.person_id).resize((qr_size, qr_size), Image.Resampling.NEAREST)
        card.paste(qr_img, (pad, strip_h + pad))

        # === INFO PANEL (right) ===
        px = pad * 2 + qr_size
        panel = [(px, strip_h + pad), (w - pad, h - pad)]
        draw.rounded_rectangle(panel, radius=16, fill=theme["bg"], outline=theme["border"], width=2)
        max_w = w - pad - px - 40
        y = strip_h + pad + 30
        title_font = self._font(config.CARD_DETAIL_FONT_SIZE, bold=True)
        body_font = self._font(config.CARD_SMALL_FONT_SIZE)
        lines = [
            (self._fit_text(draw, d.company_name or "Company", title_font, max_w), title_font, theme["text"]),
            (self._fit_text(draw, d.person.display_name, body_font, max_w), body_font, theme["subtext"]),
            (self._fit_text(draw, f"ID: {d.person.person_id}", body_font, max_w), body_font, theme["subtext"]),
        ]
        if d.person.email:
            lines.append((self._fit_text(draw, d.person.email, body_font, max_w), body_font, theme["subtext"]))
        lines.append((self._fit_text(draw, "If found, please return to the issuer.", body_font, max_w), body_font, theme["subtext"]))
        for text, font, color in lines:
            draw.text((px + 20, y), text, font=font, fill=color)
            y += getattr(font, "size", 16) + 24
        return card

    def render_sync(self, descriptor: CardDescriptor) -> bytes:
        if descriptor.side not in (FRONT, BACK):
            raise RenderFailure(f"Unknown card side {descriptor.side!r}")
        if descriptor.theme not in config.THEMES:
            raise RenderFailure(f"Unknown theme {descriptor.theme!r}")
        try:
            card = self._draw_front(descriptor) if descriptor.side == FRONT else self._draw_back(descriptor)
        except RenderFailure:
            raise
        except (OSError, ValueError) as e:
            raise RenderFailure(
                f"Could not render {descriptor.side} card for {descriptor.person.person_id}: {e}"
            ) from e
        buf = BytesIO()
        card.save(buf, format="PNG", dpi=(descriptor.dpi, descriptor.dpi))
        return buf.getvalue()

    async def render(self, descriptor: CardDescriptor) -> bytes:
        return await asyncio.to_thread(self.render_sync, descriptor)
