"""PDF generation for A4 card sheets (one side per document)."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from io import BytesIO
from typing import Iterable, List

from errors import EmbedFailure
from geometry import CardGeometry

logger = logging.getLogger(__name__)

FRONT = "FRONT"
BACK = "BACK"


def decode_card_image(png_bytes: bytes, what: str = "card image"):
    """Fully decode raster bytes with Pillow; EmbedFailure if that is impossible."""
    from PIL import Image, UnidentifiedImageError

    try:
        img = Image.open(BytesIO(png_bytes))
        img.load()
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as e:
        raise EmbedFailure(f"Could not decode {what}: {e}") from e
    if img.mode not in ("RGB", "RGBA"):
        img = img.convert("RGB")
    return img


@dataclass(frozen=True)
class Placement:
    index: int
    page: int
    slot: int
    x: float  # PDF space, lower-left corner of the card
    y: float


@dataclass
class SheetDocument:
    label: str
    pdf_bytes: bytes
    page_count: int
    placements: List[Placement] = field(default_factory=list)


class SheetComposer:
    """
    Places card images on A4 pages in input order.

    Image i lands on page i // capacity, slot i % capacity. Every page is
    started fresh and positioned only from geometry.positions (top-left
    origin), converted with geometry.to_bottom_left() because reportlab's
    origin is the bottom-left page corner.
    """

    def __init__(self, geometry: CardGeometry, label: str = FRONT):
        from reportlab.pdfgen import canvas

        self.geometry = geometry
        self.label = label
        self._buf = BytesIO()
        self._canvas = canvas.Canvas(
            self._buf, pagesize=(geometry.sheet_width_pt, geometry.sheet_height_pt)
        )
        self._canvas.setTitle(f"BadgeFlow {label.lower()} sheet")
        self._count = 0
        self._pages = 0
        self._failed = False
        self._finished = False
        self.placements: List[Placement] = []

    @property
    def count(self) -> int:
        return self._count

    def _start_page(self) -> None:
        c = self._canvas
        c.setFont("Helvetica", 8)
        c.drawString(16, self.geometry.sheet_height_pt - 16, f"BadgeFlow - {self.label} sheet")
        self._pages += 1

    def add(self, png_bytes: bytes) -> Placement:
        """Embed the next card. Any failure poisons the composer."""
        from reportlab.lib.utils import ImageReader

        if self._failed or self._finished:
            raise EmbedFailure(f"{self.label} sheet is no longer accepting images")
        index = self._count
        page, slot = self.geometry.place(index)
        what = f"{self.label.lower()} card #{index}"
        x, y = self.geometry.to_bottom_left(self.geometry.positions[slot])
        w, h = self.geometry.card_size_pt
        try:
            img = decode_card_image(png_bytes, what)
            if slot == 0:
                if index > 0:
                    self._canvas.showPage()
                self._start_page()
            self._canvas.drawImage(ImageReader(img), x, y, width=w, height=h, mask="auto")
        except EmbedFailure:
            self._failed = True
            raise
        except Exception as e:
            self._failed = True
            raise EmbedFailure(f"Could not place {what} on the {self.label} sheet: {e}") from e
        del img  # only one decoded raster alive at a time

        placement = Placement(index=index, page=page, slot=slot, x=x, y=y)
        self.placements.append(placement)
        self._count += 1
        return placement

    def finish(self) -> SheetDocument:
        if self._failed:
            raise EmbedFailure(f"{self.label} sheet failed; no document produced")
        if self._count == 0:
            raise ValueError(f"No card images for the {self.label} sheet - input list is empty.")
        if not self._finished:
            self._canvas.showPage()
            self._canvas.save()
            self._finished = True
        logger.info("%s sheet: %d cards on %d page(s)", self.label, self._count, self._pages)
        return SheetDocument(
            label=self.label,
            pdf_bytes=self._buf.getvalue(),
            page_count=self._pages,
            placements=list(self.placements),
        )


def compose_sheet(images: Iterable[bytes], geometry: CardGeometry, label: str = FRONT) -> SheetDocument:
    """Lay out a whole sequence of images (all one side) on A4 pages."""
    composer = SheetComposer(geometry, label)
    for png in images:
        composer.add(png)
    return composer.finish()
