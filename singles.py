"""
Single-card documents: one two-page, card-sized PDF per person (front then
back), collected into one ZIP archive.
"""

from __future__ import annotations

import logging
import tempfile
import zipfile
from io import BytesIO
from typing import Iterable, Tuple

import config
from columns import ResolvedPerson
from errors import EmbedFailure
from geometry import CardGeometry
from sheets import decode_card_image
from utils import single_card_filename, unique_name

logger = logging.getLogger(__name__)


def build_single_pdf(front: bytes, back: bytes, geometry: CardGeometry, title: str = "") -> bytes:
    """
    Create a two-page PDF (bytes) sized exactly to the card, no filesystem writes.

    Both images are decoded before anything is drawn so a bad back image
    never yields a one-page document.
    """
    from reportlab.lib.utils import ImageReader
    from reportlab.pdfgen import canvas

    front_img = decode_card_image(front, f"front of {title or 'card'}")
    back_img = decode_card_image(back, f"back of {title or 'card'}")

    w, h = geometry.card_size_pt
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=(w, h))
    if title:
        c.setTitle(title)
    for img in (front_img, back_img):
        c.drawImage(ImageReader(img), 0, 0, width=w, height=h, mask="auto")
        c.showPage()
    c.save()
    return buf.getvalue()


class SinglesArchive:
    """Incremental ZIP of single-card PDFs; spills to disk once it grows large."""

    def __init__(self, geometry: CardGeometry, spool_max_bytes: int = config.ZIP_SPOOL_MAX_BYTES):
        self.geometry = geometry
        self._file = tempfile.SpooledTemporaryFile(max_size=spool_max_bytes)
        self._zip = zipfile.ZipFile(self._file, "w", compression=zipfile.ZIP_DEFLATED)
        self._names: set = set()
        self.entries = []  # (archive name, person_id) in insertion order

    def __len__(self) -> int:
        return len(self.entries)

    def add(self, person: ResolvedPerson, front: bytes, back: bytes) -> str:
        if self._zip is None:
            raise EmbedFailure("Singles archive is already closed")
        pdf = build_single_pdf(front, back, self.geometry, title=person.display_name or person.person_id)
        name = unique_name(single_card_filename(person.person_id, person.display_name), self._names)
        self._zip.writestr(name, pdf)
        self.entries.append((name, person.person_id))
        return name

    def finish(self) -> bytes:
        if self._zip is not None:
            self._zip.close()
            self._zip = None
        self._file.seek(0)
        data = self._file.read()
        self._file.close()
        logger.info("Singles archive: %d document(s), %d bytes", len(self.entries), len(data))
        return data

    def discard(self) -> None:
        if self._zip is not None:
            self._zip.close()
            self._zip = None
        self._file.close()


def build_singles_archive(
    items: Iterable[Tuple[ResolvedPerson, bytes, bytes]], geometry: CardGeometry
) -> bytes:
    """ZIP with one '<id>_<name>.pdf' per (person, front, back) item."""
    archive = SinglesArchive(geometry)
    try:
        for person, front, back in items:
            archive.add(person, front, back)
    except Exception:
        archive.discard()
        raise
    return archive.finish()
