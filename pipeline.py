"""
Pipeline entry points: stage a batch, reconcile roster vs photos, export.

Batch layout in storage:
    <batch>/<roster filename>
    <batch>/photos/<photo filename>
    <batch>/logo.<ext>
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from io import BytesIO
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

import config
from columns import ResolvedPerson, resolve_roster
from config import PipelineConfig
from data_loaders import RosterTable, load_roster
from errors import BadgeFlowError, RenderFailure
from geometry import CardGeometry, GridSpec, compute_geometry
from matching import Matched, MatchResult, MissingPhoto, PhotoAsset, Reconciliation, match_assets
from render import BACK, FRONT, CardDescriptor, CardRenderer
from sheets import SheetComposer
from singles import SinglesArchive
from storage import Storage, list_photo_assets

logger = logging.getLogger(__name__)

# Status labels, in the only order a job may move through them ("failed" can follow any).
PENDING = "pending"
RENDERING = "rendering"
COMPOSING = "composing"
DONE = "done"
FAILED = "failed"
_STATUS_ORDER = (PENDING, RENDERING, COMPOSING, DONE)

StatusCallback = Callable[[str, int, int, str], None]  # (status, done, total, message)


def photos_prefix(batch_id: str, cfg: PipelineConfig) -> str:
    return f"{batch_id.strip('/')}/{cfg.photos_subdir.strip('/')}"


@dataclass
class StagedBatch:
    batch_id: str
    roster_path: Optional[str] = None
    photo_paths: List[str] = field(default_factory=list)
    logo_path: Optional[str] = None


def stage_upload(
    storage: Storage,
    batch_id: str,
    roster: Optional[Tuple[str, bytes]] = None,
    photos: Sequence[Tuple[str, bytes]] = (),
    logo: Optional[Tuple[str, bytes]] = None,
    cfg: PipelineConfig = PipelineConfig(),
) -> StagedBatch:
    """Write roster, photos and logo under the batch prefix."""
    batch_id = (batch_id or "").strip().strip("/")
    if not batch_id:
        raise ValueError("batch_id is required")
    staged = StagedBatch(batch_id=batch_id)
    if roster is not None:
        name, data = roster
        staged.roster_path = storage.upload(f"{batch_id}/{Path(name).name}", data)
    if logo is not None:
        name, data = logo
        ext = Path(name).suffix.lower() or ".png"
        staged.logo_path = storage.upload(f"{batch_id}/logo{ext}", data)
    prefix = photos_prefix(batch_id, cfg)
    for name, data in photos:
        staged.photo_paths.append(storage.upload(f"{prefix}/{Path(name).name}", data))
    logger.info(
        "Staged batch %s: roster=%s, %d photo(s), logo=%s",
        batch_id, staged.roster_path, len(staged.photo_paths), staged.logo_path,
    )
    return staged


def reconcile(table: RosterTable, assets: Sequence[PhotoAsset], cfg: PipelineConfig = PipelineConfig()) -> Reconciliation:
    persons = resolve_roster(table, required=cfg.require_photo_column)
    rec = match_assets(persons, assets)
    rec.warnings = list(table.warnings)
    return rec


def reconcile_batch(
    storage: Storage, batch_id: str, roster_path: str, cfg: PipelineConfig = PipelineConfig()
) -> Reconciliation:
    """
    Fetch + parse + resolve the roster, and only then list the batch photos.
    Column problems therefore fail before storage is asked for the listing.
    """
    table = load_roster(storage.fetch(roster_path), Path(roster_path).name)
    persons = resolve_roster(table, required=cfg.require_photo_column)
    assets = list_photo_assets(storage, photos_prefix(batch_id, cfg), limit=cfg.list_limit)
    rec = match_assets(persons, assets)
    rec.warnings = list(table.warnings)
    return rec


@dataclass
class ExportEntry:
    person: ResolvedPerson
    match: MatchResult
    front: Optional[bytes] = None
    back: Optional[bytes] = None

    @property
    def is_matched(self) -> bool:
        return isinstance(self.match, Matched)


@dataclass
class ExportJob:
    entries: List[ExportEntry]
    status: str = PENDING
    on_status: Optional[StatusCallback] = None

    def advance(self, status: str, done: int = 0, message: str = "") -> None:
        if status != FAILED:
            if self.status == FAILED:
                raise RuntimeError("Export job already failed")
            if _STATUS_ORDER.index(status) < _STATUS_ORDER.index(self.status):
                raise RuntimeError(f"Export status cannot go back from {self.status!r} to {status!r}")
        self.status = status
        if self.on_status is not None:
            self.on_status(status, done, len(self.entries), message)


def build_export_job(
    rec: Reconciliation, cfg: PipelineConfig = PipelineConfig(), on_status: Optional[StatusCallback] = None
) -> ExportJob:
    """Matched persons in roster order (plus missing-photo persons when cfg.render_missing)."""
    entries = []
    for r in rec.results:
        if isinstance(r, Matched) or (cfg.render_missing and isinstance(r, MissingPhoto)):
            entries.append(ExportEntry(person=r.person, match=r))
    return ExportJob(entries=entries, on_status=on_status)


@dataclass
class ExportArtifacts:
    fronts_pdf: bytes
    backs_pdf: bytes
    singles_zip: bytes
    front_pages: int
    back_pages: int
    singles_count: int
    singles_names: List[str] = field(default_factory=list)

    def write_to(self, directory) -> List[Path]:
        out = Path(directory)
        out.mkdir(parents=True, exist_ok=True)
        written = []
        for name, data in (
            (config.FRONTS_PDF_NAME, self.fronts_pdf),
            (config.BACKS_PDF_NAME, self.backs_pdf),
            (config.SINGLES_ZIP_NAME, self.singles_zip),
        ):
            p = out / name
            p.write_bytes(data)
            written.append(p)
        return written


def _qr_payload(person: ResolvedPerson, cfg: PipelineConfig) -> str:
    if cfg.verify_url_template:
        return cfg.verify_url_template.format(person_id=person.person_id)
    return person.person_id


def _check_raster(data, descriptor: CardDescriptor) -> bytes:
    """The adapter must return image bytes of exactly the declared pixel size."""
    from PIL import Image, UnidentifiedImageError

    if not isinstance(data, (bytes, bytearray)) or not data:
        raise RenderFailure(f"Renderer returned no image for {descriptor.side} of {descriptor.person.person_id}")
    try:
        size = Image.open(BytesIO(data)).size  # header only
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise RenderFailure(
            f"Renderer output for {descriptor.side} of {descriptor.person.person_id} is not an image: {e}"
        ) from e
    if size != (descriptor.width_px, descriptor.height_px):
        raise RenderFailure(
            f"Renderer produced {size[0]}x{size[1]}px for {descriptor.side} of {descriptor.person.person_id}; "
            f"expected {descriptor.width_px}x{descriptor.height_px}px"
        )
    return bytes(data)


async def _render(renderer: CardRenderer, descriptor: CardDescriptor) -> bytes:
    try:
        data = await renderer.render(descriptor)
    except BadgeFlowError:
        raise
    except Exception as e:
        raise RenderFailure(
            f"Could not render {descriptor.side} card for {descriptor.person.person_id}: {e}"
        ) from e
    return _check_raster(data, descriptor)


async def run_export(
    job: ExportJob,
    renderer: CardRenderer,
    storage: Optional[Storage] = None,
    cfg: PipelineConfig = PipelineConfig(),
    logo: Optional[bytes] = None,
) -> ExportArtifacts:
    """
    Render every entry and build the fronts sheet, backs sheet and singles ZIP.

    Cards are fetched, rendered and embedded one at a time, in job order.
    Any failure abandons the whole job; nothing partial is returned.
    """
    if not job.entries:
        raise ValueError("No cards to export: nothing matched in the roster.")
    if storage is None and any(e.is_matched for e in job.entries):
        raise ValueError("A storage collaborator is required to fetch matched photos.")

    geometry: CardGeometry = compute_geometry(GridSpec(columns=cfg.grid_columns, rows=cfg.grid_rows), cfg.dpi)
    fronts = SheetComposer(geometry, "FRONT")
    backs = SheetComposer(geometry, "BACK")
    singles = SinglesArchive(geometry)
    total = len(job.entries)

    try:
        job.advance(RENDERING, 0, "Rendering images…")
        for i, entry in enumerate(job.entries):
            person = entry.person
            photo = None
            if isinstance(entry.match, Matched):
                photo = await asyncio.to_thread(storage.fetch, entry.match.asset.storage_path)

            common = dict(
                person=person,
                width_px=geometry.pixel_width,
                height_px=geometry.pixel_height,
                logo=logo,
                theme=cfg.theme,
                company_name=cfg.company_name,
                qr_payload=_qr_payload(person, cfg),
                dpi=geometry.dpi,
            )
            front = await _render(renderer, CardDescriptor(side=FRONT, photo=photo, **common))
            back = await _render(renderer, CardDescriptor(side=BACK, **common))

            fronts.add(front)
            backs.add(back)
            if entry.is_matched:
                singles.add(person, front, back)
            if cfg.retain_images:
                entry.front, entry.back = front, back
            logger.debug("Rendered card %d/%d: %s", i + 1, total, person.display_name)
            job.advance(RENDERING, i + 1, f"Prepared {i + 1}/{total}: {person.display_name or person.person_id}")

        job.advance(COMPOSING, total, "Composing A4 PDFs…")
        front_doc = fronts.finish()
        back_doc = backs.finish()
        singles_zip = singles.finish()
    except BaseException:
        singles.discard()
        job.advance(FAILED, 0, "Export failed")
        raise

    artifacts = ExportArtifacts(
        fronts_pdf=front_doc.pdf_bytes,
        backs_pdf=back_doc.pdf_bytes,
        singles_zip=singles_zip,
        front_pages=front_doc.page_count,
        back_pages=back_doc.page_count,
        singles_count=len(singles),
        singles_names=[name for name, _ in singles.entries],
    )
    job.advance(DONE, total, "Export complete")
    logger.info(
        "Export done: %d card(s), %d front page(s), %d back page(s), %d single(s)",
        total, artifacts.front_pages, artifacts.back_pages, artifacts.singles_count,
    )
    return artifacts


def export_batch(
    reconciliation: Reconciliation,
    renderer: CardRenderer,
    storage: Optional[Storage],
    cfg: PipelineConfig = PipelineConfig(),
    logo: Optional[bytes] = None,
    on_status: Optional[StatusCallback] = None,
) -> Tuple[ExportJob, ExportArtifacts]:
    """Synchronous wrapper for CLI/UI callers."""
    job = build_export_job(reconciliation, cfg, on_status=on_status)
    artifacts = asyncio.run(run_export(job, renderer, storage, cfg, logo=logo))
    return job, artifacts
