"""
Reconciliation: pair roster persons with uploaded photo files by filename.

Matching is exact on the lower-cased filename (no fuzzy matching). The
result is a total partition: every person is Matched or MissingPhoto, every
asset is Matched or OrphanPhoto.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Union

from columns import ResolvedPerson

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PhotoAsset:
    original_filename: str
    storage_path: str
    lookup_key: str

    @classmethod
    def from_path(cls, storage_path: str) -> "PhotoAsset":
        name = storage_path.rsplit("/", 1)[-1]
        return cls(original_filename=name, storage_path=storage_path, lookup_key=name.lower())


@dataclass(frozen=True)
class Matched:
    person: ResolvedPerson
    asset: PhotoAsset
    kind: str = field(default="matched", init=False)


@dataclass(frozen=True)
class MissingPhoto:
    person: ResolvedPerson
    kind: str = field(default="missing", init=False)


@dataclass(frozen=True)
class OrphanPhoto:
    asset: PhotoAsset
    kind: str = field(default="orphan", init=False)


MatchResult = Union[Matched, MissingPhoto, OrphanPhoto]


@dataclass
class Reconciliation:
    """Partition of persons and assets; persons in roster order, then orphans."""

    results: List[MatchResult]
    roster_rows: int
    photos_uploaded: int
    warnings: List[str] = field(default_factory=list)  # roster parse warnings

    @property
    def matched(self) -> List[Matched]:
        return [r for r in self.results if isinstance(r, Matched)]

    @property
    def missing(self) -> List[MissingPhoto]:
        return [r for r in self.results if isinstance(r, MissingPhoto)]

    @property
    def orphans(self) -> List[OrphanPhoto]:
        return [r for r in self.results if isinstance(r, OrphanPhoto)]

    def summary(self) -> dict:
        """Counts plus per-item arrays, shaped for JSON/UI previews."""
        matched = self.matched
        missing = self.missing
        orphans = self.orphans
        missing_names: List[str] = []
        for m in missing:
            if m.person.photo_key and m.person.photo_key not in missing_names:
                missing_names.append(m.person.photo_key)
        return {
            "photosUploaded": self.photos_uploaded,
            "rosterRows": self.roster_rows,
            "matched": len(matched),
            "missing": len(missing),
            "orphans": len(orphans),
            "missingFilenames": missing_names,
            "orphanFilenames": [o.asset.lookup_key for o in orphans],
            "warnings": list(self.warnings),
            "items": {
                "matched": [
                    {
                        "person_id": m.person.person_id,
                        "name": m.person.display_name,
                        "photo_filename": m.person.photo_filename,
                        "storage_path": m.asset.storage_path,
                    }
                    for m in matched
                ],
                "missing": [
                    {
                        "person_id": m.person.person_id,
                        "name": m.person.display_name,
                        "photo_filename": m.person.photo_filename,
                    }
                    for m in missing
                ],
                "orphan": [
                    {"filename": o.asset.original_filename, "storage_path": o.asset.storage_path}
                    for o in orphans
                ],
            },
        }


def match_assets(persons: Sequence[ResolvedPerson], assets: Sequence[PhotoAsset]) -> Reconciliation:
    """
    O(n + m): index assets by lookup key, then probe once per person.

    When two stored files differ only by case, the first listed one is the
    match target and the others are reported as orphans.
    """
    index: Dict[str, PhotoAsset] = {}
    duplicates: List[PhotoAsset] = []
    for a in assets:
        if a.lookup_key in index:
            logger.warning(
                "Photo %r has the same lookup key as %r; reporting it as orphan",
                a.original_filename, index[a.lookup_key].original_filename,
            )
            duplicates.append(a)
            continue
        index[a.lookup_key] = a

    results: List[MatchResult] = []
    used = set()
    for p in persons:
        asset = index.get(p.photo_key) if p.photo_key else None
        if asset is None:
            results.append(MissingPhoto(p))
        else:
            results.append(Matched(p, asset))
            used.add(asset.lookup_key)

    dup_ids = {id(a) for a in duplicates}
    for a in assets:
        if id(a) in dup_ids or a.lookup_key not in used:
            results.append(OrphanPhoto(a))

    rec = Reconciliation(results=results, roster_rows=len(persons), photos_uploaded=len(assets))
    logger.info(
        "Reconciled %d rows against %d photos: %d matched, %d missing, %d orphans",
        len(persons), len(assets), len(rec.matched), len(rec.missing), len(rec.orphans),
    )
    return rec
