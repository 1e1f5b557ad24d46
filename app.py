#!/usr/bin/env python3
"""
BadgeFlow card printer (command line).

Reconciles a roster (CSV/TSV/Excel) against a folder of photos and exports
print-ready CR80 cards: A4 fronts PDF, A4 backs PDF and a ZIP of single-card
PDFs (front + back per person).
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

import config
from columns import resolve_columns
from config import PipelineConfig
from data_loaders import load_roster_file
from errors import BadgeFlowError
from matching import Reconciliation
from pipeline import export_batch, reconcile
from render import PillowCardRenderer
from storage import LocalStorage, list_photo_assets


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Reconcile a roster with photos and export printable ID cards")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    rec = sub.add_parser("reconcile", help="Show which roster rows have photos (no rendering)")
    rec.add_argument("roster", help="Path to roster (.csv, .tsv, .xlsx)")
    rec.add_argument("photos", help="Folder with the uploaded photo files")
    rec.add_argument("--json", action="store_true", help="Print the full summary as JSON")
    rec.add_argument("--lenient", action="store_true", help="Use the first column when no photo column is found")

    exp = sub.add_parser("export", help="Render cards and write the PDFs + ZIP")
    exp.add_argument("roster", help="Path to roster (.csv, .tsv, .xlsx)")
    exp.add_argument("photos", help="Folder with the uploaded photo files")
    exp.add_argument("-o", "--output", default="output", help="Output directory (default: output)")
    exp.add_argument("--theme", default=config.DEFAULT_THEME, choices=sorted(config.THEMES), help="Card colour theme")
    exp.add_argument("--company", default="Company", help="Company name printed on the cards")
    exp.add_argument("--logo", default=None, help="Optional logo image for the card front")
    exp.add_argument("--columns", type=int, default=config.GRID_COLUMNS, help="Cards per row on A4")
    exp.add_argument("--rows", type=int, default=config.GRID_ROWS, help="Card rows per A4 page")
    exp.add_argument("--verify-url", default=None, help="QR target, e.g. https://example.com/verify/{person_id}")
    exp.add_argument("--include-missing", action="store_true", help="Also print cards (no photo) for rows without a file")
    exp.add_argument("--lenient", action="store_true", help="Use the first column when no photo column is found")
    return parser


def _reconcile(roster: str, photos: str, cfg: PipelineConfig) -> Reconciliation:
    table = load_roster_file(roster)
    storage = LocalStorage(photos)
    # Resolve first so a bad roster fails before the folder is listed.
    resolve_columns(table.headers, required=cfg.require_photo_column)
    assets = list_photo_assets(storage, "", limit=cfg.list_limit)
    return reconcile(table, assets, cfg)


def print_summary(rec: Reconciliation) -> None:
    s = rec.summary()
    print(f"Roster rows:     {s['rosterRows']}")
    print(f"Photos uploaded: {s['photosUploaded']}")
    print(f"Matched:         {s['matched']}")
    print(f"Missing photo:   {s['missing']}")
    print(f"Orphan photos:   {s['orphans']}")
    if s["missingFilenames"]:
        print("\nMissing files:")
        for name in s["missingFilenames"]:
            print(f"  - {name}")
    blank = [m for m in s["items"]["missing"] if not m["photo_filename"]]
    if blank:
        print(f"\n{len(blank)} row(s) have no photo filename")
    if s["orphanFilenames"]:
        print("\nPhotos not in the roster:")
        for name in s["orphanFilenames"]:
            print(f"  - {name}")
    for w in s["warnings"]:
        print(f"Warning: {w}")


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.command == "reconcile":
            cfg = PipelineConfig(require_photo_column=not args.lenient)
            rec = _reconcile(args.roster, args.photos, cfg)
            if args.json:
                print(json.dumps(rec.summary(), indent=2))
            else:
                print_summary(rec)
            return 0

        cfg = PipelineConfig(
            require_photo_column=not args.lenient,
            grid_columns=args.columns,
            grid_rows=args.rows,
            theme=args.theme,
            company_name=args.company,
            verify_url_template=args.verify_url,
            render_missing=args.include_missing,
        )
        rec = _reconcile(args.roster, args.photos, cfg)
        print_summary(rec)
        logo = Path(args.logo).read_bytes() if args.logo else None

        def _progress(status: str, done: int, total: int, message: str) -> None:
            if message:
                print(message, flush=True)

        _, artifacts = export_batch(
            rec,
            PillowCardRenderer(logo=logo),
            LocalStorage(args.photos),
            cfg,
            logo=logo,
            on_status=_progress,
        )
        written = artifacts.write_to(args.output)
        print(
            f"\nCompleted! {artifacts.singles_count} single-card PDF(s), "
            f"{artifacts.front_pages} front page(s), {artifacts.back_pages} back page(s)"
        )
        for p in written:
            print(f"  {p}")
        return 0
    except (BadgeFlowError, ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
