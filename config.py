"""
Central configuration for the BadgeFlow print pipeline.

Keep runtime-safe (no secrets). Storage credentials come from the
environment (see storage.storage_from_env) or Streamlit secrets.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

# Physical sizing (CR80) and print resolution
INCH_TO_PT = 72.0
CARD_WIDTH_IN = 3.370
CARD_HEIGHT_IN = 2.125
DPI = 300

# A4 portrait, 72 pt/in
A4_WIDTH_PT = 595.0
A4_HEIGHT_PT = 842.0

# Default sheet grid: 2 columns x 5 rows = 10 cards per A4 page
GRID_COLUMNS = 2
GRID_ROWS = 5
PAGE_MARGIN_X_PT = 40.0
PAGE_MARGIN_Y_PT = 36.0
CELL_GAP_X_PT = 10.0
CELL_GAP_Y_PT = 10.0

# Batch layout in storage
PHOTOS_SUBDIR = "photos"
STORAGE_LIST_LIMIT = 2000

# Output artifact names
FRONTS_PDF_NAME = "badgeflow_A4_fronts.pdf"
BACKS_PDF_NAME = "badgeflow_A4_backs.pdf"
SINGLES_ZIP_NAME = "badgeflow_single_cards.zip"

# UI
MAX_PREVIEW_ROWS = 200
PREVIEW_COLUMNS = 4
PREVIEW_WIDTH = 240
ZIP_SPOOL_MAX_BYTES = 25 * 1024 * 1024  # spill ZIP to disk after ~25MB

# Card rendering
CARD_NAME_FONT_SIZE = 64
CARD_DETAIL_FONT_SIZE = 36
CARD_SMALL_FONT_SIZE = 30
DEFAULT_THEME = "blue"
DEFAULT_TITLE = "Staff"

# Theme colours (hex): bg, primary, secondary, text, subtext, border
THEMES = {
    "blue": {
        "bg": "#F5F8FF",
        "primary": "#1F6FEB",
        "secondary": "#D6E4FF",
        "text": "#0B1220",
        "subtext": "#475569",
        "border": "#A4C2FF",
    },
    "green": {
        "bg": "#F3FFF6",
        "primary": "#00A676",
        "secondary": "#C8F2E5",
        "text": "#0B1220",
        "subtext": "#475569",
        "border": "#9BE5D1",
    },
    "red": {
        "bg": "#FFF5F5",
        "primary": "#D64545",
        "secondary": "#FFD6D6",
        "text": "#0B1220",
        "subtext": "#475569",
        "border": "#FFC0C0",
    },
    "neutral": {
        "bg": "#F7F7F7",
        "primary": "#111827",
        "secondary": "#E5E7EB",
        "text": "#0B1220",
        "subtext": "#475569",
        "border": "#D1D5DB",
    },
}


@dataclass(frozen=True)
class PipelineConfig:
    """
    Everything a reconcile/export run needs besides its inputs.

    Created once per process or per request and passed to the pipeline
    entry points explicitly.
    """

    photos_subdir: str = PHOTOS_SUBDIR
    require_photo_column: bool = True
    grid_columns: int = GRID_COLUMNS
    grid_rows: int = GRID_ROWS
    dpi: int = DPI
    theme: str = DEFAULT_THEME
    company_name: str = "Company"
    # e.g. "https://badges.example.com/verify/{person_id}"; None encodes the bare id
    verify_url_template: Optional[str] = None
    render_missing: bool = False  # also print cards (no photo) for roster rows without a file
    retain_images: bool = False  # keep rendered PNGs on the job (UI previews)
    list_limit: int = STORAGE_LIST_LIMIT

    def __post_init__(self):
        if self.theme not in THEMES:
            raise ValueError(f"Unknown theme {self.theme!r}. Choose from: {', '.join(sorted(THEMES))}")
