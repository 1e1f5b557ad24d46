"""
Card and sheet geometry (CR80 cards on A4 sheets).

All sheet coordinates are in points (72 pt/in). Cell positions use a
TOP-LEFT origin: x grows right from the left page edge, y grows down from
the top page edge to the card's top edge. Use CardGeometry.to_bottom_left()
to get PDF user-space coordinates (origin bottom-left).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Tuple

import config

ORIGIN_TOP_LEFT = "top-left"


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class GridSpec:
    columns: int = config.GRID_COLUMNS
    rows: int = config.GRID_ROWS
    margin_x: float = config.PAGE_MARGIN_X_PT
    margin_y: float = config.PAGE_MARGIN_Y_PT
    gap_x: float = config.CELL_GAP_X_PT
    gap_y: float = config.CELL_GAP_Y_PT

    @property
    def capacity(self) -> int:
        return self.columns * self.rows


@dataclass(frozen=True)
class CardGeometry:
    card_width_in: float
    card_height_in: float
    card_width_pt: float
    card_height_pt: float
    dpi: int
    pixel_width: int
    pixel_height: int
    sheet_width_pt: float
    sheet_height_pt: float
    grid: GridSpec
    cell_width_pt: float
    cell_height_pt: float
    positions: Tuple[Tuple[float, float], ...]  # top-left origin, row-major
    origin: str = ORIGIN_TOP_LEFT

    @property
    def capacity(self) -> int:
        return len(self.positions)

    @property
    def pixel_size(self) -> Tuple[int, int]:
        return self.pixel_width, self.pixel_height

    @property
    def card_size_pt(self) -> Tuple[float, float]:
        return self.card_width_pt, self.card_height_pt

    def place(self, index: int) -> Tuple[int, int]:
        """(page, slot) for the index-th card of a sequence, both 0-based."""
        return index // self.capacity, index % self.capacity

    def to_bottom_left(self, position: Tuple[float, float]) -> Tuple[float, float]:
        """Top-left sheet position -> lower-left corner of the card in PDF space."""
        x, y_top = position
        return x, self.sheet_height_pt - y_top - self.card_height_pt

    def slot_at(self, x: float, y: float) -> Optional[int]:
        """Slot whose card contains the top-left point (x, y), or None."""
        for slot, (cx, cy) in enumerate(self.positions):
            if cx <= x < cx + self.card_width_pt and cy <= y < cy + self.card_height_pt:
                return slot
        return None


def _grid_positions(
    grid: GridSpec, card_w: float, card_h: float, sheet_w: float, sheet_h: float
) -> Tuple[float, float, Tuple[Tuple[float, float], ...]]:
    usable_w = sheet_w - grid.margin_x * 2
    usable_h = sheet_h - grid.margin_y * 2
    cell_w = (usable_w - grid.gap_x * (grid.columns - 1)) / grid.columns
    cell_h = (usable_h - grid.gap_y * (grid.rows - 1)) / grid.rows

    positions = []
    for r in range(grid.rows):
        for c in range(grid.columns):
            cell_x = grid.margin_x + c * (cell_w + grid.gap_x)
            cell_y = grid.margin_y + r * (cell_h + grid.gap_y)
            # card centred in its cell; may overhang the cell when the cell is smaller
            positions.append((cell_x + (cell_w - card_w) / 2, cell_y + (cell_h - card_h) / 2))
    return cell_w, cell_h, tuple(positions)


@lru_cache(maxsize=32)
def compute_geometry(grid: GridSpec = GridSpec(), dpi: int = config.DPI) -> CardGeometry:
    """
    Pure function of its (frozen) arguments and the config constants.

    Raises ValueError when the grid cannot hold non-overlapping cards
    inside the sheet.
    """
    if grid.columns < 1 or grid.rows < 1:
        raise ValueError(f"Grid needs at least one row and column (got {grid.columns}x{grid.rows}).")
    if dpi <= 0:
        raise ValueError(f"DPI must be positive (got {dpi}).")

    card_w = config.CARD_WIDTH_IN * config.INCH_TO_PT
    card_h = config.CARD_HEIGHT_IN * config.INCH_TO_PT
    sheet_w, sheet_h = config.A4_WIDTH_PT, config.A4_HEIGHT_PT

    cell_w, cell_h, positions = _grid_positions(grid, card_w, card_h, sheet_w, sheet_h)

    pitch_x = cell_w + grid.gap_x
    pitch_y = cell_h + grid.gap_y
    if grid.columns > 1 and pitch_x < card_w:
        raise ValueError(f"{grid.columns} columns do not fit: card pitch {pitch_x:.2f}pt < card width {card_w:.2f}pt")
    if grid.rows > 1 and pitch_y < card_h:
        raise ValueError(f"{grid.rows} rows do not fit: card pitch {pitch_y:.2f}pt < card height {card_h:.2f}pt")
    xs = [p[0] for p in positions]
    ys = [p[1] for p in positions]
    if min(xs) < 0 or min(ys) < 0 or max(xs) + card_w > sheet_w or max(ys) + card_h > sheet_h:
        raise ValueError("Cards would extend past the sheet edge; reduce the grid or margins.")

    return CardGeometry(
        card_width_in=config.CARD_WIDTH_IN,
        card_height_in=config.CARD_HEIGHT_IN,
        card_width_pt=card_w,
        card_height_pt=card_h,
        dpi=dpi,
        pixel_width=round_half_up(config.CARD_WIDTH_IN * dpi),
        pixel_height=round_half_up(config.CARD_HEIGHT_IN * dpi),
        sheet_width_pt=sheet_w,
        sheet_height_pt=sheet_h,
        grid=grid,
        cell_width_pt=cell_w,
        cell_height_pt=cell_h,
        positions=positions,
    )
