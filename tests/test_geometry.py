import pytest

import config
from geometry import GridSpec, compute_geometry, round_half_up


def test_card_pixel_size_at_300_dpi():
    g = compute_geometry()
    assert g.pixel_size == (1011, 638)


def test_card_size_in_points():
    g = compute_geometry()
    assert g.card_width_pt == pytest.approx(242.64)
    assert g.card_height_pt == pytest.approx(153.0)
    assert (g.sheet_width_pt, g.sheet_height_pt) == (595.0, 842.0)


def test_round_half_up():
    assert round_half_up(637.5) == 638
    assert round_half_up(1010.49) == 1010


def test_default_grid_is_two_by_five():
    g = compute_geometry()
    assert g.capacity == 10
    assert g.cell_width_pt == pytest.approx(252.5)
    assert g.cell_height_pt == pytest.approx(146.0)


def test_positions_are_row_major_and_centred():
    g = compute_geometry()
    x0, y0 = g.positions[0]
    x1, y1 = g.positions[1]
    x2, y2 = g.positions[2]
    assert x0 == pytest.approx(config.PAGE_MARGIN_X_PT + (252.5 - 242.64) / 2)
    assert y0 == pytest.approx(config.PAGE_MARGIN_Y_PT + (146.0 - 153.0) / 2)
    assert y1 == y0 and x1 > x0
    assert x2 == x0 and y2 > y0


def test_cards_do_not_overlap_and_stay_on_sheet():
    g = compute_geometry()
    w, h = g.card_size_pt
    for i, (ax, ay) in enumerate(g.positions):
        assert ax >= 0 and ay >= 0
        assert ax + w <= g.sheet_width_pt and ay + h <= g.sheet_height_pt
        for bx, by in g.positions[i + 1:]:
            overlap = ax < bx + w and bx < ax + w and ay < by + h and by < ay + h
            assert not overlap


def test_geometry_is_pure():
    assert compute_geometry(GridSpec(), 300) == compute_geometry(GridSpec(), 300)
    assert compute_geometry(GridSpec(columns=1, rows=1), 150).pixel_size == (506, 319)


def test_to_bottom_left():
    g = compute_geometry()
    x, y = g.to_bottom_left(g.positions[0])
    assert x == g.positions[0][0]
    assert y == pytest.approx(842.0 - g.positions[0][1] - 153.0)


def test_place_and_slot_at():
    g = compute_geometry()
    assert g.place(0) == (0, 0)
    assert g.place(9) == (0, 9)
    assert g.place(11) == (1, 1)
    for slot, (x, y) in enumerate(g.positions):
        assert g.slot_at(x + 1, y + 1) == slot
    assert g.slot_at(1, 1) is None


@pytest.mark.parametrize(
    "grid,dpi",
    [
        (GridSpec(columns=0), 300),
        (GridSpec(rows=0), 300),
        (GridSpec(columns=3), 300),
        (GridSpec(rows=6), 300),
        (GridSpec(), 0),
    ],
)
def test_invalid_grid_raises(grid, dpi):
    with pytest.raises(ValueError):
        compute_geometry(grid, dpi)
