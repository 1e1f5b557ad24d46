import json
import zipfile

import pytest

from conftest import make_png

import app


def _write_batch(tmp_path, roster_text):
    roster = tmp_path / "roster.csv"
    roster.write_text(roster_text)
    photos = tmp_path / "photos"
    photos.mkdir()
    return roster, photos


def test_reconcile_json(tmp_path, capsys):
    roster, photos = _write_batch(tmp_path, "employee_id,name,photo_filename\nE1,Ann Lee,E1.JPG\nE2,Bob Ray,e2.jpg\n")
    (photos / "e1.jpg").write_bytes(b"x")
    (photos / "extra.png").write_bytes(b"x")

    assert app.main(["reconcile", str(roster), str(photos), "--json"]) == 0
    summary = json.loads(capsys.readouterr().out)
    assert (summary["matched"], summary["missing"], summary["orphans"]) == (1, 1, 1)
    assert summary["missingFilenames"] == ["e2.jpg"]


def test_reconcile_text_summary(tmp_path, capsys):
    roster, photos = _write_batch(tmp_path, "photo,name\na.jpg,Ann\n")
    (photos / "a.jpg").write_bytes(b"x")
    assert app.main(["reconcile", str(roster), str(photos)]) == 0
    out = capsys.readouterr().out
    assert "Matched:         1" in out


def test_missing_photo_column_exits_nonzero(tmp_path, capsys):
    roster, photos = _write_batch(tmp_path, "name,team\nAnn,A\n")
    assert app.main(["reconcile", str(roster), str(photos)]) == 1
    assert "photo_filename" in capsys.readouterr().err


def test_lenient_uses_first_column(tmp_path, capsys):
    roster, photos = _write_batch(tmp_path, "pic,name\na.jpg,Ann\n")
    (photos / "a.jpg").write_bytes(b"x")
    assert app.main(["reconcile", str(roster), str(photos), "--lenient", "--json"]) == 0
    assert json.loads(capsys.readouterr().out)["matched"] == 1


def test_export_writes_three_artifacts(tmp_path, capsys):
    pytest.importorskip("reportlab")
    pytest.importorskip("qrcode")
    roster, photos = _write_batch(tmp_path, "id,first_name,last_name,photo\nE1,Ann,Lee,a.png\nE2,Bob,Ray,b.png\n")
    (photos / "a.png").write_bytes(make_png((300, 400)))
    out = tmp_path / "out"

    assert app.main(["export", str(roster), str(photos), "-o", str(out), "--company", "Acme"]) == 0
    assert (out / "badgeflow_A4_fronts.pdf").read_bytes().startswith(b"%PDF")
    assert (out / "badgeflow_A4_backs.pdf").read_bytes().startswith(b"%PDF")
    with zipfile.ZipFile(out / "badgeflow_single_cards.zip") as zf:
        assert zf.namelist() == ["E1_Ann_Lee.pdf"]
    assert "Completed!" in capsys.readouterr().out
