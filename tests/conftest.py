from io import BytesIO

import pytest

from columns import ResolvedPerson


def make_png(size=(1011, 638), color=(31, 111, 235)) -> bytes:
    from PIL import Image

    buf = BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    return buf.getvalue()


def make_person(pid="E1", photo="e1.jpg", name="Ann Lee", row=2) -> ResolvedPerson:
    return ResolvedPerson(
        person_id=pid,
        photo_filename=photo,
        photo_key=photo.lower(),
        display_name=name,
        row_number=row,
    )


@pytest.fixture
def card_png():
    return make_png()


@pytest.fixture
def geometry():
    from geometry import compute_geometry

    return compute_geometry()
