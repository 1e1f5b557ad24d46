import sys
import types

import pytest

import storage as storage_mod
from errors import AssetFetchFailure
from storage import LocalStorage, SupabaseStorage, list_photo_assets, storage_env_problem, storage_from_env


def test_local_storage_upload_list_fetch(tmp_path):
    s = LocalStorage(tmp_path)
    s.upload("b1/photos/B.jpg", b"bbb")
    s.upload("b1/photos/a.jpg", b"aaa")
    s.upload("b1/photos/.DS_Store", b"x")
    s.upload("b1/roster.csv", b"id\n")

    objs = s.list("b1/photos")
    assert [o.name for o in objs] == ["B.jpg", "a.jpg"]
    assert objs[1].path == "b1/photos/a.jpg"
    assert s.fetch("b1/photos/a.jpg") == b"aaa"


def test_local_storage_missing_prefix_lists_nothing(tmp_path):
    assert LocalStorage(tmp_path).list("nope/photos") == []


def test_local_storage_fetch_missing_raises(tmp_path):
    with pytest.raises(AssetFetchFailure):
        LocalStorage(tmp_path).fetch("b1/photos/gone.jpg")


def test_local_storage_rejects_path_escape(tmp_path):
    s = LocalStorage(tmp_path / "root")
    with pytest.raises(AssetFetchFailure):
        s.fetch("../secret.txt")


def test_list_photo_assets_lowercases_keys(tmp_path):
    s = LocalStorage(tmp_path)
    s.upload("b1/photos/E1234.JPG", b"x")
    assets = list_photo_assets(s, "b1/photos")
    assert [(a.original_filename, a.lookup_key, a.storage_path) for a in assets] == [
        ("E1234.JPG", "e1234.jpg", "b1/photos/E1234.JPG")
    ]


def test_list_respects_limit(tmp_path):
    s = LocalStorage(tmp_path)
    for i in range(5):
        s.upload(f"p/{i}.jpg", b"x")
    assert len(s.list("p", limit=3)) == 3


class _FakeResp:
    def __init__(self, status_code, payload=None, content=b""):
        self.status_code = status_code
        self._payload = payload
        self.content = content
        self.text = ""

    def json(self):
        return self._payload


def _fake_requests(responses, calls):
    class RequestException(Exception):
        pass

    def request(method, url, **kwargs):
        calls.append((method, url, kwargs))
        r = responses.pop(0)
        if isinstance(r, Exception):
            raise r
        return r

    mod = types.SimpleNamespace(request=request, RequestException=RequestException)
    return mod


@pytest.fixture
def no_sleep(monkeypatch):
    monkeypatch.setattr(storage_mod.time, "sleep", lambda *_a, **_k: None)


def test_supabase_list_filters_folders_and_placeholders(monkeypatch, no_sleep):
    calls = []
    fake = _fake_requests(
        [
            _FakeResp(
                200,
                [
                    {"name": "a.jpg", "id": "1"},
                    {"name": ".emptyFolderPlaceholder", "id": "2"},
                    {"name": "sub", "id": None},
                    {"name": "B.PNG", "id": "3"},
                ],
            )
        ],
        calls,
    )
    monkeypatch.setitem(sys.modules, "requests", fake)

    s = SupabaseStorage("https://proj.supabase.co/", "key", "orders")
    objs = s.list("b1/photos", limit=50)

    assert [o.path for o in objs] == ["b1/photos/a.jpg", "b1/photos/B.PNG"]
    method, url, kwargs = calls[0]
    assert method == "POST"
    assert url == "https://proj.supabase.co/storage/v1/object/list/orders"
    assert kwargs["json"]["prefix"] == "b1/photos"
    assert kwargs["json"]["limit"] == 50
    assert kwargs["headers"]["Authorization"] == "Bearer key"


def test_supabase_fetch_retries_then_succeeds(monkeypatch, no_sleep):
    calls = []
    fake = _fake_requests([_FakeResp(503), _FakeResp(200, content=b"img")], calls)
    monkeypatch.setitem(sys.modules, "requests", fake)

    s = SupabaseStorage("https://proj.supabase.co", "key")
    assert s.fetch("b1/photos/my photo.jpg") == b"img"
    assert len(calls) == 2
    assert calls[0][1].endswith("/storage/v1/object/orders/b1/photos/my%20photo.jpg")


def test_supabase_fetch_gives_up_with_asset_fetch_failure(monkeypatch, no_sleep):
    calls = []
    fake = _fake_requests([_FakeResp(404)], calls)
    monkeypatch.setitem(sys.modules, "requests", fake)

    with pytest.raises(AssetFetchFailure):
        SupabaseStorage("https://proj.supabase.co", "key").fetch("b1/photos/x.jpg")


def test_supabase_network_errors_exhaust_attempts(monkeypatch, no_sleep):
    calls, responses = [], []
    fake = _fake_requests(responses, calls)
    responses.extend([fake.RequestException("down"), fake.RequestException("down")])
    monkeypatch.setitem(sys.modules, "requests", fake)

    with pytest.raises(AssetFetchFailure):
        SupabaseStorage("https://proj.supabase.co", "key", max_attempts=2).list("b1/photos")
    assert len(calls) == 2


def test_supabase_upload_sets_upsert(monkeypatch, no_sleep):
    calls = []
    fake = _fake_requests([_FakeResp(200)], calls)
    monkeypatch.setitem(sys.modules, "requests", fake)

    path = SupabaseStorage("https://proj.supabase.co", "key").upload("b1/logo.png", b"x", "image/png")
    assert path == "b1/logo.png"
    assert calls[0][2]["headers"]["x-upsert"] == "true"
    assert calls[0][2]["data"] == b"x"


def test_storage_from_env_requires_credentials():
    with pytest.raises(ValueError):
        storage_from_env({})
    s = storage_from_env({"BADGEFLOW_SUPABASE_URL": "https://p.supabase.co", "BADGEFLOW_SUPABASE_KEY": "k"})
    assert s.bucket == "orders"


def test_storage_env_problem():
    assert storage_env_problem({}) is None
    assert storage_env_problem({"BADGEFLOW_SUPABASE_URL": "https://p.supabase.co", "BADGEFLOW_SUPABASE_KEY": "k"}) is None
    assert "BADGEFLOW_SUPABASE_KEY" in storage_env_problem({"BADGEFLOW_SUPABASE_URL": "https://p.supabase.co"})
    assert "BADGEFLOW_SUPABASE_URL" in storage_env_problem({"BADGEFLOW_SUPABASE_KEY": "k"})
    assert "http" in storage_env_problem({"BADGEFLOW_SUPABASE_URL": "p.supabase.co", "BADGEFLOW_SUPABASE_KEY": "k"})
