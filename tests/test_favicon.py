from pathlib import Path

import httpx
import pytest

import pathmarks.favicon as favicon
from pathmarks.config import Settings
from pathmarks.favicon import (
    FaviconResult,
    _extract_favicon_href,
    _resolve_icon_url,
    favicon_filename,
    fetch_favicon,
    refresh_favicons,
    store_favicon,
)
from pathmarks.model import BookmarkItem, ItemType

ICON = b"\x00\x00\x01\x00fake-icon"


def _client(routes):
    def handler(request: httpx.Request) -> httpx.Response:
        key = f"{request.url.host}{request.url.path}"
        if key not in routes:
            return httpx.Response(404)
        status, body = routes[key]
        return httpx.Response(status, content=body)

    return httpx.Client(transport=httpx.MockTransport(handler))


def test_extract_prefers_icon_over_shortcut_icon():
    html = b"""
    <html><head>
      <link rel="shortcut icon" href="/legacy.ico">
      <link rel="icon" href="/assets/favicon-32.png">
    </head><body></body></html>
    """
    assert _extract_favicon_href(html) == "/assets/favicon-32.png"


def test_extract_falls_back_to_shortcut_icon_and_none():
    assert _extract_favicon_href(b'<html><head><link rel="shortcut icon" href="s.ico"></head></html>') == "s.ico"
    assert _extract_favicon_href(b"<html><head><title>x</title></head></html>") is None
    assert _extract_favicon_href(b"") is None


def test_resolve_icon_url_variants():
    base = "https://example.com"
    assert _resolve_icon_url("//cdn.example.net/i.png", base) == "https://cdn.example.net/i.png"
    assert _resolve_icon_url("/assets/f.png", base) == "https://example.com/assets/f.png"
    assert _resolve_icon_url("./f.png", base) == "https://example.com/f.png"
    assert _resolve_icon_url("https://other.org/x.ico", base) == "https://other.org/x.ico"


def test_favicon_filename_uses_registered_domain():
    assert favicon_filename("https://www.github.com/python", "favicon.svg") == "github.com_favicon.svg"
    assert favicon_filename("https://news.bbc.co.uk/x", "icon?.png") == "bbc.co.uk_icon_.png"


def test_fetch_favicon_from_link_tag():
    client = _client(
        {
            "example.com/": (200, b'<html><head><link rel="icon" href="/static/icon.png"></head></html>'),
            "example.com/static/icon.png": (200, ICON),
        }
    )
    r = fetch_favicon("https://example.com/deep/page?q=1", client=client)
    assert r.ok
    assert r.icon_url == "https://example.com/static/icon.png"
    assert r.filename == "icon.png"
    assert r.payload == ICON


def test_fetch_favicon_falls_back_to_site_favicon():
    client = _client(
        {
            "example.com/": (200, b"<html><head></head><body>hi</body></html>"),
            "example.com/favicon.ico": (200, ICON),
        }
    )
    r = fetch_favicon("https://example.com/", client=client)
    assert r.ok
    assert r.filename == "favicon.ico"
    assert r.icon_url == "https://example.com/favicon.ico"


def test_fetch_favicon_reports_errors_without_raising():
    r = fetch_favicon("https://example.com/", client=_client({}))
    assert not r.ok
    assert r.error
    assert r.payload == b""

    bad = fetch_favicon("not a url", client=_client({}))
    assert not bad.ok


def test_store_favicon_writes_file(tmp_path: Path):
    r = FaviconResult(
        url="https://www.python.org/",
        ok=True,
        icon_url="https://www.python.org/favicon.ico",
        filename="favicon.ico",
        payload=ICON,
        fetch_ms=1,
    )
    name = store_favicon(tmp_path / "icons", r)
    assert name == "python.org_favicon.ico"
    assert (tmp_path / "icons" / name).read_bytes() == ICON
    assert store_favicon(tmp_path, FaviconResult("u", False, None, "", b"", 1, "x")) is None


def test_refresh_favicons_updates_nodes_without_icon(repo, tmp_path: Path, monkeypatch):
    repo.create(BookmarkItem(path="/", display_name="Folder", owner="alice", type=ItemType.FOLDER))
    py = repo.create(BookmarkItem(path="/Folder", display_name="Python", owner="alice", url="https://www.python.org/"))
    dead = repo.create(BookmarkItem(path="/", display_name="Dead", owner="alice", url="https://dead.example/"))
    done = repo.create(
        BookmarkItem(path="/", display_name="Done", owner="alice", url="https://done.example/", favicon="x.ico")
    )
    asked = []

    def fake_fetch_many(urls, **_kwargs):
        asked.extend(urls)
        return {
            "https://www.python.org/": FaviconResult(
                "https://www.python.org/", True, "https://www.python.org/favicon.ico", "favicon.ico", ICON, 3
            ),
            "https://dead.example/": FaviconResult("https://dead.example/", False, None, "", b"", 3, "timeout"),
        }

    monkeypatch.setattr(favicon, "fetch_many", fake_fetch_many)
    cfg = Settings(favicon_dir=str(tmp_path / "icons"))

    assert refresh_favicons(repo, "alice", cfg) == 1
    assert sorted(asked) == ["https://dead.example/", "https://www.python.org/"]
    assert repo.get_by_id(py.id, "alice").favicon == "python.org_favicon.ico"
    assert repo.get_by_id(dead.id, "alice").favicon is None
    assert repo.get_by_id(done.id, "alice").favicon == "x.ico"
    assert (tmp_path / "icons" / "python.org_favicon.ico").exists()


def test_fetch_many_never_builds_a_real_client_in_tests():
    with pytest.raises(AssertionError, match="real HTTP client"):
        favicon.fetch_many(["https://example.com/"], jobs=1, timeout_s=1, user_agent="t", max_bytes=10)
