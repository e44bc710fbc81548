import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Allow `import pathmarks` without installing the package.
ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from pathmarks.repository import BookmarkRepository  # noqa: E402


@pytest.fixture(autouse=True)
def _block_real_http_clients(monkeypatch):
    """Tests must never open real network connections."""

    def _blocked(*_args, **_kwargs):
        raise AssertionError("real HTTP client requested during tests")

    import pathmarks.favicon as favicon

    monkeypatch.setattr(favicon, "_new_client", _blocked)


class TickClock:
    """Deterministic clock: every call is one second after the previous one."""

    def __init__(self, start=datetime(2026, 1, 1, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self):
        self.now = self.now + timedelta(seconds=1)
        return self.now


@pytest.fixture
def clock():
    return TickClock()


@pytest.fixture
def repo(tmp_path: Path, clock):
    with BookmarkRepository(tmp_path / "bookmarks.sqlite", clock=clock) as r:
        yield r
