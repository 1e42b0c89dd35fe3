"""Test configuration and fixtures"""

from collections import deque
from concurrent.futures import Future
from io import BytesIO

import pytest
from PIL import Image

from spot_browser.controller import ListRowSink
from spot_browser.core import EventBus, Paths, UiExecutor


class FakeClock:
    """Monotonic clock advanced by hand (or by FakeSleep)."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSleep:
    """Records requested delays instead of sleeping."""

    def __init__(self, clock: FakeClock | None = None):
        self.calls = []
        self.clock = clock

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        if self.clock is not None:
            self.clock.advance(seconds)


class ManualPool:
    """
    Deterministic stand-in for WorkerPool.

    ask() only queues the task; run_next() executes the oldest one on the
    calling thread and posts its completion to the UI executor, exactly
    like the real pool does from a worker thread.
    """

    def __init__(self, ui: UiExecutor):
        self.ui = ui
        self.tasks = deque()

    @property
    def in_flight(self) -> int:
        return len(self.tasks)

    def ask(self, task, on_done, *args) -> Future:
        future = Future()
        self.tasks.append((task, on_done, args, future))
        return future

    def run_next(self) -> None:
        task, on_done, args, future = self.tasks.popleft()
        try:
            future.set_result(task(*args))
        except Exception as e:
            future.set_exception(e)
        self.ui.post(on_done, future)

    def drain(self, max_steps: int = 1000) -> None:
        """Alternate between UI callbacks and tasks until both are idle."""
        for _ in range(max_steps):
            ran = self.ui.run_pending()
            if self.tasks:
                self.run_next()
                continue
            if not ran:
                return
        raise AssertionError("pool did not settle")


def make_track(n: int, duration_ms: int = 1000, prefix: str = "t") -> dict:
    """Full track object as returned by the Web API."""
    return {
        "id": f"{prefix}{n}",
        "uri": f"spotify:track:{prefix}{n}",
        "name": f"Track {prefix}{n}",
        "duration_ms": duration_ms,
        "artists": [{"id": "a1", "name": "Test Artist"}],
        "album": {
            "id": "album1",
            "name": "Test Album",
            "images": [
                {"url": f"https://i.scdn.co/image/{prefix}{n}-64", "width": 64, "height": 64},
                {"url": f"https://i.scdn.co/image/{prefix}{n}-300", "width": 300, "height": 300},
            ],
        },
        "track_number": n,
        "explicit": False,
    }


def offset_payload(entries: list, offset: int, limit: int, total: int | None = None) -> dict:
    """Slice entries into one offset-paginated Web API page."""
    total = len(entries) if total is None else total
    items = entries[offset:offset + limit]
    has_next = offset + limit < len(entries)
    return {
        "items": items,
        "offset": offset,
        "limit": limit,
        "total": total,
        "next": f"https://api.spotify.com/v1/next?offset={offset + limit}" if has_next else None,
    }


def png_bytes(size: tuple[int, int] = (32, 16), color: str = "red") -> bytes:
    buffer = BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def paths(tmp_path):
    """Application paths rooted in a temporary directory"""
    return Paths(tmp_path / "app")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_sleep(clock):
    return FakeSleep(clock)


@pytest.fixture
def ui(clock):
    return UiExecutor(clock=clock)


@pytest.fixture
def pool(ui):
    return ManualPool(ui)


@pytest.fixture
def bus():
    bus = EventBus()
    yield bus
    bus.close()


@pytest.fixture
def sink():
    return ListRowSink()


@pytest.fixture
def sample_track_data():
    """Saved-track entry for model tests"""
    return {"added_at": "2023-01-01T00:00:00Z", "track": make_track(1, duration_ms=210000)}
