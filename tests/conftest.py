"""Test configuration and fixtures"""

import logging
import tempfile
from pathlib import Path

import pytest

from getlrc.core.cache import NegativeCache
from getlrc.core.events import EventBus
from getlrc.core.file_manager import SidecarWriter
from getlrc.core.ratelimit import RateLimiter
from getlrc.core.session import SessionStore
from getlrc.library.metadata import TrackMetadata
from getlrc.lyrics.client import NotFound
from getlrc.pipeline.orchestrator import Orchestrator


SAMPLE_LRC = "[00:12.00]First line\n[00:17.20]Second line\n"


class FakeClock:
    """Manual clock; sleep() advances time instead of blocking."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps = []

    def time(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeLyricsClient:
    """
    Stand-in for LrcLibClient keyed by title.

    Titles missing from `results` return NotFound.
    """

    def __init__(self, results=None):
        self.results = results or {}
        self.calls = []

    def lookup(self, artist, title, album="", duration=0):
        self.calls.append(title)
        return self.results.get(title, NotFound())


def fake_metadata_reader(path: Path):
    """Derive tags from the file name: 'Artist - Title.flac'; 'broken*' has none."""
    stem = Path(path).stem
    if stem.startswith("broken"):
        return None
    artist, _, title = stem.partition(" - ")
    if not title:
        artist, title = "Unknown", stem
    return TrackMetadata(artist=artist, title=title, album="", duration=200)


def make_audio_files(root: Path, names) -> list:
    """Create empty audio files under root and return their paths in order."""
    paths = []
    for name in names:
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"")
        paths.append(path)
    return paths


@pytest.fixture(autouse=True)
def reset_logging():
    """Keep handlers from one test out of the next"""
    yield
    root = logging.getLogger()
    for handler in root.handlers[:]:
        handler.close()
        root.removeHandler(handler)


@pytest.fixture
def temp_dir():
    """Create temporary directory for tests"""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def music_dir(temp_dir):
    """Empty music library root"""
    path = temp_dir / "Music"
    path.mkdir()
    return path


@pytest.fixture
def data_dir(temp_dir):
    """Application data directory"""
    path = temp_dir / "data"
    path.mkdir()
    return path


@pytest.fixture
def store(data_dir):
    return SessionStore(data_dir / "session.json")


@pytest.fixture
def cache(data_dir):
    cache = NegativeCache(data_dir / "negative_cache.db")
    yield cache
    cache.close()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def make_orchestrator(store, cache, fake_clock):
    """Factory building an Orchestrator wired to fakes"""

    def factory(session, client=None, bus=None, **kwargs):
        return Orchestrator(
            session=session,
            store=store,
            cache=cache,
            client=client or FakeLyricsClient(),
            writer=SidecarWriter(),
            limiter=RateLimiter(10, period=1.0, clock=fake_clock.time, sleep=fake_clock.sleep),
            bus=bus or EventBus(),
            metadata_reader=fake_metadata_reader,
            **kwargs
        )

    return factory
