"""End-to-end tests for the command line"""

from pathlib import Path
from unittest.mock import Mock, patch

import pytest
from click.testing import CliRunner

from getlrc.cli import cli
from getlrc.core.cache import NegativeCache
from getlrc.core.session import Outcome, Session, SessionStore
from getlrc.lyrics.client import Found

from conftest import SAMPLE_LRC, FakeLyricsClient, make_audio_files


class ClosingFakeClient(FakeLyricsClient):
    """FakeLyricsClient with the close() the CLI calls on exit"""

    def __init__(self, results=None):
        super().__init__(results)
        self.closed = False

    def close(self):
        self.closed = True


def tags_from_name(path, easy=True):
    """mutagen.File stand-in: 'Artist - Title.flac' becomes easy tags"""
    artist, _, title = Path(path).stem.partition(" - ")
    audio = Mock()
    audio.tags = {"artist": [artist], "title": [title]}
    audio.info.length = 200.0
    return audio


@pytest.fixture
def config_file(temp_dir, data_dir):
    path = temp_dir / "config.yaml"
    path.write_text(
        f"paths:\n  data_dir: \"{data_dir}\"\n"
        "rate_limit:\n  requests_per_second: 50\n",
        encoding="utf-8"
    )
    return path


def invoke(music_dir, config_file, client):
    runner = CliRunner()
    with patch("getlrc.cli.LrcLibClient", return_value=client), \
            patch("getlrc.library.metadata.mutagen.File", side_effect=tags_from_name):
        return runner.invoke(cli, [str(music_dir), "--config", str(config_file), "--plain"])


class TestCli:
    """Test full runs through the command line"""

    def test_fresh_run_completes(self, music_dir, data_dir, config_file):
        """Test lyrics are written and the session is removed"""
        make_audio_files(music_dir, ["Band/Band - Song.flac", "Band/Band - Rare.mp3"])
        client = ClosingFakeClient({"Song": Found(lyrics=SAMPLE_LRC, artist_name="Band", track_name="Song")})

        result = invoke(music_dir, config_file, client)

        assert result.exit_code == 0, result.output
        assert (music_dir / "Band" / "Band - Song.lrc").read_text(encoding="utf-8") == SAMPLE_LRC
        assert not (music_dir / "Band" / "Band - Rare.lrc").exists()
        assert not (data_dir / "session.json").exists()
        assert client.closed

        cache = NegativeCache(data_dir / "negative_cache.db")
        try:
            assert cache.count() == 1
        finally:
            cache.close()

    def test_second_run_skips_everything(self, music_dir, config_file):
        """Test a rerun makes no requests"""
        make_audio_files(music_dir, ["Band - Song.flac", "Band - Rare.flac"])
        found = {"Song": Found(lyrics=SAMPLE_LRC, artist_name="Band", track_name="Song")}

        assert invoke(music_dir, config_file, ClosingFakeClient(found)).exit_code == 0

        client = ClosingFakeClient(found)
        result = invoke(music_dir, config_file, client)

        assert result.exit_code == 0, result.output
        assert client.calls == []

    def test_resumes_saved_session(self, music_dir, data_dir, config_file):
        """Test a saved session is continued instead of rescanned"""
        paths = make_audio_files(music_dir, ["Band - One.flac", "Band - Two.flac", "Band - Three.flac"])
        root = music_dir.resolve()
        session = Session.new(root, [p.resolve() for p in paths])
        session.record_outcome(session.next_file(), Outcome.NOT_FOUND)
        SessionStore(data_dir / "session.json").save(session)

        client = ClosingFakeClient()
        result = invoke(music_dir, config_file, client)

        assert result.exit_code == 0, result.output
        assert client.calls == ["Two", "Three"]
        assert not (data_dir / "session.json").exists()

    def test_empty_library(self, music_dir, config_file):
        """Test a directory with no audio completes immediately"""
        client = ClosingFakeClient()
        result = invoke(music_dir, config_file, client)
        assert result.exit_code == 0, result.output
        assert client.calls == []

    def test_missing_config_file(self, music_dir, temp_dir):
        """Test exit code 1 for configuration errors"""
        result = invoke(music_dir, temp_dir / "missing.yaml", ClosingFakeClient())
        assert result.exit_code == 1

    def test_missing_music_dir(self, temp_dir, config_file):
        """Test exit code 2 for preflight errors"""
        result = invoke(temp_dir / "nowhere", config_file, ClosingFakeClient())
        assert result.exit_code == 2

    def test_music_dir_is_a_file(self, temp_dir, config_file):
        """Test a file path is rejected in preflight"""
        path = temp_dir / "song.flac"
        path.write_bytes(b"")
        result = invoke(path, config_file, ClosingFakeClient())
        assert result.exit_code == 2

    def test_version(self):
        """Test --version"""
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "getlrc" in result.output
