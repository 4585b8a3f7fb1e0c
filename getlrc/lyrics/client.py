"""
LRCLIB client for getlrc.

One lookup is exactly one HTTP GET against <base_url>/get:

    GET https://lrclib.net/api/get?artist_name=...&track_name=...
                                   &album_name=...&duration=...

Response Mapping:
    200 with syncedLyrics      -> Found
    200 without syncedLyrics   -> NotFound (plain-only or instrumental)
    200 but poor match         -> NotFound (average similarity < 0.6)
    404                        -> NotFound
    any other status           -> TransientError
    timeout / connection error -> TransientError
    malformed JSON             -> TransientError

NotFound is a confirmed negative and may be cached by the caller;
TransientError must never be cached. The client does not retry and does
not rate limit; both are the orchestrator's business.

Usage:
    client = LrcLibClient(config.api)
    result = client.lookup("Artist", "Title", "Album", 215)

    if isinstance(result, Found):
        writer.write(sidecar, result.lyrics)
"""

from dataclasses import dataclass

import requests

from getlrc.core.config import ApiConfig
from getlrc.core.logger import get_logger
from getlrc.lyrics.normalize import clean_string, clean_title, normalize_metadata, similarity

logger = get_logger(__name__)


SIMILARITY_THRESHOLD_EXACT = 0.85
SIMILARITY_THRESHOLD_MINIMUM = 0.6


@dataclass(frozen=True)
class Found:
    """
    Synced lyrics were returned for a good enough match.

    Attributes:
        lyrics: LRC text.
        artist_name: Artist as stored on LRCLIB.
        track_name: Title as stored on LRCLIB.
        score: Average artist/title similarity (0.6 .. 1.0).
    """
    lyrics: str
    artist_name: str = ""
    track_name: str = ""
    score: float = 1.0

    @property
    def is_exact(self) -> bool:
        return self.score >= SIMILARITY_THRESHOLD_EXACT


@dataclass(frozen=True)
class NotFound:
    reason: str = "no synced lyrics"


@dataclass(frozen=True)
class TransientError:
    reason: str


LookupResult = Found | NotFound | TransientError


class LrcLibClient:
    """
    Thin synchronous client over requests.Session.

    Attributes:
        base_url: API root without trailing slash.
        timeout: Per-request timeout in seconds.
        session: Shared HTTP session (connection pooling, User-Agent).
    """

    def __init__(self, api_config: ApiConfig, session: requests.Session | None = None) -> None:
        self.base_url = api_config.base_url.rstrip("/")
        self.timeout = api_config.timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "User-Agent": api_config.user_agent
        })

    def close(self) -> None:
        self.session.close()

    def lookup(self, artist: str, title: str, album: str = "", duration: int = 0) -> LookupResult:
        """
        Look up synced lyrics for one track.

        Args:
            artist: Artist tag.
            title: Title tag.
            album: Album tag ("" if unknown).
            duration: Length in whole seconds.

        Returns:
            Found, NotFound or TransientError. Never raises for network
            or protocol failures.
        """
        normalized = normalize_metadata(artist, title, album)
        params = {
            "artist_name": normalized.artist,
            "track_name": normalized.title,
            "album_name": normalized.album,
            "duration": int(duration),
        }
        url = f"{self.base_url}/get"
        logger.debug(
            f"LRCLIB lookup: {normalized.artist} - {normalized.title} "
            f"(from: {artist} - {title})"
        )

        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.exceptions.Timeout:
            return TransientError(f"request timed out after {self.timeout}s")
        except requests.exceptions.RequestException as e:
            return TransientError(f"request failed: {e}")

        if response.status_code == 404:
            logger.debug(f"LRCLIB returned 404 for: {normalized.artist} - {normalized.title}")
            return NotFound("not on LRCLIB")

        if response.status_code != 200:
            return TransientError(f"unexpected status code {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            return TransientError(f"malformed response: {e}")

        if not isinstance(data, dict):
            return TransientError("malformed response: expected a JSON object")

        return self._evaluate(normalized.artist, normalized.title, data)

    def _evaluate(self, artist: str, title: str, data: dict) -> LookupResult:
        remote_artist = str(data.get("artistName") or "")
        remote_title = str(data.get("trackName") or "")

        title_score = similarity(title, clean_title(remote_title))
        if artist:
            score = (similarity(artist, clean_string(remote_artist)) + title_score) / 2
        else:
            # Untagged artist: only the title can be compared
            score = title_score
        logger.debug(
            f"Similarity for '{artist} - {title}' vs "
            f"'{remote_artist} - {remote_title}': {score:.2f}"
        )

        if score < SIMILARITY_THRESHOLD_MINIMUM:
            return NotFound(f"best match too different ({remote_artist} - {remote_title})")

        synced = data.get("syncedLyrics")
        if not isinstance(synced, str) or not synced.strip():
            if data.get("instrumental"):
                return NotFound("instrumental")
            return NotFound("no synced lyrics")

        if score < SIMILARITY_THRESHOLD_EXACT:
            logger.info(
                f"Accepting potential match {remote_artist} - {remote_title} "
                f"(similarity: {score:.2f})"
            )

        return Found(
            lyrics=synced,
            artist_name=remote_artist,
            track_name=remote_title,
            score=score,
        )
