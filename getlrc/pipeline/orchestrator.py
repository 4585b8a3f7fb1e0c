"""
The resumable lyrics pipeline.

The Orchestrator walks the session's pending files one at a time:

    pending.popleft()
        │
        ├── sidecar exists ─────────────────────────────► AlreadyExists
        ├── no usable tags ─────────────────────────────► Error
        ├── fingerprint in negative cache ──────────────► CachedMiss   (no API call)
        └── rate limiter permit, LRCLIB lookup
                ├── Found ──► atomic sidecar write ─────► Downloaded   (write failure: Error)
                ├── NotFound ──► negative cache put ────► NotFound
                └── TransientError ─────────────────────► Error        (never cached)

Every outcome updates the session counters and log, and is published on the
EventBus as an immutable snapshot. A single file never stops the run: all
per-track failures become an Error outcome.

State Machine:
    IDLE ──► RUNNING ◄──► PAUSED
               │            │
               ├──► COMPLETED (pending empty: session file deleted)
               └──► CANCELLED ◄┘ (quit: session saved)

    Intents are only looked at between two files, so a pause or quit never
    splits a lookup from its write and the saved session is always a
    consistent checkpoint. While paused the orchestrator blocks on the
    intent queue and consumes no CPU.

Threading:
    run() is meant to be the target of a worker thread. The orchestrator is
    the only code that touches the Session, the SessionStore and the
    NegativeCache.

Usage:
    orchestrator = Orchestrator(
        session=session, store=store, cache=cache, client=client,
        writer=SidecarWriter(), limiter=limiter, bus=bus,
    )
    thread = threading.Thread(target=orchestrator.run, name="orchestrator")
    thread.start()
"""

from pathlib import Path
from typing import Callable

from getlrc.core.cache import NegativeCache
from getlrc.core.events import (
    EventBus,
    Intent,
    PipelineState,
    RunFinished,
    RunStarted,
    SessionRestored,
    StateChanged,
    TrackFinished,
    TrackStarted,
)
from getlrc.core.exceptions import CacheError, GetLrcError, SessionError
from getlrc.core.file_manager import SidecarWriter, has_sidecar, sidecar_path
from getlrc.core.logger import get_logger, log_lyrics_failure
from getlrc.core.ratelimit import RateLimiter
from getlrc.core.session import Outcome, Session, SessionStore
from getlrc.library.metadata import TrackMetadata, read_metadata
from getlrc.lyrics.client import Found, LrcLibClient, NotFound
from getlrc.lyrics.normalize import fingerprint

logger = get_logger(__name__)


class Orchestrator:
    """
    Drives one Session to completion or cancellation.

    Attributes:
        session: The in-memory session (owned exclusively by this object).
        state: Current PipelineState.
        error: Message of the failure that ended the run, if any.
    """

    def __init__(
        self,
        session: Session,
        store: SessionStore,
        cache: NegativeCache,
        client: LrcLibClient,
        writer: SidecarWriter,
        limiter: RateLimiter,
        bus: EventBus,
        metadata_reader: Callable[[Path], TrackMetadata | None] = read_metadata,
        resumed: bool = False,
        start_paused: bool = False,
        checkpoint_interval: int = 0
    ) -> None:
        """
        Args:
            session: Fresh or restored session.
            store: Where checkpoints go.
            cache: Negative cache shared across runs.
            client: Anything with LrcLibClient.lookup()'s signature.
            writer: Sidecar writer.
            limiter: Gate in front of every remote lookup.
            bus: Event/intent channels to the display.
            metadata_reader: Tag reader (injectable for tests).
            resumed: The session was restored from disk; its history is
                     replayed to the display.
            start_paused: Enter PAUSED before processing the first file.
            checkpoint_interval: Save every N processed files (0 disables).
        """
        self.session = session
        self.store = store
        self.cache = cache
        self.client = client
        self.writer = writer
        self.limiter = limiter
        self.bus = bus
        self.metadata_reader = metadata_reader
        self.resumed = resumed
        self.start_paused = start_paused
        self.checkpoint_interval = checkpoint_interval
        self.state = PipelineState.IDLE
        self.error: str | None = None
        self._since_checkpoint = 0

    # =========================================================================
    # Main loop
    # =========================================================================

    def run(self) -> PipelineState:
        """
        Process the session until it completes or the user quits.

        Returns:
            COMPLETED or CANCELLED. When an unexpected failure ends the run
            the state is CANCELLED and self.error is set.
        """
        if self.state is not PipelineState.IDLE:
            raise RuntimeError(f"Orchestrator already started (state: {self.state.value})")

        try:
            self._start()
            while not self.state.is_terminal:
                if self.state is PipelineState.PAUSED:
                    self._apply(self.bus.wait_intent())
                    continue

                intent = self.bus.poll_intent()
                if intent is not None:
                    self._apply(intent)
                    continue

                if self.session.is_complete:
                    self._complete()
                else:
                    self._process_next()
        except Exception as e:
            # Anything reaching here is a bug or a failed pause/quit save
            logger.exception(f"Pipeline stopped by unexpected error: {e}")
            self.error = str(e)
            self.state = PipelineState.CANCELLED

        self.bus.publish(RunFinished(
            state=self.state,
            counts=self.session.counts(),
            error=self.error
        ))
        logger.info(f"Pipeline finished: {self.state.value} ({self._summary()})")
        return self.state

    def _start(self) -> None:
        counts = self.session.counts()
        if self.resumed:
            self.bus.publish(SessionRestored(
                log_history=tuple(self.session.log_history),
                counts=counts
            ))

        self._set_state(PipelineState.RUNNING)
        self.bus.publish(RunStarted(
            root_path=str(self.session.root_path),
            counts=counts,
            resumed=self.resumed
        ))
        logger.info(
            f"Pipeline started for {self.session.root_path}: "
            f"{counts.pending} pending of {counts.total} "
            f"({'resumed' if self.resumed else 'new session'})"
        )

        if self.session.is_complete:
            return

        if not self.resumed:
            self._checkpoint()
        if self.start_paused:
            # A restored session is already on disk; a fresh one was just saved
            self._set_state(PipelineState.PAUSED)

    # =========================================================================
    # Intents and transitions
    # =========================================================================

    def _apply(self, intent: Intent | None) -> None:
        if intent is None:
            return

        logger.debug(f"Intent received: {intent.value} (state: {self.state.value})")

        if intent is Intent.PAUSE and self.state is PipelineState.RUNNING:
            self.store.save(self.session)
            self._since_checkpoint = 0
            self._set_state(PipelineState.PAUSED)
        elif intent is Intent.RESUME and self.state is PipelineState.PAUSED:
            self._set_state(PipelineState.RUNNING)
        elif intent is Intent.QUIT:
            if self.state is PipelineState.RUNNING:
                self.store.save(self.session)
            self._set_state(PipelineState.CANCELLED)

    def _complete(self) -> None:
        try:
            self.store.delete()
        except SessionError as e:
            logger.error(f"Could not remove finished session: {e}")
            self.error = str(e)
        self._set_state(PipelineState.COMPLETED)

    def _set_state(self, state: PipelineState) -> None:
        self.state = state
        self.bus.publish(StateChanged(state=state, counts=self.session.counts()))
        logger.info(f"Pipeline state: {state.value}")

    def _checkpoint(self) -> None:
        try:
            self.store.save(self.session)
        except SessionError as e:
            logger.error(f"Checkpoint failed, continuing: {e}")
        self._since_checkpoint = 0

    # =========================================================================
    # Per-file processing
    # =========================================================================

    def _process_next(self) -> None:
        path = self.session.next_file()
        self.bus.publish(TrackStarted(path=str(path)))

        try:
            outcome, detail = self.process_file(path)
        except Exception as e:
            # The file is already off the pending list and must be counted
            logger.exception(f"Unexpected error processing {path}: {e}")
            outcome, detail = Outcome.ERROR, f"unexpected error: {e}"

        entry = self.session.record_outcome(path, outcome)
        if outcome in (Outcome.NOT_FOUND, Outcome.ERROR):
            log_lyrics_failure(logger, str(path), outcome.value, detail or "")
        else:
            logger.debug(f"{outcome.value}: {path}")

        self.bus.publish(TrackFinished(
            path=str(path),
            entry=entry,
            counts=self.session.counts(),
            detail=detail
        ))

        self._since_checkpoint += 1
        if (
            self.checkpoint_interval
            and self._since_checkpoint >= self.checkpoint_interval
            and not self.session.is_complete
        ):
            self._checkpoint()

    def process_file(self, path: Path) -> tuple[Outcome, str | None]:
        """
        Decide the outcome for one file.

        Returns:
            (outcome, detail) where detail is a human-readable label or
            error text for the log and the failures report.
        """
        if has_sidecar(path):
            return Outcome.ALREADY_EXISTS, None

        try:
            metadata = self.metadata_reader(path)
        except (GetLrcError, OSError) as e:
            return Outcome.ERROR, f"metadata read failed: {e}"
        if metadata is None:
            return Outcome.ERROR, "unreadable file or missing title tag"

        signature = fingerprint(metadata.artist, metadata.title)
        if self._cache_contains(signature):
            return Outcome.CACHED_MISS, metadata.label

        self.limiter.acquire()
        result = self.client.lookup(
            metadata.artist, metadata.title, metadata.album, metadata.duration
        )

        if isinstance(result, Found):
            try:
                self.writer.write(sidecar_path(path), result.lyrics)
            except GetLrcError as e:
                return Outcome.ERROR, e.message
            except OSError as e:
                return Outcome.ERROR, f"sidecar write failed: {e}"
            return Outcome.DOWNLOADED, metadata.label

        if isinstance(result, NotFound):
            self._cache_put(signature)
            return Outcome.NOT_FOUND, f"{metadata.label} ({result.reason})"

        return Outcome.ERROR, result.reason

    def _cache_contains(self, signature: str) -> bool:
        try:
            return self.cache.contains(signature)
        except CacheError as e:
            logger.warning(f"Negative cache unavailable for lookup: {e}")
            return False

    def _cache_put(self, signature: str) -> None:
        try:
            self.cache.put(signature)
        except CacheError as e:
            logger.warning(f"Negative cache entry not stored: {e}")

    def _summary(self) -> str:
        counts = self.session.counts()
        return (
            f"downloaded={counts.downloaded} cached={counts.cached} "
            f"existing={counts.existing} failed={counts.failed} pending={counts.pending}"
        )
