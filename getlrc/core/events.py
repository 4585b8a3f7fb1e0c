"""
Event bus between the pipeline and the display.

Two one-directional, ordered, unbounded queues:

    Orchestrator --> Display   progress and log events (never blocks the producer)
    Display --> Orchestrator   user intents: pause, resume, quit

Events are frozen dataclasses carrying immutable snapshots (SessionCounts,
LogEntry), so the display never holds a reference to pipeline state.

The orchestrator samples intents only between two files; a pause or quit
therefore never interrupts a lookup or a sidecar write.

Usage:
    bus = EventBus()

    # pipeline thread
    bus.publish(TrackFinished(path=..., entry=..., counts=...))
    intent = bus.poll_intent()

    # display thread
    for event in bus.drain_events():
        render(event)
    bus.send_intent(Intent.PAUSE)
"""

import queue
from dataclasses import dataclass
from enum import Enum

from getlrc.core.session import LogEntry, SessionCounts


class Intent(Enum):
    """User requests sent from the display to the orchestrator."""
    PAUSE = "pause"
    RESUME = "resume"
    QUIT = "quit"


class PipelineState(Enum):
    """
    Orchestrator lifecycle.

    IDLE -> RUNNING <-> PAUSED -> COMPLETED
    RUNNING/PAUSED -> CANCELLED

    COMPLETED and CANCELLED are terminal.
    """
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (PipelineState.COMPLETED, PipelineState.CANCELLED)


@dataclass(frozen=True)
class SessionRestored:
    """A saved session was picked up; replay its history into the log view."""
    log_history: tuple[LogEntry, ...]
    counts: SessionCounts


@dataclass(frozen=True)
class RunStarted:
    root_path: str
    counts: SessionCounts
    resumed: bool


@dataclass(frozen=True)
class TrackStarted:
    path: str


@dataclass(frozen=True)
class TrackFinished:
    """
    One file reached its final outcome.

    Attributes:
        path: Audio file path.
        entry: The log entry appended to the session history.
        counts: Counters after this file.
        detail: Optional extra text (error message, matched track label).
    """
    path: str
    entry: LogEntry
    counts: SessionCounts
    detail: str | None = None


@dataclass(frozen=True)
class StateChanged:
    state: PipelineState
    counts: SessionCounts


@dataclass(frozen=True)
class RunFinished:
    """
    The orchestrator reached a terminal state.

    Attributes:
        state: COMPLETED or CANCELLED.
        counts: Final counters.
        error: Set when the run stopped because of an unexpected failure.
    """
    state: PipelineState
    counts: SessionCounts
    error: str | None = None


PipelineEvent = SessionRestored | RunStarted | TrackStarted | TrackFinished | StateChanged | RunFinished


class EventBus:
    """
    Pair of unbounded FIFO queues connecting the pipeline and the display.

    Thread Safety:
        All methods are safe to call from any thread (queue.Queue).
    """

    def __init__(self) -> None:
        self._events: queue.Queue = queue.Queue()
        self._intents: queue.Queue = queue.Queue()

    # =========================================================================
    # Orchestrator -> Display
    # =========================================================================

    def publish(self, event: PipelineEvent) -> None:
        self._events.put_nowait(event)

    def drain_events(self, max_items: int | None = None) -> list[PipelineEvent]:
        """
        Return pending events without blocking, oldest first.

        Args:
            max_items: Stop after this many events (None = everything queued).
        """
        events = []
        while max_items is None or len(events) < max_items:
            try:
                events.append(self._events.get_nowait())
            except queue.Empty:
                break
        return events

    def next_event(self, timeout: float | None = None) -> PipelineEvent | None:
        """Block up to timeout seconds for the next event."""
        try:
            return self._events.get(timeout=timeout)
        except queue.Empty:
            return None

    # =========================================================================
    # Display -> Orchestrator
    # =========================================================================

    def send_intent(self, intent: Intent) -> None:
        self._intents.put_nowait(intent)

    def poll_intent(self) -> Intent | None:
        """Return the oldest queued intent, or None without blocking."""
        try:
            return self._intents.get_nowait()
        except queue.Empty:
            return None

    def wait_intent(self, timeout: float | None = None) -> Intent | None:
        """Block until an intent arrives (used while paused)."""
        try:
            return self._intents.get(timeout=timeout)
        except queue.Empty:
            return None
