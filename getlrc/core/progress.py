"""
Progress display for getlrc.

The display runs in the main thread and only ever sees immutable event
snapshots from the EventBus; it never touches the Session. Two front ends
share the same event handling (DashboardState):

    LiveDashboard  Rich Live screen for interactive terminals:

        getlrc  /home/user/Music                                  ● RUNNING
        ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━  41.3%
        ✓ 120  ~ 14  ○ 388  ✗ 23      545 / 1320
        ╭─ Log ───────────────────────────────────────────────────────╮
        │ [○] 01 Intro.flac                                           │
        │ [✓] 02 Song.flac                                            │
        │ [✗] 03 Rare B-Side.mp3                                      │
        ╰─────────────────────────────────────────────────────────────╯
        p pause   r resume   q quit

    PlainDisplay   one line per processed file plus a tqdm bar, for
                   pipes, CI and --plain.

Keys (LiveDashboard only, POSIX terminals): p pause, r resume, q quit.
Ctrl-C is translated into a quit intent in both front ends.

Usage:
    dashboard = LiveDashboard(bus)
    final_event = dashboard.run()   # returns when the pipeline finishes
"""

import math
import os
import select
import sys
from collections import deque
from typing import TextIO

from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.progress import BarColumn, Progress, TaskID
from rich.table import Table
from rich.text import Text
from rich.theme import Theme
from tqdm import tqdm

from getlrc.core.events import (
    EventBus,
    Intent,
    PipelineEvent,
    PipelineState,
    RunFinished,
    RunStarted,
    SessionRestored,
    StateChanged,
    TrackFinished,
    TrackStarted,
)
from getlrc.core.session import LogEntry, Outcome, SessionCounts


# =============================================================================
# Common Theme
# =============================================================================

PROGRESS_THEME = Theme({
    "bar.back": "grey23",
    "bar.complete": "rgb(165,66,129)",  # Magenta/purple
    "bar.finished": "rgb(114,156,31)",  # Green when done
    "bar.pulse": "rgb(165,66,129)",
    "progress.percentage": "white",
})

OUTCOME_STYLES = {
    Outcome.DOWNLOADED: "green",
    Outcome.CACHED_MISS: "cyan",
    Outcome.ALREADY_EXISTS: "grey50",
    Outcome.NOT_FOUND: "red",
    Outcome.ERROR: "yellow",
}

STATE_STYLES = {
    PipelineState.IDLE: "grey50",
    PipelineState.RUNNING: "green",
    PipelineState.PAUSED: "yellow",
    PipelineState.COMPLETED: "bold green",
    PipelineState.CANCELLED: "red",
}

KEY_INTENTS = {
    "p": Intent.PAUSE,
    "r": Intent.RESUME,
    "q": Intent.QUIT,
}

# Lines kept for the on-screen log; the session keeps its own history
DISPLAY_LOG_LINES = 500
REFRESH_PER_SECOND = 10


def format_percent(counts: SessionCounts) -> str:
    """
    Percentage label that reads 100% only when nothing is pending.

    Rounds down so 99.99 never prints as 100.0.
    """
    if counts.pending == 0:
        return "100%"
    return f"{math.floor(counts.percent * 10) / 10:.1f}%"


def format_counters(counts: SessionCounts) -> str:
    return (
        f"[green]✓ {counts.downloaded}[/green]  "
        f"[cyan]~ {counts.cached}[/cyan]  "
        f"[grey50]○ {counts.existing}[/grey50]  "
        f"[red]✗ {counts.failed}[/red]"
    )


class DashboardState:
    """
    What the display knows, built purely from events.

    Attributes:
        root_path: Directory being processed ("" until RunStarted).
        state: Last announced PipelineState.
        counts: Last counters snapshot.
        log: Recent LogEntry objects, oldest first.
        current_path: File being processed, if any.
        finished: The RunFinished event once received.
    """

    def __init__(self, log_lines: int = DISPLAY_LOG_LINES) -> None:
        self.root_path = ""
        self.state = PipelineState.IDLE
        self.counts = SessionCounts(downloaded=0, cached=0, existing=0, failed=0, pending=0)
        self.log: deque[LogEntry] = deque(maxlen=log_lines)
        self.current_path: str | None = None
        self.finished: RunFinished | None = None

    @property
    def is_finished(self) -> bool:
        return self.finished is not None

    def apply(self, event: PipelineEvent) -> None:
        if isinstance(event, SessionRestored):
            self.log.extend(event.log_history)
            self.counts = event.counts
        elif isinstance(event, RunStarted):
            self.root_path = event.root_path
            self.counts = event.counts
        elif isinstance(event, TrackStarted):
            self.current_path = event.path
        elif isinstance(event, TrackFinished):
            self.log.append(event.entry)
            self.counts = event.counts
            self.current_path = None
        elif isinstance(event, StateChanged):
            self.state = event.state
            self.counts = event.counts
        elif isinstance(event, RunFinished):
            self.state = event.state
            self.counts = event.counts
            self.current_path = None
            self.finished = event


# =============================================================================
# Keyboard input
# =============================================================================

class KeyReader:
    """
    Non-blocking single-key reader for POSIX terminals.

    Puts stdin in cbreak mode (no line buffering, no echo) for the duration
    of the with-block and restores the previous settings on exit. When stdin
    is not a terminal, or on platforms without termios, read_key() always
    returns None and only Ctrl-C can stop the run.
    """

    def __init__(self, stream: TextIO | None = None) -> None:
        self.stream = stream or sys.stdin
        self.enabled = False
        self._saved_attrs = None

    def __enter__(self) -> "KeyReader":
        if os.name != "posix" or not self.stream.isatty():
            return self

        import termios
        import tty

        fd = self.stream.fileno()
        self._saved_attrs = termios.tcgetattr(fd)
        tty.setcbreak(fd)
        self.enabled = True
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._saved_attrs is not None:
            import termios

            termios.tcsetattr(self.stream.fileno(), termios.TCSADRAIN, self._saved_attrs)
            self._saved_attrs = None
        self.enabled = False

    def read_key(self, timeout: float = 0.0) -> str | None:
        """Return one pressed key (lowercased), or None if nothing arrived in time."""
        if not self.enabled:
            return None
        ready, _, _ = select.select([self.stream], [], [], timeout)
        if not ready:
            return None
        key = os.read(self.stream.fileno(), 1).decode("utf-8", errors="ignore")
        return key.lower() or None


# =============================================================================
# Live dashboard
# =============================================================================

class LiveDashboard:
    """
    Interactive Rich dashboard.

    Attributes:
        bus: Event/intent channels shared with the orchestrator.
        view: Accumulated DashboardState.
    """

    def __init__(self, bus: EventBus, console: Console | None = None, visible_lines: int = 15) -> None:
        self.bus = bus
        self.view = DashboardState()
        self.visible_lines = visible_lines

        self.console = console or Console()
        self.console.push_theme(PROGRESS_THEME)

        self.progress = Progress(
            BarColumn(bar_width=None, finished_style="bar.finished"),
            "{task.fields[percent]:>7}",
            console=self.console,
            expand=True,
        )
        self.task_id: TaskID = self.progress.add_task("lyrics", total=1, percent="0.0%")

    def run(self, key_reader: KeyReader | None = None) -> RunFinished:
        """
        Render until the pipeline reports RunFinished.

        Returns:
            The RunFinished event.
        """
        reader = key_reader or KeyReader()
        interval = 1.0 / REFRESH_PER_SECOND

        with reader, Live(
            self.render(),
            console=self.console,
            refresh_per_second=REFRESH_PER_SECOND,
            transient=False,
        ) as live:
            while not self.view.is_finished:
                try:
                    self.pump_events()
                    live.update(self.render())
                    if self.view.is_finished:
                        break
                    self.handle_key(reader.read_key(timeout=interval) if reader.enabled else None)
                    if not reader.enabled:
                        event = self.bus.next_event(timeout=interval)
                        if event is not None:
                            self.view.apply(event)
                except KeyboardInterrupt:
                    self.bus.send_intent(Intent.QUIT)
            live.update(self.render())

        return self.view.finished

    def pump_events(self) -> None:
        for event in self.bus.drain_events():
            self.view.apply(event)

    def handle_key(self, key: str | None) -> Intent | None:
        intent = KEY_INTENTS.get(key) if key else None
        if intent is not None:
            self.bus.send_intent(intent)
        return intent

    def render(self) -> Group:
        view = self.view
        counts = view.counts

        header = Table.grid(expand=True)
        header.add_column()
        header.add_column(justify="right")
        header.add_row(
            Text.assemble(("getlrc  ", "bold"), (view.root_path, "white")),
            Text(f"● {view.state.value.upper()}", style=STATE_STYLES[view.state]),
        )

        self.progress.update(
            self.task_id,
            total=max(counts.total, 1),
            completed=counts.processed if counts.pending else max(counts.total, 1),
            percent=format_percent(counts),
        )

        summary = Text.from_markup(
            f"{format_counters(counts)}      {counts.processed} / {counts.total}"
        )

        lines = list(view.log)[-self.visible_lines:]
        log_text = Text()
        for entry in lines:
            log_text.append(f"{entry.status.symbol} ", style=OUTCOME_STYLES[entry.status])
            log_text.append(f"{entry.filename}\n")
        if view.current_path:
            log_text.append(f"... {os.path.basename(view.current_path)}", style="grey50")
        log_panel = Panel(log_text, title="Log", border_style="grey35", height=self.visible_lines + 3)

        if view.finished is not None:
            footer = Text(self._finished_message(view.finished), style=STATE_STYLES[view.state])
        elif view.state is PipelineState.PAUSED:
            footer = Text("PAUSED  r resume   q quit", style="yellow")
        else:
            footer = Text("p pause   r resume   q quit", style="grey50")

        return Group(header, self.progress, summary, log_panel, footer)

    @staticmethod
    def _finished_message(finished: RunFinished) -> str:
        if finished.error:
            return f"Stopped: {finished.error}"
        if finished.state is PipelineState.COMPLETED:
            return "Done."
        return "Session saved. Run again to resume."


# =============================================================================
# Plain output
# =============================================================================

class PlainDisplay:
    """
    Line-per-file output with a tqdm bar.

    Used with --plain or when stdout is not a terminal. Keys are not read;
    Ctrl-C sends a quit intent and the run stops at the next file.
    """

    def __init__(self, bus: EventBus, stream: TextIO | None = None, show_bar: bool = True) -> None:
        self.bus = bus
        self.view = DashboardState()
        self.stream = stream or sys.stderr
        self.show_bar = show_bar
        self.bar: tqdm | None = None

    def run(self) -> RunFinished:
        try:
            while not self.view.is_finished:
                try:
                    event = self.bus.next_event(timeout=0.5)
                    if event is not None:
                        self.handle(event)
                except KeyboardInterrupt:
                    self.write("Interrupted, saving session...")
                    self.bus.send_intent(Intent.QUIT)
        finally:
            if self.bar is not None:
                self.bar.close()
        return self.view.finished

    def handle(self, event: PipelineEvent) -> None:
        self.view.apply(event)

        if isinstance(event, SessionRestored):
            self.write(f"Resuming session ({event.counts.processed} already processed)")
        elif isinstance(event, RunStarted):
            self.write(f"Processing {event.root_path}: {event.counts.pending} files pending")
            if self.show_bar:
                self.bar = tqdm(
                    total=event.counts.total,
                    initial=event.counts.processed,
                    unit="file",
                    file=self.stream,
                    dynamic_ncols=True,
                )
        elif isinstance(event, TrackFinished):
            line = event.entry.status.format_log(event.entry.filename)
            if event.detail and event.entry.status in (Outcome.NOT_FOUND, Outcome.ERROR):
                line = f"{line}  ({event.detail})"
            self.write(line)
            if self.bar is not None:
                self.bar.update(1)
        elif isinstance(event, StateChanged) and event.state is PipelineState.PAUSED:
            self.write("Paused, session saved")
        elif isinstance(event, RunFinished):
            counts = event.counts
            self.write(
                f"{event.state.value.capitalize()}: {counts.downloaded} downloaded, "
                f"{counts.cached} cached, {counts.existing} existing, {counts.failed} failed, "
                f"{counts.pending} pending ({format_percent(counts)})"
            )
            if event.error:
                self.write(f"Error: {event.error}")

    def write(self, message: str) -> None:
        tqdm.write(message, file=self.stream)
