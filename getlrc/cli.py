"""
Command-line interface for getlrc.

This module implements the CLI using Click, with rich-click for the help
output colors.

Usage:
    getlrc ~/Music                      Fetch missing lyrics (live dashboard)
    getlrc ~/Music --plain              One line per file, no key controls
    getlrc ~/Music --config my.yaml     Use an explicit configuration file
    getlrc ~/Music --verbose            Also log DEBUG messages to the console

While running (live dashboard):
    p   pause (session is saved)
    r   resume
    q   quit (session is saved, run again to continue)

Resuming:
    If a saved session exists for the same directory it is restored instead
    of rescanning. By default a restored session starts paused so you can
    look at the log before pressing r.

Exit Codes:
    0    finished, or quit by the user (session saved)
    1    configuration error
    2    preflight or negative cache error
    4    any other getlrc error
    130  interrupted before the pipeline started
"""

import sys
import threading
from pathlib import Path

import rich_click as click

# Configure rich-click for better help formatting
click.rich_click.USE_RICH_MARKUP = True
click.rich_click.SHOW_ARGUMENTS = True
click.rich_click.STYLE_ERRORS_SUGGESTION = "magenta italic"
click.rich_click.MAX_WIDTH = 100

from getlrc import __version__
from getlrc.core import (
    CacheError,
    ConfigError,
    EventBus,
    GetLrcError,
    Intent,
    NegativeCache,
    PipelineState,
    PreflightError,
    RateLimiter,
    SessionStore,
    SidecarWriter,
    ensure_data_dir,
    ensure_directory,
    get_logger,
    load_config,
    setup_logging,
    shutdown_logging,
)
from getlrc.core.progress import LiveDashboard, PlainDisplay
from getlrc.core.session import Session
from getlrc.library import scan_directory
from getlrc.lyrics import LrcLibClient
from getlrc.pipeline import Orchestrator

logger = get_logger(__name__)


@click.command()
@click.argument(
    "music_dir",
    type=click.Path(path_type=Path),
    metavar="<music-directory>"
)
@click.option(
    "--config", "config_path",
    type=click.Path(path_type=Path),
    default=None,
    metavar="<config.yaml>",
    help="Configuration file (default: config.yaml in the data directory)"
)
@click.option(
    "--plain",
    is_flag=True,
    help="Plain line-per-file output instead of the live dashboard"
)
@click.option(
    "--verbose",
    is_flag=True,
    help="Log DEBUG messages to the console"
)
@click.version_option(__version__, prog_name="getlrc")
def cli(music_dir: Path, config_path: Path | None, plain: bool, verbose: bool) -> None:
    """
    getlrc: fetch synchronized lyrics for a music library.

    Scans <music-directory> for audio files, looks each one up on LRCLIB
    and writes the synced lyrics as a .lrc file next to it. Progress is
    saved, so an interrupted run picks up where it stopped.
    """
    exit_code = run(music_dir, config_path=config_path, plain=plain, verbose=verbose)
    sys.exit(exit_code)


def run(
    music_dir: Path,
    config_path: Path | None = None,
    plain: bool = False,
    verbose: bool = False
) -> int:
    """
    Execute one getlrc run.

    Steps:
        1. Load configuration
        2. Preflight: music directory and data directory
        3. Set up logging
        4. Open the negative cache
        5. Restore the session for this directory, or scan a new one
        6. Start the orchestrator thread and run the display

    Returns:
        Process exit code.
    """
    cache: NegativeCache | None = None
    client: LrcLibClient | None = None

    try:
        config = load_config(config_path)

        root = ensure_directory(music_dir)
        ensure_data_dir(config.paths.data_dir)

        interactive = not plain and sys.stdout.isatty()
        log_path = setup_logging(
            config.paths.log_dir,
            console=not interactive or verbose,
            verbose=verbose
        )
        logger.info(f"getlrc {__version__} starting for {root}")
        logger.debug(f"Data directory: {config.paths.data_dir}")

        cache = NegativeCache(config.paths.cache_path)
        client = LrcLibClient(config.api)

        store = SessionStore(config.paths.session_path)
        session, resumed = _restore_or_scan(store, root)

        bus = EventBus()
        orchestrator = Orchestrator(
            session=session,
            store=store,
            cache=cache,
            client=client,
            writer=SidecarWriter(),
            limiter=RateLimiter.per_second(config.rate_limit.requests_per_second),
            bus=bus,
            resumed=resumed,
            start_paused=resumed and interactive and config.session.start_paused_on_resume,
            checkpoint_interval=config.session.checkpoint_interval
        )

        finished = _run_pipeline(orchestrator, bus, interactive)

        click.echo(f"Log file: {log_path}", err=True)
        if finished.error:
            click.echo(f"Error: {finished.error}", err=True)
            return 4
        if finished.state is PipelineState.CANCELLED:
            click.echo("Session saved. Run the same command again to resume.", err=True)
        return 0

    except ConfigError as e:
        click.echo(f"Configuration error: {e.message}", err=True)
        return 1

    except (PreflightError, CacheError) as e:
        click.echo(f"Error: {e.message}", err=True)
        logger.error(f"Startup failed: {e.message}")
        return 2

    except GetLrcError as e:
        click.echo(f"Error: {e.message}", err=True)
        logger.error(f"Error: {e.message}", exc_info=True)
        return 4

    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        logger.info("Interrupted by user")
        return 130

    finally:
        if client is not None:
            client.close()
        if cache is not None:
            cache.close()
        shutdown_logging()


def _restore_or_scan(store: SessionStore, root: Path) -> tuple[Session, bool]:
    """
    Load the saved session for root, or build a new one from a scan.

    Returns:
        (session, resumed)
    """
    session = store.load(root)
    if session is not None:
        click.echo(
            f"Resuming session: {len(session.pending_files)} of "
            f"{session.total_files} files left",
            err=True
        )
        return session, True

    click.echo(f"Scanning {root} ...", err=True)
    files = scan_directory(root)
    click.echo(f"Found {len(files)} audio files", err=True)
    return Session.new(root, files), False


def _run_pipeline(orchestrator: Orchestrator, bus: EventBus, interactive: bool):
    """
    Run the orchestrator in a worker thread and the display in this one.

    Returns:
        The RunFinished event.
    """
    worker = threading.Thread(target=orchestrator.run, name="orchestrator", daemon=True)
    worker.start()

    display = LiveDashboard(bus) if interactive else PlainDisplay(bus)
    finished = display.run()

    # The orchestrator has published RunFinished, so this returns promptly;
    # a second Ctrl-C here still waits for the final save
    while worker.is_alive():
        try:
            worker.join()
        except KeyboardInterrupt:
            bus.send_intent(Intent.QUIT)

    return finished


def main() -> None:
    """
    Entry point for the CLI.

    This function is called when running `getlrc` from the command line.
    """
    cli()


if __name__ == "__main__":
    main()
