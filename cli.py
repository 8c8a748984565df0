#!/usr/bin/env python3
"""
Qnote Sync CLI.

Primary entry point for working with the local note cache and the sync
core from a terminal. Use --service to select what to run.

Usage:
    python cli.py --help
    python cli.py --service list --user alice
    python cli.py --service add --user alice --content "Buy milk"
    python cli.py --service sync --user alice --online --verbose
    python cli.py --service config
    python cli.py --service test --test-type unit
"""

import asyncio
import subprocess
import sys
from pathlib import Path

import click
import structlog

PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from qnote.sync.core.logging import get_logger, setup_logging

NOTE_SERVICES = {"list", "add", "edit", "delete", "pin", "publish", "sync", "refresh", "status", "purge-unpinned"}
NEEDS_NOTE_ID = {"edit", "delete", "pin", "publish"}


def validate_project_root() -> Path:
    """Validate that we're running from the project root."""
    if not (PROJECT_ROOT / ".project_root").exists():
        click.echo(
            click.style("Error: .project_root not found. Run from project root.", fg="red"),
            err=True,
        )
        sys.exit(1)
    return PROJECT_ROOT


@click.command()
@click.option(
    "--service", "-s",
    type=click.Choice(["info", "config", "test", *sorted(NOTE_SERVICES)]),
    default="info",
    help="Service or command to run.",
)
@click.option(
    "--user", "-u",
    default=None,
    help="User whose notes to work with (note services only).",
)
@click.option(
    "--note-id", "-n",
    default=None,
    help="Target note id (edit, delete, pin, publish).",
)
@click.option(
    "--content", "-c",
    default=None,
    help="Note text (add, edit).",
)
@click.option(
    "--search",
    default="",
    help="Case-insensitive filter for list.",
)
@click.option(
    "--online/--offline",
    default=None,
    help="Override the initial connectivity state from connectivity.yaml.",
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    help="Enable verbose output (INFO level logging).",
)
@click.option(
    "--debug", "-d",
    is_flag=True,
    help="Enable debug output (DEBUG level logging).",
)
@click.option(
    "--test-type",
    type=click.Choice(["all", "unit", "integration"]),
    default="all",
    help="Test type to run.",
)
@click.option(
    "--coverage",
    is_flag=True,
    help="Run tests with coverage.",
)
def main(
    service: str,
    user: str | None,
    note_id: str | None,
    content: str | None,
    search: str,
    online: bool | None,
    verbose: bool,
    debug: bool,
    test_type: str,
    coverage: bool,
) -> None:
    """
    Qnote Sync CLI.

    Use --service to select what to run. Note services work on the local
    cache of --user and sync through the remote store from remote.yaml.

    \b
    Examples:
        python cli.py --service list --user alice --search milk
        python cli.py --service add --user alice --content "Buy milk"
        python cli.py --service edit --user alice --note-id ID --content "Buy oat milk"
        python cli.py --service pin --user alice --note-id ID
        python cli.py --service publish --user alice --note-id ID --online
        python cli.py --service delete --user alice --note-id ID --offline
        python cli.py --service sync --user alice --online --verbose
        python cli.py --service refresh --user alice --online
        python cli.py --service status --user alice
        python cli.py --service purge-unpinned --user alice
        python cli.py --service config
        python cli.py --service test --test-type unit --coverage
    """
    validate_project_root()

    if debug:
        log_level = "DEBUG"
    elif verbose:
        log_level = "INFO"
    else:
        log_level = "WARNING"

    setup_logging(level=log_level, format_type="console")

    structlog.contextvars.bind_contextvars(source="cli")

    logger = get_logger(__name__)

    logger.debug("CLI invoked", extra={"service": service, "log_level": log_level})

    if service == "info":
        show_info(logger)
    elif service == "config":
        show_config(logger)
    elif service == "test":
        run_tests(logger, test_type, coverage)
    else:
        if not user:
            click.echo(click.style(f"Error: --user is required for {service}.", fg="red"), err=True)
            sys.exit(2)
        if service in NEEDS_NOTE_ID and not note_id:
            click.echo(click.style(f"Error: --note-id is required for {service}.", fg="red"), err=True)
            sys.exit(2)
        asyncio.run(run_note_service(logger, service, user, note_id, content, search, online))


async def run_note_service(
    logger,
    service: str,
    user: str,
    note_id: str | None,
    content: str | None,
    search: str,
    online: bool | None,
) -> None:
    """Open a session for the user, run one note command and close it."""
    from qnote.main import create_session
    from qnote.sync.core.exceptions import ApplicationError
    from qnote.sync.services.connectivity import ConnectivitySignal

    connectivity = ConnectivitySignal(online=online) if online is not None else None
    session = await create_session(connectivity=connectivity)
    session.alerts.subscribe(
        lambda alert: click.echo(
            click.style(f"[{alert.severity.value}] {alert.event_type}: {alert.payload}", fg="yellow"),
            err=True,
        )
    )
    try:
        await session.sign_in(user)
        await _dispatch(session, service, note_id, content, search)
        await session.wait_idle()
    except ApplicationError as e:
        logger.warning("Command failed", extra={"service": service, "code": e.code, "error": e.message})
        click.echo(click.style(f"Error: {e.message}", fg="red"), err=True)
        sys.exit(1)
    finally:
        await session.close()


def _find(session, note_id: str):
    from qnote.sync.core.exceptions import NotFoundError

    note = session.store.get(note_id)
    if note is None:
        raise NotFoundError(f"Note {note_id} not found")
    return note


def _print_note(note, indicator=None) -> None:
    pin = "*" if note.is_pinned else " "
    public = " public" if note.is_public else ""
    state = (indicator or note.sync_state).value
    first_line = note.content.splitlines()[0] if note.content else ""
    click.echo(f"{pin} {note.id}  {note.timestamp:%Y-%m-%d %H:%M}  [{state}{public}]  {first_line[:60]}")


async def _dispatch(session, service: str, note_id: str | None, content: str | None, search: str) -> None:
    if service == "list":
        notes = session.list_visible(search)
        for note in notes:
            _print_note(note, session.current_sync_indicator(note))
        click.echo(f"\n{len(notes)} note(s)")

    elif service == "add":
        note = await session.create_note(content or "")
        click.echo(f"Created {note.id}")

    elif service == "edit":
        note = _find(session, note_id)
        updated = await session.update_note(note.replace(content=content or ""))
        click.echo("Unchanged" if updated == note else f"Updated {note.id}")

    elif service == "delete":
        await session.delete_note(_find(session, note_id))
        click.echo(f"Deleted {note_id}")

    elif service == "pin":
        note = await session.toggle_pin(_find(session, note_id))
        click.echo(f"{'Pinned' if note.is_pinned else 'Unpinned'} {note.id}")

    elif service == "publish":
        note = await session.toggle_public(_find(session, note_id))
        if note.is_public:
            click.echo(f"Published {note.id} as {note.public_id}")
        else:
            click.echo(f"Unpublished {note.id}")

    elif service == "sync":
        report = await session.sync()
        if report.skipped:
            click.echo("Offline: nothing pushed.")
            return
        click.echo(f"Pushed: {len(report.pushed)}  Failed: {len(report.failed)}")
        click.echo(
            f"Tombstones flushed: {len(report.tombstones_flushed)}  "
            f"kept: {len(report.tombstones_kept)}"
        )
        if not report.clean:
            click.echo(click.style("Some changes are still pending.", fg="yellow"))

    elif service == "refresh":
        report = await session.refresh()
        if report.skipped:
            click.echo("Offline: nothing pulled.")
            return
        click.echo(
            f"Fetched: {report.fetched}  Updated: {len(report.updated)}  "
            f"Kept local: {len(report.kept_local)}  Removed: {len(report.removed)}"
        )
        if report.error is not None:
            click.echo(click.style(f"Pull stopped early: {report.error.message}", fg="yellow"))

    elif service == "status":
        notes = session.list_visible()
        pending = [n for n in notes if n.needs_sync]
        click.echo(f"User: {session.user_id}")
        click.echo(f"Connectivity: {session.connectivity.current_status().value}")
        click.echo(f"Notes: {len(notes)}  Pending: {len(pending)}")
        click.echo(f"Tombstones: {len(session.state.tombstones)}")
        click.echo(f"Bulk unpinned deletion pending: {session.state.bulk_unpinned_pending}")

    elif service == "purge-unpinned":
        removed = await session.delete_unpinned_notes()
        click.echo(f"Deleted {len(removed)} unpinned note(s)")


def show_config(logger) -> None:
    """Display loaded configuration."""
    click.echo("Application Configuration:\n")

    try:
        from qnote.sync.core.config import get_app_config

        app_config = get_app_config()
        sections = {
            "Application": app_config.application,
            "Local Cache": app_config.database,
            "Logging": app_config.logging,
            "Sync": app_config.sync,
            "Remote Store": app_config.remote,
            "Connectivity": app_config.connectivity,
        }

        for title, section in sections.items():
            click.echo(f"{title} Settings (from YAML):")
            click.echo("-" * 40)
            for key, value in section.model_dump().items():
                if isinstance(value, dict):
                    click.echo(f"  {key}:")
                    for k, v in value.items():
                        click.echo(f"    {k}: {v}")
                else:
                    click.echo(f"  {key}: {value}")
            click.echo()

        logger.info("Configuration displayed successfully")

    except Exception as e:
        logger.error("Failed to load configuration", extra={"error": str(e)})
        click.echo(click.style(f"Error loading configuration: {e}", fg="red"))
        sys.exit(1)


def run_tests(logger, test_type: str, coverage: bool) -> None:
    """Run the test suite."""
    logger.info("Running tests", extra={"type": test_type, "coverage": coverage})

    cmd = [sys.executable, "-m", "pytest"]

    if test_type == "unit":
        cmd.append("tests/unit")
    elif test_type == "integration":
        cmd.append("tests/integration")
    else:
        cmd.append("tests/")

    cmd.append("-v")

    if coverage:
        cmd.extend(["--cov=qnote", "--cov-report=term-missing"])

    click.echo(f"Running: {' '.join(cmd)}\n")

    try:
        result = subprocess.run(cmd)
        sys.exit(result.returncode)
    except FileNotFoundError:
        logger.error("pytest not found. Install with: pip install pytest")
        sys.exit(1)


def show_info(logger) -> None:
    """Display application information."""
    from qnote.sync.core.config import get_app_config

    try:
        app = get_app_config().application
    except Exception as e:
        logger.error("Failed to load configuration", extra={"error": str(e)})
        click.echo(click.style(f"Error loading configuration: {e}", fg="red"))
        sys.exit(1)

    click.echo(f"{app.name} v{app.version}")
    click.echo(app.description)
    click.echo(f"Environment: {app.environment}\n")
    click.echo("Services:")
    click.echo("  info, config, test")
    click.echo(f"  {', '.join(sorted(NOTE_SERVICES))} (require --user)")
    click.echo("\nRun 'python cli.py --help' for all options.")


if __name__ == "__main__":
    main()
