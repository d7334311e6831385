"""
Command-line entry point.

Loads config and records, runs one batch against the remote system, and
always closes the browser session on the way out.
"""

import asyncio
import signal
from pathlib import Path
from typing import Awaitable, Callable, Optional

import structlog
import typer
from dotenv import load_dotenv

from dossier.core.config import AutomationConfig, ConfigLoader
from dossier.core.errors import ConfigError
from dossier.core.events import Event, LogLine, StatusChange
from dossier.core.log import configure_logging
from dossier.core.models import Record
from dossier.orchestrator.batch import BatchResult, BatchRunner
from dossier.orchestrator.service import AutomationService

logger = structlog.get_logger()

app = typer.Typer(
    name="dossier",
    help="Batch accept/reject and overview merge against the records system",
    no_args_is_help=True,
)


def _print_event(event: Event) -> None:
    if isinstance(event, LogLine):
        typer.echo(event.format())
    elif isinstance(event, StatusChange) and event.error:
        typer.echo(f"  {event.identifier}: {event.status.value} ({event.error})")


def _load(config_path: Optional[str], records_path: str) -> tuple[AutomationConfig, list[Record]]:
    load_dotenv()
    loader = ConfigLoader()
    try:
        return loader.load_config(config_path), loader.load_records(records_path)
    except ConfigError as e:
        typer.echo(f"Error: {e.message}", err=True)
        raise typer.Exit(2)


def install_signal_handlers(
    loop: asyncio.AbstractEventLoop,
    runner: BatchRunner,
    signals: tuple = (signal.SIGTERM, signal.SIGINT),
) -> None:
    """
    First signal cancels the batch between records and restores the default
    handlers, so a second Ctrl-C interrupts immediately.
    """
    def on_signal(sig: int) -> None:
        logger.info("shutdown_signal_received", signal=sig)
        runner.cancel()
        typer.echo("Cancelling after the current record. Press Ctrl-C again to abort now.", err=True)
        for installed in signals:
            loop.remove_signal_handler(installed)

    for sig in signals:
        try:
            loop.add_signal_handler(sig, on_signal, sig)
        except NotImplementedError:
            # Windows event loops have no signal handler support
            pass


async def _run_batch(
    config: AutomationConfig,
    work: Callable[[BatchRunner], Awaitable[BatchResult]],
) -> int:
    service = AutomationService()
    service.events.subscribe(_print_event)
    runner = BatchRunner(service)

    install_signal_handlers(asyncio.get_running_loop(), runner)

    try:
        await service.initialise(config)
        if not await service.login():
            return 1
        await service.navigate_to_entry()

        result = await work(runner)
        return 1 if result.summary.failed else 0
    except Exception:
        logger.exception("batch_run_error")
        return 1
    finally:
        if service.debug and service.is_initialised:
            await asyncio.to_thread(input, "Browser paused for inspection. Press Enter to close...")
        await service.close()


@app.command("decide")
def decide(
    records: str = typer.Argument(..., help="YAML/JSON file listing the records"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="YAML/JSON config file"),
    accepts: bool = typer.Option(True, "--accepts/--no-accepts", help="Process accept decisions"),
    rejects: bool = typer.Option(True, "--rejects/--no-rejects", help="Process reject decisions"),
    log_level: str = typer.Option("INFO", help="Process log level"),
):
    """Apply accept/reject decisions for every record."""
    configure_logging(log_level)
    settings, batch = _load(config, records)

    code = asyncio.run(_run_batch(
        settings,
        lambda runner: runner.run_decisions(batch, process_accepts=accepts, process_rejects=rejects),
    ))
    raise typer.Exit(code)


@app.command("merge")
def merge(
    records: str = typer.Argument(..., help="YAML/JSON file listing the records"),
    output_dir: Path = typer.Argument(..., help="Folder the overview PDFs are saved to"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="YAML/JSON config file"),
    log_level: str = typer.Option("INFO", help="Process log level"),
):
    """Create, merge and download the overview PDF for every record."""
    configure_logging(log_level)
    settings, batch = _load(config, records)

    code = asyncio.run(_run_batch(
        settings,
        lambda runner: runner.run_merge(batch, output_dir),
    ))
    raise typer.Exit(code)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
