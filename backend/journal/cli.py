"""Command line entry point for the enrichment job."""

from __future__ import annotations

import asyncio
import contextlib
import math
import re
import signal
from typing import TYPE_CHECKING, Any

import click

from journal.background.orchestrator import log_pass_result
from journal.config import load_settings
from journal.core.cancellation import CancelToken
from journal.core.errors import ConfigurationError
from journal.dependencies import build_orchestrator
from journal.utils.logging import get_logger, setup_logging

if TYPE_CHECKING:
    from journal.background.orchestrator import EnrichmentOrchestrator
    from journal.core.schemas.enrichment import PassResult

logger = get_logger(__name__)

EXIT_CONFIG_ERROR = 1
EXIT_INTERRUPTED = 130

_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ns|us|µs|ms|s|m|h)")


def parse_duration(value: str) -> float:
    """Parse ``1h30m`` / ``2s`` / ``500ms`` style durations (or bare seconds) into seconds."""
    text = value.strip().lower()
    if not text:
        raise ValueError("empty duration")
    try:
        seconds = float(text)
    except ValueError:
        seconds = 0.0
        pos = 0
        for match in _DURATION_PART.finditer(text):
            if match.start() != pos:
                break
            seconds += float(match.group(1)) * _UNITS[match.group(2)]
            pos = match.end()
        if pos == 0 or pos != len(text):
            raise ValueError(f"invalid duration {value!r}") from None
    if not math.isfinite(seconds) or seconds < 0:
        raise ValueError(f"duration must be a finite, non-negative value: {value!r}")
    return seconds


class DurationType(click.ParamType):
    name = "duration"

    def convert(self, value: Any, param: click.Parameter | None, ctx: click.Context | None) -> float:
        if isinstance(value, (int, float)):
            return float(value)
        try:
            return parse_duration(str(value))
        except ValueError as err:
            self.fail(str(err), param, ctx)


DURATION = DurationType()


def _install_signal_handlers(token: CancelToken) -> None:
    loop = asyncio.get_running_loop()

    def _on_signal(signame: str) -> None:
        logger.info("Received %s, stopping...", signame)
        token.cancel()

    for sig in (signal.SIGINT, signal.SIGTERM):
        # add_signal_handler is unavailable on Windows event loops
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, _on_signal, sig.name)


async def _run(orchestrator: EnrichmentOrchestrator, interval: float) -> PassResult:
    token = CancelToken()
    _install_signal_handlers(token)
    if interval > 0:
        return await orchestrator.run_forever(interval, token)
    result = await orchestrator.run_once(token)
    log_pass_result(result)
    return result


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--interval",
    type=DURATION,
    default="0",
    show_default=True,
    help="Run continuously with this interval (e.g. 1h). 0 runs once and exits.",
)
@click.option("--dry-run", is_flag=True, default=False, help="Call the model but do not write results.")
@click.option(
    "--delay",
    type=DURATION,
    default="2s",
    show_default=True,
    help="Minimum spacing between model calls across all tasks. 0 disables limiting.",
)
def main(interval: float, dry_run: bool, delay: float) -> None:
    """Attach AI-generated tags, OCR text and transcripts to journal content."""
    try:
        settings = load_settings()
    except ConfigurationError as err:
        setup_logging()
        logger.error("Error: %s", err)
        raise SystemExit(EXIT_CONFIG_ERROR) from err

    setup_logging(settings.log_level)
    logger.info("Starting enrichment job for all users")
    logger.info("  Dry run: %s", dry_run)
    logger.info("  Delay: %ss", delay)
    if interval > 0:
        logger.info("  Interval: %ss", interval)

    try:
        orchestrator = build_orchestrator(settings, delay=delay, dry_run=dry_run)
    except Exception as err:
        logger.error("Failed to initialize clients: %s", err)
        raise SystemExit(EXIT_CONFIG_ERROR) from err

    result = asyncio.run(_run(orchestrator, interval))
    if interval <= 0 and result.cancelled:
        raise SystemExit(EXIT_INTERRUPTED)


if __name__ == "__main__":  # pragma: no cover
    main()
