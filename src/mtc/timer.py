"""Countdown timer shown while working on a task (``mtc do``)."""

import logging
import time
from typing import Callable

from rich.console import Console
from rich.markup import escape
from rich.progress import BarColumn, Progress, TextColumn, TimeRemainingColumn

logger = logging.getLogger(__name__)


def format_remaining(seconds: float) -> str:
    """Format a number of seconds as ``H h M min S s``."""
    seconds = max(0, int(round(seconds)))
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours} h {minutes} min {secs} s"


def run_countdown(
    minutes: int,
    description: str,
    console: Console,
    tick: float = 0.5,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """Count down ``minutes`` with a progress bar.

    Returns:
        True if the countdown ran to completion, False if it was interrupted
        with Ctrl+C. The progress display is torn down in both cases.
    """
    total = minutes * 60.0
    start = clock()
    progress = Progress(
        TextColumn("[primary]{task.description}"),
        BarColumn(),
        TextColumn("{task.fields[remaining]}"),
        TimeRemainingColumn(),
        console=console,
        transient=False,
    )
    try:
        with progress:
            bar = progress.add_task(escape(description), total=total, remaining=format_remaining(total))
            while True:
                elapsed = min(clock() - start, total)
                progress.update(bar, completed=elapsed, remaining=format_remaining(total - elapsed))
                if elapsed >= total:
                    break
                sleep(tick)
    except KeyboardInterrupt:
        logger.debug(f"Timer for {description!r} interrupted")
        console.print("[warning]Timer stopped.[/warning]")
        return False

    console.print(f"[success]Time left: {format_remaining(0)}[/success]")
    return True
