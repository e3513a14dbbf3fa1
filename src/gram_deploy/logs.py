from __future__ import annotations

import logging

import typer
from rich.console import Console
from rich.logging import RichHandler


def setup_logging(console: Console, verbose: bool = False, debug: bool = False) -> None:
    """Route the package loggers to a RichHandler on ``console``.

    WARNING by default, INFO with ``verbose`` and DEBUG with ``debug``; the
    DEBUG level includes the diagnostic request/response dumps.
    """
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING

    root = logging.getLogger("gram_deploy")
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(
        RichHandler(
            console=console,
            show_time=debug,
            show_path=debug,
            rich_tracebacks=True,
            tracebacks_suppress=[typer],
        )
    )

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
