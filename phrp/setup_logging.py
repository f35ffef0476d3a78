import logging
from logging import FileHandler
from pathlib import Path
from typing import Optional, Union

from rich.console import Console
from rich.logging import RichHandler

from phrp.exceptions import PHRPConfigurationError

LOG_MAPPING = {
    "critical": logging.CRITICAL,
    "error": logging.ERROR,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}


def setup_logging(
    passed_level: str,
    log_file: Optional[Union[str, Path]] = None,
    rich_console: Console = None,
):
    """Log to the console with rich and, optionally, to `log_file`."""
    if passed_level not in LOG_MAPPING:
        raise PHRPConfigurationError(
            "Invalid log level. Should be one of the following: " + ", ".join(LOG_MAPPING.keys())
        )

    if not rich_console:
        rich_console = Console(record=True)

    handlers = [RichHandler(rich_tracebacks=True, console=rich_console, show_path=False)]
    if log_file:
        handlers.insert(0, FileHandler(log_file, mode="w"))

    logging.basicConfig(
        format="%(name)s // %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        level=LOG_MAPPING[passed_level],
        handlers=handlers,
    )
