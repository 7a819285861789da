"""
Coloured log output on stderr.

Plugins log through ``logging.getLogger(__name__)``; the host process calls
:func:`setup` once to show those records on the terminal.

Example:
    >>> import logging
    >>> setup()
    >>> logging.getLogger("uniplug.plugins.zig").info("Downloading zig 0.13.0")  # green
    >>> logging.getLogger("uniplug").error("download failed")                     # red
"""
import logging
from typing import Optional

from rich.console import Console
from rich.markup import escape

_STYLES = (
    (logging.ERROR, "bold red"),
    (logging.WARNING, "yellow"),
    (logging.INFO, "green"),
)


class ConsoleHandler(logging.Handler):
    """Logging handler that writes styled records to a rich console."""

    def __init__(self, console: Optional[Console] = None):
        super().__init__()
        self.console = console or Console(stderr=True)

    def emit(self, record: logging.LogRecord):
        try:
            msg = escape(self.format(record))
            for level, style in _STYLES:
                if record.levelno >= level:
                    self.console.print(f"[{style}]{msg}[/{style}]")
                    break
            else:
                self.console.print(f"[dim]{msg}[/dim]")
        except Exception:
            self.handleError(record)


_handler: Optional[ConsoleHandler] = None


def setup(level: int = logging.INFO, console: Optional[Console] = None):
    """Attach the console handler to the ``uniplug`` logger.

    Calling it again is a no-op until :func:`teardown`.

    Args:
        level: Minimum logging level (default INFO)
        console: Console to write to (default: a stderr console)
    """
    global _handler

    if _handler is not None:
        return

    _handler = ConsoleHandler(console)
    _handler.setFormatter(logging.Formatter("%(message)s"))

    logger = logging.getLogger("uniplug")
    logger.addHandler(_handler)
    logger.setLevel(level)


def teardown():
    """Remove the console handler."""
    global _handler

    if _handler is not None:
        logging.getLogger("uniplug").removeHandler(_handler)
        _handler = None
