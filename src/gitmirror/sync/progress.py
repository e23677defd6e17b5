"""Human-readable progress output for a synchronization run.

The sink is any object with a ``write(str)`` method (``sys.stdout``, an
``io.StringIO``, an open file).  ``None`` is a valid, silent sink.
Reporting never influences control flow: a sink that raises ``OSError``
or ``ValueError`` (closed file) is logged once and then dropped.
"""

from __future__ import annotations

import logging
from typing import TextIO

from ..core.output import write_line

logger = logging.getLogger(__name__)


def format_elapsed(seconds: float) -> str:
    """Format a duration compactly: ``850ms``, ``2.31s``, ``1m4.2s``."""
    if seconds < 1:
        return f"{seconds * 1000:.0f}ms"
    if seconds < 60:
        return f"{seconds:.2f}s"
    minutes, rest = divmod(seconds, 60)
    return f"{int(minutes)}m{rest:.1f}s"


class ProgressReporter:
    """Write one status line per phase transition to an optional sink.

    Args:
        sink: Text sink, or ``None`` for silent operation.
    """

    def __init__(self, sink: TextIO | None = None) -> None:
        self.sink = sink

    def line(self, message: str) -> None:
        """Emit *message* as one line."""
        logger.debug(message)
        if not write_line(self.sink, message):
            # a sink that failed once is not written to again
            self.sink = None

    def lines(self, *messages: str) -> None:
        for message in messages:
            self.line(message)

    def completed(self, seconds: float) -> None:
        self.line(f"Sync completed in {format_elapsed(seconds)}")
